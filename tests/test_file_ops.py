"""Tests for the open, drop, link and relocation use cases."""

from __future__ import annotations

from pathlib import Path

import pytest

from markwell.services.settings import Settings
from markwell.services.storage import LocalStorage
from markwell.ui.application.file_ops import MOVE_ERROR_TITLE, OPEN_ERROR_TITLE, RENAME_ERROR_TITLE
from markwell.ui.events import DirectoryOpened, DocumentOpened, NoticePosted, PathnameSet

from tests.helpers import FakePrompts, FakeStorage, Harness


class TestOpen:
    """Tests for opening files and folders."""

    @pytest.mark.asyncio
    async def test_open_file_reads_and_watches(self, harness: Harness) -> None:
        """Opening a file publishes its content and starts watching it."""
        document = await harness.coordinator.file_ops.open_file_or_folder("w1", "/docs/a.md", document_id="d1")

        assert document is not None and document.id == "d1"
        opened = harness.recorder.of_type(DocumentOpened)
        assert len(opened) == 1
        assert opened[0].content == "# Alpha\n"
        assert opened[0].filename == "a.md"
        assert opened[0].encoding == "utf-8"
        assert not opened[0].dirty
        assert harness.watches.ref_count("/docs/a.md") == 1
        assert harness.settings.recent_files == ["/docs/a.md"]

    @pytest.mark.asyncio
    async def test_open_twice_refocuses(self, harness: Harness) -> None:
        """A path already open in the window is focused, not reloaded."""
        first = await harness.coordinator.file_ops.open_file_or_folder("w1", "/docs/a.md")
        second = await harness.coordinator.file_ops.open_file_or_folder("w1", "/docs/a.md")

        assert first is second
        opened = harness.recorder.of_type(DocumentOpened)
        assert opened[1].content is None
        assert harness.watches.ref_count("/docs/a.md") == 1

    @pytest.mark.asyncio
    async def test_open_directory(self, harness: Harness) -> None:
        """Directories open as projects."""
        result = await harness.coordinator.file_ops.open_file_or_folder("w1", "/docs")

        assert result is None
        assert [event.pathname for event in harness.recorder.of_type(DirectoryOpened)] == ["/docs"]

    @pytest.mark.asyncio
    async def test_open_missing_path_posts_notice(self, harness: Harness) -> None:
        """Paths that are neither file nor directory are reported."""
        result = await harness.coordinator.file_ops.open_file_or_folder("w1", "/docs/missing.md")

        assert result is None
        notice = harness.recorder.of_type(NoticePosted)[0]
        assert notice.title == OPEN_ERROR_TITLE
        assert notice.details["error"] == "io_failure"
        assert harness.registry.documents("w1") == []

    @pytest.mark.asyncio
    async def test_read_failure_opens_nothing(self, harness: Harness) -> None:
        """A failed read leaves no document and no watch behind."""
        harness.storage.fail_reads.add(Path("/docs/a.md"))

        result = await harness.coordinator.file_ops.open_file_or_folder("w1", "/docs/a.md")

        assert result is None
        assert harness.watches.watched_paths() == []
        assert harness.recorder.of_type(NoticePosted)[0].title == OPEN_ERROR_TITLE

    @pytest.mark.asyncio
    async def test_open_file_prompt_starts_in_recent_directory(self, storage: FakeStorage) -> None:
        """The open dialog starts next to the most recent file."""
        settings = Settings(documents_dir="/docs", recent_files=["/notes/old.md"])
        harness = Harness(storage=storage, settings=settings, prompts=FakePrompts(open_file="/docs/b.md"))

        document = await harness.coordinator.file_ops.open_file("w1")

        assert harness.prompts.asked("choose_open_file") == [Path("/notes")]
        assert document is not None and document.pathname == Path("/docs/b.md")

    @pytest.mark.asyncio
    async def test_open_file_cancelled(self, harness: Harness) -> None:
        """Cancelling the open dialog does nothing."""
        assert await harness.coordinator.file_ops.open_file("w1") is None
        assert harness.prompts.asked("choose_open_file") == [Path("/docs")]
        assert harness.recorder.events == []

    @pytest.mark.asyncio
    async def test_open_project(self, storage: FakeStorage) -> None:
        """Open project publishes the chosen folder."""
        harness = Harness(storage=storage, prompts=FakePrompts(directory="/docs/images"))

        await harness.coordinator.file_ops.open_project("w1")

        assert [event.pathname for event in harness.recorder.of_type(DirectoryOpened)] == ["/docs/images"]


class TestRegistration:
    """Tests for tabs the front-end creates."""

    def test_new_tab_is_untitled_and_dirty(self, harness: Harness) -> None:
        """New tabs are registered dirty with the id the front-end chose."""
        document = harness.coordinator.file_ops.new_tab("w1", "t1")

        assert document.id == "t1"
        assert document.dirty
        opened = harness.recorder.of_type(DocumentOpened)
        assert [(event.document_id, event.dirty) for event in opened] == [("t1", True)]

    def test_set_dirty_unknown_document_ignored(self, harness: Harness) -> None:
        """Dirty updates for unknown tabs are dropped."""
        harness.coordinator.file_ops.set_dirty("w1", "missing", True)
        assert harness.registry.documents("w1") == []


class TestDropAndLinks:
    """Tests for drag-and-drop and link clicks on a real directory."""

    @pytest.mark.asyncio
    async def test_drop_opens_first_markdown_file(self, tmp_path: Path) -> None:
        """The first markdown file wins; the rest are ignored."""
        first = tmp_path / "one.md"
        second = tmp_path / "two.md"
        first.write_text("# One")
        second.write_text("# Two")
        harness = Harness(storage=LocalStorage())  # type: ignore[arg-type]

        await harness.coordinator.file_ops.drop("w1", [str(tmp_path / "photo.png"), str(first), str(second)])

        opened = harness.recorder.of_type(DocumentOpened)
        assert [event.filename for event in opened] == ["one.md"]

    @pytest.mark.asyncio
    async def test_drop_imports_foreign_file(self, tmp_path: Path) -> None:
        """A dropped importable file goes through the converter."""
        source = tmp_path / "report.docx"
        source.write_bytes(b"PK")
        harness = Harness(storage=LocalStorage())  # type: ignore[arg-type]

        await harness.coordinator.file_ops.drop("w1", [str(source)])

        assert harness.converter.imports == [source]
        opened = harness.recorder.of_type(DocumentOpened)
        assert opened[0].content == "# Imported\n"
        assert opened[0].dirty

    @pytest.mark.asyncio
    async def test_drop_of_unknown_files_does_nothing(self, harness: Harness) -> None:
        """Files that are neither markdown nor importable are ignored."""
        await harness.coordinator.file_ops.drop("w1", ["/docs/photo.png", "/docs/archive.zip"])
        assert harness.recorder.events == []

    @pytest.mark.asyncio
    async def test_link_to_url_opens_externally(self, harness: Harness) -> None:
        """URLs are handed to the external opener."""
        await harness.coordinator.file_ops.link_click("w1", "https://example.com/x", "/docs/a.md")
        assert harness.external == ["https://example.com/x"]
        assert harness.recorder.events == []

    @pytest.mark.asyncio
    async def test_link_to_sibling_document_opens_it(self, tmp_path: Path) -> None:
        """Relative markdown links open the target as a document."""
        (tmp_path / "a.md").write_text("[b](b.md)")
        (tmp_path / "b.md").write_text("# B")
        harness = Harness(storage=LocalStorage())  # type: ignore[arg-type]

        await harness.coordinator.file_ops.link_click("w1", "b.md", str(tmp_path / "a.md"))

        opened = harness.recorder.of_type(DocumentOpened)
        assert [event.content for event in opened] == ["# B"]
        assert harness.external == []


class TestRename:
    """Tests for renaming a document's file."""

    @pytest.mark.asyncio
    async def test_rename_moves_file_and_watch(self, harness: Harness) -> None:
        """Rename updates disk, registry and watches together."""
        harness.registry.open("w1", "/docs/a.md", document_id="d1")

        renamed = await harness.coordinator.file_ops.rename("w1", "d1", "/docs/a.md", "/docs/c.md")

        assert renamed
        assert harness.storage.renames == [(Path("/docs/a.md"), Path("/docs/c.md"))]
        assert harness.registry.get("w1", "d1").pathname == Path("/docs/c.md")
        assert harness.watches.watched_paths() == [Path("/docs/c.md")]
        assert [event.filename for event in harness.recorder.of_type(PathnameSet)] == ["c.md"]

    @pytest.mark.asyncio
    async def test_rename_to_same_path_is_noop(self, harness: Harness) -> None:
        """Renaming onto itself does nothing."""
        harness.registry.open("w1", "/docs/a.md", document_id="d1")
        assert not await harness.coordinator.file_ops.rename("w1", "d1", "/docs/a.md", "/docs/./a.md")
        assert harness.storage.renames == []

    @pytest.mark.asyncio
    async def test_rename_over_existing_file_declined(self, storage: FakeStorage) -> None:
        """Declining the overwrite prompt keeps both files."""
        storage.files[Path("/docs/c.md")] = b"keep"
        harness = Harness(storage=storage, prompts=FakePrompts(overwrite=False))
        harness.registry.open("w1", "/docs/a.md", document_id="d1")

        renamed = await harness.coordinator.file_ops.rename("w1", "d1", "/docs/a.md", "/docs/c.md")

        assert not renamed
        assert harness.prompts.asked("confirm_overwrite") == [Path("/docs/c.md")]
        assert harness.storage.files[Path("/docs/c.md")] == b"keep"
        assert harness.registry.get("w1", "d1").pathname == Path("/docs/a.md")
        assert harness.storage.renames == []
        assert harness.watches.ref_count("/docs/a.md") == 1
        assert not harness.watches.is_watched("/docs/c.md")

    @pytest.mark.asyncio
    async def test_rename_over_existing_file_confirmed(self, storage: FakeStorage) -> None:
        """Confirming the overwrite prompt replaces the file."""
        storage.files[Path("/docs/c.md")] = b"old"
        harness = Harness(storage=storage, prompts=FakePrompts(overwrite=True))
        harness.registry.open("w1", "/docs/a.md", document_id="d1")

        assert await harness.coordinator.file_ops.rename("w1", "d1", "/docs/a.md", "/docs/c.md")
        assert harness.storage.files[Path("/docs/c.md")] == b"# Alpha\n"

    @pytest.mark.asyncio
    async def test_rename_onto_open_document_refused(self, harness: Harness) -> None:
        """A path owned by another tab of the window cannot be taken."""
        harness.registry.open("w1", "/docs/a.md", document_id="d1")
        harness.registry.open("w1", "/docs/b.md", document_id="d2")

        renamed = await harness.coordinator.file_ops.rename("w1", "d1", "/docs/a.md", "/docs/b.md")

        assert not renamed
        assert harness.storage.renames == []
        notice = harness.recorder.of_type(NoticePosted)[0]
        assert notice.title == RENAME_ERROR_TITLE
        assert notice.details["error"] == "duplicate_document"

    @pytest.mark.asyncio
    async def test_rename_failure_keeps_registry(self, harness: Harness) -> None:
        """A failed rename on disk leaves the document where it was."""
        harness.registry.open("w1", "/docs/gone.md", document_id="d1")

        renamed = await harness.coordinator.file_ops.rename("w1", "d1", "/docs/gone.md", "/docs/c.md")

        assert not renamed
        assert harness.registry.get("w1", "d1").pathname == Path("/docs/gone.md")
        assert harness.watches.watched_paths() == [Path("/docs/gone.md")]
        assert harness.recorder.of_type(NoticePosted)[0].details["error"] == "io_failure"


class TestMoveTo:
    """Tests for moving a document's file."""

    @pytest.mark.asyncio
    async def test_move_to_chosen_destination(self, storage: FakeStorage) -> None:
        """The file moves to the destination picked in the dialog."""
        harness = Harness(storage=storage, prompts=FakePrompts(move_target="/docs/images/a.md"))
        harness.registry.open("w1", "/docs/a.md", document_id="d1")

        moved = await harness.coordinator.file_ops.move_to("w1", "d1", "/docs/a.md")

        assert moved
        assert harness.prompts.asked("choose_move_target") == [Path("/docs/a.md")]
        assert harness.prompts.asked("confirm_overwrite") == []
        assert harness.watches.watched_paths() == [Path("/docs/images/a.md")]

    @pytest.mark.asyncio
    async def test_move_cancelled(self, harness: Harness) -> None:
        """Cancelling the destination dialog changes nothing."""
        harness.registry.open("w1", "/docs/a.md", document_id="d1")

        assert not await harness.coordinator.file_ops.move_to("w1", "d1", "/docs/a.md")
        assert harness.storage.renames == []

    @pytest.mark.asyncio
    async def test_move_unknown_document_posts_notice(self, harness: Harness) -> None:
        """Moving a document that is not open is reported."""
        assert not await harness.coordinator.file_ops.move_to("w1", "nope", "/docs/a.md")
        assert harness.recorder.of_type(NoticePosted)[0].title == MOVE_ERROR_TITLE
