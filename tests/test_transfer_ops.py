"""Tests for the import and export use cases."""

from __future__ import annotations

from pathlib import Path

import pytest

from markwell.ui.application.transfer_ops import EXPORT_ERROR_TITLE
from markwell.ui.events import (
    BackgroundError,
    ConverterMissing,
    DocumentOpened,
    ExportSucceeded,
    NoticePosted,
    PrintServiceCleared,
)

from tests.helpers import FakeConverter, FakePrompts, FakeStorage, Harness


class FakeRenderer:
    """Page renderer returning fixed PDF bytes."""

    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.calls: list[str] = []

    async def print_to_pdf(self, window_id: str) -> bytes:
        self.calls.append(window_id)
        if self.fail:
            raise RuntimeError("renderer crashed")
        return b"%PDF-1.7"


class TestImport:
    """Tests for importing foreign documents."""

    @pytest.mark.asyncio
    async def test_missing_converter_warns_once(self, storage: FakeStorage) -> None:
        """Without pandoc a single warning is published and nothing else."""
        harness = Harness(storage=storage, converter=FakeConverter(available=False))

        result = await harness.coordinator.transfer_ops.import_file("w1", "/docs/report.docx")

        assert result is None
        assert harness.recorder.names() == ["converter-missing"]
        assert harness.recorder.of_type(ConverterMissing)[0].window_id == "w1"
        assert harness.converter.imports == []

    @pytest.mark.asyncio
    async def test_import_opens_untitled_dirty_document(self, harness: Harness) -> None:
        """Imported text opens as a new unsaved document."""
        document = await harness.coordinator.transfer_ops.import_file("w1", "/docs/report.docx")

        assert document is not None
        assert document.pathname is None
        assert document.dirty
        opened = harness.recorder.of_type(DocumentOpened)
        assert [(event.content, event.dirty) for event in opened] == [("# Imported\n", True)]
        assert harness.watches.watched_paths() == []

    @pytest.mark.asyncio
    async def test_import_prompts_when_no_path(self, storage: FakeStorage) -> None:
        """Without a path the user is asked for a file."""
        harness = Harness(storage=storage, prompts=FakePrompts(import_file="/docs/page.html"))

        await harness.coordinator.transfer_ops.import_file("w1")

        assert harness.prompts.asked("choose_import_file") == [Path("/docs")]
        assert harness.converter.imports == [Path("/docs/page.html")]

    @pytest.mark.asyncio
    async def test_import_prompt_cancelled(self, harness: Harness) -> None:
        """Cancelling the import dialog does nothing."""
        assert await harness.coordinator.transfer_ops.import_file("w1") is None
        assert harness.recorder.events == []

    @pytest.mark.asyncio
    async def test_conversion_failure_is_background_error(self, storage: FakeStorage) -> None:
        """A converter crash is reported without opening anything."""
        harness = Harness(storage=storage, converter=FakeConverter(fail=True))

        result = await harness.coordinator.transfer_ops.import_file("w1", "/docs/report.docx")

        assert result is None
        errors = harness.recorder.of_type(BackgroundError)
        assert len(errors) == 1
        assert errors[0].message == "Unable to import report.docx"
        assert errors[0].error == "pandoc: unknown reader"
        assert harness.registry.documents("w1") == []


class TestExport:
    """Tests for exporting documents."""

    @pytest.mark.asyncio
    async def test_html_export_writes_rendered_content(self, storage: FakeStorage) -> None:
        """Pre-rendered HTML is written to the chosen file."""
        harness = Harness(storage=storage, prompts=FakePrompts(export_target="/docs/out.html"))

        target = await harness.coordinator.transfer_ops.export_file(
            "w1", "styledHtml", content="<h1>Alpha</h1>", pathname="/docs/a.md", markdown="# Alpha"
        )

        assert target == Path("/docs/out.html")
        assert harness.storage.files[Path("/docs/out.html")] == b"<h1>Alpha</h1>"
        assert harness.prompts.asked("choose_export_target") == [(Path("/docs/Alpha.html"), "styledHtml")]
        succeeded = harness.recorder.of_type(ExportSucceeded)
        assert [(event.type, event.pathname) for event in succeeded] == [("styledHtml", "/docs/out.html")]

    @pytest.mark.asyncio
    async def test_default_name_falls_back_to_file_stem(self, harness: Harness) -> None:
        """Without a heading the source file's stem names the export."""
        await harness.coordinator.transfer_ops.export_file("w1", "html", content="x", pathname="/docs/notes.md")
        assert harness.prompts.asked("choose_export_target") == [(Path("/docs/notes.html"), "html")]

    @pytest.mark.asyncio
    async def test_pdf_export_scopes_print_service(self, storage: FakeStorage) -> None:
        """The renderer output is written and the print layout is always cleared."""
        renderer = FakeRenderer()
        harness = Harness(
            storage=storage,
            prompts=FakePrompts(export_target="/docs/a.pdf"),
            renderer=renderer,
        )

        target = await harness.coordinator.transfer_ops.export_file("w1", "pdf", pathname="/docs/a.md")

        assert target == Path("/docs/a.pdf")
        assert renderer.calls == ["w1"]
        assert harness.storage.files[Path("/docs/a.pdf")] == b"%PDF-1.7"
        assert harness.recorder.names() == ["print-service-cleared", "export-succeeded"]

    @pytest.mark.asyncio
    async def test_pdf_write_failure_still_clears_print_service(self, storage: FakeStorage) -> None:
        """A failed PDF write posts a notice after clearing the print layout."""
        storage.fail_writes.add(Path("/docs/a.pdf"))
        harness = Harness(
            storage=storage,
            prompts=FakePrompts(export_target="/docs/a.pdf"),
            renderer=FakeRenderer(),
        )

        assert await harness.coordinator.transfer_ops.export_file("w1", "pdf") is None
        assert harness.recorder.names() == ["print-service-cleared", "notice-posted"]
        assert harness.recorder.of_type(NoticePosted)[0].title == EXPORT_ERROR_TITLE

    @pytest.mark.asyncio
    async def test_renderer_crash_posts_export_notice(self, storage: FakeStorage) -> None:
        """A renderer error becomes an export notice instead of escaping."""
        renderer = FakeRenderer(fail=True)
        harness = Harness(
            storage=storage,
            prompts=FakePrompts(export_target="/docs/a.pdf"),
            renderer=renderer,
        )

        assert await harness.coordinator.transfer_ops.export_file("w1", "pdf") is None

        assert renderer.calls == ["w1"]
        assert Path("/docs/a.pdf") not in harness.storage.files
        assert harness.recorder.names() == ["print-service-cleared", "notice-posted"]
        notice = harness.recorder.of_type(NoticePosted)[0]
        assert notice.title == EXPORT_ERROR_TITLE
        assert notice.window_id == "w1"
        assert "renderer crashed" in notice.message

    @pytest.mark.asyncio
    async def test_pdf_export_cancelled_clears_print_service(self, harness: Harness) -> None:
        """Cancelling a PDF export restores the window."""
        assert await harness.coordinator.transfer_ops.export_file("w1", "pdf") is None
        assert len(harness.recorder.of_type(PrintServiceCleared)) == 1

    @pytest.mark.asyncio
    async def test_converter_export(self, storage: FakeStorage) -> None:
        """Converter formats hand the markdown to pandoc."""
        harness = Harness(storage=storage, prompts=FakePrompts(export_target="/docs/a.docx"))

        await harness.coordinator.transfer_ops.export_file("w1", "docx", markdown="# Alpha")

        assert harness.converter.exports == [(Path("/docs/a.docx"), "# Alpha", "docx")]
        assert len(harness.recorder.of_type(ExportSucceeded)) == 1

    @pytest.mark.asyncio
    async def test_converter_export_without_pandoc(self, storage: FakeStorage) -> None:
        """Exporting through a missing converter is a warning notice."""
        harness = Harness(
            storage=storage,
            converter=FakeConverter(available=False),
            prompts=FakePrompts(export_target="/docs/a.docx"),
        )

        assert await harness.coordinator.transfer_ops.export_file("w1", "docx", markdown="# A") is None
        notice = harness.recorder.of_type(NoticePosted)[0]
        assert notice.level == "warning"
        assert notice.details["error"] == "converter_unavailable"

    @pytest.mark.asyncio
    async def test_unknown_export_type(self, harness: Harness) -> None:
        """Unknown types are rejected before prompting."""
        assert await harness.coordinator.transfer_ops.export_file("w1", "bmp") is None
        assert harness.prompts.calls == []
        assert harness.recorder.of_type(NoticePosted)[0].details["error"] == "invalid_request"
