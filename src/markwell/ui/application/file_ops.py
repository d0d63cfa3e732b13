"""File operation use cases.

This module provides the use cases that open documents and change a
document's location on disk:
- open_file_or_folder / open_file / open_folder / open_project
- drop: open the first markdown file or import the first foreign file
- link_click: follow a link to a URL or another markdown document
- rename / move_to: move the file and keep the session and watches in sync
"""

from __future__ import annotations

import logging
import webbrowser
from pathlib import Path
from typing import TYPE_CHECKING, Awaitable, Callable, Iterable

from ...core.errors import DocumentNotFound, DuplicateDocument, IOFailure, MarkwellError
from ...core.paths import (
    IMPORT_EXTENSIONS,
    LinkKind,
    has_extension,
    is_markdown_file_or_link,
    normalize_and_resolve_path,
    normalize_path,
    resolve_link_target,
)
from ...utils.file_io import decode_markdown
from ..events import DirectoryOpened, DocumentOpened, PathnameSet
from .notices import post_failure

if TYPE_CHECKING:  # pragma: no cover - imports for type checking only
    from ...services.storage import StorageAdapter
    from ..domain.preferences_store import PreferencesStore
    from ..domain.session_registry import Document, SessionRegistry
    from ..events import EventBus
    from .prompts import UserPrompts

LOGGER = logging.getLogger(__name__)

OPEN_ERROR_TITLE = "Open File Error"
RENAME_ERROR_TITLE = "Rename File Error"
MOVE_ERROR_TITLE = "Move File Error"

Importer = Callable[[str, Path], Awaitable[object]]


class FileOperations:
    """Use cases that open documents and relocate their files.

    Events Emitted:
        - DocumentOpened: After a file was read (or an open tab refocused)
        - DirectoryOpened: When a folder should be shown as a project
        - PathnameSet: After rename or move
        - NoticePosted: When a path cannot be opened or moved
    """

    __slots__ = (
        "_registry",
        "_storage",
        "_prompts",
        "_preferences",
        "_event_bus",
        "_importer",
        "_open_external",
    )

    def __init__(
        self,
        registry: SessionRegistry,
        storage: StorageAdapter,
        prompts: UserPrompts,
        preferences: PreferencesStore,
        event_bus: EventBus,
        *,
        importer: Importer | None = None,
        open_external: Callable[[str], object] | None = None,
    ) -> None:
        """Initialize the use cases.

        Args:
            registry: Table of open documents.
            storage: Adapter used for reads, renames and stat probes.
            prompts: Provider for open, move and overwrite prompts.
            preferences: Store holding settings and recent files.
            event_bus: Event bus for publishing responses.
            importer: Coroutine importing a foreign file into a window.
            open_external: Opens a URL outside the editor (defaults to
                ``webbrowser.open``).
        """
        self._registry = registry
        self._storage = storage
        self._prompts = prompts
        self._preferences = preferences
        self._event_bus = event_bus
        self._importer = importer
        self._open_external = open_external or webbrowser.open

    # ------------------------------------------------------------------
    # Opening
    # ------------------------------------------------------------------

    async def open_file_or_folder(
        self,
        window_id: str,
        pathname: Path | str,
        *,
        document_id: str | None = None,
    ) -> Document | None:
        """Open a file as a document or a directory as a project.

        Returns:
            The opened document, or None for directories and failures.
        """
        resolved = normalize_and_resolve_path(pathname)
        if self._storage.is_file(resolved):
            return await self._open_document(window_id, resolved, document_id=document_id)
        if self._storage.is_directory(resolved):
            self._event_bus.publish(DirectoryOpened(window_id=window_id, pathname=str(resolved)))
            return None

        LOGGER.error("Cannot open unknown file: %s", resolved)
        post_failure(
            self._event_bus,
            window_id,
            OPEN_ERROR_TITLE,
            IOFailure(f"Cannot open unknown file: {resolved}", path=str(resolved)),
        )
        return None

    async def open_file(self, window_id: str) -> Document | None:
        chosen = await self._prompts.choose_open_file(window_id, self._start_dir())
        if chosen is None:
            return None
        return await self.open_file_or_folder(window_id, chosen)

    async def open_folder(self, window_id: str) -> None:
        chosen = await self._prompts.choose_directory(window_id, self._start_dir())
        if chosen is None:
            return
        await self.open_file_or_folder(window_id, chosen)

    async def open_project(self, window_id: str) -> None:
        """Ask for a folder and show it in the window's sidebar."""
        chosen = await self._prompts.choose_directory(window_id, self._start_dir())
        if chosen is None:
            return
        self._event_bus.publish(DirectoryOpened(window_id=window_id, pathname=str(normalize_path(chosen))))

    def new_tab(self, window_id: str, document_id: str | None = None) -> Document:
        """Register an untitled document created by the front-end."""
        document = self._registry.open(window_id, None, document_id=document_id)
        self._event_bus.publish(
            DocumentOpened(window_id=window_id, document_id=document.id, dirty=document.dirty)
        )
        return document

    def set_dirty(self, window_id: str, document_id: str, dirty: bool) -> None:
        try:
            self._registry.mark_dirty(window_id, document_id, dirty)
        except DocumentNotFound:
            LOGGER.debug("FileOperations.set_dirty: %s not open in %s", document_id, window_id)

    async def drop(self, window_id: str, paths: Iterable[str]) -> None:
        """Handle files dropped on a window.

        The first markdown file (or link to one) is opened, or the first
        importable file is imported; anything after it is ignored.
        """
        for pathname in paths:
            if is_markdown_file_or_link(pathname):
                await self.open_file_or_folder(window_id, pathname)
                break
            if has_extension(pathname, IMPORT_EXTENSIONS):
                if self._importer is None:
                    LOGGER.warning("FileOperations.drop: no importer configured for %s", pathname)
                else:
                    await self._importer(window_id, Path(pathname))
                break

    async def link_click(self, window_id: str, href: str, pathname: str | None) -> None:
        """Follow a link clicked inside the document at ``pathname``."""
        target = resolve_link_target(pathname, href)
        if target is None:
            LOGGER.debug("FileOperations.link_click: ignoring %s", href)
            return
        if target.kind is LinkKind.EXTERNAL:
            LOGGER.debug("FileOperations.link_click: opening %s externally", target.target)
            self._open_external(target.target)
            return
        await self.open_file_or_folder(window_id, target.target)

    # ------------------------------------------------------------------
    # Relocating
    # ------------------------------------------------------------------

    async def rename(
        self,
        window_id: str,
        document_id: str,
        pathname: Path | str,
        new_pathname: Path | str,
    ) -> bool:
        """Rename a document's file, confirming before replacing a file.

        Returns:
            True if the file was renamed.
        """
        source = normalize_path(pathname)
        target = normalize_path(new_pathname)
        try:
            document = self._registry.get(window_id, document_id)
            if source == target:
                return False
            self._check_not_open(window_id, document, target)
            if self._storage.is_file(target):
                if not await self._prompts.confirm_overwrite(window_id, target):
                    LOGGER.debug("FileOperations.rename: overwrite of %s declined", target)
                    return False
            await self._relocate(window_id, document, source, target)
        except MarkwellError as exc:
            post_failure(self._event_bus, window_id, RENAME_ERROR_TITLE, exc)
            return False
        return True

    async def move_to(self, window_id: str, document_id: str, pathname: Path | str) -> bool:
        """Move a document's file to a user-chosen destination.

        The destination prompt is trusted to prevent silent overwrites, so
        no second confirmation is asked here.

        Returns:
            True if the file was moved.
        """
        source = normalize_path(pathname)
        try:
            document = self._registry.get(window_id, document_id)
            chosen = await self._prompts.choose_move_target(window_id, source)
            if chosen is None:
                return False
            target = normalize_path(chosen)
            if target == source:
                return False
            self._check_not_open(window_id, document, target)
            await self._relocate(window_id, document, source, target)
        except MarkwellError as exc:
            post_failure(self._event_bus, window_id, MOVE_ERROR_TITLE, exc)
            return False
        return True

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _open_document(
        self,
        window_id: str,
        path: Path,
        *,
        document_id: str | None = None,
    ) -> Document | None:
        existing = self._registry.find_by_pathname(window_id, path)
        if existing is not None:
            LOGGER.debug("FileOperations: focusing %s for %s", existing.id, path)
            self._event_bus.publish(
                DocumentOpened(
                    window_id=window_id,
                    document_id=existing.id,
                    pathname=str(path),
                    filename=path.name,
                    dirty=existing.dirty,
                )
            )
            return existing

        try:
            raw = await self._storage.read(path)
        except MarkwellError as exc:
            post_failure(self._event_bus, window_id, OPEN_ERROR_TITLE, exc)
            return None

        decoded = decode_markdown(raw)
        document = self._registry.open(window_id, path, document_id=document_id, dirty=False)
        self._preferences.remember_recent_file(path)
        self._event_bus.publish(
            DocumentOpened(
                window_id=window_id,
                document_id=document.id,
                pathname=str(path),
                filename=path.name,
                content=decoded.text,
                dirty=document.dirty,
                encoding=decoded.encoding,
                line_ending=decoded.line_ending,
                is_bom=decoded.is_bom,
            )
        )
        return document

    async def _relocate(self, window_id: str, document: Document, source: Path, target: Path) -> None:
        with self._registry.watches.own_write(source, target):
            await self._storage.rename(source, target)
        self._registry.set_pathname(window_id, document.id, target)
        LOGGER.debug("FileOperations: %s moved %s -> %s", document.id, source, target)
        self._event_bus.publish(
            PathnameSet(
                window_id=window_id,
                document_id=document.id,
                pathname=str(target),
                filename=target.name,
            )
        )

    def _check_not_open(self, window_id: str, document: Document, target: Path) -> None:
        clash = self._registry.find_by_pathname(window_id, target)
        if clash is not None and clash.id != document.id:
            raise DuplicateDocument(
                f"{target.name} is open in another tab",
                details={"document_id": clash.id, "pathname": str(target)},
            )

    def _start_dir(self) -> Path | None:
        recent = self._preferences.settings.recent_files
        if recent:
            return Path(recent[0]).parent
        return self._preferences.settings.resolved_documents_dir()


__all__ = ["FileOperations", "Importer", "OPEN_ERROR_TITLE", "RENAME_ERROR_TITLE", "MOVE_ERROR_TITLE"]
