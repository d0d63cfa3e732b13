"""Session registry domain service.

Per-window table of open documents; the single source of truth for which
files are open and whether any of them are dirty.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Iterator

from ...core.errors import DocumentNotFound, DuplicateDocument
from ...core.paths import normalize_path

if TYPE_CHECKING:  # pragma: no cover
    from .watch_registry import WatchRegistry

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class Document:
    """One open editable unit, with or without a file on disk."""

    id: str
    window_id: str
    pathname: Path | None = None
    dirty: bool = False

    @property
    def filename(self) -> str | None:
        return self.pathname.name if self.pathname is not None else None


@dataclass(slots=True)
class WindowSession:
    """A top-level window and the documents it owns, in open order."""

    id: str
    documents: dict[str, Document] = field(default_factory=dict)


class SessionRegistry:
    """Domain manager for document records across every window.

    Each document that has a pathname holds one reference in the
    :class:`WatchRegistry`, so the underlying watch lives exactly as long as
    some document (in any window) still points at the path.

    Only the application layer mutates the registry, and only from the
    event-loop thread.
    """

    def __init__(self, watch_registry: WatchRegistry) -> None:
        """Initialize the registry.

        Args:
            watch_registry: Process-wide watch table shared by all windows.
        """
        self._watches = watch_registry
        self._windows: dict[str, WindowSession] = {}

    @property
    def watches(self) -> WatchRegistry:
        return self._watches

    # ------------------------------------------------------------------
    # Windows
    # ------------------------------------------------------------------

    def create_window(self, window_id: str) -> WindowSession:
        """Return the session for ``window_id``, creating it when new."""
        session = self._windows.get(window_id)
        if session is None:
            session = WindowSession(id=window_id)
            self._windows[window_id] = session
            LOGGER.debug("SessionRegistry.create_window: %s", window_id)
        return session

    def close_window(self, window_id: str) -> list[Document]:
        """Destroy a window and every document it owns.

        Returns:
            The documents that were closed, in open order.
        """
        session = self._windows.get(window_id)
        if session is None:
            return []
        closed = [self.close(window_id, doc_id) for doc_id in list(session.documents)]
        self._windows.pop(window_id, None)
        LOGGER.debug("SessionRegistry.close_window: %s (%d documents)", window_id, len(closed))
        return closed

    def window_ids(self) -> list[str]:
        return list(self._windows)

    # ------------------------------------------------------------------
    # Document lifecycle
    # ------------------------------------------------------------------

    def open(
        self,
        window_id: str,
        pathname: Path | str | None = None,
        *,
        document_id: str | None = None,
        dirty: bool | None = None,
    ) -> Document:
        """Open a document in ``window_id``.

        Opening a pathname that the window already has open returns the
        existing record unchanged.

        Args:
            window_id: Owning window; created on first use.
            pathname: File on disk, or None for an untitled document.
            document_id: Id chosen by the front-end; generated when omitted.
            dirty: Initial dirty flag. Defaults to True only for untitled
                documents, since pathed ones were just loaded from disk.

        Raises:
            DuplicateDocument: ``document_id`` is already used in the window.
        """
        session = self.create_window(window_id)
        normalized = normalize_path(pathname) if pathname is not None else None

        if normalized is not None:
            existing = self.find_by_pathname(window_id, normalized)
            if existing is not None:
                LOGGER.debug("SessionRegistry.open: reusing %s for %s", existing.id, normalized)
                return existing

        doc_id = document_id or uuid.uuid4().hex
        if doc_id in session.documents:
            raise DuplicateDocument(
                f"Document id {doc_id!r} is already open in window {window_id!r}",
                details={"document_id": doc_id, "window_id": window_id},
            )

        if normalized is not None:
            self._watches.acquire(normalized)
        document = Document(
            id=doc_id,
            window_id=window_id,
            pathname=normalized,
            dirty=(normalized is None) if dirty is None else dirty,
        )
        session.documents[doc_id] = document
        LOGGER.debug(
            "SessionRegistry.open: window=%s, id=%s, path=%s, dirty=%s",
            window_id,
            doc_id,
            normalized,
            document.dirty,
        )
        return document

    def close(self, window_id: str, document_id: str) -> Document:
        """Remove a document and drop its watch reference.

        Raises:
            DocumentNotFound: No such document in the window.
        """
        document = self.get(window_id, document_id)
        del self._windows[window_id].documents[document_id]
        if document.pathname is not None:
            self._watches.release(document.pathname)
        LOGGER.debug("SessionRegistry.close: window=%s, id=%s", window_id, document_id)
        return document

    def set_pathname(self, window_id: str, document_id: str, pathname: Path | str) -> Document:
        """Point a document at a new file after save-as, rename or move.

        Raises:
            DocumentNotFound: No such document in the window.
            DuplicateDocument: Another document of the window owns the path.
        """
        document = self.get(window_id, document_id)
        target = normalize_path(pathname)
        if document.pathname == target:
            return document

        clash = self.find_by_pathname(window_id, target)
        if clash is not None and clash.id != document_id:
            raise DuplicateDocument(
                f"{target} is already open in this window",
                details={"document_id": clash.id, "pathname": str(target)},
            )

        self._watches.rename(document.pathname, target)
        previous = document.pathname
        document.pathname = target
        LOGGER.debug(
            "SessionRegistry.set_pathname: id=%s, %s -> %s",
            document_id,
            previous,
            target,
        )
        return document

    def mark_dirty(self, window_id: str, document_id: str, dirty: bool = True) -> Document:
        document = self.get(window_id, document_id)
        document.dirty = dirty
        return document

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, window_id: str, document_id: str) -> Document:
        """Return the document record.

        Raises:
            DocumentNotFound: No such document in the window.
        """
        session = self._windows.get(window_id)
        document = session.documents.get(document_id) if session is not None else None
        if document is None:
            raise DocumentNotFound(
                f"Document {document_id!r} is not open in window {window_id!r}",
                details={"document_id": document_id, "window_id": window_id},
            )
        return document

    def find(self, window_id: str, document_id: str) -> Document | None:
        session = self._windows.get(window_id)
        return session.documents.get(document_id) if session is not None else None

    def find_by_pathname(self, window_id: str, pathname: Path | str) -> Document | None:
        session = self._windows.get(window_id)
        if session is None:
            return None
        target = normalize_path(pathname)
        for document in session.documents.values():
            if document.pathname == target:
                return document
        return None

    def documents(self, window_id: str) -> list[Document]:
        session = self._windows.get(window_id)
        return list(session.documents.values()) if session is not None else []

    def documents_for_path(self, pathname: Path | str) -> Iterator[Document]:
        """Yield every open document, in any window, backed by ``pathname``."""
        target = normalize_path(pathname)
        for session in self._windows.values():
            for document in session.documents.values():
                if document.pathname == target:
                    yield document

    def windows_watching(self, pathname: Path | str) -> list[str]:
        return sorted({document.window_id for document in self.documents_for_path(pathname)})

    def has_dirty(self, window_id: str) -> bool:
        return any(document.dirty for document in self.documents(window_id))


__all__ = ["Document", "WindowSession", "SessionRegistry"]
