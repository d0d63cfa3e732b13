"""Save and close use cases.

This module provides the save coordinator, which drives every flow that
writes documents to disk or closes them:
- save / save_as: write one document, prompting for a target when needed
- save_all: best-effort concurrent batch of independent saves
- save_and_close / close_window_confirm: negotiate unsaved changes once
  per batch, then save, discard, or abort
- close_documents / close_window: close without prompting
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Sequence

from ...core.errors import DuplicateDocument, DocumentNotFound, IOFailure, UserCancelled
from ...core.paths import normalize_path, recommend_title
from ...utils.file_io import encode_markdown
from ..events import (
    DocumentClosed,
    PathnameSet,
    SaveAllCompleted,
    SaveResponse,
    WindowClosed,
)
from .notices import display_name, post_failure
from .prompts import UnsavedChoice

if TYPE_CHECKING:  # pragma: no cover - imports for type checking only
    from ...services.storage import StorageAdapter
    from ..domain.preferences_store import PreferencesStore
    from ..domain.session_registry import Document, SessionRegistry
    from ..events import EventBus
    from ..messages import SaveRequest
    from .prompts import UserPrompts

LOGGER = logging.getLogger(__name__)

SAVE_ERROR_TITLE = "Save File Error"


@dataclass(slots=True, frozen=True)
class BatchResult:
    """Outcome of a batch of saves.

    Attributes:
        error: Set only when the batching mechanism itself failed.
        data: Ids of the documents that were saved, in request order.
    """

    error: str | None
    data: list[str] | None


class SaveCoordinator:
    """Orchestrates single saves, batches and close negotiations.

    Per operation the flow is ``Idle -> Prompting -> Saving`` and ends in
    committed, failed or cancelled. A failed save never clears the dirty
    flag and is reported to the originating window only.

    Events Emitted:
        - PathnameSet: After a document was written to its target
        - NoticePosted: When a save fails
        - SaveAllCompleted: After a save-all batch settles
        - SaveResponse: After a close negotiation settles
        - DocumentClosed: For every document closed
        - WindowClosed: When a window closed with all of its documents
    """

    __slots__ = ("_registry", "_storage", "_prompts", "_preferences", "_event_bus")

    def __init__(
        self,
        registry: SessionRegistry,
        storage: StorageAdapter,
        prompts: UserPrompts,
        preferences: PreferencesStore,
        event_bus: EventBus,
    ) -> None:
        """Initialize the coordinator.

        Args:
            registry: Table of open documents.
            storage: Adapter used for every write.
            prompts: Provider for save-target and unsaved-changes prompts.
            preferences: Store holding settings and recent files.
            event_bus: Event bus for publishing responses.
        """
        self._registry = registry
        self._storage = storage
        self._prompts = prompts
        self._preferences = preferences
        self._event_bus = event_bus

    # ------------------------------------------------------------------
    # Single saves
    # ------------------------------------------------------------------

    async def save(self, request: SaveRequest) -> str | None:
        """Save one document, asking for a target if it has none.

        Returns:
            The document id when written, None if cancelled or failed.
        """
        try:
            return await self._save(request, ask=False)
        except Exception as exc:
            post_failure(self._event_bus, request.window_id, SAVE_ERROR_TITLE, exc)
            return None

    async def save_as(self, request: SaveRequest) -> str | None:
        """Always ask for a target, then write and move the watch over."""
        try:
            return await self._save(request, ask=True)
        except Exception as exc:
            post_failure(self._event_bus, request.window_id, SAVE_ERROR_TITLE, exc)
            return None

    # ------------------------------------------------------------------
    # Batches
    # ------------------------------------------------------------------

    async def save_all(self, window_id: str, files: Sequence[SaveRequest]) -> BatchResult:
        """Save every request independently and report which succeeded."""
        result = await self._save_batch(window_id, files)
        self._event_bus.publish(SaveAllCompleted(window_id=window_id, error=result.error, data=result.data))
        return result

    async def save_and_close(
        self,
        window_id: str,
        files: Sequence[SaveRequest],
        *,
        single: bool = False,
    ) -> BatchResult | None:
        """Ask once what to do with unsaved documents, then close them.

        Cancel leaves everything as it was. Discard closes every document.
        Save closes the documents whose save succeeded; a document whose
        save failed or was cancelled stays open and dirty.

        Returns:
            The ids that were closed, or None if the user cancelled.
        """
        choice = await self._prompts.confirm_unsaved(window_id, self._filenames(window_id, files))
        if choice is UnsavedChoice.CANCEL:
            LOGGER.debug("SaveCoordinator.save_and_close: cancelled in window %s", window_id)
            return None

        if choice is UnsavedChoice.DISCARD:
            result = BatchResult(error=None, data=[request.document_id for request in files])
        else:
            result = await self._save_batch(window_id, files)

        self._event_bus.publish(
            SaveResponse(window_id=window_id, single=single, error=result.error, data=result.data)
        )
        if result.data:
            self.close_documents(window_id, result.data)
        return result

    async def close_window_confirm(self, window_id: str, files: Sequence[SaveRequest]) -> bool:
        """Negotiate closing a whole window that has unsaved documents.

        The window closes only once every document in it could be closed.

        Returns:
            True if the window was closed.
        """
        if not files:
            self.close_window(window_id)
            return True

        result = await self.save_and_close(window_id, files, single=False)
        if result is None or result.error is not None:
            return False
        if self._registry.has_dirty(window_id) or len(result.data or ()) < len(files):
            LOGGER.info(
                "SaveCoordinator.close_window_confirm: window %s kept open, %d of %d saved",
                window_id,
                len(result.data or ()),
                len(files),
            )
            return False
        self.close_window(window_id)
        return True

    # ------------------------------------------------------------------
    # Closing
    # ------------------------------------------------------------------

    def close_documents(self, window_id: str, document_ids: Sequence[str]) -> list[str]:
        """Close documents without prompting; unknown ids are skipped."""
        closed: list[str] = []
        for document_id in document_ids:
            try:
                self._registry.close(window_id, document_id)
            except DocumentNotFound:
                LOGGER.debug("SaveCoordinator.close_documents: %s not open", document_id)
                continue
            closed.append(document_id)
            self._event_bus.publish(DocumentClosed(window_id=window_id, document_id=document_id))
        return closed

    def close_window(self, window_id: str) -> None:
        closed = self._registry.close_window(window_id)
        LOGGER.debug("SaveCoordinator.close_window: %s (%d documents)", window_id, len(closed))
        self._event_bus.publish(WindowClosed(window_id=window_id))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _save_batch(self, window_id: str, files: Sequence[SaveRequest]) -> BatchResult:
        try:
            outcomes = await asyncio.gather(
                *(self._save(request, ask=False) for request in files),
                return_exceptions=True,
            )
        except Exception as exc:
            LOGGER.exception("SaveCoordinator: save batch for window %s failed", window_id)
            return BatchResult(error=str(exc) or type(exc).__name__, data=None)

        succeeded: list[str] = []
        for request, outcome in zip(files, outcomes):
            if isinstance(outcome, BaseException):
                post_failure(self._event_bus, request.window_id, SAVE_ERROR_TITLE, outcome)
            elif outcome is not None:
                succeeded.append(outcome)
        LOGGER.debug(
            "SaveCoordinator: batch in window %s saved %d of %d",
            window_id,
            len(succeeded),
            len(files),
        )
        return BatchResult(error=None, data=succeeded)

    async def _save(self, request: SaveRequest, *, ask: bool) -> str:
        document = self._ensure_document(request)
        current = document.pathname or (normalize_path(request.pathname) if request.pathname else None)

        if ask or current is None:
            default = current if (ask and current is not None) else self._default_target(request.content)
            chosen = await self._prompts.choose_save_target(request.window_id, default)
            if chosen is None:
                raise UserCancelled()
            target = normalize_path(chosen)
        else:
            target = current

        clash = self._registry.find_by_pathname(request.window_id, target)
        if clash is not None and clash.id != document.id:
            raise DuplicateDocument(
                f"{target.name} is already open in another tab",
                details={"document_id": clash.id, "pathname": str(target)},
            )

        options = request.options or self._preferences.settings.default_save_options()
        try:
            data = encode_markdown(request.content, options)
        except ValueError as exc:
            raise IOFailure(f"Unable to encode {target.name}: {exc}", path=str(target)) from exc

        with self._registry.watches.own_write(target):
            await self._storage.write(target, data)

        # The tab may have been closed while the write was in flight.
        if self._registry.find(request.window_id, document.id) is None:
            LOGGER.debug("SaveCoordinator: %s closed during save to %s", document.id, target)
            return document.id
        first_save = document.pathname is None
        self._registry.set_pathname(request.window_id, document.id, target)
        self._registry.mark_dirty(request.window_id, document.id, False)
        if first_save or ask:
            self._preferences.remember_recent_file(target)

        LOGGER.debug("SaveCoordinator: saved %s to %s", document.id, target)
        self._event_bus.publish(
            PathnameSet(
                window_id=request.window_id,
                document_id=document.id,
                pathname=str(target),
                filename=target.name,
            )
        )
        return document.id

    def _ensure_document(self, request: SaveRequest) -> Document:
        document = self._registry.find(request.window_id, request.document_id)
        if document is not None:
            return document
        document = self._registry.open(
            request.window_id,
            request.pathname,
            document_id=request.document_id,
            dirty=True,
        )
        if document.id != request.document_id:
            # open() returned the tab that already holds this pathname
            raise DuplicateDocument(
                f"{document.filename} is already open in another tab",
                details={"document_id": document.id, "pathname": str(document.pathname)},
            )
        return document

    def _default_target(self, content: str) -> Path:
        title = recommend_title(content) or "Untitled"
        return self._preferences.settings.resolved_documents_dir() / f"{title}.md"

    def _filenames(self, window_id: str, files: Sequence[SaveRequest]) -> list[str]:
        names: list[str] = []
        for request in files:
            document = self._registry.find(window_id, request.document_id)
            pathname = document.pathname if document is not None else request.pathname
            names.append(display_name(pathname))
        return names


__all__ = ["BatchResult", "SaveCoordinator", "SAVE_ERROR_TITLE"]
