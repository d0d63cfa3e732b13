"""Application coordinator facade.

This module provides the AppCoordinator - a facade that owns the use case
instances and turns each typed request from the presentation layer into
the matching use case call.

The coordinator:
- Owns all use case instances
- Dispatches typed requests to use cases
- Routes on-disk changes of watched files to the windows that show them
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from ...core.errors import MarkwellError
from .. import messages
from ..events import FileChangedOnDisk
from .edit_ops import EditOperations
from .file_ops import FileOperations
from .notices import post_failure
from .save_ops import SaveCoordinator
from .transfer_ops import TransferOperations

if TYPE_CHECKING:  # pragma: no cover - imports for type checking only
    from ...services.converter import ConverterGateway
    from ...services.storage import StorageAdapter
    from ...services.watcher import FileChange
    from ..domain.preferences_store import PreferencesStore
    from ..domain.session_registry import SessionRegistry
    from ..domain.watch_registry import WatchRegistry
    from ..events import EventBus
    from .prompts import UserPrompts
    from .transfer_ops import PageRenderer

LOGGER = logging.getLogger(__name__)

REQUEST_ERROR_TITLE = "Request Failed"


class AppCoordinator:
    """Facade coordinating all lifecycle use cases.

    Provides a single entry point, :meth:`handle`, for every request the
    front-end sends. Single-operation failures are turned into notices
    addressed to the originating window and never escape.

    Example:
        coordinator = AppCoordinator(
            event_bus=event_bus,
            registry=registry,
            watches=watches,
            preferences=preferences,
            storage=LocalStorage(),
            converter=PandocConverter(),
            prompts=prompts,
        )
        await coordinator.handle(messages.parse_request(payload))
    """

    __slots__ = (
        "_event_bus",
        "_registry",
        "_watches",
        "_preferences",
        "_save_ops",
        "_file_ops",
        "_transfer_ops",
        "_edit_ops",
        "_handlers",
    )

    def __init__(
        self,
        event_bus: EventBus,
        registry: SessionRegistry,
        watches: WatchRegistry,
        preferences: PreferencesStore,
        storage: StorageAdapter,
        converter: ConverterGateway,
        prompts: UserPrompts,
        *,
        renderer: PageRenderer | None = None,
        open_external: Callable[[str], object] | None = None,
    ) -> None:
        """Initialize the coordinator.

        Args:
            event_bus: Event bus for publishing responses.
            registry: Table of open documents.
            watches: Process-wide watch table backing ``registry``.
            preferences: Store holding settings and recent files.
            storage: Adapter used for every disk access.
            converter: Gateway to the external document converter.
            prompts: Provider for every user decision.
            renderer: Page renderer for PDF export, if supported.
            open_external: Opens URLs outside the editor.
        """
        self._event_bus = event_bus
        self._registry = registry
        self._watches = watches
        self._preferences = preferences
        self._save_ops = SaveCoordinator(registry, storage, prompts, preferences, event_bus)
        self._transfer_ops = TransferOperations(
            registry,
            storage,
            converter,
            prompts,
            preferences,
            event_bus,
            renderer=renderer,
        )
        self._file_ops = FileOperations(
            registry,
            storage,
            prompts,
            preferences,
            event_bus,
            importer=self._transfer_ops.import_file,
            open_external=open_external,
        )
        self._edit_ops = EditOperations(storage, prompts, event_bus)
        self._handlers: dict[type[messages.Request], Callable[[Any], Awaitable[Any]]] = {
            messages.SaveRequest: self._handle_save,
            messages.SaveAsRequest: self._handle_save_as,
            messages.SaveAllRequest: self._handle_save_all,
            messages.SaveAndCloseRequest: self._handle_save_and_close,
            messages.CloseConfirmRequest: self._handle_close_confirm,
            messages.CloseTabRequest: self._handle_close_tab,
            messages.CloseWindowRequest: self._handle_close_window,
            messages.NewTabRequest: self._handle_new_tab,
            messages.SetDirtyRequest: self._handle_set_dirty,
            messages.ExportRequest: self._handle_export,
            messages.ImportRequest: self._handle_import,
            messages.RenameRequest: self._handle_rename,
            messages.MoveToRequest: self._handle_move_to,
            messages.OpenFileRequest: self._handle_open_file,
            messages.OpenFolderRequest: self._handle_open_folder,
            messages.OpenProjectRequest: self._handle_open_project,
            messages.OpenPathRequest: self._handle_open_path,
            messages.DropRequest: self._handle_drop,
            messages.LinkClickRequest: self._handle_link_click,
            messages.InsertImageRequest: self._handle_insert_image,
            messages.ImageAutoPathRequest: self._handle_image_auto_path,
            messages.SetAutoSaveRequest: self._handle_set_auto_save,
            messages.ClearRecentFilesRequest: self._handle_clear_recent_files,
        }

    # ------------------------------------------------------------------
    # Use case access
    # ------------------------------------------------------------------

    @property
    def save_ops(self) -> SaveCoordinator:
        return self._save_ops

    @property
    def file_ops(self) -> FileOperations:
        return self._file_ops

    @property
    def transfer_ops(self) -> TransferOperations:
        return self._transfer_ops

    @property
    def edit_ops(self) -> EditOperations:
        return self._edit_ops

    @property
    def registry(self) -> SessionRegistry:
        return self._registry

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def handle(self, request: messages.Request) -> Any:
        """Run the use case for ``request`` and return its result."""
        handler = self._handlers.get(type(request))
        if handler is None:
            LOGGER.warning("AppCoordinator.handle: no handler for %s", type(request).__name__)
            return None
        LOGGER.debug("AppCoordinator.handle: %s from window %s", request.kind, request.window_id)
        try:
            return await handler(request)
        except MarkwellError as exc:
            post_failure(self._event_bus, request.window_id, REQUEST_ERROR_TITLE, exc)
            return None

    def on_file_change(self, change: FileChange) -> None:
        """Tell every window showing ``change.path`` that it changed on disk.

        Must be called on the event-loop thread; the watch backend hops
        threads before calling in. Echoes of this process's own saves and
        renames are dropped.
        """
        if self._watches.is_own_change(change.path):
            LOGGER.debug("AppCoordinator.on_file_change: ignoring own write to %s", change.path)
            return
        for document in self._registry.documents_for_path(change.path):
            self._event_bus.publish(
                FileChangedOnDisk(
                    window_id=document.window_id,
                    document_id=document.id,
                    pathname=str(document.pathname),
                    change=change.kind,
                )
            )

    def close(self) -> None:
        """Close every window and stop all watches."""
        for window_id in self._registry.window_ids():
            self._registry.close_window(window_id)
        self._watches.close()

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    async def _handle_save(self, request: messages.SaveRequest) -> str | None:
        return await self._save_ops.save(request)

    async def _handle_save_as(self, request: messages.SaveAsRequest) -> str | None:
        return await self._save_ops.save_as(request)

    async def _handle_save_all(self, request: messages.SaveAllRequest) -> Any:
        return await self._save_ops.save_all(request.window_id, request.files)

    async def _handle_save_and_close(self, request: messages.SaveAndCloseRequest) -> Any:
        return await self._save_ops.save_and_close(request.window_id, request.files, single=request.single)

    async def _handle_close_confirm(self, request: messages.CloseConfirmRequest) -> bool:
        return await self._save_ops.close_window_confirm(request.window_id, request.files)

    async def _handle_close_tab(self, request: messages.CloseTabRequest) -> list[str]:
        return self._save_ops.close_documents(request.window_id, request.document_ids)

    async def _handle_close_window(self, request: messages.CloseWindowRequest) -> None:
        self._save_ops.close_window(request.window_id)

    async def _handle_new_tab(self, request: messages.NewTabRequest) -> Any:
        return self._file_ops.new_tab(request.window_id, request.document_id)

    async def _handle_set_dirty(self, request: messages.SetDirtyRequest) -> None:
        self._file_ops.set_dirty(request.window_id, request.document_id, request.dirty)

    async def _handle_export(self, request: messages.ExportRequest) -> Any:
        return await self._transfer_ops.export_file(
            request.window_id,
            request.type,
            content=request.content,
            pathname=request.pathname,
            markdown=request.markdown,
        )

    async def _handle_import(self, request: messages.ImportRequest) -> Any:
        return await self._transfer_ops.import_file(request.window_id, request.pathname)

    async def _handle_rename(self, request: messages.RenameRequest) -> bool:
        return await self._file_ops.rename(
            request.window_id,
            request.document_id,
            request.pathname,
            request.new_pathname,
        )

    async def _handle_move_to(self, request: messages.MoveToRequest) -> bool:
        return await self._file_ops.move_to(request.window_id, request.document_id, request.pathname)

    async def _handle_open_file(self, request: messages.OpenFileRequest) -> Any:
        return await self._file_ops.open_file(request.window_id)

    async def _handle_open_folder(self, request: messages.OpenFolderRequest) -> None:
        await self._file_ops.open_folder(request.window_id)

    async def _handle_open_project(self, request: messages.OpenProjectRequest) -> None:
        await self._file_ops.open_project(request.window_id)

    async def _handle_open_path(self, request: messages.OpenPathRequest) -> Any:
        return await self._file_ops.open_file_or_folder(request.window_id, request.pathname)

    async def _handle_drop(self, request: messages.DropRequest) -> None:
        await self._file_ops.drop(request.window_id, request.paths)

    async def _handle_link_click(self, request: messages.LinkClickRequest) -> None:
        await self._file_ops.link_click(request.window_id, request.href, request.pathname)

    async def _handle_insert_image(self, request: messages.InsertImageRequest) -> None:
        await self._edit_ops.insert_image(request.window_id, request.type)

    async def _handle_image_auto_path(self, request: messages.ImageAutoPathRequest) -> list[str]:
        return self._edit_ops.image_auto_path(request.window_id, request.pathname, request.src)

    async def _handle_set_auto_save(self, request: messages.SetAutoSaveRequest) -> None:
        self._preferences.set_auto_save(request.enabled)

    async def _handle_clear_recent_files(self, request: messages.ClearRecentFilesRequest) -> None:
        self._preferences.clear_recent_files()


__all__ = ["AppCoordinator", "REQUEST_ERROR_TITLE"]
