"""Import and export use cases.

This module provides the use cases that move documents across formats:
- import_file: convert a foreign document into a new untitled document
- export_file: write the document as HTML, PDF or a converter format
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING, AsyncIterator, Protocol

from ...core.errors import ConverterUnavailable, InvalidRequest, MarkwellError
from ...core.paths import EXPORT_EXTENSIONS, normalize_path, recommend_title
from ..events import (
    BackgroundError,
    ConverterMissing,
    DocumentOpened,
    ExportSucceeded,
    PrintServiceCleared,
)
from .notices import post_failure

if TYPE_CHECKING:  # pragma: no cover - imports for type checking only
    from ...services.converter import ConverterGateway
    from ...services.storage import StorageAdapter
    from ..domain.preferences_store import PreferencesStore
    from ..domain.session_registry import Document, SessionRegistry
    from ..events import EventBus
    from .prompts import UserPrompts

LOGGER = logging.getLogger(__name__)

EXPORT_ERROR_TITLE = "Export File Error"

# Export types written by the converter, mapped to its output format names.
CONVERTER_EXPORT_FORMATS: dict[str, str] = {
    "docx": "docx",
    "odt": "odt",
    "rtf": "rtf",
    "epub": "epub",
    "latex": "latex",
    "rst": "rst",
    "mediawiki": "mediawiki",
    "textile": "textile",
}


class PageRenderer(Protocol):
    """Front-end capability that snapshots the rendered page as a PDF."""

    async def print_to_pdf(self, window_id: str) -> bytes:
        """Render the window's print layout and return the PDF bytes."""
        ...


class TransferOperations:
    """Use cases for importing and exporting documents.

    Events Emitted:
        - ConverterMissing: When an import is requested without a converter
        - DocumentOpened: With the converted text of an import
        - BackgroundError: When a conversion fails during import
        - ExportSucceeded / NoticePosted: Outcome of an export
        - PrintServiceCleared: Whenever a PDF export ends or is cancelled
    """

    __slots__ = (
        "_registry",
        "_storage",
        "_converter",
        "_prompts",
        "_preferences",
        "_event_bus",
        "_renderer",
    )

    def __init__(
        self,
        registry: SessionRegistry,
        storage: StorageAdapter,
        converter: ConverterGateway,
        prompts: UserPrompts,
        preferences: PreferencesStore,
        event_bus: EventBus,
        *,
        renderer: PageRenderer | None = None,
    ) -> None:
        """Initialize the use cases.

        Args:
            registry: Table of open documents.
            storage: Adapter used to write exported artifacts.
            converter: Gateway to the external document converter.
            prompts: Provider for import and export file prompts.
            preferences: Store holding settings.
            event_bus: Event bus for publishing responses.
            renderer: Produces PDF bytes from the rendered page, if the
                front-end supports it.
        """
        self._registry = registry
        self._storage = storage
        self._converter = converter
        self._prompts = prompts
        self._preferences = preferences
        self._event_bus = event_bus
        self._renderer = renderer

    # ------------------------------------------------------------------
    # Import
    # ------------------------------------------------------------------

    async def import_file(self, window_id: str, pathname: Path | str | None = None) -> Document | None:
        """Convert a foreign document and open it as a new untitled tab.

        A missing converter is an expected condition: one warning notice is
        posted and nothing else happens.

        Returns:
            The new document, or None if nothing was imported.
        """
        if not self._converter.available():
            LOGGER.info("TransferOperations.import_file: converter not available")
            self._event_bus.publish(ConverterMissing(window_id=window_id))
            return None

        if pathname is None:
            settings = self._preferences.settings
            pathname = await self._prompts.choose_import_file(window_id, settings.resolved_documents_dir())
            if pathname is None:
                return None

        source = normalize_path(pathname)
        try:
            text = await self._converter.import_document(source)
        except MarkwellError as exc:
            LOGGER.error("TransferOperations.import_file: %s failed: %s", source, exc)
            self._event_bus.publish(
                BackgroundError(
                    window_id=window_id,
                    message=f"Unable to import {source.name}",
                    error=exc.message,
                )
            )
            return None

        document = self._registry.open(window_id, None, dirty=True)
        LOGGER.debug("TransferOperations.import_file: %s -> %s", source, document.id)
        self._event_bus.publish(
            DocumentOpened(
                window_id=window_id,
                document_id=document.id,
                content=text,
                dirty=True,
            )
        )
        return document

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    async def export_file(
        self,
        window_id: str,
        export_type: str,
        *,
        content: str | None = None,
        pathname: Path | str | None = None,
        markdown: str = "",
    ) -> Path | None:
        """Ask for a target and write the document in ``export_type``.

        ``content`` is output the front-end already rendered (e.g. styled
        HTML). A PDF export without content is rendered by the page
        renderer while the window is in print layout.

        Returns:
            The written path, or None if cancelled or failed.
        """
        extension = EXPORT_EXTENSIONS.get(export_type)
        if extension is None:
            post_failure(
                self._event_bus,
                window_id,
                EXPORT_ERROR_TITLE,
                InvalidRequest(f"Unsupported export type: {export_type}"),
            )
            return None

        default = self._default_target(pathname, markdown, extension)
        chosen = await self._prompts.choose_export_target(window_id, default, export_type)
        if chosen is None:
            if export_type == "pdf":
                self._event_bus.publish(PrintServiceCleared(window_id=window_id))
            return None

        target = normalize_path(chosen)
        try:
            written = await self._write_export(window_id, export_type, target, content, markdown)
        except MarkwellError as exc:
            LOGGER.error("TransferOperations.export_file: %s failed: %s", target, exc)
            post_failure(self._event_bus, window_id, EXPORT_ERROR_TITLE, exc)
            return None
        if not written:
            LOGGER.debug("TransferOperations.export_file: nothing to write for %s", export_type)
            return None

        self._event_bus.publish(ExportSucceeded(window_id=window_id, type=export_type, pathname=str(target)))
        return target

    async def _write_export(
        self,
        window_id: str,
        export_type: str,
        target: Path,
        content: str | None,
        markdown: str,
    ) -> bool:
        if export_type == "pdf" and not content:
            if self._renderer is None:
                self._event_bus.publish(PrintServiceCleared(window_id=window_id))
                raise MarkwellError("PDF export is not supported by this front-end")
            async with self._print_service(window_id):
                try:
                    data = await self._renderer.print_to_pdf(window_id)
                except MarkwellError:
                    raise
                except Exception as exc:
                    raise MarkwellError(
                        f"Unable to render {target.name}: {exc}",
                        details={"pathname": str(target)},
                    ) from exc
                await self._storage.write(target, data)
            return True

        if content:
            await self._storage.write(target, content.encode("utf-8"))
            return True

        target_format = CONVERTER_EXPORT_FORMATS.get(export_type)
        if target_format is None:
            return False
        if not self._converter.available():
            raise ConverterUnavailable("Install pandoc before you want to export files.")
        await self._converter.export_document(target, markdown, target_format)
        return True

    @asynccontextmanager
    async def _print_service(self, window_id: str) -> AsyncIterator[None]:
        """Scope during which the window shows its print layout."""
        try:
            yield
        finally:
            self._event_bus.publish(PrintServiceCleared(window_id=window_id))

    def _default_target(self, pathname: Path | str | None, markdown: str, extension: str) -> Path:
        if pathname:
            source = Path(pathname)
            directory = source.parent
            fallback = source.stem if source.suffix.lower() == ".md" else source.name
        else:
            directory = self._preferences.settings.resolved_documents_dir()
            fallback = "Untitled"
        name = recommend_title(markdown) or fallback
        return directory / f"{name}{extension}"


__all__ = [
    "CONVERTER_EXPORT_FORMATS",
    "EXPORT_ERROR_TITLE",
    "PageRenderer",
    "TransferOperations",
]
