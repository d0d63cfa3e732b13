"""Editing helper use cases: image insertion and image path autocomplete."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from ...core.paths import image_path_candidates
from ..events import ImageAutoPathResults, ImageInsertRequested

if TYPE_CHECKING:  # pragma: no cover - imports for type checking only
    from ...services.storage import StorageAdapter
    from ..events import EventBus
    from .prompts import UserPrompts

LOGGER = logging.getLogger(__name__)

# Insert types that need a file chosen on disk.
FILE_IMAGE_TYPES = ("absolute", "relative")


class EditOperations:
    """Use cases backing the editor's image commands.

    Events Emitted:
        - ImageInsertRequested: With the chosen file, or the type alone
        - ImageAutoPathResults: Candidates for the reference being typed
    """

    __slots__ = ("_storage", "_prompts", "_event_bus")

    def __init__(self, storage: StorageAdapter, prompts: UserPrompts, event_bus: EventBus) -> None:
        self._storage = storage
        self._prompts = prompts
        self._event_bus = event_bus

    async def insert_image(self, window_id: str, insert_type: str, *, start_dir: Path | None = None) -> None:
        """Insert an image; file-based types ask for the image first."""
        if insert_type not in FILE_IMAGE_TYPES:
            self._event_bus.publish(ImageInsertRequested(window_id=window_id, type=insert_type))
            return

        chosen = await self._prompts.choose_image(window_id, start_dir)
        if chosen is None:
            LOGGER.debug("EditOperations.insert_image: cancelled in %s", window_id)
            return
        self._event_bus.publish(
            ImageInsertRequested(window_id=window_id, type=insert_type, filename=str(chosen))
        )

    def image_auto_path(self, window_id: str, pathname: str | None, src: str) -> list[str]:
        """Publish the entries that complete ``src``; never raises."""
        candidates = image_path_candidates(pathname, src, list_entries=self._storage.list_entries)
        self._event_bus.publish(ImageAutoPathResults(window_id=window_id, candidates=candidates))
        return candidates


__all__ = ["EditOperations", "FILE_IMAGE_TYPES"]
