"""Preferences store domain service.

Owns the live :class:`~markwell.services.settings.Settings` instance and
persists it whenever the recent-files list or a toggled preference changes.
"""

from __future__ import annotations

import logging
from dataclasses import asdict
from pathlib import Path
from typing import TYPE_CHECKING

from ...core.paths import normalize_path
from ...services.settings import MAX_RECENT_FILES, Settings
from ..events import PreferencesChanged

if TYPE_CHECKING:  # pragma: no cover
    from ...services.settings import SettingsStore
    from ..events import EventBus

LOGGER = logging.getLogger(__name__)


class PreferencesStore:
    """Domain manager for preferences touched by lifecycle operations.

    This manager does not own any preference UI; it only keeps the recent
    files list and the auto-save toggle in sync with disk.
    """

    def __init__(
        self,
        settings: Settings | None,
        settings_store: SettingsStore | None,
        event_bus: EventBus,
    ) -> None:
        """Initialize the store.

        Args:
            settings: The live settings, or None to use defaults.
            settings_store: Store for persisting settings, or None.
            event_bus: The event bus for publishing events.
        """
        self._settings = settings or Settings()
        self._settings_store = settings_store
        self._bus = event_bus

    @property
    def settings(self) -> Settings:
        return self._settings

    # ------------------------------------------------------------------
    # Recent Files Management
    # ------------------------------------------------------------------

    def remember_recent_file(self, path: Path | str) -> list[str]:
        """Move ``path`` to the front of the recent files list.

        Returns:
            The updated list, most recent first.
        """
        normalized = str(normalize_path(path))

        updated: list[str] = [normalized]
        for existing in self._settings.recent_files:
            if str(normalize_path(existing)) == normalized:
                continue
            updated.append(existing)
            if len(updated) >= MAX_RECENT_FILES:
                break

        self._settings.recent_files = updated
        LOGGER.debug(
            "PreferencesStore.remember_recent_file: %s, total=%d",
            normalized,
            len(updated),
        )
        self.persist_settings()
        return list(updated)

    def clear_recent_files(self) -> None:
        self._settings.recent_files = []
        self.persist_settings()
        self._publish_changed()

    # ------------------------------------------------------------------
    # Toggles
    # ------------------------------------------------------------------

    def set_auto_save(self, enabled: bool) -> None:
        """Persist the auto-save toggle and broadcast the new preferences."""
        self._settings.auto_save = bool(enabled)
        LOGGER.debug("PreferencesStore.set_auto_save: %s", self._settings.auto_save)
        self.persist_settings()
        self._publish_changed()

    # ------------------------------------------------------------------
    # Settings Persistence
    # ------------------------------------------------------------------

    def persist_settings(self) -> bool:
        """Persist settings to storage.

        Returns:
            True if settings were persisted successfully.
        """
        if self._settings_store is None:
            LOGGER.debug("PreferencesStore.persist_settings: skipping - no store")
            return False

        try:
            self._settings_store.save(self._settings)
            return True
        except OSError as exc:
            LOGGER.warning("PreferencesStore.persist_settings: failed: %s", exc)
            return False

    def _publish_changed(self) -> None:
        self._bus.publish(PreferencesChanged(preferences=asdict(self._settings)))


__all__ = ["PreferencesStore"]
