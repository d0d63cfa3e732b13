"""Preference dataclasses and persistence helpers."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping

from ..utils.file_io import SaveOptions

__all__ = [
    "Settings",
    "SettingsStore",
    "MAX_RECENT_FILES",
]

LOGGER = logging.getLogger(__name__)
_SETTINGS_DIR = Path.home() / ".markwell"
_DEFAULT_SETTINGS_PATH = _SETTINGS_DIR / "settings.json"
_SETTINGS_VERSION = 1
MAX_RECENT_FILES = 10
_ENV_OVERRIDES: Mapping[str, str] = {
    "MARKWELL_DOCUMENTS_DIR": "documents_dir",
    "MARKWELL_DEFAULT_ENCODING": "default_encoding",
    "MARKWELL_END_OF_LINE": "end_of_line",
    "MARKWELL_PANDOC_PATH": "pandoc_path",
}
_BOOL_ENV_OVERRIDES: Mapping[str, str] = {
    "MARKWELL_AUTO_SAVE": "auto_save",
    "MARKWELL_DEBUG_LOGGING": "debug_logging",
    "MARKWELL_TRIM_TRAILING_NEWLINE": "trim_trailing_newline",
}
_INT_ENV_OVERRIDES: Mapping[str, str] = {
    "MARKWELL_AUTO_SAVE_DELAY": "auto_save_delay",
}
_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}


@dataclass(slots=True)
class Settings:
    """User-configurable preferences persisted between sessions."""

    auto_save: bool = True
    auto_save_delay: int = 3000
    documents_dir: str = ""
    default_encoding: str = "utf-8"
    end_of_line: str = "default"
    trim_trailing_newline: bool = False
    open_files_in_new_window: bool = False
    pandoc_path: str = "pandoc"
    recent_files: list[str] = field(default_factory=list)
    debug_logging: bool = False

    def resolved_documents_dir(self) -> Path:
        """Return the directory used as default location for new files."""

        if self.documents_dir:
            return Path(self.documents_dir).expanduser()
        candidate = Path.home() / "Documents"
        return candidate if candidate.is_dir() else Path.home()

    def default_save_options(self) -> SaveOptions:
        """Save options used when a request carries none."""

        if self.end_of_line in ("lf", "crlf", "cr"):
            line_ending = self.end_of_line
        else:
            line_ending = "crlf" if os.name == "nt" else "lf"
        return SaveOptions(
            encoding=self.default_encoding,
            line_ending=line_ending,
            trim_trailing_newline=self.trim_trailing_newline,
        )


class SettingsStore:
    """Persistence adapter for :class:`Settings`."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or _DEFAULT_SETTINGS_PATH

    @property
    def path(self) -> Path:
        """Return the resolved path backing this store."""

        return self._path

    def load(self, *, overrides: Mapping[str, Any] | None = None) -> Settings:
        """Load settings from disk, applying CLI/environment overrides when present."""

        payload = self._read_payload()
        settings = Settings()
        if payload:
            data = _filter_fields(payload)
            recent = data.get("recent_files")
            if recent is not None and not isinstance(recent, list):
                LOGGER.warning("Ignoring malformed recent_files entry in %s", self._path)
                data.pop("recent_files")
            try:
                settings = Settings(**data)
            except TypeError as exc:
                LOGGER.warning("Settings payload contained unexpected data: %s", exc)
                settings = Settings()
        LOGGER.debug("Settings loaded from %s (%d recent files)", self._path, len(settings.recent_files))

        version_mismatch = bool(payload) and payload.get("version") != _SETTINGS_VERSION
        if version_mismatch:
            try:
                self.save(settings)
            except OSError as exc:  # pragma: no cover - defensive guard
                LOGGER.warning("Failed to migrate settings payload: %s", exc)

        if overrides:
            settings = self._apply_overrides(settings, overrides, source="CLI")

        return self._apply_env_overrides(settings)

    def save(self, settings: Settings) -> Path:
        """Persist settings to disk with atomic file writes."""

        payload = asdict(settings)
        payload["version"] = _SETTINGS_VERSION
        body = json.dumps(payload, indent=2, sort_keys=True)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(".tmp")
        tmp_path.write_text(body, encoding="utf-8")
        tmp_path.replace(self._path)
        LOGGER.debug("Settings saved to %s", self._path)
        return self._path

    def _read_payload(self) -> Dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            text = self._path.read_text(encoding="utf-8")
            payload = json.loads(text)
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError as exc:
            LOGGER.warning("Settings file %s is not valid JSON: %s", self._path, exc)
            return {}
        return payload if isinstance(payload, dict) else {}

    def _apply_overrides(
        self,
        settings: Settings,
        overrides: Mapping[str, Any],
        *,
        source: str = "runtime",
    ) -> Settings:
        allowed = {item.name for item in fields(Settings)}
        filtered: Dict[str, Any] = {}
        for key, value in overrides.items():
            if key not in allowed or value is None:
                continue
            filtered[key] = value
        if filtered:
            LOGGER.debug("Applying %s settings overrides: %s", source, sorted(filtered))
            settings = replace(settings, **filtered)
        return settings

    def _apply_env_overrides(self, settings: Settings) -> Settings:
        overrides: Dict[str, Any] = {}
        for env_name, field_name in _ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value
        for env_name, field_name in _BOOL_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value.strip().lower() in _TRUE_VALUES
        for env_name, field_name in _INT_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is None:
                continue
            try:
                overrides[field_name] = int(value, 10)
            except ValueError:
                LOGGER.warning(
                    "Environment override %s=%s is not a valid integer",
                    env_name,
                    value,
                )
        if overrides:
            settings = self._apply_overrides(settings, overrides, source="environment")
        return settings


def _filter_fields(payload: Mapping[str, Any]) -> Dict[str, Any]:
    allowed = {item.name for item in fields(Settings)}
    return {key: value for key, value in payload.items() if key in allowed}
