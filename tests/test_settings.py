"""Tests for the settings persistence layer."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from markwell.services.settings import MAX_RECENT_FILES, Settings, SettingsStore
from markwell.ui.domain.preferences_store import PreferencesStore
from markwell.ui.events import EventBus, PreferencesChanged

from tests.helpers import EventRecorder


@pytest.fixture(autouse=True)
def _clear_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("MARKWELL_DOCUMENTS_DIR", "MARKWELL_AUTO_SAVE", "MARKWELL_AUTO_SAVE_DELAY", "MARKWELL_PANDOC_PATH"):
        monkeypatch.delenv(name, raising=False)


def test_load_returns_defaults_when_file_missing(tmp_path: Path) -> None:
    store = SettingsStore(tmp_path / "settings.json")

    assert store.load() == Settings()


def test_save_and_load_roundtrip(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    original = Settings(
        auto_save=False,
        auto_save_delay=1500,
        documents_dir="~/notes",
        end_of_line="crlf",
        recent_files=["/docs/a.md"],
        pandoc_path="/opt/pandoc",
    )

    SettingsStore(path).save(original)
    reloaded = SettingsStore(path).load()

    assert reloaded == original
    assert json.loads(path.read_text(encoding="utf-8"))["version"] == 1


def test_malformed_file_falls_back_to_defaults(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text("{broken", encoding="utf-8")

    assert SettingsStore(path).load() == Settings()


def test_unknown_keys_and_bad_recent_files_ignored(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"version": 1, "theme": "dark", "recent_files": "oops", "auto_save": False}))

    settings = SettingsStore(path).load()

    assert settings.auto_save is False
    assert settings.recent_files == []


def test_overrides_and_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MARKWELL_AUTO_SAVE", "off")
    monkeypatch.setenv("MARKWELL_AUTO_SAVE_DELAY", "250")
    monkeypatch.setenv("MARKWELL_PANDOC_PATH", "/usr/local/bin/pandoc")

    settings = SettingsStore(tmp_path / "settings.json").load(overrides={"default_encoding": "utf-16-le"})

    assert settings.default_encoding == "utf-16-le"
    assert settings.auto_save is False
    assert settings.auto_save_delay == 250
    assert settings.pandoc_path == "/usr/local/bin/pandoc"


def test_invalid_integer_environment_is_ignored(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MARKWELL_AUTO_SAVE_DELAY", "soon")

    assert SettingsStore(tmp_path / "settings.json").load().auto_save_delay == 3000


def test_default_save_options_follow_settings() -> None:
    options = Settings(end_of_line="crlf", default_encoding="latin-1", trim_trailing_newline=True).default_save_options()

    assert options.line_ending == "crlf"
    assert options.encoding == "latin-1"
    assert options.trim_trailing_newline


def test_documents_dir_expands_user(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("HOME", str(tmp_path))

    assert Settings(documents_dir="~/notes").resolved_documents_dir() == tmp_path / "notes"


class TestPreferencesStore:
    """Tests for recent files and toggles backed by the settings store."""

    def test_recent_files_are_deduplicated_and_capped(self, tmp_path: Path) -> None:
        """The newest path moves to the front and the list stays bounded."""
        settings = Settings(recent_files=[f"/docs/{index}.md" for index in range(MAX_RECENT_FILES)])
        store = SettingsStore(tmp_path / "settings.json")
        preferences = PreferencesStore(settings, store, EventBus())

        updated = preferences.remember_recent_file("/docs/5.md")
        assert updated[0] == "/docs/5.md"
        assert updated.count("/docs/5.md") == 1
        assert len(updated) == MAX_RECENT_FILES

        updated = preferences.remember_recent_file("/docs/new.md")
        assert updated[0] == "/docs/new.md"
        assert len(updated) == MAX_RECENT_FILES
        assert SettingsStore(tmp_path / "settings.json").load().recent_files == updated

    def test_set_auto_save_persists_and_broadcasts(self, tmp_path: Path) -> None:
        """Toggling auto-save writes settings and publishes the change."""
        bus: EventBus = EventBus()
        recorder = EventRecorder(bus)
        store = SettingsStore(tmp_path / "settings.json")
        preferences = PreferencesStore(Settings(), store, bus)

        preferences.set_auto_save(False)

        assert store.load().auto_save is False
        assert recorder.of_type(PreferencesChanged)[0].preferences["auto_save"] is False

    def test_persist_without_store(self) -> None:
        """Without a store nothing is written."""
        preferences = PreferencesStore(None, None, EventBus())
        assert preferences.persist_settings() is False
        assert preferences.settings == Settings()
