"""Shared test helpers and stub classes.

This module contains reusable test stubs that are used across multiple test files.
Import from here instead of duplicating these classes in individual test files.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Hashable, Sequence

from markwell.core.errors import ConverterFailed, IOFailure
from markwell.core.paths import normalize_path
from markwell.services.settings import Settings
from markwell.ui.application.coordinator import AppCoordinator
from markwell.ui.application.prompts import UnsavedChoice
from markwell.ui.domain.preferences_store import PreferencesStore
from markwell.ui.domain.session_registry import SessionRegistry
from markwell.ui.domain.watch_registry import WatchRegistry
from markwell.ui.events import Event, EventBus


class FakeStorage:
    """In-memory storage adapter.

    Paths listed in ``fail_writes`` / ``fail_reads`` raise IOFailure, and
    ``write_gate`` lets a test hold a write open until it sets the event.

    Example:
        storage = FakeStorage({"/docs/a.md": b"# A"})
        storage.fail_writes.add(Path("/docs/b.md"))
    """

    def __init__(self, files: dict[str, bytes] | None = None, directories: Sequence[str] = ()) -> None:
        self.files: dict[Path, bytes] = {normalize_path(k): v for k, v in (files or {}).items()}
        self.directories: set[Path] = {normalize_path(d) for d in directories}
        self.fail_writes: set[Path] = set()
        self.fail_reads: set[Path] = set()
        self.writes: list[Path] = []
        self.renames: list[tuple[Path, Path]] = []
        self.write_gate: asyncio.Event | None = None

    async def read(self, path: Path) -> bytes:
        key = normalize_path(path)
        if key in self.fail_reads or key not in self.files:
            raise IOFailure(f"Unable to read {key}", path=str(key))
        return self.files[key]

    async def write(self, path: Path, data: bytes) -> None:
        key = normalize_path(path)
        if self.write_gate is not None:
            await self.write_gate.wait()
        if key in self.fail_writes:
            raise IOFailure(f"Unable to write {key}: permission denied", path=str(key))
        self.files[key] = data
        self.writes.append(key)

    async def rename(self, old: Path, new: Path) -> None:
        source = normalize_path(old)
        if source not in self.files:
            raise IOFailure(f"Unable to rename {source}", path=str(source))
        self.files[normalize_path(new)] = self.files.pop(source)
        self.renames.append((source, normalize_path(new)))

    def exists(self, path: Path) -> bool:
        return self.is_file(path) or self.is_directory(path)

    def is_file(self, path: Path) -> bool:
        return normalize_path(path) in self.files

    def is_directory(self, path: Path) -> bool:
        return normalize_path(path) in self.directories

    def list_entries(self, directory: Path) -> list[str]:
        target = normalize_path(directory)
        if target not in self.directories:
            raise IOFailure(f"Unable to list {target}", path=str(target))
        return sorted(path.name for path in self.files if path.parent == target)


class FakeConverter:
    """Converter gateway returning canned markdown."""

    def __init__(self, *, available: bool = True, markdown: str = "# Imported\n", fail: bool = False) -> None:
        self.is_available = available
        self.markdown = markdown
        self.fail = fail
        self.imports: list[Path] = []
        self.exports: list[tuple[Path, str, str]] = []

    def available(self) -> bool:
        return self.is_available

    async def import_document(self, path: Path) -> str:
        self.imports.append(Path(path))
        if self.fail:
            raise ConverterFailed("pandoc: unknown reader", exit_code=21)
        return self.markdown

    async def export_document(self, path: Path, markdown: str, target_format: str) -> None:
        self.exports.append((Path(path), markdown, target_format))


class FakePrompts:
    """Scripted prompt provider that records every question asked."""

    def __init__(
        self,
        *,
        save_targets: Sequence[Path | str | None] = (),
        unsaved: UnsavedChoice = UnsavedChoice.SAVE,
        overwrite: bool = True,
        move_target: Path | str | None = None,
        open_file: Path | str | None = None,
        directory: Path | str | None = None,
        import_file: Path | str | None = None,
        export_target: Path | str | None = None,
        image: Path | str | None = None,
    ) -> None:
        self.save_targets = list(save_targets)
        self.unsaved = unsaved
        self.overwrite = overwrite
        self.move_target = move_target
        self.open_file = open_file
        self.directory = directory
        self.import_file = import_file
        self.export_target = export_target
        self.image = image
        self.calls: list[tuple[str, Any]] = []

    def asked(self, name: str) -> list[Any]:
        return [args for call, args in self.calls if call == name]

    async def choose_save_target(self, window_id: str, default_path: Path) -> Path | None:
        self.calls.append(("choose_save_target", default_path))
        target = self.save_targets.pop(0) if self.save_targets else None
        return Path(target) if target is not None else None

    async def confirm_unsaved(self, window_id: str, filenames: Sequence[str]) -> UnsavedChoice:
        self.calls.append(("confirm_unsaved", list(filenames)))
        return self.unsaved

    async def confirm_overwrite(self, window_id: str, path: Path) -> bool:
        self.calls.append(("confirm_overwrite", path))
        return self.overwrite

    async def choose_move_target(self, window_id: str, default_path: Path) -> Path | None:
        self.calls.append(("choose_move_target", default_path))
        return _maybe_path(self.move_target)

    async def choose_open_file(self, window_id: str, start_dir: Path | None) -> Path | None:
        self.calls.append(("choose_open_file", start_dir))
        return _maybe_path(self.open_file)

    async def choose_directory(self, window_id: str, start_dir: Path | None) -> Path | None:
        self.calls.append(("choose_directory", start_dir))
        return _maybe_path(self.directory)

    async def choose_import_file(self, window_id: str, start_dir: Path | None) -> Path | None:
        self.calls.append(("choose_import_file", start_dir))
        return _maybe_path(self.import_file)

    async def choose_export_target(self, window_id: str, default_path: Path, export_type: str) -> Path | None:
        self.calls.append(("choose_export_target", (default_path, export_type)))
        return _maybe_path(self.export_target)

    async def choose_image(self, window_id: str, start_dir: Path | None) -> Path | None:
        self.calls.append(("choose_image", start_dir))
        return _maybe_path(self.image)


def _maybe_path(value: Path | str | None) -> Path | None:
    return Path(value) if value is not None else None


class FakeWatchBackend:
    """Watch backend that logs start/stop calls instead of touching the OS."""

    def __init__(self) -> None:
        self.started: list[Path] = []
        self.stopped: list[Path] = []

    def start(self, path: Path) -> Hashable:
        self.started.append(Path(path))
        return Path(path)

    def stop(self, handle: Hashable) -> None:
        self.stopped.append(Path(handle))  # type: ignore[arg-type]

    @property
    def active(self) -> set[Path]:
        active = list(self.started)
        for path in self.stopped:
            active.remove(path)
        return set(active)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 100.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class EventRecorder:
    """Collects every event published on a bus."""

    def __init__(self, bus: EventBus) -> None:
        self.events: list[Event] = []
        bus.subscribe(Event, self.record)

    def record(self, event: Event) -> None:
        self.events.append(event)

    def of_type(self, event_type: type) -> list[Any]:
        return [event for event in self.events if isinstance(event, event_type)]

    def names(self) -> list[str]:
        return [event.event_name() for event in self.events]


class Harness:
    """Wires a coordinator over in-memory fakes.

    Example:
        harness = Harness(storage=FakeStorage({"/docs/a.md": b"# A"}))
        await harness.coordinator.handle(request)
        assert harness.recorder.of_type(PathnameSet)
    """

    def __init__(
        self,
        *,
        storage: FakeStorage | None = None,
        converter: FakeConverter | None = None,
        prompts: FakePrompts | None = None,
        settings: Settings | None = None,
        renderer: Any | None = None,
        open_external: Any | None = None,
        clock: Any | None = None,
    ) -> None:
        self.bus: EventBus = EventBus()
        self.recorder = EventRecorder(self.bus)
        self.backend = FakeWatchBackend()
        self.watches = WatchRegistry(self.backend, clock=clock) if clock is not None else WatchRegistry(self.backend)
        self.registry = SessionRegistry(self.watches)
        self.settings = settings or Settings(documents_dir="/docs")
        self.preferences = PreferencesStore(self.settings, None, self.bus)
        self.storage = storage or FakeStorage(directories=["/docs"])
        self.converter = converter or FakeConverter()
        self.prompts = prompts or FakePrompts()
        self.external: list[str] = []
        self.coordinator = AppCoordinator(
            event_bus=self.bus,
            registry=self.registry,
            watches=self.watches,
            preferences=self.preferences,
            storage=self.storage,
            converter=self.converter,
            prompts=self.prompts,
            renderer=renderer,
            open_external=open_external or self.external.append,
        )
