"""File-watch backends feeding external on-disk changes back to the event loop."""

from __future__ import annotations

import asyncio
import logging
import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Hashable, Protocol

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

LOGGER = logging.getLogger(__name__)

CHANGE_MODIFIED = "change"
CHANGE_DELETED = "unlink"
CHANGE_CREATED = "add"


@dataclass(slots=True, frozen=True)
class FileChange:
    """A change observed on a watched path."""

    path: Path
    kind: str


ChangeCallback = Callable[[FileChange], None]


class WatchBackend(Protocol):
    """Creates and tears down the underlying watch for one path."""

    def start(self, path: Path) -> Hashable:
        """Begin watching ``path`` and return a handle for :meth:`stop`."""
        ...

    def stop(self, handle: Hashable) -> None:
        """Tear down the watch identified by ``handle``."""
        ...


class _DirectoryHandler(FileSystemEventHandler):
    def __init__(self, backend: "WatchdogBackend", directory: Path) -> None:
        super().__init__()
        self._backend = backend
        self._directory = directory

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        event_type = event.event_type
        if event_type == "moved":
            self._backend._dispatch(Path(os.fsdecode(event.src_path)), CHANGE_DELETED)
            dest = getattr(event, "dest_path", None)
            if dest:
                self._backend._dispatch(Path(os.fsdecode(dest)), CHANGE_CREATED)
        elif event_type == "deleted":
            self._backend._dispatch(Path(os.fsdecode(event.src_path)), CHANGE_DELETED)
        elif event_type == "created":
            self._backend._dispatch(Path(os.fsdecode(event.src_path)), CHANGE_CREATED)
        elif event_type in ("modified", "closed"):
            self._backend._dispatch(Path(os.fsdecode(event.src_path)), CHANGE_MODIFIED)


class WatchdogBackend:
    """:class:`WatchBackend` built on a shared watchdog ``Observer``.

    watchdog observes directories, so one schedule is kept per parent
    directory and events are filtered down to the watched file paths.
    Callbacks are marshalled onto ``loop`` with ``call_soon_threadsafe``;
    nothing here touches coordinator state from the observer thread.
    """

    def __init__(
        self,
        on_change: ChangeCallback,
        *,
        loop: asyncio.AbstractEventLoop | None = None,
        observer: Any | None = None,
    ) -> None:
        self._on_change = on_change
        self._loop = loop
        self._observer = observer
        self._started = False
        self._lock = threading.Lock()
        self._directories: dict[Path, Any] = {}
        self._paths: dict[Path, set[Path]] = {}

    def start(self, path: Path) -> Hashable:
        target = Path(path)
        directory = target.parent
        with self._lock:
            observer = self._ensure_observer()
            watched = self._paths.setdefault(directory, set())
            if directory not in self._directories:
                handler = _DirectoryHandler(self, directory)
                self._directories[directory] = observer.schedule(handler, os.fspath(directory), recursive=False)
                LOGGER.debug("WatchdogBackend: scheduled %s", directory)
            watched.add(target)
        return target

    def stop(self, handle: Hashable) -> None:
        target = Path(handle)  # type: ignore[arg-type]
        directory = target.parent
        with self._lock:
            watched = self._paths.get(directory)
            if not watched:
                return
            watched.discard(target)
            if watched:
                return
            self._paths.pop(directory, None)
            watch = self._directories.pop(directory, None)
            if watch is not None and self._observer is not None:
                try:
                    self._observer.unschedule(watch)
                except (KeyError, OSError) as exc:
                    LOGGER.debug("WatchdogBackend: unschedule %s failed: %s", directory, exc)
            LOGGER.debug("WatchdogBackend: unscheduled %s", directory)

    def close(self) -> None:
        with self._lock:
            observer = self._observer
            self._directories.clear()
            self._paths.clear()
            started = self._started
            self._started = False
        if observer is not None and started:
            observer.stop()
            observer.join(timeout=5)

    def _ensure_observer(self) -> Any:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        if self._observer is None:
            self._observer = Observer()
        if not self._started:
            self._observer.start()
            self._started = True
        return self._observer

    def _dispatch(self, path: Path, kind: str) -> None:
        with self._lock:
            watched = self._paths.get(path.parent, set())
            if path not in watched:
                return
            loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(self._on_change, FileChange(path=path, kind=kind))


__all__ = [
    "CHANGE_CREATED",
    "CHANGE_DELETED",
    "CHANGE_MODIFIED",
    "FileChange",
    "ChangeCallback",
    "WatchBackend",
    "WatchdogBackend",
]
