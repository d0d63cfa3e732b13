"""Watch registry domain service.

Keeps exactly one underlying file watch per open path, however many
documents (in however many windows) reference it.
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Hashable, Iterator

from ...core.paths import normalize_path

if TYPE_CHECKING:  # pragma: no cover
    from ...services.watcher import WatchBackend

LOGGER = logging.getLogger(__name__)

# Seconds after one of our own writes during which its echo is ignored.
OWN_WRITE_QUIET_PERIOD = 1.0


@dataclass(slots=True)
class WatchSubscription:
    """Reference-counted watch on one normalized path."""

    path: Path
    ref_count: int
    handle: Hashable


class WatchRegistry:
    """Process-wide table of path -> watch subscription.

    Invariant: a path has an entry (and an active backend watch) iff its
    ref count is greater than zero. Rename is release-then-acquire, never an
    in-place key rewrite. All calls are synchronous and must be made from
    the event-loop thread.
    """

    def __init__(
        self,
        backend: WatchBackend,
        *,
        quiet_period: float = OWN_WRITE_QUIET_PERIOD,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the registry.

        Args:
            backend: Creates and tears down the underlying watches.
            quiet_period: How long change events on a path are ignored after
                the process itself wrote or renamed it.
            clock: Monotonic time source for the quiet period.
        """
        self._backend = backend
        self._subscriptions: dict[Path, WatchSubscription] = {}
        self._quiet_period = quiet_period
        self._clock = clock
        self._writing: dict[Path, int] = {}
        self._quiet_until: dict[Path, float] = {}

    def acquire(self, path: Path | str) -> int:
        """Add a reference to ``path``, starting a watch on the first one.

        Returns:
            The new ref count.
        """
        key = normalize_path(path)
        subscription = self._subscriptions.get(key)
        if subscription is None:
            handle = self._backend.start(key)
            subscription = WatchSubscription(path=key, ref_count=0, handle=handle)
            self._subscriptions[key] = subscription
            LOGGER.debug("WatchRegistry.acquire: watching %s", key)
        subscription.ref_count += 1
        return subscription.ref_count

    def release(self, path: Path | str) -> int:
        """Drop a reference to ``path``; a path that is not watched is ignored.

        Returns:
            The remaining ref count.
        """
        key = normalize_path(path)
        subscription = self._subscriptions.get(key)
        if subscription is None:
            return 0
        subscription.ref_count -= 1
        if subscription.ref_count > 0:
            return subscription.ref_count
        del self._subscriptions[key]
        try:
            self._backend.stop(subscription.handle)
        except Exception:  # pragma: no cover - backend failure must not leak a count
            LOGGER.exception("WatchRegistry.release: failed to stop watch for %s", key)
        LOGGER.debug("WatchRegistry.release: stopped watching %s", key)
        return 0

    def rename(self, old_path: Path | str | None, new_path: Path | str) -> None:
        """Move one reference from ``old_path`` to ``new_path``."""
        if old_path is not None and self.is_watched(old_path):
            self.release(old_path)
        self.acquire(new_path)

    def ref_count(self, path: Path | str) -> int:
        subscription = self._subscriptions.get(normalize_path(path))
        return subscription.ref_count if subscription is not None else 0

    def is_watched(self, path: Path | str) -> bool:
        return normalize_path(path) in self._subscriptions

    def watched_paths(self) -> list[Path]:
        return sorted(self._subscriptions)

    # ------------------------------------------------------------------
    # Own writes
    # ------------------------------------------------------------------

    @contextmanager
    def own_write(self, *paths: Path | str) -> Iterator[None]:
        """Mark ``paths`` as being written by this process.

        Change events for them are ignored while the block runs and for the
        quiet period after it exits, successful or not.

        Example:
            with watches.own_write(target):
                await storage.write(target, data)
        """
        keys = [normalize_path(path) for path in paths]
        for key in keys:
            self._writing[key] = self._writing.get(key, 0) + 1
        try:
            yield
        finally:
            deadline = self._clock() + self._quiet_period
            for key in keys:
                remaining = self._writing[key] - 1
                if remaining:
                    self._writing[key] = remaining
                else:
                    del self._writing[key]
                self._quiet_until[key] = deadline

    def is_own_change(self, path: Path | str) -> bool:
        """True if a change on ``path`` is the echo of one of our writes."""
        key = normalize_path(path)
        if key in self._writing:
            return True
        deadline = self._quiet_until.get(key)
        if deadline is None:
            return False
        if self._clock() < deadline:
            return True
        del self._quiet_until[key]
        return False

    def close(self) -> None:
        """Tear down every watch, e.g. at shutdown."""
        for key in list(self._subscriptions):
            subscription = self._subscriptions.pop(key)
            try:
                self._backend.stop(subscription.handle)
            except Exception:  # pragma: no cover - best effort at shutdown
                LOGGER.exception("WatchRegistry.close: failed to stop watch for %s", key)
        LOGGER.debug("WatchRegistry.close: all watches stopped")


__all__ = ["OWN_WRITE_QUIET_PERIOD", "WatchRegistry", "WatchSubscription"]
