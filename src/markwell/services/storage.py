"""Storage adapter wrapping byte-level reads, writes and renames."""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Protocol, Sequence, runtime_checkable

from ..core.errors import IOFailure

LOGGER = logging.getLogger(__name__)


@runtime_checkable
class StorageAdapter(Protocol):
    """Capability the coordinator uses for every disk access.

    Async methods may suspend the caller; the ``exists``/``is_*`` probes and
    ``list_entries`` are cheap and synchronous. Every failure surfaces as
    :class:`~markwell.core.errors.IOFailure`.
    """

    async def read(self, path: Path) -> bytes:
        ...

    async def write(self, path: Path, data: bytes) -> None:
        ...

    async def rename(self, old: Path, new: Path) -> None:
        ...

    def exists(self, path: Path) -> bool:
        ...

    def is_file(self, path: Path) -> bool:
        ...

    def is_directory(self, path: Path) -> bool:
        ...

    def list_entries(self, directory: Path) -> Sequence[str]:
        ...


class LocalStorage:
    """:class:`StorageAdapter` backed by the local filesystem.

    Blocking calls run in the default executor so the event loop keeps
    serving other windows while a large file is written.
    """

    def __init__(self, *, atomic: bool = True) -> None:
        self._atomic = atomic

    async def read(self, path: Path) -> bytes:
        try:
            return await asyncio.to_thread(Path(path).read_bytes)
        except OSError as exc:
            raise IOFailure(f"Unable to read {path}: {exc.strerror or exc}", path=str(path)) from exc

    async def write(self, path: Path, data: bytes) -> None:
        try:
            await asyncio.to_thread(self._write_sync, Path(path), data)
        except OSError as exc:
            raise IOFailure(f"Unable to write {path}: {exc.strerror or exc}", path=str(path)) from exc
        LOGGER.debug("LocalStorage.write: %d bytes to %s", len(data), path)

    async def rename(self, old: Path, new: Path) -> None:
        try:
            await asyncio.to_thread(shutil.move, os.fspath(old), os.fspath(new))
        except OSError as exc:
            raise IOFailure(
                f"Unable to rename {old} to {new}: {exc.strerror or exc}",
                path=str(old),
                details={"destination": str(new)},
            ) from exc
        LOGGER.debug("LocalStorage.rename: %s -> %s", old, new)

    def exists(self, path: Path) -> bool:
        try:
            return Path(path).exists()
        except OSError:
            return False

    def is_file(self, path: Path) -> bool:
        try:
            return Path(path).is_file()
        except OSError:
            return False

    def is_directory(self, path: Path) -> bool:
        try:
            return Path(path).is_dir()
        except OSError:
            return False

    def list_entries(self, directory: Path) -> Sequence[str]:
        try:
            with os.scandir(directory) as entries:
                return sorted(entry.name for entry in entries)
        except OSError as exc:
            raise IOFailure(f"Unable to list {directory}: {exc.strerror or exc}", path=str(directory)) from exc

    def _write_sync(self, target: Path, data: bytes) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        if not self._atomic:
            with target.open("wb") as handle:
                handle.write(data)
                handle.flush()
                os.fsync(handle.fileno())
            return

        descriptor, tmp_name = tempfile.mkstemp(
            dir=str(target.parent), prefix=f".{target.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(descriptor, "wb") as handle:
                handle.write(data)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, target)
        finally:
            if os.path.exists(tmp_name):  # pragma: no cover - cleanup path
                try:
                    os.unlink(tmp_name)
                except OSError:
                    pass


__all__ = ["StorageAdapter", "LocalStorage"]
