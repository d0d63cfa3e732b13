"""Converter gateway that shells out to pandoc for foreign document formats."""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
from pathlib import Path
from typing import Protocol, runtime_checkable

from ..core.errors import ConverterFailed, ConverterUnavailable

LOGGER = logging.getLogger(__name__)

_PANDOC_FORMATS: dict[str, str] = {
    ".html": "html",
    ".htm": "html",
    ".docx": "docx",
    ".latex": "latex",
    ".tex": "latex",
    ".ltx": "latex",
    ".rst": "rst",
    ".rest": "rst",
    ".org": "org",
    ".wiki": "mediawiki",
    ".dokuwiki": "dokuwiki",
    ".textile": "textile",
    ".opml": "opml",
    ".epub": "epub",
    ".odt": "odt",
    ".rtf": "rtf",
}


@runtime_checkable
class ConverterGateway(Protocol):
    """Capability translating between markdown and foreign formats."""

    def available(self) -> bool:
        """Return ``True`` when the converter tool can be invoked."""
        ...

    async def import_document(self, path: Path) -> str:
        """Convert the file at ``path`` into markdown text."""
        ...

    async def export_document(self, path: Path, markdown: str, target_format: str) -> None:
        """Write ``markdown`` converted to ``target_format`` into ``path``."""
        ...


class PandocConverter:
    """:class:`ConverterGateway` implemented with the ``pandoc`` executable.

    The availability probe runs once per instance and is cached, so calling
    :meth:`available` before every import costs nothing.
    """

    def __init__(
        self,
        executable: str | None = None,
        *,
        timeout: float = 120.0,
        markdown_format: str = "markdown",
    ) -> None:
        self._executable = executable or "pandoc"
        self._timeout = timeout
        self._markdown_format = markdown_format
        self._resolved: str | None = None
        self._probed = False

    def available(self) -> bool:
        return self._resolve() is not None

    async def import_document(self, path: Path) -> str:
        executable = self._require()
        source = Path(path)
        args = [executable, os.fspath(source), "-t", self._markdown_format, "--wrap=none"]
        source_format = _PANDOC_FORMATS.get(source.suffix.lower())
        if source_format is not None:
            args[2:2] = ["-f", source_format]
        stdout = await self._run(args, stdin=None)
        try:
            return stdout.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ConverterFailed(f"pandoc produced non UTF-8 output for {source.name}") from exc

    async def export_document(self, path: Path, markdown: str, target_format: str) -> None:
        executable = self._require()
        args = [
            executable,
            "-f",
            self._markdown_format,
            "-t",
            target_format,
            "-o",
            os.fspath(path),
        ]
        await self._run(args, stdin=markdown.encode("utf-8"))

    def _resolve(self) -> str | None:
        if not self._probed:
            self._resolved = shutil.which(self._executable)
            self._probed = True
            LOGGER.debug("PandocConverter: probe for %s -> %s", self._executable, self._resolved)
        return self._resolved

    def _require(self) -> str:
        resolved = self._resolve()
        if resolved is None:
            raise ConverterUnavailable()
        return resolved

    async def _run(self, args: list[str], *, stdin: bytes | None) -> bytes:
        LOGGER.debug("PandocConverter: running %s", " ".join(args))
        try:
            process = await asyncio.create_subprocess_exec(
                *args,
                stdin=asyncio.subprocess.PIPE if stdin is not None else asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise ConverterUnavailable(f"Unable to start pandoc: {exc}") from exc

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(stdin), timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            process.kill()
            await process.wait()
            raise ConverterFailed(f"pandoc timed out after {self._timeout:.0f}s") from exc

        if process.returncode != 0:
            message = stderr.decode("utf-8", errors="replace").strip() or "pandoc failed"
            raise ConverterFailed(message, exit_code=process.returncode)
        return stdout


__all__ = ["ConverterGateway", "PandocConverter"]
