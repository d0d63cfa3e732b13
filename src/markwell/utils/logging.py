"""Logging setup for the markwell back-end process.

stdout carries the JSON-lines message channel, so records never go there:
they land in a rotating log file and, optionally, on stderr where the
front-end that spawned the process can collect them.
"""

from __future__ import annotations

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Mapping

__all__ = ["DEBUG_ENV", "LOG_DIR_ENV", "debug_requested", "setup_logging"]

DEBUG_ENV = "MARKWELL_DEBUG"
LOG_DIR_ENV = "MARKWELL_LOG_DIR"

_DEFAULT_LOG_DIR = Path.home() / ".markwell" / "logs"
_LOG_FILENAME = "markwell.log"
_FORMAT = "%(asctime)s | %(process)d | %(levelname)-8s | %(name)s | %(message)s"
_NOISY_LOGGERS: tuple[str, ...] = ("asyncio", "qasync", "watchdog")
_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}


def debug_requested(environ: Mapping[str, str] | None = None) -> bool:
    """True when ``MARKWELL_DEBUG`` is set to a truthy value."""

    value = (os.environ if environ is None else environ).get(DEBUG_ENV, "")
    return value.strip().lower() in _TRUE_VALUES


def setup_logging(
    debug: bool = False,
    *,
    log_dir: Path | str | None = None,
    console: bool = True,
    max_bytes: int = 1_000_000,
    backup_count: int = 3,
) -> Path:
    """Install the root handlers, replacing any configured earlier.

    Args:
        debug: Log at DEBUG instead of INFO. ``MARKWELL_DEBUG`` forces it on.
        log_dir: Directory for ``markwell.log``; defaults to
            ``MARKWELL_LOG_DIR`` and then ``~/.markwell/logs``.
        console: Also write records to stderr.
        max_bytes: Size at which the log file rotates.
        backup_count: Rotated files to keep.

    Returns:
        Path of the active log file.
    """

    level = logging.DEBUG if debug or debug_requested() else logging.INFO
    target_dir = Path(log_dir or os.environ.get(LOG_DIR_ENV) or _DEFAULT_LOG_DIR).expanduser()
    target_dir.mkdir(parents=True, exist_ok=True)
    log_path = target_dir / _LOG_FILENAME

    handlers: list[logging.Handler] = [
        RotatingFileHandler(log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8")
    ]
    if console:
        handlers.append(logging.StreamHandler(sys.stderr))
    formatter = logging.Formatter(fmt=_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    for handler in handlers:
        handler.setFormatter(formatter)

    logging.basicConfig(level=level, handlers=handlers, force=True)
    logging.captureWarnings(True)

    # Third-party chatter stays at WARNING even in debug runs.
    quiet_level = max(level, logging.WARNING)
    for logger_name in _NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(quiet_level)
    return log_path
