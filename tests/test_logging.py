"""Tests for :mod:`markwell.utils.logging`."""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Iterator

import pytest

from markwell.utils import logging as logging_utils


@pytest.fixture
def restore_root_logging() -> Iterator[None]:
    root = logging.getLogger()
    level = root.level
    yield
    for handler in list(root.handlers):
        if isinstance(handler, RotatingFileHandler) or type(handler) is logging.StreamHandler:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)
    logging.captureWarnings(False)


@pytest.mark.usefixtures("restore_root_logging")
class TestSetupLogging:
    """Tests for the root handler setup."""

    def test_writes_rotating_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Records land in markwell.log under the chosen directory."""
        monkeypatch.delenv(logging_utils.DEBUG_ENV, raising=False)

        log_path = logging_utils.setup_logging(log_dir=tmp_path / "logs", console=False)
        logging.getLogger("markwell.tests").info("Logging smoke test")
        for handler in logging.getLogger().handlers:
            handler.flush()

        assert log_path == tmp_path / "logs" / "markwell.log"
        assert "Logging smoke test" in log_path.read_text(encoding="utf-8")
        assert logging.getLogger().level == logging.INFO

    def test_console_uses_stderr(self, tmp_path: Path) -> None:
        """stdout is left to the message channel."""
        logging_utils.setup_logging(log_dir=tmp_path)

        streams = [
            handler.stream
            for handler in logging.getLogger().handlers
            if type(handler) is logging.StreamHandler
        ]
        assert streams == [sys.stderr]

    def test_env_directory_and_debug(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """MARKWELL_LOG_DIR and MARKWELL_DEBUG are honored; noisy loggers stay quiet."""
        monkeypatch.setenv(logging_utils.LOG_DIR_ENV, str(tmp_path / "env-logs"))
        monkeypatch.setenv(logging_utils.DEBUG_ENV, "yes")

        log_path = logging_utils.setup_logging(console=False)

        assert log_path.parent == tmp_path / "env-logs"
        assert logging.getLogger().level == logging.DEBUG
        assert logging.getLogger("watchdog").level == logging.WARNING

    def test_repeated_setup_replaces_handlers(self, tmp_path: Path) -> None:
        """A second call swaps the handlers instead of stacking them."""
        logging_utils.setup_logging(log_dir=tmp_path, console=False)
        logging_utils.setup_logging(True, log_dir=tmp_path, console=False)

        assert len(logging.getLogger().handlers) == 1
        assert logging.getLogger().level == logging.DEBUG


@pytest.mark.parametrize(
    "value, expected",
    [("1", True), (" On ", True), ("debug", True), ("off", False), ("", False)],
)
def test_debug_requested(value: str, expected: bool) -> None:
    assert logging_utils.debug_requested({logging_utils.DEBUG_ENV: value}) is expected
