"""Application bootstrap helpers for the markwell back-end."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import json
import logging
import os
import sys
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence, TextIO, cast, get_args, get_origin, get_type_hints

from .services.converter import ConverterGateway, PandocConverter
from .services.settings import Settings, SettingsStore
from .services.storage import LocalStorage, StorageAdapter
from .services.watcher import FileChange, WatchBackend, WatchdogBackend
from .ui.application.coordinator import AppCoordinator
from .ui.application.prompts import UserPrompts
from .ui.channel import ChannelPrompts, open_stdio_channel
from .ui.domain.preferences_store import PreferencesStore
from .ui.domain.session_registry import SessionRegistry
from .ui.domain.watch_registry import WatchRegistry
from .ui.events import EventBus
from .utils import logging as logging_utils

_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
_LOGGER = logging.getLogger(__name__)
_FALSE_VALUES = {"0", "false", "no", "off", "disabled"}


@dataclass(slots=True)
class QtRuntime:
    """Container returned by :func:`create_qapp`."""

    app: Any
    loop: asyncio.AbstractEventLoop


def configure_logging(debug: bool = False) -> None:
    """Configure file and stderr logging; ``MARKWELL_DEBUG`` also enables debug."""

    log_path = logging_utils.setup_logging(debug)
    _LOGGER.debug("Logging configured (file=%s)", log_path)


def load_settings(
    path: Optional[Path] = None,
    *,
    store: SettingsStore | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> Settings:
    """Load persisted settings or fall back to defaults."""

    active_store = store or SettingsStore(path)
    try:
        settings = active_store.load(overrides=overrides)
    except (OSError, ValueError) as exc:  # pragma: no cover - defensive path
        _LOGGER.warning("Failed to load settings from %s: %s", active_store.path, exc)
        settings = Settings()
    return settings


def build_coordinator(
    settings: Settings,
    prompts: UserPrompts,
    *,
    event_bus: EventBus | None = None,
    settings_store: SettingsStore | None = None,
    storage: StorageAdapter | None = None,
    converter: ConverterGateway | None = None,
    watch_backend: WatchBackend | None = None,
) -> AppCoordinator:
    """Wire the registries, services and use cases into a coordinator.

    Without an explicit ``watch_backend`` a watchdog observer is used; its
    change notifications are routed back into the coordinator.
    """

    bus = event_bus or EventBus()
    coordinator: AppCoordinator | None = None

    def _on_change(change: FileChange) -> None:
        if coordinator is not None:
            coordinator.on_file_change(change)

    backend = watch_backend or WatchdogBackend(_on_change)
    watches = WatchRegistry(backend)
    coordinator = AppCoordinator(
        event_bus=bus,
        registry=SessionRegistry(watches),
        watches=watches,
        preferences=PreferencesStore(settings, settings_store, bus),
        storage=storage or LocalStorage(),
        converter=converter or PandocConverter(settings.pandoc_path),
        prompts=prompts,
    )
    return coordinator


def create_qapp(settings: Settings) -> QtRuntime:
    """Create a qasync-powered QApplication instance for native dialogs."""

    try:  # Local import to avoid mandatory PySide6 dependency at import time.
        from PySide6.QtWidgets import QApplication
    except ImportError as exc:  # pragma: no cover - depends on desktop stack
        raise RuntimeError("PySide6 must be installed to use native dialogs.") from exc

    try:
        from qasync import QEventLoop
    except ImportError as exc:  # pragma: no cover - depends on env setup
        raise RuntimeError("qasync is required to run the async Qt event loop.") from exc

    app = cast(Any, QApplication.instance() or QApplication(sys.argv[:1]))
    app.setApplicationName("markwell")
    app.setQuitOnLastWindowClosed(False)

    loop = QEventLoop(app)
    asyncio.set_event_loop(loop)
    _install_qt_message_handler()
    return QtRuntime(app=app, loop=loop)


def main(argv: Sequence[str] | None = None) -> None:
    """Entry point invoked by the `markwell` console script."""

    args = _parse_cli_args(argv)

    settings_path = args.settings_path or os.environ.get("MARKWELL_SETTINGS_PATH")
    resolved_path = Path(settings_path).expanduser() if settings_path else None
    settings_store = SettingsStore(resolved_path)
    try:
        cli_overrides = _coerce_cli_overrides(args.overrides or [])
    except ValueError as exc:
        print(f"Invalid --set override: {exc}", file=sys.stderr)
        raise SystemExit(2) from exc

    overrides_mapping: Dict[str, Any] | None = cli_overrides or None
    settings = load_settings(resolved_path, store=settings_store, overrides=overrides_mapping)

    if args.dump_settings:
        _dump_settings(settings, settings_store, overrides=cli_overrides)
        return

    configure_logging(settings.debug_logging)

    if not args.native_dialogs:
        try:
            asyncio.run(_serve(settings, settings_store, native=False))
        except KeyboardInterrupt:  # pragma: no cover - manual shutdown path
            _LOGGER.info("Shutdown requested by user.")
        return

    runtime = create_qapp(settings)
    loop = runtime.loop
    try:
        loop.run_until_complete(_serve(settings, settings_store, native=True))
    except KeyboardInterrupt:  # pragma: no cover - manual shutdown path
        _LOGGER.info("Shutdown requested by user.")
    finally:
        _drain_event_loop(loop)
        loop.close()


async def _serve(settings: Settings, settings_store: SettingsStore, *, native: bool) -> None:
    bus = EventBus()
    channel_prompts = ChannelPrompts(bus)
    prompts: UserPrompts = channel_prompts
    if native:
        from .ui.presentation.qt_prompts import QtPrompts

        prompts = QtPrompts()

    backend = WatchdogBackend(lambda change: coordinator.on_file_change(change), loop=asyncio.get_running_loop())
    coordinator = build_coordinator(
        settings,
        prompts,
        event_bus=bus,
        settings_store=settings_store,
        watch_backend=backend,
    )
    channel = await open_stdio_channel(bus, channel_prompts)
    try:
        await channel.serve(coordinator)
    finally:
        coordinator.close()
        backend.close()


def _drain_event_loop(loop: asyncio.AbstractEventLoop) -> None:
    """Cancel outstanding tasks and shutdown async machinery before closing."""

    if loop.is_closed():
        return

    async def _cleanup() -> None:
        current_task = None
        with contextlib.suppress(RuntimeError):
            current_task = asyncio.current_task(loop=loop)

        tasks = [
            task
            for task in asyncio.all_tasks(loop)
            if not task.done() and task is not current_task
        ]
        if tasks:
            _LOGGER.debug("Canceling %s pending asyncio task(s) before shutdown.", len(tasks))
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        with contextlib.suppress(RuntimeError, NotImplementedError):
            await loop.shutdown_asyncgens()

    try:
        loop.run_until_complete(_cleanup())
    except RuntimeError as exc:  # pragma: no cover - defensive guard
        _LOGGER.debug("Unable to drain asyncio loop: %s", exc)


def _install_qt_message_handler() -> None:
    """Redirect Qt warnings to the Python logging stack when available."""

    try:
        from PySide6.QtCore import QtMsgType, qInstallMessageHandler
    except ImportError:  # pragma: no cover - PySide6 optional during tests
        return

    level_map = {
        QtMsgType.QtDebugMsg: logging.DEBUG,
        QtMsgType.QtInfoMsg: logging.INFO,
        QtMsgType.QtWarningMsg: logging.WARNING,
        QtMsgType.QtCriticalMsg: logging.ERROR,
        QtMsgType.QtFatalMsg: logging.CRITICAL,
    }

    def _handler(mode, context, message):  # type: ignore[no-untyped-def]
        del context
        level = level_map.get(mode, logging.INFO)
        logging.getLogger("PySide6").log(level, message)

    qInstallMessageHandler(_handler)


def _parse_cli_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="markwell",
        add_help=True,
        description="Run the markwell document lifecycle back-end over stdin/stdout.",
    )
    parser.add_argument(
        "--dump-settings",
        action="store_true",
        help="Print the effective settings payload and exit.",
    )
    parser.add_argument(
        "--settings-path",
        metavar="PATH",
        help="Override the default ~/.markwell/settings.json path.",
    )
    parser.add_argument(
        "--set",
        dest="overrides",
        metavar="KEY=VALUE",
        action="append",
        default=[],
        help="Override persisted settings before launch (repeatable).",
    )
    parser.add_argument(
        "--native-dialogs",
        action="store_true",
        help="Answer prompts with native Qt dialogs instead of the front-end.",
    )
    return parser.parse_args(argv)


def _coerce_cli_overrides(items: Sequence[str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    if not items:
        return overrides

    fields = Settings.__dataclass_fields__  # type: ignore[attr-defined]
    type_hints = get_type_hints(Settings)
    for entry in items:
        if "=" not in entry:
            raise ValueError(f"Override '{entry}' must use KEY=VALUE syntax.")
        key, raw_value = entry.split("=", 1)
        key = key.strip()
        if not key:
            raise ValueError("Override is missing a field name.")
        if key not in fields:
            raise ValueError(f"Unknown setting '{key}'.")
        annotation = type_hints.get(key, fields[key].type)
        overrides[key] = _coerce_value(annotation, raw_value.strip())
    return overrides


def _coerce_value(annotation: Any, raw_value: str) -> Any:
    target = _resolve_annotation(annotation)
    normalized = raw_value.strip()

    if target is str or target is Any:
        return normalized
    if target is bool:
        return _parse_bool(normalized)
    if target is int:
        return int(normalized, 10)
    if target is list:
        try:
            value = json.loads(normalized or "[]")
        except json.JSONDecodeError as exc:
            raise ValueError("List overrides must be valid JSON arrays") from exc
        if not isinstance(value, list):
            raise ValueError("List overrides must be valid JSON arrays")
        return value
    return normalized


def _resolve_annotation(annotation: Any) -> Any:
    origin = get_origin(annotation)
    if origin is None:
        return annotation
    if origin is list:
        return origin
    args = [arg for arg in get_args(annotation) if arg is not type(None)]
    if not args:
        return origin
    return args[0]


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"Cannot coerce '{value}' to a boolean.")


def _dump_settings(
    settings: Settings,
    store: SettingsStore,
    *,
    overrides: Mapping[str, Any],
    stream: TextIO | None = None,
) -> None:
    destination = stream or sys.stdout
    metadata = {
        "path": str(store.path),
        "cli_overrides": sorted(overrides.keys()),
        "environment_variables": _active_env_overrides(),
    }
    output = {"settings": asdict(settings), "meta": metadata}
    json.dump(output, destination, indent=2)
    destination.write("\n")


def _active_env_overrides() -> list[str]:
    return sorted(name for name in os.environ if name.startswith("MARKWELL_"))


__all__ = [
    "QtRuntime",
    "build_coordinator",
    "configure_logging",
    "create_qapp",
    "load_settings",
    "main",
]
