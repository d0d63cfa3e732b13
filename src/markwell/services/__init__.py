"""Service layer helpers (storage, converter, file watching, settings)."""

from .converter import ConverterGateway, PandocConverter
from .settings import Settings, SettingsStore
from .storage import LocalStorage, StorageAdapter
from .watcher import FileChange, WatchBackend, WatchdogBackend

__all__ = [
    "ConverterGateway",
    "PandocConverter",
    "Settings",
    "SettingsStore",
    "LocalStorage",
    "StorageAdapter",
    "FileChange",
    "WatchBackend",
    "WatchdogBackend",
]
