"""Domain layer for document lifecycle state.

This package contains the in-memory tables the application layer mutates.
Each manager is responsible for one piece of state and has no dependency
on Qt or on the message channel.

Domain Managers:
    - WatchRegistry: Reference-counted file watches, one per path
    - SessionRegistry: Windows and their open documents
    - PreferencesStore: Recent files and persisted toggles

All domain managers:
    - Receive dependencies via constructor injection
    - Are mutated only from the event-loop thread
"""

from __future__ import annotations

from .preferences_store import PreferencesStore
from .session_registry import Document, SessionRegistry, WindowSession
from .watch_registry import WatchRegistry, WatchSubscription

__all__: list[str] = [
    "Document",
    "PreferencesStore",
    "SessionRegistry",
    "WatchRegistry",
    "WatchSubscription",
    "WindowSession",
]
