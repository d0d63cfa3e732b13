"""Outbound events and the bus that carries them to the presentation layer.

Every response the core sends to a window is an :class:`Event` dataclass
addressed by ``window_id``. Use cases publish on the :class:`EventBus`;
the message channel subscribes to :class:`Event` itself and forwards
everything to the front-end.
"""

from __future__ import annotations

import logging
import re
from collections import defaultdict
from dataclasses import asdict, dataclass, field
from typing import (
    Any,
    Callable,
    Generic,
    TypeVar,
    TYPE_CHECKING,
)
from weakref import WeakMethod, ref

if TYPE_CHECKING:  # pragma: no cover - imports for type checking only
    from typing import DefaultDict

logger = logging.getLogger(__name__)

E = TypeVar("E", bound="Event")

Handler = Callable[[E], None]

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


@dataclass(slots=True)
class Event:
    """Base class for all events in the system."""

    @classmethod
    def event_name(cls) -> str:
        """Wire name of the event, e.g. ``PathnameSet`` -> ``pathname-set``."""
        return _CAMEL_BOUNDARY.sub("-", cls.__name__).lower()

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


_QUIET_EVENT_TYPES: set[type] = set()


# =============================================================================
# Document lifecycle
# =============================================================================


@dataclass(slots=True)
class DocumentOpened(Event):
    """A document was opened (or refocused) in a window.

    ``content`` carries the markdown to display; it is ``None`` when an
    already-open document was simply refocused.
    """

    window_id: str
    document_id: str
    pathname: str | None = None
    filename: str | None = None
    content: str | None = None
    dirty: bool = False
    encoding: str | None = None
    line_ending: str | None = None
    is_bom: bool = False


@dataclass(slots=True)
class DirectoryOpened(Event):
    """A directory should be shown as the window's project tree."""

    window_id: str
    pathname: str


@dataclass(slots=True)
class DocumentClosed(Event):
    window_id: str
    document_id: str


@dataclass(slots=True)
class WindowClosed(Event):
    window_id: str


@dataclass(slots=True)
class PathnameSet(Event):
    """A document's on-disk identity changed (first save, save-as, rename, move)."""

    window_id: str
    document_id: str
    pathname: str
    filename: str


@dataclass(slots=True)
class FileChangedOnDisk(Event):
    """A watched file changed outside the application."""

    window_id: str
    document_id: str
    pathname: str
    change: str


# =============================================================================
# Batch responses
# =============================================================================


@dataclass(slots=True)
class SaveAllCompleted(Event):
    """Response to a save-all request: ids saved, or the batch-level error."""

    window_id: str
    error: str | None
    data: list[str] | None


@dataclass(slots=True)
class SaveResponse(Event):
    """Response to a close-with-unsaved-changes request.

    ``single`` distinguishes closing one tab from closing many; ``data``
    lists the documents that may now be closed.
    """

    window_id: str
    single: bool
    error: str | None
    data: list[str] | None


# =============================================================================
# Export
# =============================================================================


@dataclass(slots=True)
class ExportSucceeded(Event):
    window_id: str
    type: str
    pathname: str


@dataclass(slots=True)
class PrintServiceCleared(Event):
    """The window may restore the UI it switched into print layout."""

    window_id: str


# =============================================================================
# Notifications
# =============================================================================


@dataclass(slots=True)
class NoticePosted(Event):
    """A non-blocking notification shown in the window."""

    window_id: str | None
    title: str
    message: str
    level: str = "info"
    timeout_ms: int | None = None
    details: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class ConverterMissing(Event):
    """The converter is not installed; an expected condition, not an error."""

    window_id: str
    title: str = "Import Warning"
    message: str = "Install pandoc before you want to import files."
    level: str = "warning"
    timeout_ms: int = 10000


@dataclass(slots=True)
class BackgroundError(Event):
    """A best-effort background task failed; logged and shown unobtrusively."""

    window_id: str
    message: str
    error: str | None = None


# =============================================================================
# Editing helpers
# =============================================================================


@dataclass(slots=True)
class ImageInsertRequested(Event):
    window_id: str
    type: str
    filename: str | None = None


@dataclass(slots=True)
class ImageAutoPathResults(Event):
    window_id: str
    candidates: list[str] = field(default_factory=list)


_QUIET_EVENT_TYPES.add(ImageAutoPathResults)


# =============================================================================
# Preferences & prompts
# =============================================================================


@dataclass(slots=True)
class PreferencesChanged(Event):
    preferences: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class PromptRequested(Event):
    """The core needs a decision from the user in ``window_id``.

    The front-end answers with a ``prompt-reply`` carrying ``prompt_id``.
    """

    window_id: str
    prompt_id: str
    kind: str
    payload: dict[str, Any] = field(default_factory=dict)


class EventBus(Generic[E]):
    """A typed publish-subscribe event bus.

    Handlers subscribed to a concrete event class receive exactly that
    class; handlers subscribed to :class:`Event` receive every event, which
    is how the message channel mirrors the bus onto the wire. Bound methods
    are held weakly and dropped once their owner is collected.

    Not thread-safe: publish from the event-loop thread only.
    """

    __slots__ = ("_handlers",)

    def __init__(self) -> None:
        self._handlers: DefaultDict[type[Event], list[_HandlerRef]] = defaultdict(list)

    def subscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        """Register ``handler`` for ``event_type`` (or every event for :class:`Event`)."""
        self._handlers[event_type].append(_HandlerRef.create(handler))
        logger.debug(
            "Subscribed handler %s to event type %s",
            _handler_name(handler),
            event_type.__name__,
        )

    def unsubscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        """Remove the first registration of ``handler``; unknown handlers are ignored."""
        handlers = self._handlers.get(event_type)
        if handlers is None:
            return

        for i, handler_ref in enumerate(handlers):
            if handler_ref.matches(handler):
                handlers.pop(i)
                logger.debug(
                    "Unsubscribed handler %s from event type %s",
                    _handler_name(handler),
                    event_type.__name__,
                )
                return

    def publish(self, event: E) -> None:
        """Invoke matching handlers in registration order.

        A handler that raises is logged and the remaining handlers still run.
        """
        event_type = type(event)
        is_quiet = event_type in _QUIET_EVENT_TYPES
        delivered = 0
        for key in (event_type, Event) if event_type is not Event else (Event,):
            handlers = self._handlers.get(key)
            if handlers:
                delivered += self._deliver(handlers, event)

        if not is_quiet:
            logger.debug("Published %s to %d handler(s)", event_type.__name__, delivered)

    def clear(self) -> None:
        """Remove all registered handlers."""
        self._handlers.clear()
        logger.debug("Cleared all event handlers")

    def handler_count(self, event_type: type[E] | None = None) -> int:
        """Return the number of handlers for ``event_type``, or in total."""
        if event_type is not None:
            return len(self._handlers.get(event_type, []))
        return sum(len(handlers) for handlers in self._handlers.values())

    @staticmethod
    def _deliver(handlers: list[_HandlerRef], event: Event) -> int:
        dead_indices: list[int] = []
        delivered = 0
        for i, handler_ref in enumerate(list(handlers)):
            handler = handler_ref.resolve()
            if handler is None:
                dead_indices.append(i)
                continue
            delivered += 1
            try:
                handler(event)
            except Exception:
                logger.exception(
                    "Handler %s raised exception for event %s",
                    _handler_name(handler),
                    type(event).__name__,
                )

        for i in reversed(dead_indices):
            handlers.pop(i)
        return delivered


class _HandlerRef:
    """Weak reference for bound methods, strong reference for plain callables."""

    __slots__ = ("_ref", "_is_weak")

    def __init__(self, handler_ref: WeakMethod | ref | Handler, is_weak: bool) -> None:
        self._ref = handler_ref
        self._is_weak = is_weak

    @classmethod
    def create(cls, handler: Handler) -> _HandlerRef:
        if hasattr(handler, "__self__") and hasattr(handler, "__func__"):
            try:
                return cls(WeakMethod(handler), is_weak=True)
            except TypeError:
                pass
        return cls(handler, is_weak=False)

    def resolve(self) -> Handler | None:
        if not self._is_weak:
            return self._ref  # type: ignore[return-value]
        return self._ref()  # type: ignore[operator]

    def matches(self, handler: Handler) -> bool:
        resolved = self.resolve()
        if resolved is None:
            return False
        return resolved == handler


def _handler_name(handler: Handler) -> str:
    if hasattr(handler, "__self__") and hasattr(handler, "__func__"):
        cls_name = type(handler.__self__).__name__
        return f"{cls_name}.{handler.__func__.__name__}"
    if hasattr(handler, "__name__"):
        return handler.__name__
    return repr(handler)


__all__ = [
    "Event",
    "EventBus",
    "Handler",
    "DocumentOpened",
    "DirectoryOpened",
    "DocumentClosed",
    "WindowClosed",
    "PathnameSet",
    "FileChangedOnDisk",
    "SaveAllCompleted",
    "SaveResponse",
    "ExportSucceeded",
    "PrintServiceCleared",
    "NoticePosted",
    "ConverterMissing",
    "BackgroundError",
    "ImageInsertRequested",
    "ImageAutoPathResults",
    "PreferencesChanged",
    "PromptRequested",
]
