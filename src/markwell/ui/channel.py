"""JSON-lines message channel between the front-end and the coordinator.

Each inbound line is one request object (see :mod:`markwell.ui.messages`);
each outbound line is one event, ``{"event": <name>, ...fields}``. Prompts
are round-trips: the core publishes ``prompt-requested`` and suspends until
the front-end sends a ``prompt-reply`` with the same ``prompt_id``.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
import uuid
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol, Sequence

from ..core.errors import InvalidRequest
from .application.prompts import UnsavedChoice, unsaved_choice_from_reply, unsaved_message
from .events import Event, NoticePosted, PromptRequested
from .messages import PromptReply, parse_request

if TYPE_CHECKING:  # pragma: no cover - imports for type checking only
    from .application.coordinator import AppCoordinator
    from .events import EventBus

LOGGER = logging.getLogger(__name__)

# Requests carry whole documents; asyncio's default line limit is 64 KiB.
STREAM_LIMIT = 64 * 1024 * 1024


class LineWriter(Protocol):
    """The part of :class:`asyncio.StreamWriter` the channel needs."""

    def write(self, data: bytes) -> None:
        ...


def encode_event(event: Event) -> bytes:
    payload = {"event": event.event_name(), **event.to_dict()}
    return (json.dumps(payload, default=_json_default, ensure_ascii=False) + "\n").encode("utf-8")


def _json_default(value: Any) -> Any:
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, (set, frozenset, tuple)):
        return list(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


class ChannelPrompts:
    """:class:`~markwell.ui.application.prompts.UserPrompts` over the channel.

    Pending prompts are futures keyed by prompt id; :meth:`resolve` completes
    them when the matching reply arrives. Unanswered prompts resolve as
    cancelled when :meth:`cancel_all` runs (e.g. the front-end went away).
    """

    def __init__(self, event_bus: EventBus, *, timeout: float | None = None) -> None:
        self._bus = event_bus
        self._timeout = timeout
        self._pending: dict[str, asyncio.Future[Any]] = {}
        self._closed = False

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def resolve(self, reply: PromptReply) -> bool:
        """Complete the prompt named by ``reply``; unknown ids are ignored."""
        future = self._pending.get(reply.prompt_id)
        if future is None:
            LOGGER.warning("ChannelPrompts.resolve: unknown prompt %s", reply.prompt_id)
            return False
        if not future.done():
            future.set_result(reply.value)
        return True

    def cancel_all(self) -> None:
        """Answer every open prompt as cancelled and refuse new ones."""
        self._closed = True
        for future in self._pending.values():
            if not future.done():
                future.set_result(None)

    async def choose_save_target(self, window_id: str, default_path: Path) -> Path | None:
        return _as_path(await self._ask(window_id, "save-target", {"default_path": str(default_path)}))

    async def confirm_unsaved(self, window_id: str, filenames: Sequence[str]) -> UnsavedChoice:
        message, detail = unsaved_message(filenames)
        value = await self._ask(
            window_id,
            "unsaved-changes",
            {
                "filenames": list(filenames),
                "message": message,
                "detail": detail,
                "buttons": [choice.value for choice in UnsavedChoice],
            },
        )
        return unsaved_choice_from_reply(value)

    async def confirm_overwrite(self, window_id: str, path: Path) -> bool:
        value = await self._ask(
            window_id,
            "confirm-overwrite",
            {
                "path": str(path),
                "message": f'The file "{path.name}" already exists. Do you want to replace it?',
            },
        )
        if isinstance(value, str):
            return value.strip().lower() in ("replace", "yes", "true")
        return value is True

    async def choose_move_target(self, window_id: str, default_path: Path) -> Path | None:
        return _as_path(await self._ask(window_id, "move-target", {"default_path": str(default_path)}))

    async def choose_open_file(self, window_id: str, start_dir: Path | None) -> Path | None:
        return _as_path(await self._ask(window_id, "open-file", _start(start_dir)))

    async def choose_directory(self, window_id: str, start_dir: Path | None) -> Path | None:
        return _as_path(await self._ask(window_id, "open-directory", _start(start_dir)))

    async def choose_import_file(self, window_id: str, start_dir: Path | None) -> Path | None:
        return _as_path(await self._ask(window_id, "import-file", _start(start_dir)))

    async def choose_export_target(
        self, window_id: str, default_path: Path, export_type: str
    ) -> Path | None:
        payload = {"default_path": str(default_path), "type": export_type}
        return _as_path(await self._ask(window_id, "export-target", payload))

    async def choose_image(self, window_id: str, start_dir: Path | None) -> Path | None:
        return _as_path(await self._ask(window_id, "image-file", _start(start_dir)))

    async def _ask(self, window_id: str, kind: str, payload: dict[str, Any]) -> Any:
        if self._closed:
            LOGGER.debug("ChannelPrompts: channel closed, %s prompt cancelled", kind)
            return None
        prompt_id = uuid.uuid4().hex
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._pending[prompt_id] = future
        try:
            self._bus.publish(PromptRequested(window_id=window_id, prompt_id=prompt_id, kind=kind, payload=payload))
            if self._timeout is None:
                return await future
            try:
                return await asyncio.wait_for(future, timeout=self._timeout)
            except asyncio.TimeoutError:
                LOGGER.warning("ChannelPrompts: %s prompt %s timed out", kind, prompt_id)
                return None
        finally:
            self._pending.pop(prompt_id, None)


class MessageChannel:
    """Serves requests read from ``reader`` and writes events to ``writer``.

    Every request runs in its own task so a handler waiting on a prompt
    never blocks the reply that completes it. The channel subscribes to
    every event on the bus for as long as it is alive.
    """

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: LineWriter,
        event_bus: EventBus,
        prompts: ChannelPrompts,
    ) -> None:
        self._reader = reader
        self._writer = writer
        self._bus = event_bus
        self._prompts = prompts
        self._tasks: set[asyncio.Task[Any]] = set()
        self._bus.subscribe(Event, self._forward)

    async def serve(self, coordinator: AppCoordinator) -> None:
        """Read requests until end of input, then wait for running handlers."""
        LOGGER.info("MessageChannel: serving")
        try:
            while True:
                try:
                    line = await self._reader.readline()
                except (ValueError, asyncio.LimitOverrunError) as exc:
                    # readline already discarded the oversized line
                    LOGGER.warning("MessageChannel: dropping oversized line: %s", exc)
                    self._post_invalid(
                        None,
                        InvalidRequest("Request is too large to read", details={"limit": STREAM_LIMIT}),
                    )
                    continue
                if not line:
                    break
                request = self._decode(line)
                if request is None:
                    continue
                if isinstance(request, PromptReply):
                    self._prompts.resolve(request)
                    continue
                task = asyncio.create_task(self._dispatch(coordinator, request))
                self._tasks.add(task)
                task.add_done_callback(self._tasks.discard)
        finally:
            self._prompts.cancel_all()
            if self._tasks:
                await asyncio.gather(*self._tasks, return_exceptions=True)
            self._bus.unsubscribe(Event, self._forward)
            LOGGER.info("MessageChannel: input closed")

    def _decode(self, line: bytes) -> Any:
        text = line.decode("utf-8", errors="replace").strip()
        if not text:
            return None
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as exc:
            LOGGER.warning("MessageChannel: dropping malformed line: %s", exc)
            return None
        try:
            return parse_request(payload)
        except InvalidRequest as exc:
            LOGGER.warning("MessageChannel: %s", exc)
            window_id = payload.get("window_id") if isinstance(payload, dict) else None
            self._post_invalid(window_id, exc)
            return None

    def _post_invalid(self, window_id: str | None, exc: InvalidRequest) -> None:
        self._bus.publish(
            NoticePosted(
                window_id=window_id,
                title="Invalid Request",
                message=exc.message,
                level="error",
                details=exc.to_dict(),
            )
        )

    async def _dispatch(self, coordinator: AppCoordinator, request: Any) -> None:
        try:
            await coordinator.handle(request)
        except Exception:
            LOGGER.exception("MessageChannel: %s request failed", getattr(request, "kind", "?"))

    def _forward(self, event: Event) -> None:
        self._writer.write(encode_event(event))


class _StdoutWriter:
    """Blocking line writer over the process's binary stdout."""

    def __init__(self, stream: Any | None = None) -> None:
        self._stream = stream if stream is not None else sys.stdout.buffer

    def write(self, data: bytes) -> None:
        self._stream.write(data)
        self._stream.flush()


def new_stream_reader() -> asyncio.StreamReader:
    return asyncio.StreamReader(limit=STREAM_LIMIT)


async def open_stdio_channel(event_bus: EventBus, prompts: ChannelPrompts) -> MessageChannel:
    """Build a channel reading stdin and writing stdout."""
    loop = asyncio.get_running_loop()
    reader = new_stream_reader()
    await loop.connect_read_pipe(lambda: asyncio.StreamReaderProtocol(reader), sys.stdin)
    return MessageChannel(reader, _StdoutWriter(), event_bus, prompts)


def _as_path(value: Any) -> Path | None:
    if not value or not isinstance(value, (str, Path)):
        return None
    return Path(value)


def _start(start_dir: Path | None) -> dict[str, Any]:
    return {"start_dir": str(start_dir) if start_dir is not None else None}


__all__ = [
    "ChannelPrompts",
    "LineWriter",
    "MessageChannel",
    "STREAM_LIMIT",
    "encode_event",
    "new_stream_reader",
    "open_stdio_channel",
]
