"""Typed inbound requests sent by the presentation layer.

Each request is a frozen dataclass addressed by ``window_id`` and tagged
with a wire ``kind``. :func:`parse_request` turns a decoded JSON object
into the matching request, accepting both snake_case and camelCase keys.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Any, Callable, ClassVar, Mapping

from ..core.errors import InvalidRequest
from ..utils.file_io import SaveOptions

_MISSING = object()


@dataclass(frozen=True, slots=True)
class Request:
    """Base class for all inbound requests."""

    window_id: str

    kind: ClassVar[str] = ""
    aliases: ClassVar[Mapping[str, tuple[str, ...]]] = {}
    defaults: ClassVar[Mapping[str, Any]] = {}

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Request":
        values: dict[str, Any] = {}
        for item in dataclasses.fields(cls):
            raw = _lookup(payload, item.name, cls.aliases.get(item.name, ()))
            if raw is _MISSING and item.name in cls.defaults:
                raw = cls.defaults[item.name]
            if raw is _MISSING:
                if item.default is dataclasses.MISSING and item.default_factory is dataclasses.MISSING:
                    raise InvalidRequest(
                        f"{cls.kind!r} request is missing {item.name!r}",
                        details={"kind": cls.kind, "field": item.name},
                    )
                continue
            convert = _CONVERTERS.get(item.name)
            values[item.name] = convert(raw, payload) if convert is not None else raw
        return cls(**values)

    def to_dict(self) -> dict[str, Any]:
        payload = {"kind": self.kind}
        for item in dataclasses.fields(self):
            value = getattr(self, item.name)
            if isinstance(value, SaveOptions):
                value = dataclasses.asdict(value)
            elif isinstance(value, tuple):
                value = [entry.to_dict() if isinstance(entry, Request) else entry for entry in value]
            payload[item.name] = value
        return payload


# ----------------------------------------------------------------------
# Saving & closing
# ----------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SaveRequest(Request):
    """Write one document's content, prompting for a target when untitled."""

    document_id: str
    content: str
    pathname: str | None = None
    options: SaveOptions | None = None

    kind: ClassVar[str] = "save"
    aliases: ClassVar[Mapping[str, tuple[str, ...]]] = {
        "document_id": ("id",),
        "content": ("markdown",),
    }


@dataclass(frozen=True, slots=True)
class SaveAsRequest(SaveRequest):
    kind: ClassVar[str] = "save-as"


@dataclass(frozen=True, slots=True)
class SaveAllRequest(Request):
    files: tuple[SaveRequest, ...] = ()

    kind: ClassVar[str] = "save-all"


@dataclass(frozen=True, slots=True)
class SaveAndCloseRequest(Request):
    """Negotiate closing dirty documents; ``single`` is True for one tab."""

    files: tuple[SaveRequest, ...] = ()
    single: bool = False

    kind: ClassVar[str] = "save-and-close"
    aliases: ClassVar[Mapping[str, tuple[str, ...]]] = {"single": ("is_single", "isSingle")}


@dataclass(frozen=True, slots=True)
class CloseConfirmRequest(Request):
    """Negotiate closing the whole window while ``files`` are dirty."""

    files: tuple[SaveRequest, ...] = ()

    kind: ClassVar[str] = "close-confirm"


@dataclass(frozen=True, slots=True)
class CloseTabRequest(Request):
    document_ids: tuple[str, ...] = ()

    kind: ClassVar[str] = "close-tab"
    aliases: ClassVar[Mapping[str, tuple[str, ...]]] = {"document_ids": ("ids", "id")}


@dataclass(frozen=True, slots=True)
class CloseWindowRequest(Request):
    kind: ClassVar[str] = "close-window"


# ----------------------------------------------------------------------
# Document registration
# ----------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class NewTabRequest(Request):
    """Register an untitled document the front-end just created."""

    document_id: str | None = None

    kind: ClassVar[str] = "new-tab"
    aliases: ClassVar[Mapping[str, tuple[str, ...]]] = {"document_id": ("id",)}


@dataclass(frozen=True, slots=True)
class SetDirtyRequest(Request):
    document_id: str
    dirty: bool = True

    kind: ClassVar[str] = "set-dirty"
    aliases: ClassVar[Mapping[str, tuple[str, ...]]] = {"document_id": ("id",)}


# ----------------------------------------------------------------------
# Export & import
# ----------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ExportRequest(Request):
    """Export ``markdown`` as ``type``; ``content`` is pre-rendered output if any."""

    type: str
    content: str | None = None
    pathname: str | None = None
    markdown: str = ""

    kind: ClassVar[str] = "export"


@dataclass(frozen=True, slots=True)
class ImportRequest(Request):
    pathname: str | None = None

    kind: ClassVar[str] = "import"


# ----------------------------------------------------------------------
# Rename & move
# ----------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class RenameRequest(Request):
    document_id: str
    pathname: str
    new_pathname: str

    kind: ClassVar[str] = "rename"
    aliases: ClassVar[Mapping[str, tuple[str, ...]]] = {"document_id": ("id",)}


@dataclass(frozen=True, slots=True)
class MoveToRequest(Request):
    document_id: str
    pathname: str

    kind: ClassVar[str] = "move-to"
    aliases: ClassVar[Mapping[str, tuple[str, ...]]] = {"document_id": ("id",)}


# ----------------------------------------------------------------------
# Opening
# ----------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class OpenFileRequest(Request):
    kind: ClassVar[str] = "open-file"


@dataclass(frozen=True, slots=True)
class OpenFolderRequest(Request):
    kind: ClassVar[str] = "open-folder"


@dataclass(frozen=True, slots=True)
class OpenProjectRequest(Request):
    kind: ClassVar[str] = "open-project"


@dataclass(frozen=True, slots=True)
class OpenPathRequest(Request):
    pathname: str

    kind: ClassVar[str] = "open-path"


@dataclass(frozen=True, slots=True)
class DropRequest(Request):
    paths: tuple[str, ...] = ()

    kind: ClassVar[str] = "drop"
    aliases: ClassVar[Mapping[str, tuple[str, ...]]] = {"paths": ("files", "file_list", "fileList")}


@dataclass(frozen=True, slots=True)
class LinkClickRequest(Request):
    """A link inside the document at ``pathname`` was clicked."""

    href: str
    pathname: str | None = None

    kind: ClassVar[str] = "link-click"


# ----------------------------------------------------------------------
# Editing helpers & preferences
# ----------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class InsertImageRequest(Request):
    type: str

    kind: ClassVar[str] = "insert-image"


@dataclass(frozen=True, slots=True)
class ImageAutoPathRequest(Request):
    src: str
    pathname: str | None = None

    kind: ClassVar[str] = "image-auto-path"


@dataclass(frozen=True, slots=True)
class SetAutoSaveRequest(Request):
    enabled: bool

    kind: ClassVar[str] = "set-auto-save"
    aliases: ClassVar[Mapping[str, tuple[str, ...]]] = {"enabled": ("auto_save", "autoSave")}


@dataclass(frozen=True, slots=True)
class ClearRecentFilesRequest(Request):
    kind: ClassVar[str] = "clear-recent-files"


@dataclass(frozen=True, slots=True)
class PromptReply(Request):
    """Answer to a :class:`~markwell.ui.events.PromptRequested` event."""

    prompt_id: str
    value: Any = None

    kind: ClassVar[str] = "prompt-reply"
    defaults: ClassVar[Mapping[str, Any]] = {"window_id": ""}


REQUEST_TYPES: dict[str, type[Request]] = {
    cls.kind: cls
    for cls in (
        SaveRequest,
        SaveAsRequest,
        SaveAllRequest,
        SaveAndCloseRequest,
        CloseConfirmRequest,
        CloseTabRequest,
        CloseWindowRequest,
        NewTabRequest,
        SetDirtyRequest,
        ExportRequest,
        ImportRequest,
        RenameRequest,
        MoveToRequest,
        OpenFileRequest,
        OpenFolderRequest,
        OpenProjectRequest,
        OpenPathRequest,
        DropRequest,
        LinkClickRequest,
        InsertImageRequest,
        ImageAutoPathRequest,
        SetAutoSaveRequest,
        ClearRecentFilesRequest,
        PromptReply,
    )
}


def parse_request(payload: Mapping[str, Any]) -> Request:
    """Build the request named by ``payload["kind"]``.

    Raises:
        InvalidRequest: The payload is not an object, names an unknown
            kind, or lacks a required field.
    """
    if not isinstance(payload, Mapping):
        raise InvalidRequest("Request must be a JSON object")
    kind = payload.get("kind")
    request_type = REQUEST_TYPES.get(kind) if isinstance(kind, str) else None
    if request_type is None:
        raise InvalidRequest(f"Unknown request kind: {kind!r}", details={"kind": kind})
    return request_type.from_payload(payload)


def _lookup(payload: Mapping[str, Any], name: str, aliases: tuple[str, ...]) -> Any:
    for key in (name, _camel(name), *aliases):
        if key in payload:
            return payload[key]
    return _MISSING


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def _save_requests(raw: Any, payload: Mapping[str, Any]) -> tuple[SaveRequest, ...]:
    if not isinstance(raw, (list, tuple)):
        raise InvalidRequest("'files' must be a list")
    window_id = _lookup(payload, "window_id", ())
    items: list[SaveRequest] = []
    for entry in raw:
        if not isinstance(entry, Mapping):
            raise InvalidRequest("Each entry of 'files' must be an object")
        merged = {**entry, "window_id": window_id}
        items.append(SaveRequest.from_payload(merged))  # type: ignore[arg-type]
    return tuple(items)


def _string_tuple(raw: Any, payload: Mapping[str, Any]) -> tuple[str, ...]:
    if isinstance(raw, str):
        return (raw,)
    if not isinstance(raw, (list, tuple)):
        raise InvalidRequest("Expected a list of strings")
    return tuple(str(entry) for entry in raw)


_CONVERTERS: dict[str, Callable[[Any, Mapping[str, Any]], Any]] = {
    "options": lambda raw, _payload: SaveOptions.from_mapping(raw) if raw else None,
    "files": _save_requests,
    "paths": _string_tuple,
    "document_ids": _string_tuple,
    "single": lambda raw, _payload: bool(raw),
    "dirty": lambda raw, _payload: bool(raw),
    "enabled": lambda raw, _payload: bool(raw),
}


__all__ = [
    "Request",
    "SaveRequest",
    "SaveAsRequest",
    "SaveAllRequest",
    "SaveAndCloseRequest",
    "CloseConfirmRequest",
    "CloseTabRequest",
    "CloseWindowRequest",
    "NewTabRequest",
    "SetDirtyRequest",
    "ExportRequest",
    "ImportRequest",
    "RenameRequest",
    "MoveToRequest",
    "OpenFileRequest",
    "OpenFolderRequest",
    "OpenProjectRequest",
    "OpenPathRequest",
    "DropRequest",
    "LinkClickRequest",
    "InsertImageRequest",
    "ImageAutoPathRequest",
    "SetAutoSaveRequest",
    "ClearRecentFilesRequest",
    "PromptReply",
    "REQUEST_TYPES",
    "parse_request",
]
