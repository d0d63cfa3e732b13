"""Encoding helpers that turn editor text into on-disk markdown bytes and back."""

from __future__ import annotations

import codecs
import locale
from dataclasses import dataclass
from typing import Any, Mapping

__all__ = [
    "SaveOptions",
    "DecodedText",
    "encode_markdown",
    "decode_markdown",
    "detect_line_ending",
]

# UTF-32 first: its little-endian BOM starts with the UTF-16 one.
_BOM_MAP: dict[bytes, str] = {
    codecs.BOM_UTF8: "utf-8",
    codecs.BOM_UTF32_LE: "utf-32-le",
    codecs.BOM_UTF32_BE: "utf-32-be",
    codecs.BOM_UTF16_LE: "utf-16-le",
    codecs.BOM_UTF16_BE: "utf-16-be",
}
_BOM_FOR_ENCODING: dict[str, bytes] = {encoding: bom for bom, encoding in _BOM_MAP.items()}
_LINE_ENDINGS: dict[str, str] = {"lf": "\n", "crlf": "\r\n", "cr": "\r"}


@dataclass(slots=True, frozen=True)
class SaveOptions:
    """Options controlling how markdown text is written to disk."""

    encoding: str = "utf-8"
    line_ending: str = "lf"
    adjust_line_ending_on_save: bool = False
    trim_trailing_newline: bool = False
    is_bom: bool = False

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any] | None) -> "SaveOptions":
        """Build options from a loosely typed payload (camelCase or snake_case keys)."""

        if not payload:
            return cls()
        data = dict(payload)

        def pick(*keys: str, default: Any) -> Any:
            for key in keys:
                if key in data and data[key] is not None:
                    return data[key]
            return default

        line_ending = str(pick("line_ending", "lineEnding", default="lf")).lower()
        if line_ending not in _LINE_ENDINGS:
            line_ending = "lf"
        return cls(
            encoding=str(pick("encoding", default="utf-8")),
            line_ending=line_ending,
            adjust_line_ending_on_save=bool(
                pick("adjust_line_ending_on_save", "adjustLineEndingOnSave", default=False)
            ),
            trim_trailing_newline=bool(pick("trim_trailing_newline", "trimTrailingNewline", default=False)),
            is_bom=bool(pick("is_bom", "isBom", default=False)),
        )


@dataclass(slots=True, frozen=True)
class DecodedText:
    """Text read from disk together with the format details that were detected."""

    text: str
    encoding: str
    line_ending: str
    is_bom: bool


def encode_markdown(content: str, options: SaveOptions | None = None) -> bytes:
    """Encode ``content`` into bytes following ``options``.

    Newlines are only rewritten when ``adjust_line_ending_on_save`` is set;
    otherwise the editor text is written as-is.
    """

    opts = options or SaveOptions()
    text = content
    if opts.adjust_line_ending_on_save:
        text = _apply_line_ending(text, opts.line_ending)
    if opts.trim_trailing_newline:
        text = text.rstrip("\r\n") + _LINE_ENDINGS.get(opts.line_ending, "\n")

    encoding = opts.encoding.lower()
    try:
        payload = text.encode(encoding)
    except LookupError as exc:
        raise ValueError(f"Unsupported encoding: {opts.encoding!r}") from exc
    if opts.is_bom:
        bom = _BOM_FOR_ENCODING.get(encoding)
        if bom is not None and not payload.startswith(bom):
            payload = bom + payload
    return payload


def decode_markdown(raw: bytes, *, encoding: str | None = None) -> DecodedText:
    """Decode bytes read from disk, detecting BOM, encoding and line ending."""

    is_bom = False
    detected = encoding
    body = raw
    for bom, candidate in _BOM_MAP.items():
        if raw.startswith(bom):
            is_bom = True
            detected = detected or candidate
            body = raw[len(bom):]
            break
    detected = detected or _detect_encoding(body)
    text = body.decode(detected, errors="replace")
    line_ending = detect_line_ending(text)
    return DecodedText(text=_normalize_newlines(text), encoding=detected, line_ending=line_ending, is_bom=is_bom)


def detect_line_ending(text: str) -> str:
    """Return ``"crlf"``, ``"cr"`` or ``"lf"`` for the first newline found."""

    index = text.find("\n")
    if index > 0 and text[index - 1] == "\r":
        return "crlf"
    if index == -1 and "\r" in text:
        return "cr"
    return "lf"


def _detect_encoding(raw: bytes) -> str:
    preferred = locale.getpreferredencoding(False) or "utf-8"
    seen: set[str] = set()
    for candidate in ("utf-8", preferred, "latin-1"):
        if not candidate or candidate in seen:
            continue
        seen.add(candidate)
        try:
            raw.decode(candidate)
            return candidate
        except UnicodeDecodeError:
            continue
    return "utf-8"


def _normalize_newlines(text: str) -> str:
    if "\r" not in text:
        return text
    text = text.replace("\r\n", "\n")
    return text.replace("\r", "\n")


def _apply_line_ending(content: str, line_ending: str) -> str:
    normalized = _normalize_newlines(content)
    newline = _LINE_ENDINGS.get(line_ending)
    if newline is None:
        raise ValueError(f"Unsupported line ending: {line_ending!r}")
    if newline == "\n":
        return normalized
    return normalized.replace("\n", newline)
