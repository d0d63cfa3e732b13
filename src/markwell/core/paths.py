"""Path normalization, classification and link resolution.

Everything here is synchronous and stateless; the only I/O is ``stat`` and
directory listing, and none of it raises for a missing path.
"""

from __future__ import annotations

import enum
import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, Iterator

LOGGER = logging.getLogger(__name__)

MARKDOWN_EXTENSIONS: tuple[str, ...] = (
    "md",
    "markdown",
    "mmd",
    "mdown",
    "mdtxt",
    "mdtext",
    "text",
    "txt",
)
IMPORT_EXTENSIONS: tuple[str, ...] = (
    "html",
    "docx",
    "latex",
    "tex",
    "ltx",
    "rst",
    "rest",
    "org",
    "wiki",
    "dokuwiki",
    "textile",
    "opml",
    "epub",
)
IMAGE_EXTENSIONS: tuple[str, ...] = ("jpeg", "jpg", "png", "gif", "svg", "webp")
EXPORT_EXTENSIONS: dict[str, str] = {
    "styledHtml": ".html",
    "html": ".html",
    "pdf": ".pdf",
    "docx": ".docx",
    "odt": ".odt",
    "rtf": ".rtf",
    "epub": ".epub",
    "latex": ".tex",
    "rst": ".rst",
    "mediawiki": ".wiki",
    "textile": ".textile",
}
URL_PATTERN = re.compile(
    r"^http(s)?://([a-z0-9\-._~]+\.[a-z]{2,}|[0-9.]+|localhost|\[[a-f0-9.:]+\])(:[0-9]{1,5})?(/\S+)?",
    re.IGNORECASE,
)
_HEADING_PATTERN = re.compile(r"^(#{1,6})[ \t]+(.+?)(?:[ \t]+#+)?[ \t]*$", re.MULTILINE)
_UNSAFE_FILENAME_CHARS = re.compile(r'[\\/:*?"<>|\x00-\x1f]')
_INLINE_MARKUP = re.compile(r"[*`~]+|!?\[([^\]]*)\]\([^)]*\)")


class PathKind(enum.Enum):
    """Classification of a path on disk."""

    FILE = "file"
    DIRECTORY = "directory"
    MISSING = "missing"


class LinkKind(enum.Enum):
    """What clicking a link inside a document should do."""

    EXTERNAL = "external"
    DOCUMENT = "document"


@dataclass(slots=True, frozen=True)
class LinkTarget:
    """Resolved destination of a link click."""

    kind: LinkKind
    target: str


def normalize_path(path: Path | str) -> Path:
    """Return an absolute, normalized path without resolving symlinks."""

    expanded = os.path.expanduser(os.fspath(path))
    return Path(os.path.normpath(os.path.abspath(expanded)))


def normalize_and_resolve_path(path: Path | str) -> Path:
    """Normalize ``path`` and resolve symlinks when the target exists."""

    normalized = normalize_path(path)
    try:
        return normalized.resolve(strict=True)
    except (OSError, RuntimeError):
        return normalized


def classify(path: Path | str) -> PathKind:
    """Stat ``path`` and report whether it is a file, a directory or missing."""

    try:
        target = Path(path)
        if target.is_file():
            return PathKind.FILE
        if target.is_dir():
            return PathKind.DIRECTORY
    except (OSError, ValueError):
        LOGGER.debug("classify: unable to stat %s", path)
    return PathKind.MISSING


def has_extension(path: Path | str, extensions: tuple[str, ...]) -> bool:
    suffix = Path(path).suffix.lower().lstrip(".")
    return bool(suffix) and suffix in extensions


def is_markdown_file(path: Path | str) -> bool:
    """Return ``True`` for an existing regular file with a markdown extension."""

    return has_extension(path, MARKDOWN_EXTENSIONS) and classify(path) is PathKind.FILE


def is_markdown_file_or_link(path: Path | str) -> bool:
    """Like :func:`is_markdown_file` but also accepts symbolic links."""

    if not has_extension(path, MARKDOWN_EXTENSIONS):
        return False
    try:
        return Path(path).is_file() or Path(path).is_symlink()
    except OSError:
        return False


def is_url(href: str) -> bool:
    return bool(URL_PATTERN.match(href or ""))


def resolve_relative(base_pathname: Path | str | None, ref: Path | str) -> Path:
    """Resolve ``ref`` against the directory containing ``base_pathname``.

    Absolute references are returned unchanged. Without a base the
    reference is resolved against the current working directory.
    """

    candidate = Path(os.path.expanduser(os.fspath(ref)))
    if candidate.is_absolute():
        return candidate
    base_dir = Path(base_pathname).parent if base_pathname else Path.cwd()
    return Path(os.path.normpath(base_dir / candidate))


def resolve_link_target(base_pathname: Path | str | None, href: str) -> LinkTarget | None:
    """Decide whether ``href`` opens externally, opens a document, or does nothing."""

    if is_url(href):
        return LinkTarget(LinkKind.EXTERNAL, href)
    candidate = Path(os.path.expanduser(href))
    if candidate.is_absolute():
        if has_extension(candidate, MARKDOWN_EXTENSIONS):
            return LinkTarget(LinkKind.DOCUMENT, str(candidate))
        return None
    if base_pathname is None:
        return None
    resolved = resolve_relative(base_pathname, href)
    if is_markdown_file(resolved):
        return LinkTarget(LinkKind.DOCUMENT, str(resolved))
    return None


def search_candidates(
    directory: Path | str,
    prefix: str,
    *,
    list_entries: Callable[[Path], Iterable[str]] | None = None,
) -> Iterator[str]:
    """Yield names of immediate entries of ``directory`` starting with ``prefix``.

    The match is case-sensitive. ``list_entries`` lets callers route the
    listing through a storage adapter; listing errors of any kind end the
    sequence instead of propagating to the display surface.
    """

    try:
        if list_entries is not None:
            names: Iterable[str] = list_entries(Path(directory))
        else:
            with os.scandir(directory) as entries:
                names = [entry.name for entry in entries]
    except Exception as exc:
        LOGGER.debug("search_candidates: cannot list %s: %s", directory, exc)
        return
    for name in names:
        if name.startswith(prefix):
            yield name


def image_path_candidates(
    pathname: Path | str | None,
    src: str,
    *,
    list_entries: Callable[[Path], Iterable[str]] | None = None,
) -> list[str]:
    """Return autocomplete candidates for an image reference being typed."""

    if not src or src.endswith(("/", "\\", ".")):
        return []
    full_path = resolve_relative(pathname, src)
    return sorted(search_candidates(full_path.parent, full_path.name, list_entries=list_entries))


def recommend_title(markdown: str | None) -> str:
    """Suggest a filename stem from the highest-level heading in ``markdown``.

    Returns an empty string when the document has no usable heading.
    """

    if not markdown:
        return ""
    best: tuple[int, str] | None = None
    for match in _HEADING_PATTERN.finditer(markdown):
        level = len(match.group(1))
        if best is None or level < best[0]:
            best = (level, match.group(2))
    if best is None:
        return ""
    title = _INLINE_MARKUP.sub(lambda m: m.group(1) or "", best[1])
    title = _UNSAFE_FILENAME_CHARS.sub("", title).strip().strip(".")
    return title


__all__ = [
    "MARKDOWN_EXTENSIONS",
    "IMPORT_EXTENSIONS",
    "IMAGE_EXTENSIONS",
    "EXPORT_EXTENSIONS",
    "URL_PATTERN",
    "PathKind",
    "LinkKind",
    "LinkTarget",
    "normalize_path",
    "normalize_and_resolve_path",
    "classify",
    "has_extension",
    "is_markdown_file",
    "is_markdown_file_or_link",
    "is_url",
    "resolve_relative",
    "resolve_link_target",
    "search_candidates",
    "image_path_candidates",
    "recommend_title",
]
