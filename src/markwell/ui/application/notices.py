"""Helpers turning caught failures into window notifications."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from ...core.errors import MarkwellError, UserCancelled
from ..events import NoticePosted

if TYPE_CHECKING:  # pragma: no cover
    from ..events import EventBus

LOGGER = logging.getLogger(__name__)


def post_failure(
    bus: EventBus,
    window_id: str,
    title: str,
    exc: BaseException,
) -> NoticePosted | None:
    """Publish ``exc`` to ``window_id`` only; cancellations are not failures.

    Returns:
        The published notice, or None when nothing was posted.
    """
    if isinstance(exc, UserCancelled):
        LOGGER.debug("%s: cancelled in window %s", title, window_id)
        return None

    if isinstance(exc, MarkwellError):
        notice = NoticePosted(
            window_id=window_id,
            title=title,
            message=exc.message,
            level=exc.severity,
            details=exc.to_dict(),
        )
    else:
        notice = NoticePosted(
            window_id=window_id,
            title=title,
            message=str(exc) or type(exc).__name__,
            level="error",
        )
    LOGGER.warning("%s in window %s: %s", title, window_id, notice.message)
    bus.publish(notice)
    return notice


def display_name(pathname: Path | str | None, fallback: str = "Untitled") -> str:
    return Path(pathname).name if pathname else fallback


__all__ = ["post_failure", "display_name"]
