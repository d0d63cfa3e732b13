"""The "ask the user" capability used by lifecycle use cases.

Use cases await these methods and only look at the returned value; whether
the answer comes from a native dialog or a round-trip over the message
channel is up to the implementation.
"""

from __future__ import annotations

import enum
from pathlib import Path
from typing import Protocol, Sequence


class UnsavedChoice(enum.Enum):
    """Answer to the close-with-unsaved-changes prompt."""

    SAVE = "save"
    CANCEL = "cancel"
    DISCARD = "discard"


UNSAVED_BUTTONS: tuple[UnsavedChoice, ...] = (UnsavedChoice.SAVE, UnsavedChoice.CANCEL, UnsavedChoice.DISCARD)


def unsaved_message(filenames: Sequence[str]) -> tuple[str, str]:
    """Return the question and detail text of the unsaved-changes prompt."""
    count = len(filenames)
    noun = "file" if count == 1 else "files"
    listing = "\n".join(filenames)
    message = f"Do you want to save the changes you made to {count} {noun}?\n\n{listing}"
    return message, "Your changes will be lost if you don't save them."


def unsaved_choice_from_reply(value: object) -> UnsavedChoice:
    """Map a prompt answer to an :class:`UnsavedChoice`.

    Accepts the choice itself, its string value, or the index of the
    pressed button in :data:`UNSAVED_BUTTONS`. Anything else cancels.
    """
    if isinstance(value, UnsavedChoice):
        return value
    if isinstance(value, bool):
        return UnsavedChoice.CANCEL
    if isinstance(value, int):
        if 0 <= value < len(UNSAVED_BUTTONS):
            return UNSAVED_BUTTONS[value]
        return UnsavedChoice.CANCEL
    if isinstance(value, str):
        try:
            return UnsavedChoice(value.strip().lower())
        except ValueError:
            return UnsavedChoice.CANCEL
    return UnsavedChoice.CANCEL


class UserPrompts(Protocol):
    """Protocol for user-interaction providers.

    Every ``choose_*`` method returns None when the user cancels.
    """

    async def choose_save_target(self, window_id: str, default_path: Path) -> Path | None:
        """Ask where to save a document."""
        ...

    async def confirm_unsaved(self, window_id: str, filenames: Sequence[str]) -> UnsavedChoice:
        """Ask once what to do with a batch of unsaved documents."""
        ...

    async def confirm_overwrite(self, window_id: str, path: Path) -> bool:
        """Ask whether an existing file may be replaced."""
        ...

    async def choose_move_target(self, window_id: str, default_path: Path) -> Path | None:
        """Ask for a destination to move a document to."""
        ...

    async def choose_open_file(self, window_id: str, start_dir: Path | None) -> Path | None:
        """Ask for a markdown file to open."""
        ...

    async def choose_directory(self, window_id: str, start_dir: Path | None) -> Path | None:
        """Ask for a folder to open as a project."""
        ...

    async def choose_import_file(self, window_id: str, start_dir: Path | None) -> Path | None:
        """Ask for a foreign document to import."""
        ...

    async def choose_export_target(
        self, window_id: str, default_path: Path, export_type: str
    ) -> Path | None:
        """Ask where to write an exported document."""
        ...

    async def choose_image(self, window_id: str, start_dir: Path | None) -> Path | None:
        """Ask for an image file to insert."""
        ...


__all__ = [
    "UNSAVED_BUTTONS",
    "UnsavedChoice",
    "UserPrompts",
    "unsaved_choice_from_reply",
    "unsaved_message",
]
