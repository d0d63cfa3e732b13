"""Native Qt implementation of the user prompt capability.

Used when the back-end runs inside a qasync event loop (``--native-dialogs``)
instead of delegating prompts to the front-end over the message channel.
PySide6 is imported lazily so the rest of the package works headless.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Iterable, Sequence

from ...core.paths import IMAGE_EXTENSIONS, IMPORT_EXTENSIONS, MARKDOWN_EXTENSIONS
from ..application.prompts import UNSAVED_BUTTONS, UnsavedChoice, unsaved_choice_from_reply, unsaved_message

if TYPE_CHECKING:  # pragma: no cover - imports for type checking only
    from PySide6.QtWidgets import QWidget

LOGGER = logging.getLogger(__name__)

UNSAVED_BUTTON_LABELS: dict[UnsavedChoice, str] = {
    UnsavedChoice.SAVE: "Save",
    UnsavedChoice.CANCEL: "Cancel",
    UnsavedChoice.DISCARD: "Don't save",
}


def build_filter(name: str, extensions: Iterable[str]) -> str:
    """Return a Qt name filter such as ``"Markdown (*.md *.markdown)"``."""
    patterns = " ".join(f"*.{ext}" for ext in extensions)
    return f"{name} ({patterns})"


def choice_for_clicked(buttons: Sequence[object], clicked: object) -> UnsavedChoice:
    """Map the button the user clicked to an :class:`UnsavedChoice`.

    ``buttons`` must be in :data:`UNSAVED_BUTTONS` order; closing the box
    without clicking any of them cancels.
    """
    for index, button in enumerate(buttons):
        if button is clicked:
            return unsaved_choice_from_reply(index)
    return UnsavedChoice.CANCEL


class QtPrompts:
    """:class:`~markwell.ui.application.prompts.UserPrompts` using Qt dialogs.

    Dialogs are modal; under qasync the event loop keeps running while
    they are open.

    Example:
        prompts = QtPrompts(parent_provider=lambda: main_window)
        target = await prompts.choose_save_target("w1", Path("~/Untitled.md"))
    """

    __slots__ = ("_parent_provider",)

    def __init__(self, *, parent_provider: Callable[[], "QWidget | None"] | None = None) -> None:
        """Initialize the provider.

        Args:
            parent_provider: Function returning the parent widget for dialogs.
        """
        self._parent_provider = parent_provider

    async def choose_save_target(self, window_id: str, default_path: Path) -> Path | None:
        return self._save_dialog("Save", default_path, build_filter("Markdown", MARKDOWN_EXTENSIONS))

    async def confirm_unsaved(self, window_id: str, filenames: Sequence[str]) -> UnsavedChoice:
        try:
            from PySide6.QtWidgets import QMessageBox
        except ImportError as exc:  # pragma: no cover
            LOGGER.warning("Qt prompts require PySide6: %s", exc)
            return UnsavedChoice.CANCEL

        message, detail = unsaved_message(filenames)
        box = QMessageBox(self._parent())
        box.setIcon(QMessageBox.Icon.Warning)
        box.setText(message)
        box.setInformativeText(detail)
        roles = {
            UnsavedChoice.SAVE: QMessageBox.ButtonRole.AcceptRole,
            UnsavedChoice.CANCEL: QMessageBox.ButtonRole.RejectRole,
            UnsavedChoice.DISCARD: QMessageBox.ButtonRole.DestructiveRole,
        }
        buttons = [box.addButton(UNSAVED_BUTTON_LABELS[choice], roles[choice]) for choice in UNSAVED_BUTTONS]
        box.setDefaultButton(buttons[0])
        box.setEscapeButton(buttons[1])
        box.exec()
        return choice_for_clicked(buttons, box.clickedButton())

    async def confirm_overwrite(self, window_id: str, path: Path) -> bool:
        try:
            from PySide6.QtWidgets import QMessageBox
        except ImportError as exc:  # pragma: no cover
            LOGGER.warning("Qt prompts require PySide6: %s", exc)
            return False

        box = QMessageBox(self._parent())
        box.setIcon(QMessageBox.Icon.Warning)
        box.setText(f'The file "{path.name}" already exists. Do you want to replace it?')
        replace = box.addButton("Replace", QMessageBox.ButtonRole.AcceptRole)
        cancel = box.addButton("Cancel", QMessageBox.ButtonRole.RejectRole)
        box.setDefaultButton(cancel)
        box.setEscapeButton(cancel)
        box.exec()
        return box.clickedButton() is replace

    async def choose_move_target(self, window_id: str, default_path: Path) -> Path | None:
        return self._save_dialog("Move to", default_path, build_filter("Markdown", MARKDOWN_EXTENSIONS))

    async def choose_open_file(self, window_id: str, start_dir: Path | None) -> Path | None:
        return self._open_dialog("Open", start_dir, build_filter("Markdown", MARKDOWN_EXTENSIONS))

    async def choose_directory(self, window_id: str, start_dir: Path | None) -> Path | None:
        try:
            from PySide6.QtWidgets import QFileDialog
        except ImportError as exc:  # pragma: no cover
            LOGGER.warning("Qt prompts require PySide6: %s", exc)
            return None

        selected = QFileDialog.getExistingDirectory(self._parent(), "Open Folder", _dir_arg(start_dir))
        return Path(selected) if selected else None

    async def choose_import_file(self, window_id: str, start_dir: Path | None) -> Path | None:
        return self._open_dialog("Import", start_dir, build_filter("All Files", IMPORT_EXTENSIONS))

    async def choose_export_target(
        self, window_id: str, default_path: Path, export_type: str
    ) -> Path | None:
        suffix = default_path.suffix.lstrip(".")
        name_filter = build_filter(export_type.upper(), (suffix,)) if suffix else ""
        return self._save_dialog("Export", default_path, name_filter)

    async def choose_image(self, window_id: str, start_dir: Path | None) -> Path | None:
        return self._open_dialog("Insert Image", start_dir, build_filter("Images", IMAGE_EXTENSIONS))

    def _save_dialog(self, title: str, default_path: Path, name_filter: str) -> Path | None:
        try:
            from PySide6.QtWidgets import QFileDialog
        except ImportError as exc:  # pragma: no cover
            LOGGER.warning("Qt prompts require PySide6: %s", exc)
            return None

        selected, _ = QFileDialog.getSaveFileName(self._parent(), title, str(default_path), name_filter)
        return Path(selected) if selected else None

    def _open_dialog(self, title: str, start_dir: Path | None, name_filter: str) -> Path | None:
        try:
            from PySide6.QtWidgets import QFileDialog
        except ImportError as exc:  # pragma: no cover
            LOGGER.warning("Qt prompts require PySide6: %s", exc)
            return None

        selected, _ = QFileDialog.getOpenFileName(self._parent(), title, _dir_arg(start_dir), name_filter)
        return Path(selected) if selected else None

    def _parent(self) -> "QWidget | None":
        return self._parent_provider() if self._parent_provider else None


def _dir_arg(start_dir: Path | None) -> str:
    return str(start_dir) if start_dir is not None else ""


__all__ = ["QtPrompts", "UNSAVED_BUTTON_LABELS", "build_filter", "choice_for_clicked"]
