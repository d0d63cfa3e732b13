"""Presentation layer adapters.

The front-end normally owns every dialog and answers prompts over the
message channel. When the back-end hosts its own Qt event loop, the
adapters here implement the prompt capability with native dialogs.

Adapters:
    - QtPrompts: QMessageBox / QFileDialog implementation of UserPrompts
"""

from __future__ import annotations

from .qt_prompts import QtPrompts, build_filter, choice_for_clicked

__all__: list[str] = ["QtPrompts", "build_filter", "choice_for_clicked"]
