"""Application layer for document lifecycle operations.

This package contains use cases that orchestrate domain operations.
Each group of use cases encapsulates one family of user actions,
coordinating the registries, storage and converter to accomplish it.

Use Cases:
    - Save Operations: Save, Save As, Save All, Save and Close, Close
    - File Operations: Open, Drop, Link Click, Rename, Move To
    - Transfer Operations: Import, Export
    - Edit Operations: Insert Image, Image Path Autocomplete

Coordinator:
    - AppCoordinator: Facade that dispatches typed requests to use cases.

All use cases:
    - Receive dependencies via constructor injection
    - Ask the user only through the UserPrompts capability
    - Report outcomes as events addressed to the originating window
"""

from __future__ import annotations

from .prompts import UnsavedChoice, UserPrompts
from .save_ops import BatchResult, SaveCoordinator
from .file_ops import FileOperations
from .transfer_ops import PageRenderer, TransferOperations
from .edit_ops import EditOperations
from .coordinator import AppCoordinator

__all__: list[str] = [
    "UnsavedChoice",
    "UserPrompts",
    "BatchResult",
    "SaveCoordinator",
    "FileOperations",
    "PageRenderer",
    "TransferOperations",
    "EditOperations",
    "AppCoordinator",
]
