"""Core helpers shared by every layer.

This package holds the stateless path resolver and the error taxonomy
used across services, registries and use cases.
"""

from .errors import (
    ConverterFailed,
    ConverterUnavailable,
    DestinationExists,
    DocumentNotFound,
    DuplicateDocument,
    InvalidRequest,
    IOFailure,
    MarkwellError,
    UserCancelled,
)
from .paths import LinkKind, LinkTarget, PathKind

__all__ = [
    "ConverterFailed",
    "ConverterUnavailable",
    "DestinationExists",
    "DocumentNotFound",
    "DuplicateDocument",
    "InvalidRequest",
    "IOFailure",
    "MarkwellError",
    "UserCancelled",
    "LinkKind",
    "LinkTarget",
    "PathKind",
]
