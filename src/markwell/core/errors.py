"""Error taxonomy for document lifecycle operations.

Every failure the coordinator can surface to a window derives from
:class:`MarkwellError`, which serializes to the payload carried by
notification events.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar


class ErrorCode:
    """Constants for machine-readable error codes."""

    IO_FAILURE = "io_failure"
    CONVERTER_UNAVAILABLE = "converter_unavailable"
    CONVERTER_FAILED = "converter_failed"
    DESTINATION_EXISTS = "destination_exists"
    USER_CANCELLED = "user_cancelled"
    DOCUMENT_NOT_FOUND = "document_not_found"
    DUPLICATE_DOCUMENT = "duplicate_document"
    INVALID_REQUEST = "invalid_request"


@dataclass(eq=False)
class MarkwellError(Exception):
    """Base exception for all lifecycle errors.

    Attributes:
        message: Human-readable error description.
        details: Additional structured error information.
    """

    message: str
    details: dict[str, Any] = field(default_factory=dict)

    error_code: ClassVar[str] = "internal_error"
    # Expected conditions are reported as warnings, not error dialogs.
    severity: ClassVar[str] = "error"

    def __post_init__(self) -> None:
        Exception.__init__(self, self.message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for notification payloads."""
        result: dict[str, Any] = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = dict(self.details)
        return result

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"


@dataclass(eq=False)
class IOFailure(MarkwellError):
    """A read, write or rename at the storage boundary failed."""

    path: str | None = None

    error_code: ClassVar[str] = ErrorCode.IO_FAILURE

    def to_dict(self) -> dict[str, Any]:
        result = MarkwellError.to_dict(self)
        if self.path is not None:
            result["path"] = self.path
        return result


@dataclass(eq=False)
class ConverterUnavailable(MarkwellError):
    """The external converter tool is not installed."""

    message: str = "Install pandoc before you want to import files."

    error_code: ClassVar[str] = ErrorCode.CONVERTER_UNAVAILABLE
    severity: ClassVar[str] = "warning"


@dataclass(eq=False)
class ConverterFailed(MarkwellError):
    """The converter ran but exited non-zero or produced unusable output."""

    exit_code: int | None = None

    error_code: ClassVar[str] = ErrorCode.CONVERTER_FAILED


@dataclass(eq=False)
class DestinationExists(MarkwellError):
    """A rename or save-as target is already an existing file."""

    path: str | None = None

    error_code: ClassVar[str] = ErrorCode.DESTINATION_EXISTS
    severity: ClassVar[str] = "warning"


@dataclass(eq=False)
class UserCancelled(MarkwellError):
    """The user dismissed a prompt; a normal terminal outcome."""

    message: str = "Cancelled by user"

    error_code: ClassVar[str] = ErrorCode.USER_CANCELLED
    severity: ClassVar[str] = "info"


@dataclass(eq=False)
class DocumentNotFound(MarkwellError):
    """No document with the given id is open in the given window."""

    error_code: ClassVar[str] = ErrorCode.DOCUMENT_NOT_FOUND


@dataclass(eq=False)
class DuplicateDocument(MarkwellError):
    """Another document of the same window already owns the pathname."""

    error_code: ClassVar[str] = ErrorCode.DUPLICATE_DOCUMENT


@dataclass(eq=False)
class InvalidRequest(MarkwellError):
    """An inbound message could not be parsed into a known request."""

    error_code: ClassVar[str] = ErrorCode.INVALID_REQUEST


__all__ = [
    "ErrorCode",
    "MarkwellError",
    "IOFailure",
    "ConverterUnavailable",
    "ConverterFailed",
    "DestinationExists",
    "UserCancelled",
    "DocumentNotFound",
    "DuplicateDocument",
    "InvalidRequest",
]
