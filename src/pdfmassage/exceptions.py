"""Error taxonomy for pdfmassage.

Every operation either succeeds or raises exactly one of:

- InvalidLocatorError: the URL could not be used as a document source
- InvalidDocumentError: the inspection tool rejected the content
- InvalidRotationError: rotation degrees not in 90, 180, 270
- ProcessingError: an external tool (or the filesystem under it) failed

Each class has a fixed default message and an ErrorKind tag, so callers can
either catch by class or dispatch on ``err.kind``. Filesystem, process and
transport errors are chained with ``raise ... from e`` and never escape raw.
"""

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Tag identifying a taxonomy member."""

    INVALID_LOCATOR = "invalid_locator"
    INVALID_DOCUMENT = "invalid_document"
    INVALID_ROTATION = "invalid_rotation"
    PROCESSING_FAILURE = "processing_failure"
    CONFIG = "config"


class MassageError(Exception):
    """Base exception for all pdfmassage errors.

    Args:
        message: Human-readable error description. Defaults to the class's
            fixed message.
        context: Optional dict of contextual information (url, command, ...)
    """

    kind: ErrorKind
    default_message = "Document processing failed"

    def __init__(self, message: str | None = None, context: dict[str, Any] | None = None):
        super().__init__(message or self.default_message)
        self.context = context or {}

    @property
    def message(self) -> str:
        return self.args[0]

    def __str__(self) -> str:
        base = super().__str__()
        if self.context:
            details = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{base} [{details}]"
        return base


class InvalidLocatorError(MassageError):
    """Raised when a URL is malformed or could not be fetched."""

    kind = ErrorKind.INVALID_LOCATOR
    default_message = "URL provided is invalid"


class InvalidDocumentError(MassageError):
    """Raised when the inspection tool rejects a document as unreadable."""

    kind = ErrorKind.INVALID_DOCUMENT
    default_message = "Document provided is invalid"


class InvalidRotationError(MassageError):
    """Raised for rotation degrees other than 90, 180 or 270."""

    kind = ErrorKind.INVALID_ROTATION
    default_message = "Rotation degrees must be 90, 180, 270"


class ProcessingError(MassageError):
    """Raised when an external tool exits non-zero or its output is unusable."""

    kind = ErrorKind.PROCESSING_FAILURE
    default_message = "External tool failed to process the document"


class ConfigError(MassageError):
    """Raised when configuration is invalid or cannot be loaded.

    Not an operation error; only the configuration loader raises it.
    """

    kind = ErrorKind.CONFIG
    default_message = "Configuration is invalid"

    def __init__(
        self,
        message: str | None = None,
        field: str | None = None,
        suggestion: str | None = None,
    ):
        self.field = field
        self.suggestion = suggestion
        super().__init__(message)

    def __str__(self) -> str:
        parts = []
        if self.field:
            parts.append(f"In field '{self.field}'")
        parts.append(self.message)
        if self.suggestion:
            parts.append(f"Suggestion: {self.suggestion}")
        return "\n".join(parts)


# Operation failures, in the order callers usually handle them
TAXONOMY = (
    InvalidLocatorError,
    InvalidDocumentError,
    InvalidRotationError,
    ProcessingError,
)
