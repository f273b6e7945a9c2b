"""Structured error codes and error handling for savestate persistence.

Error codes follow the pattern: E{category}{number}
- E1xx: Frame validation errors
- E2xx: Storage I/O errors
- E3xx: Migration errors
- E8xx: Configuration errors

Example:
    >>> from savestate.errors import ErrorCode, SavestateError
    >>> raise SavestateError(ErrorCode.E102_BAD_MAGIC, "Header was b'FFFF'")
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class ErrorCode(Enum):
    """Standardized error codes for the savestate package."""

    # E1xx: Frame validation errors
    E100_FRAME_INVALID = "E100"
    E101_FRAME_TOO_SMALL = "E101"
    E102_BAD_MAGIC = "E102"
    E103_BAD_VERSION = "E103"
    E104_VERSION_TOO_NEW = "E104"

    # E2xx: Storage I/O errors
    E200_STORAGE_ERROR = "E200"
    E201_SERIALIZE_FAILED = "E201"
    E202_WRITE_FAILED = "E202"
    E203_FRAME_FAILED = "E203"

    # E3xx: Migration errors
    E300_MIGRATION_ERROR = "E300"
    E301_DOWNGRADE_REJECTED = "E301"
    E302_MIGRATION_STALLED = "E302"
    E303_MIGRATION_STEP_MISSING = "E303"
    E304_MIGRATION_STEP_FAILED = "E304"

    # E8xx: Configuration errors
    E800_CONFIG_ERROR = "E800"
    E801_INVALID_CONFIG_FILE = "E801"
    E802_MISSING_SERIALIZER = "E802"
    E803_NOT_INITIALIZED = "E803"


ERROR_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.E100_FRAME_INVALID: "Save file frame is invalid",
    ErrorCode.E101_FRAME_TOO_SMALL: "Save file is smaller than the frame header",
    ErrorCode.E102_BAD_MAGIC: "Save file has an unknown magic header",
    ErrorCode.E103_BAD_VERSION: "Save file header carries an invalid version",
    ErrorCode.E104_VERSION_TOO_NEW: "Save file version is newer than supported",
    ErrorCode.E200_STORAGE_ERROR: "Storage error",
    ErrorCode.E201_SERIALIZE_FAILED: "Failed to serialize savestate",
    ErrorCode.E202_WRITE_FAILED: "Failed to write save file",
    ErrorCode.E203_FRAME_FAILED: "Savestate version cannot be written to a frame header",
    ErrorCode.E300_MIGRATION_ERROR: "Migration error",
    ErrorCode.E301_DOWNGRADE_REJECTED: "Savestate is newer than the current version",
    ErrorCode.E302_MIGRATION_STALLED: "Migration step did not increase the version",
    ErrorCode.E303_MIGRATION_STEP_MISSING: "No migration step registered for version",
    ErrorCode.E304_MIGRATION_STEP_FAILED: "Migration step raised an error",
    ErrorCode.E800_CONFIG_ERROR: "Configuration error",
    ErrorCode.E801_INVALID_CONFIG_FILE: "Invalid configuration file",
    ErrorCode.E802_MISSING_SERIALIZER: "A serializer is required",
    ErrorCode.E803_NOT_INITIALIZED: "Streamer used before initialize()",
}


@dataclass
class ErrorDetails:
    """Structured error details for logging.

    Attributes:
        code: Error code enum value
        message: Human-readable error message
        details: Additional error details
        recoverable: Whether the load pipeline can recover from the error
    """

    code: ErrorCode
    message: str
    details: dict[str, Any] = field(default_factory=dict)
    recoverable: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {
            "error_code": self.code.value,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        result["recoverable"] = self.recoverable
        return result

    def to_log_dict(self) -> dict[str, Any]:
        """Convert to a flat dictionary suitable for ``logging`` extras."""
        log_dict: dict[str, Any] = {
            "error_code": self.code.value,
            "error_message": self.message,
            "recoverable": self.recoverable,
        }
        for key, value in self.details.items():
            log_dict[f"detail_{key}"] = value
        return log_dict


class SavestateError(Exception):
    """Base exception class for savestate errors with structured error codes."""

    def __init__(
        self,
        code: ErrorCode,
        message: str | None = None,
        details: dict[str, Any] | None = None,
        recoverable: bool = False,
    ) -> None:
        self.code = code
        self.message = message or ERROR_MESSAGES.get(code, "Unknown error")
        self.error_details = ErrorDetails(
            code=code,
            message=self.message,
            details=details or {},
            recoverable=recoverable,
        )
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.message}"

    def log(self, level: int = logging.ERROR, log: logging.Logger | None = None) -> None:
        """Log the error with structured details."""
        (log or logger).log(level, str(self), extra=self.error_details.to_log_dict())


# ---------------------------------------------------------------------------
# Specific exception classes
# ---------------------------------------------------------------------------


class ConfigurationError(SavestateError):
    """Fatal configuration error (missing serializer, bad config file)."""

    def __init__(
        self,
        code: ErrorCode = ErrorCode.E800_CONFIG_ERROR,
        message: str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(code, message, **kwargs)


class NotInitializedError(ConfigurationError):
    """Raised when load/save is called before ``initialize()``."""

    def __init__(self, message: str | None = None) -> None:
        super().__init__(ErrorCode.E803_NOT_INITIALIZED, message)


class FrameValidationError(SavestateError):
    """Save file framing is invalid. Recoverable inside the load pipeline."""

    def __init__(
        self,
        code: ErrorCode = ErrorCode.E100_FRAME_INVALID,
        message: str | None = None,
        reason: str | None = None,
        **kwargs: Any,
    ) -> None:
        details: dict[str, Any] = kwargs.pop("details", {})
        if reason is not None:
            details["reason"] = reason
        super().__init__(code, message, details=details, recoverable=True, **kwargs)
        self.reason = reason


class SaveFailedError(SavestateError):
    """Serialize, frame or write step of a save did not complete."""

    def __init__(
        self,
        code: ErrorCode = ErrorCode.E202_WRITE_FAILED,
        message: str | None = None,
        path: str | None = None,
        **kwargs: Any,
    ) -> None:
        details: dict[str, Any] = kwargs.pop("details", {})
        if path is not None:
            details["path"] = path
        super().__init__(code, message, details=details, **kwargs)


class MigrationError(SavestateError):
    """Migration chain or registry error."""

    def __init__(
        self,
        code: ErrorCode = ErrorCode.E300_MIGRATION_ERROR,
        message: str | None = None,
        from_version: int | None = None,
        to_version: int | None = None,
        **kwargs: Any,
    ) -> None:
        details: dict[str, Any] = kwargs.pop("details", {})
        if from_version is not None:
            details["from_version"] = from_version
        if to_version is not None:
            details["to_version"] = to_version
        super().__init__(code, message, details=details, recoverable=True, **kwargs)
