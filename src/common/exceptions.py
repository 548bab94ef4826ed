"""
home-migrate Exception Hierarchy

Provides clear, actionable error messages with structured information
for logging, user feedback, and programmatic error handling.
"""

from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Union


class MigrationError(Exception):
    """
    Base exception for all home-migrate errors.

    Attributes:
        message: Human-readable error message
        code: Machine-readable error code
        details: Additional context as key-value pairs
        cause: Original exception that caused this error
        recoverable: Whether the error is recoverable
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
        recoverable: bool = True,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        self.cause = cause
        self.recoverable = recoverable

    def __str__(self):
        s = f"[{self.code}] {self.message}"
        if self.details:
            s += f" (details: {self.details})"
        if self.cause:
            s += f" caused by: {self.cause}"
        return s

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
        }


# =============================================================================
# Synchronization errors
# =============================================================================

class SyncPhase(Enum):
    """Phase of a synchronization run in which a failure happened."""
    ENUMERATION = "enumeration"
    DIRECTORY_CREATION = "directory creation"
    FILE_COPY = "file copy"
    CANCELLED = "cancelled"


class SyncError(MigrationError):
    """A synchronization run failed."""

    phase = SyncPhase.FILE_COPY

    def __init__(
        self,
        path: Optional[Union[str, Path]] = None,
        cause: Optional[BaseException] = None,
        phase: Optional[SyncPhase] = None,
        message: Optional[str] = None,
        recoverable: bool = False,
    ):
        if phase is not None:
            self.phase = phase
        self.path = Path(path) if path is not None else None

        if message is None:
            message = f"{self.phase.value} failed"
            if self.path is not None:
                message += f" for {self.path}"
            if cause is not None:
                message += f": {cause}"

        super().__init__(
            message,
            code=f"SYNC_{self.phase.name}_FAILED",
            details={"phase": self.phase.value, "path": str(self.path) if self.path else None},
            cause=cause,
            recoverable=recoverable,
        )


class EnumerationError(SyncError):
    """The source tree could not be listed."""
    phase = SyncPhase.ENUMERATION


class DirectoryCreationError(SyncError):
    """A destination directory could not be created or have its mode set."""
    phase = SyncPhase.DIRECTORY_CREATION


class FileCopyError(SyncError):
    """A file could not be opened, created, copied or chmod'ed."""
    phase = SyncPhase.FILE_COPY


class SyncCancelledError(SyncError):
    """The run was cancelled between two file copies."""
    phase = SyncPhase.CANCELLED

    def __init__(self, files_copied: int = 0):
        super().__init__(
            message=f"migration cancelled after {files_copied} files",
            recoverable=True,
        )
        self.code = "SYNC_CANCELLED"
        self.details["files_copied"] = files_copied


class SyncInProgressError(MigrationError):
    """A second run was requested while one is still active."""
    def __init__(self, destination: Union[str, Path]):
        super().__init__(
            f"A migration to {destination} is already running",
            code="SYNC_IN_PROGRESS",
            details={"destination": str(destination)},
        )


class NoDestinationError(MigrationError):
    """Migration requested without a selected drive."""
    def __init__(self, reason: str = "Please select a USB drive first"):
        super().__init__(reason, code="NO_DESTINATION")


# =============================================================================
# Configuration errors
# =============================================================================

class ConfigError(MigrationError):
    """Base for configuration errors."""
    pass


class InvalidConfigError(ConfigError):
    """Invalid configuration."""
    def __init__(self, field: str, value: Any, reason: str):
        super().__init__(
            f"Invalid configuration: {field}={value}: {reason}",
            code="INVALID_CONFIG",
            details={"field": field, "value": str(value), "reason": reason},
        )
