"""
home-migrate Common Utilities

Shared error types, decorators and logging setup.
"""

from .exceptions import (
    MigrationError, SyncPhase, SyncError, EnumerationError,
    DirectoryCreationError, FileCopyError, SyncCancelledError,
    SyncInProgressError, NoDestinationError, ConfigError, InvalidConfigError,
)
from .decorators import handle_errors, timed
from .logging_config import setup_logging, migration_context, JSONFormatter

__all__ = [
    # Exceptions
    "MigrationError", "SyncPhase", "SyncError", "EnumerationError",
    "DirectoryCreationError", "FileCopyError", "SyncCancelledError",
    "SyncInProgressError", "NoDestinationError", "ConfigError", "InvalidConfigError",
    # Decorators
    "handle_errors", "timed",
    # Logging
    "setup_logging", "migration_context", "JSONFormatter",
]
