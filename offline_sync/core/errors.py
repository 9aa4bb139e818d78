"""
Sync Engine Exceptions

Per-Action failures (auth, transient, conflict, rejection) are reported
as outcomes, not exceptions. The types here cover internal faults that
must end a drain pass, plus misconfiguration.

Author: Khalil Bannouri
Version: 1.0.0
"""

from typing import Optional


class SyncError(Exception):
    """Base class for all offline sync errors."""


class PersistenceError(SyncError):
    """
    Raised by a storage backend when the queue or conflict list
    could not be read or written.

    Attributes:
        backend: Provider name of the storage backend that failed
    """

    def __init__(self, message: str, backend: Optional[str] = None):
        super().__init__(message)
        self.backend = backend

    def __str__(self) -> str:
        base = super().__str__()
        if self.backend:
            return f"[{self.backend}] {base}"
        return base


class UnknownActionTypeError(SyncError):
    """Raised when an Action type has no registered handler."""


class ConfigurationError(SyncError):
    """Raised when settings are inconsistent with the selected services."""
