"""
Core module initialization.
Exports configuration, logging utilities and error types.
"""

from offline_sync.core.config import (
    get_settings,
    Settings,
    EnvironmentMode,
    StorageBackend,
    setup_logging,
)
from offline_sync.core.errors import (
    SyncError,
    PersistenceError,
    UnknownActionTypeError,
    ConfigurationError,
)

__all__ = [
    "get_settings",
    "Settings",
    "EnvironmentMode",
    "StorageBackend",
    "setup_logging",
    "SyncError",
    "PersistenceError",
    "UnknownActionTypeError",
    "ConfigurationError",
]
