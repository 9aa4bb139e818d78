"""
Sync Storage Factory

Selects where the offline queue is persisted based on STORAGE_BACKEND.

    - memory   → MemorySyncStorage (tests, demos)
    - file     → FileSyncStorage (JSON document + file lock)
    - database → SqlSyncStorage (SQLAlchemy, SQLite by default)
    - redis    → RedisSyncStorage

Author: Khalil Bannouri
Version: 1.0.0
"""

import logging
from typing import Optional

from offline_sync.core.config import Settings, StorageBackend, get_settings
from offline_sync.services.storage.base import BaseSyncStorage, PersistedState
from offline_sync.services.storage.file import FileSyncStorage
from offline_sync.services.storage.memory import MemorySyncStorage
from offline_sync.services.storage.redis_kv import RedisSyncStorage
from offline_sync.services.storage.sql import SqlSyncStorage

logger = logging.getLogger(__name__)


def create_sync_storage(settings: Optional[Settings] = None) -> BaseSyncStorage:
    """Build the configured storage backend."""
    settings = settings or get_settings()
    backend = settings.storage_backend

    if backend == StorageBackend.MEMORY:
        logger.warning("Storage: Using MemorySyncStorage (queue is NOT durable)")
        return MemorySyncStorage()

    if backend == StorageBackend.DATABASE:
        logger.info(f"Storage: Using SqlSyncStorage ({settings.database_url})")
        return SqlSyncStorage(settings.database_url)

    if backend == StorageBackend.REDIS:
        logger.info(f"Storage: Using RedisSyncStorage ({settings.redis_url})")
        return RedisSyncStorage(settings.redis_url, prefix=settings.redis_key_prefix)

    logger.info(f"Storage: Using FileSyncStorage ({settings.queue_file_path})")
    return FileSyncStorage(settings.queue_file_path, lock_timeout=settings.file_lock_timeout)


__all__ = [
    "create_sync_storage",
    "BaseSyncStorage",
    "PersistedState",
    "MemorySyncStorage",
    "FileSyncStorage",
    "SqlSyncStorage",
    "RedisSyncStorage",
]
