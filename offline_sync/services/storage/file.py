"""
File Sync Storage with Concurrency Control

Persists the queue as a single JSON document on disk. Every
read-modify-write cycle holds a FileLock so a second process (a
verification script, another client instance) never observes or
produces a half-written document. Writes go to a temporary file and
are moved into place.

Author: Khalil Bannouri
Version: 1.0.0
"""

import asyncio
import json
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Optional

from filelock import FileLock, Timeout

from offline_sync.core.errors import PersistenceError
from offline_sync.schemas import Action, Conflict, SyncState
from offline_sync.services.storage.base import (
    BaseSyncStorage,
    PersistedState,
    decode_document,
    empty_document,
    encode_actions,
    encode_conflicts,
    encode_meta,
)

logger = logging.getLogger(__name__)


class FileSyncStorage(BaseSyncStorage):
    """
    JSON document backend guarded by a file lock.

    Args:
        path: Document location (parent directory is created on demand)
        lock_timeout: Seconds to wait for the lock before failing
    """

    def __init__(self, path: Path, lock_timeout: float = 30):
        self.path = Path(path)
        self.lock_path = self.path.with_name(self.path.name + ".lock")
        self.lock_timeout = lock_timeout

    @property
    def provider_name(self) -> str:
        return "file"

    def _ensure_data_dir(self) -> None:
        if not self.path.parent.exists():
            self.path.parent.mkdir(parents=True, exist_ok=True)
            logger.info(f"Created data directory: {self.path.parent}")

    def _read_document(self) -> dict[str, Any]:
        if not self.path.exists():
            return empty_document()
        with open(self.path, "r", encoding="utf-8") as f:
            return json.load(f)

    def _write_document(self, document: dict[str, Any]) -> None:
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(document, f, indent=2)
        os.replace(tmp_path, self.path)

    def _locked(self, operation: Callable[[], Any]) -> Any:
        self._ensure_data_dir()
        lock = FileLock(str(self.lock_path), timeout=self.lock_timeout)
        try:
            with lock:
                return operation()
        except Timeout:
            logger.error(f"Lock timeout on {self.path}")
            raise PersistenceError(
                f"Lock timeout ({self.lock_timeout}s) on {self.path}",
                backend=self.provider_name,
            )
        except (OSError, ValueError) as e:
            logger.error(f"Error accessing {self.path}: {e}")
            raise PersistenceError(str(e), backend=self.provider_name) from e

    def _update_section(self, key: str, value: Any) -> None:
        def operation() -> None:
            document = self._read_document()
            document[key] = value
            self._write_document(document)

        self._locked(operation)

    async def load(self) -> PersistedState:
        document = await asyncio.to_thread(self._locked, self._read_document)
        try:
            return decode_document(document)
        except ValueError as e:
            raise PersistenceError(f"Corrupt queue document: {e}", backend=self.provider_name) from e

    async def save_queue(self, actions: list[Action]) -> None:
        await asyncio.to_thread(self._update_section, "queue", encode_actions(actions))

    async def save_conflicts(self, conflicts: list[Conflict]) -> None:
        await asyncio.to_thread(self._update_section, "conflicts", encode_conflicts(conflicts))

    async def save_sync_meta(
        self,
        sync_state: SyncState,
        last_sync_time: Optional[datetime],
    ) -> None:
        await asyncio.to_thread(self._update_section, "meta", encode_meta(sync_state, last_sync_time))

    async def health_check(self) -> bool:
        try:
            await asyncio.to_thread(self._locked, lambda: None)
            return True
        except PersistenceError:
            return False

    def clear(self) -> bool:
        """Delete the document and its lock file."""
        try:
            for f in [self.path, self.lock_path]:
                if f.exists():
                    f.unlink()
            logger.info(f"Queue document cleared: {self.path}")
            return True
        except OSError as e:
            logger.error(f"Error clearing files: {e}")
            return False
