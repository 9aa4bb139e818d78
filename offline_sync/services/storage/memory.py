"""
In-Memory Sync Storage

Process-local backend for tests and demos. Nothing survives a restart,
but a single instance can be handed to a second engine to simulate one.

Author: Khalil Bannouri
Version: 1.0.0
"""

import logging
from datetime import datetime
from typing import Optional

from offline_sync.core.errors import PersistenceError
from offline_sync.schemas import Action, Conflict, SyncState
from offline_sync.services.storage.base import BaseSyncStorage, PersistedState

logger = logging.getLogger(__name__)


class MemorySyncStorage(BaseSyncStorage):
    """
    Memory backend.

    Attributes:
        fail_writes: When True every save raises PersistenceError
        writes: Number of successful saves
    """

    def __init__(self, fail_writes: bool = False):
        self.fail_writes = fail_writes
        self.writes = 0
        self._actions: list[Action] = []
        self._conflicts: list[Conflict] = []
        self._sync_state = SyncState.IDLE
        self._last_sync_time: Optional[datetime] = None

    @property
    def provider_name(self) -> str:
        return "memory"

    def _check_writable(self) -> None:
        if self.fail_writes:
            raise PersistenceError("Simulated write failure", backend=self.provider_name)

    async def load(self) -> PersistedState:
        return PersistedState(
            actions=list(self._actions),
            conflicts=list(self._conflicts),
            sync_state=self._sync_state,
            last_sync_time=self._last_sync_time,
        )

    async def save_queue(self, actions: list[Action]) -> None:
        self._check_writable()
        self._actions = list(actions)
        self.writes += 1

    async def save_conflicts(self, conflicts: list[Conflict]) -> None:
        self._check_writable()
        self._conflicts = list(conflicts)
        self.writes += 1

    async def save_sync_meta(
        self,
        sync_state: SyncState,
        last_sync_time: Optional[datetime],
    ) -> None:
        self._check_writable()
        self._sync_state = sync_state
        self._last_sync_time = last_sync_time
        self.writes += 1

    async def health_check(self) -> bool:
        return not self.fail_writes
