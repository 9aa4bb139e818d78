"""
Sync Storage Abstract Base Class

Defines the interface for persisting the offline queue and the conflict
list so both survive a process restart. Every backend raises
PersistenceError when a read or write fails; the sync engine treats that
as an internal fault.

Author: Khalil Bannouri
Version: 1.0.0
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from offline_sync.schemas import Action, Conflict, SyncState

DOCUMENT_VERSION = 1


@dataclass
class PersistedState:
    """
    Everything a backend restores on startup.

    Attributes:
        actions: Queue contents in stored order
        conflicts: Unresolved conflicts in detection order
        sync_state: Last recorded drain state
        last_sync_time: End of the last drain pass
    """
    actions: list[Action] = field(default_factory=list)
    conflicts: list[Conflict] = field(default_factory=list)
    sync_state: SyncState = SyncState.IDLE
    last_sync_time: Optional[datetime] = None


# =============================================================================
# DOCUMENT ENCODING (shared by document-style backends)
# =============================================================================

def encode_actions(actions: list[Action]) -> list[dict[str, Any]]:
    return [action.model_dump(mode="json") for action in actions]


def encode_conflicts(conflicts: list[Conflict]) -> list[dict[str, Any]]:
    return [conflict.model_dump(mode="json") for conflict in conflicts]


def encode_meta(sync_state: SyncState, last_sync_time: Optional[datetime]) -> dict[str, Any]:
    return {
        "sync_state": sync_state.value,
        "last_sync_time": last_sync_time.isoformat() if last_sync_time else None,
    }


def decode_document(document: dict[str, Any]) -> PersistedState:
    """Rebuild a PersistedState from a JSON document."""
    meta = document.get("meta") or {}
    last_sync = meta.get("last_sync_time")
    return PersistedState(
        actions=[Action.model_validate(a) for a in document.get("queue", [])],
        conflicts=[Conflict.model_validate(c) for c in document.get("conflicts", [])],
        sync_state=SyncState(meta.get("sync_state", SyncState.IDLE.value)),
        last_sync_time=datetime.fromisoformat(last_sync) if last_sync else None,
    )


def empty_document() -> dict[str, Any]:
    return {
        "version": DOCUMENT_VERSION,
        "queue": [],
        "conflicts": [],
        "meta": encode_meta(SyncState.IDLE, None),
    }


class BaseSyncStorage(ABC):
    """
    Abstract base class for queue persistence.

    Example:
        >>> storage = create_sync_storage(settings)
        >>> state = await storage.load()
        >>> await storage.save_queue(queue.snapshot())
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the backend name (e.g., "memory", "file")."""
        pass

    @abstractmethod
    async def load(self) -> PersistedState:
        """Read the persisted queue, conflicts and sync metadata."""
        pass

    @abstractmethod
    async def save_queue(self, actions: list[Action]) -> None:
        """Replace the persisted queue with `actions` (in order)."""
        pass

    @abstractmethod
    async def save_conflicts(self, conflicts: list[Conflict]) -> None:
        """Replace the persisted conflict list."""
        pass

    @abstractmethod
    async def save_sync_meta(
        self,
        sync_state: SyncState,
        last_sync_time: Optional[datetime],
    ) -> None:
        """Persist drain state and the last sync time."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check that the backend is usable."""
        pass

    async def close(self) -> None:
        """Release connections or handles."""
        return None
