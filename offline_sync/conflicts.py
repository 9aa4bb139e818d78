"""
Conflict Store

Holds Actions whose replay revealed that the server changed the target
entity after the Action was created. A conflict exists only until it is
resolved; resolution itself is driven by the sync engine because it
touches the queue and local state.

Author: Khalil Bannouri
Version: 1.0.0
"""

from typing import Any, Iterable, Optional

from offline_sync.schemas import Action, Conflict, utc_now


class ConflictStore:
    """Unresolved conflicts keyed by Action id, kept in detection order."""

    def __init__(self, conflicts: Optional[Iterable[Conflict]] = None):
        self._conflicts: dict[str, Conflict] = {}
        for conflict in conflicts or ():
            self._conflicts[conflict.action_id] = conflict

    def __len__(self) -> int:
        return len(self._conflicts)

    def __contains__(self, action_id: object) -> bool:
        return action_id in self._conflicts

    def add_conflict(
        self,
        action: Action,
        local_snapshot: Optional[dict[str, Any]],
        server_snapshot: dict[str, Any],
    ) -> Conflict:
        """Park an Action that was removed from the active queue."""
        if action.id in self._conflicts:
            raise ValueError(f"Conflict for {action.id} already recorded")

        conflict = Conflict(
            action_id=action.id,
            action=action,
            local_snapshot=local_snapshot,
            server_snapshot=server_snapshot,
            detected_at=utc_now(),
        )
        self._conflicts[action.id] = conflict
        return conflict

    def get(self, action_id: str) -> Optional[Conflict]:
        return self._conflicts.get(action_id)

    def remove(self, action_id: str) -> Optional[Conflict]:
        """Discard a conflict record. Returns None if it was already gone."""
        return self._conflicts.pop(action_id, None)

    def list_conflicts(self) -> list[Conflict]:
        return list(self._conflicts.values())

    def clear(self) -> None:
        self._conflicts.clear()
