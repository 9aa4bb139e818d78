"""
Offline Queue

Ordered, priority-aware collection of pending Actions. Ordering is
priority-major and insertion-order-minor: a new Action is placed in
front of the first Action of strictly lower priority, so FIFO order is
preserved within a tier.

The queue is a plain in-memory structure. The sync engine serializes
every mutation under its lock and writes the result through to storage.

Author: Khalil Bannouri
Version: 1.0.0
"""

import logging
from datetime import datetime
from typing import Any, Iterable, Iterator, Optional

from offline_sync.schemas import (
    Action,
    ActionType,
    Priority,
    QueueState,
    SyncState,
    default_priority,
    new_action_id,
    utc_now,
)

logger = logging.getLogger(__name__)


def _drain_order(action: Action) -> int:
    return action.priority.rank


class OfflineQueue:
    """
    Priority-ordered queue of pending Actions.

    Example:
        >>> queue = OfflineQueue()
        >>> low = queue.enqueue(ActionType.CLEAR_CART, {}, Priority.LOW)
        >>> high = queue.enqueue(ActionType.CREATE_ORDER, {}, Priority.HIGH)
        >>> [a.id for a in queue.snapshot()] == [high.id, low.id]
        True
    """

    def __init__(self, actions: Optional[Iterable[Action]] = None):
        self._actions: list[Action] = []
        for action in actions or ():
            self.insert(action)

    def __len__(self) -> int:
        return len(self._actions)

    def __contains__(self, action_id: object) -> bool:
        return any(a.id == action_id for a in self._actions)

    def __iter__(self) -> Iterator[Action]:
        return iter(list(self._actions))

    @property
    def is_empty(self) -> bool:
        return not self._actions

    def enqueue(
        self,
        action_type: ActionType,
        payload: Optional[dict[str, Any]] = None,
        priority: Optional[Priority] = None,
        max_retries: int = 3,
        metadata: Optional[dict[str, Any]] = None,
    ) -> Action:
        """
        Create a new Action and insert it in drain order.

        Args:
            action_type: Mutation type
            payload: Opaque domain data
            priority: Drain tier (defaults by action type)
            max_retries: Attempt budget
            metadata: Correlation data such as a local order id

        Returns:
            Action: The queued Action with its new id and baseline timestamp
        """
        action = Action(
            id=new_action_id(),
            type=action_type,
            payload=dict(payload or {}),
            created_at=utc_now(),
            priority=priority or default_priority(action_type),
            retry_count=0,
            max_retries=max_retries,
            metadata=dict(metadata) if metadata else None,
        )
        self.insert(action)
        return action

    def insert(self, action: Action) -> None:
        """Insert an existing Action, keeping the queue ordered."""
        if action.id in self:
            raise ValueError(f"Action {action.id} is already queued")

        rank = action.priority.rank
        for index, queued in enumerate(self._actions):
            if queued.priority.rank > rank:
                self._actions.insert(index, action)
                return
        self._actions.append(action)

    def dequeue(self, action_id: str) -> Optional[Action]:
        """Remove the Action with this id. No-op when absent."""
        for index, queued in enumerate(self._actions):
            if queued.id == action_id:
                return self._actions.pop(index)
        return None

    def increment_retry(self, action_id: str) -> Optional[Action]:
        """Record one more retry on the matching Action."""
        for index, queued in enumerate(self._actions):
            if queued.id == action_id:
                updated = queued.with_retry()
                self._actions[index] = updated
                return updated
        logger.debug(f"increment_retry: {action_id} not queued")
        return None

    def get(self, action_id: str) -> Optional[Action]:
        for queued in self._actions:
            if queued.id == action_id:
                return queued
        return None

    def snapshot(self) -> list[Action]:
        """
        Stable, priority-sorted copy for a drain pass.

        Actions enqueued after the copy is taken are not part of it and
        are honored starting with the next pass.
        """
        return sorted(self._actions, key=_drain_order)

    def clear(self) -> None:
        self._actions.clear()

    # =========================================================================
    # PERSISTENCE HELPERS
    # =========================================================================

    @classmethod
    def from_actions(cls, actions: Iterable[Action]) -> "OfflineQueue":
        """Rebuild a queue from persisted Actions, skipping duplicate ids."""
        queue = cls()
        for action in actions:
            if action.id in queue:
                logger.warning(f"Skipping duplicate persisted action {action.id}")
                continue
            queue.insert(action)
        return queue

    def to_state(
        self,
        sync_state: SyncState = SyncState.IDLE,
        last_sync_time: Optional[datetime] = None,
    ) -> QueueState:
        return QueueState(
            actions=self.snapshot(),
            sync_state=sync_state,
            last_sync_time=last_sync_time,
        )
