"""
Sync Event Channel

Outcomes that the consumer must learn about without blocking the drain
loop (terminal failures, conflicts, successes) are published here. The
bus keeps a bounded history for the control API and fans each event out
to subscribers.

Author: Khalil Bannouri
Version: 1.0.0
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from offline_sync.schemas import Action, utc_now

logger = logging.getLogger(__name__)


class SyncEventKind(str, Enum):
    SUCCEEDED = "succeeded"
    RETRY_SCHEDULED = "retry_scheduled"
    CONFLICTED = "conflicted"
    AUTH_REQUIRED = "auth_required"
    PERMANENT_REJECTION = "permanent_rejection"
    RETRIES_EXHAUSTED = "retries_exhausted"
    CONFLICT_RESOLVED = "conflict_resolved"
    PASS_FAILED = "pass_failed"


TERMINAL_FAILURES = frozenset({
    SyncEventKind.AUTH_REQUIRED,
    SyncEventKind.PERMANENT_REJECTION,
    SyncEventKind.RETRIES_EXHAUSTED,
})


@dataclass
class SyncEvent:
    """
    A single observable outcome.

    Attributes:
        kind: What happened
        action_id: Affected Action, if any
        action_type: Type of the affected Action
        detail: Human-readable context (error message, resolution)
        occurred_at: When the event was published
    """
    kind: SyncEventKind
    action_id: Optional[str] = None
    action_type: Optional[str] = None
    detail: Optional[str] = None
    occurred_at: datetime = field(default_factory=utc_now)

    @classmethod
    def for_action(
        cls,
        kind: SyncEventKind,
        action: Action,
        detail: Optional[str] = None,
    ) -> "SyncEvent":
        return cls(
            kind=kind,
            action_id=action.id,
            action_type=action.type.value,
            detail=detail,
        )

    @property
    def is_terminal_failure(self) -> bool:
        return self.kind in TERMINAL_FAILURES

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "kind": self.kind.value,
            "action_id": self.action_id,
            "action_type": self.action_type,
            "detail": self.detail,
            "occurred_at": self.occurred_at,
        }


SyncEventListener = Callable[[SyncEvent], None]


class SyncEventBus:
    """Bounded event history with synchronous fan-out."""

    def __init__(self, history_size: int = 200):
        self._history: deque[SyncEvent] = deque(maxlen=history_size)
        self._listeners: list[SyncEventListener] = []

    def subscribe(self, listener: SyncEventListener) -> Callable[[], None]:
        """Register a listener. Returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def publish(self, event: SyncEvent) -> None:
        self._history.append(event)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception(f"Sync event listener failed on {event.kind.value}")

    def history(self, limit: Optional[int] = None) -> list[SyncEvent]:
        """Most recent events, oldest first."""
        events = list(self._history)
        if limit is not None:
            events = events[-limit:] if limit > 0 else []
        return events

    def clear(self) -> None:
        self._history.clear()
