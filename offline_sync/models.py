"""
SQLAlchemy Database Models

Tables backing the database storage backend:
- offline_queue: pending Actions with their drain position
- sync_conflicts: parked Actions awaiting a resolution decision
- sync_meta: single-row drain state

Author: Khalil Bannouri
Version: 1.0.0
"""

from datetime import timezone

from sqlalchemy import Column, Integer, String, DateTime, Enum, JSON

from offline_sync.database import Base
from offline_sync.schemas import (
    Action,
    ActionType,
    Conflict,
    Priority,
    SyncState,
)


def _as_utc(value):
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class QueuedActionRecord(Base):
    """One pending Action. `position` preserves drain order."""
    __tablename__ = "offline_queue"

    id = Column(String(64), primary_key=True)
    position = Column(Integer, nullable=False, index=True)

    # =========================================================================
    # ACTION
    # =========================================================================
    type = Column(Enum(ActionType), nullable=False, index=True)
    payload = Column(JSON, nullable=False, default=dict)
    action_metadata = Column("metadata", JSON, nullable=True)
    priority = Column(Enum(Priority), nullable=False)

    # =========================================================================
    # RETRY BOOKKEEPING
    # =========================================================================
    retry_count = Column(Integer, nullable=False, default=0)
    max_retries = Column(Integer, nullable=False, default=3)

    # =========================================================================
    # TIMESTAMPS
    # =========================================================================
    created_at = Column(DateTime(timezone=True), nullable=False)

    @classmethod
    def from_action(cls, action: Action, position: int) -> "QueuedActionRecord":
        return cls(
            id=action.id,
            position=position,
            type=action.type,
            payload=action.payload,
            action_metadata=action.metadata,
            priority=action.priority,
            retry_count=action.retry_count,
            max_retries=action.max_retries,
            created_at=action.created_at,
        )

    def to_action(self) -> Action:
        return Action(
            id=self.id,
            type=self.type,
            payload=self.payload or {},
            created_at=_as_utc(self.created_at),
            priority=self.priority,
            retry_count=self.retry_count,
            max_retries=self.max_retries,
            metadata=self.action_metadata,
        )

    def __repr__(self):
        return f"<QueuedAction {self.id} - {self.type.value} - {self.priority.value}>"


class ConflictRecord(Base):
    """A parked Action with both sides of the divergence."""
    __tablename__ = "sync_conflicts"

    action_id = Column(String(64), primary_key=True)
    position = Column(Integer, nullable=False, index=True)
    action = Column(JSON, nullable=False)
    local_snapshot = Column(JSON, nullable=True)
    server_snapshot = Column(JSON, nullable=False)
    detected_at = Column(DateTime(timezone=True), nullable=False)

    @classmethod
    def from_conflict(cls, conflict: Conflict, position: int) -> "ConflictRecord":
        return cls(
            action_id=conflict.action_id,
            position=position,
            action=conflict.action.model_dump(mode="json"),
            local_snapshot=conflict.local_snapshot,
            server_snapshot=conflict.server_snapshot,
            detected_at=conflict.detected_at,
        )

    def to_conflict(self) -> Conflict:
        return Conflict(
            action_id=self.action_id,
            action=Action.model_validate(self.action),
            local_snapshot=self.local_snapshot,
            server_snapshot=self.server_snapshot or {},
            detected_at=_as_utc(self.detected_at),
        )

    def __repr__(self):
        return f"<Conflict {self.action_id}>"


class SyncMetaRecord(Base):
    """Single-row table holding the drain state."""
    __tablename__ = "sync_meta"

    id = Column(Integer, primary_key=True, default=1)
    sync_state = Column(Enum(SyncState), nullable=False, default=SyncState.IDLE)
    last_sync_time = Column(DateTime(timezone=True), nullable=True)
