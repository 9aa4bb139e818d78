"""
Pydantic Schemas for Queue State and the Control API

Value types shared by the queue, the conflict store, the storage
backends and the control API:
- Action: a pending mutation (immutable; updates produce a copy)
- Conflict: a parked Action plus both sides of the divergence
- QueueState: ordered actions with the drain state
- Request/response envelopes for the control API

Author: Khalil Bannouri
Version: 1.0.0
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def utc_now() -> datetime:
    """Timezone-aware current time used for every timestamp in the queue."""
    return datetime.now(timezone.utc)


def new_action_id() -> str:
    """Generate a unique Action identifier."""
    return f"action_{uuid.uuid4().hex}"


# =============================================================================
# ENUMS
# =============================================================================

class Priority(str, Enum):
    """Drain order tier. HIGH drains first."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    Priority.HIGH: 0,
    Priority.MEDIUM: 1,
    Priority.LOW: 2,
}


class EntityKind(str, Enum):
    """Server-side entity an Action mutates."""
    ORDER = "order"
    PROFILE = "profile"
    CART = "cart"


class ActionType(str, Enum):
    """Queued mutation types replayed by the sync engine."""
    CREATE_ORDER = "CREATE_ORDER"
    UPDATE_ORDER = "UPDATE_ORDER"
    UPDATE_PROFILE = "UPDATE_PROFILE"
    ADD_TO_CART = "ADD_TO_CART"
    UPDATE_CART = "UPDATE_CART"
    CLEAR_CART = "CLEAR_CART"

    @property
    def entity_kind(self) -> EntityKind:
        return _ENTITY_KINDS[self]

    @property
    def is_update(self) -> bool:
        """Update-style Actions are checked for conflicts before replay."""
        return self in (ActionType.UPDATE_ORDER, ActionType.UPDATE_PROFILE)


_ENTITY_KINDS = {
    ActionType.CREATE_ORDER: EntityKind.ORDER,
    ActionType.UPDATE_ORDER: EntityKind.ORDER,
    ActionType.UPDATE_PROFILE: EntityKind.PROFILE,
    ActionType.ADD_TO_CART: EntityKind.CART,
    ActionType.UPDATE_CART: EntityKind.CART,
    ActionType.CLEAR_CART: EntityKind.CART,
}


def default_priority(action_type: ActionType) -> Priority:
    """
    Priority used when the consumer does not pick one.

    Orders drain first, profile edits next, cart bookkeeping last.
    """
    if action_type.entity_kind == EntityKind.ORDER:
        return Priority.HIGH
    if action_type.entity_kind == EntityKind.PROFILE:
        return Priority.MEDIUM
    return Priority.LOW


class SyncState(str, Enum):
    """Drain loop state."""
    IDLE = "idle"
    SYNCING = "syncing"
    ERROR = "error"


# =============================================================================
# QUEUE VALUE TYPES
# =============================================================================

class Action(BaseModel):
    """
    A pending mutation awaiting replay against the server.

    `created_at` is the conflict baseline: an update whose target entity
    was modified on the server after this instant is parked as a conflict.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_action_id)
    type: ActionType
    payload: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utc_now)
    priority: Priority = Priority.MEDIUM
    retry_count: int = Field(default=0, ge=0)
    max_retries: int = Field(default=3, ge=0)
    metadata: Optional[dict[str, Any]] = None

    @field_validator("created_at")
    @classmethod
    def ensure_timezone(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @model_validator(mode="after")
    def check_retry_budget(self) -> "Action":
        if self.retry_count > self.max_retries:
            raise ValueError(
                f"retry_count ({self.retry_count}) exceeds max_retries ({self.max_retries})"
            )
        return self

    @property
    def entity_id(self) -> Optional[str]:
        """Identifier of the target entity, when the payload carries one."""
        value = self.payload.get("id")
        return str(value) if value is not None else None

    @property
    def local_order_id(self) -> Optional[str]:
        """Locally generated order id to reconcile on success."""
        if not self.metadata:
            return None
        return self.metadata.get("local_order_id")

    def with_retry(self) -> "Action":
        """Copy with one more retry recorded."""
        return self.model_copy(update={"retry_count": self.retry_count + 1})


class Conflict(BaseModel):
    """An Action whose replay revealed a server/local divergence."""
    model_config = ConfigDict(frozen=True)

    action_id: str
    action: Action
    local_snapshot: Optional[dict[str, Any]] = None
    server_snapshot: dict[str, Any] = Field(default_factory=dict)
    detected_at: datetime = Field(default_factory=utc_now)


class QueueState(BaseModel):
    """Ordered queue contents plus drain state."""
    actions: List[Action] = Field(default_factory=list)
    sync_state: SyncState = SyncState.IDLE
    last_sync_time: Optional[datetime] = None


# =============================================================================
# CONTROL API REQUEST SCHEMAS
# =============================================================================

class EnqueueRequest(BaseModel):
    """Request schema for queueing a mutation."""
    type: ActionType = Field(..., examples=["CREATE_ORDER"])
    payload: dict[str, Any] = Field(default_factory=dict)
    priority: Optional[Priority] = Field(None, examples=["high"])
    max_retries: Optional[int] = Field(None, ge=0, le=50)
    metadata: Optional[dict[str, Any]] = None


class ResolveConflictRequest(BaseModel):
    """Resolution choice for a parked conflict."""
    use_server: bool = Field(..., description="True keeps the server version")


class AutoSyncRequest(BaseModel):
    """Start or stop the periodic sync timer."""
    enabled: bool
    interval_ms: Optional[int] = Field(None, gt=0)


class ConnectivityUpdate(BaseModel):
    """Connectivity report pushed by the host application."""
    is_connected: bool
    is_internet_reachable: Optional[bool] = None
    type: Optional[str] = Field(None, examples=["wifi", "cellular"])


# =============================================================================
# CONTROL API RESPONSE SCHEMAS
# =============================================================================

class EnqueueResponse(BaseModel):
    """Response after queueing a mutation."""
    success: bool
    action_id: str
    priority: Priority
    queue_length: int


class QueueSnapshotResponse(BaseModel):
    """Current queue in drain order."""
    total: int
    sync_state: SyncState
    last_sync_time: Optional[datetime]
    actions: List[Action]


class ConflictListResponse(BaseModel):
    """Unresolved conflicts in detection order."""
    total: int
    conflicts: List[Conflict]


class ResolveConflictResponse(BaseModel):
    """Outcome of a resolution request."""
    success: bool
    action_id: str
    resolution: Optional[str] = None
    requeued_action_id: Optional[str] = None
    message: str = ""


class SyncPassResponse(BaseModel):
    """Summary of a drain pass triggered through the API."""
    started: bool
    attempted: int = 0
    succeeded: int = 0
    retried: int = 0
    conflicted: int = 0
    dropped: int = 0
    sync_state: SyncState
    duration_ms: float = 0.0


class SyncStatusResponse(BaseModel):
    """Engine status for dashboards."""
    sync_state: SyncState
    last_sync_time: Optional[datetime]
    queue_length: int
    conflict_count: int
    is_online: bool
    auto_sync_running: bool
    storage_backend: str
    transport: str


class SyncEventResponse(BaseModel):
    """A single entry from the sync event channel."""
    kind: str
    action_id: Optional[str]
    action_type: Optional[str]
    detail: Optional[str]
    occurred_at: datetime


class SyncEventListResponse(BaseModel):
    total: int
    events: List[SyncEventResponse]


class ErrorResponse(BaseModel):
    """Standard error response."""
    success: bool = False
    error: str
    detail: Optional[str] = None


class HealthResponse(BaseModel):
    """System health check response."""
    status: str
    storage: str
    transport: str
    connectivity: str
    timestamp: datetime
