"""
Sync Engine

Drains the offline queue against the server once connectivity is
available. One pass walks a priority-ordered snapshot of the queue and
replays each Action in turn:

    - success            → dequeue, apply the server's view locally
    - conflict           → park in the ConflictStore, apply nothing
    - transient failure  → keep with one more retry, or drop when the
                           attempt budget is spent
    - auth / rejection   → drop and report

Every queue or conflict mutation happens under a single asyncio.Lock
and is written through to the storage backend before the lock is
released.

Usage:
    engine = build_sync_engine()
    await engine.load()
    action_id = await engine.enqueue(ActionType.CREATE_ORDER, {"items": [...]})
    result = await engine.sync_queue()

Author: Khalil Bannouri
Version: 1.0.0
"""

import asyncio
import logging
import random
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Union

from offline_sync.conflicts import ConflictStore
from offline_sync.core.config import Settings, get_settings
from offline_sync.core.errors import PersistenceError, UnknownActionTypeError
from offline_sync.events import SyncEvent, SyncEventBus, SyncEventKind
from offline_sync.queue import OfflineQueue
from offline_sync.schemas import (
    Action,
    ActionType,
    Conflict,
    Priority,
    SyncState,
    utc_now,
)
from offline_sync.services.auth import BaseCredentialProvider, create_credential_provider
from offline_sync.services.connectivity import (
    BaseConnectivityMonitor,
    ReconnectSyncTrigger,
    create_connectivity_monitor,
)
from offline_sync.services.local_state import BaseLocalStateStore, create_local_state
from offline_sync.services.storage import BaseSyncStorage, create_sync_storage
from offline_sync.services.transport import (
    BaseTransport,
    TransportOutcome,
    TransportResult,
    create_transport,
)

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[Any]]
Handler = Callable[[Action, str], Awaitable[TransportResult]]

# Larger exponents always hit the cap
_MAX_BACKOFF_EXPONENT = 32


# =============================================================================
# BACKOFF
# =============================================================================

def backoff_delay(
    retry_count: int,
    base_ms: float = 1000.0,
    jitter_ms: float = 500.0,
    cap_ms: float = 30000.0,
    rng: Optional[random.Random] = None,
) -> float:
    """
    Delay before retry number `retry_count`, in milliseconds.

    min(base * 2**n + jitter, cap) with jitter uniform in [0, jitter_ms).

    Example:
        >>> backoff_delay(1, jitter_ms=0)
        2000.0
    """
    exponent = min(max(retry_count, 0), _MAX_BACKOFF_EXPONENT)
    jitter = (rng or random).random() * jitter_ms
    return min(base_ms * (2 ** exponent) + jitter, cap_ms)


def parse_server_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse an `updatedAt` value from the server.

    Accepts ISO-8601 strings (with or without a trailing Z), epoch
    milliseconds and datetimes. Naive values are taken as UTC.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        parsed = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            logger.debug(f"Unparseable server timestamp: {value!r}")
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# =============================================================================
# RESULT TYPES
# =============================================================================

class FailureKind(str, Enum):
    """Why an Action did not succeed."""
    AUTH_REQUIRED = "auth_required"
    TRANSIENT_FAILURE = "transient_failure"
    CONFLICT = "conflict"
    PERMANENT_REJECTION = "permanent_rejection"
    RETRIES_EXHAUSTED = "retries_exhausted"


class ActionOutcome(str, Enum):
    """What happened to an Action during one attempt."""
    SUCCEEDED = "succeeded"
    RETRY_SCHEDULED = "retry_scheduled"
    CONFLICTED = "conflicted"
    DROPPED = "dropped"
    SKIPPED = "skipped"


@dataclass
class ActionResult:
    """
    Outcome of processing one Action.

    Attributes:
        action_id: The processed Action
        outcome: Where the Action ended up
        failure: Failure classification (None on success or skip)
        error_message: Transport or handler message
        data: Server payload on success
    """
    action_id: str
    outcome: ActionOutcome
    failure: Optional[FailureKind] = None
    error_message: Optional[str] = None
    data: Optional[dict[str, Any]] = None

    @property
    def success(self) -> bool:
        return self.outcome == ActionOutcome.SUCCEEDED

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "action_id": self.action_id,
            "outcome": self.outcome.value,
            "failure": self.failure.value if self.failure else None,
            "error_message": self.error_message,
            "data": self.data,
        }


@dataclass
class SyncPassResult:
    """Summary of one drain pass."""
    started_at: datetime = field(default_factory=utc_now)
    finished_at: Optional[datetime] = None
    sync_state: SyncState = SyncState.SYNCING
    results: list[ActionResult] = field(default_factory=list)
    error: Optional[str] = None

    def _count(self, outcome: ActionOutcome) -> int:
        return sum(1 for r in self.results if r.outcome == outcome)

    @property
    def attempted(self) -> int:
        return sum(1 for r in self.results if r.outcome != ActionOutcome.SKIPPED)

    @property
    def succeeded(self) -> int:
        return self._count(ActionOutcome.SUCCEEDED)

    @property
    def retried(self) -> int:
        return self._count(ActionOutcome.RETRY_SCHEDULED)

    @property
    def conflicted(self) -> int:
        return self._count(ActionOutcome.CONFLICTED)

    @property
    def dropped(self) -> int:
        return self._count(ActionOutcome.DROPPED)

    @property
    def duration_ms(self) -> float:
        if self.finished_at is None:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds() * 1000

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "started": True,
            "attempted": self.attempted,
            "succeeded": self.succeeded,
            "retried": self.retried,
            "conflicted": self.conflicted,
            "dropped": self.dropped,
            "sync_state": self.sync_state.value,
            "duration_ms": round(self.duration_ms, 2),
        }


@dataclass
class ConflictResolution:
    """Outcome of resolving a conflict."""
    action_id: str
    use_server: bool
    requeued_action_id: Optional[str] = None

    @property
    def resolution(self) -> str:
        return "server" if self.use_server else "local"

    def to_dict(self) -> dict:
        return {
            "action_id": self.action_id,
            "resolution": self.resolution,
            "requeued_action_id": self.requeued_action_id,
        }


# =============================================================================
# SYNC ENGINE
# =============================================================================

class SyncEngine:
    """
    Offline queue drain loop.

    Args:
        transport: Replays Actions against the server
        connectivity: Online/offline source; reconnection triggers a pass
        storage: Write-through persistence for queue and conflicts
        local_state: Client-side entity view
        credentials: Access token source
        settings: Backoff and timer tuning
        sleep: Awaitable used for the backoff wait
        rng: Random source for backoff jitter
        events: Event channel for outcomes
    """

    def __init__(
        self,
        transport: BaseTransport,
        connectivity: BaseConnectivityMonitor,
        storage: BaseSyncStorage,
        local_state: BaseLocalStateStore,
        credentials: BaseCredentialProvider,
        settings: Optional[Settings] = None,
        sleep: Sleep = asyncio.sleep,
        rng: Optional[random.Random] = None,
        events: Optional[SyncEventBus] = None,
    ):
        self.settings = settings or get_settings()
        self.transport = transport
        self.connectivity = connectivity
        self.storage = storage
        self.local_state = local_state
        self.credentials = credentials
        self.events = events or SyncEventBus(self.settings.event_history_size)

        self._sleep = sleep
        self._rng = rng or random.Random()
        self._queue = OfflineQueue()
        self._conflicts = ConflictStore()
        self._lock = asyncio.Lock()

        self._syncing = False
        self._sync_state = SyncState.IDLE
        self._last_sync_time: Optional[datetime] = None

        self._auto_sync_task: Optional[asyncio.Task] = None
        self._pass_tasks: set[asyncio.Task] = set()

        self._handlers: dict[ActionType, Handler] = {
            ActionType.CREATE_ORDER: self._handle_replay,
            ActionType.UPDATE_ORDER: self._handle_update,
            ActionType.UPDATE_PROFILE: self._handle_update,
            ActionType.ADD_TO_CART: self._handle_replay,
            ActionType.UPDATE_CART: self._handle_replay,
            ActionType.CLEAR_CART: self._handle_replay,
        }
        missing = [t.value for t in ActionType if t not in self._handlers]
        if missing:
            raise UnknownActionTypeError(f"No handler registered for: {missing}")

        self._trigger = ReconnectSyncTrigger(connectivity, self.sync_queue)
        self._trigger.attach()

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def sync_state(self) -> SyncState:
        return self._sync_state

    @property
    def last_sync_time(self) -> Optional[datetime]:
        return self._last_sync_time

    @property
    def is_syncing(self) -> bool:
        return self._syncing

    @property
    def queue_length(self) -> int:
        return len(self._queue)

    @property
    def auto_sync_running(self) -> bool:
        return self._auto_sync_task is not None and not self._auto_sync_task.done()

    @property
    def background_tasks(self) -> set[asyncio.Task]:
        """Drain passes started by the timer or by reconnection, still running."""
        return {t for t in self._pass_tasks if not t.done()} | self._trigger.pending

    # =========================================================================
    # STARTUP
    # =========================================================================

    async def load(self) -> None:
        """Restore queue, conflicts and drain metadata from storage."""
        async with self._lock:
            state = await self.storage.load()
            self._conflicts = ConflictStore(state.conflicts)
            self._queue = OfflineQueue.from_actions(
                a for a in state.actions if a.id not in self._conflicts
            )
            # A pass interrupted by a crash is not resumed
            self._sync_state = (
                SyncState.IDLE if state.sync_state == SyncState.SYNCING else state.sync_state
            )
            self._last_sync_time = state.last_sync_time

        logger.info(
            f"Restored {len(self._queue)} queued actions and "
            f"{len(self._conflicts)} conflicts from {self.storage.provider_name} storage"
        )

    # =========================================================================
    # CONSUMER API
    # =========================================================================

    async def enqueue(
        self,
        action_type: Union[ActionType, str],
        payload: Optional[dict[str, Any]] = None,
        priority: Optional[Priority] = None,
        max_retries: Optional[int] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> str:
        """
        Queue a mutation for replay.

        Returns:
            str: The new Action id

        Raises:
            PersistenceError: If the queue could not be written; the
                Action is not kept in that case
        """
        action_type = ActionType(action_type)
        if max_retries is None:
            max_retries = self.settings.default_max_retries

        async with self._lock:
            action = self._queue.enqueue(
                action_type,
                payload,
                priority=priority,
                max_retries=max_retries,
                metadata=metadata,
            )
            try:
                await self._persist_queue()
            except PersistenceError:
                self._queue.dequeue(action.id)
                raise

        logger.info(
            f"Queued {action.type.value} ({action.priority.value}) - {action.id} "
            f"[{len(self._queue)} pending]"
        )
        return action.id

    def get_queue_snapshot(self) -> list[Action]:
        """Queue contents in drain order."""
        return self._queue.snapshot()

    def get_conflicts(self) -> list[Conflict]:
        """Unresolved conflicts in detection order."""
        return self._conflicts.list_conflicts()

    def get_conflict(self, action_id: str) -> Optional[Conflict]:
        return self._conflicts.get(action_id)

    async def remove_action(self, action_id: str) -> Optional[Action]:
        """Discard a queued Action without replaying it."""
        async with self._lock:
            removed = self._queue.dequeue(action_id)
            if removed is not None:
                await self._persist_queue()
        if removed is not None:
            logger.info(f"Removed queued action {action_id}")
        return removed

    async def clear_queue(self) -> int:
        """Discard every queued Action. Conflicts are kept."""
        async with self._lock:
            count = len(self._queue)
            self._queue.clear()
            await self._persist_queue()
        logger.info(f"Cleared {count} queued actions")
        return count

    async def resolve_conflict(self, action_id: str, use_server: bool) -> Optional[ConflictResolution]:
        """
        Settle a parked conflict.

        use_server=True applies the server snapshot to local state and
        drops the Action. use_server=False re-enqueues the Action's type,
        payload and metadata as a new HIGH priority Action with a fresh
        retry budget.

        Returns:
            ConflictResolution, or None when the conflict does not exist
            (unknown id or already resolved)
        """
        async with self._lock:
            conflict = self._conflicts.get(action_id)
            if conflict is None:
                return None

            original = conflict.action
            if use_server:
                await self.local_state.apply_server_entity(
                    original.type.entity_kind, conflict.server_snapshot
                )
                self._conflicts.remove(action_id)
                await self._persist_conflicts()
                resolution = ConflictResolution(action_id=action_id, use_server=True)
            else:
                self._conflicts.remove(action_id)
                requeued = self._queue.enqueue(
                    original.type,
                    original.payload,
                    priority=Priority.HIGH,
                    max_retries=original.max_retries,
                    metadata=original.metadata,
                )
                await self._persist_conflicts()
                await self._persist_queue()
                resolution = ConflictResolution(
                    action_id=action_id,
                    use_server=False,
                    requeued_action_id=requeued.id,
                )

        logger.info(f"Conflict {action_id} resolved with {resolution.resolution} version")
        self.events.publish(
            SyncEvent.for_action(
                SyncEventKind.CONFLICT_RESOLVED, original, detail=resolution.resolution
            )
        )
        return resolution

    def status(self) -> dict:
        """Engine status for dashboards and the control API."""
        return {
            "sync_state": self._sync_state,
            "last_sync_time": self._last_sync_time,
            "queue_length": len(self._queue),
            "conflict_count": len(self._conflicts),
            "is_online": self.connectivity.is_online,
            "auto_sync_running": self.auto_sync_running,
            "storage_backend": self.storage.provider_name,
            "transport": self.transport.provider_name,
        }

    # =========================================================================
    # DRAIN PASS
    # =========================================================================

    async def sync_queue(self) -> Optional[SyncPassResult]:
        """
        Run one drain pass.

        Does nothing (returns None) while a pass is running, while
        offline or when the queue is empty. An internal fault such as a
        storage failure ends the pass with sync_state ERROR.
        """
        # Checked and set before the first await
        if self._syncing:
            logger.debug("Sync already in progress, skipping")
            return None
        if not self.connectivity.is_online:
            logger.debug("Offline, skipping sync")
            return None
        if self._queue.is_empty:
            return None

        self._syncing = True
        result = SyncPassResult()
        try:
            self._sync_state = SyncState.SYNCING
            await self._persist_sync_meta()

            snapshot = self._queue.snapshot()
            logger.info(f"Syncing {len(snapshot)} queued actions...")

            for action in snapshot:
                result.results.append(await self.process_action(action))

            self._sync_state = SyncState.IDLE
            self._last_sync_time = utc_now()
            await self._persist_sync_meta()
        except Exception as e:
            logger.exception(f"Sync pass failed: {e}")
            self._sync_state = SyncState.ERROR
            self._last_sync_time = utc_now()
            result.error = str(e)
            self.events.publish(SyncEvent(kind=SyncEventKind.PASS_FAILED, detail=str(e)))
            try:
                await self._persist_sync_meta()
            except PersistenceError as meta_error:
                logger.error(f"Could not record sync error state: {meta_error}")
        finally:
            if self._sync_state == SyncState.SYNCING:
                self._sync_state = SyncState.IDLE
            self._syncing = False

        result.sync_state = self._sync_state
        result.finished_at = utc_now()
        logger.info(
            f"Sync pass finished: {result.succeeded} succeeded, {result.retried} retrying, "
            f"{result.conflicted} conflicted, {result.dropped} dropped "
            f"({result.duration_ms:.0f}ms)"
        )
        return result

    async def process_action(self, action: Action) -> ActionResult:
        """
        Attempt one Action.

        Raises:
            PersistenceError: If the outcome could not be written through
        """
        if action.id not in self._queue:
            return ActionResult(action.id, ActionOutcome.SKIPPED)

        token = await self.credentials.get_access_token()
        if not token:
            return await self._drop(action, FailureKind.AUTH_REQUIRED, "Not authenticated")

        if action.retry_count > 0:
            delay_ms = backoff_delay(
                action.retry_count,
                base_ms=self.settings.backoff_base_ms,
                jitter_ms=self.settings.backoff_jitter_ms,
                cap_ms=self.settings.backoff_cap_ms,
                rng=self._rng,
            )
            logger.info(
                f"Waiting {delay_ms:.0f}ms before retry {action.retry_count} for action {action.id}"
            )
            await self._sleep(delay_ms / 1000)

            # The consumer may have removed it while we waited
            current = self._queue.get(action.id)
            if current is None:
                return ActionResult(action.id, ActionOutcome.SKIPPED)
            action = current

        handler = self._handlers.get(action.type)
        if handler is None:
            raise UnknownActionTypeError(action.type)

        try:
            outcome = await handler(action, token)
        except PersistenceError:
            raise
        except Exception as e:
            logger.exception(f"Error processing action {action.id}: {e}")
            outcome = TransportResult.transient(str(e) or type(e).__name__)

        return await self._apply_outcome(action, outcome)

    # =========================================================================
    # HANDLERS
    # =========================================================================

    async def _handle_replay(self, action: Action, token: str) -> TransportResult:
        return await self.transport.perform(action, token)

    async def _handle_update(self, action: Action, token: str) -> TransportResult:
        fetched = await self.transport.fetch_entity(action, token)

        if fetched.outcome == TransportOutcome.AUTH_FAILURE:
            return fetched

        if fetched.succeeded and fetched.data:
            server_updated = parse_server_timestamp(
                fetched.data.get("updatedAt", fetched.data.get("updated_at"))
            )
            if server_updated is not None and server_updated > action.created_at:
                logger.warning(
                    f"Server copy of {action.type.entity_kind.value} {action.entity_id} "
                    f"changed at {server_updated.isoformat()}, after {action.id} was queued"
                )
                return TransportResult.conflict(fetched.data, status_code=fetched.status_code)
        elif not fetched.succeeded:
            logger.debug(
                f"Could not fetch server copy for {action.id} ({fetched.error_message}); "
                f"applying update without conflict check"
            )

        return await self.transport.perform(action, token)

    # =========================================================================
    # OUTCOMES
    # =========================================================================

    async def _apply_outcome(self, action: Action, outcome: TransportResult) -> ActionResult:
        if outcome.outcome == TransportOutcome.SUCCESS:
            return await self._succeed(action, outcome)
        if outcome.outcome == TransportOutcome.CONFLICT:
            return await self._park(action, outcome.server_snapshot or {})
        if outcome.outcome == TransportOutcome.AUTH_FAILURE:
            return await self._drop(action, FailureKind.AUTH_REQUIRED, outcome.error_message)
        if outcome.outcome == TransportOutcome.PERMANENT_REJECTION:
            return await self._drop(action, FailureKind.PERMANENT_REJECTION, outcome.error_message)
        return await self._retry_or_exhaust(action, outcome.error_message)

    async def _succeed(self, action: Action, outcome: TransportResult) -> ActionResult:
        async with self._lock:
            dequeued = self._queue.dequeue(action.id) is not None

            if outcome.data:
                try:
                    if action.local_order_id:
                        await self.local_state.reconcile_local_id(action.local_order_id, outcome.data)
                    else:
                        await self.local_state.apply_server_entity(action.type.entity_kind, outcome.data)
                except Exception:
                    logger.exception(f"Failed to apply server response for {action.id} to local state")

            # The server has applied the Action, so it stays out of the
            # in-memory queue even if this write fails. Storage catches up
            # on the next queue write; a restart before then replays it.
            if dequeued:
                await self._persist_queue()

        logger.info(f"Synced {action.type.value} - {action.id}")
        self.events.publish(SyncEvent.for_action(SyncEventKind.SUCCEEDED, action))
        return ActionResult(action.id, ActionOutcome.SUCCEEDED, data=outcome.data)

    async def _park(self, action: Action, server_snapshot: dict[str, Any]) -> ActionResult:
        local_snapshot = await self.local_state.get_entity(
            action.type.entity_kind, action.entity_id
        )
        async with self._lock:
            if self._queue.dequeue(action.id) is None:
                return ActionResult(action.id, ActionOutcome.SKIPPED)
            self._conflicts.add_conflict(action, local_snapshot, server_snapshot)
            await self._persist_queue()
            await self._persist_conflicts()

        logger.warning(f"Conflict detected for {action.type.value} - {action.id}")
        self.events.publish(SyncEvent.for_action(SyncEventKind.CONFLICTED, action))
        return ActionResult(action.id, ActionOutcome.CONFLICTED, failure=FailureKind.CONFLICT)

    async def _retry_or_exhaust(self, action: Action, message: Optional[str]) -> ActionResult:
        attempts = action.retry_count + 1
        if attempts >= action.max_retries:
            logger.warning(f"Action {action.id} failed after {attempts} attempts: {message}")
            return await self._drop(action, FailureKind.RETRIES_EXHAUSTED, message)

        async with self._lock:
            updated = self._queue.increment_retry(action.id)
            if updated is None:
                return ActionResult(action.id, ActionOutcome.SKIPPED)
            await self._persist_queue()

        logger.info(
            f"Action {action.id} failed ({message}); retry {updated.retry_count} "
            f"of {updated.max_retries} scheduled"
        )
        self.events.publish(
            SyncEvent.for_action(SyncEventKind.RETRY_SCHEDULED, updated, detail=message)
        )
        return ActionResult(
            action.id,
            ActionOutcome.RETRY_SCHEDULED,
            failure=FailureKind.TRANSIENT_FAILURE,
            error_message=message,
        )

    async def _drop(self, action: Action, failure: FailureKind, message: Optional[str]) -> ActionResult:
        async with self._lock:
            if self._queue.dequeue(action.id) is not None:
                await self._persist_queue()

        logger.warning(f"Dropped {action.type.value} - {action.id}: {failure.value} ({message})")
        self.events.publish(
            SyncEvent.for_action(SyncEventKind(failure.value), action, detail=message)
        )
        return ActionResult(
            action.id,
            ActionOutcome.DROPPED,
            failure=failure,
            error_message=message,
        )

    # =========================================================================
    # PERSISTENCE
    # =========================================================================

    async def _persist_queue(self) -> None:
        await self.storage.save_queue(self._queue.snapshot())

    async def _persist_conflicts(self) -> None:
        await self.storage.save_conflicts(self._conflicts.list_conflicts())

    async def _persist_sync_meta(self) -> None:
        await self.storage.save_sync_meta(self._sync_state, self._last_sync_time)

    # =========================================================================
    # AUTO-SYNC
    # =========================================================================

    def start_auto_sync(self, interval_ms: Optional[int] = None) -> None:
        """
        Start the periodic timer. A running timer is replaced.

        Must be called from within the event loop.
        """
        interval_ms = interval_ms or self.settings.sync_interval_ms
        if interval_ms <= 0:
            raise ValueError("interval_ms must be positive")

        self.stop_auto_sync()
        self._auto_sync_task = asyncio.get_running_loop().create_task(
            self._auto_sync_loop(interval_ms / 1000)
        )
        logger.info(f"Auto-sync started (every {interval_ms}ms)")

    def stop_auto_sync(self) -> None:
        """Cancel the timer. A pass already in flight runs to completion."""
        if self._auto_sync_task is None:
            return
        self._auto_sync_task.cancel()
        self._auto_sync_task = None
        logger.info("Auto-sync stopped")

    async def _auto_sync_loop(self, interval_seconds: float) -> None:
        while True:
            await asyncio.sleep(interval_seconds)
            if self.connectivity.is_online:
                self._spawn_pass()

    def _spawn_pass(self) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(self.sync_queue())
        self._pass_tasks.add(task)
        task.add_done_callback(self._pass_tasks.discard)
        return task

    # =========================================================================
    # SHUTDOWN
    # =========================================================================

    async def close(self) -> None:
        """Stop timers, cancel passes in flight and release resources."""
        self.stop_auto_sync()
        self._trigger.detach()

        pending = list(self.background_tasks)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        await self.transport.close()
        await self.storage.close()
        logger.info("Sync engine closed")


def build_sync_engine(settings: Optional[Settings] = None, **overrides: Any) -> SyncEngine:
    """
    Wire a SyncEngine from settings.

    Any collaborator (transport, connectivity, storage, local_state,
    credentials, sleep, rng, events) can be passed to replace the
    configured one.
    """
    settings = settings or get_settings()
    collaborators = {
        "transport": overrides.pop("transport", None) or create_transport(settings),
        "connectivity": overrides.pop("connectivity", None) or create_connectivity_monitor(settings),
        "storage": overrides.pop("storage", None) or create_sync_storage(settings),
        "local_state": overrides.pop("local_state", None) or create_local_state(),
        "credentials": overrides.pop("credentials", None) or create_credential_provider(settings),
    }
    return SyncEngine(settings=settings, **collaborators, **overrides)
