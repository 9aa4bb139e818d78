"""Tests for the sync engine drain loop."""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from offline_sync.core.errors import PersistenceError
from offline_sync.engine import ActionOutcome, FailureKind, build_sync_engine
from offline_sync.events import SyncEventKind
from offline_sync.schemas import ActionType, EntityKind, Priority, SyncState, utc_now
from offline_sync.services.connectivity import ManualConnectivityMonitor
from offline_sync.services.storage import MemorySyncStorage
from offline_sync.services.transport import MockTransport, TransportResult


def _event_kinds(engine):
    return [e.kind for e in engine.events.history()]


# =============================================================================
# SCENARIOS
# =============================================================================

@pytest.mark.asyncio
async def test_offline_order_syncs_on_reconnect(make_engine, transport, local_state):
    """An order queued offline is replayed once connectivity returns."""
    monitor = ManualConnectivityMonitor(online=False)
    engine = make_engine(monitor_override=monitor)
    local_state.add_local_order({"id": "local_1", "items": [{"menuItemId": "taco"}]})

    action_id = await engine.enqueue(
        ActionType.CREATE_ORDER,
        {"items": [{"menuItemId": "taco"}]},
        metadata={"local_order_id": "local_1"},
    )
    assert await engine.sync_queue() is None
    assert transport.performed == []

    monitor.set_connected(True)
    await asyncio.gather(*engine.background_tasks)

    assert [a.id for a in transport.performed] == [action_id]
    assert engine.get_queue_snapshot() == []
    assert engine.sync_state == SyncState.IDLE
    assert engine.last_sync_time is not None

    # Local order now carries the server id and is no longer pending
    order = local_state.orders[0]
    assert order["id"] == "srv_1"
    assert order["isPendingSync"] is False
    assert "localId" not in order


@pytest.mark.asyncio
async def test_pass_drains_in_priority_order(engine, transport):
    cart = await engine.enqueue(ActionType.ADD_TO_CART, {"menuItemId": "nachos"})
    order = await engine.enqueue(ActionType.CREATE_ORDER, {"items": [1]})
    profile = await engine.enqueue(ActionType.UPDATE_PROFILE, {"name": "Sam"})

    result = await engine.sync_queue()

    assert [a.id for a in transport.performed] == [order, profile, cart]
    assert result.succeeded == 3
    assert result.sync_state == SyncState.IDLE


@pytest.mark.asyncio
async def test_transient_failure_retries_with_backoff(engine, transport, sleep):
    action_id = await engine.enqueue(ActionType.CREATE_ORDER, {"items": [1]})
    transport.script(TransportResult.transient("Gateway timeout"))

    first = await engine.sync_queue()

    assert first.retried == 1
    queued = engine.get_queue_snapshot()
    assert [a.id for a in queued] == [action_id]
    assert queued[0].retry_count == 1
    assert sleep.delays == []

    second = await engine.sync_queue()

    assert second.succeeded == 1
    assert engine.get_queue_snapshot() == []
    # base 1000ms * 2**1, no jitter
    assert sleep.delays == [2.0]


@pytest.mark.asyncio
async def test_retries_exhausted_after_max_attempts(engine, transport, sleep):
    action_id = await engine.enqueue(ActionType.CREATE_ORDER, {"items": [1]}, max_retries=3)
    transport.script(*[TransportResult.transient("down")] * 10)

    for _ in range(5):
        await engine.sync_queue()

    assert len(transport.performed) == 3
    assert engine.get_queue_snapshot() == []
    assert sleep.delays == [2.0, 4.0]
    assert _event_kinds(engine).count(SyncEventKind.RETRY_SCHEDULED) == 2
    exhausted = engine.events.history()[-1]
    assert exhausted.kind == SyncEventKind.RETRIES_EXHAUSTED
    assert exhausted.action_id == action_id
    assert exhausted.is_terminal_failure


@pytest.mark.asyncio
async def test_zero_retry_budget_still_attempts_once(engine, transport):
    await engine.enqueue(ActionType.CREATE_ORDER, {"items": [1]}, max_retries=0)
    transport.script(TransportResult.transient("down"))

    result = await engine.sync_queue()

    assert len(transport.performed) == 1
    assert result.dropped == 1
    assert result.results[0].failure == FailureKind.RETRIES_EXHAUSTED


# =============================================================================
# CONFLICTS
# =============================================================================

@pytest.mark.asyncio
async def test_update_conflict_is_parked(engine, transport, local_state):
    local_state.orders.append({"id": "ord_1", "status": "preparing"})
    action_id = await engine.enqueue(ActionType.UPDATE_ORDER, {"id": "ord_1", "status": "cancelled"})
    server = {"id": "ord_1", "status": "ready", "updatedAt": (utc_now() + timedelta(minutes=5)).isoformat()}
    transport.script_fetch(TransportResult.success(server))

    result = await engine.sync_queue()

    assert result.conflicted == 1
    assert transport.performed == []
    assert engine.get_queue_snapshot() == []
    conflicts = engine.get_conflicts()
    assert [c.action_id for c in conflicts] == [action_id]
    assert conflicts[0].server_snapshot == server
    assert conflicts[0].local_snapshot == {"id": "ord_1", "status": "preparing"}
    assert conflicts[0].action.payload["status"] == "cancelled"
    assert SyncEventKind.CONFLICTED in _event_kinds(engine)


@pytest.mark.asyncio
async def test_older_server_copy_is_not_a_conflict(engine, transport):
    await engine.enqueue(ActionType.UPDATE_PROFILE, {"name": "Sam"})
    transport.script_fetch(TransportResult.success({"updatedAt": "2020-01-01T00:00:00Z"}))

    result = await engine.sync_queue()

    assert result.succeeded == 1
    assert engine.get_conflicts() == []


@pytest.mark.asyncio
async def test_failed_fetch_still_applies_update(engine, transport):
    await engine.enqueue(ActionType.UPDATE_ORDER, {"id": "ord_1", "status": "ready"})
    transport.script_fetch(TransportResult.rejected("Order not found", status_code=404))

    result = await engine.sync_queue()

    assert result.succeeded == 1
    assert len(transport.performed) == 1


@pytest.mark.asyncio
async def test_http_conflict_on_write_is_parked(engine, transport):
    action_id = await engine.enqueue(ActionType.UPDATE_PROFILE, {"name": "Sam"})
    transport.script(TransportResult.conflict({"name": "Alex"}, status_code=409))

    result = await engine.sync_queue()

    assert result.conflicted == 1
    assert engine.get_conflict(action_id).server_snapshot == {"name": "Alex"}


@pytest.mark.asyncio
async def test_create_orders_are_not_conflict_checked(engine, transport):
    await engine.enqueue(ActionType.CREATE_ORDER, {"items": [1]})

    await engine.sync_queue()

    assert transport.fetched == []


@pytest.mark.asyncio
async def test_resolve_with_server_version(engine, transport, local_state):
    local_state.orders.append({"id": "ord_1", "status": "preparing"})
    action_id = await engine.enqueue(ActionType.UPDATE_ORDER, {"id": "ord_1", "status": "cancelled"})
    server = {"id": "ord_1", "status": "ready", "updatedAt": (utc_now() + timedelta(minutes=5)).isoformat()}
    transport.script_fetch(TransportResult.success(server))
    await engine.sync_queue()

    resolution = await engine.resolve_conflict(action_id, use_server=True)

    assert resolution.resolution == "server"
    assert engine.get_conflicts() == []
    assert engine.get_queue_snapshot() == []
    assert local_state.orders[0]["status"] == "ready"
    assert local_state.orders[0]["isPendingSync"] is False

    # Second resolution is a no-op
    assert await engine.resolve_conflict(action_id, use_server=True) is None
    assert await engine.resolve_conflict(action_id, use_server=False) is None


@pytest.mark.asyncio
async def test_resolve_with_local_version_requeues_high_priority(engine, transport):
    action_id = await engine.enqueue(
        ActionType.UPDATE_PROFILE,
        {"name": "Sam"},
        priority=Priority.LOW,
        max_retries=5,
        metadata={"user_id": "u1"},
    )
    await engine.enqueue(ActionType.CREATE_ORDER, {"items": [1]})
    transport.script_fetch(TransportResult.success({"updatedAt": (utc_now() + timedelta(hours=1)).isoformat()}))
    await engine.sync_queue()
    assert engine.get_conflict(action_id) is not None

    await engine.enqueue(ActionType.ADD_TO_CART, {"menuItemId": "taco"}, priority=Priority.HIGH)
    resolution = await engine.resolve_conflict(action_id, use_server=False)

    assert resolution.resolution == "local"
    requeued = [a for a in engine.get_queue_snapshot() if a.id == resolution.requeued_action_id][0]
    assert requeued.id != action_id
    assert requeued.type == ActionType.UPDATE_PROFILE
    assert requeued.payload == {"name": "Sam"}
    assert requeued.metadata == {"user_id": "u1"}
    assert requeued.priority == Priority.HIGH
    assert requeued.retry_count == 0
    assert requeued.max_retries == 5
    assert engine.get_conflicts() == []
    assert await engine.resolve_conflict(action_id, use_server=False) is None


@pytest.mark.asyncio
async def test_resolve_unknown_conflict_returns_none(engine):
    assert await engine.resolve_conflict("action_missing", use_server=True) is None


@pytest.mark.asyncio
async def test_resolve_local_resets_retry_count_of_parked_action(engine, transport, sleep):
    action_id = await engine.enqueue(ActionType.UPDATE_ORDER, {"id": "ord_1", "status": "cancelled"})
    transport.script_fetch(TransportResult.success({}))
    transport.script(TransportResult.transient("down"))
    await engine.sync_queue()
    assert engine.get_queue_snapshot()[0].retry_count == 1

    transport.script_fetch(TransportResult.success(
        {"id": "ord_1", "updatedAt": (utc_now() + timedelta(hours=1)).isoformat()}
    ))
    await engine.sync_queue()

    # Parked with the retry count it had when the conflict was found
    assert sleep.delays == [2.0]
    assert engine.get_conflict(action_id).action.retry_count == 1

    resolution = await engine.resolve_conflict(action_id, use_server=False)

    [requeued] = engine.get_queue_snapshot()
    assert requeued.id == resolution.requeued_action_id
    assert requeued.priority == Priority.HIGH
    assert requeued.retry_count == 0


# =============================================================================
# TERMINAL FAILURES
# =============================================================================

@pytest.mark.asyncio
async def test_missing_token_drops_action(make_engine, transport, credentials):
    credentials.clear()
    engine = make_engine()
    action_id = await engine.enqueue(ActionType.CREATE_ORDER, {"items": [1]})

    result = await engine.sync_queue()

    assert transport.performed == []
    assert result.dropped == 1
    assert result.results[0].failure == FailureKind.AUTH_REQUIRED
    assert engine.get_queue_snapshot() == []
    event = engine.events.history()[-1]
    assert event.kind == SyncEventKind.AUTH_REQUIRED
    assert event.action_id == action_id


@pytest.mark.asyncio
async def test_auth_failure_from_server_drops_action(engine, transport):
    await engine.enqueue(ActionType.CREATE_ORDER, {"items": [1]})
    transport.script(TransportResult.auth_failure(status_code=401))

    result = await engine.sync_queue()

    assert result.results[0].failure == FailureKind.AUTH_REQUIRED
    assert engine.get_queue_snapshot() == []


@pytest.mark.asyncio
async def test_permanent_rejection_drops_without_retry(engine, transport):
    await engine.enqueue(ActionType.CREATE_ORDER, {"items": []})
    transport.script(TransportResult.rejected("Order must contain at least one item", status_code=400))

    result = await engine.sync_queue()
    await engine.sync_queue()

    assert len(transport.performed) == 1
    assert result.results[0].failure == FailureKind.PERMANENT_REJECTION
    assert engine.get_queue_snapshot() == []


@pytest.mark.asyncio
async def test_handler_exception_is_treated_as_transient(engine, transport):
    await engine.enqueue(ActionType.CREATE_ORDER, {"items": [1]})
    transport.script(RuntimeError("socket closed"))

    result = await engine.sync_queue()

    assert result.retried == 1
    assert result.results[0].error_message == "socket closed"
    assert engine.get_queue_snapshot()[0].retry_count == 1


# =============================================================================
# CONCURRENCY
# =============================================================================

@pytest.mark.asyncio
async def test_concurrent_sync_is_a_noop(engine, transport):
    gate = asyncio.Event()
    original = transport.perform

    async def slow_perform(action, token):
        await gate.wait()
        return await original(action, token)

    transport.perform = slow_perform
    await engine.enqueue(ActionType.CREATE_ORDER, {"items": [1]})

    first = asyncio.create_task(engine.sync_queue())
    await asyncio.sleep(0)
    assert engine.is_syncing
    assert engine.sync_state == SyncState.SYNCING

    assert await engine.sync_queue() is None

    gate.set()
    result = await first
    assert result.succeeded == 1
    assert not engine.is_syncing


@pytest.mark.asyncio
async def test_enqueue_during_pass_waits_for_next_pass(engine, transport):
    gate = asyncio.Event()
    original = transport.perform

    async def slow_perform(action, token):
        await gate.wait()
        return await original(action, token)

    transport.perform = slow_perform
    await engine.enqueue(ActionType.ADD_TO_CART, {"menuItemId": "taco"})

    running = asyncio.create_task(engine.sync_queue())
    await asyncio.sleep(0)
    late = await engine.enqueue(ActionType.CREATE_ORDER, {"items": [1]})
    gate.set()
    result = await running

    assert result.attempted == 1
    assert [a.id for a in engine.get_queue_snapshot()] == [late]


@pytest.mark.asyncio
async def test_action_removed_during_backoff_is_skipped(engine, transport, sleep):
    action_id = await engine.enqueue(ActionType.CREATE_ORDER, {"items": [1]})
    transport.script(TransportResult.transient("down"))
    await engine.sync_queue()

    async def remove_while_waiting():
        await engine.remove_action(action_id)

    sleep.on_sleep = remove_while_waiting
    result = await engine.sync_queue()

    assert result.results[0].outcome == ActionOutcome.SKIPPED
    assert len(transport.performed) == 1


@pytest.mark.asyncio
async def test_sync_noop_when_offline_or_empty(make_engine, transport):
    engine = make_engine(monitor_override=ManualConnectivityMonitor(online=False))
    assert await engine.sync_queue() is None

    await engine.enqueue(ActionType.CREATE_ORDER, {"items": [1]})
    assert await engine.sync_queue() is None
    assert transport.performed == []
    assert engine.queue_length == 1


@pytest.mark.asyncio
async def test_reconnect_trigger_ignores_disconnect(make_engine, transport):
    monitor = ManualConnectivityMonitor(online=True)
    engine = make_engine(monitor_override=monitor)
    await engine.enqueue(ActionType.CREATE_ORDER, {"items": [1]})

    monitor.set_connected(False)
    assert engine.background_tasks == set()

    monitor.set_connected(True)
    assert len(engine.background_tasks) == 1
    await asyncio.gather(*engine.background_tasks)
    assert len(transport.performed) == 1


# =============================================================================
# PERSISTENCE
# =============================================================================

@pytest.mark.asyncio
async def test_enqueue_rolls_back_when_persist_fails(engine, storage):
    storage.fail_writes = True

    with pytest.raises(PersistenceError):
        await engine.enqueue(ActionType.CREATE_ORDER, {"items": [1]})

    assert engine.queue_length == 0


@pytest.mark.asyncio
async def test_persistence_fault_ends_pass_in_error(engine, storage):
    await engine.enqueue(ActionType.CREATE_ORDER, {"items": [1]})
    storage.fail_writes = True

    result = await engine.sync_queue()

    assert result.sync_state == SyncState.ERROR
    assert result.error is not None
    assert engine.sync_state == SyncState.ERROR
    assert not engine.is_syncing
    assert SyncEventKind.PASS_FAILED in _event_kinds(engine)


@pytest.mark.asyncio
async def test_failed_pass_still_records_sync_time(engine):
    await engine.enqueue(ActionType.CREATE_ORDER, {"items": [1]})
    assert engine.last_sync_time is None

    async def disk_full():
        raise PersistenceError("disk full", backend="memory")

    engine._persist_queue = disk_full
    result = await engine.sync_queue()

    assert result.sync_state == SyncState.ERROR
    assert engine.last_sync_time is not None
    assert engine.status()["last_sync_time"] == engine.last_sync_time


@pytest.mark.asyncio
async def test_write_failure_after_success_keeps_action_out_of_queue(engine, storage, local_state):
    local_state.add_local_order({"id": "local_1", "items": [1]})
    action_id = await engine.enqueue(
        ActionType.CREATE_ORDER, {"items": [1]}, metadata={"local_order_id": "local_1"}
    )
    real_save_queue = storage.save_queue
    storage.save_queue = AsyncMock(side_effect=PersistenceError("disk full", backend="memory"))

    result = await engine.sync_queue()

    assert result.sync_state == SyncState.ERROR
    assert engine.queue_length == 0
    assert local_state.orders[0]["isPendingSync"] is False
    # Storage still holds the Action until the next queue write
    assert [a.id for a in (await storage.load()).actions] == [action_id]

    storage.save_queue = real_save_queue
    cart = await engine.enqueue(ActionType.ADD_TO_CART, {"menuItemId": "taco"})
    assert [a.id for a in (await storage.load()).actions] == [cart]


@pytest.mark.asyncio
async def test_clear_queue_keeps_conflicts(engine, transport, storage):
    parked = await engine.enqueue(ActionType.UPDATE_PROFILE, {"name": "Sam"})
    transport.script_fetch(TransportResult.success({"updatedAt": (utc_now() + timedelta(hours=1)).isoformat()}))
    await engine.sync_queue()
    await engine.enqueue(ActionType.CREATE_ORDER, {"items": [1]})
    await engine.enqueue(ActionType.ADD_TO_CART, {"menuItemId": "taco"})

    assert await engine.clear_queue() == 2

    assert engine.queue_length == 0
    assert (await storage.load()).actions == []
    assert [c.action_id for c in engine.get_conflicts()] == [parked]


@pytest.mark.asyncio
async def test_state_survives_restart(make_engine, transport, storage):
    engine = make_engine()
    kept = await engine.enqueue(ActionType.ADD_TO_CART, {"menuItemId": "taco"})
    conflicted = await engine.enqueue(ActionType.UPDATE_PROFILE, {"name": "Sam"})
    transport.script_fetch(TransportResult.success({"updatedAt": (utc_now() + timedelta(hours=1)).isoformat()}))
    transport.script(TransportResult.transient("down"))
    await engine.sync_queue()

    restarted = make_engine()
    await restarted.load()

    queued = restarted.get_queue_snapshot()
    assert [a.id for a in queued] == [kept]
    assert queued[0].retry_count == 1
    assert [c.action_id for c in restarted.get_conflicts()] == [conflicted]
    assert restarted.last_sync_time is not None
    assert restarted.sync_state == SyncState.IDLE


@pytest.mark.asyncio
async def test_load_resets_interrupted_pass(make_engine, storage):
    await storage.save_sync_meta(SyncState.SYNCING, None)

    engine = make_engine()
    await engine.load()

    assert engine.sync_state == SyncState.IDLE


# =============================================================================
# AUTO-SYNC
# =============================================================================

@pytest.mark.asyncio
async def test_auto_sync_runs_while_online(engine, transport):
    await engine.enqueue(ActionType.CREATE_ORDER, {"items": [1]})

    engine.start_auto_sync(10)
    assert engine.auto_sync_running
    await asyncio.sleep(0.1)
    engine.stop_auto_sync()
    await asyncio.gather(*engine.background_tasks)

    assert not engine.auto_sync_running
    assert len(transport.performed) == 1


@pytest.mark.asyncio
async def test_auto_sync_skips_while_offline(make_engine, transport):
    engine = make_engine(monitor_override=ManualConnectivityMonitor(online=False))
    await engine.enqueue(ActionType.CREATE_ORDER, {"items": [1]})

    engine.start_auto_sync(10)
    await asyncio.sleep(0.05)
    engine.stop_auto_sync()

    assert transport.performed == []


@pytest.mark.asyncio
async def test_close_releases_resources(engine, transport):
    engine.start_auto_sync(1000)

    await engine.close()

    assert not engine.auto_sync_running
    assert transport.closed


# =============================================================================
# WIRING
# =============================================================================

@pytest.mark.asyncio
async def test_build_sync_engine_against_mock_server(settings, local_state):
    server = MockTransport(failure_rate=0.0, min_latency=0, max_latency=0)
    engine = build_sync_engine(
        settings,
        transport=server,
        connectivity=ManualConnectivityMonitor(online=True),
        storage=MemorySyncStorage(),
        local_state=local_state,
    )
    await engine.enqueue(ActionType.CREATE_ORDER, {"items": [{"menuItemId": "taco", "quantity": 1}]})
    await engine.sync_queue()

    order_id = local_state.orders[0]["id"]
    assert order_id in server.orders

    action_id = await engine.enqueue(ActionType.UPDATE_ORDER, {"id": order_id, "status": "cancelled"})
    server.touch_entity(
        EntityKind.ORDER,
        order_id,
        {"status": "ready"},
        at=utc_now() + timedelta(seconds=5),
    )
    result = await engine.sync_queue()

    assert result.conflicted == 1
    assert engine.get_conflict(action_id).server_snapshot["status"] == "ready"
    await engine.close()
