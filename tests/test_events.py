"""Tests for the sync event channel."""

from offline_sync.events import SyncEvent, SyncEventBus, SyncEventKind
from offline_sync.schemas import Action, ActionType


def test_publish_fans_out_and_unsubscribes():
    bus = SyncEventBus()
    seen = []
    unsubscribe = bus.subscribe(seen.append)

    bus.publish(SyncEvent(kind=SyncEventKind.PASS_FAILED, detail="disk full"))
    unsubscribe()
    bus.publish(SyncEvent(kind=SyncEventKind.PASS_FAILED))

    assert len(seen) == 1
    assert seen[0].detail == "disk full"
    assert len(bus.history()) == 2


def test_listener_error_is_contained():
    bus = SyncEventBus()
    seen = []

    def broken(event):
        raise RuntimeError("boom")

    bus.subscribe(broken)
    bus.subscribe(seen.append)

    bus.publish(SyncEvent(kind=SyncEventKind.SUCCEEDED))

    assert len(seen) == 1


def test_history_is_bounded_and_limited():
    bus = SyncEventBus(history_size=3)
    for i in range(5):
        bus.publish(SyncEvent(kind=SyncEventKind.SUCCEEDED, detail=str(i)))

    assert [e.detail for e in bus.history()] == ["2", "3", "4"]
    assert [e.detail for e in bus.history(2)] == ["3", "4"]
    assert bus.history(0) == []

    bus.clear()
    assert bus.history() == []


def test_event_for_action():
    action = Action(type=ActionType.CREATE_ORDER)

    event = SyncEvent.for_action(SyncEventKind.RETRIES_EXHAUSTED, action, detail="Gateway timeout")

    assert event.is_terminal_failure
    assert event.to_dict()["action_type"] == "CREATE_ORDER"
    assert event.to_dict()["kind"] == "retries_exhausted"
    assert not SyncEvent(kind=SyncEventKind.CONFLICTED).is_terminal_failure
