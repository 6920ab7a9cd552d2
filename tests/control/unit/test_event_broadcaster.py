import queue
import time
import pytest
from unittest.mock import MagicMock
from trafficsync.common.metrics import MetricsCollector
from trafficsync.control.domain import EventKind, Phase, SignalEvent
from trafficsync.control.infrastructure import EventBroadcaster, ALL_SIGNALS

def make_event(signal_id="v1", kind=EventKind.ADMIT, phase=Phase.RED, cars=1, pedestrians=0, sequence=0):
    return SignalEvent(
        signal_id=signal_id,
        kind=kind,
        phase=phase,
        car_demand=cars,
        pedestrian_demand=pedestrians,
        timestamp=time.time(),
        sequence=sequence
    )

@pytest.fixture
def broadcaster():
    return EventBroadcaster(metrics_collector=MetricsCollector())

def test_subscribe_unsubscribe(broadcaster):
    q = broadcaster.subscribe("v1")
    assert isinstance(q, queue.Queue)
    assert q in broadcaster._subscribers["v1"]

    broadcaster.unsubscribe("v1", q)
    assert "v1" not in broadcaster._subscribers

def test_publish_reaches_signal_and_global_subscribers(broadcaster):
    q1 = broadcaster.subscribe("v1")
    q2 = broadcaster.subscribe("v2")
    q_all = broadcaster.subscribe()

    broadcaster.publish(make_event("v1", cars=3))

    data = q1.get_nowait()
    assert data["signal_id"] == "v1"
    assert data["event"] == "admit"
    assert data["phase"] == "RED"
    assert data["car_demand"] == 3
    assert "time" in data
    assert q_all.get_nowait() == data
    assert q2.empty()

def test_slow_subscriber_is_skipped(broadcaster):
    q = broadcaster.subscribe("v1", queue_size=1)

    broadcaster.publish(make_event(cars=1))
    broadcaster.publish(make_event(cars=2))

    assert q.get_nowait()["car_demand"] == 1
    assert q.empty()
    assert broadcaster.dropped_events == 1

def test_new_subscriber_gets_latest_state(broadcaster):
    broadcaster.publish(make_event("v1", kind=EventKind.TRANSITION, phase=Phase.GREEN_VEHICLE))
    broadcaster.publish(make_event("p1", kind=EventKind.ADMIT, cars=0, pedestrians=2))

    q = broadcaster.subscribe("v1")
    assert q.get_nowait()["phase"] == "GREEN_VEHICLE"

    q_all = broadcaster.subscribe(ALL_SIGNALS)
    assert {q_all.get_nowait()["signal_id"], q_all.get_nowait()["signal_id"]} == {"v1", "p1"}
    assert broadcaster.latest_state("p1")["pedestrian_demand"] == 2
    assert broadcaster.latest_state("unknown") is None

def test_listeners_are_called_and_isolated(broadcaster):
    failing = MagicMock(side_effect=RuntimeError("boom"))
    listener = MagicMock()
    broadcaster.add_listener(failing)
    broadcaster.add_listener(listener)

    event = make_event()
    broadcaster.publish(event)

    failing.assert_called_once_with(event)
    listener.assert_called_once_with(event)

def test_events_are_counted(broadcaster):
    broadcaster.publish(make_event(kind=EventKind.ADMIT))
    broadcaster.publish(make_event(kind=EventKind.ADMIT))
    broadcaster.publish(make_event(kind=EventKind.TIMEOUT))

    assert broadcaster.metrics_collector.get_metrics().events == {"admit": 2, "timeout": 1}

def test_late_event_does_not_overwrite_latest_state(broadcaster):
    q = broadcaster.subscribe("v1")
    broadcaster.publish(make_event("v1", kind=EventKind.TRANSITION, phase=Phase.GREEN_VEHICLE, cars=4, sequence=7))
    # Built before the transition, published after it
    broadcaster.publish(make_event("v1", kind=EventKind.ADMIT, cars=3, sequence=6))

    assert broadcaster.latest_state("v1")["phase"] == "GREEN_VEHICLE"
    assert broadcaster.latest_state("v1")["sequence"] == 7
    # Subscribers still see every event
    assert [q.get_nowait()["sequence"], q.get_nowait()["sequence"]] == [7, 6]
