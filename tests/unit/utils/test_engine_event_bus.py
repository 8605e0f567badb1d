"""Tests for the engine EventBus."""

import threading
from datetime import datetime, timezone

from growengine.enums import EngineEvent
from growengine.schemas.events import SafetyWarningPayload
from growengine.utils.event_bus import EventBus

NOW = datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)


def _warning():
    return SafetyWarningPayload(
        room_id="room-1",
        issue_type="high_temperature",
        severity="warning",
        value=36.0,
        threshold=35.0,
        message="High temperature: 36.0°C",
        timestamp=NOW,
    )


def test_synchronous_delivery_serialises_models():
    bus = EventBus(worker_count=0)
    received = []
    bus.subscribe(EngineEvent.SAFETY_WARNING, received.append)

    bus.publish(EngineEvent.SAFETY_WARNING, _warning())

    assert received[0]["room_id"] == "room-1"
    assert received[0]["timestamp"].startswith("2024-05-01T10:00:00")


def test_worker_delivery_and_drain():
    bus = EventBus(worker_count=2)
    received = []
    bus.subscribe("custom.topic", received.append)

    for i in range(10):
        bus.publish("custom.topic", {"n": i})
    bus.drain()
    bus.shutdown()

    assert sorted(item["n"] for item in received) == list(range(10))
    assert bus.get_metrics()["published"] == 10


def test_unsubscribe_and_failing_callback():
    bus = EventBus(worker_count=0)
    received = []

    def broken(_payload):
        raise RuntimeError("subscriber bug")

    bus.subscribe("topic", broken)
    unsubscribe = bus.subscribe("topic", received.append)
    bus.publish("topic", 1)
    unsubscribe()
    bus.publish("topic", 2)

    assert received == [1]


def test_full_queue_drops_events():
    bus = EventBus(queue_size=1, worker_count=1)
    release = threading.Event()
    bus.subscribe("topic", lambda _payload: release.wait(5))

    for _ in range(3):
        bus.publish("topic", {})
    release.set()
    bus.drain()
    bus.shutdown()

    metrics = bus.get_metrics()
    assert metrics["published"] == 3
    assert metrics["dropped_events"] >= 1
