"""Tests for the sensor ingestion pipeline."""

from unittest.mock import MagicMock

import pytest

from growengine.domain.exceptions import DeviceUnavailable
from growengine.domain.room import RoomConfig
from growengine.enums import EngineEvent, SensorStatus
from growengine.services.ingestion_service import SensorIngestionPipeline, sampling_period_for


@pytest.fixture
def pipeline(hardware, registry, clock, event_bus, store):
    return SensorIngestionPipeline(hardware, registry, registry, clock=clock, store=store, event_bus=event_bus)


@pytest.fixture
def room(registry, make_room):
    room = make_room()
    registry.upsert_room(room)
    return room


@pytest.mark.parametrize(
    "device_type, expected",
    [("temperature", 5.0), ("Soil-Moisture", 60.0), ("par", 1.0), ("co2", 30.0), ("relay", 30.0), (None, 30.0)],
)
def test_sampling_period_per_device_type(device_type, expected):
    assert sampling_period_for(device_type) == expected


def test_device_is_read_again_only_after_its_period(pipeline, room, registry, hardware, clock, make_device):
    registry.upsert_device(make_device(device_type="temperature"))
    hardware.samples["dev-1"] = {"temperature": 24.0}

    pipeline.tick()
    pipeline.tick()
    clock.advance(4)
    pipeline.tick()
    clock.advance(1)
    pipeline.tick()

    assert hardware.reads == ["dev-1", "dev-1"]


def test_inactive_devices_and_rooms_are_not_sampled(pipeline, registry, hardware, make_room, make_device):
    registry.upsert_room(make_room("room-2"))
    registry.upsert_room(RoomConfig(id="room-3", is_active=False))
    registry.upsert_device(make_device("dev-a", "room-2", is_active=False))
    registry.upsert_device(make_device("dev-b", "room-3"))

    assert pipeline.tick() == []
    assert hardware.reads == []


def test_unavailable_device_is_retried_next_tick(pipeline, room, registry, hardware, make_device):
    registry.upsert_device(make_device(device_type="temperature"))
    hardware.samples["dev-1"] = DeviceUnavailable("i2c timeout")

    assert pipeline.tick() == []
    assert pipeline.sensor_status("dev-1")["status"] == SensorStatus.DEGRADED.value

    hardware.samples["dev-1"] = {"temperature": 23.0}
    readings = pipeline.tick()

    assert len(readings) == 1
    assert pipeline.sensor_status("dev-1")["status"] == SensorStatus.HEALTHY.value


def test_repeated_failures_mark_device_offline(pipeline, room, registry, hardware, make_device):
    registry.upsert_device(make_device())
    hardware.samples["dev-1"] = RuntimeError("bus error")

    for _ in range(3):
        pipeline.tick()

    status = pipeline.sensor_status("dev-1")
    assert status["status"] == SensorStatus.OFFLINE.value
    assert status["failure_count"] == 3
    assert status["last_error"] == "bus error"


def test_accepted_reading_is_stored_cached_and_published(pipeline, room, registry, hardware, store, events, make_device):
    registry.upsert_device(make_device())
    hardware.samples["dev-1"] = {"temperature": 24.0, "humidity": 60.0}

    reading = pipeline.tick()[0]

    assert reading.room_id == "room-1"
    assert reading.metrics.temperature == 24.0
    assert reading.quality_score == 1.0
    assert store.get_historical_data("room-1") == [reading]
    assert pipeline.current_reading("room-1") == reading
    assert pipeline.current_value("room-1", "humidity") == 60.0
    assert events[EngineEvent.SENSOR_READING][0]["id"] == reading.id


def test_current_metrics_merge_devices_of_a_room(pipeline, room, registry, hardware, make_device):
    registry.upsert_device(make_device("dev-t", device_type="temperature"))
    registry.upsert_device(make_device("dev-s", device_type="soil_moisture"))
    hardware.samples["dev-t"] = {"temperature": 25.0}
    hardware.samples["dev-s"] = {"soilMoisture": 35.0}

    pipeline.tick()
    metrics = pipeline.current_metrics("room-1")

    assert metrics.temperature == 25.0
    assert metrics.soil_moisture == 35.0


def test_metrics_from_a_silent_device_go_stale(pipeline, room, registry, hardware, clock, make_device):
    registry.upsert_device(make_device("dev-t", device_type="temperature"))
    registry.upsert_device(make_device("dev-s", device_type="soil_moisture"))
    hardware.samples["dev-t"] = {"temperature": 41.0}
    hardware.samples["dev-s"] = {"soilMoisture": 35.0}
    pipeline.tick()

    hardware.samples["dev-t"] = DeviceUnavailable("sensor unplugged")
    clock.advance(600)
    pipeline.tick()
    assert pipeline.current_value("room-1", "temperature") == 41.0

    clock.advance(301)
    pipeline.tick()
    metrics = pipeline.current_metrics("room-1")

    assert metrics.temperature is None
    assert metrics.soil_moisture == 35.0


def test_stale_window_can_be_disabled(hardware, registry, clock, room, make_device):
    pipeline = SensorIngestionPipeline(hardware, registry, registry, clock=clock, stale_after_seconds=0)
    registry.upsert_device(make_device())
    hardware.samples["dev-1"] = {"temperature": 24.0}
    pipeline.tick()

    clock.advance(86400)

    assert pipeline.current_value("room-1", "temperature") == 24.0


def test_invalid_samples_are_dropped(pipeline, room, registry, hardware, make_device):
    registry.upsert_device(make_device())
    hardware.samples["dev-1"] = {"temperature": float("nan")}

    assert pipeline.tick() == []
    assert pipeline.current_metrics("room-1") is None
    assert pipeline.get_status()["dropped"] == 1


def test_history_is_bounded_and_newest_first(hardware, registry, clock, room, make_device):
    pipeline = SensorIngestionPipeline(hardware, registry, registry, clock=clock, history_size=3)
    device = make_device()
    registry.upsert_device(device)

    for value in (20.0, 21.0, 22.0, 23.0, 24.0):
        pipeline.ingest(device, {"ph": 6.0, "ec": 1.5, "water_level": value})
        clock.advance(30)

    history = pipeline.history("room-1")
    assert pipeline.history_size_for("room-1") == 3
    assert [r.metrics.water_level for r in history][0] > history[-1].metrics.water_level
    assert history[0].timestamp > history[-1].timestamp
    assert len(pipeline.history("room-1", limit=2)) == 2


def test_store_failure_does_not_drop_reading(hardware, registry, clock, room, make_device):
    store = MagicMock()
    store.save_reading.side_effect = RuntimeError("disk full")
    pipeline = SensorIngestionPipeline(hardware, registry, registry, clock=clock, store=store)

    reading = pipeline.ingest(make_device(), {"temperature": 24.0})

    assert reading is not None
    assert pipeline.history_size_for("room-1") == 1


def test_ingest_for_unknown_room_is_ignored(pipeline, make_device):
    assert pipeline.ingest(make_device(room_id="nowhere"), {"temperature": 24.0}) is None
