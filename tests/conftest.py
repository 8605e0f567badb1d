"""
Shared test fixtures for the grow engine test suite.

Provides:
- A ManualClock pinned to 2024-05-01 10:00 UTC
- A synchronous EventBus plus an event recorder
- Stub hardware that records commands and serves canned samples
- An in-memory registry and a room factory

Usage:
    def test_example(make_room, registry, hardware):
        registry.upsert_room(make_room())
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any

import pytest

from growengine.config import EngineConfig
from growengine.domain.room import AutomationSettings, RoomConfig, default_targets
from growengine.domain.sensors import SensorDevice
from growengine.enums import EngineEvent, GrowthStage
from growengine.registry import InMemoryReadingStore, InMemoryRegistry
from growengine.utils.clock import ManualClock
from growengine.utils.event_bus import EventBus

# ---------------------------------------------------------------------------
# Logging: keep test output clean
# ---------------------------------------------------------------------------
logging.getLogger("growengine").setLevel(logging.CRITICAL)

START = datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)


class StubHardware:
    """Canned samples per device id; records every command sent."""

    def __init__(self):
        self.samples: dict[str, Any] = {}
        self.commands: list[tuple[str, dict]] = []
        self.rejecting: set[str] = set()
        self.tank_level: float | None = None
        self.reads: list[str] = []

    def read_device(self, device: SensorDevice):
        self.reads.append(device.id)
        sample = self.samples.get(device.id)
        if isinstance(sample, Exception):
            raise sample
        return sample

    def send_command(self, device: SensorDevice, command: dict) -> bool:
        self.commands.append((device.id, command))
        return device.id not in self.rejecting

    def read_co2_tank_level(self, room_id: str) -> float | None:
        return self.tank_level

    def command_types(self) -> list[str]:
        return [command["type"] for _, command in self.commands]


class EventRecorder:
    def __init__(self, bus: EventBus):
        self.events: dict[str, list[dict]] = defaultdict(list)
        for topic in EngineEvent:
            bus.subscribe(topic, lambda payload, name=topic.value: self.events[name].append(payload))

    def __getitem__(self, topic: EngineEvent) -> list[dict]:
        return self.events[topic.value]


@pytest.fixture
def clock():
    return ManualClock(START)


@pytest.fixture
def event_bus():
    return EventBus(worker_count=0)


@pytest.fixture
def events(event_bus):
    return EventRecorder(event_bus)


@pytest.fixture
def hardware():
    return StubHardware()


@pytest.fixture
def registry():
    return InMemoryRegistry()


@pytest.fixture
def store():
    return InMemoryReadingStore()


@pytest.fixture
def config():
    """Deterministic config: no dispatch timeout thread, synchronous events."""
    return EngineConfig(dispatch_timeout_seconds=0, eventbus_worker_count=0)


@pytest.fixture
def make_room():
    def _make(room_id: str = "room-1", *, stage: GrowthStage = GrowthStage.VEGETATIVE, targets=None, **automation):
        return RoomConfig(
            id=room_id,
            name=room_id.title(),
            growth_stage=stage,
            targets=targets or default_targets(stage),
            automation=AutomationSettings(**automation),
        )

    return _make


@pytest.fixture
def make_device():
    def _make(device_id: str = "dev-1", room_id: str = "room-1", device_type: str = "environment", **kwargs):
        return SensorDevice(id=device_id, room_id=room_id, type=device_type, **kwargs)

    return _make
