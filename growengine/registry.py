"""
In-memory registries and reading store.

Used by tests and small single-process deployments. Larger deployments plug
their own RoomRegistry / DeviceRegistry / ReadingStore adapters in instead.
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict, deque
from datetime import datetime
from typing import Any

from growengine.domain.room import RoomConfig
from growengine.domain.sensors import SensorDevice, SensorReading
from growengine.utils.concurrency import synchronized

logger = logging.getLogger(__name__)


class InMemoryRegistry:
    """Room and device registry backed by dicts."""

    def __init__(self, rooms: list[RoomConfig] | None = None, devices: list[SensorDevice] | None = None):
        self._lock = threading.RLock()
        self._rooms: dict[str, RoomConfig] = {}
        self._devices: dict[str, SensorDevice] = {}
        for room in rooms or []:
            self.upsert_room(room)
        for device in devices or []:
            self.upsert_device(device)

    # Rooms
    @synchronized
    def upsert_room(self, room: RoomConfig) -> None:
        self._rooms[room.id] = room

    @synchronized
    def remove_room(self, room_id: str) -> bool:
        return self._rooms.pop(room_id, None) is not None

    @synchronized
    def room_by_id(self, room_id: str) -> RoomConfig | None:
        return self._rooms.get(room_id)

    @synchronized
    def active_rooms(self) -> list[RoomConfig]:
        return [room for room in self._rooms.values() if room.is_active]

    # Devices
    @synchronized
    def upsert_device(self, device: SensorDevice) -> None:
        self._devices[device.id] = device

    @synchronized
    def remove_device(self, device_id: str) -> bool:
        return self._devices.pop(device_id, None) is not None

    @synchronized
    def device_by_id(self, device_id: str) -> SensorDevice | None:
        return self._devices.get(device_id)

    @synchronized
    def devices_for_room(self, room_id: str) -> list[SensorDevice]:
        return [device for device in self._devices.values() if device.room_id == room_id]


class InMemoryReadingStore:
    """Bounded per-room reading history plus the last performance snapshot."""

    def __init__(self, max_per_room: int = 10_000):
        self._lock = threading.RLock()
        self._max_per_room = int(max_per_room)
        self._readings: dict[str, deque[SensorReading]] = defaultdict(lambda: deque(maxlen=self._max_per_room))
        self._performance: dict[str, dict[str, Any]] = {}

    @synchronized
    def save_reading(self, reading: SensorReading) -> None:
        self._readings[reading.room_id].append(reading)

    @synchronized
    def get_historical_data(
        self,
        room_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int | None = None,
    ) -> list[SensorReading]:
        """Readings for a room in [start, end], newest first."""
        readings = [
            r
            for r in reversed(self._readings.get(room_id, ()))
            if (start is None or r.timestamp >= start) and (end is None or r.timestamp <= end)
        ]
        if limit is not None:
            readings = readings[: max(0, int(limit))]
        return readings

    @synchronized
    def save_performance_metrics(self, room_id: str, snapshot: dict[str, Any]) -> None:
        self._performance[room_id] = dict(snapshot)

    @synchronized
    def get_performance_metrics(self, room_id: str) -> dict[str, Any] | None:
        snapshot = self._performance.get(room_id)
        return dict(snapshot) if snapshot is not None else None
