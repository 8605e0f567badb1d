"""
Collaborator contracts.

The engine consumes these through duck typing; the Protocol classes document
the expected surface and let type checkers verify adapters.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, Protocol

from growengine.domain.control import WateringPrediction
from growengine.domain.room import RoomConfig
from growengine.domain.sensors import SensorDevice, SensorMetrics, SensorReading


class HardwareIntegration(Protocol):
    def read_device(self, device: SensorDevice) -> SensorMetrics | dict[str, float]:
        """Sample a device. Raises DeviceUnavailable when it cannot be read."""
        ...

    def send_command(self, device: SensorDevice, command: dict[str, Any]) -> bool | None:
        """Send an actuator command. False or an exception means failure."""
        ...

    def read_co2_tank_level(self, room_id: str) -> float | None:
        """Remaining CO2 supply in percent, None when unknown."""
        ...


class RoomRegistry(Protocol):
    def active_rooms(self) -> Iterable[RoomConfig]: ...

    def room_by_id(self, room_id: str) -> RoomConfig | None: ...


class DeviceRegistry(Protocol):
    def devices_for_room(self, room_id: str) -> Iterable[SensorDevice]: ...

    def device_by_id(self, device_id: str) -> SensorDevice | None: ...


class WateringAdvisor(Protocol):
    def predict_watering_need(self, room_id: str, metrics: SensorMetrics) -> WateringPrediction: ...


class ReadingStore(Protocol):
    def save_reading(self, reading: SensorReading) -> None: ...

    def get_historical_data(
        self,
        room_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int | None = None,
    ) -> list[SensorReading]: ...

    def save_performance_metrics(self, room_id: str, snapshot: dict[str, Any]) -> None: ...

    def get_performance_metrics(self, room_id: str) -> dict[str, Any] | None: ...
