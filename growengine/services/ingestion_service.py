"""
Sensor Ingestion Pipeline
=========================
Samples every active device of every active room, then for each accepted
sample: calibrate -> smooth -> validate/score -> anomaly check -> persist ->
update the current-room cache -> append to bounded history -> evaluate
alerts -> publish.

The per-device-type sampling period is the only intake throttle: a device
is read again only once its period has elapsed since the last successful
read. Failed reads are retried on the next tick.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Any

from growengine.domain.exceptions import ConfigurationMissing, DeviceUnavailable, ValidationFailure
from growengine.domain.room import RoomConfig
from growengine.domain.sensors import SensorDevice, SensorHealth, SensorMetrics, SensorReading
from growengine.enums import EngineEvent, SensorStatus, SensorType
from growengine.schemas.events import SensorReadingPayload
from growengine.services.alert_evaluator import AlertEvaluator
from growengine.services.anomaly_detection_service import AnomalyDetectionService
from growengine.services.smoothing_service import DataSmoothingService
from growengine.services.validation_service import DataValidationService
from growengine.utils.clock import Clock, SystemClock
from growengine.utils.event_bus import EventBus

logger = logging.getLogger(__name__)

# Seconds between reads per sensor type
SAMPLING_PERIODS: dict[SensorType, float] = {
    SensorType.TEMPERATURE: 5.0,
    SensorType.HUMIDITY: 5.0,
    SensorType.CO2: 30.0,
    SensorType.VPD: 10.0,
    SensorType.LIGHT: 1.0,
    SensorType.SOIL_MOISTURE: 60.0,
    SensorType.PH: 30.0,
    SensorType.EC: 30.0,
    SensorType.WATER_LEVEL: 120.0,
}
DEFAULT_SAMPLING_PERIOD = 30.0

OFFLINE_AFTER_FAILURES = 3


_DEVICE_TYPE_ALIASES = {"par": "light", "soil": "soil_moisture", "water": "water_level"}


def sampling_period_for(device_type: str | None) -> float:
    """Sampling period of a registry device type; unknown types use the default."""
    key = (device_type or "").strip().lower().replace("-", "_")
    try:
        sensor_type = SensorType(_DEVICE_TYPE_ALIASES.get(key, key))
    except ValueError:
        return DEFAULT_SAMPLING_PERIOD
    return SAMPLING_PERIODS.get(sensor_type, DEFAULT_SAMPLING_PERIOD)


class SensorIngestionPipeline:
    """
    Turns raw device samples into SensorReadings and keeps per-room state.

    Args:
        hardware: HardwareIntegration used for read_device()
        rooms: RoomRegistry
        devices: DeviceRegistry
        clock: Clock for sampling periods and timestamps
        smoothing / validation / anomaly: data-quality collaborators
        alert_evaluator: AlertEvaluator invoked for every accepted reading
        store: optional ReadingStore for persistence
        event_bus: optional EventBus for sensor.reading events
        history_size: per-room in-memory history bound (FIFO)
        stale_after_seconds: a room metric not refreshed within this window
            is left out of current_metrics(); 0 keeps metrics forever
    """

    def __init__(
        self,
        hardware,
        rooms,
        devices,
        *,
        clock: Clock | None = None,
        smoothing: DataSmoothingService | None = None,
        validation: DataValidationService | None = None,
        anomaly: AnomalyDetectionService | None = None,
        alert_evaluator: AlertEvaluator | None = None,
        store=None,
        event_bus: EventBus | None = None,
        history_size: int = 1000,
        stale_after_seconds: float = 900.0,
    ):
        self.hardware = hardware
        self.rooms = rooms
        self.devices = devices
        self.clock = clock or SystemClock()
        self.smoothing = smoothing or DataSmoothingService()
        self.validation = validation or DataValidationService()
        self.anomaly = anomaly or AnomalyDetectionService()
        self.alert_evaluator = alert_evaluator or AlertEvaluator(event_bus=event_bus, clock=self.clock)
        self.store = store
        self.event_bus = event_bus
        self.history_size = int(history_size)
        self.stale_after_seconds = float(stale_after_seconds)

        self._lock = threading.RLock()
        self._last_read: dict[str, float] = {}  # device_id -> clock.monotonic() of last successful read
        self._health: dict[str, SensorHealth] = {}
        self._history: dict[str, deque[SensorReading]] = {}
        self._current_reading: dict[str, SensorReading] = {}
        self._current_metrics: dict[str, SensorMetrics] = {}
        self._metric_updated: dict[str, dict[str, datetime]] = {}  # room_id -> metric -> reading timestamp

        self._stats = {"ticks": 0, "reads": 0, "accepted": 0, "dropped": 0, "failures": 0}

    # ------------------------------------------------------------------
    # Sampling
    # ------------------------------------------------------------------

    def tick(self) -> list[SensorReading]:
        """Sample every due device once. Never raises for per-device failures."""
        accepted: list[SensorReading] = []
        self._stats["ticks"] += 1

        try:
            rooms = list(self.rooms.active_rooms())
        except Exception as e:
            logger.error("Failed to list active rooms: %s", e, exc_info=True)
            return accepted

        for room in rooms:
            try:
                devices = list(self.devices.devices_for_room(room.id))
            except Exception as e:
                logger.warning("Failed to list devices for room %s: %s", room.id, e)
                continue

            for device in devices:
                if not device.is_active or not self._is_due(device):
                    continue
                reading = self._sample(device, room)
                if reading is not None:
                    accepted.append(reading)

        return accepted

    def _is_due(self, device: SensorDevice) -> bool:
        last = self._last_read.get(device.id)
        if last is None:
            return True
        return self.clock.monotonic() - last >= sampling_period_for(device.type)

    def _sample(self, device: SensorDevice, room: RoomConfig) -> SensorReading | None:
        health = self._health_for(device.id)
        health.last_attempt = self.clock.now()
        self._stats["reads"] += 1

        try:
            raw = self.hardware.read_device(device)
            if raw is None:
                raise DeviceUnavailable(f"Device {device.id} returned no data")
        except DeviceUnavailable as e:
            self._record_failure(device.id, str(e))
            logger.debug("Device %s unavailable, retrying next tick: %s", device.id, e)
            return None
        except Exception as e:
            self._record_failure(device.id, str(e))
            logger.warning("Unexpected error reading device %s: %s", device.id, e)
            return None

        self._last_read[device.id] = self.clock.monotonic()
        health.status = SensorStatus.HEALTHY
        health.failure_count = 0
        health.last_error = None
        health.last_seen = self.clock.now()

        return self._process(device, room, raw)

    def _record_failure(self, device_id: str, error: str) -> None:
        health = self._health_for(device_id)
        health.failure_count += 1
        health.last_error = error
        health.status = SensorStatus.OFFLINE if health.failure_count >= OFFLINE_AFTER_FAILURES else SensorStatus.DEGRADED
        self._stats["failures"] += 1

    def _health_for(self, device_id: str) -> SensorHealth:
        with self._lock:
            health = self._health.get(device_id)
            if health is None:
                health = SensorHealth()
                self._health[device_id] = health
            return health

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    def ingest(self, device: SensorDevice, raw: SensorMetrics | dict[str, Any]) -> SensorReading | None:
        """
        Process a sample that was obtained outside tick() (push-style hardware).

        Returns None when the device's room is unknown or the sample was dropped.
        """
        room = self.rooms.room_by_id(device.room_id)
        if room is None:
            logger.debug("Ignoring sample from %s: %s", device.id, ConfigurationMissing(f"room {device.room_id}"))
            return None
        return self._process(device, room, raw)

    def _process(self, device: SensorDevice, room: RoomConfig, raw: SensorMetrics | dict[str, Any]) -> SensorReading | None:
        try:
            metrics = raw if isinstance(raw, SensorMetrics) else SensorMetrics.from_dict(raw)
        except (TypeError, ValueError) as e:
            self._stats["dropped"] += 1
            logger.debug("Dropping malformed sample from %s: %s", device.id, e)
            return None

        timestamp = self.clock.now()
        metrics = device.calibrate(metrics)

        try:
            # Reject raw samples before they enter the smoothing window
            self.validation.validate(metrics)
            metrics = self.smoothing.smooth(device.id, metrics)
            quality = self.validation.assess(device.id, metrics, timestamp)
        except ValidationFailure as e:
            self._stats["dropped"] += 1
            logger.debug("Dropping sample from %s: %s", device.id, e)
            return None

        anomalies = self.anomaly.check(device.id, metrics, timestamp)

        reading = SensorReading(
            id=SensorReading.make_id(device.id, timestamp),
            device_id=device.id,
            room_id=room.id,
            timestamp=timestamp,
            metrics=metrics,
            quality_score=quality,
            is_anomaly=bool(anomalies),
            anomaly_reasons=tuple(a.description for a in anomalies),
        )

        if self.store is not None:
            try:
                self.store.save_reading(reading)
            except Exception as e:
                logger.error("Failed to persist reading %s: %s", reading.id, e)

        self._cache(reading)
        self._stats["accepted"] += 1

        try:
            self.alert_evaluator.evaluate(reading, room)
        except Exception as e:
            logger.error("Alert evaluation failed for reading %s: %s", reading.id, e, exc_info=True)

        if self.event_bus is not None:
            self.event_bus.publish(EngineEvent.SENSOR_READING, SensorReadingPayload.from_reading(reading))

        return reading

    def _cache(self, reading: SensorReading) -> None:
        with self._lock:
            history = self._history.get(reading.room_id)
            if history is None:
                history = deque(maxlen=self.history_size)
                self._history[reading.room_id] = history
            history.append(reading)

            self._current_reading[reading.room_id] = reading
            previous = self._current_metrics.get(reading.room_id)
            self._current_metrics[reading.room_id] = (
                reading.metrics if previous is None else previous.merged_with(reading.metrics)
            )
            updated = self._metric_updated.setdefault(reading.room_id, {})
            for name in reading.metrics.present():
                updated[name] = reading.timestamp

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def current_reading(self, room_id: str) -> SensorReading | None:
        with self._lock:
            return self._current_reading.get(room_id)

    def current_metrics(self, room_id: str) -> SensorMetrics | None:
        """
        Newest value of every metric reported by any device of the room.

        Metrics older than ``stale_after_seconds`` are left out, so a device
        that went offline stops driving the control loops.
        """
        with self._lock:
            metrics = self._current_metrics.get(room_id)
            if metrics is None or self.stale_after_seconds <= 0:
                return metrics
            cutoff = self.clock.now() - timedelta(seconds=self.stale_after_seconds)
            stale = [name for name, ts in self._metric_updated.get(room_id, {}).items() if ts < cutoff]
        if not stale:
            return metrics
        return replace(metrics, **{name: None for name in stale})

    def current_value(self, room_id: str, metric: str) -> float | None:
        metrics = self.current_metrics(room_id)
        return getattr(metrics, metric, None) if metrics is not None else None

    def history(
        self,
        room_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int | None = None,
    ) -> list[SensorReading]:
        """In-memory readings for a room in [start, end], newest first."""
        with self._lock:
            readings = list(self._history.get(room_id, ()))
        selected = [
            r
            for r in reversed(readings)
            if (start is None or r.timestamp >= start) and (end is None or r.timestamp <= end)
        ]
        return selected[:limit] if limit is not None else selected

    def history_size_for(self, room_id: str) -> int:
        with self._lock:
            return len(self._history.get(room_id, ()))

    def sensor_status(self, device_id: str) -> dict[str, Any]:
        with self._lock:
            health = self._health.get(device_id)
        return (health or SensorHealth()).to_dict()

    def clear_room(self, room_id: str) -> None:
        with self._lock:
            self._history.pop(room_id, None)
            self._current_reading.pop(room_id, None)
            self._current_metrics.pop(room_id, None)
            self._metric_updated.pop(room_id, None)

    def get_status(self) -> dict[str, Any]:
        with self._lock:
            return {
                **self._stats,
                "rooms_cached": len(self._current_metrics),
                "devices_tracked": len(self._health),
                "devices_offline": sum(1 for h in self._health.values() if h.status == SensorStatus.OFFLINE),
            }
