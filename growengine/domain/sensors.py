"""
Sensor Value Objects
====================
Immutable readings and metric snapshots, device descriptors, alerts and
per-device read health.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from growengine.enums import AlertSeverity, AlertType, SensorStatus
from growengine.utils.time import coerce_datetime

METRIC_NAMES: tuple[str, ...] = (
    "temperature",
    "humidity",
    "ph",
    "ec",
    "co2",
    "vpd",
    "light",
    "soil_moisture",
    "water_level",
    "pressure",
)

# camelCase and legacy keys accepted by SensorMetrics.from_dict
_METRIC_ALIASES: dict[str, str] = {
    "soilMoisture": "soil_moisture",
    "waterLevel": "water_level",
    "lightIntensity": "light",
    "light_intensity": "light",
    "airPressure": "pressure",
    "air_pressure": "pressure",
}


@dataclass(frozen=True)
class SensorMetrics:
    """Snapshot of environmental metrics. Absent metrics are None."""

    temperature: float | None = None
    humidity: float | None = None
    ph: float | None = None
    ec: float | None = None
    co2: float | None = None
    vpd: float | None = None
    light: float | None = None
    soil_moisture: float | None = None
    water_level: float | None = None
    pressure: float | None = None

    def present(self) -> dict[str, float]:
        """Return only the metrics that carry a value."""
        return {name: value for name in METRIC_NAMES if (value := getattr(self, name)) is not None}

    def is_empty(self) -> bool:
        return not self.present()

    def merged_with(self, newer: SensorMetrics) -> SensorMetrics:
        """Overlay the non-None values of ``newer`` on top of this snapshot."""
        values = {name: getattr(self, name) for name in METRIC_NAMES}
        values.update(newer.present())
        return SensorMetrics(**values)

    def to_dict(self) -> dict[str, float | None]:
        return {name: getattr(self, name) for name in METRIC_NAMES}

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> SensorMetrics:
        """Build metrics from a mapping, ignoring unknown keys."""
        values: dict[str, float] = {}
        for key, raw in (data or {}).items():
            name = _METRIC_ALIASES.get(key, key)
            if name not in METRIC_NAMES or raw is None:
                continue
            values[name] = float(raw)
        return cls(**values)


@dataclass(frozen=True)
class SensorReading:
    """
    Immutable sensor reading value object.
    Created once per accepted sample and appended to the room history.
    """

    id: str
    device_id: str
    room_id: str
    timestamp: datetime
    metrics: SensorMetrics
    quality_score: float = 1.0  # 0.0 to 1.0
    is_anomaly: bool = False
    anomaly_reasons: tuple[str, ...] = ()

    @staticmethod
    def make_id(device_id: str, timestamp: datetime) -> str:
        return f"{device_id}_{int(timestamp.timestamp() * 1000)}"

    def get_value(self, metric: str) -> float | None:
        return getattr(self.metrics, metric, None)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary"""
        return {
            "id": self.id,
            "device_id": self.device_id,
            "room_id": self.room_id,
            "timestamp": self.timestamp.isoformat(),
            "metrics": self.metrics.to_dict(),
            "quality_score": self.quality_score,
            "is_anomaly": self.is_anomaly,
            "anomaly_reasons": list(self.anomaly_reasons),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SensorReading:
        timestamp = coerce_datetime(data.get("timestamp"))
        if timestamp is None:
            raise ValueError(f"Invalid reading timestamp: {data.get('timestamp')!r}")
        return cls(
            id=str(data["id"]),
            device_id=str(data["device_id"]),
            room_id=str(data["room_id"]),
            timestamp=timestamp,
            metrics=SensorMetrics.from_dict(data.get("metrics")),
            quality_score=float(data.get("quality_score", 1.0)),
            is_anomaly=bool(data.get("is_anomaly", False)),
            anomaly_reasons=tuple(data.get("anomaly_reasons") or ()),
        )

    def encode(self) -> str:
        """Encode to the JSON wire form used for persistence and events."""
        from growengine.schemas.events import SensorReadingPayload

        return SensorReadingPayload.from_reading(self).model_dump_json()

    @classmethod
    def decode(cls, raw: str | bytes) -> SensorReading:
        from growengine.schemas.events import SensorReadingPayload

        return SensorReadingPayload.model_validate_json(raw).to_reading()


@dataclass(frozen=True)
class SensorDevice:
    """Device descriptor owned by the DeviceRegistry (read-only to the engine)."""

    id: str
    room_id: str
    type: str
    is_active: bool = True
    calibration_values: dict[str, float] = field(default_factory=dict, hash=False)
    capabilities: frozenset[str] = frozenset()

    def accepts(self, command_type: str) -> bool:
        return command_type in self.capabilities

    def calibrate(self, metrics: SensorMetrics) -> SensorMetrics:
        """Apply additive calibration offsets to the raw metrics."""
        if not self.calibration_values:
            return metrics
        values = metrics.to_dict()
        for name, offset in self.calibration_values.items():
            if values.get(name) is not None:
                values[name] = values[name] + float(offset)
        return SensorMetrics(**values)


@dataclass
class SensorAlert:
    """Threshold alert, lives in the active set until acknowledged or dismissed."""

    id: str
    device_id: str
    room_id: str
    alert_type: AlertType
    severity: AlertSeverity
    message: str
    recommendation: str
    value: float | None
    timestamp: datetime
    acknowledged: bool = False
    acknowledged_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "device_id": self.device_id,
            "room_id": self.room_id,
            "alert_type": self.alert_type.value,
            "severity": self.severity.value,
            "message": self.message,
            "recommendation": self.recommendation,
            "value": self.value,
            "timestamp": self.timestamp.isoformat(),
            "acknowledged": self.acknowledged,
            "acknowledged_at": self.acknowledged_at.isoformat() if self.acknowledged_at else None,
        }


@dataclass
class SensorHealth:
    status: SensorStatus = SensorStatus.UNKNOWN
    last_seen: datetime | None = None
    last_attempt: datetime | None = None
    failure_count: int = 0
    last_error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "last_seen": self.last_seen.isoformat() if self.last_seen else None,
            "last_attempt": self.last_attempt.isoformat() if self.last_attempt else None,
            "failure_count": self.failure_count,
            "last_error": self.last_error,
        }

