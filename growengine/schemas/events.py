"""
Event payload schemas.

Publishers hand these models to the EventBus, which serialises them with
``model_dump(mode="json")`` so subscribers receive plain dicts.
SensorReadingPayload doubles as the encoded form of a SensorReading.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Literal

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from growengine.domain.sensors import SensorReading

Severity = Literal["info", "warning", "critical"]


class MetricsPayload(BaseModel):
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


class SensorReadingPayload(BaseModel):
    """Payload for sensor reading events and the persisted reading form."""

    schema_version: int = Field(default=1)

    id: str
    device_id: str
    room_id: str
    timestamp: datetime
    metrics: MetricsPayload
    quality_score: float = Field(1.0, ge=0.0, le=1.0)
    is_anomaly: bool = False
    anomaly_reasons: list[str] = Field(default_factory=list)

    @classmethod
    def from_reading(cls, reading: SensorReading) -> SensorReadingPayload:
        return cls(
            id=reading.id,
            device_id=reading.device_id,
            room_id=reading.room_id,
            timestamp=reading.timestamp,
            metrics=MetricsPayload(**reading.metrics.to_dict()),
            quality_score=reading.quality_score,
            is_anomaly=reading.is_anomaly,
            anomaly_reasons=list(reading.anomaly_reasons),
        )

    def to_reading(self) -> SensorReading:
        from growengine.domain.sensors import SensorMetrics, SensorReading

        return SensorReading(
            id=self.id,
            device_id=self.device_id,
            room_id=self.room_id,
            timestamp=self.timestamp,
            metrics=SensorMetrics(**self.metrics.model_dump()),
            quality_score=self.quality_score,
            is_anomaly=self.is_anomaly,
            anomaly_reasons=tuple(self.anomaly_reasons),
        )


class SensorAlertPayload(BaseModel):
    alert_id: str
    device_id: str
    room_id: str
    alert_type: str
    severity: Severity
    message: str
    recommendation: str
    value: float | None = None
    timestamp: datetime
    acknowledged: bool = False


class AutomationActionPayload(BaseModel):
    room_id: str
    domain: str
    action_type: str
    value: float
    priority: int = Field(ge=1, le=10)
    reason: str
    duration_seconds: float | None = None
    command: dict | None = None
    devices: list[str] = Field(default_factory=list)
    timestamp: datetime


class DispatchFailedPayload(BaseModel):
    room_id: str
    domain: str
    action_type: str
    error: str
    error_count: int
    consecutive_errors: int
    timestamp: datetime


class AutomationNotificationPayload(BaseModel):
    """User-visible notification; delivery is handled outside the engine."""

    room_id: str
    title: str
    message: str
    severity: Severity = "warning"
    domain: str | None = None
    timestamp: datetime


class SafetyWarningPayload(BaseModel):
    room_id: str
    issue_type: str
    severity: Severity
    value: float
    threshold: float
    message: str
    timestamp: datetime


class EmergencyShutdownPayload(BaseModel):
    shutdown_id: str
    room_id: str
    reason: str
    timestamp: datetime
    resolved: bool = False
    resolved_at: datetime | None = None
