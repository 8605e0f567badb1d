"""Pydantic schemas for engine events and encoded readings."""

from growengine.schemas.events import (
    AutomationActionPayload,
    AutomationNotificationPayload,
    DispatchFailedPayload,
    EmergencyShutdownPayload,
    MetricsPayload,
    SafetyWarningPayload,
    SensorAlertPayload,
    SensorReadingPayload,
)

__all__ = [
    "AutomationActionPayload",
    "AutomationNotificationPayload",
    "DispatchFailedPayload",
    "EmergencyShutdownPayload",
    "MetricsPayload",
    "SafetyWarningPayload",
    "SensorAlertPayload",
    "SensorReadingPayload",
]
