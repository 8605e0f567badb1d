"""
Event topics published on the engine EventBus.
"""

from enum import Enum


class EngineEvent(str, Enum):
    SENSOR_READING = "sensor.reading"
    SENSOR_ALERT = "sensor.alert"
    ALERT_ACKNOWLEDGED = "sensor.alert_acknowledged"
    ALERT_DISMISSED = "sensor.alert_dismissed"
    AUTOMATION_ACTION = "automation.action"
    DISPATCH_FAILED = "automation.dispatch_failed"
    AUTOMATION_NOTIFICATION = "automation.notification"
    SAFETY_WARNING = "safety.warning"
    EMERGENCY_SHUTDOWN = "safety.emergency_shutdown"
    EMERGENCY_RESOLVED = "safety.emergency_resolved"

    def __str__(self) -> str:
        return self.value
