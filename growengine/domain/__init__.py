"""
Domain Value Objects Package
=============================
Readings, room configuration, controller counters and safety records.
"""

from .anomaly import Anomaly
from .control import (
    AutomationAction,
    AutomationController,
    DispatchOutcome,
    DispatchReport,
    WateringPrediction,
)
from .room import (
    AutomationSettings,
    ClimateSettings,
    Co2Settings,
    EnvironmentalTargets,
    LightingSettings,
    RoomConfig,
    ValueRange,
    WateringSettings,
    default_targets,
)
from .safety import EmergencyShutdown, EmergencyState, SafetyIssue
from .sensors import METRIC_NAMES, SensorAlert, SensorDevice, SensorHealth, SensorMetrics, SensorReading

__all__ = [
    # Anomaly detection
    "Anomaly",
    # Control
    "AutomationAction",
    "AutomationController",
    "DispatchOutcome",
    "DispatchReport",
    "WateringPrediction",
    # Rooms
    "AutomationSettings",
    "ClimateSettings",
    "Co2Settings",
    "EnvironmentalTargets",
    "LightingSettings",
    "RoomConfig",
    "ValueRange",
    "WateringSettings",
    "default_targets",
    # Safety
    "EmergencyShutdown",
    "EmergencyState",
    "SafetyIssue",
    # Sensors
    "METRIC_NAMES",
    "SensorAlert",
    "SensorDevice",
    "SensorHealth",
    "SensorMetrics",
    "SensorReading",
]
