"""
Enums Module
============

Enumeration types for the grow engine.
Enums keep topics, action kinds and severities consistent across modules.
"""

from growengine.enums.automation import (
    ActionType,
    AutomationDomain,
    GrowthStage,
    SafetyIssueType,
    SafetySeverity,
)
from growengine.enums.events import EngineEvent
from growengine.enums.sensors import (
    AlertSeverity,
    AlertType,
    AnomalyType,
    SensorStatus,
    SensorType,
)

__all__ = [
    # Automation
    "ActionType",
    "AutomationDomain",
    "GrowthStage",
    "SafetyIssueType",
    "SafetySeverity",
    # Events
    "EngineEvent",
    # Sensors
    "AlertSeverity",
    "AlertType",
    "AnomalyType",
    "SensorStatus",
    "SensorType",
]
