"""
Automation Enumerations
=======================

Enums shared by the control strategies, dispatcher and safety supervisor.
"""

from enum import Enum


class AutomationDomain(str, Enum):
    """
    Unit of controller and metric partitioning.
    Used by: ControllerRegistry, ActionDispatcher, ControlLoopScheduler
    """
    CLIMATE = "climate"
    WATERING = "watering"
    LIGHTING = "lighting"
    CO2 = "co2"
    SAFETY = "safety"
    MANUAL = "manual"

    def __str__(self) -> str:
        return self.value


class ActionType(str, Enum):
    """Type of a computed AutomationAction."""
    HEATING = "heating"
    COOLING = "cooling"
    HUMIDIFICATION = "humidification"
    DEHUMIDIFICATION = "dehumidification"
    WATERING = "watering"
    DRAINAGE = "drainage"
    LIGHTING = "lighting"
    LIGHTING_OFF = "lighting_off"
    CO2_ENRICHMENT = "co2_enrichment"
    AIR_CIRCULATION = "air_circulation"
    VENTILATION = "ventilation"
    NUTRIENT_DOSING = "nutrient_dosing"
    MAINTAIN = "maintain"
    ALERT = "alert"
    EMERGENCY_SHUTDOWN = "emergency_shutdown"

    def __str__(self) -> str:
        return self.value


class SafetyIssueType(str, Enum):
    """Kinds of safety issue a room can raise."""
    HIGH_TEMPERATURE = "high_temperature"
    LOW_TEMPERATURE = "low_temperature"
    HIGH_HUMIDITY = "high_humidity"
    LOW_HUMIDITY = "low_humidity"
    LOW_WATER_LEVEL = "low_water_level"
    HIGH_WATER_LEVEL = "high_water_level"
    POWER_FAILURE = "power_failure"
    SENSOR_FAILURE = "sensor_failure"
    DEVICE_OFFLINE = "device_offline"

    def __str__(self) -> str:
        return self.value


class SafetySeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"

    def __str__(self) -> str:
        return self.value


class GrowthStage(str, Enum):
    """
    Growth stage of a room, selects default target ranges.
    """
    SEEDLING = "seedling"
    VEGETATIVE = "vegetative"
    FLOWERING = "flowering"
    HARVEST = "harvest"

    def __str__(self) -> str:
        return self.value
