"""
Sensor Enumerations
===================

Sensor kinds, alert types and health states used by the ingestion pipeline.
"""

from enum import Enum


class SensorType(str, Enum):
    """
    Metric family a sensor device reports.
    Used by: SensorIngestionPipeline (sampling periods), smoothing, validation
    """
    TEMPERATURE = "temperature"
    HUMIDITY = "humidity"
    CO2 = "co2"
    VPD = "vpd"
    LIGHT = "light"
    SOIL_MOISTURE = "soil_moisture"
    PH = "ph"
    EC = "ec"
    WATER_LEVEL = "water_level"
    PRESSURE = "pressure"

    def __str__(self) -> str:
        return self.value


class AlertSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"

    def __str__(self) -> str:
        return self.value


class AlertType(str, Enum):
    """Threshold alert kinds emitted by the AlertEvaluator."""
    TEMPERATURE_LOW = "temperature_low"
    TEMPERATURE_HIGH = "temperature_high"
    HUMIDITY_LOW = "humidity_low"
    HUMIDITY_HIGH = "humidity_high"
    CO2_LOW = "co2_low"
    CO2_HIGH = "co2_high"
    VPD_OUT_OF_RANGE = "vpd_out_of_range"
    SOIL_MOISTURE_LOW = "soil_moisture_low"
    SOIL_MOISTURE_HIGH = "soil_moisture_high"
    PH_OUT_OF_RANGE = "ph_out_of_range"
    EC_OUT_OF_RANGE = "ec_out_of_range"

    def __str__(self) -> str:
        return self.value


class SensorStatus(str, Enum):
    """Read health of a sensor device."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    OFFLINE = "offline"
    UNKNOWN = "unknown"

    def __str__(self) -> str:
        return self.value


class AnomalyType(str, Enum):
    OUT_OF_RANGE = "out_of_range"
    STUCK = "stuck"
    RATE_OF_CHANGE = "rate_of_change"
    OUTLIER = "outlier"

    def __str__(self) -> str:
        return self.value
