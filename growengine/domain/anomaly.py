"""
Anomaly Detection Domain Objects
=================================
Dataclasses for sensor anomaly detection.
"""

from dataclasses import dataclass
from datetime import datetime

from growengine.enums import AnomalyType


@dataclass(frozen=True)
class Anomaly:
    """Detected anomaly in one metric of a sensor sample."""

    device_id: str
    metric: str
    timestamp: datetime
    anomaly_type: AnomalyType
    value: float
    expected_range: tuple[float, float] | None
    severity: float  # 0.0 to 1.0
    description: str
