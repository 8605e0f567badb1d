"""
Anomaly Detection Service
==========================
Detects anomalies in sensor readings using statistical methods.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from datetime import datetime

import numpy as np

from growengine.domain.anomaly import Anomaly
from growengine.domain.sensors import SensorMetrics
from growengine.enums import AnomalyType
from growengine.services.validation_service import DEFAULT_RULES

logger = logging.getLogger(__name__)

STUCK_WINDOW = 5
STUCK_TOLERANCE = 0.001
SPIKE_FACTOR = 5.0
SPIKE_MIN_DELTA = 1.0
Z_SCORE_LIMIT = 3.0
MIN_STATISTICAL_SAMPLES = 10


def _default_expected_ranges() -> dict[str, tuple[float, float]]:
    return {metric: rule.operational for metric, rule in DEFAULT_RULES.items() if rule.operational is not None}


class AnomalyDetectionService:
    """
    Service for detecting anomalies in sensor readings.

    Uses multiple detection methods, first match wins per metric:
    - Range validation
    - Stuck value detection
    - Rate of change detection
    - Statistical outliers (z-score)
    """

    def __init__(
        self,
        history_size: int = 100,
        expected_ranges: dict[str, tuple[float, float]] | None = None,
    ):
        """
        Initialize anomaly detection service.

        Args:
            history_size: Number of readings to keep per (device, metric)
            expected_ranges: Optional (min, max) per metric, defaults to the
                operational ranges of the validation rules
        """
        self.history_size = history_size
        self._expected_ranges = expected_ranges if expected_ranges is not None else _default_expected_ranges()
        self._history: dict[tuple[str, str], deque[tuple[datetime, float]]] = {}
        self._lock = threading.Lock()

    def check(self, device_id: str, metrics: SensorMetrics, timestamp: datetime) -> list[Anomaly]:
        """Check every present metric of a sample, returning detected anomalies."""
        anomalies: list[Anomaly] = []
        for metric, value in metrics.present().items():
            anomaly = self.check_value(device_id, metric, value, timestamp)
            if anomaly is not None:
                anomalies.append(anomaly)
        return anomalies

    def check_value(self, device_id: str, metric: str, value: float, timestamp: datetime) -> Anomaly | None:
        """
        Check a single metric value for anomalies.

        The value is always appended to the history afterwards.
        """
        with self._lock:
            history = self._history.get((device_id, metric))
            if history is None:
                history = deque(maxlen=self.history_size)
                self._history[(device_id, metric)] = history

            detected = self._check_range(device_id, metric, value, timestamp)

            if detected is None and len(history) >= STUCK_WINDOW:
                detected = self._check_stuck_value(device_id, metric, value, timestamp, history)

            if detected is None and len(history) >= 5:
                detected = self._check_rate_of_change(device_id, metric, value, timestamp, history)

            if detected is None and len(history) >= MIN_STATISTICAL_SAMPLES:
                detected = self._check_statistical_outlier(device_id, metric, value, timestamp, history)

            history.append((timestamp, value))

        if detected is not None:
            logger.warning("Anomaly detected for device %s: %s", device_id, detected.description)
        return detected

    def _check_range(self, device_id: str, metric: str, value: float, timestamp: datetime) -> Anomaly | None:
        expected = self._expected_ranges.get(metric)
        if not expected:
            return None
        min_val, max_val = expected
        if min_val <= value <= max_val:
            return None
        return Anomaly(
            device_id=device_id,
            metric=metric,
            timestamp=timestamp,
            anomaly_type=AnomalyType.OUT_OF_RANGE,
            value=value,
            expected_range=expected,
            severity=self._calculate_range_severity(value, expected),
            description=f"{metric} {value} is outside expected range [{min_val}, {max_val}]",
        )

    def _check_stuck_value(
        self, device_id: str, metric: str, value: float, timestamp: datetime, history: deque
    ) -> Anomaly | None:
        """Check if value is stuck (not changing)"""
        recent = np.array([v for _, v in list(history)[-STUCK_WINDOW:]], dtype=float)
        if np.all(np.abs(recent - value) < STUCK_TOLERANCE):
            return Anomaly(
                device_id=device_id,
                metric=metric,
                timestamp=timestamp,
                anomaly_type=AnomalyType.STUCK,
                value=value,
                expected_range=None,
                severity=0.6,
                description=f"{metric} appears stuck at {value}",
            )
        return None

    def _check_rate_of_change(
        self, device_id: str, metric: str, value: float, timestamp: datetime, history: deque
    ) -> Anomaly | None:
        """Check if value is changing too rapidly"""
        last_timestamp, last_value = history[-1]
        time_diff = (timestamp - last_timestamp).total_seconds()
        if time_diff <= 0:
            return None

        value_diff = abs(value - last_value)
        rate = value_diff / time_diff

        times = np.array([t.timestamp() for t, _ in history], dtype=float)
        values = np.array([v for _, v in history], dtype=float)
        deltas_t = np.diff(times)
        mask = deltas_t > 0
        if not mask.any():
            return None
        rates = np.abs(np.diff(values))[mask] / deltas_t[mask]
        avg_rate = float(rates.mean())

        # Spike if rate is 5x typical, also require a significant absolute change
        if rate > avg_rate * SPIKE_FACTOR and value_diff > SPIKE_MIN_DELTA:
            severity = 1.0 if avg_rate == 0 else min(1.0, rate / (avg_rate * 10))
            return Anomaly(
                device_id=device_id,
                metric=metric,
                timestamp=timestamp,
                anomaly_type=AnomalyType.RATE_OF_CHANGE,
                value=value,
                expected_range=None,
                severity=severity,
                description=f"{metric} changed rapidly: {last_value} -> {value} ({rate:.2f}/s)",
            )
        return None

    def _check_statistical_outlier(
        self, device_id: str, metric: str, value: float, timestamp: datetime, history: deque
    ) -> Anomaly | None:
        """Check if value is a statistical outlier using z-score"""
        values = np.array([v for _, v in history], dtype=float)
        mean = float(values.mean())
        std = float(values.std())

        if std < 0.001:
            return None

        z_score = abs((value - mean) / std)
        if z_score > Z_SCORE_LIMIT:
            return Anomaly(
                device_id=device_id,
                metric=metric,
                timestamp=timestamp,
                anomaly_type=AnomalyType.OUTLIER,
                value=value,
                expected_range=(mean - 3 * std, mean + 3 * std),
                severity=min(1.0, z_score / 5),
                description=f"{metric} {value} is a statistical outlier (z-score: {z_score:.2f})",
            )
        return None

    @staticmethod
    def _calculate_range_severity(value: float, expected_range: tuple[float, float]) -> float:
        """Calculate severity for out-of-range value"""
        min_val, max_val = expected_range
        range_size = max_val - min_val or 1.0
        distance = min_val - value if value < min_val else value - max_val
        return min(1.0, distance / range_size)

    def get_statistics(self, device_id: str, metric: str) -> dict[str, float]:
        """Mean, std_dev, min, max and count for one (device, metric) history."""
        with self._lock:
            history = self._history.get((device_id, metric))
            values = np.array([v for _, v in history], dtype=float) if history else np.array([], dtype=float)
        if values.size == 0:
            return {"mean": 0.0, "std_dev": 0.0, "min": 0.0, "max": 0.0, "count": 0}
        return {
            "mean": float(values.mean()),
            "std_dev": float(values.std()),
            "min": float(values.min()),
            "max": float(values.max()),
            "count": int(values.size),
        }

    def reset(self, device_id: str | None = None) -> None:
        with self._lock:
            if device_id is None:
                self._history.clear()
                return
            for key in [k for k in self._history if k[0] == device_id]:
                del self._history[key]
