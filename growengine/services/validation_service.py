"""
Data Validation Service
=======================
Scores the quality of a sensor sample in [0, 1] and rejects samples that
cannot be physically real.

Per metric rules:
- physical range: outside it the sample is rejected (ValidationFailure)
- operational range: outside it the metric score is multiplied by 0.7
- max change per minute: a faster change than the device's previous
  accepted value multiplies the metric score by 0.8

The reading score is the mean of the per-metric scores.
"""

from __future__ import annotations

import logging
import math
import threading
from dataclasses import dataclass
from datetime import datetime

from growengine.domain.exceptions import ValidationFailure
from growengine.domain.sensors import SensorMetrics

logger = logging.getLogger(__name__)

OPERATIONAL_PENALTY = 0.7
RATE_PENALTY = 0.8


@dataclass(frozen=True)
class ValidationRule:
    """Validation limits for one metric."""

    physical: tuple[float, float]
    operational: tuple[float, float] | None = None
    max_change_per_minute: float | None = None


DEFAULT_RULES: dict[str, ValidationRule] = {
    "temperature": ValidationRule((-50.0, 100.0), (-20.0, 60.0), 5.0),
    "humidity": ValidationRule((0.0, 100.0), (5.0, 95.0), 20.0),
    "ph": ValidationRule((0.0, 14.0), (3.0, 11.0)),
    "ec": ValidationRule((0.0, 10.0), (0.1, 5.0)),
    "co2": ValidationRule((0.0, 5000.0), (200.0, 2000.0), 100.0),
    "vpd": ValidationRule((0.0, 10.0), (0.2, 4.0)),
    "light": ValidationRule((0.0, 3000.0), (0.0, 2000.0)),
    "soil_moisture": ValidationRule((0.0, 100.0), (5.0, 90.0)),
    "water_level": ValidationRule((0.0, 100.0)),
    "pressure": ValidationRule((800.0, 1200.0), (900.0, 1100.0)),
}


class DataValidationService:
    """Quality scoring for incoming samples, keyed by device."""

    def __init__(self, rules: dict[str, ValidationRule] | None = None):
        self._rules = dict(DEFAULT_RULES)
        if rules:
            self._rules.update(rules)
        self._last_accepted: dict[str, tuple[datetime, SensorMetrics]] = {}
        self._lock = threading.Lock()

    def validate(self, metrics: SensorMetrics) -> None:
        """Raise ValidationFailure if the sample is unusable."""
        present = metrics.present()
        if not present:
            raise ValidationFailure("Sample carries no metrics")
        for metric, value in present.items():
            if not math.isfinite(value):
                raise ValidationFailure(f"{metric} is not a finite number", detail={"metric": metric})
            rule = self._rules.get(metric)
            if rule is None:
                continue
            low, high = rule.physical
            if not low <= value <= high:
                raise ValidationFailure(
                    f"{metric} {value} outside physical range [{low}, {high}]",
                    detail={"metric": metric, "value": value},
                )

    def assess(self, device_id: str, metrics: SensorMetrics, timestamp: datetime) -> float:
        """
        Validate a sample and return its quality score.

        Raises:
            ValidationFailure: when the sample must be dropped
        """
        self.validate(metrics)

        with self._lock:
            previous = self._last_accepted.get(device_id)
            scores = [self._score_metric(metric, value, timestamp, previous) for metric, value in metrics.present().items()]
            if previous is None:
                self._last_accepted[device_id] = (timestamp, metrics)
            else:
                self._last_accepted[device_id] = (timestamp, previous[1].merged_with(metrics))

        return round(sum(scores) / len(scores), 3)

    def _score_metric(
        self,
        metric: str,
        value: float,
        timestamp: datetime,
        previous: tuple[datetime, SensorMetrics] | None,
    ) -> float:
        rule = self._rules.get(metric)
        if rule is None:
            return 1.0

        score = 1.0
        if rule.operational is not None:
            low, high = rule.operational
            if not low <= value <= high:
                score *= OPERATIONAL_PENALTY

        if rule.max_change_per_minute is not None and previous is not None:
            prev_time, prev_metrics = previous
            prev_value = getattr(prev_metrics, metric)
            minutes = (timestamp - prev_time).total_seconds() / 60.0
            if prev_value is not None and minutes > 0:
                rate = abs(value - prev_value) / minutes
                if rate > rule.max_change_per_minute:
                    logger.debug("%s changed at %.2f/min (limit %.2f)", metric, rate, rule.max_change_per_minute)
                    score *= RATE_PENALTY

        return score

    def reset(self, device_id: str | None = None) -> None:
        with self._lock:
            if device_id is None:
                self._last_accepted.clear()
            else:
                self._last_accepted.pop(device_id, None)
