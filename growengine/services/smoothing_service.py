"""
Data Smoothing Service
======================
Stateful per-device smoothing of raw sensor samples.

Each (device, metric) pair keeps a bounded window of raw values; the
smoothed value is computed over that window including the current sample.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import dataclass
from enum import Enum

import numpy as np

from growengine.domain.sensors import SensorMetrics

logger = logging.getLogger(__name__)


class SmoothingAlgorithm(str, Enum):
    MOVING_AVERAGE = "moving_average"
    EXPONENTIAL = "exponential"
    MEDIAN = "median"


@dataclass(frozen=True)
class SmoothingConfig:
    algorithm: SmoothingAlgorithm = SmoothingAlgorithm.MOVING_AVERAGE
    window_size: int = 5
    alpha: float = 0.3


# Window sizes per metric
DEFAULT_SMOOTHING: dict[str, SmoothingConfig] = {
    "temperature": SmoothingConfig(window_size=10, alpha=0.3),
    "humidity": SmoothingConfig(window_size=8, alpha=0.25),
    "ph": SmoothingConfig(window_size=15, alpha=0.1),
    "ec": SmoothingConfig(window_size=7, alpha=0.2),
    "co2": SmoothingConfig(window_size=5, alpha=0.4),
    "vpd": SmoothingConfig(window_size=12, alpha=0.35),
    "light": SmoothingConfig(window_size=3, alpha=0.5),
    "soil_moisture": SmoothingConfig(window_size=20, alpha=0.15),
    "water_level": SmoothingConfig(window_size=6, alpha=0.3),
    "pressure": SmoothingConfig(window_size=5, alpha=0.3),
}


class DataSmoothingService:
    """
    Smooths metrics per device.

    Windows are keyed by (device_id, metric) so two devices in the same room
    never share state.
    """

    def __init__(self, configs: dict[str, SmoothingConfig] | None = None):
        self._configs = dict(DEFAULT_SMOOTHING)
        if configs:
            self._configs.update(configs)
        self._windows: dict[tuple[str, str], deque[float]] = {}
        self._lock = threading.Lock()

    def config_for(self, metric: str) -> SmoothingConfig:
        return self._configs.get(metric, SmoothingConfig())

    def smooth(self, device_id: str, metrics: SensorMetrics) -> SensorMetrics:
        """Return metrics with every present value replaced by its smoothed value."""
        smoothed: dict[str, float] = {}
        with self._lock:
            for metric, value in metrics.present().items():
                config = self.config_for(metric)
                window = self._windows.get((device_id, metric))
                if window is None or window.maxlen != config.window_size:
                    window = deque(window or (), maxlen=max(1, config.window_size))
                    self._windows[(device_id, metric)] = window
                window.append(float(value))
                smoothed[metric] = self._apply(config, window)
        return SensorMetrics(**smoothed)

    @staticmethod
    def _apply(config: SmoothingConfig, window: deque[float]) -> float:
        values = np.fromiter(window, dtype=float)
        if config.algorithm == SmoothingAlgorithm.MEDIAN:
            return float(np.median(values))
        if config.algorithm == SmoothingAlgorithm.EXPONENTIAL:
            result = values[0]
            for value in values[1:]:
                result = config.alpha * value + (1 - config.alpha) * result
            return float(result)
        return float(values.mean())

    def reset(self, device_id: str | None = None) -> None:
        """Forget smoothing state for one device, or for all devices."""
        with self._lock:
            if device_id is None:
                self._windows.clear()
                return
            for key in [k for k in self._windows if k[0] == device_id]:
                del self._windows[key]

    def window_length(self, device_id: str, metric: str) -> int:
        with self._lock:
            window = self._windows.get((device_id, metric))
            return len(window) if window else 0


__all__ = ["DataSmoothingService", "SmoothingAlgorithm", "SmoothingConfig", "DEFAULT_SMOOTHING"]
