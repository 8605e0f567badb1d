"""
Configuration for the grow engine
=================================
Runtime settings loaded from ``GROWENGINE_*`` environment variables.
Defaults match a single Raspberry Pi class controller; loop intervals are
in seconds.
"""

import os
from dataclasses import dataclass, field

from growengine.domain.exceptions import ConfigurationError


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.lower() in {"1", "true", "t", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"Environment variable {name} must be an integer.") from None


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        raise ConfigurationError(f"Environment variable {name} must be a number.") from None


@dataclass
class EngineConfig:
    """Runtime configuration loaded from environment variables."""

    # Control loop intervals
    climate_interval_seconds: int = field(default_factory=lambda: _env_int("GROWENGINE_CLIMATE_INTERVAL", 60))
    watering_interval_seconds: int = field(default_factory=lambda: _env_int("GROWENGINE_WATERING_INTERVAL", 300))
    lighting_interval_seconds: int = field(default_factory=lambda: _env_int("GROWENGINE_LIGHTING_INTERVAL", 60))
    co2_interval_seconds: int = field(default_factory=lambda: _env_int("GROWENGINE_CO2_INTERVAL", 120))
    monitoring_interval_seconds: int = field(default_factory=lambda: _env_int("GROWENGINE_MONITORING_INTERVAL", 30))
    sensing_interval_seconds: int = field(default_factory=lambda: _env_int("GROWENGINE_SENSING_INTERVAL", 1))

    # Sensor data
    history_size: int = field(default_factory=lambda: _env_int("GROWENGINE_HISTORY_SIZE", 1000))
    alert_history_size: int = field(default_factory=lambda: _env_int("GROWENGINE_ALERT_HISTORY_SIZE", 500))
    anomaly_history_size: int = field(default_factory=lambda: _env_int("GROWENGINE_ANOMALY_HISTORY_SIZE", 100))
    metric_stale_seconds: float = field(default_factory=lambda: _env_float("GROWENGINE_METRIC_STALE_SECONDS", 900.0))

    # Dispatch
    dispatch_timeout_seconds: float = field(default_factory=lambda: _env_float("GROWENGINE_DISPATCH_TIMEOUT", 10.0))
    dispatch_filter_by_capability: bool = field(
        default_factory=lambda: _env_bool("GROWENGINE_DISPATCH_FILTER_BY_CAPABILITY", False)
    )
    dispatch_error_notify_threshold: int = field(
        default_factory=lambda: _env_int("GROWENGINE_DISPATCH_ERROR_NOTIFY_THRESHOLD", 3)
    )
    dispatch_max_workers: int = field(default_factory=lambda: _env_int("GROWENGINE_DISPATCH_MAX_WORKERS", 4))

    # Safety supervisor
    health_inactivity_minutes: int = field(default_factory=lambda: _env_int("GROWENGINE_HEALTH_INACTIVITY_MINUTES", 30))
    health_max_errors: int = field(default_factory=lambda: _env_int("GROWENGINE_HEALTH_MAX_ERRORS", 10))

    # Infrastructure
    scheduler_max_workers: int = field(default_factory=lambda: _env_int("GROWENGINE_SCHEDULER_MAX_WORKERS", 6))
    eventbus_queue_size: int = field(default_factory=lambda: _env_int("GROWENGINE_EVENTBUS_QUEUE_SIZE", 1024))
    eventbus_worker_count: int = field(default_factory=lambda: _env_int("GROWENGINE_EVENTBUS_WORKER_COUNT", 2))

    log_level: str = field(default_factory=lambda: os.getenv("GROWENGINE_LOG_LEVEL", "INFO"))
    log_file: str | None = field(default_factory=lambda: os.getenv("GROWENGINE_LOG_FILE") or None)

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        for name, value in self.loop_intervals().items():
            if value <= 0:
                raise ConfigurationError(
                    f"Loop interval for {name} must be positive (got {value})",
                    detail={"loop": name, "value": value},
                )
        for name in ("history_size", "alert_history_size", "anomaly_history_size"):
            if getattr(self, name) < 1:
                raise ConfigurationError(f"{name} must be at least 1")
        if self.metric_stale_seconds < 0:
            raise ConfigurationError("metric_stale_seconds cannot be negative")
        if self.dispatch_timeout_seconds < 0:
            raise ConfigurationError("dispatch_timeout_seconds cannot be negative")
        if self.scheduler_max_workers < 1 or self.dispatch_max_workers < 1:
            raise ConfigurationError("worker counts must be at least 1")
        if self.eventbus_worker_count < 0:
            raise ConfigurationError("eventbus_worker_count cannot be negative")

    def loop_intervals(self) -> dict[str, int]:
        return {
            "climate": self.climate_interval_seconds,
            "watering": self.watering_interval_seconds,
            "lighting": self.lighting_interval_seconds,
            "co2": self.co2_interval_seconds,
            "monitoring": self.monitoring_interval_seconds,
            "sensing": self.sensing_interval_seconds,
        }


def load_config() -> EngineConfig:
    """Load configuration from the environment."""
    return EngineConfig()
