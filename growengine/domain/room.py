"""
Room Configuration Domain Objects
=================================
Target ranges and per-domain automation settings of a growing room.

Rooms are mutated by the surrounding application (settings UI); the engine
only reads them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from growengine.enums import AutomationDomain, GrowthStage


@dataclass(frozen=True)
class ValueRange:
    """Closed [min, max] target band for one metric."""

    min: float
    max: float

    def __post_init__(self) -> None:
        if self.min > self.max:
            raise ValueError(f"ValueRange min {self.min} is greater than max {self.max}")

    def contains(self, value: float) -> bool:
        return self.min <= value <= self.max

    def below(self, value: float) -> bool:
        return value < self.min

    def above(self, value: float) -> bool:
        return value > self.max

    def to_dict(self) -> dict[str, float]:
        return {"min": self.min, "max": self.max}


@dataclass(frozen=True)
class EnvironmentalTargets:
    temperature: ValueRange
    humidity: ValueRange
    co2: ValueRange
    vpd: ValueRange
    soil_moisture: ValueRange
    ph: ValueRange
    ec: ValueRange
    light: ValueRange
    air_circulation: ValueRange

    def range_for(self, metric: str) -> ValueRange | None:
        return getattr(self, metric, None)

    def to_dict(self) -> dict[str, dict[str, float]]:
        return {name: getattr(self, name).to_dict() for name in self.__dataclass_fields__}


# Default target ranges by growth stage
_STAGE_TARGETS: dict[GrowthStage, dict[str, tuple[float, float]]] = {
    GrowthStage.SEEDLING: {
        "temperature": (20.0, 25.0),
        "humidity": (65.0, 80.0),
        "co2": (400.0, 800.0),
        "vpd": (0.6, 1.0),
        "soil_moisture": (65.0, 75.0),
        "ph": (5.8, 6.3),
        "ec": (0.8, 1.2),
        "light": (200.0, 400.0),
        "air_circulation": (0.2, 0.5),
    },
    GrowthStage.VEGETATIVE: {
        "temperature": (22.0, 28.0),
        "humidity": (50.0, 70.0),
        "co2": (800.0, 1200.0),
        "vpd": (0.8, 1.2),
        "soil_moisture": (60.0, 70.0),
        "ph": (5.8, 6.3),
        "ec": (1.2, 1.8),
        "light": (600.0, 800.0),
        "air_circulation": (0.3, 0.6),
    },
    GrowthStage.FLOWERING: {
        "temperature": (20.0, 26.0),
        "humidity": (40.0, 60.0),
        "co2": (1000.0, 1500.0),
        "vpd": (1.0, 1.5),
        "soil_moisture": (55.0, 65.0),
        "ph": (6.0, 6.5),
        "ec": (1.5, 2.2),
        "light": (800.0, 1000.0),
        "air_circulation": (0.4, 0.8),
    },
    GrowthStage.HARVEST: {
        "temperature": (18.0, 24.0),
        "humidity": (45.0, 55.0),
        "co2": (400.0, 600.0),
        "vpd": (1.0, 1.3),
        "soil_moisture": (45.0, 55.0),
        "ph": (6.0, 6.5),
        "ec": (0.5, 1.0),
        "light": (0.0, 100.0),
        "air_circulation": (0.2, 0.4),
    },
}


def default_targets(stage: GrowthStage = GrowthStage.VEGETATIVE, **overrides: tuple[float, float]) -> EnvironmentalTargets:
    """
    Build the default targets for a growth stage.

    Keyword overrides replace single ranges, e.g.
    ``default_targets(temperature=(20, 28))``.
    """
    ranges = dict(_STAGE_TARGETS[GrowthStage(stage)])
    for name, bounds in overrides.items():
        if name not in ranges:
            raise ValueError(f"Unknown target metric: {name}")
        ranges[name] = bounds
    return EnvironmentalTargets(**{name: ValueRange(*bounds) for name, bounds in ranges.items()})


@dataclass(frozen=True)
class WateringSettings:
    soil_moisture_threshold: ValueRange = field(default_factory=lambda: ValueRange(40.0, 70.0))
    watering_duration_seconds: float = 120.0
    max_waterings_per_day: int = 3
    enable_smart_watering: bool = False
    enable_drainage_monitoring: bool = False
    drainage_threshold: float = 80.0


@dataclass(frozen=True)
class ClimateSettings:
    temperature_tolerance: float = 1.0
    humidity_tolerance: float = 5.0
    enable_humidity_control: bool = True


@dataclass(frozen=True)
class LightingSettings:
    """Photoperiod and ramp settings. Durations are in minutes."""

    light_on_hours: float = 18.0
    anchor_hour: int = 6
    enable_sunrise_simulation: bool = False
    enable_sunset_simulation: bool = False
    sunrise_duration_minutes: float = 30.0
    sunset_duration_minutes: float = 30.0
    enable_dimming: bool = True
    max_intensity: float = 1.0

    def __post_init__(self) -> None:
        if not 0 <= self.anchor_hour <= 23:
            raise ValueError("anchor_hour must be between 0 and 23")
        if not 0.0 <= self.max_intensity <= 1.0:
            raise ValueError("max_intensity must be within [0, 1]")


@dataclass(frozen=True)
class Co2Settings:
    enrichment_rate: float = 0.5
    enrichment_duration_seconds: float = 300.0
    enable_tank_monitoring: bool = False
    tank_level_threshold: float = 20.0


@dataclass(frozen=True)
class AutomationSettings:
    """Master switch, per-domain switches and domain tunables."""

    enabled: bool = True
    enable_climate_control: bool = True
    enable_watering: bool = True
    enable_lighting_control: bool = True
    enable_co2_enrichment: bool = True
    watering: WateringSettings = field(default_factory=WateringSettings)
    climate: ClimateSettings = field(default_factory=ClimateSettings)
    lighting: LightingSettings = field(default_factory=LightingSettings)
    co2: Co2Settings = field(default_factory=Co2Settings)

    def domain_enabled(self, domain: AutomationDomain) -> bool:
        """Whether a domain may act. Safety follows the master flag."""
        if not self.enabled:
            return False
        flags = {
            AutomationDomain.CLIMATE: self.enable_climate_control,
            AutomationDomain.WATERING: self.enable_watering,
            AutomationDomain.LIGHTING: self.enable_lighting_control,
            AutomationDomain.CO2: self.enable_co2_enrichment,
        }
        return flags.get(AutomationDomain(domain), True)


@dataclass(frozen=True)
class RoomConfig:
    id: str
    name: str = ""
    is_active: bool = True
    growth_stage: GrowthStage = GrowthStage.VEGETATIVE
    targets: EnvironmentalTargets = field(default_factory=default_targets)
    automation: AutomationSettings = field(default_factory=AutomationSettings)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "is_active": self.is_active,
            "growth_stage": self.growth_stage.value,
            "targets": self.targets.to_dict(),
            "automation_enabled": self.automation.enabled,
        }
