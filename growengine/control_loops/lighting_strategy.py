"""
Lighting strategy: photoperiod window with optional sunrise/sunset ramps and
light-sensor dimming.

The on-window is [anchor_hour, anchor_hour + light_on_hours) modulo 24.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from growengine.control_loops.base import ControlStrategy, clamp
from growengine.domain.control import AutomationAction, AutomationController
from growengine.domain.room import LightingSettings, RoomConfig
from growengine.domain.sensors import SensorMetrics
from growengine.enums import ActionType, AutomationDomain
from growengine.utils.time import hour_of_day

LIGHTING_PRIORITY = 2
DIM_UP = 1.1
DIM_DOWN = 0.9


@dataclass(frozen=True)
class PhotoperiodPosition:
    inside: bool
    elapsed_hours: float
    remaining_hours: float


def photoperiod_position(now: datetime, settings: LightingSettings) -> PhotoperiodPosition:
    """Where ``now`` falls relative to the lighting window."""
    on_hours = float(settings.light_on_hours)
    elapsed = (hour_of_day(now) - settings.anchor_hour) % 24.0

    if on_hours >= 24.0:
        return PhotoperiodPosition(True, elapsed, 24.0 - elapsed)
    if on_hours <= 0.0:
        return PhotoperiodPosition(False, 0.0, 0.0)
    if elapsed < on_hours:
        return PhotoperiodPosition(True, elapsed, on_hours - elapsed)
    return PhotoperiodPosition(False, 0.0, 0.0)


def is_lights_on(now: datetime, settings: LightingSettings) -> bool:
    return photoperiod_position(now, settings).inside


class LightingStrategy(ControlStrategy):
    domain = AutomationDomain.LIGHTING

    def evaluate(
        self,
        metrics: SensorMetrics,
        room: RoomConfig,
        controller: AutomationController,
        now: datetime,
    ) -> list[AutomationAction]:
        settings = room.automation.lighting
        position = photoperiod_position(now, settings)

        if not position.inside:
            return [
                AutomationAction(
                    type=ActionType.LIGHTING_OFF,
                    value=0.0,
                    reason="Outside photoperiod",
                    priority=LIGHTING_PRIORITY,
                    duration_seconds=0.0,
                )
            ]

        intensity = settings.max_intensity
        reason = "Photoperiod"

        sunrise_hours = settings.sunrise_duration_minutes / 60.0
        if settings.enable_sunrise_simulation and sunrise_hours > 0 and position.elapsed_hours < sunrise_hours:
            intensity = settings.max_intensity * position.elapsed_hours / sunrise_hours
            reason = "Sunrise ramp"

        sunset_hours = settings.sunset_duration_minutes / 60.0
        if settings.enable_sunset_simulation and sunset_hours > 0 and position.remaining_hours < sunset_hours:
            sunset = settings.max_intensity * position.remaining_hours / sunset_hours
            if sunset < intensity:
                intensity = sunset
                reason = "Sunset ramp"

        if settings.enable_dimming and metrics.light is not None:
            target = room.targets.light
            if metrics.light < target.min:
                intensity *= DIM_UP
                reason = f"{reason}, light below target"
            elif metrics.light > target.max:
                intensity *= DIM_DOWN
                reason = f"{reason}, light above target"

        return [
            AutomationAction(
                type=ActionType.LIGHTING,
                value=clamp(intensity),
                reason=reason,
                priority=LIGHTING_PRIORITY,
            )
        ]
