"""
Climate strategy: temperature, humidity and air circulation.

Heating and cooling intensity grows with the distance past the tolerance
band, not past the raw target bound. Temperature is always controlled;
humidity only when enabled for the room.
"""

from __future__ import annotations

from datetime import datetime

from growengine.control_loops.base import ControlStrategy, clamp
from growengine.domain.control import AutomationAction, AutomationController
from growengine.domain.room import RoomConfig, ValueRange
from growengine.domain.sensors import SensorMetrics
from growengine.enums import ActionType, AutomationDomain

TEMPERATURE_DIVISOR = 10.0
HUMIDITY_DIVISOR = 30.0

# (deviation beyond tolerance band, priority), checked in order
TEMPERATURE_PRIORITIES = ((5.0, 8), (2.0, 6))
TEMPERATURE_BASE_PRIORITY = 3
HUMIDITY_PRIORITIES = ((10.0, 7), (5.0, 5))
HUMIDITY_BASE_PRIORITY = 2

MAINTAIN_PRIORITY = 1
CIRCULATION_PRIORITY = 2


def _priority(deviation: float, tiers: tuple[tuple[float, int], ...], base: int) -> int:
    for threshold, priority in tiers:
        if deviation > threshold:
            return priority
    return base


class ClimateStrategy(ControlStrategy):
    domain = AutomationDomain.CLIMATE

    def evaluate(
        self,
        metrics: SensorMetrics,
        room: RoomConfig,
        controller: AutomationController,
        now: datetime,
    ) -> list[AutomationAction]:
        settings = room.automation.climate
        targets = room.targets
        actions: list[AutomationAction] = []

        if metrics.temperature is not None:
            actions.append(
                self._band_action(
                    metrics.temperature,
                    targets.temperature,
                    settings.temperature_tolerance,
                    divisor=TEMPERATURE_DIVISOR,
                    low_action=ActionType.HEATING,
                    high_action=ActionType.COOLING,
                    tiers=TEMPERATURE_PRIORITIES,
                    base_priority=TEMPERATURE_BASE_PRIORITY,
                    label="Temperature",
                    unit="°C",
                )
            )

        if settings.enable_humidity_control and metrics.humidity is not None:
            actions.append(
                self._band_action(
                    metrics.humidity,
                    targets.humidity,
                    settings.humidity_tolerance,
                    divisor=HUMIDITY_DIVISOR,
                    low_action=ActionType.HUMIDIFICATION,
                    high_action=ActionType.DEHUMIDIFICATION,
                    tiers=HUMIDITY_PRIORITIES,
                    base_priority=HUMIDITY_BASE_PRIORITY,
                    label="Humidity",
                    unit="%",
                )
            )

        actions.append(self._air_circulation(metrics, room))
        return actions

    @staticmethod
    def _band_action(
        current: float,
        target: ValueRange,
        tolerance: float,
        *,
        divisor: float,
        low_action: ActionType,
        high_action: ActionType,
        tiers: tuple[tuple[float, int], ...],
        base_priority: int,
        label: str,
        unit: str,
    ) -> AutomationAction:
        lower = target.min - tolerance
        upper = target.max + tolerance

        if current < lower:
            return AutomationAction(
                type=low_action,
                value=clamp((lower - current) / divisor),
                reason=f"{label} {current:.1f}{unit} below target {target.min:.1f}{unit}",
                priority=_priority(lower - current, tiers, base_priority),
            )
        if current > upper:
            return AutomationAction(
                type=high_action,
                value=clamp((current - upper) / divisor),
                reason=f"{label} {current:.1f}{unit} above target {target.max:.1f}{unit}",
                priority=_priority(current - upper, tiers, base_priority),
            )
        return AutomationAction(
            type=ActionType.MAINTAIN,
            value=0.0,
            reason=f"{label} within target range",
            priority=MAINTAIN_PRIORITY,
        )

    @staticmethod
    def _air_circulation(metrics: SensorMetrics, room: RoomConfig) -> AutomationAction:
        targets = room.targets
        circulation = targets.air_circulation
        speed = circulation.min
        reasons: list[str] = []

        triggers = (
            (metrics.temperature, targets.temperature.max * 0.9, 0.7, "High temperature"),
            (metrics.humidity, targets.humidity.max * 0.9, 0.6, "High humidity"),
            (metrics.co2, targets.co2.max * 0.8, 0.8, "High CO2"),
        )
        for value, limit, factor, reason in triggers:
            if value is not None and value > limit:
                speed = max(speed, circulation.max * factor)
                reasons.append(reason)

        return AutomationAction(
            type=ActionType.AIR_CIRCULATION,
            value=clamp(speed),
            reason=", ".join(reasons) if reasons else "Normal circulation",
            priority=CIRCULATION_PRIORITY,
        )
