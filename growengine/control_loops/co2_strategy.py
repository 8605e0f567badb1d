"""
CO2 strategy: tank monitoring, enrichment while lights are on, ventilation
above the target maximum.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from growengine.control_loops.base import ControlStrategy
from growengine.control_loops.lighting_strategy import is_lights_on
from growengine.domain.control import AutomationAction, AutomationController
from growengine.domain.room import RoomConfig
from growengine.domain.sensors import SensorMetrics
from growengine.enums import ActionType, AutomationDomain

logger = logging.getLogger(__name__)


class Co2Strategy(ControlStrategy):
    domain = AutomationDomain.CO2

    def __init__(self, tank_level_reader: Callable[[str], float | None] | None = None):
        self.tank_level_reader = tank_level_reader

    def evaluate(
        self,
        metrics: SensorMetrics,
        room: RoomConfig,
        controller: AutomationController,
        now: datetime,
    ) -> list[AutomationAction]:
        if metrics.co2 is None:
            return []

        settings = room.automation.co2
        target = room.targets.co2
        actions: list[AutomationAction] = []

        if settings.enable_tank_monitoring:
            level = self._tank_level(room.id)
            if level is not None and level < settings.tank_level_threshold:
                actions.append(
                    AutomationAction(
                        type=ActionType.ALERT,
                        value=level,
                        reason=f"CO2 tank level low ({level:.1f}%)",
                        priority=4,
                    )
                )

        if metrics.co2 < target.min:
            if self._enrichment_allowed(metrics, room, now):
                actions.append(
                    AutomationAction(
                        type=ActionType.CO2_ENRICHMENT,
                        value=settings.enrichment_rate,
                        reason=f"CO2 {metrics.co2:.0f}ppm below {target.min:.0f}ppm",
                        priority=3,
                        duration_seconds=settings.enrichment_duration_seconds,
                    )
                )
        elif metrics.co2 > target.max:
            actions.append(
                AutomationAction(
                    type=ActionType.VENTILATION,
                    value=1.0,
                    reason=f"CO2 {metrics.co2:.0f}ppm above {target.max:.0f}ppm",
                    priority=4,
                )
            )

        return actions

    @staticmethod
    def _enrichment_allowed(metrics: SensorMetrics, room: RoomConfig, now: datetime) -> bool:
        """Lights on, and temperature and humidity in range when reported."""
        if not is_lights_on(now, room.automation.lighting):
            return False
        if metrics.temperature is not None and not room.targets.temperature.contains(metrics.temperature):
            return False
        if metrics.humidity is not None and not room.targets.humidity.contains(metrics.humidity):
            return False
        return True

    def _tank_level(self, room_id: str) -> float | None:
        if self.tank_level_reader is None:
            return None
        try:
            level = self.tank_level_reader(room_id)
        except Exception as e:
            logger.warning("CO2 tank level read failed for room %s: %s", room_id, e)
            return None
        return float(level) if level is not None else None
