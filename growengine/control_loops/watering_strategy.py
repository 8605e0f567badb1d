"""
Watering strategy: threshold watering with a daily cap, optional advisor
driven watering and drainage monitoring.

The daily watering count rolls over on the first evaluation after the
clock's local date changes.
"""

from __future__ import annotations

import logging
from datetime import datetime

from growengine.control_loops.base import ControlStrategy
from growengine.domain.control import AutomationAction, AutomationController
from growengine.domain.room import RoomConfig
from growengine.domain.sensors import SensorMetrics
from growengine.enums import ActionType, AutomationDomain

logger = logging.getLogger(__name__)

ADVISOR_MIN_CONFIDENCE = 0.7
URGENT_DEFICIT = 10.0


class WateringStrategy(ControlStrategy):
    domain = AutomationDomain.WATERING

    def __init__(self, advisor=None):
        """
        Args:
            advisor: optional WateringAdvisor consulted when smart watering
                is enabled and the threshold rule does not fire
        """
        self.advisor = advisor

    def evaluate(
        self,
        metrics: SensorMetrics,
        room: RoomConfig,
        controller: AutomationController,
        now: datetime,
    ) -> list[AutomationAction]:
        settings = room.automation.watering
        actions: list[AutomationAction] = []

        if controller.roll_watering_day(now.date()):
            logger.info("Daily watering count reset for room %s", room.id)

        moisture = metrics.soil_moisture
        threshold = settings.soil_moisture_threshold

        if moisture is not None and moisture < threshold.min:
            if controller.daily_watering_count < settings.max_waterings_per_day:
                deficit = threshold.min - moisture
                actions.append(
                    AutomationAction(
                        type=ActionType.WATERING,
                        value=1.0,
                        reason=f"Soil moisture {moisture:.1f}% below {threshold.min:.1f}%",
                        priority=9 if deficit > URGENT_DEFICIT else 6,
                        duration_seconds=settings.watering_duration_seconds,
                    )
                )
                self._count_watering(controller, now)
            else:
                actions.append(
                    AutomationAction(
                        type=ActionType.ALERT,
                        value=0.0,
                        reason=f"Daily watering limit reached ({settings.max_waterings_per_day})",
                        priority=5,
                    )
                )
        elif settings.enable_smart_watering and self.advisor is not None:
            action = self._advised_watering(metrics, room, controller, now)
            if action is not None:
                actions.append(action)

        if (
            settings.enable_drainage_monitoring
            and metrics.water_level is not None
            and metrics.water_level > settings.drainage_threshold
        ):
            actions.append(
                AutomationAction(
                    type=ActionType.DRAINAGE,
                    value=1.0,
                    reason=f"Water level {metrics.water_level:.1f}% above {settings.drainage_threshold:.1f}%",
                    priority=6,
                )
            )

        return actions

    def _advised_watering(
        self,
        metrics: SensorMetrics,
        room: RoomConfig,
        controller: AutomationController,
        now: datetime,
    ) -> AutomationAction | None:
        settings = room.automation.watering
        if controller.daily_watering_count >= settings.max_waterings_per_day:
            return None

        try:
            prediction = self.advisor.predict_watering_need(room.id, metrics)
        except Exception as e:
            logger.warning("Watering advisor failed for room %s: %s", room.id, e)
            return None

        if prediction is None or not prediction.should_water or prediction.confidence <= ADVISOR_MIN_CONFIDENCE:
            return None

        self._count_watering(controller, now)
        return AutomationAction(
            type=ActionType.WATERING,
            value=float(prediction.amount),
            reason=f"Smart watering: {prediction.reason}" if prediction.reason else "Smart watering",
            priority=3,
            duration_seconds=settings.watering_duration_seconds,
        )

    @staticmethod
    def _count_watering(controller: AutomationController, now: datetime) -> None:
        controller.daily_watering_count += 1
        controller.last_watering_time = now
