"""
Control strategy base class.

A strategy maps (sensor snapshot, room config, controller state, now) to the
list of actions for one cycle. Strategies never talk to hardware; the only
I/O they may perform is through injected callables (watering advisor,
tank-level reader).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from growengine.domain.control import AutomationAction, AutomationController
from growengine.domain.room import RoomConfig
from growengine.domain.sensors import SensorMetrics
from growengine.enums import AutomationDomain


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


class ControlStrategy(ABC):
    """Abstract base class for the per-domain strategies."""

    domain: AutomationDomain

    @abstractmethod
    def evaluate(
        self,
        metrics: SensorMetrics,
        room: RoomConfig,
        controller: AutomationController,
        now: datetime,
    ) -> list[AutomationAction]:
        """
        Compute this cycle's actions.

        Args:
            metrics: Current metric snapshot of the room
            room: Room configuration (read-only)
            controller: The (room, domain) controller, mutable only for
                domain bookkeeping such as the daily watering count
            now: Current time from the engine clock

        Returns:
            Actions in production order
        """
