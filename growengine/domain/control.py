"""
Control System Domain Objects
==============================
Computed actions, per-(room, domain) controller counters and advisor
predictions.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from growengine.enums import ActionType, AutomationDomain

MIN_PRIORITY = 1
MAX_PRIORITY = 10


@dataclass(frozen=True)
class AutomationAction:
    """One computed instruction for a single control cycle."""

    type: ActionType
    value: float
    reason: str
    priority: int
    duration_seconds: float | None = None

    def __post_init__(self) -> None:
        if not MIN_PRIORITY <= int(self.priority) <= MAX_PRIORITY:
            raise ValueError(f"Action priority {self.priority} outside [{MIN_PRIORITY}, {MAX_PRIORITY}]")

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "value": self.value,
            "reason": self.reason,
            "priority": self.priority,
            "duration_seconds": self.duration_seconds,
        }


@dataclass
class AutomationController:
    """
    Counters for one (room, domain) pair.

    Created lazily by the ControllerRegistry and never deleted. Callers hold
    the registry's key lock while mutating it.
    """

    room_id: str
    domain: AutomationDomain
    created_at: datetime
    is_enabled: bool = True
    total_actions: int = 0
    error_count: int = 0
    consecutive_errors: int = 0
    last_action_time: datetime | None = None
    last_error: str | None = None
    daily_watering_count: int = 0
    watering_day: date | None = None
    last_watering_time: datetime | None = None
    energy_consumed: float = 0.0

    @property
    def key(self) -> tuple[str, AutomationDomain]:
        return (self.room_id, self.domain)

    @property
    def error_rate(self) -> float:
        attempts = self.total_actions + self.error_count
        if attempts == 0:
            return 0.0
        return self.error_count / attempts

    def record_action(self, now: datetime) -> None:
        self.total_actions += 1
        self.consecutive_errors = 0
        self.last_action_time = now

    def record_error(self, message: str) -> None:
        self.error_count += 1
        self.consecutive_errors += 1
        self.last_error = message

    def roll_watering_day(self, today: date) -> bool:
        """Reset the daily watering count on the first check of a new date."""
        if self.watering_day == today:
            return False
        rolled = self.watering_day is not None
        self.watering_day = today
        self.daily_watering_count = 0
        return rolled

    def reset_counters(self) -> None:
        self.total_actions = 0
        self.error_count = 0
        self.consecutive_errors = 0
        self.last_error = None
        self.energy_consumed = 0.0

    def uptime_seconds(self, now: datetime) -> float:
        return max(0.0, (now - self.created_at).total_seconds())

    def to_dict(self, now: datetime | None = None) -> dict[str, Any]:
        return {
            "room_id": self.room_id,
            "domain": self.domain.value,
            "is_enabled": self.is_enabled,
            "total_actions": self.total_actions,
            "error_count": self.error_count,
            "consecutive_errors": self.consecutive_errors,
            "error_rate": self.error_rate,
            "last_action_time": self.last_action_time.isoformat() if self.last_action_time else None,
            "last_error": self.last_error,
            "daily_watering_count": self.daily_watering_count,
            "last_watering_time": self.last_watering_time.isoformat() if self.last_watering_time else None,
            "energy_consumed": self.energy_consumed,
            "uptime_seconds": self.uptime_seconds(now) if now else None,
        }


@dataclass(frozen=True)
class WateringPrediction:
    """Advisor answer to "should this room be watered now?"."""

    should_water: bool
    amount: float
    confidence: float
    reason: str = ""


@dataclass(frozen=True)
class DispatchOutcome:
    action: AutomationAction
    success: bool
    devices: tuple[str, ...] = ()
    command: dict[str, Any] | None = field(default=None, hash=False)
    error: str | None = None


@dataclass(frozen=True)
class DispatchReport:
    room_id: str
    domain: AutomationDomain
    outcomes: tuple[DispatchOutcome, ...] = ()

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.outcomes if o.success)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if not o.success)

    def to_dict(self) -> dict[str, Any]:
        return {
            "room_id": self.room_id,
            "domain": self.domain.value,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "outcomes": [
                {"action": o.action.to_dict(), "success": o.success, "devices": list(o.devices), "error": o.error}
                for o in self.outcomes
            ],
        }
