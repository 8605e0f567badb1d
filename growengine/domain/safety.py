"""
Safety Domain Objects
=====================
Safety issues, immutable emergency shutdown records and per-room emergency
state.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any

from growengine.enums import SafetyIssueType, SafetySeverity


@dataclass(frozen=True)
class SafetyIssue:
    room_id: str
    issue_type: SafetyIssueType
    severity: SafetySeverity
    value: float
    threshold: float
    message: str

    @property
    def is_critical(self) -> bool:
        return self.severity == SafetySeverity.CRITICAL

    def to_dict(self) -> dict[str, Any]:
        return {
            "room_id": self.room_id,
            "issue_type": self.issue_type.value,
            "severity": self.severity.value,
            "value": self.value,
            "threshold": self.threshold,
            "message": self.message,
        }


@dataclass(frozen=True)
class EmergencyShutdown:
    """Record of a critical breach. Resolution produces a new record."""

    id: str
    room_id: str
    reason: str
    timestamp: datetime
    resolved: bool = False
    resolved_at: datetime | None = None

    def resolve(self, now: datetime) -> EmergencyShutdown:
        return replace(self, resolved=True, resolved_at=now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "room_id": self.room_id,
            "reason": self.reason,
            "timestamp": self.timestamp.isoformat(),
            "resolved": self.resolved,
            "resolved_at": self.resolved_at.isoformat() if self.resolved_at else None,
        }


@dataclass(frozen=True)
class EmergencyState:
    room_id: str
    is_active: bool
    reason: str
    initiated_at: datetime
    shutdown_id: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "room_id": self.room_id,
            "is_active": self.is_active,
            "reason": self.reason,
            "initiated_at": self.initiated_at.isoformat(),
            "shutdown_id": self.shutdown_id,
        }
