"""
Safety Supervisor
=================
Runs on the monitoring loop. Each step:

1. health check of the room's controllers (log only)
2. threshold evaluation of the current metrics
3. a critical issue triggers an emergency shutdown; otherwise every warning
   runs its protocol, unless an emergency is already active for the room
4. a performance snapshot is written to the reading store

Emergency state machine per room: Normal -> EmergencyActive -> (resolve)
-> Normal. While active, further critical breaches do not create records.
Once every record of the room is resolved the next breach starts a new one.
"""

from __future__ import annotations

import itertools
import logging
import threading
from datetime import datetime, timedelta
from typing import Any

from growengine.controllers.action_dispatcher import ActionDispatcher
from growengine.controllers.automation_controller import ControllerRegistry
from growengine.domain.control import AutomationAction, DispatchReport
from growengine.domain.room import RoomConfig
from growengine.domain.safety import EmergencyShutdown, EmergencyState, SafetyIssue
from growengine.domain.sensors import SensorMetrics
from growengine.enums import ActionType, AutomationDomain, EngineEvent, SafetyIssueType, SafetySeverity
from growengine.schemas.events import EmergencyShutdownPayload, SafetyWarningPayload
from growengine.utils.clock import Clock, SystemClock
from growengine.utils.event_bus import EventBus

logger = logging.getLogger(__name__)

CRITICAL_TEMPERATURE = 40.0
HIGH_TEMPERATURE = 35.0
HIGH_HUMIDITY = 90.0
LOW_HUMIDITY = 20.0

EMERGENCY_PRIORITY = 10

# Actions run for each warning-level issue
SAFETY_PROTOCOLS: dict[SafetyIssueType, tuple[AutomationAction, ...]] = {
    SafetyIssueType.HIGH_TEMPERATURE: (
        AutomationAction(ActionType.COOLING, 1.0, "Safety protocol: high temperature", 8),
        AutomationAction(ActionType.AIR_CIRCULATION, 1.0, "Safety protocol: high temperature", 8),
        AutomationAction(ActionType.LIGHTING_OFF, 0.0, "Safety protocol: reduce heat load", 7),
    ),
    SafetyIssueType.LOW_HUMIDITY: (
        AutomationAction(ActionType.HUMIDIFICATION, 1.0, "Safety protocol: low humidity", 7),
    ),
    SafetyIssueType.HIGH_HUMIDITY: (
        AutomationAction(ActionType.DEHUMIDIFICATION, 1.0, "Safety protocol: high humidity", 7),
        AutomationAction(ActionType.AIR_CIRCULATION, 1.0, "Safety protocol: high humidity", 7),
    ),
}


class SafetySupervisor:
    """
    Threshold monitoring and emergency handling for every room.

    Args:
        dispatcher: ActionDispatcher used for protocol and shutdown actions
        controllers: ControllerRegistry inspected by the health check
        clock: engine clock
        event_bus: optional EventBus for safety events
        store: optional ReadingStore receiving performance snapshots
        inactivity_minutes: controller idle time that triggers a health warning
        max_errors: controller error count that triggers a health warning
    """

    def __init__(
        self,
        dispatcher: ActionDispatcher,
        controllers: ControllerRegistry,
        *,
        clock: Clock | None = None,
        event_bus: EventBus | None = None,
        store=None,
        inactivity_minutes: int = 30,
        max_errors: int = 10,
    ):
        self.dispatcher = dispatcher
        self.controllers = controllers
        self.clock = clock or SystemClock()
        self.event_bus = event_bus
        self.store = store
        self.inactivity = timedelta(minutes=inactivity_minutes)
        self.max_errors = int(max_errors)

        self._lock = threading.RLock()
        self._records: list[EmergencyShutdown] = []
        self._states: dict[str, EmergencyState] = {}
        self._sequence = itertools.count(1)

    # ------------------------------------------------------------------
    # Monitoring step
    # ------------------------------------------------------------------

    def run(self, room: RoomConfig, metrics: SensorMetrics) -> list[SafetyIssue]:
        """One monitoring step for a room."""
        self.health_check(room.id)
        issues = self.evaluate(metrics, room.id)

        critical = [issue for issue in issues if issue.is_critical]
        if critical:
            self.trigger_emergency(room.id, critical[0].message)
        elif issues and not self.is_emergency_active(room.id):
            for issue in issues:
                self.execute_protocol(issue)

        self._save_performance(room.id)
        return issues

    def health_check(self, room_id: str) -> list[str]:
        """Return (and log) warnings about idle or failing controllers."""
        now = self.clock.now()
        warnings: list[str] = []
        for controller in self.controllers.controllers_for_room(room_id):
            label = f"{room_id}/{controller.domain.value}"
            if controller.last_action_time is not None and now - controller.last_action_time > self.inactivity:
                warnings.append(f"Controller {label} inactive since {controller.last_action_time.isoformat()}")
            if controller.error_count > self.max_errors:
                warnings.append(f"Controller {label} has {controller.error_count} errors")
        for message in warnings:
            logger.warning(message)
        return warnings

    def evaluate(self, metrics: SensorMetrics, room_id: str) -> list[SafetyIssue]:
        issues: list[SafetyIssue] = []

        temperature = metrics.temperature
        if temperature is not None:
            if temperature > CRITICAL_TEMPERATURE:
                issues.append(
                    SafetyIssue(
                        room_id,
                        SafetyIssueType.HIGH_TEMPERATURE,
                        SafetySeverity.CRITICAL,
                        temperature,
                        CRITICAL_TEMPERATURE,
                        f"Critical temperature: {temperature:.1f}°C",
                    )
                )
            elif temperature > HIGH_TEMPERATURE:
                issues.append(
                    SafetyIssue(
                        room_id,
                        SafetyIssueType.HIGH_TEMPERATURE,
                        SafetySeverity.WARNING,
                        temperature,
                        HIGH_TEMPERATURE,
                        f"High temperature: {temperature:.1f}°C",
                    )
                )

        humidity = metrics.humidity
        if humidity is not None:
            if humidity > HIGH_HUMIDITY:
                issues.append(
                    SafetyIssue(
                        room_id,
                        SafetyIssueType.HIGH_HUMIDITY,
                        SafetySeverity.WARNING,
                        humidity,
                        HIGH_HUMIDITY,
                        f"High humidity: {humidity:.1f}%",
                    )
                )
            elif humidity < LOW_HUMIDITY:
                issues.append(
                    SafetyIssue(
                        room_id,
                        SafetyIssueType.LOW_HUMIDITY,
                        SafetySeverity.WARNING,
                        humidity,
                        LOW_HUMIDITY,
                        f"Low humidity: {humidity:.1f}%",
                    )
                )

        return issues

    def execute_protocol(self, issue: SafetyIssue) -> DispatchReport | None:
        """Run the warning protocol for an issue and publish safety.warning."""
        logger.warning("Safety warning for room %s: %s", issue.room_id, issue.message)
        if self.event_bus is not None:
            self.event_bus.publish(
                EngineEvent.SAFETY_WARNING,
                SafetyWarningPayload(
                    room_id=issue.room_id,
                    issue_type=issue.issue_type.value,
                    severity=issue.severity.value,
                    value=issue.value,
                    threshold=issue.threshold,
                    message=issue.message,
                    timestamp=self.clock.now(),
                ),
            )

        actions = SAFETY_PROTOCOLS.get(issue.issue_type)
        if not actions:
            return None
        return self.dispatcher.dispatch(issue.room_id, AutomationDomain.SAFETY, actions)

    # ------------------------------------------------------------------
    # Emergency handling
    # ------------------------------------------------------------------

    def trigger_emergency(self, room_id: str, reason: str) -> EmergencyShutdown | None:
        """Start an emergency for a room; None when one is already active."""
        now = self.clock.now()
        with self._lock:
            if room_id in self._states:
                logger.debug("Emergency already active for room %s", room_id)
                return None
            record = EmergencyShutdown(
                id=f"emergency_{room_id}_{int(now.timestamp() * 1000)}_{next(self._sequence)}",
                room_id=room_id,
                reason=reason,
                timestamp=now,
            )
            self._records.append(record)
            self._states[room_id] = EmergencyState(
                room_id=room_id,
                is_active=True,
                reason=reason,
                initiated_at=now,
                shutdown_id=record.id,
            )

        logger.critical("EMERGENCY SHUTDOWN for room %s: %s", room_id, reason)
        self.dispatcher.dispatch(
            room_id,
            AutomationDomain.SAFETY,
            [AutomationAction(ActionType.EMERGENCY_SHUTDOWN, 1.0, reason, EMERGENCY_PRIORITY)],
        )
        self._publish_emergency(EngineEvent.EMERGENCY_SHUTDOWN, record)
        return record

    def resolve_emergency(self, shutdown_id: str) -> bool:
        """Mark a shutdown resolved. False for unknown or already resolved ids."""
        now = self.clock.now()
        with self._lock:
            for index, record in enumerate(self._records):
                if record.id == shutdown_id:
                    break
            else:
                return False
            if record.resolved:
                return False

            resolved = record.resolve(now)
            self._records[index] = resolved
            still_open = any(r.room_id == record.room_id and not r.resolved for r in self._records)
            if not still_open:
                self._states.pop(record.room_id, None)

        logger.info("Emergency %s for room %s resolved", shutdown_id, record.room_id)
        self._publish_emergency(EngineEvent.EMERGENCY_RESOLVED, resolved)
        return True

    def is_emergency_active(self, room_id: str) -> bool:
        with self._lock:
            return room_id in self._states

    def emergency_state(self, room_id: str) -> EmergencyState | None:
        with self._lock:
            return self._states.get(room_id)

    def active_emergencies(self) -> list[EmergencyState]:
        with self._lock:
            return list(self._states.values())

    def emergency_history(self, room_id: str | None = None, since: datetime | None = None) -> list[EmergencyShutdown]:
        """Shutdown records, oldest first."""
        with self._lock:
            return [
                r
                for r in self._records
                if (room_id is None or r.room_id == room_id) and (since is None or r.timestamp >= since)
            ]

    def _publish_emergency(self, event: EngineEvent, record: EmergencyShutdown) -> None:
        if self.event_bus is None:
            return
        self.event_bus.publish(
            event,
            EmergencyShutdownPayload(
                shutdown_id=record.id,
                room_id=record.room_id,
                reason=record.reason,
                timestamp=record.timestamp,
                resolved=record.resolved,
                resolved_at=record.resolved_at,
            ),
        )

    def _save_performance(self, room_id: str) -> None:
        if self.store is None:
            return
        snapshot: dict[str, Any] = self.controllers.snapshot(room_id)
        try:
            self.store.save_performance_metrics(room_id, snapshot)
        except Exception as e:
            logger.error("Failed to save performance metrics for room %s: %s", room_id, e)
