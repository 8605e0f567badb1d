"""
ActionDispatcher: turns AutomationActions into device commands.

Actions are dispatched in the order the strategy produced them (not sorted
by priority). Each command is broadcast to every active device of the room,
or, with ``filter_by_capability``, only to devices that declare the command
type in their capabilities. One failed action never aborts the batch.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from typing import Any, Iterable

from growengine.controllers.automation_controller import ControllerRegistry
from growengine.domain.control import AutomationAction, DispatchOutcome, DispatchReport
from growengine.domain.exceptions import DispatchError
from growengine.domain.sensors import SensorDevice
from growengine.enums import ActionType, AutomationDomain, EngineEvent
from growengine.schemas.events import (
    AutomationActionPayload,
    AutomationNotificationPayload,
    DispatchFailedPayload,
)
from growengine.utils.clock import Clock, SystemClock
from growengine.utils.event_bus import EventBus

logger = logging.getLogger(__name__)

# ActionType -> (command type, fixed value or None to use action.value, include duration)
COMMAND_TABLE: dict[ActionType, tuple[str, float | None, bool] | None] = {
    ActionType.HEATING: ("heating", None, False),
    ActionType.COOLING: ("cooling", None, False),
    ActionType.HUMIDIFICATION: ("humidification", None, False),
    ActionType.DEHUMIDIFICATION: ("dehumidification", None, False),
    ActionType.WATERING: ("watering", None, True),
    ActionType.LIGHTING: ("lighting", None, False),
    ActionType.LIGHTING_OFF: ("lighting", 0.0, False),
    ActionType.CO2_ENRICHMENT: ("co2", None, True),
    ActionType.AIR_CIRCULATION: ("fan", None, False),
    ActionType.VENTILATION: ("ventilation", None, False),
    ActionType.DRAINAGE: ("drainage", None, False),
    ActionType.NUTRIENT_DOSING: ("nutrient_dosing", None, True),
    ActionType.EMERGENCY_SHUTDOWN: ("emergency_stop", 1.0, False),
    ActionType.MAINTAIN: None,
    ActionType.ALERT: None,
}


def build_command(action: AutomationAction) -> dict[str, Any] | None:
    """Map an action to its device command, None when it needs no hardware."""
    entry = COMMAND_TABLE.get(action.type)
    if entry is None:
        return None
    command_type, fixed_value, with_duration = entry
    command: dict[str, Any] = {
        "type": command_type,
        "value": fixed_value if fixed_value is not None else action.value,
    }
    if with_duration and action.duration_seconds is not None:
        command["duration"] = action.duration_seconds
    return command


class ActionDispatcher:
    """
    Executes action batches and keeps per-(room, domain) counters.

    Args:
        hardware: HardwareIntegration with send_command()
        devices: DeviceRegistry
        controllers: ControllerRegistry holding the counters and key locks
        timeout_seconds: per-device command timeout, 0 or None disables it
        filter_by_capability: send only to devices that accept the command type
        error_notify_threshold: consecutive failures that raise a notification
    """

    def __init__(
        self,
        hardware,
        devices,
        controllers: ControllerRegistry,
        *,
        clock: Clock | None = None,
        event_bus: EventBus | None = None,
        timeout_seconds: float | None = 10.0,
        filter_by_capability: bool = False,
        error_notify_threshold: int = 3,
        max_workers: int = 4,
    ):
        self.hardware = hardware
        self.devices = devices
        self.controllers = controllers
        self.clock = clock or SystemClock()
        self.event_bus = event_bus
        self.timeout_seconds = timeout_seconds or None
        self.filter_by_capability = filter_by_capability
        self.error_notify_threshold = int(error_notify_threshold)
        self._max_workers = int(max_workers)
        self._executor: ThreadPoolExecutor | None = None

    def _ensure_executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=self._max_workers, thread_name_prefix="ActionDispatch")
        return self._executor

    def shutdown(self, wait: bool = True) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
            self._executor = None

    # ------------------------------------------------------------------

    def dispatch(
        self,
        room_id: str,
        domain: AutomationDomain,
        actions: Iterable[AutomationAction],
    ) -> DispatchReport:
        """Dispatch a batch under the (room, domain) key lock."""
        domain = AutomationDomain(domain)
        outcomes: list[DispatchOutcome] = []

        with self.controllers.acquire(room_id, domain) as controller:
            for action in actions:
                command = build_command(action)
                targets: list[SensorDevice] = []
                try:
                    if command is not None:
                        targets = self._target_devices(room_id, command["type"])
                        for device in targets:
                            self._send(device, command)
                except Exception as e:
                    error = str(e) or e.__class__.__name__
                    controller.record_error(error)
                    logger.error(
                        "Dispatch of %s to room %s (%s) failed: %s", action.type.value, room_id, domain.value, error
                    )
                    outcomes.append(
                        DispatchOutcome(action, False, tuple(d.id for d in targets), command, error)
                    )
                    self._publish_failure(room_id, domain, action, error, controller)
                    continue

                controller.record_action(self.clock.now())
                if command is not None:
                    logger.info(
                        "Room %s %s -> %s (value=%.2f, priority=%d, devices=%d)",
                        room_id,
                        domain.value,
                        command["type"],
                        command["value"],
                        action.priority,
                        len(targets),
                    )
                outcomes.append(DispatchOutcome(action, True, tuple(d.id for d in targets), command))
                self._publish_success(room_id, domain, action, command, targets)

        return DispatchReport(room_id=room_id, domain=domain, outcomes=tuple(outcomes))

    def _target_devices(self, room_id: str, command_type: str) -> list[SensorDevice]:
        devices = [d for d in self.devices.devices_for_room(room_id) if d.is_active]
        if self.filter_by_capability:
            devices = [d for d in devices if d.accepts(command_type)]
        return devices

    def _send(self, device: SensorDevice, command: dict[str, Any]) -> None:
        if self.timeout_seconds is None:
            result = self.hardware.send_command(device, dict(command))
        else:
            future = self._ensure_executor().submit(self.hardware.send_command, device, dict(command))
            try:
                result = future.result(timeout=self.timeout_seconds)
            except FutureTimeout:
                future.cancel()
                raise DispatchError(
                    f"Command {command['type']} to device {device.id} timed out after {self.timeout_seconds}s",
                    detail={"device_id": device.id, "command": command},
                ) from None
        if result is False:
            raise DispatchError(
                f"Device {device.id} rejected command {command['type']}",
                detail={"device_id": device.id, "command": command},
            )

    # ------------------------------------------------------------------

    def _publish_success(
        self,
        room_id: str,
        domain: AutomationDomain,
        action: AutomationAction,
        command: dict[str, Any] | None,
        targets: list[SensorDevice],
    ) -> None:
        if self.event_bus is None:
            return
        self.event_bus.publish(
            EngineEvent.AUTOMATION_ACTION,
            AutomationActionPayload(
                room_id=room_id,
                domain=domain.value,
                action_type=action.type.value,
                value=action.value,
                priority=action.priority,
                reason=action.reason,
                duration_seconds=action.duration_seconds,
                command=command,
                devices=[d.id for d in targets],
                timestamp=self.clock.now(),
            ),
        )

    def _publish_failure(self, room_id, domain: AutomationDomain, action: AutomationAction, error: str, controller) -> None:
        if self.event_bus is None:
            return
        now = self.clock.now()
        self.event_bus.publish(
            EngineEvent.DISPATCH_FAILED,
            DispatchFailedPayload(
                room_id=room_id,
                domain=domain.value,
                action_type=action.type.value,
                error=error,
                error_count=controller.error_count,
                consecutive_errors=controller.consecutive_errors,
                timestamp=now,
            ),
        )
        if self.error_notify_threshold > 0 and controller.consecutive_errors == self.error_notify_threshold:
            self.event_bus.publish(
                EngineEvent.AUTOMATION_NOTIFICATION,
                AutomationNotificationPayload(
                    room_id=room_id,
                    title="Repeated dispatch failures",
                    message=f"{controller.consecutive_errors} consecutive {domain.value} commands failed: {error}",
                    severity="warning",
                    domain=domain.value,
                    timestamp=now,
                ),
            )
