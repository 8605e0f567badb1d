"""
AutomationEngine: the single object that wires and owns every collaborator.

Typical embedding::

    engine = AutomationEngine(hardware, registry, registry, store=store)
    with engine:
        ...  # loops run in the background

Tests and simulations skip start() and drive ticks with run_once() and a
ManualClock instead.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from growengine.config import EngineConfig, load_config
from growengine.control_loops import ClimateStrategy, Co2Strategy, LightingStrategy, WateringStrategy
from growengine.controllers import ActionDispatcher, ControllerRegistry
from growengine.domain.control import AutomationAction, DispatchReport
from growengine.domain.exceptions import ConfigurationMissing, ExternalServiceError
from growengine.domain.safety import EmergencyShutdown
from growengine.domain.sensors import SensorAlert, SensorReading
from growengine.enums import AutomationDomain
from growengine.services import (
    AlertEvaluator,
    AnomalyDetectionService,
    DataSmoothingService,
    DataValidationService,
    SafetySupervisor,
    SensorIngestionPipeline,
)
from growengine.utils.clock import Clock, SystemClock
from growengine.utils.event_bus import EventBus
from growengine.utils.logging_setup import configure_logging
from growengine.workers import ControlLoopScheduler, PeriodicScheduler

logger = logging.getLogger(__name__)


class AutomationEngine:
    """
    Sensing, control loops and safety supervision for a set of rooms.

    Args:
        hardware: HardwareIntegration (read_device, send_command and,
            optionally, read_co2_tank_level)
        rooms: RoomRegistry
        devices: DeviceRegistry
        config: EngineConfig, loaded from the environment when omitted
        clock: time source, SystemClock when omitted
        advisor: optional WateringAdvisor for smart watering
        store: optional ReadingStore for readings and performance snapshots
        event_bus: EventBus to publish on; one is created (and owned) when omitted

    Raises:
        ConfigurationError: when the configuration is invalid
    """

    def __init__(
        self,
        hardware,
        rooms,
        devices,
        *,
        config: EngineConfig | None = None,
        clock: Clock | None = None,
        advisor=None,
        store=None,
        event_bus: EventBus | None = None,
    ):
        self.config = config or load_config()
        self.clock = clock or SystemClock()
        self.hardware = hardware
        self.rooms = rooms
        self.devices = devices
        self.store = store

        self._owns_event_bus = event_bus is None
        self.event_bus = event_bus or EventBus(
            queue_size=self.config.eventbus_queue_size,
            worker_count=self.config.eventbus_worker_count,
        )

        self.controllers = ControllerRegistry(self.clock)
        self.dispatcher = ActionDispatcher(
            hardware,
            devices,
            self.controllers,
            clock=self.clock,
            event_bus=self.event_bus,
            timeout_seconds=self.config.dispatch_timeout_seconds,
            filter_by_capability=self.config.dispatch_filter_by_capability,
            error_notify_threshold=self.config.dispatch_error_notify_threshold,
            max_workers=self.config.dispatch_max_workers,
        )
        self.alert_evaluator = AlertEvaluator(
            event_bus=self.event_bus,
            clock=self.clock,
            max_history=self.config.alert_history_size,
        )
        self.pipeline = SensorIngestionPipeline(
            hardware,
            rooms,
            devices,
            clock=self.clock,
            smoothing=DataSmoothingService(),
            validation=DataValidationService(),
            anomaly=AnomalyDetectionService(history_size=self.config.anomaly_history_size),
            alert_evaluator=self.alert_evaluator,
            store=store,
            event_bus=self.event_bus,
            history_size=self.config.history_size,
            stale_after_seconds=self.config.metric_stale_seconds,
        )
        self.supervisor = SafetySupervisor(
            self.dispatcher,
            self.controllers,
            clock=self.clock,
            event_bus=self.event_bus,
            store=store,
            inactivity_minutes=self.config.health_inactivity_minutes,
            max_errors=self.config.health_max_errors,
        )

        tank_reader = getattr(hardware, "read_co2_tank_level", None)
        self.strategies = {
            AutomationDomain.CLIMATE: ClimateStrategy(),
            AutomationDomain.WATERING: WateringStrategy(advisor=advisor),
            AutomationDomain.LIGHTING: LightingStrategy(),
            AutomationDomain.CO2: Co2Strategy(tank_level_reader=tank_reader),
        }

        self.scheduler = PeriodicScheduler(clock=self.clock, max_workers=self.config.scheduler_max_workers)
        self.loops = ControlLoopScheduler(
            self.scheduler,
            rooms,
            self.pipeline,
            self.controllers,
            self.dispatcher,
            self.supervisor,
            self.strategies,
            self.config,
            clock=self.clock,
        )
        self.loops.register()
        logger.info("AutomationEngine initialized")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        self.scheduler.start()
        logger.info("AutomationEngine started")

    def stop(self, wait: bool = True) -> None:
        """Stop the loops; with ``wait`` in-flight ticks finish first."""
        self.scheduler.stop(wait=wait)
        self.dispatcher.shutdown(wait=wait)
        if self._owns_event_bus:
            self.event_bus.shutdown()
        logger.info("AutomationEngine stopped")

    def __enter__(self) -> AutomationEngine:
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    def run_once(self, domain: AutomationDomain | str) -> Any:
        """Run a single tick of one loop ("sensing", "monitoring" or a control domain)."""
        return self.loops.tick_for(domain)()

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------

    def execute_manual_action(self, room_id: str, action: AutomationAction) -> DispatchReport:
        """Dispatch a user-issued action under the room's manual controller."""
        if self.rooms.room_by_id(room_id) is None:
            raise ConfigurationMissing(f"Unknown room: {room_id}", detail={"room_id": room_id})
        logger.info("Manual %s for room %s: %s", action.type.value, room_id, action.reason)
        return self.dispatcher.dispatch(room_id, AutomationDomain.MANUAL, [action])

    def enable_automation_for_room(self, room_id: str) -> None:
        self.controllers.set_room_enabled(room_id, True)

    def disable_automation_for_room(self, room_id: str) -> None:
        self.controllers.set_room_enabled(room_id, False)

    def is_automation_enabled(self, room_id: str) -> bool:
        room = self.rooms.room_by_id(room_id)
        return room is not None and room.automation.enabled and self.controllers.is_room_enabled(room_id)

    # ------------------------------------------------------------------
    # Safety
    # ------------------------------------------------------------------

    def get_emergency_history(self, room_id: str | None = None, since: datetime | None = None) -> list[EmergencyShutdown]:
        return self.supervisor.emergency_history(room_id, since)

    def resolve_emergency(self, shutdown_id: str) -> bool:
        return self.supervisor.resolve_emergency(shutdown_id)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_performance_metrics(self, room_id: str | None = None) -> dict[str, Any]:
        return self.controllers.snapshot(room_id)

    def get_historical_data(
        self,
        room_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int | None = None,
    ) -> list[SensorReading]:
        """
        Readings newest first, from the store when one is configured.

        Raises:
            ExternalServiceError: when the reading store query fails
        """
        if self.store is None:
            return self.pipeline.history(room_id, start, end, limit)
        try:
            return list(self.store.get_historical_data(room_id, start, end, limit))
        except Exception as e:
            raise ExternalServiceError(
                f"Reading store query failed for room {room_id}: {e}",
                detail={"room_id": room_id},
            ) from e

    def get_current_reading(self, room_id: str) -> SensorReading | None:
        return self.pipeline.current_reading(room_id)

    def acknowledge_alert(self, alert_id: str) -> SensorAlert:
        return self.alert_evaluator.acknowledge(alert_id)

    def dismiss_alert(self, alert_id: str) -> SensorAlert:
        return self.alert_evaluator.dismiss(alert_id)

    def active_alerts(self, room_id: str | None = None) -> list[SensorAlert]:
        return self.alert_evaluator.active_alerts(room_id)

    def get_status(self) -> dict[str, Any]:
        return {
            "running": self.scheduler.is_running(),
            "timestamp": self.clock.now().isoformat(),
            "scheduler": self.scheduler.get_status(),
            "ingestion": self.pipeline.get_status(),
            "active_emergencies": [state.to_dict() for state in self.supervisor.active_emergencies()],
            "active_alerts": len(self.alert_evaluator.active_alerts()),
            "event_bus": self.event_bus.get_metrics(),
        }


def create_engine(hardware, rooms, devices, *, config: EngineConfig | None = None, **kwargs) -> AutomationEngine:
    """
    Build an engine for a host process.

    Loads the configuration, installs the package log handlers from it and
    returns an engine that has not been started yet.
    """
    config = config or load_config()
    configure_logging(config.log_level, config.log_file)
    return AutomationEngine(hardware, rooms, devices, config=config, **kwargs)
