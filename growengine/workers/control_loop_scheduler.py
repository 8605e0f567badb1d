"""
Control loop registration.

Registers the sensing job and the five automation loops (climate, watering,
lighting, co2, monitoring) on a PeriodicScheduler. A domain tick walks the
active rooms and, for each room that may act, evaluates the domain strategy
under the (room, domain) key lock and dispatches the result.
"""

from __future__ import annotations

import logging
from typing import Callable

from growengine.config import EngineConfig
from growengine.control_loops.base import ControlStrategy
from growengine.controllers.action_dispatcher import ActionDispatcher
from growengine.controllers.automation_controller import ControllerRegistry
from growengine.domain.control import AutomationAction
from growengine.domain.room import RoomConfig
from growengine.domain.safety import SafetyIssue
from growengine.domain.sensors import SensorMetrics
from growengine.enums import AutomationDomain
from growengine.services.ingestion_service import SensorIngestionPipeline
from growengine.services.safety_supervisor import SafetySupervisor
from growengine.utils.clock import Clock, SystemClock
from growengine.workers.periodic_scheduler import PeriodicScheduler

logger = logging.getLogger(__name__)

CONTROL_DOMAINS = (
    AutomationDomain.CLIMATE,
    AutomationDomain.WATERING,
    AutomationDomain.LIGHTING,
    AutomationDomain.CO2,
)

SENSING_JOB = "sensing"
MONITORING_JOB = "monitoring"


class ControlLoopScheduler:
    def __init__(
        self,
        scheduler: PeriodicScheduler,
        rooms,
        pipeline: SensorIngestionPipeline,
        controllers: ControllerRegistry,
        dispatcher: ActionDispatcher,
        supervisor: SafetySupervisor,
        strategies: dict[AutomationDomain, ControlStrategy],
        config: EngineConfig,
        clock: Clock | None = None,
    ):
        self.scheduler = scheduler
        self.rooms = rooms
        self.pipeline = pipeline
        self.controllers = controllers
        self.dispatcher = dispatcher
        self.supervisor = supervisor
        self.strategies = strategies
        self.config = config
        self.clock = clock or SystemClock()

    def register(self) -> None:
        """Add every loop to the scheduler at its configured interval."""
        intervals = self.config.loop_intervals()
        self.scheduler.schedule_interval(SENSING_JOB, intervals["sensing"], self.run_sensing_tick, start_immediately=True)
        for domain in CONTROL_DOMAINS:
            self.scheduler.schedule_interval(domain.value, intervals[domain.value], self.tick_for(domain))
        self.scheduler.schedule_interval(MONITORING_JOB, intervals["monitoring"], self.run_monitoring_tick)

    def tick_for(self, domain: AutomationDomain | str) -> Callable[[], dict]:
        """The tick callable for a loop name (a control domain, "monitoring" or "sensing")."""
        name = str(domain)
        if name == SENSING_JOB:
            return self.run_sensing_tick
        if name == MONITORING_JOB:
            return self.run_monitoring_tick
        ticks = {
            AutomationDomain.CLIMATE: self.run_climate_tick,
            AutomationDomain.WATERING: self.run_watering_tick,
            AutomationDomain.LIGHTING: self.run_lighting_tick,
            AutomationDomain.CO2: self.run_co2_tick,
        }
        return ticks[AutomationDomain(name)]

    # ------------------------------------------------------------------
    # Ticks
    # ------------------------------------------------------------------

    def run_sensing_tick(self) -> dict[str, int]:
        readings = self.pipeline.tick()
        return {"accepted": len(readings)}

    def run_climate_tick(self) -> dict[str, list[AutomationAction]]:
        return self._run_domain_tick(AutomationDomain.CLIMATE)

    def run_watering_tick(self) -> dict[str, list[AutomationAction]]:
        return self._run_domain_tick(AutomationDomain.WATERING)

    def run_lighting_tick(self) -> dict[str, list[AutomationAction]]:
        return self._run_domain_tick(AutomationDomain.LIGHTING)

    def run_co2_tick(self) -> dict[str, list[AutomationAction]]:
        return self._run_domain_tick(AutomationDomain.CO2)

    def run_monitoring_tick(self) -> dict[str, list[SafetyIssue]]:
        issues_by_room: dict[str, list[SafetyIssue]] = {}
        for room, metrics in self._eligible_rooms(AutomationDomain.SAFETY):
            try:
                issues_by_room[room.id] = self.supervisor.run(room, metrics)
            except Exception as e:
                logger.error("Safety monitoring failed for room %s: %s", room.id, e, exc_info=True)
        return issues_by_room

    def _run_domain_tick(self, domain: AutomationDomain) -> dict[str, list[AutomationAction]]:
        strategy = self.strategies[domain]
        actions_by_room: dict[str, list[AutomationAction]] = {}

        for room, metrics in self._eligible_rooms(domain):
            if self.supervisor.is_emergency_active(room.id):
                logger.debug("Skipping %s for room %s: emergency active", domain.value, room.id)
                continue
            try:
                with self.controllers.acquire(room.id, domain) as controller:
                    actions = strategy.evaluate(metrics, room, controller, self.clock.now())
                    if actions:
                        self.dispatcher.dispatch(room.id, domain, actions)
                actions_by_room[room.id] = actions
            except Exception as e:
                logger.error("%s loop failed for room %s: %s", domain.value, room.id, e, exc_info=True)

        return actions_by_room

    def _eligible_rooms(self, domain: AutomationDomain) -> list[tuple[RoomConfig, SensorMetrics]]:
        try:
            rooms = list(self.rooms.active_rooms())
        except Exception as e:
            logger.error("Failed to list active rooms: %s", e, exc_info=True)
            return []

        eligible = []
        for room in rooms:
            if not room.automation.domain_enabled(domain) or not self.controllers.is_room_enabled(room.id):
                continue
            metrics = self.pipeline.current_metrics(room.id)
            if metrics is None or metrics.is_empty():
                continue
            eligible.append((room, metrics))
        return eligible
