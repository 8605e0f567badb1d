"""End-to-end tests of AutomationEngine driven tick by tick."""

import threading
from unittest.mock import MagicMock

import pytest

from growengine import AutomationEngine, EngineConfig
from growengine.domain.control import AutomationAction
from growengine.domain.exceptions import (
    ConfigurationError,
    ConfigurationMissing,
    DeviceUnavailable,
    ExternalServiceError,
)
from growengine.enums import ActionType, AutomationDomain, EngineEvent


@pytest.fixture
def engine(hardware, registry, clock, config, store, event_bus, make_room, make_device):
    registry.upsert_room(make_room())
    registry.upsert_device(make_device())
    engine = AutomationEngine(hardware, registry, registry, config=config, clock=clock, store=store, event_bus=event_bus)
    yield engine
    engine.stop()


def _sense(engine, hardware, **metrics):
    hardware.samples["dev-1"] = metrics
    return engine.run_once("sensing")


def test_critical_temperature_triggers_single_emergency(engine, hardware, clock, events):
    _sense(engine, hardware, temperature=41.0, humidity=60.0)

    engine.run_once("monitoring")
    clock.advance(30)
    engine.run_once("monitoring")

    history = engine.get_emergency_history("room-1")
    assert len(history) == 1
    assert hardware.command_types().count("emergency_stop") == 1
    assert len(events[EngineEvent.EMERGENCY_SHUTDOWN]) == 1


def test_emergency_suppresses_domain_loops_until_resolved(engine, hardware):
    _sense(engine, hardware, temperature=41.0, humidity=60.0)
    engine.run_once("monitoring")

    assert engine.run_once(AutomationDomain.CLIMATE) == {}

    shutdown_id = engine.get_emergency_history()[0].id
    assert engine.resolve_emergency(shutdown_id) is True
    climate = engine.run_once(AutomationDomain.CLIMATE)
    assert ActionType.COOLING in [a.type for a in climate["room-1"]]


def test_dry_soil_waters(engine, hardware):
    _sense(engine, hardware, soil_moisture=25.0)

    actions = engine.run_once("watering")["room-1"]

    assert [a.type for a in actions] == [ActionType.WATERING]
    assert hardware.commands == [("dev-1", {"type": "watering", "value": 1.0, "duration": 120.0})]


def test_co2_enrichment_follows_light_window(engine, hardware, clock):
    _sense(engine, hardware, co2=600.0, temperature=25.0, humidity=60.0)

    inside = engine.run_once("co2")["room-1"]
    clock.set(clock.now().replace(hour=3))
    outside = engine.run_once("co2")["room-1"]

    assert [a.type for a in inside] == [ActionType.CO2_ENRICHMENT]
    assert outside == []


def test_lighting_follows_photoperiod(engine, hardware, clock):
    _sense(engine, hardware, temperature=25.0)

    day = engine.run_once("lighting")["room-1"][0]
    clock.set(clock.now().replace(hour=5))
    night = engine.run_once("lighting")["room-1"][0]

    assert (day.type, day.value) == (ActionType.LIGHTING, 1.0)
    assert night.type == ActionType.LIGHTING_OFF


def test_disabled_room_produces_no_actions_anywhere(engine, hardware):
    _sense(engine, hardware, temperature=41.0, humidity=10.0, soil_moisture=20.0, co2=500.0)
    engine.disable_automation_for_room("room-1")

    for loop in ("climate", "watering", "lighting", "co2", "monitoring"):
        assert engine.run_once(loop) == {}

    assert hardware.commands == []
    assert engine.get_emergency_history() == []
    assert not engine.is_automation_enabled("room-1")

    engine.enable_automation_for_room("room-1")
    assert engine.run_once("watering")["room-1"]


def test_master_flag_off_disables_room(hardware, registry, clock, config, make_room, make_device):
    registry.upsert_room(make_room(enabled=False))
    registry.upsert_device(make_device())
    engine = AutomationEngine(hardware, registry, registry, config=config, clock=clock)
    hardware.samples["dev-1"] = {"temperature": 41.0}
    engine.run_once("sensing")

    assert engine.run_once("climate") == {}
    assert engine.run_once("monitoring") == {}
    assert hardware.commands == []


def test_domain_without_metrics_is_skipped(engine):
    assert engine.run_once("climate") == {}


def test_manual_action(engine, hardware):
    fan = AutomationAction(ActionType.AIR_CIRCULATION, 0.8, "Operator request", 5)

    report = engine.execute_manual_action("room-1", fan)

    assert report.succeeded == 1
    assert hardware.commands == [("dev-1", {"type": "fan", "value": 0.8})]
    metrics = engine.get_performance_metrics("room-1")
    assert metrics["total_actions"] == 1
    assert metrics["controllers"][0]["domain"] == "manual"

    with pytest.raises(ConfigurationMissing):
        engine.execute_manual_action("nowhere", fan)


def test_history_and_alert_queries(engine, hardware, clock):
    _sense(engine, hardware, temperature=31.0)
    clock.advance(30)
    _sense(engine, hardware, temperature=31.0)

    history = engine.get_historical_data("room-1")
    alerts = engine.active_alerts("room-1")

    assert len(history) == 2
    assert history[0].timestamp > history[1].timestamp
    assert len(engine.get_historical_data("room-1", limit=1)) == 1
    assert len(alerts) == 2
    engine.acknowledge_alert(alerts[0].id)
    engine.dismiss_alert(alerts[1].id)
    assert engine.active_alerts() == []


def test_status_reports_components(engine, hardware):
    _sense(engine, hardware, temperature=24.0)

    status = engine.get_status()

    assert status["running"] is False
    assert status["ingestion"]["accepted"] == 1
    assert {job["job_id"] for job in status["scheduler"]["jobs"]} == {
        "sensing",
        "climate",
        "watering",
        "lighting",
        "co2",
        "monitoring",
    }


def test_context_manager_starts_and_stops(engine):
    with engine:
        assert engine.get_status()["running"] is True

    assert engine.get_status()["running"] is False


def test_invalid_config_is_rejected():
    with pytest.raises(ConfigurationError):
        EngineConfig(climate_interval_seconds=0)


def test_concurrent_climate_and_watering_ticks_keep_separate_counters(engine, hardware):
    _sense(engine, hardware, temperature=16.5, soil_moisture=25.0)

    threads = [
        threading.Thread(target=lambda loop=loop: [engine.run_once(loop) for _ in range(40)])
        for loop in ("climate", "watering")
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    climate = engine.controllers.get("room-1", AutomationDomain.CLIMATE)
    watering = engine.controllers.get("room-1", AutomationDomain.WATERING)
    # Climate emits heating plus circulation per tick; watering waters three times then alerts
    assert climate.total_actions == 80
    assert climate.daily_watering_count == 0
    assert watering.total_actions == 40
    assert watering.daily_watering_count == 3
    assert hardware.command_types().count("watering") == 3


def test_stale_reading_does_not_retrigger_emergency(engine, hardware, clock):
    _sense(engine, hardware, temperature=41.0)
    engine.run_once("monitoring")
    engine.resolve_emergency(engine.get_emergency_history()[0].id)

    hardware.samples["dev-1"] = DeviceUnavailable("sensor unplugged")
    clock.advance(901)
    engine.run_once("sensing")

    assert engine.run_once("monitoring") == {}
    assert len(engine.get_emergency_history()) == 1


def test_store_failure_surfaces_as_external_service_error(hardware, registry, clock, config, make_room):
    registry.upsert_room(make_room())
    store = MagicMock()
    store.get_historical_data.side_effect = OSError("database is locked")
    engine = AutomationEngine(hardware, registry, registry, config=config, clock=clock, store=store)

    with pytest.raises(ExternalServiceError) as exc_info:
        engine.get_historical_data("room-1")

    assert exc_info.value.detail == {"room_id": "room-1"}
    assert isinstance(exc_info.value.__cause__, OSError)
