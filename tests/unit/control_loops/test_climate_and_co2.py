"""Tests for the climate and CO2 strategies."""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from growengine.control_loops import ClimateStrategy, Co2Strategy
from growengine.domain.control import AutomationController
from growengine.domain.room import ClimateSettings, Co2Settings
from growengine.domain.sensors import SensorMetrics
from growengine.enums import ActionType, AutomationDomain

DAY = datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)
NIGHT = datetime(2024, 5, 1, 3, 0, tzinfo=timezone.utc)


@pytest.fixture
def controller():
    return AutomationController("room-1", AutomationDomain.CLIMATE, created_at=DAY)


def _by_type(actions):
    return {a.type: a for a in actions}


# ========================== Climate ========================================


def test_cold_room_heats_with_scaled_intensity(make_room, controller):
    actions = ClimateStrategy().evaluate(SensorMetrics(temperature=18.0), make_room(), controller, DAY)

    heating = _by_type(actions)[ActionType.HEATING]
    assert heating.value == pytest.approx(0.3)
    assert heating.priority == 6


def test_hot_room_cools_with_high_priority(make_room, controller):
    actions = ClimateStrategy().evaluate(SensorMetrics(temperature=35.0), make_room(), controller, DAY)

    cooling = _by_type(actions)[ActionType.COOLING]
    assert cooling.value == pytest.approx(0.6)
    assert cooling.priority == 8


def test_small_deviation_inside_tolerance_maintains(make_room, controller):
    actions = ClimateStrategy().evaluate(SensorMetrics(temperature=28.5), make_room(), controller, DAY)

    assert actions[0].type == ActionType.MAINTAIN
    assert actions[0].priority == 1


def test_dry_room_humidifies(make_room, controller):
    actions = ClimateStrategy().evaluate(SensorMetrics(humidity=30.0), make_room(), controller, DAY)

    humidify = _by_type(actions)[ActionType.HUMIDIFICATION]
    assert humidify.value == pytest.approx(15.0 / 30.0)
    assert humidify.priority == 7


def test_air_circulation_follows_triggers(make_room, controller):
    room = make_room()

    calm = ClimateStrategy().evaluate(SensorMetrics(temperature=22.0, humidity=55.0, co2=900.0), room, controller, DAY)
    warm = ClimateStrategy().evaluate(SensorMetrics(temperature=26.0, co2=1000.0), room, controller, DAY)

    calm_fan = _by_type(calm)[ActionType.AIR_CIRCULATION]
    warm_fan = _by_type(warm)[ActionType.AIR_CIRCULATION]
    assert calm_fan.value == pytest.approx(0.3)
    assert calm_fan.reason == "Normal circulation"
    assert warm_fan.value == pytest.approx(0.48)
    assert warm_fan.reason == "High temperature, High CO2"
    assert warm_fan.priority == 2


def test_intensity_is_measured_past_the_tolerance_band(make_room, controller):
    room = make_room(climate=ClimateSettings(temperature_tolerance=1.0))

    heating = _by_type(ClimateStrategy().evaluate(SensorMetrics(temperature=16.5), room, controller, DAY))
    cooling = _by_type(ClimateStrategy().evaluate(SensorMetrics(temperature=31.0), room, controller, DAY))

    assert heating[ActionType.HEATING].value == pytest.approx(0.45)
    assert heating[ActionType.HEATING].priority == 6
    assert cooling[ActionType.COOLING].value == pytest.approx(0.2)
    assert cooling[ActionType.COOLING].priority == 3


def test_temperature_is_controlled_when_humidity_control_is_off(make_room, controller):
    room = make_room(climate=ClimateSettings(enable_humidity_control=False))

    actions = ClimateStrategy().evaluate(SensorMetrics(temperature=10.0, humidity=20.0), room, controller, DAY)

    assert [a.type for a in actions] == [ActionType.HEATING, ActionType.AIR_CIRCULATION]


# ========================== CO2 ============================================


def _co2_metrics(co2):
    return SensorMetrics(co2=co2, temperature=25.0, humidity=60.0)


def test_enrichment_inside_light_window(make_room, controller):
    actions = Co2Strategy().evaluate(_co2_metrics(600.0), make_room(), controller, DAY)

    assert len(actions) == 1
    enrichment = actions[0]
    assert enrichment.type == ActionType.CO2_ENRICHMENT
    assert enrichment.value == 0.5
    assert enrichment.duration_seconds == 300.0
    assert enrichment.priority == 3


def test_no_enrichment_outside_light_window(make_room, controller):
    assert Co2Strategy().evaluate(_co2_metrics(600.0), make_room(), controller, NIGHT) == []


def test_no_enrichment_when_climate_out_of_range(make_room, controller):
    metrics = SensorMetrics(co2=600.0, temperature=33.0)

    assert Co2Strategy().evaluate(metrics, make_room(), controller, DAY) == []


def test_high_co2_ventilates(make_room, controller):
    actions = Co2Strategy().evaluate(_co2_metrics(1500.0), make_room(), controller, NIGHT)

    assert actions[0].type == ActionType.VENTILATION
    assert actions[0].priority == 4


def test_low_tank_raises_alert(make_room, controller):
    reader = MagicMock(return_value=10.0)
    room = make_room(co2=Co2Settings(enable_tank_monitoring=True))

    actions = Co2Strategy(tank_level_reader=reader).evaluate(_co2_metrics(1000.0), room, controller, DAY)

    reader.assert_called_once_with("room-1")
    assert actions[0].type == ActionType.ALERT
    assert actions[0].value == 10.0
    assert actions[0].priority == 4


def test_missing_co2_reading_does_nothing(make_room, controller):
    assert Co2Strategy().evaluate(SensorMetrics(temperature=25.0), make_room(), controller, DAY) == []
