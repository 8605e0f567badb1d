"""Tests for the watering and lighting strategies."""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from growengine.control_loops import LightingStrategy, WateringStrategy, is_lights_on
from growengine.domain.control import AutomationController, WateringPrediction
from growengine.domain.room import LightingSettings, WateringSettings
from growengine.domain.sensors import SensorMetrics
from growengine.enums import ActionType, AutomationDomain


def _at(hour, minute=0, day=1):
    return datetime(2024, 5, day, hour, minute, tzinfo=timezone.utc)


@pytest.fixture
def controller():
    return AutomationController("room-1", AutomationDomain.WATERING, created_at=_at(0))


# ========================== Watering =======================================


def test_dry_soil_waters_with_urgent_priority(make_room, controller):
    actions = WateringStrategy().evaluate(SensorMetrics(soil_moisture=25.0), make_room(), controller, _at(10))

    assert len(actions) == 1
    watering = actions[0]
    assert watering.type == ActionType.WATERING
    assert watering.value == 1.0
    assert watering.priority == 9
    assert watering.duration_seconds == 120.0
    assert controller.daily_watering_count == 1


def test_small_deficit_uses_normal_priority(make_room, controller):
    actions = WateringStrategy().evaluate(SensorMetrics(soil_moisture=35.0), make_room(), controller, _at(10))

    assert actions[0].priority == 6


def test_daily_limit_then_alert_then_rollover(make_room, controller):
    room = make_room(watering=WateringSettings(max_waterings_per_day=3))
    strategy = WateringStrategy()
    dry = SensorMetrics(soil_moisture=25.0)

    first_day = [strategy.evaluate(dry, room, controller, _at(8 + i))[0] for i in range(5)]

    assert [a.type for a in first_day] == [ActionType.WATERING] * 3 + [ActionType.ALERT] * 2
    assert first_day[3].reason == "Daily watering limit reached (3)"
    assert first_day[3].priority == 5

    next_day = strategy.evaluate(dry, room, controller, _at(0, 5, day=2))
    assert next_day[0].type == ActionType.WATERING
    assert controller.daily_watering_count == 1


def test_moist_soil_does_nothing_without_advisor(make_room, controller):
    assert WateringStrategy().evaluate(SensorMetrics(soil_moisture=55.0), make_room(), controller, _at(10)) == []


def test_confident_advisor_triggers_smart_watering(make_room, controller):
    advisor = MagicMock()
    advisor.predict_watering_need.return_value = WateringPrediction(True, 0.4, 0.9, "evaporation forecast")
    room = make_room(watering=WateringSettings(enable_smart_watering=True))

    actions = WateringStrategy(advisor=advisor).evaluate(SensorMetrics(soil_moisture=55.0), room, controller, _at(10))

    assert actions[0].type == ActionType.WATERING
    assert actions[0].value == 0.4
    assert actions[0].priority == 3
    assert controller.daily_watering_count == 1


@pytest.mark.parametrize(
    "prediction",
    [WateringPrediction(True, 0.4, 0.6), WateringPrediction(False, 0.0, 0.95)],
)
def test_unconvincing_advisor_is_ignored(make_room, controller, prediction):
    advisor = MagicMock()
    advisor.predict_watering_need.return_value = prediction
    room = make_room(watering=WateringSettings(enable_smart_watering=True))

    assert WateringStrategy(advisor=advisor).evaluate(SensorMetrics(soil_moisture=55.0), room, controller, _at(10)) == []


def test_advisor_failure_is_swallowed(make_room, controller):
    advisor = MagicMock()
    advisor.predict_watering_need.side_effect = TimeoutError("model server down")
    room = make_room(watering=WateringSettings(enable_smart_watering=True))

    assert WateringStrategy(advisor=advisor).evaluate(SensorMetrics(soil_moisture=55.0), room, controller, _at(10)) == []


def test_high_water_level_drains(make_room, controller):
    room = make_room(watering=WateringSettings(enable_drainage_monitoring=True))

    actions = WateringStrategy().evaluate(SensorMetrics(soil_moisture=60.0, water_level=90.0), room, controller, _at(10))

    assert actions[0].type == ActionType.DRAINAGE
    assert actions[0].priority == 6


# ========================== Lighting =======================================


def _lighting(make_room, controller, now, metrics=None, **settings):
    room = make_room(lighting=LightingSettings(**settings))
    return LightingStrategy().evaluate(metrics or SensorMetrics(), room, controller, now)


def test_lights_on_inside_photoperiod(make_room, controller):
    actions = _lighting(make_room, controller, _at(10))

    assert actions[0].type == ActionType.LIGHTING
    assert actions[0].value == 1.0
    assert actions[0].priority == 2


def test_lights_off_outside_photoperiod(make_room, controller):
    actions = _lighting(make_room, controller, _at(5))

    assert actions[0].type == ActionType.LIGHTING_OFF
    assert actions[0].value == 0.0


def test_window_wraps_past_midnight():
    settings = LightingSettings(light_on_hours=12, anchor_hour=20)

    assert is_lights_on(_at(2), settings)
    assert not is_lights_on(_at(9), settings)
    assert is_lights_on(_at(23, 30), LightingSettings())


def test_sunrise_and_sunset_ramps(make_room, controller):
    sunrise = _lighting(make_room, controller, _at(6, 15), enable_sunrise_simulation=True)
    sunset = _lighting(make_room, controller, _at(23, 45), enable_sunset_simulation=True)

    assert sunrise[0].value == pytest.approx(0.5)
    assert sunrise[0].reason == "Sunrise ramp"
    assert sunset[0].value == pytest.approx(0.5)
    assert sunset[0].reason == "Sunset ramp"


def test_dimming_follows_light_sensor(make_room, controller):
    brighter = _lighting(make_room, controller, _at(10), SensorMetrics(light=500.0), max_intensity=0.5)
    dimmer = _lighting(make_room, controller, _at(10), SensorMetrics(light=900.0))
    fixed = _lighting(make_room, controller, _at(10), SensorMetrics(light=900.0), enable_dimming=False)

    assert brighter[0].value == pytest.approx(0.55)
    assert dimmer[0].value == pytest.approx(0.9)
    assert fixed[0].value == 1.0
