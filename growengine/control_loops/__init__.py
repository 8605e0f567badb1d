"""
Control strategies, one per automation domain.

Each strategy is a deterministic function of (sensor snapshot, room config,
controller state, now).
"""

from growengine.control_loops.base import ControlStrategy
from growengine.control_loops.climate_strategy import ClimateStrategy
from growengine.control_loops.co2_strategy import Co2Strategy
from growengine.control_loops.lighting_strategy import LightingStrategy, is_lights_on, photoperiod_position
from growengine.control_loops.watering_strategy import WateringStrategy

__all__ = [
    "ClimateStrategy",
    "Co2Strategy",
    "ControlStrategy",
    "LightingStrategy",
    "WateringStrategy",
    "is_lights_on",
    "photoperiod_position",
]
