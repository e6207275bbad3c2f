"""Light actuators, colors and transitions."""

from .color import (
    RGB,
    HSV,
    Interpolation,
    interpolate,
    interpolate_hsv,
    make_interpolator,
)
from .actuator import Actuator, LoggingActuator
from .streaming import HueStreamer, HueActuator
from .transitions import TransitionController, TransitionKind, ramp_fractions

__all__ = [
    "RGB",
    "HSV",
    "Interpolation",
    "interpolate",
    "interpolate_hsv",
    "make_interpolator",
    "Actuator",
    "LoggingActuator",
    "HueStreamer",
    "HueActuator",
    "TransitionController",
    "TransitionKind",
    "ramp_fractions",
]
