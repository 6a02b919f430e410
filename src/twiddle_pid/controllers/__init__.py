"""
Twiddle PID Controllers Package

This package provides the scalar PID controller and the Twiddle gain tuner.
The controller turns one error sample per step into an unclamped control
value and scores each episode; the tuner adjusts the controller's gains
between episodes from those scores.

Components:
- PIDController: error accumulation, control output and episode scoring
- TwiddleTuner: coordinate-ascent search over (kp, kd, ki)
- ControlLimits: clamping of raw outputs to the actuator range

Design Philosophy:
- Controller and tuner are explicit instances, never module globals
- Independent instances share no state (one per actuation channel)
- Outputs are unclamped; limits are applied by the caller
"""

from .base import (
    ACTION_KEYS,
    ControlLimits,
    validate_action,
)
from .pid import PID_STARTUP, PIDController
from .tuning import (
    MIN_RESOLUTION,
    STEP_GROWTH,
    STEP_SHRINK,
    TwiddleConfig,
    TwiddlePhase,
    TwiddleTuner,
)

__all__ = [
    "PIDController",
    "PID_STARTUP",
    "TwiddleTuner",
    "TwiddleConfig",
    "TwiddlePhase",
    "MIN_RESOLUTION",
    "STEP_GROWTH",
    "STEP_SHRINK",
    "ACTION_KEYS",
    "ControlLimits",
    "validate_action",
]
