"""
Control Limits Module

Provides the action schema and actuator limits applied to raw controller
outputs before they are sent to the vehicle.

Action Schema:
    Actions are dictionaries with the following keys:
    - steering_angle: Normalized steering command in [-max_steering, max_steering],
      default max: 1.0
    - throttle: Throttle command in [throttle_offset, throttle_offset + 1.0],
      default range: [-0.2, 0.8]

Sign Conventions:
    - +cte (vehicle right of the reference path) -> negative steering
    - PID outputs are unclamped; clipping happens here, not in the controller
"""

from dataclasses import dataclass

import numpy as np

# Canonical action keys expected in all session outputs
ACTION_KEYS = ("steering_angle", "throttle")

@dataclass
class ControlLimits:
    """
    Actuator limits shared by the steering and throttle channels.

    Attributes:
        max_steering: Symmetric bound on the steering command.
        throttle_offset: Lower end of the throttle range. The clamped
            throttle PID output in [-1, 1] is shifted onto
            [throttle_offset, throttle_offset + 1].
    """

    max_steering: float = 1.0
    throttle_offset: float = -0.2

    def clip_steering(self, value: float) -> float:
        """Clamp a raw steering output to [-max_steering, max_steering]."""
        return float(np.clip(value, -self.max_steering, self.max_steering))

    def map_throttle(self, value: float) -> float:
        """Clamp a raw throttle output to [-1, 1] and shift it onto the throttle range."""
        return self.throttle_offset + (float(np.clip(value, -1.0, 1.0)) + 1.0) / 2.0

    def to_dict(self) -> dict:
        """Convert limits to dictionary."""
        return {
            "max_steering": self.max_steering,
            "throttle_offset": self.throttle_offset,
        }


def validate_action(action: dict) -> None:
    """
    Validate that an action dictionary has the required schema.

    Args:
        action: Action dictionary to validate.

    Raises:
        KeyError: If required keys are missing.
        TypeError: If values are not numeric.
    """
    for key in ACTION_KEYS:
        if key not in action:
            raise KeyError(f"Action missing required key: '{key}'")
        if not isinstance(action[key], (int, float)):
            raise TypeError(
                f"Action['{key}'] must be numeric, got {type(action[key]).__name__}"
            )
