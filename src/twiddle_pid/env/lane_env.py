"""
Lane-Keeping Environment

Provides a lightweight stand-in for a driving simulator so the PID controller
and Twiddle tuner can be exercised end to end:
- Kinematic bicycle model (Euler integration)
- Sinusoidally curving reference path
- Optional Gaussian noise on the reported cross track error
- Telemetry dictionaries in the same shape a simulator would send

State:
    cte:     lateral offset from the reference path (m, + is right of path)
    heading: heading relative to the path tangent (rad)
    speed:   forward speed (m/s)
    s:       distance travelled along the path (m)

Action:
    steering_angle: normalized steering in [-1, 1] (+ turns right, toward +cte)
    throttle:       normalized throttle in [-1, 1]
"""

import logging
import math

import numpy as np

from twiddle_pid.controllers.base import validate_action

from .config import EnvConfig

logger = logging.getLogger(__name__)


class LaneKeepingEnv:
    """
    Simulation environment for lane keeping.

    Attributes:
        config: Environment configuration.
        cte: True lateral offset from the path.
        heading: Heading error relative to the path.
        speed: Forward speed.
        distance: Arc length travelled along the path.
    """

    def __init__(self, config: dict | EnvConfig | None = None):
        """
        Initialize the lane-keeping environment.

        Args:
            config: Configuration dictionary or EnvConfig instance.
                   If dict, will be converted via EnvConfig.from_dict().
                   If None, default configuration is used.
        """
        if config is None:
            self.config = EnvConfig()
        elif isinstance(config, dict):
            self.config = EnvConfig.from_dict(config)
        else:
            self.config = config

        self.cte = 0.0
        self.heading = 0.0
        self.speed = 0.0
        self.distance = 0.0
        self._steering_deg = 0.0
        self._step_count = 0
        self._initialized = False

        self._rng = np.random.default_rng(self.config.seed)

    @property
    def step_count(self) -> int:
        """Steps taken since the last reset."""
        return self._step_count

    def reset(self, seed: int | None = None) -> dict:
        """
        Reset the vehicle to the start of the path.

        Args:
            seed: Optional random seed for reproducibility.

        Returns:
            Initial telemetry dictionary.
        """
        if seed is not None:
            self._rng = np.random.default_rng(seed)

        r = self.config.road.initial_cte_range
        self.cte = float(self._rng.uniform(-r, r)) if r > 0 else 0.0
        self.heading = 0.0
        self.speed = self.config.vehicle.initial_speed
        self.distance = 0.0
        self._steering_deg = 0.0
        self._step_count = 0
        self._initialized = True

        return self._get_telemetry()

    def step(self, action: dict) -> dict:
        """
        Advance the simulation by one sample period.

        Args:
            action: Dictionary with steering_angle and throttle.

        Returns:
            Telemetry dictionary with cte, speed and steering_angle.

        Raises:
            RuntimeError: If called before reset().
            KeyError: If the action is missing a required key.
            TypeError: If an action value is not numeric.
        """
        if not self._initialized:
            raise RuntimeError("Environment not initialized. Call reset() first.")

        validate_action(action)

        vehicle = self.config.vehicle
        dt = self.config.simulation.dt

        steering = float(np.clip(action["steering_angle"], -1.0, 1.0))
        throttle = float(np.clip(action["throttle"], -1.0, 1.0))

        self._steering_deg = steering * vehicle.max_steer_deg
        delta = math.radians(self._steering_deg)

        path_curvature = self._path_curvature(self.distance)

        # Positive steering turns right, i.e. toward positive cte
        yaw_rate = self.speed * math.tan(delta) / vehicle.wheelbase
        self.heading += (yaw_rate + self.speed * path_curvature) * dt
        self.cte += self.speed * math.sin(self.heading) * dt
        self.distance += self.speed * math.cos(self.heading) * dt

        accel = throttle * vehicle.max_accel - vehicle.drag * self.speed
        self.speed = max(0.0, self.speed + accel * dt)

        self._step_count += 1
        return self._get_telemetry()

    def _path_curvature(self, distance: float) -> float:
        """Curvature of the reference path at the given arc length."""
        road = self.config.road
        if road.curvature_period <= 0:
            return road.curvature
        return road.curvature * math.sin(2.0 * math.pi * distance / road.curvature_period)

    def _get_telemetry(self) -> dict:
        """Build the telemetry dictionary for the current state."""
        noise_std = self.config.simulation.cte_noise_std
        cte = self.cte
        if noise_std > 0:
            cte += float(self._rng.normal(0.0, noise_std))
        return {
            "cte": cte,
            "speed": self.speed,
            "steering_angle": self._steering_deg,
        }
