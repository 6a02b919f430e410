"""
Driving Session Module

Runs the per-telemetry control loop for a vehicle with two independent PID
channels, without any transport:
- Steering controller, clamped to [-1, 1]
- Throttle controller, clamped and shifted onto the throttle range
- Episode termination and scoring
- Optional Twiddle tuning of either channel between episodes

Both controllers are fed the same cross track error. At the end of an
episode the steering controller's mean squared error is combined with the
episode length and peak speed into a single score, handed to every tuner
whose channel is being tuned, and both controllers start a clean episode.

Usage:
    from twiddle_pid.session import DrivingSession, SessionConfig
    from twiddle_pid.utils import load_config

    session = DrivingSession(SessionConfig.from_dict(load_config()))
    step = session.on_telemetry({"cte": "0.76", "speed": "28.1"})
    send(step.action)
    if step.reset:
        send_reset()
"""

import logging
from dataclasses import dataclass, field

from twiddle_pid.controllers import (
    ControlLimits,
    PIDController,
    TwiddleConfig,
    TwiddleTuner,
)
from twiddle_pid.utils.metrics import (
    EpisodeMetrics,
    TerminationPolicy,
    compute_episode_score,
)

logger = logging.getLogger(__name__)

# Telemetry fields required on every sample
TELEMETRY_KEYS = ("cte", "speed")


@dataclass
class ControllerSettings:
    """
    Settings for one PID channel.

    Attributes:
        tune: Whether Twiddle steps this channel's gains between episodes.
        gains: Preset gain vector in search order [kp, kd, ki], or None to
            start the search from zero.
        steps: Preset step vector, or None for unit steps.
    """

    tune: bool = False
    gains: list[float] | None = None
    steps: list[float] | None = None

    @classmethod
    def from_dict(cls, config: dict) -> "ControllerSettings":
        """Create settings from dictionary."""
        return cls(
            tune=bool(config.get("tune", False)),
            gains=config.get("gains"),
            steps=config.get("steps"),
        )

    def to_dict(self) -> dict:
        """Convert settings to dictionary."""
        return {
            "tune": self.tune,
            "gains": None if self.gains is None else list(self.gains),
            "steps": None if self.steps is None else list(self.steps),
        }


@dataclass
class SessionConfig:
    """
    Configuration for a driving session.

    Attributes:
        steering: Steering channel settings.
        throttle: Throttle channel settings.
        policy: Episode termination thresholds.
        limits: Actuator limits.
        twiddle: Tuning constants shared by both tuners.
    """

    steering: ControllerSettings = field(default_factory=ControllerSettings)
    throttle: ControllerSettings = field(default_factory=ControllerSettings)
    policy: TerminationPolicy = field(default_factory=TerminationPolicy)
    limits: ControlLimits = field(default_factory=ControlLimits)
    twiddle: TwiddleConfig = field(default_factory=TwiddleConfig)

    @classmethod
    def from_dict(cls, config: dict) -> "SessionConfig":
        """
        Create SessionConfig from a dictionary (e.g., from load_config).

        Args:
            config: Configuration dictionary.

        Returns:
            SessionConfig instance.
        """
        limits_dict = config.get("limits", {})
        return cls(
            steering=ControllerSettings.from_dict(config.get("steering", {})),
            throttle=ControllerSettings.from_dict(config.get("throttle", {})),
            policy=TerminationPolicy.from_dict(config.get("episode", {})),
            limits=ControlLimits(
                max_steering=limits_dict.get("max_steering", 1.0),
                throttle_offset=limits_dict.get("throttle_offset", -0.2),
            ),
            twiddle=TwiddleConfig.from_dict(config.get("twiddle", {})),
        )

    def to_dict(self) -> dict:
        """Convert configuration to dictionary."""
        return {
            "steering": self.steering.to_dict(),
            "throttle": self.throttle.to_dict(),
            "episode": self.policy.to_dict(),
            "limits": self.limits.to_dict(),
            "twiddle": self.twiddle.to_dict(),
        }


@dataclass
class SessionStep:
    """
    Result of handling one telemetry sample.

    Attributes:
        action: Clamped steering_angle and throttle to send.
        reset: Whether the episode ended and the vehicle should be reset.
        metrics: Metrics of the finished episode when reset is True.
    """

    action: dict
    reset: bool = False
    metrics: EpisodeMetrics | None = None


def _parse_telemetry(telemetry: dict) -> tuple[float, float]:
    """
    Extract cte and speed from a telemetry sample.

    Simulators commonly send numbers as strings, so both are accepted.

    Raises:
        KeyError: If a required field is missing.
        ValueError: If a field is not numeric.
    """
    for key in TELEMETRY_KEYS:
        if key not in telemetry:
            raise KeyError(f"Telemetry missing required key: '{key}'")
    try:
        cte = float(telemetry["cte"])
        speed = float(telemetry["speed"])
    except (TypeError, ValueError) as e:
        raise ValueError(f"Telemetry values must be numeric: {e}") from e
    return cte, speed


class DrivingSession:
    """
    Steering and throttle control for one vehicle across many episodes.

    Attributes:
        config: Session configuration.
        steering: Steering PID controller.
        throttle: Throttle PID controller.
        steering_tuner: Twiddle tuner owning the steering gains.
        throttle_tuner: Twiddle tuner owning the throttle gains.
        max_speed: Highest speed seen in the current episode.
        history: Metrics of every completed episode.
    """

    def __init__(self, config: SessionConfig | dict | None = None):
        """
        Initialize both channels and apply any gain presets.

        Args:
            config: SessionConfig, configuration dictionary, or None for
                defaults.
        """
        if config is None:
            self.config = SessionConfig()
        elif isinstance(config, dict):
            self.config = SessionConfig.from_dict(config)
        else:
            self.config = config

        startup = self.config.policy.startup
        self.steering = PIDController(startup=startup)
        self.throttle = PIDController(startup=startup)
        self.steering_tuner = self._create_tuner(self.steering, self.config.steering)
        self.throttle_tuner = self._create_tuner(self.throttle, self.config.throttle)

        self.max_speed = 0.0
        self.history: list[EpisodeMetrics] = []

    def _create_tuner(
        self, controller: PIDController, settings: ControllerSettings
    ) -> TwiddleTuner:
        """Create a tuner for a channel and seed it with the preset vectors."""
        tuner = TwiddleTuner(controller, config=self.config.twiddle)
        if settings.gains is not None or settings.steps is not None:
            gains = settings.gains if settings.gains is not None else tuner.gain_vector
            steps = settings.steps if settings.steps is not None else tuner.step_vector
            tuner.load_preset(gains, steps)
        return tuner

    @property
    def episode(self) -> int:
        """Zero-based index of the episode in progress."""
        return len(self.history)

    def on_telemetry(self, telemetry: dict) -> SessionStep:
        """
        Handle one telemetry sample.

        Args:
            telemetry: Dictionary with at least cte and speed (numbers or
                numeric strings).

        Returns:
            SessionStep with the action to apply and the reset flag.

        Raises:
            KeyError: If telemetry is missing cte or speed.
            ValueError: If cte or speed are not numeric.
        """
        cte, speed = _parse_telemetry(telemetry)
        self.max_speed = max(speed, self.max_speed)

        # Termination is judged on the step count before this sample
        n = self.steering.step_count

        self.steering.update_error(cte)
        self.throttle.update_error(cte)

        limits = self.config.limits
        action = {
            "steering_angle": limits.clip_steering(self.steering.guess()),
            "throttle": limits.map_throttle(self.throttle.guess()),
        }

        reason = self.config.policy.check(n, cte, speed)
        if not reason:
            return SessionStep(action=action)

        metrics = self._end_episode(n, reason)
        return SessionStep(action=action, reset=True, metrics=metrics)

    def _end_episode(self, n: int, reason: str) -> EpisodeMetrics:
        """Score the finished episode, step the tuners and start a new one."""
        total_error = self.steering.total_error()
        score = compute_episode_score(total_error, n, self.max_speed)

        logger.info(
            "Episode %d ended (%s) at n=%d max_speed=%.2f error=%.6f score=%.4f",
            self.episode,
            reason,
            n,
            self.max_speed,
            total_error,
            score,
        )

        metrics = EpisodeMetrics(
            episode=self.episode,
            steps=n,
            mean_squared_error=total_error,
            max_speed=self.max_speed,
            score=score,
            termination_reason=reason,
            steering_gains=self.steering.gains,
            throttle_gains=self.throttle.gains,
        )

        if self.config.steering.tune:
            self.steering_tuner.twiddle_step(score)
        if self.config.throttle.tune:
            self.throttle_tuner.twiddle_step(score)

        logger.info("Steering")
        self.steering_tuner.twiddle_update()
        logger.info("Throttle")
        self.throttle_tuner.twiddle_update()

        self.max_speed = 0.0
        self.history.append(metrics)
        return metrics
