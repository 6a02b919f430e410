"""
Twiddle Auto-Tuning Module

This module provides online coordinate-ascent ("Twiddle") tuning of the three
PID gains. The tuner is stepped once per finished episode with that episode's
score (lower is better) and pushes a new set of gains into the controller for
the next episode.

Search outline:
- Gains are refined one at a time in fixed round-robin order (index 0, 1, 2).
- The active gain is first perturbed up by its step size. If the score does
  not improve it is moved down by the same amount. If neither direction helps
  the gain is restored and its step size shrinks by STEP_SHRINK.
- Every accepted improvement grows the step size by STEP_GROWTH and keeps
  moving in the same direction.
- Once a step size drops below MIN_RESOLUTION (or is exactly 0, meaning the
  gain is frozen) the search advances to the next gain.

Gain vector mapping:
    gain_vector[0] -> kp, gain_vector[1] -> kd, gain_vector[2] -> ki

    Refinement order is therefore proportional, derivative, integral: the
    gross proportional response is stabilized first, then damping, then the
    steady-state correction.

Usage:
    from twiddle_pid.controllers import PIDController, TwiddleTuner

    controller = PIDController()
    tuner = TwiddleTuner(controller)

    for episode in range(50):
        run_episode(controller)  # feeds controller.update_error(...)
        tuner.twiddle_step(score_for(controller))
        tuner.twiddle_update()
"""

import logging
from dataclasses import dataclass
from enum import Enum

import numpy as np

from .pid import PIDController

logger = logging.getLogger(__name__)

# Step sizes below this magnitude are considered fully refined
MIN_RESOLUTION = 0.1

# Step size multiplier after an accepted improvement
STEP_GROWTH = 1.1

# Step size multiplier after both directions failed
STEP_SHRINK = 0.9

# Number of tuned gains (kp, kd, ki)
NUM_GAINS = 3


class TwiddlePhase(Enum):
    """Direction of the current trial perturbation of the active gain."""

    UP = "up"
    DOWN = "down"


@dataclass
class TwiddleConfig:
    """
    Tuning constants for the Twiddle search.

    Attributes:
        min_resolution: Step size below which a gain counts as refined.
        step_growth: Step multiplier applied on improvement.
        step_shrink: Step multiplier applied when both directions failed.
    """

    min_resolution: float = MIN_RESOLUTION
    step_growth: float = STEP_GROWTH
    step_shrink: float = STEP_SHRINK

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if self.min_resolution < 0:
            raise ValueError(
                f"min_resolution must be >= 0, got {self.min_resolution}"
            )
        if self.step_growth <= 0:
            raise ValueError(f"step_growth must be > 0, got {self.step_growth}")
        if self.step_shrink <= 0:
            raise ValueError(f"step_shrink must be > 0, got {self.step_shrink}")

    @classmethod
    def from_dict(cls, config: dict) -> "TwiddleConfig":
        """Create config from dictionary."""
        return cls(
            min_resolution=config.get("min_resolution", MIN_RESOLUTION),
            step_growth=config.get("step_growth", STEP_GROWTH),
            step_shrink=config.get("step_shrink", STEP_SHRINK),
        )

    def to_dict(self) -> dict:
        """Convert config to dictionary."""
        return {
            "min_resolution": self.min_resolution,
            "step_growth": self.step_growth,
            "step_shrink": self.step_shrink,
        }


def _as_gain_array(values, name: str) -> np.ndarray:
    """
    Convert a 3-element sequence to a float array.

    Raises:
        ValueError: If values does not hold exactly 3 elements.
    """
    arr = np.array(values, dtype=float).reshape(-1)
    if arr.shape != (NUM_GAINS,):
        raise ValueError(
            f"{name} must have exactly {NUM_GAINS} values, got {arr.size}"
        )
    return arr


class TwiddleTuner:
    """
    Coordinate-ascent tuner for a single PIDController.

    The tuner owns the authoritative gain vector and step vector. It holds a
    reference to the controller it tunes and rewrites that controller's gains
    (and resets its episode state) on every twiddle_update().

    Note that best_score is shared across all three gains: a gain is judged
    against the best score seen while any earlier gain was being refined.

    Attributes:
        controller (PIDController): Controller whose gains are tuned.
        config (TwiddleConfig): Tuning constants.
        gain_vector (ndarray): Gains in search order [kp, kd, ki].
        step_vector (ndarray): Per-gain perturbation sizes.
        active_index (int): Gain currently being refined.
        phase (TwiddlePhase): Direction of the current trial.
        best_score (float | None): Lowest episode score seen, None before
            the first trial.
    """

    def __init__(
        self,
        controller: PIDController,
        config: TwiddleConfig | None = None,
    ):
        """
        Initialize the tuner and push zero gains into the controller.

        Args:
            controller: Controller to tune.
            config: Tuning constants (defaults used if None).
        """
        self.controller = controller
        self.config = config or TwiddleConfig()
        self.twiddle_init()

    def twiddle_init(self) -> None:
        """Restart the search from zero gains and unit step sizes."""
        self.gain_vector = np.zeros(NUM_GAINS)
        self.step_vector = np.ones(NUM_GAINS)
        self.active_index = 0
        self.phase = TwiddlePhase.UP
        self.best_score: float | None = None
        self.twiddle_update()

    def load_preset(self, gains, steps) -> None:
        """
        Seed the search with hand-tuned gain and step vectors.

        Args:
            gains: Gain vector in search order [kp, kd, ki].
            steps: Step sizes for each gain.

        Raises:
            ValueError: If either vector doesn't have exactly 3 values.
        """
        self.gain_vector = _as_gain_array(gains, "gains")
        self.step_vector = _as_gain_array(steps, "steps")
        self.twiddle_update()

    @property
    def gains(self) -> tuple[float, float, float]:
        """(kp, ki, kd) as pushed to the controller."""
        p = self.gain_vector
        return (float(p[0]), float(p[2]), float(p[1]))

    def twiddle_update(self) -> None:
        """
        Apply the gain vector to the controller and start a clean episode.

        Resets the controller's step count, cumulative score and error terms.
        """
        logger.info(
            "Twiddle update: p=%s dp=%s phase=%s index=%d",
            np.array2string(self.gain_vector, precision=6),
            np.array2string(self.step_vector, precision=6),
            self.phase.name,
            self.active_index,
        )
        kp, ki, kd = self.gains
        self.controller.init(kp, ki, kd)

    def twiddle_step(self, episode_score: float) -> None:
        """
        Advance the search after a finished episode.

        Must be called before the controller is reset, since an improvement
        only counts if the episode ran past the startup period.

        Args:
            episode_score: Score of the episode just finished (lower is
                better).
        """
        i = self.active_index
        logger.info(
            "Twiddle step score=%.6f n=%d best=%s",
            episode_score,
            self.controller.step_count,
            self.best_score,
        )

        advance = self.step_vector[i] == 0
        if not advance:
            if self.best_score is None:
                # First trial: the score belongs to the starting gains
                self.best_score = episode_score
                self.phase = TwiddlePhase.UP
                self.gain_vector[i] += self.step_vector[i]
            elif (
                episode_score < self.best_score
                and self.controller.step_count > self.controller.startup
            ):
                logger.info("New best score: %.6f", episode_score)
                self.best_score = episode_score
                self.step_vector[i] *= self.config.step_growth
                advance = abs(self.step_vector[i]) < self.config.min_resolution
                if not advance:
                    sign = 1.0 if self.phase is TwiddlePhase.UP else -1.0
                    self.gain_vector[i] += sign * self.step_vector[i]
            elif self.phase is TwiddlePhase.UP:
                # Up didn't help, try the other side
                self.gain_vector[i] -= 2 * self.step_vector[i]
                self.phase = TwiddlePhase.DOWN
            else:
                # Neither direction helped: restore and refine the step
                self.gain_vector[i] += self.step_vector[i]
                self.step_vector[i] *= self.config.step_shrink
                advance = abs(self.step_vector[i]) < self.config.min_resolution
                if not advance:
                    self.phase = TwiddlePhase.UP
                    self.gain_vector[i] += self.step_vector[i]

        if advance:
            self.active_index = (i + 1) % NUM_GAINS
            self.gain_vector[self.active_index] += self.step_vector[self.active_index]
            self.phase = TwiddlePhase.UP
            logger.info("Advancing to gain index %d", self.active_index)

    def state_dict(self) -> dict:
        """Snapshot of the search state as plain Python values."""
        return {
            "gain_vector": self.gain_vector.tolist(),
            "step_vector": self.step_vector.tolist(),
            "active_index": self.active_index,
            "phase": self.phase.value,
            "best_score": self.best_score,
        }
