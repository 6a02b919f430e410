"""
PID Controller Module

Error-accumulating PID controller driven by one scalar error sample
(cross track error) per control step.

Error terms:
- p_error: the most recent sample
- i_error: running sum of every sample since the last init (no windup clamp)
- d_error: backward difference between the current and previous sample

The sampling period is assumed constant and implicit, so the integral and
derivative terms are plain sums/differences rather than time-normalized rates.

Scoring:
    Squared samples are accumulated only after a startup grace period of
    `startup` steps, so the transient settling error at the start of an
    episode does not count against the gains being evaluated.
"""

import logging

logger = logging.getLogger(__name__)

# Number of samples per episode excluded from score accumulation
PID_STARTUP = 300


class PIDController:
    """
    Scalar PID controller with episode scoring.

    The controller output is unclamped; callers bound it to their actuator
    range.

    Attributes:
        kp (float): Proportional gain.
        ki (float): Integral gain.
        kd (float): Derivative gain.
        p_error (float): Last error sample.
        i_error (float): Sum of all error samples since init.
        d_error (float): Difference between the last two samples.
        step_count (int): Samples processed since init.
        cumulative_score (float): Sum of squared samples after startup.
        startup (int): Startup grace period in steps.
    """

    def __init__(
        self,
        kp: float = 0.0,
        ki: float = 0.0,
        kd: float = 0.0,
        startup: int = PID_STARTUP,
    ):
        """
        Initialize the controller.

        Args:
            kp: Proportional gain.
            ki: Integral gain.
            kd: Derivative gain.
            startup: Steps excluded from score accumulation (default: 300).
        """
        self.startup = startup
        self.last_control_components: dict | None = None
        self.init(kp, ki, kd)

    def init(self, kp: float, ki: float, kd: float) -> None:
        """Set the gains and clear all error terms and episode counters."""
        self.kp = kp
        self.ki = ki
        self.kd = kd

        self.p_error = 0.0
        self.i_error = 0.0
        self.d_error = 0.0

        self.step_count = 0
        self.cumulative_score = 0.0
        self.last_control_components = None

    @property
    def gains(self) -> tuple[float, float, float]:
        """Current (kp, ki, kd)."""
        return (self.kp, self.ki, self.kd)

    def update_error(self, cte: float) -> None:
        """
        Fold a new error sample into the controller state.

        Args:
            cte: Error observation for this step (e.g. lateral offset from
                the reference path).
        """
        # Derivative uses the previous p_error, so it must be taken first
        self.d_error = cte - self.p_error
        self.p_error = cte
        self.i_error += cte

        self.step_count += 1
        if self.step_count > self.startup:
            self.cumulative_score += cte * cte

        control = self.guess()
        self.last_control_components = {
            "p_term": -self.kp * self.p_error,
            "i_term": -self.ki * self.i_error,
            "d_term": -self.kd * self.d_error,
            "total": control,
        }

        logger.debug(
            "step %d error [%.6f, %.6f, %.6f] = %.6f",
            self.step_count,
            self.p_error,
            self.d_error,
            self.i_error,
            control,
        )

    def guess(self) -> float:
        """
        Compute the control value for the current state.

        Returns:
            -(kp * p_error + kd * d_error + ki * i_error), unclamped.
        """
        return -self.kp * self.p_error - self.kd * self.d_error - self.ki * self.i_error

    def total_error(self) -> float:
        """
        Mean squared error over the post-startup part of the episode.

        Returns:
            0.0 until more than `startup` samples have been seen, otherwise
            cumulative_score / (step_count - startup).
        """
        if self.step_count <= self.startup:
            return 0.0
        return self.cumulative_score / (self.step_count - self.startup)

    def get_control_components(self) -> dict | None:
        """
        Get the P/I/D contributions of the last update for diagnostics.

        Returns:
            Dictionary with p_term, i_term, d_term and total, or None if
            update_error hasn't been called since the last init.
        """
        return self.last_control_components
