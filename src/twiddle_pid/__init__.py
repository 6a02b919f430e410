"""
Twiddle PID Package

A PID controller for scalar tracking error paired with online Twiddle
(coordinate-ascent) tuning of its gains between control episodes.

Subpackages:
- controllers: PID controller, Twiddle tuner and actuator limits
- env: Simulated lane-keeping environment
- utils: Configuration loading, episode scoring and metrics
- session: Steering/throttle control loop over telemetry samples
- tune: Command-line tuning runner
"""

import importlib.metadata

try:
    # Retrieve the version from installed package metadata
    __version__ = importlib.metadata.version("twiddle-pid")
except importlib.metadata.PackageNotFoundError:
    # Fallback for when the package is not installed
    __version__ = "0.0.0-dev"

from twiddle_pid.controllers import (
    ControlLimits,
    PIDController,
    TwiddleConfig,
    TwiddlePhase,
    TwiddleTuner,
)
from twiddle_pid.env import EnvConfig, LaneKeepingEnv
from twiddle_pid.utils import (
    EpisodeMetrics,
    TerminationPolicy,
    compute_episode_score,
    get_default_config,
    load_config,
)

__all__ = [
    "PIDController",
    "TwiddleTuner",
    "TwiddleConfig",
    "TwiddlePhase",
    "ControlLimits",
    "LaneKeepingEnv",
    "EnvConfig",
    "load_config",
    "get_default_config",
    # Metrics
    "EpisodeMetrics",
    "TerminationPolicy",
    "compute_episode_score",
]
