"""
Lane-Keeping Environment Package

This package provides a simulated driving environment that produces one
telemetry sample per control step, standing in for an external simulator.

Key Assumptions:
- Constant sample period (the PID controller assumes it implicitly)
- Kinematic vehicle (no tire slip or actuator lag)
- Perfect telemetry unless cte noise is configured

Telemetry:
    cte: Cross track error (m, + is right of the path)
    speed: Forward speed (m/s)
    steering_angle: Applied steering angle (deg)
"""

from .config import EnvConfig, RoadParams, SimulationParams, VehicleParams
from .lane_env import LaneKeepingEnv

__all__ = [
    "LaneKeepingEnv",
    "EnvConfig",
    "VehicleParams",
    "RoadParams",
    "SimulationParams",
]
