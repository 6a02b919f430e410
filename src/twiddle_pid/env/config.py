"""
Environment Configuration Module

Defines vehicle parameters, road geometry and simulation settings for the
lane-keeping environment.
"""

from dataclasses import dataclass, field


@dataclass
class VehicleParams:
    """Kinematic parameters of the simulated vehicle."""

    wheelbase: float = 2.67  # m, front to rear axle
    max_steer_deg: float = 25.0  # deg, steering angle at command 1.0
    max_accel: float = 10.0  # m/s^2 at throttle 1.0
    drag: float = 0.1  # 1/s, linear speed drag
    initial_speed: float = 10.0  # m/s


@dataclass
class RoadParams:
    """Geometry of the reference path."""

    curvature: float = 0.01  # 1/m, peak path curvature
    curvature_period: float = 400.0  # m, arc length of one curvature cycle
    initial_cte_range: float = 0.5  # m, initial offset drawn from [-r, r]


@dataclass
class SimulationParams:
    """Simulation parameters."""

    dt: float = 0.05  # seconds per telemetry sample
    cte_noise_std: float = 0.0  # m, Gaussian noise on reported cte


@dataclass
class EnvConfig:
    """Complete environment configuration."""

    seed: int = 42
    vehicle: VehicleParams = field(default_factory=VehicleParams)
    road: RoadParams = field(default_factory=RoadParams)
    simulation: SimulationParams = field(default_factory=SimulationParams)

    @classmethod
    def from_dict(cls, config_dict: dict) -> "EnvConfig":
        """
        Create EnvConfig from a dictionary (e.g., from load_config).

        Flat simulation keys from the top-level config ("simulation" section
        with dt, initial_speed and cte_noise_std) are accepted alongside the
        nested vehicle/road sections.

        Args:
            config_dict: Configuration dictionary.

        Returns:
            EnvConfig instance.
        """
        vehicle_dict = config_dict.get("vehicle", {}).copy()
        road_dict = config_dict.get("road", {})
        sim_dict = config_dict.get("simulation", {})

        # initial_speed lives under "simulation" in the top-level config
        if "initial_speed" in sim_dict:
            vehicle_dict.setdefault("initial_speed", sim_dict["initial_speed"])

        return cls(
            seed=config_dict.get("seed", 42),
            vehicle=VehicleParams(
                wheelbase=vehicle_dict.get("wheelbase", 2.67),
                max_steer_deg=vehicle_dict.get("max_steer_deg", 25.0),
                max_accel=vehicle_dict.get("max_accel", 10.0),
                drag=vehicle_dict.get("drag", 0.1),
                initial_speed=vehicle_dict.get("initial_speed", 10.0),
            ),
            road=RoadParams(
                curvature=road_dict.get("curvature", 0.01),
                curvature_period=road_dict.get("curvature_period", 400.0),
                initial_cte_range=road_dict.get("initial_cte_range", 0.5),
            ),
            simulation=SimulationParams(
                dt=sim_dict.get("dt", 0.05),
                cte_noise_std=sim_dict.get("cte_noise_std", 0.0),
            ),
        )

    def to_dict(self) -> dict:
        """Convert configuration to dictionary."""
        return {
            "seed": self.seed,
            "vehicle": {
                "wheelbase": self.vehicle.wheelbase,
                "max_steer_deg": self.vehicle.max_steer_deg,
                "max_accel": self.vehicle.max_accel,
                "drag": self.vehicle.drag,
                "initial_speed": self.vehicle.initial_speed,
            },
            "road": {
                "curvature": self.road.curvature,
                "curvature_period": self.road.curvature_period,
                "initial_cte_range": self.road.initial_cte_range,
            },
            "simulation": {
                "dt": self.simulation.dt,
                "cte_noise_std": self.simulation.cte_noise_std,
            },
        }
