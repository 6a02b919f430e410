"""
Twiddle Tuning Runner for Lane Keeping

This module drives a DrivingSession against the simulated lane-keeping
environment for a fixed number of episodes, optionally tuning the steering
and/or throttle gains with Twiddle, and reports the resulting gains.

Usage:
    # Run with the default presets, no tuning
    python -m twiddle_pid.tune --episodes 5

    # Tune steering gains for 100 episodes and write a report
    twiddle-tune --tune-steering --episodes 100 --output reports/steering.json

    # Load settings from a YAML file
    twiddle-tune --config configs/tune.yaml

Environment Variables:
    TWIDDLE_SEED, TWIDDLE_STARTUP_STEPS, TWIDDLE_MAX_STEPS, TWIDDLE_MAX_CTE,
    TWIDDLE_MIN_SPEED, TWIDDLE_TUNE_STEERING, TWIDDLE_TUNE_THROTTLE
"""

import argparse
import json
import logging
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from twiddle_pid.env import EnvConfig, LaneKeepingEnv
from twiddle_pid.session import DrivingSession, SessionConfig
from twiddle_pid.utils import (
    compute_tuning_summary,
    format_summary_report,
    json_serializer,
    load_config,
)

logger = logging.getLogger(__name__)


def _validate_path(path: Path) -> None:
    """
    Validate that a path doesn't contain path traversal sequences.

    Args:
        path: Path to validate.

    Raises:
        ValueError: If path contains dangerous sequences.
    """
    path_str = str(path)

    if ".." in path.parts:
        raise ValueError(
            f"Path contains path traversal sequence '..': {path}. "
            "Use absolute paths or paths without parent directory references."
        )

    # Null bytes can truncate the path at the OS level
    if "\x00" in path_str:
        raise ValueError(f"Path contains null byte: {path}")


@dataclass
class TuningReport:
    """
    Result of a tuning run.

    Attributes:
        steering_gains: Final (kp, ki, kd) of the steering controller.
        throttle_gains: Final (kp, ki, kd) of the throttle controller.
        steering_state: Final Twiddle search state of the steering tuner.
        throttle_state: Final Twiddle search state of the throttle tuner.
        summary: Aggregated episode metrics.
        timestamp: When the run completed (ISO 8601, UTC).
        config: Session configuration used.
    """

    steering_gains: tuple[float, float, float]
    throttle_gains: tuple[float, float, float]
    steering_state: dict
    throttle_state: dict
    summary: dict
    timestamp: str
    config: dict

    def to_dict(self) -> dict:
        """Convert report to dictionary for serialization."""
        return {
            "steering_gains": list(self.steering_gains),
            "throttle_gains": list(self.throttle_gains),
            "steering_state": self.steering_state,
            "throttle_state": self.throttle_state,
            "summary": self.summary,
            "timestamp": self.timestamp,
            "config": self.config,
        }

    def save(self, path: str | Path) -> Path:
        """
        Save the report to a JSON file.

        Args:
            path: Path to save file.

        Returns:
            Path to saved file.

        Raises:
            ValueError: If path contains path traversal sequences.
        """
        path = Path(path)
        _validate_path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.to_dict(), f, indent=2, default=json_serializer)
        return path


def run_tuning(
    session: DrivingSession,
    env: LaneKeepingEnv,
    episodes: int,
) -> TuningReport:
    """
    Drive the session against the environment for a number of episodes.

    Each episode lasts until the session's termination policy fires; the
    environment is reset whenever the session asks for it.

    Args:
        session: Driving session (controllers and tuners).
        env: Environment producing telemetry.
        episodes: Number of episodes to complete.

    Returns:
        TuningReport with the final gains and per-episode metrics.

    Raises:
        ValueError: If episodes < 1.
    """
    if episodes < 1:
        raise ValueError(f"episodes must be >= 1, got {episodes}")

    completed = 0
    telemetry = env.reset()
    while completed < episodes:
        step = session.on_telemetry(telemetry)
        if step.reset:
            completed += 1
            telemetry = env.reset()
        else:
            telemetry = env.step(step.action)

    summary = compute_tuning_summary(session.history[-completed:])
    logger.info("\n%s", format_summary_report(summary))

    return TuningReport(
        steering_gains=session.steering.gains,
        throttle_gains=session.throttle.gains,
        steering_state=session.steering_tuner.state_dict(),
        throttle_state=session.throttle_tuner.state_dict(),
        summary=summary.to_dict(),
        timestamp=datetime.now(timezone.utc).isoformat(),
        config=session.config.to_dict(),
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Run and optionally Twiddle-tune PID lane keeping",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Evaluate the preset gains
  twiddle-tune --episodes 5

  # Tune steering and save a report
  twiddle-tune --tune-steering --episodes 100 --output reports/steering.json
        """,
    )

    parser.add_argument(
        "--config",
        type=str,
        help="Path to YAML/JSON configuration file",
    )

    parser.add_argument(
        "--episodes",
        type=int,
        default=10,
        help="Number of episodes to run (default: 10)",
    )

    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Random seed for the environment (overrides config)",
    )

    parser.add_argument(
        "--tune-steering",
        action="store_true",
        help="Twiddle the steering gains between episodes",
    )

    parser.add_argument(
        "--tune-throttle",
        action="store_true",
        help="Twiddle the throttle gains between episodes",
    )

    parser.add_argument(
        "--max-steps",
        type=int,
        default=None,
        help="Steps per trial before an episode ends (overrides config)",
    )

    parser.add_argument(
        "--output",
        type=str,
        default=None,
        help="Path for a JSON tuning report",
    )

    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Logging level (default: INFO)",
    )

    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> dict:
    """
    Merge CLI arguments over the loaded configuration.

    Args:
        args: Parsed command-line arguments.

    Returns:
        Configuration dictionary.
    """
    config = load_config(args.config)

    if args.seed is not None:
        config["seed"] = args.seed
    if args.max_steps is not None:
        config["episode"]["max_steps"] = args.max_steps
    if args.tune_steering:
        config["steering"]["tune"] = True
    if args.tune_throttle:
        config["throttle"]["tune"] = True

    return config


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    try:
        config = build_config(args)
    except (FileNotFoundError, PermissionError, ValueError) as e:
        logger.error("Failed to load configuration: %s", e)
        return 1

    session = DrivingSession(SessionConfig.from_dict(config))
    env = LaneKeepingEnv(EnvConfig.from_dict(config))

    try:
        report = run_tuning(session, env, args.episodes)
    except ValueError as e:
        logger.error("Tuning failed: %s", e)
        return 1

    kp, ki, kd = report.steering_gains
    logger.info("Final steering gains: kp=%.6g ki=%.6g kd=%.6g", kp, ki, kd)
    kp, ki, kd = report.throttle_gains
    logger.info("Final throttle gains: kp=%.6g ki=%.6g kd=%.6g", kp, ki, kd)

    if args.output:
        try:
            path = report.save(args.output)
        except (OSError, ValueError) as e:
            logger.error("Failed to save report: %s", e)
            return 1
        logger.info("Saved tuning report to %s", path)

    return 0


if __name__ == "__main__":
    sys.exit(main())
