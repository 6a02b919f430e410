"""
Twiddle PID Utilities Package

This package provides shared utilities for the twiddle-pid project:
- Configuration loading (YAML/JSON with environment variable overrides)
- Episode termination policy and scoring
- Tuning metrics and reports

Design Philosophy:
- Utilities are stateless where possible
- Configuration supports both file-based and environment variable sources
- Defaults carry the hand-tuned steering and throttle presets
"""

import datetime
import json
import logging
import os
from pathlib import Path

import numpy as np
import yaml
from dotenv import load_dotenv

from .metrics import (
    TERMINATION_REASONS,
    EpisodeMetrics,
    TerminationPolicy,
    TuningSummary,
    compute_episode_score,
    compute_tuning_summary,
    format_summary_report,
)

__all__ = [
    "load_config",
    "get_default_config",
    "json_serializer",
    # Metrics
    "TERMINATION_REASONS",
    "EpisodeMetrics",
    "TerminationPolicy",
    "TuningSummary",
    "compute_episode_score",
    "compute_tuning_summary",
    "format_summary_report",
]

logger = logging.getLogger(__name__)


def get_default_config() -> dict:
    """
    Get default configuration values.

    Returns sensible defaults for all configuration parameters.
    These defaults are used when no configuration file is provided
    or when specific values are missing.

    Gain and step vectors are in search order [kp, kd, ki].

    Returns:
        Dictionary with default configuration values.
    """
    return {
        "seed": 42,
        "episode": {
            "startup": 300,  # steps excluded from scoring and termination
            "max_cte": 3.5,  # off-track threshold
            "min_speed": 3.0,  # too-slow threshold
            "max_steps": 10000,  # steps per trial
        },
        "twiddle": {
            "min_resolution": 0.1,
            "step_growth": 1.1,
            "step_shrink": 0.9,
        },
        "steering": {
            "tune": False,
            "gains": [0.158161, 1.69977, 0.000489072],
            "steps": [2.45227e-05, 2.68442e-05, 2.23031e-05],
        },
        "throttle": {
            "tune": False,
            "gains": [-0.353402, 3.80884, -0.000491255],
            "steps": [6.25688e-08, 2.601e-07, 6.78076e-08],
        },
        "limits": {
            "max_steering": 1.0,
            "throttle_offset": -0.2,
        },
        "simulation": {
            "dt": 0.05,  # seconds per telemetry sample
            "initial_speed": 10.0,
            "cte_noise_std": 0.0,
        },
    }


def load_config(
    config_path: str | Path | None = None,
    load_env: bool = True,
) -> dict:
    """
    Load configuration from file with environment variable overrides.

    Configuration loading follows this priority (highest to lowest):
    1. Environment variables (from .env file or system)
    2. Config file (YAML or JSON)
    3. Default values

    Environment variables override config file values using a naming convention:
    - TWIDDLE_SEED -> config["seed"]
    - TWIDDLE_STARTUP_STEPS -> config["episode"]["startup"]
    - TWIDDLE_MAX_STEPS -> config["episode"]["max_steps"]
    - TWIDDLE_MAX_CTE -> config["episode"]["max_cte"]
    - TWIDDLE_MIN_SPEED -> config["episode"]["min_speed"]
    - TWIDDLE_TUNE_STEERING -> config["steering"]["tune"]
    - TWIDDLE_TUNE_THROTTLE -> config["throttle"]["tune"]

    Args:
        config_path: Path to YAML or JSON configuration file.
                    If None, only defaults and env vars are used.
        load_env: Whether to load .env file and apply env var overrides.

    Returns:
        Merged configuration dictionary.

    Raises:
        FileNotFoundError: If config_path is specified but file doesn't exist.
        PermissionError: If config file cannot be read.
        ValueError: If config file format is unsupported or malformed.
    """
    # Start with defaults
    config = get_default_config()

    # Load from file if provided
    if config_path is not None:
        config_path = Path(config_path)

        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        if not config_path.is_file():
            raise ValueError(f"Configuration path is not a file: {config_path}")

        if config_path.suffix not in (".yaml", ".yml", ".json"):
            raise ValueError(f"Unsupported config format: {config_path.suffix}")

        try:
            with open(config_path) as f:
                if config_path.suffix == ".json":
                    file_config = json.load(f)
                else:
                    file_config = yaml.safe_load(f)
        except PermissionError as e:
            raise PermissionError(
                f"Cannot read configuration file: {config_path}"
            ) from e
        except (yaml.YAMLError, json.JSONDecodeError) as e:
            raise ValueError(f"Malformed configuration file: {config_path}") from e

        if file_config:
            if not isinstance(file_config, dict):
                raise ValueError(
                    f"Configuration file must contain a mapping: {config_path}"
                )
            config = _deep_merge(config, file_config)

    # Apply environment variable overrides
    if load_env:
        load_dotenv()
        config = _apply_env_overrides(config)

    return config


def _deep_merge(base: dict, override: dict) -> dict:
    """
    Deep merge two dictionaries.

    Args:
        base: Base dictionary.
        override: Override dictionary (values take precedence).

    Returns:
        Merged dictionary.
    """
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _parse_bool(value: str) -> bool:
    """Parse a boolean env var value ('1', 'true', 'yes', 'on' and their negations)."""
    lowered = value.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"Not a boolean: {value}")


def json_serializer(obj):
    """
    Custom JSON serializer for objects not serializable by default json.dump.

    Handles common types found in tuning reports:
    - numpy arrays and scalars -> lists / Python numbers
    - datetime objects -> ISO format strings
    - Path objects -> strings

    Args:
        obj: Object to serialize.

    Returns:
        JSON-serializable representation.

    Raises:
        TypeError: If object type is not supported.
    """
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    if isinstance(obj, np.generic):
        return obj.item()
    if isinstance(obj, (datetime.datetime, datetime.date)):
        return obj.isoformat()
    if isinstance(obj, Path):
        return str(obj)
    raise TypeError("Object is not JSON serializable")


def _apply_env_overrides(config: dict) -> dict:
    """
    Apply environment variable overrides to configuration.

    Args:
        config: Configuration dictionary.

    Returns:
        Configuration with env var overrides applied.
    """
    # Simple scalar overrides
    env_mappings = {
        "TWIDDLE_SEED": ("seed", int),
    }

    for env_var, (config_key, type_fn) in env_mappings.items():
        value = os.getenv(env_var)
        if value is not None:
            try:
                config[config_key] = type_fn(value)
            except ValueError:
                logger.warning(
                    "Invalid value for %s: '%s', using default", env_var, value
                )

    # Nested overrides
    nested_env_mappings = {
        "TWIDDLE_STARTUP_STEPS": ("episode", "startup", int),
        "TWIDDLE_MAX_STEPS": ("episode", "max_steps", int),
        "TWIDDLE_MAX_CTE": ("episode", "max_cte", float),
        "TWIDDLE_MIN_SPEED": ("episode", "min_speed", float),
        "TWIDDLE_TUNE_STEERING": ("steering", "tune", _parse_bool),
        "TWIDDLE_TUNE_THROTTLE": ("throttle", "tune", _parse_bool),
    }

    for env_var, (section, config_key, type_fn) in nested_env_mappings.items():
        value = os.getenv(env_var)
        if value is not None:
            try:
                config.setdefault(section, {})[config_key] = type_fn(value)
            except ValueError:
                logger.warning(
                    "Invalid value for %s: '%s', using default", env_var, value
                )

    return config
