"""
Episode Metrics for Twiddle Tuning

This module provides the episode-level policy and scoring used between the
controller and the tuner:
- Termination policy (off track, too slow, step limit)
- Episode score computation (lower is better)
- Per-episode metrics records

Design Philosophy:
- Stateless functions and plain dataclasses
- No episode ends during the startup grace period
- Score rewards long, fast and accurate runs
"""

import logging
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

# Termination reasons, in priority order
TERMINATION_REASONS = ("off_track", "too_slow", "max_steps")


@dataclass
class TerminationPolicy:
    """
    Episode termination thresholds.

    Attributes:
        startup: Steps during which an episode can never end.
        max_cte: Absolute error beyond which the vehicle is off track.
        min_speed: Speed below which the vehicle is too slow.
        max_steps: Step count beyond which a trial is complete.
    """

    startup: int = 300
    max_cte: float = 3.5
    min_speed: float = 3.0
    max_steps: int = 10000

    def check(self, step_count: int, cte: float, speed: float) -> str:
        """
        Decide whether the current episode should end.

        Args:
            step_count: Steps completed in the episode so far.
            cte: Current error sample.
            speed: Current speed.

        Returns:
            Termination reason ('off_track', 'too_slow', 'max_steps'), or an
            empty string if the episode continues.
        """
        if step_count <= self.startup:
            return ""
        off_track, too_slow, max_steps = TERMINATION_REASONS
        if abs(cte) > self.max_cte:
            return off_track
        if speed < self.min_speed:
            return too_slow
        if step_count > self.max_steps:
            return max_steps
        return ""

    @classmethod
    def from_dict(cls, config: dict) -> "TerminationPolicy":
        """Create policy from dictionary."""
        return cls(
            startup=config.get("startup", 300),
            max_cte=config.get("max_cte", 3.5),
            min_speed=config.get("min_speed", 3.0),
            max_steps=config.get("max_steps", 10000),
        )

    def to_dict(self) -> dict:
        """Convert policy to dictionary."""
        return {
            "startup": self.startup,
            "max_cte": self.max_cte,
            "min_speed": self.min_speed,
            "max_steps": self.max_steps,
        }


@dataclass
class EpisodeMetrics:
    """
    Computed metrics for a single episode.

    Attributes:
        episode: Zero-based episode index within the session.
        steps: Steps completed when the episode ended.
        mean_squared_error: Post-startup mean squared error.
        max_speed: Highest speed seen during the episode.
        score: Episode score handed to the tuners.
        termination_reason: Why the episode ended.
        steering_gains: (kp, ki, kd) of the steering controller.
        throttle_gains: (kp, ki, kd) of the throttle controller.
    """

    episode: int = 0
    steps: int = 0
    mean_squared_error: float = 0.0
    max_speed: float = 0.0
    score: float = 0.0
    termination_reason: str = ""
    steering_gains: tuple[float, float, float] = (0.0, 0.0, 0.0)
    throttle_gains: tuple[float, float, float] = (0.0, 0.0, 0.0)

    def to_dict(self) -> dict:
        """Convert metrics to dictionary."""
        return {
            "episode": self.episode,
            "steps": self.steps,
            "mean_squared_error": self.mean_squared_error,
            "max_speed": self.max_speed,
            "score": self.score,
            "termination_reason": self.termination_reason,
            "steering_gains": list(self.steering_gains),
            "throttle_gains": list(self.throttle_gains),
        }


@dataclass
class TuningSummary:
    """
    Summary statistics over a run of episodes.

    Attributes:
        total_episodes: Number of completed episodes.
        best_score: Lowest score seen (None if no episodes).
        best_episode_idx: Index of the lowest-scoring episode.
        mean_steps: Average episode length.
        termination_counts: Episodes per termination reason.
        episode_metrics: Individual episode records.
    """

    total_episodes: int = 0
    best_score: float | None = None
    best_episode_idx: int = 0
    mean_steps: float = 0.0
    termination_counts: dict = field(default_factory=dict)
    episode_metrics: list[EpisodeMetrics] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Convert summary to dictionary."""
        return {
            "total_episodes": self.total_episodes,
            "best_score": self.best_score,
            "best_episode_idx": self.best_episode_idx,
            "mean_steps": self.mean_steps,
            "termination_counts": dict(self.termination_counts),
            "episode_metrics": [m.to_dict() for m in self.episode_metrics],
        }


def compute_episode_score(total_error: float, steps: int, max_speed: float) -> float:
    """
    Score a finished episode.

    Args:
        total_error: Post-startup mean squared error of the episode.
        steps: Number of steps the episode lasted.
        max_speed: Highest speed reached.

    Returns:
        total_error - steps - max_speed (lower is better).
    """
    return total_error - steps - max_speed


def compute_tuning_summary(episodes: list[EpisodeMetrics]) -> TuningSummary:
    """
    Aggregate episode metrics.

    Args:
        episodes: Metrics of completed episodes, in order.

    Returns:
        TuningSummary over all episodes.
    """
    if not episodes:
        logger.warning("No episodes to summarize")
        return TuningSummary()

    scores = [m.score for m in episodes]
    best_idx = min(range(len(scores)), key=scores.__getitem__)

    counts: dict[str, int] = {}
    for m in episodes:
        counts[m.termination_reason] = counts.get(m.termination_reason, 0) + 1

    return TuningSummary(
        total_episodes=len(episodes),
        best_score=scores[best_idx],
        best_episode_idx=best_idx,
        mean_steps=sum(m.steps for m in episodes) / len(episodes),
        termination_counts=counts,
        episode_metrics=list(episodes),
    )


def format_summary_report(summary: TuningSummary) -> str:
    """
    Format a tuning summary as a human-readable report.

    Args:
        summary: Summary to format.

    Returns:
        Multi-line report string.
    """
    lines = [
        "=" * 50,
        "TWIDDLE TUNING SUMMARY",
        "=" * 50,
        f"Episodes: {summary.total_episodes}",
        f"Mean steps per episode: {summary.mean_steps:.1f}",
    ]
    if summary.best_score is not None:
        best = summary.episode_metrics[summary.best_episode_idx]
        lines.extend(
            [
                f"Best score: {summary.best_score:.4f} "
                f"(episode {summary.best_episode_idx})",
                f"  steering gains: {_format_gains(best.steering_gains)}",
                f"  throttle gains: {_format_gains(best.throttle_gains)}",
            ]
        )
    for reason, count in sorted(summary.termination_counts.items()):
        lines.append(f"  {reason}: {count}")
    lines.append("=" * 50)
    return "\n".join(lines)


def _format_gains(gains) -> str:
    kp, ki, kd = gains
    return f"kp={kp:.6g} ki={ki:.6g} kd={kd:.6g}"
