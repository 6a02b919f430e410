"""Tests for the Twiddle auto-tuning module."""

import pytest

from twiddle_pid.controllers import PIDController
from twiddle_pid.controllers.tuning import (
    MIN_RESOLUTION,
    TwiddleConfig,
    TwiddlePhase,
    TwiddleTuner,
)


def run_episode(controller: PIDController, steps: int | None = None) -> None:
    """Feed enough samples for the episode to count as past startup."""
    if steps is None:
        steps = controller.startup + 1
    for _ in range(steps):
        controller.update_error(0.1)


@pytest.fixture
def controller():
    """Create a controller with the default startup period."""
    return PIDController()


@pytest.fixture
def tuner(controller):
    """Create a tuner for the controller."""
    return TwiddleTuner(controller)


class TestTwiddleConfig:
    """Tests for TwiddleConfig validation and configuration."""

    def test_defaults(self):
        """Test default tuning constants."""
        config = TwiddleConfig()
        assert config.min_resolution == MIN_RESOLUTION == 0.1
        assert config.step_growth == 1.1
        assert config.step_shrink == 0.9

    def test_negative_resolution_raises(self):
        """Test that a negative min_resolution raises ValueError."""
        with pytest.raises(ValueError, match="min_resolution must be >= 0"):
            TwiddleConfig(min_resolution=-0.1)

    def test_zero_growth_raises(self):
        """Test that a non-positive step_growth raises ValueError."""
        with pytest.raises(ValueError, match="step_growth must be > 0"):
            TwiddleConfig(step_growth=0.0)

    def test_zero_shrink_raises(self):
        """Test that a non-positive step_shrink raises ValueError."""
        with pytest.raises(ValueError, match="step_shrink must be > 0"):
            TwiddleConfig(step_shrink=0.0)

    def test_round_trip_dict(self):
        """Test from_dict picks up overrides and falls back to defaults."""
        config = TwiddleConfig.from_dict({"min_resolution": 0.01})
        assert config.min_resolution == 0.01
        assert config.step_growth == 1.1
        assert TwiddleConfig.from_dict(config.to_dict()) == config


class TestTwiddleInit:
    """Tests for search initialization."""

    def test_initial_state(self, tuner):
        """Test the search starts from zero gains and unit steps."""
        assert tuner.gain_vector.tolist() == [0.0, 0.0, 0.0]
        assert tuner.step_vector.tolist() == [1.0, 1.0, 1.0]
        assert tuner.active_index == 0
        assert tuner.phase is TwiddlePhase.UP
        assert tuner.best_score is None

    def test_init_pushes_gains(self, controller, tuner):
        """Test init resets the controller with zero gains."""
        assert controller.gains == (0.0, 0.0, 0.0)
        assert controller.step_count == 0

    def test_reinit_discards_progress(self, controller, tuner):
        """Test twiddle_init throws away an in-progress search."""
        tuner.twiddle_step(10.0)
        run_episode(controller)
        tuner.twiddle_init()
        assert tuner.gain_vector.tolist() == [0.0, 0.0, 0.0]
        assert tuner.best_score is None
        assert controller.step_count == 0


class TestTwiddleUpdate:
    """Tests for pushing gains into the controller."""

    def test_gain_mapping(self, controller, tuner):
        """Test p[0] -> kp, p[1] -> kd, p[2] -> ki."""
        tuner.load_preset([1.0, 2.0, 3.0], [1.0, 1.0, 1.0])
        assert controller.kp == 1.0
        assert controller.kd == 2.0
        assert controller.ki == 3.0
        assert tuner.gains == (1.0, 3.0, 2.0)

    def test_update_resets_episode(self, controller, tuner):
        """Test update clears the controller's counters and error terms."""
        run_episode(controller, steps=400)
        assert controller.cumulative_score > 0

        tuner.twiddle_update()
        assert controller.step_count == 0
        assert controller.cumulative_score == 0.0
        assert controller.p_error == 0.0
        assert controller.i_error == 0.0
        assert controller.d_error == 0.0

    def test_preset_wrong_length_raises(self, tuner):
        """Test that non-3-element presets raise ValueError."""
        with pytest.raises(ValueError, match="exactly 3 values"):
            tuner.load_preset([1.0, 2.0], [1.0, 1.0, 1.0])
        with pytest.raises(ValueError, match="exactly 3 values"):
            tuner.load_preset([1.0, 2.0, 3.0], [1.0, 1.0, 1.0, 1.0])

    def test_preset_copies_input(self, tuner):
        """Test the tuner doesn't alias the caller's lists."""
        gains = [0.0, 0.0, 0.0]
        tuner.load_preset(gains, [1.0, 1.0, 1.0])
        tuner.twiddle_step(1.0)
        assert gains == [0.0, 0.0, 0.0]


class TestTwiddleStep:
    """Tests for the search state machine."""

    def test_first_trial(self, tuner):
        """Test the first step records the score and perturbs index 0 up."""
        tuner.twiddle_step(10.0)
        assert tuner.best_score == 10.0
        assert tuner.phase is TwiddlePhase.UP
        assert tuner.gain_vector.tolist() == [1.0, 0.0, 0.0]
        assert tuner.active_index == 0

    def test_improve_then_reverse(self, controller, tuner):
        """Test improvement grows the step, then a worse score reverses."""
        tuner.twiddle_step(10.0)
        tuner.twiddle_update()

        run_episode(controller)
        tuner.twiddle_step(8.0)
        assert tuner.best_score == 8.0
        assert tuner.step_vector[0] == pytest.approx(1.1)
        assert tuner.gain_vector[0] == pytest.approx(2.1)
        assert tuner.phase is TwiddlePhase.UP
        tuner.twiddle_update()
        assert controller.kp == pytest.approx(2.1)

        run_episode(controller)
        tuner.twiddle_step(9.0)
        assert tuner.gain_vector[0] == pytest.approx(-0.1)
        assert tuner.phase is TwiddlePhase.DOWN
        assert tuner.best_score == 8.0

    def test_down_failure_restores_and_shrinks(self, controller, tuner):
        """Test both directions failing restores the gain and shrinks the step."""
        tuner.twiddle_step(10.0)  # p0 = 1
        run_episode(controller)
        tuner.twiddle_step(11.0)  # UP failed: p0 = -1
        assert tuner.gain_vector[0] == pytest.approx(-1.0)
        assert tuner.phase is TwiddlePhase.DOWN

        run_episode(controller)
        tuner.twiddle_step(12.0)  # DOWN failed: restore to 0, dp = 0.9, retry up
        assert tuner.step_vector[0] == pytest.approx(0.9)
        assert tuner.gain_vector[0] == pytest.approx(0.9)
        assert tuner.phase is TwiddlePhase.UP
        assert tuner.active_index == 0

    def test_improvement_while_down_keeps_direction(self, controller, tuner):
        """Test an improvement in DOWN phase keeps moving down."""
        tuner.twiddle_step(10.0)  # p0 = 1
        run_episode(controller)
        tuner.twiddle_step(11.0)  # p0 = -1, DOWN
        run_episode(controller)
        tuner.twiddle_step(5.0)  # improvement: dp = 1.1, p0 = -2.1
        assert tuner.best_score == 5.0
        assert tuner.gain_vector[0] == pytest.approx(-2.1)
        assert tuner.phase is TwiddlePhase.DOWN

    def test_short_episode_not_trusted(self, controller, tuner):
        """Test a better score from an episode that ended during startup is rejected."""
        tuner.twiddle_step(10.0)
        run_episode(controller, steps=controller.startup)
        tuner.twiddle_step(1.0)
        assert tuner.best_score == 10.0
        assert tuner.gain_vector[0] == pytest.approx(-1.0)
        assert tuner.phase is TwiddlePhase.DOWN

    def test_negative_scores(self, controller, tuner):
        """Test negative scores are ordinary values, not an unset sentinel."""
        tuner.twiddle_step(-1.0)
        assert tuner.best_score == -1.0
        run_episode(controller)
        tuner.twiddle_step(-50.0)
        assert tuner.best_score == -50.0

    def test_frozen_gain_advances(self, tuner):
        """Test a zero step size skips to the next gain regardless of score."""
        tuner.step_vector[0] = 0.0
        tuner.twiddle_step(123.0)
        assert tuner.active_index == 1
        assert tuner.gain_vector.tolist() == [0.0, 1.0, 0.0]
        assert tuner.phase is TwiddlePhase.UP
        assert tuner.best_score is None

    def test_shrink_below_resolution_advances(self, controller, tuner):
        """Test a step shrunk below MIN_RESOLUTION moves on to the next gain."""
        tuner.load_preset([0.0, 0.0, 0.0], [0.105, 1.0, 1.0])
        tuner.twiddle_step(10.0)  # p0 = 0.105
        run_episode(controller)
        tuner.twiddle_step(11.0)  # p0 = -0.105, DOWN
        run_episode(controller)
        tuner.twiddle_step(12.0)  # restore, dp0 = 0.0945 < 0.1 -> advance

        assert tuner.active_index == 1
        assert tuner.gain_vector[0] == pytest.approx(0.0)
        assert tuner.step_vector[0] == pytest.approx(0.0945)
        assert tuner.gain_vector[1] == pytest.approx(1.0)
        assert tuner.phase is TwiddlePhase.UP

    def test_improvement_below_resolution_advances(self, controller, tuner):
        """Test an improvement whose grown step is still tiny advances."""
        tuner.load_preset([0.0, 0.0, 0.0], [0.05, 1.0, 1.0])
        tuner.twiddle_step(10.0)  # p0 = 0.05
        run_episode(controller)
        tuner.twiddle_step(5.0)  # dp0 = 0.055 < 0.1 -> advance

        assert tuner.active_index == 1
        assert tuner.gain_vector[0] == pytest.approx(0.05)
        assert tuner.step_vector[0] == pytest.approx(0.055)
        assert tuner.gain_vector[1] == pytest.approx(1.0)

    def test_best_score_carries_across_gains(self, controller, tuner):
        """Test the next gain is judged against the best score of the previous one."""
        tuner.load_preset([0.0, 0.0, 0.0], [0.05, 1.0, 1.0])
        tuner.twiddle_step(10.0)
        run_episode(controller)
        tuner.twiddle_step(5.0)  # advance to index 1, best = 5
        assert tuner.active_index == 1

        run_episode(controller)
        tuner.twiddle_step(6.0)  # better than 10 but worse than 5
        assert tuner.best_score == 5.0
        assert tuner.gain_vector[1] == pytest.approx(-1.0)
        assert tuner.phase is TwiddlePhase.DOWN

    def test_round_robin(self, tuner):
        """Test three consecutive advances return to index 0."""
        tuner.step_vector[:] = 0.0
        visited = []
        for _ in range(3):
            tuner.twiddle_step(1.0)
            visited.append(tuner.active_index)
        assert visited == [1, 2, 0]

    def test_custom_resolution(self, controller):
        """Test min_resolution from the config is honoured."""
        tuner = TwiddleTuner(controller, config=TwiddleConfig(min_resolution=2.0))
        tuner.twiddle_step(10.0)
        run_episode(controller)
        tuner.twiddle_step(5.0)  # dp0 = 1.1 < 2.0 -> advance
        assert tuner.active_index == 1


class TestStateDict:
    """Tests for the search state snapshot."""

    def test_state_dict(self, tuner):
        """Test the snapshot holds plain Python values."""
        tuner.twiddle_step(3.5)
        state = tuner.state_dict()
        assert state == {
            "gain_vector": [1.0, 0.0, 0.0],
            "step_vector": [1.0, 1.0, 1.0],
            "active_index": 0,
            "phase": "up",
            "best_score": 3.5,
        }

    def test_independent_instances(self):
        """Test two tuners share no state."""
        a = TwiddleTuner(PIDController())
        b = TwiddleTuner(PIDController())
        a.twiddle_step(1.0)
        assert b.gain_vector.tolist() == [0.0, 0.0, 0.0]
        assert b.best_score is None
