"""Property-based tests for streak scaling.

Tests validate:
- Property 5: Win/loss counters are mutually exclusive
- Property 6: A step fires once per new observed count at or past the threshold
- Property 7: The multiplier stays within [min_multiplier, max_multiplier]
- Property 8: Decay moves toward 1.0 without overshooting
"""

import pytest
from hypothesis import given, strategies as st, settings

from adaptive_sizing.config import Configuration
from adaptive_sizing.models import RecentPerformance, StreakState
from adaptive_sizing.sizing import streak as rules
from adaptive_sizing.sizing.streak import DECAY_STEP, StreakScaler


# A trade event is True (win), False (loss), "tick" or "break"
events = st.lists(
    st.one_of(st.booleans(), st.sampled_from(["tick", "break"])),
    max_size=60,
)


def apply_events(scaler: StreakScaler, sequence) -> None:
    for event in sequence:
        if event == "tick":
            scaler.tick()
        elif event == "break":
            scaler.break_streak()
        elif event:
            scaler.record_win()
        else:
            scaler.record_loss()


class TestStreakCounters:
    """Tests for Property 5: Counters are mutually exclusive."""

    @given(sequence=st.lists(st.booleans(), min_size=1, max_size=50))
    @settings(max_examples=100)
    def test_counters_equal_trailing_run(self, sequence):
        scaler = StreakScaler(Configuration())
        for is_win in sequence:
            scaler.record_win() if is_win else scaler.record_loss()

        trailing = 0
        for is_win in reversed(sequence):
            if is_win != sequence[-1]:
                break
            trailing += 1

        if sequence[-1]:
            assert scaler.consecutive_wins == trailing
            assert scaler.consecutive_losses == 0
        else:
            assert scaler.consecutive_losses == trailing
            assert scaler.consecutive_wins == 0

    def test_win_resets_losses(self):
        scaler = StreakScaler(Configuration())
        scaler.record_loss()
        scaler.record_loss()
        scaler.record_win()

        assert scaler.consecutive_wins == 1
        assert scaler.consecutive_losses == 0


class TestStreakSteps:
    """Tests for Property 6: One step per new observed count."""

    def test_three_wins_step_up_once(self):
        """base 100, 3 wins, step 0.1 gives a 1.1 streak multiplier."""
        scaler = StreakScaler(Configuration())
        scaler.record_win()
        scaler.record_win()
        assert scaler.multiplier == 1.0

        scaler.record_win()
        assert scaler.multiplier == pytest.approx(1.1)

    def test_each_further_win_is_a_new_crossing(self):
        """The 4th win is a new observed count past the threshold and steps again."""
        scaler = StreakScaler(Configuration())
        for _ in range(4):
            scaler.record_win()
        assert scaler.multiplier == pytest.approx(1.2)

    def test_repeated_observation_does_not_retrigger(self):
        """Observing the same count at the threshold twice steps exactly once."""
        scaler = StreakScaler(Configuration())
        scaler.observe(3, 0)
        scaler.observe(3, 0)
        scaler.observe(3, 0)
        assert scaler.multiplier == pytest.approx(1.1)

    def test_count_jump_steps_at_most_once(self):
        """A skipped observation (0 -> 5 wins) still yields a single step."""
        scaler = StreakScaler(Configuration())
        scaler.observe(5, 0)
        assert scaler.multiplier == pytest.approx(1.1)

    def test_losses_step_down_faster(self):
        """Two losses step down by 0.2, twice the size of a win step."""
        scaler = StreakScaler(Configuration())
        scaler.record_loss()
        assert scaler.multiplier == 1.0

        scaler.record_loss()
        assert scaler.multiplier == pytest.approx(0.8)

        scaler.record_loss()
        assert scaler.multiplier == pytest.approx(0.6)

    def test_loss_step_clamps_to_minimum(self):
        scaler = StreakScaler(Configuration())
        for _ in range(10):
            scaler.record_loss()
        assert scaler.multiplier == 0.5

    def test_win_step_clamps_to_maximum(self):
        scaler = StreakScaler(Configuration())
        for _ in range(20):
            scaler.record_win()
        assert scaler.multiplier == 1.5

    @given(wins=st.integers(min_value=0, max_value=30))
    @settings(max_examples=100)
    def test_steps_match_wins_past_threshold(self, wins):
        config = Configuration()
        scaler = StreakScaler(config)
        for _ in range(wins):
            scaler.record_win()

        steps = max(0, wins - config.wins_to_increase + 1)
        expected = min(config.max_multiplier, 1.0 + steps * config.increase_step)
        assert scaler.multiplier == pytest.approx(expected)


class TestStreakBounds:
    """Tests for Property 7: Multiplier bounded by configuration."""

    @given(sequence=events)
    @settings(max_examples=200)
    def test_multiplier_always_within_bounds(self, sequence):
        config = Configuration()
        scaler = StreakScaler(config)
        apply_events(scaler, sequence)
        assert config.min_multiplier <= scaler.multiplier <= config.max_multiplier

    @given(sequence=events)
    @settings(max_examples=100)
    def test_fold_is_deterministic(self, sequence):
        """Replaying the same stream reconstructs the same state."""
        first = StreakScaler(Configuration())
        second = StreakScaler(Configuration())
        apply_events(first, sequence)
        apply_events(second, sequence)
        assert first.state == second.state


class TestStreakDecay:
    """Tests for Property 8: Decay toward 1.0 without overshoot."""

    def test_decay_after_streak_breaks(self):
        scaler = StreakScaler(Configuration())
        for _ in range(3):
            scaler.record_win()
        scaler.break_streak()

        assert scaler.multiplier == pytest.approx(1.1)
        scaler.tick()
        assert scaler.multiplier == pytest.approx(1.05)
        scaler.tick()
        assert scaler.multiplier == pytest.approx(1.0)
        scaler.tick()
        assert scaler.multiplier == 1.0

    def test_no_decay_while_streak_running(self):
        scaler = StreakScaler(Configuration())
        for _ in range(3):
            scaler.record_win()
        for _ in range(5):
            scaler.tick()
        assert scaler.multiplier == pytest.approx(1.1)

    @given(
        multiplier=st.floats(min_value=0.5, max_value=1.5),
        ticks=st.integers(min_value=1, max_value=40),
    )
    @settings(max_examples=200)
    def test_decay_never_overshoots(self, multiplier, ticks):
        state = StreakState(streak_multiplier=multiplier)
        previous_distance = abs(multiplier - 1.0)

        for _ in range(ticks):
            state = rules.decay(state)
            distance = abs(state.streak_multiplier - 1.0)
            # same side of 1.0 (or on it) and strictly closer until reached
            assert (state.streak_multiplier - 1.0) * (multiplier - 1.0) >= 0
            assert distance <= previous_distance
            if previous_distance > 0:
                assert distance == pytest.approx(max(0.0, previous_distance - DECAY_STEP), abs=1e-9)
            previous_distance = distance

    @given(multiplier=st.floats(min_value=0.5, max_value=1.5))
    @settings(max_examples=100)
    def test_decay_reaches_baseline(self, multiplier):
        state = StreakState(streak_multiplier=multiplier)
        for _ in range(int(0.5 / DECAY_STEP) + 2):
            state = rules.decay(state)
        assert state.streak_multiplier == 1.0


class TestRecentPerformance:
    """Tests for streak classification and reason text."""

    def test_classification(self):
        scaler = StreakScaler(Configuration())
        assert scaler.recent_performance == RecentPerformance.NEUTRAL

        scaler.record_win()
        assert scaler.recent_performance == RecentPerformance.NEUTRAL
        scaler.record_win()
        assert scaler.recent_performance == RecentPerformance.WINNING

        scaler.record_loss()
        scaler.record_loss()
        assert scaler.recent_performance == RecentPerformance.LOSING

    def test_reasons(self):
        scaler = StreakScaler(Configuration())
        assert scaler.reason == "Base position size"

        for _ in range(3):
            scaler.record_win()
        assert scaler.reason == "Winning streak (3 wins) - Position increased"

        scaler.break_streak()
        assert scaler.reason == "Elevated from previous winning streak"

        scaler.reset()
        scaler.record_loss()
        scaler.record_loss()
        assert scaler.reason == "Loss recovery mode (2 losses) - Position reduced"

        scaler.break_streak()
        assert scaler.reason == "Reduced from previous losses"
