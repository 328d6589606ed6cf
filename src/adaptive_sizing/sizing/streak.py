"""Streak-based position scaling.

Tracks consecutive wins and losses and ratchets a streak multiplier:
- a new win count at or above wins_to_increase steps up by increase_step
- a new loss count at or above losses_to_decrease steps down by decrease_step
- once the streak breaks (no wins, no losses) the multiplier decays back
  toward 1.0 by DECAY_STEP per evaluation tick

A step fires once per observed increase of the count. Observing the same
count again does nothing, and a count that jumps by more than one between
observations still steps only once.

The transition functions are pure so the state can be rebuilt by folding
the trade-outcome stream.
"""

import logging
from dataclasses import replace
from typing import Optional

from ..config import Configuration, DEFAULT_CONFIG
from ..models import RecentPerformance, StreakState

logger = logging.getLogger(__name__)

DECAY_STEP: float = 0.05
BASE_REASON = "Base position size"


def observe(state: StreakState, wins: int, losses: int, config: Configuration) -> StreakState:
    """Apply an observation of the current streak counters.

    Args:
        state: Current streak state
        wins: Observed consecutive wins
        losses: Observed consecutive losses
        config: Sizing configuration

    Returns:
        New state with the counters recorded and at most one step applied
        in each direction
    """
    multiplier = state.streak_multiplier

    if wins > state.last_recorded_wins and wins >= config.wins_to_increase:
        stepped = min(config.max_multiplier, multiplier + config.increase_step)
        if stepped != multiplier:
            logger.info(
                f"📈 Position scaled UP: {multiplier * 100:.0f}% → {stepped * 100:.0f}% "
                f"({wins} consecutive wins)"
            )
        multiplier = stepped

    if losses > state.last_recorded_losses and losses >= config.losses_to_decrease:
        stepped = max(config.min_multiplier, multiplier - config.decrease_step)
        if stepped != multiplier:
            logger.info(
                f"📉 Position scaled DOWN: {multiplier * 100:.0f}% → {stepped * 100:.0f}% "
                f"({losses} consecutive losses)"
            )
        multiplier = stepped

    return StreakState(
        consecutive_wins=wins,
        consecutive_losses=losses,
        streak_multiplier=multiplier,
        last_recorded_wins=wins,
        last_recorded_losses=losses,
    )


def record_outcome(state: StreakState, is_win: bool, config: Configuration) -> StreakState:
    """Fold one closed trade into the streak state.

    Breakeven trades count as losses.
    """
    if is_win:
        return observe(state, state.consecutive_wins + 1, 0, config)
    return observe(state, 0, state.consecutive_losses + 1, config)


def decay(state: StreakState) -> StreakState:
    """Move the multiplier one DECAY_STEP toward 1.0 if no streak is running."""
    if not state.is_flat or state.streak_multiplier == 1.0:
        return state
    if state.streak_multiplier > 1.0:
        multiplier = max(1.0, state.streak_multiplier - DECAY_STEP)
    else:
        multiplier = min(1.0, state.streak_multiplier + DECAY_STEP)
    return replace(state, streak_multiplier=multiplier)


def break_streak(state: StreakState) -> StreakState:
    """Zero both counters, keeping the multiplier so it decays gradually."""
    return replace(
        state,
        consecutive_wins=0,
        consecutive_losses=0,
        last_recorded_wins=0,
        last_recorded_losses=0,
    )


def recent_performance(state: StreakState) -> RecentPerformance:
    """Classify the current streak for display."""
    if state.consecutive_wins >= 2:
        return RecentPerformance.WINNING
    if state.consecutive_losses >= 2:
        return RecentPerformance.LOSING
    return RecentPerformance.NEUTRAL


def scaling_reason(state: StreakState, config: Configuration) -> str:
    """Explain the streak multiplier in words."""
    if state.consecutive_wins >= config.wins_to_increase:
        return f"Winning streak ({state.consecutive_wins} wins) - Position increased"
    if state.consecutive_losses >= config.losses_to_decrease:
        return f"Loss recovery mode ({state.consecutive_losses} losses) - Position reduced"
    if state.streak_multiplier > 1.0:
        return "Elevated from previous winning streak"
    if state.streak_multiplier < 1.0:
        return "Reduced from previous losses"
    return BASE_REASON


class StreakScaler:
    """Owns a StreakState and applies the streak transitions to it."""

    def __init__(self, config: Optional[Configuration] = None, state: Optional[StreakState] = None):
        """Initialize streak scaler.

        Args:
            config: Sizing configuration. Uses defaults if None.
            state: Starting state. Fresh state if None.
        """
        self.config = config or DEFAULT_CONFIG
        self.state = state or StreakState()

    @property
    def multiplier(self) -> float:
        """Current streak multiplier."""
        return self.state.streak_multiplier

    @property
    def consecutive_wins(self) -> int:
        return self.state.consecutive_wins

    @property
    def consecutive_losses(self) -> int:
        return self.state.consecutive_losses

    def record_win(self) -> StreakState:
        """Record a winning trade."""
        self.state = record_outcome(self.state, True, self.config)
        return self.state

    def record_loss(self) -> StreakState:
        """Record a losing or breakeven trade."""
        self.state = record_outcome(self.state, False, self.config)
        return self.state

    def observe(self, wins: int, losses: int) -> StreakState:
        """Apply externally tracked streak counters."""
        self.state = observe(self.state, wins, losses, self.config)
        return self.state

    def tick(self) -> StreakState:
        """Evaluation tick: decay toward 1.0 when no streak is running."""
        self.state = decay(self.state)
        return self.state

    def break_streak(self) -> StreakState:
        """Clear the counters without touching the multiplier."""
        self.state = break_streak(self.state)
        return self.state

    def reset(self) -> None:
        """Reset to a fresh state."""
        self.state = StreakState()

    @property
    def recent_performance(self) -> RecentPerformance:
        return recent_performance(self.state)

    @property
    def reason(self) -> str:
        return scaling_reason(self.state, self.config)
