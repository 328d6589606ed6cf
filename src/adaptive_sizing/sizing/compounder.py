"""Threshold-gated auto-compounding of realized profit.

The compounded size is a ratchet: it grows with profitable trades up to
original_size * max_multiplier and never shrinks on its own. Disabling
compounding stops further growth but keeps the current size. reset() is
the only operation that brings the size back to the original.
"""

import logging
from dataclasses import replace
from typing import Optional

from ..config import CompoundConfig
from ..models import CompoundState
from ..numeric import finite_or, safe_divisor

logger = logging.getLogger(__name__)


def apply_profit(state: CompoundState, profit: float, config: CompoundConfig) -> CompoundState:
    """Fold one realized profit into the compound state.

    Args:
        state: Current compound state
        profit: Realized profit of a closed trade
        config: Compounding settings

    Returns:
        New state. Unchanged when compounding is disabled or profit <= 0.

    The ratchet takes precedence over the cap: if max_multiplier is lowered
    below the current multiplier, the grown size is kept (no shrink) and
    simply stops growing until reset().
    """
    profit = finite_or(profit, 0.0)
    if not config.enabled or profit <= 0:
        return state

    total_profit = state.total_profit_seen + profit
    if total_profit < config.threshold_profit:
        return replace(state, total_profit_seen=total_profit)

    new_size = _grown_size(state, profit, config)
    added = new_size - state.current_size
    return CompoundState(
        original_size=state.original_size,
        current_size=new_size,
        current_multiplier=new_size / safe_divisor(state.original_size),
        total_compounded=state.total_compounded + added,
        total_profit_seen=total_profit,
    )


def _grown_size(state: CompoundState, profit: float, config: CompoundConfig) -> float:
    cap = state.original_size * config.max_multiplier
    # max() keeps the ratchet if the cap was lowered after the size grew
    return max(state.current_size, min(cap, state.current_size + profit * config.percentage))


class AutoCompounder:
    """Owns a CompoundState and applies realized profits to it."""

    def __init__(self, base_size: float, config: Optional[CompoundConfig] = None,
                 state: Optional[CompoundState] = None):
        """Initialize auto-compounder.

        Args:
            base_size: Original (uncompounded) position size
            config: Compounding settings. Uses defaults if None.
            state: Restored state, e.g. from the config store
        """
        self.config = config or CompoundConfig()
        self.state = state or CompoundState.initial(base_size)

    @property
    def current_size(self) -> float:
        return self.state.current_size

    @property
    def multiplier(self) -> float:
        return self.state.current_multiplier

    @property
    def is_enabled(self) -> bool:
        return self.config.enabled

    def preview(self, profit: float) -> float:
        """Size that apply_profit(profit) would produce, without mutating."""
        return apply_profit(self.state, profit, self.config).current_size

    def apply_profit(self, profit: float) -> CompoundState:
        """Apply a realized profit event."""
        before = self.state
        self.state = apply_profit(before, profit, self.config)
        added = self.state.current_size - before.current_size
        if added > 0:
            logger.info(
                f"📈 Compounded +${added:.2f} | New position: ${self.state.current_size:.2f} "
                f"({self.state.current_multiplier:.2f}x)"
            )
        elif self.state is not before and self.state.current_size >= before.original_size * self.config.max_multiplier:
            logger.debug(f"Compounding capped at {self.config.max_multiplier:.2f}x")
        return self.state

    def set_enabled(self, enabled: bool) -> None:
        """Toggle compounding. Disabling keeps the current size."""
        self.config = replace(self.config, enabled=enabled)

    def reset(self, original_size: Optional[float] = None) -> CompoundState:
        """Restore the current size to the original, clearing totals.

        A non-finite or non-positive original_size keeps the existing one.
        """
        size = finite_or(original_size, 0.0)
        if size <= 0:
            if original_size is not None:
                logger.warning(f"Ignoring invalid compounding base {original_size!r}")
            size = self.state.original_size
        self.state = CompoundState.initial(size)
        logger.info(f"Compounding reset to ${size:.2f}")
        return self.state
