"""Combined streak x regime position sizing."""

from dataclasses import dataclass
from typing import Optional

from ..config import Configuration, DEFAULT_CONFIG
from ..models import RegimeSignal, SizingRecommendation, StreakState
from ..numeric import clamp, finite_or, round2
from . import streak as streak_rules
from .regime import RegimeMultiplier


@dataclass(frozen=True)
class CombinedMultiplier:
    """Clamped product of the streak and regime multipliers."""
    value: float
    is_at_minimum: bool
    is_at_maximum: bool


class CombinedSizer:
    """Merges streak and regime scaling into one trade size.

    combined = clamp(streak_multiplier * regime_multiplier, min, max)
    final_size = round2(base_size * combined)
    """

    def __init__(self, config: Optional[Configuration] = None):
        """Initialize combined sizer.

        Args:
            config: Sizing configuration. Uses defaults if None.
        """
        self.config = config or DEFAULT_CONFIG
        self.regime = RegimeMultiplier(self.config)

    def combine(self, streak_multiplier: float, regime_multiplier: float) -> CombinedMultiplier:
        """Clamp the product of both multipliers to the configured bounds.

        Non-finite inputs are treated as neutral (1.0).
        """
        product = finite_or(streak_multiplier, 1.0) * finite_or(regime_multiplier, 1.0)
        value = clamp(
            finite_or(product, 1.0),
            self.config.min_multiplier,
            self.config.max_multiplier,
        )
        return CombinedMultiplier(
            value=value,
            is_at_minimum=value <= self.config.min_multiplier,
            is_at_maximum=value >= self.config.max_multiplier,
        )

    def recommend(
        self,
        streak: StreakState,
        signal: Optional[RegimeSignal] = None,
        base_size: Optional[float] = None,
    ) -> SizingRecommendation:
        """Calculate the recommended size for the next trade.

        Args:
            streak: Current streak state
            signal: Latest regime signal, None if unavailable
            base_size: Baseline to scale (compounded size). Defaults to the
                configured base position size.

        Returns:
            SizingRecommendation with final size, multiplier and reason
        """
        base = finite_or(base_size, self.config.base_position_size)
        if base <= 0:
            base = self.config.base_position_size

        regime_multiplier, confidence = self.regime.from_signal(signal)
        combined = self.combine(streak.streak_multiplier, regime_multiplier)

        final_size = finite_or(base * combined.value, self.config.base_position_size * combined.value)

        return SizingRecommendation(
            final_size=round2(final_size),
            multiplier=combined.value,
            reason=self.reason(streak, signal),
            is_at_minimum=combined.is_at_minimum,
            is_at_maximum=combined.is_at_maximum,
            base_size=base,
            streak_multiplier=streak.streak_multiplier,
            regime_multiplier=regime_multiplier,
            regime_confidence=confidence,
            recent_performance=streak_rules.recent_performance(streak),
        )

    def reason(self, streak: StreakState, signal: Optional[RegimeSignal]) -> str:
        """Join the non-trivial streak and regime reasons."""
        parts = []
        streak_reason = streak_rules.scaling_reason(streak, self.config)
        if streak_reason != streak_rules.BASE_REASON:
            parts.append(streak_reason)
        regime_reason = self.regime.describe(signal)
        if regime_reason:
            parts.append(regime_reason)
        return " + ".join(parts) if parts else streak_rules.BASE_REASON
