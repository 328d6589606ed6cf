"""Regime confidence and regime-based position multiplier.

Confidence is derived from how far price sits from the reference trend
line. The multiplier scales progressively with confidence instead of
switching on at a threshold, so size does not jump as deviation crosses
the floor.
"""

from typing import Optional

from ..config import Configuration, DEFAULT_CONFIG
from ..models import RegimeLabel, RegimeSignal
from ..numeric import finite_or

# Absolute deviation (as a ratio) at which confidence saturates: 1% = 100%.
DEVIATION_SATURATION: float = 0.01


def regime_confidence(deviation: float) -> float:
    """Convert a signed trend deviation into a confidence in [0, 1].

    Args:
        deviation: Signed ratio of price vs trend reference (0.012 = +1.2%)

    Returns:
        min(1, |deviation| / DEVIATION_SATURATION); 0 for non-finite input
    """
    return min(1.0, abs(finite_or(deviation, 0.0)) / DEVIATION_SATURATION)


class RegimeMultiplier:
    """Confidence-interpolated multiplier per regime.

    Below the confidence floor the regime has no effect (1.0). From the
    floor up to full confidence the multiplier moves linearly from 1.0 to
    the configured target for the regime.
    """

    def __init__(self, config: Optional[Configuration] = None):
        """Initialize regime multiplier.

        Args:
            config: Sizing configuration. Uses defaults if None.
        """
        self.config = config or DEFAULT_CONFIG

    def calculate(self, label: Optional[RegimeLabel], confidence: float) -> float:
        """Get position multiplier for a regime at a given confidence.

        Args:
            label: Regime label, None when no regime signal is available
            confidence: Regime confidence in [0, 1]

        Returns:
            Interpolated multiplier, exactly 1.0 below the floor and exactly
            the regime target at full confidence
        """
        if label is None or not self.config.enable_regime_scaling:
            return 1.0

        confidence = min(1.0, max(0.0, finite_or(confidence, 0.0)))
        floor = self.config.regime_confidence_floor
        if confidence < floor:
            return 1.0

        target = self.config.regime_target(label)
        if confidence >= 1.0:
            return target

        scale = (confidence - floor) / (1.0 - floor)
        return 1.0 + (target - 1.0) * scale

    def from_signal(self, signal: Optional[RegimeSignal]) -> tuple[float, float]:
        """Get (multiplier, confidence) for a regime signal.

        Returns:
            (1.0, 0.0) when there is no signal or regime scaling is disabled
        """
        if signal is None or signal.label is None or not self.config.enable_regime_scaling:
            return 1.0, 0.0
        confidence = regime_confidence(signal.deviation)
        return self.calculate(signal.label, confidence), confidence

    def describe(self, signal: Optional[RegimeSignal]) -> Optional[str]:
        """Human-readable regime effect, None when the regime has no effect."""
        multiplier, confidence = self.from_signal(signal)
        if multiplier == 1.0:
            return None
        effect = "boost" if multiplier > 1.0 else "reduction"
        return f"{signal.label.value} regime {effect} ({confidence * 100:.0f}% confidence)"
