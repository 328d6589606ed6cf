"""Position sizing rules.

- Regime confidence and confidence-interpolated regime multiplier
- Streak scaling with ratchet steps and decay to baseline
- Combined streak x regime sizer
- Risk-adjusted sizer driven by volatility, win rate and drawdown
- Threshold-gated auto-compounding
"""

from .regime import RegimeMultiplier, regime_confidence, DEVIATION_SATURATION
from .streak import StreakScaler, DECAY_STEP
from .combined import CombinedSizer, CombinedMultiplier
from .risk_adjusted import RiskAdjustedSizer
from .compounder import AutoCompounder

__all__ = [
    "RegimeMultiplier",
    "regime_confidence",
    "DEVIATION_SATURATION",
    "StreakScaler",
    "DECAY_STEP",
    "CombinedSizer",
    "CombinedMultiplier",
    "RiskAdjustedSizer",
    "AutoCompounder",
]
