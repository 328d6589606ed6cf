"""
Adaptive Sizing - Position-sizing engine for automated crypto trading

Decides how much capital to risk on the next trade from win/loss streaks,
market regime confidence, realized volatility and compounded profit.
"""

__version__ = "1.0.0"
__author__ = "Adaptive Sizing Team"

from .models import (
    RegimeLabel,
    Direction,
    RecentPerformance,
    RiskLevel,
    SizingMode,
    RegimeSignal,
    TradeOutcome,
    ClosedTrade,
    StreakState,
    CompoundState,
    SizingRecommendation,
    RiskMetrics,
    RiskAdjustedRecommendation,
    ProfitBreakdown,
    ProfitParams,
    EngineSnapshot,
)
from .config import Configuration, ConfigManager, ConfigValidationError, DEFAULT_CONFIG
from .engine import SizingEngine
from .fees import compute_profit_breakdown

__all__ = [
    "RegimeLabel",
    "Direction",
    "RecentPerformance",
    "RiskLevel",
    "SizingMode",
    "RegimeSignal",
    "TradeOutcome",
    "ClosedTrade",
    "StreakState",
    "CompoundState",
    "SizingRecommendation",
    "RiskMetrics",
    "RiskAdjustedRecommendation",
    "ProfitBreakdown",
    "ProfitParams",
    "EngineSnapshot",
    "Configuration",
    "ConfigManager",
    "ConfigValidationError",
    "DEFAULT_CONFIG",
    "SizingEngine",
    "compute_profit_breakdown",
]
