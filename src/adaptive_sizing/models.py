"""Core data models for the adaptive position-sizing engine."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class RegimeLabel(Enum):
    """Coarse market-trend classification against a reference trend line."""
    BULL = "BULL"
    BEAR = "BEAR"
    CHOP = "CHOP"


class Direction(Enum):
    """Trade direction."""
    LONG = "long"
    SHORT = "short"


class RecentPerformance(Enum):
    """Streak classification used for display text."""
    WINNING = "winning"
    LOSING = "losing"
    NEUTRAL = "neutral"


class RiskLevel(Enum):
    """Display risk level for the risk-adjusted sizer."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class SizingMode(Enum):
    """Trading mode, selects the default profit target."""
    SPOT = "spot"
    LEVERAGE = "leverage"


@dataclass(frozen=True)
class RegimeSignal:
    """Regime classification supplied by the trend collaborator.

    deviation is a signed ratio: +0.012 means price is 1.2% above the
    reference trend line.
    """
    label: Optional[RegimeLabel]
    deviation: float = 0.0


@dataclass(frozen=True)
class TradeOutcome:
    """A closed trade as reported by the execution layer."""
    profit: float
    is_win: bool
    trade_id: Optional[str] = None
    closed_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "profit": self.profit,
            "is_win": self.is_win,
            "trade_id": self.trade_id,
            "closed_at": self.closed_at.isoformat() if self.closed_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TradeOutcome":
        """Create from dictionary. is_win defaults to profit > 0."""
        profit = float(data["profit"])
        closed_at = data.get("closed_at")
        return cls(
            profit=profit,
            is_win=bool(data.get("is_win", profit > 0)),
            trade_id=data.get("trade_id"),
            closed_at=datetime.fromisoformat(closed_at) if closed_at else None,
        )


@dataclass(frozen=True)
class ClosedTrade:
    """Historical trade record used to derive risk metrics."""
    profit_loss: float
    opened_at: datetime
    closed_at: Optional[datetime] = None


@dataclass(frozen=True)
class StreakState:
    """Consecutive win/loss tracking.

    last_recorded_wins/losses hold the counts seen at the previous
    observation; a scaling step only fires when the count grows past them.
    """
    consecutive_wins: int = 0
    consecutive_losses: int = 0
    streak_multiplier: float = 1.0
    last_recorded_wins: int = 0
    last_recorded_losses: int = 0

    @property
    def is_flat(self) -> bool:
        """True when no streak is running."""
        return self.consecutive_wins == 0 and self.consecutive_losses == 0


@dataclass(frozen=True)
class CompoundState:
    """Reinvested-profit state for the base position size."""
    original_size: float
    current_size: float
    current_multiplier: float = 1.0
    total_compounded: float = 0.0
    total_profit_seen: float = 0.0

    @classmethod
    def initial(cls, size: float) -> "CompoundState":
        """Fresh state for a base size with nothing compounded."""
        return cls(original_size=size, current_size=size)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "original_size": self.original_size,
            "current_size": self.current_size,
            "current_multiplier": self.current_multiplier,
            "total_compounded": self.total_compounded,
            "total_profit_seen": self.total_profit_seen,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CompoundState":
        """Create from dictionary."""
        return cls(
            original_size=data["original_size"],
            current_size=data["current_size"],
            current_multiplier=data.get("current_multiplier", 1.0),
            total_compounded=data.get("total_compounded", 0.0),
            total_profit_seen=data.get("total_profit_seen", 0.0),
        )


@dataclass(frozen=True)
class SizingRecommendation:
    """Result of the streak x regime sizing path."""
    final_size: float
    multiplier: float
    reason: str
    is_at_minimum: bool
    is_at_maximum: bool
    base_size: float = 0.0
    streak_multiplier: float = 1.0
    regime_multiplier: float = 1.0
    regime_confidence: float = 0.0
    recent_performance: RecentPerformance = RecentPerformance.NEUTRAL


@dataclass(frozen=True)
class RiskMetrics:
    """Inputs for the risk-adjusted sizer, all as ratios except minutes."""
    current_drawdown: float = 0.0
    win_rate: float = 0.75
    recent_volatility: float = 0.005
    avg_trade_minutes: float = 5.0


@dataclass(frozen=True)
class RiskAdjustedRecommendation:
    """Result of the volatility/win-rate/drawdown sizing path."""
    base_size: float
    adjusted_size: float
    risk_multiplier: float
    volatility_multiplier: float
    expected_time_to_profit: float
    risk_level: RiskLevel
    target_profit: float
    reasoning: str


@dataclass(frozen=True)
class ProfitBreakdown:
    """Expected profit for a candidate position after fees."""
    exit_price: float
    gross_profit: float
    fees: float
    net_profit: float


@dataclass(frozen=True)
class ProfitParams:
    """Arguments for a profit breakdown request."""
    size: float
    entry_price: float
    expected_move: float
    direction: Direction = Direction.LONG
    leverage: float = 1.0


@dataclass(frozen=True)
class TargetSizing:
    """Position size needed to net a target profit after fees."""
    recommended_amount: float
    take_profit_percent: float
    is_viable: bool
    fee_impact: float
    net_profit_at_target: float
    required_move_percent: float
    reason: Optional[str] = None


@dataclass(frozen=True)
class EngineSnapshot:
    """Immutable view of the engine published to observers."""
    recommendation: SizingRecommendation
    streak: StreakState
    compound: CompoundState
    regime: Optional[RegimeSignal]
    trades_applied: int
    published_at: datetime = field(default_factory=datetime.now)
