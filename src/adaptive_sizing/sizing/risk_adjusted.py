"""Risk-adjusted position sizing.

Independent of streak scaling. Sizes a position so that the typical
volatility-driven price move yields the profit target, then scales for
drawdown and win rate:

    adjusted = clamp(target / max(EPSILON, volatility) * risk_mult, min, max)
"""

from typing import Optional

from ..config import Configuration, DEFAULT_CONFIG
from ..models import RiskAdjustedRecommendation, RiskLevel, RiskMetrics, SizingMode
from ..numeric import EPSILON, clamp, finite_or, round2, safe_divisor

# Volatility above which the display multiplier reports a size reduction.
VOLATILITY_DISPLAY_PIVOT: float = 0.005


class RiskAdjustedSizer:
    """Sizes positions from realized volatility, win rate and drawdown.

    Risk multiplier (default thresholds):
    - Drawdown > 20%: 0.5x, > 10%: 0.8x, > 5%: 0.9x
    - Win rate > 85%: 1.1x, < 60%: 0.8x
    """

    def __init__(self, config: Optional[Configuration] = None):
        """Initialize risk-adjusted sizer.

        Args:
            config: Sizing configuration. Uses defaults if None.
        """
        self.config = config or DEFAULT_CONFIG

    def get_risk_multiplier(self, current_drawdown: float, win_rate: float) -> float:
        """Get the drawdown and win-rate adjustment.

        Args:
            current_drawdown: Decline from peak as a ratio (0.1 = 10%)
            win_rate: Recent win rate (0-1)

        Returns:
            Combined risk multiplier
        """
        risk = self.config.risk
        drawdown = finite_or(current_drawdown, 0.0)
        win_rate = finite_or(win_rate, 0.0)
        multiplier = 1.0

        if drawdown > risk.drawdown_heavy:
            multiplier *= risk.drawdown_heavy_mult
        elif drawdown > risk.drawdown_medium:
            multiplier *= risk.drawdown_medium_mult
        elif drawdown > risk.drawdown_light:
            multiplier *= risk.drawdown_light_mult

        if win_rate > risk.high_win_rate:
            multiplier *= risk.high_win_rate_mult
        elif win_rate < risk.low_win_rate:
            multiplier *= risk.low_win_rate_mult

        return multiplier

    def size_for_move(self, target_profit: float, volatility: float,
                      min_size: float, max_size: float) -> float:
        """Size at which the expected move yields target_profit, clamped."""
        return clamp(target_profit / safe_divisor(volatility), min_size, max_size)

    def expected_time_to_profit(self, target_profit: float, size: float,
                                volatility: float, avg_trade_minutes: float) -> float:
        """Estimate minutes until the position reaches target_profit.

        The asset is assumed to move `volatility` every `avg_trade_minutes`.
        The estimate is clamped since near-zero volatility blows it up.
        """
        risk = self.config.risk
        required_move = target_profit / safe_divisor(size)
        move_per_minute = safe_divisor(volatility) / safe_divisor(
            finite_or(avg_trade_minutes, risk.avg_trade_minutes), 1.0
        )
        minutes = finite_or(required_move / move_per_minute, risk.max_minutes)
        return clamp(minutes, risk.min_minutes, risk.max_minutes)

    def get_risk_level(self, volatility: float, current_drawdown: float, win_rate: float) -> RiskLevel:
        """Classify risk for display."""
        risk = self.config.risk
        if (current_drawdown > risk.drawdown_medium
                or volatility >= risk.high_volatility
                or win_rate < risk.low_win_rate):
            return RiskLevel.HIGH
        if (current_drawdown < risk.drawdown_light
                and volatility < risk.low_volatility
                and win_rate > 0.8):
            return RiskLevel.LOW
        return RiskLevel.MEDIUM

    def recommend(
        self,
        metrics: RiskMetrics,
        mode: SizingMode = SizingMode.SPOT,
        target_profit: Optional[float] = None,
        min_size: Optional[float] = None,
        max_size: Optional[float] = None,
    ) -> RiskAdjustedRecommendation:
        """Calculate a risk-adjusted position size.

        Args:
            metrics: Volatility, win rate, drawdown and trade duration
            mode: Spot or leverage, selects the default profit target
            target_profit: Profit target override
            min_size: Lower size bound override
            max_size: Upper size bound override

        Returns:
            RiskAdjustedRecommendation, never containing NaN or infinity
        """
        risk = self.config.risk
        default_target = risk.leverage_target_profit if mode == SizingMode.LEVERAGE else risk.target_profit
        target = finite_or(target_profit, default_target)
        if target <= 0:
            target = default_target
        lower = finite_or(min_size, risk.min_size)
        upper = max(lower, finite_or(max_size, risk.max_size))

        volatility = max(EPSILON, finite_or(metrics.recent_volatility, EPSILON))
        drawdown = max(0.0, finite_or(metrics.current_drawdown, 0.0))
        win_rate = clamp(finite_or(metrics.win_rate, 0.0), 0.0, 1.0)

        risk_multiplier = self.get_risk_multiplier(drawdown, win_rate)
        base_size = self.size_for_move(target, volatility, lower, upper)
        adjusted_size = clamp(target / volatility * risk_multiplier, lower, upper)

        expected_minutes = self.expected_time_to_profit(
            target, adjusted_size, volatility, metrics.avg_trade_minutes
        )
        volatility_multiplier = 0.8 if volatility > VOLATILITY_DISPLAY_PIVOT else 1.2

        return RiskAdjustedRecommendation(
            base_size=round2(base_size),
            adjusted_size=round2(adjusted_size),
            risk_multiplier=round(risk_multiplier, 2),
            volatility_multiplier=volatility_multiplier,
            expected_time_to_profit=round(expected_minutes, 1),
            risk_level=self.get_risk_level(volatility, drawdown, win_rate),
            target_profit=target,
            reasoning=self._reasoning(volatility, drawdown, win_rate, target),
        )

    def _reasoning(self, volatility: float, drawdown: float, win_rate: float, target: float) -> str:
        risk = self.config.risk
        reasons = []
        if volatility < risk.low_volatility:
            reasons.append(
                f"Low volatility ({volatility * 100:.2f}%) → larger position for faster ${target:.2f} target"
            )
        else:
            reasons.append(f"Current volatility {volatility * 100:.2f}% → optimal for quick fills")
        if drawdown > risk.drawdown_light:
            reasons.append(f"{drawdown * 100:.1f}% drawdown → reduced size for protection")
        if win_rate > 0.8:
            reasons.append(f"{win_rate * 100:.0f}% win rate → slight size increase")
        return ". ".join(reasons)
