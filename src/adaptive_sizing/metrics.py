"""Risk metrics and regime signals derived from trade and price history.

These feed the sizers with inputs the execution layer does not report
directly: win rate, average trade duration, drawdown from the cumulative
P&L peak, realized volatility and trend deviation.
"""

import logging
from typing import Optional, Sequence

import numpy as np
import pandas as pd

from .models import ClosedTrade, RegimeLabel, RegimeSignal, RiskMetrics

logger = logging.getLogger(__name__)

DEFAULT_TRADE_MINUTES = 5.0
BULL_DEVIATION = 0.005
BEAR_DEVIATION = -0.005


def compute_risk_metrics(
    trades: Sequence[ClosedTrade],
    recent_volatility: Optional[float] = None,
    lookback: int = 50,
) -> RiskMetrics:
    """Derive risk metrics from closed trades.

    Args:
        trades: Closed trades, any order
        recent_volatility: Volatility to carry into the metrics, if known
        lookback: Number of most recent trades to use

    Returns:
        RiskMetrics; defaults when there is no usable history
    """
    defaults = RiskMetrics()
    volatility = recent_volatility if recent_volatility is not None else defaults.recent_volatility

    df = pd.DataFrame(
        [
            {"profit_loss": t.profit_loss, "opened_at": t.opened_at, "closed_at": t.closed_at}
            for t in trades
        ],
        columns=["profit_loss", "opened_at", "closed_at"],
    )
    df["profit_loss"] = pd.to_numeric(df["profit_loss"], errors="coerce")
    df = df.dropna(subset=["profit_loss"])
    if df.empty:
        return RiskMetrics(
            current_drawdown=defaults.current_drawdown,
            win_rate=defaults.win_rate,
            recent_volatility=volatility,
            avg_trade_minutes=defaults.avg_trade_minutes,
        )

    df = df.sort_values("opened_at").tail(lookback)

    win_rate = float((df["profit_loss"] > 0).mean())

    closed = df.dropna(subset=["closed_at"])
    if closed.empty:
        avg_minutes = DEFAULT_TRADE_MINUTES
    else:
        durations = (
            pd.to_datetime(closed["closed_at"]) - pd.to_datetime(closed["opened_at"])
        ).dt.total_seconds() / 60
        avg_minutes = max(1.0, float(durations.mean()))

    cumulative = df["profit_loss"].cumsum()
    peak = max(float(cumulative.max()), 0.0)
    current = float(cumulative.iloc[-1])
    drawdown = (peak - current) / peak if peak > 0 else 0.0

    return RiskMetrics(
        current_drawdown=max(0.0, drawdown),
        win_rate=win_rate,
        recent_volatility=volatility,
        avg_trade_minutes=avg_minutes,
    )


def realized_volatility(prices: Sequence[float], window: Optional[int] = None) -> float:
    """Mean absolute bar-to-bar return of a price series.

    Args:
        prices: Close prices, oldest first
        window: Only use the last `window` returns

    Returns:
        Volatility as a ratio (0.005 = 0.5% typical move); 0.0 when there
        are fewer than two valid prices
    """
    series = pd.Series(prices, dtype="float64").replace([np.inf, -np.inf], np.nan)
    series = series[series > 0].dropna()
    if len(series) < 2:
        return 0.0

    returns = series.pct_change().dropna().abs()
    if window:
        returns = returns.tail(window)
    return float(returns.mean())


def trend_deviation(closes: Sequence[float], ema_period: int = 200) -> float:
    """Signed deviation of the last close from its EMA, as a ratio."""
    series = pd.Series(closes, dtype="float64").dropna()
    if series.empty:
        return 0.0
    ema = series.ewm(span=ema_period, adjust=False).mean().iloc[-1]
    if not np.isfinite(ema) or ema <= 0:
        return 0.0
    return float((series.iloc[-1] - ema) / ema)


def regime_signal(
    closes: Sequence[float],
    ema_period: int = 200,
    bull_deviation: float = BULL_DEVIATION,
    bear_deviation: float = BEAR_DEVIATION,
) -> Optional[RegimeSignal]:
    """Classify the regime from price vs its EMA trend line.

    Returns:
        RegimeSignal, or None when there is no price history
    """
    if len(closes) == 0:
        return None
    deviation = trend_deviation(closes, ema_period)
    if deviation >= bull_deviation:
        label = RegimeLabel.BULL
    elif deviation <= bear_deviation:
        label = RegimeLabel.BEAR
    else:
        label = RegimeLabel.CHOP
    logger.debug(f"Regime {label.value} at {deviation * 100:.3f}% deviation from EMA{ema_period}")
    return RegimeSignal(label=label, deviation=deviation)
