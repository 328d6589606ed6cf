#!/usr/bin/env python3
"""Adaptive Sizing - replay entry point.

Replays a closed-trade log through the sizing engine and prints the
recommended size for the next trade.

Usage:
    python main.py trades.csv
    python main.py trades.csv --prices closes.csv --user alice --mode leverage

The trade log needs a `profit` column; `is_win`, `trade_id`, `opened_at`
and `closed_at` are optional. The price file needs a `close` column.
"""

import argparse
import logging
import sys

import pandas as pd
from dotenv import load_dotenv

load_dotenv(override=True)

from adaptive_sizing import (
    ClosedTrade,
    ConfigManager,
    ConfigValidationError,
    Direction,
    ProfitParams,
    SizingEngine,
    SizingMode,
    TradeOutcome,
)
from adaptive_sizing.metrics import compute_risk_metrics, realized_volatility, regime_signal
from adaptive_sizing.persistence import ConfigStore

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s | %(levelname)-8s | %(name)-32s | %(message)s',
    datefmt='%H:%M:%S',
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)


def load_trades(path: str) -> pd.DataFrame:
    """Load a trade log from CSV or JSON."""
    if path.endswith(".json"):
        df = pd.read_json(path)
    else:
        df = pd.read_csv(path)
    if "profit" not in df.columns:
        raise ValueError(f"{path} has no 'profit' column")
    for column in ("opened_at", "closed_at"):
        if column in df.columns:
            df[column] = pd.to_datetime(df[column])
    return df


def to_outcomes(df: pd.DataFrame) -> list[TradeOutcome]:
    outcomes = []
    for row in df.itertuples(index=False):
        profit = float(row.profit)
        is_win = bool(getattr(row, "is_win", profit > 0))
        trade_id = getattr(row, "trade_id", None)
        closed_at = getattr(row, "closed_at", None)
        outcomes.append(TradeOutcome(
            profit=profit,
            is_win=is_win,
            trade_id=str(trade_id) if trade_id is not None and not pd.isna(trade_id) else None,
            closed_at=closed_at.to_pydatetime() if closed_at is not None and not pd.isna(closed_at) else None,
        ))
    return outcomes


def to_closed_trades(df: pd.DataFrame) -> list[ClosedTrade]:
    if "opened_at" not in df.columns:
        return []
    return [
        ClosedTrade(
            profit_loss=float(row.profit),
            opened_at=row.opened_at.to_pydatetime(),
            closed_at=row.closed_at.to_pydatetime() if "closed_at" in df.columns and not pd.isna(row.closed_at) else None,
        )
        for row in df.itertuples(index=False)
    ]


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Adaptive Sizing - trade log replay")
    parser.add_argument("trades", help="CSV or JSON trade log")
    parser.add_argument("--prices", help="CSV with a 'close' column for regime and volatility")
    parser.add_argument("--config", help="Sizing JSON config (default config/sizing.json)")
    parser.add_argument("--user", help="Load/save configuration for this user id")
    parser.add_argument("--mode", choices=[m.value for m in SizingMode], default=SizingMode.SPOT.value)
    parser.add_argument("--entry-price", type=float, help="Show a fee breakdown at this entry price")
    parser.add_argument("--leverage", type=float, default=1.0)
    args = parser.parse_args(argv)

    try:
        config = ConfigManager(config_path=args.config).load()
    except ConfigValidationError as e:
        logger.error(f"❌ Configuration error: {e}")
        return 1

    store = ConfigStore(ConfigManager.db_path()) if args.user else None
    engine = SizingEngine(config=config, store=store, user_id=args.user)
    if args.user:
        try:
            engine.load_config(args.user)
        except ConfigValidationError as e:
            logger.error(f"❌ Stored configuration for {args.user} is invalid: {e}")
            return 1

    try:
        trades = load_trades(args.trades)
    except (OSError, ValueError) as e:
        logger.error(f"❌ Cannot read trade log: {e}")
        return 1

    for outcome in to_outcomes(trades):
        engine.on_trade_closed(outcome)

    volatility = None
    if args.prices:
        closes = pd.read_csv(args.prices)["close"].tolist()
        engine.on_regime_signal(regime_signal(closes))
        volatility = realized_volatility(closes, window=60)

    rec = engine.get_recommended_size()
    streak = engine.streak
    logger.info("=" * 60)
    logger.info(f"Trades replayed: {len(trades)}")
    logger.info(f"Streak: {streak.consecutive_wins}W / {streak.consecutive_losses}L "
                f"({rec.recent_performance.value}) → {rec.streak_multiplier:.2f}x")
    logger.info(f"Regime: {rec.regime_multiplier:.3f}x at {rec.regime_confidence * 100:.0f}% confidence")
    logger.info(f"Recommended size: ${rec.final_size:.2f} ({rec.multiplier:.2f}x of ${rec.base_size:.2f})")
    logger.info(f"Reason: {rec.reason}")

    metrics = compute_risk_metrics(to_closed_trades(trades), recent_volatility=volatility)
    risk = engine.get_risk_adjusted_size(metrics, mode=SizingMode(args.mode))
    logger.info(f"Risk-adjusted size: ${risk.adjusted_size:.2f} ({risk.risk_level.value} risk, "
                f"~{risk.expected_time_to_profit:.1f} min to ${risk.target_profit:.2f})")

    if args.entry_price:
        for direction in Direction:
            breakdown = engine.compute_profit_breakdown(ProfitParams(
                size=rec.final_size,
                entry_price=args.entry_price,
                expected_move=metrics.recent_volatility,
                direction=direction,
                leverage=args.leverage,
            ))
            logger.info(f"{direction.value:>5}: exit {breakdown.exit_price:.4f} | "
                        f"gross ${breakdown.gross_profit:.4f} | fees ${breakdown.fees:.4f} | "
                        f"net ${breakdown.net_profit:.4f}")

    if args.user and store is not None:
        store.save_compound_state(args.user, engine.compound)

    return 0


if __name__ == "__main__":
    sys.exit(main())
