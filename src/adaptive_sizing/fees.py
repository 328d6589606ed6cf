"""Fee-aware profit model.

Every profit figure in the system comes from compute_profit_breakdown().
Long, short and leveraged panels call the same function with different
direction/leverage arguments.
"""

import logging
from typing import Dict, Optional

from .config import FeeSchedule
from .models import Direction, ProfitBreakdown, TargetSizing
from .numeric import EPSILON, finite_or, round2

logger = logging.getLogger(__name__)

# VIP tier fee tables (maker/taker ratios)
BINANCE_VIP_TIERS: Dict[str, Dict[str, float]] = {
    "standard": {"maker": 0.001, "taker": 0.001},
    "vip1": {"maker": 0.0009, "taker": 0.001},
    "vip2": {"maker": 0.0008, "taker": 0.001},
    "vip3": {"maker": 0.0007, "taker": 0.0009},
    "vip4": {"maker": 0.0006, "taker": 0.0008},
    "vip5": {"maker": 0.0005, "taker": 0.0007},
}

OKX_VIP_TIERS: Dict[str, Dict[str, float]] = {
    "standard": {"maker": 0.0008, "taker": 0.001},
    "vip1": {"maker": 0.0006, "taker": 0.0009},
    "vip2": {"maker": 0.0005, "taker": 0.0008},
    "vip3": {"maker": 0.00035, "taker": 0.0006},
}

BYBIT_VIP_TIERS: Dict[str, Dict[str, float]] = {
    "standard": {"maker": 0.001, "taker": 0.001},
    "vip1": {"maker": 0.0008, "taker": 0.001},
    "vip2": {"maker": 0.0006, "taker": 0.0009},
    "vip3": {"maker": 0.0004, "taker": 0.0007},
}

VIP_TIERS = {
    "binance": BINANCE_VIP_TIERS,
    "okx": OKX_VIP_TIERS,
    "bybit": BYBIT_VIP_TIERS,
}

DEFAULT_EXCHANGE_FEES: Dict[str, float] = {
    "binance": 0.001,
    "okx": 0.0008,
    "bybit": 0.001,
    "kraken": 0.0016,
    "nexo": 0.002,
    "kucoin": 0.001,
    "hyperliquid": 0.0002,
}

EXCHANGE_MIN_NOTIONAL: Dict[str, float] = {
    "binance": 5,
    "okx": 5,
    "bybit": 5,
    "kraken": 10,
    "nexo": 10,
    "kucoin": 5,
    "hyperliquid": 1,
}

BNB_DISCOUNT = 0.75  # 25% off with BNB fee payment


def compute_profit_breakdown(
    size: float,
    entry_price: float,
    expected_move: float,
    direction: Direction,
    fee_schedule: FeeSchedule,
    leverage: float = 1.0,
) -> ProfitBreakdown:
    """Expected profit of a position after round-trip fees.

    Args:
        size: Position notional (margin when leveraged)
        entry_price: Entry price
        expected_move: Favourable price move as a ratio (0.005 = 0.5%)
        direction: LONG exits above entry, SHORT below
        fee_schedule: Exchange fee rates
        leverage: Leverage factor, 1 for spot

    Returns:
        ProfitBreakdown. Taker fee is charged on entry and exit; funding is
        charged once on the leveraged notional when leverage > 1.
    """
    size = max(0.0, finite_or(size, 0.0))
    entry_price = max(0.0, finite_or(entry_price, 0.0))
    move = finite_or(expected_move, 0.0)
    leverage = max(1.0, finite_or(leverage, 1.0))

    sign = 1.0 if direction == Direction.LONG else -1.0
    exit_price = entry_price * (1.0 + sign * move)

    notional = size * leverage
    gross_profit = size * move * leverage
    fees = notional * fee_schedule.taker * 2
    if leverage > 1.0:
        fees += notional * fee_schedule.funding

    return ProfitBreakdown(
        exit_price=exit_price,
        gross_profit=gross_profit,
        fees=fees,
        net_profit=gross_profit - fees,
    )


def compare_directions(
    size: float,
    entry_price: float,
    expected_move: float,
    fee_schedule: FeeSchedule,
    leverage: float,
) -> Dict[str, ProfitBreakdown]:
    """Long, short and leveraged-long breakdowns for comparison panels."""
    return {
        "long": compute_profit_breakdown(size, entry_price, expected_move, Direction.LONG, fee_schedule),
        "short": compute_profit_breakdown(size, entry_price, expected_move, Direction.SHORT, fee_schedule),
        "leveraged": compute_profit_breakdown(
            size, entry_price, expected_move, Direction.LONG, fee_schedule, leverage
        ),
    }


def minimum_exit_price(
    entry_price: float,
    size: float,
    fee_schedule: FeeSchedule,
    target_profit: float = 1.0,
    direction: Direction = Direction.LONG,
) -> float:
    """Exit price needed to net target_profit after round-trip taker fees."""
    size = max(EPSILON, finite_or(size, EPSILON))
    required_gross = target_profit + size * fee_schedule.taker * 2
    change = required_gross / size
    if direction == Direction.LONG:
        return entry_price * (1 + change)
    return entry_price * (1 - change)


def position_for_target_profit(
    target_net_profit: float,
    fee_rate: float,
    min_edge_percent: float,
    portfolio_balance: float,
    max_allocation: float = 0.5,
    min_notional: float = 5.0,
) -> TargetSizing:
    """Position size needed to net a target profit at a given edge.

    size = target / (edge - 2 * fee_rate), capped at max_allocation of the
    portfolio and raised to the exchange minimum notional.

    Args:
        target_net_profit: Desired profit after fees
        fee_rate: Taker fee ratio
        min_edge_percent: Expected edge in percent (0.6 = 0.6%)
        portfolio_balance: Available balance
        max_allocation: Largest share of the balance per position
        min_notional: Exchange minimum order value
    """
    round_trip = fee_rate * 2
    edge = min_edge_percent / 100

    if edge <= round_trip:
        return _not_viable(
            f"Fee rate {round_trip * 100:.2f}% exceeds edge {min_edge_percent:.2f}%"
        )

    required = target_net_profit / (edge - round_trip)
    max_from_portfolio = portfolio_balance * max_allocation
    amount = min(required, max_from_portfolio)

    if amount < min_notional:
        if min_notional > max_from_portfolio:
            return _not_viable(
                f"Min notional ${min_notional} exceeds {max_allocation * 100:.0f}% "
                f"of portfolio (${max_from_portfolio:.2f})"
            )
        amount = min_notional

    if amount <= 0:
        return _not_viable(f"No position size available (${amount:.2f})")

    fee_impact = amount * round_trip
    net_at_target = amount * edge - fee_impact
    required_move = (target_net_profit + fee_impact) / amount * 100

    return TargetSizing(
        recommended_amount=round2(amount),
        take_profit_percent=required_move,
        is_viable=True,
        fee_impact=round2(fee_impact),
        net_profit_at_target=round2(net_at_target),
        required_move_percent=round(required_move, 3),
    )


def _not_viable(reason: str) -> TargetSizing:
    logger.debug(f"Target sizing not viable: {reason}")
    return TargetSizing(
        recommended_amount=0.0,
        take_profit_percent=0.0,
        is_viable=False,
        fee_impact=0.0,
        net_profit_at_target=0.0,
        required_move_percent=0.0,
        reason=reason,
    )


def vip_tier_fees(exchange: str, tier: str, bnb_discount: bool = False) -> Dict[str, float]:
    """Maker/taker fees for an exchange VIP tier.

    Unknown tiers fall back to standard; unknown exchanges to the default
    flat fee for both sides.
    """
    exchange = exchange.lower()
    tiers = VIP_TIERS.get(exchange)
    if tiers is None:
        fee = DEFAULT_EXCHANGE_FEES.get(exchange, 0.001)
        return {"maker": fee, "taker": fee}

    fees = dict(tiers.get(tier.lower(), tiers["standard"]))
    if exchange == "binance" and bnb_discount:
        fees = {side: rate * BNB_DISCOUNT for side, rate in fees.items()}
    return fees


def available_tiers(exchange: str) -> list[str]:
    """VIP tier names for an exchange."""
    tiers = VIP_TIERS.get(exchange.lower())
    return list(tiers) if tiers else ["standard"]


def fee_schedule_for(exchange: str, tier: str = "standard", bnb_discount: bool = False,
                     funding: Optional[float] = None) -> FeeSchedule:
    """Build a FeeSchedule from the exchange tier tables."""
    fees = vip_tier_fees(exchange, tier, bnb_discount)
    return FeeSchedule(
        maker=fees["maker"],
        taker=fees["taker"],
        funding=funding if funding is not None else FeeSchedule().funding,
    )
