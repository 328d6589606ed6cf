"""Numeric guards shared by every sizing component.

Inputs arrive from price feeds and trade telemetry and are treated as
untrusted. Nothing here raises: non-finite values are replaced with a
caller-supplied default and divisions are floored at EPSILON.
"""

import math
from typing import Any

# Floor applied to any divisor that may be reported as zero (volatility, price).
EPSILON: float = 1e-6


def finite_or(value: Any, default: float) -> float:
    """Return value as a float, or default if it is None, NaN or infinite."""
    if value is None or isinstance(value, bool):
        return default
    try:
        result = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(result):
        return default
    return result


def safe_divisor(value: Any, floor: float = EPSILON) -> float:
    """Return max(floor, value), treating non-finite values as the floor."""
    return max(floor, finite_or(value, floor))


def clamp(value: float, lower: float, upper: float) -> float:
    """Clamp value into [lower, upper]."""
    return max(lower, min(upper, value))


def round2(value: float) -> float:
    """Round a money amount to cents."""
    return round(value, 2)
