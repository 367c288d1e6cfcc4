"""Rounding helpers shared by every calculation path.

All derived quantities go through these functions so that a value computed
from an amount edit and the same value computed from a meters or time edit
agree exactly.
"""

from __future__ import annotations

import math
from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal, localcontext

EPSILON = 1e-9
REPORT_DECIMALS = 2


def _quantize(value: float, decimals: int, rounding: str) -> float:
    value = float(value)
    if not math.isfinite(value):
        return value
    # repr() gives the shortest string that round-trips, so 2.675 stays 2.675
    # instead of 2.67499999... from the binary representation.
    number = Decimal(repr(value))
    exponent = Decimal(1).scaleb(-decimals)
    with localcontext() as context:
        # Enough digits for the integer part plus the requested places.
        context.prec = max(context.prec, number.adjusted() + decimals + 2)
        return float(number.quantize(exponent, rounding=rounding))


def round_half_up(value: float, decimals: int = REPORT_DECIMALS) -> float:
    """Round half away from zero to ``decimals`` places."""

    return _quantize(value, decimals, ROUND_HALF_UP)


def floor_down(value: float, decimals: int = 0) -> float:
    """Truncate toward zero to ``decimals`` places."""

    return _quantize(value, decimals, ROUND_DOWN)


def is_zero(value: float, epsilon: float = EPSILON) -> bool:
    return abs(value) < epsilon


def safe_divide(numerator: float, denominator: float) -> float:
    """Divide, yielding 0.0 when the denominator is zero."""

    if is_zero(denominator):
        return 0.0
    return numerator / denominator


__all__ = [
    "EPSILON",
    "REPORT_DECIMALS",
    "round_half_up",
    "floor_down",
    "is_zero",
    "safe_divide",
]
