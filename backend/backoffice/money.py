"""
Money arithmetic on integer minor units.

Amounts are always integer cents. Rates are basis points (1100 = 11%).
Percentages are computed with Decimal and rounded half-up so an exact
ratio like 1318000 / 2000000 reports 65.9, not 65.89999.
"""

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP

_CENT = Decimal("1")
_HUNDREDTH = Decimal("0.01")


def apply_rate_bps(amount_cents: int, rate_bps: int) -> int:
    """amount * rate, rounded half-up to a whole cent."""
    if not amount_cents or not rate_bps:
        return 0
    value = Decimal(amount_cents) * Decimal(rate_bps) / Decimal(10_000)
    return int(value.quantize(_CENT, rounding=ROUND_HALF_UP))


def percentage(part: int, whole: int) -> float:
    """part / whole * 100 to two places; a zero (or negative) whole yields 0.0."""
    if not whole or whole <= 0:
        return 0.0
    value = Decimal(part) * Decimal(100) / Decimal(whole)
    return float(value.quantize(_HUNDREDTH, rounding=ROUND_HALF_UP))

