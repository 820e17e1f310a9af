"""
Money and quantity rounding.

All monetary amounts are integer cents. Quantities are Decimals with two
places (prorated settlements produce fractional quantities). Rounding is
always ROUND_HALF_UP.
"""
from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation

CENT = Decimal("1")
HUNDREDTH = Decimal("0.01")


def to_decimal(value) -> Decimal:
    """Convert int/float/str/Decimal to Decimal via str() to avoid binary-float surprises."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError(f"Cannot convert {value!r} to Decimal")
    try:
        return Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValueError(f"Cannot convert {value!r} to Decimal")


def round_cents(value) -> int:
    """Round a cent amount (possibly fractional) to a whole cent."""
    return int(to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP))


def round_quantity(value) -> Decimal:
    """Round a quantity to 0.01."""
    return to_decimal(value).quantize(HUNDREDTH, rounding=ROUND_HALF_UP)


def line_total_cents(unit_price_cents: int, quantity) -> int:
    return round_cents(Decimal(unit_price_cents) * to_decimal(quantity))


def apply_percent(amount_cents: int, percent) -> int:
    """amount × (1 + percent/100), rounded to the cent."""
    factor = Decimal(1) + to_decimal(percent) / Decimal(100)
    return round_cents(Decimal(amount_cents) * factor)


def percent_of(amount_cents: int, percent) -> int:
    """amount × percent/100, rounded to the cent."""
    return round_cents(Decimal(amount_cents) * to_decimal(percent) / Decimal(100))
