# Overview: Price derivations: margin, markup-suggested sell price, percentage repricing.

from __future__ import annotations

from decimal import Decimal

from ..money import apply_percent


def compute_margin_cents(sell_price_cents: int | None, purchase_price_cents: int | None) -> int | None:
    """margin = sell - purchase; unknown when either price is missing."""
    if sell_price_cents is None or purchase_price_cents is None:
        return None
    return sell_price_cents - purchase_price_cents


def suggest_sell_price_cents(purchase_price_cents: int, markup_percent: Decimal | int | str) -> int:
    """Sell price derived from a purchase price and a line markup (half-up to the cent)."""
    return apply_percent(purchase_price_cents, markup_percent)


def reprice_cents(sell_price_cents: int, percent: Decimal | int | str) -> int:
    """New sell price after a percentage change; never below zero."""
    return max(apply_percent(sell_price_cents, percent), 0)
