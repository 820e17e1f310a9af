import decimal
from decimal import Decimal

import pytest

from storefront.money import apply_percent, line_total_cents, percent_of, round_quantity
from storefront.services.pricing_service import compute_margin_cents, reprice_cents, suggest_sell_price_cents


@pytest.mark.parametrize(
    "sell,purchase,expected",
    [
        (1000, 600, 400),
        (1000, None, None),
        (None, 600, None),
        (500, 700, -200),
    ],
)
def test_compute_margin(sell, purchase, expected):
    assert compute_margin_cents(sell, purchase) == expected


def test_suggested_price_rounds_half_up():
    assert suggest_sell_price_cents(1001, Decimal("50")) == 1502
    assert suggest_sell_price_cents(1000, "30") == 1300


def test_reprice_never_negative():
    assert reprice_cents(1000, Decimal("-100")) == 0
    assert reprice_cents(999, Decimal("10")) == 1099  # 1098.9


def test_money_helpers():
    assert apply_percent(10000, -10) == 9000
    assert percent_of(10000, Decimal("10")) == 1000
    assert line_total_cents(333, Decimal("1.5")) == 500  # 499.5
    assert round_quantity(Decimal("5") * Decimal("0.4")) == Decimal("2.00")
    assert round_quantity(Decimal("0.005")) == Decimal("0.01")


def test_importing_money_leaves_decimal_context_alone():
    import importlib

    from storefront import money

    with decimal.localcontext() as ctx:
        ctx.prec = 50
        importlib.reload(money)
        assert decimal.getcontext().prec == 50
    assert money.round_cents(Decimal("2.5")) == 3
