"""
Reporting tests.

Verifies:
- The combined feed never shows a sale and its linked payment twice
- Top products ignore bookkeeping sales but count live reservations
- Category share, period grouping (Sunday weeks) and dashboard totals
- Calendar days and ticket times follow the shop's zone
"""

from datetime import date, datetime
from decimal import Decimal

import pytest

from storefront.extensions import db
from storefront.models import Payment, Sale, Expense
from storefront.models.sales import SALE_KIND_SALE, SALE_KIND_DEBT_PAYMENT
from storefront.services import debt_service, receipt_service, reporting_service, sales_service
from storefront.time_utils import day_bounds, utcnow
from storefront.validation import ValidationError

from conftest import cart_item


def _sale_at(at: datetime, total: int, kind: str = SALE_KIND_SALE) -> Sale:
    sale = Sale(
        kind=kind,
        subtotal_cents=total,
        total_cents=total,
        payment_method="Efectivo",
        receipt_ref=f"sale_{at:%Y%m%d%H%M%S%f}.pdf",
        created_at=at,
    )
    db.session.add(sale)
    db.session.commit()
    return sale


def _payment_at(at: datetime, amount: int, *, sale: Sale | None = None, sale_receipt_ref: str | None = None) -> Payment:
    payment = Payment(
        customer_id=1,
        customer_name="Ana",
        amount_paid_cents=amount,
        payment_method="Efectivo",
        sale_id=sale.id if sale else None,
        sale_receipt_ref=sale_receipt_ref,
        balance_before_cents=amount,
        balance_after_cents=0,
        receipt_ref=f"payment_{at:%Y%m%d%H%M%S%f}.pdf",
        created_at=at,
    )
    db.session.add(payment)
    db.session.commit()
    return payment


# =============================================================================
# COMBINED FEED
# =============================================================================


class TestCombinedFeed:

    def test_payment_with_bookkeeping_sale_appears_once(self, db_session, make_product):
        make_product("A1", stock=10, sell=4000)
        customer = debt_service.create_customer(name="Ana", national_id="1", items=[cart_item("A1", 4000, 5)])
        outcome = debt_service.record_payment(customer.id, 8000, "Efectivo")

        feed = reporting_service.combined_feed(None, None)

        assert len(feed) == 1
        assert feed[0]["source"] == "sale"
        assert feed[0]["id"] == outcome.sale.id
        assert feed[0]["kind"] == SALE_KIND_DEBT_PAYMENT

    def test_payment_without_sale_becomes_synthetic_record(self, db_session):
        customer = debt_service.create_customer(name="Ana", national_id="1", total_cents=5000)
        outcome = debt_service.record_payment(customer.id, 2000, "Debito")

        feed = reporting_service.combined_feed(None, None)

        assert len(feed) == 1
        record = feed[0]
        assert record["source"] == "payment"
        assert record["kind"] == SALE_KIND_DEBT_PAYMENT
        assert record["total_cents"] == 2000
        assert record["payment_method"] == "Debito"
        assert record["lines"][0]["code"] == f"payment_{outcome.payment.id}"
        assert record["lines"][0]["name"] == "payment/Ana"

    def test_dedup_by_receipt_ref_alone(self, db_session):
        at = datetime(2024, 6, 5, 12, 0)
        sale = _sale_at(at, 3000, kind=SALE_KIND_DEBT_PAYMENT)
        _payment_at(at, 3000, sale_receipt_ref=sale.receipt_ref)

        feed = reporting_service.combined_feed(None, None)

        assert [r["source"] for r in feed] == ["sale"]

    def test_ordering(self, db_session):
        first = _sale_at(datetime(2024, 6, 5, 9, 0), 100)
        _payment_at(datetime(2024, 6, 5, 10, 0), 200)
        last = _sale_at(datetime(2024, 6, 5, 11, 0), 300)

        newest_first = reporting_service.combined_feed(None, None)
        oldest_first = reporting_service.combined_feed(None, None, ascending=True)

        assert [r["total_cents"] for r in newest_first] == [300, 200, 100]
        assert [r["total_cents"] for r in oldest_first] == [100, 200, 300]
        assert newest_first[0]["id"] == last.id
        assert oldest_first[0]["id"] == first.id

    def test_day_feed_is_limited_to_the_day(self, db_session):
        _sale_at(datetime(2024, 6, 4, 23, 59, 59), 100)
        _sale_at(datetime(2024, 6, 5, 0, 0), 200)
        _sale_at(datetime(2024, 6, 5, 23, 59, 59), 300)
        _sale_at(datetime(2024, 6, 6, 0, 0), 400)

        feed = reporting_service.day_feed(date(2024, 6, 5))

        assert [r["total_cents"] for r in feed] == [300, 200]


# =============================================================================
# TOP PRODUCTS / CATEGORY SHARE
# =============================================================================


class TestTopProducts:

    def test_excludes_settlements_and_adds_reservations(self, db_session, make_product):
        for code in ("A1", "B1", "C1"):
            make_product(code, stock=10, sell=1000)
        sales_service.record_sale([cart_item("A1", 1000, 3), cart_item("B1", 1000, 1)], payment_method="Efectivo")
        customer = debt_service.create_customer(name="Ana", national_id="1", items=[cart_item("C1", 1000, 2)])
        debt_service.record_payment(customer.id, 1000, "Efectivo")  # settles 1 of 2

        top = reporting_service.top_products("dia", 10)

        assert top == [
            {"name": "Product A1", "quantity": 3.0},
            {"name": "Product B1", "quantity": 1.0},
            {"name": "Product C1", "quantity": 1.0},
        ]

    def test_limit(self, db_session, make_product):
        for code in ("A1", "B1"):
            make_product(code, stock=10, sell=1000)
        sales_service.record_sale([cart_item("A1", 1000, 1), cart_item("B1", 1000, 2)], payment_method="Efectivo")

        assert reporting_service.top_products("mes", 1) == [{"name": "Product B1", "quantity": 2.0}]

    def test_invalid_grouping(self, db_session):
        with pytest.raises(ValidationError):
            reporting_service.top_products("anio", 10)

    def test_week_window_starts_on_sunday(self, app):
        start, end = reporting_service.bucket_window("semana", datetime(2024, 6, 5, 15, 0))
        assert start == datetime(2024, 6, 2, 0, 0)
        assert end.date() == date(2024, 6, 5)


class TestCategoryShare:

    def test_percentages_round_to_whole_numbers(self, db_session, make_line, make_product):
        drinks = make_line("Bebidas")
        snacks = make_line("Snacks")
        make_product("A1", stock=10, sell=1000, line=drinks)
        make_product("B1", stock=10, sell=1000, line=snacks)
        sales_service.record_sale([cart_item("A1", 1000, 2), cart_item("B1", 1000, 1)], payment_method="Efectivo")

        share = reporting_service.category_share(None, None)

        assert share == [
            {"category": "Bebidas", "revenue_cents": 2000, "percent": 67},
            {"category": "Snacks", "revenue_cents": 1000, "percent": 33},
        ]

    def test_synthetic_payment_lines_are_ignored(self, db_session):
        _payment_at(datetime(2024, 6, 5, 10, 0), 5000)
        assert reporting_service.category_share(None, None) == []


# =============================================================================
# PERIODS / DASHBOARD
# =============================================================================


class TestPeriodTotals:

    @pytest.fixture
    def june(self, db_session):
        _sale_at(datetime(2024, 6, 2, 10, 0), 1000)   # Sunday
        _sale_at(datetime(2024, 6, 5, 10, 0), 2000)   # Wednesday, same week
        _sale_at(datetime(2024, 6, 9, 10, 0), 500)    # next Sunday
        db.session.add(Expense(occurred_at=datetime(2024, 6, 6, 9, 0), amount_cents=300))
        db.session.commit()

    def test_weeks_start_on_sunday(self, june):
        rows = reporting_service.period_totals(None, None, "semana")

        assert [r["period"] for r in rows] == ["2024-06-02", "2024-06-09"]
        assert rows[0]["revenue_cents"] == 3000
        assert rows[0]["sales_count"] == 2
        assert rows[0]["expenses_cents"] == 300
        assert rows[0]["net_cents"] == 2700
        assert rows[1]["revenue_cents"] == 500

    def test_month(self, june):
        rows = reporting_service.period_totals(None, None, "mes")
        assert rows == [{
            "period": "2024-06",
            "revenue_cents": 3500,
            "sales_count": 3,
            "expenses_cents": 300,
            "net_cents": 3200,
        }]

    def test_day(self, june):
        rows = reporting_service.period_totals(None, None, "dia")
        assert [r["period"] for r in rows] == ["2024-06-02", "2024-06-05", "2024-06-06", "2024-06-09"]


class TestDashboard:

    def test_summary(self, db_session, make_product):
        make_product("A1", stock=10, sell=5000)
        make_product("Z9", stock=1, sell=100)
        sales_service.record_sale([cart_item("A1", 5000, 2)], payment_method="Efectivo", discount_percent=Decimal("10"))
        customer = debt_service.create_customer(name="Ana", national_id="1", items=[cart_item("A1", 5000, 1)])
        debt_service.record_payment(customer.id, 2000, "Efectivo")
        db.session.add(Expense(occurred_at=utcnow(), amount_cents=1000))
        db.session.commit()

        summary = reporting_service.dashboard_summary()

        assert summary["sales_count"] == 1
        assert summary["sales_total_cents"] == 9000
        assert summary["payments_count"] == 1
        assert summary["payments_total_cents"] == 2000
        assert summary["expenses_total_cents"] == 1000
        assert summary["outstanding_debt_cents"] == 3000
        assert summary["customers_in_debt"] == 1
        assert summary["low_stock_count"] == 1  # Z9 (A1 has 7 left)
        assert summary["profit_cents"] == 9000 + 2000 - 1000

    def test_settlement_posted_without_payment_counts_once(self, db_session):
        sales_service.record_sale(
            [cart_item("A1", 5000, 1, name="Campera")],
            payment_method="Efectivo",
            is_debt_settlement=True,
            total_override_cents=5000,
        )

        summary = reporting_service.dashboard_summary()
        revenue = sum(r["revenue_cents"] for r in reporting_service.period_totals(None, None, "dia"))

        assert summary["sales_count"] == 1
        assert summary["sales_total_cents"] + summary["payments_total_cents"] == 5000
        assert revenue == 5000

    def test_settlement_linked_to_payment_is_not_double_counted(self, db_session, make_product):
        make_product("A1", stock=10, sell=4000)
        customer = debt_service.create_customer(name="Ana", national_id="1", items=[cart_item("A1", 4000, 5)])
        debt_service.record_payment(customer.id, 8000, "Efectivo")
        sale = _sale_at(datetime(2024, 6, 5, 12, 0), 3000, kind=SALE_KIND_DEBT_PAYMENT)
        _payment_at(datetime(2024, 6, 5, 12, 0), 3000, sale_receipt_ref=sale.receipt_ref)

        summary = reporting_service.dashboard_summary()

        assert summary["sales_count"] == 0
        assert summary["payments_count"] == 2
        assert summary["sales_total_cents"] + summary["payments_total_cents"] == 8000 + 3000


# =============================================================================
# SHOP-LOCAL CALENDAR
# =============================================================================


class TestStoreTimezone:
    """Calendar days follow the shop's zone; storage stays UTC."""

    @pytest.fixture
    def buenos_aires(self, app, db_session, monkeypatch):
        monkeypatch.setitem(app.config, "STORE_TIMEZONE", "America/Argentina/Buenos_Aires")

    def test_day_bounds_are_local_midnights(self, buenos_aires):
        start, end = day_bounds(date(2026, 6, 10))

        assert start == datetime(2026, 6, 10, 3, 0)
        assert end == datetime(2026, 6, 11, 2, 59, 59, 999999)

    def test_late_evening_sale_belongs_to_the_local_day(self, db_session, buenos_aires):
        # 2026-06-11 01:30 UTC is 2026-06-10 22:30 in Buenos Aires
        _sale_at(datetime(2026, 6, 11, 1, 30), 700)
        _sale_at(datetime(2026, 6, 11, 3, 0), 900)

        feed = reporting_service.day_feed(date(2026, 6, 10))

        assert [r["total_cents"] for r in feed] == [700]
        assert reporting_service.period_key(datetime(2026, 6, 11, 1, 30), "dia") == "2026-06-10"

    def test_ticket_prints_local_time(self, db_session, buenos_aires):
        sale = _sale_at(datetime(2026, 6, 11, 1, 30), 700)

        ticket = receipt_service.build_sale_ticket(sale)

        assert ("center", "10/06/2026 22:30", "") in ticket.rows

    def test_top_products_window_uses_local_today(self, buenos_aires):
        start, end = reporting_service.bucket_window("dia", now=datetime(2026, 6, 11, 1, 30))

        assert (start, end) == day_bounds(date(2026, 6, 10))
