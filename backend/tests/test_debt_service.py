"""
Debt ledger tests.

Verifies:
- Assigning debt reserves stock without recognizing revenue
- Payments prorate reserved items, shrink them, and move CLEAR/IN_DEBT
- Invalid amounts are rejected without side effects
"""

import json
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from storefront.extensions import db
from storefront.models import Customer, Payment, Sale
from storefront.models.customers import DEBT_STATUS_CLEAR, DEBT_STATUS_IN_DEBT
from storefront.models.sales import SALE_KIND_DEBT_PAYMENT, RECEIPT_RENDERED
from storefront.services import debt_service, ledger_service, sales_service
from storefront.services.concurrency import ConcurrentModificationError, run_with_retry
from storefront.services.debt_service import CustomerNotFoundError, InvalidPaymentAmountError
from storefront.services.inventory_service import InsufficientStockError
from storefront.validation import ConflictError, ValidationError

from conftest import cart_item, stock_of


def _customer_with_debt(make_product, *, unit=4000, quantity=5, stock=10):
    make_product("A1", stock=stock, sell=unit, name="Campera")
    return debt_service.create_customer(
        name="Ana",
        national_id="12345678",
        items=[cart_item("A1", unit, quantity)],
    )


# =============================================================================
# ASSIGN DEBT
# =============================================================================


class TestAssignDebt:

    def test_new_customer_opens_with_debt(self, db_session, make_product):
        make_product("A1", stock=10, sell=3000)

        customer = debt_service.create_customer(
            name="Ana",
            national_id="12345678",
            items=[cart_item("A1", 3000, 2)],
            total_cents=6000,
        )

        assert customer.outstanding_balance_cents == 6000
        assert customer.debt_status == DEBT_STATUS_IN_DEBT
        assert [i.code for i in customer.reserved_items] == ["A1"]
        assert db.session.query(Sale).count() == 0
        assert db.session.query(Payment).count() == 0
        assert stock_of("A1") == 8

    def test_new_customer_without_debt_is_clear(self, db_session):
        customer = debt_service.create_customer(name="Beto", national_id="999")
        assert customer.outstanding_balance_cents == 0
        assert customer.debt_status == DEBT_STATUS_CLEAR

    def test_duplicate_national_id(self, db_session):
        debt_service.create_customer(name="Ana", national_id="12345678")
        with pytest.raises(ConflictError):
            debt_service.create_customer(name="Otra", national_id="12345678")

    def test_more_debt_appends_items_and_balance(self, db_session, make_product):
        customer = _customer_with_debt(make_product, quantity=1)
        make_product("B1", stock=4, sell=1500)

        customer = debt_service.assign_debt(customer.id, items=[cart_item("B1", 1500, 2)])

        assert customer.outstanding_balance_cents == 4000 + 3000
        assert [(i.code, i.position) for i in customer.reserved_items] == [("A1", 1), ("B1", 2)]
        assert stock_of("B1") == 2

    def test_total_without_items(self, db_session):
        customer = debt_service.create_customer(name="Ana", national_id="1")
        customer = debt_service.assign_debt(customer.id, items=[], total_cents=2500)
        assert customer.outstanding_balance_cents == 2500
        assert customer.debt_status == DEBT_STATUS_IN_DEBT

    def test_insufficient_stock_leaves_customer_unchanged(self, db_session, make_product):
        customer = _customer_with_debt(make_product, quantity=1, stock=1)
        customer_id = customer.id

        with pytest.raises(InsufficientStockError):
            debt_service.assign_debt(customer_id, items=[cart_item("A1", 4000, 1)])

        customer = db.session.get(Customer, customer_id)
        assert customer.outstanding_balance_cents == 4000
        assert len(customer.reserved_items) == 1

    def test_nothing_to_assign(self, db_session):
        customer = debt_service.create_customer(name="Ana", national_id="1")
        with pytest.raises(ValidationError):
            debt_service.assign_debt(customer.id, items=[], total_cents=None)

    def test_unknown_customer(self, db_session):
        with pytest.raises(CustomerNotFoundError):
            debt_service.assign_debt(404, items=[], total_cents=100)


# =============================================================================
# PAYMENTS
# =============================================================================


class TestRecordPayment:

    def test_partial_payment_scenario(self, db_session, make_product):
        customer = _customer_with_debt(make_product)  # 5 x 4000 = 20000
        assert customer.outstanding_balance_cents == 20000

        outcome = debt_service.record_payment(customer.id, 8000, "Efectivo")

        payment = outcome.payment
        assert payment.balance_before_cents == 20000
        assert payment.balance_after_cents == 12000
        assert outcome.warnings == []

        sale = outcome.sale
        assert sale.kind == SALE_KIND_DEBT_PAYMENT
        assert sale.total_cents == 8000
        assert sale.lines[0].quantity == Decimal("2.00")
        assert payment.sale_id == sale.id
        assert payment.sale_receipt_ref == sale.receipt_ref

        customer = db.session.get(Customer, customer.id)
        assert customer.outstanding_balance_cents == 12000
        assert customer.debt_status == DEBT_STATUS_IN_DEBT
        assert customer.reserved_items[0].quantity == Decimal("3.00")

    def test_settlement_does_not_touch_stock(self, db_session, make_product):
        customer = _customer_with_debt(make_product)
        assert stock_of("A1") == 5

        debt_service.record_payment(customer.id, 8000, "Efectivo")

        assert stock_of("A1") == 5

    def test_second_partial_payment_prorates_the_remainder(self, db_session, make_product):
        customer = _customer_with_debt(make_product)
        debt_service.record_payment(customer.id, 8000, "Efectivo")

        outcome = debt_service.record_payment(customer.id, 6000, "Tarjeta")

        # 3 reserved * (6000 / 12000)
        assert outcome.sale.lines[0].quantity == Decimal("1.50")
        customer = db.session.get(Customer, customer.id)
        assert customer.outstanding_balance_cents == 6000
        assert customer.reserved_items[0].quantity == Decimal("1.50")

    def test_full_payment_clears(self, db_session, make_product):
        customer = _customer_with_debt(make_product)

        outcome = debt_service.record_payment(customer.id, 20000, "Efectivo")

        assert outcome.payment.balance_after_cents == 0
        assert outcome.sale.lines[0].quantity == Decimal("5.00")
        customer = db.session.get(Customer, customer.id)
        assert customer.outstanding_balance_cents == 0
        assert customer.debt_status == DEBT_STATUS_CLEAR
        assert customer.reserved_items == []

    @pytest.mark.parametrize("amount", [0, -100, 20001])
    def test_rejects_out_of_range_amounts(self, db_session, make_product, amount):
        customer = _customer_with_debt(make_product)

        with pytest.raises(InvalidPaymentAmountError):
            debt_service.record_payment(customer.id, amount, "Efectivo")

        assert db.session.query(Payment).count() == 0
        assert db.session.get(Customer, customer.id).outstanding_balance_cents == 20000

    def test_payment_against_clear_customer(self, db_session):
        customer = debt_service.create_customer(name="Ana", national_id="1")
        with pytest.raises(InvalidPaymentAmountError):
            debt_service.record_payment(customer.id, 100, "Efectivo")

    def test_missing_bookkeeping_sale_is_a_warning(self, db_session):
        """A debt with no reserved items still accepts payments."""
        customer = debt_service.create_customer(name="Ana", national_id="1", total_cents=5000)

        outcome = debt_service.record_payment(customer.id, 2000, "Efectivo")

        assert outcome.sale is None
        assert len(outcome.warnings) == 1
        assert outcome.payment.sale_id is None
        assert outcome.payment.balance_after_cents == 3000

    def test_storage_failure_of_bookkeeping_sale_is_a_warning(self, db_session, make_product, monkeypatch):
        customer = _customer_with_debt(make_product)

        def _failing_build_sale(items, **kwargs):
            sales_service.build_sale(items, **kwargs)
            raise OperationalError("INSERT INTO sales", {}, Exception("disk I/O error"))

        monkeypatch.setattr(debt_service, "build_sale", _failing_build_sale)

        outcome = debt_service.record_payment(customer.id, 8000, "Efectivo")

        assert outcome.sale is None
        assert len(outcome.warnings) == 1
        assert "disk I/O error" in outcome.warnings[0]
        assert outcome.payment.sale_id is None
        assert outcome.payment.balance_after_cents == 12000

        # The staged sale was rolled back with its savepoint
        assert db.session.query(Sale).count() == 0
        assert db.session.query(Payment).count() == 1
        customer = db.session.get(Customer, customer.id)
        assert customer.outstanding_balance_cents == 12000
        assert customer.reserved_items[0].quantity == Decimal("3.00")

    def test_receipts_are_rendered(self, db_session, make_product):
        customer = _customer_with_debt(make_product)
        outcome = debt_service.record_payment(customer.id, 8000, "Efectivo")

        assert outcome.payment.receipt_status == RECEIPT_RENDERED
        assert outcome.payment.receipt_ref.startswith("payment_")
        assert outcome.sale.receipt_status == RECEIPT_RENDERED

    def test_list_payments_by_customer(self, db_session, make_product):
        customer = _customer_with_debt(make_product)
        debt_service.record_payment(customer.id, 1000, "Efectivo")
        debt_service.record_payment(customer.id, 2000, "Efectivo")

        payments = debt_service.list_payments(customer_id=customer.id)

        assert [p.amount_paid_cents for p in payments] == [2000, 1000]


class TestConcurrency:

    def test_stale_customer_write_surfaces_as_conflict(self, db_session):
        calls = []

        def always_stale():
            calls.append(1)
            raise StaleDataError("version mismatch")

        with pytest.raises(ConcurrentModificationError):
            run_with_retry(always_stale, attempts=2, backoff_base=0)

        assert len(calls) == 2

    def test_retry_succeeds_after_transient_conflict(self, db_session):
        calls = []

        def flaky():
            calls.append(1)
            if len(calls) == 1:
                raise ConcurrentModificationError()
            return "ok"

        assert run_with_retry(flaky, backoff_base=0) == "ok"

    def test_version_increments_on_every_change(self, db_session, make_product):
        customer = _customer_with_debt(make_product)
        version = customer.version_id

        debt_service.record_payment(customer.id, 1000, "Efectivo")

        assert db.session.get(Customer, customer.id).version_id == version + 1


# =============================================================================
# AUDIT TRAIL
# =============================================================================


class TestLedgerEvents:

    def test_customer_history_is_recorded_in_order(self, db_session, make_product):
        customer = _customer_with_debt(make_product)
        debt_service.record_payment(customer.id, 8000, "Efectivo")

        events = ledger_service.list_ledger_events(entity_type="customer", entity_id=customer.id)

        # newest first
        assert [e.event_type for e in events] == ["debt.payment_recorded", "debt.assigned", "customer.created"]
        assert json.loads(events[0].payload)["balance_after_cents"] == 12000

    def test_filter_by_category(self, db_session, make_product):
        customer = _customer_with_debt(make_product)
        debt_service.record_payment(customer.id, 20000, "Efectivo")

        sales_events = ledger_service.list_ledger_events(event_category="sales")

        assert [e.event_type for e in sales_events] == ["sale.recorded"]
