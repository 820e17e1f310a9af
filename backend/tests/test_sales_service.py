"""
Sale recorder tests.

Verifies:
- Totals and discounts (integer cents, half-up)
- Counter sales decrement stock in one unit of work
- Debt settlements skip stock and honour an explicit total
- Receipts render after the commit and report their status
"""

import os
import re
from decimal import Decimal

import pytest

from storefront.extensions import db
from storefront.models import Sale, LedgerEvent
from storefront.models.sales import (
    SALE_KIND_SALE,
    SALE_KIND_DEBT_PAYMENT,
    RECEIPT_RENDERED,
    RECEIPT_FAILED,
)
from storefront.services import sales_service, receipt_service
from storefront.services.inventory_service import InsufficientStockError, ProductNotFoundError
from storefront.validation import ValidationError

from conftest import cart_item, stock_of


def _broken_save(self, path):
    raise OSError("printer spool full")


class TestRecordSale:

    def test_discount_scenario(self, db_session, make_product):
        make_product("A1", stock=10, sell=5000)

        sale = sales_service.record_sale(
            [cart_item("A1", 5000, 2)],
            payment_method="Efectivo",
            discount_percent=Decimal("10"),
        )

        assert sale.kind == SALE_KIND_SALE
        assert sale.subtotal_cents == 10000
        assert sale.discount_amount_cents == 1000
        assert sale.total_cents == 9000
        assert stock_of("A1") == 8

    def test_line_snapshot_takes_product_name(self, db_session, make_product):
        make_product("A1", name="Yerba 1kg")

        sale = sales_service.record_sale([cart_item("A1", 5000, 1)], payment_method="Tarjeta")

        line = sale.lines[0]
        assert line.name == "Yerba 1kg"
        assert line.line_total_cents == 5000
        assert line.position == 1

    def test_insufficient_stock_records_nothing(self, db_session, make_product):
        make_product("A1", stock=5)
        make_product("B1", stock=1)

        with pytest.raises(InsufficientStockError) as exc:
            sales_service.record_sale(
                [cart_item("A1", 100, 2), cart_item("B1", 100, 3)],
                payment_method="Efectivo",
            )

        assert exc.value.details["items"][0]["code"] == "B1"
        assert db.session.query(Sale).count() == 0
        assert stock_of("A1") == 5
        assert stock_of("B1") == 1

    def test_unknown_product(self, db_session):
        with pytest.raises(ProductNotFoundError):
            sales_service.record_sale([cart_item("X9", 100, 1)], payment_method="Efectivo")

    def test_empty_cart(self, db_session):
        with pytest.raises(ValidationError):
            sales_service.record_sale([], payment_method="Efectivo")

    def test_debt_settlement_skips_stock_and_uses_total(self, db_session, make_product):
        make_product("A1", stock=0)

        sale = sales_service.record_sale(
            [cart_item("A1", 4000, Decimal("2.00"))],
            payment_method="Efectivo",
            discount_percent=Decimal("10"),
            is_debt_settlement=True,
            total_override_cents=8000,
        )

        assert sale.kind == SALE_KIND_DEBT_PAYMENT
        assert sale.total_cents == 8000
        assert sale.discount_amount_cents == 0
        assert sale.discount_percent == 0
        assert stock_of("A1") == 0

    def test_sale_is_audited(self, db_session, make_product):
        make_product("A1")
        sale = sales_service.record_sale([cart_item("A1", 5000, 1)], payment_method="Efectivo")

        event = db.session.query(LedgerEvent).filter_by(entity_type="sale", entity_id=sale.id).one()
        assert event.event_type == "sale.recorded"


class TestPaymentMethod:

    @pytest.mark.parametrize(
        "raw,expected",
        [
            (None, "Efectivo"),
            ("", "Efectivo"),
            ("tarjeta", "Tarjeta"),
            ("DEBITO", "Debito"),
            ("Transferencia", "Transferencia"),
        ],
    )
    def test_normalizes(self, raw, expected):
        assert sales_service.normalize_payment_method(raw) == expected

    def test_rejects_unknown(self):
        with pytest.raises(ValidationError):
            sales_service.normalize_payment_method("Bitcoin")


class TestReceipts:

    def test_receipt_file_is_written(self, app, db_session, make_product):
        make_product("A1")

        sale = sales_service.record_sale([cart_item("A1", 5000, 1)], payment_method="Efectivo")

        assert sale.receipt_status == RECEIPT_RENDERED
        assert sale.receipt_ref.startswith("sale_") and sale.receipt_ref.endswith(".pdf")
        path = os.path.join(app.config["RECEIPTS_DIR"], sale.receipt_ref)
        with open(path, "rb") as fh:
            assert fh.read(4) == b"%PDF"

    def test_failed_render_keeps_the_sale(self, db_session, make_product, monkeypatch):
        make_product("A1", stock=3)

        monkeypatch.setattr(receipt_service.ThermalTicket, "save", _broken_save)

        sale = sales_service.record_sale([cart_item("A1", 5000, 1)], payment_method="Efectivo")

        db.session.expire_all()
        stored = db.session.get(Sale, sale.id)
        assert stored.receipt_status == RECEIPT_FAILED
        assert stock_of("A1") == 2

    def test_failed_render_can_be_retried(self, db_session, make_product, monkeypatch):
        make_product("A1")
        monkeypatch.setattr(receipt_service.ThermalTicket, "save", _broken_save)
        sale = sales_service.record_sale([cart_item("A1", 5000, 1)], payment_method="Efectivo")
        assert sale.receipt_status == RECEIPT_FAILED

        monkeypatch.undo()
        assert receipt_service.render_sale_receipt(sale) == RECEIPT_RENDERED

    def test_allocate_receipt_ref_format(self):
        from datetime import datetime
        ref = receipt_service.allocate_receipt_ref("payment", datetime(2024, 6, 5, 13, 4, 5, 123456))
        assert re.fullmatch(r"payment_20240605130405123456_[0-9a-f]{6}\.pdf", ref)

    def test_same_tick_refs_differ(self, db_session, make_product, monkeypatch):
        from datetime import datetime
        frozen = datetime(2024, 6, 5, 13, 4, 5, 123456)
        monkeypatch.setattr(sales_service, "utcnow", lambda: frozen)
        make_product("A1")

        first = sales_service.record_sale([cart_item("A1", 5000, 1)], payment_method="Efectivo")
        second = sales_service.record_sale([cart_item("A1", 5000, 1)], payment_method="Efectivo")

        assert first.created_at == second.created_at
        assert first.receipt_ref != second.receipt_ref
        assert first.receipt_status == second.receipt_status == RECEIPT_RENDERED
