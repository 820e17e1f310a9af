"""
Sale Recorder

WHY: One call turns a validated cart into a persisted, immutable Sale.
Counter sales check and decrement live stock in the same unit of work;
debt settlements skip stock (it was reserved when the debt was assigned)
and carry an explicit total.

The receipt is rendered after the sale commits (see receipt_service).
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from ..extensions import db
from ..models import Sale, SaleLine
from ..models.sales import SALE_KIND_SALE, SALE_KIND_DEBT_PAYMENT, RECEIPT_PENDING
from ..money import line_total_cents, percent_of
from ..validation import ValidationError
from storefront.time_utils import utcnow, day_bounds
from .concurrency import run_with_retry
from .inventory_service import decrement_many
from .ledger_service import append_ledger_event
from .receipt_service import allocate_receipt_ref, render_sale_receipt


class SaleNotFoundError(Exception):
    """Raised when a sale is not found."""
    pass


# =============================================================================
# PAYMENT METHODS (CONSTANTS)
# =============================================================================

METHOD_CASH = "Efectivo"
METHOD_CARD = "Tarjeta"
METHOD_DEBIT = "Debito"
METHOD_TRANSFER = "Transferencia"

VALID_PAYMENT_METHODS = [
    METHOD_CASH,
    METHOD_CARD,
    METHOD_DEBIT,
    METHOD_TRANSFER,
]


def normalize_payment_method(value: str | None) -> str:
    """Case-insensitive match against VALID_PAYMENT_METHODS; defaults to cash."""
    if value is None or not str(value).strip():
        return METHOD_CASH
    wanted = str(value).strip().lower()
    for method in VALID_PAYMENT_METHODS:
        if method.lower() == wanted:
            return method
    raise ValidationError(f"Invalid payment method. Must be one of: {', '.join(VALID_PAYMENT_METHODS)}")


def compute_totals(items: list[dict], discount_percent: Decimal) -> tuple[int, int, int]:
    """(subtotal, discount_amount, total) in cents."""
    subtotal = sum(line_total_cents(i["unit_price_cents"], i["quantity"]) for i in items)
    discount_amount = percent_of(subtotal, discount_percent)
    return subtotal, discount_amount, subtotal - discount_amount


def build_sale(
    items: list[dict],
    *,
    payment_method: str,
    discount_percent: Decimal = Decimal("0"),
    is_debt_settlement: bool = False,
    total_override_cents: int | None = None,
) -> Sale:
    """
    Stage a Sale in the current session (no commit).

    Counter sales decrement stock first; a shortage raises before anything
    is added to the session.
    """
    if not items:
        raise ValidationError("Cart is empty")
    if total_override_cents is not None and total_override_cents < 0:
        raise ValidationError("total must be >= 0")

    names: dict[str, str | None] = {}
    if not is_debt_settlement:
        products = decrement_many([(i["code"], int(i["quantity"])) for i in items])
        names = {code: p.name for code, p in products.items()}

    subtotal, discount_amount, total = compute_totals(items, discount_percent)
    if total_override_cents is not None:
        total = total_override_cents
        discount_percent = Decimal("0")
        discount_amount = 0

    now = utcnow()
    kind = SALE_KIND_DEBT_PAYMENT if is_debt_settlement else SALE_KIND_SALE
    sale = Sale(
        kind=kind,
        subtotal_cents=subtotal,
        discount_percent=discount_percent,
        discount_amount_cents=discount_amount,
        total_cents=total,
        payment_method=payment_method,
        receipt_ref=allocate_receipt_ref("sale", now),
        receipt_status=RECEIPT_PENDING,
        created_at=now,
    )
    for position, item in enumerate(items, start=1):
        sale.lines.append(SaleLine(
            position=position,
            code=item["code"],
            name=item.get("name") or names.get(item["code"]),
            unit_price_cents=item["unit_price_cents"],
            quantity=item["quantity"],
            line_total_cents=line_total_cents(item["unit_price_cents"], item["quantity"]),
        ))
    db.session.add(sale)
    db.session.flush()

    append_ledger_event(
        event_type="sale.recorded",
        event_category="sales",
        entity_type="sale",
        entity_id=sale.id,
        occurred_at=now,
        note=f"{kind} {sale.receipt_ref}",
        payload={"total_cents": total, "lines": len(items)},
    )
    return sale


def record_sale(
    items: list[dict],
    *,
    payment_method: str,
    discount_percent: Decimal = Decimal("0"),
    is_debt_settlement: bool = False,
    total_override_cents: int | None = None,
    render_receipt: bool = True,
) -> Sale:
    """
    Record a sale in its own unit of work, then render its receipt.

    Stock is unchanged if anything fails before the commit. A failed render
    leaves the sale committed with receipt_status=FAILED.
    """
    def _op():
        sale = build_sale(
            items,
            payment_method=payment_method,
            discount_percent=discount_percent,
            is_debt_settlement=is_debt_settlement,
            total_override_cents=total_override_cents,
        )
        db.session.commit()
        return sale

    try:
        sale = run_with_retry(_op)
    except Exception:
        db.session.rollback()
        raise

    if render_receipt:
        render_sale_receipt(sale)
    return sale


def get_sale(sale_id: int) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if sale is None:
        raise SaleNotFoundError(f"Sale {sale_id} not found")
    return sale


def list_sales(
    *,
    day: date | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    kind: str | None = None,
) -> list[Sale]:
    """Sales newest first, optionally limited to one day or an inclusive range."""
    if day is not None:
        start, end = day_bounds(day)
    q = db.session.query(Sale)
    if start is not None:
        q = q.filter(Sale.created_at >= start)
    if end is not None:
        q = q.filter(Sale.created_at <= end)
    if kind:
        q = q.filter(Sale.kind == kind)
    return q.order_by(Sale.created_at.desc(), Sale.id.desc()).all()
