# Overview: Read-only aggregations over sales, payments and expenses.

"""
Reporting Aggregator

COMBINED FEED: sales plus payments rendered as sale-shaped records. A
payment already represented by a sale (matched by sale id or by the sale's
receipt ref) is left out, so each transaction counts once.

Everything here is read-only.
"""

from __future__ import annotations

from collections import OrderedDict
from datetime import date, datetime, timedelta
from decimal import Decimal

from flask import current_app
from sqlalchemy import or_

from ..extensions import db
from ..models import Sale, Payment, Product, Category, Customer
from ..models.customers import DEBT_STATUS_IN_DEBT
from ..models.sales import SALE_KIND_SALE, SALE_KIND_DEBT_PAYMENT
from ..money import round_cents
from ..validation import ValidationError
from storefront.time_utils import day_bounds, local_today, to_local, to_utc_z
from .debt_service import list_payments, total_outstanding_cents
from .expense_service import list_expenses, total_expenses_cents
from .inventory_service import count_low_stock
from .sales_service import list_sales


PAYMENT_LINE_PREFIX = "payment_"
UNCATEGORIZED = "Sin línea"

GROUPING_DAY = "dia"
GROUPING_WEEK = "semana"
GROUPING_MONTH = "mes"
VALID_GROUPINGS = [GROUPING_DAY, GROUPING_WEEK, GROUPING_MONTH]


def payment_as_sale(payment: Payment) -> dict:
    """Synthetic sale-shaped record for a payment with no bookkeeping sale."""
    amount = payment.amount_paid_cents
    return {
        "id": None,
        "source": "payment",
        "payment_id": payment.id,
        "kind": SALE_KIND_DEBT_PAYMENT,
        "lines": [{
            "code": f"{PAYMENT_LINE_PREFIX}{payment.id}",
            "name": f"payment/{payment.customer_name}",
            "unit_price_cents": amount,
            "quantity": 1.0,
            "line_total_cents": amount,
        }],
        "subtotal_cents": amount,
        "discount_percent": 0.0,
        "discount_amount_cents": 0,
        "total_cents": amount,
        "payment_method": payment.payment_method,
        "receipt_ref": payment.receipt_ref,
        "receipt_status": payment.receipt_status,
        "created_at": to_utc_z(payment.created_at),
        "_at": payment.created_at,
    }


def _sale_record(sale: Sale) -> dict:
    record = sale.to_dict()
    record["source"] = "sale"
    record["_at"] = sale.created_at
    return record


def combined_feed(start: datetime | None, end: datetime | None, *, ascending: bool = False) -> list[dict]:
    """Sales and unrepresented payments in [start, end], newest first unless ascending."""
    sales = list_sales(start=start, end=end)
    payments = list_payments(start=start, end=end)

    sale_ids = {s.id for s in sales}
    sale_refs = {s.receipt_ref for s in sales if s.receipt_ref}

    records = [_sale_record(s) for s in sales]
    for payment in payments:
        if payment.sale_id is not None and payment.sale_id in sale_ids:
            continue
        if payment.sale_receipt_ref and payment.sale_receipt_ref in sale_refs:
            continue
        records.append(payment_as_sale(payment))

    records.sort(key=lambda r: (r["_at"], r["source"] == "payment", r["id"] or r.get("payment_id") or 0))
    if not ascending:
        records.reverse()
    for r in records:
        del r["_at"]
    return records


def day_feed(day: date) -> list[dict]:
    start, end = day_bounds(day)
    return combined_feed(start, end)


def week_start(day: date) -> date:
    """Weeks start on Sunday."""
    return day - timedelta(days=(day.weekday() + 1) % 7)


def bucket_window(grouping: str, now: datetime | None = None) -> tuple[datetime, datetime]:
    """Current day / week / month up to now."""
    today = local_today(now)
    if grouping == GROUPING_DAY:
        first = today
    elif grouping == GROUPING_WEEK:
        first = week_start(today)
    elif grouping == GROUPING_MONTH:
        first = today.replace(day=1)
    else:
        raise ValidationError(f"Invalid grouping. Must be one of: {', '.join(VALID_GROUPINGS)}")
    return day_bounds(first)[0], day_bounds(today)[1]


def top_products(grouping: str = GROUPING_DAY, limit: int = 10, now: datetime | None = None) -> list[dict]:
    """
    Best sellers by quantity within the current bucket.

    Only counter sales count (bookkeeping DEBT_PAYMENT sales never do);
    quantities currently reserved by customers in debt are added. Ties keep
    first-encountered order.
    """
    start, end = bucket_window(grouping, now)
    tally: OrderedDict[str, Decimal] = OrderedDict()

    sales = list_sales(start=start, end=end, kind=SALE_KIND_SALE)
    for sale in sorted(sales, key=lambda s: (s.created_at, s.id)):
        for line in sale.lines:
            name = line.name or line.code
            tally[name] = tally.get(name, Decimal("0")) + Decimal(line.quantity)

    customers = (
        db.session.query(Customer)
        .filter(Customer.debt_status == DEBT_STATUS_IN_DEBT)
        .order_by(Customer.id.asc())
        .all()
    )
    for customer in customers:
        for item in customer.reserved_items:
            name = item.name or item.code
            tally[name] = tally.get(name, Decimal("0")) + Decimal(item.quantity)

    ranked = sorted(tally.items(), key=lambda kv: kv[1], reverse=True)
    return [{"name": name, "quantity": float(qty)} for name, qty in ranked[:limit]]


def category_share(start: datetime | None, end: datetime | None) -> list[dict]:
    """Revenue per product line as a whole-number percentage of line revenue."""
    lookup = _category_lookup()

    revenue: OrderedDict[str, int] = OrderedDict()
    for record in combined_feed(start, end, ascending=True):
        for line in record["lines"]:
            if line["code"].startswith(PAYMENT_LINE_PREFIX):
                continue
            category = lookup.get(line["code"], UNCATEGORIZED)
            revenue[category] = revenue.get(category, 0) + line["line_total_cents"]

    total = sum(revenue.values())
    ranked = sorted(revenue.items(), key=lambda kv: kv[1], reverse=True)
    return [
        {
            "category": category,
            "revenue_cents": cents,
            "percent": round_cents(Decimal(cents) * 100 / Decimal(total)) if total else 0,
        }
        for category, cents in ranked
    ]


def _category_lookup() -> dict[str, str]:
    """Product code -> line name for the whole catalog."""
    rows = (
        db.session.query(Product.code, Category.name)
        .outerjoin(Category, Product.category_id == Category.id)
        .all()
    )
    return {code: (name or UNCATEGORIZED) for code, name in rows}


def period_key(at: datetime, grouping: str) -> str:
    """Bucket label of a UTC timestamp, by its shop-local calendar day."""
    day = to_local(at).date()
    if grouping == GROUPING_DAY:
        return day.isoformat()
    if grouping == GROUPING_WEEK:
        return week_start(day).isoformat()
    if grouping == GROUPING_MONTH:
        return f"{day:%Y-%m}"
    raise ValidationError(f"Invalid grouping. Must be one of: {', '.join(VALID_GROUPINGS)}")


def period_totals(start: datetime | None, end: datetime | None, grouping: str = GROUPING_DAY) -> list[dict]:
    """Revenue (combined feed) and expenses per day / Sunday-start week / month."""
    if grouping not in VALID_GROUPINGS:
        raise ValidationError(f"Invalid grouping. Must be one of: {', '.join(VALID_GROUPINGS)}")
    buckets: dict[str, dict] = {}

    def bucket(key: str) -> dict:
        if key not in buckets:
            buckets[key] = {"period": key, "revenue_cents": 0, "sales_count": 0, "expenses_cents": 0}
        return buckets[key]

    sales = list_sales(start=start, end=end)
    sale_ids = {s.id for s in sales}
    sale_refs = {s.receipt_ref for s in sales if s.receipt_ref}

    for sale in sales:
        b = bucket(period_key(sale.created_at, grouping))
        b["revenue_cents"] += sale.total_cents
        b["sales_count"] += 1

    for payment in list_payments(start=start, end=end):
        if payment.sale_id in sale_ids or (payment.sale_receipt_ref and payment.sale_receipt_ref in sale_refs):
            continue
        b = bucket(period_key(payment.created_at, grouping))
        b["revenue_cents"] += payment.amount_paid_cents
        b["sales_count"] += 1

    for expense in list_expenses(start, end):
        bucket(period_key(expense.occurred_at, grouping))["expenses_cents"] += expense.amount_cents

    rows = [buckets[k] for k in sorted(buckets)]
    for row in rows:
        row["net_cents"] = row["revenue_cents"] - row["expenses_cents"]
    return rows


def _unlinked_settlements(settlements: list[Sale]) -> list[Sale]:
    """DEBT_PAYMENT sales no payment points at (settlements posted straight to /ventas)."""
    if not settlements:
        return []
    ids = [s.id for s in settlements]
    refs = [s.receipt_ref for s in settlements if s.receipt_ref]
    linked = (
        db.session.query(Payment.sale_id, Payment.sale_receipt_ref)
        .filter(or_(Payment.sale_id.in_(ids), Payment.sale_receipt_ref.in_(refs)))
        .all()
    )
    linked_ids = {sale_id for sale_id, _ in linked if sale_id is not None}
    linked_refs = {ref for _, ref in linked if ref}
    return [s for s in settlements if s.id not in linked_ids and s.receipt_ref not in linked_refs]


def dashboard_summary(start: datetime | None = None, end: datetime | None = None) -> dict:
    """
    Headline numbers for the admin dashboard.

    Counter sales and payments are counted separately. A DEBT_PAYMENT sale
    linked to a payment is bookkeeping for it and is not added again; one with
    no payment counts as a sale, matching the combined feed.
    """
    sales = list_sales(start=start, end=end, kind=SALE_KIND_SALE)
    sales += _unlinked_settlements(list_sales(start=start, end=end, kind=SALE_KIND_DEBT_PAYMENT))
    payments = list_payments(start=start, end=end)

    sales_total = sum(s.total_cents for s in sales)
    payments_total = sum(p.amount_paid_cents for p in payments)
    expenses_total = total_expenses_cents(start, end)
    threshold = current_app.config.get("LOW_STOCK_THRESHOLD", 5)

    return {
        "sales_count": len(sales),
        "sales_total_cents": sales_total,
        "payments_count": len(payments),
        "payments_total_cents": payments_total,
        "expenses_total_cents": expenses_total,
        "outstanding_debt_cents": total_outstanding_cents(),
        "customers_in_debt": db.session.query(Customer).filter(Customer.debt_status == DEBT_STATUS_IN_DEBT).count(),
        "low_stock_count": count_low_stock(threshold),
        "low_stock_threshold": threshold,
        "profit_cents": sales_total + payments_total - expenses_total,
    }
