# Overview: Service-layer operations for customer debt; assignment, payments and the CLEAR/IN_DEBT state.

"""
Debt Ledger

STATE MACHINE over Customer.debt_status:
- CLEAR   -> IN_DEBT  (assign_debt with a positive total)
- IN_DEBT -> IN_DEBT  (assign_debt, partial record_payment)
- IN_DEBT -> CLEAR    (record_payment of the full balance)

_set_balance is the only place that writes outstanding_balance_cents and
debt_status; reaching zero always empties the reserved items.

PAYMENT FLOW (record_payment), one unit of work:
1. Validate 0 < amount <= balance
2. Prorate reserved quantities (round2) into settlement lines
3. Stage a DEBT_PAYMENT bookkeeping sale inside a savepoint; if it cannot be
   built or stored the savepoint is rolled back, the payment still proceeds
   and the problem is returned as a warning
4. Shrink reserved items by the settled quantities and update the balance
5. Persist the Payment linked to the bookkeeping sale
Receipts (sale and payment) are rendered after the commit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..extensions import db
from ..models import Customer, ReservedLineItem, Payment, Sale
from ..models.customers import DEBT_STATUS_CLEAR, DEBT_STATUS_IN_DEBT
from ..models.sales import RECEIPT_PENDING
from ..money import line_total_cents, round_quantity
from ..validation import ValidationError, ConflictError
from storefront.time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry
from .inventory_service import decrement_many
from .ledger_service import append_ledger_event
from .receipt_service import allocate_receipt_ref, render_payment_receipt, render_sale_receipt
from .sales_service import build_sale


logger = logging.getLogger(__name__)


class CustomerNotFoundError(Exception):
    """Raised when a customer is not found."""
    pass


class PaymentNotFoundError(Exception):
    """Raised when a payment is not found."""
    pass


class InvalidPaymentAmountError(Exception):
    """Raised when a payment is not within (0, outstanding balance]."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


@dataclass
class PaymentOutcome:
    payment: Payment
    sale: Sale | None
    warnings: list[str] = field(default_factory=list)


# =============================================================================
# STATE
# =============================================================================

def _set_balance(customer: Customer, balance_cents: int) -> None:
    if balance_cents < 0:
        raise InvalidPaymentAmountError("Balance cannot become negative")
    customer.outstanding_balance_cents = balance_cents
    if balance_cents == 0:
        customer.debt_status = DEBT_STATUS_CLEAR
        customer.reserved_items.clear()
    else:
        customer.debt_status = DEBT_STATUS_IN_DEBT


def _load_customer(customer_id: int, *, for_update: bool = False) -> Customer:
    q = db.session.query(Customer).filter(Customer.id == customer_id)
    if for_update:
        q = lock_for_update(q)
    customer = q.first()
    if customer is None:
        raise CustomerNotFoundError(f"Customer {customer_id} not found")
    return customer


# =============================================================================
# CUSTOMERS
# =============================================================================

def list_customers(*, in_debt_only: bool = False) -> list[Customer]:
    q = db.session.query(Customer)
    if in_debt_only:
        q = q.filter(Customer.debt_status == DEBT_STATUS_IN_DEBT)
    return q.order_by(Customer.name.asc(), Customer.id.asc()).all()


def get_customer(customer_id: int) -> Customer:
    return _load_customer(customer_id)


def create_customer(
    *,
    name: str,
    national_id: str,
    items: list[dict] | None = None,
    total_cents: int | None = None,
) -> Customer:
    """
    Register a customer, optionally opening with a debt.

    national_id is unique; a duplicate raises ConflictError.
    """
    def _op():
        if db.session.query(Customer).filter_by(national_id=national_id).first() is not None:
            raise ConflictError(f"A customer with national id {national_id} already exists")

        customer = Customer(
            name=name,
            national_id=national_id,
            outstanding_balance_cents=0,
            debt_status=DEBT_STATUS_CLEAR,
        )
        db.session.add(customer)
        try:
            db.session.flush()
        except IntegrityError as exc:
            db.session.rollback()
            raise ConflictError(f"A customer with national id {national_id} already exists") from exc

        append_ledger_event(
            event_type="customer.created",
            event_category="debt",
            entity_type="customer",
            entity_id=customer.id,
            note=f"Customer {national_id}",
        )
        if items or total_cents:
            _assign_debt(customer, items or [], total_cents)

        db.session.commit()
        return customer

    try:
        return run_with_retry(_op)
    except Exception:
        db.session.rollback()
        raise


def _assign_debt(customer: Customer, items: list[dict], total_cents: int | None) -> int:
    if total_cents is None:
        total_cents = sum(line_total_cents(i["unit_price_cents"], i["quantity"]) for i in items)
    if total_cents <= 0:
        raise ValidationError("Debt total must be > 0")

    names: dict[str, str | None] = {}
    if items:
        products = decrement_many([(i["code"], int(i["quantity"])) for i in items])
        names = {code: p.name for code, p in products.items()}

    next_position = max((r.position for r in customer.reserved_items), default=0) + 1
    for offset, item in enumerate(items):
        customer.reserved_items.append(ReservedLineItem(
            position=next_position + offset,
            code=item["code"],
            name=item.get("name") or names.get(item["code"]),
            unit_price_cents=item["unit_price_cents"],
            quantity=item["quantity"],
        ))

    balance_before = customer.outstanding_balance_cents or 0
    _set_balance(customer, balance_before + total_cents)

    append_ledger_event(
        event_type="debt.assigned",
        event_category="debt",
        entity_type="customer",
        entity_id=customer.id,
        note=f"Debt +{total_cents} for {customer.national_id}",
        payload={"total_cents": total_cents, "balance_before_cents": balance_before, "items": len(items)},
    )
    return total_cents


def assign_debt(
    customer_id: int,
    *,
    items: list[dict],
    total_cents: int | None = None,
    name: str | None = None,
) -> Customer:
    """
    Reserve cart items against a customer's balance.

    Stock is decremented now; no Sale and no Payment are created. When
    total_cents is omitted the cart subtotal is used.
    """
    def _op():
        customer = _load_customer(customer_id, for_update=True)
        if name:
            customer.name = name
        _assign_debt(customer, items, total_cents)
        db.session.commit()
        return customer

    try:
        return run_with_retry(_op)
    except Exception:
        db.session.rollback()
        raise


def rename_customer(customer_id: int, name: str) -> Customer:
    def _op():
        customer = _load_customer(customer_id)
        customer.name = name
        db.session.commit()
        return customer

    return run_with_retry(_op)


# =============================================================================
# PAYMENTS
# =============================================================================

def prorate_reserved_items(reserved: list[ReservedLineItem], proportion: Decimal) -> list[tuple[ReservedLineItem, Decimal]]:
    """Settled quantity per reserved item: round2(quantity * proportion)."""
    return [(item, round_quantity(Decimal(item.quantity) * proportion)) for item in reserved]


def record_payment(customer_id: int, amount_paid_cents: int, payment_method: str) -> PaymentOutcome:
    """
    Apply a payment to a customer's balance.

    Raises InvalidPaymentAmountError unless 0 < amount <= balance. Receipts
    are rendered after the commit; their status is on the returned records.
    """
    def _op():
        customer = _load_customer(customer_id, for_update=True)
        balance_before = customer.outstanding_balance_cents
        if amount_paid_cents <= 0 or amount_paid_cents > balance_before:
            raise InvalidPaymentAmountError(
                "Payment amount must be greater than zero and not exceed the outstanding balance",
                details={"amount_paid_cents": amount_paid_cents, "outstanding_balance_cents": balance_before},
            )

        now = utcnow()
        warnings: list[str] = []
        proportion = Decimal(amount_paid_cents) / Decimal(balance_before)
        settled = prorate_reserved_items(list(customer.reserved_items), proportion)
        settlement_items = [
            {
                "code": item.code,
                "name": item.name,
                "unit_price_cents": item.unit_price_cents,
                "quantity": qty,
            }
            for item, qty in settled
            if qty > 0
        ]

        sale = None
        try:
            with db.session.begin_nested():
                sale = build_sale(
                    settlement_items,
                    payment_method=payment_method,
                    is_debt_settlement=True,
                    total_override_cents=amount_paid_cents,
                )
        except (ValidationError, SQLAlchemyError) as exc:
            sale = None
            logger.warning("Bookkeeping sale not recorded for customer %s: %s", customer.id, exc)
            warnings.append(f"Bookkeeping sale not recorded: {exc}")

        balance_after = balance_before - amount_paid_cents
        if balance_after > 0:
            for item, qty in settled:
                remaining = Decimal(item.quantity) - qty
                if remaining <= 0:
                    customer.reserved_items.remove(item)
                else:
                    item.quantity = remaining
        _set_balance(customer, balance_after)

        payment = Payment(
            customer_id=customer.id,
            customer_name=customer.name,
            customer_national_id=customer.national_id,
            amount_paid_cents=amount_paid_cents,
            payment_method=payment_method,
            sale_id=sale.id if sale else None,
            sale_receipt_ref=sale.receipt_ref if sale else None,
            balance_before_cents=balance_before,
            balance_after_cents=balance_after,
            receipt_ref=allocate_receipt_ref("payment", now),
            receipt_status=RECEIPT_PENDING,
            created_at=now,
        )
        db.session.add(payment)
        db.session.flush()

        append_ledger_event(
            event_type="debt.payment_recorded",
            event_category="debt",
            entity_type="customer",
            entity_id=customer.id,
            occurred_at=now,
            note=f"Payment {amount_paid_cents} from {customer.national_id}",
            payload={
                "payment_id": payment.id,
                "sale_id": payment.sale_id,
                "balance_before_cents": balance_before,
                "balance_after_cents": balance_after,
            },
        )
        db.session.commit()
        return PaymentOutcome(payment=payment, sale=sale, warnings=warnings)

    try:
        outcome = run_with_retry(_op)
    except Exception:
        db.session.rollback()
        raise

    if outcome.sale is not None:
        render_sale_receipt(outcome.sale)
    render_payment_receipt(outcome.payment)
    return outcome


def get_payment(payment_id: int) -> Payment:
    payment = db.session.get(Payment, payment_id)
    if payment is None:
        raise PaymentNotFoundError(f"Payment {payment_id} not found")
    return payment


def list_payments(
    *,
    start: datetime | None = None,
    end: datetime | None = None,
    customer_id: int | None = None,
) -> list[Payment]:
    q = db.session.query(Payment)
    if start is not None:
        q = q.filter(Payment.created_at >= start)
    if end is not None:
        q = q.filter(Payment.created_at <= end)
    if customer_id is not None:
        q = q.filter(Payment.customer_id == customer_id)
    return q.order_by(Payment.created_at.desc(), Payment.id.desc()).all()


def total_outstanding_cents() -> int:
    return int(db.session.query(db.func.coalesce(db.func.sum(Customer.outstanding_balance_cents), 0)).scalar() or 0)
