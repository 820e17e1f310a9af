from __future__ import annotations

from ..extensions import db
from storefront.time_utils import to_utc_z


SALE_KIND_SALE = "SALE"
SALE_KIND_DEBT_PAYMENT = "DEBT_PAYMENT"

RECEIPT_PENDING = "PENDING"
RECEIPT_RENDERED = "RENDERED"
RECEIPT_FAILED = "FAILED"


class Sale(db.Model):
    """
    Recorded sale ("venta"). Immutable once created.

    KIND:
    - SALE: counter sale; stock was decremented when it was recorded
    - DEBT_PAYMENT: bookkeeping sale produced by a debt payment; stock was
      already decremented when the debt was assigned

    RECEIPT: receipt_ref is allocated with the sale; receipt_status tracks
    the separate rendering step (PENDING, RENDERED, FAILED).
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_created_kind", "created_at", "kind"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    kind = db.Column(db.String(16), nullable=False, default=SALE_KIND_SALE)

    subtotal_cents = db.Column(db.Integer, nullable=False)
    discount_percent = db.Column(db.Numeric(7, 2), nullable=False, default=0)
    discount_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False)
    payment_method = db.Column(db.String(32), nullable=False)

    receipt_ref = db.Column(db.String(128), nullable=True, unique=True, index=True)
    receipt_status = db.Column(db.String(16), nullable=False, default=RECEIPT_PENDING)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    lines = db.relationship("SaleLine", order_by="SaleLine.position", cascade="all, delete-orphan", lazy=True)

    def __repr__(self) -> str:
        return f"<Sale id={self.id} kind={self.kind} total_cents={self.total_cents}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "kind": self.kind,
            "lines": [line.to_dict() for line in self.lines],
            "subtotal_cents": self.subtotal_cents,
            "discount_percent": float(self.discount_percent or 0),
            "discount_amount_cents": self.discount_amount_cents,
            "total_cents": self.total_cents,
            "payment_method": self.payment_method,
            "receipt_ref": self.receipt_ref,
            "receipt_status": self.receipt_status,
            "created_at": to_utc_z(self.created_at),
        }


class SaleLine(db.Model):
    """Line item snapshot on a sale."""
    __tablename__ = "sale_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False)

    code = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=True)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    # Fractional for prorated debt settlements
    quantity = db.Column(db.Numeric(12, 2), nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "name": self.name,
            "unit_price_cents": self.unit_price_cents,
            "quantity": float(self.quantity),
            "line_total_cents": self.line_total_cents,
        }


class Payment(db.Model):
    """
    Debt payment ("pago") made by a customer.

    customer_id / sale_id are copied identifiers, not owning references.
    sale_id and sale_receipt_ref link the payment to the bookkeeping sale it
    produced; reports use them to avoid counting the same money twice.
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.CheckConstraint("amount_paid_cents > 0", name="ck_payments_amount_positive"),
        db.CheckConstraint("balance_after_cents >= 0", name="ck_payments_balance_after_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, nullable=False, index=True)
    customer_name = db.Column(db.String(200), nullable=False)
    customer_national_id = db.Column(db.String(32), nullable=True)

    amount_paid_cents = db.Column(db.Integer, nullable=False)
    payment_method = db.Column(db.String(32), nullable=False)

    sale_id = db.Column(db.Integer, nullable=True, index=True)
    sale_receipt_ref = db.Column(db.String(128), nullable=True)

    balance_before_cents = db.Column(db.Integer, nullable=False)
    balance_after_cents = db.Column(db.Integer, nullable=False)

    receipt_ref = db.Column(db.String(128), nullable=True, unique=True, index=True)
    receipt_status = db.Column(db.String(16), nullable=False, default=RECEIPT_PENDING)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "customer_national_id": self.customer_national_id,
            "amount_paid_cents": self.amount_paid_cents,
            "payment_method": self.payment_method,
            "sale_id": self.sale_id,
            "sale_receipt_ref": self.sale_receipt_ref,
            "balance_before_cents": self.balance_before_cents,
            "balance_after_cents": self.balance_after_cents,
            "receipt_ref": self.receipt_ref,
            "receipt_status": self.receipt_status,
            "created_at": to_utc_z(self.created_at),
        }


class Expense(db.Model):
    """Shop expense ("gasto"); only used for reporting totals."""
    __tablename__ = "expenses"
    __table_args__ = (
        db.CheckConstraint("amount_cents > 0", name="ck_expenses_amount_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    amount_cents = db.Column(db.Integer, nullable=False)
    description = db.Column(db.String(255), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "occurred_at": to_utc_z(self.occurred_at),
            "amount_cents": self.amount_cents,
            "description": self.description,
        }
