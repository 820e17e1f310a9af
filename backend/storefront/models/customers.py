from __future__ import annotations

from ..extensions import db
from storefront.time_utils import to_utc_z


DEBT_STATUS_CLEAR = "CLEAR"
DEBT_STATUS_IN_DEBT = "IN_DEBT"


class Customer(db.Model):
    """
    Customer carrying an account balance ("deuda").

    DEBT STATE:
    - CLEAR: outstanding_balance_cents == 0 and no reserved items
    - IN_DEBT: outstanding_balance_cents > 0

    The pairing of status and balance is enforced by a check constraint;
    debt_service owns every transition. Reserved items are stock already
    deducted but not yet recognized as revenue.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.CheckConstraint("outstanding_balance_cents >= 0", name="ck_customers_balance_non_negative"),
        db.CheckConstraint(
            "(debt_status = 'CLEAR' AND outstanding_balance_cents = 0) OR "
            "(debt_status = 'IN_DEBT' AND outstanding_balance_cents > 0)",
            name="ck_customers_debt_status",
        ),
        db.Index("ix_customers_debt_status", "debt_status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    national_id = db.Column(db.String(32), nullable=False, unique=True)

    outstanding_balance_cents = db.Column(db.Integer, nullable=False, default=0)
    debt_status = db.Column(db.String(16), nullable=False, default=DEBT_STATUS_CLEAR)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    reserved_items = db.relationship(
        "ReservedLineItem",
        order_by="ReservedLineItem.position",
        cascade="all, delete-orphan",
        lazy=True,
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Customer id={self.id} national_id={self.national_id!r} balance={self.outstanding_balance_cents}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "national_id": self.national_id,
            "outstanding_balance_cents": self.outstanding_balance_cents,
            "debt_status": self.debt_status,
            "reserved_items": [item.to_dict() for item in self.reserved_items],
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }


class ReservedLineItem(db.Model):
    """Product quantity held against a customer's balance (ordered by position)."""
    __tablename__ = "customer_reserved_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_reserved_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False)

    # Copied from the product at reservation time (weak reference by code)
    code = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=True)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    quantity = db.Column(db.Numeric(12, 2), nullable=False)

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "name": self.name,
            "unit_price_cents": self.unit_price_cents,
            "quantity": float(self.quantity),
        }
