from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from storefront.time_utils import to_utc_z


class Category(db.Model):
    """
    Product line ("línea") carrying a markup percentage.

    The markup is only used to suggest a sell price from a purchase price;
    products keep their own stored sell price once created.
    """
    __tablename__ = "product_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    markup_percent = db.Column(db.Numeric(7, 2), nullable=False, default=Decimal("0"))

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Category id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "markup_percent": float(self.markup_percent or 0),
            "created_at": to_utc_z(self.created_at),
        }


class Product(db.Model):
    """
    Product master data with its live stock counter.

    CODE: the scanned/typed code is the natural key used by carts, reserved
    debt items and report joins. Sale lines copy code/name/price so history
    never depends on the mutable catalog row.

    STOCK: mutated only through inventory_service, which issues conditional
    UPDATE statements instead of read-modify-write.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_category_id", "category_id"),
        db.Index("ix_products_stock", "stock"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(64), nullable=False, unique=True)
    name = db.Column(db.String(255), nullable=True)

    # Authoritative storage in cents; any of them may be unknown
    sell_price_cents = db.Column(db.Integer, nullable=True)
    purchase_price_cents = db.Column(db.Integer, nullable=True)
    margin_cents = db.Column(db.Integer, nullable=True)

    category_id = db.Column(db.Integer, db.ForeignKey("product_lines.id", ondelete="SET NULL"), nullable=True)
    stock = db.Column(db.Integer, nullable=False, default=0)
    image_ref = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    category = db.relationship("Category", backref=db.backref("products", lazy=True))

    def __repr__(self) -> str:
        return f"<Product id={self.id} code={self.code!r} stock={self.stock}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "sell_price_cents": self.sell_price_cents,
            "purchase_price_cents": self.purchase_price_cents,
            "margin_cents": self.margin_cents,
            "category_id": self.category_id,
            "category_name": self.category.name if self.category else None,
            "stock": self.stock,
            "image_ref": self.image_ref,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Supplier(db.Model):
    __tablename__ = "suppliers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    phone = db.Column(db.String(64), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
