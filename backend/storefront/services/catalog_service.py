# Overview: Product lines (categories) and suppliers; plain CRUD over the catalog tables.

from __future__ import annotations

from ..extensions import db
from ..models import Category, Product, Supplier
from .inventory_service import CategoryNotFoundError
from .pricing_service import suggest_sell_price_cents


class SupplierNotFoundError(Exception):
    """Raised when a supplier is not found."""
    pass


# =============================================================================
# LINES
# =============================================================================

def list_categories() -> list[Category]:
    return db.session.query(Category).order_by(Category.name.asc(), Category.id.asc()).all()


def get_category(category_id: int) -> Category:
    category = db.session.get(Category, category_id)
    if category is None:
        raise CategoryNotFoundError(f"Line {category_id} not found")
    return category


def create_category(patch: dict) -> Category:
    category = Category(**patch)
    db.session.add(category)
    db.session.commit()
    return category


def update_category(category_id: int, patch: dict) -> Category:
    category = get_category(category_id)
    for k, v in patch.items():
        setattr(category, k, v)
    db.session.commit()
    return category


def delete_category(category_id: int) -> None:
    """Delete a line; its products stay, detached from any line."""
    category = get_category(category_id)
    db.session.query(Product).filter(Product.category_id == category_id).update(
        {Product.category_id: None},
        synchronize_session="evaluate",
    )
    db.session.delete(category)
    db.session.commit()


def suggested_sell_price(category_id: int, purchase_price_cents: int) -> int:
    category = get_category(category_id)
    return suggest_sell_price_cents(purchase_price_cents, category.markup_percent or 0)


# =============================================================================
# SUPPLIERS
# =============================================================================

def list_suppliers(include_inactive: bool = True) -> list[Supplier]:
    q = db.session.query(Supplier)
    if not include_inactive:
        q = q.filter(Supplier.is_active.is_(True))
    return q.order_by(Supplier.name.asc(), Supplier.id.asc()).all()


def create_supplier(patch: dict) -> Supplier:
    supplier = Supplier(**patch)
    db.session.add(supplier)
    db.session.commit()
    return supplier


def update_supplier(supplier_id: int, patch: dict) -> Supplier:
    supplier = db.session.get(Supplier, supplier_id)
    if supplier is None:
        raise SupplierNotFoundError(f"Supplier {supplier_id} not found")
    for k, v in patch.items():
        setattr(supplier, k, v)
    db.session.commit()
    return supplier
