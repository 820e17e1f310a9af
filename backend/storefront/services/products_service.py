# backend/storefront/services/products_service.py
"""
Products Service

Receiving (create-or-restock) lives in inventory_service; this module owns
lookup, field edits and deletion. Stock is never edited here.
"""
from __future__ import annotations

from ..extensions import db
from ..models import Product, Category
from ..validation import ValidationError, ConflictError
from .inventory_service import ProductNotFoundError, get_product_by_code, get_products_by_codes
from .ledger_service import append_ledger_event
from .pricing_service import compute_margin_cents

PRODUCT_MUTABLE_FIELDS = {"code", "name", "sell_price_cents", "purchase_price_cents", "category_id", "image_ref"}


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def list_products(code: str | None = None, codes: list[str] | None = None) -> list[Product]:
    """All products, or only the requested code(s)."""
    if code:
        product = get_product_by_code(code)
        return [product] if product else []
    if codes:
        return get_products_by_codes(codes)
    return db.session.query(Product).order_by(Product.name.asc(), Product.id.asc()).all()


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise ProductNotFoundError(f"Product {product_id} not found")
    return product


def update_product(product_id: int, patch: dict) -> Product:
    """
    Edit product fields. Margin is recomputed from the resulting prices and
    becomes null when either price is missing.
    """
    product = get_product(product_id)

    if "code" in patch and patch["code"] != product.code:
        clash = get_product_by_code(patch["code"])
        if clash is not None:
            raise ConflictError(f"Product code {patch['code']} already exists")

    if patch.get("category_id") is not None and db.session.get(Category, patch["category_id"]) is None:
        raise ValidationError(f"Line {patch['category_id']} does not exist")

    apply_product_patch(product, patch)
    product.margin_cents = compute_margin_cents(product.sell_price_cents, product.purchase_price_cents)

    append_ledger_event(
        event_type="product.updated",
        event_category="inventory",
        entity_type="product",
        entity_id=product.id,
        payload={"fields": sorted(patch)},
    )
    db.session.commit()
    return product


def delete_product(product_id: int) -> None:
    product = get_product(product_id)
    append_ledger_event(
        event_type="product.deleted",
        event_category="inventory",
        entity_type="product",
        entity_id=product.id,
        note=f"Deleted {product.code}",
    )
    db.session.delete(product)
    db.session.commit()
