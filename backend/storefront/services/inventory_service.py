# Overview: Service-layer operations for stock; receive, conditional decrement and line repricing.

"""
Inventory Adjuster

STOCK INVARIANTS:
- Product.stock never goes below zero.
- Decrements are conditional UPDATEs (stock >= requested) so a concurrent
  writer can never push stock negative between our check and our write.
- Increments use a SQL expression (stock + q) rather than read-modify-write.

Callers that compose stock changes into a larger unit of work pass
commit=False and own the commit.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Product, Category
from .concurrency import ConcurrentModificationError, run_with_retry
from .ledger_service import append_ledger_event
from .pricing_service import compute_margin_cents, suggest_sell_price_cents, reprice_cents


logger = logging.getLogger(__name__)


class InventoryError(Exception):
    """Base class for stock errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class ProductNotFoundError(InventoryError):
    pass


class CategoryNotFoundError(InventoryError):
    pass


class InsufficientStockError(InventoryError):
    """details["items"] lists {code, requested, available} for every short line."""


def get_product_by_code(code: str) -> Product | None:
    return db.session.query(Product).filter_by(code=code).first()


def get_products_by_codes(codes: list[str]) -> list[Product]:
    if not codes:
        return []
    return db.session.query(Product).filter(Product.code.in_(set(codes))).order_by(Product.code.asc()).all()


def _derive_sell_price(category_id: int | None, purchase_price_cents: int | None) -> int | None:
    if category_id is None or purchase_price_cents is None:
        return None
    category = db.session.get(Category, category_id)
    if category is None or not category.markup_percent:
        return None
    return suggest_sell_price_cents(purchase_price_cents, category.markup_percent)


def receive(
    code: str,
    quantity: int,
    *,
    purchase_price_cents: int | None = None,
    sell_price_cents: int | None = None,
    name: str | None = None,
    category_id: int | None = None,
    image_ref: str | None = None,
) -> tuple[Product, bool]:
    """
    Receive stock for a product code.

    Existing code: stock += quantity, prices overwritten when given, margin
    recomputed. Unknown code: the product is created. Quantity is not
    validated here.

    Returns (product, created).
    """
    def _op():
        product = get_product_by_code(code)
        created = product is None

        if created:
            derived = sell_price_cents
            if derived is None:
                derived = _derive_sell_price(category_id, purchase_price_cents)
            product = Product(
                code=code,
                name=name,
                sell_price_cents=derived,
                purchase_price_cents=purchase_price_cents,
                margin_cents=compute_margin_cents(derived, purchase_price_cents),
                category_id=category_id,
                stock=quantity,
                image_ref=image_ref,
            )
            db.session.add(product)
            try:
                db.session.flush()
            except IntegrityError as exc:
                # Another request created the same code first; retry as a restock
                raise ConcurrentModificationError(details={"code": code}) from exc
        else:
            db.session.query(Product).filter(Product.id == product.id).update(
                {Product.stock: Product.stock + quantity},
                synchronize_session="evaluate",
            )
            if purchase_price_cents is not None:
                product.purchase_price_cents = purchase_price_cents
            if sell_price_cents is not None:
                product.sell_price_cents = sell_price_cents
            if name:
                product.name = name
            if category_id is not None:
                product.category_id = category_id
            if image_ref:
                product.image_ref = image_ref
            product.margin_cents = compute_margin_cents(product.sell_price_cents, product.purchase_price_cents)

        append_ledger_event(
            event_type="inventory.received",
            event_category="inventory",
            entity_type="product",
            entity_id=product.id,
            note=f"Received {quantity} x {code}",
            payload={"code": code, "quantity": quantity, "created": created},
        )
        db.session.commit()
        return product, created

    return run_with_retry(_op)


def _aggregate(items: list[tuple[str, int]]) -> dict[str, int]:
    wanted: dict[str, int] = {}
    for code, qty in items:
        wanted[code] = wanted.get(code, 0) + int(qty)
    return wanted


def check_availability(items: list[tuple[str, int]]) -> dict[str, Product]:
    """
    Batch lookup of every referenced code against live stock.

    Raises ProductNotFoundError listing missing codes, then
    InsufficientStockError listing every short line.
    """
    wanted = _aggregate(items)
    products = {p.code: p for p in get_products_by_codes(list(wanted))}

    missing = [code for code in wanted if code not in products]
    if missing:
        raise ProductNotFoundError(
            f"Product not found: {', '.join(missing)}",
            details={"codes": missing},
        )

    short = [
        {"code": code, "requested": qty, "available": products[code].stock}
        for code, qty in wanted.items()
        if products[code].stock < qty
    ]
    if short:
        raise InsufficientStockError("Insufficient stock", details={"items": short})

    return products


def decrement_many(items: list[tuple[str, int]], *, commit: bool = False) -> dict[str, Product]:
    """
    Validate and decrement stock for a batch of (code, quantity) pairs.

    Every decrement is guarded by stock >= quantity in the UPDATE itself;
    a guard that matches no row means the stock moved after our check and
    raises ConcurrentModificationError (the caller rolls back).
    """
    products = check_availability(items)

    for code, qty in _aggregate(items).items():
        matched = db.session.query(Product).filter(
            Product.code == code,
            Product.stock >= qty,
        ).update({Product.stock: Product.stock - qty}, synchronize_session="evaluate")
        if matched != 1:
            logger.warning("Conditional stock decrement lost a race for %s (qty=%s)", code, qty)
            raise ConcurrentModificationError(details={"code": code})

    if commit:
        db.session.commit()
    return products


def decrement(code: str, quantity: int) -> Product:
    """Decrement a single product in its own unit of work."""
    def _op():
        products = decrement_many([(code, quantity)])
        db.session.commit()
        return products[code]

    return run_with_retry(_op)


def apply_percent_change(category_id: int, percent: Decimal) -> int:
    """
    Reprice every priced product of a line by percent.

    sell = round2(sell * (1 + percent/100)); margin recomputed when the
    purchase price is known. Returns the number of products changed.
    """
    def _op():
        products = db.session.query(Product).filter(Product.category_id == category_id).all()
        if not products:
            raise CategoryNotFoundError(f"No products found for line {category_id}")

        modified = 0
        for product in products:
            if product.sell_price_cents is None:
                continue
            product.sell_price_cents = reprice_cents(product.sell_price_cents, percent)
            product.margin_cents = compute_margin_cents(product.sell_price_cents, product.purchase_price_cents)
            modified += 1

        append_ledger_event(
            event_type="pricing.line_repriced",
            event_category="pricing",
            entity_type="product_line",
            entity_id=category_id,
            note=f"Line {category_id} repriced by {percent}%",
            payload={"percent": percent, "modified": modified},
        )
        db.session.commit()
        return modified

    return run_with_retry(_op)


def list_low_stock(limit: int) -> list[Product]:
    return (
        db.session.query(Product)
        .filter(Product.stock <= limit)
        .order_by(Product.stock.asc(), Product.code.asc())
        .all()
    )


def count_low_stock(limit: int) -> int:
    return db.session.query(Product).filter(Product.stock <= limit).count()
