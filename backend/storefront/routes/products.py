# Overview: Flask API routes for products; receiving, edits, low stock and line repricing.

"""
Product routes

POST /productos receives stock: an unknown code creates the product, a
known code is restocked.
"""
from flask import Blueprint, request, current_app
from ..extensions import db
from ..models import Product, Category
from ..services import inventory_service, products_service
from ..services.inventory_service import ProductNotFoundError, CategoryNotFoundError
from ..services.concurrency import ConcurrentModificationError
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    parse_int,
    parse_percent,
    require_keys,
    ValidationError,
    ConflictError,
)

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"code", "name", "sell_price_cents", "purchase_price_cents", "category_id", "image_ref"},
    required_on_create={"code", "quantity"},
    extra_fields={"quantity"},
)

products_bp = Blueprint("products", __name__, url_prefix="/productos")


@products_bp.post("")
def receive_product_route():
    """
    Receive stock for a product code.

    Body: {code, quantity, purchase_price_cents?, sell_price_cents?, name?,
    category_id?, image_ref?}. Returns 201 when the product was created.
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
        quantity = parse_int("quantity", payload.get("quantity"), minimum=0)
        if patch.get("category_id") is not None and db.session.get(Category, patch["category_id"]) is None:
            raise ValidationError(f"Line {patch['category_id']} does not exist")
    except ValidationError as e:
        return {"error": str(e)}, 400

    code = patch.pop("code")
    try:
        product, created = inventory_service.receive(code, quantity, **patch)
    except ConcurrentModificationError as e:
        return {"error": str(e), "details": e.details}, 409

    current_app.logger.info("Received %s x %s (created=%s)", quantity, code, created)
    return {"product": product.to_dict(), "created": created}, 201 if created else 200


@products_bp.get("")
def list_products_route():
    """
    Query params:
    - codigo: exact code
    - codigos: comma-separated codes
    """
    code = (request.args.get("codigo") or "").strip() or None
    raw_codes = request.args.get("codigos") or ""
    codes = [c.strip() for c in raw_codes.split(",") if c.strip()]

    products = products_service.list_products(code=code, codes=codes or None)
    return {"items": [p.to_dict() for p in products], "count": len(products)}


@products_bp.get("/bajo-stock")
def low_stock_route():
    try:
        limit = request.args.get("limite")
        limit = parse_int("limite", limit, minimum=0) if limit is not None else current_app.config["LOW_STOCK_THRESHOLD"]
    except ValidationError as e:
        return {"error": str(e)}, 400

    products = inventory_service.list_low_stock(limit)
    return {"items": [p.to_dict() for p in products], "count": len(products), "limite": limit}


@products_bp.post("/aumentar-linea")
def reprice_line_route():
    """Body: {category_id, percent}. Returns {success, modificados}."""
    payload = request.get_json(silent=True) or {}
    try:
        require_keys(payload, allowed={"category_id", "percent"}, required={"category_id", "percent"})
        category_id = parse_int("category_id", payload["category_id"], minimum=1)
        percent = parse_percent("percent", payload["percent"])
    except ValidationError as e:
        return {"success": False, "error": str(e)}, 400

    try:
        modified = inventory_service.apply_percent_change(category_id, percent)
    except CategoryNotFoundError as e:
        return {"success": False, "error": str(e)}, 404

    return {"success": True, "modificados": modified}


@products_bp.get("/<int:product_id>")
def get_product_route(product_id: int):
    try:
        return {"product": products_service.get_product(product_id).to_dict()}
    except ProductNotFoundError as e:
        return {"error": str(e)}, 404


@products_bp.put("/<int:product_id>")
def update_product_route(product_id: int):
    """Edit product fields; stock is changed only by receiving or selling."""
    payload = request.get_json(silent=True) or {}
    policy = ModelValidationPolicy(writable_fields=PRODUCT_POLICY.writable_fields)

    try:
        patch = validate_payload(model=Product, payload=payload, policy=policy, partial=True)
        enforce_rules_product(patch)
        product = products_service.update_product(product_id, patch)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except ConflictError as e:
        return {"error": str(e)}, 409
    except ProductNotFoundError as e:
        return {"error": str(e)}, 404

    return {"product": product.to_dict()}


@products_bp.delete("/<int:product_id>")
def delete_product_route(product_id: int):
    try:
        products_service.delete_product(product_id)
    except ProductNotFoundError as e:
        return {"error": str(e)}, 404
    return {"success": True}
