# Overview: Flask API routes for product lines (categories) and markup suggestions.

from flask import Blueprint, request

from ..models import Category
from ..services import catalog_service
from ..services.inventory_service import CategoryNotFoundError
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_category,
    parse_cents,
    ValidationError,
)

CATEGORY_POLICY = ModelValidationPolicy(
    writable_fields={"name", "markup_percent"},
    required_on_create={"name"},
)

lines_bp = Blueprint("lines", __name__, url_prefix="/lineas")


@lines_bp.get("")
def list_lines_route():
    categories = catalog_service.list_categories()
    return {"items": [c.to_dict() for c in categories], "count": len(categories)}


@lines_bp.post("")
def create_line_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=False)
        enforce_rules_category(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    return {"line": catalog_service.create_category(patch).to_dict()}, 201


@lines_bp.put("/<int:category_id>")
def update_line_route(category_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=True)
        enforce_rules_category(patch)
        category = catalog_service.update_category(category_id, patch)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except CategoryNotFoundError as e:
        return {"error": str(e)}, 404

    return {"line": category.to_dict()}


@lines_bp.delete("/<int:category_id>")
def delete_line_route(category_id: int):
    try:
        catalog_service.delete_category(category_id)
    except CategoryNotFoundError as e:
        return {"error": str(e)}, 404
    return {"success": True}


@lines_bp.get("/<int:category_id>/precio-sugerido")
def suggested_price_route(category_id: int):
    """Query: purchase_price_cents. Returns the markup-derived sell price."""
    try:
        purchase = parse_cents("purchase_price_cents", request.args.get("purchase_price_cents"))
        suggested = catalog_service.suggested_sell_price(category_id, purchase)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except CategoryNotFoundError as e:
        return {"error": str(e)}, 404

    return {"category_id": category_id, "purchase_price_cents": purchase, "sell_price_cents": suggested}
