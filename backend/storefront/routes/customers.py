# Overview: Flask API routes for customers and debt assignment.

from flask import Blueprint, request, current_app

from ..models import Customer
from ..services import debt_service
from ..services.debt_service import CustomerNotFoundError
from ..services.inventory_service import ProductNotFoundError, InsufficientStockError
from ..services.concurrency import ConcurrentModificationError
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    parse_bool,
    parse_cents,
    parse_line_items,
    ValidationError,
    ConflictError,
)

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "national_id"},
    required_on_create={"name", "national_id"},
    extra_fields={"items", "total_cents"},
)

customers_bp = Blueprint("customers", __name__, url_prefix="/clientes")


def _parse_debt(payload: dict) -> tuple[list[dict], int | None]:
    items = parse_line_items(payload.get("items"), allow_empty=True)
    total = payload.get("total_cents")
    total = parse_cents("total_cents", total, allow_zero=False) if total is not None else None
    return items, total


@customers_bp.get("")
def list_customers_route():
    in_debt_only = parse_bool(request.args.get("en_deuda", ""))
    customers = debt_service.list_customers(in_debt_only=in_debt_only)
    return {"items": [c.to_dict() for c in customers], "count": len(customers)}


@customers_bp.post("")
def create_customer_route():
    """
    Body: {name, national_id, items?, total_cents?}

    With items and/or total_cents the customer opens with that debt and the
    items' stock is reserved.
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=False)
        items, total = _parse_debt(payload)
        customer = debt_service.create_customer(
            name=patch["name"],
            national_id=patch["national_id"],
            items=items,
            total_cents=total,
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except ConflictError as e:
        return {"error": str(e)}, 409
    except ProductNotFoundError as e:
        return {"error": str(e), "details": e.details}, 404
    except InsufficientStockError as e:
        return {"error": str(e), "details": e.details}, 400
    except ConcurrentModificationError as e:
        return {"error": str(e), "details": e.details}, 409

    current_app.logger.info("Customer %s created (balance=%s)", customer.id, customer.outstanding_balance_cents)
    return {"customer": customer.to_dict()}, 201


@customers_bp.get("/<int:customer_id>")
def get_customer_route(customer_id: int):
    try:
        return {"customer": debt_service.get_customer(customer_id).to_dict()}
    except CustomerNotFoundError as e:
        return {"error": str(e)}, 404


@customers_bp.put("/<int:customer_id>")
def update_customer_route(customer_id: int):
    """
    Body: {items?, total_cents?, name?}

    items/total_cents assign more debt (stock reserved now, no sale). A body
    with only name renames the customer.
    """
    payload = request.get_json(silent=True) or {}
    policy = ModelValidationPolicy(writable_fields={"name"}, extra_fields={"items", "total_cents"})

    try:
        patch = validate_payload(model=Customer, payload=payload, policy=policy, partial=True)
        items, total = _parse_debt(payload)
        if items or total is not None:
            customer = debt_service.assign_debt(customer_id, items=items, total_cents=total, name=patch.get("name"))
        elif patch.get("name"):
            customer = debt_service.rename_customer(customer_id, patch["name"])
        else:
            raise ValidationError("Nothing to update")
    except ValidationError as e:
        return {"error": str(e)}, 400
    except CustomerNotFoundError as e:
        return {"error": str(e)}, 404
    except ProductNotFoundError as e:
        return {"error": str(e), "details": e.details}, 404
    except InsufficientStockError as e:
        return {"error": str(e), "details": e.details}, 400
    except ConcurrentModificationError as e:
        return {"error": str(e), "details": e.details}, 409

    return {"customer": customer.to_dict()}
