# Overview: Flask API routes for shop expenses.

from flask import Blueprint, request

from ..models import Expense
from ..services import expense_service
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    parse_cents,
    parse_day_param,
    parse_range_params,
    ValidationError,
)

EXPENSE_POLICY = ModelValidationPolicy(
    writable_fields={"amount_cents", "description", "occurred_at"},
    required_on_create={"amount_cents"},
)

expenses_bp = Blueprint("expenses", __name__, url_prefix="/gastos")


@expenses_bp.post("")
def create_expense_route():
    """Body: {amount_cents, description?, occurred_at? (ISO-8601, defaults to now)}"""
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Expense, payload=payload, policy=EXPENSE_POLICY, partial=False)
        patch["amount_cents"] = parse_cents("amount_cents", patch["amount_cents"], allow_zero=False)
    except ValidationError as e:
        return {"error": str(e)}, 400

    return {"expense": expense_service.create_expense(**patch).to_dict()}, 201


@expenses_bp.get("")
def list_expenses_route():
    try:
        start, end = parse_range_params(request.args.get("desde"), request.args.get("hasta"))
    except ValidationError as e:
        return {"error": str(e)}, 400

    expenses = expense_service.list_expenses(start, end)
    return {
        "items": [e.to_dict() for e in expenses],
        "count": len(expenses),
        "total_cents": sum(e.amount_cents for e in expenses),
    }


@expenses_bp.delete("")
def delete_expenses_route():
    """Query: fecha=YYYY-MM-DD (required). Deletes every expense of that day."""
    try:
        day = parse_day_param("fecha", request.args.get("fecha"))
        if day is None:
            raise ValidationError("fecha is required")
    except ValidationError as e:
        return {"error": str(e)}, 400

    deleted = expense_service.delete_expenses_for_day(day)
    return {"success": True, "eliminados": deleted}
