# Overview: Flask API routes for debt payments and payment receipts.

from flask import Blueprint, request, current_app

from ..models.sales import RECEIPT_RENDERED
from ..services import debt_service
from ..services.debt_service import CustomerNotFoundError, PaymentNotFoundError, InvalidPaymentAmountError
from ..services.concurrency import ConcurrentModificationError
from ..services.receipt_service import render_payment_receipt
from ..services.sales_service import normalize_payment_method
from ..validation import parse_int, parse_range_params, require_keys, ValidationError


payments_bp = Blueprint("payments", __name__, url_prefix="/pagos")


@payments_bp.post("")
def record_payment_route():
    """
    Body: {customer_id, amount_paid_cents, payment_method?}

    Response carries the payment, the bookkeeping sale (or null) and any
    warnings about steps that did not complete.
    """
    payload = request.get_json(silent=True) or {}

    try:
        require_keys(
            payload,
            allowed={"customer_id", "amount_paid_cents", "payment_method"},
            required={"customer_id", "amount_paid_cents"},
        )
        customer_id = parse_int("customer_id", payload["customer_id"], minimum=1)
        amount = parse_int("amount_paid_cents", payload["amount_paid_cents"])
        method = normalize_payment_method(payload.get("payment_method"))
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        outcome = debt_service.record_payment(customer_id, amount, method)
    except CustomerNotFoundError as e:
        return {"error": str(e)}, 404
    except InvalidPaymentAmountError as e:
        return {"error": str(e), "details": e.details}, 400
    except ConcurrentModificationError as e:
        return {"error": str(e), "details": e.details}, 409

    payment = outcome.payment
    for warning in outcome.warnings:
        current_app.logger.warning("Payment %s: %s", payment.id, warning)

    return {
        "payment": payment.to_dict(),
        "sale": outcome.sale.to_dict() if outcome.sale else None,
        "warnings": outcome.warnings,
        "factura": payment.receipt_ref,
        "receipt_status": payment.receipt_status,
    }, 201


@payments_bp.get("")
def list_payments_route():
    """Query: desde, hasta (YYYY-MM-DD), cliente (customer id)."""
    try:
        start, end = parse_range_params(request.args.get("desde"), request.args.get("hasta"))
        customer = request.args.get("cliente")
        customer_id = parse_int("cliente", customer) if customer else None
    except ValidationError as e:
        return {"error": str(e)}, 400

    payments = debt_service.list_payments(start=start, end=end, customer_id=customer_id)
    return {"items": [p.to_dict() for p in payments], "count": len(payments)}


@payments_bp.post("/factura")
def render_payment_receipt_route():
    """Body: {payment_id}. Renders (or re-renders) the payment ticket."""
    payload = request.get_json(silent=True) or {}
    try:
        require_keys(payload, allowed={"payment_id"}, required={"payment_id"})
        payment = debt_service.get_payment(parse_int("payment_id", payload["payment_id"], minimum=1))
    except ValidationError as e:
        return {"success": False, "error": str(e)}, 400
    except PaymentNotFoundError as e:
        return {"success": False, "error": str(e)}, 404

    status = render_payment_receipt(payment)
    return {"success": status == RECEIPT_RENDERED, "factura": payment.receipt_ref, "receipt_status": status}
