# Overview: Flask API routes for sales; checkout, listing and receipt re-rendering.

"""Sales API routes"""

from flask import Blueprint, request, current_app

from ..models.sales import RECEIPT_RENDERED
from ..services import sales_service
from ..services.sales_service import SaleNotFoundError
from ..services.inventory_service import ProductNotFoundError, InsufficientStockError
from ..services.concurrency import ConcurrentModificationError
from ..services.receipt_service import render_sale_receipt
from ..validation import (
    parse_bool,
    parse_cents,
    parse_day_param,
    parse_line_items,
    parse_percent,
    require_keys,
    ValidationError,
)


SALE_FIELDS = {"items", "payment_method", "discount_percent", "es_pago_deuda", "total_cents"}

sales_bp = Blueprint("sales", __name__, url_prefix="/ventas")


@sales_bp.post("")
def create_sale_route():
    """
    Record a sale or a debt settlement.

    Body: {items: [{code, name?, unit_price_cents, quantity}], payment_method?,
    discount_percent?, es_pago_deuda?, total_cents?}

    Counter sales need whole quantities and live stock. Settlements skip
    stock and may carry fractional quantities and an explicit total.
    """
    payload = request.get_json(silent=True) or {}

    try:
        require_keys(payload, allowed=SALE_FIELDS, required={"items"})
        is_settlement = parse_bool(payload.get("es_pago_deuda", False))
        items = parse_line_items(payload["items"], integral_quantities=not is_settlement)
        payment_method = sales_service.normalize_payment_method(payload.get("payment_method"))
        discount = parse_percent("discount_percent", payload.get("discount_percent") or 0, allow_negative=False)
        if discount > 100:
            raise ValidationError("discount_percent must be between 0 and 100")
        total_override = None
        if payload.get("total_cents") is not None:
            if not is_settlement:
                raise ValidationError("total_cents is only accepted for debt settlements")
            total_override = parse_cents("total_cents", payload["total_cents"])
    except ValidationError as e:
        return {"success": False, "error": str(e)}, 400

    try:
        sale = sales_service.record_sale(
            items,
            payment_method=payment_method,
            discount_percent=discount,
            is_debt_settlement=is_settlement,
            total_override_cents=total_override,
        )
    except ValidationError as e:
        return {"success": False, "error": str(e)}, 400
    except ProductNotFoundError as e:
        return {"success": False, "error": str(e), "details": e.details}, 404
    except InsufficientStockError as e:
        return {"success": False, "error": str(e), "details": e.details}, 400
    except ConcurrentModificationError as e:
        return {"success": False, "error": str(e), "details": e.details}, 409

    current_app.logger.info("Sale %s recorded (%s, total=%s)", sale.id, sale.kind, sale.total_cents)
    return {
        "success": True,
        "factura": sale.receipt_ref,
        "ventaId": sale.id,
        "total": sale.total_cents,
        "receipt_status": sale.receipt_status,
        "sale": sale.to_dict(),
    }, 201


@sales_bp.get("")
def list_sales_route():
    """Query: fecha=YYYY-MM-DD (optional)."""
    try:
        day = parse_day_param("fecha", request.args.get("fecha"))
    except ValidationError as e:
        return {"error": str(e)}, 400

    sales = sales_service.list_sales(day=day)
    return {"items": [s.to_dict() for s in sales], "count": len(sales)}


@sales_bp.get("/<int:sale_id>")
def get_sale_route(sale_id: int):
    try:
        return {"sale": sales_service.get_sale(sale_id).to_dict()}
    except SaleNotFoundError as e:
        return {"error": str(e)}, 404


@sales_bp.post("/<int:sale_id>/factura")
def render_sale_receipt_route(sale_id: int):
    """Render (or re-render) the receipt of an existing sale."""
    try:
        sale = sales_service.get_sale(sale_id)
    except SaleNotFoundError as e:
        return {"success": False, "error": str(e)}, 404

    status = render_sale_receipt(sale)
    return {"success": status == RECEIPT_RENDERED, "factura": sale.receipt_ref, "receipt_status": status}
