# Overview: Flask API routes for suppliers.

from flask import Blueprint, request

from ..models import Supplier
from ..services import catalog_service
from ..services.catalog_service import SupplierNotFoundError
from ..validation import ModelValidationPolicy, validate_payload, parse_bool, ValidationError

SUPPLIER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "phone", "email", "is_active"},
    required_on_create={"name"},
)

suppliers_bp = Blueprint("suppliers", __name__, url_prefix="/proveedores")


@suppliers_bp.get("")
def list_suppliers_route():
    active_only = parse_bool(request.args.get("activos", ""))
    suppliers = catalog_service.list_suppliers(include_inactive=not active_only)
    return {"items": [s.to_dict() for s in suppliers], "count": len(suppliers)}


@suppliers_bp.post("")
def create_supplier_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Supplier, payload=payload, policy=SUPPLIER_POLICY, partial=False)
    except ValidationError as e:
        return {"error": str(e)}, 400
    return {"supplier": catalog_service.create_supplier(patch).to_dict()}, 201


@suppliers_bp.put("/<int:supplier_id>")
def update_supplier_route(supplier_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Supplier, payload=payload, policy=SUPPLIER_POLICY, partial=True)
        supplier = catalog_service.update_supplier(supplier_id, patch)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except SupplierNotFoundError as e:
        return {"error": str(e)}, 404
    return {"supplier": supplier.to_dict()}
