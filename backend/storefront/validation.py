from __future__ import annotations
from datetime import date, datetime
from decimal import Decimal
from storefront.time_utils import parse_iso_datetime, parse_day, day_bounds

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Integer, Numeric, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta

from storefront.money import to_decimal, round_quantity


# Maximum price: $9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_PRICE_CENTS = 999_999_999

# A percentage below -100 would produce negative prices
MIN_PERCENT = Decimal("-100")
MAX_PERCENT = Decimal("1000")


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate national id)."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    - extra_fields: accepted keys that are not model columns (handled by the route)
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore
    extra_fields: set[str] | None = None


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_int(key: str, value: Any) -> int:
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    # String input - must be plain digits (with optional leading minus)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{key} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise ValidationError(f"{key} must be a plain integer (scientific notation not allowed)")
        # Reject decimal points (e.g., "12.5")
        if '.' in stripped:
            raise ValidationError(f"{key} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{key} must be an integer")
    # Reject floats explicitly
    if isinstance(value, float):
        if value.is_integer():
            return int(value)
        raise ValidationError(f"{key} must be an integer, not a decimal")
    raise ValidationError(f"{key} must be an integer")


def _coerce_decimal(key: str, value: Any) -> Decimal:
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be a number")
    try:
        d = to_decimal(value)
    except ValueError:
        raise ValidationError(f"{key} must be a number")
    if not d.is_finite():
        raise ValidationError(f"{key} must be a finite number")
    return d


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Integers - strict validation to reject fractional values and scientific notation
    if isinstance(coltype, Integer):
        return _coerce_int(col.key, value)

    if isinstance(coltype, Numeric):
        return _coerce_decimal(col.key, value)

    # Booleans
    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        # fallback: truthiness
        return bool(value)

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except Exception:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            if dt is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            return dt
        raise ValidationError(f"{col.key} must be a datetime")

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    # Default: leave as-is
    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable column fields.
    Keys listed in policy.extra_fields are accepted but left for the caller.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)
    extra = policy.extra_fields or set()

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k in extra:
            continue
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        if k in extra:
            continue
        col = cols[k]

        # NULL handling
        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def require_keys(payload: Any, *, allowed: set[str], required: set[str]) -> dict:
    """Allowlist check for bodies that do not map onto a single model."""
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    unknown = sorted(k for k in payload if k not in allowed)
    if unknown:
        raise ValidationError(f"Field not allowed: {unknown[0]}")
    missing = sorted(k for k in required if payload.get(k) is None)
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")
    return payload


def parse_cents(key: str, value: Any, *, allow_zero: bool = True) -> int:
    cents = _coerce_int(key, value)
    if cents < 0 or (cents == 0 and not allow_zero):
        raise ValidationError(f"{key} must be {'>= 0' if allow_zero else '> 0'}")
    if cents > MAX_PRICE_CENTS:
        raise ValidationError(f"{key} cannot exceed {MAX_PRICE_CENTS} (${MAX_PRICE_CENTS / 100:,.2f})")
    return cents


def parse_percent(key: str, value: Any, *, allow_negative: bool = True) -> Decimal:
    pct = _coerce_decimal(key, value)
    low = MIN_PERCENT if allow_negative else Decimal("0")
    if pct < low or pct > MAX_PERCENT:
        raise ValidationError(f"{key} must be between {low} and {MAX_PERCENT}")
    return pct


LINE_ITEM_FIELDS = {"code", "name", "unit_price_cents", "quantity"}


def parse_line_items(items: Any, *, integral_quantities: bool = True, allow_empty: bool = False) -> list[dict]:
    """
    Validate a cart / reserved-items list.

    Each item: {code, name?, unit_price_cents, quantity}. Quantities must be
    positive; whole units unless integral_quantities is False (settlements).
    """
    if items is None:
        items = []
    if not isinstance(items, list):
        raise ValidationError("items must be a list")
    if not items and not allow_empty:
        raise ValidationError("Cart is empty")

    parsed = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError(f"items[{index}] must be an object")
        unknown = sorted(k for k in item if k not in LINE_ITEM_FIELDS)
        if unknown:
            raise ValidationError(f"items[{index}]: field not allowed: {unknown[0]}")

        code = str(item.get("code") or "").strip()
        if not code:
            raise ValidationError(f"items[{index}].code is required")
        if item.get("unit_price_cents") is None:
            raise ValidationError(f"items[{index}].unit_price_cents is required")
        if item.get("quantity") is None:
            raise ValidationError(f"items[{index}].quantity is required")

        unit_price_cents = parse_cents(f"items[{index}].unit_price_cents", item["unit_price_cents"])
        if integral_quantities:
            quantity = Decimal(_coerce_int(f"items[{index}].quantity", item["quantity"]))
        else:
            quantity = round_quantity(_coerce_decimal(f"items[{index}].quantity", item["quantity"]))
        if quantity <= 0:
            raise ValidationError(f"items[{index}].quantity must be > 0")

        name = item.get("name")
        parsed.append({
            "code": code,
            "name": str(name).strip() if name is not None else None,
            "unit_price_cents": unit_price_cents,
            "quantity": quantity,
        })
    return parsed


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    for key in ("sell_price_cents", "purchase_price_cents"):
        if key in patch and patch[key] is not None:
            parse_cents(key, patch[key])
    if "stock" in patch and patch["stock"] is not None and patch["stock"] < 0:
        raise ValidationError("stock must be >= 0")


def enforce_rules_category(patch: dict) -> None:
    if "markup_percent" in patch and patch["markup_percent"] is not None:
        patch["markup_percent"] = parse_percent("markup_percent", patch["markup_percent"], allow_negative=False)


def parse_int(key: str, value: Any, *, minimum: int | None = None) -> int:
    n = _coerce_int(key, value)
    if minimum is not None and n < minimum:
        raise ValidationError(f"{key} must be >= {minimum}")
    return n


def parse_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "si", "sí"}
    return bool(value)


def parse_day_param(key: str, value: str | None) -> date | None:
    """YYYY-MM-DD query parameter, or None when absent."""
    if value is None or not value.strip():
        return None
    try:
        return parse_day(value)
    except ValueError:
        raise ValidationError(f"{key} must be a date (YYYY-MM-DD)")


def parse_range_params(desde: str | None, hasta: str | None) -> tuple[datetime | None, datetime | None]:
    """Inclusive datetime bounds covering whole days from desde to hasta."""
    first = parse_day_param("desde", desde)
    last = parse_day_param("hasta", hasta)
    if first and last and first > last:
        raise ValidationError("desde must not be after hasta")
    start = day_bounds(first)[0] if first else None
    end = day_bounds(last)[1] if last else None
    return start, end
