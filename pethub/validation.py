from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy import Boolean, DateTime, Float, Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .errors import ValidationError
from .models.enums import SizeTier, PaymentMethod
from .time_utils import parse_iso_datetime


# Maximum price: 9,999,999.99 (999,999,999 cents)
MAX_PRICE_CENTS = 999_999_999

# A single grooming service longer than a day is a data entry error
MAX_SERVICE_DURATION_MINUTES = 24 * 60

# Branding colors are CSS hex: #RGB or #RRGGBB
HEX_COLOR_RE = re.compile(r"^#(?:[0-9a-fA-F]{3}){1,2}$")


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: frozenset[str]
    required_on_create: frozenset[str] = field(default_factory=frozenset)


CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({"name", "phone", "email", "address", "notes", "is_active"}),
    required_on_create=frozenset({"name", "phone"}),
)

PET_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({
        "name", "breed", "age", "size", "weight", "coat_type", "photo_url", "notes",
    }),
    required_on_create=frozenset({"name", "breed", "size"}),
)

SERVICE_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({
        "name", "description", "duration_minutes",
        "price_small_cents", "price_medium_cents", "price_large_cents", "is_active",
    }),
    required_on_create=frozenset({
        "name", "duration_minutes",
        "price_small_cents", "price_medium_cents", "price_large_cents",
    }),
)

# stock_quantity is writable on create only; later changes go through adjust_stock
PRODUCT_CREATE_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({
        "name", "description", "brand", "category", "unit", "barcode",
        "price_cents", "cost_cents", "stock_quantity", "min_stock", "is_active",
    }),
    required_on_create=frozenset({"name", "price_cents"}),
)

PRODUCT_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields=PRODUCT_CREATE_POLICY.writable_fields - {"stock_quantity"},
)


# Owners edit their profile and branding; plan, counters and activation
# are operator concerns (CLI)
BUSINESS_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({
        "name", "email", "phone", "address", "logo_url", "primary_color", "secondary_color",
    }),
)


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def coerce_int(key: str, value: Any) -> int:
    """Strict integer coercion: rejects floats, bools, decimals and scientific notation."""
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    # String input - must be plain digits (with optional leading minus)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{key} must be an integer")
        if 'e' in stripped.lower():
            raise ValidationError(f"{key} must be a plain integer (scientific notation not allowed)")
        if '.' in stripped:
            raise ValidationError(f"{key} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{key} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{key} must be an integer, not a decimal")
    raise ValidationError(f"{key} must be an integer")


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return coerce_int(col.key, value)

    if isinstance(coltype, Float):
        if isinstance(value, bool):
            raise ValidationError(f"{col.key} must be a number")
        try:
            return float(value)
        except (TypeError, ValueError):
            raise ValidationError(f"{col.key} must be a number")

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{col.key} must be true or false")

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            if dt is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            return dt
        raise ValidationError(f"{col.key} must be a datetime")

    if isinstance(coltype, (String, Text)):
        return str(value).strip()

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
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(f for f in policy.required_on_create if payload.get(f) in (None, ""))
        if missing:
            raise ValidationError(
                f"Missing required fields: {', '.join(missing)}",
                details={"fields": missing},
            )

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

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


def _check_cents(patch: dict, key: str) -> None:
    if key in patch and patch[key] is not None:
        value = patch[key]
        if value < 0:
            raise ValidationError(f"{key} must be >= 0")
        if value > MAX_PRICE_CENTS:
            raise ValidationError(f"{key} cannot exceed {MAX_PRICE_CENTS}")


def enforce_rules_service(patch: dict) -> None:
    for key in ("price_small_cents", "price_medium_cents", "price_large_cents"):
        _check_cents(patch, key)

    if "duration_minutes" in patch:
        duration = patch["duration_minutes"]
        if duration is None or duration <= 0:
            raise ValidationError("duration_minutes must be > 0")
        if duration > MAX_SERVICE_DURATION_MINUTES:
            raise ValidationError(f"duration_minutes cannot exceed {MAX_SERVICE_DURATION_MINUTES}")


def enforce_rules_product(patch: dict) -> None:
    _check_cents(patch, "price_cents")
    _check_cents(patch, "cost_cents")

    if "stock_quantity" in patch and patch["stock_quantity"] is not None:
        if patch["stock_quantity"] < 0:
            raise ValidationError("stock_quantity must be >= 0")

    if "min_stock" in patch and patch["min_stock"] is not None:
        if patch["min_stock"] < 0:
            raise ValidationError("min_stock must be >= 0")

    if patch.get("barcode") == "":
        patch["barcode"] = None


def enforce_rules_pet(patch: dict) -> None:
    if "size" in patch:
        try:
            patch["size"] = SizeTier.parse(patch["size"]).value
        except ValueError as exc:
            raise ValidationError(f"size {exc}")

    if "age" in patch and patch["age"] is not None and patch["age"] < 0:
        raise ValidationError("age must be >= 0")

    if "weight" in patch and patch["weight"] is not None and patch["weight"] <= 0:
        raise ValidationError("weight must be > 0")


def enforce_rules_business(patch: dict) -> None:
    for key in ("name", "email", "phone", "address"):
        if isinstance(patch.get(key), str):
            patch[key] = patch[key].strip()
    if "name" in patch and not patch["name"]:
        raise ValidationError("name cannot be blank")
    if "email" in patch:
        if "@" not in patch["email"]:
            raise ValidationError("email must be a valid address")
        patch["email"] = patch["email"].lower()

    for key in ("primary_color", "secondary_color"):
        value = patch.get(key)
        if value is not None and not HEX_COLOR_RE.match(value):
            raise ValidationError(f"{key} must be a hex color like #1A2B3C")


def parse_payment_method(value: Any) -> PaymentMethod:
    if value in (None, ""):
        raise ValidationError("payment_method is required")
    try:
        return PaymentMethod.parse(value)
    except ValueError as exc:
        raise ValidationError(f"payment_method {exc}")
