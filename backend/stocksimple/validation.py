from __future__ import annotations

import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import Boolean, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeMeta


# Maximum unit cost: 9,999,999,999.99 fits Numeric(12, 2)
MAX_COST = Decimal("9999999999.99")

# Largest stock count, quantity or id accepted from clients (32-bit INTEGER)
MAX_INTEGER = 2**31 - 1

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate SKU)."""


class NotFoundError(LookupError):
    """404-level unknown id or sku."""


class AuthError(Exception):
    """401-level missing/invalid/expired token or bad credentials."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: API keys clients are allowed to set (security boundary)
    - required_on_create: API keys required for POST
    - field_map: API key -> model column key (camelCase payloads, snake_case columns)
    """
    writable_fields: set[str]
    required_on_create: set[str] = field(default_factory=set)
    field_map: dict[str, str] = field(default_factory=dict)

    def column_for(self, key: str) -> str:
        return self.field_map.get(key, key)


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def coerce_int(name: str, value: Any) -> int:
    """
    Strict integer coercion: ints and digit strings only.
    Rejects bools, floats, decimals, scientific notation, and anything
    outside +/- MAX_INTEGER.
    """
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        result = value
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{name} must be an integer")
        if 'e' in stripped.lower():
            raise ValidationError(f"{name} must be a plain integer (scientific notation not allowed)")
        if '.' in stripped:
            raise ValidationError(f"{name} must be an integer (no decimals)")
        try:
            result = int(stripped)
        except ValueError:
            raise ValidationError(f"{name} must be an integer")
    elif isinstance(value, float):
        raise ValidationError(f"{name} must be an integer, not a decimal")
    else:
        raise ValidationError(f"{name} must be an integer")

    if abs(result) > MAX_INTEGER:
        raise ValidationError(f"{name} cannot exceed {MAX_INTEGER}")
    return result


def coerce_decimal(name: str, value: Any) -> Decimal:
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be a number")
    if isinstance(value, float):
        # go through str() so 12.3 stays 12.3 rather than its binary expansion
        value = str(value)
    try:
        dec = Decimal(str(value).strip()) if isinstance(value, str) else Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"{name} must be a number")
    if not dec.is_finite():
        raise ValidationError(f"{name} must be a finite number")
    return dec


def _coerce_value(name: str, col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return coerce_int(name, value)

    if isinstance(coltype, Numeric):
        return coerce_decimal(name, value)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{name} must be a boolean")

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        if isinstance(value, (dict, list)):
            raise ValidationError(f"{name} must be a string")
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
    Returns a cleaned patch dict keyed by model column names.

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
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    # Allowlist first, so an unknown key is reported before any type error
    unknown = sorted(k for k in payload if k not in policy.writable_fields)
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(unknown)}")

    patch: dict = {}
    for api_key, raw in payload.items():
        col_key = policy.column_for(api_key)
        if col_key not in cols:
            raise ValidationError(f"Unknown field: {api_key}")
        patch[col_key] = _check_field(api_key, cols[col_key], raw)
    return patch


def _check_field(api_key: str, col, raw: Any):
    """Coerce one value and apply the column's nullable/blank/length limits."""
    if raw is None:
        if not col.nullable:
            raise ValidationError(f"{api_key} cannot be null")
        return None

    val = _coerce_value(api_key, col, raw)
    if not isinstance(val, str):
        return val

    if val == "" and not col.nullable:
        raise ValidationError(f"{api_key} cannot be blank")
    max_len = getattr(col.type, "length", None)
    if max_len and len(val) > max_len:
        raise ValidationError(f"{api_key} exceeds max length {max_len}")
    return val


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    if "cost" in patch and patch["cost"] is not None:
        cost = patch["cost"]
        if cost < 0:
            raise ValidationError("cost must be >= 0")
        if cost > MAX_COST:
            raise ValidationError(f"cost cannot exceed {MAX_COST}")
        patch["cost"] = cost.quantize(Decimal("0.01"))

    if "current_stock" in patch and patch["current_stock"] is not None:
        if patch["current_stock"] < 0:
            raise ValidationError("currentStock must be >= 0")

    if "reorder_point" in patch and patch["reorder_point"] is not None:
        if patch["reorder_point"] < 0:
            raise ValidationError("reorderPoint must be >= 0")

    if "sku" in patch and patch["sku"] is not None:
        if any(ch.isspace() for ch in patch["sku"]):
            raise ValidationError("sku cannot contain whitespace")


def validate_movement_input(quantity: Any, movement_type: Any, allowed_types) -> tuple[int, str]:
    """
    Movement rules: quantity is a positive magnitude; direction comes from type.
    """
    if quantity is None:
        raise ValidationError("quantity is required")
    qty = coerce_int("quantity", quantity)
    if qty <= 0:
        raise ValidationError("quantity must be a positive integer")

    if movement_type not in allowed_types:
        raise ValidationError(f"type must be one of: {', '.join(allowed_types)}")

    return qty, movement_type


def validate_email(email: Any) -> str:
    if not isinstance(email, str) or not EMAIL_RE.match(email.strip()):
        raise ValidationError("A valid email is required")
    normalized = email.strip().lower()
    if len(normalized) > 255:
        raise ValidationError("email exceeds max length 255")
    return normalized
