from __future__ import annotations
from datetime import date, datetime
from shopledger.time_utils import parse_iso_datetime, parse_iso_date

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Date, DateTime, Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .errors import ValidationError


# Maximum price: 9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_PRICE_CENTS = 999_999_999

# Largest single stock movement accepted from a client
MAX_QUANTITY = 1_000_000

# Largest amount a single request may record (one maximal sale line)
MAX_AMOUNT_CENTS = MAX_PRICE_CENTS * MAX_QUANTITY

# Row ids are 32-bit signed integers
MAX_ID = 2**31 - 1

# SQLite and PostgreSQL both store at most a signed 64-bit integer
MAX_STORED_INT = 2**63 - 1


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _in_stored_range(name: str, value: int) -> int:
    if abs(value) > MAX_STORED_INT:
        raise ValidationError(f"{name} is out of range")
    return value


def coerce_int(name: str, value: Any) -> int:
    """
    Strict integer coercion for JSON input.

    Rejects booleans, floats, decimals in strings and scientific notation.
    """
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return _in_stored_range(name, value)
    # String input - must be plain digits (with optional leading minus)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{name} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise ValidationError(f"{name} must be a plain integer (scientific notation not allowed)")
        # Reject decimal points (e.g., "12.5")
        if '.' in stripped:
            raise ValidationError(f"{name} must be an integer (no decimals)")
        try:
            value = int(stripped)
        except ValueError:
            raise ValidationError(f"{name} must be an integer")
        return _in_stored_range(name, value)
    # Reject floats explicitly
    if isinstance(value, float):
        raise ValidationError(f"{name} must be an integer, not a decimal")
    raise ValidationError(f"{name} must be an integer")


def require_positive_int(name: str, value: Any, *, maximum: int | None = None) -> int:
    if value is None:
        raise ValidationError(f"{name} is required")
    result = coerce_int(name, value)
    if result <= 0:
        raise ValidationError(f"{name} must be > 0")
    if maximum is not None and result > maximum:
        raise ValidationError(f"{name} cannot exceed {maximum}")
    return result


def require_id(name: str, value: Any) -> int:
    return require_positive_int(name, value, maximum=MAX_ID)


def require_non_negative_int(name: str, value: Any, *, maximum: int | None = None) -> int:
    if value is None:
        raise ValidationError(f"{name} is required")
    result = coerce_int(name, value)
    if result < 0:
        raise ValidationError(f"{name} must be >= 0")
    if maximum is not None and result > maximum:
        raise ValidationError(f"{name} cannot exceed {maximum}")
    return result


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        return coerce_int(col.key, value)

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
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            if dt is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            return dt
        raise ValidationError(f"{col.key} must be a datetime")

    # Dates
    if isinstance(coltype, Date):
        if isinstance(value, (date, str)):
            try:
                d = parse_iso_date(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 date")
            if d is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 date")
            return d
        raise ValidationError(f"{col.key} must be a date")

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
    Returns a cleaned patch dict with only writable fields.

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

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
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


def _check_price(patch: dict, field: str) -> None:
    if field in patch and patch[field] is not None:
        price = patch[field]
        if price < 0:
            raise ValidationError(f"{field} must be >= 0")
        if price > MAX_PRICE_CENTS:
            raise ValidationError(f"{field} cannot exceed {MAX_PRICE_CENTS} ({MAX_PRICE_CENTS / 100:,.2f})")


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    _check_price(patch, "cost_price_cents")
    _check_price(patch, "selling_price_cents")

    if "reorder_level" in patch and patch["reorder_level"] is not None:
        if patch["reorder_level"] < 0:
            raise ValidationError("reorder_level must be >= 0")

    if "initial_stock" in patch and patch["initial_stock"] is not None:
        if patch["initial_stock"] < 0:
            raise ValidationError("initial_stock must be >= 0")
        if patch["initial_stock"] > MAX_QUANTITY:
            raise ValidationError(f"initial_stock cannot exceed {MAX_QUANTITY}")


def enforce_rules_lender(patch: dict) -> None:
    if "credit_limit_cents" in patch and patch["credit_limit_cents"] is not None:
        if patch["credit_limit_cents"] < 0:
            raise ValidationError("credit_limit_cents must be >= 0")


def parse_date_range(start_date, end_date):
    """
    Parse optional ISO-8601 start/end filters into UTC-naive datetimes.

    Both bounds are inclusive; a bare YYYY-MM-DD end bound covers that whole day.
    """
    try:
        start = parse_iso_datetime(start_date) if start_date else None
        end = parse_iso_datetime(end_date) if end_date else None
    except ValueError:
        raise ValidationError("start_date/end_date must be ISO-8601")
    if end is not None and isinstance(end_date, str) and len(end_date.strip()) == 10:
        end = end.replace(hour=23, minute=59, second=59, microsecond=999999)
    return start, end
