from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import Boolean, Date, DateTime, Enum, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .money import MAX_AMOUNT
from .time_utils import parse_iso_date


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """Business rule conflict (duplicate quantity, booked slot, taken email)."""


class NotFoundError(LookupError):
    """Referenced record absent, or not owned by the caller."""


# Largest value a 64-bit INTEGER column can hold
MAX_INTEGER = 2**63 - 1


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


def coerce_integer(key: str, value: Any) -> int:
    number = _parse_integer(key, value)
    if abs(number) > MAX_INTEGER:
        raise ValidationError(f"{key} is out of range")
    return number


def _parse_integer(key: str, value: Any) -> int:
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
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


def coerce_amount(key: str, value: Any, scale: int = 2) -> Decimal:
    """
    Parse a money amount from JSON (number or numeric string).

    Floats go through str() so 12.5 becomes Decimal("12.5"), not the
    binary approximation.
    """
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{key} must be a decimal number")
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, float, str)):
        try:
            amount = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValidationError(f"{key} must be a decimal number")
    else:
        raise ValidationError(f"{key} must be a decimal number")

    if not amount.is_finite():
        raise ValidationError(f"{key} must be a finite number")
    if abs(amount) > MAX_AMOUNT:
        raise ValidationError(f"{key} cannot exceed {MAX_AMOUNT}")
    step = Decimal(1).scaleb(-scale)
    if amount.as_tuple().exponent < -scale and amount != amount.quantize(step):
        raise ValidationError(f"{key} must have at most {scale} decimal places")
    return amount.quantize(step)


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Enum before String: sqlalchemy.Enum subclasses String
    if isinstance(coltype, Enum):
        enum_class = coltype.enum_class
        if enum_class is not None:
            if isinstance(value, enum_class):
                return value
            try:
                return enum_class(value)
            except ValueError:
                allowed = ", ".join(m.value for m in enum_class)
                raise ValidationError(f"{col.key} must be one of: {allowed}")
        if value not in coltype.enums:
            raise ValidationError(f"{col.key} must be one of: {', '.join(coltype.enums)}")
        return value

    if isinstance(coltype, Integer):
        return coerce_integer(col.key, value)

    if isinstance(coltype, Numeric):
        return coerce_amount(col.key, value, scale=coltype.scale or 2)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        return bool(value)

    # DateTime is checked before Date
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        raise ValidationError(f"{col.key} must be a datetime")

    if isinstance(coltype, Date):
        if isinstance(value, date) and not isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                parsed = parse_iso_date(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be a valid ISO-8601 date")
            if parsed is None:
                raise ValidationError(f"{col.key} must be a valid ISO-8601 date")
            return parsed
        raise ValidationError(f"{col.key} must be a valid ISO-8601 date")

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
    - SQLAlchemy column metadata (nullable, type, String length, Enum members)
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

        if isinstance(col.type, (String, Text)) and not isinstance(col.type, Enum) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        if (
            isinstance(col.type, String)
            and not isinstance(col.type, Enum)
            and col.type.length
            and isinstance(val, str)
            and len(val) > col.type.length
        ):
            raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def enforce_rules_milk_rate(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    if "quantity" in patch and patch["quantity"] is not None:
        if patch["quantity"] <= 0:
            raise ValidationError("quantity must be a positive integer (ml)")

    if "price" in patch and patch["price"] is not None:
        if patch["price"] < 0:
            raise ValidationError("price must be >= 0")


def enforce_rules_payment(patch: dict) -> None:
    amount = patch.get("amount")
    if amount is None or amount <= 0:
        raise ValidationError("amount must be greater than 0")


def parse_month_year(month_raw: str | None, year_raw: str | None, *, today: date) -> tuple[int, int]:
    """
    Resolve ?month=&year= query parameters, defaulting to the current month.
    """
    month = today.month
    year = today.year
    if month_raw not in (None, ""):
        month = coerce_integer("month", month_raw)
        if not 1 <= month <= 12:
            raise ValidationError("month must be between 1 and 12")
    if year_raw not in (None, ""):
        year = coerce_integer("year", year_raw)
        if not 1 <= year <= 9999:
            raise ValidationError("year must be between 1 and 9999")
    return month, year
