from __future__ import annotations

from datetime import datetime
from typing import Any

from backoffice.errors import ValidationError
from backoffice.time_utils import parse_iso_datetime


# Maximum unit cost: $9,999,999.99 (999,999,999 cents)
MAX_COST_CENTS = 999_999_999


def coerce_int(value: Any, field: str) -> int:
    """
    Strict integer coercion for request payloads.

    Accepts ints and plain digit strings (optional leading minus).
    Rejects bools, floats, decimals and scientific notation.
    """
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer", field=field)
        if "e" in stripped.lower():
            raise ValidationError(
                f"{field} must be a plain integer (scientific notation not allowed)", field=field
            )
        if "." in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)", field=field)
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer", field=field)
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal", field=field)
    raise ValidationError(f"{field} must be an integer", field=field)


def require_int(payload: dict, field: str, *, minimum: int | None = None) -> int:
    if field not in payload or payload[field] is None:
        raise ValidationError(f"{field} is required", field=field)
    value = coerce_int(payload[field], field)
    if minimum is not None and value < minimum:
        raise ValidationError(f"{field} must be >= {minimum}", field=field)
    return value


def optional_int(payload: dict, field: str, *, minimum: int | None = None) -> int | None:
    if payload.get(field) is None:
        return None
    return require_int(payload, field, minimum=minimum)


def require_cost_cents(payload: dict, field: str) -> int:
    value = require_int(payload, field, minimum=0)
    if value > MAX_COST_CENTS:
        raise ValidationError(f"{field} cannot exceed {MAX_COST_CENTS}", field=field)
    return value


def optional_datetime(payload: dict, field: str) -> datetime | None:
    raw = payload.get(field)
    if raw is None or raw == "":
        return None
    if isinstance(raw, datetime):
        return raw
    if not isinstance(raw, str):
        raise ValidationError(f"{field} must be an ISO-8601 date", field=field)
    dt = parse_iso_datetime(raw)
    if dt is None:
        raise ValidationError(f"{field} must be an ISO-8601 date", field=field)
    return dt


def optional_str(payload: dict, field: str, *, max_length: int | None = None) -> str | None:
    raw = payload.get(field)
    if raw is None:
        return None
    value = str(raw).strip()
    if max_length is not None and len(value) > max_length:
        raise ValidationError(f"{field} exceeds max length {max_length}", field=field)
    return value or None


def require_list(payload: dict, field: str) -> list[dict]:
    items = payload.get(field)
    if not isinstance(items, list):
        raise ValidationError(f"{field} must be an array", field=field)
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError(f"{field}[{index}] must be an object", field=field, index=index)
    return items
