from __future__ import annotations

from enum import Enum
from typing import Any

from .errors import InvalidInput
from .time_utils import parse_iso_datetime


# Maximum price: 9,999,999.99 (999,999,999 cents)
# Keeps money columns well inside 32-bit integer range
MAX_PRICE_CENTS = 999_999_999
MAX_QUANTITY = 10_000_000


def coerce_int(key: str, value: Any) -> int:
    """
    Strict integer coercion for JSON input.

    Accepts ints and plain digit strings (optional leading minus). Rejects
    booleans, floats, decimals and scientific notation.
    """
    if isinstance(value, bool):
        raise InvalidInput(f"{key} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        raise InvalidInput(f"{key} must be an integer, not a decimal")
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise InvalidInput(f"{key} must be an integer")
        if "e" in stripped.lower():
            raise InvalidInput(f"{key} must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
            raise InvalidInput(f"{key} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise InvalidInput(f"{key} must be an integer")
    raise InvalidInput(f"{key} must be an integer")


def require_payload(payload: Any) -> dict:
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise InvalidInput("Invalid JSON payload")
    return payload


def require_fields(payload: dict, fields: set[str] | list[str]) -> None:
    missing = sorted(f for f in fields if payload.get(f) is None)
    if missing:
        raise InvalidInput(f"Missing required fields: {', '.join(missing)}")


def reject_unknown_fields(payload: dict, allowed: set[str]) -> None:
    for key in payload.keys():
        if key not in allowed:
            raise InvalidInput(f"Field not allowed: {key}")


def positive_int(key: str, value: Any, *, maximum: int | None = None) -> int:
    v = coerce_int(key, value)
    if v <= 0:
        raise InvalidInput(f"{key} must be > 0")
    if maximum is not None and v > maximum:
        raise InvalidInput(f"{key} cannot exceed {maximum}")
    return v


def non_negative_int(key: str, value: Any, *, maximum: int | None = None) -> int:
    v = coerce_int(key, value)
    if v < 0:
        raise InvalidInput(f"{key} must be >= 0")
    if maximum is not None and v > maximum:
        raise InvalidInput(f"{key} cannot exceed {maximum}")
    return v


def optional_int(key: str, value: Any) -> int | None:
    if value is None:
        return None
    return coerce_int(key, value)


def coerce_bool(key: str, value: Any, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in {"true", "false"}:
        return value.strip().lower() == "true"
    raise InvalidInput(f"{key} must be a boolean")


def optional_text(key: str, value: Any, *, max_length: int) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    if len(text) > max_length:
        raise InvalidInput(f"{key} exceeds max length {max_length}")
    return text


def required_text(key: str, value: Any, *, max_length: int) -> str:
    text = optional_text(key, value, max_length=max_length)
    if text is None:
        raise InvalidInput(f"{key} cannot be blank")
    return text


def coerce_enum(key: str, value: Any, enum_cls: type[Enum]):
    """Case-insensitive lookup of an Enum member by value."""
    if isinstance(value, enum_cls):
        return value
    if not isinstance(value, str) or not value.strip():
        raise InvalidInput(f"{key} is required")
    try:
        return enum_cls(value.strip().upper())
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise InvalidInput(f"Invalid {key} '{value}'. Use: {allowed}")


def price_cents(key: str, value: Any) -> int:
    """Money input for replenishment: strictly positive, bounded."""
    return positive_int(key, value, maximum=MAX_PRICE_CENTS)


def optional_datetime(key: str, value: Any):
    """ISO-8601 query/body datetime -> UTC-naive datetime, or None."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    if not isinstance(value, str):
        raise InvalidInput(f"{key} must be an ISO-8601 datetime")
    try:
        return parse_iso_datetime(value)
    except ValueError:
        raise InvalidInput(f"{key} must be an ISO-8601 datetime")
