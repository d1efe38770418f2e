from __future__ import annotations
from datetime import datetime
from barflow.time_utils import parse_iso_datetime

from typing import Any


# Maximum money amount: 9,999,999,999.99 in minor units.
# This prevents database overflow issues and nonsensical amounts
MAX_AMOUNT_CENTS = 999_999_999_999


class BarflowError(Exception):
    """Base class for domain errors surfaced to API callers."""
    status_code = 500

    def to_dict(self) -> dict:
        return {"error": str(self)}


class ValidationError(BarflowError, ValueError):
    """400-level input problem."""
    status_code = 400


class ConflictError(BarflowError, ValueError):
    """409-level state conflict (e.g., shift already open)."""
    status_code = 409


class NotFoundError(BarflowError, LookupError):
    """404-level missing session, customer or product."""
    status_code = 404


class PermissionDenied(BarflowError):
    """403-level role violation."""
    status_code = 403


class LimitExceededError(BarflowError):
    """A debt would push a customer's balance past its credit ceiling."""
    status_code = 400

    def __init__(self, available_cents: int):
        self.available_cents = available_cents
        super().__init__(f"Amount exceeds available credit limit of {available_cents}")

    def to_dict(self) -> dict:
        return {"error": str(self), "available_cents": self.available_cents}


class DependencyUnavailable(BarflowError):
    """
    The AI provider is unreachable or unconfigured.

    Only raised inside the advisory layer; never crosses a route boundary.
    """
    status_code = 503


def coerce_int(name: str, value: Any) -> int:
    """
    Strict integer coercion for JSON input.

    Rejects bools, floats with a fractional part, scientific notation
    and decimal strings.
    """
    if value is None:
        raise ValidationError(f"{name} is required")
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not value.is_integer():
            raise ValidationError(f"{name} must be an integer, not a decimal")
        return int(value)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{name} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise ValidationError(f"{name} must be a plain integer (scientific notation not allowed)")
        if '.' in stripped:
            raise ValidationError(f"{name} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{name} must be an integer")
    raise ValidationError(f"{name} must be an integer")


def require_amount(name: str, value: Any, *, allow_zero: bool = False) -> int:
    """Money amount in minor units: integer, positive (or >= 0), bounded."""
    amount = coerce_int(name, value)
    if allow_zero:
        if amount < 0:
            raise ValidationError(f"{name} cannot be negative")
    elif amount <= 0:
        raise ValidationError(f"{name} must be greater than zero")
    if amount > MAX_AMOUNT_CENTS:
        raise ValidationError(f"{name} cannot exceed {MAX_AMOUNT_CENTS}")
    return amount


def require_text(name: str, value: Any, *, max_length: int | None = None) -> str:
    if value is None or not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{name} is required")
    text = value.strip()
    if max_length and len(text) > max_length:
        raise ValidationError(f"{name} exceeds max length {max_length}")
    return text


def optional_text(value: Any, *, max_length: int | None = None) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    if max_length and len(text) > max_length:
        raise ValidationError(f"text exceeds max length {max_length}")
    return text


def parse_counts(entries: Any, *, field: str = "inventory") -> dict[int, int]:
    """
    Normalize a list of {"product_id", "count"} entries to {product_id: count}.

    Counts are integers >= 0. A repeated product_id keeps the last count.
    """
    if entries is None:
        return {}
    if not isinstance(entries, list):
        raise ValidationError(f"{field} must be a list")

    counts: dict[int, int] = {}
    for entry in entries:
        if not isinstance(entry, dict):
            raise ValidationError(f"{field} entries must be objects")
        product_id = coerce_int("product_id", entry.get("product_id"))
        count = coerce_int("count", entry.get("count"))
        counts[product_id] = count
    return check_counts(counts)


def check_counts(counts: dict) -> dict[int, int]:
    """Validate an already-keyed {product_id: count} mapping; counts must be integers >= 0."""
    checked: dict[int, int] = {}
    for product_id, raw in counts.items():
        product_id = coerce_int("product_id", product_id)
        count = coerce_int("count", raw)
        if count < 0:
            raise ValidationError(f"count for product {product_id} cannot be negative")
        checked[product_id] = count
    return checked


def parse_datetime_arg(name: str, value: str | None) -> datetime:
    try:
        dt = parse_iso_datetime(value)
    except ValueError:
        raise ValidationError(f"{name} must be an ISO-8601 datetime")
    if dt is None:
        raise ValidationError(f"{name} is required")
    return dt
