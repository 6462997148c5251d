from __future__ import annotations

from datetime import date, datetime
from typing import Any

from .time_utils import parse_iso_datetime


class DomainError(ValueError):
    """Base for business-rule failures surfaced to callers as {success: false, error}."""

    http_status = 400


class ValidationError(DomainError):
    """400-level input problem."""


class NotFoundError(DomainError):
    """404-level missing entity (order, invoice, product, user)."""

    http_status = 404


class ConflictError(DomainError):
    """409-level business rule conflict (e.g., confirming an order that is not pending)."""

    http_status = 409


class PermissionDeniedError(DomainError):
    """403-level: the acting user lacks the role the operation needs."""

    http_status = 403


class DataIntegrityError(DomainError):
    """
    Database constraint violation translated into a user-facing message.

    The raw driver text stays on __cause__ for logs and never reaches the client.
    """

    http_status = 409


def require_fields(data: dict, *fields: str) -> None:
    missing = [f for f in fields if data.get(f) in (None, "")]
    if missing:
        raise ValidationError(f"Missing required field(s): {', '.join(missing)}")


def coerce_int(value: Any, field: str, *, minimum: int | None = None, required: bool = True) -> int | None:
    """
    Strict integer coercion for request payloads.

    Rejects bools, floats, decimals and scientific notation so money and
    quantities never pass through a binary float.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise ValidationError(f"{field} is required")
        return None

    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        result = value
    elif isinstance(value, str):
        stripped = value.strip()
        # Reject scientific notation (e.g., "1e15") and decimal points
        if "e" in stripped.lower() or "." in stripped:
            raise ValidationError(f"{field} must be a plain integer")
        try:
            result = int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    elif isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    else:
        raise ValidationError(f"{field} must be an integer")

    if minimum is not None and result < minimum:
        raise ValidationError(f"{field} must be at least {minimum}")
    return result


def coerce_date(value: Any, field: str, *, required: bool = False) -> date | None:
    """Accept a date, datetime, or ISO-8601 string ("2025-02-10" or a full timestamp)."""
    if value is None or value == "":
        if required:
            raise ValidationError(f"{field} is required")
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            if len(value.strip()) == 10:
                return date.fromisoformat(value.strip())
            dt = parse_iso_datetime(value)
        except ValueError:
            raise ValidationError(f"{field} must be an ISO-8601 date")
        if dt is None:
            raise ValidationError(f"{field} must be an ISO-8601 date")
        return dt.date()
    raise ValidationError(f"{field} must be an ISO-8601 date")


def coerce_bool(value: Any, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def clean_text(value: Any, *, max_length: int | None = None) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    if max_length is not None and len(text) > max_length:
        raise ValidationError(f"Text exceeds maximum length of {max_length} characters")
    return text
