from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate phone)."""


class ConfigurationError(RuntimeError):
    """Required server configuration (secret, API key) is missing."""


def get_json_body() -> dict:
    """
    Request body as a dict. Missing or non-object bodies become {} so that
    the per-field checks below report what is missing.
    """
    from flask import request

    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def require_fields(data: dict, *names: str) -> None:
    """Raise ValidationError naming every missing or empty field."""
    missing = [name for name in names if data.get(name) in (None, "")]
    if not missing:
        return
    if len(missing) == 1:
        raise ValidationError(f"{missing[0]} is required")
    raise ValidationError(f"{', '.join(missing)} are required")


def optional_str(data: dict, name: str) -> str | None:
    value = data.get(name)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{name} must be a string")
    value = value.strip()
    return value or None


def parse_amount(value: Any, *, field: str = "amount") -> Decimal | None:
    """
    Parse a monetary amount (pesos, two decimals).

    Accepts int, float or numeric string. Rejects booleans, negatives and
    non-finite values.
    """
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValidationError(f"{field} must be a number")
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a number")
    try:
        amount = amount.quantize(Decimal("0.01"))
    except InvalidOperation:
        raise ValidationError(f"{field} is out of range")
    if amount < 0:
        raise ValidationError(f"{field} must not be negative")
    return amount
