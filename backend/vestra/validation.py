from __future__ import annotations

import math
from typing import Any


# Maximum price: R$ 9.999.999,99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_PRICE_CENTS = 999_999_999

# Interest is expressed in basis points: 10_000 bps = 100%
MAX_INTEREST_RATE_BPS = 10_000


class DomainError(ValueError):
    """
    Base for every known business-rule failure.

    Services raise these before committing anything; routes turn them into
    {"error": message, "details": {...}} with status_code.
    """
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class ValidationError(DomainError):
    """400-level input problem."""


class NotFoundError(DomainError):
    """404: entity absent or owned by another tenant."""
    status_code = 404


class ConflictError(DomainError):
    """409-level business rule conflict (e.g., cash already closed)."""
    status_code = 409


class InsufficientStockError(ConflictError):
    """Requested quantity exceeds what the ledger row holds."""

    def __init__(self, message: str, *, requested: int, available: int, details: dict | None = None):
        merged = {"requested": requested, "available": available}
        merged.update(details or {})
        super().__init__(message, details=merged)
        self.requested = requested
        self.available = available


class PermissionDeniedError(DomainError):
    """403: the caller's role may not perform the operation."""
    status_code = 403


def parse_quantity(value: Any, field: str = "quantity") -> int:
    """
    Coerce a client-supplied quantity to a positive integer.

    Fractional input is floored (2.9 -> 2). Booleans, blanks and
    non-numeric strings are rejected.
    """
    qty = _floor_int(value, field)
    if qty <= 0:
        raise ValidationError("Quantidade deve ser maior que zero.", details={"field": field})
    return qty


def parse_optional_int(value: Any, field: str) -> int | None:
    if value is None or value == "":
        return None
    return _floor_int(value, field)


def parse_required_id(value: Any, field: str) -> int:
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} é obrigatório.")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    raise ValidationError(f"{field} deve ser um id inteiro.")


def parse_optional_id(value: Any, field: str) -> int | None:
    if value is None or value == "":
        return None
    return parse_required_id(value, field)


def parse_optional_bool(value: Any, field: str, default: bool = False) -> bool:
    """Accept only a JSON boolean; "false" and 0 are not silently truthy."""
    if value is None:
        return default
    if not isinstance(value, bool):
        raise ValidationError(f"{field} deve ser verdadeiro ou falso.", details={"field": field})
    return value


def parse_price_cents(value: Any, field: str = "unit_price_cents") -> int:
    # Money must already be integer cents; floats are never accepted
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field} deve ser um valor inteiro em centavos.")
    if value < 0:
        raise ValidationError(f"{field} não pode ser negativo.")
    if value > MAX_PRICE_CENTS:
        raise ValidationError(f"{field} não pode exceder {MAX_PRICE_CENTS}.")
    return value


def _floor_int(value: Any, field: str) -> int:
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} deve ser um número.")

    if isinstance(value, int):
        return value

    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValidationError(f"{field} deve ser um número finito.")
        return math.floor(value)

    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} deve ser um número.")
        try:
            number = float(stripped)
        except ValueError:
            raise ValidationError(f"{field} deve ser um número.")
        if not math.isfinite(number):
            raise ValidationError(f"{field} deve ser um número finito.")
        return math.floor(number)

    raise ValidationError(f"{field} deve ser um número.")
