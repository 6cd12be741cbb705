from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional

from .errors import InvalidRequest

CENT = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")


def to_decimal(value, field: str = "amount", *, default: Optional[Decimal] = ZERO) -> Decimal:
    """
    Coerce request/DB values to Decimal.

    Floats go through str() so 0.1 stays 0.1. None/"" resolve to `default`.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        if default is None:
            raise InvalidRequest(f"{field} is required", details={field: value})
        return default
    if isinstance(value, bool):
        raise InvalidRequest(f"{field} must be a number", details={field: value})
    if isinstance(value, Decimal):
        return value
    try:
        result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise InvalidRequest(f"{field} must be a number", details={field: value})
    if not result.is_finite():
        raise InvalidRequest(f"{field} must be a finite number", details={field: value})
    return result


def to_non_negative(value, field: str) -> Decimal:
    amount = to_decimal(value, field)
    if amount < 0:
        raise InvalidRequest(f"{field} cannot be negative", details={field: str(amount)})
    return amount


def quantize_money(value: Decimal) -> Decimal:
    """Round to cents, half-up."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def money_str(value: Optional[Decimal]) -> Optional[str]:
    """Serialize money as a fixed two-decimal string (JSON-safe, exact)."""
    if value is None:
        return None
    return str(quantize_money(value))
