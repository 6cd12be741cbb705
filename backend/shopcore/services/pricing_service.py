"""
Line pricing: discount first, then VAT.

    price_after_discount = base - discount
    unit_price           = price_after_discount * (1 + vat / 100)

The order matters for tax liability: VAT is charged on the discounted price.
Results are full-precision Decimals; callers quantize at persistence.
A fixed discount larger than the base yields a negative price on purpose;
the order validator rejects it instead of clamping.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from ..errors import InvalidRequest
from ..money_utils import HUNDRED, ZERO, to_decimal

DISCOUNT_NONE = "none"
DISCOUNT_PERCENTAGE = "percentage"
DISCOUNT_FIXED = "fixed"

_DISCOUNT_ALIASES = {
    None: DISCOUNT_NONE,
    "": DISCOUNT_NONE,
    "none": DISCOUNT_NONE,
    "percentage": DISCOUNT_PERCENTAGE,
    "percent": DISCOUNT_PERCENTAGE,
    "fixed": DISCOUNT_FIXED,
    "amount": DISCOUNT_FIXED,
}


@dataclass(frozen=True)
class PricedUnit:
    discount_type: str
    discount_amount: Decimal
    price_after_discount: Decimal
    discount_per_unit: Decimal
    unit_price: Decimal


def normalize_discount_type(discount_type) -> str:
    key = discount_type.strip().lower() if isinstance(discount_type, str) else discount_type
    try:
        return _DISCOUNT_ALIASES[key]
    except (KeyError, TypeError):
        raise InvalidRequest(
            "Unsupported discount type",
            details={"discount_type": discount_type, "allowed": ["none", "percentage", "fixed"]},
        )


def price(base_price, discount_type=None, discount_amount=None, vat_percent=None) -> PricedUnit:
    base = to_decimal(base_price, "unit_price", default=None)
    kind = normalize_discount_type(discount_type)
    amount = to_decimal(discount_amount, "discount_amount")
    vat = to_decimal(vat_percent, "vat")

    if base < 0:
        raise InvalidRequest("unit_price cannot be negative", details={"unit_price": str(base)})
    if amount < 0:
        raise InvalidRequest("discount_amount cannot be negative", details={"discount_amount": str(amount)})
    if vat < 0:
        raise InvalidRequest("vat cannot be negative", details={"vat": str(vat)})

    if kind == DISCOUNT_PERCENTAGE:
        after_discount = base * (1 - amount / HUNDRED)
    elif kind == DISCOUNT_FIXED:
        after_discount = base - amount
    else:
        amount = ZERO
        after_discount = base

    return PricedUnit(
        discount_type=kind,
        discount_amount=amount,
        price_after_discount=after_discount,
        discount_per_unit=base - after_discount,
        unit_price=after_discount * (1 + vat / HUNDRED),
    )
