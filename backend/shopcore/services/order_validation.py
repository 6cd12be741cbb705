"""
Order line validation.

Runs inside the settlement transaction: catalog rows are read with a row
lock so the stock seen here is the stock the debit will act on. The first
offending line aborts the whole batch.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from ..errors import InsufficientStock, InvalidRequest, NegativeUnitPrice
from ..money_utils import ZERO, quantize_money, to_decimal
from .pricing_service import PricedUnit, price
from .stock_service import StockUnit, load_stock_unit


@dataclass(frozen=True)
class ValidatedLine:
    position: int
    unit: StockUnit
    quantity: int
    base_price: Decimal
    priced: PricedUnit
    unit_price: Decimal
    subtotal: Decimal
    vat_percentage: Decimal
    purchase_price: Decimal


def _positive_int(value, field: str, position: int) -> int:
    if isinstance(value, bool) or value is None:
        raise InvalidRequest(f"{field} is required", details={"line": position, field: value})
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise InvalidRequest(f"{field} must be an integer", details={"line": position, field: value})
    if number != value and not (isinstance(value, str) and value.strip() == str(number)):
        raise InvalidRequest(f"{field} must be an integer", details={"line": position, field: value})
    if number <= 0:
        raise InvalidRequest(f"{field} must be a positive integer", details={"line": position, field: value})
    return number


def validate_order_items(items, accessible_shop_ids) -> tuple[list[ValidatedLine], Decimal]:
    """
    Price and stock-check requested lines, in request order.

    Each item: {product_id, variant_id?, quantity, unit_price?,
    discount_type?, discount_amount?}. unit_price falls back to the
    catalog price.

    Stock is checked against what is left after earlier lines of the same
    request, so two lines for one unit cannot jointly exceed it.

    Raises:
        InvalidRequest, ProductNotFound, VariantNotFound,
        InsufficientStock, NegativeUnitPrice
    """
    if not isinstance(items, list) or not items:
        raise InvalidRequest("Order must contain at least one item")

    lines: list[ValidatedLine] = []
    requested: dict[tuple[str, int], int] = {}
    subtotal = ZERO

    for position, item in enumerate(items, start=1):
        if not isinstance(item, dict):
            raise InvalidRequest("Each order item must be an object", details={"line": position})

        product_id = _positive_int(item.get("product_id"), "product_id", position)
        variant_id = item.get("variant_id")
        if variant_id is not None:
            variant_id = _positive_int(variant_id, "variant_id", position)
        quantity = _positive_int(item.get("quantity"), "quantity", position)

        unit = load_stock_unit(product_id, variant_id, accessible_shop_ids, active_only=True, lock=True)

        key = ("variant" if unit.is_variant else "product", unit.id)
        already = requested.get(key, 0)
        available = unit.quantity - already
        if quantity > available:
            raise InsufficientStock(
                f"Insufficient stock for product {unit.product.name}",
                details={
                    "line": position,
                    "product_id": product_id,
                    "variant_id": variant_id,
                    "requested_quantity": quantity,
                    "available": max(available, 0),
                },
            )
        requested[key] = already + quantity

        base_price = item.get("unit_price")
        if base_price is None:
            base_price = unit.product.price
        priced = price(base_price, item.get("discount_type"), item.get("discount_amount"), unit.product.vat)
        if priced.unit_price < 0:
            raise NegativeUnitPrice(
                "Discount exceeds the unit price",
                details={
                    "line": position,
                    "product_id": product_id,
                    "base_price": str(to_decimal(base_price)),
                    "discount_type": priced.discount_type,
                    "discount_amount": str(priced.discount_amount),
                },
            )

        unit_price = quantize_money(priced.unit_price)
        line_subtotal = unit_price * quantity
        subtotal += line_subtotal

        lines.append(
            ValidatedLine(
                position=position,
                unit=unit,
                quantity=quantity,
                base_price=to_decimal(base_price),
                priced=priced,
                unit_price=unit_price,
                subtotal=line_subtotal,
                vat_percentage=to_decimal(unit.product.vat),
                purchase_price=to_decimal(unit.product.purchase_price),
            )
        )

    return lines, subtotal
