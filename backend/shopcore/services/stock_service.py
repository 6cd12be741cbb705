"""
Stock Ledger: quantity changes for products and variants

WHY: A StockUnit (a product, or one of its variants) carries the on-hand
quantity. Every change goes through this module so that the quantity
column and the append-only StockMovement trail always agree:

    new_stock == previous_stock - quantity   (order)
    new_stock == previous_stock + quantity   (return)
    new_stock == previous_stock + quantity   (adjustment, signed quantity)

CONCURRENCY: Debits are a single conditional UPDATE (see
concurrency.conditional_decrement). A debit that would go below zero
matches no row and raises InsufficientStock; the caller's transaction is
rolled back, so no partial debit survives.

debit_for_order() / credit_return() flush but never commit: they run inside
the settlement transaction. adjust_stock() owns its transaction.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..errors import InsufficientStock, InvalidRequest, ProductNotFound, VariantNotFound
from ..extensions import db
from ..models import Order, Product, ProductVariant, StockMovement
from .concurrency import conditional_decrement, increment, lock_for_update, run_with_retry
from .results import ServiceResult, as_result, paginate
from .tenant_service import normalize_shop_ids, resolve_shop_filter

MOVEMENT_TYPES = ("order", "adjustment", "return")


@dataclass(frozen=True)
class StockUnit:
    product: Product
    variant: ProductVariant | None = None

    @property
    def is_variant(self) -> bool:
        return self.variant is not None

    @property
    def row(self):
        return self.variant if self.is_variant else self.product

    @property
    def model(self):
        return ProductVariant if self.is_variant else Product

    @property
    def column(self):
        return ProductVariant.quantity if self.is_variant else Product.stock

    @property
    def id(self) -> int:
        return self.row.id

    @property
    def shop_id(self) -> int:
        return self.product.shop_id

    @property
    def quantity(self) -> int:
        return self.variant.quantity if self.is_variant else self.product.stock

    @property
    def low_stock_threshold(self) -> int:
        return self.row.low_stock_threshold or 0

    def to_dict(self) -> dict:
        return {
            "product_id": self.product.id,
            "variant_id": self.variant.id if self.is_variant else None,
            "shop_id": self.shop_id,
            "name": self.product.name,
            "sku": self.variant.sku if self.is_variant and self.variant.sku else self.product.sku,
            "stock": self.quantity,
            "low_stock_threshold": self.low_stock_threshold,
            "is_low": self.quantity <= self.low_stock_threshold,
        }


def resolve_stock_unit(product: Product, variant: ProductVariant | None = None) -> StockUnit:
    return StockUnit(product=product, variant=variant)


def load_stock_unit(
    product_id,
    variant_id,
    accessible_shop_ids,
    *,
    active_only: bool = False,
    lock: bool = False,
) -> StockUnit:
    """
    Look up a product (and optional variant) inside the accessible shops.

    Raises:
        ProductNotFound: missing, outside the accessible shops, or inactive
            when active_only is set
        VariantNotFound: variant id given but not found under that product
    """
    shop_ids = normalize_shop_ids(accessible_shop_ids)
    query = db.session.query(Product).filter(Product.id == product_id, Product.shop_id.in_(shop_ids))
    if active_only:
        query = query.filter(Product.status == "active")
    product = (lock_for_update(query) if lock else query).first()
    if product is None:
        raise ProductNotFound(
            f"Product {product_id} not found or not available",
            details={"product_id": product_id},
        )

    variant = None
    if variant_id is not None:
        vquery = db.session.query(ProductVariant).filter(
            ProductVariant.id == variant_id,
            ProductVariant.product_id == product.id,
        )
        variant = (lock_for_update(vquery) if lock else vquery).first()
        if variant is None:
            raise VariantNotFound(
                f"Variant {variant_id} not found for product {product_id}",
                details={"product_id": product_id, "variant_id": variant_id},
            )

    return StockUnit(product=product, variant=variant)


def _apply_delta(unit: StockUnit, delta: int) -> tuple[int, int]:
    """Change the unit's quantity by `delta`; returns (previous, new)."""
    if delta < 0:
        if not conditional_decrement(unit.model, unit.column, unit.id, -delta):
            raise InsufficientStock(
                "Insufficient stock",
                details={
                    "product_id": unit.product.id,
                    "variant_id": unit.variant.id if unit.is_variant else None,
                    "requested_quantity": -delta,
                    "available": unit.quantity,
                },
            )
    else:
        increment(unit.model, unit.column, unit.id, delta)

    db.session.refresh(unit.row)
    new_stock = unit.quantity
    return new_stock - delta, new_stock


def _append_movement(
    unit: StockUnit,
    movement_type: str,
    quantity: int,
    previous_stock: int,
    new_stock: int,
    *,
    order_id: int | None = None,
    user_id: int | None = None,
    note: str | None = None,
) -> StockMovement:
    movement = StockMovement(
        type=movement_type,
        quantity=quantity,
        previous_stock=previous_stock,
        new_stock=new_stock,
        product_id=unit.product.id,
        variant_id=unit.variant.id if unit.is_variant else None,
        order_id=order_id,
        shop_id=unit.shop_id,
        user_id=user_id,
        note=note,
    )
    db.session.add(movement)
    db.session.flush()
    return movement


def debit_for_order(unit: StockUnit, quantity: int, order: Order, user_id: int | None = None) -> StockMovement:
    """Debit stock for a settled order line. Caller commits."""
    previous_stock, new_stock = _apply_delta(unit, -quantity)
    return _append_movement(
        unit, "order", quantity, previous_stock, new_stock,
        order_id=order.id,
        user_id=user_id,
        note=f"Order {order.order_number}",
    )


def credit_return(
    unit: StockUnit,
    quantity: int,
    order: Order | None = None,
    user_id: int | None = None,
    note: str | None = None,
) -> StockMovement:
    """Put stock back (cancellation, customer return). Caller commits."""
    previous_stock, new_stock = _apply_delta(unit, quantity)
    return _append_movement(
        unit, "return", quantity, previous_stock, new_stock,
        order_id=order.id if order is not None else None,
        user_id=user_id,
        note=note,
    )


def _parse_quantity(value, *, allow_negative: bool) -> int:
    if isinstance(value, bool):
        raise InvalidRequest("quantity must be an integer", details={"quantity": value})
    try:
        quantity = int(value)
    except (TypeError, ValueError):
        raise InvalidRequest("quantity must be an integer", details={"quantity": value})
    if quantity == 0 or (quantity < 0 and not allow_negative):
        raise InvalidRequest(
            "quantity must be a non-zero integer" if allow_negative else "quantity must be a positive integer",
            details={"quantity": value},
        )
    return quantity


def adjust_stock(accessible_shop_ids, user_id: int | None, payload: dict) -> ServiceResult:
    """
    Manual stock correction.

    payload:
        product_id, variant_id (optional), note (optional)
        type: "adjustment" (default, signed quantity), "return" (adds) or
              "order" (removes)
        quantity: non-zero integer

    A change that would leave the unit below zero is rejected with
    InsufficientStock and nothing is written.
    """
    def _op():
        movement_type = (payload.get("type") or "adjustment").strip().lower()
        if movement_type not in MOVEMENT_TYPES:
            raise InvalidRequest(
                "Invalid stock movement type",
                details={"type": payload.get("type"), "allowed": list(MOVEMENT_TYPES)},
            )
        quantity = _parse_quantity(payload.get("quantity"), allow_negative=movement_type == "adjustment")

        if payload.get("product_id") is None:
            raise InvalidRequest("product_id is required")
        unit = load_stock_unit(
            payload.get("product_id"),
            payload.get("variant_id"),
            accessible_shop_ids,
            lock=True,
        )

        delta = -quantity if movement_type == "order" else quantity
        previous_stock, new_stock = _apply_delta(unit, delta)
        movement = _append_movement(
            unit, movement_type, quantity, previous_stock, new_stock,
            user_id=user_id,
            note=payload.get("note"),
        )
        db.session.commit()
        return movement, unit

    def _run():
        movement, unit = run_with_retry(_op)
        return ServiceResult.ok(
            "Stock adjusted successfully",
            {"movement": movement.to_dict(), "stock": unit.to_dict()},
        )

    return as_result(_run)


def get_current_stock(accessible_shop_ids, product_id, variant_id=None) -> ServiceResult:
    def _run():
        unit = load_stock_unit(product_id, variant_id, accessible_shop_ids)
        return ServiceResult.ok("Stock retrieved successfully", unit.to_dict())

    return as_result(_run)


def list_stock_history(accessible_shop_ids, filters: dict | None = None) -> ServiceResult:
    """Newest first. Filters: shopId, productId, variantId, orderId, type, page, limit."""
    filters = filters or {}

    def _run():
        shop_ids = resolve_shop_filter(accessible_shop_ids, filters.get("shopId"))
        query = db.session.query(StockMovement).filter(StockMovement.shop_id.in_(shop_ids))

        if filters.get("productId") is not None:
            query = query.filter(StockMovement.product_id == filters["productId"])
        if filters.get("variantId") is not None:
            query = query.filter(StockMovement.variant_id == filters["variantId"])
        if filters.get("orderId") is not None:
            query = query.filter(StockMovement.order_id == filters["orderId"])
        if filters.get("type"):
            if filters["type"] not in MOVEMENT_TYPES:
                raise InvalidRequest("Invalid stock movement type", details={"type": filters["type"]})
            query = query.filter(StockMovement.type == filters["type"])

        query = query.order_by(StockMovement.created_at.desc(), StockMovement.id.desc())
        page = paginate(query, filters.get("page"), filters.get("limit"))
        return ServiceResult.ok("Stock history retrieved successfully", page)

    return as_result(_run)


def list_low_stock(accessible_shop_ids, shop_id=None) -> ServiceResult:
    """
    Active units at or below their low-stock threshold.

    Products that have variants are reported per variant; their own
    product-level stock is not tracked.
    """
    def _run():
        shop_ids = resolve_shop_filter(accessible_shop_ids, shop_id)

        products = (
            db.session.query(Product)
            .filter(
                Product.shop_id.in_(shop_ids),
                Product.status == "active",
                ~Product.variants.any(),
                Product.stock <= Product.low_stock_threshold,
            )
            .order_by(Product.stock.asc(), Product.id.asc())
            .all()
        )
        variants = (
            db.session.query(ProductVariant)
            .join(Product, ProductVariant.product_id == Product.id)
            .filter(
                Product.shop_id.in_(shop_ids),
                Product.status == "active",
                ProductVariant.status == "active",
                ProductVariant.quantity <= ProductVariant.low_stock_threshold,
            )
            .order_by(ProductVariant.quantity.asc(), ProductVariant.id.asc())
            .all()
        )

        items = [StockUnit(product=p).to_dict() for p in products]
        items.extend(StockUnit(product=v.product, variant=v).to_dict() for v in variants)
        return ServiceResult.ok("Low stock items retrieved successfully", {"items": items, "count": len(items)})

    return as_result(_run)
