"""
Order Settlement Service

WHY: Turning a requested order into a persisted order is one all-or-nothing
transaction:

    validate lines -> totals & payment split -> insert order -> insert lines
    -> debit stock (+ movement per line) -> optional staff commission -> commit

Any failure before commit rolls back everything: no partial orders and no
partial stock debits. The one deliberate exception is the commission step,
which runs in a savepoint; its failure is logged and the order still settles.

MONEY INVARIANTS:
- total == subtotal + tax - discount
- subtotal == sum(line.subtotal)
- paid_amount == cash + card + wallet

Monetary fields and lines are never edited after creation. Cancellation
restores stock through `return` movements and leaves money fields intact.
"""

from __future__ import annotations

import random
import time
from dataclasses import dataclass
from decimal import Decimal

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from ..errors import ClientError, InvalidRequest, InvalidStatusTransition, OrderNotFound
from ..extensions import db
from ..models import Commission, Order, OrderLine
from ..money_utils import ZERO, money_str, quantize_money, to_decimal, to_non_negative
from ..time_utils import day_bounds, parse_date_range, parse_iso_datetime, utcnow
from .commission_service import record_from_order
from .concurrency import lock_for_update, run_with_retry
from .order_validation import validate_order_items
from .results import ServiceResult, as_result, paginate
from .stock_service import credit_return, debit_for_order, load_stock_unit
from .tenant_service import normalize_shop_ids, require_shop_access, resolve_shop_filter

PAYMENT_METHODS = ("cash", "card", "wallet", "mixed")
PAYMENT_STATUSES = ("pending", "partial", "completed")
ORDER_STATUSES = ("pending", "processing", "completed", "cancelled")

# Forward-only; cancellation goes through cancel_order()
_STATUS_TRANSITIONS = {
    "pending": ("processing", "completed"),
    "processing": ("completed",),
    "completed": (),
    "cancelled": (),
}


@dataclass(frozen=True)
class PaymentSplit:
    cash_amount: Decimal
    card_amount: Decimal
    wallet_amount: Decimal
    paid_amount: Decimal
    payment_status: str
    payment_method: str
    order_status: str


def compute_payment_split(
    total,
    cash_amount=None,
    card_amount=None,
    wallet_amount=None,
    payment_method=None,
    kot_payment_status=None,
) -> PaymentSplit:
    """
    Derive payment status and method from the tendered amounts.

    - paid >= total -> completed, paid > 0 -> partial, else pending
    - kot_payment_status == "pending" (kitchen order ticket flow) forces pending
    - more than one non-zero tender -> mixed; exactly one -> that tender;
      none -> the requested method, else cash
    """
    total = to_decimal(total, "total")
    amounts = {
        "cash": quantize_money(to_non_negative(cash_amount, "cash_amount")),
        "card": quantize_money(to_non_negative(card_amount, "card_amount")),
        "wallet": quantize_money(to_non_negative(wallet_amount, "wallet_amount")),
    }
    paid = amounts["cash"] + amounts["card"] + amounts["wallet"]

    if paid >= total:
        status = "completed"
    elif paid > 0:
        status = "partial"
    else:
        status = "pending"
    if isinstance(kot_payment_status, str) and kot_payment_status.strip().lower() == "pending":
        status = "pending"

    used = [name for name, amount in amounts.items() if amount > 0]
    if len(used) > 1:
        method = "mixed"
    elif used:
        method = used[0]
    else:
        method = payment_method.strip().lower() if isinstance(payment_method, str) and payment_method.strip() else "cash"
        if method not in PAYMENT_METHODS:
            raise InvalidRequest(
                "Invalid payment method",
                details={"payment_method": payment_method, "allowed": list(PAYMENT_METHODS)},
            )

    return PaymentSplit(
        cash_amount=amounts["cash"],
        card_amount=amounts["card"],
        wallet_amount=amounts["wallet"],
        paid_amount=paid,
        payment_status=status,
        payment_method=method,
        order_status="processing" if status == "pending" else "completed",
    )


def generate_order_number() -> str:
    """
    ORD-<epochMillis>-<3 random digits>.

    Not re-checked before insert; uq_orders_order_number rejects the rare
    collision and the caller retries with a fresh request.
    """
    return f"ORD-{int(time.time() * 1000)}-{random.randint(0, 999):03d}"


def _order_payload(order: Order, *, include_commission: bool = True) -> dict:
    payload = order.to_dict()
    payload["lines"] = [line.to_dict() for line in order.lines]
    if include_commission:
        payload["commission"] = order.commission.to_dict() if order.commission else None
    return payload


def _book_commission(order: Order, staff_id, accessible_shop_ids) -> Commission | None:
    try:
        with db.session.begin_nested():
            return record_from_order(order, staff_id, accessible_shop_ids)
    except (ClientError, SQLAlchemyError) as exc:
        current_app.logger.warning(
            "Commission not recorded for order %s (staff %s): %s",
            order.order_number, staff_id, exc,
        )
        return None


def create_order(order_request: dict, seller_shop_id, accessible_shop_ids, user_id: int | None = None) -> ServiceResult:
    """
    Settle an order.

    order_request:
        items: [{product_id, variant_id?, quantity, unit_price?,
                 discount_type?, discount_amount?}]
        tax, discount, cash_amount, card_amount, wallet_amount,
        payment_method, kot_payment_status, staff_id,
        customer_name, customer_phone, customer_email,
        table_number, guest_number, special_notes, order_date
    """
    order_request = order_request or {}

    def _op():
        shop_id = require_shop_access(seller_shop_id, accessible_shop_ids)

        lines, subtotal = validate_order_items(order_request.get("items"), accessible_shop_ids)

        tax = quantize_money(to_non_negative(order_request.get("tax"), "tax"))
        discount = quantize_money(to_non_negative(order_request.get("discount"), "discount"))
        total = subtotal + tax - discount
        if total < 0:
            raise InvalidRequest(
                "Order discount exceeds subtotal plus tax",
                details={"subtotal": str(subtotal), "tax": str(tax), "discount": str(discount)},
            )

        split = compute_payment_split(
            total,
            order_request.get("cash_amount"),
            order_request.get("card_amount"),
            order_request.get("wallet_amount"),
            order_request.get("payment_method"),
            order_request.get("kot_payment_status"),
        )

        order_date = order_request.get("order_date")
        order = Order(
            shop_id=shop_id,
            order_number=generate_order_number(),
            user_id=user_id,
            customer_name=(order_request.get("customer_name") or "").strip() or "Walk-in Customer",
            customer_phone=order_request.get("customer_phone"),
            customer_email=order_request.get("customer_email"),
            table_number=order_request.get("table_number"),
            guest_number=order_request.get("guest_number"),
            special_notes=order_request.get("special_notes"),
            order_date=(parse_iso_datetime(order_date) if isinstance(order_date, str) else None) or utcnow(),
            subtotal=subtotal,
            tax=tax,
            discount=discount,
            total=total,
            cash_amount=split.cash_amount,
            card_amount=split.card_amount,
            wallet_amount=split.wallet_amount,
            paid_amount=split.paid_amount,
            payment_method=split.payment_method,
            payment_status=split.payment_status,
            order_status=split.order_status,
        )
        db.session.add(order)
        db.session.flush()

        for line in lines:
            db.session.add(
                OrderLine(
                    order_id=order.id,
                    product_id=line.unit.product.id,
                    variant_id=line.unit.variant.id if line.unit.is_variant else None,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    original_unit_price=quantize_money(line.base_price),
                    discount_type=line.priced.discount_type,
                    discount_amount=quantize_money(line.priced.discount_amount),
                    unit_discount=quantize_money(line.priced.discount_per_unit),
                    total_discount=quantize_money(line.priced.discount_per_unit * line.quantity),
                    vat_percentage=line.vat_percentage,
                    subtotal=line.subtotal,
                    purchase_price=quantize_money(line.purchase_price),
                )
            )
            debit_for_order(line.unit, line.quantity, order, user_id)

        staff_id = order_request.get("staff_id")
        if staff_id is not None:
            _book_commission(order, staff_id, accessible_shop_ids)

        db.session.commit()
        return order

    def _run():
        order = run_with_retry(_op)
        current_app.logger.info("Order %s settled (total %s)", order.order_number, money_str(order.total))
        return ServiceResult.ok("Order created successfully", _order_payload(order))

    return as_result(_run)


def _load_order(order_id, accessible_shop_ids, *, lock: bool = False) -> Order:
    shop_ids = normalize_shop_ids(accessible_shop_ids)
    query = db.session.query(Order).filter(Order.id == order_id, Order.shop_id.in_(shop_ids))
    order = (lock_for_update(query) if lock else query).first()
    if order is None:
        raise OrderNotFound(f"Order {order_id} not found", details={"order_id": order_id})
    return order


def get_order(order_id, accessible_shop_ids) -> ServiceResult:
    def _run():
        order = _load_order(order_id, accessible_shop_ids)
        return ServiceResult.ok("Order retrieved successfully", _order_payload(order))

    return as_result(_run)


def list_orders(accessible_shop_ids, query: dict | None = None) -> ServiceResult:
    """
    Newest first. Filters: shopId, paymentStatus, orderStatus, startDate,
    endDate (inclusive, YYYY-MM-DD), search (order number or customer),
    page, limit.
    """
    query = query or {}

    def _run():
        shop_ids = resolve_shop_filter(accessible_shop_ids, query.get("shopId"))
        q = db.session.query(Order).filter(Order.shop_id.in_(shop_ids))

        payment_status = query.get("paymentStatus")
        if payment_status:
            if payment_status not in PAYMENT_STATUSES:
                raise InvalidRequest("Invalid payment status", details={"paymentStatus": payment_status})
            q = q.filter(Order.payment_status == payment_status)

        order_status = query.get("orderStatus")
        if order_status:
            if order_status not in ORDER_STATUSES:
                raise InvalidRequest("Invalid order status", details={"orderStatus": order_status})
            q = q.filter(Order.order_status == order_status)

        if query.get("startDate") or query.get("endDate"):
            start, end = parse_date_range(query.get("startDate"), query.get("endDate"))
            lower, upper = day_bounds(start, end)
            q = q.filter(Order.order_date >= lower, Order.order_date < upper)

        search = (query.get("search") or "").strip()
        if search:
            pattern = f"%{search}%"
            q = q.filter(
                Order.order_number.ilike(pattern)
                | Order.customer_name.ilike(pattern)
                | Order.customer_phone.ilike(pattern)
            )

        q = q.order_by(Order.order_date.desc(), Order.id.desc())
        page = paginate(
            q,
            query.get("page"),
            query.get("limit"),
            default_per_page=current_app.config.get("ORDER_DEFAULT_PAGE_SIZE", 10),
        )
        return ServiceResult.ok("Orders retrieved successfully", page)

    return as_result(_run)


def update_order_status(order_id, accessible_shop_ids, status) -> ServiceResult:
    def _op():
        if status == "cancelled":
            raise InvalidStatusTransition("Use order cancellation to cancel an order")
        if status not in ORDER_STATUSES:
            raise InvalidRequest("Invalid order status", details={"status": status})

        order = _load_order(order_id, accessible_shop_ids, lock=True)
        if status not in _STATUS_TRANSITIONS[order.order_status]:
            raise InvalidStatusTransition(
                f"Cannot move order from {order.order_status} to {status}",
                details={"from": order.order_status, "to": status},
            )
        order.order_status = status
        db.session.commit()
        return order

    def _run():
        order = run_with_retry(_op)
        return ServiceResult.ok("Order status updated successfully", order.to_dict())

    return as_result(_run)


def cancel_order(order_id, accessible_shop_ids, user_id: int | None = None) -> ServiceResult:
    """
    Cancel an order: put each line's stock back through a `return`
    movement and drop its commission. Money fields and lines stay as settled.
    """
    def _op():
        order = _load_order(order_id, accessible_shop_ids, lock=True)
        if order.order_status == "cancelled":
            raise InvalidStatusTransition("Order is already cancelled", details={"order_id": order.id})

        for line in order.lines:
            unit = load_stock_unit(line.product_id, line.variant_id, accessible_shop_ids, lock=True)
            credit_return(unit, line.quantity, order, user_id, note=f"Order {order.order_number} cancelled")

        db.session.query(Commission).filter(Commission.order_id == order.id).delete(synchronize_session="fetch")

        order.order_status = "cancelled"
        order.cancelled_at = utcnow()
        order.cancelled_by_user_id = user_id
        db.session.commit()
        return order

    def _run():
        order = run_with_retry(_op)
        current_app.logger.info("Order %s cancelled", order.order_number)
        return ServiceResult.ok("Order cancelled successfully", _order_payload(order))

    return as_result(_run)


def get_sales_summary(accessible_shop_ids, start, end, shop_id=None) -> ServiceResult:
    """
    Sales over an inclusive date range, cancelled orders excluded.

    cost uses the purchase price frozen on each line, so later catalog
    cost changes do not rewrite past profit.
    """
    def _run():
        shop_ids = resolve_shop_filter(accessible_shop_ids, shop_id)
        start_d, end_d = parse_date_range(start, end)
        lower, upper = day_bounds(start_d, end_d)

        order_filter = (
            Order.shop_id.in_(shop_ids),
            Order.order_status != "cancelled",
            Order.order_date >= lower,
            Order.order_date < upper,
        )
        count, subtotal, tax, discount, total, paid = (
            db.session.query(
                func.count(Order.id),
                func.coalesce(func.sum(Order.subtotal), 0),
                func.coalesce(func.sum(Order.tax), 0),
                func.coalesce(func.sum(Order.discount), 0),
                func.coalesce(func.sum(Order.total), 0),
                func.coalesce(func.sum(Order.paid_amount), 0),
            )
            .filter(*order_filter)
            .one()
        )
        cost = (
            db.session.query(func.coalesce(func.sum(OrderLine.purchase_price * OrderLine.quantity), 0))
            .join(Order, OrderLine.order_id == Order.id)
            .filter(*order_filter)
            .scalar()
        )

        subtotal, tax, discount = to_decimal(subtotal), to_decimal(tax), to_decimal(discount)
        total, paid, cost = to_decimal(total), to_decimal(paid), to_decimal(cost)
        due = max(total - paid, ZERO)

        return ServiceResult.ok(
            "Sales summary retrieved successfully",
            {
                "start_date": start_d.isoformat(),
                "end_date": end_d.isoformat(),
                "order_count": int(count or 0),
                "subtotal": money_str(subtotal),
                "tax": money_str(tax),
                "discount": money_str(discount),
                "total_sales": money_str(total),
                "paid": money_str(paid),
                "due": money_str(due),
                "cost": money_str(cost),
                "gross_profit": money_str(subtotal - discount - cost),
            },
        )

    return as_result(_run)
