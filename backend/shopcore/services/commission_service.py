"""
Staff commission booked from a settled order.

record_from_order() runs inside the settlement transaction. The settlement
wraps it in a savepoint and logs, rather than propagates, its failures.
"""

from __future__ import annotations

from sqlalchemy import func

from ..errors import StaffNotFound
from ..extensions import db
from ..models import Commission, Employee, Order, Shop
from ..money_utils import HUNDRED, quantize_money, to_decimal
from ..time_utils import day_bounds, parse_date_range, utcnow
from .results import ServiceResult, as_result, paginate
from .tenant_service import normalize_shop_ids, resolve_shop_filter


def record_from_order(order: Order, staff_id, accessible_shop_ids) -> Commission | None:
    """
    Returns None when the shop has no commission rate or the amount is zero.

    Raises:
        StaffNotFound: staff is not employed by one of the accessible shops
    """
    shop_ids = normalize_shop_ids(accessible_shop_ids)
    staff = (
        db.session.query(Employee)
        .filter(Employee.id == staff_id, Employee.shop_id.in_(shop_ids))
        .first()
    )
    if staff is None:
        raise StaffNotFound(f"Staff {staff_id} not found", details={"staff_id": staff_id})

    shop = db.session.get(Shop, order.shop_id)
    percentage = to_decimal(shop.commission_percentage if shop is not None else None)
    if percentage <= 0:
        return None

    base_amount = to_decimal(order.total)
    amount = quantize_money(base_amount * percentage / HUNDRED)
    if amount <= 0:
        return None

    commission = Commission(
        order_id=order.id,
        staff_id=staff.id,
        shop_id=order.shop_id,
        base_amount=base_amount,
        commission_amount=amount,
        commission_percentage=percentage,
        notes=f"Auto commission for order {order.order_number}",
        created_at=utcnow(),
    )
    db.session.add(commission)
    db.session.flush()
    return commission


def list_commissions(accessible_shop_ids, query: dict | None = None) -> ServiceResult:
    query = query or {}

    def _run():
        shop_ids = resolve_shop_filter(accessible_shop_ids, query.get("shopId"))
        q = db.session.query(Commission).filter(Commission.shop_id.in_(shop_ids))
        if query.get("staffId") is not None:
            q = q.filter(Commission.staff_id == query["staffId"])
        if query.get("startDate") or query.get("endDate"):
            start, end = parse_date_range(query.get("startDate"), query.get("endDate"))
            lower, upper = day_bounds(start, end)
            q = q.filter(Commission.created_at >= lower, Commission.created_at < upper)
        q = q.order_by(Commission.created_at.desc(), Commission.id.desc())
        return ServiceResult.ok("Commissions retrieved successfully", paginate(q, query.get("page"), query.get("limit")))

    return as_result(_run)


def commission_totals(staff_id: int, start, end) -> dict:
    """Count and sum of commissions for a staff member over an inclusive date range."""
    lower, upper = day_bounds(start, end)
    count, total = (
        db.session.query(func.count(Commission.id), func.coalesce(func.sum(Commission.commission_amount), 0))
        .filter(
            Commission.staff_id == staff_id,
            Commission.created_at >= lower,
            Commission.created_at < upper,
        )
        .one()
    )
    return {"count": int(count or 0), "total": str(quantize_money(to_decimal(total)))}
