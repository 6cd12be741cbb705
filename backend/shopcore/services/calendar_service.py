"""
Leave requests and holidays.

Only approved leave reaches payroll. Holidays with no shop apply to every
shop.
"""

from __future__ import annotations

from datetime import date

from ..errors import EmployeeNotFound, InvalidRequest, InvalidStatusTransition
from ..extensions import db
from ..models import Employee, Holiday, LeaveRequest
from ..time_utils import iter_days, parse_date_range
from .concurrency import lock_for_update, run_with_retry
from .results import ServiceResult, as_result, paginate
from .tenant_service import normalize_shop_ids, require_shop_access, resolve_shop_filter

LEAVE_STATUSES = ("pending", "approved", "rejected")


def _employee_in_scope(employee_id, accessible_shop_ids) -> Employee:
    employee = (
        db.session.query(Employee)
        .filter(Employee.id == employee_id, Employee.shop_id.in_(normalize_shop_ids(accessible_shop_ids)))
        .first()
    )
    if employee is None:
        raise EmployeeNotFound(f"Employee {employee_id} not found", details={"employee_id": employee_id})
    return employee


def create_leave_request(accessible_shop_ids, payload: dict) -> ServiceResult:
    payload = payload or {}

    def _op():
        employee = _employee_in_scope(payload.get("employee_id"), accessible_shop_ids)
        start, end = parse_date_range(payload.get("start_date"), payload.get("end_date"))
        leave = LeaveRequest(
            employee_id=employee.id,
            start_date=start,
            end_date=end,
            leave_type=payload.get("leave_type") or "casual",
            status="pending",
            notes=payload.get("notes"),
        )
        db.session.add(leave)
        db.session.commit()
        return leave

    def _run():
        leave = run_with_retry(_op)
        return ServiceResult.ok("Leave request created", leave.to_dict())

    return as_result(_run)


def update_leave_status(accessible_shop_ids, approver_id, leave_id, status) -> ServiceResult:
    """pending -> approved | rejected; decided requests are final."""
    def _op():
        if status not in ("approved", "rejected"):
            raise InvalidRequest("Invalid leave status", details={"status": status, "allowed": ["approved", "rejected"]})

        leave = (
            lock_for_update(
                db.session.query(LeaveRequest)
                .join(Employee, LeaveRequest.employee_id == Employee.id)
                .filter(LeaveRequest.id == leave_id, Employee.shop_id.in_(normalize_shop_ids(accessible_shop_ids)))
            )
            .first()
        )
        if leave is None:
            raise InvalidRequest("Leave request not found", details={"leave_id": leave_id})
        if leave.status != "pending":
            raise InvalidStatusTransition(
                f"Leave request is already {leave.status}",
                details={"from": leave.status, "to": status},
            )

        leave.status = status
        leave.approved_by = approver_id
        db.session.commit()
        return leave

    def _run():
        leave = run_with_retry(_op)
        return ServiceResult.ok("Leave updated", leave.to_dict())

    return as_result(_run)


def list_leave_requests(accessible_shop_ids, query: dict | None = None) -> ServiceResult:
    query = query or {}

    def _run():
        q = (
            db.session.query(LeaveRequest)
            .join(Employee, LeaveRequest.employee_id == Employee.id)
            .filter(Employee.shop_id.in_(normalize_shop_ids(accessible_shop_ids)))
        )
        if query.get("employeeId") is not None:
            q = q.filter(LeaveRequest.employee_id == query["employeeId"])
        if query.get("status"):
            if query["status"] not in LEAVE_STATUSES:
                raise InvalidRequest("Invalid leave status", details={"status": query["status"]})
            q = q.filter(LeaveRequest.status == query["status"])
        q = q.order_by(LeaveRequest.start_date.desc(), LeaveRequest.id.desc())
        return ServiceResult.ok("Leave history fetched", paginate(q, query.get("page"), query.get("limit")))

    return as_result(_run)


def add_holiday(accessible_shop_ids, payload: dict) -> ServiceResult:
    payload = payload or {}

    def _op():
        start, end = parse_date_range(payload.get("start_date"), payload.get("end_date"))
        shop_id = None
        if payload.get("shop_id") is not None:
            shop_id = require_shop_access(payload["shop_id"], accessible_shop_ids)
        holiday = Holiday(shop_id=shop_id, start_date=start, end_date=end, description=payload.get("description"))
        db.session.add(holiday)
        db.session.commit()
        return holiday

    def _run():
        holiday = run_with_retry(_op)
        return ServiceResult.ok("Holiday added successfully", holiday.to_dict())

    return as_result(_run)


def list_holidays(accessible_shop_ids, query: dict | None = None) -> ServiceResult:
    query = query or {}

    def _run():
        shop_ids = resolve_shop_filter(accessible_shop_ids, query.get("shopId"))
        q = db.session.query(Holiday).filter(Holiday.shop_id.is_(None) | Holiday.shop_id.in_(shop_ids))
        if query.get("startDate") or query.get("endDate"):
            start, end = parse_date_range(query.get("startDate"), query.get("endDate"))
            q = q.filter(Holiday.start_date <= end, Holiday.end_date >= start)
        q = q.order_by(Holiday.start_date.asc(), Holiday.id.asc())
        return ServiceResult.ok("Holidays fetched successfully", paginate(q, query.get("page"), query.get("limit")))

    return as_result(_run)


def _clip(start: date, end: date, lower: date, upper: date) -> set[date]:
    return set(iter_days(max(start, lower), min(end, upper)))


def approved_leave_dates(employee_id: int, start: date, end: date) -> set[date]:
    rows = (
        db.session.query(LeaveRequest)
        .filter(
            LeaveRequest.employee_id == employee_id,
            LeaveRequest.status == "approved",
            LeaveRequest.start_date <= end,
            LeaveRequest.end_date >= start,
        )
        .all()
    )
    days: set[date] = set()
    for row in rows:
        days |= _clip(row.start_date, row.end_date, start, end)
    return days


def holiday_dates(start: date, end: date, shop_id: int | None = None) -> set[date]:
    q = db.session.query(Holiday).filter(Holiday.start_date <= end, Holiday.end_date >= start)
    if shop_id is not None:
        q = q.filter(Holiday.shop_id.is_(None) | (Holiday.shop_id == shop_id))
    else:
        q = q.filter(Holiday.shop_id.is_(None))
    days: set[date] = set()
    for row in q.all():
        days |= _clip(row.start_date, row.end_date, start, end)
    return days
