# Overview: Flask API routes for attendance, leave, holidays, salary history and payroll.

from flask import Blueprint, current_app, g, request

from ..decorators import internal_error_response, query_args, require_shop_context, to_response, unavailable_response
from ..errors import InfrastructureError
from ..services import (
    attendance_service,
    calendar_service,
    payroll_calculator,
    payroll_service,
    salary_history_service,
)


payroll_bp = Blueprint("payroll", __name__, url_prefix="/api/payroll")


def _run(action: str, call, success_code: int = 200):
    try:
        return to_response(call(), success_code)
    except InfrastructureError:
        return unavailable_response()
    except Exception:
        current_app.logger.exception("Failed to %s", action)
        return internal_error_response()


# ---- attendance ----------------------------------------------------------

@payroll_bp.post("/attendance/present")
@require_shop_context
def mark_present_route():
    data = request.get_json(silent=True) or {}
    return _run(
        "mark attendance",
        lambda: attendance_service.mark_present(g.accessible_shop_ids, data.get("employee_ids"), data.get("date")),
        201,
    )


@payroll_bp.post("/attendance/absent")
@require_shop_context
def mark_absent_route():
    data = request.get_json(silent=True) or {}
    return _run(
        "mark absence",
        lambda: attendance_service.mark_absent(
            g.accessible_shop_ids,
            data.get("employee_ids"),
            data.get("date"),
            is_half_day=data.get("is_half_day", False),
            notes=data.get("notes"),
        ),
        201,
    )


@payroll_bp.put("/attendance/<int:employee_id>")
@require_shop_context
def update_attendance_route(employee_id: int):
    data = request.get_json(silent=True) or {}
    return _run(
        "update attendance",
        lambda: attendance_service.update_attendance(g.accessible_shop_ids, employee_id, data.get("date"), data),
    )


@payroll_bp.delete("/attendance/<int:employee_id>/<day>")
@require_shop_context
def delete_attendance_route(employee_id: int, day: str):
    return _run(
        "delete attendance",
        lambda: attendance_service.delete_attendance(g.accessible_shop_ids, employee_id, day),
    )


@payroll_bp.get("/attendance/<int:employee_id>")
@require_shop_context
def list_attendance_route(employee_id: int):
    return _run(
        "list attendance",
        lambda: attendance_service.list_attendance(
            g.accessible_shop_ids,
            employee_id,
            request.args.get("startDate"),
            request.args.get("endDate"),
        ),
    )


# ---- leave & holidays ----------------------------------------------------

@payroll_bp.post("/leave")
@require_shop_context
def create_leave_route():
    data = request.get_json(silent=True) or {}
    return _run("create leave request", lambda: calendar_service.create_leave_request(g.accessible_shop_ids, data), 201)


@payroll_bp.patch("/leave/<int:leave_id>")
@require_shop_context
def update_leave_route(leave_id: int):
    data = request.get_json(silent=True) or {}
    return _run(
        "update leave request",
        lambda: calendar_service.update_leave_status(g.accessible_shop_ids, g.user_id, leave_id, data.get("status")),
    )


@payroll_bp.get("/leave")
@require_shop_context
def list_leave_route():
    return _run(
        "list leave requests",
        lambda: calendar_service.list_leave_requests(g.accessible_shop_ids, query_args()),
    )


@payroll_bp.post("/holidays")
@require_shop_context
def add_holiday_route():
    data = request.get_json(silent=True) or {}
    return _run("add holiday", lambda: calendar_service.add_holiday(g.accessible_shop_ids, data), 201)


@payroll_bp.get("/holidays")
@require_shop_context
def list_holidays_route():
    return _run("list holidays", lambda: calendar_service.list_holidays(g.accessible_shop_ids, query_args()))


# ---- salary history ------------------------------------------------------

@payroll_bp.post("/salary/<int:employee_id>")
@require_shop_context
def record_salary_route(employee_id: int):
    data = request.get_json(silent=True) or {}
    return _run(
        "record salary change",
        lambda: salary_history_service.record_salary_change(
            g.accessible_shop_ids, employee_id, data.get("new_salary"), data.get("start_month")
        ),
        201,
    )


@payroll_bp.get("/salary/<int:employee_id>")
@require_shop_context
def salary_history_route(employee_id: int):
    return _run(
        "list salary history",
        lambda: salary_history_service.list_salary_history(g.accessible_shop_ids, employee_id),
    )


# ---- calculation & release -----------------------------------------------

@payroll_bp.get("/calculate/<int:employee_id>")
@require_shop_context
def calculate_route(employee_id: int):
    """?month=YYYY-MM, or ?startDate=&endDate= for an arbitrary range."""
    return _run(
        "calculate payroll",
        lambda: payroll_calculator.calculate(
            employee_id,
            g.accessible_shop_ids,
            salary_month=request.args.get("month"),
            start=request.args.get("startDate"),
            end=request.args.get("endDate"),
        ),
    )


@payroll_bp.post("/releases")
@require_shop_context
def release_route():
    data = request.get_json(silent=True) or {}
    return _run("release payroll", lambda: payroll_service.release_payroll(g.accessible_shop_ids, g.user_id, data), 201)


@payroll_bp.post("/releases/bulk")
@require_shop_context
def bulk_release_route():
    data = request.get_json(silent=True) or {}
    return _run(
        "bulk release payroll",
        lambda: payroll_service.release_payroll_for_all(g.accessible_shop_ids, g.user_id, data),
        201,
    )


@payroll_bp.post("/releases/<int:release_id>/release")
@require_shop_context
def mark_released_route(release_id: int):
    """Optional body {"amount"} for a partial payment; otherwise the full due is paid."""
    data = request.get_json(silent=True) or {}
    return _run(
        "mark payroll released",
        lambda: payroll_service.mark_released(release_id, g.accessible_shop_ids, g.user_id, data.get("amount")),
    )


@payroll_bp.get("/releases")
@require_shop_context
def list_releases_route():
    return _run("list payroll releases", lambda: payroll_service.list_releases(g.accessible_shop_ids, query_args()))


@payroll_bp.get("/releases/<int:release_id>")
@require_shop_context
def get_release_route(release_id: int):
    return _run("get payroll release", lambda: payroll_service.get_release(release_id, g.accessible_shop_ids))
