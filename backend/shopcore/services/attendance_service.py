"""
Attendance ledger: one record per employee per day.

Records are created lazily the first time a day is touched. A working day
with no record is treated by the payroll calculator as an absence.
"""

from __future__ import annotations

from ..errors import EmployeeNotFound, InvalidRequest
from ..extensions import db
from ..models import AttendanceRecord, Employee
from ..time_utils import parse_date, parse_date_range, today
from .concurrency import run_with_retry
from .results import ServiceResult, as_result
from .tenant_service import normalize_shop_ids


def _employees_in_scope(employee_ids, accessible_shop_ids) -> list[Employee]:
    if isinstance(employee_ids, (int, str)):
        employee_ids = [employee_ids]
    if not employee_ids:
        raise InvalidRequest("employee_ids is required")
    try:
        ids = sorted({int(value) for value in employee_ids})
    except (TypeError, ValueError):
        raise InvalidRequest("employee_ids must be integers", details={"employee_ids": employee_ids})

    employees = (
        db.session.query(Employee)
        .filter(Employee.id.in_(ids), Employee.shop_id.in_(normalize_shop_ids(accessible_shop_ids)))
        .all()
    )
    found = {e.id for e in employees}
    missing = [i for i in ids if i not in found]
    if missing:
        raise EmployeeNotFound("Employee not found", details={"employee_ids": missing})
    return employees


def _non_negative_minutes(value, field: str) -> int:
    if value is None:
        return 0
    if isinstance(value, bool):
        raise InvalidRequest(f"{field} must be a whole number of minutes", details={field: value})
    try:
        minutes = int(value)
    except (TypeError, ValueError):
        raise InvalidRequest(f"{field} must be a whole number of minutes", details={field: value})
    if minutes < 0:
        raise InvalidRequest(f"{field} cannot be negative", details={field: value})
    return minutes


_TRUE_STRINGS = ("true", "1", "yes")
_FALSE_STRINGS = ("false", "0", "no", "")


def _flag(value, field: str) -> bool:
    """Strict boolean: real bools, 0/1, or true/false style strings."""
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
    raise InvalidRequest(f"{field} must be true or false", details={field: value})


def _bulk_mark(accessible_shop_ids, employee_ids, day, **fields) -> ServiceResult:
    def _op():
        target = parse_date(day) if day is not None else today()
        employees = _employees_in_scope(employee_ids, accessible_shop_ids)
        ids = [e.id for e in employees]

        already = {
            row.employee_id
            for row in db.session.query(AttendanceRecord.employee_id)
            .filter(AttendanceRecord.employee_id.in_(ids), AttendanceRecord.date == target)
            .all()
        }
        new_ids = [i for i in ids if i not in already]
        if not new_ids:
            raise InvalidRequest(
                "Attendance already marked for all selected employees",
                details={"date": target.isoformat()},
            )

        records = [AttendanceRecord(employee_id=i, date=target, **fields) for i in new_ids]
        db.session.add_all(records)
        db.session.commit()
        return records, sorted(already)

    def _run():
        records, skipped = run_with_retry(_op)
        return ServiceResult.ok(
            f"Marked {len(records)} employee(s)",
            {"records": [r.to_dict() for r in records], "skipped_employee_ids": skipped},
        )

    return as_result(_run)


def mark_present(accessible_shop_ids, employee_ids, day=None) -> ServiceResult:
    """Mark employees present; employees already marked for the day are skipped."""
    return _bulk_mark(accessible_shop_ids, employee_ids, day, is_half_day=False, is_full_absent=False)


def mark_absent(accessible_shop_ids, employee_ids, day=None, is_half_day: bool = False, notes: str | None = None) -> ServiceResult:
    """A half day is recorded as present-for-half, otherwise a full absence."""
    try:
        half = _flag(is_half_day, "is_half_day")
    except InvalidRequest as exc:
        return ServiceResult.failure(exc)
    return _bulk_mark(
        accessible_shop_ids,
        employee_ids,
        day,
        is_half_day=half,
        is_full_absent=not half,
        notes=notes,
    )


def update_attendance(accessible_shop_ids, employee_id, day, payload: dict) -> ServiceResult:
    """
    Find-or-create the day's record and apply corrections.

    payload keys (all optional): late_minutes, extra_minutes, is_half_day,
    is_full_absent, notes.
    """
    payload = payload or {}

    def _op():
        target = parse_date(day) if day is not None else today()
        _employees_in_scope([employee_id], accessible_shop_ids)

        record = (
            db.session.query(AttendanceRecord)
            .filter_by(employee_id=int(employee_id), date=target)
            .first()
        )
        if record is None:
            record = AttendanceRecord(employee_id=int(employee_id), date=target)
            db.session.add(record)

        if "late_minutes" in payload:
            record.late_minutes = _non_negative_minutes(payload["late_minutes"], "late_minutes")
        if "extra_minutes" in payload:
            record.extra_minutes = _non_negative_minutes(payload["extra_minutes"], "extra_minutes")
        if "is_half_day" in payload:
            record.is_half_day = _flag(payload["is_half_day"], "is_half_day")
        if "is_full_absent" in payload:
            record.is_full_absent = _flag(payload["is_full_absent"], "is_full_absent")
        if "notes" in payload:
            record.notes = payload["notes"]

        db.session.commit()
        return record

    def _run():
        record = run_with_retry(_op)
        return ServiceResult.ok("Attendance updated", record.to_dict())

    return as_result(_run)


def delete_attendance(accessible_shop_ids, employee_id, day) -> ServiceResult:
    def _op():
        target = parse_date(day)
        _employees_in_scope([employee_id], accessible_shop_ids)
        record = (
            db.session.query(AttendanceRecord)
            .filter_by(employee_id=int(employee_id), date=target)
            .first()
        )
        if record is None:
            raise InvalidRequest(
                "No attendance record found",
                details={"employee_id": employee_id, "date": target.isoformat()},
            )
        db.session.delete(record)
        db.session.commit()

    def _run():
        run_with_retry(_op)
        return ServiceResult.ok("Attendance removed")

    return as_result(_run)


def attendance_for_range(employee_id: int, start, end) -> dict:
    """{date: AttendanceRecord} for an inclusive range."""
    rows = (
        db.session.query(AttendanceRecord)
        .filter(
            AttendanceRecord.employee_id == employee_id,
            AttendanceRecord.date >= start,
            AttendanceRecord.date <= end,
        )
        .all()
    )
    return {row.date: row for row in rows}


def list_attendance(accessible_shop_ids, employee_id, start, end) -> ServiceResult:
    def _run():
        start_d, end_d = parse_date_range(start, end)
        _employees_in_scope([employee_id], accessible_shop_ids)
        records = attendance_for_range(int(employee_id), start_d, end_d)
        return ServiceResult.ok(
            "Attendance retrieved successfully",
            {"records": [records[d].to_dict() for d in sorted(records)]},
        )

    return as_result(_run)
