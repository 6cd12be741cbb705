"""
Payroll Calculator: day-by-day salary projection

WHY: A payroll figure must be reproducible from the ledgers alone, so that a
frozen PayrollRelease can be re-derived when disputed. calculate() is a pure
read: same ledgers in, field-for-field identical breakdown out.

DAY RULES (for each calendar day d in the period):
- before salary_start_date: outside employment, skipped
- holiday or weekend: no base pay; recorded extra minutes pay overtime only
- working day with approved leave: full daily rate (paid leave)
- working day with an attendance record:
    full absent -> 0, half day -> rate / 2, else rate;
    minus late minutes at the hourly rate, plus extra minutes at 1.5x
    (is_full_absent wins when both flags are set)
- working day with no record: absence (silence is not presence)

RATES:
    daily_rate    = salary_on(d) / working_days_in_month(d)
    hourly_rate   = daily_rate / required_daily_hours
    overtime_rate = hourly_rate * 1.5

working_days_in_month excludes weekends and holidays across the whole
calendar month, so a fully attended month pays exactly the monthly salary.
Sums are carried at full precision; net pay is rounded once and floored at 0.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from flask import current_app

from ..errors import EmployeeNotFound
from ..extensions import db
from ..models import Employee
from ..money_utils import ZERO, money_str, quantize_money
from ..time_utils import iter_days, month_end, month_start, parse_date_range, parse_salary_month, salary_month_of, today
from .attendance_service import attendance_for_range
from .calendar_service import approved_leave_dates, holiday_dates
from .results import ServiceResult, as_result
from .salary_history_service import salary_on, salary_timeline
from .tenant_service import normalize_shop_ids

OVERTIME_MULTIPLIER = Decimal("1.5")
MINUTES_PER_HOUR = Decimal("60")


@dataclass(frozen=True)
class SalaryBreakdown:
    employee_id: int
    period_start: date
    period_end: date
    base_salary: Decimal
    required_daily_hours: int
    expected_working_days: int
    present_days: int
    half_days: int
    absent_days: int
    unrecorded_days: int
    leave_days: int
    holiday_days: int
    weekend_days: int
    days_outside_employment: int
    total_late_minutes: int
    total_extra_minutes: int
    earned_base_pay: Decimal
    overtime_pay: Decimal
    late_deduction: Decimal
    absence_deduction: Decimal
    deductions: Decimal
    net_pay: Decimal

    def to_dict(self) -> dict:
        return {
            "employee_id": self.employee_id,
            "period_start": self.period_start.isoformat(),
            "period_end": self.period_end.isoformat(),
            "base_salary": money_str(self.base_salary),
            "required_daily_hours": self.required_daily_hours,
            "expected_working_days": self.expected_working_days,
            "present_days": self.present_days,
            "half_days": self.half_days,
            "absent_days": self.absent_days,
            "unrecorded_days": self.unrecorded_days,
            "leave_days": self.leave_days,
            "holiday_days": self.holiday_days,
            "weekend_days": self.weekend_days,
            "days_outside_employment": self.days_outside_employment,
            "total_late_minutes": self.total_late_minutes,
            "total_extra_minutes": self.total_extra_minutes,
            "earned_base_pay": money_str(self.earned_base_pay),
            "overtime_pay": money_str(self.overtime_pay),
            "late_deduction": money_str(self.late_deduction),
            "absence_deduction": money_str(self.absence_deduction),
            "deductions": money_str(self.deductions),
            "net_pay": money_str(self.net_pay),
        }


def resolve_period(salary_month=None, start=None, end=None) -> tuple[date, date]:
    """A salary month wins over an explicit range; neither means the current month."""
    if salary_month:
        return parse_salary_month(salary_month)
    if start is not None or end is not None:
        return parse_date_range(start, end)
    return parse_salary_month(salary_month_of(today()))


def _working_days(year_month: date, weekend: set[int], holidays: set[date]) -> int:
    return sum(
        1
        for d in iter_days(month_start(year_month), month_end(year_month))
        if d.weekday() not in weekend and d not in holidays
    )


def compute_breakdown(employee: Employee, start: date, end: date) -> SalaryBreakdown:
    weekend = set(current_app.config.get("PAYROLL_WEEKEND_DAYS", (4,)))
    hours = employee.required_daily_hours
    if not hours or hours <= 0:
        hours = current_app.config.get("PAYROLL_DEFAULT_DAILY_HOURS", 8)
    hours_d = Decimal(hours)

    timeline = salary_timeline(employee.id)
    holidays = holiday_dates(month_start(start), month_end(end), employee.shop_id)
    leave = approved_leave_dates(employee.id, start, end)
    attendance = attendance_for_range(employee.id, start, end)

    working_days_cache: dict[tuple[int, int], int] = {}
    counts = dict(expected=0, present=0, half=0, absent=0, unrecorded=0, leave=0, holiday=0, weekend=0, outside=0, late=0, extra=0)
    earned = overtime = late_deduction = absence_deduction = net = ZERO

    for d in iter_days(start, end):
        if employee.salary_start_date and d < employee.salary_start_date:
            counts["outside"] += 1
            continue

        key = (d.year, d.month)
        if key not in working_days_cache:
            working_days_cache[key] = _working_days(d, weekend, holidays)
        working_days = working_days_cache[key]

        day_salary = salary_on(timeline, d, employee.base_salary)
        daily_rate = day_salary / working_days if working_days else ZERO
        hourly_rate = daily_rate / hours_d
        overtime_rate = hourly_rate * OVERTIME_MULTIPLIER
        record = attendance.get(d)

        if d in holidays or d.weekday() in weekend:
            counts["holiday" if d in holidays else "weekend"] += 1
            if record is not None and record.extra_minutes:
                pay = Decimal(record.extra_minutes) / MINUTES_PER_HOUR * overtime_rate
                counts["extra"] += record.extra_minutes
                overtime += pay
                net += pay
            continue

        counts["expected"] += 1

        if d in leave:
            counts["leave"] += 1
            earned += daily_rate
            net += daily_rate
            continue

        if record is None:
            counts["absent"] += 1
            counts["unrecorded"] += 1
            absence_deduction += daily_rate
            continue

        if record.is_full_absent:
            day_pay = ZERO
            counts["absent"] += 1
            absence_deduction += daily_rate
        elif record.is_half_day:
            day_pay = daily_rate / 2
            counts["half"] += 1
            absence_deduction += daily_rate - day_pay
        else:
            day_pay = daily_rate
            counts["present"] += 1
        earned += day_pay

        late = Decimal(record.late_minutes or 0) / MINUTES_PER_HOUR * hourly_rate
        extra = Decimal(record.extra_minutes or 0) / MINUTES_PER_HOUR * overtime_rate
        counts["late"] += record.late_minutes or 0
        counts["extra"] += record.extra_minutes or 0
        late_deduction += late
        overtime += extra
        net += day_pay - late + extra

    return SalaryBreakdown(
        employee_id=employee.id,
        period_start=start,
        period_end=end,
        base_salary=quantize_money(salary_on(timeline, end, employee.base_salary)),
        required_daily_hours=int(hours),
        expected_working_days=counts["expected"],
        present_days=counts["present"],
        half_days=counts["half"],
        absent_days=counts["absent"],
        unrecorded_days=counts["unrecorded"],
        leave_days=counts["leave"],
        holiday_days=counts["holiday"],
        weekend_days=counts["weekend"],
        days_outside_employment=counts["outside"],
        total_late_minutes=counts["late"],
        total_extra_minutes=counts["extra"],
        earned_base_pay=quantize_money(earned),
        overtime_pay=quantize_money(overtime),
        late_deduction=quantize_money(late_deduction),
        absence_deduction=quantize_money(absence_deduction),
        deductions=quantize_money(late_deduction + absence_deduction),
        net_pay=max(ZERO, quantize_money(net)),
    )


def load_employee(employee_id, accessible_shop_ids) -> Employee:
    employee = (
        db.session.query(Employee)
        .filter(Employee.id == employee_id, Employee.shop_id.in_(normalize_shop_ids(accessible_shop_ids)))
        .first()
    )
    if employee is None:
        raise EmployeeNotFound(f"Employee {employee_id} not found", details={"employee_id": employee_id})
    return employee


def calculate(employee_id, accessible_shop_ids, salary_month=None, start=None, end=None) -> ServiceResult:
    """Salary breakdown for a month ('YYYY-MM') or an inclusive date range. Read only."""
    def _run():
        employee = load_employee(employee_id, accessible_shop_ids)
        period_start, period_end = resolve_period(salary_month, start, end)
        breakdown = compute_breakdown(employee, period_start, period_end)
        return ServiceResult.ok("Payroll calculated successfully", breakdown.to_dict())

    return as_result(_run)
