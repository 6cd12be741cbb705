"""
Salary history: effective-dated salary values per employee.

The salary on day X is the latest entry whose start_date <= X. With no such
entry the employee's current base_salary is used; that fallback is a
heuristic and can misstate months before the first recorded entry.
"""

from __future__ import annotations

from bisect import bisect_right
from datetime import date
from decimal import Decimal

from ..errors import EmployeeNotFound, InvalidRequest
from ..extensions import db
from ..models import Employee, SalaryHistoryEntry
from ..money_utils import quantize_money, to_decimal
from ..time_utils import parse_date, parse_salary_month, today
from .concurrency import lock_for_update, run_with_retry
from .results import ServiceResult, as_result
from .tenant_service import normalize_shop_ids


def _parse_start(value) -> date:
    """'YYYY-MM' means the first of that month; a full date is taken as is."""
    if isinstance(value, str) and len(value.strip()) == 7:
        return parse_salary_month(value)[0]
    return parse_date(value, "start_month")


def salary_timeline(employee_id: int) -> list[SalaryHistoryEntry]:
    return (
        db.session.query(SalaryHistoryEntry)
        .filter(SalaryHistoryEntry.employee_id == employee_id)
        .order_by(SalaryHistoryEntry.start_date.asc(), SalaryHistoryEntry.id.asc())
        .all()
    )


def salary_on(timeline: list[SalaryHistoryEntry], day: date, fallback) -> Decimal:
    """Timeline must be ordered by start_date (as salary_timeline returns it)."""
    index = bisect_right([entry.start_date for entry in timeline], day)
    if index == 0:
        return to_decimal(fallback)
    return to_decimal(timeline[index - 1].salary)


def record_salary_change(accessible_shop_ids, employee_id, new_salary, start_month) -> ServiceResult:
    """
    Append a salary entry.

    status is "initial" for the first entry, otherwise promotion or demotion
    relative to the current base salary. base_salary itself moves only when
    the change is already effective.
    """
    def _op():
        employee = lock_for_update(
            db.session.query(Employee).filter(
                Employee.id == employee_id,
                Employee.shop_id.in_(normalize_shop_ids(accessible_shop_ids)),
            )
        ).first()
        if employee is None:
            raise EmployeeNotFound(f"Employee {employee_id} not found", details={"employee_id": employee_id})

        salary = quantize_money(to_decimal(new_salary, "new_salary", default=None))
        if salary <= 0:
            raise InvalidRequest("new_salary must be positive", details={"new_salary": str(salary)})
        start = _parse_start(start_month)

        current = to_decimal(employee.base_salary)
        has_history = (
            db.session.query(SalaryHistoryEntry.id)
            .filter(SalaryHistoryEntry.employee_id == employee.id)
            .first()
            is not None
        )
        if not has_history:
            status = "initial"
        elif salary > current:
            status = "promotion"
        elif salary < current:
            status = "demotion"
        else:
            raise InvalidRequest("Salary is unchanged", details={"salary": str(salary)})

        entry = SalaryHistoryEntry(
            employee_id=employee.id,
            salary=salary,
            start_date=start,
            status=status,
            previous_salary=current,
        )
        db.session.add(entry)
        if start <= today():
            employee.base_salary = salary
        db.session.commit()
        return entry

    def _run():
        entry = run_with_retry(_op)
        return ServiceResult.ok("Salary change recorded", entry.to_dict())

    return as_result(_run)


def list_salary_history(accessible_shop_ids, employee_id) -> ServiceResult:
    def _run():
        employee = (
            db.session.query(Employee)
            .filter(Employee.id == employee_id, Employee.shop_id.in_(normalize_shop_ids(accessible_shop_ids)))
            .first()
        )
        if employee is None:
            raise EmployeeNotFound(f"Employee {employee_id} not found", details={"employee_id": employee_id})
        history = [entry.to_dict() for entry in salary_timeline(employee.id)]
        return ServiceResult.ok(
            "Salary history fetched",
            {"employee_id": employee.id, "base_salary": str(quantize_money(to_decimal(employee.base_salary))), "history": history},
        )

    return as_result(_run)
