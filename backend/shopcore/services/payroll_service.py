"""
Payroll Release: freeze one month of salary for one employee.

FLOW (single transaction):
1. reject if (employee, month) already has a release (AlreadyReleased)
2. gross = PayrollCalculator net pay for the month
3. validate adjustments: all non-negative, advance <= outstanding advance,
   loan deduction <= remaining balance of the targeted loan
4. net_payable = gross + bonus + overtime - advance - loan - fine - other
5. plan the payment: without paid_amount the month is paid in full (or
   held at zero); an explicit paid_amount settles earlier PENDING months
   oldest-first and the rest goes to this month
6. persist the release with its calculation snapshot, then post the
   payments, the loan payment and the advance recovery
7. commit

Every validation happens before the first write. The unique constraint on
(employee_id, salary_month) backs step 1 against concurrent releases.

A release stays PENDING until paid_amount covers net_payable; mark_released
records later payments against it.
"""

from __future__ import annotations

from decimal import Decimal

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..errors import (
    AdvanceExceedsOutstanding,
    AlreadyReleased,
    ClientError,
    ComputationError,
    InvalidRequest,
    InvalidStatusTransition,
)
from ..extensions import db
from ..models import Employee, PayrollRelease
from ..money_utils import ZERO, money_str, quantize_money, to_decimal, to_non_negative
from ..time_utils import parse_salary_month, utcnow
from .commission_service import commission_totals
from .concurrency import lock_for_update, run_with_retry
from .loan_service import (
    apply_advance_deduction,
    apply_loan_deduction,
    loan_for_deduction,
    outstanding_advance,
    outstanding_loan_balance,
)
from .payroll_calculator import compute_breakdown, load_employee
from .results import ServiceResult, as_result, paginate
from .tenant_service import normalize_shop_ids, resolve_shop_filter

ADJUSTMENT_FIELDS = (
    "advance_deduction",
    "bonus",
    "loan_deduction",
    "fine_amount",
    "overtime_amount",
    "other_deduction",
)


def _existing_release(employee_id: int, salary_month: str) -> PayrollRelease | None:
    return (
        db.session.query(PayrollRelease)
        .filter_by(employee_id=employee_id, salary_month=salary_month)
        .first()
    )


def _already_released(existing: PayrollRelease) -> AlreadyReleased:
    return AlreadyReleased(
        f"Payroll for {existing.salary_month} is already recorded",
        details={
            "employee_id": existing.employee_id,
            "salary_month": existing.salary_month,
            "release_id": existing.id,
            "status": existing.status,
        },
    )


def _pending_dues(employee_id: int, salary_month: str) -> list[PayrollRelease]:
    """Earlier months still owed to the employee, oldest first, locked."""
    query = (
        db.session.query(PayrollRelease)
        .filter(
            PayrollRelease.employee_id == employee_id,
            PayrollRelease.status == "PENDING",
            PayrollRelease.salary_month < salary_month,
        )
        .order_by(PayrollRelease.salary_month.asc(), PayrollRelease.id.asc())
    )
    return lock_for_update(query).all()


def _plan_dues(dues: list[PayrollRelease], amount: Decimal) -> tuple[list[tuple[PayrollRelease, Decimal]], Decimal]:
    """Split `amount` over earlier dues. Returns the plan and what is left for the current month."""
    plan = []
    remaining = amount
    for release in dues:
        if remaining <= 0:
            break
        due = release.due_amount
        if due <= 0:
            continue
        pay = min(due, remaining)
        plan.append((release, pay))
        remaining -= pay
    return plan, remaining


def _pay(release: PayrollRelease, amount: Decimal, admin_id) -> None:
    release.paid_amount = quantize_money(to_decimal(release.paid_amount) + amount)
    if release.paid_amount >= to_decimal(release.net_payable):
        release.status = "RELEASED"
        release.released_at = utcnow()
        release.released_by = admin_id


def _record_release(employee: Employee, payload: dict, admin_id) -> PayrollRelease:
    """Validate, persist and pay one month. Flushes; the caller commits."""
    salary_month = (payload.get("salary_month") or "").strip()
    start, end = parse_salary_month(salary_month)

    existing = _existing_release(employee.id, salary_month)
    if existing is not None:
        raise _already_released(existing)

    breakdown = compute_breakdown(employee, start, end)
    gross = breakdown.net_pay

    amounts = {f: quantize_money(to_non_negative(payload.get(f), f)) for f in ADJUSTMENT_FIELDS}

    advance_before = outstanding_advance(employee.id)
    if amounts["advance_deduction"] > advance_before:
        raise AdvanceExceedsOutstanding(
            "Advance deduction exceeds outstanding advance",
            details={
                "advance_deduction": money_str(amounts["advance_deduction"]),
                "outstanding_advance": money_str(advance_before),
            },
        )

    loan = None
    loan_balance_before = outstanding_loan_balance(employee.id)
    if amounts["loan_deduction"] > 0:
        loan = loan_for_deduction(employee.id, amounts["loan_deduction"], payload.get("loan_id"))

    net_payable = (
        gross
        + amounts["bonus"]
        + amounts["overtime_amount"]
        - amounts["advance_deduction"]
        - amounts["loan_deduction"]
        - amounts["fine_amount"]
        - amounts["other_deduction"]
    )
    if net_payable < 0:
        raise InvalidRequest(
            "Deductions exceed gross salary",
            details={"gross_salary": money_str(gross), "net_payable": money_str(net_payable)},
        )

    hold = bool(payload.get("hold"))
    dues_plan = []
    if payload.get("paid_amount") is None:
        current_payment = ZERO if hold else net_payable
    else:
        if hold:
            raise InvalidRequest("paid_amount cannot be combined with hold")
        paid = quantize_money(to_non_negative(payload.get("paid_amount"), "paid_amount"))
        dues_plan, current_payment = _plan_dues(_pending_dues(employee.id, salary_month), paid)
        if current_payment > net_payable:
            previous_due = sum((amount for _, amount in dues_plan), ZERO)
            raise InvalidRequest(
                "Paid amount exceeds the total due",
                details={
                    "paid_amount": money_str(paid),
                    "previous_due": money_str(previous_due),
                    "net_payable": money_str(net_payable),
                },
            )

    snapshot = {
        "breakdown": breakdown.to_dict(),
        "adjustments": {f: money_str(v) for f, v in amounts.items()},
        "commission": commission_totals(employee.id, start, end),
        "outstanding_advance_before": money_str(advance_before),
        "outstanding_loan_before": money_str(loan_balance_before),
        "loan_id": loan.id if loan is not None else None,
        "dues_allocation": [
            {"release_id": due.id, "salary_month": due.salary_month, "amount": money_str(amount)}
            for due, amount in dues_plan
        ],
    }

    release = PayrollRelease(
        employee_id=employee.id,
        shop_id=employee.shop_id,
        salary_month=salary_month,
        base_salary=breakdown.base_salary,
        gross_salary=gross,
        net_payable=net_payable,
        paid_amount=ZERO,
        status="PENDING",
        released_at=None,
        released_by=None,
        notes=payload.get("notes"),
        calculation_snapshot=snapshot,
        **amounts,
    )
    db.session.add(release)
    db.session.flush()

    for due, amount in dues_plan:
        _pay(due, amount, admin_id)
    if not hold:
        _pay(release, current_payment, admin_id)

    if loan is not None:
        apply_loan_deduction(
            loan,
            amounts["loan_deduction"],
            admin_id=admin_id,
            payroll_release_id=release.id,
            salary_month=salary_month,
        )
    if amounts["advance_deduction"] > 0:
        allocation = apply_advance_deduction(employee.id, amounts["advance_deduction"])
        release.calculation_snapshot = {**snapshot, "advance_allocation": allocation}

    db.session.flush()
    return release


def _release_message(release: PayrollRelease) -> str:
    if release.status == "RELEASED":
        return "Payroll released successfully"
    if to_decimal(release.paid_amount) > 0:
        return "Partial payroll payment recorded"
    return "Payroll recorded on hold"


def release_payroll(accessible_shop_ids, admin_id, payload: dict) -> ServiceResult:
    """
    payload:
        employee_id, salary_month ('YYYY-MM')
        advance_deduction, bonus, loan_deduction, loan_id (optional),
        fine_amount, overtime_amount, other_deduction, notes
        hold: persist as PENDING with nothing paid (paid later via mark_released)
        paid_amount: pay this much now, earlier PENDING months first
    """
    payload = payload or {}

    def _op():
        employee = load_employee(payload.get("employee_id"), accessible_shop_ids)
        employee_id = employee.id
        try:
            release = _record_release(employee, payload, admin_id)
        except IntegrityError:
            db.session.rollback()
            existing = _existing_release(employee_id, (payload.get("salary_month") or "").strip())
            if existing is None:
                raise
            raise _already_released(existing)
        db.session.commit()
        return release

    def _run():
        release = run_with_retry(_op)
        current_app.logger.info(
            "Payroll %s for employee %s recorded as %s (net %s, paid %s)",
            release.salary_month, release.employee_id, release.status,
            money_str(release.net_payable), money_str(release.paid_amount),
        )
        return ServiceResult.ok(_release_message(release), release.to_dict())

    return as_result(_run)


def release_payroll_for_all(accessible_shop_ids, admin_id, payload: dict) -> ServiceResult:
    """
    Release one month for every active employee in scope.

    payload: salary_month, shop_id (optional filter), hold

    Each employee runs in its own savepoint: one that cannot be released
    (already released, deductions above gross) is reported under `skipped`
    and does not undo the others.
    """
    payload = payload or {}

    def _op():
        salary_month = (payload.get("salary_month") or "").strip()
        parse_salary_month(salary_month)
        shop_ids = resolve_shop_filter(accessible_shop_ids, payload.get("shop_id"))
        employees = (
            db.session.query(Employee)
            .filter(Employee.shop_id.in_(shop_ids), Employee.status == "active")
            .order_by(Employee.id.asc())
            .all()
        )
        if not employees:
            raise InvalidRequest("No active employees found", details={"shop_ids": shop_ids})

        per_employee = {"salary_month": salary_month, "hold": payload.get("hold")}
        released, skipped = [], []
        for employee in employees:
            employee_id = employee.id
            try:
                with db.session.begin_nested():
                    release = _record_release(employee, per_employee, admin_id)
            except (ClientError, ComputationError) as exc:
                skipped.append({"employee_id": employee_id, "error": exc.code, "message": exc.message})
                continue
            except IntegrityError:
                skipped.append({
                    "employee_id": employee_id,
                    "error": AlreadyReleased.code,
                    "message": f"Payroll for {salary_month} is already recorded",
                })
                continue
            released.append(release)

        db.session.commit()
        return salary_month, released, skipped

    def _run():
        salary_month, released, skipped = run_with_retry(_op)
        current_app.logger.info(
            "Bulk payroll %s: %d released, %d skipped", salary_month, len(released), len(skipped)
        )
        return ServiceResult.ok(
            f"Payroll recorded for {len(released)} employee(s)",
            {
                "salary_month": salary_month,
                "released": [r.to_dict() for r in released],
                "skipped": skipped,
                "released_count": len(released),
                "skipped_count": len(skipped),
            },
        )

    return as_result(_run)


def _load_release(release_id, accessible_shop_ids, *, lock: bool = False) -> PayrollRelease:
    query = db.session.query(PayrollRelease).filter(
        PayrollRelease.id == release_id,
        PayrollRelease.shop_id.in_(normalize_shop_ids(accessible_shop_ids)),
    )
    release = (lock_for_update(query) if lock else query).first()
    if release is None:
        raise InvalidRequest("Payroll release not found", details={"release_id": release_id})
    return release


def mark_released(release_id, accessible_shop_ids, admin_id, amount=None) -> ServiceResult:
    """
    Pay a PENDING release. Without `amount` the remaining due is paid and the
    release becomes RELEASED; a smaller amount is recorded and it stays
    PENDING. Frozen amounts never change.
    """
    def _op():
        release = _load_release(release_id, accessible_shop_ids, lock=True)
        if release.status != "PENDING":
            raise InvalidStatusTransition(
                f"Payroll release is already {release.status}",
                details={"release_id": release.id, "status": release.status},
            )
        due = release.due_amount
        if amount is None:
            payment = due
        else:
            payment = quantize_money(to_non_negative(amount, "amount"))
            if payment == 0 and due > 0:
                raise InvalidRequest("amount must be positive", details={"amount": money_str(payment)})
            if payment > due:
                raise InvalidRequest(
                    "Payment exceeds the amount due",
                    details={"amount": money_str(payment), "due_amount": money_str(due)},
                )
        _pay(release, payment, admin_id)
        db.session.commit()
        return release

    def _run():
        release = run_with_retry(_op)
        return ServiceResult.ok(_release_message(release), release.to_dict())

    return as_result(_run)


def get_release(release_id, accessible_shop_ids) -> ServiceResult:
    def _run():
        return ServiceResult.ok("Payroll release retrieved", _load_release(release_id, accessible_shop_ids).to_dict())

    return as_result(_run)


def list_releases(accessible_shop_ids, query: dict | None = None) -> ServiceResult:
    query = query or {}

    def _run():
        shop_ids = resolve_shop_filter(accessible_shop_ids, query.get("shopId"))
        q = db.session.query(PayrollRelease).filter(PayrollRelease.shop_id.in_(shop_ids))
        if query.get("employeeId") is not None:
            q = q.filter(PayrollRelease.employee_id == query["employeeId"])
        if query.get("salaryMonth"):
            q = q.filter(PayrollRelease.salary_month == query["salaryMonth"])
        if query.get("status"):
            q = q.filter(PayrollRelease.status == query["status"])
        q = q.order_by(PayrollRelease.salary_month.desc(), PayrollRelease.id.desc())
        return ServiceResult.ok("Payroll releases retrieved", paginate(q, query.get("page"), query.get("limit")))

    return as_result(_run)
