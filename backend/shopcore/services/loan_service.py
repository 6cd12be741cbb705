"""
Loan and Advance Ledger

LOANS: total_payable = principal * (1 + interest_rate). The remaining
balance only goes down, one LoanPayment per debit, and a payment that would
push it below zero is rejected before anything is written. The loan is
COMPLETED when the balance reaches exactly zero.

ADVANCES: salary paid ahead of release. Approved advances are recovered by
payroll deductions, oldest first; outstanding advance is the unrecovered
remainder of APPROVED / PARTIALLY_REPAID rows.

apply_loan_deduction() / apply_advance_deduction() flush without committing:
they run inside the payroll release transaction.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from sqlalchemy import func

from ..errors import (
    AdvanceExceedsOutstanding,
    EmployeeNotFound,
    InvalidRequest,
    InvalidStatusTransition,
    LoanNotFound,
    LoanPaymentExceedsBalance,
)
from ..extensions import db
from ..models import AdvanceSalary, Employee, EmployeeLoan, LoanPayment
from ..money_utils import ZERO, money_str, quantize_money, to_decimal, to_non_negative
from ..time_utils import parse_date, parse_salary_month, today
from .concurrency import lock_for_update, run_with_retry
from .results import ServiceResult, as_result, paginate
from .tenant_service import normalize_shop_ids, resolve_shop_filter

OPEN_ADVANCE_STATUSES = ("APPROVED", "PARTIALLY_REPAID")


def _employee_in_scope(employee_id, accessible_shop_ids) -> Employee:
    employee = (
        db.session.query(Employee)
        .filter(Employee.id == employee_id, Employee.shop_id.in_(normalize_shop_ids(accessible_shop_ids)))
        .first()
    )
    if employee is None:
        raise EmployeeNotFound(f"Employee {employee_id} not found", details={"employee_id": employee_id})
    return employee


def _positive_amount(value, field: str) -> Decimal:
    amount = quantize_money(to_decimal(value, field, default=None))
    if amount <= 0:
        raise InvalidRequest(f"{field} must be positive", details={field: str(amount)})
    return amount


# ---- loans ---------------------------------------------------------------

def create_loan(accessible_shop_ids, admin_id, payload: dict) -> ServiceResult:
    """payload: employee_id, principal, interest_rate (fraction), monthly_emi, start_date, notes."""
    payload = payload or {}

    def _op():
        employee = _employee_in_scope(payload.get("employee_id"), accessible_shop_ids)
        principal = _positive_amount(payload.get("principal"), "principal")
        rate = to_non_negative(payload.get("interest_rate"), "interest_rate")
        emi = quantize_money(to_non_negative(payload.get("monthly_emi"), "monthly_emi"))
        total = quantize_money(principal * (1 + rate))

        loan = EmployeeLoan(
            employee_id=employee.id,
            shop_id=employee.shop_id,
            principal=principal,
            interest_rate=rate,
            total_payable=total,
            monthly_emi=emi,
            remaining_balance=total,
            status="ACTIVE",
            start_date=parse_date(payload["start_date"], "start_date") if payload.get("start_date") else today(),
            created_by=admin_id,
            notes=payload.get("notes"),
        )
        db.session.add(loan)
        db.session.commit()
        return loan

    def _run():
        loan = run_with_retry(_op)
        return ServiceResult.ok("Loan created successfully", loan.to_dict())

    return as_result(_run)


def _debit_loan(loan: EmployeeLoan, amount: Decimal, *, recorded_by, payment_date: date, payroll_release_id=None, notes=None) -> LoanPayment:
    remaining = to_decimal(loan.remaining_balance)
    if amount > remaining:
        raise LoanPaymentExceedsBalance(
            "Payment exceeds remaining balance",
            details={"loan_id": loan.id, "amount": str(amount), "remaining_balance": money_str(remaining)},
        )

    payment = LoanPayment(
        loan_id=loan.id,
        amount=amount,
        payment_date=payment_date,
        recorded_by=recorded_by,
        payroll_release_id=payroll_release_id,
        notes=notes,
    )
    db.session.add(payment)

    loan.remaining_balance = remaining - amount
    if loan.remaining_balance == 0:
        loan.status = "COMPLETED"
    db.session.flush()
    return payment


def _load_active_loan(loan_id, accessible_shop_ids) -> EmployeeLoan:
    loan = lock_for_update(
        db.session.query(EmployeeLoan).filter(
            EmployeeLoan.id == loan_id,
            EmployeeLoan.shop_id.in_(normalize_shop_ids(accessible_shop_ids)),
            EmployeeLoan.status == "ACTIVE",
        )
    ).first()
    if loan is None:
        raise LoanNotFound("Active loan not found", details={"loan_id": loan_id})
    return loan


def record_loan_payment(accessible_shop_ids, admin_id, loan_id, payload: dict) -> ServiceResult:
    payload = payload or {}

    def _op():
        amount = _positive_amount(payload.get("amount"), "amount")
        loan = _load_active_loan(loan_id, accessible_shop_ids)
        payment = _debit_loan(
            loan,
            amount,
            recorded_by=admin_id,
            payment_date=parse_date(payload["payment_date"], "payment_date") if payload.get("payment_date") else today(),
            notes=payload.get("notes"),
        )
        db.session.commit()
        return loan, payment

    def _run():
        loan, payment = run_with_retry(_op)
        return ServiceResult.ok(
            "Loan payment recorded",
            {"loan": loan.to_dict(), "payment": payment.to_dict()},
        )

    return as_result(_run)


def outstanding_loan_balance(employee_id: int) -> Decimal:
    total = (
        db.session.query(func.coalesce(func.sum(EmployeeLoan.remaining_balance), 0))
        .filter(EmployeeLoan.employee_id == employee_id, EmployeeLoan.status == "ACTIVE")
        .scalar()
    )
    return quantize_money(to_decimal(total))


def loan_for_deduction(employee_id: int, amount: Decimal, loan_id=None) -> EmployeeLoan:
    """
    Pick (and lock) the loan a payroll deduction goes to: the given loan, or
    the oldest active one. Validates without writing.
    """
    query = db.session.query(EmployeeLoan).filter(
        EmployeeLoan.employee_id == employee_id,
        EmployeeLoan.status == "ACTIVE",
    )
    if loan_id is not None:
        query = query.filter(EmployeeLoan.id == loan_id)
    loan = lock_for_update(query.order_by(EmployeeLoan.start_date.asc(), EmployeeLoan.id.asc())).first()

    if loan is None or amount > to_decimal(loan.remaining_balance):
        raise LoanPaymentExceedsBalance(
            "Loan deduction exceeds remaining balance",
            details={
                "loan_id": loan.id if loan is not None else loan_id,
                "amount": str(amount),
                "remaining_balance": money_str(loan.remaining_balance) if loan is not None else "0.00",
            },
        )
    return loan


def apply_loan_deduction(loan: EmployeeLoan, amount: Decimal, *, admin_id, payroll_release_id: int, salary_month: str) -> LoanPayment:
    return _debit_loan(
        loan,
        amount,
        recorded_by=admin_id,
        payment_date=today(),
        payroll_release_id=payroll_release_id,
        notes=f"Payroll deduction {salary_month}",
    )


def list_loans(accessible_shop_ids, query: dict | None = None) -> ServiceResult:
    query = query or {}

    def _run():
        shop_ids = resolve_shop_filter(accessible_shop_ids, query.get("shopId"))
        q = db.session.query(EmployeeLoan).filter(EmployeeLoan.shop_id.in_(shop_ids))
        if query.get("employeeId") is not None:
            q = q.filter(EmployeeLoan.employee_id == query["employeeId"])
        if query.get("status"):
            q = q.filter(EmployeeLoan.status == query["status"])
        q = q.order_by(EmployeeLoan.created_at.desc(), EmployeeLoan.id.desc())
        return ServiceResult.ok("Loans retrieved successfully", paginate(q, query.get("page"), query.get("limit")))

    return as_result(_run)


def get_loan(accessible_shop_ids, loan_id) -> ServiceResult:
    def _run():
        loan = (
            db.session.query(EmployeeLoan)
            .filter(EmployeeLoan.id == loan_id, EmployeeLoan.shop_id.in_(normalize_shop_ids(accessible_shop_ids)))
            .first()
        )
        if loan is None:
            raise LoanNotFound("Loan not found", details={"loan_id": loan_id})
        data = loan.to_dict()
        data["payments"] = [p.to_dict() for p in loan.payments]
        return ServiceResult.ok("Loan retrieved successfully", data)

    return as_result(_run)


# ---- advances ------------------------------------------------------------

def request_advance(accessible_shop_ids, payload: dict) -> ServiceResult:
    payload = payload or {}

    def _op():
        employee = _employee_in_scope(payload.get("employee_id"), accessible_shop_ids)
        amount = _positive_amount(payload.get("amount"), "amount")
        salary_month = payload.get("salary_month")
        parse_salary_month(salary_month)

        advance = AdvanceSalary(
            employee_id=employee.id,
            salary_month=salary_month.strip(),
            amount=amount,
            repaid_amount=ZERO,
            status="PENDING",
            reason=payload.get("reason"),
        )
        db.session.add(advance)
        db.session.commit()
        return advance

    def _run():
        advance = run_with_retry(_op)
        return ServiceResult.ok("Advance requested", advance.to_dict())

    return as_result(_run)


def update_advance_status(accessible_shop_ids, admin_id, advance_id, status) -> ServiceResult:
    """PENDING -> APPROVED | REJECTED."""
    def _op():
        if status not in ("APPROVED", "REJECTED"):
            raise InvalidRequest("Invalid advance status", details={"status": status, "allowed": ["APPROVED", "REJECTED"]})

        advance = lock_for_update(
            db.session.query(AdvanceSalary)
            .join(Employee, AdvanceSalary.employee_id == Employee.id)
            .filter(AdvanceSalary.id == advance_id, Employee.shop_id.in_(normalize_shop_ids(accessible_shop_ids)))
        ).first()
        if advance is None:
            raise InvalidRequest("Advance not found", details={"advance_id": advance_id})
        if advance.status != "PENDING":
            raise InvalidStatusTransition(
                f"Advance is already {advance.status}",
                details={"from": advance.status, "to": status},
            )

        advance.status = status
        advance.approved_by = admin_id
        db.session.commit()
        return advance

    def _run():
        advance = run_with_retry(_op)
        return ServiceResult.ok("Advance updated", advance.to_dict())

    return as_result(_run)


def _open_advances(employee_id: int, *, lock: bool = False) -> list[AdvanceSalary]:
    query = (
        db.session.query(AdvanceSalary)
        .filter(AdvanceSalary.employee_id == employee_id, AdvanceSalary.status.in_(OPEN_ADVANCE_STATUSES))
        .order_by(AdvanceSalary.created_at.asc(), AdvanceSalary.id.asc())
    )
    return (lock_for_update(query) if lock else query).all()


def outstanding_advance(employee_id: int) -> Decimal:
    return quantize_money(
        sum((to_decimal(a.amount) - to_decimal(a.repaid_amount) for a in _open_advances(employee_id)), ZERO)
    )


def apply_advance_deduction(employee_id: int, amount: Decimal) -> list[dict]:
    """Recover `amount` from open advances, oldest first. Returns the allocation."""
    remaining = amount
    allocation = []
    for advance in _open_advances(employee_id, lock=True):
        if remaining <= 0:
            break
        open_amount = to_decimal(advance.amount) - to_decimal(advance.repaid_amount)
        take = min(open_amount, remaining)
        advance.repaid_amount = to_decimal(advance.repaid_amount) + take
        advance.status = "REPAID" if take == open_amount else "PARTIALLY_REPAID"
        remaining -= take
        allocation.append({"advance_id": advance.id, "amount": money_str(take)})

    if remaining > 0:
        raise AdvanceExceedsOutstanding(
            "Advance deduction exceeds outstanding advance",
            details={"employee_id": employee_id, "unallocated": money_str(remaining)},
        )
    db.session.flush()
    return allocation


def list_advances(accessible_shop_ids, query: dict | None = None) -> ServiceResult:
    query = query or {}

    def _run():
        q = (
            db.session.query(AdvanceSalary)
            .join(Employee, AdvanceSalary.employee_id == Employee.id)
            .filter(Employee.shop_id.in_(normalize_shop_ids(accessible_shop_ids)))
        )
        if query.get("employeeId") is not None:
            q = q.filter(AdvanceSalary.employee_id == query["employeeId"])
        if query.get("status"):
            q = q.filter(AdvanceSalary.status == query["status"])
        q = q.order_by(AdvanceSalary.created_at.desc(), AdvanceSalary.id.desc())
        return ServiceResult.ok("Advances retrieved successfully", paginate(q, query.get("page"), query.get("limit")))

    return as_result(_run)
