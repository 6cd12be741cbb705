from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from shopcore.money_utils import money_str
from shopcore.time_utils import to_utc_z, to_iso_date

class AttendanceRecord(db.Model):
    """
    One employee's attendance for one calendar day.

    Created lazily (find-or-create) the first time a day is touched.
    is_half_day and is_full_absent are stored independently; the payroll
    calculator gives is_full_absent precedence when both are set.
    """
    __tablename__ = "attendance_records"
    __table_args__ = (
        db.UniqueConstraint("employee_id", "date", name="uq_attendance_employee_date"),
        db.CheckConstraint("late_minutes >= 0", name="ck_attendance_late_non_negative"),
        db.CheckConstraint("extra_minutes >= 0", name="ck_attendance_extra_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(db.Integer, db.ForeignKey("employees.id"), nullable=False, index=True)
    date = db.Column(db.Date, nullable=False, index=True)

    late_minutes = db.Column(db.Integer, nullable=False, default=0)
    extra_minutes = db.Column(db.Integer, nullable=False, default=0)
    is_half_day = db.Column(db.Boolean, nullable=False, default=False)
    is_full_absent = db.Column(db.Boolean, nullable=False, default=False)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    employee = db.relationship("Employee")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "employee_id": self.employee_id,
            "date": to_iso_date(self.date),
            "late_minutes": self.late_minutes,
            "extra_minutes": self.extra_minutes,
            "is_half_day": self.is_half_day,
            "is_full_absent": self.is_full_absent,
            "notes": self.notes,
        }

class SalaryHistoryEntry(db.Model):
    """
    Effective-dated salary value. Append only.

    The salary on day X is the latest entry with start_date <= X.
    previous_salary snapshots the value being replaced.
    """
    __tablename__ = "salary_history"
    __table_args__ = (
        db.Index("ix_salary_history_employee_start", "employee_id", "start_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(db.Integer, db.ForeignKey("employees.id"), nullable=False)
    salary = db.Column(db.Numeric(12, 2), nullable=False)
    start_date = db.Column(db.Date, nullable=False)
    # initial, promotion, demotion
    status = db.Column(db.String(16), nullable=False)
    previous_salary = db.Column(db.Numeric(12, 2), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "employee_id": self.employee_id,
            "salary": money_str(self.salary),
            "start_date": to_iso_date(self.start_date),
            "status": self.status,
            "previous_salary": money_str(self.previous_salary),
            "created_at": to_utc_z(self.created_at),
        }

class LeaveRequest(db.Model):
    """Leave over an inclusive date range. Only approved leave affects payroll."""
    __tablename__ = "leave_requests"
    __table_args__ = (
        db.Index("ix_leave_requests_employee_status", "employee_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(db.Integer, db.ForeignKey("employees.id"), nullable=False)
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)

    # sick, casual, annual, unpaid, ...
    leave_type = db.Column(db.String(32), nullable=False, default="casual")
    # pending, approved, rejected
    status = db.Column(db.String(16), nullable=False, default="pending")

    approved_by = db.Column(db.Integer, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "employee_id": self.employee_id,
            "start_date": to_iso_date(self.start_date),
            "end_date": to_iso_date(self.end_date),
            "leave_type": self.leave_type,
            "status": self.status,
            "approved_by": self.approved_by,
            "notes": self.notes,
        }

class Holiday(db.Model):
    """
    Inclusive date range with no expected work.

    shop_id NULL means the holiday applies to every shop.
    """
    __tablename__ = "holidays"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=True, index=True)
    start_date = db.Column(db.Date, nullable=False, index=True)
    end_date = db.Column(db.Date, nullable=False)
    description = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "start_date": to_iso_date(self.start_date),
            "end_date": to_iso_date(self.end_date),
            "description": self.description,
        }

class AdvanceSalary(db.Model):
    """
    Salary paid ahead of release, recovered by payroll deductions.

    Outstanding = amount - repaid_amount over APPROVED / PARTIALLY_REPAID rows.
    """
    __tablename__ = "advance_salaries"
    __table_args__ = (
        db.CheckConstraint("repaid_amount <= amount", name="ck_advance_repaid_le_amount"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(db.Integer, db.ForeignKey("employees.id"), nullable=False, index=True)
    salary_month = db.Column(db.String(7), nullable=False)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    repaid_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    # PENDING, APPROVED, PARTIALLY_REPAID, REPAID, REJECTED
    status = db.Column(db.String(20), nullable=False, default="PENDING", index=True)
    approved_by = db.Column(db.Integer, nullable=True)
    reason = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "employee_id": self.employee_id,
            "salary_month": self.salary_month,
            "amount": money_str(self.amount),
            "repaid_amount": money_str(self.repaid_amount),
            "status": self.status,
            "approved_by": self.approved_by,
            "reason": self.reason,
            "created_at": to_utc_z(self.created_at),
        }

class PayrollRelease(db.Model):
    """
    Frozen payroll for one (employee, salary_month).

    UNIQUE: a second release for the same month is rejected, never overwritten.
    calculation_snapshot stores the calculator breakdown verbatim plus the
    adjustments applied, for later dispute resolution.
    """
    __tablename__ = "payroll_releases"
    __table_args__ = (
        db.UniqueConstraint("employee_id", "salary_month", name="uq_payroll_release_employee_month"),
        db.CheckConstraint("paid_amount >= 0", name="ck_payroll_releases_paid_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(db.Integer, db.ForeignKey("employees.id"), nullable=False, index=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    salary_month = db.Column(db.String(7), nullable=False)

    base_salary = db.Column(db.Numeric(12, 2), nullable=False)
    gross_salary = db.Column(db.Numeric(12, 2), nullable=False)
    advance_deduction = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    bonus = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    loan_deduction = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    fine_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    overtime_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    other_deduction = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    net_payable = db.Column(db.Numeric(12, 2), nullable=False)
    # Sum of payments so far; RELEASED once it covers net_payable
    paid_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    # PENDING, RELEASED
    status = db.Column(db.String(16), nullable=False, default="PENDING")
    released_at = db.Column(db.DateTime(timezone=True), nullable=True)
    released_by = db.Column(db.Integer, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    calculation_snapshot = db.Column(db.JSON, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    employee = db.relationship("Employee")

    @property
    def due_amount(self) -> Decimal:
        due = Decimal(self.net_payable or 0) - Decimal(self.paid_amount or 0)
        return due if due > 0 else Decimal("0")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "employee_id": self.employee_id,
            "shop_id": self.shop_id,
            "salary_month": self.salary_month,
            "base_salary": money_str(self.base_salary),
            "gross_salary": money_str(self.gross_salary),
            "advance_deduction": money_str(self.advance_deduction),
            "bonus": money_str(self.bonus),
            "loan_deduction": money_str(self.loan_deduction),
            "fine_amount": money_str(self.fine_amount),
            "overtime_amount": money_str(self.overtime_amount),
            "other_deduction": money_str(self.other_deduction),
            "net_payable": money_str(self.net_payable),
            "paid_amount": money_str(self.paid_amount),
            "due_amount": money_str(self.due_amount),
            "status": self.status,
            "released_at": to_utc_z(self.released_at) if self.released_at else None,
            "released_by": self.released_by,
            "notes": self.notes,
            "calculation_snapshot": self.calculation_snapshot,
        }
