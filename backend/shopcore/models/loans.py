from __future__ import annotations

from ..extensions import db
from shopcore.money_utils import money_str
from shopcore.time_utils import to_utc_z, to_iso_date

class EmployeeLoan(db.Model):
    """
    Loan to an employee.

    interest_rate is a fraction (0.05 means 5%).
    total_payable = principal * (1 + interest_rate), fixed at creation.
    remaining_balance only decreases (LoanPayment rows) and never goes below
    zero. Status flips to COMPLETED when the balance reaches exactly zero.
    """
    __tablename__ = "employee_loans"
    __table_args__ = (
        db.CheckConstraint("remaining_balance >= 0", name="ck_employee_loans_balance_non_negative"),
        db.Index("ix_employee_loans_employee_status", "employee_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(db.Integer, db.ForeignKey("employees.id"), nullable=False)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)

    principal = db.Column(db.Numeric(12, 2), nullable=False)
    interest_rate = db.Column(db.Numeric(6, 4), nullable=False, default=0)
    total_payable = db.Column(db.Numeric(12, 2), nullable=False)
    monthly_emi = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    remaining_balance = db.Column(db.Numeric(12, 2), nullable=False)

    # ACTIVE, COMPLETED
    status = db.Column(db.String(16), nullable=False, default="ACTIVE")
    start_date = db.Column(db.Date, nullable=False)
    created_by = db.Column(db.Integer, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    employee = db.relationship("Employee")
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "employee_id": self.employee_id,
            "shop_id": self.shop_id,
            "principal": money_str(self.principal),
            "interest_rate": str(self.interest_rate) if self.interest_rate is not None else None,
            "total_payable": money_str(self.total_payable),
            "monthly_emi": money_str(self.monthly_emi),
            "remaining_balance": money_str(self.remaining_balance),
            "status": self.status,
            "start_date": to_iso_date(self.start_date),
            "created_by": self.created_by,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }

class LoanPayment(db.Model):
    """Append-only debit against a loan's remaining balance."""
    __tablename__ = "loan_payments"
    __table_args__ = (
        db.CheckConstraint("amount > 0", name="ck_loan_payments_amount_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    loan_id = db.Column(db.Integer, db.ForeignKey("employee_loans.id"), nullable=False, index=True)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    payment_date = db.Column(db.Date, nullable=False)
    recorded_by = db.Column(db.Integer, nullable=True)
    # Set when the payment was taken from a payroll release
    payroll_release_id = db.Column(db.Integer, db.ForeignKey("payroll_releases.id"), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    loan = db.relationship("EmployeeLoan", backref=db.backref("payments", lazy=True, order_by="LoanPayment.id"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "loan_id": self.loan_id,
            "amount": money_str(self.amount),
            "payment_date": to_iso_date(self.payment_date),
            "recorded_by": self.recorded_by,
            "payroll_release_id": self.payroll_release_id,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }
