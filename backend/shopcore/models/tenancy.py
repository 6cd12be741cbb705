from __future__ import annotations

from ..extensions import db
from shopcore.money_utils import money_str
from shopcore.time_utils import to_utc_z, to_iso_date

class Shop(db.Model):
    """
    Tenant root: every order, product and employee belongs to a shop.

    WHY: Callers are scoped by a precomputed list of accessible shop ids.
    Branch shops point at their head shop through parent_shop_id; a head shop
    and its branches form one access group.

    commission_percentage is the staff commission rate applied to settled
    orders of this shop (0 or NULL means no commission).
    """
    __tablename__ = "shops"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    parent_shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=True, index=True)

    commission_percentage = db.Column(db.Numeric(5, 2), nullable=True, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )

    parent_shop = db.relationship("Shop", remote_side=[id], backref=db.backref("branches", lazy=True))

    def __repr__(self) -> str:
        return f"<Shop id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "parent_shop_id": self.parent_shop_id,
            "commission_percentage": money_str(self.commission_percentage),
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }

class Employee(db.Model):
    """
    Staff member employed by a shop.

    Used both as the commission beneficiary on orders and as the payroll
    subject. base_salary is the current monthly salary; the effective salary
    for any past day is resolved from SalaryHistoryEntry rows.
    """
    __tablename__ = "employees"
    __table_args__ = (
        db.Index("ix_employees_shop_status", "shop_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)

    full_name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(64), nullable=True)

    # manager, cashier, waiter, chef, ...
    role = db.Column(db.String(32), nullable=False, default="staff")

    base_salary = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    required_daily_hours = db.Column(db.Integer, nullable=True)

    # Days before this date are outside employment for payroll purposes
    salary_start_date = db.Column(db.Date, nullable=True)

    status = db.Column(db.String(16), nullable=False, default="active", index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    shop = db.relationship("Shop", backref=db.backref("employees", lazy=True))

    def __repr__(self) -> str:
        return f"<Employee id={self.id} name={self.full_name!r} shop_id={self.shop_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "full_name": self.full_name,
            "email": self.email,
            "phone": self.phone,
            "role": self.role,
            "base_salary": money_str(self.base_salary),
            "required_daily_hours": self.required_daily_hours,
            "salary_start_date": to_iso_date(self.salary_start_date),
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
        }
