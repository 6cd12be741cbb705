from __future__ import annotations

from ..extensions import db
from shopcore.money_utils import money_str
from shopcore.time_utils import to_utc_z

class Order(db.Model):
    """
    A settled order.

    MONEY INVARIANTS (enforced by the settlement service):
    - total == subtotal + tax - discount
    - subtotal == sum(line.subtotal)
    - paid_amount == cash_amount + card_amount + wallet_amount

    IMMUTABLE MONEY: monetary fields and lines never change after creation.
    Only order_status moves (pending -> processing -> completed, or cancelled).

    order_number is "ORD-<epochMillis>-<3 digits>". It is not re-checked
    before insert; the unique constraint is the backstop.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.UniqueConstraint("order_number", name="uq_orders_order_number"),
        db.Index("ix_orders_shop_date", "shop_id", "order_date"),
        db.Index("ix_orders_shop_payment_status", "shop_id", "payment_status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    order_number = db.Column(db.String(64), nullable=False)

    # Seller (acting user); nullable for system-created orders
    user_id = db.Column(db.Integer, nullable=True)

    customer_name = db.Column(db.String(255), nullable=False, default="Walk-in Customer")
    customer_phone = db.Column(db.String(64), nullable=True)
    customer_email = db.Column(db.String(255), nullable=True)

    # Dine-in details
    table_number = db.Column(db.String(32), nullable=True)
    guest_number = db.Column(db.Integer, nullable=True)
    special_notes = db.Column(db.Text, nullable=True)

    order_date = db.Column(db.DateTime(timezone=True), nullable=False)

    subtotal = db.Column(db.Numeric(12, 2), nullable=False)
    tax = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    discount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total = db.Column(db.Numeric(12, 2), nullable=False)

    cash_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    card_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    wallet_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    paid_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    # cash, card, wallet, mixed
    payment_method = db.Column(db.String(16), nullable=False, default="cash")
    # pending, partial, completed
    payment_status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    # pending, processing, completed, cancelled
    order_status = db.Column(db.String(16), nullable=False, default="pending", index=True)

    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_by_user_id = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    shop = db.relationship("Shop", backref=db.backref("orders", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Order id={self.id} number={self.order_number!r} total={self.total}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "order_number": self.order_number,
            "user_id": self.user_id,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "customer_email": self.customer_email,
            "table_number": self.table_number,
            "guest_number": self.guest_number,
            "special_notes": self.special_notes,
            "order_date": to_utc_z(self.order_date),
            "subtotal": money_str(self.subtotal),
            "tax": money_str(self.tax),
            "discount": money_str(self.discount),
            "total": money_str(self.total),
            "cash_amount": money_str(self.cash_amount),
            "card_amount": money_str(self.card_amount),
            "wallet_amount": money_str(self.wallet_amount),
            "paid_amount": money_str(self.paid_amount),
            "due_amount": money_str(max(self.total - self.paid_amount, 0)),
            "payment_method": self.payment_method,
            "payment_status": self.payment_status,
            "order_status": self.order_status,
            "cancelled_at": to_utc_z(self.cancelled_at) if self.cancelled_at else None,
            "cancelled_by_user_id": self.cancelled_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "version_id": self.version_id,
        }

class OrderLine(db.Model):
    """
    One settled line item.

    unit_price is what was charged per unit (after discount, after VAT);
    original_unit_price is the pre-discount base. purchase_price is the cost
    frozen at sale time. Immutable once written.
    """
    __tablename__ = "order_lines"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_order_lines_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    variant_id = db.Column(db.Integer, db.ForeignKey("product_variants.id"), nullable=True)

    quantity = db.Column(db.Integer, nullable=False)

    unit_price = db.Column(db.Numeric(12, 2), nullable=False)
    original_unit_price = db.Column(db.Numeric(12, 2), nullable=False)

    # none, percentage, fixed
    discount_type = db.Column(db.String(16), nullable=False, default="none")
    discount_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    unit_discount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total_discount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    vat_percentage = db.Column(db.Numeric(5, 2), nullable=False, default=0)

    subtotal = db.Column(db.Numeric(12, 2), nullable=False)
    purchase_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    order = db.relationship("Order", backref=db.backref("lines", lazy=True, order_by="OrderLine.id"))
    product = db.relationship("Product")
    variant = db.relationship("ProductVariant")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "product_id": self.product_id,
            "variant_id": self.variant_id,
            "quantity": self.quantity,
            "unit_price": money_str(self.unit_price),
            "original_unit_price": money_str(self.original_unit_price),
            "discount_type": self.discount_type,
            "discount_amount": money_str(self.discount_amount),
            "unit_discount": money_str(self.unit_discount),
            "total_discount": money_str(self.total_discount),
            "vat_percentage": money_str(self.vat_percentage),
            "subtotal": money_str(self.subtotal),
            "purchase_price": money_str(self.purchase_price),
            "created_at": to_utc_z(self.created_at),
        }

class Commission(db.Model):
    """
    Staff commission booked from a settled order.

    commission_percentage and base_amount are frozen at computation time;
    later changes to the shop's rate do not touch existing rows.
    At most one commission per order (unique order_id).
    """
    __tablename__ = "commissions"
    __table_args__ = (
        db.UniqueConstraint("order_id", name="uq_commissions_order"),
        db.Index("ix_commissions_staff_created", "staff_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False)
    staff_id = db.Column(db.Integer, db.ForeignKey("employees.id"), nullable=False, index=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)

    base_amount = db.Column(db.Numeric(12, 2), nullable=False)
    commission_amount = db.Column(db.Numeric(12, 2), nullable=False)
    commission_percentage = db.Column(db.Numeric(5, 2), nullable=False)
    notes = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False)

    order = db.relationship("Order", backref=db.backref("commission", uselist=False, lazy=True))
    staff = db.relationship("Employee")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "staff_id": self.staff_id,
            "shop_id": self.shop_id,
            "base_amount": money_str(self.base_amount),
            "commission_amount": money_str(self.commission_amount),
            "commission_percentage": money_str(self.commission_percentage),
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }
