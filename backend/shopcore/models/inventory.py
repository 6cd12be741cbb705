from __future__ import annotations

from ..extensions import db
from shopcore.time_utils import to_utc_z

class StockMovement(db.Model):
    """
    Append-only record of one stock quantity change.

    TYPES:
    - order: debit from a settlement, new_stock = previous_stock - quantity
    - return: credit back (cancelled order, customer return), new_stock = previous_stock + quantity
    - adjustment: manual correction, quantity is a signed delta,
      new_stock = previous_stock + quantity

    IMMUTABLE: rows are never updated or deleted. Corrections are new rows.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_stock_movements_product_created", "product_id", "created_at"),
        db.Index("ix_stock_movements_variant", "variant_id"),
        db.Index("ix_stock_movements_order", "order_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # order, adjustment, return
    type = db.Column(db.String(16), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    previous_stock = db.Column(db.Integer, nullable=False)
    new_stock = db.Column(db.Integer, nullable=False)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    variant_id = db.Column(db.Integer, db.ForeignKey("product_variants.id"), nullable=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, nullable=True)

    note = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product")
    variant = db.relationship("ProductVariant")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "quantity": self.quantity,
            "previous_stock": self.previous_stock,
            "new_stock": self.new_stock,
            "product_id": self.product_id,
            "variant_id": self.variant_id,
            "order_id": self.order_id,
            "shop_id": self.shop_id,
            "user_id": self.user_id,
            "note": self.note,
            "created_at": to_utc_z(self.created_at),
        }
