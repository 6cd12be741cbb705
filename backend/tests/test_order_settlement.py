# Overview: Pytest coverage for order validation and settlement.

"""
Order Settlement Tests

Covers:
- Priced lines and order totals (subtotal, tax, discount, total identity)
- Payment split: status derivation, kitchen-pending override, method
- All-or-nothing behavior: a failing line leaves no order, lines or debits
- Stock debits and movement trail
- Commission booking and the swallowed commission failure
- Cancellation and status transitions
- Stale in-memory stock cannot oversell
"""

from decimal import Decimal

import pytest
from shopcore.errors import InsufficientStock, NegativeUnitPrice, ProductNotFound, VariantNotFound
from shopcore.extensions import db
from shopcore.models import Commission, Order, OrderLine, Product, ProductVariant, StockMovement
from sqlalchemy import select, update
from shopcore.services import order_service
from shopcore.services.concurrency import conditional_decrement
from shopcore.services.order_service import compute_payment_split, generate_order_number
from shopcore.services.order_validation import validate_order_items
from shopcore.services.stock_service import debit_for_order, load_stock_unit


def _counts():
    return (
        db.session.query(Order).count(),
        db.session.query(OrderLine).count(),
        db.session.query(StockMovement).count(),
    )


class TestPaymentSplit:
    """Payment status and method follow the tendered amounts."""

    def test_nothing_paid_is_pending(self):
        split = compute_payment_split(Decimal("100"))
        assert split.paid_amount == Decimal("0")
        assert split.payment_status == "pending"
        assert split.order_status == "processing"

    def test_part_paid_is_partial(self):
        split = compute_payment_split(Decimal("100"), cash_amount="40")
        assert split.payment_status == "partial"
        assert split.order_status == "completed"

    def test_fully_paid_is_completed(self):
        split = compute_payment_split(Decimal("100"), cash_amount=60, card_amount=40)
        assert split.paid_amount == Decimal("100.00")
        assert split.payment_status == "completed"

    def test_overpaid_is_completed(self):
        assert compute_payment_split(Decimal("100"), wallet_amount=150).payment_status == "completed"

    def test_kitchen_pending_overrides_amounts(self):
        """kot_payment_status='pending' forces pending even when fully paid."""
        split = compute_payment_split(Decimal("100"), cash_amount=100, kot_payment_status="pending")
        assert split.payment_status == "pending"

    def test_method_mixed_when_several_tenders(self):
        assert compute_payment_split(Decimal("10"), cash_amount=5, card_amount=5).payment_method == "mixed"

    def test_method_single_tender(self):
        assert compute_payment_split(Decimal("10"), card_amount=10, payment_method="cash").payment_method == "card"

    def test_method_falls_back_to_request_then_cash(self):
        assert compute_payment_split(Decimal("10"), payment_method="wallet").payment_method == "wallet"
        assert compute_payment_split(Decimal("10")).payment_method == "cash"

    def test_order_number_format(self):
        number = generate_order_number()
        prefix, millis, suffix = number.split("-")
        assert prefix == "ORD"
        assert millis.isdigit()
        assert len(suffix) == 3 and suffix.isdigit()


class TestOrderValidation:
    """validate_order_items prices lines and checks stock, fail-fast."""

    def test_discount_vat_line(self, db_session, shop_a, product_a):
        """Base 100, qty 2, 10% off, 5% VAT -> 94.50 per unit, 189.00 per line."""
        lines, subtotal = validate_order_items(
            [{"product_id": product_a.id, "quantity": 2, "discount_type": "percentage", "discount_amount": 10}],
            [shop_a.id],
        )
        assert lines[0].unit_price == Decimal("94.50")
        assert lines[0].subtotal == Decimal("189.00")
        assert subtotal == Decimal("189.00")

    def test_insufficient_stock(self, db_session, shop_a, product_no_vat):
        """Quantity 5 against 3 in stock fails."""
        with pytest.raises(InsufficientStock) as exc:
            validate_order_items([{"product_id": product_no_vat.id, "quantity": 5}], [shop_a.id])
        assert exc.value.details["available"] == 3

    def test_repeated_unit_counts_cumulatively(self, db_session, shop_a, product_no_vat):
        """Two lines of 2 for a unit holding 3 fail on the second line."""
        with pytest.raises(InsufficientStock) as exc:
            validate_order_items(
                [{"product_id": product_no_vat.id, "quantity": 2}, {"product_id": product_no_vat.id, "quantity": 2}],
                [shop_a.id],
            )
        assert exc.value.details["line"] == 2

    def test_product_outside_accessible_shops(self, db_session, shop_a, product_b):
        with pytest.raises(ProductNotFound):
            validate_order_items([{"product_id": product_b.id, "quantity": 1}], [shop_a.id])

    def test_inactive_product(self, db_session, shop_a, product_a):
        product_a.status = "inactive"
        db_session.commit()
        with pytest.raises(ProductNotFound):
            validate_order_items([{"product_id": product_a.id, "quantity": 1}], [shop_a.id])

    def test_unknown_variant(self, db_session, shop_a, product_a):
        with pytest.raises(VariantNotFound):
            validate_order_items([{"product_id": product_a.id, "variant_id": 424242, "quantity": 1}], [shop_a.id])

    def test_fixed_discount_above_price_rejected(self, db_session, shop_a, product_no_vat):
        """A negative unit price is rejected, never clamped to zero."""
        with pytest.raises(NegativeUnitPrice):
            validate_order_items(
                [{"product_id": product_no_vat.id, "quantity": 1, "discount_type": "fixed", "discount_amount": 60}],
                [shop_a.id],
            )


class TestCreateOrder:
    """create_order settles everything in one transaction."""

    def test_scenario_single_line(self, db_session, shop_a, product_a):
        result = order_service.create_order(
            {"items": [{"product_id": product_a.id, "quantity": 2, "discount_type": "percentage", "discount_amount": 10}]},
            shop_a.id,
            [shop_a.id],
            user_id=7,
        )
        assert result.status is True
        data = result.data
        assert data["subtotal"] == "189.00"
        assert data["total"] == "189.00"
        assert data["lines"][0]["unit_price"] == "94.50"
        assert data["lines"][0]["original_unit_price"] == "100.00"
        assert data["lines"][0]["unit_discount"] == "10.00"
        assert data["lines"][0]["purchase_price"] == "60.00"
        assert data["customer_name"] == "Walk-in Customer"

        product = db_session.get(Product, product_a.id)
        assert product.stock == 8

        movement = db_session.query(StockMovement).one()
        assert movement.type == "order"
        assert movement.quantity == 2
        assert (movement.previous_stock, movement.new_stock) == (10, 8)
        assert movement.order_id == data["id"]
        assert movement.user_id == 7

    def test_total_identity(self, db_session, shop_a, product_a, product_no_vat):
        """total == subtotal + tax - discount and subtotal == sum(line subtotals)."""
        result = order_service.create_order(
            {
                "items": [
                    {"product_id": product_a.id, "quantity": 3, "discount_type": "fixed", "discount_amount": "7.35"},
                    {"product_id": product_no_vat.id, "quantity": 1, "unit_price": "45.99"},
                ],
                "tax": "12.40",
                "discount": "5.00",
                "cash_amount": "50",
            },
            shop_a.id,
            [shop_a.id],
        )
        assert result.status is True
        order = db_session.get(Order, result.data["id"])
        lines = db_session.query(OrderLine).filter_by(order_id=order.id).all()
        assert order.subtotal == sum(line.subtotal for line in lines)
        assert order.total == order.subtotal + order.tax - order.discount
        assert order.payment_status == "partial"
        assert order.paid_amount == Decimal("50.00")

    def test_variant_stock_is_debited(self, db_session, shop_a, variant_a):
        result = order_service.create_order(
            {"items": [{"product_id": variant_a.product_id, "variant_id": variant_a.id, "quantity": 3}]},
            shop_a.id,
            [shop_a.id],
        )
        assert result.status is True
        assert db_session.get(ProductVariant, variant_a.id).quantity == 1
        movement = db_session.query(StockMovement).one()
        assert movement.variant_id == variant_a.id

    def test_insufficient_stock_persists_nothing(self, db_session, shop_a, product_a, product_no_vat):
        """A failing second line leaves no order, no lines, no debits."""
        result = order_service.create_order(
            {"items": [{"product_id": product_a.id, "quantity": 1}, {"product_id": product_no_vat.id, "quantity": 5}]},
            shop_a.id,
            [shop_a.id],
        )
        assert result.status is False
        assert result.error == "INSUFFICIENT_STOCK"
        assert _counts() == (0, 0, 0)
        assert db_session.get(Product, product_a.id).stock == 10
        assert db_session.get(Product, product_no_vat.id).stock == 3

    def test_seller_shop_must_be_accessible(self, db_session, shop_a, shop_b, product_a):
        result = order_service.create_order(
            {"items": [{"product_id": product_a.id, "quantity": 1}]},
            shop_b.id,
            [shop_a.id],
        )
        assert result.status is False
        assert result.error == "UNAUTHORIZED_SHOP_ACCESS"

    def test_empty_items_rejected(self, db_session, shop_a):
        result = order_service.create_order({"items": []}, shop_a.id, [shop_a.id])
        assert result.status is False
        assert result.error == "INVALID_REQUEST"

    def test_order_discount_cannot_exceed_total(self, db_session, shop_a, product_no_vat):
        result = order_service.create_order(
            {"items": [{"product_id": product_no_vat.id, "quantity": 1}], "discount": "60"},
            shop_a.id,
            [shop_a.id],
        )
        assert result.status is False
        assert _counts() == (0, 0, 0)

    def test_malformed_order_date_rejected(self, db_session, shop_a, product_a):
        result = order_service.create_order(
            {"items": [{"product_id": product_a.id, "quantity": 1}], "order_date": "not-a-date"},
            shop_a.id,
            [shop_a.id],
        )
        assert result.status is False
        assert result.error == "INVALID_DATE_RANGE"
        assert result.details == {"value": "not-a-date"}
        assert _counts() == (0, 0, 0)
        assert db_session.get(Product, product_a.id).stock == 10

    def test_order_date_is_kept(self, db_session, shop_a, product_a):
        result = order_service.create_order(
            {"items": [{"product_id": product_a.id, "quantity": 1}], "order_date": "2025-06-02T10:30:00Z"},
            shop_a.id,
            [shop_a.id],
        )
        assert result.status is True
        assert result.data["order_date"].startswith("2025-06-02T10:30:00")

    def test_sequential_orders_never_oversell(self, db_session, shop_a, product_no_vat):
        """Five single-unit orders against 3 in stock: exactly 3 settle."""
        outcomes = [
            order_service.create_order(
                {"items": [{"product_id": product_no_vat.id, "quantity": 1}]}, shop_a.id, [shop_a.id]
            ).status
            for _ in range(5)
        ]
        assert outcomes.count(True) == 3
        assert db_session.get(Product, product_no_vat.id).stock == 0
        assert db_session.query(StockMovement).count() == 3

    def test_conditional_decrement_refuses_to_go_negative(self, db_session, product_no_vat):
        """The atomic debit matches no row when quantity is short."""
        assert conditional_decrement(Product, Product.stock, product_no_vat.id, 4) is False
        assert conditional_decrement(Product, Product.stock, product_no_vat.id, 3) is True
        db_session.commit()
        assert db_session.get(Product, product_no_vat.id).stock == 0


    def test_stale_quantity_cannot_oversell(self, db_session, shop_a, product_no_vat):
        """A debit planned on an outdated quantity still matches no row."""
        unit = load_stock_unit(product_no_vat.id, None, [shop_a.id])
        assert unit.quantity == 3

        # Another writer takes two units; this session's copy still says 3
        table = Product.__table__
        db_session.execute(update(table).where(table.c.id == product_no_vat.id).values(stock=table.c.stock - 2))
        assert unit.quantity == 3

        with pytest.raises(InsufficientStock):
            debit_for_order(unit, 3, order=None)
        assert db_session.execute(select(table.c.stock).where(table.c.id == product_no_vat.id)).scalar_one() == 1
        assert db_session.query(StockMovement).count() == 0

        assert conditional_decrement(Product, Product.stock, product_no_vat.id, 2) is False
        assert conditional_decrement(Product, Product.stock, product_no_vat.id, 1) is True
        db_session.commit()
        assert db_session.get(Product, product_no_vat.id).stock == 0


class TestCommission:
    """Commission is booked when possible and never blocks settlement."""

    def test_commission_booked(self, db_session, shop_a, product_a, employee_a):
        result = order_service.create_order(
            {
                "items": [{"product_id": product_a.id, "quantity": 2, "discount_type": "percentage", "discount_amount": 10}],
                "staff_id": employee_a.id,
            },
            shop_a.id,
            [shop_a.id],
        )
        assert result.status is True
        commission = result.data["commission"]
        assert commission["base_amount"] == "189.00"
        assert commission["commission_percentage"] == "10.00"
        assert commission["commission_amount"] == "18.90"
        assert commission["notes"] == f"Auto commission for order {result.data['order_number']}"

    def test_unknown_staff_does_not_fail_order(self, db_session, shop_a, product_a, employee_b):
        """Staff from another tenant: order settles, no commission row."""
        result = order_service.create_order(
            {"items": [{"product_id": product_a.id, "quantity": 1}], "staff_id": employee_b.id},
            shop_a.id,
            [shop_a.id],
        )
        assert result.status is True
        assert result.data["commission"] is None
        assert db_session.query(Commission).count() == 0
        assert db_session.get(Product, product_a.id).stock == 9

    def test_no_rate_no_commission(self, db_session, shop_a, product_a, employee_a):
        shop_a.commission_percentage = Decimal("0")
        db_session.commit()
        result = order_service.create_order(
            {"items": [{"product_id": product_a.id, "quantity": 1}], "staff_id": employee_a.id},
            shop_a.id,
            [shop_a.id],
        )
        assert result.status is True
        assert db_session.query(Commission).count() == 0

    def test_rate_is_frozen(self, db_session, shop_a, product_a, employee_a):
        """Changing the shop rate later does not touch booked commissions."""
        order_service.create_order(
            {"items": [{"product_id": product_a.id, "quantity": 1}], "staff_id": employee_a.id},
            shop_a.id,
            [shop_a.id],
        )
        shop_a.commission_percentage = Decimal("50")
        db_session.commit()
        assert db_session.query(Commission).one().commission_percentage == Decimal("10.00")


class TestOrderLifecycle:
    """Reading, status changes and cancellation."""

    def _settle(self, shop, product, **extra):
        request = {"items": [{"product_id": product.id, "quantity": 2}], **extra}
        result = order_service.create_order(request, shop.id, [shop.id])
        assert result.status is True
        return result.data

    def test_get_order_scoped(self, db_session, shop_a, shop_b, product_a):
        order = self._settle(shop_a, product_a)
        assert order_service.get_order(order["id"], [shop_a.id]).status is True
        other = order_service.get_order(order["id"], [shop_b.id])
        assert other.status is False
        assert other.error == "ORDER_NOT_FOUND"

    def test_cancel_restores_stock_and_drops_commission(self, db_session, shop_a, product_a, employee_a):
        order = self._settle(shop_a, product_a, staff_id=employee_a.id, cash_amount="210")
        assert db_session.query(Commission).count() == 1

        result = order_service.cancel_order(order["id"], [shop_a.id], user_id=3)
        assert result.status is True
        assert result.data["order_status"] == "cancelled"
        assert result.data["total"] == order["total"]
        assert db_session.get(Product, product_a.id).stock == 10
        assert db_session.query(Commission).count() == 0

        ret = db_session.query(StockMovement).filter_by(type="return").one()
        assert (ret.previous_stock, ret.new_stock, ret.quantity) == (8, 10, 2)

    def test_cancel_branch_order_of_head_shop_product(self, db_session, shop_a, branch_a, product_a):
        """Branch sales of group catalog items are cancellable with the caller's access."""
        group = [shop_a.id, branch_a.id]
        created = order_service.create_order({"items": [{"product_id": product_a.id, "quantity": 2}]}, branch_a.id, group)
        assert created.status is True
        assert created.data["shop_id"] == branch_a.id
        assert db_session.get(Product, product_a.id).stock == 8

        result = order_service.cancel_order(created.data["id"], group, user_id=3)
        assert result.status is True
        assert result.data["order_status"] == "cancelled"
        assert db_session.get(Product, product_a.id).stock == 10

    def test_cancel_twice_rejected(self, db_session, shop_a, product_a):
        order = self._settle(shop_a, product_a)
        order_service.cancel_order(order["id"], [shop_a.id])
        again = order_service.cancel_order(order["id"], [shop_a.id])
        assert again.status is False
        assert again.error == "INVALID_STATUS_TRANSITION"

    def test_status_moves_forward_only(self, db_session, shop_a, product_a):
        order = self._settle(shop_a, product_a)
        assert order["order_status"] == "processing"
        assert order_service.update_order_status(order["id"], [shop_a.id], "completed").status is True
        back = order_service.update_order_status(order["id"], [shop_a.id], "processing")
        assert back.status is False
        assert back.error == "INVALID_STATUS_TRANSITION"

    def test_status_cannot_cancel_directly(self, db_session, shop_a, product_a):
        order = self._settle(shop_a, product_a)
        result = order_service.update_order_status(order["id"], [shop_a.id], "cancelled")
        assert result.status is False

    def test_list_orders_filters(self, db_session, shop_a, branch_a, product_a):
        self._settle(shop_a, product_a)
        self._settle(shop_a, product_a, cash_amount="500")

        accessible = [shop_a.id, branch_a.id]
        assert order_service.list_orders(accessible, {}).data["pagination"]["total"] == 2
        paid = order_service.list_orders(accessible, {"paymentStatus": "completed"})
        assert paid.data["pagination"]["total"] == 1
        assert order_service.list_orders(accessible, {"shopId": branch_a.id}).data["items"] == []

    def test_list_orders_foreign_shop_rejected(self, db_session, shop_a, shop_b):
        result = order_service.list_orders([shop_a.id], {"shopId": shop_b.id})
        assert result.status is False
        assert result.error == "UNAUTHORIZED_SHOP_ACCESS"

    def test_sales_summary_excludes_cancelled(self, db_session, shop_a, product_a):
        kept = self._settle(shop_a, product_a)
        dropped = self._settle(shop_a, product_a)
        order_service.cancel_order(dropped["id"], [shop_a.id])

        day = kept["order_date"][:10]
        summary = order_service.get_sales_summary([shop_a.id], day, day).data
        assert summary["order_count"] == 1
        assert summary["total_sales"] == "210.00"
        assert summary["cost"] == "120.00"
        assert summary["gross_profit"] == "90.00"
