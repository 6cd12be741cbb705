# Overview: Pytest coverage for the stock ledger.

"""
Stock Ledger Tests

Covers:
- Manual adjustments (signed adjustment, return, order) and their movements
- Rejection of changes that would leave stock negative
- Current stock, history filters, low-stock report
"""

from shopcore.extensions import db
from shopcore.models import Product, ProductVariant, StockMovement
from shopcore.services import stock_service


class TestAdjustStock:
    """adjust_stock writes quantity and movement together."""

    def test_positive_adjustment(self, db_session, shop_a, product_a):
        result = stock_service.adjust_stock(
            [shop_a.id], 5, {"product_id": product_a.id, "quantity": 4, "note": "recount"}
        )
        assert result.status is True
        movement = result.data["movement"]
        assert movement["type"] == "adjustment"
        assert (movement["previous_stock"], movement["new_stock"]) == (10, 14)
        assert result.data["stock"]["stock"] == 14

    def test_negative_adjustment(self, db_session, shop_a, product_a):
        result = stock_service.adjust_stock([shop_a.id], 5, {"product_id": product_a.id, "quantity": -3})
        assert result.status is True
        assert db_session.get(Product, product_a.id).stock == 7

    def test_adjustment_below_zero_rejected(self, db_session, shop_a, product_no_vat):
        result = stock_service.adjust_stock([shop_a.id], 5, {"product_id": product_no_vat.id, "quantity": -4})
        assert result.status is False
        assert result.error == "INSUFFICIENT_STOCK"
        assert db_session.get(Product, product_no_vat.id).stock == 3
        assert db_session.query(StockMovement).count() == 0

    def test_order_type_removes(self, db_session, shop_a, product_a):
        result = stock_service.adjust_stock([shop_a.id], 5, {"product_id": product_a.id, "type": "order", "quantity": 2})
        assert result.status is True
        assert result.data["movement"]["quantity"] == 2
        assert result.data["movement"]["new_stock"] == 8

    def test_return_on_variant(self, db_session, shop_a, variant_a):
        result = stock_service.adjust_stock(
            [shop_a.id], 5,
            {"product_id": variant_a.product_id, "variant_id": variant_a.id, "type": "return", "quantity": 2},
        )
        assert result.status is True
        assert db_session.get(ProductVariant, variant_a.id).quantity == 6
        assert db_session.query(StockMovement).one().variant_id == variant_a.id

    def test_zero_quantity_rejected(self, db_session, shop_a, product_a):
        result = stock_service.adjust_stock([shop_a.id], 5, {"product_id": product_a.id, "quantity": 0})
        assert result.status is False
        assert result.error == "INVALID_REQUEST"

    def test_negative_return_rejected(self, db_session, shop_a, product_a):
        result = stock_service.adjust_stock(
            [shop_a.id], 5, {"product_id": product_a.id, "type": "return", "quantity": -1}
        )
        assert result.status is False

    def test_unknown_type_rejected(self, db_session, shop_a, product_a):
        result = stock_service.adjust_stock(
            [shop_a.id], 5, {"product_id": product_a.id, "type": "theft", "quantity": 1}
        )
        assert result.error == "INVALID_REQUEST"

    def test_foreign_product(self, db_session, shop_a, product_b):
        result = stock_service.adjust_stock([shop_a.id], 5, {"product_id": product_b.id, "quantity": 1})
        assert result.error == "PRODUCT_NOT_FOUND"
        assert db_session.get(Product, product_b.id).stock == 10


class TestStockQueries:
    """Current stock, history and low-stock report."""

    def test_current_stock(self, db_session, shop_a, product_a):
        result = stock_service.get_current_stock([shop_a.id], product_a.id)
        assert result.data["stock"] == 10
        assert result.data["is_low"] is False

    def test_current_stock_variant(self, db_session, shop_a, variant_a):
        result = stock_service.get_current_stock([shop_a.id], variant_a.product_id, variant_a.id)
        assert result.data["stock"] == 4
        assert result.data["sku"] == "SHIRT-001-M"
        assert result.data["is_low"] is True

    def test_history_filters(self, db_session, shop_a, product_a, product_no_vat):
        stock_service.adjust_stock([shop_a.id], 1, {"product_id": product_a.id, "quantity": 1})
        stock_service.adjust_stock([shop_a.id], 1, {"product_id": product_a.id, "type": "order", "quantity": 1})
        stock_service.adjust_stock([shop_a.id], 1, {"product_id": product_no_vat.id, "quantity": 2})

        everything = stock_service.list_stock_history([shop_a.id])
        assert everything.data["pagination"]["total"] == 3

        for_product = stock_service.list_stock_history([shop_a.id], {"productId": product_a.id})
        assert for_product.data["pagination"]["total"] == 2

        orders_only = stock_service.list_stock_history([shop_a.id], {"type": "order"})
        assert [m["type"] for m in orders_only.data["items"]] == ["order"]

    def test_history_foreign_shop_filter(self, db_session, shop_a, shop_b):
        result = stock_service.list_stock_history([shop_a.id], {"shopId": shop_b.id})
        assert result.error == "UNAUTHORIZED_SHOP_ACCESS"

    def test_low_stock(self, db_session, shop_a, product_a, product_no_vat, variant_a, product_b):
        stock_service.adjust_stock([shop_a.id], 1, {"product_id": product_no_vat.id, "quantity": -2})

        result = stock_service.list_low_stock([shop_a.id])
        keys = {(item["product_id"], item["variant_id"]) for item in result.data["items"]}
        assert keys == {(product_no_vat.id, None), (variant_a.product_id, variant_a.id)}
        assert result.data["count"] == 2
