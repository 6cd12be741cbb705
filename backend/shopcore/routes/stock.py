# Overview: Flask API routes for stock levels, movements and manual adjustments.

from flask import Blueprint, current_app, g, request

from ..decorators import internal_error_response, require_shop_context, to_response, unavailable_response
from ..errors import InfrastructureError
from ..services import stock_service


stock_bp = Blueprint("stock", __name__, url_prefix="/api/stock")


@stock_bp.get("/products/<int:product_id>")
@require_shop_context
def current_stock_route(product_id: int):
    """Current quantity of a product, or of one variant via ?variantId=."""
    try:
        result = stock_service.get_current_stock(
            g.accessible_shop_ids,
            product_id,
            request.args.get("variantId", type=int),
        )
        return to_response(result)
    except InfrastructureError:
        return unavailable_response()
    except Exception:
        current_app.logger.exception("Failed to get current stock")
        return internal_error_response()


@stock_bp.post("/adjustments")
@require_shop_context
def adjust_stock_route():
    try:
        data = request.get_json(silent=True) or {}
        result = stock_service.adjust_stock(g.accessible_shop_ids, g.user_id, data)
        return to_response(result, 201)
    except InfrastructureError:
        return unavailable_response()
    except Exception:
        current_app.logger.exception("Failed to adjust stock")
        return internal_error_response()


@stock_bp.get("/history")
@require_shop_context
def stock_history_route():
    try:
        filters = {
            "shopId": request.args.get("shopId"),
            "productId": request.args.get("productId", type=int),
            "variantId": request.args.get("variantId", type=int),
            "orderId": request.args.get("orderId", type=int),
            "type": request.args.get("type"),
            "page": request.args.get("page"),
            "limit": request.args.get("limit"),
        }
        return to_response(stock_service.list_stock_history(g.accessible_shop_ids, filters))
    except InfrastructureError:
        return unavailable_response()
    except Exception:
        current_app.logger.exception("Failed to list stock history")
        return internal_error_response()


@stock_bp.get("/low")
@require_shop_context
def low_stock_route():
    try:
        return to_response(stock_service.list_low_stock(g.accessible_shop_ids, request.args.get("shopId")))
    except InfrastructureError:
        return unavailable_response()
    except Exception:
        current_app.logger.exception("Failed to list low stock")
        return internal_error_response()
