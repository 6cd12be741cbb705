# Overview: Flask API routes for order settlement; parses input and returns JSON responses.

from flask import Blueprint, current_app, g, request

from ..decorators import internal_error_response, query_args, require_shop_context, to_response, unavailable_response
from ..errors import InfrastructureError
from ..services import commission_service, order_service


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.post("/")
@require_shop_context
def create_order_route():
    """
    Settle an order for the caller's shop (or body.shop_id if accessible).

    Body: items[], tax, discount, cash_amount, card_amount, wallet_amount,
    payment_method, kot_payment_status, staff_id, customer_* fields.
    """
    try:
        data = request.get_json(silent=True) or {}
        result = order_service.create_order(
            data,
            data.get("shop_id") or g.shop_id,
            g.accessible_shop_ids,
            g.user_id,
        )
        return to_response(result, 201)
    except InfrastructureError:
        return unavailable_response()
    except Exception:
        current_app.logger.exception("Failed to create order")
        return internal_error_response()


@orders_bp.get("/")
@require_shop_context
def list_orders_route():
    try:
        result = order_service.list_orders(g.accessible_shop_ids, query_args())
        return to_response(result)
    except InfrastructureError:
        return unavailable_response()
    except Exception:
        current_app.logger.exception("Failed to list orders")
        return internal_error_response()


@orders_bp.get("/summary")
@require_shop_context
def sales_summary_route():
    try:
        result = order_service.get_sales_summary(
            g.accessible_shop_ids,
            request.args.get("startDate"),
            request.args.get("endDate"),
            request.args.get("shopId"),
        )
        return to_response(result)
    except InfrastructureError:
        return unavailable_response()
    except Exception:
        current_app.logger.exception("Failed to build sales summary")
        return internal_error_response()


@orders_bp.get("/commissions")
@require_shop_context
def list_commissions_route():
    try:
        result = commission_service.list_commissions(g.accessible_shop_ids, query_args())
        return to_response(result)
    except InfrastructureError:
        return unavailable_response()
    except Exception:
        current_app.logger.exception("Failed to list commissions")
        return internal_error_response()


@orders_bp.get("/<int:order_id>")
@require_shop_context
def get_order_route(order_id: int):
    try:
        return to_response(order_service.get_order(order_id, g.accessible_shop_ids))
    except InfrastructureError:
        return unavailable_response()
    except Exception:
        current_app.logger.exception("Failed to get order")
        return internal_error_response()


@orders_bp.patch("/<int:order_id>/status")
@require_shop_context
def update_order_status_route(order_id: int):
    try:
        data = request.get_json(silent=True) or {}
        result = order_service.update_order_status(order_id, g.accessible_shop_ids, data.get("status"))
        return to_response(result)
    except InfrastructureError:
        return unavailable_response()
    except Exception:
        current_app.logger.exception("Failed to update order status")
        return internal_error_response()


@orders_bp.post("/<int:order_id>/cancel")
@require_shop_context
def cancel_order_route(order_id: int):
    try:
        result = order_service.cancel_order(order_id, g.accessible_shop_ids, g.user_id)
        return to_response(result)
    except InfrastructureError:
        return unavailable_response()
    except Exception:
        current_app.logger.exception("Failed to cancel order")
        return internal_error_response()
