# Overview: Request context decorator and ServiceResult -> JSON mapping for API routes.

from functools import wraps

from flask import g, jsonify, request

from .errors import ClientError
from .services.tenant_service import get_accessible_shop_ids

_NOT_FOUND_CODES = {
    "PRODUCT_NOT_FOUND",
    "VARIANT_NOT_FOUND",
    "STAFF_NOT_FOUND",
    "EMPLOYEE_NOT_FOUND",
    "ORDER_NOT_FOUND",
    "LOAN_NOT_FOUND",
}
_CONFLICT_CODES = {"ALREADY_RELEASED"}


def require_shop_context(f):
    """
    Establish caller and tenant context from the upstream gateway.

    Authentication happens before requests reach this service; the gateway
    forwards the authenticated user and shop as headers. Sets:
    - g.user_id: X-User-Id
    - g.shop_id: X-Shop-Id
    - g.accessible_shop_ids: the shop plus its head shop and branches

    Returns 401 when either header is missing or the shop is unknown.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user_id = request.headers.get("X-User-Id", "").strip()
        shop_id = request.headers.get("X-Shop-Id", "").strip()

        if not user_id.isdigit() or not shop_id.isdigit():
            return jsonify({"status": False, "message": "Missing caller context", "data": None}), 401

        try:
            accessible = get_accessible_shop_ids(int(shop_id))
        except ClientError as e:
            return jsonify({"status": False, "message": e.message, "data": None, "error": e.code}), 401

        g.user_id = int(user_id)
        g.shop_id = int(shop_id)
        g.accessible_shop_ids = accessible

        return f(*args, **kwargs)

    return decorated_function


def to_response(result, success_code: int = 200):
    """Map a ServiceResult to (json, http status)."""
    if result.status:
        return jsonify(result.to_dict()), success_code
    if result.error in _NOT_FOUND_CODES:
        return jsonify(result.to_dict()), 404
    if result.error == "UNAUTHORIZED_SHOP_ACCESS":
        return jsonify(result.to_dict()), 403
    if result.error in _CONFLICT_CODES:
        return jsonify(result.to_dict()), 409
    return jsonify(result.to_dict()), 400


def unavailable_response():
    """InfrastructureError: already rolled back and logged; the client may retry."""
    return jsonify({"status": False, "message": "Service temporarily unavailable, please retry", "data": None}), 503


def internal_error_response():
    return jsonify({"status": False, "message": "Internal server error", "data": None}), 500


_INT_QUERY_KEYS = ("employeeId", "staffId", "productId", "variantId", "orderId")


def query_args() -> dict:
    """request.args as a dict, with id filters converted to int (invalid ids dropped)."""
    args = request.args.to_dict()
    for key in _INT_QUERY_KEYS:
        if key in args:
            value = request.args.get(key, type=int)
            if value is None:
                args.pop(key)
            else:
                args[key] = value
    return args
