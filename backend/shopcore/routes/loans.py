# Overview: Flask API routes for employee loans and salary advances.

from flask import Blueprint, current_app, g, request

from ..decorators import internal_error_response, query_args, require_shop_context, to_response, unavailable_response
from ..errors import InfrastructureError
from ..services import loan_service


loans_bp = Blueprint("loans", __name__, url_prefix="/api/loans")


@loans_bp.post("/")
@require_shop_context
def create_loan_route():
    try:
        data = request.get_json(silent=True) or {}
        return to_response(loan_service.create_loan(g.accessible_shop_ids, g.user_id, data), 201)
    except InfrastructureError:
        return unavailable_response()
    except Exception:
        current_app.logger.exception("Failed to create loan")
        return internal_error_response()


@loans_bp.get("/")
@require_shop_context
def list_loans_route():
    try:
        return to_response(loan_service.list_loans(g.accessible_shop_ids, query_args()))
    except InfrastructureError:
        return unavailable_response()
    except Exception:
        current_app.logger.exception("Failed to list loans")
        return internal_error_response()


@loans_bp.get("/<int:loan_id>")
@require_shop_context
def get_loan_route(loan_id: int):
    try:
        return to_response(loan_service.get_loan(g.accessible_shop_ids, loan_id))
    except InfrastructureError:
        return unavailable_response()
    except Exception:
        current_app.logger.exception("Failed to get loan")
        return internal_error_response()


@loans_bp.post("/<int:loan_id>/payments")
@require_shop_context
def loan_payment_route(loan_id: int):
    try:
        data = request.get_json(silent=True) or {}
        return to_response(loan_service.record_loan_payment(g.accessible_shop_ids, g.user_id, loan_id, data), 201)
    except InfrastructureError:
        return unavailable_response()
    except Exception:
        current_app.logger.exception("Failed to record loan payment")
        return internal_error_response()


@loans_bp.post("/advances")
@require_shop_context
def request_advance_route():
    try:
        data = request.get_json(silent=True) or {}
        return to_response(loan_service.request_advance(g.accessible_shop_ids, data), 201)
    except InfrastructureError:
        return unavailable_response()
    except Exception:
        current_app.logger.exception("Failed to request advance")
        return internal_error_response()


@loans_bp.patch("/advances/<int:advance_id>")
@require_shop_context
def update_advance_route(advance_id: int):
    try:
        data = request.get_json(silent=True) or {}
        result = loan_service.update_advance_status(g.accessible_shop_ids, g.user_id, advance_id, data.get("status"))
        return to_response(result)
    except InfrastructureError:
        return unavailable_response()
    except Exception:
        current_app.logger.exception("Failed to update advance")
        return internal_error_response()


@loans_bp.get("/advances")
@require_shop_context
def list_advances_route():
    try:
        return to_response(loan_service.list_advances(g.accessible_shop_ids, query_args()))
    except InfrastructureError:
        return unavailable_response()
    except Exception:
        current_app.logger.exception("Failed to list advances")
        return internal_error_response()
