"""
Error taxonomy for the settlement and payroll core.

- ClientError: the caller sent something invalid or unauthorized. Reported
  back with enough detail to fix the request; never retried automatically.
- ComputationError: a priced value came out invalid (e.g. a fixed discount
  larger than the base price). Rejected, never clamped.
- InfrastructureError: database/connection failure after rollback. The caller
  may retry the whole operation.
"""

from __future__ import annotations


class ClientError(ValueError):
    """400-level input problem."""
    code = "CLIENT_ERROR"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class InvalidRequest(ClientError):
    code = "INVALID_REQUEST"


class ProductNotFound(ClientError):
    code = "PRODUCT_NOT_FOUND"


class VariantNotFound(ClientError):
    code = "VARIANT_NOT_FOUND"


class StaffNotFound(ClientError):
    code = "STAFF_NOT_FOUND"


class EmployeeNotFound(ClientError):
    code = "EMPLOYEE_NOT_FOUND"


class InvalidShopId(ClientError):
    code = "INVALID_SHOP_ID"


class UnauthorizedShopAccess(ClientError):
    code = "UNAUTHORIZED_SHOP_ACCESS"


class InsufficientStock(ClientError):
    code = "INSUFFICIENT_STOCK"


class AlreadyReleased(ClientError):
    code = "ALREADY_RELEASED"


class AdvanceExceedsOutstanding(ClientError):
    code = "ADVANCE_EXCEEDS_OUTSTANDING"


class LoanPaymentExceedsBalance(ClientError):
    code = "LOAN_PAYMENT_EXCEEDS_BALANCE"


class InvalidDateRange(ClientError):
    code = "INVALID_DATE_RANGE"


class OrderNotFound(ClientError):
    code = "ORDER_NOT_FOUND"


class LoanNotFound(ClientError):
    code = "LOAN_NOT_FOUND"


class InvalidStatusTransition(ClientError):
    code = "INVALID_STATUS_TRANSITION"


class ComputationError(ValueError):
    code = "COMPUTATION_ERROR"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class NegativeUnitPrice(ComputationError):
    code = "NEGATIVE_UNIT_PRICE"


class InfrastructureError(RuntimeError):
    """Raised after rollback when the store itself failed."""
    code = "INFRASTRUCTURE_ERROR"
