"""
Uniform result shape for core entry points.

Callers check `status`; a False status is the canonical failure signal.
Only infrastructure faults escape as exceptions (InfrastructureError).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..errors import ClientError, ComputationError, InfrastructureError
from ..extensions import db


@dataclass
class ServiceResult:
    status: bool
    message: str
    data: Any = None
    error: str | None = None
    details: dict = field(default_factory=dict)

    @classmethod
    def ok(cls, message: str, data: Any = None) -> "ServiceResult":
        return cls(status=True, message=message, data=data)

    @classmethod
    def failure(cls, exc: ClientError | ComputationError) -> "ServiceResult":
        return cls(status=False, message=exc.message, error=exc.code, details=exc.details)

    def to_dict(self) -> dict:
        body = {"status": self.status, "message": self.message, "data": self.data}
        if not self.status:
            body["error"] = self.error
            body["details"] = self.details
        return body


def as_result(func: Callable[[], ServiceResult]) -> ServiceResult:
    """
    Run a service body and fold expected failures into a ServiceResult.

    Client and computation errors roll back and become status=False.
    Database errors roll back, get logged and are re-raised as
    InfrastructureError so the caller may retry the whole operation.
    """
    try:
        return func()
    except (ClientError, ComputationError) as exc:
        db.session.rollback()
        return ServiceResult.failure(exc)
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Database operation failed")
        raise InfrastructureError("Database operation failed") from exc


def _positive_int(value, default: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default


def paginate(query, page=None, per_page=None, *, default_per_page: int = 10, serializer=None) -> dict:
    """Offset pagination. per_page is capped at 100."""
    per_page = min(_positive_int(per_page, default_per_page), 100)
    page = _positive_int(page, 1)

    total = query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1
    rows = query.offset((page - 1) * per_page).limit(per_page).all()
    serialize = serializer or (lambda row: row.to_dict())

    return {
        "items": [serialize(row) for row in rows],
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }
