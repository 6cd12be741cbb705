# Overview: Transaction helpers shared by the settlement, stock and payroll services.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical reads.

    NOTE: SQLite ignores SELECT ... FOR UPDATE (its writers are serialized
    anyway); PostgreSQL/MySQL honor it.
    """
    return query.with_for_update()


def conditional_decrement(model, column, row_id: int, amount: int) -> bool:
    """
    Atomically subtract `amount` from `column` only if the result stays >= 0.

    Emits UPDATE ... SET col = col - :n WHERE id = :id AND col >= :n, so
    two concurrent debits can never both pass a stale check. Returns False
    when no row matched (missing row or not enough quantity).
    """
    matched = (
        db.session.query(model)
        .filter(model.id == row_id, column >= amount)
        .update({column: column - amount}, synchronize_session="fetch")
    )
    return matched == 1


def increment(model, column, row_id: int, amount: int) -> bool:
    matched = (
        db.session.query(model)
        .filter(model.id == row_id)
        .update({column: column + amount}, synchronize_session="fetch")
    )
    return matched == 1


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, busy database) and StaleDataError
    (version_id conflicts). Every attempt starts from a rolled-back session,
    so `func` must be safe to run again from scratch.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            current_app.logger.warning(
                "Retrying after concurrency conflict (attempt %s/%s): %s",
                attempt + 1, attempts, exc.__class__.__name__,
            )
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc
