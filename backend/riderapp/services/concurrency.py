# Overview: Concurrency helpers shared by the order and payment services.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for read-modify-write sequences.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, Postgres honors it.
    """
    return query.with_for_update()


def conditional_update(query, values: dict) -> bool:
    """
    Compare-and-set: run a bulk UPDATE whose WHERE clause carries the
    expected current state. Returns True only if exactly one row matched.

    Does not commit; the caller owns the transaction.
    """
    matched = query.update(values, synchronize_session=False)
    return matched == 1


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.05):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, lock timeouts) and StaleDataError
    (version_id conflicts). Domain errors raised by func propagate untouched.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            current_app.logger.warning(
                "Retrying after concurrency failure (attempt %s/%s): %s",
                attempt + 1, attempts, exc.__class__.__name__,
            )
            time.sleep(backoff_base * (2 ** attempt))
