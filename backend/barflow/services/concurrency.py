# Overview: Transaction boundary, row locking and retry helpers shared by the mutating services.

from __future__ import annotations

import time

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..validation import ConflictError


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    On SQLite the version_id counters still reject stale writers.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts).
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
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc


def run_atomic(func, *, conflict_message: str, attempts: int = 3):
    """
    Run func and commit as one transaction.

    Any failure rolls the session back, so callers never observe a partial
    write. Exhausted optimistic-lock retries and unique-index violations
    surface as ConflictError.
    """
    def _op():
        result = func()
        db.session.commit()
        return result

    try:
        return run_with_retry(_op, attempts=attempts)
    except (StaleDataError, IntegrityError) as exc:
        db.session.rollback()
        raise ConflictError(conflict_message) from exc
    except Exception:
        db.session.rollback()
        raise
