# Overview: Service-layer operations for concurrency; row locking and retry helpers.

from __future__ import annotations

import time

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    SQLite serializes writers at the database level instead.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). Each attempt starts from a rolled-back
    session, so func must redo all of its reads and writes.
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


def is_unique_violation(exc: IntegrityError, column: str) -> bool:
    """
    Best-effort check that an IntegrityError came from a unique constraint on column.

    Driver messages differ: SQLite says "UNIQUE constraint failed: t.code",
    PostgreSQL "duplicate key value ... (code)", MySQL "Duplicate entry ... for key".
    """
    message = str(getattr(exc, "orig", exc)).lower()
    if "unique" not in message and "duplicate" not in message:
        return False
    return column.lower() in message
