# Overview: Atomic-unit and retry helpers shared by every writing service.

from __future__ import annotations

import time
from contextlib import contextmanager

from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ..errors import PersistenceFailure


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; there the write lock is taken
    up front by ``atomic`` (BEGIN IMMEDIATE) instead.
    """
    return query.with_for_update()


@contextmanager
def atomic(session: Session):
    """
    One atomic unit on an explicit session: commit on success, roll back on
    any exception and re-raise it.

    Every write of a logical operation (transaction row, items, stock
    movements, product stock) must happen inside a single ``atomic`` block
    on the same session. Callee services never commit on their own.

    On SQLite the unit starts with BEGIN IMMEDIATE so concurrent writers
    serialize on the database lock instead of interleaving read-then-write.
    """
    bind = session.get_bind()
    if bind.dialect.name == "sqlite" and not _sqlite_in_transaction(session):
        session.execute(text("BEGIN IMMEDIATE"))
    try:
        yield session
        session.commit()
    except BaseException:
        session.rollback()
        raise


def _sqlite_in_transaction(session: Session) -> bool:
    dbapi_conn = session.connection().connection.dbapi_connection
    return bool(getattr(dbapi_conn, "in_transaction", False))


def run_with_retry(func, *, session: Session, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). When attempts run out the failure is
    surfaced as PersistenceFailure so no raw driver error leaves the service
    layer.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            session.rollback()
            if attempt >= attempts - 1:
                raise PersistenceFailure(details={"reason": type(exc).__name__}) from exc
            time.sleep(backoff_base * (2 ** attempt))
