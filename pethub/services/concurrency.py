# Overview: Transaction, locking and retry helpers shared by the write services.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import DependencyError
from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; begin_write() covers it there.
    """
    return query.with_for_update()


def begin_write() -> None:
    """
    Take the database write lock at the start of a unit of work on SQLite,
    so two writers cannot both read-then-write the same rows.
    No-op on databases that honour FOR UPDATE.
    """
    if db.engine.dialect.name != "sqlite":
        return
    dbapi_conn = db.session.connection().connection.dbapi_connection
    if not dbapi_conn.in_transaction:
        db.session.execute(text("BEGIN IMMEDIATE"))


def run_with_retry(func, *, retry: bool = True, attempts: int | None = None, backoff_base: float | None = None):
    """
    Execute a unit of work, rolling back on any failure.

    Transient store failures (OperationalError: locks, timeouts, lost
    connections; StaleDataError: optimistic locking conflicts) are retried
    with exponential backoff when retry=True, then surfaced as DependencyError.
    Callers pass retry=False for writes that carry no idempotency key.
    """
    if attempts is None:
        attempts = current_app.config.get("STORE_RETRY_ATTEMPTS", 3)
    if backoff_base is None:
        backoff_base = current_app.config.get("STORE_RETRY_BACKOFF", 0.1)
    if not retry:
        attempts = 1

    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                current_app.logger.warning(
                    "Store operation failed after %d attempt(s): %s", attempt + 1, exc
                )
                raise DependencyError(
                    "Data store unavailable, please retry",
                    details={"attempts": attempt + 1},
                ) from exc
            current_app.logger.info("Retrying store operation (attempt %d): %s", attempt + 1, exc)
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise


def read_with_retry(func):
    """Reads are idempotent and always retried."""
    return run_with_retry(func, retry=True)
