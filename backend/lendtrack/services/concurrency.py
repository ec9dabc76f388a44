# Overview: Service-layer helpers for concurrency; row locks, write transactions and retries.

from __future__ import annotations

import logging
import time

from sqlalchemy import text
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..errors import LendtrackError, ServerError

logger = logging.getLogger(__name__)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, see begin_write().
    """
    return query.with_for_update()


def begin_write():
    """
    Open the write transaction before the first read of a check-then-write.

    SQLite has no row locks, so the whole database write lock is taken up
    front with BEGIN IMMEDIATE; other dialects rely on lock_for_update().
    """
    if db.engine.dialect.name == "sqlite":
        db.session.execute(text("BEGIN IMMEDIATE"))


def run_with_retry(func, *, attempts: int = 5, backoff_base: float = 0.05):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). Anything else rolls back and propagates.
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
        except Exception:
            db.session.rollback()
            raise
    if last_exc:
        raise last_exc


def run_unit_of_work(func, *, failure_message: str):
    """
    Run one all-or-nothing unit of work.

    Domain errors roll back and propagate unchanged. Persistence failures
    that survive the retries roll back and surface as ServerError with the
    driver message attached.
    """
    try:
        return run_with_retry(func)
    except LendtrackError:
        raise
    except SQLAlchemyError as exc:
        logger.exception(failure_message)
        raise ServerError(failure_message, detail=str(exc)) from exc
