# Overview: Service-layer helpers for transactional retries and row locking.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


class ConcurrencyError(RuntimeError):
    """
    Counter or posting transaction could not be completed.

    Nothing from the failed unit of work was applied; the caller should
    retry the whole operation.
    """

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class CounterRaceError(ConcurrencyError):
    """Two writers tried to create the same counter row; safe to retry."""


RETRYABLE_ERRORS = (OperationalError, StaleDataError, CounterRaceError)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    populate_existing refreshes rows already in the identity map, so a
    balance read before the write lock was taken is not reused.
    """
    return query.with_for_update().populate_existing()


def begin_write():
    """
    Take the database write lock up front on SQLite.

    Without it two SQLite connections can both read before either writes,
    and one of them fails at commit instead of waiting.
    """
    if db.engine.dialect.name == "sqlite":
        db.session.execute(text("BEGIN IMMEDIATE"))


def _default_attempts() -> int:
    try:
        return int(current_app.config.get("COUNTER_RETRY_ATTEMPTS", 5))
    except RuntimeError:
        return 5


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float = 0.05):
    """
    Execute a DB unit of work with retry on concurrency-related failures.

    Retries on OperationalError (locks), StaleDataError (optimistic locking
    conflicts) and counter-creation races. The session is rolled back before
    each retry so no partial work survives. After the last attempt the
    failure is raised as ConcurrencyError.
    """
    if attempts is None:
        attempts = _default_attempts()
    attempts = max(1, attempts)

    for attempt in range(attempts):
        try:
            return func()
        except RETRYABLE_ERRORS as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                current_app.logger.warning(
                    "Transaction failed after %s attempts: %s", attempts, exc.__class__.__name__
                )
                raise ConcurrencyError(
                    "The operation conflicted with a concurrent update; please retry",
                    details={"attempts": attempts, "cause": exc.__class__.__name__},
                ) from exc
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise
