# Overview: Service-layer helpers for concurrency; row locks and bounded retry.

from __future__ import annotations

import time

from flask import current_app, has_app_context
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import ConflictError
from ..extensions import db


DEFAULT_ATTEMPTS = 3


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    On SQLite the UnitOfWork's BEGIN IMMEDIATE provides the serialization.
    """
    return query.with_for_update()


def _configured_attempts() -> int:
    if has_app_context():
        return int(current_app.config.get("TRANSACTION_RETRY_ATTEMPTS", DEFAULT_ATTEMPTS))
    return DEFAULT_ATTEMPTS


def run_with_retry(func, *, uow=None, attempts: int | None = None, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). func must be safe to run again from the
    start: it opens its own unit of work on every attempt.

    When the attempts are exhausted the last failure is surfaced as a
    ConflictError. Business errors (ShopError) are never retried.
    """
    # A caller that already opened the unit of work owns the transaction
    # and therefore the retry decision.
    if uow is not None and uow.active:
        return func()

    if attempts is None:
        attempts = _configured_attempts()
    session = uow.session if uow is not None else db.session

    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                break
            time.sleep(backoff_base * (2 ** attempt))
    raise ConflictError(
        "The operation conflicted with a concurrent update; please retry",
        details={"attempts": attempts},
    ) from last_exc
