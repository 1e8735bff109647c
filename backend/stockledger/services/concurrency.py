# Overview: Row locking, retry and atomic numeric updates shared by the ledger services.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    The conditional updates below are what keep SQLite correct.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float = 0.1):
    """
    Execute a unit of work, retrying on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). Any other exception rolls the session back
    and propagates, so a failed operation never leaves partial state behind.
    """
    if attempts is None:
        attempts = int(current_app.config.get("DB_RETRY_ATTEMPTS", 3))

    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError):
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise


def conditional_decrement(instance, attr: str, amount: int) -> bool:
    """
    Atomically run `attr = attr - amount WHERE id = :id AND attr >= amount`.

    Returns False when the precondition failed at write time (another writer
    got there first). The instance attribute is expired so the next read sees
    the committed-in-transaction value.
    """
    model = type(instance)
    column = getattr(model, attr)
    stmt = (
        update(model)
        .where(model.id == instance.id, column >= amount)
        .values({attr: column - amount})
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    db.session.expire(instance, [attr])
    return result.rowcount == 1


def atomic_increment(instance, attr: str, amount: int) -> None:
    """Atomically run `attr = attr + amount WHERE id = :id`."""
    model = type(instance)
    column = getattr(model, attr)
    stmt = (
        update(model)
        .where(model.id == instance.id)
        .values({attr: column + amount})
        .execution_options(synchronize_session=False)
    )
    db.session.execute(stmt)
    db.session.expire(instance, [attr])
