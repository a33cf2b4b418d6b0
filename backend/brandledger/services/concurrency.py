# Overview: Transaction helpers shared by every write path: row locks and retry-with-rollback.

from __future__ import annotations

import logging
import time

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..validation import conflict_from_integrity

logger = logging.getLogger(__name__)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a unit of work with retry on concurrency-related failures.

    func performs all of its writes and commits once. Any exception rolls
    the session back before it propagates, so a failed unit of work never
    leaves a partial write (e.g., a payment without its receipt) behind.

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
            logger.warning("Retrying after %s (attempt %d/%d)", type(exc).__name__, attempt + 1, attempts)
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise
    if last_exc:
        raise last_exc


def run_guarded(func, **kwargs):
    """
    run_with_retry, translating unique-constraint violations into ConflictError.

    Unrecognised integrity errors propagate unchanged.
    """
    try:
        return run_with_retry(func, **kwargs)
    except IntegrityError as exc:
        conflict = conflict_from_integrity(exc)
        if conflict is None:
            raise
        logger.warning("Write rejected: %s", conflict.message)
        raise conflict from exc
