# Overview: Service-layer helpers for optimistic concurrency and retrying units of work.

from __future__ import annotations

import logging
import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


logger = logging.getLogger(__name__)


class ConcurrentModificationError(Exception):
    """
    Raised when a row changed between our read and our write.

    Sources:
    - conditional stock UPDATE matched zero rows
    - Customer.version_id mismatch (StaleDataError)
    """
    def __init__(self, message: str = "Record was modified concurrently, please retry", details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.05):
    """
    Execute a unit of work, retrying on concurrency-related failures.

    func must be re-runnable: every attempt starts from a rolled-back session
    and re-reads what it needs. Lock errors (OperationalError) are re-raised
    unchanged on the last attempt; lost races surface as
    ConcurrentModificationError.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError, ConcurrentModificationError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                if isinstance(exc, StaleDataError):
                    raise ConcurrentModificationError() from exc
                raise
            logger.warning("Retrying unit of work after %s (attempt %d)", type(exc).__name__, attempt + 1)
            time.sleep(backoff_base * (2 ** attempt))
