# Overview: Transaction boundaries, row locking and retry for multi-entity writes.

from __future__ import annotations

import logging
import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import StoreUnavailableError

logger = logging.getLogger(__name__)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def run_with_retry(ctx, func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Run ``func`` as one unit of work against ``ctx.session``.

    ``func`` performs its reads and writes and commits at the end. Any
    exception rolls the whole unit back, so callers never observe a partial
    write. OperationalError (locks, dropped connections) and StaleDataError
    (optimistic version conflicts) are retried with exponential backoff and
    surface as StoreUnavailableError once attempts are exhausted.
    """
    session = ctx.session
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            session.rollback()
            if attempt >= attempts - 1:
                logger.warning("Giving up after %d attempts: %s", attempts, exc)
                raise StoreUnavailableError(
                    "The database is temporarily unavailable, please retry",
                    details={"reason": exc.__class__.__name__},
                ) from exc
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            session.rollback()
            raise
