# Overview: Service-layer operations for concurrency; row locks, lock timeouts and retry.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import ConcurrencyTimeout

# Substrings / SQLSTATEs identifying lock waits and deadlocks across backends
_LOCK_MARKERS = (
    "database is locked",
    "deadlock",
    "lock timeout",
    "could not obtain lock",
    "lock wait timeout",
)
_LOCK_SQLSTATES = {"40P01", "55P03", "40001"}


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; it serializes writers on the
    database file instead, which gives the same guarantee for our conditional
    UPDATE statements.
    """
    return query.with_for_update()


def apply_lock_timeout(session, timeout_ms: int) -> None:
    """Bound lock waits for the current transaction (PostgreSQL only)."""
    if not timeout_ms:
        return
    if session.get_bind().dialect.name == "postgresql":
        session.execute(text(f"SET LOCAL lock_timeout = '{int(timeout_ms)}ms'"))


def is_lock_error(exc: Exception) -> bool:
    if isinstance(exc, StaleDataError):
        return True
    orig = getattr(exc, "orig", None)
    if getattr(orig, "pgcode", None) in _LOCK_SQLSTATES:
        return True
    message = str(orig or exc).lower()
    return any(marker in message for marker in _LOCK_MARKERS)


def run_with_retry(func, *, session, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a unit of work with retry on concurrency-related failures.

    - Any exception rolls the session back before it propagates, so callers
      never observe a half-applied transaction.
    - Lock waits, deadlocks and optimistic-locking conflicts are retried with
      exponential backoff; when the budget is exhausted ConcurrencyTimeout
      (retryable) is raised.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            session.rollback()
            if not is_lock_error(exc):
                raise
            if attempt >= attempts - 1:
                raise ConcurrencyTimeout() from exc
            current_app.logger.warning(
                "Lock contention (attempt %d/%d): %s", attempt + 1, attempts, exc
            )
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            session.rollback()
            raise
    raise ConcurrencyTimeout()
