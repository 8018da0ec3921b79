from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Callable, Iterator, Optional, TypeVar

import psycopg

from .config import PostgresConfig, lock_timeout_ms
from .errors import TransactionFailure


_log = logging.getLogger(__name__)

T = TypeVar("T")

# lock_timeout / serialization failure / deadlock
_RETRYABLE = (
    psycopg.errors.LockNotAvailable,
    psycopg.errors.SerializationFailure,
    psycopg.errors.DeadlockDetected,
)


@contextmanager
def get_conn(cfg: Optional[PostgresConfig] = None) -> Iterator[psycopg.Connection]:
    conn = psycopg.connect((cfg or PostgresConfig()).dsn())
    try:
        yield conn
    finally:
        conn.close()


def _rollback(conn: psycopg.Connection) -> None:
    if not conn.closed and not conn.broken:
        conn.rollback()


@contextmanager
def transaction(cfg: Optional[PostgresConfig] = None) -> Iterator[psycopg.Connection]:
    """One request, one transaction: commit on success, roll back on any error."""
    with get_conn(cfg) as conn:
        try:
            conn.execute("SET LOCAL TIME ZONE 'UTC';", prepare=False)
            conn.execute(f"SET LOCAL lock_timeout = {lock_timeout_ms()};", prepare=False)
            yield conn
            conn.commit()
        except _RETRYABLE as e:
            _rollback(conn)
            raise TransactionFailure(f"Transaction aborted by the database: {e.sqlstate}") from e
        except BaseException:
            _rollback(conn)
            raise


def retry_once(fn: Callable[..., T], *args, **kwargs) -> T:
    try:
        return fn(*args, **kwargs)
    except TransactionFailure as e:
        _log.warning("retrying %s after transaction failure: %s", getattr(fn, "__name__", fn), e)
        return fn(*args, **kwargs)
