"""
core/database.py -- Engine construction and error translation for the stores.

Every store builds its engine through make_engine() so all of them get the
same per-call timeout policy, and wraps its queries in store_errors() so a
driver exception never leaks past the store boundary:

  SQLite      -- busy timeout (sqlite3 "timeout" connect arg) + WAL journal
  PostgreSQL  -- server-side statement_timeout set per connection

A timed-out call becomes StoreTimeout (retryable at the caller's discretion);
any other SQLAlchemy failure becomes StoreError. Neither is retried here.

Layer rule: core/ is the kernel. No imports from api/, auth/, or survey/.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.pool import SingletonThreadPool

from core.errors import StoreError, StoreTimeout

logger = logging.getLogger("surveyor.store")

# Largest primary key any store column can hold (signed 64-bit). Ids above it
# are rejected at the API boundary; the sqlite3 driver cannot even bind them.
MAX_ID = 2**63 - 1

# Driver messages that mean "the call ran out of time", not "the call is wrong".
_TIMEOUT_MARKERS = (
    "database is locked",
    "statement timeout",
    "canceling statement due to",
    "timeout expired",
)


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _is_memory_sqlite(db_url: str) -> bool:
    return db_url in ("sqlite://", "sqlite:///:memory:") or "mode=memory" in db_url


def make_engine(db_url: str, timeout: float = 3.0) -> Engine:
    """Create an Engine whose every statement is bounded by timeout seconds."""
    if db_url.startswith("sqlite"):
        connect_args = {"check_same_thread": False, "timeout": timeout}
        if _is_memory_sqlite(db_url):
            # One connection per thread; the shared-cache URI makes them see one DB.
            engine = create_engine(db_url, connect_args=connect_args, poolclass=SingletonThreadPool)
        else:
            engine = create_engine(db_url, connect_args=connect_args)
        event.listen(engine, "connect", _set_wal_mode)
        return engine
    connect_args: dict = {}
    if db_url.startswith("postgresql"):
        connect_args["connect_timeout"] = max(1, int(timeout))
        connect_args["options"] = f"-c statement_timeout={int(timeout * 1000)}"
    return create_engine(db_url, connect_args=connect_args, pool_timeout=timeout)


@contextmanager
def store_errors(operation: str) -> Iterator[None]:
    """Translate SQLAlchemy exceptions raised inside the block.

    operation names the store call for the log line, e.g. "questionnaires.update".
    """
    try:
        yield
    except PoolTimeoutError as exc:
        logger.warning("%s: connection pool timeout", operation)
        raise StoreTimeout(f"{operation} timed out") from exc
    except OperationalError as exc:
        if any(marker in str(exc).lower() for marker in _TIMEOUT_MARKERS):
            logger.warning("%s: statement timeout", operation)
            raise StoreTimeout(f"{operation} timed out") from exc
        logger.error("%s: operational error: %s", operation, exc)
        raise StoreError(f"{operation} failed") from exc
    except SQLAlchemyError as exc:
        logger.error("%s: store error: %s", operation, exc)
        raise StoreError(f"{operation} failed") from exc


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_iso(value: str) -> datetime:
    """Parse a stored ISO 8601 timestamp. Naive values are treated as UTC."""
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt
