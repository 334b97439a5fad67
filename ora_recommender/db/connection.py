"""
SQLite connection management.

``get_connection()`` yields a connection that:
  - Enables WAL journal mode so weekly-batch workers can read while one writes.
  - Sets a busy timeout so concurrent per-user writers wait instead of failing.
  - Uses ``sqlite3.Row`` factory so rows behave like dicts.
  - Commits on clean exit, rolls back on exception.

With ``immediate=True`` the write lock is taken up front (``BEGIN
IMMEDIATE``); everything executed inside the block then commits or rolls
back as one unit. The recommendation writer relies on this for its
run-keyed + "latest" pair.

Usage::

    from ora_recommender.db.connection import connect

    with connect(config) as conn:
        UserRepository(conn).get("uid-1")
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Generator, Optional

if TYPE_CHECKING:
    from ora_recommender.config import AppConfig

logger = logging.getLogger(__name__)


@contextmanager
def get_connection(
    db_path: str,
    wal_mode: bool = True,
    busy_timeout_ms: int = 5000,
    immediate: bool = False,
) -> Generator[sqlite3.Connection, None, None]:
    """Context manager yielding a configured SQLite connection.

    Args:
        db_path: Path to the SQLite database file, or ``":memory:"``.
        wal_mode: Enable WAL journal mode (ignored for in-memory databases).
        busy_timeout_ms: Milliseconds to wait on a locked database.
        immediate: Open an explicit ``BEGIN IMMEDIATE`` transaction.

    Yields:
        An open, configured ``sqlite3.Connection``.

    Raises:
        sqlite3.OperationalError: If the database cannot be opened or stays locked.
    """
    in_memory = db_path == ":memory:"
    if not in_memory:
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    # check_same_thread=False: each worker thread opens its own connection,
    # but the API serves requests from a threadpool.
    conn = sqlite3.connect(
        db_path, timeout=busy_timeout_ms / 1000, check_same_thread=False
    )
    conn.row_factory = sqlite3.Row

    try:
        conn.execute("PRAGMA foreign_keys = ON;")
        conn.execute(f"PRAGMA busy_timeout = {busy_timeout_ms};")
        if wal_mode and not in_memory:
            conn.execute("PRAGMA journal_mode = WAL;")
        if immediate:
            conn.execute("BEGIN IMMEDIATE;")

        yield conn
        conn.commit()

    except Exception:
        conn.rollback()
        raise

    finally:
        conn.close()


@contextmanager
def connect(
    config: "AppConfig",
    db_path: Optional[str] = None,
    immediate: bool = False,
) -> Generator[sqlite3.Connection, None, None]:
    """``get_connection()`` with settings taken from ``config.database``."""
    with get_connection(
        db_path or config.database.db_path,
        wal_mode=config.database.wal_mode,
        busy_timeout_ms=config.database.busy_timeout_ms,
        immediate=immediate,
    ) as conn:
        yield conn
