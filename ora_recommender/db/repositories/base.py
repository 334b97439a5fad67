"""
Base repository providing shared SQLite execution helpers.

Repositories receive an open ``sqlite3.Connection`` (usually from
``connect()``) and never commit themselves — transaction scope belongs to
the caller's ``with`` block.

  - No ORM — all SQL is explicit and lives in repository methods.
  - Repositories speak pydantic models, not raw dicts.
  - Large reads go through ``iter_batches()`` so callers never need the
    whole result set in memory at once.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Any, Iterator, Optional

logger = logging.getLogger(__name__)

Params = tuple[Any, ...] | dict[str, Any]


class BaseRepository:
    """Shared SQL execution helpers for all repository classes.

    Attributes:
        conn: The active ``sqlite3.Connection``.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    def execute(self, sql: str, params: Params = ()) -> sqlite3.Cursor:
        logger.debug("SQL: %s | params: %s", sql.strip(), params)
        return self.conn.execute(sql, params)

    def fetchone(self, sql: str, params: Params = ()) -> Optional[sqlite3.Row]:
        return self.execute(sql, params).fetchone()

    def fetchall(self, sql: str, params: Params = ()) -> list[sqlite3.Row]:
        return self.execute(sql, params).fetchall()

    def iter_batches(
        self,
        sql: str,
        params: Params = (),
        batch_size: int = 500,
    ) -> Iterator[list[sqlite3.Row]]:
        """Yield query results in lists of at most ``batch_size`` rows.

        Args:
            sql: SELECT SQL string.
            params: Query parameters.
            batch_size: Rows fetched per round trip.

        Yields:
            Non-empty lists of ``sqlite3.Row``.
        """
        cursor = self.execute(sql, params)
        while True:
            rows = cursor.fetchmany(batch_size)
            if not rows:
                return
            yield rows

    def last_insert_rowid(self) -> int:
        row = self.fetchone("SELECT last_insert_rowid() AS rowid;")
        assert row is not None
        return int(row["rowid"])
