"""
Repositories for persisted recommendation records and run metadata.

``recommendations`` is a per-user namespace of documents keyed by
``rec_key`` (a run key or the ``latest`` alias); each document is the full
JSON form of a ``RecommendationRecord``.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from typing import Optional

from ora_recommender.db.repositories.base import BaseRepository
from ora_recommender.models.meta import PipelineState, RunMetadata
from ora_recommender.models.recommendation import RecommendationRecord
from ora_recommender.utils.time_utils import parse_utc

logger = logging.getLogger(__name__)


class RecommendationRepository(BaseRepository):
    """Read/write access to ``recommendations``."""

    def put(self, uid: str, rec_key: str, record: RecommendationRecord) -> None:
        """Create or overwrite the document ``uid/rec_key``."""
        self.execute(
            """
            INSERT INTO recommendations (uid, rec_key, payload_json, generated_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(uid, rec_key) DO UPDATE SET
                payload_json = excluded.payload_json,
                generated_at = excluded.generated_at;
            """,
            (
                uid,
                rec_key,
                record.model_dump_json(),
                record.generated_at.isoformat(),
            ),
        )

    def get(self, uid: str, rec_key: str) -> Optional[RecommendationRecord]:
        row = self.fetchone(
            "SELECT payload_json FROM recommendations WHERE uid = ? AND rec_key = ?;",
            (uid, rec_key),
        )
        if row is None:
            return None
        return RecommendationRecord.model_validate_json(row["payload_json"])

    def list_keys(self, uid: str) -> list[str]:
        rows = self.fetchall(
            "SELECT rec_key FROM recommendations WHERE uid = ? ORDER BY rec_key;",
            (uid,),
        )
        return [r["rec_key"] for r in rows]


class RunMetadataRepository(BaseRepository):
    """Read/write access to ``run_metadata``."""

    def insert_run(self, run: RunMetadata) -> int:
        self.execute(
            """
            INSERT INTO run_metadata (
                run_slug, run_kind, trigger, uid, status, state, failed_step,
                rows_processed, rows_failed, config_snapshot, error_message,
                started_at, finished_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
            """,
            (
                run.run_slug,
                run.run_kind,
                run.trigger,
                run.uid,
                run.status,
                run.state.value if run.state else None,
                run.failed_step,
                run.rows_processed,
                run.rows_failed,
                json.dumps(run.config_snapshot, default=str),
                run.error_message,
                run.started_at.isoformat(),
                run.finished_at.isoformat() if run.finished_at else None,
            ),
        )
        return self.last_insert_rowid()

    def update_run(self, run: RunMetadata) -> None:
        """Persist the mutable fields of an already-inserted run."""
        if run.run_id is None:
            raise ValueError("Cannot update a RunMetadata that has no run_id.")
        self.execute(
            """
            UPDATE run_metadata
            SET status = ?, state = ?, failed_step = ?, rows_processed = ?,
                rows_failed = ?, error_message = ?, finished_at = ?
            WHERE run_id = ?;
            """,
            (
                run.status,
                run.state.value if run.state else None,
                run.failed_step,
                run.rows_processed,
                run.rows_failed,
                run.error_message,
                run.finished_at.isoformat() if run.finished_at else None,
                run.run_id,
            ),
        )

    def get_run(self, run_slug: str) -> Optional[RunMetadata]:
        row = self.fetchone("SELECT * FROM run_metadata WHERE run_slug = ?;", (run_slug,))
        return _row_to_run(row) if row else None

    def list_runs_for_user(self, uid: str) -> list[RunMetadata]:
        rows = self.fetchall(
            "SELECT * FROM run_metadata WHERE uid = ? ORDER BY run_id;", (uid,)
        )
        return [_row_to_run(r) for r in rows]


def _row_to_run(row: sqlite3.Row) -> RunMetadata:
    return RunMetadata(
        run_id=row["run_id"],
        run_slug=row["run_slug"],
        run_kind=row["run_kind"],
        trigger=row["trigger"],
        uid=row["uid"],
        status=row["status"],
        state=PipelineState(row["state"]) if row["state"] else None,
        failed_step=row["failed_step"],
        rows_processed=row["rows_processed"],
        rows_failed=row["rows_failed"],
        config_snapshot=json.loads(row["config_snapshot"] or "{}"),
        error_message=row["error_message"],
        started_at=parse_utc(row["started_at"]),
        finished_at=parse_utc(row["finished_at"]),
    )
