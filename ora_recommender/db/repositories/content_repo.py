"""
Repositories for the content catalog, activity log and program enrollments.

All three collections are owned by other systems; the engine only reads
them. The ``upsert`` / ``insert`` methods exist for seeding and tests.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Iterator, Optional, Sequence

from ora_recommender.db.repositories.base import BaseRepository
from ora_recommender.models.content import ActivityRecord, ContentItem, ProgramEnrollment
from ora_recommender.taxonomy.practice_taxonomy import (
    EnrollmentStatus,
    PublicationState,
)
from ora_recommender.utils.time_utils import parse_utc

logger = logging.getLogger(__name__)


class ContentRepository(BaseRepository):
    """Read/write access to ``content_items``."""

    def upsert(self, item: ContentItem) -> None:
        self.execute(
            """
            INSERT INTO content_items (
                content_id, title, discipline, category, difficulty,
                duration_sec, publication_state, program_id
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(content_id) DO UPDATE SET
                title = excluded.title,
                discipline = excluded.discipline,
                category = excluded.category,
                difficulty = excluded.difficulty,
                duration_sec = excluded.duration_sec,
                publication_state = excluded.publication_state,
                program_id = excluded.program_id;
            """,
            (
                item.content_id,
                item.title,
                item.discipline,
                item.category,
                item.difficulty,
                item.duration_sec,
                item.publication_state.value,
                item.program_id,
            ),
        )

    def iter_ready(self, batch_size: int = 500) -> Iterator[list[ContentItem]]:
        """Stream every ``ready`` item in catalog order, ``batch_size`` at a time."""
        for rows in self.iter_batches(
            "SELECT * FROM content_items WHERE publication_state = ? ORDER BY rowid;",
            (PublicationState.READY.value,),
            batch_size=batch_size,
        ):
            yield [_row_to_content(r) for r in rows]

    def get_many(self, content_ids: Sequence[str]) -> dict[str, ContentItem]:
        """Return the items among ``content_ids`` that exist, keyed by id."""
        if not content_ids:
            return {}
        placeholders = ", ".join("?" for _ in content_ids)
        rows = self.fetchall(
            f"SELECT * FROM content_items WHERE content_id IN ({placeholders});",
            tuple(content_ids),
        )
        return {r["content_id"]: _row_to_content(r) for r in rows}

    def ids_in_programs(self, program_ids: Sequence[str]) -> set[str]:
        """Return ids of all items belonging to any of ``program_ids``.

        One call resolves whatever it is given; the caller enforces the
        collaborator's per-call ceiling.
        """
        if not program_ids:
            return set()
        placeholders = ", ".join("?" for _ in program_ids)
        rows = self.fetchall(
            f"SELECT content_id FROM content_items WHERE program_id IN ({placeholders});",
            tuple(program_ids),
        )
        return {r["content_id"] for r in rows}


class ActivityRepository(BaseRepository):
    """Read/write access to ``user_activities``."""

    def insert(self, activity: ActivityRecord) -> int:
        self.execute(
            """
            INSERT INTO user_activities (uid, content_id, progress_percent, completed_at)
            VALUES (?, ?, ?, ?);
            """,
            (
                activity.uid,
                activity.content_id,
                activity.progress_percent,
                activity.completed_at.isoformat() if activity.completed_at else None,
            ),
        )
        return self.last_insert_rowid()

    def completed_content_ids(self, uid: str, min_progress_percent: float) -> set[str]:
        """Return ids the user has consumed to at least ``min_progress_percent``."""
        rows = self.fetchall(
            """
            SELECT DISTINCT content_id FROM user_activities
            WHERE uid = ? AND progress_percent >= ?;
            """,
            (uid, min_progress_percent),
        )
        return {r["content_id"] for r in rows}

    def list_for_user(self, uid: str) -> list[ActivityRecord]:
        rows = self.fetchall(
            "SELECT * FROM user_activities WHERE uid = ? ORDER BY activity_id;", (uid,)
        )
        return [_row_to_activity(r) for r in rows]


class EnrollmentRepository(BaseRepository):
    """Read/write access to ``program_enrollments``."""

    def insert(self, enrollment: ProgramEnrollment) -> int:
        self.execute(
            """
            INSERT INTO program_enrollments (
                uid, program_id, status, current_day, total_days
            ) VALUES (?, ?, ?, ?, ?);
            """,
            (
                enrollment.uid,
                enrollment.program_id,
                enrollment.status.value,
                enrollment.current_day,
                enrollment.total_days,
            ),
        )
        return self.last_insert_rowid()

    def active_program_ids(self, uid: str) -> list[str]:
        """Return distinct program ids the user is actively enrolled in.

        Ordered by enrollment id so truncation to a per-call ceiling keeps
        the oldest enrollments.
        """
        rows = self.fetchall(
            """
            SELECT program_id, MIN(enrollment_id) AS first_id FROM program_enrollments
            WHERE uid = ? AND status = ?
            GROUP BY program_id
            ORDER BY first_id;
            """,
            (uid, EnrollmentStatus.ACTIVE.value),
        )
        return [r["program_id"] for r in rows]


# ── Row mappers ───────────────────────────────────────────────────────────────

def _row_to_content(row: sqlite3.Row) -> ContentItem:
    return ContentItem(
        content_id=row["content_id"],
        title=row["title"],
        discipline=row["discipline"],
        category=row["category"],
        difficulty=row["difficulty"],
        duration_sec=row["duration_sec"],
        publication_state=PublicationState(row["publication_state"]),
        program_id=row["program_id"],
    )


def _row_to_activity(row: sqlite3.Row) -> ActivityRecord:
    completed: Optional[str] = row["completed_at"]
    return ActivityRecord(
        activity_id=row["activity_id"],
        uid=row["uid"],
        content_id=row["content_id"],
        progress_percent=row["progress_percent"],
        completed_at=parse_utc(completed),
    )
