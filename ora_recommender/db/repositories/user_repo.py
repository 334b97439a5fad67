"""
Repositories for user documents and onboarding submissions.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from typing import Optional

from ora_recommender.db.repositories.base import BaseRepository
from ora_recommender.models.content import UserAccount
from ora_recommender.models.onboarding import OnboardingAnswer, OnboardingSubmission
from ora_recommender.taxonomy.practice_taxonomy import SubmissionStatus
from ora_recommender.utils.time_utils import parse_utc

logger = logging.getLogger(__name__)


class UserRepository(BaseRepository):
    """Read/write access to ``users``."""

    def upsert(self, user: UserAccount) -> None:
        self.execute(
            """
            INSERT INTO users (uid, display_name, onboarding_completed)
            VALUES (?, ?, ?)
            ON CONFLICT(uid) DO UPDATE SET
                display_name = excluded.display_name,
                onboarding_completed = excluded.onboarding_completed;
            """,
            (user.uid, user.display_name, int(user.onboarding_completed)),
        )

    def get(self, uid: str) -> Optional[UserAccount]:
        row = self.fetchone("SELECT * FROM users WHERE uid = ?;", (uid,))
        return _row_to_user(row) if row else None

    def exists(self, uid: str) -> bool:
        return self.fetchone("SELECT 1 FROM users WHERE uid = ?;", (uid,)) is not None

    def mark_onboarding_completed(self, uid: str) -> None:
        self.execute(
            "UPDATE users SET onboarding_completed = 1 WHERE uid = ?;", (uid,)
        )

    def list_onboarded_uids(self) -> list[str]:
        """Return uids flagged as having completed onboarding, in uid order."""
        rows = self.fetchall(
            "SELECT uid FROM users WHERE onboarding_completed = 1 ORDER BY uid;"
        )
        return [r["uid"] for r in rows]


class OnboardingRepository(BaseRepository):
    """Read/write access to ``onboarding_responses``."""

    def insert(self, submission: OnboardingSubmission) -> int:
        """Insert a submission and return its ``response_id``."""
        answers = [a.model_dump(mode="json", by_alias=True) for a in submission.answers]
        self.execute(
            """
            INSERT INTO onboarding_responses (
                uid, status, config_version, answers_json, completed_at
            ) VALUES (?, ?, ?, ?, ?);
            """,
            (
                submission.uid,
                submission.status.value,
                submission.config_version,
                json.dumps(answers),
                submission.completed_at.isoformat() if submission.completed_at else None,
            ),
        )
        return self.last_insert_rowid()

    def get_latest_completed(self, uid: str) -> Optional[OnboardingSubmission]:
        """Return the most recently completed submission for ``uid``, or ``None``.

        Submissions without ``completed_at`` sort after dated ones; ties fall
        back to insertion order.
        """
        row = self.fetchone(
            """
            SELECT * FROM onboarding_responses
            WHERE uid = ? AND status = ?
            ORDER BY completed_at IS NULL, completed_at DESC, response_id DESC
            LIMIT 1;
            """,
            (uid, SubmissionStatus.COMPLETED.value),
        )
        return _row_to_submission(row) if row else None


# ── Row mappers ───────────────────────────────────────────────────────────────

def _row_to_user(row: sqlite3.Row) -> UserAccount:
    return UserAccount(
        uid=row["uid"],
        display_name=row["display_name"],
        onboarding_completed=bool(row["onboarding_completed"]),
    )


def _row_to_submission(row: sqlite3.Row) -> OnboardingSubmission:
    raw_answers = json.loads(row["answers_json"] or "[]")
    return OnboardingSubmission(
        response_id=row["response_id"],
        uid=row["uid"],
        status=SubmissionStatus(row["status"]),
        config_version=row["config_version"],
        answers=tuple(OnboardingAnswer.model_validate(a) for a in raw_answers),
        completed_at=parse_utc(row["completed_at"]),
    )
