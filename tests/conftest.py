"""
Shared pytest fixtures for the Ora recommendation engine test suite.

Provides:
  - ``in_memory_db``: A fresh in-memory SQLite connection with the full
    schema applied. Created anew for each test that requests it.
  - ``app_config``: An ``AppConfig`` pointing at a file-backed DB under
    ``tmp_path`` (the pipeline opens its own connections, so it cannot use
    an in-memory DB).
  - ``seeded_config``: ``app_config`` with a small catalog and three users
    loaded through the seed loader.
  - Sample domain objects for use in multiple test modules.
"""

from __future__ import annotations

import sqlite3
from typing import Any, Generator

import pytest

from ora_recommender.config import AppConfig, DatabaseConfig
from ora_recommender.db.connection import connect
from ora_recommender.db.schema import apply_schema
from ora_recommender.models.content import ContentItem
from ora_recommender.models.onboarding import UserPreferenceProfile
from ora_recommender.seed import apply_seed_bundle, parse_seed_bundle


# ── Database fixtures ─────────────────────────────────────────────────────────

@pytest.fixture
def in_memory_db() -> Generator[sqlite3.Connection, None, None]:
    """Yield a fresh in-memory SQLite connection with the full schema applied.

    Foreign key enforcement is ON. Connection is closed after the test.
    """
    conn = sqlite3.connect(":memory:")
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    apply_schema(conn)
    yield conn
    conn.close()


@pytest.fixture
def app_config(tmp_path) -> AppConfig:
    """AppConfig with a file-backed DB under ``tmp_path``, schema applied."""
    config = AppConfig(database=DatabaseConfig(db_path=str(tmp_path / "test.db")))
    with connect(config) as conn:
        apply_schema(conn)
    return config


SEED: dict[str, Any] = {
    "users": [
        {"uid": "user-1", "display_name": "One"},
        {"uid": "user-2", "display_name": "Two"},
        {"uid": "user-3", "display_name": "Three"},
        {"uid": "user-pending"},
    ],
    "content": [
        {"content_id": "med-beg", "discipline": "meditation", "difficulty": "beginner", "duration_sec": 480},
        {"content_id": "med-int", "discipline": "meditation", "difficulty": "intermediate", "duration_sec": 900},
        {"content_id": "med-exp", "discipline": "meditation", "difficulty": "expert", "duration_sec": 1800},
        {"content_id": "yoga-beg", "discipline": "yoga", "difficulty": "beginner", "duration_sec": 1200},
        {"content_id": "yoga-exp", "discipline": "yoga", "difficulty": "expert", "duration_sec": 2400},
        {"content_id": "breath-beg", "discipline": "breathing", "difficulty": "beginner", "duration_sec": 300},
        {"content_id": "prog-a-1", "discipline": "meditation", "difficulty": "beginner", "duration_sec": 600, "program_id": "prog-a"},
        {"content_id": "draft-1", "discipline": "meditation", "difficulty": "beginner", "duration_sec": 300, "publication_state": "draft"},
    ],
    "activities": [
        {"uid": "user-1", "content_id": "med-beg", "progress_percent": 95.0},
    ],
    "enrollments": [
        {"uid": "user-1", "program_id": "prog-a", "status": "active"},
    ],
    "onboarding": [
        {
            "uid": uid,
            "status": "completed",
            "completed_at": "2025-12-01T08:00:00Z",
            "answers": [
                {"questionId": "intentions", "selectedOptions": ["reduce_stress"]},
                {"questionId": "practice_levels", "selectedOptions": ["meditation:beginner"]},
                {"questionId": "time_commitment", "selectedOptions": ["5-10"]},
            ],
        }
        for uid in ("user-1", "user-2", "user-3")
    ] + [
        {
            "uid": "user-pending",
            "status": "in_progress",
            "answers": [{"questionId": "intentions", "selectedOptions": ["improve_sleep"]}],
        }
    ],
}


@pytest.fixture
def seeded_config(app_config: AppConfig) -> AppConfig:
    """``app_config`` with ``SEED`` applied."""
    with connect(app_config) as conn:
        apply_seed_bundle(conn, parse_seed_bundle(SEED))
    return app_config


# ── Sample domain object fixtures ─────────────────────────────────────────────

@pytest.fixture
def sample_item() -> ContentItem:
    """A ready 10-minute beginner meditation item."""
    return ContentItem(
        content_id="med-beg",
        title="Morning Calm",
        discipline="meditation",
        difficulty="beginner",
        duration_sec=600,
    )


@pytest.fixture
def sample_profile() -> UserPreferenceProfile:
    """A stress-reduction beginner in the 10-20 minute bucket."""
    return UserPreferenceProfile(
        intentions=("reduce_stress",),
        experience_by_discipline={"meditation": "beginner"},
        time_commitment="10-20",
    )
