"""
SQLite schema DDL — all CREATE TABLE and CREATE INDEX statements.

The tables stand in for the document-store collections the engine talks
to. All statements use ``IF NOT EXISTS`` so ``apply_schema()`` is
**idempotent**: safe to call on an already-initialized database.

Table creation order respects foreign key dependencies:
  1. users                 (no FKs)
  2. onboarding_responses  (→ users)
  3. content_items         (no FKs; program_id is a loose reference)
  4. user_activities       (→ users)
  5. program_enrollments   (→ users)
  6. recommendations       (→ users)
  7. run_metadata          (no FKs)

Activity and enrollment rows reference content / programs by id only:
the catalog is owned by another system and may drop items at any time.
"""

from __future__ import annotations

import logging
import sqlite3

logger = logging.getLogger(__name__)

# ── DDL statements ─────────────────────────────────────────────────────────────

_DDL_USERS = """
CREATE TABLE IF NOT EXISTS users (
    uid                   TEXT    PRIMARY KEY,
    display_name          TEXT,
    onboarding_completed  INTEGER NOT NULL DEFAULT 0,
    created_at            TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
);
"""

_DDL_ONBOARDING_RESPONSES = """
CREATE TABLE IF NOT EXISTS onboarding_responses (
    response_id     INTEGER PRIMARY KEY AUTOINCREMENT,
    uid             TEXT    NOT NULL REFERENCES users(uid),
    status          TEXT    NOT NULL CHECK (status IN ('in_progress', 'completed')),
    config_version  TEXT    NOT NULL DEFAULT '1',
    answers_json    TEXT    NOT NULL DEFAULT '[]',
    completed_at    TEXT,
    created_at      TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
);
"""

_DDL_CONTENT_ITEMS = """
CREATE TABLE IF NOT EXISTS content_items (
    content_id         TEXT    PRIMARY KEY,
    title              TEXT    NOT NULL DEFAULT '',
    discipline         TEXT    NOT NULL DEFAULT '',
    category           TEXT,
    difficulty         TEXT,
    duration_sec       INTEGER NOT NULL DEFAULT 0,
    publication_state  TEXT    NOT NULL,
    program_id         TEXT
);
"""

_DDL_USER_ACTIVITIES = """
CREATE TABLE IF NOT EXISTS user_activities (
    activity_id       INTEGER PRIMARY KEY AUTOINCREMENT,
    uid               TEXT    NOT NULL REFERENCES users(uid),
    content_id        TEXT    NOT NULL,
    progress_percent  REAL    NOT NULL,
    completed_at      TEXT
);
"""

_DDL_PROGRAM_ENROLLMENTS = """
CREATE TABLE IF NOT EXISTS program_enrollments (
    enrollment_id  INTEGER PRIMARY KEY AUTOINCREMENT,
    uid            TEXT    NOT NULL REFERENCES users(uid),
    program_id     TEXT    NOT NULL,
    status         TEXT    NOT NULL CHECK (status IN ('active', 'completed', 'abandoned')),
    current_day    INTEGER NOT NULL DEFAULT 1,
    total_days     INTEGER NOT NULL DEFAULT 1
);
"""

_DDL_RECOMMENDATIONS = """
CREATE TABLE IF NOT EXISTS recommendations (
    uid           TEXT    NOT NULL REFERENCES users(uid),
    rec_key       TEXT    NOT NULL,
    payload_json  TEXT    NOT NULL,
    generated_at  TEXT    NOT NULL,
    PRIMARY KEY (uid, rec_key)
);
"""

_DDL_RUN_METADATA = """
CREATE TABLE IF NOT EXISTS run_metadata (
    run_id           INTEGER PRIMARY KEY AUTOINCREMENT,
    run_slug         TEXT    NOT NULL UNIQUE,
    run_kind         TEXT    NOT NULL,
    trigger          TEXT    NOT NULL,
    uid              TEXT,
    status           TEXT    NOT NULL,
    state            TEXT,
    failed_step      TEXT,
    rows_processed   INTEGER NOT NULL DEFAULT 0,
    rows_failed      INTEGER NOT NULL DEFAULT 0,
    config_snapshot  TEXT    NOT NULL DEFAULT '{}',
    error_message    TEXT,
    started_at       TEXT    NOT NULL,
    finished_at      TEXT
);
"""

_DDL_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_users_onboarding ON users(onboarding_completed);",
    "CREATE INDEX IF NOT EXISTS idx_onboarding_uid_status ON onboarding_responses(uid, status);",
    "CREATE INDEX IF NOT EXISTS idx_content_state ON content_items(publication_state);",
    "CREATE INDEX IF NOT EXISTS idx_content_program ON content_items(program_id);",
    "CREATE INDEX IF NOT EXISTS idx_activities_uid ON user_activities(uid, progress_percent);",
    "CREATE INDEX IF NOT EXISTS idx_enrollments_uid ON program_enrollments(uid, status);",
    "CREATE INDEX IF NOT EXISTS idx_run_metadata_uid ON run_metadata(uid);",
]

_ALL_DDL = [
    _DDL_USERS,
    _DDL_ONBOARDING_RESPONSES,
    _DDL_CONTENT_ITEMS,
    _DDL_USER_ACTIVITIES,
    _DDL_PROGRAM_ENROLLMENTS,
    _DDL_RECOMMENDATIONS,
    _DDL_RUN_METADATA,
]

ALL_TABLE_NAMES: tuple[str, ...] = (
    "users",
    "onboarding_responses",
    "content_items",
    "user_activities",
    "program_enrollments",
    "recommendations",
    "run_metadata",
)


def apply_schema(conn: sqlite3.Connection) -> None:
    """Create all tables and indexes if they do not already exist.

    Args:
        conn: Open SQLite connection.
    """
    for ddl in _ALL_DDL:
        conn.execute(ddl)
    for ddl in _DDL_INDEXES:
        conn.execute(ddl)
    logger.debug("Schema applied: %d tables.", len(ALL_TABLE_NAMES))
