"""
Seed bundle loader: JSON → SQLite.

A seed bundle is one JSON object with any of these top-level lists::

    {
      "users":       [UserAccount, ...],
      "content":     [ContentItem, ...],
      "activities":  [ActivityRecord, ...],
      "enrollments": [ProgramEnrollment, ...],
      "onboarding":  [OnboardingSubmission, ...]
    }

Every record is validated against its pydantic model before anything is
written; one invalid record rejects the whole bundle. Users and content are
upserted. Activities, enrollments and submissions are appended, so load a
bundle into a fresh database. A completed submission sets its user's
onboarding flag.

Usage
-----
    from ora_recommender.seed import load_seed_bundle, apply_seed_bundle

    bundle = load_seed_bundle(Path("config/seed/sample_catalog.json"))
    with connect(config) as conn:
        counts = apply_seed_bundle(conn, bundle)
"""

from __future__ import annotations

import json
import logging
import sqlite3
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from ora_recommender.db.repositories.content_repo import (
    ActivityRepository,
    ContentRepository,
    EnrollmentRepository,
)
from ora_recommender.db.repositories.user_repo import OnboardingRepository, UserRepository
from ora_recommender.models.content import (
    ActivityRecord,
    ContentItem,
    ProgramEnrollment,
    UserAccount,
)
from ora_recommender.models.onboarding import OnboardingSubmission
from ora_recommender.utils.time_utils import utcnow

log = logging.getLogger(__name__)

_SECTIONS = ("users", "content", "activities", "enrollments", "onboarding")


@dataclass
class SeedBundle:
    """Validated contents of a seed file."""

    users:       list[UserAccount] = field(default_factory=list)
    content:     list[ContentItem] = field(default_factory=list)
    activities:  list[ActivityRecord] = field(default_factory=list)
    enrollments: list[ProgramEnrollment] = field(default_factory=list)
    onboarding:  list[OnboardingSubmission] = field(default_factory=list)


def parse_seed_bundle(raw: dict[str, Any]) -> SeedBundle:
    """Validate a decoded seed object.

    Raises:
        ValueError: Unknown section, non-list section or invalid record.
    """
    if not isinstance(raw, dict):
        raise ValueError("Seed bundle must be a JSON object.")
    unknown = set(raw) - set(_SECTIONS)
    if unknown:
        raise ValueError(f"Unknown seed sections: {sorted(unknown)}.")

    models = {
        "users": UserAccount,
        "content": ContentItem,
        "activities": ActivityRecord,
        "enrollments": ProgramEnrollment,
        "onboarding": OnboardingSubmission,
    }
    parsed: dict[str, list[Any]] = {}
    for section, model in models.items():
        records = raw.get(section, [])
        if not isinstance(records, list):
            raise ValueError(f"Seed section '{section}' must be a list.")
        try:
            parsed[section] = [model.model_validate(r) for r in records]
        except ValidationError as exc:
            raise ValueError(f"Invalid record in '{section}': {exc}") from exc

    content_ids = [c.content_id for c in parsed["content"]]
    if len(content_ids) != len(set(content_ids)):
        raise ValueError("Duplicate content_id in seed 'content'.")

    return SeedBundle(**parsed)


def load_seed_bundle(path: Path) -> SeedBundle:
    """Read and validate a seed JSON file."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Seed file not found: {path}")
    with open(path, encoding="utf-8") as f:
        raw = json.load(f)
    return parse_seed_bundle(raw)


def apply_seed_bundle(conn: sqlite3.Connection, bundle: SeedBundle) -> dict[str, int]:
    """Write ``bundle`` on ``conn``; returns rows written per section."""
    users = UserRepository(conn)
    for user in bundle.users:
        users.upsert(user)

    content = ContentRepository(conn)
    for item in bundle.content:
        content.upsert(item)

    activities = ActivityRepository(conn)
    for activity in bundle.activities:
        activities.insert(activity)

    enrollments = EnrollmentRepository(conn)
    for enrollment in bundle.enrollments:
        enrollments.insert(enrollment)

    submissions = OnboardingRepository(conn)
    now = utcnow()
    for submission in bundle.onboarding:
        if not users.exists(submission.uid):
            users.upsert(UserAccount(uid=submission.uid))
        submissions.insert(submission.stamped(now))
        if submission.is_completed:
            users.mark_onboarding_completed(submission.uid)

    counts = {
        "users": len(bundle.users),
        "content": len(bundle.content),
        "activities": len(bundle.activities),
        "enrollments": len(bundle.enrollments),
        "onboarding": len(bundle.onboarding),
    }
    log.info("Seed applied: %s", counts)
    return counts
