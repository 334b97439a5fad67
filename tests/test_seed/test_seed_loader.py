"""
Tests for ora_recommender/seed.py.

Covers:
  - Validation: unknown section, non-list section, invalid record,
    duplicate content ids.
  - The committed sample catalog parses.
  - apply_seed_bundle creates missing users for submissions and sets the
    onboarding flag only for completed ones.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from ora_recommender.db.repositories.content_repo import ContentRepository
from ora_recommender.db.repositories.user_repo import OnboardingRepository, UserRepository
from ora_recommender.seed import apply_seed_bundle, load_seed_bundle, parse_seed_bundle

SAMPLE = Path(__file__).resolve().parents[2] / "config" / "seed" / "sample_catalog.json"


@pytest.mark.parametrize(
    "raw, match",
    [
        ({"programs": []}, "Unknown seed sections"),
        ({"content": {"content_id": "a"}}, "must be a list"),
        ({"content": [{"content_id": "a", "duration_sec": -5}]}, "Invalid record"),
        ({"content": [{"content_id": "a"}, {"content_id": "a"}]}, "Duplicate"),
    ],
)
def test_invalid_bundles(raw, match):
    with pytest.raises(ValueError, match=match):
        parse_seed_bundle(raw)


def test_sample_catalog_parses():
    bundle = load_seed_bundle(SAMPLE)
    assert bundle.users
    assert len(bundle.content) >= 10


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_seed_bundle(tmp_path / "missing.json")


def test_load_from_file(tmp_path):
    path = tmp_path / "seed.json"
    path.write_text(json.dumps({"content": [{"content_id": "a"}]}), encoding="utf-8")
    assert [c.content_id for c in load_seed_bundle(path).content] == ["a"]


def test_apply_creates_users_and_flags(in_memory_db):
    bundle = parse_seed_bundle({
        "content": [{"content_id": "a", "discipline": "yoga"}],
        "onboarding": [
            {"uid": "done", "answers": [{"questionId": "intentions", "selectedOptions": ["x"]}]},
            {"uid": "halfway", "status": "in_progress"},
        ],
    })
    counts = apply_seed_bundle(in_memory_db, bundle)

    assert counts["onboarding"] == 2
    users = UserRepository(in_memory_db)
    assert users.get("done").onboarding_completed is True
    assert users.get("halfway").onboarding_completed is False
    assert OnboardingRepository(in_memory_db).get_latest_completed("done") is not None
    assert set(ContentRepository(in_memory_db).get_many(["a"])) == {"a"}


def test_apply_stamps_undated_completed_submission(in_memory_db):
    apply_seed_bundle(in_memory_db, parse_seed_bundle({"onboarding": [
        {"uid": "u1", "config_version": "old", "completed_at": "2025-01-01T00:00:00Z",
         "answers": [{"questionId": "intentions", "selectedOptions": ["reduce_stress"]}]},
        {"uid": "u1", "config_version": "new",
         "answers": [{"questionId": "intentions", "selectedOptions": ["increase_energy"]}]},
    ]}))
    latest = OnboardingRepository(in_memory_db).get_latest_completed("u1")
    assert latest.config_version == "new"
    assert latest.completed_at is not None


def test_apply_upserts_content(in_memory_db):
    apply_seed_bundle(in_memory_db, parse_seed_bundle({"content": [{"content_id": "a", "title": "Old"}]}))
    apply_seed_bundle(in_memory_db, parse_seed_bundle({"content": [{"content_id": "a", "title": "New"}]}))
    assert ContentRepository(in_memory_db).get_many(["a"])["a"].title == "New"
