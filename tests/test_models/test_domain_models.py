"""
Tests for the pydantic models in ora_recommender/models/.

Covers:
  - Field validators (duration, progress, uid, run kind/status).
  - Alias handling for onboarding answers (camelCase in, snake_case out).
  - RecommendationRecord invariants: unique ids, scores match ids, range.
  - Immutability of frozen models; RunMetadata stays mutable.
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from ora_recommender.models.content import ActivityRecord, ContentItem
from ora_recommender.models.meta import RunMetadata
from ora_recommender.models.onboarding import OnboardingAnswer, OnboardingSubmission
from ora_recommender.models.recommendation import (
    ExclusionSet,
    RecommendationBasis,
    RecommendationMetadata,
    RecommendationRecord,
)
from ora_recommender.taxonomy.practice_taxonomy import SubmissionStatus, Trigger

NOW = datetime(2025, 12, 8, tzinfo=timezone.utc)


def _record(**overrides) -> RecommendationRecord:
    fields = dict(
        uid="u1",
        content_ids=["a", "b"],
        scores={"a": 0.9, "b": 0.4},
        generated_at=NOW,
        algorithm_version="1.0.0",
        based_on=RecommendationBasis(
            intentions=[], experience_levels={}, time_commitment="10-20",
            completed_content_ids=[], active_program_content_ids=[],
        ),
        metadata=RecommendationMetadata(
            total_candidates_scored=2, average_score=0.65, trigger=Trigger.MANUAL
        ),
    )
    fields.update(overrides)
    return RecommendationRecord(**fields)


# ── Content models ────────────────────────────────────────────────────────────

class TestContentItem:
    def test_scoring_discipline_falls_back_to_category(self):
        assert ContentItem(content_id="x", discipline="", category="Massage").scoring_discipline == "massage"
        assert ContentItem(content_id="x", discipline="Yoga", category="other").scoring_discipline == "yoga"

    def test_negative_duration_rejected(self):
        with pytest.raises(ValidationError):
            ContentItem(content_id="x", duration_sec=-1)

    def test_frozen(self, sample_item):
        with pytest.raises(ValidationError):
            sample_item.duration_sec = 10


@pytest.mark.parametrize("progress", [-0.1, 100.1])
def test_activity_progress_range(progress):
    with pytest.raises(ValidationError):
        ActivityRecord(uid="u1", content_id="a", progress_percent=progress)


# ── Onboarding models ─────────────────────────────────────────────────────────

class TestOnboarding:
    def test_answer_accepts_camel_case(self):
        answer = OnboardingAnswer.model_validate(
            {"questionId": "intentions", "selectedOptions": ["reduce_stress"]}
        )
        assert answer.question_id == "intentions"
        assert answer.selected_options == ("reduce_stress",)

    def test_answer_accepts_field_names(self):
        answer = OnboardingAnswer(question_id="q", selected_options=("a", "b"))
        assert answer.model_dump(by_alias=True)["selectedOptions"] == ("a", "b")

    def test_blank_uid_rejected(self):
        with pytest.raises(ValidationError):
            OnboardingSubmission(uid="  ")

    def test_stamped(self):
        stamped = OnboardingSubmission(uid="u1").stamped(NOW)
        assert stamped.completed_at == NOW

        dated = OnboardingSubmission(uid="u1", completed_at=datetime(2025, 1, 1, tzinfo=timezone.utc))
        assert dated.stamped(NOW) is dated

        pending = OnboardingSubmission(uid="u1", status=SubmissionStatus.IN_PROGRESS)
        assert pending.stamped(NOW).completed_at is None

    def test_is_completed(self):
        assert OnboardingSubmission(uid="u1").is_completed
        assert not OnboardingSubmission(uid="u1", status=SubmissionStatus.IN_PROGRESS).is_completed


# ── Recommendation models ─────────────────────────────────────────────────────

class TestRecommendationRecord:
    def test_valid(self):
        assert _record().content_ids == ["a", "b"]

    def test_empty_is_valid(self):
        assert _record(content_ids=[], scores={}).content_ids == []

    def test_duplicate_ids_rejected(self):
        with pytest.raises(ValidationError):
            _record(content_ids=["a", "a"], scores={"a": 0.5})

    def test_scores_must_match_ids(self):
        with pytest.raises(ValidationError):
            _record(scores={"a": 0.9})
        with pytest.raises(ValidationError):
            _record(scores={"a": 0.9, "b": 0.4, "c": 0.3})

    def test_score_range(self):
        with pytest.raises(ValidationError):
            _record(scores={"a": 1.2, "b": 0.4})

    def test_json_round_trip_keeps_order(self):
        record = _record(content_ids=["b", "a"])
        assert RecommendationRecord.model_validate_json(record.model_dump_json()).content_ids == ["b", "a"]

    def test_same_result_ignores_timestamp(self):
        later = _record(generated_at=datetime(2025, 12, 9, tzinfo=timezone.utc))
        assert later.same_result_as(_record())
        assert not _record(scores={"a": 0.8, "b": 0.4}).same_result_as(_record())


def test_exclusion_set_membership():
    exclusions = ExclusionSet.of(["a"], ["b", "a"])
    assert "a" in exclusions and "b" in exclusions
    assert "c" not in exclusions
    assert len(exclusions) == 2


# ── Run metadata ──────────────────────────────────────────────────────────────

class TestRunMetadata:
    def test_mutable(self):
        run = RunMetadata(run_slug="s", run_kind="user_run", trigger="manual", started_at=NOW)
        run.status = "success"
        assert run.status == "success"

    def test_unknown_kind(self):
        with pytest.raises(ValidationError):
            RunMetadata(run_slug="s", run_kind="daily", trigger="manual", started_at=NOW)

    def test_unknown_status(self):
        with pytest.raises(ValidationError):
            RunMetadata(
                run_slug="s", run_kind="user_run", trigger="manual",
                status="exploded", started_at=NOW,
            )
