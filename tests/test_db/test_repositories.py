"""
Tests for the repository classes in ora_recommender/db/repositories/.

What we test
------------
UserRepository:            upsert/get/exists, onboarding flag, onboarded uid listing.
OnboardingRepository:      answers round-trip by alias; latest completed selection.
ContentRepository:         streaming in batches, get_many, ids_in_programs.
EnrollmentRepository:      distinct active program ids, oldest first.
RecommendationRepository:  put overwrites, get missing -> None.
RunMetadataRepository:     insert, update, lookup by slug and by user.
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from ora_recommender.db.repositories.content_repo import (
    ActivityRepository,
    ContentRepository,
    EnrollmentRepository,
)
from ora_recommender.db.repositories.recommendation_repo import (
    RecommendationRepository,
    RunMetadataRepository,
)
from ora_recommender.db.repositories.user_repo import OnboardingRepository, UserRepository
from ora_recommender.models.content import (
    ActivityRecord,
    ContentItem,
    ProgramEnrollment,
    UserAccount,
)
from ora_recommender.models.meta import PipelineState, RunMetadata
from ora_recommender.models.onboarding import OnboardingAnswer, OnboardingSubmission
from ora_recommender.models.recommendation import (
    RecommendationBasis,
    RecommendationMetadata,
    RecommendationRecord,
)
from ora_recommender.taxonomy.practice_taxonomy import (
    EnrollmentStatus,
    SubmissionStatus,
    Trigger,
)

T0 = datetime(2025, 12, 1, 8, 0, tzinfo=timezone.utc)


def _user(conn, uid="u1", completed=False):
    UserRepository(conn).upsert(UserAccount(uid=uid, onboarding_completed=completed))


# ── Users ─────────────────────────────────────────────────────────────────────

class TestUserRepository:
    def test_upsert_and_get(self, in_memory_db):
        repo = UserRepository(in_memory_db)
        repo.upsert(UserAccount(uid="u1", display_name="Ann"))
        repo.upsert(UserAccount(uid="u1", display_name="Anne"))
        user = repo.get("u1")
        assert user.display_name == "Anne"
        assert user.onboarding_completed is False
        assert repo.exists("u1")
        assert repo.get("nobody") is None
        assert not repo.exists("nobody")

    def test_onboarded_listing(self, in_memory_db):
        repo = UserRepository(in_memory_db)
        for uid in ("u3", "u1", "u2"):
            repo.upsert(UserAccount(uid=uid))
        repo.mark_onboarding_completed("u3")
        repo.mark_onboarding_completed("u1")
        assert repo.list_onboarded_uids() == ["u1", "u3"]


# ── Onboarding ────────────────────────────────────────────────────────────────

class TestOnboardingRepository:
    def test_answers_round_trip(self, in_memory_db):
        _user(in_memory_db)
        repo = OnboardingRepository(in_memory_db)
        submission = OnboardingSubmission(
            uid="u1",
            answers=(
                OnboardingAnswer(question_id="intentions", selected_options=("reduce_stress",)),
                OnboardingAnswer(question_id="practice_levels", selected_options=("yoga:beginner",)),
            ),
            completed_at=T0,
        )
        response_id = repo.insert(submission)
        latest = repo.get_latest_completed("u1")
        assert latest.response_id == response_id
        assert latest.answers == submission.answers
        assert latest.completed_at == T0

    def test_in_progress_not_returned(self, in_memory_db):
        _user(in_memory_db)
        OnboardingRepository(in_memory_db).insert(
            OnboardingSubmission(uid="u1", status=SubmissionStatus.IN_PROGRESS)
        )
        assert OnboardingRepository(in_memory_db).get_latest_completed("u1") is None

    def test_latest_completed_by_completion_time(self, in_memory_db):
        _user(in_memory_db)
        repo = OnboardingRepository(in_memory_db)
        repo.insert(OnboardingSubmission(uid="u1", config_version="2",
                                         completed_at=datetime(2025, 12, 5, tzinfo=timezone.utc)))
        repo.insert(OnboardingSubmission(uid="u1", config_version="1",
                                         completed_at=datetime(2025, 11, 1, tzinfo=timezone.utc)))
        repo.insert(OnboardingSubmission(uid="u1", config_version="0"))
        assert repo.get_latest_completed("u1").config_version == "2"


# ── Content / activity / enrollment ───────────────────────────────────────────

class TestContentRepository:
    def test_iter_ready_batches(self, in_memory_db):
        repo = ContentRepository(in_memory_db)
        for i in range(5):
            repo.upsert(ContentItem(content_id=f"c{i}", discipline="yoga"))
        batches = list(repo.iter_ready(batch_size=2))
        assert [len(b) for b in batches] == [2, 2, 1]

    def test_get_many_and_programs(self, in_memory_db):
        repo = ContentRepository(in_memory_db)
        repo.upsert(ContentItem(content_id="a", program_id="p1"))
        repo.upsert(ContentItem(content_id="b", program_id="p2"))
        repo.upsert(ContentItem(content_id="c"))
        assert set(repo.get_many(["a", "c", "zzz"])) == {"a", "c"}
        assert repo.get_many([]) == {}
        assert repo.ids_in_programs(["p1", "p2"]) == {"a", "b"}
        assert repo.ids_in_programs([]) == set()

    def test_activity_round_trip(self, in_memory_db):
        _user(in_memory_db)
        repo = ActivityRepository(in_memory_db)
        repo.insert(ActivityRecord(uid="u1", content_id="a", progress_percent=50.0, completed_at=T0))
        [activity] = repo.list_for_user("u1")
        assert activity.progress_percent == 50.0
        assert activity.completed_at == T0

    def test_active_program_ids_distinct_oldest_first(self, in_memory_db):
        _user(in_memory_db)
        repo = EnrollmentRepository(in_memory_db)
        repo.insert(ProgramEnrollment(uid="u1", program_id="p2"))
        repo.insert(ProgramEnrollment(uid="u1", program_id="p1"))
        repo.insert(ProgramEnrollment(uid="u1", program_id="p2"))
        repo.insert(ProgramEnrollment(uid="u1", program_id="p3", status=EnrollmentStatus.ABANDONED))
        assert repo.active_program_ids("u1") == ["p2", "p1"]


# ── Recommendations / run metadata ────────────────────────────────────────────

def _record(ids: list[str]) -> RecommendationRecord:
    return RecommendationRecord(
        uid="u1",
        content_ids=ids,
        scores={cid: 0.5 for cid in ids},
        generated_at=T0,
        algorithm_version="1.0.0",
        based_on=RecommendationBasis(
            intentions=[], experience_levels={}, time_commitment="10-20",
            completed_content_ids=[], active_program_content_ids=[],
        ),
        metadata=RecommendationMetadata(
            total_candidates_scored=len(ids), average_score=0.5, trigger=Trigger.MANUAL
        ),
    )


class TestRecommendationRepository:
    def test_put_overwrites(self, in_memory_db):
        _user(in_memory_db)
        repo = RecommendationRepository(in_memory_db)
        repo.put("u1", "latest", _record(["a"]))
        repo.put("u1", "latest", _record(["b", "c"]))
        assert repo.get("u1", "latest").content_ids == ["b", "c"]
        assert repo.list_keys("u1") == ["latest"]
        assert repo.get("u1", "manual") is None


class TestRunMetadataRepository:
    def test_insert_update_get(self, in_memory_db):
        repo = RunMetadataRepository(in_memory_db)
        run = RunMetadata(
            run_slug="slug-1", run_kind="user_run", trigger="manual", uid="u1",
            state=PipelineState.STARTED, config_snapshot={"k": 1}, started_at=T0,
        )
        run.run_id = repo.insert_run(run)
        assert run.run_id is not None

        run.status = "failed"
        run.state = PipelineState.FAILED
        run.failed_step = "candidates_loaded"
        run.error_message = "boom"
        run.finished_at = T0
        repo.update_run(run)

        stored = repo.get_run("slug-1")
        assert stored.status == "failed"
        assert stored.state == PipelineState.FAILED
        assert stored.failed_step == "candidates_loaded"
        assert stored.config_snapshot == {"k": 1}
        assert [r.run_slug for r in repo.list_runs_for_user("u1")] == ["slug-1"]
        assert repo.get_run("missing") is None

    def test_update_requires_id(self, in_memory_db):
        run = RunMetadata(run_slug="s", run_kind="user_run", trigger="manual", started_at=T0)
        with pytest.raises(ValueError):
            RunMetadataRepository(in_memory_db).update_run(run)
