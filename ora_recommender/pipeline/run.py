"""
Single-user recommendation pipeline.

One run walks the state machine in ``ora_recommender.models.meta``::

    STARTED → PROFILE_BUILT → CANDIDATES_LOADED → SCORED → FILTERED → PERSISTED

and stops at FAILED from whichever step raised.

Error contract
--------------
- ``NotEligibleError`` (no user, no completed onboarding, no answers)
  propagates unchanged; the run is audited as ``skipped``.
- Any other exception is re-raised as ``PipelineStepError`` carrying the
  step the run was attempting; the original is kept as ``__cause__``.
  The run is audited as ``failed``.

Nothing is written before the PERSISTED step, and the two writes of that
step share one transaction, so a failed run leaves no partial record.

Every run, successful or not, writes one ``run_metadata`` row
(``run_kind='user_run'``). Audit persistence failures are logged only.
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from datetime import date
from typing import Optional
from uuid import uuid4

from ora_recommender.config import AppConfig
from ora_recommender.db.connection import connect
from ora_recommender.db.repositories.recommendation_repo import RunMetadataRepository
from ora_recommender.db.repositories.user_repo import OnboardingRepository, UserRepository
from ora_recommender.errors import (
    NoOnboardingAnswersError,
    NotEligibleError,
    OnboardingIncompleteError,
    PipelineStepError,
    UserNotFoundError,
)
from ora_recommender.models.meta import PipelineState, RunMetadata
from ora_recommender.models.onboarding import UserPreferenceProfile
from ora_recommender.models.recommendation import RecommendationRecord
from ora_recommender.recommendations.candidates import load_candidate_pool
from ora_recommender.recommendations.extractor import extract_profile
from ora_recommender.recommendations.ranker import rank, score_candidates
from ora_recommender.recommendations.writer import (
    build_record,
    run_key_for,
    write_recommendation,
)
from ora_recommender.taxonomy.practice_taxonomy import Trigger
from ora_recommender.utils.logging import run_context
from ora_recommender.utils.time_utils import utc_today, utcnow

logger = logging.getLogger(__name__)


@dataclass
class UserRunResult:
    """Outcome of one successful single-user run.

    Attributes:
        uid:      User processed.
        trigger:  What started the run.
        run_key:  Key the record was stored under (besides ``latest``).
        record:   The persisted record.
        run_slug: Audit row identifier.
    """

    uid: str
    trigger: Trigger
    run_key: str
    record: RecommendationRecord
    run_slug: str

    @property
    def message(self) -> str:
        return (
            f"Generated {len(self.record.content_ids)} recommendations "
            f"for user {self.uid}"
        )


class UserRecommendationPipeline:
    """Runs extract → load → score → rank → write for one user.

    Args:
        config:  AppConfig for this run.
        db_path: Override DB path (defaults to config.database.db_path).
    """

    def __init__(self, config: AppConfig, db_path: Optional[str] = None) -> None:
        self.config = config
        self.db_path = db_path or config.database.db_path

    def run(
        self,
        uid: str,
        trigger: Trigger,
        run_date: Optional[date] = None,
    ) -> UserRunResult:
        """Execute the pipeline for ``uid``.

        Args:
            uid:      Target user.
            trigger:  Trigger that started the run; selects the run key.
            run_date: UTC date used for weekly run keys (defaults to today).

        Returns:
            ``UserRunResult`` for the persisted record.

        Raises:
            NotEligibleError: The user cannot be scored.
            PipelineStepError: A read, compute or write step failed.
        """
        rec_cfg = self.config.recommendations
        run_key = run_key_for(trigger, run_date or utc_today())
        run = RunMetadata(
            run_slug=str(uuid4()),
            run_kind="user_run",
            trigger=trigger.value,
            uid=uid,
            state=PipelineState.STARTED,
            config_snapshot={"recommendations": rec_cfg.model_dump(), "run_key": run_key},
            started_at=utcnow(),
        )
        logger.info("User run starting | uid=%s | trigger=%s", uid, trigger.value)

        step = PipelineState.PROFILE_BUILT
        try:
            with connect(self.config, self.db_path) as conn:
                profile = self._build_profile(conn, uid)
                run.state = step

                step = PipelineState.CANDIDATES_LOADED
                pool = load_candidate_pool(conn, uid, rec_cfg)
                run.state = step

            step = PipelineState.SCORED
            scored = score_candidates(pool.candidates, profile, pool.exclusions)
            run.state = step

            step = PipelineState.FILTERED
            ranked = rank(scored, pool.exclusions, limit=rec_cfg.max_recommendations)
            record = build_record(
                uid=uid,
                profile=profile,
                exclusions=pool.exclusions,
                ranked=ranked,
                trigger=trigger,
                algorithm_version=rec_cfg.algorithm_version,
                generated_at=utcnow(),
                max_recommendations=rec_cfg.max_recommendations,
            )
            run.state = step

            step = PipelineState.PERSISTED
            with connect(self.config, self.db_path, immediate=True) as conn:
                write_recommendation(conn, record, run_key)
            run.state = step

        except NotEligibleError as exc:
            self._finish(run, "skipped", exc.step, str(exc))
            logger.warning(
                "User %s not eligible: %s", uid, exc,
                extra=run_context(uid, trigger.value, exc.step, run.run_slug),
            )
            raise

        except Exception as exc:
            self._finish(run, "failed", step.value, str(exc))
            logger.error(
                "User run FAILED | uid=%s | trigger=%s | step=%s | %s",
                uid, trigger.value, step.value, exc,
                extra=run_context(uid, trigger.value, step.value, run.run_slug),
            )
            raise PipelineStepError(uid, step.value, exc) from exc

        run.rows_processed = len(record.content_ids)
        self._finish(run, "success", None, None)
        logger.info(
            "User run completed | uid=%s | key=%s | items=%d | candidates=%d",
            uid, run_key, len(record.content_ids), record.metadata.total_candidates_scored,
        )
        return UserRunResult(
            uid=uid, trigger=trigger, run_key=run_key, record=record, run_slug=run.run_slug
        )

    # ── Private helpers ───────────────────────────────────────────────────────

    def _build_profile(self, conn: sqlite3.Connection, uid: str) -> UserPreferenceProfile:
        if not UserRepository(conn).exists(uid):
            raise UserNotFoundError(uid)
        submission = OnboardingRepository(conn).get_latest_completed(uid)
        if submission is None:
            raise OnboardingIncompleteError(uid)
        if not submission.answers:
            raise NoOnboardingAnswersError(uid)
        return extract_profile(submission.answers, self.config.onboarding)

    def _finish(
        self,
        run: RunMetadata,
        status: str,
        failed_step: Optional[str],
        error_message: Optional[str],
    ) -> None:
        run.status = status
        run.failed_step = failed_step
        run.error_message = error_message
        run.finished_at = utcnow()
        if status != "success":
            run.state = PipelineState.FAILED
        self._persist_run(run)

    def _persist_run(self, run: RunMetadata) -> None:
        """Write the audit row; never raises."""
        try:
            with connect(self.config, self.db_path) as conn:
                run.run_id = RunMetadataRepository(conn).insert_run(run)
        except Exception as exc:
            logger.error(
                "Failed to persist RunMetadata for run_slug=%s: %s", run.run_slug, exc
            )
