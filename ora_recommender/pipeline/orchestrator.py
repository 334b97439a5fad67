"""
Recommendation orchestration: the three ways a user's pipeline gets run.

  On completion:  ``on_onboarding_submitted()`` runs the pipeline once for a
                  completed submission. In-progress submissions are ignored.
  Weekly batch:   ``run_weekly()`` runs every onboarded user, ``batch_size``
                  users at a time.
  On demand:      ``run_on_demand()`` validates the uid and the user, then
                  runs the pipeline synchronously.

Failure isolation (weekly batch)
--------------------------------
Users in one batch run concurrently on a ``ThreadPoolExecutor``; the next
batch starts only after the whole current batch finished. A user whose run
raises is logged with uid and failing step, recorded in
``BatchResult.failures`` and skipped. Nothing is retried.

Batch status:
  success  no user failed (including an empty population)
  partial  some users failed, at least one succeeded
  failed   every user failed

Each weekly run writes one ``run_metadata`` row (``run_kind='weekly_batch'``)
at start and updates it at finish. Audit failures are logged, never raised.

Scheduling
----------
The orchestrator has no timer of its own. ``ora-recs start-scheduler``
calls ``ora-recs run-weekly`` on the configured weekday/time, or use cron::

    #   0 3 * * 1  cd /srv/ora-recommender && .venv/bin/ora-recs run-weekly
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional
from uuid import uuid4

from ora_recommender.config import AppConfig
from ora_recommender.db.connection import connect
from ora_recommender.db.repositories.recommendation_repo import RunMetadataRepository
from ora_recommender.db.repositories.user_repo import OnboardingRepository, UserRepository
from ora_recommender.errors import OnboardingIncompleteError, UserNotFoundError
from ora_recommender.models.content import UserAccount
from ora_recommender.models.meta import RunMetadata
from ora_recommender.models.onboarding import OnboardingSubmission
from ora_recommender.pipeline.run import UserRecommendationPipeline, UserRunResult
from ora_recommender.taxonomy.practice_taxonomy import Trigger
from ora_recommender.utils.logging import run_context
from ora_recommender.utils.time_utils import utc_today, utcnow

logger = logging.getLogger(__name__)


# ── Result types ──────────────────────────────────────────────────────────────

@dataclass
class UserFailure:
    """One user's failure inside a weekly batch.

    Attributes:
        uid:   User whose run raised.
        step:  Pipeline step that failed (``"unknown"`` if not reported).
        error: Exception message.
    """

    uid:   str
    step:  str
    error: str


@dataclass
class BatchResult:
    """Tally of one weekly run.

    Attributes:
        run_slug:    Audit row identifier.
        run_date:    UTC date used as the run key.
        started_at:  UTC start.
        finished_at: UTC end.
        total_users: Users selected.
        succeeded:   Users with a persisted record.
        failed:      Users whose run raised.
        failures:    Per-user failure details.
        status:      ``success``, ``partial`` or ``failed``.
    """

    run_slug:    str
    run_date:    date
    started_at:  datetime
    finished_at: Optional[datetime] = None
    total_users: int = 0
    succeeded:   int = 0
    failed:      int = 0
    failures:    list[UserFailure] = field(default_factory=list)
    status:      str = "started"


# ── Orchestrator ──────────────────────────────────────────────────────────────

class RecommendationOrchestrator:
    """Entry points that run the user pipeline.

    Args:
        config:  AppConfig for all runs.
        db_path: Override DB path (defaults to config.database.db_path).
    """

    def __init__(self, config: AppConfig, db_path: Optional[str] = None) -> None:
        self.config = config
        self.db_path = db_path or config.database.db_path
        self.pipeline = UserRecommendationPipeline(config, db_path=self.db_path)

    # ── On completion ─────────────────────────────────────────────────────────

    def on_onboarding_submitted(
        self, submission: OnboardingSubmission
    ) -> Optional[UserRunResult]:
        """Run the pipeline for a newly stored submission.

        Returns:
            The run result, or ``None`` when the submission is not completed.
        """
        if not submission.is_completed:
            logger.debug(
                "Ignoring %s onboarding submission for user %s",
                submission.status.value, submission.uid,
            )
            return None
        logger.info("Onboarding completed for user %s", submission.uid)
        return self.pipeline.run(submission.uid, Trigger.ONBOARDING_COMPLETE)

    def handle_new_submission(
        self, submission: OnboardingSubmission
    ) -> Optional[UserRunResult]:
        """Store ``submission`` and fire the on-completion trigger.

        The user row is created if it does not exist yet. A completed
        submission also sets the user's onboarding flag and, when it has no
        ``completed_at``, is stamped with the current time.
        """
        submission = submission.stamped(utcnow())
        with connect(self.config, self.db_path) as conn:
            users = UserRepository(conn)
            if not users.exists(submission.uid):
                users.upsert(UserAccount(uid=submission.uid))
            OnboardingRepository(conn).insert(submission)
            if submission.is_completed:
                users.mark_onboarding_completed(submission.uid)
        return self.on_onboarding_submitted(submission)

    # ── On demand ─────────────────────────────────────────────────────────────

    def run_on_demand(self, uid: Optional[str]) -> UserRunResult:
        """Regenerate recommendations for one user, synchronously.

        Raises:
            ValueError: ``uid`` is missing or not a non-empty string.
            UserNotFoundError: No such user.
            OnboardingIncompleteError: The user has not completed onboarding.
            NotEligibleError: Other data errors (e.g. no answers).
            PipelineStepError: Internal failure.
        """
        if not isinstance(uid, str) or not uid.strip():
            raise ValueError("uid is required")
        uid = uid.strip()

        with connect(self.config, self.db_path) as conn:
            user = UserRepository(conn).get(uid)
        if user is None:
            raise UserNotFoundError(uid)
        if not user.onboarding_completed:
            raise OnboardingIncompleteError(uid)

        return self.pipeline.run(uid, Trigger.MANUAL)

    # ── Weekly batch ──────────────────────────────────────────────────────────

    def run_weekly(self, run_date: Optional[date] = None) -> BatchResult:
        """Run the pipeline for every onboarded user, batch by batch."""
        result = BatchResult(
            run_slug=str(uuid4()),
            run_date=run_date or utc_today(),
            started_at=utcnow(),
        )

        with connect(self.config, self.db_path) as conn:
            uids = UserRepository(conn).list_onboarded_uids()
        result.total_users = len(uids)

        batch_cfg = self.config.batch
        run = self._persist_run_start(result)
        logger.info(
            "Weekly run | run_slug=%s | users=%d | batch_size=%d",
            result.run_slug, len(uids), batch_cfg.batch_size,
        )

        n_batches = (len(uids) + batch_cfg.batch_size - 1) // batch_cfg.batch_size
        for i in range(0, len(uids), batch_cfg.batch_size):
            batch = uids[i:i + batch_cfg.batch_size]
            logger.info(
                "[%d/%d] Processing %d user(s)",
                i // batch_cfg.batch_size + 1, n_batches, len(batch),
            )
            for failure in self._run_batch(batch, result.run_date):
                if failure is None:
                    result.succeeded += 1
                else:
                    result.failed += 1
                    result.failures.append(failure)

        result.finished_at = utcnow()
        if result.failed == 0:
            result.status = "success"
        elif result.succeeded > 0:
            result.status = "partial"
        else:
            result.status = "failed"

        self._persist_run_finish(run, result)
        logger.info(
            "Weekly run finished | status=%s | ok=%d | failed=%d",
            result.status, result.succeeded, result.failed,
        )
        return result

    # ── Private helpers ───────────────────────────────────────────────────────

    def _run_batch(
        self, uids: list[str], run_date: date
    ) -> list[Optional[UserFailure]]:
        """Run one batch concurrently; one entry per user, ``None`` on success."""
        workers = min(self.config.batch.workers, len(uids))
        outcomes: list[Optional[UserFailure]] = []
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = {
                pool.submit(self._run_user_isolated, uid, run_date): uid for uid in uids
            }
            for future in as_completed(futures):
                outcomes.append(future.result())
        return outcomes

    def _run_user_isolated(self, uid: str, run_date: date) -> Optional[UserFailure]:
        try:
            self.pipeline.run(uid, Trigger.WEEKLY_CRON, run_date=run_date)
            return None
        except Exception as exc:
            step = getattr(exc, "step", "unknown")
            logger.error(
                "Weekly run failed for user %s at step %s: %s", uid, step, exc,
                extra=run_context(uid, Trigger.WEEKLY_CRON.value, str(step)),
            )
            return UserFailure(uid=uid, step=str(step), error=str(exc))

    def _persist_run_start(self, result: BatchResult) -> Optional[RunMetadata]:
        """Write the initial batch run row; ``None`` if persistence fails."""
        run = RunMetadata(
            run_slug=result.run_slug,
            run_kind="weekly_batch",
            trigger=Trigger.WEEKLY_CRON.value,
            config_snapshot={
                "batch": self.config.batch.model_dump(),
                "run_date": result.run_date.isoformat(),
                "total_users": result.total_users,
            },
            started_at=result.started_at,
        )
        try:
            with connect(self.config, self.db_path) as conn:
                run.run_id = RunMetadataRepository(conn).insert_run(run)
        except Exception as exc:
            logger.error("Failed to persist weekly run start: %s", exc)
            return None
        return run

    def _persist_run_finish(
        self, run: Optional[RunMetadata], result: BatchResult
    ) -> None:
        if run is None:
            return
        run.status = result.status
        run.rows_processed = result.succeeded
        run.rows_failed = result.failed
        run.finished_at = result.finished_at
        if result.failures:
            run.error_message = "; ".join(
                f"{f.uid}@{f.step}: {f.error}" for f in result.failures
            )[:2000]
        try:
            with connect(self.config, self.db_path) as conn:
                RunMetadataRepository(conn).update_run(run)
        except Exception as exc:
            logger.error("Failed to persist weekly run finish: %s", exc)
