"""
Recommendation writer: build a ``RecommendationRecord`` and persist it under
the run key and the ``latest`` alias.

Keys
----
``weekly_cron`` runs are keyed by UTC date (``2025-12-08``); one-off runs
by the trigger name (``onboarding_complete``, ``manual``). Every run also
overwrites ``latest``.

Atomicity
---------
``write_recommendation()`` issues the run-keyed write first and the
``latest`` write second, on the caller's connection. Open that connection
with ``connect(config, immediate=True)``: the two writes then commit or
roll back together. A failure of the first write raises
``RecommendationWriteError``; a failure of the second raises
``LatestAliasWriteError``.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import date, datetime

from ora_recommender.db.repositories.recommendation_repo import RecommendationRepository
from ora_recommender.errors import LatestAliasWriteError, RecommendationWriteError
from ora_recommender.models.onboarding import UserPreferenceProfile
from ora_recommender.models.recommendation import (
    ExclusionSet,
    RecommendationBasis,
    RecommendationMetadata,
    RecommendationRecord,
)
from ora_recommender.recommendations.ranker import MIN_SCORE, RankedCandidates
from ora_recommender.taxonomy.practice_taxonomy import Trigger

logger = logging.getLogger(__name__)

LATEST_KEY = "latest"


def run_key_for(trigger: Trigger, run_date: date) -> str:
    """Document key for a run: the date for weekly runs, else the trigger name."""
    if trigger == Trigger.WEEKLY_CRON:
        return run_date.isoformat()
    return trigger.value


def build_record(
    uid: str,
    profile: UserPreferenceProfile,
    exclusions: ExclusionSet,
    ranked: RankedCandidates,
    trigger: Trigger,
    algorithm_version: str,
    generated_at: datetime,
    max_recommendations: int,
) -> RecommendationRecord:
    """Assemble the persisted record for one run.

    Raises:
        ValueError: If ``ranked.top`` breaks the size, floor or exclusion rules.
    """
    top = ranked.top
    if len(top) > max_recommendations:
        raise ValueError(
            f"{len(top)} recommendations exceed the maximum of {max_recommendations}."
        )
    for c in top:
        if c.content_id in exclusions:
            raise ValueError(f"Excluded content {c.content_id} reached the output.")
        if c.score < MIN_SCORE:
            raise ValueError(f"Content {c.content_id} is below the score floor.")

    return RecommendationRecord(
        uid=uid,
        content_ids=[c.content_id for c in top],
        scores={c.content_id: c.score for c in top},
        generated_at=generated_at,
        algorithm_version=algorithm_version,
        based_on=RecommendationBasis(
            intentions=list(profile.intentions),
            experience_levels=dict(profile.experience_by_discipline),
            time_commitment=profile.time_commitment,
            completed_content_ids=sorted(exclusions.completed_ids),
            active_program_content_ids=sorted(exclusions.active_program_ids),
        ),
        metadata=RecommendationMetadata(
            total_candidates_scored=len(ranked.eligible),
            average_score=ranked.average_score,
            trigger=trigger,
        ),
    )


def write_recommendation(
    conn: sqlite3.Connection,
    record: RecommendationRecord,
    run_key: str,
) -> None:
    """Persist ``record`` under ``run_key`` and then under ``latest``.

    Args:
        conn:    Connection owning the transaction (see module docstring).
        record:  The record to write.
        run_key: Run-identifying key; must not be ``latest``.

    Raises:
        ValueError: If ``run_key`` is the alias key itself.
        RecommendationWriteError: The run-keyed write failed.
        LatestAliasWriteError: The run-keyed write succeeded, ``latest`` failed.
    """
    if run_key == LATEST_KEY:
        raise ValueError(f"'{LATEST_KEY}' is reserved for the alias document.")

    repo = RecommendationRepository(conn)
    try:
        repo.put(record.uid, run_key, record)
    except sqlite3.Error as exc:
        raise RecommendationWriteError(record.uid, run_key, exc) from exc

    try:
        repo.put(record.uid, LATEST_KEY, record)
    except sqlite3.Error as exc:
        raise LatestAliasWriteError(record.uid, LATEST_KEY, exc) from exc

    logger.info(
        "Saved %d recommendation(s) for user %s as %s",
        len(record.content_ids), record.uid, run_key,
    )
