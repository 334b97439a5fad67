"""
Candidate pool: eligible catalog items plus the user's exclusion set.

Reads only; never writes.

Exclusions
----------
completed:
    Items in the user's activity log with ``progress_percent >= 80``.
active program:
    Items whose ``program_id`` is one of the user's *active* enrollments
    (completed and abandoned enrollments do not exclude anything).

Program lookup ceiling
----------------------
The catalog owner answers "items in programs X, Y, ..." for at most
``program_lookup_limit`` program ids per call (10 by default). Only the
first ``program_lookup_limit`` active programs (oldest enrollment first)
are resolved; the rest are reported in ``CandidatePool.unresolved_program_ids``
and logged. Items from unresolved programs can therefore be recommended.

Scalability
-----------
The catalog is streamed in ``catalog_read_batch_size`` chunks. The pool is
still held in memory as one list, which is fine at current catalog sizes.
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass

from ora_recommender.config import RecommendationConfig
from ora_recommender.db.repositories.content_repo import (
    ActivityRepository,
    ContentRepository,
    EnrollmentRepository,
)
from ora_recommender.models.content import ContentItem
from ora_recommender.models.recommendation import ExclusionSet

logger = logging.getLogger(__name__)

COMPLETION_THRESHOLD_PCT = 80.0


@dataclass(frozen=True)
class CandidatePool:
    """Output of ``load_candidate_pool()``.

    Attributes:
        candidates:             Ready catalog items in catalog order.
        exclusions:             Ids this run must not recommend.
        unresolved_program_ids: Active programs past the lookup ceiling.
    """

    candidates: tuple[ContentItem, ...]
    exclusions: ExclusionSet
    unresolved_program_ids: tuple[str, ...] = ()


def load_candidate_pool(
    conn: sqlite3.Connection,
    uid: str,
    config: RecommendationConfig,
) -> CandidatePool:
    """Load ready catalog items and the exclusion set for ``uid``.

    Args:
        conn:   Open connection.
        uid:    Target user.
        config: Batch size and program-lookup ceiling.

    Returns:
        ``CandidatePool`` for this run.
    """
    content_repo = ContentRepository(conn)

    candidates: list[ContentItem] = []
    for batch in content_repo.iter_ready(batch_size=config.catalog_read_batch_size):
        candidates.extend(batch)

    completed = ActivityRepository(conn).completed_content_ids(
        uid, COMPLETION_THRESHOLD_PCT
    )

    program_ids = EnrollmentRepository(conn).active_program_ids(uid)
    resolved = program_ids[: config.program_lookup_limit]
    unresolved = tuple(program_ids[config.program_lookup_limit:])
    if unresolved:
        logger.warning(
            "User %s has %d active programs; resolving only %d, skipping %s",
            uid, len(program_ids), len(resolved), list(unresolved),
        )
    program_content = content_repo.ids_in_programs(resolved)

    logger.debug(
        "Candidate pool for %s: %d ready items, %d completed, %d in active programs",
        uid, len(candidates), len(completed), len(program_content),
    )
    return CandidatePool(
        candidates=tuple(candidates),
        exclusions=ExclusionSet.of(completed, program_content),
        unresolved_program_ids=unresolved,
    )
