"""
Recommendation ranker: score candidates, apply exclusions and the score
floor, sort, truncate.

Usage flow
----------
1. score_candidates(candidates, profile, exclusions)
   -> list[ScoredCandidate]  (excluded items are never scored)

2. rank(scored, exclusions, limit=5)
   -> RankedCandidates  (eligible: all survivors sorted, top: first ``limit``)

Ordering
--------
Score descending. Equal scores keep the order the candidates arrived in
(catalog order), via Python's stable sort.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from ora_recommender.models.content import ContentItem
from ora_recommender.models.onboarding import UserPreferenceProfile
from ora_recommender.models.recommendation import ExclusionSet, ScoredCandidate
from ora_recommender.recommendations.scorer import score

MIN_SCORE = 0.1


@dataclass(frozen=True)
class RankedCandidates:
    """Ranking output.

    Attributes:
        eligible: Every candidate that passed exclusion and the floor, sorted.
        top:      The first ``limit`` of ``eligible``.
    """

    eligible: tuple[ScoredCandidate, ...]
    top: tuple[ScoredCandidate, ...]

    @property
    def average_score(self) -> float:
        if not self.eligible:
            return 0.0
        return sum(c.score for c in self.eligible) / len(self.eligible)


def score_candidates(
    candidates: Iterable[ContentItem],
    profile: UserPreferenceProfile,
    exclusions: ExclusionSet = ExclusionSet(),
) -> list[ScoredCandidate]:
    """Score every non-excluded candidate, preserving input order."""
    return [
        ScoredCandidate(content_id=item.content_id, score=score(item, profile))
        for item in candidates
        if item.content_id not in exclusions
    ]


def rank(
    scored: Iterable[ScoredCandidate],
    exclusions: ExclusionSet,
    limit: int = 5,
) -> RankedCandidates:
    """Filter, sort and truncate scored candidates.

    Excluded ids are dropped here too, so scoring excluded items first
    gives the same result as skipping them.

    Args:
        scored:     Scored candidates in catalog order.
        exclusions: Ids never to return.
        limit:      Maximum number of ids in ``top``.

    Returns:
        ``RankedCandidates``.
    """
    survivors = [
        c for c in scored
        if c.content_id not in exclusions and c.score >= MIN_SCORE
    ]
    ordered = tuple(sorted(survivors, key=lambda c: -c.score))
    return RankedCandidates(eligible=ordered, top=ordered[:limit])
