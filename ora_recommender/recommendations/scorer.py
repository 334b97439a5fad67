"""
Relevance scoring: one ``ContentItem`` + one ``UserPreferenceProfile`` → score.

Score formula (range 0–1)
-------------------------
    total = min(1.0,
        intention_score    * 0.6
        + experience_score * 0.4
        + time_bonus                 # additive, outside the 60/40 split
    )

Component explanations
----------------------
intention_score (0–1):
    Share of the user's intention tokens whose relevant disciplines match
    the item's discipline (case-insensitive substring). A profile with no
    intentions scores a neutral 0.5 for every item.

experience_score (0–1):
    diff = item level − user level, on beginner=0 … expert=3.
    User level: the level recorded for the item's discipline, else the
    first level recorded for any discipline, else beginner.

        diff ==  0  → 1.0   exact match
        diff == -1  → 0.8   slightly easier
        diff == +1  → 0.5   slightly harder
        diff  >  1  → 0.0   too advanced
        diff  < -1  → 0.3   much easier

time_bonus:
    +0.10 for a 5-10 min user and an item of ≤ 10 minutes,
    +0.05 for a 10-20 min user and an item of ≤ 20 minutes, else 0.

The weights and the diff table are business rules; change them only
together with ``ALGORITHM_VERSION`` in config.
"""

from __future__ import annotations

from dataclasses import dataclass

from ora_recommender.models.content import ContentItem
from ora_recommender.models.onboarding import UserPreferenceProfile
from ora_recommender.taxonomy.practice_taxonomy import (
    DEFAULT_EXPERIENCE_LEVEL,
    TimeCommitment,
    level_ordinal,
    relevant_disciplines,
)

INTENTION_WEIGHT = 0.6
EXPERIENCE_WEIGHT = 0.4
NEUTRAL_INTENTION_SCORE = 0.5

SHORT_BUCKET_BONUS = 0.1
SHORT_BUCKET_MAX_MINUTES = 10
MEDIUM_BUCKET_BONUS = 0.05
MEDIUM_BUCKET_MAX_MINUTES = 20

MAX_SCORE = 1.0


@dataclass(frozen=True)
class ScoreComponents:
    """All components of one item's relevance score.

    Attributes:
        intention_score:  0–1, intention coverage (0.5 when no intentions).
        experience_score: 0–1, from the level diff table.
        time_bonus:       0, 0.05 or 0.1.
        user_level:       Level token the experience score was computed against.
        level_diff:       item ordinal − user ordinal.
    """

    intention_score: float
    experience_score: float
    time_bonus: float
    user_level: str
    level_diff: int

    @property
    def total(self) -> float:
        """Weighted total, capped at 1.0."""
        return min(
            MAX_SCORE,
            INTENTION_WEIGHT * self.intention_score
            + EXPERIENCE_WEIGHT * self.experience_score
            + self.time_bonus,
        )


def intention_score(discipline: str, intentions: tuple[str, ...]) -> float:
    if not intentions:
        return NEUTRAL_INTENTION_SCORE
    matches = sum(
        1
        for intention in intentions
        if any(d in discipline for d in relevant_disciplines(intention))
    )
    return matches / len(intentions)


def resolve_user_level(profile: UserPreferenceProfile, discipline: str) -> str:
    """Level for ``discipline``, else the first recorded level, else beginner."""
    levels = profile.experience_by_discipline
    if levels.get(discipline):
        return levels[discipline]
    for level in levels.values():
        if level:
            return level
    return DEFAULT_EXPERIENCE_LEVEL


def experience_multiplier(level_diff: int) -> float:
    """Map item-minus-user level difference to the experience score."""
    if level_diff == 0:
        return 1.0
    if level_diff == -1:
        return 0.8
    if level_diff == 1:
        return 0.5
    if level_diff > 1:
        return 0.0
    return 0.3


def time_bonus(time_commitment: str, duration_minutes: float) -> float:
    if time_commitment == TimeCommitment.SHORT and duration_minutes <= SHORT_BUCKET_MAX_MINUTES:
        return SHORT_BUCKET_BONUS
    if time_commitment == TimeCommitment.MEDIUM and duration_minutes <= MEDIUM_BUCKET_MAX_MINUTES:
        return MEDIUM_BUCKET_BONUS
    return 0.0


def compute_score(item: ContentItem, profile: UserPreferenceProfile) -> ScoreComponents:
    """Compute every score component for one item.

    Args:
        item:    Candidate catalog item.
        profile: The user's extracted preferences.

    Returns:
        ``ScoreComponents``; use ``.total`` for the ranking score.
    """
    discipline = item.scoring_discipline
    user_level = resolve_user_level(profile, discipline)
    item_level = (item.difficulty or DEFAULT_EXPERIENCE_LEVEL).lower()
    diff = level_ordinal(item_level) - level_ordinal(user_level)

    return ScoreComponents(
        intention_score=intention_score(discipline, profile.intentions),
        experience_score=experience_multiplier(diff),
        time_bonus=time_bonus(profile.time_commitment, item.duration_minutes),
        user_level=user_level,
        level_diff=diff,
    )


def score(item: ContentItem, profile: UserPreferenceProfile) -> float:
    """Relevance score of ``item`` for ``profile``, in [0, 1]."""
    return compute_score(item, profile).total
