"""
Static vocabulary for the recommendation engine.

  - ``Trigger``            — what started a pipeline run.
  - ``TimeCommitment``     — daily time-commitment buckets from onboarding.
  - ``PublicationState``   — catalog item lifecycle; only READY is eligible.
  - ``EnrollmentStatus``   — program enrollment lifecycle.
  - ``SubmissionStatus``   — onboarding submission lifecycle.
  - ``INTENTION_TO_DISCIPLINES`` — intention token → relevant disciplines.
  - ``EXPERIENCE_LEVEL_ORDER``   — level token → ordinal.

Both lookup tables are read-only mappings built once at import time.
Tokens are listed in English and in the app's French onboarding locale.

This module has NO imports from any other ``ora_recommender`` package.
"""

from enum import StrEnum
from types import MappingProxyType
from typing import Mapping


class Trigger(StrEnum):
    """Entry point that started a pipeline run."""

    ONBOARDING_COMPLETE = "onboarding_complete"
    WEEKLY_CRON = "weekly_cron"
    MANUAL = "manual"


class TimeCommitment(StrEnum):
    """Daily practice time bucket chosen during onboarding."""

    SHORT = "5-10"
    MEDIUM = "10-20"
    LONG = "20-30"
    EXTENDED = "30+"


class PublicationState(StrEnum):
    """Catalog item lifecycle."""

    DRAFT = "draft"
    PROCESSING = "processing"
    READY = "ready"
    ARCHIVED = "archived"


class EnrollmentStatus(StrEnum):
    """Program enrollment lifecycle."""

    ACTIVE = "active"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


class SubmissionStatus(StrEnum):
    """Onboarding submission lifecycle."""

    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


_MEDITATION_BREATH_MASSAGE = frozenset({"meditation", "breathing", "respiration", "massage"})
_YOGA_BREATH = frozenset({"yoga", "breathing", "respiration"})
_MEDITATION_BREATH = frozenset({"meditation", "breathing", "respiration"})
_YOGA_MASSAGE = frozenset({"yoga", "massage"})
_MEDITATION = frozenset({"meditation"})
_MEDITATION_YOGA = frozenset({"meditation", "yoga"})

INTENTION_TO_DISCIPLINES: Mapping[str, frozenset[str]] = MappingProxyType({
    "reduce_stress":       _MEDITATION_BREATH_MASSAGE,
    "improve_sleep":       _MEDITATION_BREATH_MASSAGE,
    "increase_energy":     _YOGA_BREATH,
    "emotional_balance":   _MEDITATION_BREATH,
    "physical_wellness":   _YOGA_MASSAGE,
    "develop_mindfulness": _MEDITATION,
    "personal_growth":     _MEDITATION_YOGA,
    # French onboarding tokens
    "reduire_stress":               _MEDITATION_BREATH_MASSAGE,
    "ameliorer_sommeil":            _MEDITATION_BREATH_MASSAGE,
    "augmenter_energie":            _YOGA_BREATH,
    "equilibre_emotionnel":         _MEDITATION_BREATH,
    "bien_etre_physique":           _YOGA_MASSAGE,
    "developper_pleine_conscience": _MEDITATION,
    "croissance_personnelle":       _MEDITATION_YOGA,
})

EXPERIENCE_LEVEL_ORDER: Mapping[str, int] = MappingProxyType({
    "beginner":      0,
    "debutant":      0,
    "débutant":      0,
    "intermediate":  1,
    "intermediaire": 1,
    "intermédiaire": 1,
    "advanced":      2,
    "avance":        2,
    "avancé":        2,
    "expert":        3,
})

DEFAULT_EXPERIENCE_LEVEL = "beginner"


def relevant_disciplines(intention: str) -> frozenset[str]:
    """Return the disciplines an intention token points at (empty if unknown)."""
    return INTENTION_TO_DISCIPLINES.get(intention, frozenset())


def level_ordinal(level: str) -> int:
    """Return the ordinal of a level token; unknown tokens rank as beginner."""
    return EXPERIENCE_LEVEL_ORDER.get(level.strip().lower(), 0)
