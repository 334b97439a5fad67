"""
Answer extraction: onboarding answers → ``UserPreferenceProfile``.

Pure functions, no I/O. The same answers always produce the same profile.

Signals
-------
intentions:
    Selected options of the intentions and life-situation questions,
    lower-cased, whitespace runs collapsed to ``_``, de-duplicated in
    first-seen order. No matching answers → empty tuple ("no signal").

experience_by_discipline:
    Selected options of the practice-levels question, each expected as
    ``discipline:level``. Anything that does not split into exactly two
    non-empty parts is skipped. A later option for the same discipline
    overwrites the earlier level (last wins).

time_commitment:
    First selected option of the time-commitment question, else the
    configured default bucket.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Optional

from ora_recommender.config import OnboardingConfig
from ora_recommender.models.onboarding import OnboardingAnswer, UserPreferenceProfile

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class ExperienceOption:
    """A validated ``discipline:level`` option."""

    discipline: str
    level: str


def normalize_intention(token: str) -> str:
    """Lower-case ``token`` and replace each whitespace run with ``_``."""
    return _WHITESPACE.sub("_", token.strip().lower())


def parse_experience_option(option: str) -> Optional[ExperienceOption]:
    """Parse ``"discipline:level"``; return ``None`` for anything malformed."""
    parts = option.split(":")
    if len(parts) != 2:
        return None
    discipline, level = (p.strip().lower() for p in parts)
    if not discipline or not level:
        return None
    return ExperienceOption(discipline=discipline, level=level)


def extract_profile(
    answers: Iterable[OnboardingAnswer],
    config: Optional[OnboardingConfig] = None,
) -> UserPreferenceProfile:
    """Build a preference profile from one submission's answers.

    Args:
        answers: Answers in recorded order.
        config:  Question-id settings; defaults to ``OnboardingConfig()``.

    Returns:
        A new ``UserPreferenceProfile``.
    """
    cfg = config or OnboardingConfig()
    intention_questions = {cfg.intentions_question_id, cfg.life_situation_question_id}

    intentions: list[str] = []
    seen: set[str] = set()
    experience: dict[str, str] = {}
    time_commitment: Optional[str] = None

    for answer in answers:
        qid = answer.question_id

        if qid in intention_questions:
            for option in answer.selected_options:
                token = normalize_intention(option)
                if token and token not in seen:
                    seen.add(token)
                    intentions.append(token)

        elif qid == cfg.practice_levels_question_id:
            for option in answer.selected_options:
                parsed = parse_experience_option(option)
                if parsed is None:
                    logger.debug("Skipping malformed practice-level option %r", option)
                    continue
                experience[parsed.discipline] = parsed.level

        elif qid == cfg.time_commitment_question_id and time_commitment is None:
            if answer.selected_options and answer.selected_options[0].strip():
                time_commitment = answer.selected_options[0].strip()

    return UserPreferenceProfile(
        intentions=tuple(intentions),
        experience_by_discipline=experience,
        time_commitment=time_commitment or cfg.default_time_commitment,
    )
