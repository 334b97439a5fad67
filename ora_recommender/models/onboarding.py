"""
Onboarding input models and the derived preference profile.

``OnboardingAnswer`` is one answer as recorded by the app; immutable once
written. ``OnboardingSubmission`` groups the answers of one onboarding
pass for one user. ``UserPreferenceProfile`` is derived from a submission
on every run and never stored as its own entity.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ora_recommender.taxonomy.practice_taxonomy import SubmissionStatus


class OnboardingAnswer(BaseModel):
    """One answer to one onboarding question.

    Attributes:
        question_id:      Id of the question answered.
        selected_options: Option tokens in the order the user picked them.
        free_text_answer: Optional free-form text.
        answered_at:      When the answer was recorded.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    question_id: str = Field(alias="questionId")
    selected_options: tuple[str, ...] = Field(default=(), alias="selectedOptions")
    free_text_answer: Optional[str] = Field(default=None, alias="freeTextAnswer")
    answered_at: Optional[datetime] = Field(default=None, alias="answeredAt")


class OnboardingSubmission(BaseModel):
    """One onboarding pass for a user.

    Attributes:
        response_id:    Auto-assigned DB PK; ``None`` before insertion.
        uid:            Owner.
        status:         ``completed`` or ``in_progress``.
        config_version: Version of the onboarding questionnaire answered.
        answers:        Ordered answers.
        completed_at:   Set when ``status == completed``.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    response_id: Optional[int] = None
    uid: str
    status: SubmissionStatus = SubmissionStatus.COMPLETED
    config_version: str = "1"
    answers: tuple[OnboardingAnswer, ...] = ()
    completed_at: Optional[datetime] = None

    @field_validator("uid")
    @classmethod
    def validate_uid(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("uid must be a non-empty string.")
        return v

    @property
    def is_completed(self) -> bool:
        return self.status == SubmissionStatus.COMPLETED

    def stamped(self, now: datetime) -> "OnboardingSubmission":
        """Copy with ``completed_at = now`` if completed but undated; else ``self``.

        The profile is read from the newest ``completed_at``, so a fresh
        completed submission must carry its completion time.
        """
        if self.is_completed and self.completed_at is None:
            return self.model_copy(update={"completed_at": now})
        return self


class UserPreferenceProfile(BaseModel):
    """Preference signals extracted from onboarding answers.

    ``intentions`` keeps first-seen order so downstream output is
    reproducible; it has set semantics (no duplicates).
    ``experience_by_discipline`` keeps insertion order of first appearance;
    a later duplicate discipline overwrites the value in place.
    """

    model_config = ConfigDict(frozen=True)

    intentions: tuple[str, ...] = ()
    experience_by_discipline: dict[str, str] = {}
    time_commitment: str
