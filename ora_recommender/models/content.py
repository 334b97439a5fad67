"""
Catalog and user-activity models read from collaborator collections.

All three are owned by other systems; the engine only reads them.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator

from ora_recommender.taxonomy.practice_taxonomy import EnrollmentStatus, PublicationState


class ContentItem(BaseModel):
    """A catalog item that can be recommended.

    Attributes:
        content_id:        Catalog id.
        title:             Display title.
        discipline:        Practice discipline (e.g. ``"meditation"``).
        category:          Fallback used when ``discipline`` is empty.
        difficulty:        Level token; ``None`` is treated as beginner.
        duration_sec:      Playback length in seconds.
        publication_state: Only ``ready`` items are eligible.
        program_id:        Program the item belongs to, if any.
    """

    model_config = ConfigDict(frozen=True)

    content_id: str
    title: str = ""
    discipline: str = ""
    category: Optional[str] = None
    difficulty: Optional[str] = None
    duration_sec: int = 0
    publication_state: PublicationState = PublicationState.READY
    program_id: Optional[str] = None

    @field_validator("duration_sec")
    @classmethod
    def validate_duration(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"duration_sec must be >= 0, got {v}.")
        return v

    @property
    def scoring_discipline(self) -> str:
        """Lower-cased discipline, falling back to category."""
        return (self.discipline or self.category or "").lower()

    @property
    def duration_minutes(self) -> float:
        return self.duration_sec / 60


class ActivityRecord(BaseModel):
    """One user's progress on one content item."""

    model_config = ConfigDict(frozen=True)

    activity_id: Optional[int] = None
    uid: str
    content_id: str
    progress_percent: float
    completed_at: Optional[datetime] = None

    @field_validator("progress_percent")
    @classmethod
    def validate_progress(cls, v: float) -> float:
        if not 0.0 <= v <= 100.0:
            raise ValueError(f"progress_percent must be in [0, 100], got {v}.")
        return v


class ProgramEnrollment(BaseModel):
    """A user's membership in a multi-day program."""

    model_config = ConfigDict(frozen=True)

    enrollment_id: Optional[int] = None
    uid: str
    program_id: str
    status: EnrollmentStatus = EnrollmentStatus.ACTIVE
    current_day: int = 1
    total_days: int = 1


class UserAccount(BaseModel):
    """The slice of the user document this engine reads."""

    model_config = ConfigDict(frozen=True)

    uid: str
    display_name: Optional[str] = None
    onboarding_completed: bool = False
