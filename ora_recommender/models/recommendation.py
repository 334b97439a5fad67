"""
Recommendation models.

``ExclusionSet`` and ``ScoredCandidate`` live only inside one pipeline run.
``RecommendationRecord`` is the persisted output; it is created fresh by
every run and never updated in place.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from ora_recommender.taxonomy.practice_taxonomy import Trigger


@dataclass(frozen=True)
class ExclusionSet:
    """Content a given run must never recommend.

    Attributes:
        completed_ids:      Items consumed past the completion threshold.
        active_program_ids: Items inside programs the user is enrolled in.
    """

    completed_ids: frozenset[str] = frozenset()
    active_program_ids: frozenset[str] = frozenset()

    def __contains__(self, content_id: object) -> bool:
        return content_id in self.completed_ids or content_id in self.active_program_ids

    def __len__(self) -> int:
        return len(self.all_ids)

    @property
    def all_ids(self) -> frozenset[str]:
        return self.completed_ids | self.active_program_ids

    @classmethod
    def of(
        cls,
        completed: Iterable[str] = (),
        active_program: Iterable[str] = (),
    ) -> "ExclusionSet":
        return cls(frozenset(completed), frozenset(active_program))


@dataclass(frozen=True)
class ScoredCandidate:
    """A candidate id with its relevance score in [0, 1]."""

    content_id: str
    score: float


class RecommendationBasis(BaseModel):
    """Snapshot of the inputs a run was computed from."""

    model_config = ConfigDict(frozen=True)

    intentions: list[str]
    experience_levels: dict[str, str]
    time_commitment: str
    completed_content_ids: list[str]
    active_program_content_ids: list[str]


class RecommendationMetadata(BaseModel):
    """Run statistics persisted alongside the ranked ids.

    ``total_candidates_scored`` and ``average_score`` cover every candidate
    that survived exclusion and the score floor, before truncation.
    """

    model_config = ConfigDict(frozen=True)

    total_candidates_scored: int
    average_score: float
    trigger: Trigger


class RecommendationRecord(BaseModel):
    """Persisted ranked recommendations for one user and one run.

    Attributes:
        uid:               Owner.
        content_ids:       Ranked ids, highest score first.
        scores:            Score per id in ``content_ids`` (no other keys).
        generated_at:      UTC time the run produced this record.
        algorithm_version: Scorer version that produced the scores.
        based_on:          Provenance snapshot.
        metadata:          Run statistics and trigger.
    """

    model_config = ConfigDict(frozen=True)

    uid: str
    content_ids: list[str]
    scores: dict[str, float]
    generated_at: datetime
    algorithm_version: str
    based_on: RecommendationBasis
    metadata: RecommendationMetadata

    @field_validator("content_ids")
    @classmethod
    def validate_unique_ids(cls, v: list[str]) -> list[str]:
        if len(set(v)) != len(v):
            raise ValueError("content_ids must not contain duplicates.")
        return v

    @model_validator(mode="after")
    def validate_scores_match_ids(self) -> "RecommendationRecord":
        if set(self.scores) != set(self.content_ids):
            raise ValueError("scores keys must match content_ids exactly.")
        for cid, score in self.scores.items():
            if not 0.0 <= score <= 1.0:
                raise ValueError(f"score for {cid} out of [0, 1]: {score}.")
        return self

    def same_result_as(self, other: "RecommendationRecord") -> bool:
        """True when both records rank the same ids with the same scores."""
        return self.content_ids == other.content_ids and self.scores == other.scores
