"""
Run metadata — the audit backbone.

``PipelineState`` is the lifecycle of one user's run::

    STARTED → PROFILE_BUILT → CANDIDATES_LOADED → SCORED → FILTERED → PERSISTED
                    ↘ FAILED (reachable from any step, carries the failed step)

``RunMetadata`` is the execution audit log written for every single-user
run and every weekly batch. It is the only model in the system that is
NOT frozen — its ``status``, counters, ``error_message`` and
``finished_at`` are updated as the run progresses.
"""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_validator

VALID_RUN_KINDS = frozenset({"user_run", "weekly_batch"})
VALID_RUN_STATUSES = frozenset({"started", "success", "partial", "failed", "skipped"})


class PipelineState(StrEnum):
    """Lifecycle of one user's pipeline run."""

    STARTED = "started"
    PROFILE_BUILT = "profile_built"
    CANDIDATES_LOADED = "candidates_loaded"
    SCORED = "scored"
    FILTERED = "filtered"
    PERSISTED = "persisted"
    FAILED = "failed"


class RunMetadata(BaseModel):
    """Pipeline execution audit record.

    Attributes:
        run_id:          Auto-assigned DB PK; ``None`` before insertion.
        run_slug:        UUID4 string uniquely identifying this run.
        run_kind:        ``user_run`` or ``weekly_batch``.
        trigger:         Trigger name that started the run.
        uid:             Target user for ``user_run``; ``None`` for batches.
        status:          Current execution status.
        state:           Last pipeline state reached (``user_run`` only).
        failed_step:     State the run was attempting when it failed.
        rows_processed:  Users processed (batch) or ids written (user run).
        rows_failed:     Users that failed (batch only).
        config_snapshot: ``AppConfig.model_dump()`` at run start.
        error_message:   Error description if the run failed.
        started_at:      UTC start time.
        finished_at:     UTC end time.
    """

    model_config = ConfigDict(frozen=False)

    run_id: Optional[int] = None
    run_slug: str
    run_kind: str
    trigger: str
    uid: Optional[str] = None
    status: str = "started"
    state: Optional[PipelineState] = None
    failed_step: Optional[str] = None
    rows_processed: int = 0
    rows_failed: int = 0
    config_snapshot: dict[str, Any] = {}
    error_message: Optional[str] = None
    started_at: datetime
    finished_at: Optional[datetime] = None

    @field_validator("run_kind")
    @classmethod
    def validate_run_kind(cls, v: str) -> str:
        if v not in VALID_RUN_KINDS:
            raise ValueError(
                f"Unknown run_kind '{v}'. Must be one of {sorted(VALID_RUN_KINDS)}."
            )
        return v

    @field_validator("status")
    @classmethod
    def validate_status(cls, v: str) -> str:
        if v not in VALID_RUN_STATUSES:
            raise ValueError(
                f"Unknown status '{v}'. Must be one of {sorted(VALID_RUN_STATUSES)}."
            )
        return v
