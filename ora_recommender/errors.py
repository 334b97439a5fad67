"""
Exception types raised by the recommendation engine.

Three families, matching how callers must react:

  - ``NotEligibleError`` (data errors): the user cannot be scored at all.
    Raised before any candidate is loaded; callers report "not eligible"
    rather than a generic failure.
  - ``PipelineStepError``: a read or compute step raised. Carries the step
    the run was attempting so batch logs can say where it broke.
  - ``RecommendationWriteError``: persistence failed. ``LatestAliasWriteError``
    marks a failure of the second ("latest") write so it can be told apart
    from a failure of the run-keyed write.

Input validation errors (missing / malformed uid) are plain ``ValueError``.
"""

from __future__ import annotations


class RecommendationError(RuntimeError):
    """Base class for all engine errors."""


# ── Data errors ───────────────────────────────────────────────────────────────


class NotEligibleError(RecommendationError):
    """The user exists in some form but cannot be scored.

    Attributes:
        uid:  The user the run targeted.
        step: Always ``"profile_built"``; eligibility is decided there.
    """

    step = "profile_built"

    def __init__(self, uid: str, message: str) -> None:
        self.uid = uid
        super().__init__(message)


class UserNotFoundError(NotEligibleError):
    """No user document exists for ``uid``."""

    def __init__(self, uid: str) -> None:
        super().__init__(uid, f"User {uid} not found")


class OnboardingIncompleteError(NotEligibleError):
    """The user has no completed onboarding submission."""

    def __init__(self, uid: str) -> None:
        super().__init__(uid, f"User {uid} has not completed onboarding")


class NoOnboardingAnswersError(NotEligibleError):
    """The latest completed submission carries zero answers."""

    def __init__(self, uid: str) -> None:
        super().__init__(uid, f"User {uid} has a completed onboarding with no answers")


# ── Pipeline errors ───────────────────────────────────────────────────────────


class PipelineStepError(RecommendationError):
    """A pipeline step raised while processing one user.

    Attributes:
        uid:  The user being processed.
        step: The state the run was trying to reach (e.g. ``"candidates_loaded"``).
    """

    def __init__(self, uid: str, step: str, cause: BaseException) -> None:
        self.uid = uid
        self.step = step
        super().__init__(f"Pipeline step '{step}' failed for user {uid}: {cause}")


class RecommendationWriteError(RecommendationError):
    """Persisting a RecommendationRecord failed.

    Attributes:
        uid: Owner of the record.
        key: The document key whose write failed.
    """

    def __init__(self, uid: str, key: str, cause: BaseException) -> None:
        self.uid = uid
        self.key = key
        super().__init__(f"Failed to write recommendations/{key} for user {uid}: {cause}")


class LatestAliasWriteError(RecommendationWriteError):
    """The run-keyed write succeeded but the "latest" alias write failed."""
