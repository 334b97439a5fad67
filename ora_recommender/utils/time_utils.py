"""
Time helpers shared by the pipeline, writer and scheduler.

All persisted timestamps are timezone-aware UTC. Run keys for scheduled
runs are UTC calendar dates so two workers on different hosts agree on
the key for the same week.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional


def utcnow() -> datetime:
    """Return the current UTC datetime (timezone-aware)."""
    return datetime.now(tz=timezone.utc)


def utc_today() -> date:
    """Return today's UTC calendar date."""
    return utcnow().date()


def parse_utc(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 string into an aware UTC datetime.

    Naive values are assumed to already be UTC. ``None`` and empty strings
    pass through as ``None``.
    """
    if not value:
        return None
    dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def next_weekly_run(weekday: int, hhmm: str, now: Optional[datetime] = None) -> datetime:
    """Return the next UTC datetime falling on ``weekday`` at ``hhmm``.

    Args:
        weekday: 0 = Monday … 6 = Sunday.
        hhmm:    24-hour ``HH:MM`` string.
        now:     Reference time (defaults to ``utcnow()``).

    Returns:
        Aware UTC datetime strictly after ``now``.
    """
    now = now or utcnow()
    hour, minute = (int(p) for p in hhmm.split(":"))
    days_ahead = (weekday - now.weekday()) % 7
    candidate = datetime.combine(
        now.date() + timedelta(days=days_ahead),
        time(hour=hour, minute=minute),
        tzinfo=timezone.utc,
    )
    if candidate <= now:
        candidate += timedelta(days=7)
    return candidate
