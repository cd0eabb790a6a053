"""Productivity scoring for live and finished sessions.

Every caller that needs a score (live stats, the remote sync payload and the
analytics productivity series) goes through :func:`productivity_score`.
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import Optional

from .models import Session, SessionStats

ACTIVE_WEIGHT = 0.7
DENSITY_WEIGHT = 0.3
# Activities per minute that saturate the density component.
DENSITY_CEILING = 10.0

_MS_PER_MINUTE = 60_000


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def break_time_ms(session: Session, now: Optional[datetime] = None) -> int:
    """Closed break durations plus the running part of an open break."""
    now = now or datetime.now()
    return sum(brk.elapsed_ms(now) for brk in session.breaks)


def active_time_ms(session: Session, now: Optional[datetime] = None) -> int:
    now = now or datetime.now()
    return max(session.elapsed_ms(now) - break_time_ms(session, now), 0)


def productivity_score(session: Session, now: Optional[datetime] = None) -> int:
    """Blend the active-time ratio and activity density into a 0-100 score."""
    now = now or datetime.now()
    total = session.elapsed_ms(now)
    if total <= 0:
        return 0

    active_ratio = active_time_ms(session, now) / total
    density = len(session.activities) / (total / _MS_PER_MINUTE)
    normalized_density = min(density / DENSITY_CEILING, 1.0)

    score = round_half_up((active_ratio * ACTIVE_WEIGHT + normalized_density * DENSITY_WEIGHT) * 100)
    return min(max(score, 0), 100)


def fallback_score(
    duration_minutes: int,
    ai_queries: int,
    notes_created: int,
    files_uploaded: int,
) -> int:
    """Estimate a score for a remote record that was stored without one."""
    if duration_minutes <= 0:
        return 0
    activities = ai_queries + notes_created + files_uploaded
    per_hour = activities / (duration_minutes / 60)
    duration_score = min(duration_minutes / 120, 1.0)
    return min(max(round_half_up(per_hour * 30 + duration_score * 70), 0), 100)


def session_stats(session: Session, now: Optional[datetime] = None) -> SessionStats:
    now = now or datetime.now()
    total = session.elapsed_ms(now)
    breaks = break_time_ms(session, now)
    return SessionStats(
        total_minutes=round_half_up(total / _MS_PER_MINUTE),
        active_minutes=round_half_up(max(total - breaks, 0) / _MS_PER_MINUTE),
        break_minutes=round_half_up(breaks / _MS_PER_MINUTE),
        productivity=productivity_score(session, now),
        activities_count=len(session.activities),
        breaks_count=len(session.breaks),
    )


def duration_minutes(session: Session, now: Optional[datetime] = None) -> int:
    return round_half_up(session.elapsed_ms(now or datetime.now()) / _MS_PER_MINUTE)
