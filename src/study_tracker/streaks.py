"""Consecutive-day study streaks."""

from __future__ import annotations

from datetime import date, timedelta
from typing import Iterable, Optional

from .models import SessionRecord, StreakState

_ONE_DAY = timedelta(days=1)


def session_dates(records: Iterable[SessionRecord]) -> list[date]:
    """Distinct local calendar dates with at least one session, ascending."""
    return sorted({record.day for record in records})


def longest_streak(dates: list[date]) -> int:
    if not dates:
        return 0
    longest = run = 1
    for previous, current in zip(dates, dates[1:]):
        if current - previous == _ONE_DAY:
            run += 1
        else:
            run = 1
        longest = max(longest, run)
    return longest


def current_streak(dates: Iterable[date], today: date) -> int:
    """Count back from today, or from yesterday when today has no session yet."""
    present = set(dates)
    anchor = today if today in present else today - _ONE_DAY
    count = 0
    while anchor in present:
        count += 1
        anchor -= _ONE_DAY
    return count


def calculate_streaks(
    records: Iterable[SessionRecord], today: Optional[date] = None
) -> StreakState:
    dates = session_dates(records)
    return StreakState(
        current=current_streak(dates, today or date.today()),
        longest=longest_streak(dates),
    )
