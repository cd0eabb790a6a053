"""Descriptive statistics over a window of study history."""

from __future__ import annotations

from collections import defaultdict
from typing import Iterable, Optional

from .models import Insights, KnowledgeArea, SessionRecord

# Sunday-first, matching the order used for tie-breaks.
DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]

MAX_PROFICIENCY = 10.0


def _sunday_first(record: SessionRecord) -> int:
    # date.weekday() is Monday=0; shift so Sunday=0.
    return (record.started_at.weekday() + 1) % 7


def _best_key(totals: dict[int, int]) -> Optional[int]:
    if not totals:
        return None
    return min(totals, key=lambda key: (-totals[key], key))


def knowledge_areas(records: Iterable[SessionRecord]) -> list[KnowledgeArea]:
    minutes: defaultdict[str, int] = defaultdict(int)
    for record in records:
        for area in record.knowledge_areas:
            minutes[area] += record.duration_minutes
    ranked = sorted(minutes.items(), key=lambda item: (-item[1], item[0]))
    return [
        KnowledgeArea(
            area=area,
            time_spent=spent,
            proficiency=min(spent / 100, MAX_PROFICIENCY),
        )
        for area, spent in ranked
    ]


def generate_insights(records: Iterable[SessionRecord]) -> Insights:
    records = list(records)
    if not records:
        return Insights()

    by_hour: defaultdict[int, int] = defaultdict(int)
    by_weekday: defaultdict[int, int] = defaultdict(int)
    for record in records:
        by_hour[record.started_at.hour] += record.duration_minutes
        by_weekday[_sunday_first(record)] += record.duration_minutes

    best_day = _best_key(by_weekday)
    return Insights(
        best_study_hour=_best_key(by_hour),
        most_productive_day=DAY_NAMES[best_day] if best_day is not None else None,
        average_session_length=sum(r.duration_minutes for r in records) / len(records),
        knowledge_areas=knowledge_areas(records),
    )
