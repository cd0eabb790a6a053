"""Domain models for study sessions and the analytics built from them.

Sessions serialize to the camelCase record shape kept in the local cache.
Timestamps are naive datetimes in the host's local time; values carrying a
UTC offset are converted to local time when parsed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Optional


class ActivityType(str, Enum):
    NOTE_CREATED = "note_created"
    FILE_UPLOADED = "file_uploaded"
    AI_QUERY = "ai_query"
    CONTENT_VIEWED = "content_viewed"


def to_ms(delta: timedelta) -> int:
    return delta // timedelta(milliseconds=1)


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp into a naive local datetime."""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def _format(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


@dataclass(slots=True)
class Activity:
    """A discrete user action recorded inside a session."""

    type: ActivityType
    timestamp: datetime
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "timestamp": self.timestamp.isoformat(),
            "data": self.data,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Activity:
        return cls(
            type=ActivityType(d["type"]),
            timestamp=parse_timestamp(d["timestamp"]),
            data=dict(d.get("data") or {}),
        )


@dataclass(slots=True)
class Break:
    """An inactive interval; ``end`` is unset while the break is open."""

    start: datetime
    end: Optional[datetime] = None
    duration: Optional[int] = None

    @property
    def is_open(self) -> bool:
        return self.end is None

    def close(self, at: datetime) -> None:
        self.end = at
        self.duration = to_ms(at - self.start)

    def elapsed_ms(self, now: datetime) -> int:
        if self.duration is not None:
            return self.duration
        return max(to_ms((self.end or now) - self.start), 0)

    def to_dict(self) -> dict[str, Any]:
        return {
            "start": self.start.isoformat(),
            "end": _format(self.end),
            "duration": self.duration,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Break:
        end = d.get("end")
        duration = d.get("duration")
        return cls(
            start=parse_timestamp(d["start"]),
            end=parse_timestamp(end) if end else None,
            duration=int(duration) if duration is not None else None,
        )


@dataclass(slots=True)
class Session:
    """One continuous study-tracking interval."""

    session_id: str
    start_time: datetime
    activity_type: str = "general"
    end_time: Optional[datetime] = None
    total_time: int = 0
    is_active: bool = True
    breaks: list[Break] = field(default_factory=list)
    activities: list[Activity] = field(default_factory=list)

    @property
    def open_break(self) -> Optional[Break]:
        if self.breaks and self.breaks[-1].is_open:
            return self.breaks[-1]
        return None

    def elapsed_ms(self, now: datetime) -> int:
        """Total elapsed time: frozen once ended, ``now - start`` while active."""
        if not self.is_active:
            return self.total_time
        return max(to_ms(now - self.start_time), 0)

    def last_activity_time(self) -> datetime:
        """Latest moment the user was known to be present."""
        candidates = [self.start_time]
        if self.activities:
            candidates.append(self.activities[-1].timestamp)
        candidates.extend(brk.end for brk in self.breaks if brk.end is not None)
        return max(candidates)

    def activity_counts(self) -> dict[str, int]:
        counts = {kind.value: 0 for kind in ActivityType}
        for activity in self.activities:
            counts[activity.type.value] += 1
        return counts

    def words_written(self) -> int:
        return sum(
            int(activity.data.get("wordCount") or 0)
            for activity in self.activities
            if activity.type is ActivityType.NOTE_CREATED
        )

    def knowledge_areas(self) -> list[str]:
        """Union of ``category`` and ``tags`` values in activity payloads."""
        areas: dict[str, None] = {}
        for activity in self.activities:
            category = activity.data.get("category")
            if category:
                areas[str(category)] = None
            for tag in activity.data.get("tags") or []:
                areas[str(tag)] = None
        return list(areas)

    def to_dict(self) -> dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "startTime": self.start_time.isoformat(),
            "endTime": _format(self.end_time),
            "activityType": self.activity_type,
            "totalTime": self.total_time,
            "isActive": self.is_active,
            "breaks": [brk.to_dict() for brk in self.breaks],
            "activities": [activity.to_dict() for activity in self.activities],
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Session:
        end_time = d.get("endTime")
        return cls(
            session_id=str(d["sessionId"]),
            start_time=parse_timestamp(d["startTime"]),
            activity_type=str(d.get("activityType") or "general"),
            end_time=parse_timestamp(end_time) if end_time else None,
            total_time=int(d.get("totalTime") or 0),
            is_active=bool(d.get("isActive", False)),
            breaks=[Break.from_dict(b) for b in (d.get("breaks") or [])],
            activities=[Activity.from_dict(a) for a in (d.get("activities") or [])],
        )


@dataclass(slots=True)
class SessionStats:
    total_minutes: int
    active_minutes: int
    break_minutes: int
    productivity: int
    activities_count: int
    breaks_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalTime": self.total_minutes,
            "activeTime": self.active_minutes,
            "breakTime": self.break_minutes,
            "productivity": self.productivity,
            "activitiesCount": self.activities_count,
            "breaksCount": self.breaks_count,
        }


# ── History & analytics ──────────────────────────────────────


@dataclass(slots=True)
class SessionRecord:
    """Normalized historical view of a session, local or remote."""

    session_id: str
    started_at: datetime
    ended_at: Optional[datetime] = None
    activity_type: str = "general"
    duration_minutes: int = 0
    ai_queries: int = 0
    notes_created: int = 0
    files_uploaded: int = 0
    words_written: int = 0
    knowledge_areas: list[str] = field(default_factory=list)
    productivity_score: Optional[int] = None

    @property
    def day(self) -> date:
        return self.started_at.date()


@dataclass(slots=True)
class PeriodTotals:
    key: str
    minutes: int = 0
    sessions: int = 0

    def to_dict(self, key_name: str) -> dict[str, Any]:
        return {key_name: self.key, "minutes": self.minutes, "sessions": self.sessions}


@dataclass(slots=True)
class StudyTimeAggregates:
    daily: list[PeriodTotals] = field(default_factory=list)
    weekly: list[PeriodTotals] = field(default_factory=list)
    monthly: list[PeriodTotals] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "daily": [p.to_dict("date") for p in self.daily],
            "weekly": [p.to_dict("week") for p in self.weekly],
            "monthly": [p.to_dict("month") for p in self.monthly],
        }


@dataclass(frozen=True, slots=True)
class StreakState:
    current: int = 0
    longest: int = 0

    def to_dict(self) -> dict[str, int]:
        return {"current": self.current, "longest": self.longest}


@dataclass(slots=True)
class KnowledgeArea:
    area: str
    time_spent: int
    proficiency: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "area": self.area,
            "timeSpent": self.time_spent,
            "proficiency": self.proficiency,
        }


@dataclass(slots=True)
class Insights:
    best_study_hour: Optional[int] = None
    most_productive_day: Optional[str] = None
    average_session_length: float = 0.0
    knowledge_areas: list[KnowledgeArea] = field(default_factory=list)

    @property
    def best_study_time(self) -> str:
        hour = self.best_study_hour if self.best_study_hour is not None else 9
        return f"{hour}:00"

    def to_dict(self) -> dict[str, Any]:
        return {
            "bestStudyTime": self.best_study_time,
            "averageSessionLength": round(self.average_session_length),
            "mostProductiveDay": self.most_productive_day or "Monday",
            "knowledgeAreas": [area.to_dict() for area in self.knowledge_areas],
        }


@dataclass(slots=True)
class ContentUsage:
    content_id: str
    kind: str
    access_count: int = 0
    last_accessed: Optional[datetime] = None
    title: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.content_id,
            "title": self.title,
            "accessCount": self.access_count,
            "lastAccessed": _format(self.last_accessed),
        }


@dataclass(slots=True)
class AnalyticsReport:
    generated_at: datetime
    window_days: int
    study_time: StudyTimeAggregates
    productivity: list[tuple[date, int]]
    streaks: StreakState
    insights: Insights
    notes: list[ContentUsage] = field(default_factory=list)
    files: list[ContentUsage] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "generatedAt": self.generated_at.isoformat(),
            "windowDays": self.window_days,
            "studyTime": self.study_time.to_dict(),
            "contentUsage": {
                "notes": [usage.to_dict() for usage in self.notes],
                "files": [usage.to_dict() for usage in self.files],
            },
            "performance": {
                "productivity": [
                    {"date": day.isoformat(), "score": score}
                    for day, score in self.productivity
                ],
                "streaks": self.streaks.to_dict(),
            },
            "insights": self.insights.to_dict(),
        }
