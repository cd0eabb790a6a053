"""Roll study history into period totals and a full analytics report."""

from __future__ import annotations

import csv
import io
import json
import logging
from collections import defaultdict
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Any, Iterable, Optional

from .errors import SyncFailure
from .history import merge_history, record_from_session, records_from_remote
from .insights import generate_insights
from .models import (
    ActivityType,
    AnalyticsReport,
    ContentUsage,
    PeriodTotals,
    Session,
    SessionRecord,
    StudyTimeAggregates,
)
from .scoring import fallback_score, round_half_up
from .store import SessionStore
from .streaks import calculate_streaks
from .sync import SupabaseClient

logger = logging.getLogger(__name__)

CACHE_TTL = timedelta(minutes=5)
CSV_HEADER = ["Date", "Study Time (min)", "Sessions", "Productivity Score"]


def day_key(moment: datetime) -> str:
    return moment.strftime("%Y-%m-%d")


def iso_week_key(moment: datetime) -> str:
    """ISO-8601 week label; the week belongs to the year holding its Thursday."""
    year, week, _ = moment.isocalendar()
    return f"{year}-W{week:02d}"


def month_key(moment: datetime) -> str:
    return moment.strftime("%Y-%m")


def filter_window(
    records: Iterable[SessionRecord],
    window_days: int,
    now: Optional[datetime] = None,
) -> list[SessionRecord]:
    now = now or datetime.now()
    cutoff = now - timedelta(days=window_days)
    return [r for r in records if cutoff <= r.started_at <= now]


def _bucket(records: list[SessionRecord], key_fn) -> list[PeriodTotals]:
    totals: dict[str, PeriodTotals] = {}
    for record in records:
        key = key_fn(record.started_at)
        bucket = totals.get(key)
        if bucket is None:
            bucket = totals[key] = PeriodTotals(key=key)
        bucket.minutes += record.duration_minutes
        bucket.sessions += 1
    return [totals[key] for key in sorted(totals)]


def aggregate(
    records: Iterable[SessionRecord],
    window_days: int,
    now: Optional[datetime] = None,
) -> StudyTimeAggregates:
    """Sum minutes and session counts per day, ISO week and month.

    Only periods that contain a session appear in the result.
    """
    in_window = filter_window(records, window_days, now)
    return StudyTimeAggregates(
        daily=_bucket(in_window, day_key),
        weekly=_bucket(in_window, iso_week_key),
        monthly=_bucket(in_window, month_key),
    )


def record_score(record: SessionRecord) -> int:
    if record.productivity_score is not None:
        return record.productivity_score
    return fallback_score(
        record.duration_minutes,
        record.ai_queries,
        record.notes_created,
        record.files_uploaded,
    )


def productivity_series(records: Iterable[SessionRecord]) -> list[tuple[date, int]]:
    ordered = sorted(records, key=lambda r: r.started_at)
    return [(record.day, record_score(record)) for record in ordered]


def content_usage(sessions: Iterable[Session]) -> tuple[list[ContentUsage], list[ContentUsage]]:
    """Access counts for notes and files opened during the given sessions."""
    usage: dict[tuple[str, str], ContentUsage] = {}
    for session in sessions:
        for activity in session.activities:
            if activity.type is not ActivityType.CONTENT_VIEWED:
                continue
            kind = activity.data.get("type")
            content_id = activity.data.get("id")
            if kind not in ("note", "file") or not content_id:
                continue
            key = (kind, str(content_id))
            entry = usage.get(key)
            if entry is None:
                entry = usage[key] = ContentUsage(content_id=str(content_id), kind=kind)
            entry.access_count += 1
            if entry.last_accessed is None or activity.timestamp > entry.last_accessed:
                entry.last_accessed = activity.timestamp
            title = activity.data.get("title") or activity.data.get("name")
            if title:
                entry.title = str(title)

    ranked = sorted(usage.values(), key=lambda u: (-u.access_count, u.content_id))
    notes = [u for u in ranked if u.kind == "note"]
    files = [u for u in ranked if u.kind == "file"]
    return notes, files


def build_report(
    records: Iterable[SessionRecord],
    sessions: Iterable[Session] = (),
    window_days: int = 30,
    now: Optional[datetime] = None,
) -> AnalyticsReport:
    now = now or datetime.now()
    in_window = filter_window(records, window_days, now)
    cutoff = now - timedelta(days=window_days)
    notes, files = content_usage(s for s in sessions if cutoff <= s.start_time <= now)
    return AnalyticsReport(
        generated_at=now,
        window_days=window_days,
        study_time=aggregate(in_window, window_days, now),
        productivity=productivity_series(in_window),
        streaks=calculate_streaks(in_window, today=now.date()),
        insights=generate_insights(in_window),
        notes=notes,
        files=files,
    )


def export_report(payload: dict[str, Any], fmt: str = "json") -> str:
    """Render a report payload (``AnalyticsReport.to_dict()``) as JSON or CSV."""
    if fmt == "json":
        return json.dumps(payload, indent=2)
    if fmt != "csv":
        raise ValueError(f"Unsupported export format: {fmt!r}")

    scores: defaultdict[str, list[int]] = defaultdict(list)
    for point in payload["performance"]["productivity"]:
        scores[point["date"]].append(point["score"])

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for day in payload["studyTime"]["daily"]:
        day_scores = scores.get(day["date"])
        score = round_half_up(sum(day_scores) / len(day_scores)) if day_scores else 0
        writer.writerow([day["date"], day["minutes"], day["sessions"], score])
    return buffer.getvalue()


class AnalyticsService:
    """Build reports from local sessions merged with remote history."""

    def __init__(
        self,
        store: SessionStore,
        client: Optional[SupabaseClient] = None,
        cache_path: Optional[Path] = None,
        cache_ttl: timedelta = CACHE_TTL,
    ) -> None:
        self.store = store
        self.client = client
        self.cache_path = Path(cache_path) if cache_path else None
        self.cache_ttl = cache_ttl

    def report(self, window_days: int = 30, now: Optional[datetime] = None) -> dict[str, Any]:
        """Return the report payload; serve a fresh cached copy if the remote fails."""
        now = now or datetime.now()
        cutoff = now - timedelta(days=window_days)
        sessions = self.store.since(cutoff)
        local = [record_from_session(session, now) for session in sessions]

        remote: list[SessionRecord] = []
        if self.client is not None:
            try:
                rows = self.client.fetch_study_sessions(cutoff)
                analytics_rows = self.client.fetch_learning_analytics(cutoff)
            except SyncFailure:
                logger.exception("Failed to fetch remote history; using local sessions.")
                cached = self.load_cached(window_days, now)
                if cached is not None:
                    return cached
            else:
                remote = records_from_remote(rows, analytics_rows)

        payload = build_report(merge_history(local, remote), sessions, window_days, now).to_dict()
        self._write_cache(payload, window_days, now)
        return payload

    def load_cached(self, window_days: int, now: Optional[datetime] = None) -> Optional[dict[str, Any]]:
        if self.cache_path is None or not self.cache_path.exists():
            return None
        now = now or datetime.now()
        try:
            cached = json.loads(self.cache_path.read_text(encoding="utf-8"))
            stamp = datetime.fromisoformat(cached["timestamp"])
        except (OSError, ValueError, KeyError, TypeError):
            logger.warning("Ignoring unreadable analytics cache at %s.", self.cache_path)
            return None
        if cached.get("windowDays") != window_days or now - stamp > self.cache_ttl:
            return None
        return cached.get("data")

    def _write_cache(self, payload: dict[str, Any], window_days: int, now: datetime) -> None:
        if self.cache_path is None:
            return
        try:
            self.cache_path.parent.mkdir(parents=True, exist_ok=True)
            self.cache_path.write_text(
                json.dumps({"timestamp": now.isoformat(), "windowDays": window_days, "data": payload}),
                encoding="utf-8",
            )
        except OSError:
            logger.exception("Failed to cache analytics at %s.", self.cache_path)
