"""Normalize local sessions and remote rows into one history."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Iterable, Optional

from .models import Session, SessionRecord, parse_timestamp
from .scoring import duration_minutes, productivity_score

logger = logging.getLogger(__name__)


def record_from_session(session: Session, now: Optional[datetime] = None) -> SessionRecord:
    now = now or datetime.now()
    counts = session.activity_counts()
    return SessionRecord(
        session_id=session.session_id,
        started_at=session.start_time,
        ended_at=session.end_time,
        activity_type=session.activity_type,
        duration_minutes=duration_minutes(session, now),
        ai_queries=counts["ai_query"],
        notes_created=counts["note_created"],
        files_uploaded=counts["file_uploaded"],
        words_written=session.words_written(),
        knowledge_areas=session.knowledge_areas(),
        productivity_score=productivity_score(session, now),
    )


def record_from_remote(
    row: dict[str, Any],
    analytics: Optional[dict[str, Any]] = None,
) -> SessionRecord:
    """Build a record from a ``study_sessions`` row and its analytics entry."""
    ended_at = row.get("ended_at")
    score: Optional[int] = None
    areas: list[str] = []
    if analytics:
        data = analytics.get("activity_data") or {}
        if data.get("productivity_score") is not None:
            score = int(data["productivity_score"])
        areas = [str(area) for area in (analytics.get("knowledge_areas") or [])]
    return SessionRecord(
        session_id=str(row["id"]),
        started_at=parse_timestamp(row["started_at"]),
        ended_at=parse_timestamp(ended_at) if ended_at else None,
        activity_type=str(row.get("activity_type") or "general"),
        duration_minutes=int(row.get("duration_minutes") or 0),
        ai_queries=int(row.get("ai_queries") or 0),
        notes_created=int(row.get("notes_created") or 0),
        files_uploaded=int(row.get("files_uploaded") or 0),
        words_written=int(row.get("words_written") or 0),
        knowledge_areas=areas,
        productivity_score=score,
    )


def records_from_remote(
    rows: Iterable[dict[str, Any]],
    analytics_rows: Iterable[dict[str, Any]] = (),
) -> list[SessionRecord]:
    by_session: dict[str, dict[str, Any]] = {}
    for item in analytics_rows:
        session_id = (item.get("activity_data") or {}).get("session_id")
        if session_id:
            by_session[str(session_id)] = item

    records = []
    for row in rows:
        try:
            records.append(record_from_remote(row, by_session.get(str(row.get("id")))))
        except (KeyError, TypeError, ValueError):
            logger.warning("Skipping malformed remote session row: %r", row.get("id"))
    return records


def merge_history(
    local: Iterable[SessionRecord],
    remote: Iterable[SessionRecord] = (),
) -> list[SessionRecord]:
    """Union by session id, preferring the local copy; ordered by start."""
    merged: dict[str, SessionRecord] = {}
    for record in remote:
        merged[record.session_id] = record
    for record in local:
        merged[record.session_id] = record
    return sorted(merged.values(), key=lambda record: (record.started_at, record.session_id))
