"""Tests for period aggregation, reports and the analytics service."""

import json
from datetime import datetime, timedelta

import pytest
from conftest import T0, make_record, make_session

from study_tracker.analytics import (
    AnalyticsService,
    aggregate,
    build_report,
    content_usage,
    export_report,
    iso_week_key,
    productivity_series,
)
from study_tracker.errors import SyncFailure
from study_tracker.models import ActivityType

NOW = T0 + timedelta(days=3)


def test_aggregate_groups_by_day_week_and_month():
    records = [
        make_record(T0, 30),
        make_record(T0 + timedelta(hours=3), 15),
        make_record(T0 + timedelta(days=1), 45),
    ]
    result = aggregate(records, 30, NOW)
    assert [(p.key, p.minutes, p.sessions) for p in result.daily] == [
        ("2026-03-02", 45, 2),
        ("2026-03-03", 45, 1),
    ]
    assert [(p.key, p.minutes, p.sessions) for p in result.weekly] == [("2026-W10", 90, 3)]
    assert [(p.key, p.minutes, p.sessions) for p in result.monthly] == [("2026-03", 90, 3)]


def test_aggregate_is_idempotent_over_the_same_input():
    records = [make_record(T0, 30), make_record(T0 + timedelta(days=1), 20)]
    assert aggregate(records, 30, NOW) == aggregate(records, 30, NOW)


def test_window_excludes_older_and_future_sessions():
    records = [
        make_record(NOW - timedelta(days=8), 30, session_id="old"),
        make_record(NOW - timedelta(days=6), 20, session_id="in"),
        make_record(NOW + timedelta(hours=1), 10, session_id="future"),
    ]
    result = aggregate(records, 7, NOW)
    assert [p.minutes for p in result.daily] == [20]


def test_iso_week_boundaries():
    assert iso_week_key(datetime(2026, 1, 1)) == "2026-W01"
    assert iso_week_key(datetime(2027, 1, 1)) == "2026-W53"
    assert iso_week_key(datetime(2024, 12, 30)) == "2025-W01"


def test_productivity_series_uses_fallback_when_score_missing():
    records = [
        make_record(T0 + timedelta(days=1), 60, score=None),
        make_record(T0, 30, score=80),
    ]
    series = productivity_series(records)
    assert series[0] == (T0.date(), 80)
    assert series[1][0] == (T0 + timedelta(days=1)).date()
    assert series[1][1] == 35


def test_content_usage_ranks_by_access_count():
    session = make_session(
        activities=[
            (ActivityType.CONTENT_VIEWED, 1, {"type": "note", "id": "n1", "title": "Cells"}),
            (ActivityType.CONTENT_VIEWED, 2, {"type": "note", "id": "n2"}),
            (ActivityType.CONTENT_VIEWED, 3, {"type": "note", "id": "n2"}),
            (ActivityType.CONTENT_VIEWED, 4, {"type": "file", "id": "f1", "name": "a.pdf"}),
            (ActivityType.CONTENT_VIEWED, 5, {"type": "video", "id": "v1"}),
            (ActivityType.AI_QUERY, 6, {"type": "note", "id": "n9"}),
        ]
    )
    notes, files = content_usage([session])
    assert [(n.content_id, n.access_count) for n in notes] == [("n2", 2), ("n1", 1)]
    assert notes[0].last_accessed == T0 + timedelta(minutes=3)
    assert notes[1].title == "Cells"
    assert [(f.content_id, f.title) for f in files] == [("f1", "a.pdf")]


def test_build_report_payload_shape():
    records = [make_record(T0, 30, areas=["math"], score=70), make_record(T0 + timedelta(days=1), 20, score=50)]
    payload = build_report(records, [], 30, NOW).to_dict()
    assert payload["windowDays"] == 30
    assert payload["performance"]["streaks"] == {"current": 0, "longest": 2}
    assert payload["performance"]["productivity"] == [
        {"date": "2026-03-02", "score": 70},
        {"date": "2026-03-03", "score": 50},
    ]
    assert payload["insights"]["bestStudyTime"] == "9:00"
    assert payload["insights"]["knowledgeAreas"][0]["area"] == "math"
    assert payload["contentUsage"] == {"notes": [], "files": []}


def test_csv_export_averages_daily_scores():
    records = [
        make_record(T0, 30, score=70),
        make_record(T0 + timedelta(hours=2), 30, score=81),
        make_record(T0 + timedelta(days=1), 15, score=40),
    ]
    payload = build_report(records, [], 30, NOW).to_dict()
    lines = export_report(payload, "csv").splitlines()
    assert lines == [
        "Date,Study Time (min),Sessions,Productivity Score",
        "2026-03-02,60,2,76",
        "2026-03-03,15,1,40",
    ]
    assert json.loads(export_report(payload, "json")) == payload
    with pytest.raises(ValueError):
        export_report(payload, "xml")


class FakeClient:
    def __init__(self, rows=(), analytics=(), fail=False):
        self.rows = list(rows)
        self.analytics = list(analytics)
        self.fail = fail

    def fetch_study_sessions(self, since):
        if self.fail:
            raise SyncFailure("offline")
        return self.rows

    def fetch_learning_analytics(self, since):
        if self.fail:
            raise SyncFailure("offline")
        return self.analytics


def test_service_merges_local_and_remote(store, tmp_path):
    store.upsert(make_session(T0, 30, session_id="local"))
    client = FakeClient(
        rows=[
            {"id": "local", "started_at": "2026-03-02T09:00:00", "duration_minutes": 5},
            {"id": "remote", "started_at": "2026-03-03T10:00:00", "duration_minutes": 25},
        ]
    )
    service = AnalyticsService(store, client, cache_path=tmp_path / "cache.json")
    payload = service.report(30, NOW)
    assert [d["minutes"] for d in payload["studyTime"]["daily"]] == [30, 25]
    assert (tmp_path / "cache.json").exists()


def test_service_serves_fresh_cache_when_remote_fails(store, tmp_path):
    cache = tmp_path / "cache.json"
    store.upsert(make_session(T0, 30, session_id="local"))
    online = AnalyticsService(
        store,
        FakeClient(rows=[{"id": "remote", "started_at": "2026-03-03T10:00:00", "duration_minutes": 25}]),
        cache_path=cache,
    )
    cached = online.report(30, NOW)

    offline = AnalyticsService(store, FakeClient(fail=True), cache_path=cache)
    assert offline.report(30, NOW + timedelta(minutes=2)) == cached


def test_service_falls_back_to_local_when_cache_is_stale(store, tmp_path):
    cache = tmp_path / "cache.json"
    store.upsert(make_session(T0, 30, session_id="local"))
    online = AnalyticsService(
        store,
        FakeClient(rows=[{"id": "remote", "started_at": "2026-03-03T10:00:00", "duration_minutes": 25}]),
        cache_path=cache,
    )
    online.report(30, NOW)

    offline = AnalyticsService(store, FakeClient(fail=True), cache_path=cache)
    payload = offline.report(30, NOW + timedelta(minutes=10))
    assert [d["minutes"] for d in payload["studyTime"]["daily"]] == [30]


def test_service_without_client_uses_local_history(store):
    store.upsert(make_session(T0, 30, session_id="local"))
    payload = AnalyticsService(store).report(7, NOW)
    assert payload["studyTime"]["daily"] == [{"date": "2026-03-02", "minutes": 30, "sessions": 1}]
