"""Tests for the remote session sync."""

import json

import httpx
from conftest import make_session

from study_tracker.config import SyncSettings
from study_tracker.models import ActivityType
from study_tracker.sync import RemoteSync, SupabaseClient, session_payload

SETTINGS = SyncSettings(
    base_url="https://example.supabase.co",
    api_key="anon-key",
    user_id="user-1",
    queue_size=2,
)


def _client(handler):
    return SupabaseClient.from_settings(SETTINGS, transport=httpx.MockTransport(handler))


def _session():
    return make_session(
        minutes=40,
        session_id="11111111-1111-1111-1111-111111111111",
        activities=[
            (ActivityType.NOTE_CREATED, 1, {"wordCount": 200, "category": "math"}),
            (ActivityType.NOTE_CREATED, 2, {"wordCount": 50, "tags": ["algebra"]}),
            (ActivityType.AI_QUERY, 3, {}),
            (ActivityType.FILE_UPLOADED, 4, {"size": 10}),
        ],
        breaks=[(10, 20)],
    )


def test_session_payload_contract():
    payload = session_payload(_session(), "user-1")
    assert payload["id"] == "11111111-1111-1111-1111-111111111111"
    assert payload["user_id"] == "user-1"
    assert payload["activity_type"] == "general"
    assert payload["duration_minutes"] == 40
    assert payload["ai_queries"] == 1
    assert payload["notes_created"] == 2
    assert payload["files_uploaded"] == 1
    assert payload["words_written"] == 250
    assert payload["started_at"] and payload["ended_at"]


def test_sync_session_posts_both_records():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(201, json={})

    sync = RemoteSync(SETTINGS, client=_client(handler))
    assert sync.sync_session(_session()) is True

    assert [r.url.path for r in requests] == [
        "/rest/v1/study_sessions",
        "/rest/v1/rpc/track_learning_activity",
    ]
    assert "merge-duplicates" in requests[0].headers["Prefer"]
    assert requests[0].headers["apikey"] == "anon-key"

    learning = json.loads(requests[1].content)
    assert learning["_user_id"] == "user-1"
    assert learning["_time_spent_minutes"] == 40
    assert learning["_knowledge_areas"] == ["math", "algebra"]
    assert learning["_activity_data"]["session_id"] == "11111111-1111-1111-1111-111111111111"
    assert len(learning["_activity_data"]["breaks"]) == 1
    assert 0 <= learning["_activity_data"]["productivity_score"] <= 100


def test_sync_failure_returns_false():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"message": "boom"})

    sync = RemoteSync(SETTINGS, client=_client(handler))
    assert sync.sync_session(_session()) is False


def test_transport_error_returns_false():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("offline", request=request)

    sync = RemoteSync(SETTINGS, client=_client(handler))
    assert sync.sync_session(_session()) is False


def test_disabled_sync_drops_sessions():
    sync = RemoteSync(SyncSettings())
    assert sync.enabled is False
    assert sync.submit(_session()) is False
    assert sync.sync_session(_session()) is False


def test_worker_processes_queue_and_survives_failures():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("study_sessions"):
            body = json.loads(request.content)
            seen.append(body["id"])
            if body["id"] == "bad":
                return httpx.Response(503)
        return httpx.Response(201, json={})

    sync = RemoteSync(SETTINGS, client=_client(handler))
    sync.start()
    try:
        assert sync.submit(make_session(session_id="bad")) is True
        assert sync.submit(make_session(session_id="good")) is True
        sync.join()
    finally:
        sync.stop()
    assert seen == ["bad", "good"]


def test_full_queue_drops_without_blocking():
    sync = RemoteSync(SETTINGS, client=_client(lambda request: httpx.Response(201)))
    assert sync.submit(make_session(session_id="a")) is True
    assert sync.submit(make_session(session_id="b")) is True
    assert sync.submit(make_session(session_id="c")) is False


def test_fetch_study_sessions_filters_by_user():
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["params"] = dict(request.url.params)
        return httpx.Response(200, json=[{"id": "x", "started_at": "2026-03-02T09:00:00+00:00"}])

    client = _client(handler)
    rows = client.fetch_study_sessions(make_session().start_time)
    assert rows[0]["id"] == "x"
    assert captured["params"]["user_id"] == "eq.user-1"
    assert captured["params"]["started_at"].startswith("gte.")
    assert captured["params"]["order"] == "started_at.asc"
