"""Best-effort push of finished sessions to the remote data store."""

from __future__ import annotations

import logging
import queue
import threading
from datetime import datetime
from typing import Any, Optional

import httpx

from .config import SyncSettings
from .errors import SyncFailure
from .models import Session
from .scoring import duration_minutes, productivity_score

logger = logging.getLogger(__name__)

_STOP = object()


def _remote_time(value: Optional[datetime]) -> Optional[str]:
    return value.astimezone().isoformat() if value is not None else None


def session_payload(session: Session, user_id: str) -> dict[str, Any]:
    counts = session.activity_counts()
    return {
        "id": session.session_id,
        "user_id": user_id,
        "activity_type": session.activity_type,
        "started_at": _remote_time(session.start_time),
        "ended_at": _remote_time(session.end_time),
        "duration_minutes": duration_minutes(session),
        "ai_queries": counts["ai_query"],
        "notes_created": counts["note_created"],
        "files_uploaded": counts["file_uploaded"],
        "words_written": session.words_written(),
    }


def learning_activity_payload(session: Session, user_id: str) -> dict[str, Any]:
    score = productivity_score(session)
    return {
        "_user_id": user_id,
        "_activity_type": "study_session",
        "_activity_data": {
            "session_id": session.session_id,
            "activities": [
                {
                    "type": activity.type.value,
                    "timestamp": _remote_time(activity.timestamp),
                    "data": activity.data,
                }
                for activity in session.activities
            ],
            "breaks": [
                {
                    "start": _remote_time(brk.start),
                    "end": _remote_time(brk.end),
                    "duration": brk.duration,
                }
                for brk in session.breaks
            ],
            "productivity_score": score,
        },
        "_performance_score": score,
        "_time_spent_minutes": duration_minutes(session),
        "_knowledge_areas": session.knowledge_areas(),
    }


class SupabaseClient:
    """Minimal PostgREST client for the study tables."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        user_id: str,
        *,
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.user_id = user_id
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
            headers={
                "apikey": api_key,
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
        )

    @classmethod
    def from_settings(
        cls, settings: SyncSettings, transport: Optional[httpx.BaseTransport] = None
    ) -> "SupabaseClient":
        if not settings.enabled:
            raise ValueError("remote sync is not configured")
        return cls(
            settings.base_url or "",
            settings.api_key or "",
            settings.user_id or "",
            timeout=settings.timeout,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            resp = self._client.request(method, url, **kwargs)
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            raise SyncFailure(f"{method} {url} failed: {exc}") from exc
        return resp

    def upsert_study_session(self, payload: dict[str, Any]) -> None:
        self._request(
            "POST",
            "/rest/v1/study_sessions",
            json=payload,
            headers={"Prefer": "resolution=merge-duplicates,return=minimal"},
        )

    def track_learning_activity(self, payload: dict[str, Any]) -> None:
        self._request("POST", "/rest/v1/rpc/track_learning_activity", json=payload)

    def fetch_study_sessions(self, since: datetime) -> list[dict[str, Any]]:
        resp = self._request(
            "GET",
            "/rest/v1/study_sessions",
            params={
                "select": "*",
                "user_id": f"eq.{self.user_id}",
                "started_at": f"gte.{_remote_time(since)}",
                "order": "started_at.asc",
            },
        )
        return list(resp.json() or [])

    def fetch_learning_analytics(self, since: datetime) -> list[dict[str, Any]]:
        resp = self._request(
            "GET",
            "/rest/v1/learning_analytics",
            params={
                "select": "*",
                "user_id": f"eq.{self.user_id}",
                "created_at": f"gte.{_remote_time(since)}",
                "order": "created_at.asc",
            },
        )
        return list(resp.json() or [])


class RemoteSync:
    """Queue ended sessions and push them from a background worker thread."""

    def __init__(
        self,
        settings: SyncSettings,
        client: Optional[SupabaseClient] = None,
    ) -> None:
        self.settings = settings
        if client is None and settings.enabled:
            client = SupabaseClient.from_settings(settings)
        self.client = client
        self._queue: queue.Queue[Any] = queue.Queue(maxsize=max(settings.queue_size, 1))
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None

    @property
    def enabled(self) -> bool:
        return self.client is not None

    def submit(self, session: Session) -> bool:
        """Enqueue a session for upload without blocking the caller."""
        if self.client is None:
            logger.debug("Remote sync disabled; keeping %s local only.", session.session_id)
            return False
        try:
            self._queue.put_nowait(session)
        except queue.Full:
            logger.warning("Sync queue full; dropping session %s.", session.session_id)
            return False
        return True

    def sync_session(self, session: Session) -> bool:
        if self.client is None:
            return False
        user_id = self.client.user_id
        try:
            self.client.upsert_study_session(session_payload(session, user_id))
            self.client.track_learning_activity(learning_activity_payload(session, user_id))
        except SyncFailure:
            logger.exception("Failed to sync session %s.", session.session_id)
            return False
        logger.info("Synced session %s.", session.session_id)
        return True

    def start(self) -> None:
        with self._lock:
            if self._thread and self._thread.is_alive():
                return
            thread = threading.Thread(target=self._run, name="study-sync", daemon=True)
            self._thread = thread
            thread.start()
            logger.info("Sync worker started.")

    def stop(self, timeout: float = 10.0) -> None:
        with self._lock:
            thread = self._thread
            self._thread = None
        if thread and thread.is_alive():
            self._queue.put(_STOP)
            thread.join(timeout=timeout)
            logger.info("Sync worker stopped.")
        if self.client is not None:
            self.client.close()

    def join(self) -> None:
        """Block until every queued session has been processed."""
        self._queue.join()

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                self.sync_session(item)
            except Exception:
                logger.exception("Unexpected error in sync worker.")
            finally:
                self._queue.task_done()
