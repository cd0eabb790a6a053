"""Convenience recorders for the activities the application reports."""

from __future__ import annotations

from typing import Optional

from .machine import SessionStateMachine
from .models import Activity, ActivityType


class ActivityRecorder:
    """Shape application events into activity payloads for the live session.

    Every method returns ``None`` without recording when no session is being
    tracked.
    """

    def __init__(self, machine: SessionStateMachine) -> None:
        self.machine = machine

    def note_created(
        self,
        note_id: str,
        title: str,
        word_count: int = 0,
        *,
        category: Optional[str] = None,
        tags: Optional[list[str]] = None,
    ) -> Optional[Activity]:
        data = {"type": "note", "id": note_id, "title": title, "wordCount": word_count or 0}
        return self._record(ActivityType.NOTE_CREATED, data, category, tags)

    def file_uploaded(
        self,
        file_id: str,
        name: str,
        file_type: str,
        size: int,
        *,
        category: Optional[str] = None,
        tags: Optional[list[str]] = None,
    ) -> Optional[Activity]:
        data = {"type": "file", "id": file_id, "name": name, "fileType": file_type, "size": size}
        return self._record(ActivityType.FILE_UPLOADED, data, category, tags)

    def content_viewed(
        self,
        content_id: str,
        kind: str,
        title: Optional[str] = None,
    ) -> Optional[Activity]:
        if kind not in ("note", "file"):
            raise ValueError(f"content kind must be 'note' or 'file', got {kind!r}")
        data = {"type": kind, "id": content_id, "title": title}
        return self._record(ActivityType.CONTENT_VIEWED, data, None, None)

    def ai_query(
        self,
        query_type: str,
        prompt: Optional[str] = None,
        response: Optional[str] = None,
    ) -> Optional[Activity]:
        data = {"queryType": query_type, "hasPrompt": bool(prompt), "hasResponse": bool(response)}
        return self._record(ActivityType.AI_QUERY, data, None, None)

    def _record(
        self,
        kind: ActivityType,
        data: dict,
        category: Optional[str],
        tags: Optional[list[str]],
    ) -> Optional[Activity]:
        if not self.machine.is_tracking:
            return None
        if category:
            data["category"] = category
        if tags:
            data["tags"] = list(tags)
        return self.machine.record_activity(kind, data)
