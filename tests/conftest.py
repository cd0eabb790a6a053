"""Shared test fixtures for the study tracker tests."""

from __future__ import annotations

from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Optional

import pytest

from study_tracker.config import TrackerSettings
from study_tracker.machine import SessionStateMachine
from study_tracker.models import Activity, ActivityType, Break, Session, SessionRecord, to_ms
from study_tracker.store import SessionStore

T0 = datetime(2026, 3, 2, 9, 0, 0)  # a Monday


class ManualTimer:
    def __init__(self, due: datetime, callback: Callable[[], None]) -> None:
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualClock:
    """Clock whose timers fire, in due order, only when advanced."""

    def __init__(self, start: datetime = T0) -> None:
        self.current = start
        self.timers: list[ManualTimer] = []

    def now(self) -> datetime:
        return self.current

    def call_later(self, delay: timedelta, callback: Callable[[], None]) -> ManualTimer:
        timer = ManualTimer(self.current + max(delay, timedelta(0)), callback)
        self.timers.append(timer)
        return timer

    def advance(self, **kwargs: float) -> None:
        target = self.current + timedelta(**kwargs)
        while True:
            due = [t for t in self.timers if not t.cancelled and t.due <= target]
            if not due:
                break
            timer = min(due, key=lambda t: t.due)
            self.timers.remove(timer)
            self.current = max(self.current, timer.due)
            timer.callback()
        self.current = target

    def pending(self) -> list[ManualTimer]:
        return [t for t in self.timers if not t.cancelled]


class RecordingSync:
    """Stands in for RemoteSync and remembers what was submitted."""

    enabled = True

    def __init__(self) -> None:
        self.submitted: list[Session] = []

    def submit(self, session: Session) -> bool:
        self.submitted.append(session)
        return True


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def store(tmp_path: Path) -> SessionStore:
    return SessionStore(tmp_path / "sessions.sqlite3")


@pytest.fixture
def sync() -> RecordingSync:
    return RecordingSync()


@pytest.fixture
def machine(store: SessionStore, clock: ManualClock, sync: RecordingSync) -> SessionStateMachine:
    m = SessionStateMachine(store, settings=TrackerSettings(), clock=clock, sync=sync)
    yield m
    m.close()


def make_session(
    start: datetime = T0,
    minutes: float = 30,
    *,
    session_id: Optional[str] = None,
    activities: Optional[list[tuple[ActivityType, float, dict]]] = None,
    breaks: Optional[list[tuple[float, float]]] = None,
    activity_type: str = "general",
) -> Session:
    """Build an ended session; offsets are minutes after ``start``."""
    end = start + timedelta(minutes=minutes)
    session = Session(
        session_id=session_id or f"s-{start.isoformat()}",
        start_time=start,
        activity_type=activity_type,
        end_time=end,
        total_time=to_ms(end - start),
        is_active=False,
    )
    for kind, offset, data in activities or []:
        session.activities.append(Activity(kind, start + timedelta(minutes=offset), data))
    for begin, finish in breaks or []:
        brk = Break(start=start + timedelta(minutes=begin))
        brk.close(start + timedelta(minutes=finish))
        session.breaks.append(brk)
    return session


def make_record(
    start: datetime,
    minutes: int = 30,
    *,
    session_id: Optional[str] = None,
    areas: Optional[list[str]] = None,
    score: Optional[int] = None,
) -> SessionRecord:
    return SessionRecord(
        session_id=session_id or f"r-{start.isoformat()}",
        started_at=start,
        ended_at=start + timedelta(minutes=minutes),
        duration_minutes=minutes,
        knowledge_areas=list(areas or []),
        productivity_score=score,
    )
