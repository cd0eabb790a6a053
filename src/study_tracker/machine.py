"""Lifecycle of the single live study session."""

from __future__ import annotations

import logging
import threading
import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from .breaks import BreakDetector
from .clock import Clock, SystemClock
from .config import TrackerSettings
from .errors import InvalidTransition, PersistenceFailure
from .models import Activity, ActivityType, Break, Session, SessionStats, to_ms
from .scoring import productivity_score, session_stats
from .store import SessionStore
from .sync import RemoteSync

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"
    ON_BREAK = "on_break"
    ENDED = "ended"


_TRACKING = (SessionState.ACTIVE, SessionState.ON_BREAK)


class SessionStateMachine:
    """Owns the in-flight session and drives its transitions.

    Every mutation is written through to the store. Timer callbacks from the
    break detector run on other threads, so all transitions hold ``_lock``.
    Calls that are not valid in the current state are logged and ignored.
    """

    def __init__(
        self,
        store: SessionStore,
        *,
        settings: Optional[TrackerSettings] = None,
        clock: Optional[Clock] = None,
        sync: Optional[RemoteSync] = None,
        restore: bool = True,
    ) -> None:
        self.store = store
        self.settings = settings or TrackerSettings()
        self.clock = clock or SystemClock()
        self.sync = sync
        self._lock = threading.RLock()
        self._session: Optional[Session] = None
        self._state = SessionState.IDLE
        self._unsaved: dict[str, Session] = {}
        self._detector = BreakDetector(
            self.clock,
            self.settings,
            on_break=self._on_break_timeout,
            on_auto_end=self._on_auto_end_timeout,
        )
        if restore:
            self.restore()

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def is_tracking(self) -> bool:
        return self._state in _TRACKING

    @property
    def needs_persist(self) -> bool:
        return bool(self._unsaved)

    def start(self, activity_type: str = "general") -> Session:
        with self._lock:
            if self._state in _TRACKING:
                logger.info("Ending session %s before starting a new one.", self._session_id())
                self._end_locked()
            now = self.clock.now()
            session = Session(
                session_id=str(uuid.uuid4()),
                start_time=now,
                activity_type=activity_type or "general",
            )
            self._session = session
            self._state = SessionState.ACTIVE
            self._detector.arm(session.session_id, now)
            self._persist()
            logger.info("Started %s session %s.", session.activity_type, session.session_id)
            return session

    def record_activity(
        self,
        activity_type: ActivityType | str,
        data: Optional[dict[str, Any]] = None,
    ) -> Optional[Activity]:
        kind = ActivityType(activity_type)
        with self._lock:
            if not self._allowed("record_activity", *_TRACKING):
                return None
            session = self._require_session()
            now = self.clock.now()
            if session.activities and now < session.activities[-1].timestamp:
                now = session.activities[-1].timestamp
            open_break = session.open_break
            if open_break is not None:
                open_break.close(max(now, open_break.start))
                self._state = SessionState.ACTIVE
            activity = Activity(type=kind, timestamp=now, data=dict(data or {}))
            session.activities.append(activity)
            session.total_time = session.elapsed_ms(now)
            self._detector.arm(session.session_id, now)
            self._persist()
            logger.debug("Recorded %s in session %s.", kind.value, session.session_id)
            return activity

    def pause(self) -> Optional[Break]:
        with self._lock:
            if not self._allowed("pause", SessionState.ACTIVE):
                return None
            return self._open_break(self.clock.now())

    def resume(self) -> Optional[Break]:
        with self._lock:
            if not self._allowed("resume", SessionState.ON_BREAK):
                return None
            session = self._require_session()
            now = self.clock.now()
            brk = session.open_break
            if brk is not None:
                brk.close(max(now, brk.start))
            self._state = SessionState.ACTIVE
            session.total_time = session.elapsed_ms(now)
            self._detector.arm(session.session_id, now)
            self._persist()
            logger.info("Resumed session %s.", session.session_id)
            return brk

    def end(self) -> Optional[Session]:
        with self._lock:
            if self._state not in _TRACKING:
                logger.debug("end() called while %s; nothing to do.", self._state.value)
                return None
            return self._end_locked()

    def stats(self) -> Optional[SessionStats]:
        with self._lock:
            if self._session is None:
                return None
            return session_stats(self._session, self.clock.now())

    def score(self) -> Optional[int]:
        with self._lock:
            if self._session is None:
                return None
            return productivity_score(self._session, self.clock.now())

    def restore(self) -> Optional[Session]:
        """Adopt the unfinished session left in the store by a previous run."""
        with self._lock:
            try:
                session = self.store.active()
            except PersistenceFailure:
                logger.exception("Could not read the session cache; starting idle.")
                return None
            if session is None:
                return None
            self._session = session
            self._state = SessionState.ON_BREAK if session.open_break else SessionState.ACTIVE
            self._detector.arm(session.session_id, session.last_activity_time())
            logger.info("Restored session %s (%s).", session.session_id, self._state.value)
            return session

    def close(self) -> None:
        """Cancel pending timers without ending the session."""
        with self._lock:
            self._detector.cancel()
            if self._unsaved:
                self._persist()

    def _end_locked(self, at: Optional[datetime] = None) -> Session:
        session = self._require_session()
        now = at or self.clock.now()
        if now < session.start_time:
            now = session.start_time
        brk = session.open_break
        if brk is not None:
            brk.close(max(now, brk.start))
        session.end_time = now
        session.total_time = to_ms(now - session.start_time)
        session.is_active = False
        self._state = SessionState.ENDED
        self._detector.cancel()
        self._persist()
        logger.info(
            "Ended session %s after %.1f minutes.",
            session.session_id,
            session.total_time / 60_000,
        )
        if self.sync is not None:
            self.sync.submit(session)
        return session

    def _open_break(self, start: datetime) -> Break:
        session = self._require_session()
        brk = Break(start=start)
        session.breaks.append(brk)
        session.total_time = session.elapsed_ms(self.clock.now())
        self._state = SessionState.ON_BREAK
        self._persist()
        logger.info("Session %s on break since %s.", session.session_id, start)
        return brk

    def _on_break_timeout(self, session_id: str, generation: int) -> None:
        with self._lock:
            if not self._is_current(session_id, generation):
                return
            if self._state is not SessionState.ACTIVE:
                return
            self._open_break(self._detector.break_started_at())

    def _on_auto_end_timeout(self, session_id: str, generation: int) -> None:
        with self._lock:
            if not self._is_current(session_id, generation):
                return
            logger.info(
                "No activity for %s; ending session %s.",
                self.settings.auto_end_threshold,
                session_id,
            )
            self._end_locked(self._detector.auto_end_at())

    def _is_current(self, session_id: str, generation: int) -> bool:
        current = (
            self._state in _TRACKING
            and self._session is not None
            and self._session.session_id == session_id
            and self._detector.generation == generation
        )
        if not current:
            logger.debug("Discarding stale timer for session %s.", session_id)
        return current

    def _allowed(self, operation: str, *states: SessionState) -> bool:
        if self._state in states:
            return True
        logger.warning("Ignoring %s", InvalidTransition(operation, self._state.value))
        return False

    def _require_session(self) -> Session:
        if self._session is None:
            raise InvalidTransition("session", self._state.value)
        return self._session

    def _session_id(self) -> Optional[str]:
        return self._session.session_id if self._session is not None else None

    def _persist(self) -> None:
        """Write the live session plus any earlier writes that failed."""
        if self._session is not None:
            self._unsaved[self._session.session_id] = self._session
        for session_id, session in list(self._unsaved.items()):
            try:
                self.store.upsert(session)
            except PersistenceFailure:
                logger.exception(
                    "Failed to persist session %s; retrying on the next change.",
                    session_id,
                )
            else:
                del self._unsaved[session_id]
