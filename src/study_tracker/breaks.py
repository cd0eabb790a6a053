"""Inactivity policy: automatic breaks and automatic session end."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional

from .clock import Clock, TimerHandle
from .config import TrackerSettings

logger = logging.getLogger(__name__)

TimeoutCallback = Callable[[str, int], None]


class BreakDetector:
    """Owns the break and auto-end timers for one state machine.

    Both timers are measured from the last activity time handed to
    :meth:`arm`, so re-arming never accumulates drift. Each arming gets a new
    generation number; callbacks receive the session id and generation they
    were armed with so the owner can discard any that fired after a re-arm.
    """

    def __init__(
        self,
        clock: Clock,
        settings: TrackerSettings,
        on_break: TimeoutCallback,
        on_auto_end: TimeoutCallback,
    ) -> None:
        self._clock = clock
        self._settings = settings
        self._on_break = on_break
        self._on_auto_end = on_auto_end
        self._break_timer: Optional[TimerHandle] = None
        self._end_timer: Optional[TimerHandle] = None
        self.generation = 0
        self.last_activity: Optional[datetime] = None

    def arm(self, session_id: str, last_activity: datetime) -> None:
        self.cancel()
        self.last_activity = last_activity
        generation = self.generation
        idle = self._clock.now() - last_activity
        self._break_timer = self._clock.call_later(
            self._settings.break_threshold - idle,
            lambda: self._on_break(session_id, generation),
        )
        self._end_timer = self._clock.call_later(
            self._settings.auto_end_threshold - idle,
            lambda: self._on_auto_end(session_id, generation),
        )
        logger.debug("Inactivity timers armed for %s from %s", session_id, last_activity)

    def cancel(self) -> None:
        self.generation += 1
        for timer in (self._break_timer, self._end_timer):
            if timer is not None:
                timer.cancel()
        self._break_timer = None
        self._end_timer = None

    def break_started_at(self) -> datetime:
        """Moment the break threshold elapsed after the last activity."""
        now = self._clock.now()
        if self.last_activity is None:
            return now
        return min(now, self.last_activity + self._settings.break_threshold)

    def auto_end_at(self) -> datetime:
        """Moment the auto-end threshold elapsed after the last activity."""
        now = self._clock.now()
        if self.last_activity is None:
            return now
        return min(now, self.last_activity + self._settings.auto_end_threshold)
