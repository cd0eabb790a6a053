"""Time source and cancellable delayed callbacks."""

from __future__ import annotations

import threading
from datetime import datetime, timedelta
from typing import Callable, Protocol


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Clock(Protocol):
    """Supplies "now" and schedules callbacks; injected into the state machine."""

    def now(self) -> datetime: ...

    def call_later(self, delay: timedelta, callback: Callable[[], None]) -> TimerHandle: ...


class SystemClock:
    """Wall-clock time with callbacks fired on daemon ``threading.Timer`` threads."""

    def now(self) -> datetime:
        return datetime.now()

    def call_later(self, delay: timedelta, callback: Callable[[], None]) -> TimerHandle:
        timer = threading.Timer(max(delay.total_seconds(), 0.0), callback)
        timer.daemon = True
        timer.start()
        return timer
