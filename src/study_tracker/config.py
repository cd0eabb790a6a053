"""Configuration models and helpers for the study tracker."""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional


@dataclass(slots=True)
class TrackerSettings:
    """Inactivity thresholds for the live session."""

    break_threshold: timedelta = timedelta(minutes=5)
    auto_end_threshold: timedelta = timedelta(minutes=30)

    @classmethod
    def from_minutes(
        cls,
        break_minutes: float,
        auto_end_minutes: Optional[float] = None,
    ) -> "TrackerSettings":
        auto_end = (
            auto_end_minutes if auto_end_minutes is not None else max(break_minutes * 6, 30.0)
        )
        if auto_end < break_minutes:
            raise ValueError("auto-end threshold must not be shorter than the break threshold")
        return cls(
            break_threshold=timedelta(minutes=break_minutes),
            auto_end_threshold=timedelta(minutes=auto_end),
        )


@dataclass(slots=True)
class SyncSettings:
    """Connection details for the remote session store."""

    base_url: Optional[str] = None
    api_key: Optional[str] = None
    user_id: Optional[str] = None
    timeout: float = 10.0
    queue_size: int = 32

    @property
    def enabled(self) -> bool:
        return bool(self.base_url and self.api_key and self.user_id)

    @classmethod
    def from_env(cls) -> "SyncSettings":
        return cls(
            base_url=_env("STUDY_TRACKER_SUPABASE_URL"),
            api_key=_env("STUDY_TRACKER_SUPABASE_KEY"),
            user_id=_env("STUDY_TRACKER_USER_ID"),
        )


def _env(name: str) -> Optional[str]:
    value = os.getenv(name, "").strip()
    return value or None
