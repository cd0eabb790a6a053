"""Error types raised by the study tracker."""

from __future__ import annotations


class TrackerError(Exception):
    """Base class for study tracker errors."""


class PersistenceFailure(TrackerError):
    """The local session cache could not be written or read."""


class SyncFailure(TrackerError):
    """A push to or fetch from the remote data store failed."""


class InvalidTransition(TrackerError):
    """A lifecycle call is not valid in the current session state."""

    def __init__(self, operation: str, state: str) -> None:
        super().__init__(f"{operation}() is not valid while {state}")
        self.operation = operation
        self.state = state
