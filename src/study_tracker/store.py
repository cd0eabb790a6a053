"""SQLite-backed local cache of study sessions."""

from __future__ import annotations

import json
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional

from .errors import PersistenceFailure
from .models import Session


def open_database(path: Path) -> sqlite3.Connection:
    """Open (and initialize) the SQLite database."""
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(path, isolation_level=None)
    conn.row_factory = sqlite3.Row
    initialize_schema(conn)
    return conn


@contextmanager
def database_connection(path: Path) -> Iterator[sqlite3.Connection]:
    conn = open_database(path)
    try:
        yield conn
    finally:
        conn.close()


def initialize_schema(conn: sqlite3.Connection) -> None:
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS study_sessions (
            session_id TEXT PRIMARY KEY,
            start_time TEXT NOT NULL,
            end_time TEXT,
            activity_type TEXT NOT NULL,
            total_time INTEGER NOT NULL DEFAULT 0,
            is_active INTEGER NOT NULL DEFAULT 1,
            breaks TEXT NOT NULL DEFAULT '[]',
            activities TEXT NOT NULL DEFAULT '[]'
        );

        CREATE INDEX IF NOT EXISTS idx_sessions_start_time
            ON study_sessions(start_time);
        """
    )


class SessionStore:
    """Durable mirror of every session, keyed by session id."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        try:
            with database_connection(self.db_path) as conn:
                yield conn
        except sqlite3.Error as exc:
            raise PersistenceFailure(f"session cache at {self.db_path} failed: {exc}") from exc

    def upsert(self, session: Session) -> None:
        record = session.to_dict()
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO study_sessions (
                    session_id,
                    start_time,
                    end_time,
                    activity_type,
                    total_time,
                    is_active,
                    breaks,
                    activities
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(session_id) DO UPDATE SET
                    start_time = excluded.start_time,
                    end_time = excluded.end_time,
                    activity_type = excluded.activity_type,
                    total_time = excluded.total_time,
                    is_active = excluded.is_active,
                    breaks = excluded.breaks,
                    activities = excluded.activities
                """,
                (
                    record["sessionId"],
                    record["startTime"],
                    record["endTime"],
                    record["activityType"],
                    record["totalTime"],
                    1 if record["isActive"] else 0,
                    json.dumps(record["breaks"]),
                    json.dumps(record["activities"], default=str),
                ),
            )

    def get(self, session_id: str) -> Optional[Session]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM study_sessions WHERE session_id = ?",
                (session_id,),
            ).fetchone()
        return _row_to_session(row) if row is not None else None

    def all(self) -> list[Session]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM study_sessions ORDER BY start_time"
            ).fetchall()
        return [_row_to_session(row) for row in rows]

    def since(self, cutoff: datetime) -> list[Session]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT * FROM study_sessions
                WHERE start_time >= ?
                ORDER BY start_time
                """,
                (cutoff.isoformat(),),
            ).fetchall()
        return [_row_to_session(row) for row in rows]

    def active(self) -> Optional[Session]:
        """Most recently started session that was never ended."""
        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT * FROM study_sessions
                WHERE is_active = 1
                ORDER BY start_time DESC
                LIMIT 1
                """
            ).fetchone()
        return _row_to_session(row) if row is not None else None

    def delete(self, session_id: str) -> None:
        with self._connect() as conn:
            cur = conn.execute(
                "DELETE FROM study_sessions WHERE session_id = ?",
                (session_id,),
            )
        if cur.rowcount == 0:
            raise ValueError(f"No session found for id={session_id}")


def _row_to_session(row: sqlite3.Row) -> Session:
    return Session.from_dict(
        {
            "sessionId": row["session_id"],
            "startTime": row["start_time"],
            "endTime": row["end_time"],
            "activityType": row["activity_type"],
            "totalTime": row["total_time"],
            "isActive": bool(row["is_active"]),
            "breaks": json.loads(row["breaks"]),
            "activities": json.loads(row["activities"]),
        }
    )
