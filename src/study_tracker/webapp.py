"""FastAPI application exposing session control and analytics."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Literal, Optional

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, ConfigDict, Field

from . import __version__
from .analytics import AnalyticsService, export_report
from .clock import Clock
from .config import SyncSettings, TrackerSettings
from .machine import SessionStateMachine
from .models import ActivityType
from .paths import get_cache_path, get_db_path
from .store import SessionStore
from .sync import RemoteSync

logger = logging.getLogger(__name__)


class StartPayload(BaseModel):
    activity_type: str = "general"

    model_config = ConfigDict(extra="forbid")


class ActivityPayload(BaseModel):
    type: ActivityType
    data: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(extra="forbid")


def create_app(
    *,
    db_path: Optional[Path] = None,
    settings: Optional[TrackerSettings] = None,
    sync_settings: Optional[SyncSettings] = None,
    cache_path: Optional[Path] = None,
    clock: Optional[Clock] = None,
    sync: Optional[RemoteSync] = None,
) -> FastAPI:
    """Instantiate the FastAPI application."""
    resolved_db_path = Path(db_path or get_db_path())
    resolved_settings = settings or TrackerSettings()
    store = SessionStore(resolved_db_path)
    remote = sync or RemoteSync(sync_settings or SyncSettings.from_env())
    machine = SessionStateMachine(store, settings=resolved_settings, clock=clock, sync=remote)
    analytics = AnalyticsService(
        store,
        client=remote.client,
        cache_path=cache_path if cache_path is not None else get_cache_path(),
    )

    app = FastAPI(title="Study Tracker", version=__version__)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.db_path = resolved_db_path
    app.state.machine = machine
    app.state.sync = remote
    app.state.analytics = analytics

    @app.on_event("startup")
    async def _startup() -> None:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s %(levelname)s %(name)s %(message)s",
        )
        remote.start()

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        machine.close()
        remote.stop()

    @app.get("/api/status")
    def status(request: Request) -> Dict[str, Any]:
        current: SessionStateMachine = request.app.state.machine
        return {
            "tracking": current.is_tracking,
            "state": current.state.value,
            "database_path": str(request.app.state.db_path),
            "break_minutes": resolved_settings.break_threshold.total_seconds() / 60.0,
            "auto_end_minutes": resolved_settings.auto_end_threshold.total_seconds() / 60.0,
            "sync_enabled": request.app.state.sync.enabled,
            "pending_persist": current.needs_persist,
        }

    @app.get("/api/session")
    def current_session(request: Request) -> Dict[str, Any]:
        return _session_payload(request.app.state.machine)

    @app.post("/api/session/start")
    def start_session(payload: StartPayload, request: Request) -> Dict[str, Any]:
        current: SessionStateMachine = request.app.state.machine
        current.start(payload.activity_type.strip() or "general")
        return _session_payload(current)

    @app.post("/api/session/activity")
    def record_activity(payload: ActivityPayload, request: Request) -> Dict[str, Any]:
        current: SessionStateMachine = request.app.state.machine
        if current.record_activity(payload.type, payload.data) is None:
            raise HTTPException(status_code=409, detail="No session is being tracked")
        return _session_payload(current)

    @app.post("/api/session/pause")
    def pause_session(request: Request) -> Dict[str, Any]:
        current: SessionStateMachine = request.app.state.machine
        if current.pause() is None:
            raise HTTPException(status_code=409, detail="Session is not active")
        return _session_payload(current)

    @app.post("/api/session/resume")
    def resume_session(request: Request) -> Dict[str, Any]:
        current: SessionStateMachine = request.app.state.machine
        if current.resume() is None:
            raise HTTPException(status_code=409, detail="Session is not on a break")
        return _session_payload(current)

    @app.post("/api/session/end")
    def end_session(request: Request) -> Dict[str, Any]:
        current: SessionStateMachine = request.app.state.machine
        if current.end() is None:
            raise HTTPException(status_code=409, detail="No session is being tracked")
        return _session_payload(current)

    @app.get("/api/analytics")
    def analytics_report(
        request: Request,
        days: int = Query(default=30, ge=1, le=365, description="Window size in days."),
    ) -> Dict[str, Any]:
        return request.app.state.analytics.report(days)

    @app.get("/api/export")
    def export(
        request: Request,
        days: int = Query(default=90, ge=1, le=365, description="Window size in days."),
        format: Literal["json", "csv"] = Query(default="json"),
    ) -> PlainTextResponse:
        payload = request.app.state.analytics.report(days)
        media_type = "text/csv" if format == "csv" else "application/json"
        return PlainTextResponse(export_report(payload, format), media_type=media_type)

    return app


def _session_payload(machine: SessionStateMachine) -> Dict[str, Any]:
    session = machine.session
    stats = machine.stats()
    return {
        "state": machine.state.value,
        "session": session.to_dict() if session is not None else None,
        "stats": stats.to_dict() if stats is not None else None,
    }
