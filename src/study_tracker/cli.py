"""Command-line interface for the study tracker."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer

from .config import SyncSettings, TrackerSettings
from .paths import get_cache_path, get_db_path

app = typer.Typer(help="Study-session tracking and productivity analytics.")


@app.callback(no_args_is_help=True)
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logs.")) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def _analytics_service(db_path: Optional[Path]):
    from .analytics import AnalyticsService
    from .store import SessionStore
    from .sync import SupabaseClient

    sync_settings = SyncSettings.from_env()
    client = SupabaseClient.from_settings(sync_settings) if sync_settings.enabled else None
    return AnalyticsService(
        SessionStore(db_path or get_db_path()),
        client=client,
        cache_path=get_cache_path(),
    )


@app.command()
def report(
    days: int = typer.Option(30, "--days", min=1, max=365, help="Window size in days."),
    db_path: Optional[Path] = typer.Option(
        None,
        "--db",
        path_type=Path,
        help="Location of the session SQLite database.",
    ),
) -> None:
    """Print study time, streaks and insights for recent sessions."""
    from .reporting import SummaryPrinter

    payload = _analytics_service(db_path).report(days)
    SummaryPrinter(payload).print_report()


@app.command()
def export(
    days: int = typer.Option(90, "--days", min=1, max=365, help="Window size in days."),
    fmt: str = typer.Option("json", "--format", help="Output format: json or csv."),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", path_type=Path, help="Write to a file instead of stdout."
    ),
    db_path: Optional[Path] = typer.Option(
        None, "--db", path_type=Path, help="Location of the session SQLite database."
    ),
) -> None:
    """Export the analytics report."""
    from .analytics import export_report

    if fmt not in ("json", "csv"):
        raise typer.BadParameter("format must be 'json' or 'csv'", param_hint="--format")
    text = export_report(_analytics_service(db_path).report(days), fmt)
    if output is None:
        typer.echo(text)
    else:
        output.write_text(text, encoding="utf-8")
        typer.echo(f"Wrote {output}")


@app.command()
def web(
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind the API."),
    port: int = typer.Option(
        8766, "--port", min=1, max=65535, help="TCP port for the API."
    ),
    db_path: Optional[Path] = typer.Option(
        None, "--db", path_type=Path, help="Location of the session SQLite database."
    ),
    break_minutes: float = typer.Option(
        5.0,
        "--break-minutes",
        min=0.5,
        help="Minutes of inactivity before a break opens automatically.",
    ),
    auto_end_minutes: Optional[float] = typer.Option(
        None,
        "--auto-end-minutes",
        min=1.0,
        help="Minutes of inactivity before the session ends (defaults to 30).",
    ),
) -> None:
    """Serve the session-tracking API."""
    from .server_runner import run_server

    try:
        settings = TrackerSettings.from_minutes(break_minutes, auto_end_minutes)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--auto-end-minutes") from exc
    run_server(
        host=host,
        port=port,
        db_path=db_path or get_db_path(),
        settings=settings,
        sync_settings=SyncSettings.from_env(),
    )
