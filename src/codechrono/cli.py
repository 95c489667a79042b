"""Command-line interface for the CodeChrono agent."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import typer

from .config import TrackerSettings
from .paths import get_db_path, get_log_path

app = typer.Typer(help="Offline-first coding activity tracker.")


@app.callback(no_args_is_help=True)
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logs.")) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


@app.command()
def serve(
    projects: Optional[List[Path]] = typer.Argument(
        None,
        help="Project roots to watch for revision changes.",
    ),
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind the agent API."),
    port: int = typer.Option(
        8765, "--port", min=1, max=65535, help="TCP port for the agent API."
    ),
    db_path: Optional[Path] = typer.Option(
        None,
        "--db",
        path_type=Path,
        help="Location of the offline queue database.",
    ),
    sync_seconds: float = typer.Option(
        60.0,
        "--sync-interval",
        min=5.0,
        help="Seconds between sync attempts.",
    ),
    idle_minutes: float = typer.Option(
        5.0,
        "--idle-threshold",
        min=0.5,
        help="Minutes of inactivity after which time is no longer credited.",
    ),
    log_file: bool = typer.Option(
        True,
        "--log-file/--no-log-file",
        help="Also write logs to the agent log file.",
    ),
) -> None:
    """Run the agent API, tracking editor events until interrupted."""
    from .server_runner import run_agent

    if log_file:
        handler = logging.FileHandler(get_log_path(), encoding="utf-8")
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")
        )
        logging.getLogger().addHandler(handler)

    settings = TrackerSettings.from_intervals(
        sync_seconds=sync_seconds, idle_minutes=idle_minutes
    ).with_env_overrides()
    run_agent(
        host=host,
        port=port,
        db_path=db_path or get_db_path(),
        settings=settings,
        project_roots=[str(path) for path in projects or []],
    )


@app.command()
def status(
    db_path: Optional[Path] = typer.Option(
        None,
        "--db",
        path_type=Path,
        help="Location of the offline queue database.",
    ),
) -> None:
    """Print what is waiting in the offline queue."""
    from .reporting import QueuePrinter

    QueuePrinter(db_path=db_path or get_db_path()).print_queue_summary()


@app.command()
def sync(
    db_path: Optional[Path] = typer.Option(
        None,
        "--db",
        path_type=Path,
        help="Location of the offline queue database.",
    ),
) -> None:
    """Push queued records to the collector once."""
    from .runtime import TrackerRuntime

    runtime = TrackerRuntime(TrackerSettings().with_env_overrides(), db_path or get_db_path())
    try:
        result = runtime.sync_engine.run_once()
    finally:
        runtime.close()
    typer.echo(
        f"Pushed {result.activities_synced} activities and "
        f"{result.revisions_synced} revisions."
    )
    if result.error:
        typer.echo(f"Sync failed: {result.error}", err=True)
        raise typer.Exit(code=1)


@app.command()
def revision(
    project_root: Path = typer.Argument(..., exists=True, file_okay=False, resolve_path=True),
) -> None:
    """Show the revision currently checked out in a project."""
    from .vcs import GitInspector, InspectorError

    inspector = GitInspector()
    try:
        head = inspector.head_revision(str(project_root))
    except InspectorError as exc:
        typer.echo(f"No revision: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    try:
        branch = inspector.current_branch(str(project_root))
    except InspectorError:
        branch = None
    typer.echo(f"{head} ({branch or 'detached'})")
