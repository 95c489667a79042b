"""Helpers to launch the local agent server."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Sequence

import uvicorn

from .config import TrackerSettings
from .paths import get_db_path
from .webapp import create_app


def run_agent(
    *,
    host: str = "127.0.0.1",
    port: int = 8765,
    db_path: Optional[Path] = None,
    settings: Optional[TrackerSettings] = None,
    project_roots: Sequence[str] = (),
    log_level: str = "info",
) -> None:
    """Serve the agent API; tracking starts with the server and stops with it."""
    app = create_app(
        db_path=db_path or get_db_path(),
        settings=settings or TrackerSettings().with_env_overrides(),
        project_roots=project_roots,
    )

    logging.getLogger("uvicorn.error").setLevel(log_level.upper())
    uvicorn.run(app, host=host, port=port, log_level=log_level)
