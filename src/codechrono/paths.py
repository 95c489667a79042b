"""Where the agent keeps its offline queue and log on this machine."""

from __future__ import annotations

from pathlib import Path

from platformdirs import PlatformDirs


APP_NAME = "CodeChrono"
APP_AUTHOR = "CodeChrono"


def get_data_dir() -> Path:
    """Per-user directory holding records not yet acknowledged by the collector."""
    dirs = PlatformDirs(appname=APP_NAME, appauthor=APP_AUTHOR, roaming=True)
    path = Path(dirs.user_data_path)
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_db_path() -> Path:
    """SQLite file backing the activity and revision queue."""
    return get_data_dir() / "queue.sqlite3"


def get_log_path() -> Path:
    """File the ``serve`` command appends agent logs to."""
    return get_data_dir() / "agent.log"
