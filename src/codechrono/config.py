"""Configuration models and helpers for the CodeChrono agent."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from datetime import timedelta
from typing import Optional

DEFAULT_COLLECTOR_URL = "https://codechrono.mukulrai.me/api/graphql"

COLLECTOR_URL_ENV = "CODECHRONO_COLLECTOR_URL"
TOKEN_ENV = "CODECHRONO_TOKEN"


@dataclass(slots=True)
class TrackerSettings:
    """Runtime configuration for tracking and syncing."""

    debounce_interval: timedelta = timedelta(seconds=2)
    max_idle_time: timedelta = timedelta(minutes=5)
    sync_interval: timedelta = timedelta(seconds=60)
    sync_on_start: bool = True
    watch_debounce: timedelta = timedelta(milliseconds=500)
    activity_batch_size: int = 50
    revision_batch_size: int = 20
    collector_url: str = DEFAULT_COLLECTOR_URL
    token: Optional[str] = None
    editor_id: str = "vscode"
    request_timeout: timedelta = timedelta(seconds=30)

    @property
    def debounce_ms(self) -> int:
        return int(self.debounce_interval.total_seconds() * 1000)

    @property
    def max_idle_ms(self) -> int:
        return int(self.max_idle_time.total_seconds() * 1000)

    @classmethod
    def from_intervals(
        cls,
        sync_seconds: float,
        idle_minutes: float,
        debounce_seconds: float = 2.0,
    ) -> "TrackerSettings":
        return cls(
            debounce_interval=timedelta(seconds=debounce_seconds),
            max_idle_time=timedelta(minutes=idle_minutes),
            sync_interval=timedelta(seconds=sync_seconds),
        )

    def with_env_overrides(self) -> "TrackerSettings":
        """Return a copy with collector URL and token overridden from the environment."""
        return replace(
            self,
            collector_url=os.environ.get(COLLECTOR_URL_ENV) or self.collector_url,
            token=os.environ.get(TOKEN_ENV) or self.token,
        )
