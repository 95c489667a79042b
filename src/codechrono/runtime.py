"""Wires the store, revision tracking, debouncing and syncing into one agent."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Iterable, Optional

from .client import CollectorClient, RemoteCollector
from .config import TrackerSettings
from .context import ContextResolver
from .db import RecordStore
from .events import LocalEventSource
from .models import now_ms
from .revisions import RevisionCorrelator
from .status import StatusBoard
from .sync import PeriodicTask, SyncEngine
from .tracker import ActivityTracker, PendingBatch
from .vcs import GitInspector, InspectorError, VersionControlInspector
from .watcher import GitHeadWatcher

logger = logging.getLogger(__name__)


class TrackerRuntime:
    """Owns every long-lived component of a running agent."""

    def __init__(
        self,
        settings: TrackerSettings,
        db_path: Path,
        *,
        inspector: Optional[VersionControlInspector] = None,
        collector: Optional[RemoteCollector] = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.settings = settings
        self.db_path = Path(db_path)
        self.status = StatusBoard()
        self.store = RecordStore(self.db_path)
        self.inspector = inspector or GitInspector()
        self._owns_collector = collector is None
        self.collector = collector or CollectorClient(
            settings.collector_url,
            settings.token,
            timeout=settings.request_timeout.total_seconds(),
        )
        self.events = LocalEventSource()
        self.pending = PendingBatch()
        self.correlator = RevisionCorrelator(self.store, self.inspector, clock=clock)
        self.watcher = GitHeadWatcher(self.correlator.detect_change, settings.watch_debounce)
        self.sync_engine = SyncEngine(
            self.store,
            self.collector,
            self.pending,
            activity_batch_size=settings.activity_batch_size,
            revision_batch_size=settings.revision_batch_size,
            status=self.status,
        )
        self.sync_task = PeriodicTask(
            self.sync_engine.run_once,
            settings.sync_interval,
            run_immediately=settings.sync_on_start,
        )
        self.tracker = ActivityTracker(
            settings,
            self.events,
            ContextResolver(self.inspector),
            self.correlator,
            self.pending,
            sync_task=self.sync_task,
            status=self.status,
            clock=clock,
        )

    def start(self, project_roots: Iterable[str] = ()) -> None:
        for project_root in project_roots:
            self.register_project(project_root)
        self.watcher.start()
        self.tracker.start_tracking()

    def stop(self) -> None:
        self.tracker.stop_tracking()
        self.watcher.stop()
        self.sync_task.join(timeout=10)
        # Persist whatever the tracker still holds in memory.
        self.sync_engine.flush()

    def close(self) -> None:
        self.stop()
        self.correlator.close()
        if self._owns_collector and isinstance(self.collector, CollectorClient):
            self.collector.close()
        self.store.close()
        logger.info("Agent stopped.")

    def resolve_project_root(self, project_root: str) -> str:
        """Key a project by its repository top level, or by the folder itself outside git."""
        root = str(Path(project_root).expanduser().resolve())
        try:
            return self.inspector.repository_root(root)
        except InspectorError:
            return root

    def register_project(self, project_root: str) -> Optional[str]:
        """Start tracking revisions for ``project_root``; return its current revision."""
        root = self.resolve_project_root(project_root)
        self.correlator.initialize_project(root)
        self.watcher.watch(root)
        return self.correlator.current_revision(root)

    def snapshot(self) -> dict[str, Any]:
        return {
            "tracking": self.tracker.is_tracking,
            "sync_running": self.sync_task.is_running(),
            **self.status.snapshot(),
            "pending": len(self.pending),
            "unsynced_activities": self.store.count_activities(),
            "unsynced_revisions": self.store.count_revisions(),
            "projects": self.correlator.projects(),
            "database_path": str(self.db_path),
            "collector_url": self.settings.collector_url,
        }
