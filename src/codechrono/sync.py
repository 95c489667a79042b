"""Moves records from memory to the offline queue and on to the remote collector."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, Optional, Protocol, Sequence

from .client import RemoteCollector
from .models import ActivityRecord, RevisionRecord
from .status import StatusSink, TrackerStatus, notify_status
from .tracker import PendingBatch

logger = logging.getLogger(__name__)


class QueueStore(Protocol):
    def insert_activity(self, record: ActivityRecord) -> int: ...

    def unsynced_activities(self, limit: int) -> list[ActivityRecord]: ...

    def unsynced_revisions(self, limit: int) -> list[RevisionRecord]: ...

    def delete_activities(self, ids: Sequence[int]) -> int: ...

    def delete_revisions(self, ids: Sequence[int]) -> int: ...


@dataclass(slots=True)
class SyncResult:
    flushed: int = 0
    dropped: int = 0
    activities_synced: int = 0
    revisions_synced: int = 0
    error: Optional[str] = None


class SyncEngine:
    """One sync iteration: flush, push activities, push revisions.

    Records are deleted from the queue only after the collector acknowledges
    the batch that contained them, so delivery is at-least-once.
    """

    def __init__(
        self,
        store: QueueStore,
        collector: RemoteCollector,
        pending: PendingBatch,
        *,
        activity_batch_size: int = 50,
        revision_batch_size: int = 20,
        status: Optional[StatusSink] = None,
    ) -> None:
        self._store = store
        self._collector = collector
        self._pending = pending
        self._activity_batch_size = activity_batch_size
        self._revision_batch_size = revision_batch_size
        self._status = status

    def run_once(self) -> SyncResult:
        result = SyncResult()
        result.flushed, result.dropped = self.flush()
        try:
            result.activities_synced = self.push_activities()
            result.revisions_synced = self.push_revisions()
        except Exception as exc:
            logger.exception("Sync loop error")
            result.error = str(exc)
        return result

    def flush(self) -> tuple[int, int]:
        """Persist the pending batch; return ``(stored, dropped)``."""
        records = self._pending.swap()
        stored = 0
        for record in records:
            try:
                record.id = self._store.insert_activity(record)
            except Exception:
                logger.exception(
                    "Failed to save activity for %s; dropping it", record.file_path
                )
                continue
            stored += 1
        if records:
            logger.debug("Flushed %d of %d activities.", stored, len(records))
        return stored, len(records) - stored

    def push_activities(self) -> int:
        records = self._store.unsynced_activities(self._activity_batch_size)
        if not records:
            return 0
        if not self._collector.submit_activities(records):
            notify_status(self._status, TrackerStatus.OFFLINE)
            return 0
        self._store.delete_activities(_record_ids(records))
        notify_status(self._status, TrackerStatus.SYNCED)
        return len(records)

    def push_revisions(self) -> int:
        records = self._store.unsynced_revisions(self._revision_batch_size)
        if not records:
            return 0
        if not self._collector.submit_revisions(records):
            notify_status(self._status, TrackerStatus.OFFLINE)
            return 0
        self._store.delete_revisions(_record_ids(records))
        logger.info("Synced %d revisions", len(records))
        return len(records)


def _record_ids(records: Sequence[ActivityRecord | RevisionRecord]) -> list[int]:
    return [record.id for record in records if record.id is not None]


class PeriodicTask:
    """Runs ``target`` every ``interval`` on a daemon thread, starting immediately
    unless ``run_immediately`` is false.

    Each ``start`` gets its own stop event; ``cancel`` sets it, so an
    iteration already running completes but none follows it.
    """

    def __init__(
        self,
        target: Callable[[], object],
        interval: timedelta,
        *,
        name: str = "sync-loop",
        run_immediately: bool = True,
    ) -> None:
        self._target = target
        self._run_immediately = run_immediately
        self._interval = interval
        self._name = name
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._stop_event: Optional[threading.Event] = None

    def start(self) -> None:
        with self._lock:
            if self._stop_event and not self._stop_event.is_set():
                return
            stop_event = threading.Event()
            thread = threading.Thread(
                target=self._run,
                args=(stop_event,),
                name=self._name,
                daemon=True,
            )
            self._thread = thread
            self._stop_event = stop_event
            thread.start()
        logger.debug("%s started; interval %ss", self._name, self._interval.total_seconds())

    def cancel(self) -> None:
        with self._lock:
            if self._stop_event:
                self._stop_event.set()
            self._stop_event = None

    def join(self, timeout: Optional[float] = None) -> None:
        with self._lock:
            thread = self._thread
        if thread and thread is not threading.current_thread():
            thread.join(timeout=timeout)

    def is_running(self) -> bool:
        with self._lock:
            return bool(self._stop_event and self._thread and self._thread.is_alive())

    def _run(self, stop_event: threading.Event) -> None:
        interval = self._interval.total_seconds()
        if not self._run_immediately and stop_event.wait(interval):
            return
        while not stop_event.is_set():
            try:
                self._target()
            except Exception:
                logger.exception("%s iteration failed", self._name)
            if stop_event.wait(interval):
                break
        logger.debug("%s stopped", self._name)
