"""Turns raw editor notifications into debounced activity records."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

from .config import TrackerSettings
from .context import ContextResolver
from .events import EditorEvent, EventSource
from .models import ActivityRecord, now_ms
from .status import StatusSink, TrackerStatus, notify_status

logger = logging.getLogger(__name__)


class RevisionLookup(Protocol):
    def active_revision_for_path(self, file_path: str) -> Optional[str]: ...


class ScheduledTask(Protocol):
    def start(self) -> None: ...

    def cancel(self) -> None: ...


class PendingBatch:
    """In-memory records waiting for the next flush.

    Appends and swaps happen under one lock, so no record is lost between
    reading the batch and replacing it.
    """

    def __init__(self) -> None:
        self._records: list[ActivityRecord] = []
        self._lock = threading.Lock()

    def append(self, record: ActivityRecord) -> None:
        with self._lock:
            self._records.append(record)

    def swap(self) -> list[ActivityRecord]:
        with self._lock:
            records, self._records = self._records, []
        return records

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


@dataclass(slots=True)
class TrackerState:
    last_activity_time: int = 0
    tracking_enabled: bool = False


class ActivityTracker:
    """Debounces editor events and queues activity records.

    An event closer than ``debounce_interval`` to the previous accepted one is
    discarded. Accepted events carry the gap since the previous one as their
    duration, or zero for the first event and after ``max_idle_time`` of
    inactivity.
    """

    def __init__(
        self,
        settings: TrackerSettings,
        events: EventSource,
        resolver: ContextResolver,
        revisions: RevisionLookup,
        pending: PendingBatch,
        *,
        sync_task: Optional[ScheduledTask] = None,
        status: Optional[StatusSink] = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.settings = settings
        self.pending = pending
        self._events = events
        self._resolver = resolver
        self._revisions = revisions
        self._sync_task = sync_task
        self._status = status
        self._clock = clock
        self._state = TrackerState()
        self._lock = threading.Lock()
        self._unsubscribers: list[Callable[[], None]] = []

    @property
    def is_tracking(self) -> bool:
        with self._lock:
            return self._state.tracking_enabled

    def start_tracking(self) -> None:
        with self._lock:
            if self._state.tracking_enabled:
                return
            self._state.tracking_enabled = True
            self._state.last_activity_time = 0
        self._unsubscribers.append(self._events.subscribe(self.handle_event))
        logger.info("Tracking started")
        notify_status(self._status, TrackerStatus.ACTIVE)
        if self._sync_task is not None:
            self._sync_task.start()

    def stop_tracking(self) -> None:
        with self._lock:
            if not self._state.tracking_enabled:
                return
            self._state.tracking_enabled = False
        if self._sync_task is not None:
            self._sync_task.cancel()
        while self._unsubscribers:
            self._unsubscribers.pop()()
        logger.info("Tracking stopped")
        notify_status(self._status, TrackerStatus.PAUSED)

    def handle_event(self, event: EditorEvent) -> Optional[ActivityRecord]:
        """Apply the debounce policy to one event; return the record it produced."""
        with self._lock:
            if not self._state.tracking_enabled:
                return None
            now = self._clock()
            last = self._state.last_activity_time
            gap = now - last
            if last != 0 and gap < self.settings.debounce_ms:
                return None
            if last == 0 or gap >= self.settings.max_idle_ms:
                duration = 0
            else:
                duration = gap
            self._state.last_activity_time = now

        if not event.file_path:
            return None
        context = self._resolver.resolve(event)
        record = ActivityRecord(
            project_root=context.project_root,
            file_path=context.file_path,
            language=context.language,
            timestamp=now,
            duration=duration,
            editor_id=self.settings.editor_id,
            revision_hash=self._revisions.active_revision_for_path(context.file_path),
        )
        self.pending.append(record)
        logger.debug(
            "Activity queued: file=%s duration=%dms revision=%s",
            record.file_path,
            record.duration,
            record.revision_hash,
        )
        notify_status(self._status, TrackerStatus.TRACKING)
        return record
