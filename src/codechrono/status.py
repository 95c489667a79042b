"""Best-effort status reporting for the tracker."""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from enum import Enum
from typing import Optional, Protocol

logger = logging.getLogger(__name__)


class TrackerStatus(str, Enum):
    ACTIVE = "Active"
    PAUSED = "Paused"
    TRACKING = "Tracking..."
    SYNCED = "Synced"
    OFFLINE = "Offline"


class StatusSink(Protocol):
    def update(self, status: TrackerStatus, detail: Optional[str] = None) -> None: ...


class StatusBoard:
    """Remembers the latest status so the HTTP API can report it."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._status: Optional[TrackerStatus] = None
        self._detail: Optional[str] = None
        self._updated_at: Optional[datetime] = None

    def update(self, status: TrackerStatus, detail: Optional[str] = None) -> None:
        with self._lock:
            changed = status is not self._status
            self._status = status
            self._detail = detail
            self._updated_at = datetime.now()
        if changed:
            logger.info("Status: %s", status.value)

    def snapshot(self) -> dict[str, Optional[str]]:
        with self._lock:
            return {
                "status": self._status.value if self._status else None,
                "detail": self._detail,
                "updated_at": self._updated_at.isoformat() if self._updated_at else None,
            }


def notify_status(
    sink: Optional[StatusSink], status: TrackerStatus, detail: Optional[str] = None
) -> None:
    """Forward a status change; sink failures are logged and otherwise ignored."""
    if sink is None:
        return
    try:
        sink.update(status, detail)
    except Exception:
        logger.exception("Status sink failed to accept %s", status.value)
