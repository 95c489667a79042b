"""Editor notifications delivered to the tracker."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Protocol

logger = logging.getLogger(__name__)


class EventKind(str, Enum):
    TEXT_CHANGED = "textChanged"
    SELECTION_CHANGED = "selectionChanged"
    DOCUMENT_SAVED = "documentSaved"


@dataclass(slots=True, frozen=True)
class EditorEvent:
    """A raw notification about the document the editor has active."""

    kind: EventKind
    file_path: str
    language: str
    workspace_root: Optional[str] = None


EventHandler = Callable[[EditorEvent], object]


class EventSource(Protocol):
    def subscribe(self, handler: EventHandler) -> Callable[[], None]:
        """Register ``handler`` and return a callable that unregisters it."""
        ...


class LocalEventSource:
    """In-process event source fed by the local HTTP API."""

    def __init__(self) -> None:
        self._handlers: list[EventHandler] = []
        self._lock = threading.Lock()

    def subscribe(self, handler: EventHandler) -> Callable[[], None]:
        with self._lock:
            self._handlers.append(handler)

        def unsubscribe() -> None:
            with self._lock:
                if handler in self._handlers:
                    self._handlers.remove(handler)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._handlers)

    def publish(self, event: EditorEvent) -> list[object]:
        """Deliver ``event`` to every subscriber and return what each handler returned."""
        with self._lock:
            handlers = list(self._handlers)
        results = [handler(event) for handler in handlers]
        logger.debug(
            "Delivered %s for %s to %d handlers",
            event.kind.value,
            event.file_path,
            len(handlers),
        )
        return results
