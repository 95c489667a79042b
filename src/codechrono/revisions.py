"""Tracks the checked-out revision of each project and records revision changes."""

from __future__ import annotations

import logging
import sqlite3
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional, Protocol

from .models import RevisionDetails, RevisionRecord, now_ms
from .vcs import InspectorError, RevisionField, VersionControlInspector, parse_diff_stat

logger = logging.getLogger(__name__)

_DETAIL_FIELDS = (
    RevisionField.SUBJECT,
    RevisionField.AUTHOR_NAME,
    RevisionField.AUTHOR_EMAIL,
    RevisionField.AUTHOR_TIME,
)

_UNCHANGED = object()


class RevisionSink(Protocol):
    def insert_revision(self, record: RevisionRecord) -> int: ...


@dataclass(slots=True)
class ProjectRevisionState:
    current_revision_hash: Optional[str] = None
    revision_observed_at: dict[str, int] = field(default_factory=dict)


class RevisionCorrelator:
    """Maintains the active revision per project root.

    State lives only in memory and is rebuilt on every run by querying the
    inspector. Inspector failures never escape: a project whose revision
    cannot be determined simply has none.
    """

    def __init__(
        self,
        store: RevisionSink,
        inspector: VersionControlInspector,
        *,
        clock: Callable[[], int] = now_ms,
        max_workers: int = len(_DETAIL_FIELDS),
    ) -> None:
        self._store = store
        self._inspector = inspector
        self._clock = clock
        self._states: dict[str, ProjectRevisionState] = {}
        self._lock = threading.Lock()
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="revision-details"
        )

    def current_revision(self, project_root: str) -> Optional[str]:
        with self._lock:
            state = self._states.get(project_root)
            return state.current_revision_hash if state else None

    def active_revision_for_path(self, file_path: str) -> Optional[str]:
        try:
            project_root = self._inspector.repository_root(file_path)
        except InspectorError:
            logger.debug("No repository owns %s", file_path)
            return None
        return self.current_revision(project_root)

    def projects(self) -> dict[str, Optional[str]]:
        """Snapshot of known project roots and their current revision."""
        with self._lock:
            return {
                root: state.current_revision_hash for root, state in self._states.items()
            }

    def detect_change(self, project_root: str) -> Optional[RevisionRecord]:
        """Record the project's HEAD if it differs from the last one seen."""
        head = self._query_head(project_root)
        if head is None:
            return None
        previous = self._claim_revision(project_root, head)
        if previous is _UNCHANGED:
            return None
        logger.info("Revision changed for %s: %s -> %s", project_root, previous, head)
        return self._record_revision(project_root, head)

    def initialize_project(self, project_root: str) -> Optional[RevisionRecord]:
        """Seed state for a project and record its current revision."""
        with self._lock:
            self._states.setdefault(project_root, ProjectRevisionState())
        return self.detect_change(project_root)

    def initialize_projects(self, project_roots: Iterable[str]) -> None:
        for project_root in project_roots:
            try:
                self.initialize_project(project_root)
            except Exception:
                logger.exception("Failed to initialize project %s", project_root)

    def fetch_revision_details(
        self, project_root: str, revision_hash: str
    ) -> Optional[RevisionDetails]:
        """Fetch commit metadata; any failing sub-query discards the whole result."""
        futures = [
            self._executor.submit(
                self._inspector.revision_field, project_root, revision_hash, detail
            )
            for detail in _DETAIL_FIELDS
        ]
        try:
            message, author, author_email, author_time = (
                future.result() for future in futures
            )
            files_changed, lines_added, lines_deleted = parse_diff_stat(
                self._inspector.diff_stat(project_root, revision_hash)
            )
            timestamp = int(author_time) * 1000
        except (InspectorError, ValueError) as exc:
            for future in futures:
                future.cancel()
            logger.error(
                "Failed to fetch details for %s in %s: %s",
                revision_hash[:8],
                project_root,
                exc,
            )
            return None
        return RevisionDetails(
            message=message,
            author=author,
            author_email=author_email,
            timestamp=timestamp,
            files_changed=files_changed,
            lines_added=lines_added,
            lines_deleted=lines_deleted,
        )

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)

    def _query_head(self, project_root: str) -> Optional[str]:
        try:
            return self._inspector.head_revision(project_root) or None
        except InspectorError:
            logger.debug("Not a repository or HEAD unavailable: %s", project_root)
            return None

    def _query_branch(self, project_root: str) -> Optional[str]:
        try:
            return self._inspector.current_branch(project_root)
        except InspectorError:
            logger.debug("Branch unavailable for %s", project_root)
            return None

    def _claim_revision(self, project_root: str, head: str) -> object:
        # Only the first caller to observe a new HEAD records it.
        with self._lock:
            state = self._states.setdefault(project_root, ProjectRevisionState())
            previous = state.current_revision_hash
            if previous == head:
                return _UNCHANGED
            state.current_revision_hash = head
            state.revision_observed_at.setdefault(head, self._clock())
            return previous

    def _record_revision(
        self, project_root: str, revision_hash: str
    ) -> Optional[RevisionRecord]:
        details = self.fetch_revision_details(project_root, revision_hash)
        if details is None:
            return None
        record = RevisionRecord(
            project_root=project_root,
            revision_hash=revision_hash,
            message=details.message,
            author=details.author,
            author_email=details.author_email,
            timestamp=details.timestamp,
            files_changed=details.files_changed,
            lines_added=details.lines_added,
            lines_deleted=details.lines_deleted,
            branch=self._query_branch(project_root),
        )
        try:
            record.id = self._store.insert_revision(record)
        except sqlite3.Error:
            logger.exception("Failed to store revision %s", revision_hash[:8])
            return None
        logger.info("Stored revision %s for %s", revision_hash[:8], project_root)
        return record

