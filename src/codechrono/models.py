"""Domain models for recorded activity and source-control revisions."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Optional


@dataclass(slots=True)
class ActivityRecord:
    """One debounced unit of editing work.

    ``timestamp`` and ``duration`` are milliseconds. ``id`` is assigned by the
    record store on insert and stays ``None`` while the record only lives in
    memory.
    """

    project_root: str
    file_path: str
    language: str
    timestamp: int
    duration: int
    editor_id: str
    revision_hash: Optional[str] = None
    id: Optional[int] = None

    def to_payload(self) -> dict[str, Any]:
        return {
            "projectPath": self.project_root,
            "filePath": self.file_path,
            "language": self.language,
            "timestamp": self.timestamp,
            "duration": self.duration,
            "editor": self.editor_id,
            "commitHash": self.revision_hash,
        }


@dataclass(slots=True)
class RevisionRecord:
    """A commit observed as the checked-out revision of a project."""

    project_root: str
    revision_hash: str
    message: str
    author: str
    author_email: str
    timestamp: int
    files_changed: int = 0
    lines_added: int = 0
    lines_deleted: int = 0
    branch: Optional[str] = None
    id: Optional[int] = None

    def to_payload(self) -> dict[str, Any]:
        return {
            "projectPath": self.project_root,
            "commitHash": self.revision_hash,
            "message": self.message,
            "author": self.author,
            "authorEmail": self.author_email,
            "timestamp": self.timestamp,
            "filesChanged": self.files_changed,
            "linesAdded": self.lines_added,
            "linesDeleted": self.lines_deleted,
            "branch": self.branch,
        }


@dataclass(slots=True)
class RevisionDetails:
    """Metadata fetched for a single revision hash."""

    message: str
    author: str
    author_email: str
    timestamp: int
    files_changed: int
    lines_added: int
    lines_deleted: int


def now_ms() -> int:
    """Wall-clock time in milliseconds since the epoch."""
    return time.time_ns() // 1_000_000
