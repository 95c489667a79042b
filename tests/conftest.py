"""Pytest fixtures and in-memory collaborators for CodeChrono tests."""

from __future__ import annotations

import shutil
import subprocess
from collections.abc import Iterator
from pathlib import Path
from typing import Optional, Sequence

import pytest

from codechrono.db import RecordStore
from codechrono.models import ActivityRecord, RevisionRecord
from codechrono.vcs import InspectorError, RevisionField

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")


def git(repo: Path, *args: str) -> str:
    completed = subprocess.run(
        ["git", *args], cwd=repo, capture_output=True, text=True, check=True
    )
    return completed.stdout.strip()


class ManualClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start: int = 1_700_000_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, milliseconds: int) -> int:
        self.now += milliseconds
        return self.now


class FakeInspector:
    """In-memory version-control inspector."""

    def __init__(self) -> None:
        self.heads: dict[str, str] = {}
        self.branches: dict[str, Optional[str]] = {}
        self.commits: dict[str, dict[RevisionField, str]] = {}
        self.diff_stats: dict[str, str] = {}
        self.failing_fields: set[RevisionField] = set()
        self.branch_fails = False
        self.field_calls: list[tuple[str, RevisionField]] = []

    def add_commit(
        self,
        project_root: str,
        revision_hash: str,
        *,
        message: str = "Update files",
        author: str = "Ada Lovelace",
        email: str = "ada@example.com",
        author_time: int = 1_700_000_000,
        diff_stat: str = " a.py | 3 ++-\n 1 file changed, 2 insertions(+), 1 deletion(-)\n",
        branch: Optional[str] = "main",
    ) -> None:
        self.heads[project_root] = revision_hash
        self.branches[project_root] = branch
        self.commits[revision_hash] = {
            RevisionField.SUBJECT: message,
            RevisionField.AUTHOR_NAME: author,
            RevisionField.AUTHOR_EMAIL: email,
            RevisionField.AUTHOR_TIME: str(author_time),
        }
        self.diff_stats[revision_hash] = diff_stat

    def head_revision(self, project_root: str) -> str:
        try:
            return self.heads[project_root]
        except KeyError:
            raise InspectorError(f"not a git repository: {project_root}") from None

    def current_branch(self, project_root: str) -> Optional[str]:
        if self.branch_fails or project_root not in self.heads:
            raise InspectorError("branch unavailable")
        return self.branches.get(project_root)

    def revision_field(
        self, project_root: str, revision_hash: str, field: RevisionField
    ) -> str:
        self.field_calls.append((revision_hash, field))
        if field in self.failing_fields:
            raise InspectorError(f"git log failed for {field.name}")
        try:
            return self.commits[revision_hash][field]
        except KeyError:
            raise InspectorError(f"unknown revision {revision_hash}") from None

    def diff_stat(self, project_root: str, revision_hash: str) -> str:
        return self.diff_stats.get(revision_hash, "")

    def repository_root(self, file_path: str) -> str:
        matches = [
            root
            for root in self.heads
            if file_path == root or file_path.startswith(root.rstrip("/") + "/")
        ]
        if not matches:
            raise InspectorError(f"no repository owns {file_path}")
        return max(matches, key=len)


class FakeCollector:
    """Remote collector that answers from a script of results.

    Each entry is ``True``/``False`` or an exception instance to raise. Once
    the script runs out, ``default`` is returned.
    """

    def __init__(self, script: Sequence[object] = (), default: bool = True) -> None:
        self.activity_script = list(script)
        self.revision_script: list[object] = []
        self.default = default
        self.activity_batches: list[list[ActivityRecord]] = []
        self.revision_batches: list[list[RevisionRecord]] = []

    def submit_activities(self, records: Sequence[ActivityRecord]) -> bool:
        self.activity_batches.append(list(records))
        return self._answer(self.activity_script)

    def submit_revisions(self, records: Sequence[RevisionRecord]) -> bool:
        self.revision_batches.append(list(records))
        return self._answer(self.revision_script)

    def _answer(self, script: list[object]) -> bool:
        if not script:
            return self.default
        answer = script.pop(0)
        if isinstance(answer, BaseException):
            raise answer
        return bool(answer)


def make_activity(index: int = 0, **overrides: object) -> ActivityRecord:
    values: dict[str, object] = {
        "project_root": "/work/app",
        "file_path": f"/work/app/module_{index}.py",
        "language": "python",
        "timestamp": 1_700_000_000_000 + index * 5_000,
        "duration": 5_000 if index else 0,
        "editor_id": "vscode",
        "revision_hash": "a1b2c3d4",
    }
    values.update(overrides)
    return ActivityRecord(**values)  # type: ignore[arg-type]


def make_revision(revision_hash: str = "a1b2c3d4", **overrides: object) -> RevisionRecord:
    values: dict[str, object] = {
        "project_root": "/work/app",
        "revision_hash": revision_hash,
        "message": "Initial commit",
        "author": "Ada Lovelace",
        "author_email": "ada@example.com",
        "timestamp": 1_700_000_000_000,
        "files_changed": 2,
        "lines_added": 10,
        "lines_deleted": 1,
        "branch": "main",
    }
    values.update(overrides)
    return RevisionRecord(**values)  # type: ignore[arg-type]


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def inspector() -> FakeInspector:
    return FakeInspector()


@pytest.fixture
def collector() -> FakeCollector:
    return FakeCollector()


@pytest.fixture
def store(tmp_path: Path) -> Iterator[RecordStore]:
    record_store = RecordStore(tmp_path / "queue.sqlite3")
    try:
        yield record_store
    finally:
        record_store.close()
