"""Version-control inspection backed by the ``git`` command line."""

from __future__ import annotations

import logging
import re
import subprocess
from enum import Enum
from pathlib import Path
from typing import Optional, Protocol

logger = logging.getLogger(__name__)


class InspectorError(RuntimeError):
    """Raised when a version-control query cannot be answered."""


class RevisionField(str, Enum):
    """Single-value revision metadata, keyed by its ``git log`` format."""

    SUBJECT = "%s"
    AUTHOR_NAME = "%an"
    AUTHOR_EMAIL = "%ae"
    AUTHOR_TIME = "%at"


class VersionControlInspector(Protocol):
    def head_revision(self, project_root: str) -> str: ...

    def current_branch(self, project_root: str) -> Optional[str]: ...

    def revision_field(
        self, project_root: str, revision_hash: str, field: RevisionField
    ) -> str: ...

    def diff_stat(self, project_root: str, revision_hash: str) -> str: ...

    def repository_root(self, file_path: str) -> str: ...


class GitInspector:
    """Answers inspector queries by running ``git`` subprocesses."""

    def __init__(self, git_binary: str = "git", timeout: float = 10.0) -> None:
        self._git = git_binary
        self._timeout = timeout

    def head_revision(self, project_root: str) -> str:
        return self._run(project_root, "rev-parse", "HEAD")

    def current_branch(self, project_root: str) -> Optional[str]:
        # Empty output means a detached HEAD.
        return self._run(project_root, "branch", "--show-current") or None

    def revision_field(
        self, project_root: str, revision_hash: str, field: RevisionField
    ) -> str:
        return self._run(
            project_root, "log", "-1", f"--format={field.value}", revision_hash
        )

    def diff_stat(self, project_root: str, revision_hash: str) -> str:
        return self._run(
            project_root, "show", "--stat", "--format=", revision_hash, strip=False
        )

    def repository_root(self, file_path: str) -> str:
        path = Path(file_path)
        cwd = path if path.is_dir() else path.parent
        return self._run(str(cwd), "rev-parse", "--show-toplevel")

    def _run(self, cwd: str, *args: str, strip: bool = True) -> str:
        command = [self._git, *args]
        logger.debug("Running %s in %s", " ".join(command), cwd)
        try:
            completed = subprocess.run(
                command,
                cwd=cwd,
                capture_output=True,
                text=True,
                timeout=self._timeout,
                check=False,
            )
        except (OSError, subprocess.SubprocessError) as exc:
            raise InspectorError(f"Failed to run {' '.join(command)} in {cwd}: {exc}") from exc
        if completed.returncode != 0:
            raise InspectorError(
                f"{' '.join(command)} exited with {completed.returncode} in {cwd}: "
                f"{completed.stderr.strip()}"
            )
        return completed.stdout.strip() if strip else completed.stdout


_FILES_CHANGED_PATTERN = re.compile(r"(\d+) files? changed")
_INSERTIONS_PATTERN = re.compile(r"(\d+) insertions?\(\+\)")
_DELETIONS_PATTERN = re.compile(r"(\d+) deletions?\(-\)")


def parse_diff_stat(output: str) -> tuple[int, int, int]:
    """Return ``(files_changed, lines_added, lines_deleted)`` from ``git show --stat``.

    Counts are best effort. Without a summary line the file count falls back
    to the number of output lines, and missing insertion or deletion figures
    count as zero.
    """
    files_match = _FILES_CHANGED_PATTERN.search(output)
    if files_match:
        files_changed = int(files_match.group(1))
    else:
        files_changed = output.count("\n")
    insertions = _INSERTIONS_PATTERN.search(output)
    deletions = _DELETIONS_PATTERN.search(output)
    return (
        files_changed,
        int(insertions.group(1)) if insertions else 0,
        int(deletions.group(1)) if deletions else 0,
    )
