"""Watches git metadata of registered projects and reports HEAD or branch ref changes."""

from __future__ import annotations

import logging
import os
import threading
from datetime import timedelta
from pathlib import Path
from typing import Any, Callable, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

logger = logging.getLogger(__name__)


def resolve_git_dir(project_root: Path) -> Optional[Path]:
    """Return the metadata directory for ``project_root``, following worktree links."""
    dot_git = project_root / ".git"
    if dot_git.is_dir():
        return dot_git
    if dot_git.is_file():
        content = dot_git.read_text(encoding="utf-8", errors="replace").strip()
        if content.startswith("gitdir:"):
            git_dir = Path(content[len("gitdir:"):].strip())
            if not git_dir.is_absolute():
                git_dir = (project_root / git_dir).resolve()
            return git_dir if git_dir.is_dir() else None
    return None


def resolve_heads_dir(git_dir: Path) -> Path:
    """Branch refs live in the common directory when ``git_dir`` belongs to a worktree."""
    commondir = git_dir / "commondir"
    if commondir.is_file():
        common = Path(commondir.read_text(encoding="utf-8", errors="replace").strip())
        if not common.is_absolute():
            common = (git_dir / common).resolve()
        return common / "refs" / "heads"
    return git_dir / "refs" / "heads"


class GitRefEventHandler(FileSystemEventHandler):
    """Forwards writes to ``HEAD`` or ``refs/heads/**`` of one project."""

    def __init__(
        self,
        project_root: str,
        git_dir: Path,
        on_ref_change: Callable[[str], object],
    ) -> None:
        self.project_root = project_root
        self.git_dir = git_dir
        self.heads_dir = resolve_heads_dir(git_dir)
        self._on_ref_change = on_ref_change

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._check(event.src_path)

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._check(event.src_path)

    def on_moved(self, event: FileSystemEvent) -> None:
        # git writes refs to ``<name>.lock`` and renames them into place.
        if not event.is_directory:
            self._check(event.dest_path)

    def is_ref_path(self, path: Any) -> bool:
        candidate = Path(os.fsdecode(path))
        if candidate.name.endswith(".lock"):
            return False
        if candidate == self.git_dir / "HEAD":
            return True
        return self.heads_dir in candidate.parents

    def _check(self, path: Any) -> None:
        if self.is_ref_path(path):
            self._on_ref_change(self.project_root)


class GitHeadWatcher:
    """Runs a watchdog observer over each project's git metadata.

    Bursts of ref writes for one project collapse into a single ``on_change``
    call once ``debounce`` has passed without another write.
    """

    def __init__(
        self,
        on_change: Callable[[str], object],
        debounce: timedelta = timedelta(milliseconds=500),
    ) -> None:
        self._on_change = on_change
        self._debounce = debounce.total_seconds()
        self._handlers: dict[str, Optional[GitRefEventHandler]] = {}
        self._scheduled: dict[str, list[Any]] = {}
        self._timers: dict[str, threading.Timer] = {}
        self._observer: Any = None
        self._lock = threading.Lock()

    def watch(self, project_root: str) -> None:
        git_dir = resolve_git_dir(Path(project_root))
        with self._lock:
            if project_root in self._handlers:
                return
            if git_dir is None:
                logger.debug("No git metadata under %s; nothing to watch", project_root)
                self._handlers[project_root] = None
                return
            handler = GitRefEventHandler(project_root, git_dir, self.notify)
            self._handlers[project_root] = handler
            if self._observer is not None:
                self._schedule(handler)

    def unwatch(self, project_root: str) -> None:
        with self._lock:
            self._handlers.pop(project_root, None)
            timer = self._timers.pop(project_root, None)
            for watch in self._scheduled.pop(project_root, []):
                self._observer.unschedule(watch)
        if timer:
            timer.cancel()

    def watched(self) -> list[str]:
        with self._lock:
            return list(self._handlers)

    def is_running(self) -> bool:
        with self._lock:
            return self._observer is not None

    def notify(self, project_root: str) -> None:
        """Note a ref write under ``project_root``; the change fires after the quiet period."""
        if self._debounce <= 0:
            self._fire(project_root)
            return
        with self._lock:
            if project_root not in self._handlers:
                return
            previous = self._timers.get(project_root)
            timer = threading.Timer(self._debounce, self._fire, args=(project_root,))
            timer.daemon = True
            self._timers[project_root] = timer
        if previous:
            previous.cancel()
        timer.start()

    def start(self) -> None:
        with self._lock:
            if self._observer is not None:
                return
            self._observer = Observer()
            for handler in self._handlers.values():
                if handler is not None:
                    self._schedule(handler)
            self._observer.start()
        logger.info("Git metadata watcher started")

    def stop(self) -> None:
        with self._lock:
            observer = self._observer
            self._observer = None
            self._scheduled.clear()
            timers = list(self._timers.values())
            self._timers.clear()
        for timer in timers:
            timer.cancel()
        if observer is None:
            return
        observer.stop()
        observer.join(timeout=5.0)
        logger.info("Git metadata watcher stopped")

    def _schedule(self, handler: GitRefEventHandler) -> None:
        watches = [self._observer.schedule(handler, str(handler.git_dir), recursive=False)]
        if handler.heads_dir.is_dir():
            watches.append(
                self._observer.schedule(handler, str(handler.heads_dir), recursive=True)
            )
        self._scheduled[handler.project_root] = watches

    def _fire(self, project_root: str) -> None:
        with self._lock:
            if self._timers.get(project_root) is threading.current_thread():
                del self._timers[project_root]
            if project_root not in self._handlers:
                return
        logger.debug("Git metadata changed under %s", project_root)
        try:
            self._on_change(project_root)
        except Exception:
            logger.exception("Change handler failed for %s", project_root)
