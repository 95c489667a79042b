"""SQLite offline queue for activity and revision records.

Rows present in either table are unsynced by definition: the sync engine
deletes them once the remote collector acknowledges a batch.
"""

from __future__ import annotations

import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, Iterator

from .models import ActivityRecord, RevisionRecord


def open_database(path: Path, *, check_same_thread: bool = True) -> sqlite3.Connection:
    """Open (and initialize) the SQLite database."""
    conn = sqlite3.connect(
        path,
        isolation_level=None,
        check_same_thread=check_same_thread,
    )
    conn.row_factory = sqlite3.Row
    initialize_schema(conn)
    return conn


@contextmanager
def database_connection(
    path: Path, *, check_same_thread: bool = True
) -> Iterator[sqlite3.Connection]:
    conn = open_database(path, check_same_thread=check_same_thread)
    try:
        yield conn
    finally:
        conn.close()


def initialize_schema(conn: sqlite3.Connection) -> None:
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS activity_logs (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            project_root TEXT NOT NULL,
            file_path TEXT NOT NULL,
            language TEXT NOT NULL,
            timestamp INTEGER NOT NULL,
            duration INTEGER NOT NULL DEFAULT 0,
            editor_id TEXT NOT NULL,
            revision_hash TEXT
        );

        CREATE TABLE IF NOT EXISTS revisions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            project_root TEXT NOT NULL,
            revision_hash TEXT NOT NULL,
            message TEXT NOT NULL,
            author TEXT NOT NULL,
            author_email TEXT NOT NULL,
            timestamp INTEGER NOT NULL,
            files_changed INTEGER NOT NULL DEFAULT 0,
            lines_added INTEGER NOT NULL DEFAULT 0,
            lines_deleted INTEGER NOT NULL DEFAULT 0,
            branch TEXT
        );

        CREATE INDEX IF NOT EXISTS idx_activity_logs_timestamp
            ON activity_logs(timestamp);
        """
    )


def insert_activity(conn: sqlite3.Connection, record: ActivityRecord) -> int:
    cur = conn.execute(
        """
        INSERT INTO activity_logs (
            project_root,
            file_path,
            language,
            timestamp,
            duration,
            editor_id,
            revision_hash
        ) VALUES (?, ?, ?, ?, ?, ?, ?)
        """,
        (
            record.project_root,
            record.file_path,
            record.language,
            record.timestamp,
            record.duration,
            record.editor_id,
            record.revision_hash,
        ),
    )
    return int(cur.lastrowid)


def insert_revision(conn: sqlite3.Connection, record: RevisionRecord) -> int:
    cur = conn.execute(
        """
        INSERT INTO revisions (
            project_root,
            revision_hash,
            message,
            author,
            author_email,
            timestamp,
            files_changed,
            lines_added,
            lines_deleted,
            branch
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            record.project_root,
            record.revision_hash,
            record.message,
            record.author,
            record.author_email,
            record.timestamp,
            record.files_changed,
            record.lines_added,
            record.lines_deleted,
            record.branch,
        ),
    )
    return int(cur.lastrowid)


def fetch_unsynced_activities(
    conn: sqlite3.Connection, limit: int
) -> list[ActivityRecord]:
    """Return up to ``limit`` queued activity records, oldest first."""
    rows = conn.execute(
        """
        SELECT
            id,
            project_root,
            file_path,
            language,
            timestamp,
            duration,
            editor_id,
            revision_hash
        FROM activity_logs
        ORDER BY id
        LIMIT ?
        """,
        (limit,),
    )
    return [_row_to_activity(row) for row in rows]


def fetch_unsynced_revisions(
    conn: sqlite3.Connection, limit: int
) -> list[RevisionRecord]:
    """Return up to ``limit`` queued revision records, oldest first."""
    rows = conn.execute(
        """
        SELECT
            id,
            project_root,
            revision_hash,
            message,
            author,
            author_email,
            timestamp,
            files_changed,
            lines_added,
            lines_deleted,
            branch
        FROM revisions
        ORDER BY id
        LIMIT ?
        """,
        (limit,),
    )
    return [_row_to_revision(row) for row in rows]


def delete_activities(conn: sqlite3.Connection, ids: Iterable[int]) -> int:
    return _delete_ids(conn, "activity_logs", ids)


def delete_revisions(conn: sqlite3.Connection, ids: Iterable[int]) -> int:
    return _delete_ids(conn, "revisions", ids)


def fetch_queue_summary(conn: sqlite3.Connection) -> list[sqlite3.Row]:
    """Return queued activity milliseconds per project and language."""
    return list(
        conn.execute(
            """
            SELECT
                project_root,
                language,
                COUNT(*) AS records,
                SUM(duration) AS duration_ms
            FROM activity_logs
            GROUP BY project_root, language
            ORDER BY duration_ms DESC;
            """
        )
    )


def count_rows(conn: sqlite3.Connection, table: str) -> int:
    if table not in {"activity_logs", "revisions"}:
        raise ValueError(f"Unknown table: {table}")
    row = conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()
    return int(row[0])


def _delete_ids(conn: sqlite3.Connection, table: str, ids: Iterable[int]) -> int:
    id_list = [int(record_id) for record_id in ids]
    if not id_list:
        return 0
    placeholders = ", ".join("?" for _ in id_list)
    cur = conn.execute(
        f"DELETE FROM {table} WHERE id IN ({placeholders})",
        id_list,
    )
    return cur.rowcount


def _row_to_activity(row: sqlite3.Row) -> ActivityRecord:
    return ActivityRecord(
        id=row["id"],
        project_root=row["project_root"],
        file_path=row["file_path"],
        language=row["language"],
        timestamp=row["timestamp"],
        duration=row["duration"],
        editor_id=row["editor_id"],
        revision_hash=row["revision_hash"],
    )


def _row_to_revision(row: sqlite3.Row) -> RevisionRecord:
    return RevisionRecord(
        id=row["id"],
        project_root=row["project_root"],
        revision_hash=row["revision_hash"],
        message=row["message"],
        author=row["author"],
        author_email=row["author_email"],
        timestamp=row["timestamp"],
        files_changed=row["files_changed"],
        lines_added=row["lines_added"],
        lines_deleted=row["lines_deleted"],
        branch=row["branch"],
    )


class RecordStore:
    """Thread-safe wrapper around the queue database.

    Every statement on the shared connection runs under one lock, so the row id
    read after an insert always belongs to that insert.
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)
        self._conn = open_database(self.db_path, check_same_thread=False)
        self._lock = threading.Lock()

    def insert_activity(self, record: ActivityRecord) -> int:
        with self._lock:
            return insert_activity(self._conn, record)

    def insert_revision(self, record: RevisionRecord) -> int:
        with self._lock:
            return insert_revision(self._conn, record)

    def unsynced_activities(self, limit: int) -> list[ActivityRecord]:
        with self._lock:
            return fetch_unsynced_activities(self._conn, limit)

    def unsynced_revisions(self, limit: int) -> list[RevisionRecord]:
        with self._lock:
            return fetch_unsynced_revisions(self._conn, limit)

    def delete_activities(self, ids: Iterable[int]) -> int:
        with self._lock:
            return delete_activities(self._conn, ids)

    def delete_revisions(self, ids: Iterable[int]) -> int:
        with self._lock:
            return delete_revisions(self._conn, ids)

    def count_activities(self) -> int:
        with self._lock:
            return count_rows(self._conn, "activity_logs")

    def count_revisions(self) -> int:
        with self._lock:
            return count_rows(self._conn, "revisions")

    def close(self) -> None:
        with self._lock:
            self._conn.close()
