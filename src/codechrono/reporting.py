"""Console summaries of the offline queue."""

from __future__ import annotations

from collections import defaultdict
from pathlib import Path
from typing import Iterable

from .db import count_rows, database_connection, fetch_queue_summary


class QueuePrinter:
    """Render human-readable summaries of records waiting to be synced."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)

    def print_queue_summary(self) -> None:
        with database_connection(self.db_path) as conn:
            rows = fetch_queue_summary(conn)
            revisions = count_rows(conn, "revisions")
        if not rows and not revisions:
            print("Nothing waiting to be synced.")
            return

        total_records = sum(row["records"] for row in rows)
        total_ms = sum(row["duration_ms"] or 0 for row in rows)

        print("Offline queue")
        print("-" * 40)
        print(f"Activities:  {total_records} ({format_duration(total_ms / 1000)})")
        print(f"Revisions:   {revisions}")

        projects = aggregate_by_project(rows)
        if projects:
            print()
            print("By project:")
            for project, seconds in projects[:5]:
                print(f"  {project[-30:]:<30} {format_duration(seconds)}")

        languages = aggregate_by_language(rows)
        if languages:
            print()
            print("By language:")
            for language, seconds in languages[:5]:
                print(f"  {language:<30} {format_duration(seconds)}")


def aggregate_by_project(rows: Iterable[dict]) -> list[tuple[str, float]]:
    totals: defaultdict[str, float] = defaultdict(float)
    for row in rows:
        project = row["project_root"] or "(no project)"
        totals[project] += (row["duration_ms"] or 0) / 1000
    return sorted(totals.items(), key=lambda item: item[1], reverse=True)


def aggregate_by_language(rows: Iterable[dict]) -> list[tuple[str, float]]:
    totals: defaultdict[str, float] = defaultdict(float)
    for row in rows:
        totals[row["language"]] += (row["duration_ms"] or 0) / 1000
    return sorted(totals.items(), key=lambda item: item[1], reverse=True)


def format_duration(seconds: float) -> str:
    total_seconds = int(round(seconds))
    hours, remainder = divmod(total_seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"
