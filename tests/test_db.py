from __future__ import annotations

import threading
from pathlib import Path

from codechrono.db import (
    RecordStore,
    count_rows,
    database_connection,
    fetch_queue_summary,
)

from conftest import make_activity, make_revision


def test_activity_round_trip_only_adds_id(store: RecordStore) -> None:
    record = make_activity(1)
    record_id = store.insert_activity(record)

    [stored] = store.unsynced_activities(50)

    assert stored.id == record_id
    stored.id = None
    assert stored == record


def test_activity_without_revision_round_trips(store: RecordStore) -> None:
    record = make_activity(2, revision_hash=None, project_root="")
    store.insert_activity(record)

    [stored] = store.unsynced_activities(50)

    assert stored.revision_hash is None
    assert stored.project_root == ""


def test_revision_round_trip_only_adds_id(store: RecordStore) -> None:
    record = make_revision(branch=None)
    record_id = store.insert_revision(record)

    [stored] = store.unsynced_revisions(20)

    assert stored.id == record_id
    stored.id = None
    assert stored == record


def test_store_assigns_distinct_ids_and_returns_oldest_first(store: RecordStore) -> None:
    ids = [store.insert_activity(make_activity(index)) for index in range(5)]

    assert len(set(ids)) == 5
    batch = store.unsynced_activities(3)
    assert [record.id for record in batch] == ids[:3]


def test_delete_removes_only_given_ids(store: RecordStore) -> None:
    ids = [store.insert_activity(make_activity(index)) for index in range(3)]

    deleted = store.delete_activities([ids[0], ids[2]])

    assert deleted == 2
    assert [record.id for record in store.unsynced_activities(50)] == [ids[1]]
    assert store.delete_activities([]) == 0


def test_deleted_ids_are_not_reused(store: RecordStore) -> None:
    first = store.insert_revision(make_revision("a1"))
    store.delete_revisions([first])

    second = store.insert_revision(make_revision("b2"))

    assert second != first


def test_concurrent_writers_never_share_an_id(store: RecordStore) -> None:
    ids: list[int] = []
    lock = threading.Lock()

    def writer(offset: int) -> None:
        for index in range(25):
            if index % 2:
                new_id = store.insert_activity(make_activity(offset + index))
                with lock:
                    ids.append(new_id)
            else:
                store.insert_revision(make_revision(f"rev-{offset + index}"))

    threads = [threading.Thread(target=writer, args=(n * 100,)) for n in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(ids) == len(set(ids))
    assert store.count_activities() == len(ids)
    assert store.count_revisions() == 4 * 13


def test_returned_ids_belong_to_the_inserted_rows(store: RecordStore) -> None:
    activity_ids: dict[int, str] = {}
    revision_ids: dict[int, str] = {}
    lock = threading.Lock()

    def activity_writer(offset: int) -> None:
        for index in range(40):
            record = make_activity(offset + index)
            new_id = store.insert_activity(record)
            with lock:
                activity_ids[new_id] = record.file_path

    def revision_writer(offset: int) -> None:
        for index in range(40):
            revision_hash = f"rev-{offset + index}"
            new_id = store.insert_revision(make_revision(revision_hash))
            with lock:
                revision_ids[new_id] = revision_hash

    threads = [threading.Thread(target=activity_writer, args=(n * 100,)) for n in range(3)]
    threads += [threading.Thread(target=revision_writer, args=(n * 100,)) for n in range(3)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    activities = {record.id: record.file_path for record in store.unsynced_activities(500)}
    revisions = {record.id: record.revision_hash for record in store.unsynced_revisions(500)}
    assert activity_ids == activities
    assert revision_ids == revisions


def test_queue_summary_groups_by_project_and_language(tmp_path: Path) -> None:
    db_path = tmp_path / "queue.sqlite3"
    store = RecordStore(db_path)
    store.insert_activity(make_activity(1, duration=4_000))
    store.insert_activity(make_activity(2, duration=6_000))
    store.insert_activity(make_activity(3, language="markdown", duration=1_000))
    store.close()

    with database_connection(db_path) as conn:
        rows = fetch_queue_summary(conn)
        assert count_rows(conn, "activity_logs") == 3

    assert [(row["language"], row["records"], row["duration_ms"]) for row in rows] == [
        ("python", 2, 10_000),
        ("markdown", 1, 1_000),
    ]
