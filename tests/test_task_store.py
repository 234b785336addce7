from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from errors import InvalidRecurrenceError
from models import ClipContent, ClipKind, IntervalRecurrence, Priority, TimeUnit, WeeklyRecurrence
from task_store import SqliteRecordStore, from_db_time, to_db_time

NOW = datetime(2024, 5, 6, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def store(tmp_path: Path):  # noqa: ANN201
    record_store = SqliteRecordStore(tmp_path / "recall.db")
    yield record_store
    record_store.close()


def _text(content: str) -> ClipContent:
    return ClipContent(kind=ClipKind.TEXT, content=content)


# ---------------------------------------------------------------
# Clips
# ---------------------------------------------------------------


def test_append_clip_skips_consecutive_duplicates(store: SqliteRecordStore) -> None:
    assert store.append_clip(_text("a"), 10) is not None
    assert store.append_clip(_text("a"), 10) is None
    assert store.append_clip(_text("b"), 10) is not None
    assert store.append_clip(_text("a"), 10) is not None

    assert [clip.content for clip in store.list_clips()] == ["a", "b", "a"]


def test_image_duplicates_compare_image_bytes(store: SqliteRecordStore) -> None:
    first = ClipContent(kind=ClipKind.IMAGE, content="Image (1x1)", image_data=b"one")
    second = ClipContent(kind=ClipKind.IMAGE, content="Image (1x1)", image_data=b"two")

    assert store.append_clip(first, 10) is not None
    assert store.append_clip(first, 10) is None
    assert store.append_clip(second, 10) is not None

    latest = store.list_clips()[0]
    assert latest.kind == ClipKind.IMAGE
    assert latest.image_data == b"two"


def test_append_clip_evicts_oldest_beyond_limit(store: SqliteRecordStore) -> None:
    for index in range(5):
        store.append_clip(_text(f"clip {index}"), 3)

    assert [clip.content for clip in store.list_clips()] == ["clip 4", "clip 3", "clip 2"]


def test_delete_and_clear_clips(store: SqliteRecordStore) -> None:
    kept = store.append_clip(_text("keep"), 10)
    gone = store.append_clip(_text("gone"), 10)
    store.delete_clip(gone.id)

    assert store.get_clip(gone.id) is None
    assert store.get_clip(kept.id).content == "keep"

    store.clear_clips()
    assert store.list_clips() == []


# ---------------------------------------------------------------
# Scripts
# ---------------------------------------------------------------


def test_pin_clip_moves_clip_into_scripts(store: SqliteRecordStore) -> None:
    clip = store.append_clip(_text("SELECT * FROM users WHERE id = 1;" * 3), 10)

    script = store.pin_clip(clip.id)

    assert script is not None
    assert script.title == clip.content[:50]
    assert script.content == clip.content
    assert store.get_clip(clip.id) is None
    assert [s.id for s in store.list_scripts()] == [script.id]
    assert store.pin_clip("missing") is None


def test_save_script_updates_existing(store: SqliteRecordStore) -> None:
    script = store.save_script("deploy", "make deploy", type="bash", tags="ops")

    updated = store.save_script("deploy prod", "make deploy ENV=prod", type="bash", script_id=script.id)

    assert updated.id == script.id
    assert [(s.title, s.content) for s in store.list_scripts()] == [("deploy prod", "make deploy ENV=prod")]


def test_clean_expired_scripts(store: SqliteRecordStore) -> None:
    store.save_script("old", "x", expires_at=NOW - timedelta(days=1))
    store.save_script("fresh", "y", expires_at=NOW + timedelta(days=1))
    store.save_script("forever", "z")

    assert store.clean_expired_scripts(NOW) == 1
    assert sorted(s.title for s in store.list_scripts()) == ["forever", "fresh"]


# ---------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------


def test_add_task_parses_and_persists_recurrence(store: SqliteRecordStore) -> None:
    task = store.add_task("water plants", "Plants", NOW, "weekly:mon", Priority.HIGH, "home")

    loaded = store.get_task(task.id)
    assert loaded.recurrence == WeeklyRecurrence(1)
    assert loaded.priority == Priority.HIGH
    assert loaded.category == "home"
    assert loaded.trigger_at == NOW
    assert loaded.notified is False


def test_add_task_accepts_spec_objects(store: SqliteRecordStore) -> None:
    task = store.add_task("stretch", "Stretch", NOW, IntervalRecurrence(45, TimeUnit.MINUTE))

    assert store.get_task(task.id).recurrence == IntervalRecurrence(45, TimeUnit.MINUTE)


def test_malformed_recurrence_is_rejected_at_creation(store: SqliteRecordStore) -> None:
    with pytest.raises(InvalidRecurrenceError):
        store.add_task("x", "x", NOW, "cron:99 * * * *")
    with pytest.raises(InvalidRecurrenceError):
        store.add_task("x", "x", NOW, IntervalRecurrence(0, TimeUnit.DAY))
    with pytest.raises(InvalidRecurrenceError):
        store.add_task("x", "x", NOW, "99999999d")
    with pytest.raises(InvalidRecurrenceError):
        store.add_task("x", "x", NOW, "cron:\u00b2 * * * *")
    assert store.list_tasks() == []


def test_list_due_tasks_filters_and_orders(store: SqliteRecordStore) -> None:
    late = store.add_task("late", "late", NOW - timedelta(minutes=1))
    early = store.add_task("early", "early", NOW - timedelta(hours=1))
    store.add_task("future", "future", NOW + timedelta(seconds=1))
    snoozed = store.add_task("snoozed", "snoozed", NOW - timedelta(hours=2))
    store.snooze_task(snoozed.id, NOW + timedelta(minutes=5))
    done = store.add_task("done", "done", NOW - timedelta(hours=3))
    store.mark_completed(done.id)
    fired = store.add_task("fired", "fired", NOW - timedelta(hours=4))
    store.update_task_trigger(fired.id, fired.trigger_at, notified=True)

    assert [task.id for task in store.list_due_tasks(NOW)] == [early.id, late.id]

    store.clear_snooze(snoozed.id)
    assert [task.id for task in store.list_due_tasks(NOW)] == [snoozed.id, early.id, late.id]


def test_user_edit_always_rearms_task(store: SqliteRecordStore) -> None:
    task = store.add_task("report", "Report", NOW - timedelta(hours=1))
    store.update_task_trigger(task.id, task.trigger_at, notified=True)
    assert store.list_due_tasks(NOW) == []

    store.update_task(task.id, "Report v2", NOW - timedelta(minutes=1), "1d", Priority.URGENT)

    due = store.list_due_tasks(NOW)
    assert [t.title for t in due] == ["Report v2"]
    assert due[0].recurrence == IntervalRecurrence(1, TimeUnit.DAY)
    assert due[0].priority == Priority.URGENT


def test_snooze_rearms_a_fired_one_shot(store: SqliteRecordStore) -> None:
    task = store.add_task("call back", "Call", NOW - timedelta(hours=1))
    store.update_task_trigger(task.id, task.trigger_at, notified=True)

    store.snooze_task(task.id, NOW + timedelta(minutes=10))

    assert store.list_due_tasks(NOW) == []
    assert [t.id for t in store.list_due_tasks(NOW + timedelta(minutes=10))] == [task.id]


def test_overdue_count_and_delete(store: SqliteRecordStore) -> None:
    store.add_task("a", "a", NOW - timedelta(minutes=1))
    b = store.add_task("b", "b", NOW - timedelta(minutes=2))
    store.add_task("c", "c", NOW + timedelta(minutes=1))

    assert store.overdue_count(NOW) == 2
    store.delete_task(b.id)
    assert store.overdue_count(NOW) == 1
    assert len(store.list_tasks()) == 2


def test_unreadable_stored_recurrence_degrades_to_one_shot(store: SqliteRecordStore) -> None:
    task = store.add_task("legacy", "legacy", NOW)
    store._conn.execute("UPDATE tasks SET recurrence = 'fortnightly' WHERE id = ?", (task.id,))

    assert store.get_task(task.id).recurrence is None


def test_db_time_round_trip_is_fixed_width() -> None:
    whole = to_db_time(datetime(2024, 1, 1, tzinfo=timezone.utc))
    fractional = to_db_time(datetime(2024, 1, 1, 0, 0, 0, 5, tzinfo=timezone.utc))
    assert len(whole) == len(fractional)
    assert whole < fractional
    assert from_db_time(whole) == datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert to_db_time(datetime(2024, 1, 1, 2, 0, tzinfo=timezone(timedelta(hours=2)))) == whole
