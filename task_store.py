"""SQLite record store for clips, pinned scripts and reminder tasks."""

from __future__ import annotations

import logging
import sqlite3
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

from errors import InvalidRecurrenceError
from models import (
    ClipContent,
    ClipKind,
    ClipSample,
    Priority,
    RecurrenceSpec,
    ReminderTask,
    Script,
)
from recurrence import format_recurrence, parse_recurrence, validate_recurrence

logger = logging.getLogger(__name__)

DEFAULT_MAX_CLIPS = 100
PIN_TITLE_LENGTH = 50

# Fixed width so ISO strings compare correctly in SQL.
_TIME_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"

_SCHEMA = """
CREATE TABLE IF NOT EXISTS clips (
    id TEXT NOT NULL UNIQUE,
    kind TEXT NOT NULL DEFAULT 'text',
    content TEXT NOT NULL,
    image_data BLOB,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS scripts (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    content TEXT NOT NULL,
    type TEXT NOT NULL DEFAULT 'text',
    tags TEXT DEFAULT '',
    expires_at TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS tasks (
    id TEXT PRIMARY KEY,
    content TEXT NOT NULL,
    title TEXT NOT NULL,
    trigger_at TEXT NOT NULL,
    recurrence TEXT,
    notified INTEGER NOT NULL DEFAULT 0,
    completed INTEGER NOT NULL DEFAULT 0,
    snoozed_until TEXT,
    priority TEXT NOT NULL DEFAULT 'medium',
    category TEXT NOT NULL DEFAULT '',
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_scripts_updated ON scripts(updated_at DESC);
CREATE INDEX IF NOT EXISTS idx_tasks_trigger ON tasks(trigger_at ASC);
"""

_TASK_COLUMNS = (
    "id, content, title, trigger_at, recurrence, notified, completed, "
    "snoozed_until, priority, category, created_at"
)
_SCRIPT_COLUMNS = "id, title, content, type, tags, expires_at, created_at, updated_at"

RecurrenceInput = Union[str, RecurrenceSpec, None]


def to_db_time(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).strftime(_TIME_FORMAT)


def from_db_time(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.strptime(value, _TIME_FORMAT).replace(tzinfo=timezone.utc)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _coerce_recurrence(recurrence: RecurrenceInput) -> Optional[RecurrenceSpec]:
    if recurrence is None or isinstance(recurrence, str):
        return parse_recurrence(recurrence)
    validate_recurrence(recurrence)
    return recurrence


class SqliteRecordStore:
    def __init__(self, path: Optional[Path] = None) -> None:
        self._path = path or Path.home() / ".config" / "recall" / "recall.db"
        if str(self._path) != ":memory:":
            self._path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()
        self._conn = sqlite3.connect(str(self._path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        with self._conn:
            self._conn.executescript(_SCHEMA)

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    # ------------------------------------------------------------------
    # Clips
    # ------------------------------------------------------------------

    def append_clip(self, content: ClipContent, max_count: int = DEFAULT_MAX_CLIPS) -> Optional[ClipSample]:
        """Store a clip unless it repeats the latest one; evicts oldest beyond ``max_count``."""
        with self._lock, self._conn:
            latest = self._conn.execute(
                "SELECT kind, content, image_data FROM clips ORDER BY rowid DESC LIMIT 1"
            ).fetchone()
            if latest is not None and latest["kind"] == content.kind.value:
                if content.kind == ClipKind.IMAGE:
                    duplicate = bytes(latest["image_data"] or b"") == (content.image_data or b"")
                else:
                    duplicate = latest["content"] == content.content
                if duplicate:
                    return None

            sample = ClipSample(
                id=str(uuid.uuid4()),
                kind=content.kind,
                content=content.content,
                captured_at=_now(),
                image_data=content.image_data,
            )
            self._conn.execute(
                "INSERT INTO clips (id, kind, content, image_data, created_at) VALUES (?, ?, ?, ?, ?)",
                (
                    sample.id,
                    sample.kind.value,
                    sample.content,
                    sample.image_data,
                    to_db_time(sample.captured_at),
                ),
            )
            count = self._conn.execute("SELECT COUNT(*) FROM clips").fetchone()[0]
            if count > max_count:
                self._conn.execute(
                    "DELETE FROM clips WHERE rowid IN (SELECT rowid FROM clips ORDER BY rowid ASC LIMIT ?)",
                    (count - max_count,),
                )
            return sample

    def list_clips(self) -> list[ClipSample]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT id, kind, content, image_data, created_at FROM clips ORDER BY rowid DESC"
            ).fetchall()
        return [self._row_to_clip(row) for row in rows]

    def get_clip(self, clip_id: str) -> Optional[ClipSample]:
        with self._lock:
            row = self._conn.execute(
                "SELECT id, kind, content, image_data, created_at FROM clips WHERE id = ?",
                (clip_id,),
            ).fetchone()
        return self._row_to_clip(row) if row else None

    def delete_clip(self, clip_id: str) -> None:
        with self._lock, self._conn:
            self._conn.execute("DELETE FROM clips WHERE id = ?", (clip_id,))

    def clear_clips(self) -> None:
        with self._lock, self._conn:
            self._conn.execute("DELETE FROM clips")

    @staticmethod
    def _row_to_clip(row: sqlite3.Row) -> ClipSample:
        image_data = row["image_data"]
        return ClipSample(
            id=row["id"],
            kind=ClipKind(row["kind"]),
            content=row["content"],
            captured_at=from_db_time(row["created_at"]),
            image_data=bytes(image_data) if image_data is not None else None,
        )

    # ------------------------------------------------------------------
    # Scripts
    # ------------------------------------------------------------------

    def save_script(
        self,
        title: str,
        content: str,
        type: str = "text",
        tags: str = "",
        expires_at: Optional[datetime] = None,
        script_id: Optional[str] = None,
    ) -> Script:
        now = _now()
        expires = to_db_time(expires_at) if expires_at else None
        with self._lock, self._conn:
            if script_id:
                self._conn.execute(
                    "UPDATE scripts SET title = ?, content = ?, type = ?, tags = ?, expires_at = ?, updated_at = ? "
                    "WHERE id = ?",
                    (title, content, type, tags, expires, to_db_time(now), script_id),
                )
                row = self._conn.execute(
                    f"SELECT {_SCRIPT_COLUMNS} FROM scripts WHERE id = ?", (script_id,)
                ).fetchone()
                if row is not None:
                    return self._row_to_script(row)
            script_id = script_id or str(uuid.uuid4())
            self._conn.execute(
                f"INSERT INTO scripts ({_SCRIPT_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (script_id, title, content, type, tags, expires, to_db_time(now), to_db_time(now)),
            )
        return Script(
            id=script_id,
            title=title,
            content=content,
            type=type,
            tags=tags,
            expires_at=from_db_time(expires),
            created_at=from_db_time(to_db_time(now)),
            updated_at=from_db_time(to_db_time(now)),
        )

    def list_scripts(self) -> list[Script]:
        with self._lock:
            rows = self._conn.execute(
                f"SELECT {_SCRIPT_COLUMNS} FROM scripts ORDER BY updated_at DESC"
            ).fetchall()
        return [self._row_to_script(row) for row in rows]

    def delete_script(self, script_id: str) -> None:
        with self._lock, self._conn:
            self._conn.execute("DELETE FROM scripts WHERE id = ?", (script_id,))

    def pin_clip(self, clip_id: str, title: Optional[str] = None) -> Optional[Script]:
        """Turn a clip into a permanent script and drop it from the history."""
        with self._lock:
            clip = self.get_clip(clip_id)
            if clip is None:
                return None
            script = self.save_script(title=title or clip.content[:PIN_TITLE_LENGTH], content=clip.content)
            self.delete_clip(clip_id)
        return script

    def clean_expired_scripts(self, now: Optional[datetime] = None) -> int:
        with self._lock, self._conn:
            cursor = self._conn.execute(
                "DELETE FROM scripts WHERE expires_at IS NOT NULL AND expires_at < ?",
                (to_db_time(now or _now()),),
            )
        return cursor.rowcount

    @staticmethod
    def _row_to_script(row: sqlite3.Row) -> Script:
        return Script(
            id=row["id"],
            title=row["title"],
            content=row["content"],
            type=row["type"],
            tags=row["tags"] or "",
            expires_at=from_db_time(row["expires_at"]),
            created_at=from_db_time(row["created_at"]),
            updated_at=from_db_time(row["updated_at"]),
        )

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def add_task(
        self,
        content: str,
        title: str,
        trigger_at: datetime,
        recurrence: RecurrenceInput = None,
        priority: Priority = Priority.MEDIUM,
        category: str = "",
    ) -> ReminderTask:
        spec = _coerce_recurrence(recurrence)
        task = ReminderTask(
            id=str(uuid.uuid4()),
            content=content,
            title=title,
            trigger_at=from_db_time(to_db_time(trigger_at)),
            recurrence=spec,
            priority=Priority(priority),
            category=category,
            created_at=from_db_time(to_db_time(_now())),
        )
        with self._lock, self._conn:
            self._conn.execute(
                f"INSERT INTO tasks ({_TASK_COLUMNS}) VALUES (?, ?, ?, ?, ?, 0, 0, NULL, ?, ?, ?)",
                (
                    task.id,
                    task.content,
                    task.title,
                    to_db_time(task.trigger_at),
                    format_recurrence(spec),
                    task.priority.value,
                    task.category,
                    to_db_time(task.created_at),
                ),
            )
        return task

    def get_task(self, task_id: str) -> Optional[ReminderTask]:
        with self._lock:
            row = self._conn.execute(
                f"SELECT {_TASK_COLUMNS} FROM tasks WHERE id = ?", (task_id,)
            ).fetchone()
        return self._row_to_task(row) if row else None

    def list_tasks(self) -> list[ReminderTask]:
        with self._lock:
            rows = self._conn.execute(
                f"SELECT {_TASK_COLUMNS} FROM tasks WHERE completed = 0 ORDER BY trigger_at ASC"
            ).fetchall()
        return [self._row_to_task(row) for row in rows]

    def list_due_tasks(self, now: datetime) -> list[ReminderTask]:
        stamp = to_db_time(now)
        with self._lock:
            rows = self._conn.execute(
                f"SELECT {_TASK_COLUMNS} FROM tasks "
                "WHERE completed = 0 AND notified = 0 AND trigger_at <= ? "
                "AND (snoozed_until IS NULL OR snoozed_until <= ?) "
                "ORDER BY trigger_at ASC",
                (stamp, stamp),
            ).fetchall()
        return [self._row_to_task(row) for row in rows]

    def overdue_count(self, now: Optional[datetime] = None) -> int:
        with self._lock:
            row = self._conn.execute(
                "SELECT COUNT(*) FROM tasks WHERE completed = 0 AND trigger_at <= ?",
                (to_db_time(now or _now()),),
            ).fetchone()
        return row[0]

    def update_task_trigger(self, task_id: str, trigger_at: datetime, notified: bool) -> None:
        with self._lock, self._conn:
            self._conn.execute(
                "UPDATE tasks SET trigger_at = ?, notified = ? WHERE id = ?",
                (to_db_time(trigger_at), int(notified), task_id),
            )

    def update_task(
        self,
        task_id: str,
        title: str,
        trigger_at: datetime,
        recurrence: RecurrenceInput = None,
        priority: Priority = Priority.MEDIUM,
        category: str = "",
    ) -> None:
        """User edit; always re-arms the task by clearing ``notified``."""
        spec = _coerce_recurrence(recurrence)
        with self._lock, self._conn:
            self._conn.execute(
                "UPDATE tasks SET title = ?, trigger_at = ?, recurrence = ?, priority = ?, category = ?, "
                "notified = 0 WHERE id = ?",
                (
                    title,
                    to_db_time(trigger_at),
                    format_recurrence(spec),
                    Priority(priority).value,
                    category,
                    task_id,
                ),
            )

    def snooze_task(self, task_id: str, until: datetime) -> None:
        with self._lock, self._conn:
            self._conn.execute(
                "UPDATE tasks SET snoozed_until = ?, notified = 0 WHERE id = ?",
                (to_db_time(until), task_id),
            )

    def clear_snooze(self, task_id: str) -> None:
        with self._lock, self._conn:
            self._conn.execute("UPDATE tasks SET snoozed_until = NULL WHERE id = ?", (task_id,))

    def mark_completed(self, task_id: str) -> None:
        with self._lock, self._conn:
            self._conn.execute("UPDATE tasks SET completed = 1 WHERE id = ?", (task_id,))

    def delete_task(self, task_id: str) -> None:
        with self._lock, self._conn:
            self._conn.execute("DELETE FROM tasks WHERE id = ?", (task_id,))

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> ReminderTask:
        try:
            recurrence = parse_recurrence(row["recurrence"])
        except InvalidRecurrenceError as exc:
            logger.warning("Task %s has an unreadable repeat pattern, treating as one-shot: %s", row["id"], exc)
            recurrence = None
        return ReminderTask(
            id=row["id"],
            content=row["content"],
            title=row["title"],
            trigger_at=from_db_time(row["trigger_at"]),
            recurrence=recurrence,
            notified=bool(row["notified"]),
            completed=bool(row["completed"]),
            snoozed_until=from_db_time(row["snoozed_until"]),
            priority=Priority(row["priority"]),
            category=row["category"] or "",
            created_at=from_db_time(row["created_at"]),
        )
