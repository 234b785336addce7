"""Periodic scan of due reminders."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from errors import INVALID_RECURRENCE, NOTIFY_FAILED, RECURRENCE_EXHAUSTED, RecurrenceExhausted
from interfaces import Notifier, Scheduler, TaskStore, TimerHandle
from models import ReminderTask
from recurrence import next_trigger_or_fallback

logger = logging.getLogger(__name__)

NOTIFICATION_TITLE_PREFIX = "Reminder: "
NOTIFICATION_BODY_LIMIT = 100
STARTUP_SCAN_DELAY_S = 2.0

TaskCallback = Callable[[str], None]
ErrorCallback = Callable[[str, str], None]
Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def notification_body(content: str, limit: int = NOTIFICATION_BODY_LIMIT) -> str:
    if len(content) > limit:
        return content[:limit] + "..."
    return content


def is_due(task: ReminderTask, now: datetime) -> bool:
    if task.completed or task.notified or task.trigger_at > now:
        return False
    return task.snoozed_until is None or task.snoozed_until <= now


class DueTaskScanner:
    def __init__(
        self,
        store: TaskStore,
        notifier: Notifier,
        scheduler: Scheduler,
        scan_interval_s: float = 30.0,
        clock: Clock = utc_now,
        on_task_activated: Optional[TaskCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> None:
        self._store = store
        self._notifier = notifier
        self._scheduler = scheduler
        self._scan_interval_s = scan_interval_s
        self._clock = clock
        self._on_task_activated = on_task_activated
        self._on_error = on_error
        self._handles: list[TimerHandle] = []

    def start(self) -> None:
        if self._handles:
            return
        self._handles = [
            self._scheduler.call_later(STARTUP_SCAN_DELAY_S, self.scan),
            self._scheduler.call_every(self._scan_interval_s, self.scan),
        ]

    def stop(self) -> None:
        for handle in self._handles:
            handle.cancel()
        self._handles = []

    def scan(self) -> int:
        """Fire every due task once; returns how many notifications went out."""
        now = self._clock()
        due = [task for task in self._store.list_due_tasks(now) if is_due(task, now)]
        due.sort(key=lambda task: task.trigger_at)

        fired = 0
        for task in due:
            if not self._notify(task):
                continue
            fired += 1
            try:
                self._advance(task)
            except Exception:
                logger.exception("Could not reschedule reminder %s", task.id)
        return fired

    def _notify(self, task: ReminderTask) -> bool:
        try:
            self._notifier.notify(
                NOTIFICATION_TITLE_PREFIX + task.title,
                notification_body(task.content),
                on_activate=lambda task_id=task.id: self._activate(task_id),
            )
        except Exception as exc:
            logger.warning("Notification for task %s failed: %s", task.id, exc)
            if self._on_error:
                self._on_error(NOTIFY_FAILED, str(exc))
            return False
        return True

    def _advance(self, task: ReminderTask) -> None:
        if task.recurrence is None:
            self._store.update_task_trigger(task.id, task.trigger_at, notified=True)
            logger.info("Reminder %s fired", task.id)
            return
        try:
            next_at = next_trigger_or_fallback(
                task.trigger_at, task.recurrence, on_exhausted=self._report_exhausted
            )
        except (OverflowError, ValueError) as exc:
            # no representable next occurrence; park it like a fired one-shot
            logger.warning("Reminder %s cannot repeat past %s: %s", task.id, task.trigger_at.isoformat(), exc)
            if self._on_error:
                self._on_error(INVALID_RECURRENCE, str(exc))
            self._store.update_task_trigger(task.id, task.trigger_at, notified=True)
            return
        self._store.update_task_trigger(task.id, next_at, notified=False)
        logger.info("Reminder %s fired, next at %s", task.id, next_at.isoformat())

    def _report_exhausted(self, exc: RecurrenceExhausted) -> None:
        if self._on_error:
            self._on_error(RECURRENCE_EXHAUSTED, str(exc))

    def _activate(self, task_id: str) -> None:
        if self._on_task_activated:
            self._on_task_activated(task_id)
