"""Frameless launcher window listing clips, pinned scripts and reminders."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Callable, Optional

from PySide6.QtCore import QEvent, Qt, QTimer, Signal
from PySide6.QtGui import QKeySequence, QShortcut
from PySide6.QtWidgets import (
    QApplication,
    QInputDialog,
    QLabel,
    QListWidget,
    QListWidgetItem,
    QMessageBox,
    QVBoxLayout,
    QWidget,
)

from errors import ERROR_MESSAGES, InvalidRecurrenceError
from models import ClipKind, ReminderTask
from recurrence import describe_recurrence, format_recurrence
from task_scanner import utc_now
from task_store import SqliteRecordStore

WINDOW_WIDTH = 900
WINDOW_HEIGHT = 560
ROW_PREVIEW_LENGTH = 120
SNOOZE_MINUTES = 10

FONT_SIZES_PX = {"small": 13, "medium": 15, "large": 18}

_KIND_ROLE = Qt.UserRole
_ID_ROLE = Qt.UserRole + 1


def _preview(text: str) -> str:
    line = " ".join(text.split())
    if len(line) > ROW_PREVIEW_LENGTH:
        return line[:ROW_PREVIEW_LENGTH] + "..."
    return line


class LauncherWindow(QWidget):
    focus_lost = Signal()
    hidden = Signal()

    def __init__(
        self,
        store: SqliteRecordStore,
        on_copy: Callable[[str, Optional[bytes]], None],
        font_size: str = "small",
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        super().__init__()
        self._store = store
        self._clock = clock
        self._on_copy = on_copy
        self._content_ready = False

        self.setWindowFlags(Qt.WindowStaysOnTopHint | Qt.FramelessWindowHint | Qt.Tool)
        self.setFixedSize(WINDOW_WIDTH, WINDOW_HEIGHT)

        self._header = QLabel("")
        self._list = QListWidget()
        self._list.itemActivated.connect(self._activate_item)
        self.setStyleSheet(
            f"font-size: {FONT_SIZES_PX.get(font_size, 13)}px;"
            "background: rgba(30,30,30,235); color: white;"
        )

        layout = QVBoxLayout()
        layout.setContentsMargins(12, 12, 12, 12)
        layout.addWidget(self._header)
        layout.addWidget(self._list)
        self.setLayout(layout)

        QShortcut(QKeySequence(Qt.Key_Escape), self, activated=self.hide)
        QShortcut(QKeySequence("Ctrl+P"), self, activated=self._pin_selected)
        QShortcut(QKeySequence("Ctrl+D"), self, activated=self._complete_selected)
        QShortcut(QKeySequence(Qt.Key_Delete), self, activated=self._delete_selected)
        QShortcut(QKeySequence("Ctrl+S"), self, activated=self._snooze_selected)
        QShortcut(QKeySequence("Ctrl+E"), self, activated=self._edit_selected)

        self.reload()

    # ------------------------------------------------------------------
    # Surface protocol
    # ------------------------------------------------------------------

    def show_surface(self) -> None:
        self._center()
        self.show()
        self.raise_()
        self.activateWindow()

    def hide_surface(self) -> None:
        self.hide()

    def is_surface_visible(self) -> bool:
        return self.isVisible() and not self.isMinimized()

    def is_content_ready(self) -> bool:
        return self._content_ready

    def reset_content(self) -> None:
        self._content_ready = False
        QTimer.singleShot(0, self.reload)

    # ------------------------------------------------------------------
    # Content
    # ------------------------------------------------------------------

    def reload(self) -> None:
        self._list.clear()
        now = self._clock()
        tasks = self._store.list_tasks()
        overdue = self._store.overdue_count(now)
        for task in tasks:
            label = (
                f"⏰ {task.title} · {task.trigger_at.astimezone():%Y-%m-%d %H:%M}"
                f" · {describe_recurrence(task.recurrence)} · {task.priority.value}"
            )
            if task.snoozed_until is not None and task.snoozed_until > now:
                label += f" · snoozed until {task.snoozed_until.astimezone():%H:%M}"
            self._add_row(label, "task", task.id)
        for script in self._store.list_scripts():
            self._add_row(f"📌 {script.title}", "script", script.id)
        for clip in self._store.list_clips():
            prefix = "🖼" if clip.kind == ClipKind.IMAGE else "📋"
            self._add_row(f"{prefix} {_preview(clip.content)}", "clip", clip.id)
        self._header.setText(f"{len(tasks)} reminders ({overdue} due)")
        if self._list.count():
            self._list.setCurrentRow(0)
        self._content_ready = True

    def navigate_to_task(self, task_id: str) -> None:
        for row in range(self._list.count()):
            item = self._list.item(row)
            if item.data(_KIND_ROLE) == "task" and item.data(_ID_ROLE) == task_id:
                self._list.setCurrentItem(item)
                self._list.scrollToItem(item)
                return

    def _add_row(self, label: str, kind: str, item_id: str) -> None:
        item = QListWidgetItem(label)
        item.setData(_KIND_ROLE, kind)
        item.setData(_ID_ROLE, item_id)
        self._list.addItem(item)

    def _activate_item(self, item: QListWidgetItem) -> None:
        kind = item.data(_KIND_ROLE)
        item_id = item.data(_ID_ROLE)
        if kind == "clip":
            clip = self._store.get_clip(item_id)
            if clip is not None:
                self._on_copy(clip.content, clip.image_data if clip.kind == ClipKind.IMAGE else None)
        elif kind == "script":
            for script in self._store.list_scripts():
                if script.id == item_id:
                    self._on_copy(script.content, None)
                    break
        elif kind == "task":
            task = self._store.get_task(item_id)
            if task is not None:
                self._on_copy(task.content, None)
        self.hide()

    def _pin_selected(self) -> None:
        item = self._list.currentItem()
        if item is None or item.data(_KIND_ROLE) != "clip":
            return
        self._store.pin_clip(item.data(_ID_ROLE))
        self.reload()

    def _complete_selected(self) -> None:
        item = self._list.currentItem()
        if item is None or item.data(_KIND_ROLE) != "task":
            return
        self._store.mark_completed(item.data(_ID_ROLE))
        self.reload()

    def _delete_selected(self) -> None:
        item = self._list.currentItem()
        if item is None:
            return
        kind, item_id = item.data(_KIND_ROLE), item.data(_ID_ROLE)
        if kind == "clip":
            self._store.delete_clip(item_id)
        elif kind == "script":
            self._store.delete_script(item_id)
        elif kind == "task":
            self._store.delete_task(item_id)
        self.reload()

    def _snooze_selected(self) -> None:
        """Snooze the selected reminder, or wake it if it is already snoozed."""
        task = self._selected_task()
        if task is None:
            return
        now = self._clock()
        if task.snoozed_until is not None and task.snoozed_until > now:
            self._store.clear_snooze(task.id)
        else:
            self._store.snooze_task(task.id, now + timedelta(minutes=SNOOZE_MINUTES))
        self.reload()

    def _edit_selected(self) -> None:
        task = self._selected_task()
        if task is None:
            return
        answer = self._ask_schedule(format_recurrence(task.recurrence) or "")
        if answer is None:
            return
        minutes, pattern = answer
        try:
            self._store.update_task(
                task.id,
                task.title,
                self._clock() + timedelta(minutes=minutes),
                pattern or None,
                task.priority,
                task.category,
            )
        except InvalidRecurrenceError as exc:
            QMessageBox.warning(self, "Reminder", f"{ERROR_MESSAGES[exc.code]}\n{exc}")
            return
        self.reload()

    def _ask_schedule(self, pattern: str) -> Optional[tuple[int, str]]:
        minutes, ok = QInputDialog.getInt(self, "Reminder", "Remind in minutes", 30, 1, 60 * 24 * 365)
        if not ok:
            return None
        pattern, ok = QInputDialog.getText(self, "Reminder", "Repeat", text=pattern)
        if not ok:
            return None
        return minutes, pattern.strip()

    def _selected_task(self) -> Optional[ReminderTask]:
        item = self._list.currentItem()
        if item is None or item.data(_KIND_ROLE) != "task":
            return None
        return self._store.get_task(item.data(_ID_ROLE))

    # ------------------------------------------------------------------
    # Qt events
    # ------------------------------------------------------------------

    def changeEvent(self, event: QEvent) -> None:  # noqa: N802
        if event.type() == QEvent.ActivationChange and self.isVisible() and not self.isActiveWindow():
            self.focus_lost.emit()
        super().changeEvent(event)

    def hideEvent(self, event: QEvent) -> None:  # noqa: N802
        super().hideEvent(event)
        self.hidden.emit()

    def _center(self) -> None:
        screen = QApplication.primaryScreen()
        if screen is None:
            return
        geom = screen.availableGeometry()
        x = geom.x() + (geom.width() - self.width()) // 2
        y = geom.y() + (geom.height() - self.height()) // 2
        self.move(x, y)
