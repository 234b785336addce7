"""Application entrypoint."""

from __future__ import annotations

import logging
import sys
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from clipboard_source import create_clipboard_source
from clipboard_watcher import ClipboardWatcher
from config import JsonConfigStore
from errors import ERROR_MESSAGES, HOTKEY_UNAVAILABLE, InvalidRecurrenceError
from hotkey import GlobalHotkeyAdapter
from launcher_window import LauncherWindow
from models import ClipboardImage, ClipContent
from notifier import TrayNotifier
from scheduler import QtScheduler
from task_scanner import DueTaskScanner
from task_store import SqliteRecordStore
from toggle_controller import ToggleController

try:
    from PySide6.QtCore import QObject, QSize, Signal
    from PySide6.QtGui import QAction, QBrush, QColor, QIcon, QPainter, QPixmap
    from PySide6.QtWidgets import QApplication, QInputDialog, QMenu, QMessageBox, QSystemTrayIcon
except Exception as exc:  # pragma: no cover
    raise SystemExit(f"PySide6 is required to run the desktop app: {exc}")

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _create_icon(color: str = "#888888", size: int = 22) -> QIcon:
    """Generate a simple circular tray icon with the given color."""
    pixmap = QPixmap(QSize(size, size))
    pixmap.fill(QColor(0, 0, 0, 0))
    painter = QPainter(pixmap)
    painter.setRenderHint(QPainter.Antialiasing, True)
    painter.setBrush(QBrush(QColor(color)))
    painter.setPen(QColor(color))
    painter.drawEllipse(2, 2, size - 4, size - 4)
    painter.end()
    return QIcon(pixmap)


ICON_IDLE = "#888888"      # grey
ICON_ERROR = "#FF8800"     # orange


class UIBridge(QObject):
    invoke_signal = Signal(object)

    def __init__(self) -> None:
        super().__init__()
        self.invoke_signal.connect(self._invoke)

    def call_soon(self, callback: Callable[[], None]) -> None:
        """Run ``callback`` on the Qt main thread; safe from any thread."""
        self.invoke_signal.emit(callback)

    @staticmethod
    def _invoke(callback: Callable[[], None]) -> None:
        callback()


class App:
    def __init__(self) -> None:
        self.app = QApplication(sys.argv)
        self.app.setQuitOnLastWindowClosed(False)
        self.config_store = JsonConfigStore()
        logging.basicConfig(level=self.config_store.get_log_level(), format=LOG_FORMAT)

        self.store = SqliteRecordStore()
        removed = self.store.clean_expired_scripts()
        if removed:
            logger.info("Removed %d expired scripts", removed)

        self.ui = UIBridge()
        self.scheduler = QtScheduler()
        self._pending_task_id: Optional[str] = None

        self.tray = QSystemTrayIcon()
        self.tray.setIcon(_create_icon(ICON_IDLE))
        self.tray.setToolTip("Recall - Ready")
        self._setup_menu()

        self.window = LauncherWindow(
            self.store,
            on_copy=self._copy,
            font_size=self.config_store.get_font_size(),
        )
        self.watcher = ClipboardWatcher(
            create_clipboard_source(self.config_store.get_clipboard_backend()),
            self.scheduler,
            on_clip=self._on_clip,
            poll_interval_s=self.config_store.get_poll_interval_s(),
            on_error=self._on_error,
        )
        self.scanner = DueTaskScanner(
            self.store,
            TrayNotifier(self.tray),
            self.scheduler,
            scan_interval_s=self.config_store.get_scan_interval_s(),
            on_task_activated=self._on_task_activated,
            on_error=self._on_error,
        )
        self.hotkey = GlobalHotkeyAdapter(self.config_store.get_shortcut(), dispatch=self.ui.call_soon)
        self.toggle = ToggleController(
            self.window,
            self.scheduler,
            hotkey=self.hotkey,
            focus_debounce_s=self.config_store.get_focus_debounce_s(),
            on_shown=self._on_shown,
            on_error=self._on_error,
        )
        self.window.focus_lost.connect(self.toggle.on_focus_lost)
        self.window.hidden.connect(self.toggle.on_surface_hidden)
        self.tray.show()

    def _setup_menu(self) -> None:
        menu = QMenu()

        show_action = QAction("Open", menu)
        show_action.triggered.connect(lambda: self.toggle.request_show())
        menu.addAction(show_action)

        remind_action = QAction("Remind Me About Clipboard...", menu)
        remind_action.triggered.connect(self._add_reminder)
        menu.addAction(remind_action)

        menu.addSeparator()

        shortcut_action = QAction("Set Shortcut", menu)
        shortcut_action.triggered.connect(self._set_shortcut)
        menu.addAction(shortcut_action)

        max_clips_action = QAction("Set History Size", menu)
        max_clips_action.triggered.connect(self._set_max_clips)
        menu.addAction(max_clips_action)

        clear_action = QAction("Clear History", menu)
        clear_action.triggered.connect(self._clear_history)
        menu.addAction(clear_action)

        menu.addSeparator()
        quit_action = QAction("Quit", menu)
        quit_action.triggered.connect(self.quit)
        menu.addAction(quit_action)

        self.tray.setContextMenu(menu)

    # ------------------------------------------------------------------
    # Menu handlers
    # ------------------------------------------------------------------

    def _add_reminder(self) -> None:
        content = self.app.clipboard().text().strip()
        if not content:
            QMessageBox.information(None, "Reminder", "Clipboard has no text to remind you about.")
            return
        title, ok = QInputDialog.getText(None, "Reminder", "Title", text=content[:50])
        if not ok:
            return
        minutes, ok = QInputDialog.getInt(None, "Reminder", "Remind in minutes", 30, 1, 60 * 24 * 365)
        if not ok:
            return
        pattern, ok = QInputDialog.getText(
            None,
            "Reminder",
            "Repeat (blank, 15m, 2h, 1d, weekly:mon, monthly:last, cron:0 9 * * 1-5)",
        )
        if not ok:
            return
        trigger_at = datetime.now(timezone.utc) + timedelta(minutes=minutes)
        try:
            self.store.add_task(content, title.strip() or content[:50], trigger_at, pattern or None)
        except InvalidRecurrenceError as exc:
            QMessageBox.warning(None, "Reminder", f"{ERROR_MESSAGES[exc.code]}\n{exc}")
            return
        self._refresh_window()

    def _set_shortcut(self) -> None:
        value, ok = QInputDialog.getText(
            None, "Shortcut", "Use pynput hotkey format, e.g. <ctrl>+<shift>+v"
        )
        if not ok or not value:
            return
        self.config_store.set_shortcut(value)
        if not self.hotkey.change_shortcut(value, self.toggle.on_hotkey):
            QMessageBox.warning(None, "Shortcut", ERROR_MESSAGES[HOTKEY_UNAVAILABLE])

    def _set_max_clips(self) -> None:
        value, ok = QInputDialog.getInt(
            None, "History", "Clips to keep", self.config_store.get_max_clips(), 1, 10000
        )
        if ok:
            self.config_store.set_max_clips(value)

    def _clear_history(self) -> None:
        self.store.clear_clips()
        self._refresh_window()

    # ------------------------------------------------------------------
    # Component callbacks (Qt main thread)
    # ------------------------------------------------------------------

    def _on_clip(self, content: ClipContent) -> None:
        sample = self.store.append_clip(content, self.config_store.get_max_clips())
        if sample is not None:
            logger.debug("Captured %s clip %s", sample.kind.value, sample.id)
            self._refresh_window()

    def _copy(self, text: str, image_data: Optional[bytes]) -> None:
        if image_data:
            self.watcher.copy_to_clipboard(ClipboardImage(data=image_data))
        else:
            self.watcher.copy_to_clipboard(text)

    def _on_task_activated(self, task_id: str) -> None:
        self._pending_task_id = task_id
        self.toggle.request_show()
        if self.window.is_surface_visible():
            self._on_shown()

    def _on_shown(self) -> None:
        self.tray.setIcon(_create_icon(ICON_IDLE))
        if self._pending_task_id is not None:
            self.window.navigate_to_task(self._pending_task_id)
            self._pending_task_id = None

    def _on_error(self, code: str, message: str) -> None:
        self.tray.setIcon(_create_icon(ICON_ERROR))
        self.tray.setToolTip(f"Recall - {ERROR_MESSAGES.get(code, code)}")
        logger.debug("%s: %s", code, message)

    def _refresh_window(self) -> None:
        if self.window.is_surface_visible():
            self.window.reload()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def run(self) -> int:
        self.watcher.start()
        self.scanner.start()
        self.toggle.start()
        return self.app.exec()

    def quit(self) -> None:
        self.toggle.stop()
        self.watcher.stop()
        self.scanner.stop()
        self.scheduler.cancel_all()
        self.store.close()
        self.app.quit()


def main() -> int:
    app = App()
    return app.run()


if __name__ == "__main__":
    raise SystemExit(main())
