"""Desktop notifications through the system tray icon."""

from __future__ import annotations

from typing import Callable, Optional

try:
    from PySide6.QtWidgets import QSystemTrayIcon
except Exception:  # pragma: no cover
    QSystemTrayIcon = None  # type: ignore


class TrayNotifier:
    """Shows tray balloons; a click activates the most recent one.

    The tray only reports that *a* message was clicked, and a newer balloon
    replaces the older one on screen, so the last activation wins.
    """

    def __init__(self, tray: "QSystemTrayIcon", timeout_ms: int = 10000) -> None:
        if QSystemTrayIcon is None:
            raise RuntimeError("PySide6 is not installed")
        self._tray = tray
        self._timeout_ms = timeout_ms
        self._on_activate: Optional[Callable[[], None]] = None
        self._tray.messageClicked.connect(self._handle_click)

    def notify(self, title: str, body: str, on_activate: Callable[[], None]) -> None:
        if not QSystemTrayIcon.supportsMessages():
            raise RuntimeError("desktop notifications are not supported")
        self._on_activate = on_activate
        self._tray.showMessage(title, body, QSystemTrayIcon.Information, self._timeout_ms)

    def _handle_click(self) -> None:
        callback = self._on_activate
        self._on_activate = None
        if callback is not None:
            callback()
