"""Timers multiplexed onto the Qt event loop."""

from __future__ import annotations

import logging
from typing import Callable, Optional

try:
    from PySide6.QtCore import QObject, QTimer
except Exception:  # pragma: no cover
    QObject = None  # type: ignore
    QTimer = None  # type: ignore

logger = logging.getLogger(__name__)


class QtTimerHandle:
    def __init__(self, timer: "QTimer", registry: set["QtTimerHandle"]) -> None:
        self._timer: Optional[QTimer] = timer
        self._registry = registry

    @property
    def active(self) -> bool:
        return self._timer is not None and self._timer.isActive()

    def cancel(self) -> None:
        timer = self._timer
        if timer is None:
            return
        self._timer = None
        self._registry.discard(self)
        timer.stop()
        timer.deleteLater()


class QtScheduler:
    """Single-threaded scheduler; every callback runs on the Qt main thread."""

    def __init__(self, parent: Optional["QObject"] = None) -> None:
        if QTimer is None:
            raise RuntimeError("PySide6 is not installed")
        self._parent = parent
        self._handles: set[QtTimerHandle] = set()

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> QtTimerHandle:
        timer = QTimer(self._parent)
        timer.setSingleShot(True)
        handle = QtTimerHandle(timer, self._handles)

        def _fire() -> None:
            handle.cancel()
            self._run(callback)

        timer.timeout.connect(_fire)
        self._handles.add(handle)
        timer.start(max(0, int(delay_s * 1000)))
        return handle

    def call_every(self, interval_s: float, callback: Callable[[], None]) -> QtTimerHandle:
        timer = QTimer(self._parent)
        handle = QtTimerHandle(timer, self._handles)
        timer.timeout.connect(lambda: self._run(callback))
        self._handles.add(handle)
        timer.start(max(1, int(interval_s * 1000)))
        return handle

    def cancel_all(self) -> None:
        for handle in list(self._handles):
            handle.cancel()

    @staticmethod
    def _run(callback: Callable[[], None]) -> None:
        try:
            callback()
        except Exception:
            logger.exception("Scheduled callback %r failed", callback)
