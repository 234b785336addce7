"""Global hotkey adapter based on pynput."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

try:
    from pynput import keyboard
except Exception:  # pragma: no cover
    keyboard = None  # type: ignore

logger = logging.getLogger(__name__)


class GlobalHotkeyAdapter:
    """Registers one global shortcut such as ``<ctrl>+<shift>+v``.

    The listener thread can die silently (sleep/resume, session switch), so
    ``is_registered`` reports on the live thread rather than a flag.
    """

    def __init__(
        self,
        shortcut: str = "<ctrl>+<shift>+v",
        dispatch: Optional[Callable[[Callable[[], None]], None]] = None,
    ) -> None:
        self._shortcut = shortcut
        # pynput calls back on its own thread; dispatch hands the call to the UI loop
        self._dispatch = dispatch
        self._listener: Optional[object] = None
        self._lock = threading.Lock()

    @property
    def shortcut(self) -> str:
        return self._shortcut

    def is_registered(self) -> bool:
        with self._lock:
            listener = self._listener
        return listener is not None and listener.is_alive()

    def register(self, on_activate: Callable[[], None]) -> bool:
        if keyboard is None:
            logger.error("pynput is not installed, global shortcut disabled")
            return False
        self.unregister()
        try:
            listener = keyboard.GlobalHotKeys({self._shortcut: self._wrap(on_activate)})
            listener.start()
        except Exception as exc:
            logger.error("Failed to register shortcut %s: %s", self._shortcut, exc)
            return False
        with self._lock:
            self._listener = listener
        logger.info("Global shortcut registered: %s", self._shortcut)
        return True

    def unregister(self) -> None:
        with self._lock:
            listener = self._listener
            self._listener = None
        if listener is not None:
            listener.stop()

    def _wrap(self, on_activate: Callable[[], None]) -> Callable[[], None]:
        dispatch = self._dispatch
        if dispatch is None:
            return on_activate

        def _on_activate() -> None:
            dispatch(on_activate)

        return _on_activate

    def change_shortcut(self, shortcut: str, on_activate: Callable[[], None]) -> bool:
        self._shortcut = shortcut
        return self.register(on_activate)
