"""State machine deciding when the launcher window is shown or hidden."""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from errors import HOTKEY_UNAVAILABLE
from interfaces import HotkeyRegistrar, PresentationSurface, Scheduler, TimerHandle
from models import ToggleState

logger = logging.getLogger(__name__)

READY_FIRST_RETRY_S = 0.03
READY_RETRY_S = 0.2
READY_MAX_ATTEMPTS = 25
HOTKEY_CHECK_INTERVAL_S = 30.0

StateCallback = Callable[[ToggleState, ToggleState], None]
ErrorCallback = Callable[[str, str], None]


class ToggleController:
    """HIDDEN -> SHOWING -> VISIBLE, driven by the hotkey and focus changes.

    SHOWING waits for the surface content to be ready before revealing it;
    pressing the hotkey again while waiting cancels the wait.  Focus loss
    within ``focus_debounce_s`` of the last toggle is ignored, since showing
    the window itself makes the window manager shuffle focus.
    """

    def __init__(
        self,
        surface: PresentationSurface,
        scheduler: Scheduler,
        hotkey: Optional[HotkeyRegistrar] = None,
        focus_debounce_s: float = 0.2,
        clock: Callable[[], float] = time.monotonic,
        on_shown: Optional[Callable[[], None]] = None,
        on_hidden: Optional[Callable[[], None]] = None,
        on_state_change: Optional[StateCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> None:
        self._surface = surface
        self._scheduler = scheduler
        self._hotkey = hotkey
        self._focus_debounce_s = focus_debounce_s
        self._clock = clock
        self._on_shown = on_shown
        self._on_hidden = on_hidden
        self._on_state_change = on_state_change
        self._on_error = on_error

        self._state = ToggleState.HIDDEN
        self._last_toggle_at = float("-inf")
        self._ready_attempts = 0
        self._pending: Optional[TimerHandle] = None
        self._check_handle: Optional[TimerHandle] = None

    @property
    def state(self) -> ToggleState:
        return self._state

    @property
    def last_toggle_at(self) -> float:
        return self._last_toggle_at

    def start(self, check_interval_s: float = HOTKEY_CHECK_INTERVAL_S) -> None:
        self.ensure_hotkey()
        if self._check_handle is None:
            self._check_handle = self._scheduler.call_every(check_interval_s, self.ensure_hotkey)

    def stop(self) -> None:
        if self._check_handle is not None:
            self._check_handle.cancel()
            self._check_handle = None
        self._cancel_pending()
        if self._hotkey is not None:
            self._hotkey.unregister()

    def ensure_hotkey(self) -> bool:
        """Re-register the global hotkey if the OS dropped it."""
        if self._hotkey is None:
            return False
        if self._hotkey.is_registered():
            return True
        logger.info("Global shortcut not registered, registering")
        registered = self._hotkey.register(self.on_hotkey)
        if not registered and self._on_error:
            self._on_error(HOTKEY_UNAVAILABLE, "shortcut registration failed")
        return registered

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def on_hotkey(self) -> None:
        self._last_toggle_at = self._clock()
        if self._state == ToggleState.VISIBLE and not self._surface.is_surface_visible():
            self._enter_hidden()

        if self._state == ToggleState.HIDDEN:
            self._begin_showing()
        elif self._state == ToggleState.SHOWING:
            logger.debug("Hotkey while showing, cancelling")
            self._enter_hidden()
        else:
            self._hide()

    def request_show(self) -> None:
        if self._state != ToggleState.HIDDEN:
            return
        self._last_toggle_at = self._clock()
        self._begin_showing()

    def on_focus_lost(self) -> None:
        if self._state != ToggleState.VISIBLE:
            return
        if self._clock() - self._last_toggle_at < self._focus_debounce_s:
            logger.debug("Ignoring focus loss right after toggle")
            return
        self._hide()

    def on_surface_hidden(self) -> None:
        self._enter_hidden()

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _begin_showing(self) -> None:
        self._ready_attempts = 0
        self._transition(ToggleState.SHOWING)
        self._check_ready()

    def _check_ready(self) -> None:
        self._pending = None
        if self._state != ToggleState.SHOWING:
            return
        self._ready_attempts += 1
        ready = self._surface.is_content_ready()
        if ready or self._ready_attempts >= READY_MAX_ATTEMPTS:
            if not ready:
                logger.warning(
                    "Window content not ready after %d checks, showing anyway",
                    self._ready_attempts,
                )
            self._reveal()
            return
        delay = READY_FIRST_RETRY_S if self._ready_attempts == 1 else READY_RETRY_S
        self._pending = self._scheduler.call_later(delay, self._check_ready)

    def _reveal(self) -> None:
        self._surface.show_surface()
        self._transition(ToggleState.VISIBLE)
        self.ensure_hotkey()

    def _hide(self) -> None:
        self._surface.hide_surface()
        self._enter_hidden()

    def _enter_hidden(self) -> None:
        self._cancel_pending()
        self._surface.reset_content()
        self._transition(ToggleState.HIDDEN)

    def _cancel_pending(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    def _transition(self, to_state: ToggleState) -> None:
        from_state = self._state
        if from_state == to_state:
            return
        self._state = to_state
        if self._on_state_change:
            self._on_state_change(from_state, to_state)
        if to_state == ToggleState.VISIBLE and self._on_shown:
            self._on_shown()
        elif to_state == ToggleState.HIDDEN and from_state == ToggleState.VISIBLE and self._on_hidden:
            self._on_hidden()
