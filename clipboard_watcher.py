"""Polling clipboard watcher with echo suppression for our own writes."""

from __future__ import annotations

import hashlib
import logging
from typing import Callable, Optional, Union

from errors import CLIPBOARD_READ_FAILED, CLIPBOARD_WRITE_FAILED
from interfaces import ClipboardSource, Scheduler, TimerHandle
from models import ClipboardImage, ClipContent, ClipKind, WatcherMode

logger = logging.getLogger(__name__)

ClipCallback = Callable[[ClipContent], None]
ErrorCallback = Callable[[str, str], None]

_Snapshot = tuple[str, Optional[ClipboardImage]]


def hash_text(text: str) -> str:
    if not text:
        return ""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def hash_image(image: Optional[ClipboardImage]) -> str:
    if image is None or not image.data:
        return ""
    return hashlib.sha256(image.data).hexdigest()


class ClipboardWatcher:
    """Emits one ``ClipContent`` per poll tick at most.

    Writes made through ``copy_to_clipboard`` go through
    PAUSED -> SETTLING -> SUPPRESS_NEXT -> WATCHING so the first tick that
    sees the written content resynchronizes both hashes instead of firing.
    """

    def __init__(
        self,
        source: ClipboardSource,
        scheduler: Scheduler,
        on_clip: ClipCallback,
        poll_interval_s: float = 0.5,
        settle_delay_s: float = 0.2,
        resume_delay_s: float = 0.1,
        on_error: Optional[ErrorCallback] = None,
    ) -> None:
        self._source = source
        self._scheduler = scheduler
        self._on_clip = on_clip
        self._poll_interval_s = poll_interval_s
        self._settle_delay_s = settle_delay_s
        self._resume_delay_s = resume_delay_s
        self._on_error = on_error

        self._mode = WatcherMode.WATCHING
        self._last_text_hash = ""
        self._last_image_hash = ""
        self._poll_handle: Optional[TimerHandle] = None
        self._pending: Optional[TimerHandle] = None
        self.resync()

    @property
    def mode(self) -> WatcherMode:
        return self._mode

    @property
    def last_hashes(self) -> tuple[str, str]:
        return self._last_text_hash, self._last_image_hash

    def start(self) -> None:
        if self._poll_handle is not None:
            return
        self._poll_handle = self._scheduler.call_every(self._poll_interval_s, self.poll)

    def stop(self) -> None:
        if self._poll_handle is not None:
            self._poll_handle.cancel()
            self._poll_handle = None
        self._cancel_pending()

    def resync(self) -> None:
        """Adopt the current clipboard content as already seen."""
        snapshot = self._read()
        if snapshot is not None:
            self._remember(*snapshot)

    def poll(self) -> None:
        if self._mode in (WatcherMode.PAUSED, WatcherMode.SETTLING):
            return
        snapshot = self._read()
        if snapshot is None:
            return
        text, image = snapshot

        if self._mode == WatcherMode.SUPPRESS_NEXT:
            self._remember(text, image)
            self._transition(WatcherMode.WATCHING)
            logger.debug("Suppressed clipboard echo of our own write")
            return

        image_hash = hash_image(image)
        if image is not None and image_hash and image_hash != self._last_image_hash:
            self._remember(text, image)
            self._emit(
                ClipContent(
                    kind=ClipKind.IMAGE,
                    content=f"Image ({image.width}x{image.height})",
                    image_data=image.data,
                )
            )
            return

        if text and hash_text(text) != self._last_text_hash:
            self._remember(text, image)
            self._emit(ClipContent(kind=ClipKind.TEXT, content=text))

    def copy_to_clipboard(self, content: Union[str, ClipboardImage]) -> bool:
        """Write to the clipboard without capturing the write as a new clip."""
        self._cancel_pending()
        self._transition(WatcherMode.PAUSED)
        try:
            if isinstance(content, ClipboardImage):
                self._source.write_image(content)
            else:
                self._source.write_text(content)
        except Exception as exc:
            logger.warning("Clipboard write failed: %s", exc)
            self._emit_error(CLIPBOARD_WRITE_FAILED, str(exc))
            self.resync()
            self._transition(WatcherMode.WATCHING)
            return False
        self._pending = self._scheduler.call_later(self._settle_delay_s, self._after_settle)
        return True

    def _after_settle(self) -> None:
        self._transition(WatcherMode.SETTLING)
        self._pending = self._scheduler.call_later(self._resume_delay_s, self._after_resume)

    def _after_resume(self) -> None:
        self._pending = None
        self._transition(WatcherMode.SUPPRESS_NEXT)

    def _cancel_pending(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    def _read(self) -> Optional[_Snapshot]:
        try:
            image = self._source.read_image()
            text = self._source.read_text() or ""
        except Exception as exc:
            logger.warning("Clipboard read failed: %s", exc)
            self._emit_error(CLIPBOARD_READ_FAILED, str(exc))
            return None
        return text, image

    def _remember(self, text: str, image: Optional[ClipboardImage]) -> None:
        self._last_text_hash = hash_text(text)
        self._last_image_hash = hash_image(image)

    def _emit(self, content: ClipContent) -> None:
        try:
            self._on_clip(content)
        except Exception:
            logger.exception("Clip handler failed for %s clip", content.kind.value)

    def _emit_error(self, code: str, message: str) -> None:
        if self._on_error:
            self._on_error(code, message)

    def _transition(self, to_mode: WatcherMode) -> None:
        if self._mode == to_mode:
            return
        logger.debug("Watcher %s -> %s", self._mode.value, to_mode.value)
        self._mode = to_mode
