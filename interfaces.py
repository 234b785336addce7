"""Protocol interfaces used by the background components."""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Optional, Protocol

from models import ClipboardImage, ReminderTask


class ClipboardSource(Protocol):
    def read_text(self) -> str: ...

    def read_image(self) -> Optional[ClipboardImage]: ...

    def write_text(self, text: str) -> None: ...

    def write_image(self, image: ClipboardImage) -> None: ...


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay_s: float, callback: Callable[[], None]) -> TimerHandle: ...

    def call_every(self, interval_s: float, callback: Callable[[], None]) -> TimerHandle: ...


class TaskStore(Protocol):
    def list_due_tasks(self, now: datetime) -> list[ReminderTask]: ...

    def update_task_trigger(self, task_id: str, trigger_at: datetime, notified: bool) -> None: ...

    def mark_completed(self, task_id: str) -> None: ...


class Notifier(Protocol):
    def notify(self, title: str, body: str, on_activate: Callable[[], None]) -> None: ...


class HotkeyRegistrar(Protocol):
    def is_registered(self) -> bool: ...

    def register(self, on_activate: Callable[[], None]) -> bool: ...

    def unregister(self) -> None: ...


class PresentationSurface(Protocol):
    def show_surface(self) -> None: ...

    def hide_surface(self) -> None: ...

    def is_surface_visible(self) -> bool: ...

    def is_content_ready(self) -> bool: ...

    def reset_content(self) -> None: ...
