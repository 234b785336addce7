from __future__ import annotations

from typing import Callable, Optional

import pytest


class ManualClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now


class ManualTimer:
    def __init__(self, due: float, interval: Optional[float], callback: Callable[[], None]) -> None:
        self.due = due
        self.interval = interval
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Deterministic stand-in for QtScheduler driven by ``advance``."""

    def __init__(self, clock: ManualClock) -> None:
        self.clock = clock
        self.timers: list[ManualTimer] = []

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> ManualTimer:
        timer = ManualTimer(self.clock.now + delay_s, None, callback)
        self.timers.append(timer)
        return timer

    def call_every(self, interval_s: float, callback: Callable[[], None]) -> ManualTimer:
        timer = ManualTimer(self.clock.now + interval_s, interval_s, callback)
        self.timers.append(timer)
        return timer

    @property
    def active(self) -> list[ManualTimer]:
        return [timer for timer in self.timers if not timer.cancelled]

    def advance(self, seconds: float) -> None:
        target = self.clock.now + seconds + 1e-9
        while True:
            due = [timer for timer in self.active if timer.due <= target]
            if not due:
                break
            timer = min(due, key=lambda t: t.due)
            self.clock.now = max(self.clock.now, timer.due)
            if timer.interval is None:
                timer.cancelled = True
            else:
                timer.due += timer.interval
            timer.callback()
        self.clock.now = target


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def scheduler(clock: ManualClock) -> ManualScheduler:
    return ManualScheduler(clock)
