"""Core data models for the app."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional, Union


class ClipKind(str, Enum):
    TEXT = "text"
    IMAGE = "image"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class TimeUnit(str, Enum):
    MINUTE = "m"
    HOUR = "h"
    DAY = "d"


class WatcherMode(str, Enum):
    WATCHING = "WATCHING"
    PAUSED = "PAUSED"
    SETTLING = "SETTLING"
    SUPPRESS_NEXT = "SUPPRESS_NEXT"


class ToggleState(str, Enum):
    HIDDEN = "HIDDEN"
    SHOWING = "SHOWING"
    VISIBLE = "VISIBLE"


@dataclass(frozen=True)
class ClipboardImage:
    data: bytes
    width: int = 0
    height: int = 0


@dataclass
class ClipContent:
    """A capture event payload, before it is stored."""

    kind: ClipKind
    content: str
    image_data: Optional[bytes] = None


@dataclass
class ClipSample:
    id: str
    kind: ClipKind
    content: str
    captured_at: datetime
    image_data: Optional[bytes] = None


@dataclass
class Script:
    id: str
    title: str
    content: str
    type: str = "text"
    tags: str = ""
    expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class IntervalRecurrence:
    amount: int
    unit: TimeUnit


@dataclass(frozen=True)
class WeeklyRecurrence:
    day_of_week: int  # 0 = Sunday


@dataclass(frozen=True)
class MonthlyRecurrence:
    day: Optional[int]  # None means the last day of the month

    @property
    def is_last(self) -> bool:
        return self.day is None


@dataclass(frozen=True)
class CronRecurrence:
    minute: str
    hour: str
    day_of_month: str
    month: str
    day_of_week: str

    @property
    def expression(self) -> str:
        return " ".join(
            (self.minute, self.hour, self.day_of_month, self.month, self.day_of_week)
        )


RecurrenceSpec = Union[IntervalRecurrence, WeeklyRecurrence, MonthlyRecurrence, CronRecurrence]


@dataclass
class ReminderTask:
    id: str
    content: str
    title: str
    trigger_at: datetime
    recurrence: Optional[RecurrenceSpec] = None
    notified: bool = False
    completed: bool = False
    snoozed_until: Optional[datetime] = None
    priority: Priority = Priority.MEDIUM
    category: str = ""
    created_at: Optional[datetime] = None

    @property
    def is_recurring(self) -> bool:
        return self.recurrence is not None
