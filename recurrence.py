"""Next-trigger calculation for recurring reminders.

Recurrences are stored as short strings (``"15m"``, ``"weekly:mon"``,
``"monthly:last"``, ``"cron:*/15 9-17 * * 1-5"``) and parsed into the
recurrence dataclasses from ``models``.  ``next_trigger`` is pure: it only
looks at the wall-clock fields of the datetime it is given and keeps its
``tzinfo``.
"""

from __future__ import annotations

import calendar
import logging
import re
from datetime import datetime, timedelta
from functools import lru_cache
from typing import Callable, Iterable, Optional

from errors import InvalidRecurrenceError, RecurrenceExhausted
from models import (
    CronRecurrence,
    IntervalRecurrence,
    MonthlyRecurrence,
    RecurrenceSpec,
    TimeUnit,
    WeeklyRecurrence,
)

logger = logging.getLogger(__name__)

CRON_SEARCH_HORIZON = timedelta(days=366)
MAX_CRON_ITERATIONS = 366 * 24 * 60
EXHAUSTED_FALLBACK = timedelta(hours=1)
# longest interval that can still be added to any stored trigger
MAX_INTERVAL = timedelta(days=36525)

WEEKDAY_NAMES = ("sun", "mon", "tue", "wed", "thu", "fri", "sat")

# minute, hour, day-of-month, month, day-of-week
CRON_FIELD_BOUNDS = ((0, 59), (0, 23), (1, 31), (1, 12), (0, 6))

_INTERVAL_RE = re.compile(r"^(\d+)([mhd])$")
_WEEKLY_RE = re.compile(r"^weekly:([a-z]{3})$")
_MONTHLY_RE = re.compile(r"^monthly:(\d+|last)$")
_CRON_PREFIX = "cron:"

_UNIT_DELTAS = {
    TimeUnit.MINUTE: timedelta(minutes=1),
    TimeUnit.HOUR: timedelta(hours=1),
    TimeUnit.DAY: timedelta(days=1),
}


# ------------------------------------------------------------------
# Parsing
# ------------------------------------------------------------------


def parse_recurrence(text: Optional[str]) -> Optional[RecurrenceSpec]:
    """Parse a stored recurrence string; ``None`` or blank means one-shot."""
    if text is None or not text.strip():
        return None
    value = text.strip()

    if value.lower().startswith(_CRON_PREFIX):
        return parse_cron_expression(value[len(_CRON_PREFIX):])

    value = value.lower()
    match = _INTERVAL_RE.match(value)
    if match:
        spec = IntervalRecurrence(amount=int(match.group(1)), unit=TimeUnit(match.group(2)))
        _check_interval(spec)
        return spec

    match = _WEEKLY_RE.match(value)
    if match:
        name = match.group(1)
        if name not in WEEKDAY_NAMES:
            raise InvalidRecurrenceError(f"unknown weekday: {text!r}")
        return WeeklyRecurrence(day_of_week=WEEKDAY_NAMES.index(name))

    match = _MONTHLY_RE.match(value)
    if match:
        day_text = match.group(1)
        if day_text == "last":
            return MonthlyRecurrence(day=None)
        day = int(day_text)
        if not 1 <= day <= 31:
            raise InvalidRecurrenceError(f"day of month out of range: {text!r}")
        return MonthlyRecurrence(day=day)

    raise InvalidRecurrenceError(f"unrecognized repeat pattern: {text!r}")


def parse_cron_expression(expression: str) -> CronRecurrence:
    parts = expression.split()
    if len(parts) != 5:
        raise InvalidRecurrenceError(
            f"cron expression needs 5 fields, got {len(parts)}: {expression!r}"
        )
    for field, (low, high) in zip(parts, CRON_FIELD_BOUNDS):
        parse_cron_field(field, low, high)
    return CronRecurrence(*parts)


@lru_cache(maxsize=256)
def parse_cron_field(field: str, low: int, high: int) -> frozenset[int]:
    """Expand one cron field into the set of values it matches.

    Supports ``*``, ``n``, ``a-b``, ``*/n``, ``a-b/n`` and comma lists of
    those.  Steps count from the start of their range, so ``*/5`` on the
    day-of-month field matches 1, 6, 11, ...
    """
    values: set[int] = set()
    for item in field.split(","):
        values.update(_expand_item(item.strip(), field, low, high))
    return frozenset(values)


def _expand_item(item: str, field: str, low: int, high: int) -> Iterable[int]:
    if not item:
        raise InvalidRecurrenceError(f"empty entry in cron field {field!r}")
    base, has_step, step_text = item.partition("/")
    step = 1
    if has_step:
        if not step_text.isdecimal() or int(step_text) == 0:
            raise InvalidRecurrenceError(f"invalid step in cron field {field!r}")
        step = int(step_text)

    if base == "*":
        start, end = low, high
    elif "-" in base:
        start_text, _, end_text = base.partition("-")
        start = _bounded(start_text, field, low, high)
        end = _bounded(end_text, field, low, high)
        if start > end:
            raise InvalidRecurrenceError(f"reversed range in cron field {field!r}")
    else:
        if has_step:
            raise InvalidRecurrenceError(f"step needs '*' or a range in {field!r}")
        start = end = _bounded(base, field, low, high)
    return range(start, end + 1, step)


def _bounded(text: str, field: str, low: int, high: int) -> int:
    if not text.isdecimal():
        raise InvalidRecurrenceError(f"invalid value {text!r} in cron field {field!r}")
    value = int(text)
    if not low <= value <= high:
        raise InvalidRecurrenceError(
            f"value {value} outside {low}-{high} in cron field {field!r}"
        )
    return value


def _check_interval(spec: IntervalRecurrence) -> None:
    if spec.amount < 1:
        raise InvalidRecurrenceError(f"interval must be at least 1: {spec.amount}")
    if spec.amount > MAX_INTERVAL // _UNIT_DELTAS[spec.unit]:
        raise InvalidRecurrenceError(
            f"interval {spec.amount}{spec.unit.value} is longer than {MAX_INTERVAL.days} days"
        )


def validate_recurrence(spec: Optional[RecurrenceSpec]) -> None:
    """Reject specs built directly (not parsed) with out-of-range values."""
    if spec is None:
        return
    if isinstance(spec, IntervalRecurrence):
        _check_interval(spec)
    elif isinstance(spec, WeeklyRecurrence):
        if not 0 <= spec.day_of_week <= 6:
            raise InvalidRecurrenceError("day of week must be 0-6")
    elif isinstance(spec, MonthlyRecurrence):
        if spec.day is not None and not 1 <= spec.day <= 31:
            raise InvalidRecurrenceError("day of month must be 1-31")
    elif isinstance(spec, CronRecurrence):
        parse_cron_expression(spec.expression)
    else:
        raise InvalidRecurrenceError(f"unsupported recurrence: {spec!r}")


def format_recurrence(spec: Optional[RecurrenceSpec]) -> Optional[str]:
    if spec is None:
        return None
    if isinstance(spec, IntervalRecurrence):
        return f"{spec.amount}{spec.unit.value}"
    if isinstance(spec, WeeklyRecurrence):
        return f"weekly:{WEEKDAY_NAMES[spec.day_of_week]}"
    if isinstance(spec, MonthlyRecurrence):
        return "monthly:last" if spec.is_last else f"monthly:{spec.day}"
    if isinstance(spec, CronRecurrence):
        return f"{_CRON_PREFIX}{spec.expression}"
    raise InvalidRecurrenceError(f"unsupported recurrence: {spec!r}")


def describe_recurrence(spec: Optional[RecurrenceSpec]) -> str:
    """Short label for list rows."""
    if spec is None:
        return "Once"
    if isinstance(spec, IntervalRecurrence):
        unit = {TimeUnit.MINUTE: "minute", TimeUnit.HOUR: "hour", TimeUnit.DAY: "day"}[spec.unit]
        if spec.amount == 1:
            return f"Every {unit}"
        return f"Every {spec.amount} {unit}s"
    if isinstance(spec, WeeklyRecurrence):
        return f"Every {calendar.day_name[(spec.day_of_week - 1) % 7]}"
    if isinstance(spec, MonthlyRecurrence):
        return "Monthly on the last day" if spec.is_last else f"Monthly on day {spec.day}"
    return f"Cron {spec.expression}"


# ------------------------------------------------------------------
# Calculation
# ------------------------------------------------------------------


def next_trigger(base: datetime, spec: RecurrenceSpec) -> datetime:
    """Return the next trigger instant after ``base``.

    Raises ``RecurrenceExhausted`` when a cron expression has no match
    within ``CRON_SEARCH_HORIZON``.
    """
    if isinstance(spec, IntervalRecurrence):
        return base + _UNIT_DELTAS[spec.unit] * spec.amount
    if isinstance(spec, WeeklyRecurrence):
        return _next_weekly(base, spec.day_of_week)
    if isinstance(spec, MonthlyRecurrence):
        return _next_monthly(base, spec.day)
    if isinstance(spec, CronRecurrence):
        return _next_cron(base, spec)
    raise TypeError(f"unsupported recurrence: {spec!r}")


def next_trigger_or_fallback(
    base: datetime,
    spec: RecurrenceSpec,
    on_exhausted: Optional[Callable[[RecurrenceExhausted], None]] = None,
) -> datetime:
    try:
        return next_trigger(base, spec)
    except RecurrenceExhausted as exc:
        fallback = base + EXHAUSTED_FALLBACK
        logger.warning("%s; rescheduling at %s", exc, fallback.isoformat())
        if on_exhausted:
            on_exhausted(exc)
        return fallback


def cron_weekday(moment: datetime) -> int:
    """Day of week with 0 = Sunday."""
    return (moment.weekday() + 1) % 7


def _next_weekly(base: datetime, day_of_week: int) -> datetime:
    days = (day_of_week - cron_weekday(base)) % 7 or 7
    return base + timedelta(days=days)


def _next_monthly(base: datetime, day: Optional[int]) -> datetime:
    if base.month == 12:
        year, month = base.year + 1, 1
    else:
        year, month = base.year, base.month + 1
    last_day = calendar.monthrange(year, month)[1]
    target = last_day if day is None else min(day, last_day)
    return base.replace(year=year, month=month, day=target)


class CronSchedule:
    def __init__(self, spec: CronRecurrence) -> None:
        fields = (spec.minute, spec.hour, spec.day_of_month, spec.month, spec.day_of_week)
        (
            self.minutes,
            self.hours,
            self.days,
            self.months,
            self.weekdays,
        ) = (parse_cron_field(field, low, high) for field, (low, high) in zip(fields, CRON_FIELD_BOUNDS))

    def matches(self, moment: datetime) -> bool:
        # day-of-month and day-of-week are ANDed
        return (
            moment.minute in self.minutes
            and moment.hour in self.hours
            and moment.day in self.days
            and moment.month in self.months
            and cron_weekday(moment) in self.weekdays
        )


def _next_cron(base: datetime, spec: CronRecurrence) -> datetime:
    schedule = CronSchedule(spec)
    candidate = base.replace(second=0, microsecond=0) + timedelta(minutes=1)
    limit = base + CRON_SEARCH_HORIZON

    for _ in range(MAX_CRON_ITERATIONS):
        if candidate > limit:
            break
        if candidate.month not in schedule.months:
            candidate = _start_of_next_month(candidate)
            continue
        if candidate.day not in schedule.days or cron_weekday(candidate) not in schedule.weekdays:
            candidate = (candidate + timedelta(days=1)).replace(hour=0, minute=0)
            continue
        if candidate.hour not in schedule.hours:
            candidate = (candidate + timedelta(hours=1)).replace(minute=0)
            continue
        if candidate.minute not in schedule.minutes:
            candidate += timedelta(minutes=1)
            continue
        return candidate

    raise RecurrenceExhausted(
        f"cron {spec.expression!r} has no match within {CRON_SEARCH_HORIZON.days} days of {base.isoformat()}"
    )


def _start_of_next_month(moment: datetime) -> datetime:
    moment = moment.replace(day=1, hour=0, minute=0)
    if moment.month == 12:
        return moment.replace(year=moment.year + 1, month=1)
    return moment.replace(month=moment.month + 1)
