"""Shared error codes, user-facing messages and exception types."""

from __future__ import annotations

CLIPBOARD_READ_FAILED = "CLIPBOARD_READ_FAILED"
CLIPBOARD_WRITE_FAILED = "CLIPBOARD_WRITE_FAILED"
NOTIFY_FAILED = "NOTIFY_FAILED"
RECURRENCE_EXHAUSTED = "RECURRENCE_EXHAUSTED"
INVALID_RECURRENCE = "INVALID_RECURRENCE"
HOTKEY_UNAVAILABLE = "HOTKEY_UNAVAILABLE"

ERROR_MESSAGES = {
    CLIPBOARD_READ_FAILED: "Clipboard could not be read, skipping this check.",
    CLIPBOARD_WRITE_FAILED: "Copy to clipboard failed.",
    NOTIFY_FAILED: "Reminder notification could not be shown, will retry.",
    RECURRENCE_EXHAUSTED: "No upcoming match for the schedule, retrying in one hour.",
    INVALID_RECURRENCE: "Repeat pattern is not valid.",
    HOTKEY_UNAVAILABLE: "Global shortcut is unavailable.",
}


class RecallError(Exception):
    code = ""

    def __init__(self, message: str = "") -> None:
        super().__init__(message or ERROR_MESSAGES.get(self.code, ""))


class InvalidRecurrenceError(RecallError, ValueError):
    code = INVALID_RECURRENCE


class RecurrenceExhausted(RecallError):
    code = RECURRENCE_EXHAUSTED
