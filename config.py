"""Simple JSON-based config store."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

DEFAULTS: dict[str, Any] = {
    "shortcut": "<ctrl>+<shift>+v",
    "max_clips": 100,
    "font_size": "small",
    "poll_interval_ms": 500,
    "scan_interval_s": 30,
    "focus_debounce_ms": 200,
    "clipboard_backend": "qt",
    "log_level": "INFO",
}

FONT_SIZES = ("small", "medium", "large")
CLIPBOARD_BACKENDS = ("qt", "pyperclip")


class JsonConfigStore:
    def __init__(self, path: Path | None = None) -> None:
        self._path = path or Path.home() / ".config" / "recall" / "config.json"
        self._path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self._path

    def get_shortcut(self) -> str:
        return str(self._get("shortcut"))

    def set_shortcut(self, shortcut: str) -> None:
        self._set("shortcut", shortcut)

    def get_max_clips(self) -> int:
        return self._get_int("max_clips", minimum=1)

    def set_max_clips(self, max_clips: int) -> None:
        if max_clips < 1:
            raise ValueError("max_clips must be at least 1")
        self._set("max_clips", max_clips)

    def get_font_size(self) -> str:
        value = str(self._get("font_size"))
        return value if value in FONT_SIZES else DEFAULTS["font_size"]

    def set_font_size(self, font_size: str) -> None:
        if font_size not in FONT_SIZES:
            raise ValueError(f"font size must be one of {FONT_SIZES}")
        self._set("font_size", font_size)

    def get_poll_interval_s(self) -> float:
        return self._get_int("poll_interval_ms", minimum=50) / 1000.0

    def get_scan_interval_s(self) -> float:
        return float(self._get_int("scan_interval_s", minimum=1))

    def get_focus_debounce_s(self) -> float:
        return self._get_int("focus_debounce_ms", minimum=0) / 1000.0

    def get_clipboard_backend(self) -> str:
        value = str(self._get("clipboard_backend"))
        return value if value in CLIPBOARD_BACKENDS else DEFAULTS["clipboard_backend"]

    def get_log_level(self) -> str:
        return str(self._get("log_level")).upper()

    def _get(self, key: str) -> Any:
        return self._read_all().get(key, DEFAULTS[key])

    def _get_int(self, key: str, minimum: int) -> int:
        try:
            value = int(self._get(key))
        except (TypeError, ValueError):
            logger.warning("Config value %s is not a number, using default", key)
            return int(DEFAULTS[key])
        return max(minimum, value)

    def _set(self, key: str, value: Any) -> None:
        data = self._read_all()
        data[key] = value
        self._write_all(data)

    def _read_all(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as exc:
            logger.warning("Ignoring unreadable config %s: %s", self._path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict) -> None:
        self._path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
