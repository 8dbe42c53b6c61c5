"""
Bounded in-memory log buffer for the inspection server and CLI.

Interpreter modules log through the standard ``logging`` module; a
``BufferHandler`` mirrors the ``obbyscript`` logger hierarchy into a
``LogBuffer`` so recent script diagnostics can be streamed or listed.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from collections import deque
from typing import Any, Deque, Dict, List, Tuple

_REDACTED_KEYS = {"extra", "message_text"}


def _env_bool(name: str, default: bool = True) -> bool:
    val = os.getenv(name)
    if val is None:
        return default
    return str(val).strip().lower() in {"1", "true", "yes", "on"}


def redact_details(details: Dict[str, Any]) -> Dict[str, Any]:
    """Hide event payload text (message bodies, kick reasons) unless disabled."""
    if not _env_bool("OBBY_LOG_REDACT_EXTRA", True):
        return dict(details)
    redacted: Dict[str, Any] = {}
    for key, value in details.items():
        if key in _REDACTED_KEYS and value:
            redacted[key] = "[REDACTED]"
        else:
            redacted[key] = value
    return redacted


class LogBuffer:
    def __init__(self, max_events: int = 500) -> None:
        self.max_events = max_events
        self._events: Deque[dict] = deque(maxlen=max_events)
        self._lock = threading.Lock()
        self._seq = 0

    def append(self, event: str, level: str = "info", **details) -> dict:
        with self._lock:
            self._seq += 1
            payload = {
                "id": self._seq,
                "timestamp": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
                "level": level,
                "event": event,
                "details": redact_details(details),
            }
            self._events.append(payload)
        return payload

    def history(self, limit: int | None = None) -> List[dict]:
        with self._lock:
            events = list(self._events)
        if limit is None or limit <= 0:
            return events
        return events[-limit:]

    def snapshot_after(self, last_id: int) -> Tuple[List[dict], int]:
        with self._lock:
            events = [e for e in self._events if e.get("id", 0) > last_id]
            latest = self._seq
        return events, latest

    def clear(self) -> None:
        with self._lock:
            self._events.clear()


def log_event(buffer: LogBuffer, event: str, level: str = "info", **details) -> dict:
    return buffer.append(event, level=level, **details)


class BufferHandler(logging.Handler):
    """Forward log records into a LogBuffer."""

    def __init__(self, buffer: LogBuffer, level: int = logging.INFO) -> None:
        super().__init__(level=level)
        self.buffer = buffer

    def emit(self, record: logging.LogRecord) -> None:
        try:
            message = record.getMessage()
        except Exception:  # pragma: no cover - malformed format args
            message = str(record.msg)
        code, _, text = message.partition(": ")
        if not code.startswith("OBS-"):
            code, text = record.name, message
        self.buffer.append(code, level=record.levelname.lower(), message=text, logger=record.name)
