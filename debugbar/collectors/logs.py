"""
Log collectors.

- ``format_log_message``: the ``[HH:MM:SS] LOG.<level>: <message>`` line used
  when log records are folded into the messages panel.
- ``LogBridgeCollector``: standalone panel fed by ``LOG`` hook events, used
  when no messages collector is active.
- ``LogFileCollector``: tail of a log file on disk.
"""

from __future__ import annotations

import json
import re
from collections import deque
from datetime import datetime
from pathlib import Path
from typing import Any, Mapping, Optional

from ..faults import EncodingError
from ..hooks import LogEvent
from .messages import MessagesCollector

INVALID_UTF8 = "[INVALID UTF-8 DATA]"

_LEVEL_PATTERN = re.compile(
    r"\b(EMERGENCY|ALERT|CRITICAL|ERROR|WARNING|WARN|NOTICE|INFO|DEBUG)\b",
    re.IGNORECASE,
)


def ensure_utf8(message: Any) -> str:
    """Return ``message`` as text, raising ``EncodingError`` if it is not valid UTF-8."""
    if isinstance(message, (bytes, bytearray)):
        try:
            return bytes(message).decode("utf-8")
        except UnicodeDecodeError as exc:
            raise EncodingError(str(exc)) from exc
    text = str(message)
    try:
        text.encode("utf-8")
    except UnicodeEncodeError as exc:
        raise EncodingError(str(exc)) from exc
    return text


def format_log_message(
    level: str,
    message: Any,
    context: Optional[Mapping[str, Any]] = None,
    when: Optional[datetime] = None,
) -> str:
    try:
        text = ensure_utf8(message)
        if context:
            text += " " + json.dumps(dict(context), default=str)
    except EncodingError:
        text = INVALID_UTF8
    except Exception as exc:
        text = f"[Exception: {exc}]"
    stamp = (when or datetime.now()).strftime("%H:%M:%S")
    return f"[{stamp}] LOG.{level}: {text}"


class LogBridgeCollector(MessagesCollector):
    """Log records as their own panel."""

    def __init__(self, name: str = "logging"):
        super().__init__(name)

    def add_log_event(self, event: LogEvent) -> None:
        try:
            text = ensure_utf8(event.message)
        except EncodingError:
            text = INVALID_UTF8
        if event.context:
            text += " " + json.dumps(dict(event.context), default=str)
        self.add_message(f"{event.channel}.{event.level.upper()}: {text}", event.level)


class LogFileCollector(MessagesCollector):
    """The last ``lines`` lines of a log file, labelled by detected level."""

    def __init__(self, path: Optional[str], lines: int = 100, name: str = "logs"):
        super().__init__(name)
        self.path = Path(path) if path else None
        self.lines = lines
        self._loaded = False

    def _load(self) -> None:
        if self._loaded:
            return
        self._loaded = True
        if self.path is None or not self.path.is_file():
            return
        with open(self.path, encoding="utf-8", errors="replace") as f:
            tail = deque(f, maxlen=self.lines)
        for line in tail:
            line = line.rstrip("\n")
            if not line:
                continue
            match = _LEVEL_PATTERN.search(line)
            level = match.group(1).lower() if match else "info"
            if level == "warn":
                level = "warning"
            self.add_message(line, level)

    def collect(self):
        self._load()
        return super().collect()
