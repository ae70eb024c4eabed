"""
Messages collector - free-form messages grouped by level.

Other message collectors can be aggregated into one panel (for instance the
``log`` fan-in), their entries merged by timestamp at collect time.
"""

from __future__ import annotations

import time
from enum import Enum
from typing import Any, Dict, List, Union

from .base import DataCollector, export_value


_LEVEL_ALIASES = {"warn": "warning", "fatal": "critical"}


class Level(str, Enum):
    """Closed set of message levels."""
    EMERGENCY = "emergency"
    ALERT = "alert"
    CRITICAL = "critical"
    ERROR = "error"
    WARNING = "warning"
    NOTICE = "notice"
    INFO = "info"
    DEBUG = "debug"
    LOG = "log"

    @classmethod
    def parse(cls, level: Union["Level", str]) -> "Level":
        """Case-insensitive lookup; ``warn`` and ``fatal`` are accepted as in ``logging``."""
        if isinstance(level, cls):
            return level
        name = str(level).strip().lower()
        return cls(_LEVEL_ALIASES.get(name, name))


def _level_label(level: Union[Level, str]) -> str:
    if isinstance(level, Level):
        return level.value
    return str(level)


class MessagesCollector(DataCollector):

    def __init__(self, name: str = "messages"):
        self.name = name
        self._messages: List[Dict[str, Any]] = []
        self._aggregates: List["MessagesCollector"] = []

    def add_message(self, message: Any, level: Union[Level, str] = Level.INFO, is_string: bool = True) -> None:
        if not isinstance(message, str):
            message = export_value(message)
            is_string = False
        self._messages.append({
            "message": message,
            "is_string": is_string,
            "label": _level_label(level),
            "time": time.time(),
        })

    def aggregate(self, collector: "MessagesCollector") -> None:
        """Merge ``collector``'s messages into this panel."""
        self._aggregates.append(collector)

    def get_messages(self) -> List[Dict[str, Any]]:
        messages = list(self._messages)
        for collector in self._aggregates:
            for message in collector.get_messages():
                messages.append({**message, "collector": collector.name})
        messages.sort(key=lambda m: m["time"])
        return messages

    def clear(self) -> None:
        self._messages = []

    def log(self, level: Union[Level, str], message: Any) -> None:
        self.add_message(message, Level.parse(level))

    def emergency(self, message: Any) -> None:
        self.add_message(message, Level.EMERGENCY)

    def alert(self, message: Any) -> None:
        self.add_message(message, Level.ALERT)

    def critical(self, message: Any) -> None:
        self.add_message(message, Level.CRITICAL)

    def error(self, message: Any) -> None:
        self.add_message(message, Level.ERROR)

    def warning(self, message: Any) -> None:
        self.add_message(message, Level.WARNING)

    def notice(self, message: Any) -> None:
        self.add_message(message, Level.NOTICE)

    def info(self, message: Any) -> None:
        self.add_message(message, Level.INFO)

    def debug(self, message: Any) -> None:
        self.add_message(message, Level.DEBUG)

    def collect(self) -> Dict[str, Any]:
        messages = self.get_messages()
        return {"count": len(messages), "messages": messages}

    def widgets(self) -> Dict[str, Dict[str, Any]]:
        return {
            self.name: {
                "title": self.name.title(),
                "icon": "list",
                "widget": "messages",
                "map": f"{self.name}.messages",
                "badge": f"{self.name}.count",
            },
        }
