"""
Environment collectors.

- ``PythonInfoCollector``: interpreter and platform.
- ``FrameworkCollector``: host framework name, version, environment, locale.
- ``ConfigCollector``: resolved configuration with secrets redacted.
- ``FilesCollector``: source files imported by the process.
"""

from __future__ import annotations

import platform
import re
import sys
from typing import Any, Dict, List, Optional

from ..hooks import FrameworkCapabilities
from .base import DataCollector, export_value

_SECRET_KEYS = re.compile(
    r"(password|secret|token|api_key|apikey|private|credential|auth)",
    re.IGNORECASE,
)
_REDACTED = "***REDACTED***"


def redact(data: Any, depth: int = 0) -> Any:
    """
    Recursively redact sensitive values in config dictionaries.

    Keys matching common secret patterns (password, token, api_key, etc.)
    have their values replaced with ``***REDACTED***``.
    """
    if depth > 20:
        return "..."
    if isinstance(data, dict):
        return {
            k: (_REDACTED if _SECRET_KEYS.search(str(k)) else redact(v, depth + 1))
            for k, v in data.items()
        }
    if isinstance(data, (list, tuple)):
        return [redact(item, depth + 1) for item in data]
    return data


class PythonInfoCollector(DataCollector):

    name = "python"

    def collect(self) -> Dict[str, Any]:
        return {
            "version": platform.python_version(),
            "implementation": platform.python_implementation(),
            "platform": platform.platform(),
            "executable": sys.executable,
        }

    def widgets(self) -> Dict[str, Dict[str, Any]]:
        return {
            "python_version": {
                "title": "Python",
                "icon": "code",
                "tooltip": "Version",
                "map": "python.version",
                "indicator": True,
            },
        }


class FrameworkCollector(DataCollector):

    name = "framework"

    def __init__(self, capabilities: FrameworkCapabilities):
        self.capabilities = capabilities

    def collect(self) -> Dict[str, Any]:
        caps = self.capabilities
        return {
            "name": caps.name,
            "version": caps.version,
            "environment": caps.environment,
            "locale": caps.locale,
        }

    def widgets(self) -> Dict[str, Dict[str, Any]]:
        return {
            "version": {
                "title": "Version",
                "icon": "github",
                "tooltip": "Version",
                "map": "framework.version",
                "indicator": True,
            },
            "environment": {
                "title": "Environment",
                "icon": "desktop",
                "tooltip": "Environment",
                "map": "framework.environment",
                "indicator": True,
            },
        }


class ConfigCollector(DataCollector):

    def __init__(self, data: Optional[Dict[str, Any]] = None, name: str = "config"):
        self.name = name
        self._data: Dict[str, Any] = {}
        if data:
            self.set_data(data)

    def set_data(self, data: Dict[str, Any]) -> None:
        self._data = redact(export_value(data, max_depth=20))

    def collect(self) -> Dict[str, Any]:
        return dict(self._data)

    def widgets(self) -> Dict[str, Dict[str, Any]]:
        return {
            self.name: {
                "title": self.name.title(),
                "icon": "gear",
                "widget": "variables",
                "map": self.name,
            },
        }


class FilesCollector(DataCollector):
    """Imported module files, split into application and library code."""

    name = "files"

    def __init__(self, base_path: Optional[str] = None):
        self.base_path = base_path

    def _files(self) -> List[str]:
        files = set()
        for module in list(sys.modules.values()):
            filename = getattr(module, "__file__", None)
            if filename:
                files.add(filename)
        return sorted(files)

    def collect(self) -> Dict[str, Any]:
        messages = []
        for filename in self._files():
            is_library = "site-packages" in filename or "lib/python" in filename
            if self.base_path and not is_library and filename.startswith(self.base_path):
                filename = filename[len(self.base_path):].lstrip("/")
            messages.append({"message": filename, "is_library": is_library})
        return {"count": len(messages), "messages": messages}

    def widgets(self) -> Dict[str, Dict[str, Any]]:
        return {
            "files": {
                "title": "Files",
                "icon": "files-o",
                "widget": "messages",
                "map": "files.messages",
                "badge": "files.count",
            },
        }
