"""
Memory collector - peak resident set size of the process.
"""

from __future__ import annotations

import resource
import sys
from typing import Any, Dict

from .base import DataCollector, format_bytes


def peak_memory_usage() -> int:
    """Peak RSS in bytes (``ru_maxrss`` is KiB on Linux, bytes on macOS)."""
    usage = resource.getrusage(resource.RUSAGE_SELF)
    if sys.platform == "darwin":
        return int(usage.ru_maxrss)
    return int(usage.ru_maxrss) * 1024


class MemoryCollector(DataCollector):

    name = "memory"

    def __init__(self):
        self.peak_usage = 0

    def update_peak_usage(self) -> None:
        self.peak_usage = peak_memory_usage()

    def collect(self) -> Dict[str, Any]:
        self.update_peak_usage()
        return {
            "peak_usage": self.peak_usage,
            "peak_usage_str": format_bytes(self.peak_usage),
        }

    def widgets(self) -> Dict[str, Dict[str, Any]]:
        return {
            "memory": {
                "title": "Memory",
                "icon": "cogs",
                "tooltip": "Memory Usage",
                "map": "memory.peak_usage_str",
            },
        }
