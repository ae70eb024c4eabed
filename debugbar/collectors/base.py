"""
Base collector interface.

A collector reports one category of diagnostic data for a single request.
The registry, snapshot assembler and renderer only rely on ``name`` and
``collect()``; the rest are optional capabilities.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Dict, Optional

if TYPE_CHECKING:
    from ..request import Request
    from ..response import Response


class DataCollector(ABC):
    """Interface for all collectors."""

    #: Registry key; subclasses override or pass ``name`` to ``__init__``.
    name: str = ""

    @abstractmethod
    def collect(self) -> Any:
        """Return a JSON-serializable payload."""
        ...

    def get_name(self) -> str:
        return self.name

    def widgets(self) -> Dict[str, Dict[str, Any]]:
        """
        Toolbar tabs this collector contributes, keyed by tab id.

        Each value holds ``title``, optional ``icon``, ``widget`` (renderer
        template) and ``map``/``badge`` dotted paths into the payload.
        """
        return {}

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"


class RequestAware:
    """Mixin for collectors that read the request/response at collect time."""

    request: Optional["Request"] = None
    response: Optional["Response"] = None

    def bind(self, request: Optional["Request"], response: Optional["Response"] = None) -> None:
        self.request = request
        self.response = response


def format_bytes(size: float, precision: int = 2) -> str:
    """Human-readable byte count (``1.5MB``)."""
    if size <= 0:
        return "0B"
    units = ["B", "KB", "MB", "GB", "TB"]
    index = 0
    while size >= 1024 and index < len(units) - 1:
        size /= 1024
        index += 1
    return f"{round(size, precision)}{units[index]}"


def format_duration(seconds: float) -> str:
    """Human-readable duration (``μs``, ``ms`` or ``s``)."""
    if seconds < 0.001:
        return f"{round(seconds * 1_000_000)}μs"
    if seconds < 1:
        return f"{round(seconds * 1000, 2)}ms"
    return f"{round(seconds, 2)}s"


def export_value(value: Any, depth: int = 0, max_depth: int = 4) -> Any:
    """Make arbitrary values JSON-safe for display."""
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if depth >= max_depth:
        return repr(value)
    if isinstance(value, dict):
        return {str(k): export_value(v, depth + 1, max_depth) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [export_value(v, depth + 1, max_depth) for v in value]
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return repr(value)
