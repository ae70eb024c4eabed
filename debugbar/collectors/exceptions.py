"""
Exceptions collector - errors raised or reported during the request.

Each exception is exported with its traceback frames and the source lines
around the failing line. With ``chain_exceptions`` the ``__cause__`` /
``__context__`` chain is exported as well.
"""

from __future__ import annotations

import linecache
import os
from typing import Any, Dict, List, Optional, Tuple

from ..faults import Fault
from .base import DataCollector


def _read_source_lines(filename: str, lineno: int, context: int = 5) -> List[Tuple[int, str, bool]]:
    """Source lines around ``lineno`` as (line_number, text, is_error_line)."""
    lines: List[Tuple[int, str, bool]] = []
    for i in range(max(1, lineno - context), lineno + context + 1):
        line = linecache.getline(filename, i)
        if line:
            lines.append((i, line.rstrip("\n"), i == lineno))
    return lines


def _short_filename(filename: str) -> str:
    try:
        cwd = os.getcwd()
        if filename.startswith(cwd):
            return os.path.relpath(filename, cwd)
    except OSError:
        pass
    return filename


def _extract_frames(exc: BaseException) -> List[Dict[str, Any]]:
    frames: List[Dict[str, Any]] = []
    tb = exc.__traceback__
    while tb is not None:
        code = tb.tb_frame.f_code
        frames.append({
            "file": _short_filename(code.co_filename),
            "line": tb.tb_lineno,
            "function": code.co_name,
            "source": [list(entry) for entry in _read_source_lines(code.co_filename, tb.tb_lineno)],
            "is_app_code": not ("site-packages" in code.co_filename or "lib/python" in code.co_filename),
        })
        tb = tb.tb_next
    return frames


class ExceptionsCollector(DataCollector):

    name = "exceptions"

    def __init__(self, chain_exceptions: bool = False):
        self.chain_exceptions = chain_exceptions
        self._exceptions: List[BaseException] = []

    def set_chain_exceptions(self, chain: bool = True) -> None:
        self.chain_exceptions = chain

    def add_exception(self, exc: BaseException) -> None:
        self._exceptions.append(exc)

    def get_exceptions(self) -> List[BaseException]:
        return list(self._exceptions)

    def format_exception(self, exc: BaseException, _seen: Optional[set] = None) -> Dict[str, Any]:
        frames = _extract_frames(exc)
        last = frames[-1] if frames else {}
        data: Dict[str, Any] = {
            "type": f"{type(exc).__module__}.{type(exc).__qualname__}",
            "message": str(exc),
            "file": last.get("file"),
            "line": last.get("line"),
            "frames": frames,
        }
        if isinstance(exc, Fault):
            data["code"] = exc.code
            data["domain"] = exc.domain.value
            data["severity"] = exc.severity.value

        if self.chain_exceptions:
            seen = _seen if _seen is not None else {id(exc)}
            previous = exc.__cause__ or (None if exc.__suppress_context__ else exc.__context__)
            if previous is not None and id(previous) not in seen:
                seen.add(id(previous))
                data["previous"] = self.format_exception(previous, seen)
        return data

    def collect(self) -> Dict[str, Any]:
        return {
            "count": len(self._exceptions),
            "exceptions": [self.format_exception(e) for e in self._exceptions],
        }

    def widgets(self) -> Dict[str, Dict[str, Any]]:
        return {
            "exceptions": {
                "title": "Exceptions",
                "icon": "bug",
                "widget": "exceptions",
                "map": "exceptions.exceptions",
                "badge": "exceptions.count",
            },
        }
