"""
Query collector - executed SQL statements with bindings and timings.

When built with a ``TimeDataCollector`` every statement is also added to the
timeline as a measure ending at the moment it was reported.
"""

from __future__ import annotations

import re
import time
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from .base import DataCollector, export_value, format_duration
from .time import TimeDataCollector

_NAMED_PARAM = re.compile(r":([A-Za-z_][A-Za-z0-9_]*)")


def _quote(value: Any) -> str:
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, bytes):
        return "<binary>"
    text = str(value).replace("'", "''")
    return f"'{text}'"


def render_sql(sql: str, bindings: Union[Sequence[Any], Mapping[str, Any]]) -> str:
    """Inline bindings into ``sql`` for display (``?``, ``%s`` and ``:name`` styles)."""
    if isinstance(bindings, Mapping):
        return _NAMED_PARAM.sub(
            lambda m: _quote(bindings[m.group(1)]) if m.group(1) in bindings else m.group(0),
            sql,
        )

    values = iter(bindings)

    def _next(match: "re.Match[str]") -> str:
        try:
            return _quote(next(values))
        except StopIteration:
            return match.group(0)

    return re.sub(r"\?|%s", _next, sql)


class QueryCollector(DataCollector):

    name = "queries"

    def __init__(self, timeline: Optional[TimeDataCollector] = None, render_sql_with_params: bool = False):
        self.timeline = timeline
        self.render_sql_with_params = render_sql_with_params
        self._queries: List[Dict[str, Any]] = []

    def set_render_sql_with_params(self, enabled: bool = True) -> None:
        self.render_sql_with_params = enabled

    def add_query(
        self,
        sql: str,
        bindings: Union[Sequence[Any], Mapping[str, Any], None] = None,
        duration: float = 0.0,
        connection: str = "default",
    ) -> None:
        """Record a statement. ``duration`` is in seconds."""
        bindings = bindings if bindings is not None else ()
        end = time.time()
        if self.render_sql_with_params:
            display_sql = render_sql(sql, bindings)
        else:
            display_sql = sql

        self._queries.append({
            "sql": display_sql,
            "bindings": export_value(bindings),
            "duration": duration,
            "connection": connection,
        })

        if self.timeline is not None:
            self.timeline.add_measure(display_sql, end - duration, end, {"connection": connection}, self.name)

    def collect(self) -> Dict[str, Any]:
        statements = []
        total = 0.0
        for index, query in enumerate(self._queries):
            total += query["duration"]
            statements.append({
                "sql": query["sql"],
                "params": query["bindings"],
                "duration": query["duration"],
                "duration_str": format_duration(query["duration"]),
                "stmt_id": index,
                "connection": query["connection"],
            })

        return {
            "nb_statements": len(statements),
            "nb_failed_statements": 0,
            "accumulated_duration": total,
            "accumulated_duration_str": format_duration(total),
            "statements": statements,
        }

    def widgets(self) -> Dict[str, Dict[str, Any]]:
        return {
            "queries": {
                "title": "Queries",
                "icon": "database",
                "widget": "queries",
                "map": "queries.statements",
                "badge": "queries.nb_statements",
            },
        }
