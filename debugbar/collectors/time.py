"""
Time collector - request duration and a timeline of named measures.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional, TypeVar

from ..faults import MeasureStateError
from .base import DataCollector, format_duration

T = TypeVar("T")


@dataclass
class Measurement:
    """A named timed interval on the timeline."""

    name: str
    label: str
    start: float
    end: Optional[float] = None
    params: Dict[str, Any] = field(default_factory=dict)
    collector: Optional[str] = None

    @property
    def running(self) -> bool:
        return self.end is None

    @property
    def duration(self) -> float:
        end = self.end if self.end is not None else time.time()
        return end - self.start

    def stop(self, end: Optional[float] = None) -> None:
        if not self.running:
            raise MeasureStateError(self.name)
        self.end = end if end is not None else time.time()


class TimeDataCollector(DataCollector):
    """
    Collects measures relative to the request start.

    Running measures are kept by name; stopping moves them to the finished
    list. ``collect()`` closes anything still running.
    """

    name = "time"

    def __init__(self, request_start: Optional[float] = None):
        self.request_start = request_start if request_start is not None else time.time()
        self.request_end: Optional[float] = None
        self._started: Dict[str, Measurement] = {}
        self._measures: List[Measurement] = []

    def start_measure(self, name: str, label: Optional[str] = None, collector: Optional[str] = None) -> Measurement:
        measure = Measurement(
            name=name,
            label=label or name,
            start=time.time(),
            collector=collector,
        )
        self._started[name] = measure
        return measure

    def has_started_measure(self, name: str) -> bool:
        return name in self._started

    def stop_measure(self, name: str, params: Optional[Dict[str, Any]] = None) -> Measurement:
        measure = self._started.pop(name, None)
        if measure is None:
            raise MeasureStateError(name)
        measure.stop()
        if params:
            measure.params.update(params)
        self._measures.append(measure)
        return measure

    def add_measure(
        self,
        label: str,
        start: float,
        end: float,
        params: Optional[Dict[str, Any]] = None,
        collector: Optional[str] = None,
    ) -> Measurement:
        measure = Measurement(
            name=label,
            label=label,
            start=start,
            end=end,
            params=dict(params or {}),
            collector=collector,
        )
        self._measures.append(measure)
        return measure

    @contextmanager
    def measuring(self, label: str, collector: Optional[str] = None) -> Iterator[None]:
        """Time the enclosed block; the measure is recorded even if it raises."""
        start = time.time()
        try:
            yield
        finally:
            self.add_measure(label, start, time.time(), collector=collector)

    def measure(self, label: str, fn: Callable[[], T], collector: Optional[str] = None) -> T:
        with self.measuring(label, collector):
            return fn()

    def get_measures(self) -> List[Measurement]:
        return list(self._measures)

    @property
    def request_duration(self) -> float:
        end = self.request_end if self.request_end is not None else time.time()
        return end - self.request_start

    def collect(self) -> Dict[str, Any]:
        self.request_end = time.time()
        for name in list(self._started):
            self.stop_measure(name)

        measures = []
        for m in self._measures:
            measures.append({
                "label": m.label,
                "start": m.start,
                "relative_start": m.start - self.request_start,
                "end": m.end,
                "relative_end": m.end - self.request_start,
                "duration": m.duration,
                "duration_str": format_duration(m.duration),
                "params": m.params,
                "collector": m.collector,
            })

        return {
            "start": self.request_start,
            "end": self.request_end,
            "duration": self.request_duration,
            "duration_str": format_duration(self.request_duration),
            "measures": measures,
        }

    def widgets(self) -> Dict[str, Dict[str, Any]]:
        return {
            "timeline": {
                "title": "Timeline",
                "icon": "tasks",
                "widget": "timeline",
                "map": "time",
                "badge": "time.duration_str",
            },
        }
