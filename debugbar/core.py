"""
Core - collector registry and snapshot assembly.

``DebugBar`` owns the ordered collector registry, the current request id,
optional storage and the HTTP driver. ``collect()`` produces an immutable
``Snapshot`` of every registered collector plus a ``__meta`` block.
"""

from __future__ import annotations

import copy
import logging
import os
import time
from dataclasses import dataclass
from datetime import datetime
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Mapping, Optional

from .collectors.base import DataCollector
from .faults import CollectorNotFoundError, DuplicateCollectorError, SnapshotNotFound
from .storage import StorageAdapter
from .transport import HttpDriver, SessionHttpDriver, chunk_headers, encode_payload

logger = logging.getLogger("debugbar.core")

META_KEY = "__meta"
STACK_SESSION_KEY = "debugbar_stack"


def generate_request_id() -> str:
    return os.urandom(16).hex()


# ============================================================================
# Snapshot
# ============================================================================

@dataclass(frozen=True)
class Snapshot:
    """
    Assembled diagnostic document for one request or CLI invocation.

    ``meta`` and ``panels`` are read-only views over deep copies of the
    collector payloads.
    """

    meta: Mapping[str, Any]
    panels: Mapping[str, Any]

    @classmethod
    def build(cls, meta: Mapping[str, Any], panels: Mapping[str, Any]) -> "Snapshot":
        return cls(
            meta=MappingProxyType(copy.deepcopy(dict(meta))),
            panels=MappingProxyType(copy.deepcopy(dict(panels))),
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Snapshot":
        panels = {k: v for k, v in data.items() if k != META_KEY}
        return cls.build(data.get(META_KEY, {}), panels)

    @property
    def id(self) -> Optional[str]:
        return self.meta.get("id")

    def __getitem__(self, name: str) -> Any:
        if name == META_KEY:
            return self.meta
        return self.panels[name]

    def __contains__(self, name: object) -> bool:
        return name == META_KEY or name in self.panels

    def keys(self) -> List[str]:
        return [META_KEY, *self.panels.keys()]

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {META_KEY: copy.deepcopy(dict(self.meta))}
        for name, payload in self.panels.items():
            data[name] = copy.deepcopy(payload)
        return data


# ============================================================================
# DebugBar
# ============================================================================

class DebugBar:
    """
    Collector registry and snapshot assembler.

    Collectors are kept in insertion order; the snapshot's panel order
    follows it.
    """

    def __init__(self, request_id: Optional[str] = None):
        self._collectors: Dict[str, DataCollector] = {}
        self._request_id = request_id
        self._data: Optional[Snapshot] = None
        self._storage: Optional[StorageAdapter] = None
        self._http_driver: Optional[HttpDriver] = None

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def add_collector(self, collector: DataCollector) -> "DebugBar":
        name = collector.get_name()
        if name == META_KEY or name in self._collectors:
            raise DuplicateCollectorError(name)
        self._collectors[name] = collector
        return self

    def has_collector(self, name: str) -> bool:
        return name in self._collectors

    def get_collector(self, name: str) -> DataCollector:
        try:
            return self._collectors[name]
        except KeyError:
            raise CollectorNotFoundError(name) from None

    def get_collectors(self) -> Dict[str, DataCollector]:
        return dict(self._collectors)

    def __getitem__(self, name: str) -> DataCollector:
        return self.get_collector(name)

    def __contains__(self, name: object) -> bool:
        return name in self._collectors

    def __iter__(self) -> Iterator[DataCollector]:
        return iter(list(self._collectors.values()))

    # ------------------------------------------------------------------
    # Request id, storage, driver
    # ------------------------------------------------------------------

    def current_request_id(self) -> str:
        if self._request_id is None:
            self._request_id = generate_request_id()
        return self._request_id

    def set_storage(self, storage: Optional[StorageAdapter]) -> "DebugBar":
        self._storage = storage
        return self

    def get_storage(self) -> Optional[StorageAdapter]:
        return self._storage

    def is_data_persisted(self) -> bool:
        return self._storage is not None

    def set_http_driver(self, driver: HttpDriver) -> "DebugBar":
        self._http_driver = driver
        return self

    def get_http_driver(self) -> HttpDriver:
        if self._http_driver is None:
            self._http_driver = SessionHttpDriver()
        return self._http_driver

    # ------------------------------------------------------------------
    # Snapshot assembly
    # ------------------------------------------------------------------

    def build_meta(self, method: str = "GET", uri: Optional[str] = None, ip: Optional[str] = None) -> Dict[str, Any]:
        now = time.time()
        return {
            "id": self.current_request_id(),
            "datetime": datetime.fromtimestamp(now).strftime("%Y-%m-%d %H:%M:%S"),
            "utime": now,
            "method": method,
            "uri": uri,
            "ip": ip,
        }

    def collect(self, meta: Optional[Mapping[str, Any]] = None) -> Snapshot:
        """
        Collect every registered collector into a new snapshot.

        The snapshot is persisted when storage is configured and becomes
        the value returned by ``get_data()``.
        """
        meta = dict(meta) if meta is not None else self.build_meta()
        meta.setdefault("id", self.current_request_id())

        panels: Dict[str, Any] = {}
        for name, collector in self._collectors.items():
            panels[name] = collector.collect()

        self._data = Snapshot.build(meta, panels)

        if self._storage is not None:
            self._storage.save(self.current_request_id(), self._data.to_dict())
            logger.debug("Snapshot %s persisted", self.current_request_id())

        return self._data

    def get_data(self) -> Snapshot:
        """The snapshot for this request, collecting it on first access."""
        if self._data is None:
            self.collect()
        return self._data

    # ------------------------------------------------------------------
    # Header transport
    # ------------------------------------------------------------------

    def get_data_as_headers(
        self,
        header_name: str = "x-debugbar",
        max_header_length: int = 4096,
        max_total_header_length: int = 250000,
    ) -> Dict[str, str]:
        """
        Encode the snapshot into chunked headers.

        Oversized payloads are reduced to their ``__meta`` block and flagged
        with ``<header_name>-elided``.
        """
        data = self.get_data().to_dict()
        encoded = encode_payload(data)
        elided = len(encoded) > max_total_header_length
        if elided:
            encoded = encode_payload({META_KEY: data[META_KEY], "error": "Maximum header size exceeded"})

        headers = chunk_headers(encoded, header_name, max_header_length)
        if elided:
            headers[f"{header_name}-elided"] = "1"
        return headers

    def send_data_in_headers(
        self,
        use_open_handler: bool = False,
        header_name: str = "x-debugbar",
        max_header_length: int = 4096,
        max_total_header_length: int = 250000,
    ) -> Dict[str, str]:
        """
        Send the snapshot (or its id) through the HTTP driver's headers.

        With storage available, ``use_open_handler`` or an oversized
        payload sends only ``<header_name>-id``.
        """
        snapshot = self.get_data()
        if self.is_data_persisted():
            oversized = len(encode_payload(snapshot.to_dict())) > max_total_header_length
            if use_open_handler or oversized:
                headers = {f"{header_name}-id": self.current_request_id()}
                self.get_http_driver().set_headers(headers)
                return headers

        headers = self.get_data_as_headers(header_name, max_header_length, max_total_header_length)
        self.get_http_driver().set_headers(headers)
        return headers

    # ------------------------------------------------------------------
    # Redirect stash
    # ------------------------------------------------------------------

    def stack_data(self) -> None:
        """
        Keep this request's snapshot for the next rendered page.

        Stores the id only when storage is available, the full document
        otherwise.
        """
        driver = self.get_http_driver()
        stack = dict(driver.get_session_value(STACK_SESSION_KEY) or {})
        snapshot = self.get_data()
        if self.is_data_persisted():
            stack[self.current_request_id()] = None
        else:
            stack[self.current_request_id()] = snapshot.to_dict()
        driver.set_session_value(STACK_SESSION_KEY, stack)

    def has_stacked_data(self) -> bool:
        driver = self.get_http_driver()
        return bool(driver.has_session_value(STACK_SESSION_KEY) and driver.get_session_value(STACK_SESSION_KEY))

    def get_stacked_data(self, delete: bool = True) -> List[Snapshot]:
        driver = self.get_http_driver()
        stack = driver.get_session_value(STACK_SESSION_KEY) or {}
        if delete:
            driver.delete_session_value(STACK_SESSION_KEY)

        snapshots: List[Snapshot] = []
        for request_id, data in stack.items():
            if data is None:
                if self._storage is None:
                    continue
                try:
                    data = self._storage.get(request_id)
                except SnapshotNotFound:
                    logger.debug("Stacked snapshot %s no longer in storage", request_id)
                    continue
            snapshots.append(Snapshot.from_dict(data))
        return snapshots


__all__ = ["META_KEY", "Snapshot", "DebugBar", "generate_request_id"]
