"""
Snapshot storage - persists snapshots by request id for later retrieval.

Backends:
- ``MemoryStorage``: process-local dict (tests, single-process dev servers)
- ``FileStorage``: one JSON document per request under a directory
- ``SqliteStorage``: one row per request in a SQLite database

``find`` returns ``__meta`` blocks, newest first, filtered by exact match on
meta fields (``method``, ``uri``, ``ip``, ...).
"""

from __future__ import annotations

import json
import logging
import re
import sqlite3
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

from .config import as_bool
from .faults import SnapshotNotFound, StorageFault

logger = logging.getLogger("debugbar.storage")

_VALID_ID = re.compile(r"^[A-Za-z0-9_-]{1,128}$")


def _check_id(request_id: str) -> str:
    if not isinstance(request_id, str) or not _VALID_ID.match(request_id):
        raise StorageFault("SNAPSHOT_ID_INVALID", f"Invalid snapshot id: {request_id!r}", request_id=str(request_id))
    return request_id


def _matches(meta: Mapping[str, Any], filters: Optional[Mapping[str, Any]]) -> bool:
    if not filters:
        return True
    return all(str(meta.get(key)) == str(value) for key, value in filters.items())


class StorageAdapter(ABC):
    """Interface for snapshot persistence."""

    @abstractmethod
    def save(self, request_id: str, data: Dict[str, Any]) -> None:
        ...

    @abstractmethod
    def get(self, request_id: str) -> Dict[str, Any]:
        """Return the stored document or raise ``SnapshotNotFound``."""
        ...

    @abstractmethod
    def find(self, filters: Optional[Mapping[str, Any]] = None, max: int = 20, offset: int = 0) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    def clear(self) -> None:
        ...


class MemoryStorage(StorageAdapter):

    def __init__(self):
        self._data: Dict[str, Dict[str, Any]] = {}

    def save(self, request_id: str, data: Dict[str, Any]) -> None:
        self._data[_check_id(request_id)] = json.loads(json.dumps(data, default=str))

    def get(self, request_id: str) -> Dict[str, Any]:
        try:
            return self._data[request_id]
        except KeyError:
            raise SnapshotNotFound(request_id) from None

    def find(self, filters=None, max: int = 20, offset: int = 0) -> List[Dict[str, Any]]:
        metas = [doc.get("__meta", {}) for doc in reversed(list(self._data.values()))]
        results = [meta for meta in metas if _matches(meta, filters)]
        return results[offset:offset + max]

    def clear(self) -> None:
        self._data.clear()


class FileStorage(StorageAdapter):
    """One ``<id>.json`` file per snapshot; written atomically."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def _file(self, request_id: str) -> Path:
        return self.path / f"{_check_id(request_id)}.json"

    def save(self, request_id: str, data: Dict[str, Any]) -> None:
        self.path.mkdir(parents=True, exist_ok=True)
        target = self._file(request_id)
        tmp = target.with_suffix(".tmp")
        tmp.write_text(json.dumps(data, default=str))
        tmp.replace(target)
        logger.debug("Stored snapshot %s in %s", request_id, target)

    def get(self, request_id: str) -> Dict[str, Any]:
        target = self._file(request_id)
        try:
            return json.loads(target.read_text())
        except FileNotFoundError:
            raise SnapshotNotFound(request_id) from None
        except json.JSONDecodeError as exc:
            raise StorageFault("SNAPSHOT_CORRUPT", f"Snapshot {request_id} is not valid JSON", request_id=request_id) from exc

    def find(self, filters=None, max: int = 20, offset: int = 0) -> List[Dict[str, Any]]:
        if not self.path.is_dir():
            return []
        files = sorted(self.path.glob("*.json"), key=lambda p: p.stat().st_mtime, reverse=True)
        results: List[Dict[str, Any]] = []
        skipped = 0
        for file in files:
            try:
                meta = json.loads(file.read_text()).get("__meta", {})
            except (OSError, json.JSONDecodeError):
                logger.warning("Skipping unreadable snapshot file %s", file)
                continue
            if not _matches(meta, filters):
                continue
            if skipped < offset:
                skipped += 1
                continue
            results.append(meta)
            if len(results) >= max:
                break
        return results

    def clear(self) -> None:
        if not self.path.is_dir():
            return
        for file in self.path.glob("*.json"):
            file.unlink()


class SqliteStorage(StorageAdapter):

    def __init__(self, db_path: Union[str, Path] = ".debugbar/snapshots.db"):
        self._db_path = str(db_path)
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(self._db_path)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._create_table()

    def _create_table(self):
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS snapshots (
                id TEXT PRIMARY KEY,
                utime REAL NOT NULL,
                meta TEXT NOT NULL,
                data TEXT NOT NULL
            )
        """)
        self._conn.execute("CREATE INDEX IF NOT EXISTS idx_snapshots_utime ON snapshots(utime)")
        self._conn.commit()

    def save(self, request_id: str, data: Dict[str, Any]) -> None:
        meta = data.get("__meta", {})
        self._conn.execute(
            "INSERT OR REPLACE INTO snapshots (id, utime, meta, data) VALUES (?, ?, ?, ?)",
            (
                _check_id(request_id),
                float(meta.get("utime") or time.time()),
                json.dumps(meta, default=str),
                json.dumps(data, default=str),
            ),
        )
        self._conn.commit()

    def get(self, request_id: str) -> Dict[str, Any]:
        row = self._conn.execute("SELECT data FROM snapshots WHERE id = ?", (request_id,)).fetchone()
        if row is None:
            raise SnapshotNotFound(request_id)
        return json.loads(row[0])

    def find(self, filters=None, max: int = 20, offset: int = 0) -> List[Dict[str, Any]]:
        results: List[Dict[str, Any]] = []
        skipped = 0
        for (meta_json,) in self._conn.execute("SELECT meta FROM snapshots ORDER BY utime DESC"):
            meta = json.loads(meta_json)
            if not _matches(meta, filters):
                continue
            if skipped < offset:
                skipped += 1
                continue
            results.append(meta)
            if len(results) >= max:
                break
        return results

    def clear(self) -> None:
        self._conn.execute("DELETE FROM snapshots")
        self._conn.commit()

    def close(self):
        self._conn.close()


def create_storage(config: Any) -> Optional[StorageAdapter]:
    """Build the configured backend, or ``None`` when storage is disabled."""
    if not as_bool(config.get("storage.enabled")):
        return None

    driver = config.get("storage.driver", "file")
    path = config.get("storage.path", ".debugbar/storage")
    if driver == "file":
        return FileStorage(path)
    if driver == "sqlite":
        return SqliteStorage(path)
    if driver == "memory":
        return MemoryStorage()
    raise StorageFault("STORAGE_DRIVER_UNKNOWN", f"Unknown storage driver: {driver!r}", driver=str(driver))
