"""
Tests for the collector registry and snapshot assembly.
"""

from types import MappingProxyType

import pytest

from debugbar.collectors import DataCollector, MessagesCollector
from debugbar.core import META_KEY, DebugBar, Snapshot
from debugbar.faults import CollectorNotFoundError, DuplicateCollectorError, NotFoundError
from debugbar.storage import MemoryStorage
from debugbar.transport import SessionHttpDriver


class StaticCollector(DataCollector):

    def __init__(self, name, payload=None):
        self.name = name
        self.payload = payload if payload is not None else {"value": name}

    def collect(self):
        return self.payload


# ============================================================================
# Registry
# ============================================================================


class TestRegistry:

    def test_add_then_has_and_get(self):
        bar = DebugBar()
        collector = StaticCollector("alpha")
        bar.add_collector(collector)
        assert bar.has_collector("alpha")
        assert bar.get_collector("alpha") is collector
        assert bar["alpha"] is collector
        assert "alpha" in bar

    def test_duplicate_is_rejected_and_registry_unchanged(self):
        bar = DebugBar()
        first = StaticCollector("alpha")
        bar.add_collector(first)
        with pytest.raises(DuplicateCollectorError) as exc_info:
            bar.add_collector(StaticCollector("alpha"))
        assert exc_info.value.code == "COLLECTOR_DUPLICATE"
        assert bar.get_collector("alpha") is first
        assert list(bar.get_collectors()) == ["alpha"]

    def test_missing_collector(self):
        bar = DebugBar()
        assert not bar.has_collector("nope")
        with pytest.raises(CollectorNotFoundError):
            bar.get_collector("nope")
        with pytest.raises(NotFoundError):
            bar["nope"]

    def test_meta_name_is_reserved(self):
        bar = DebugBar()
        with pytest.raises(DuplicateCollectorError):
            bar.add_collector(StaticCollector(META_KEY))

    def test_insertion_order_is_kept(self):
        bar = DebugBar()
        for name in ("c", "a", "b"):
            bar.add_collector(StaticCollector(name))
        assert list(bar.get_collectors()) == ["c", "a", "b"]
        assert [c.name for c in bar] == ["c", "a", "b"]

    def test_add_collector_is_chainable(self):
        bar = DebugBar()
        assert bar.add_collector(StaticCollector("a")) is bar


# ============================================================================
# Snapshot assembly
# ============================================================================


class TestSnapshot:

    def test_one_entry_per_collector_plus_meta(self):
        bar = DebugBar(request_id="req1")
        bar.add_collector(StaticCollector("a"))
        bar.add_collector(MessagesCollector())
        snapshot = bar.collect(bar.build_meta("GET", "/x", "10.0.0.1"))
        assert snapshot.keys() == [META_KEY, "a", "messages"]
        assert snapshot.meta["id"] == "req1"
        assert snapshot.meta["method"] == "GET"
        assert snapshot.meta["uri"] == "/x"
        assert snapshot.meta["ip"] == "10.0.0.1"
        assert set(snapshot.meta) == {"id", "datetime", "utime", "method", "uri", "ip"}

    def test_key_set_is_stable(self):
        bar = DebugBar()
        bar.add_collector(StaticCollector("a"))
        bar.add_collector(StaticCollector("b"))
        assert bar.collect().keys() == bar.collect().keys()

    def test_snapshot_is_read_only(self):
        bar = DebugBar()
        bar.add_collector(StaticCollector("a"))
        snapshot = bar.collect()
        assert isinstance(snapshot.panels, MappingProxyType)
        with pytest.raises(TypeError):
            snapshot.panels["a"] = {}
        with pytest.raises(AttributeError):
            snapshot.meta = {}

    def test_later_collector_activity_does_not_alter_snapshot(self):
        payload = {"items": [1]}
        bar = DebugBar()
        bar.add_collector(StaticCollector("a", payload))
        snapshot = bar.collect()
        payload["items"].append(2)
        assert snapshot["a"] == {"items": [1]}

    def test_get_data_collects_once(self):
        bar = DebugBar()
        bar.add_collector(StaticCollector("a"))
        first = bar.get_data()
        assert bar.get_data() is first

    def test_to_dict_and_from_dict(self):
        bar = DebugBar(request_id="abc")
        bar.add_collector(StaticCollector("a"))
        data = bar.collect().to_dict()
        assert data[META_KEY]["id"] == "abc"
        assert data["a"] == {"value": "a"}
        restored = Snapshot.from_dict(data)
        assert restored.id == "abc"
        assert restored["a"] == {"value": "a"}
        assert "a" in restored

    def test_collect_persists_to_storage(self):
        storage = MemoryStorage()
        bar = DebugBar(request_id="stored")
        bar.set_storage(storage)
        bar.add_collector(StaticCollector("a"))
        bar.collect()
        assert bar.is_data_persisted()
        assert storage.get("stored")["a"] == {"value": "a"}

    def test_request_id_is_generated_once(self):
        bar = DebugBar()
        request_id = bar.current_request_id()
        assert len(request_id) == 32
        assert bar.current_request_id() == request_id


# ============================================================================
# Redirect stash
# ============================================================================


class TestStackedData:

    def _bar(self, session, storage=None, request_id=None):
        bar = DebugBar(request_id=request_id)
        bar.set_http_driver(SessionHttpDriver(session))
        if storage is not None:
            bar.set_storage(storage)
        bar.add_collector(StaticCollector("a"))
        return bar

    def test_stack_without_session_is_ignored(self):
        bar = self._bar(None)
        bar.stack_data()
        assert not bar.has_stacked_data()
        assert bar.get_stacked_data() == []

    def test_stack_and_consume(self):
        session = {}
        self._bar(session, request_id="one").stack_data()
        self._bar(session, request_id="two").stack_data()
        reader = self._bar(session)
        assert reader.has_stacked_data()
        assert [s.id for s in reader.get_stacked_data()] == ["one", "two"]
        assert not reader.has_stacked_data()

    def test_keep_when_not_deleting(self):
        session = {}
        self._bar(session, request_id="one").stack_data()
        reader = self._bar(session)
        reader.get_stacked_data(delete=False)
        assert reader.has_stacked_data()

    def test_missing_stored_entries_are_skipped(self):
        session = {}
        storage = MemoryStorage()
        self._bar(session, storage, request_id="kept").stack_data()
        self._bar(session, storage, request_id="gone").stack_data()
        storage._data.pop("gone")
        reader = self._bar(session, storage)
        assert [s.id for s in reader.get_stacked_data()] == ["kept"]
