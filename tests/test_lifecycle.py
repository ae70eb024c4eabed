"""
Tests for the lifecycle controller: boot, hook wiring and the imperative API.
"""

from unittest.mock import patch

import pytest

from debugbar.faults import CollectorAttachError, HookUnavailableError
from debugbar.hooks import (
    FrameworkCapabilities,
    FrameworkHooks,
    HookKind,
    LogEvent,
    MailEvent,
    QueryEvent,
    RouteEvent,
    ViewEvent,
)
from debugbar.lifecycle import BOOT_ORDER, Debugbar
from debugbar.response import Response
from debugbar.storage import MemoryStorage
from tests.conftest import make_config, make_debugbar, make_request


def _exceptions(debugbar):
    return debugbar["exceptions"].get_exceptions()


# ============================================================================
# Boot
# ============================================================================


class TestBoot:

    def test_default_collectors_in_boot_order(self, debugbar):
        assert list(debugbar.get_collectors()) == [
            "python",
            "messages",
            "time",
            "memory",
            "exceptions",
            "views",
            "route",
            "queries",
            "mails",
        ]

    def test_boot_order_covers_every_kind(self):
        for kind in BOOT_ORDER:
            assert hasattr(Debugbar, f"_boot_{kind}")

    def test_boot_is_idempotent(self, debugbar):
        before = list(debugbar.get_collectors())
        debugbar.boot()
        assert list(debugbar.get_collectors()) == before
        assert _exceptions(debugbar) == []

    def test_disabled_collectors_are_skipped(self):
        config = make_config(collectors={"memory": False, "views": False, "python_info": False})
        debugbar = make_debugbar(config)
        assert "memory" not in debugbar
        assert "views" not in debugbar
        assert "python" not in debugbar

    def test_optional_collectors(self, tmp_path):
        config = make_config(
            collectors={
                "framework": True,
                "default_request": True,
                "events": True,
                "logs": True,
                "files": True,
                "auth": True,
            },
            options={"logs": {"file": str(tmp_path / "app.log")}},
        )
        debugbar = make_debugbar(config)
        for name in ("framework", "request", "events", "logs", "files", "auth"):
            assert name in debugbar

    def test_storage_built_from_config(self, tmp_path):
        config = make_config(storage={"enabled": True, "driver": "memory"})
        debugbar = make_debugbar(config)
        assert isinstance(debugbar.get_storage(), MemoryStorage)

    def test_explicit_storage_is_kept(self, storage):
        debugbar = make_debugbar(storage=storage)
        assert debugbar.get_storage() is storage


class TestAttachFailures:

    def test_unsupported_hooks_are_recorded(self):
        debugbar = make_debugbar(hooks=FrameworkHooks(supported=[]))
        assert "views" in debugbar
        assert "queries" in debugbar
        errors = _exceptions(debugbar)
        assert errors
        assert all(isinstance(e, HookUnavailableError) for e in errors)
        assert {"exceptions", "views", "db", "mail"} <= {e.collector for e in errors}

    def test_failures_do_not_abort_boot(self):
        supported = [k for k in HookKind if k is not HookKind.QUERY]
        debugbar = make_debugbar(hooks=FrameworkHooks(supported=supported))
        assert list(debugbar.get_collectors())[-1] == "mails"
        errors = _exceptions(debugbar)
        assert [e.collector for e in errors] == ["db"]
        assert errors[0].hook == "query"

    def test_unexpected_error_is_wrapped(self):
        with patch("debugbar.lifecycle.MemoryCollector", side_effect=RuntimeError("no rusage")):
            debugbar = make_debugbar()
        assert "memory" not in debugbar
        # The exceptions collector boots after memory, so the failure is only logged.
        assert _exceptions(debugbar) == []

    def test_wrapped_error_keeps_cause(self):
        with patch("debugbar.lifecycle.ViewCollector", side_effect=RuntimeError("broken")):
            debugbar = make_debugbar()
        [error] = _exceptions(debugbar)
        assert isinstance(error, CollectorAttachError)
        assert error.code == "COLLECTOR_ATTACH_FAILED"
        assert error.collector == "views"
        assert isinstance(error.__cause__, RuntimeError)


# ============================================================================
# Hook wiring
# ============================================================================


class TestHookWiring:

    def test_exceptions_hook(self, debugbar):
        debugbar.hooks.emit(HookKind.EXCEPTION, ValueError("bad"))
        assert [str(e) for e in _exceptions(debugbar)] == ["bad"]

    def test_log_fans_into_messages(self, debugbar):
        debugbar.hooks.emit(HookKind.LOG, LogEvent("warning", "disk low"))
        [message] = debugbar["messages"].collect()["messages"]
        assert "LOG.warning: disk low" in message["message"]
        assert message["label"] == "warning"
        assert message["collector"] == "log"
        assert "logging" not in debugbar

    def test_log_without_messages_gets_own_panel(self):
        debugbar = make_debugbar(make_config(collectors={"messages": False}))
        debugbar.hooks.emit(HookKind.LOG, LogEvent("error", "boom", channel="app"))
        assert "logging" in debugbar
        [message] = debugbar["logging"].collect()["messages"]
        assert message["message"] == "app.ERROR: boom"

    def test_query_without_timeline(self, debugbar):
        debugbar.hooks.emit(HookKind.QUERY, QueryEvent("SELECT 1", (), 0.01, "main"))
        assert debugbar["queries"].collect()["nb_statements"] == 1
        assert debugbar["time"].get_measures() == []

    def test_query_timeline(self):
        debugbar = make_debugbar(make_config(options={"db": {"timeline": True, "with_params": True}}))
        debugbar.hooks.emit(HookKind.QUERY, QueryEvent("SELECT ?", (5,), 0.01))
        assert [m.label for m in debugbar["time"].get_measures()] == ["SELECT 5"]

    def test_query_logging_opt_out(self, debugbar):
        class QuietConnection:
            def logging_enabled(self):
                return False

        class LoudConnection:
            def logging_enabled(self):
                return True

        debugbar.hooks.emit(HookKind.QUERY, QueryEvent("SELECT 1", connection=QuietConnection()))
        debugbar.hooks.emit(HookKind.QUERY, QueryEvent("SELECT 2", connection=LoudConnection()))
        statements = debugbar["queries"].collect()["statements"]
        assert [s["sql"] for s in statements] == ["SELECT 2"]

    def test_views_and_route(self, debugbar):
        debugbar.hooks.emit(HookKind.VIEW, ViewEvent("home", {"a": 1}))
        debugbar.hooks.emit(HookKind.ROUTE, RouteEvent("/home", ("GET",)))
        assert debugbar["views"].collect()["nb_templates"] == 1
        assert debugbar["route"].collect()["uri"] == "GET /home"

    def test_events(self):
        debugbar = make_debugbar(make_config(collectors={"events": True}))
        debugbar.hooks.emit(HookKind.EVENT, "user.created", {"id": 1})
        [message] = debugbar["events"].collect()["messages"]
        assert message["message"] == "Received event: user.created"

    def test_mail_full_log(self):
        debugbar = make_debugbar(make_config(options={"mail": {"full_log": True}}))
        debugbar.hooks.emit(HookKind.MAIL, MailEvent("Welcome", ("ana@example.com",), body="Hi"))
        assert debugbar["mails"].collect()["count"] == 1
        [message] = debugbar["messages"].collect()["messages"]
        assert message["message"] == "Message sent: Welcome to ana@example.com\nHi"
        assert message["collector"] == "mail"

    def test_mail_without_full_log(self, debugbar):
        debugbar.hooks.emit(HookKind.MAIL, MailEvent("Welcome", ("ana@example.com",)))
        assert debugbar["messages"].collect()["count"] == 0


# ============================================================================
# Application measure
# ============================================================================


class TestApplicationMeasure:

    def test_starts_on_before_hook(self, debugbar):
        time_collector = debugbar["time"]
        assert not time_collector.has_started_measure("application")
        debugbar.hooks.emit(HookKind.BEFORE, make_request())
        assert time_collector.has_started_measure("application")

    def test_starts_immediately_without_preboot_hooks(self):
        hooks = FrameworkHooks(capabilities=FrameworkCapabilities(preboot_hooks=False))
        debugbar = make_debugbar(hooks=hooks)
        assert debugbar["time"].has_started_measure("application")

    def test_after_hook_switches_measures(self, debugbar):
        debugbar.hooks.emit(HookKind.BEFORE, make_request())
        debugbar.hooks.emit(HookKind.AFTER, make_request(), Response.html("ok"))
        time_collector = debugbar["time"]
        assert [m.label for m in time_collector.get_measures()] == ["Application"]
        assert time_collector.has_started_measure("after")

    def test_after_without_before_is_tolerated(self, debugbar):
        debugbar.hooks.emit(HookKind.AFTER, make_request(), Response.html("ok"))
        assert debugbar["time"].has_started_measure("after")

    def test_booting_measure(self):
        caps = FrameworkCapabilities(boot_start=1000.0)
        debugbar = make_debugbar(hooks=FrameworkHooks(capabilities=caps))
        [booting] = debugbar["time"].get_measures()
        assert booting.label == "Booting"
        assert booting.start == 1000.0


# ============================================================================
# Imperative API
# ============================================================================


class TestImperativeApi:

    def test_measures(self, debugbar):
        debugbar.start_measure("render", "Rendering")
        debugbar.stop_measure("render")
        debugbar.add_measure("fixed", 1.0, 2.0)
        labels = [m.label for m in debugbar["time"].get_measures()]
        assert labels == ["Rendering", "fixed"]

    def test_stopping_twice_is_a_no_op(self, debugbar):
        debugbar.start_measure("once")
        debugbar.stop_measure("once")
        debugbar.stop_measure("once")
        debugbar.stop_measure("never-started")
        assert len(debugbar["time"].get_measures()) == 1

    def test_measure_propagates_and_records(self, debugbar):
        def explode():
            raise KeyError("x")

        with pytest.raises(KeyError):
            debugbar.measure("explode", explode)
        assert [m.label for m in debugbar["time"].get_measures()] == ["explode"]

    def test_messages(self, debugbar):
        debugbar.info("hello")
        debugbar.error("bad")
        debugbar.log("notice", "note")
        debugbar.log("Warn", "careful")
        debugbar.add_message({"k": 1}, "debug")
        labels = [m["label"] for m in debugbar["messages"].collect()["messages"]]
        assert labels == ["info", "error", "notice", "warning", "debug"]

    def test_add_exception(self, debugbar):
        debugbar.add_exception(RuntimeError("x"))
        assert len(_exceptions(debugbar)) == 1

    def test_no_ops_without_collectors(self):
        config = make_config(collectors={"time": False, "messages": False, "exceptions": False})
        debugbar = make_debugbar(config)
        debugbar.start_measure("a")
        debugbar.stop_measure("a")
        debugbar.add_measure("b", 0.0, 1.0)
        debugbar.info("ignored")
        debugbar.add_exception(RuntimeError("ignored"))
        assert debugbar.measure("c", lambda: "ran") == "ran"
        debugbar.log("warn", "ignored")
        debugbar.log("NOT-A-LEVEL", "ignored")
        assert "time" not in debugbar
        assert "messages" not in debugbar


# ============================================================================
# Enable / disable, request handling, console
# ============================================================================


class TestEnableDisable:

    def test_enabled_from_config(self):
        assert Debugbar(make_config()).is_enabled()
        assert not Debugbar(make_config(enabled=False)).is_enabled()

    def test_enable_boots(self):
        debugbar = Debugbar(make_config(enabled=False))
        assert not debugbar.booted
        debugbar.enable()
        assert debugbar.is_enabled()
        assert debugbar.booted
        assert "messages" in debugbar

    def test_disable_does_not_touch_config(self, debugbar):
        debugbar.disable()
        assert not debugbar.is_enabled()
        assert debugbar.config.get("enabled") is True

    def test_enable_is_local_to_the_controller(self):
        config = make_config(enabled=False)
        first = Debugbar(config)
        first.enable()
        assert first.is_enabled()
        assert config.get("enabled") is False
        assert not Debugbar(config).is_enabled()

    def test_string_enabled_flag(self):
        assert not Debugbar(make_config(enabled="false")).is_enabled()
        assert Debugbar(make_config(enabled="true")).is_enabled()


class TestRequestHandling:

    def test_is_debugbar_request(self, debugbar):
        assert debugbar.is_debugbar_request(make_request(path="/_debugbar/open"))
        assert not debugbar.is_debugbar_request(make_request(path="/app/_debugbar"))

    def test_prepare_response_adds_request_collector(self, debugbar):
        request = make_request(path="/page")
        response = Response.html("<body></body>")
        debugbar.prepare_response(request, response)
        assert "request" in debugbar
        assert debugbar["request"].response is response
        assert "config" not in debugbar

    def test_prepare_response_config_collector(self):
        debugbar = make_debugbar(make_config(collectors={"config": True}, storage={"password": "x"}))
        debugbar.prepare_response(make_request(), Response.html(""))
        assert debugbar["config"].collect()["storage"]["password"] == "***REDACTED***"

    def test_collect_uses_request_meta(self, debugbar):
        debugbar.bind_request(make_request("POST", "/submit", query_string="a=1", client=("10.1.1.1", 1)))
        meta = debugbar.collect().meta
        assert meta["method"] == "POST"
        assert meta["uri"] == "/submit?a=1"
        assert meta["ip"] == "10.1.1.1"


class TestConsole:

    def test_disabled_returns_none(self):
        debugbar = make_debugbar(make_config(enabled=False), boot=False)
        assert debugbar.collect_console(["manage.py"], {}) is None

    def test_console_meta(self, debugbar):
        snapshot = debugbar.collect_console(["manage.py", "migrate"], {"SSH_CLIENT": "10.0.0.5 5000 22"})
        assert snapshot.meta["method"] == "CLI"
        assert snapshot.meta["uri"] == "manage.py migrate"
        assert snapshot.meta["ip"] == "10.0.0.5 5000 22"
        assert "messages" in snapshot

    def test_console_without_ssh(self, debugbar):
        snapshot = debugbar.collect_console([], {})
        assert snapshot.meta["uri"] is None
        assert snapshot.meta["ip"] is None
