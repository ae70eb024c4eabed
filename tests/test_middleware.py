"""
Tests for the ASGI middleware, end to end through httpx.
"""

import logging
import time
from unittest.mock import AsyncMock

import httpx
import pytest

from debugbar.hooks import HookKind, LoggingBridge, QueryEvent
from debugbar.middleware import DebugbarMiddleware, RedirectStash, current_debugbar
from debugbar.storage import MemoryStorage
from debugbar.transport import decode_payload, join_headers
from tests.conftest import make_config

PAGE = b"<html><body><h1>Home</h1></body></html>"


def make_app(body=PAGE, status=200, content_type="text/html; charset=utf-8", headers=None, before=None):
    async def app(scope, receive, send):
        if before is not None:
            before()
        raw_headers = [(b"content-type", content_type.encode("latin-1"))]
        for name, value in (headers or {}).items():
            raw_headers.append((name.encode("latin-1"), value.encode("latin-1")))
        raw_headers.append((b"content-length", str(len(body)).encode("latin-1")))
        await send({"type": "http.response.start", "status": status, "headers": raw_headers})
        await send({"type": "http.response.body", "body": body, "more_body": False})

    return app


def wrap(app, config=None, **kwargs):
    kwargs.setdefault("bridge_logging", False)
    return DebugbarMiddleware(app, config or make_config(), **kwargs)


def client_for(app):
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver")


AJAX = {"X-Requested-With": "XMLHttpRequest"}


# ============================================================================
# Delivery
# ============================================================================


class TestDelivery:

    @pytest.mark.asyncio
    async def test_html_gets_toolbar(self):
        async with client_for(wrap(make_app())) as client:
            response = await client.get("/")
        assert response.status_code == 200
        assert response.text.startswith("<html><body><h1>Home</h1>")
        assert response.text.endswith("</body></html>")
        assert 'id="debugbar"' in response.text
        assert int(response.headers["content-length"]) == len(response.content)

    @pytest.mark.asyncio
    async def test_json_is_untouched(self):
        app = make_app(b'{"a": 1}', content_type="application/json")
        async with client_for(wrap(app)) as client:
            response = await client.get("/api")
        assert response.content == b'{"a": 1}'
        assert "x-debugbar" not in response.headers

    @pytest.mark.asyncio
    async def test_disabled_is_byte_identical(self):
        app = make_app(headers={"x-app": "1"})
        async with client_for(wrap(app, make_config(enabled=False))) as client:
            response = await client.get("/")
        assert response.content == PAGE
        assert response.headers["x-app"] == "1"

    @pytest.mark.asyncio
    async def test_ajax_headers(self):
        def before():
            current_debugbar().info("from handler")
            current_debugbar().hooks.emit(HookKind.QUERY, QueryEvent("SELECT 1", (), 0.001))

        app = make_app(b"{}", content_type="application/json", before=before)
        async with client_for(wrap(app)) as client:
            response = await client.get("/api", headers=AJAX)
        assert response.content == b"{}"
        data = decode_payload(join_headers(response.headers))
        assert data["__meta"]["uri"] == "/api"
        assert data["queries"]["nb_statements"] == 1
        assert [m["message"] for m in data["messages"]["messages"]] == ["from handler"]
        assert data["request"]["method"] == "GET"

    @pytest.mark.asyncio
    async def test_application_measure_on_timeline(self):
        app = make_app(b"{}", content_type="application/json")
        async with client_for(wrap(app)) as client:
            response = await client.get("/api", headers=AJAX)
        data = decode_payload(join_headers(response.headers))
        labels = [m["label"] for m in data["time"]["measures"]]
        assert labels == ["Application", "After application"]

    @pytest.mark.asyncio
    async def test_ajax_with_open_handler(self):
        storage = MemoryStorage()
        config = make_config(options={"ajax": {"open_handler": True}})
        app = make_app(b"{}", content_type="application/json")
        async with client_for(wrap(app, config, storage=storage)) as client:
            response = await client.get("/api", headers=AJAX)
            request_id = response.headers["x-debugbar-id"]
            stored = await client.get("/_debugbar/open", params={"op": "get", "id": request_id})
        assert stored.json()["__meta"]["id"] == request_id

    @pytest.mark.asyncio
    async def test_redirect_then_page_shows_stacked(self):
        redirect = make_app(b"", status=302, headers={"location": "/home"})
        page = make_app()

        async def app(scope, receive, send):
            target = redirect if scope["path"] == "/login" else page
            await target(scope, receive, send)

        async with client_for(wrap(app)) as client:
            first = await client.post("/login")
            second = await client.get("/home")
        assert first.status_code == 302
        assert first.content == b""
        assert "x-debugbar" not in first.headers
        assert "debugbar-stacked" in second.text
        assert "/login" in second.text

    @pytest.mark.asyncio
    async def test_streaming_passes_through(self):
        async def app(scope, receive, send):
            await send({
                "type": "http.response.start",
                "status": 200,
                "headers": [(b"content-type", b"text/event-stream")],
            })
            await send({"type": "http.response.body", "body": b"data: 1\n\n", "more_body": True})
            await send({"type": "http.response.body", "body": b"data: 2\n\n", "more_body": False})

        async with client_for(wrap(app)) as client:
            response = await client.get("/events")
        assert response.content == b"data: 1\n\ndata: 2\n\n"


# ============================================================================
# Redirect stash without sessions
# ============================================================================


def login_then_home_app():
    redirect = make_app(b"", status=302, headers={"location": "/home"})
    page = make_app()

    async def app(scope, receive, send):
        target = redirect if scope["path"] == "/login" else page
        await target(scope, receive, send)

    return app


class TestRedirectStash:

    @pytest.mark.asyncio
    async def test_redirect_issues_stash_cookie(self):
        middleware = wrap(login_then_home_app())
        async with client_for(middleware) as client:
            first = await client.post("/login")
            key = first.cookies["debugbar_stash"]
            assert key in middleware.stash
            await client.get("/home")
        assert key not in middleware.stash

    @pytest.mark.asyncio
    async def test_clients_sharing_an_ip_do_not_share_stacks(self):
        middleware = wrap(login_then_home_app())
        async with client_for(middleware) as alice, client_for(middleware) as bob:
            await alice.post("/login")
            bob_page = await bob.get("/home")
            alice_page = await alice.get("/home")
        assert "debugbar-stacked" not in bob_page.text
        assert "debugbar-stacked" in alice_page.text

    @pytest.mark.asyncio
    async def test_forged_cookie_is_ignored(self):
        middleware = wrap(login_then_home_app())
        async with client_for(middleware) as client:
            first = await client.post("/login")
            key = first.cookies["debugbar_stash"]
        async with client_for(middleware) as other:
            page = await other.get("/home", headers={"cookie": "debugbar_stash=not-issued"})
        assert "debugbar-stacked" not in page.text
        assert key in middleware.stash

    @pytest.mark.asyncio
    async def test_html_pages_do_not_allocate_stash(self):
        middleware = wrap(make_app())
        async with client_for(middleware) as client:
            response = await client.get("/")
        assert "debugbar_stash" not in response.cookies
        assert len(middleware.stash) == 0

    @pytest.mark.asyncio
    async def test_app_cookies_are_kept(self):
        app = make_app(b"", status=302, headers={"location": "/home", "set-cookie": "app=1; Path=/"})
        async with client_for(wrap(app)) as client:
            response = await client.post("/login")
        assert response.cookies["app"] == "1"
        assert "debugbar_stash" in response.cookies


class TestRedirectStashBounds:

    def test_least_recently_used_is_evicted(self):
        stash = RedirectStash(max_entries=2)
        stash.put("a", {"k": 1})
        stash.put("b", {"k": 2})
        assert stash.get("a") == {"k": 1}
        stash.put("c", {"k": 3})
        assert "b" not in stash
        assert "a" in stash
        assert len(stash) == 2

    def test_expired_entry_reads_as_missing(self, monkeypatch):
        stash = RedirectStash(ttl=10)
        stash.put("a", {"k": 1})
        now = time.time()
        monkeypatch.setattr("debugbar.middleware.time.time", lambda: now + 11)
        assert stash.get("a") is None
        assert len(stash) == 0

    def test_bounds_from_config(self):
        middleware = wrap(make_app(), make_config(stash={"max_entries": 3, "ttl": 60, "cookie": "bar"}))
        assert middleware.stash.max_entries == 3
        assert middleware.stash.ttl == 60.0
        assert middleware.stash_cookie == "bar"


# ============================================================================
# Request scoping
# ============================================================================


class TestRequestScoping:

    @pytest.mark.asyncio
    async def test_request_id_header(self):
        app = make_app(b"{}", content_type="application/json")
        async with client_for(wrap(app)) as client:
            valid = await client.get("/", headers={**AJAX, "X-Request-ID": "trace-123"})
            invalid = await client.get("/", headers={**AJAX, "X-Request-ID": "bad id!"})
        assert decode_payload(join_headers(valid.headers))["__meta"]["id"] == "trace-123"
        assert decode_payload(join_headers(invalid.headers))["__meta"]["id"] != "bad id!"

    @pytest.mark.asyncio
    async def test_each_request_gets_its_own_debugbar(self):
        seen = []
        app = make_app(b"{}", content_type="application/json", before=lambda: seen.append(current_debugbar()))
        async with client_for(wrap(app)) as client:
            await client.get("/a", headers=AJAX)
            await client.get("/b", headers=AJAX)
        assert len(seen) == 2
        assert seen[0] is not seen[1]
        assert current_debugbar() is None

    @pytest.mark.asyncio
    async def test_app_exception_is_recorded_and_raised(self):
        captured = []

        def before():
            captured.append(current_debugbar())
            raise RuntimeError("handler failed")

        async with client_for(wrap(make_app(before=before))) as client:
            with pytest.raises(RuntimeError):
                await client.get("/")
        [error] = captured[0]["exceptions"].get_exceptions()
        assert str(error) == "handler failed"

    @pytest.mark.asyncio
    async def test_internal_path_goes_to_open_handler(self):
        app = AsyncMock()
        async with client_for(wrap(app)) as client:
            response = await client.get("/_debugbar/assets/javascript")
        assert response.status_code == 200
        app.assert_not_called()

    @pytest.mark.asyncio
    async def test_non_http_scope_passes_through(self):
        app = AsyncMock()
        middleware = wrap(app)
        scope = {"type": "lifespan"}
        receive, send = AsyncMock(), AsyncMock()
        await middleware(scope, receive, send)
        app.assert_awaited_once_with(scope, receive, send)

    @pytest.mark.asyncio
    async def test_logging_bridge(self):
        app = make_app(
            b"{}",
            content_type="application/json",
            before=lambda: logging.getLogger("tests.app").warning("disk low"),
        )
        root = logging.getLogger()
        try:
            async with client_for(wrap(app, bridge_logging=True)) as client:
                response = await client.get("/", headers=AJAX)
        finally:
            for handler in list(root.handlers):
                if isinstance(handler, LoggingBridge):
                    root.removeHandler(handler)
        messages = decode_payload(join_headers(response.headers))["messages"]["messages"]
        assert any("LOG.warning: disk low" in m["message"] for m in messages)
