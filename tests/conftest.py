"""
Shared test fixtures and helpers for the debugbar test suite.
"""

from typing import Any, Dict, List, Optional

import pytest

from debugbar.config import ConfigLoader
from debugbar.hooks import FrameworkHooks
from debugbar.lifecycle import Debugbar
from debugbar.request import Request
from debugbar.storage import MemoryStorage


# ============================================================================
# Request Helpers
# ============================================================================


def make_scope(
    method: str = "GET",
    path: str = "/",
    query_string: str = "",
    headers: Optional[List[tuple]] = None,
    scheme: str = "http",
    client: Optional[tuple] = None,
    session: Optional[Dict[str, Any]] = None,
) -> dict:
    """Build a minimal ASGI HTTP scope."""
    raw_headers = []
    if headers:
        for name, value in headers:
            raw_headers.append(
                (name.encode("latin-1") if isinstance(name, str) else name,
                 value.encode("latin-1") if isinstance(value, str) else value)
            )
    scope = {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": method,
        "path": path,
        "raw_path": path.encode("utf-8"),
        "query_string": query_string.encode("utf-8") if isinstance(query_string, str) else query_string,
        "headers": raw_headers,
        "scheme": scheme,
        "server": ("127.0.0.1", 8000),
        "client": client or ("127.0.0.1", 12345),
        "root_path": "",
    }
    if session is not None:
        scope["session"] = session
    return scope


def make_receive(body: bytes = b""):
    """Create an ASGI receive callable returning ``body`` once."""
    sent = False

    async def receive():
        nonlocal sent
        if not sent:
            sent = True
            return {"type": "http.request", "body": body, "more_body": False}
        return {"type": "http.disconnect"}

    return receive


def make_request(
    method: str = "GET",
    path: str = "/",
    query_string: str = "",
    headers: Optional[List[tuple]] = None,
    **kwargs,
) -> Request:
    """Build a Request object for testing."""
    scope = make_scope(method=method, path=path, query_string=query_string, headers=headers, **kwargs)
    return Request(scope, make_receive())


AJAX_HEADERS = [("x-requested-with", "XMLHttpRequest")]


def make_config(**overrides) -> ConfigLoader:
    """Defaults plus ``enabled`` and the given overrides."""
    data: Dict[str, Any] = {"enabled": True}
    data.update(overrides)
    return ConfigLoader.from_dict(data)


def make_debugbar(
    config: Optional[ConfigLoader] = None,
    hooks: Optional[FrameworkHooks] = None,
    *,
    boot: bool = True,
    **kwargs,
) -> Debugbar:
    debugbar = Debugbar(config or make_config(), hooks or FrameworkHooks(), **kwargs)
    if boot:
        debugbar.boot()
    return debugbar


class ResponseCapture:
    """Captures what gets sent through ASGI ``send``."""

    def __init__(self):
        self.messages: list = []
        self.status: Optional[int] = None
        self.headers: Dict[str, str] = {}
        self.body = b""

    async def __call__(self, message: dict):
        self.messages.append(message)
        if message["type"] == "http.response.start":
            self.status = message["status"]
            for name, value in message.get("headers", []):
                self.headers[name.decode("latin-1").lower()] = value.decode("latin-1")
        elif message["type"] == "http.response.body":
            self.body += message.get("body", b"")


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def config():
    return make_config()


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def debugbar(config):
    return make_debugbar(config)
