"""
ASGI middleware - wraps a host application with a per-request debugbar.

Each HTTP request gets its own ``FrameworkHooks`` and ``Debugbar``; storage,
configuration and the renderer assets are shared. The wrapped app's
response is buffered so the output strategy can rewrite it before it is
sent. ``text/event-stream`` responses are streamed through untouched.
"""

from __future__ import annotations

import logging
import os
import re
import threading
import time
from collections import OrderedDict
from contextvars import ContextVar
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, MutableMapping, Optional, Tuple

from .config import ConfigLoader
from .hooks import FrameworkCapabilities, FrameworkHooks, HookKind, install_logging_bridge
from .lifecycle import Debugbar
from .open_handler import OpenHandler
from .request import Request
from .response import Response
from .storage import StorageAdapter, create_storage
from .transport import SessionHttpDriver

logger = logging.getLogger("debugbar.middleware")

ASGIApp = Callable[[Mapping[str, Any], Callable, Callable], Awaitable[None]]

_REQUEST_ID = re.compile(r"^[A-Za-z0-9_-]{1,128}$")

_current_debugbar: ContextVar[Optional[Debugbar]] = ContextVar("debugbar_current", default=None)


def current_debugbar() -> Optional[Debugbar]:
    """The controller of the request being handled, if any."""
    return _current_debugbar.get()


class RedirectStash:
    """
    Redirect stacks for clients without a session middleware.

    Buckets are keyed by a random token the middleware hands out in a cookie.
    Bounded LRU: the least recently used bucket is evicted at ``max_entries``
    and a bucket older than ``ttl`` seconds reads as missing.
    """

    def __init__(self, max_entries: int = 256, ttl: float = 300.0):
        self.max_entries = max_entries
        self.ttl = ttl
        self._entries: "OrderedDict[str, Tuple[float, Dict[str, Any]]]" = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            stored_at, data = entry
            if time.time() - stored_at > self.ttl:
                del self._entries[key]
                return None
            self._entries.move_to_end(key)
            return data

    def put(self, key: str, data: Dict[str, Any]) -> None:
        with self._lock:
            if key not in self._entries and len(self._entries) >= self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug("Evicted redirect stash %s", evicted)
            self._entries[key] = (time.time(), data)
            self._entries.move_to_end(key)

    def discard(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        return len(self._entries)


class _ResponseCapture:
    """Buffers ``http.response.*`` messages from the wrapped app."""

    def __init__(self, send: Callable[[dict], Awaitable[None]]):
        self._send = send
        self.status = 200
        self.headers: List[Tuple[bytes, bytes]] = []
        self.body = bytearray()
        self.started = False
        self.complete = False
        self.streaming = False

    async def __call__(self, message: dict) -> None:
        if self.streaming:
            await self._send(message)
            return

        kind = message["type"]
        if kind == "http.response.start":
            self.started = True
            self.status = message["status"]
            self.headers = list(message.get("headers", []))
            if self._is_event_stream(self.headers):
                self.streaming = True
                await self._send(message)
        elif kind == "http.response.body":
            self.body.extend(message.get("body", b""))
            if not message.get("more_body", False):
                self.complete = True
        else:
            await self._send(message)

    @staticmethod
    def _is_event_stream(headers: Iterable[Tuple[bytes, bytes]]) -> bool:
        for name, value in headers:
            if name.lower() == b"content-type" and value.lower().startswith(b"text/event-stream"):
                return True
        return False

    def to_response(self) -> Response:
        return Response.from_asgi(self.status, self.headers, bytes(self.body))


class DebugbarMiddleware:
    """
    Wraps an ASGI application with the debugbar.

    Args:
        app: The host ASGI application
        config: Resolved configuration (``ConfigLoader.load()`` when omitted)
        capabilities: Static host facts for the framework collector and the
            application measure
        supported_hooks: Hook kinds the host can fire (all when omitted)
        bridge_logging: Route stdlib ``logging`` records to the request's
            ``LOG`` hook
        storage: Snapshot storage shared by every request; built from the
            ``storage.*`` config when omitted
    """

    def __init__(
        self,
        app: ASGIApp,
        config: Optional[ConfigLoader] = None,
        *,
        capabilities: Optional[FrameworkCapabilities] = None,
        supported_hooks: Optional[Iterable[HookKind]] = None,
        bridge_logging: bool = True,
        storage: Optional[StorageAdapter] = None,
        trust_proxy: bool = False,
    ):
        self.app = app
        self.config = config if config is not None else ConfigLoader.load()
        self.capabilities = capabilities or FrameworkCapabilities()
        self.supported_hooks = supported_hooks
        self.trust_proxy = trust_proxy
        self.route_prefix = str(self.config.get("route_prefix", "_debugbar")).strip("/")
        self.storage = storage if storage is not None else create_storage(self.config)
        self.open_handler = OpenHandler(self.storage, route_prefix=self.route_prefix)

        # Redirect stash for clients without a session middleware.
        self.stash_cookie = str(self.config.get("stash.cookie", "debugbar_stash"))
        self.stash = RedirectStash(
            max_entries=int(self.config.get("stash.max_entries", 256)),
            ttl=float(self.config.get("stash.ttl", 300)),
        )

        if bridge_logging:
            install_logging_bridge()

    def _is_internal(self, path: str) -> bool:
        segments = [s for s in path.split("/") if s]
        return bool(segments) and segments[0] == self.route_prefix

    def _request_id(self, request: Request) -> Optional[str]:
        value = request.header("x-request-id")
        if value and _REQUEST_ID.match(value):
            return value
        return None

    def _session_for(self, request: Request) -> MutableMapping[str, Any]:
        session = request.session
        if session is not None:
            return session

        key = request.cookies.get(self.stash_cookie)
        data = self.stash.get(key) if key and _REQUEST_ID.match(key) else None
        if data is None:
            key, data = None, {}
        request.state["debugbar_stash"] = (key, data)
        return data

    def _save_stash(self, request: Request, response: Response) -> None:
        """Keep a non-empty stash for the client's next request; drop a drained one."""
        entry = request.state.get("debugbar_stash")
        if entry is None:
            return
        key, data = entry
        if not data:
            if key is not None:
                self.stash.discard(key)
            return
        if key is None:
            key = os.urandom(16).hex()
            cookie = f"{self.stash_cookie}={key}; Path=/; Max-Age={int(self.stash.ttl)}; HttpOnly; SameSite=Lax"
            existing = response.headers.get("set-cookie")
            if existing is None:
                response.headers["set-cookie"] = cookie
            elif isinstance(existing, list):
                existing.append(cookie)
            else:
                response.headers["set-cookie"] = [existing, cookie]
        self.stash.put(key, data)

    def create_debugbar(self, request: Request) -> Debugbar:
        hooks = FrameworkHooks(self.supported_hooks, self.capabilities)
        debugbar = Debugbar(
            self.config,
            hooks,
            storage=self.storage,
            request_id=self._request_id(request),
        )
        debugbar.set_http_driver(SessionHttpDriver(self._session_for(request)))
        return debugbar

    async def __call__(self, scope: Mapping[str, Any], receive: Callable, send: Callable[[dict], Awaitable[None]]) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        if self._is_internal(scope.get("path", "/")):
            await self.open_handler(scope, receive, send)
            return

        request = Request(scope, receive, trust_proxy=self.trust_proxy)
        debugbar = self.create_debugbar(request)
        if debugbar.is_enabled():
            debugbar.boot()
        request.state["debugbar"] = debugbar

        token = _current_debugbar.set(debugbar)
        try:
            with debugbar.hooks.activated() as hooks:
                capture = _ResponseCapture(send)
                hooks.mark_booted()
                hooks.emit(HookKind.BEFORE, request)
                try:
                    await self.app(scope, receive, capture)
                except Exception as exc:
                    if hooks.supports(HookKind.EXCEPTION):
                        hooks.emit(HookKind.EXCEPTION, exc)
                    raise

                if capture.streaming:
                    return

                response = capture.to_response()
                hooks.emit(HookKind.AFTER, request, response)
                response = debugbar.modify_response(request, response)
                self._save_stash(request, response)
        finally:
            _current_debugbar.reset(token)

        await response(scope, receive, send)


__all__ = ["DebugbarMiddleware", "RedirectStash", "current_debugbar"]
