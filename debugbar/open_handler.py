"""
Open handler - the internal endpoint serving stored snapshots and assets.

Routes (under ``/<route_prefix>``)::

    GET /                     history page
    GET /open?op=find         stored ``__meta`` blocks, newest first
    GET /open?op=get&id=ID    one stored snapshot
    GET /open?op=clear        drop every stored snapshot
    GET /assets/stylesheets   toolbar CSS
    GET /assets/javascript    toolbar JS
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

from .faults import OpenHandlerFault, SnapshotNotFound, StorageFault
from .renderer import ToolbarRenderer
from .request import Request
from .response import Response
from .storage import StorageAdapter

logger = logging.getLogger("debugbar.open_handler")

FILTER_FIELDS = ("utime", "datetime", "ip", "uri", "method")


class OpenHandler:
    """ASGI application for the ``/<route_prefix>`` endpoint."""

    def __init__(
        self,
        storage: Optional[StorageAdapter],
        renderer: Optional[ToolbarRenderer] = None,
        route_prefix: str = "_debugbar",
    ):
        self.storage = storage
        self.route_prefix = route_prefix.strip("/")
        self.renderer = renderer or ToolbarRenderer(base_url=f"/{self.route_prefix}")
        if storage is not None and self.renderer.open_handler_url is None:
            self.renderer.set_open_handler_url(f"/{self.route_prefix}/open")

    async def __call__(self, scope: Mapping[str, Any], receive: Callable, send: Callable[[dict], Awaitable[None]]) -> None:
        request = Request(scope, receive)
        response = self.dispatch(request)
        await response(scope, receive, send)

    def dispatch(self, request: Request) -> Response:
        path = request.path
        prefix = f"/{self.route_prefix}"
        if path.startswith(prefix):
            path = path[len(prefix):]
        path = "/" + path.strip("/")

        if request.method not in ("GET", "HEAD"):
            return Response.json({"error": "Method not allowed"}, status=405, headers={"allow": "GET, HEAD"})

        try:
            if path == "/open":
                return self.handle(request)
            if path == "/assets/stylesheets":
                return Response(self.renderer.dump_css(), media_type="text/css; charset=utf-8")
            if path == "/assets/javascript":
                return Response(self.renderer.dump_js(), media_type="application/javascript; charset=utf-8")
            if path == "/":
                return Response.html(self.renderer.render_history(self._storage().find(max=50)))
        except OpenHandlerFault as fault:
            logger.debug("Open handler rejected %s: %s", request.uri, fault)
            return Response.json({"error": fault.message, "code": fault.code}, status=fault.status)
        except SnapshotNotFound as fault:
            return Response.json({"error": fault.message, "code": fault.code}, status=404)
        except StorageFault as fault:
            logger.warning("Open handler storage failure: %s", fault)
            return Response.json({"error": fault.message, "code": fault.code}, status=400)

        return Response.json({"error": "Not found"}, status=404)

    def _storage(self) -> StorageAdapter:
        if self.storage is None:
            raise OpenHandlerFault("STORAGE_DISABLED", "Snapshot storage is not enabled", status=404)
        return self.storage

    def handle(self, request: Request) -> Response:
        op = request.query_param("op", "find")
        if op == "find":
            return Response.json(self.find(request))
        if op == "get":
            return Response.json(self.get(request))
        if op == "clear":
            return Response.json(self.clear(request))
        raise OpenHandlerFault("OP_INVALID", f"Invalid operation '{op}'", status=400)

    def find(self, request: Request) -> list:
        max_results = self._int_param(request, "max", 20)
        offset = self._int_param(request, "offset", 0)
        filters: Dict[str, str] = {}
        for field in FILTER_FIELDS:
            value = request.query_param(field)
            if value:
                filters[field] = value
        return self._storage().find(filters, max_results, offset)

    def get(self, request: Request) -> Dict[str, Any]:
        request_id = request.query_param("id")
        if not request_id:
            raise OpenHandlerFault("ID_MISSING", "Missing 'id' parameter", status=400)
        return self._storage().get(request_id)

    def clear(self, request: Request) -> Dict[str, Any]:
        self._storage().clear()
        logger.info("Snapshot storage cleared")
        return {"success": True}

    @staticmethod
    def _int_param(request: Request, name: str, default: int) -> int:
        value = request.query_param(name)
        if value is None or value == "":
            return default
        try:
            return max(0, int(value))
        except ValueError:
            raise OpenHandlerFault("PARAM_INVALID", f"'{name}' must be an integer", status=400) from None


__all__ = ["OpenHandler", "FILTER_FIELDS"]
