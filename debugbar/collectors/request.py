"""
Request collectors.

- ``RequestCollector``: request, response and session details (the default
  ``request`` panel, registered at response time).
- ``RequestDataCollector``: raw query, cookies and server variables.

Both report under the ``request`` key; only one is registered per request.
"""

from __future__ import annotations

import os
from typing import Any, Dict

from ..request import header_value
from .base import DataCollector, RequestAware, export_value

_HIDDEN_HEADERS = {"authorization", "cookie", "proxy-authorization"}


def _mask_headers(headers: Dict[str, Any]) -> Dict[str, Any]:
    return {k: ("******" if k.lower() in _HIDDEN_HEADERS else v) for k, v in headers.items()}


class RequestCollector(RequestAware, DataCollector):

    name = "request"

    def __init__(self, request=None, response=None):
        self.bind(request, response)

    def collect(self) -> Dict[str, Any]:
        request = self.request
        response = self.response
        data: Dict[str, Any] = {}

        if request is not None:
            data.update({
                "path_info": request.path,
                "method": request.method,
                "format": request.format(),
                "query": export_value(request.query_params),
                "request_headers": _mask_headers(
                    {k: ", ".join(v) for k, v in request.headers.to_dict().items()}
                ),
                "request_cookies": export_value(dict(request.cookies)),
                "client_ip": request.client_ip(),
                "request_state": export_value({k: v for k, v in request.state.items() if k != "debugbar"}),
            })
            session = request.session
            if session is not None:
                data["session_attributes"] = export_value(dict(session))

        if response is not None:
            data.update({
                "status_code": response.status,
                "content_type": response.content_type or "text/html",
                "response_headers": _mask_headers(
                    {k: header_value(v) for k, v in response.headers.items()}
                ),
            })

        return data

    def widgets(self) -> Dict[str, Dict[str, Any]]:
        return {
            "request": {
                "title": "Request",
                "icon": "tags",
                "widget": "variables",
                "map": "request",
            },
        }


class RequestDataCollector(RequestAware, DataCollector):

    name = "request"

    def collect(self) -> Dict[str, Any]:
        request = self.request
        data: Dict[str, Any] = {}
        if request is not None:
            data["query"] = export_value(request.query_params)
            data["cookies"] = export_value(dict(request.cookies))
            data["server"] = {
                "method": request.method,
                "path": request.path,
                "query_string": request.query_string,
                "scheme": request.scheme,
                "client": export_value(request.client),
                "server": export_value(request.scope.get("server")),
                "http_version": request.scope.get("http_version", "1.1"),
                "pid": os.getpid(),
            }
            session = request.session
            if session is not None:
                data["session"] = export_value(dict(session))
        return data

    def widgets(self) -> Dict[str, Dict[str, Any]]:
        return {
            "request": {
                "title": "Request",
                "icon": "tags",
                "widget": "variables",
                "map": "request",
            },
        }
