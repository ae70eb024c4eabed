"""
Route collector - the route that matched the current request.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from ..hooks import RouteEvent
from .base import DataCollector, export_value


class RouteCollector(DataCollector):

    name = "route"

    def __init__(self):
        self._route: Optional[RouteEvent] = None

    def set_route(self, route: RouteEvent) -> None:
        self._route = route

    def collect(self) -> Dict[str, Any]:
        route = self._route
        if route is None:
            return {"uri": "-", "matched": False}

        methods = "|".join(route.methods) if route.methods else "ANY"
        data: Dict[str, Any] = {
            "uri": f"{methods} {route.path}",
            "matched": True,
        }
        if route.name:
            data["as"] = route.name
        if route.handler:
            data["uses"] = route.handler
        if route.middleware:
            data["middleware"] = ", ".join(route.middleware)
        if route.params:
            data["params"] = export_value(dict(route.params))
        return data

    def widgets(self) -> Dict[str, Dict[str, Any]]:
        return {
            "route": {
                "title": "Route",
                "icon": "share",
                "widget": "variables",
                "map": "route",
            },
            "currentroute": {
                "title": "Route",
                "icon": "share",
                "tooltip": "Route",
                "map": "route.uri",
                "indicator": True,
            },
        }
