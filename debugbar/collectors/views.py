"""
Views collector - templates rendered during the request.
"""

from __future__ import annotations

from typing import Any, Dict, List

from ..hooks import ViewEvent
from .base import DataCollector, export_value


class ViewCollector(DataCollector):

    name = "views"

    def __init__(self, collect_data: bool = True):
        self.collect_data = collect_data
        self._templates: List[Dict[str, Any]] = []

    def add_view(self, view: ViewEvent) -> None:
        if self.collect_data:
            params = {key: export_value(value) for key, value in view.data.items()}
        else:
            params = sorted(view.data.keys())

        name = view.name
        if view.path:
            name = f"{view.name} ({view.path})"

        self._templates.append({
            "name": name,
            "param_count": len(view.data),
            "params": params,
            "type": view.path.rsplit(".", 1)[-1] if view.path and "." in view.path else "template",
        })

    def collect(self) -> Dict[str, Any]:
        return {
            "nb_templates": len(self._templates),
            "templates": list(self._templates),
        }

    def widgets(self) -> Dict[str, Dict[str, Any]]:
        return {
            "views": {
                "title": "Views",
                "icon": "leaf",
                "widget": "templates",
                "map": "views.templates",
                "badge": "views.nb_templates",
            },
        }
