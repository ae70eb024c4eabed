"""
Toolbar renderer - Jinja2 rendering of snapshots into HTML.

``render_head()`` emits the asset tags, ``render()`` the toolbar itself with
the snapshot embedded as JSON for the client script. Tabs are rendered on
the server from each collector's ``widgets()`` metadata.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from jinja2 import Environment, PackageLoader, select_autoescape

from .core import Snapshot

ASSETS_DIR = Path(__file__).parent / "resources" / "assets"

CSS_FILES = ["debugbar.css"]
JS_FILES = ["debugbar.js"]
VENDOR_CSS_FILES = ["vendor/normalize.css"]


def resolve_path(data: Any, path: Optional[str]) -> Any:
    """Follow a dotted path (``time.duration_str``) into nested mappings."""
    if not path:
        return None
    current = data
    for part in path.split("."):
        if isinstance(current, Mapping) and part in current:
            current = current[part]
        else:
            return None
    return current


class ToolbarRenderer:
    """
    Renders the toolbar markup and serves its static assets.

    Args:
        base_url: URL prefix the asset routes are mounted on
        include_vendors: Also link third-party stylesheets
        open_handler_url: Retrieval endpoint for stored snapshots; enables
            the history browser in the client script
    """

    def __init__(
        self,
        base_url: str = "/_debugbar",
        include_vendors: bool = True,
        open_handler_url: Optional[str] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.include_vendors = include_vendors
        self.open_handler_url = open_handler_url

        self.env = Environment(
            loader=PackageLoader("debugbar", "resources/templates"),
            autoescape=select_autoescape(
                enabled_extensions=["html", "htm", "xml"],
                default_for_string=True,
            ),
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self.env.filters["resolve"] = resolve_path

    def set_base_url(self, base_url: str) -> None:
        self.base_url = base_url.rstrip("/")

    def set_include_vendors(self, include: bool) -> None:
        self.include_vendors = include

    def set_open_handler_url(self, url: Optional[str]) -> None:
        self.open_handler_url = url

    # ========================================================================
    # Assets
    # ========================================================================

    def get_assets(self, kind: str) -> List[Path]:
        if kind == "css":
            files = (VENDOR_CSS_FILES if self.include_vendors else []) + CSS_FILES
        elif kind == "js":
            files = JS_FILES
        else:
            raise ValueError(f"Unknown asset type: {kind!r}")
        return [ASSETS_DIR / name for name in files]

    def _dump(self, kind: str) -> str:
        return "\n".join(path.read_text(encoding="utf-8") for path in self.get_assets(kind))

    def dump_css(self) -> str:
        return self._dump("css")

    def dump_js(self) -> str:
        return self._dump("js")

    # ========================================================================
    # Markup
    # ========================================================================

    def render_head(self) -> str:
        return self.env.get_template("head.html").render(
            css_url=f"{self.base_url}/assets/stylesheets",
            js_url=f"{self.base_url}/assets/javascript",
        )

    def build_tabs(self, data: Mapping[str, Any], widgets: Mapping[str, Mapping[str, Any]]) -> Dict[str, List[Dict[str, Any]]]:
        """Split widget metadata into panel tabs and status-bar indicators."""
        tabs: List[Dict[str, Any]] = []
        indicators: List[Dict[str, Any]] = []
        for key, spec in widgets.items():
            value = resolve_path(data, spec.get("map"))
            entry = {
                "id": key.replace(".", "-"),
                "title": spec.get("title", key),
                "icon": spec.get("icon"),
                "tooltip": spec.get("tooltip"),
                "widget": spec.get("widget", "variables"),
                "value": value,
                "badge": resolve_path(data, spec.get("badge")),
            }
            if spec.get("indicator"):
                indicators.append(entry)
            else:
                tabs.append(entry)
        return {"tabs": tabs, "indicators": indicators}

    def render(
        self,
        snapshot: Snapshot,
        stacked: Sequence[Snapshot] = (),
        widgets: Optional[Mapping[str, Mapping[str, Any]]] = None,
    ) -> str:
        data = snapshot.to_dict()
        layout = self.build_tabs(data, widgets or {})
        return self.env.get_template("toolbar.html").render(
            meta=data["__meta"],
            data=data,
            stacked=[s.to_dict() for s in stacked],
            tabs=layout["tabs"],
            indicators=layout["indicators"],
            open_handler_url=self.open_handler_url,
        )

    def render_history(self, metas: Iterable[Mapping[str, Any]]) -> str:
        """Standalone page listing stored snapshots."""
        return self.env.get_template("history.html").render(
            metas=list(metas),
            head=self.render_head(),
            open_handler_url=self.open_handler_url,
        )


__all__ = ["ToolbarRenderer", "resolve_path", "ASSETS_DIR"]
