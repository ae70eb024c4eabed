"""
Auth collector - the identity attached to the request.

Looks for ``request.state['identity']`` (or ``'user'``) as set by an
authentication middleware. Identity objects may be mappings or objects
exposing ``id`` / ``name`` / ``roles`` attributes.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from .base import DataCollector, RequestAware, export_value


def _field(identity: Any, key: str, default: Any = None) -> Any:
    if isinstance(identity, dict):
        return identity.get(key, default)
    return getattr(identity, key, default)


class AuthCollector(RequestAware, DataCollector):

    name = "auth"

    def __init__(self, show_name: bool = False):
        self.show_name = show_name

    def set_show_name(self, show_name: bool) -> None:
        self.show_name = show_name

    def _identity(self) -> Optional[Any]:
        if self.request is None:
            return None
        state = self.request.state
        return state.get("identity") or state.get("user")

    def get_user_information(self, identity: Optional[Any]) -> Dict[str, Any]:
        if identity is None:
            return {"name": "Guest", "user": {"guest": True}}

        identifier = _field(identity, "id")
        name = _field(identity, "name") or _field(identity, "email") or _field(identity, "username")
        if not name:
            name = f"User #{identifier}" if identifier is not None else "User"

        if isinstance(identity, dict):
            attributes = identity
        elif hasattr(identity, "__dict__"):
            attributes = {k: v for k, v in vars(identity).items() if not k.startswith("_")}
        else:
            attributes = {"id": identifier}

        return {
            "name": name,
            "user": export_value(attributes),
        }

    def collect(self) -> Dict[str, Any]:
        return self.get_user_information(self._identity())

    def widgets(self) -> Dict[str, Dict[str, Any]]:
        widgets: Dict[str, Dict[str, Any]] = {
            "auth": {
                "title": "Auth",
                "icon": "lock",
                "widget": "variables",
                "map": "auth.user",
            },
        }
        if self.show_name:
            widgets["auth.name"] = {
                "title": "Auth",
                "icon": "user",
                "tooltip": "Auth status",
                "map": "auth.name",
                "indicator": True,
            }
        return widgets
