"""
Request - Read-only ASGI request view used by collectors and the output pipeline.

The debugbar never consumes the request body; the wrapped application keeps
the original ``receive`` callable.
"""

from __future__ import annotations

import re
from http.cookies import SimpleCookie
from typing import Any, Dict, List, Mapping, MutableMapping, Optional, Union
from urllib.parse import parse_qs

from ._datastructures import Headers


class Request:
    """
    Lightweight request object over an ASGI HTTP scope.

    Features:
    - Case-insensitive headers and parsed cookies
    - Query parameter parsing
    - Client IP detection with proxy trust
    - AJAX and response-format detection
    """

    def __init__(
        self,
        scope: Mapping[str, Any],
        receive: Optional[Any] = None,
        *,
        trust_proxy: bool = False,
    ):
        self.scope = scope
        self._receive = receive
        self.trust_proxy = trust_proxy

        self.state: Dict[str, Any] = {}

        self._headers: Optional[Headers] = None
        self._cookies: Optional[Dict[str, str]] = None
        self._query_params: Optional[Dict[str, List[str]]] = None

    # ========================================================================
    # Basic Properties
    # ========================================================================

    @property
    def method(self) -> str:
        """HTTP method (GET, POST, etc.)."""
        return self.scope.get("method", "GET")

    @property
    def path(self) -> str:
        """Request path (decoded)."""
        return self.scope.get("path", "/")

    @property
    def query_string(self) -> str:
        return self.scope.get("query_string", b"").decode("latin-1")

    @property
    def client(self) -> Optional[tuple]:
        """Client address (host, port)."""
        return self.scope.get("client")

    @property
    def scheme(self) -> str:
        return self.scope.get("scheme", "http")

    @property
    def uri(self) -> str:
        """Path plus query string, as the client requested it."""
        qs = self.query_string
        return f"{self.path}?{qs}" if qs else self.path

    @property
    def url(self) -> str:
        host = self.header("host")
        if not host:
            server = self.scope.get("server")
            host = f"{server[0]}:{server[1]}" if server else "localhost"
        return f"{self.scheme}://{host}{self.uri}"

    @property
    def session(self) -> Optional[MutableMapping[str, Any]]:
        """Session mapping placed in the scope by a session middleware, if any."""
        session = self.scope.get("session")
        if isinstance(session, MutableMapping):
            return session
        return None

    def segment(self, index: int, default: Optional[str] = None) -> Optional[str]:
        """1-based path segment, like ``/_debugbar/open`` -> segment(1) == '_debugbar'."""
        segments = [s for s in self.path.split("/") if s]
        if 1 <= index <= len(segments):
            return segments[index - 1]
        return default

    # ========================================================================
    # Query Parameters
    # ========================================================================

    @property
    def query_params(self) -> Dict[str, List[str]]:
        if self._query_params is None:
            self._query_params = parse_qs(self.query_string, keep_blank_values=True)
        return self._query_params

    def query_param(self, name: str, default: Optional[str] = None) -> Optional[str]:
        values = self.query_params.get(name)
        return values[0] if values else default

    # ========================================================================
    # Headers & Cookies
    # ========================================================================

    @property
    def headers(self) -> Headers:
        if self._headers is None:
            self._headers = Headers(raw=list(self.scope.get("headers", [])))
        return self._headers

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Get single header (case-insensitive)."""
        return self.headers.get(name, default)

    @property
    def cookies(self) -> Mapping[str, str]:
        if self._cookies is None:
            cookie = SimpleCookie()
            for raw in self.headers.get_all("cookie"):
                try:
                    cookie.load(raw)
                except Exception:
                    continue
            self._cookies = {key: morsel.value for key, morsel in cookie.items()}
        return self._cookies

    # ========================================================================
    # Client IP (with proxy support)
    # ========================================================================

    def client_ip(self) -> str:
        """
        Get client IP address.

        Respects trust_proxy configuration to parse forwarded headers.
        """
        if self.trust_proxy:
            forwarded_for = self.header("x-forwarded-for")
            if forwarded_for:
                ips = [ip.strip() for ip in forwarded_for.split(",")]
                if ips and ips[0]:
                    return ips[0]

            forwarded = self.header("forwarded")
            if forwarded:
                match = re.search(r'for=([^;,]+)', forwarded)
                if match:
                    ip_part = match.group(1).strip('"')
                    if ip_part.startswith("["):
                        return ip_part[1:].split("]", 1)[0]
                    if ip_part.count(":") == 1:
                        ip_part = ip_part.rsplit(":", 1)[0]
                    return ip_part

        client = self.client
        return client[0] if client else "0.0.0.0"

    # ========================================================================
    # Content Negotiation
    # ========================================================================

    def is_ajax(self) -> bool:
        """True for XMLHttpRequest-style background fetches."""
        return (self.header("x-requested-with") or "").lower() == "xmlhttprequest"

    def accepts(self, *media_types: str) -> bool:
        accept = (self.header("accept") or "*/*").lower()
        for media_type in media_types:
            if media_type.lower() in accept or "*/*" in accept:
                return True
        return False

    def format(self, default: str = "html") -> str:
        """
        Negotiated response format.

        An explicit ``state['format']`` wins; otherwise the first listed
        ``Accept`` media type decides, and a missing or wildcard header
        yields ``default``.
        """
        explicit = self.state.get("format")
        if explicit:
            return explicit

        accept = self.header("accept")
        if not accept:
            return default

        first = accept.split(",")[0].split(";")[0].strip().lower()
        if not first or first == "*/*":
            return default
        if first in ("text/html", "application/xhtml+xml"):
            return "html"
        if "/" in first:
            subtype = first.split("/", 1)[1]
            return subtype.split("+")[-1]
        return first

    def __repr__(self) -> str:
        return f"<Request {self.method} {self.uri}>"


def header_value(value: Union[str, List[str]]) -> str:
    """Flatten a possibly multi-valued header for display."""
    if isinstance(value, list):
        return ", ".join(value)
    return value
