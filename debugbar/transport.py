"""
HTTP transport - header encoding and the redirect stash.

Header payloads are JSON, base64-encoded, then split into chunks of at most
``max_length`` characters::

    x-debugbar:    <chunk 1>
    x-debugbar-2:  <chunk 2>
    ...

The ``HttpDriver`` gives the core access to response headers and a
session-like mapping without depending on a specific framework.
"""

from __future__ import annotations

import base64
import json
from abc import ABC, abstractmethod
from typing import Any, Dict, MutableMapping, Optional

from .response import Response


def encode_payload(data: Any) -> str:
    """JSON-encode and base64 the snapshot document."""
    raw = json.dumps(data, default=str, separators=(",", ":"))
    return base64.b64encode(raw.encode("utf-8")).decode("ascii")


def decode_payload(encoded: str) -> Any:
    return json.loads(base64.b64decode(encoded).decode("utf-8"))


def chunk_headers(encoded: str, header_name: str = "x-debugbar", max_length: int = 4096) -> Dict[str, str]:
    """Split ``encoded`` over ``header_name``, ``header_name-2``, ..."""
    if max_length <= 0:
        raise ValueError("max_length must be positive")
    headers: Dict[str, str] = {}
    chunks = [encoded[i:i + max_length] for i in range(0, len(encoded), max_length)] or [""]
    for index, chunk in enumerate(chunks):
        name = header_name if index == 0 else f"{header_name}-{index + 1}"
        headers[name] = chunk
    return headers


def join_headers(headers: MutableMapping[str, Any], header_name: str = "x-debugbar") -> Optional[str]:
    """Reassemble chunks written by ``chunk_headers``; ``None`` if absent."""
    lowered = {str(k).lower(): v for k, v in headers.items()}
    first = lowered.get(header_name)
    if first is None:
        return None
    parts = [first]
    index = 2
    while f"{header_name}-{index}" in lowered:
        parts.append(lowered[f"{header_name}-{index}"])
        index += 1
    return "".join(parts)


class HttpDriver(ABC):
    """Response header and session access used by the core."""

    @abstractmethod
    def set_headers(self, headers: Dict[str, str]) -> None:
        ...

    @abstractmethod
    def is_session_started(self) -> bool:
        ...

    @abstractmethod
    def set_session_value(self, name: str, value: Any) -> None:
        ...

    @abstractmethod
    def has_session_value(self, name: str) -> bool:
        ...

    @abstractmethod
    def get_session_value(self, name: str) -> Any:
        ...

    @abstractmethod
    def delete_session_value(self, name: str) -> None:
        ...


class SessionHttpDriver(HttpDriver):
    """
    Driver over a mutable session mapping and (optionally) a response.

    Headers set before a response is bound are kept in ``pending_headers``
    and applied by ``bind_response``.
    """

    def __init__(
        self,
        session: Optional[MutableMapping[str, Any]] = None,
        response: Optional[Response] = None,
    ):
        self.session = session
        self.response = response
        self.pending_headers: Dict[str, str] = {}

    def bind_response(self, response: Response) -> None:
        self.response = response
        for name, value in self.pending_headers.items():
            response.set_header(name, value)
        self.pending_headers.clear()

    def set_headers(self, headers: Dict[str, str]) -> None:
        if self.response is None:
            self.pending_headers.update(headers)
            return
        for name, value in headers.items():
            self.response.set_header(name, value)

    def is_session_started(self) -> bool:
        return self.session is not None

    def set_session_value(self, name: str, value: Any) -> None:
        if self.session is not None:
            self.session[name] = value

    def has_session_value(self, name: str) -> bool:
        return self.session is not None and name in self.session

    def get_session_value(self, name: str) -> Any:
        if self.session is None:
            return None
        return self.session.get(name)

    def delete_session_value(self, name: str) -> None:
        if self.session is not None:
            self.session.pop(name, None)


__all__ = [
    "encode_payload",
    "decode_payload",
    "chunk_headers",
    "join_headers",
    "HttpDriver",
    "SessionHttpDriver",
]
