"""
Response - Buffered HTTP response the output pipeline can inspect and rewrite.

Provides:
- Body access as bytes or decoded text (charset aware)
- Case-insensitive, multi-value header dict
- Redirect / content-type helpers used by the delivery-mode decision
- ASGI 3 sending
"""

from __future__ import annotations

import codecs
import json
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from ._datastructures import ParsedContentType


def _json_default_serializer(o):
    """Default JSON serializer for non-standard types."""
    if isinstance(o, (set, tuple)):
        return list(o)
    if hasattr(o, "isoformat"):
        return o.isoformat()
    return str(o)


class Response:
    """
    Fully buffered HTTP response.

    Headers are stored lower-cased; multi-value headers (``set-cookie``)
    are kept as lists.
    """

    def __init__(
        self,
        content: Union[bytes, str] = b"",
        status: int = 200,
        headers: Optional[Mapping[str, Union[str, Sequence[str]]]] = None,
        media_type: Optional[str] = None,
        *,
        encoding: str = "utf-8",
    ):
        self.status = status
        self.encoding = encoding

        self._headers: Dict[str, Union[str, List[str]]] = {}
        if headers:
            for key, value in headers.items():
                if isinstance(value, (list, tuple)):
                    self._headers[key.lower()] = list(value)
                else:
                    self._headers[key.lower()] = value

        if media_type:
            self._headers["content-type"] = media_type

        self._body = self._encode_body(content)

    @classmethod
    def from_asgi(
        cls,
        status: int,
        raw_headers: Iterable[Tuple[bytes, bytes]],
        body: bytes,
    ) -> "Response":
        """Rebuild a response from captured ASGI messages."""
        headers: Dict[str, Union[str, List[str]]] = {}
        for name, value in raw_headers:
            key = name.decode("latin-1").lower()
            text = value.decode("latin-1")
            if key in headers:
                existing = headers[key]
                if isinstance(existing, list):
                    existing.append(text)
                else:
                    headers[key] = [existing, text]
            else:
                headers[key] = text
        return cls(content=body, status=status, headers=headers)

    # ========================================================================
    # Factory Methods
    # ========================================================================

    @classmethod
    def json(cls, obj: Any, status: int = 200, *, headers: Optional[Mapping[str, str]] = None) -> "Response":
        content = json.dumps(obj, default=_json_default_serializer)
        return cls(
            content=content,
            status=status,
            headers=headers,
            media_type="application/json; charset=utf-8",
        )

    @classmethod
    def html(cls, content: str, status: int = 200, **kwargs) -> "Response":
        return cls(content=content, status=status, media_type="text/html; charset=utf-8", **kwargs)

    @classmethod
    def text(cls, content: str, status: int = 200, **kwargs) -> "Response":
        return cls(content=content, status=status, media_type="text/plain; charset=utf-8", **kwargs)

    @classmethod
    def redirect(cls, url: str, status: int = 307, *, headers: Optional[Dict[str, str]] = None) -> "Response":
        redirect_headers = {"location": url}
        if headers:
            redirect_headers.update(headers)
        return cls(content=b"", status=status, headers=redirect_headers)

    # ========================================================================
    # Inspection
    # ========================================================================

    @property
    def headers(self) -> Dict[str, Union[str, List[str]]]:
        return self._headers

    @property
    def body(self) -> bytes:
        return self._body

    @body.setter
    def body(self, content: Union[bytes, str]) -> None:
        self._body = self._encode_body(content)
        # Stale once the body changes; recomputed when sent.
        self._headers.pop("content-length", None)

    @property
    def content_type(self) -> Optional[str]:
        value = self._headers.get("content-type")
        if isinstance(value, list):
            return value[0] if value else None
        return value

    @property
    def charset(self) -> str:
        parsed = ParsedContentType.parse(self.content_type)
        return parsed.charset if parsed else self.encoding

    @property
    def codec(self) -> str:
        """Python codec for ``charset``; an unknown label falls back to ``encoding``."""
        try:
            return codecs.lookup(self.charset).name
        except LookupError:
            return codecs.lookup(self.encoding).name

    @property
    def body_text(self) -> str:
        """Body decoded with the response codec; undecodable bytes survive a round trip."""
        return self._body.decode(self.codec, errors="surrogateescape")

    def set_body_text(self, content: str) -> None:
        self.body = content.encode(self.codec, errors="surrogateescape")

    def is_redirect(self) -> bool:
        return 300 <= self.status < 400

    def is_html(self) -> bool:
        parsed = ParsedContentType.parse(self.content_type)
        return parsed is not None and parsed.is_html

    def set_header(self, name: str, value: str) -> None:
        self._headers[name.lower()] = value

    # ========================================================================
    # ASGI
    # ========================================================================

    async def __call__(self, scope: Mapping[str, Any], receive: Callable, send: Callable[[dict], Awaitable[None]]) -> None:
        await send({
            "type": "http.response.start",
            "status": self.status,
            "headers": self._prepare_headers(),
        })
        body = b"" if scope.get("method") == "HEAD" else self._body
        await send({
            "type": "http.response.body",
            "body": body,
            "more_body": False,
        })

    def _prepare_headers(self) -> List[tuple]:
        """Prepare headers for ASGI (convert to list of byte tuples)."""
        headers_list = []
        _append = headers_list.append

        for name, value in self._headers.items():
            if name == "content-length":
                continue
            name_bytes = name.encode("latin1")
            if isinstance(value, list):
                for v in value:
                    _append((name_bytes, v.encode("latin1")))
            else:
                _append((name_bytes, value.encode("latin1")))

        _append((b"content-length", str(len(self._body)).encode("latin1")))
        return headers_list

    def _encode_body(self, content: Union[bytes, str]) -> bytes:
        if isinstance(content, bytes):
            return content
        if isinstance(content, str):
            return content.encode(self.encoding)
        return str(content).encode(self.encoding)

    def __repr__(self) -> str:
        return f"<Response {self.status} {self.content_type or '-'} {len(self._body)} bytes>"
