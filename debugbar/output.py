"""
Output strategy - decides how a finished request's snapshot is delivered.

Decision order (first match wins):

1. Console, disabled, or a request to the internal endpoint: passthrough
2. Redirect response: stash the snapshot for the next rendered page
3. AJAX request with ``capture_ajax``: snapshot in response headers
4. Non-HTML response or negotiated format: passthrough
5. ``inject`` enabled: toolbar spliced into the HTML body
"""

from __future__ import annotations

import logging
import re
from enum import Enum
from typing import TYPE_CHECKING

from .config import as_bool
from .request import Request
from .response import Response

if TYPE_CHECKING:
    from .lifecycle import Debugbar

logger = logging.getLogger("debugbar.output")

_BODY_CLOSE = re.compile(r"</body>", re.IGNORECASE)


class DeliveryMode(str, Enum):
    PASSTHROUGH = "passthrough"
    REDIRECTED = "redirected"
    AJAX = "ajax"
    HTML_INJECTED = "html_injected"


def inject_markup(content: str, markup: str) -> str:
    """Insert ``markup`` before the last ``</body>``, or append it."""
    last = None
    for last in _BODY_CLOSE.finditer(content):
        pass
    if last is None:
        return content + markup
    pos = last.start()
    return content[:pos] + markup + content[pos:]


class OutputStrategy:
    """Delivery-mode selection and dispatch for one controller."""

    def __init__(self, debugbar: "Debugbar"):
        self.debugbar = debugbar

    def is_suppressed(self, request: Request) -> bool:
        debugbar = self.debugbar
        return (
            debugbar.hooks.running_in_console()
            or not debugbar.is_enabled()
            or debugbar.is_debugbar_request(request)
        )

    def select(self, request: Request, response: Response) -> DeliveryMode:
        if self.is_suppressed(request):
            return DeliveryMode.PASSTHROUGH

        config = self.debugbar.config
        if response.is_redirect():
            return DeliveryMode.REDIRECTED
        if request.is_ajax() and as_bool(config.get("capture_ajax"), True):
            return DeliveryMode.AJAX
        if (response.content_type and not response.is_html()) or request.format() != "html":
            return DeliveryMode.PASSTHROUGH
        if as_bool(config.get("inject"), True):
            return DeliveryMode.HTML_INJECTED
        return DeliveryMode.PASSTHROUGH

    def handle(self, request: Request, response: Response) -> Response:
        if self.is_suppressed(request):
            return response

        debugbar = self.debugbar
        debugbar.prepare_response(request, response)

        mode = self.select(request, response)
        logger.debug("Delivering snapshot for %s %s as %s", request.method, request.path, mode.value)

        if mode is DeliveryMode.REDIRECTED:
            debugbar.stack_data()
        elif mode is DeliveryMode.AJAX:
            config = debugbar.config
            debugbar.send_data_in_headers(
                use_open_handler=as_bool(config.get("options.ajax.open_handler")),
                header_name=config.get("headers.name", "x-debugbar"),
                max_header_length=config.get("headers.max_length", 4096),
                max_total_header_length=config.get("headers.max_total_length", 250000),
            )
        elif mode is DeliveryMode.HTML_INJECTED:
            self.inject(response)
        return response

    def inject(self, response: Response) -> None:
        """Splice the rendered toolbar into ``response`` and disable the controller."""
        debugbar = self.debugbar
        renderer = debugbar.get_javascript_renderer()
        markup = renderer.render_head() + debugbar.render()

        codec = response.codec
        # Characters the page encoding cannot hold become character references.
        markup = markup.encode(codec, errors="xmlcharrefreplace").decode(codec)
        response.set_body_text(inject_markup(response.body_text, markup))
        debugbar.disable()


__all__ = ["DeliveryMode", "OutputStrategy", "inject_markup"]
