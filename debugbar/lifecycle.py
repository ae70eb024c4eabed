"""
Lifecycle controller - boots collectors against the host hooks and exposes
the imperative API application code uses during a request.

Boot registers every collector kind the configuration enables, in a fixed
order, and attaches the hooks each one needs. A collector that cannot be
wired is recorded as a ``CollectorAttachError`` and boot moves on.
"""

from __future__ import annotations

import logging
import os
import sys
import time
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Sequence, TypeVar, Union

from .collectors import (
    AuthCollector,
    ConfigCollector,
    ExceptionsCollector,
    FilesCollector,
    FrameworkCollector,
    Level,
    LogBridgeCollector,
    LogFileCollector,
    MailCollector,
    MemoryCollector,
    MessagesCollector,
    PythonInfoCollector,
    QueryCollector,
    RequestAware,
    RequestCollector,
    RequestDataCollector,
    RouteCollector,
    TimeDataCollector,
    ViewCollector,
    format_log_message,
)
from .config import ConfigGate, ConfigLoader, as_bool
from .core import DebugBar, Snapshot
from .faults import CollectorAttachError, MeasureStateError
from .hooks import FrameworkHooks, HookKind, LogEvent, MailEvent, QueryEvent, SupportsQueryLogging
from .output import OutputStrategy
from .renderer import ToolbarRenderer
from .request import Request
from .response import Response
from .storage import StorageAdapter, create_storage
from .transport import SessionHttpDriver

logger = logging.getLogger("debugbar.lifecycle")

T = TypeVar("T")

BOOT_ORDER = (
    "python_info",
    "messages",
    "time",
    "memory",
    "exceptions",
    "framework",
    "default_request",
    "events",
    "views",
    "route",
    "log",
    "db",
    "mail",
    "logs",
    "files",
    "auth",
)


class Debugbar(DebugBar):
    """
    Request-scoped debugbar controller.

    Args:
        config: Resolved configuration (defaults when omitted)
        hooks: Host hook registry and capabilities
        storage: Shared snapshot storage; built from ``storage.*`` config
            at boot when omitted
        request_id: Explicit request id (generated when omitted)
    """

    def __init__(
        self,
        config: Optional[ConfigLoader] = None,
        hooks: Optional[FrameworkHooks] = None,
        *,
        storage: Optional[StorageAdapter] = None,
        request_id: Optional[str] = None,
    ):
        super().__init__(request_id=request_id)
        self.config = config if config is not None else ConfigLoader.from_dict({})
        self.gate = ConfigGate(self.config)
        self.hooks = hooks if hooks is not None else FrameworkHooks()
        self.output = OutputStrategy(self)
        self.enabled = as_bool(self.config.get("enabled"), False)

        self.request: Optional[Request] = None
        self.response: Optional[Response] = None

        self._booted = False
        self._constructed_at = time.time()
        self._renderer: Optional[ToolbarRenderer] = None

        if storage is not None:
            self.set_storage(storage)

    # ========================================================================
    # Enable / disable
    # ========================================================================

    def is_enabled(self) -> bool:
        return self.enabled

    def enable(self) -> None:
        self.enabled = True
        if not self._booted:
            self.boot()

    def disable(self) -> None:
        self.enabled = False

    @property
    def booted(self) -> bool:
        return self._booted

    def should_collect(self, name: str, default: bool = False) -> bool:
        return self.gate.should_collect(name, default)

    # ========================================================================
    # Boot
    # ========================================================================

    @contextmanager
    def _attaching(self, collector: str) -> Iterator[None]:
        """Record a wiring failure for ``collector`` instead of raising it."""
        try:
            yield
        except Exception as exc:
            if isinstance(exc, CollectorAttachError):
                error = exc
            else:
                error = CollectorAttachError(collector, str(exc))
                error.__cause__ = exc
            logger.warning("%s", error)
            self.add_exception(error)

    def boot(self) -> None:
        if self._booted:
            return
        self._booted = True

        if self.get_storage() is None:
            self.set_storage(create_storage(self.config))

        for kind in BOOT_ORDER:
            getattr(self, f"_boot_{kind}")()

        renderer = self.get_javascript_renderer()
        renderer.set_include_vendors(as_bool(self.config.get("include_vendors"), True))

        logger.debug("Booted with collectors: %s", ", ".join(self.get_collectors()))

    def _boot_python_info(self) -> None:
        if self.should_collect("python_info", True):
            with self._attaching("python_info"):
                self.add_collector(PythonInfoCollector())

    def _boot_messages(self) -> None:
        if self.should_collect("messages", True):
            with self._attaching("messages"):
                self.add_collector(MessagesCollector())

    def _boot_time(self) -> None:
        if not self.should_collect("time", True):
            return
        with self._attaching("time"):
            caps = self.hooks.capabilities
            self.add_collector(TimeDataCollector(caps.boot_start))
            if caps.boot_start is not None:
                self.add_measure("Booting", caps.boot_start, self._constructed_at)

            if not caps.preboot_hooks or self.hooks.booted:
                self.start_measure("application", "Application")
            else:
                self.hooks.listen(
                    HookKind.BEFORE,
                    lambda request: self.start_measure("application", "Application"),
                    collector="time",
                )

            def after_application(request, response):
                self.stop_measure("application")
                self.start_measure("after", "After application")

            self.hooks.listen(HookKind.AFTER, after_application, collector="time")

    def _boot_memory(self) -> None:
        if self.should_collect("memory", True):
            with self._attaching("memory"):
                self.add_collector(MemoryCollector())

    def _boot_exceptions(self) -> None:
        if not self.should_collect("exceptions", True):
            return
        with self._attaching("exceptions"):
            collector = ExceptionsCollector(bool(self.gate.option("exceptions", "chain", True)))
            self.add_collector(collector)
            self.hooks.listen(HookKind.EXCEPTION, collector.add_exception, collector="exceptions")

    def _boot_framework(self) -> None:
        if self.should_collect("framework", False):
            with self._attaching("framework"):
                self.add_collector(FrameworkCollector(self.hooks.capabilities))

    def _boot_default_request(self) -> None:
        if self.should_collect("default_request", False):
            with self._attaching("default_request"):
                self.add_collector(RequestDataCollector())

    def _boot_events(self) -> None:
        if not self.should_collect("events", False):
            return
        with self._attaching("events"):
            events = MessagesCollector("events")
            self.add_collector(events)
            self.hooks.listen(
                HookKind.EVENT,
                lambda name, payload=None: events.info(f"Received event: {name}"),
                collector="events",
            )

    def _boot_views(self) -> None:
        if not self.should_collect("views", True):
            return
        with self._attaching("views"):
            views = ViewCollector(bool(self.gate.option("views", "data", True)))
            self.add_collector(views)
            self.hooks.listen(HookKind.VIEW, views.add_view, collector="views")

    def _boot_route(self) -> None:
        if not self.should_collect("route", False):
            return
        with self._attaching("route"):
            route = RouteCollector()
            self.add_collector(route)
            self.hooks.listen(HookKind.ROUTE, route.set_route, collector="route")

    def _boot_log(self) -> None:
        if not self.should_collect("log", True):
            return
        with self._attaching("log"):
            if self.has_collector("messages"):
                log = MessagesCollector("log")
                self["messages"].aggregate(log)

                def on_log(event: LogEvent) -> None:
                    log.add_message(
                        format_log_message(event.level, event.message, event.context, datetime.fromtimestamp(event.created)),
                        event.level,
                        False,
                    )

                self.hooks.listen(HookKind.LOG, on_log, collector="log")
            else:
                bridge = LogBridgeCollector()
                self.add_collector(bridge)
                self.hooks.listen(HookKind.LOG, bridge.add_log_event, collector="log")

    def _boot_db(self) -> None:
        if not self.should_collect("db", True):
            return
        with self._attaching("db"):
            timeline = None
            if self.has_collector("time") and self.gate.option("db", "timeline", False):
                timeline = self["time"]
            queries = QueryCollector(timeline, bool(self.gate.option("db", "with_params", False)))
            self.add_collector(queries)

            def on_query(event: QueryEvent) -> None:
                connection = event.connection
                if isinstance(connection, SupportsQueryLogging) and not connection.logging_enabled():
                    return
                queries.add_query(event.sql, event.bindings, event.duration, event.connection_name)

            self.hooks.listen(HookKind.QUERY, on_query, collector="db")

    def _boot_mail(self) -> None:
        if not self.should_collect("mail", True):
            return
        with self._attaching("mail"):
            mails = MailCollector()
            self.add_collector(mails)
            self.hooks.listen(HookKind.MAIL, mails.add_mail, collector="mail")

            if self.gate.option("mail", "full_log", False) and self.has_collector("messages"):
                mail_log = MessagesCollector("mail")
                self["messages"].aggregate(mail_log)

                def on_mail(mail: MailEvent) -> None:
                    mail_log.add_message(
                        f"Message sent: {mail.subject} to {', '.join(mail.to)}\n{mail.body or ''}".rstrip(),
                        "info",
                    )

                self.hooks.listen(HookKind.MAIL, on_mail, collector="mail")

    def _boot_logs(self) -> None:
        if self.should_collect("logs", False):
            with self._attaching("logs"):
                self.add_collector(LogFileCollector(
                    self.gate.option("logs", "file"),
                    int(self.gate.option("logs", "lines", 100)),
                ))

    def _boot_files(self) -> None:
        if self.should_collect("files", False):
            with self._attaching("files"):
                self.add_collector(FilesCollector(os.getcwd()))

    def _boot_auth(self) -> None:
        if self.should_collect("auth", False):
            with self._attaching("auth"):
                self.add_collector(AuthCollector(bool(self.gate.option("auth", "show_name", False))))

    # ========================================================================
    # Imperative API
    # ========================================================================

    def start_measure(self, name: str, label: Optional[str] = None) -> None:
        if self.has_collector("time"):
            self["time"].start_measure(name, label)

    def stop_measure(self, name: str) -> None:
        if self.has_collector("time"):
            try:
                self["time"].stop_measure(name)
            except MeasureStateError as exc:
                logger.debug("%s", exc)

    def add_measure(self, label: str, start: float, end: float) -> None:
        if self.has_collector("time"):
            self["time"].add_measure(label, start, end)

    def measure(self, label: str, fn: Callable[[], T]) -> T:
        """Run ``fn`` as a timeline measure; the measure is kept if it raises."""
        if self.has_collector("time"):
            return self["time"].measure(label, fn)
        return fn()

    def add_exception(self, exc: BaseException) -> None:
        if self.has_collector("exceptions"):
            self["exceptions"].add_exception(exc)

    def add_message(self, message: Any, level: Union[Level, str] = "info") -> None:
        if self.has_collector("messages"):
            self["messages"].add_message(message, level)

    def log(self, level: Union[Level, str], message: Any) -> None:
        if self.has_collector("messages"):
            self["messages"].log(level, message)

    def emergency(self, message: Any) -> None:
        self.add_message(message, Level.EMERGENCY)

    def alert(self, message: Any) -> None:
        self.add_message(message, Level.ALERT)

    def critical(self, message: Any) -> None:
        self.add_message(message, Level.CRITICAL)

    def error(self, message: Any) -> None:
        self.add_message(message, Level.ERROR)

    def warning(self, message: Any) -> None:
        self.add_message(message, Level.WARNING)

    def notice(self, message: Any) -> None:
        self.add_message(message, Level.NOTICE)

    def info(self, message: Any) -> None:
        self.add_message(message, Level.INFO)

    def debug(self, message: Any) -> None:
        self.add_message(message, Level.DEBUG)

    # ========================================================================
    # Response handling
    # ========================================================================

    def is_debugbar_request(self, request: Request) -> bool:
        return request.segment(1) == self.config.get("route_prefix", "_debugbar")

    def bind_request(self, request: Request, response: Optional[Response] = None) -> None:
        self.request = request
        self.response = response
        for collector in self:
            if isinstance(collector, RequestAware):
                collector.bind(request, response)

    def prepare_response(self, request: Request, response: Response) -> None:
        """Register the response-time collectors and bind the HTTP driver."""
        if self.should_collect("config", False):
            with self._attaching("config"):
                self.add_collector(ConfigCollector(self.config.to_dict()))

        if self.should_collect("request", True) and not self.has_collector("request"):
            with self._attaching("request"):
                self.add_collector(RequestCollector())

        driver = self.get_http_driver()
        if isinstance(driver, SessionHttpDriver):
            if driver.session is None:
                driver.session = request.session
            driver.bind_response(response)

        self.bind_request(request, response)

    def modify_response(self, request: Request, response: Response) -> Response:
        return self.output.handle(request, response)

    def inject_debugbar(self, response: Response) -> None:
        self.output.inject(response)

    # ========================================================================
    # Snapshot
    # ========================================================================

    def collect(self, meta: Optional[Mapping[str, Any]] = None) -> Snapshot:
        if meta is None and self.request is not None:
            meta = self.build_meta(
                method=self.request.method,
                uri=self.request.uri,
                ip=self.request.client_ip(),
            )
        return super().collect(meta)

    def collect_console(
        self,
        argv: Optional[Sequence[str]] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> Optional[Snapshot]:
        """Snapshot for a command-line invocation; ``None`` when disabled."""
        if not self.is_enabled():
            return None

        argv = sys.argv if argv is None else argv
        environ = os.environ if environ is None else environ
        meta = self.build_meta(
            method="CLI",
            uri=" ".join(argv) if argv else None,
            ip=environ.get("SSH_CLIENT"),
        )
        return self.collect(meta)

    # ========================================================================
    # Rendering
    # ========================================================================

    def get_javascript_renderer(self) -> ToolbarRenderer:
        if self._renderer is None:
            prefix = self.config.get("route_prefix", "_debugbar")
            base_url = self.config.get("asset_base_url") or f"/{prefix}"
            self._renderer = ToolbarRenderer(
                base_url=base_url,
                include_vendors=as_bool(self.config.get("include_vendors"), True),
            )
        if self.is_data_persisted():
            self._renderer.set_open_handler_url(f"/{self.config.get('route_prefix', '_debugbar')}/open")
        return self._renderer

    def widgets(self) -> Dict[str, Dict[str, Any]]:
        widgets: Dict[str, Dict[str, Any]] = {}
        for collector in self:
            widgets.update(collector.widgets())
        return widgets

    def render(self) -> str:
        stacked: List[Snapshot] = self.get_stacked_data() if self.has_stacked_data() else []
        return self.get_javascript_renderer().render(self.get_data(), stacked, self.widgets())


__all__ = ["BOOT_ORDER", "Debugbar"]
