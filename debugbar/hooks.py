"""
Framework hooks - the host lifecycle events collectors listen to.

The host declares up front which ``HookKind`` values it can fire and a
small ``FrameworkCapabilities`` record; the lifecycle controller queries
those once at boot instead of probing the host at runtime.

Hook kinds and callback signatures:

    BOOTED     callback()
    BEFORE     callback(request)
    AFTER      callback(request, response)
    QUERY      callback(QueryEvent)
    LOG        callback(LogEvent)
    EXCEPTION  callback(exc)
    VIEW       callback(ViewEvent)
    ROUTE      callback(RouteEvent)
    EVENT      callback(name, payload)
    MAIL       callback(MailEvent)
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Protocol, Sequence, runtime_checkable

from .faults import HookUnavailableError


logger = logging.getLogger("debugbar.hooks")


class HookKind(str, Enum):
    BOOTED = "booted"
    BEFORE = "before"
    AFTER = "after"
    QUERY = "query"
    LOG = "log"
    EXCEPTION = "exception"
    VIEW = "view"
    ROUTE = "route"
    EVENT = "event"
    MAIL = "mail"


# ============================================================================
# Event payloads
# ============================================================================

@dataclass(frozen=True)
class QueryEvent:
    """One executed statement. ``duration`` is in seconds."""
    sql: str
    bindings: Sequence[Any] = ()
    duration: float = 0.0
    connection_name: str = "default"
    connection: Any = None


@dataclass(frozen=True)
class LogEvent:
    level: str
    message: Any
    context: Mapping[str, Any] = field(default_factory=dict)
    channel: str = "root"
    created: float = field(default_factory=time.time)

    @classmethod
    def from_record(cls, record: logging.LogRecord) -> "LogEvent":
        context = getattr(record, "context", None)
        if not isinstance(context, Mapping):
            context = {}
        return cls(
            level=record.levelname.lower(),
            message=record.getMessage(),
            context=context,
            channel=record.name,
            created=record.created,
        )


@dataclass(frozen=True)
class ViewEvent:
    name: str
    data: Mapping[str, Any] = field(default_factory=dict)
    path: Optional[str] = None


@dataclass(frozen=True)
class RouteEvent:
    path: str
    methods: Sequence[str] = ()
    name: Optional[str] = None
    handler: Optional[str] = None
    params: Mapping[str, Any] = field(default_factory=dict)
    middleware: Sequence[str] = ()


@dataclass(frozen=True)
class MailEvent:
    subject: str
    to: Sequence[str] = ()
    sender: Optional[str] = None
    headers: Mapping[str, str] = field(default_factory=dict)
    body: Optional[str] = None


@runtime_checkable
class SupportsQueryLogging(Protocol):
    """Connection that can opt out of query logging."""

    def logging_enabled(self) -> bool: ...


# ============================================================================
# Capabilities
# ============================================================================

@dataclass
class FrameworkCapabilities:
    """
    Static facts about the host, resolved once at startup.

    Attributes:
        name: Host framework name shown by the framework collector
        version: Host framework version
        environment: Deployment environment label
        locale: Active locale
        preboot_hooks: Host fires ``BEFORE`` after the debugbar boots; when
            False the application measure starts immediately at boot
        console: Running as a command-line invocation
        boot_start: Process/app boot timestamp (``time.time()`` scale)
    """
    name: str = "asgi"
    version: str = ""
    environment: str = "production"
    locale: str = "en"
    preboot_hooks: bool = True
    console: bool = False
    boot_start: Optional[float] = None


Callback = Callable[..., Any]


class FrameworkHooks:
    """
    Callback registry for the hook kinds a host supports.

    ``listen`` on an unsupported kind raises ``HookUnavailableError`` so the
    lifecycle controller can record it without aborting boot.
    """

    def __init__(
        self,
        supported: Optional[Iterable[HookKind]] = None,
        capabilities: Optional[FrameworkCapabilities] = None,
    ):
        self._supported = frozenset(HookKind(k) for k in supported) if supported is not None else frozenset(HookKind)
        self.capabilities = capabilities or FrameworkCapabilities()
        self._listeners: Dict[HookKind, List[Callback]] = {}
        self._booted = False

    def supports(self, kind: HookKind) -> bool:
        return kind in self._supported

    def listen(self, kind: HookKind, callback: Callback, *, collector: str = "debugbar") -> None:
        kind = HookKind(kind)
        if not self.supports(kind):
            raise HookUnavailableError(collector, kind.value)
        if kind is HookKind.BOOTED and self._booted:
            callback()
            return
        self._listeners.setdefault(kind, []).append(callback)

    def listeners(self, kind: HookKind) -> List[Callback]:
        return list(self._listeners.get(kind, ()))

    def emit(self, kind: HookKind, *args: Any) -> None:
        for callback in self._listeners.get(HookKind(kind), ()):
            callback(*args)

    # ------------------------------------------------------------------
    # Lifecycle state
    # ------------------------------------------------------------------

    @property
    def booted(self) -> bool:
        return self._booted

    def mark_booted(self) -> None:
        if self._booted:
            return
        self._booted = True
        self.emit(HookKind.BOOTED)

    def running_in_console(self) -> bool:
        return self.capabilities.console

    # ------------------------------------------------------------------
    # Request scoping
    # ------------------------------------------------------------------

    @contextmanager
    def activated(self) -> Iterator["FrameworkHooks"]:
        """Make these hooks the target of the logging bridge for this context."""
        token = _current_hooks.set(self)
        try:
            yield self
        finally:
            _current_hooks.reset(token)


_current_hooks: ContextVar[Optional[FrameworkHooks]] = ContextVar("debugbar_hooks", default=None)


def current_hooks() -> Optional[FrameworkHooks]:
    return _current_hooks.get()


# ============================================================================
# Logging bridge
# ============================================================================

class LoggingBridge(logging.Handler):
    """
    Routes stdlib ``logging`` records to the active request's ``LOG`` hook.

    Records from the ``debugbar`` logger tree are ignored.
    """

    def emit(self, record: logging.LogRecord) -> None:
        if record.name == "debugbar" or record.name.startswith("debugbar."):
            return
        hooks = _current_hooks.get()
        if hooks is None or not hooks.supports(HookKind.LOG):
            return
        try:
            hooks.emit(HookKind.LOG, LogEvent.from_record(record))
        except Exception:
            self.handleError(record)


def install_logging_bridge(target: Optional[logging.Logger] = None) -> LoggingBridge:
    """Attach a single ``LoggingBridge`` to ``target`` (root logger by default)."""
    target = target or logging.getLogger()
    for handler in target.handlers:
        if isinstance(handler, LoggingBridge):
            return handler
    bridge = LoggingBridge(level=logging.DEBUG)
    target.addHandler(bridge)
    logger.debug("Logging bridge installed on %r", target.name)
    return bridge


__all__ = [
    "HookKind",
    "QueryEvent",
    "LogEvent",
    "ViewEvent",
    "RouteEvent",
    "MailEvent",
    "SupportsQueryLogging",
    "FrameworkCapabilities",
    "FrameworkHooks",
    "LoggingBridge",
    "install_logging_bridge",
    "current_hooks",
]
