"""
Debugbar - request diagnostics overlay for ASGI applications.

Wraps an application with ``DebugbarMiddleware`` to gather per-request data
from pluggable collectors:
- Timeline, memory, messages and exceptions
- Queries, views, routes, mail and log records fired through host hooks
- Request, session, auth and configuration details

The assembled snapshot is injected into HTML pages as a toolbar, returned in
headers for AJAX requests, or stashed across redirects. Snapshots can be
persisted and browsed with the ``debugbar`` command.
"""

__version__ = "0.1.0"

from .config import ConfigError, ConfigGate, ConfigLoader
from .faults import (
    CollectorAttachError,
    CollectorNotFoundError,
    DuplicateCollectorError,
    EncodingError,
    Fault,
    FaultDomain,
    HookUnavailableError,
    MeasureStateError,
    NotFoundError,
    OpenHandlerFault,
    Severity,
    SnapshotNotFound,
    StorageFault,
)
from .hooks import (
    FrameworkCapabilities,
    FrameworkHooks,
    HookKind,
    LogEvent,
    MailEvent,
    QueryEvent,
    RouteEvent,
    SupportsQueryLogging,
    ViewEvent,
    install_logging_bridge,
)
from .collectors import DataCollector, Level, Measurement
from .core import DebugBar, Snapshot
from .lifecycle import Debugbar
from .output import DeliveryMode, OutputStrategy, inject_markup
from .renderer import ToolbarRenderer
from .storage import FileStorage, MemoryStorage, SqliteStorage, StorageAdapter, create_storage
from .open_handler import OpenHandler
from .middleware import DebugbarMiddleware, current_debugbar
from .request import Request
from .response import Response

__all__ = [
    "__version__",
    # Config
    "ConfigError",
    "ConfigGate",
    "ConfigLoader",
    # Faults
    "Fault",
    "FaultDomain",
    "Severity",
    "CollectorAttachError",
    "CollectorNotFoundError",
    "DuplicateCollectorError",
    "EncodingError",
    "HookUnavailableError",
    "MeasureStateError",
    "NotFoundError",
    "OpenHandlerFault",
    "SnapshotNotFound",
    "StorageFault",
    # Hooks
    "FrameworkCapabilities",
    "FrameworkHooks",
    "HookKind",
    "LogEvent",
    "MailEvent",
    "QueryEvent",
    "RouteEvent",
    "SupportsQueryLogging",
    "ViewEvent",
    "install_logging_bridge",
    # Core
    "DataCollector",
    "Level",
    "Measurement",
    "DebugBar",
    "Snapshot",
    "Debugbar",
    "DeliveryMode",
    "OutputStrategy",
    "inject_markup",
    "ToolbarRenderer",
    # Storage
    "StorageAdapter",
    "MemoryStorage",
    "FileStorage",
    "SqliteStorage",
    "create_storage",
    # ASGI
    "OpenHandler",
    "DebugbarMiddleware",
    "current_debugbar",
    "Request",
    "Response",
]
