"""
Collectors - pluggable units reporting one category of diagnostic data.
"""

from .base import DataCollector, RequestAware, format_bytes, format_duration, export_value
from .messages import Level, MessagesCollector
from .time import Measurement, TimeDataCollector
from .memory import MemoryCollector
from .exceptions import ExceptionsCollector
from .queries import QueryCollector, render_sql
from .views import ViewCollector
from .route import RouteCollector
from .logs import INVALID_UTF8, LogBridgeCollector, LogFileCollector, format_log_message
from .request import RequestCollector, RequestDataCollector
from .environment import ConfigCollector, FilesCollector, FrameworkCollector, PythonInfoCollector, redact
from .auth import AuthCollector
from .mail import MailCollector

__all__ = [
    "DataCollector",
    "RequestAware",
    "format_bytes",
    "format_duration",
    "export_value",
    "Level",
    "MessagesCollector",
    "Measurement",
    "TimeDataCollector",
    "MemoryCollector",
    "ExceptionsCollector",
    "QueryCollector",
    "render_sql",
    "ViewCollector",
    "RouteCollector",
    "INVALID_UTF8",
    "LogBridgeCollector",
    "LogFileCollector",
    "format_log_message",
    "RequestCollector",
    "RequestDataCollector",
    "ConfigCollector",
    "FilesCollector",
    "FrameworkCollector",
    "PythonInfoCollector",
    "redact",
    "AuthCollector",
    "MailCollector",
]
