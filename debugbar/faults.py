"""
Debugbar faults - structured error taxonomy.

Defines:
- Fault base class (structured fault objects)
- FaultDomain (explicit fault domains)
- Severity levels
- Concrete faults raised by the registry, hooks, timeline, logging and storage
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional


# ============================================================================
# Severity & Domain
# ============================================================================

class Severity(str, Enum):
    """
    Fault severity levels.

    Determines the logging level used when a fault is reported.
    """
    INFO = "info"       # Informational, no action needed
    WARN = "warn"       # Warning, should be reviewed
    ERROR = "error"     # Error, immediate attention
    FATAL = "fatal"     # Fatal, unrecoverable


class FaultDomain:
    """
    Fault domains (taxonomy).

    Identifies the functional area of the toolbar where a fault occurred.
    """

    def __init__(self, name: str, description: str = ""):
        self.name = name
        self.value = name
        self.description = description

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"FaultDomain(name='{self.name}')"

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, FaultDomain):
            return self.name == other.name
        return str(self) == str(other)

    def __hash__(self) -> int:
        return hash(self.name)


# Standard Domains
FaultDomain.REGISTRY = FaultDomain("registry", "Collector registry errors")
FaultDomain.HOOK = FaultDomain("hook", "Framework hook attachment errors")
FaultDomain.TIMELINE = FaultDomain("timeline", "Measurement state errors")
FaultDomain.LOGGING = FaultDomain("logging", "Log formatting errors")
FaultDomain.STORAGE = FaultDomain("storage", "Snapshot storage errors")
FaultDomain.ROUTING = FaultDomain("routing", "Internal endpoint errors")


DOMAIN_DEFAULTS = {
    FaultDomain.REGISTRY: Severity.ERROR,
    FaultDomain.HOOK: Severity.WARN,
    FaultDomain.TIMELINE: Severity.INFO,
    FaultDomain.LOGGING: Severity.INFO,
    FaultDomain.STORAGE: Severity.ERROR,
    FaultDomain.ROUTING: Severity.WARN,
}


# ============================================================================
# Fault - Base Class
# ============================================================================

class Fault(Exception):
    """
    Base fault class - structured, typed fault object.

    Attributes:
        code: Stable machine-readable identifier (e.g., "COLLECTOR_DUPLICATE")
        message: Human-readable summary
        domain: Fault domain
        severity: Fault severity
        metadata: Additional context data

    Example:
        ```python
        raise Fault(
            code="COLLECTOR_DUPLICATE",
            message="'time' is already a registered collector",
            domain=FaultDomain.REGISTRY,
        )
        ```
    """

    def __init__(
        self,
        code: str | None = None,
        message: str | None = None,
        *,
        domain: FaultDomain | None = None,
        severity: Optional[Severity] = None,
        metadata: Optional[dict[str, Any]] = None,
    ):
        self.code = code if code is not None else getattr(self, "code", None)
        self.message = message if message is not None else getattr(self, "message", None)
        self.domain = domain if domain is not None else getattr(self, "domain", None)

        if self.code is None or self.message is None or self.domain is None:
            raise TypeError(f"{self.__class__.__name__} missing required code, message, or domain")

        super().__init__(self.message)

        self.severity = severity or DOMAIN_DEFAULTS.get(self.domain, Severity.ERROR)
        self.metadata = metadata or {}

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(code={self.code!r}, domain={self.domain.value}, "
            f"severity={self.severity.value})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON transport."""
        return {
            "code": self.code,
            "message": self.message,
            "domain": self.domain.value,
            "severity": self.severity.value,
            "metadata": self.metadata,
        }


# ============================================================================
# REGISTRY Faults
# ============================================================================

class DuplicateCollectorError(Fault):
    """A collector with the same name is already registered."""

    def __init__(self, name: str):
        super().__init__(
            code="COLLECTOR_DUPLICATE",
            message=f"'{name}' is already a registered collector",
            domain=FaultDomain.REGISTRY,
            metadata={"name": name},
        )
        self.name = name


class CollectorNotFoundError(Fault):
    """Requested collector is not registered."""

    def __init__(self, name: str):
        super().__init__(
            code="COLLECTOR_NOT_FOUND",
            message=f"'{name}' is not a registered collector",
            domain=FaultDomain.REGISTRY,
            metadata={"name": name},
        )
        self.name = name


NotFoundError = CollectorNotFoundError


# ============================================================================
# HOOK Faults
# ============================================================================

class CollectorAttachError(Fault):
    """A collector could not be wired to the host framework."""

    def __init__(self, collector: str, reason: str):
        super().__init__(
            code="COLLECTOR_ATTACH_FAILED",
            message=f"Cannot add {collector} collector to the debugbar: {reason}",
            domain=FaultDomain.HOOK,
            metadata={"collector": collector, "reason": reason},
        )
        self.collector = collector


class HookUnavailableError(CollectorAttachError):
    """The host framework does not expose the requested hook."""

    def __init__(self, collector: str, hook: str):
        super().__init__(collector, f"host does not provide the '{hook}' hook")
        self.code = "HOOK_UNAVAILABLE"
        self.hook = hook
        self.metadata["hook"] = hook


# ============================================================================
# TIMELINE / LOGGING Faults
# ============================================================================

class MeasureStateError(Fault):
    """Stop was requested for a measure that is not running."""

    def __init__(self, name: str):
        super().__init__(
            code="MEASURE_NOT_RUNNING",
            message=f"Failed stopping measure '{name}' because it hasn't been started",
            domain=FaultDomain.TIMELINE,
            metadata={"name": name},
        )
        self.name = name


class EncodingError(Fault):
    """Log payload is not valid UTF-8."""

    def __init__(self, reason: str = "payload is not valid UTF-8"):
        super().__init__(
            code="LOG_ENCODING_INVALID",
            message=reason,
            domain=FaultDomain.LOGGING,
        )


# ============================================================================
# STORAGE / ROUTING Faults
# ============================================================================

class StorageFault(Fault):
    """Snapshot storage failure."""

    def __init__(self, code: str, message: str, **metadata: Any):
        super().__init__(
            code=code,
            message=message,
            domain=FaultDomain.STORAGE,
            metadata=metadata,
        )


class SnapshotNotFound(StorageFault):
    """No snapshot stored under the given request id."""

    def __init__(self, request_id: str):
        super().__init__(
            "SNAPSHOT_NOT_FOUND",
            f"No snapshot stored for request '{request_id}'",
            request_id=request_id,
        )


class OpenHandlerFault(Fault):
    """Invalid request to the internal retrieval endpoint."""

    def __init__(self, code: str, message: str, status: int = 400):
        super().__init__(
            code=code,
            message=message,
            domain=FaultDomain.ROUTING,
            metadata={"status": status},
        )
        self.status = status


__all__ = [
    "Severity",
    "FaultDomain",
    "Fault",
    "DuplicateCollectorError",
    "CollectorNotFoundError",
    "NotFoundError",
    "CollectorAttachError",
    "HookUnavailableError",
    "MeasureStateError",
    "EncodingError",
    "StorageFault",
    "SnapshotNotFound",
    "OpenHandlerFault",
]
