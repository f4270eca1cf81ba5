"""
Kanban Core — Structured Logging System

Every entry is a JSON line tagged with the request/correlation ID of the
request that produced it, and is kept in a bounded in-memory buffer so it can
be inspected after the fact. Audit events for board, column, card and
dependency mutations go through the same logger; emitting one never blocks
or fails the mutation that produced it.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any, Callable
from datetime import datetime, timezone
from enum import Enum
from collections import deque
import contextvars
import logging
import json
import uuid
import time
import traceback
import sys
import os

_SEVERITY = {"debug": 10, "info": 20, "warning": 30, "error": 40, "critical": 50}


class LogLevel(str, Enum):
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"

    @property
    def numeric(self) -> int:
        return _SEVERITY[self.value]


class LogCategory(str, Enum):
    RESPONSE = "response"
    SYSTEM = "system"
    AUDIT = "audit"


@dataclass
class LogEntry:
    """One structured log line"""
    level: LogLevel
    category: LogCategory
    message: str
    service: str
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    request_id: Optional[str] = None
    correlation_id: Optional[str] = None
    duration_ms: Optional[float] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    tags: List[str] = field(default_factory=list)
    error: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.__dict__)
        data["level"] = self.level.value
        data["category"] = self.category.value
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)


@dataclass
class RequestContext:
    """IDs of the request currently being served"""
    request_id: str
    correlation_id: str
    start_time: float = field(default_factory=time.time)

    @staticmethod
    def create(request_id: Optional[str] = None, correlation_id: Optional[str] = None) -> "RequestContext":
        request_id = request_id or str(uuid.uuid4())
        # A request without an upstream correlation ID starts its own chain
        return RequestContext(request_id=request_id, correlation_id=correlation_id or request_id)

    @property
    def elapsed_ms(self) -> float:
        return (time.time() - self.start_time) * 1000


_request_context: contextvars.ContextVar[Optional[RequestContext]] = contextvars.ContextVar(
    "kanban_request_context", default=None
)


def get_current_context() -> Optional[RequestContext]:
    return _request_context.get()


def set_current_context(context: RequestContext) -> contextvars.Token:
    return _request_context.set(context)


def reset_current_context(token: contextvars.Token) -> None:
    _request_context.reset(token)


class LogBuffer:
    """Most recent entries, oldest dropped first"""

    def __init__(self, max_size: int = 10000):
        self.max_size = max_size
        self._entries: deque = deque(maxlen=max_size)

    def append(self, entry: LogEntry) -> None:
        self._entries.append(entry)

    def get_all(self) -> List[LogEntry]:
        return list(self._entries)

    def clear(self) -> int:
        dropped = len(self._entries)
        self._entries.clear()
        return dropped

    def filter(
        self,
        level: Optional[LogLevel] = None,
        category: Optional[LogCategory] = None,
        correlation_id: Optional[str] = None,
        search: Optional[str] = None,
        limit: int = 100,
    ) -> List[LogEntry]:
        """Newest-first entries matching every given criterion"""
        needle = search.lower() if search else None

        def matches(entry: LogEntry) -> bool:
            return (
                (level is None or entry.level.numeric >= level.numeric)
                and (category is None or entry.category == category)
                and (correlation_id is None or entry.correlation_id == correlation_id)
                and (needle is None or needle in entry.message.lower())
            )

        found = []
        for entry in reversed(self._entries):
            if matches(entry):
                found.append(entry)
                if len(found) >= limit:
                    break
        return found


class StructuredLogger:
    """JSON logger with request correlation and an inspectable buffer"""

    def __init__(
        self,
        service_name: str = "kanban-core",
        min_level: LogLevel = LogLevel.INFO,
        buffer_size: int = 10000,
        output_handlers: Optional[List[Callable[[LogEntry], None]]] = None,
    ):
        self.service_name = service_name
        self.min_level = min_level
        self.buffer = LogBuffer(buffer_size)
        self.output_handlers = list(output_handlers or [])

    def add_handler(self, handler: Callable[[LogEntry], None]) -> None:
        self.output_handlers.append(handler)

    def remove_handler(self, handler: Callable[[LogEntry], None]) -> None:
        if handler in self.output_handlers:
            self.output_handlers.remove(handler)

    def emit(
        self,
        level: LogLevel,
        category: LogCategory,
        message: str,
        metadata: Optional[Dict[str, Any]] = None,
        tags: Optional[List[str]] = None,
        error: Optional[Exception] = None,
        duration_ms: Optional[float] = None,
    ) -> Optional[LogEntry]:
        if level.numeric < self.min_level.numeric:
            return None

        context = get_current_context()
        entry = LogEntry(
            level=level,
            category=category,
            message=message,
            service=self.service_name,
            request_id=context.request_id if context else None,
            correlation_id=context.correlation_id if context else None,
            duration_ms=duration_ms,
            metadata=metadata or {},
            tags=tags or [],
        )
        if error is not None:
            entry.error = {
                "type": type(error).__name__,
                "message": str(error),
                "stack_trace": traceback.format_exc(),
            }

        self.buffer.append(entry)
        stream = sys.stderr if level.numeric >= LogLevel.ERROR.numeric else sys.stdout
        print(entry.to_json(), file=stream)

        for handler in self.output_handlers:
            try:
                handler(entry)
            except Exception:
                logging.getLogger("kanban-core.logging").debug("Log handler %r failed", handler, exc_info=True)

        return entry

    def debug(self, message: str, category: LogCategory = LogCategory.SYSTEM, **kwargs) -> Optional[LogEntry]:
        return self.emit(LogLevel.DEBUG, category, message, **kwargs)

    def info(self, message: str, category: LogCategory = LogCategory.SYSTEM, **kwargs) -> Optional[LogEntry]:
        return self.emit(LogLevel.INFO, category, message, **kwargs)

    def warning(self, message: str, category: LogCategory = LogCategory.SYSTEM, **kwargs) -> Optional[LogEntry]:
        return self.emit(LogLevel.WARNING, category, message, **kwargs)

    def error(self, message: str, category: LogCategory = LogCategory.SYSTEM, **kwargs) -> Optional[LogEntry]:
        return self.emit(LogLevel.ERROR, category, message, **kwargs)

    def response(self, method: str, path: str, status_code: int, duration_ms: float) -> Optional[LogEntry]:
        """One line per served request; 4xx log as warnings, 5xx as errors"""
        if status_code >= 500:
            level = LogLevel.ERROR
        elif status_code >= 400:
            level = LogLevel.WARNING
        else:
            level = LogLevel.INFO
        return self.emit(
            level,
            LogCategory.RESPONSE,
            f"{method} {path} -> {status_code}",
            duration_ms=duration_ms,
            metadata={"method": method, "path": path, "status_code": status_code},
        )

    def audit(self, action: str, resource: str, metadata: Optional[Dict[str, Any]] = None) -> Optional[LogEntry]:
        return self.info(
            f"Audit: {action} on {resource}",
            category=LogCategory.AUDIT,
            tags=["audit"],
            metadata={"action": action, "resource": resource, **(metadata or {})},
        )

    def get_logs(self, **criteria) -> List[LogEntry]:
        return self.buffer.filter(**criteria)


_logger: Optional[StructuredLogger] = None


def get_logger() -> StructuredLogger:
    """Process-wide Kanban logger"""
    global _logger
    if _logger is None:
        _logger = StructuredLogger(min_level=LogLevel.DEBUG if os.getenv("DEBUG") else LogLevel.INFO)
    return _logger


def log_response(method: str, path: str, status_code: int, duration_ms: float) -> Optional[LogEntry]:
    return get_logger().response(method, path, status_code, duration_ms)


def log_error(message: str, error: Optional[Exception] = None, **kwargs) -> Optional[LogEntry]:
    return get_logger().error(message, error=error, **kwargs)


def log_audit(action: str, resource: str, metadata: Optional[Dict[str, Any]] = None) -> Optional[LogEntry]:
    return get_logger().audit(action, resource, metadata=metadata)


def audit_event(action: str, resource: str, resource_id=None, **metadata) -> Optional[LogEntry]:
    """Fire-and-forget audit hook for committed mutations.

    A failure here is reported as a warning and never reaches the caller.
    """
    try:
        return log_audit(action, resource, metadata={"resource_id": resource_id, **metadata})
    except Exception:
        logging.getLogger("kanban-core.audit").warning("Failed to emit audit event %s", action, exc_info=True)
        return None
