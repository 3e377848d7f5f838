"""
Structured JSON logging for the quote costing engine.

Every record under the ``cpq_kernel`` logger hierarchy is written as one
JSON object per line.  Request-scoped identifiers (tenant, actor, quote,
position) live in ``LogContext`` and are copied onto each record, so a
costing run can be followed across engines, services and worker threads.

Usage::

    logger = get_logger("engines.employer_cost")
    with LogContext.bind(quote_id=quote_id):
        logger.info("employer_cost_computed", extra={"num_guards": 4})
"""

from __future__ import annotations

__all__ = [
    "LogContext",
    "StructuredFormatter",
    "configure_logging",
    "get_logger",
    "reset_logging",
]

import json
import logging
import sys
import threading
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

CONTEXT_FIELDS: tuple[str, ...] = (
    "correlation_id",
    "tenant_id",
    "actor_id",
    "quote_id",
    "position_id",
    "trace_id",
)

# Replaced, never mutated
_context: ContextVar[Mapping[str, str]] = ContextVar("cpq_log_context", default={})


def _known_fields(fields: Mapping[str, Any]) -> dict[str, str]:
    return {
        name: str(value)
        for name, value in fields.items()
        if name in CONTEXT_FIELDS and value is not None
    }


class LogContext:
    """
    Request-scoped log fields, safe across threads and tasks.

    The request handler resolves tenant and user before the engine runs
    and binds them here.  Unknown field names and None values are ignored.
    """

    @staticmethod
    def set(**fields: Any) -> None:
        _context.set({**_context.get(), **_known_fields(fields)})

    @staticmethod
    def get_all() -> dict[str, str]:
        return dict(_context.get())

    @staticmethod
    def clear() -> None:
        _context.set({})

    @staticmethod
    @contextmanager
    def bind(**fields: Any) -> Iterator[None]:
        """Overlay ``fields`` for the duration of the block."""
        token = _context.set({**_context.get(), **_known_fields(fields)})
        try:
            yield
        finally:
            _context.reset(token)


def _json_default(value: Any) -> Any:
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


_RECORD_ATTRIBUTES = frozenset(
    vars(logging.makeLogRecord({})).keys() | {"message", "asctime", "taskName"}
)


class StructuredFormatter(logging.Formatter):
    """One JSON object per record: base fields, context, extras, exception."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }
        for key, value in vars(record).items():
            if key not in _RECORD_ATTRIBUTES:
                payload.setdefault(key, value)

        exc = record.exc_info[1] if record.exc_info else None
        if exc is not None:
            payload["exc_type"] = type(exc).__name__
            payload["exc_message"] = str(exc)
            code = getattr(exc, "code", None)
            if code is not None:
                payload["exc_code"] = code
            # CpqEngineError subclasses keep their fields as attributes
            for key, value in vars(exc).items():
                if not key.startswith("_") and key != "code":
                    payload[f"exc_{key}"] = value
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_json_default)


_ROOT = "cpq_kernel"
_configured = False
_configure_lock = threading.Lock()


def get_logger(name: str) -> logging.Logger:
    """Logger under the ``cpq_kernel`` hierarchy."""
    return logging.getLogger(f"{_ROOT}.{name}")


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """Attach one JSON handler to ``cpq_kernel``.  Later calls are no-ops."""
    global _configured
    with _configure_lock:
        if _configured:
            return
        _configured = True

    if handler is None:
        handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(StructuredFormatter())

    root = logging.getLogger(_ROOT)
    root.setLevel(level)
    root.propagate = False
    root.addHandler(handler)


def reset_logging() -> None:
    """Drop handlers and allow ``configure_logging`` again.  Tests only."""
    global _configured
    with _configure_lock:
        _configured = False
    root = logging.getLogger(_ROOT)
    root.handlers.clear()
    root.setLevel(logging.WARNING)
