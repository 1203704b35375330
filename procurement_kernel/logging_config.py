"""
Structured JSON logging for the procurement kernel.

Every record under the ``procurement_kernel`` logger is written as one JSON
object per line.  Request-scoped ids (correlation, actor, purchase order)
are carried in a ContextVar and merged into each record, so a receipt's
``receipt_line_applied`` rows can be joined with the facade's
``receive_started`` / ``receive_completed`` pair.

Usage::

    configure_logging(level=settings.log_level)
    logger = get_logger("services.receiving")
    with LogContext.bind(correlation_id=str(uuid4()), po_id=str(po_id)):
        logger.info("receipt_applied", extra={"line_count": 2})
"""

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
from datetime import UTC, date, datetime
from decimal import Decimal
from types import MappingProxyType
from typing import Any
from uuid import UUID

_LOGGER_PREFIX = "procurement_kernel"

CONTEXT_FIELDS = ("correlation_id", "actor_id", "po_id")

_EMPTY: Mapping[str, str] = MappingProxyType({})
_context: ContextVar[Mapping[str, str]] = ContextVar("procurement_log_context", default=_EMPTY)


class LogContext:
    """Request-scoped log fields, isolated per thread and per asyncio task."""

    @staticmethod
    def _merged(fields: dict[str, str | None]) -> Mapping[str, str]:
        unknown = set(fields) - set(CONTEXT_FIELDS)
        if unknown:
            raise TypeError(f"Unknown log context fields: {', '.join(sorted(unknown))}")
        merged = dict(_context.get())
        merged.update({k: v for k, v in fields.items() if v is not None})
        return MappingProxyType(merged)

    @classmethod
    def set(cls, **fields: str | None) -> None:
        """Set fields for the rest of the current context.  None values are skipped."""
        _context.set(cls._merged(fields))

    @staticmethod
    def get_all() -> dict[str, str]:
        return dict(_context.get())

    @staticmethod
    def clear() -> None:
        _context.set(_EMPTY)

    @classmethod
    @contextmanager
    def bind(cls, **fields: str | None) -> Iterator[None]:
        """Set fields inside the block and restore the previous ones on exit."""
        token = _context.set(cls._merged(fields))
        try:
            yield
        finally:
            _context.reset(token)


# Attributes every LogRecord has; anything else on a record came from extra=
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "taskName"}


def _json_default(value: Any) -> Any:
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return repr(value)


class StructuredFormatter(logging.Formatter):
    """One JSON object per record: envelope, context fields, extras, error."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_context.get(),
        }
        for key, value in vars(record).items():
            if key not in _RECORD_ATTRS and key not in payload:
                payload[key] = value

        if record.exc_info and record.exc_info[1] is not None:
            exc = record.exc_info[1]
            payload["exc_type"] = type(exc).__name__
            payload["exc_message"] = str(exc)
            code = getattr(exc, "code", None)
            if code is not None:
                payload["exc_code"] = code
            # ProcurementKernelError subclasses keep their details as attributes
            for key, value in vars(exc).items():
                if not key.startswith("_"):
                    payload[f"exc_{key}"] = value
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_json_default)


def get_logger(name: str) -> logging.Logger:
    """Logger under the ``procurement_kernel`` namespace."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


_configured = False
_lock = threading.Lock()


def configure_logging(*, level: int | str = logging.INFO, stream: Any = None) -> None:
    """Attach one JSON handler to the ``procurement_kernel`` logger.  Idempotent."""
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(StructuredFormatter())

    root = logging.getLogger(_LOGGER_PREFIX)
    root.setLevel(level)
    root.propagate = False
    root.addHandler(handler)


def reset_logging() -> None:
    """Undo configure_logging.  Tests only."""
    global _configured
    with _lock:
        _configured = False
    root = logging.getLogger(_LOGGER_PREFIX)
    root.handlers.clear()
    root.setLevel(logging.WARNING)
