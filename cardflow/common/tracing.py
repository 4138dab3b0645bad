# cardflow/common/tracing.py
"""
Correlation ids for logs.

A trace id is bound per HTTP request (X-Request-ID) and handed to the saga as
part of its input, so web, workflow and activity log lines for one birthday
card can be joined on it.
"""
from __future__ import annotations

import logging
import uuid
from contextvars import ContextVar
from typing import Any, Dict, Optional

TRACE_HEADER = "X-Request-ID"

_TRACE_ID: ContextVar[Optional[str]] = ContextVar("_TRACE_ID", default=None)


def new_trace_id() -> str:
    return uuid.uuid4().hex


def get_trace_id() -> Optional[str]:
    return _TRACE_ID.get()


def set_trace_id(value: Optional[str]) -> None:
    _TRACE_ID.set(value)


def bind_trace_id(incoming: Optional[str] = None) -> str:
    """Adopt a caller-supplied id (trimmed, max 64 chars) or mint a new one."""
    candidate = (incoming or "").strip()[:64]
    trace_id = candidate or new_trace_id()
    set_trace_id(trace_id)
    return trace_id


def event_fields(event: str, **fields: Any) -> Dict[str, Any]:
    """Build the `extra` dict for a structured log event."""
    extra: Dict[str, Any] = {"event": event}
    extra.update({k: v for k, v in fields.items() if v is not None})
    if "trace_id" not in extra:
        extra["trace_id"] = get_trace_id() or "-"
    return extra


def log_event(logger: logging.Logger, event: str, **fields: Any) -> None:
    """Emit one structured event; the message repeats the fields for plain-text handlers."""
    extra = event_fields(event, **fields)
    rendered = " ".join(f"{k}={v}" for k, v in extra.items() if k not in ("event", "trace_id"))
    logger.info("%s %s", event, rendered, extra=extra)


class TraceIdFilter(logging.Filter):
    """Give every record a .trace_id; records that carry one in `extra` keep it."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "trace_id", None):
            record.trace_id = get_trace_id() or "-"
        return True


def setup_logging(level: int = logging.INFO) -> None:
    """Configure root logging with a format that prints the trace id."""
    fmt = "%(asctime)s %(levelname)s %(name)s [trace=%(trace_id)s]: %(message)s"
    logging.basicConfig(level=level, format=fmt)
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, TraceIdFilter) for f in handler.filters):
            handler.addFilter(TraceIdFilter())
