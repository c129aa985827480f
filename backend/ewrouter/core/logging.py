"""
Structured logging for the router.

Every event is a structlog event dict rendered as JSON (or console output in
development) carrying:
- timestamp, level, logger name
- service
- trace_id / request_id, bound per HTTP request by the trace middleware
- session_id, bound from X-Session-ID when the caller sends one

Logs go to stderr; the CLI scripts reserve stdout for their JSON result.
"""
import logging
import sys
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

import structlog
from structlog.types import Processor

trace_id_var: ContextVar[Optional[str]] = ContextVar("trace_id", default=None)
request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
session_id_var: ContextVar[Optional[str]] = ContextVar("session_id", default=None)

# Order in which correlation ids appear in each event
CORRELATION_VARS: Tuple[Tuple[str, ContextVar], ...] = (
    ("trace_id", trace_id_var),
    ("request_id", request_id_var),
    ("session_id", session_id_var),
)

SERVICE_NAME = "ewrouter"


def correlation_context() -> Dict[str, str]:
    """Correlation ids currently bound, unset ones omitted."""
    return {key: var.get() for key, var in CORRELATION_VARS if var.get()}


def clear_correlation_context() -> None:
    for _, var in CORRELATION_VARS:
        var.set(None)


def add_trace_context(
    logger: structlog.BoundLogger,
    method_name: str,
    event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """structlog processor: correlation ids, service name and a UTC timestamp."""
    event_dict.update(correlation_context())
    event_dict["service"] = SERVICE_NAME
    event_dict.setdefault("timestamp", datetime.now(timezone.utc).isoformat())
    return event_dict


def configure_logging(
    log_level: str = "INFO",
    service_name: Optional[str] = None,
    json_output: bool = True
) -> None:
    """
    Configure structlog on top of stdlib logging.

    Args:
        log_level: Logging level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        service_name: Overrides SERVICE_NAME
        json_output: JSON lines when True, console renderer otherwise
    """
    global SERVICE_NAME
    if service_name:
        SERVICE_NAME = service_name

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_trace_context,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer(),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, log_level.upper()),
    )


def get_logger(name: Optional[str] = None) -> structlog.BoundLogger:
    return structlog.get_logger(name)


def set_trace_id(trace_id: Optional[str]) -> None:
    trace_id_var.set(trace_id)


def get_trace_id() -> Optional[str]:
    return trace_id_var.get()


def set_request_id(request_id: Optional[str]) -> None:
    request_id_var.set(request_id)


def get_request_id() -> Optional[str]:
    return request_id_var.get()


def set_session_id(session_id: Optional[str]) -> None:
    """Bind the caller's classification session (None clears it)."""
    session_id_var.set(session_id)


def get_session_id() -> Optional[str]:
    return session_id_var.get()


def generate_trace_id() -> str:
    return str(uuid.uuid4())


def generate_request_id() -> str:
    return str(uuid.uuid4())
