"""
Middleware for trace ID propagation and request context management.

This middleware:
- Extracts trace ID from HTTP headers (X-Trace-ID or X-Request-ID)
- Generates new trace ID if not present
- Binds the optional X-Session-ID header to the logging context
- Includes trace ID and request ID in HTTP response headers
- Records RED metrics per request
"""
import time
from typing import Callable

from fastapi import HTTPException, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from .logging import (
    clear_correlation_context,
    generate_request_id,
    generate_trace_id,
    get_logger,
    set_request_id,
    set_session_id,
    set_trace_id,
)
from .metrics import record_http_request

logger = get_logger(__name__)


class TraceIDMiddleware(BaseHTTPMiddleware):
    """
    Middleware to handle trace ID propagation and request context.

    Extracts trace ID from headers (X-Trace-ID or X-Request-ID) or generates
    a new one. Sets trace, request and session IDs in context for structured logging.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """
        Process request and add trace ID context.

        Args:
            request: FastAPI request object
            call_next: Next middleware/handler in chain

        Returns:
            Response with trace ID in headers
        """
        # Priority: X-Trace-ID > X-Request-ID > generate new
        trace_id = (
            request.headers.get("X-Trace-ID") or
            request.headers.get("X-Request-ID") or
            generate_trace_id()
        )
        request_id = generate_request_id()
        session_id = request.headers.get("X-Session-ID")

        set_trace_id(trace_id)
        set_request_id(request_id)
        if session_id:
            set_session_id(session_id)

        start_time = time.time()
        # Exception handlers read the start time from request state
        request.state.start_time = start_time
        logger.info(
            "request_started",
            method=request.method,
            path=request.url.path,
            client_host=request.client.host if request.client else None,
        )

        try:
            response = await call_next(request)

            process_time = time.time() - start_time
            record_http_request(
                method=request.method,
                endpoint=request.url.path,
                status_code=response.status_code,
                duration_seconds=process_time,
            )
            logger.info(
                "request_completed",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                latency_ms=int(process_time * 1000),
            )

            response.headers["X-Trace-ID"] = trace_id
            response.headers["X-Request-ID"] = request_id
            return response

        except HTTPException:
            # Metrics for HTTPExceptions are recorded by the exception handler
            raise
        except Exception as e:
            process_time = time.time() - start_time
            record_http_request(
                method=request.method,
                endpoint=request.url.path,
                status_code=500,
                duration_seconds=process_time,
            )
            logger.error(
                "request_failed",
                method=request.method,
                path=request.url.path,
                error=str(e),
                error_type=type(e).__name__,
                latency_ms=int(process_time * 1000),
                exc_info=True,
            )
            raise
        finally:
            clear_correlation_context()
