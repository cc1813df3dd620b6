"""
Correlation IDs for log lines.

HTTP requests get one from the X-Correlation-ID header (or a generated short
uuid). Scheduler ticks run under the timer's name so their log lines can be
told apart from request-driven work.
"""
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")


def get_correlation_id() -> str:
    """Get the correlation ID for the current context."""
    return correlation_id_var.get()


@contextmanager
def correlation_scope(correlation_id: str) -> Iterator[str]:
    """Run a block of code under the given correlation ID."""
    token = correlation_id_var.set(correlation_id)
    try:
        yield correlation_id
    finally:
        correlation_id_var.reset(token)


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Attach a correlation ID to each request and echo it in the response."""

    HEADER_NAME = "X-Correlation-ID"

    async def dispatch(self, request: Request, call_next):
        correlation_id = request.headers.get(self.HEADER_NAME) or str(uuid.uuid4())[:8]

        with correlation_scope(correlation_id):
            response = await call_next(request)
            response.headers[self.HEADER_NAME] = correlation_id
            return response


def correlation_id_filter(record):
    """Loguru filter that adds correlation_id to log records."""
    record["extra"]["correlation_id"] = get_correlation_id() or "-"
    return True
