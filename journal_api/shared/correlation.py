"""
Correlation ID middleware and utilities for request tracing.

The correlation ID is:
- Read from X-Correlation-ID or X-Request-ID header if present
- Generated as a new id if not present
- Stored in request.state.correlation_id for endpoint access
- Added to response headers for client debugging
- Made available via get_correlation_id() for logging

Usage:
    from journal_api.shared.correlation import CorrelationMiddleware, get_correlation_id

    app.add_middleware(CorrelationMiddleware)
    correlation_id = get_correlation_id()
"""

import contextvars
import uuid
from typing import Callable, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from journal_api.shared.errors import handle_unexpected


_correlation_id_ctx: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "correlation_id",
    default=None,
)

CORRELATION_HEADERS = [
    "X-Correlation-ID",
    "X-Request-ID",
]

RESPONSE_HEADER = "X-Correlation-ID"


def get_correlation_id() -> Optional[str]:
    """Correlation ID of the current request context, or None outside one."""
    return _correlation_id_ctx.get()


def generate_correlation_id() -> str:
    """
    Generate a new correlation ID.

    Uses UUID4 truncated to 8 characters for brevity while maintaining
    sufficient uniqueness for debugging purposes.
    """
    return str(uuid.uuid4())[:8]


class CorrelationMiddleware(BaseHTTPMiddleware):
    """
    Middleware to handle correlation IDs for request tracing.

    For each incoming request:
    1. Checks for existing correlation ID in headers
    2. Generates a new one if not present
    3. Stores it in request.state and context variable
    4. Adds it to response headers, including on the 500 for unhandled errors
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = None
        for header in CORRELATION_HEADERS:
            correlation_id = request.headers.get(header)
            if correlation_id:
                break

        if not correlation_id:
            correlation_id = generate_correlation_id()

        request.state.correlation_id = correlation_id
        token = _correlation_id_ctx.set(correlation_id)

        try:
            try:
                response = await call_next(request)
            except Exception as exc:
                # Unhandled errors become the 500 envelope inside the CORS layer
                response = await handle_unexpected(request, exc)
            response.headers[RESPONSE_HEADER] = correlation_id
            return response
        finally:
            _correlation_id_ctx.reset(token)


class CorrelationContext:
    """
    Context manager for setting correlation ID in non-request contexts.

    Background tasks run after the response has been sent, outside the
    middleware's context, so they re-enter the request's ID explicitly.

    Example:
        with CorrelationContext(request_correlation_id):
            logger.info("Recording usage")
    """

    def __init__(self, correlation_id: Optional[str] = None):
        self.correlation_id = correlation_id or generate_correlation_id()
        self._token: Optional[contextvars.Token] = None

    def __enter__(self) -> str:
        self._token = _correlation_id_ctx.set(self.correlation_id)
        return self.correlation_id

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._token is not None:
            _correlation_id_ctx.reset(self._token)
