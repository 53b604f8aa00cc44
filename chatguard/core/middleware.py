"""
Middleware for FastAPI.

Contains:
- CorrelationIDMiddleware: Extracts/generates request correlation IDs
"""

import uuid
from contextvars import ContextVar

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

# Context variable for correlation ID - accessible from any async context
correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")


def get_correlation_id() -> str:
    """Get the current correlation ID from context."""
    return correlation_id_var.get()


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """
    Middleware that extracts or generates a correlation ID for each request.

    The correlation ID is:
    1. Extracted from X-Request-ID or X-Correlation-ID header if present
    2. Generated as a UUID if not present
    3. Stored in request.state.correlation_id for route handlers
    4. Stored in ContextVar for logging filter access
    5. Returned in X-Request-ID response header

    The message-send path calls /moderation/check with its own request ID so
    moderation warnings can be joined with the delivery service's logs.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        correlation_id = (
            request.headers.get("X-Request-ID")
            or request.headers.get("X-Correlation-ID")
            or str(uuid.uuid4())
        )

        request.state.correlation_id = correlation_id
        token = correlation_id_var.set(correlation_id)

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = correlation_id
            return response
        finally:
            correlation_id_var.reset(token)
