# backend/portfolio_tracker/middleware/correlation.py
"""
Correlation ID middleware for request tracing.

Every log line written while a request is handled carries the request's
correlation ID, so a single request can be followed through the router,
the services and the valuation engine.

Correlation ID Sources (in order of precedence):
1. X-Correlation-ID header (from client or upstream service)
2. X-Request-ID header (alternative header name)
3. Generated UUID if neither header is present

The ID is echoed back in the X-Correlation-ID response header. The
previous context values are restored when the response leaves the
middleware.

Usage:
    from fastapi import FastAPI
    from portfolio_tracker.middleware import CorrelationIdMiddleware

    app = FastAPI()
    app.add_middleware(CorrelationIdMiddleware)
"""

from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from portfolio_tracker.utils.context import correlation_scope, new_correlation_id

CORRELATION_ID_HEADER = "X-Correlation-ID"
REQUEST_ID_HEADER = "X-Request-ID"

# Longer incoming IDs are replaced, so clients cannot bloat every log line
MAX_CORRELATION_ID_LENGTH = 128


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """
    Assigns a correlation ID to every request.

    The ID is stored in a contextvar (see utils.context) for the logging
    filter and returned to the client in the response headers.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Response],
    ) -> Response:
        with correlation_scope(self._get_correlation_id(request)) as correlation_id:
            response = await call_next(request)
        response.headers[CORRELATION_ID_HEADER] = correlation_id
        return response

    @staticmethod
    def _get_correlation_id(request: Request) -> str:
        for header in (CORRELATION_ID_HEADER, REQUEST_ID_HEADER):
            value = request.headers.get(header, "").strip()
            if value and len(value) <= MAX_CORRELATION_ID_LENGTH:
                return value

        return new_correlation_id()
