# backend/portfolio_tracker/middleware/rate_limit.py
"""
Rate limiting for the HTTP API.

This module provides rate limiting using slowapi to:
- Keep a single client from monopolizing the workers
- Protect the market data provider's request budget from bursts
- Leave generous headroom for health probes

Rate limits are configured in portfolio_tracker/services/constants.py:
- RATE_LIMIT_DEFAULT: reads
- RATE_LIMIT_WRITE: portfolio mutations
- RATE_LIMIT_MARKET_DATA: endpoints that call the provider
- RATE_LIMIT_HEALTH: health probes

Key by: Client IP address (X-Forwarded-For only from trusted proxies)
Storage: In-memory (per worker process)

Usage:
    from portfolio_tracker.middleware.rate_limit import limiter, RATE_LIMIT_WRITE

    @router.post("/{portfolio_id}/holdings")
    @limiter.limit(RATE_LIMIT_WRITE)
    def add_holding(request: Request, ...):
        ...
"""

import logging

from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from portfolio_tracker.config import settings
from portfolio_tracker.schemas.errors import ErrorDetail
from portfolio_tracker.services.constants import (
    RATE_LIMIT_DEFAULT,
    RATE_LIMIT_WRITE,
    RATE_LIMIT_MARKET_DATA,
    RATE_LIMIT_HEALTH,
)

logger = logging.getLogger(__name__)

# Seconds suggested to clients in Retry-After when slowapi gives no window
DEFAULT_RETRY_AFTER_SECONDS = 60


def _is_trusted_proxy(request: Request) -> bool:
    """
    Check if forwarding headers on this request may be trusted.

    True when TRUST_PROXY_HEADERS is set (deployments behind a load
    balancer) or the immediate peer is listed in TRUSTED_PROXY_IPS.
    """
    if settings.trust_proxy_headers:
        return True

    return get_remote_address(request) in settings.trusted_proxy_ips


def _get_client_ip(request: Request) -> str:
    """
    Extract the client IP address used as the rate limit key.

    Forwarded headers are only honored from trusted proxies; otherwise a
    client could pick its own bucket by sending X-Forwarded-For.
    """
    if _is_trusted_proxy(request):
        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            # First address is the original client
            return forwarded_for.split(",")[0].strip()

        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            return real_ip

    return get_remote_address(request)


# =============================================================================
# LIMITER INSTANCE
# =============================================================================

limiter = Limiter(
    key_func=_get_client_ip,
    default_limits=[RATE_LIMIT_DEFAULT],
    enabled=not settings.is_test,
)


# =============================================================================
# RATE LIMIT EXCEEDED HANDLER
# =============================================================================

async def rate_limit_exceeded_handler(
    request: Request, exc: RateLimitExceeded
) -> JSONResponse:
    """
    Return slowapi's 429 in the standard ErrorDetail format.

    Includes a Retry-After header; the window length is taken from the
    exceeded limit when slowapi exposes it.
    """
    limit_info = str(exc.detail) if exc.detail else "Rate limit exceeded"

    retry_after = DEFAULT_RETRY_AFTER_SECONDS
    limit = getattr(exc, "limit", None)
    if limit is not None and getattr(limit, "limit", None) is not None:
        retry_after = int(limit.limit.get_expiry())

    logger.warning(f"Rate limit exceeded for {_get_client_ip(request)}: {limit_info}")

    body = ErrorDetail(
        error="RateLimitError",
        message=f"Too many requests. {limit_info}",
        details={"retry_after": retry_after, "path": request.url.path},
    )
    return JSONResponse(
        status_code=429,
        content=body.model_dump(),
        headers={"Retry-After": str(retry_after)},
    )


__all__ = [
    "limiter",
    "rate_limit_exceeded_handler",
    "SlowAPIMiddleware",
    "RATE_LIMIT_DEFAULT",
    "RATE_LIMIT_WRITE",
    "RATE_LIMIT_MARKET_DATA",
    "RATE_LIMIT_HEALTH",
]
