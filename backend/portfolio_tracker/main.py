# backend/portfolio_tracker/main.py
"""
FastAPI application entry point.

This file:
- Configures application-wide logging
- Creates the FastAPI application
- Registers middleware (CORS, rate limiting, correlation IDs)
- Registers global exception handlers
- Registers all routers
- Defines global endpoints (health checks)
"""

import logging
from typing import Annotated

from fastapi import FastAPI, Depends, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy.orm import Session

from portfolio_tracker.config import settings
from portfolio_tracker.database import check_connection, get_db
from portfolio_tracker.dependencies import get_market_data_provider
from portfolio_tracker.middleware import (
    CorrelationIdMiddleware,
    limiter,
    rate_limit_exceeded_handler,
    SlowAPIMiddleware,
    RATE_LIMIT_HEALTH,
)
from portfolio_tracker.middleware.rate_limit import DEFAULT_RETRY_AFTER_SECONDS
from portfolio_tracker.routers import (
    alerts_router,
    assets_router,
    market_router,
    portfolios_router,
    transactions_router,
)
from portfolio_tracker.schemas.errors import ErrorDetail, ValidationErrorDetail
from portfolio_tracker.services.exceptions import (
    ServiceError,
    ValidationError,
    InvalidPeriodError,
    NotFoundError,
    MarketDataError,
    ProviderUnavailableError,
    TickerNotFoundError,
    RateLimitError,
    AuthenticationError,
    PermissionDeniedError,
)
from portfolio_tracker.services.market_data.base import MarketDataProvider
from portfolio_tracker.utils import setup_logging

logger = logging.getLogger(__name__)

# =============================================================================
# LOGGING SETUP (must be before app creation)
# =============================================================================

setup_logging()

# =============================================================================
# APPLICATION SETUP
# =============================================================================

app = FastAPI(
    title=settings.app_name,
    description="Portfolio tracking and valuation API",
    version="0.1.0",
)


# =============================================================================
# CORS MIDDLEWARE
# =============================================================================
# Origins are configured via CORS_ORIGINS environment variable

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)


# =============================================================================
# MIDDLEWARE (order matters: last added = first executed)
# =============================================================================

# Attach limiter to app state (required by slowapi)
app.state.limiter = limiter

app.add_middleware(SlowAPIMiddleware)

# Outermost: every log line of the request carries the correlation ID
app.add_middleware(CorrelationIdMiddleware)


# =============================================================================
# GLOBAL EXCEPTION HANDLERS
# =============================================================================
# Services raise domain exceptions with no HTTP knowledge; these handlers
# map them to the ErrorDetail body. Starlette picks the most specific
# handler along the exception's MRO.
# =============================================================================

app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)


def _error_response(
        status_code: int,
        error: str,
        message: str,
        details: dict | None = None,
        headers: dict[str, str] | None = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorDetail(error=error, message=message, details=details).model_dump(),
        headers=headers,
    )


@app.exception_handler(InvalidPeriodError)
async def invalid_period_handler(request: Request, exc: InvalidPeriodError) -> JSONResponse:
    """Handle unknown performance/history periods (400)."""
    logger.warning(f"Invalid period: {exc.period}")
    return _error_response(
        400,
        "InvalidPeriodError",
        str(exc),
        details={"period": exc.period, "valid_options": list(exc.valid_periods)},
    )


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    """Handle business validation errors (400)."""
    logger.warning(f"Validation error: {exc}")
    return _error_response(
        400,
        "ValidationError",
        str(exc),
        details={"field": exc.field} if exc.field else None,
    )


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    """Handle missing portfolios, holdings, transactions and alerts (404)."""
    logger.warning(f"Not found: {exc}")
    return _error_response(
        404,
        type(exc).__name__,
        str(exc),
        details={"resource_type": exc.resource_type, "resource_id": exc.resource_id},
    )


@app.exception_handler(PermissionDeniedError)
async def permission_denied_handler(
    request: Request, exc: PermissionDeniedError
) -> JSONResponse:
    """Handle access to another user's resources (403)."""
    logger.warning(f"Permission denied: {exc.resource_type} {exc.resource_id}")
    return _error_response(
        403,
        "PermissionDeniedError",
        str(exc),
        details={"resource_type": exc.resource_type, "resource_id": exc.resource_id},
    )


@app.exception_handler(AuthenticationError)
async def authentication_error_handler(
    request: Request, exc: AuthenticationError
) -> JSONResponse:
    """Handle invalid or expired tokens (401)."""
    logger.warning(f"Authentication error: {exc}")
    return _error_response(
        401,
        type(exc).__name__,
        str(exc),
        headers={"WWW-Authenticate": "Bearer"},
    )


@app.exception_handler(TickerNotFoundError)
async def ticker_not_found_handler(request: Request, exc: TickerNotFoundError) -> JSONResponse:
    """Handle symbols unknown to the market data provider (404)."""
    logger.warning(f"Ticker not found on provider: {exc.ticker}")
    return _error_response(
        404,
        "TickerNotFoundError",
        str(exc),
        details={"ticker": exc.ticker, "exchange": exc.exchange},
    )


@app.exception_handler(RateLimitError)
async def rate_limit_handler(request: Request, exc: RateLimitError) -> JSONResponse:
    """Handle an exhausted provider request budget (429 with Retry-After)."""
    retry_after = exc.retry_after or DEFAULT_RETRY_AFTER_SECONDS
    logger.warning(f"Rate limit exceeded: {exc}")
    return _error_response(
        429,
        "RateLimitError",
        str(exc),
        details={"retry_after": retry_after, "provider": exc.provider},
        headers={"Retry-After": str(retry_after)},
    )


@app.exception_handler(ProviderUnavailableError)
async def provider_unavailable_handler(
    request: Request, exc: ProviderUnavailableError
) -> JSONResponse:
    """Handle market data provider unavailable (503)."""
    logger.error(f"Provider unavailable: {exc}")
    return _error_response(
        503,
        "ProviderUnavailableError",
        str(exc),
        details={"provider": exc.provider},
    )


@app.exception_handler(MarketDataError)
async def market_data_error_handler(request: Request, exc: MarketDataError) -> JSONResponse:
    """Handle generic market data errors (500)."""
    logger.error(f"Market data error: {exc}")
    return _error_response(500, "MarketDataError", str(exc))


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    """Handle generic service errors (500)."""
    logger.error(f"Service error: {exc}")
    return _error_response(500, "ServiceError", str(exc))


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """
    Handle all HTTPExceptions with consistent error format.

    Converts FastAPI's default {"detail": "..."} format to our standard
    ErrorDetail format for API consistency.
    """
    error_types = {
        400: "BadRequestError",
        401: "UnauthorizedError",
        403: "ForbiddenError",
        404: "NotFoundError",
        405: "MethodNotAllowedError",
        409: "ConflictError",
        422: "ValidationError",
        429: "RateLimitError",
        500: "InternalServerError",
        503: "ServiceUnavailableError",
    }
    return _error_response(
        exc.status_code,
        error_types.get(exc.status_code, "HTTPError"),
        str(exc.detail) if exc.detail else "An error occurred",
        headers=exc.headers,
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Render schema violations (422) as a list of field errors."""
    body = ValidationErrorDetail.from_errors(exc.errors())
    logger.info(f"Request validation failed: {len(body.details)} field error(s) on {request.url.path}")
    return JSONResponse(status_code=422, content=body.model_dump())


# =============================================================================
# ROUTER REGISTRATION
# =============================================================================

app.include_router(portfolios_router)  # /portfolios/*
app.include_router(transactions_router)  # /portfolios/{id}/transactions/*
app.include_router(alerts_router)  # /portfolios/{id}/holdings/{hid}/alerts/*
app.include_router(assets_router)  # /assets/*
app.include_router(market_router)  # /market/*


# =============================================================================
# GLOBAL ENDPOINTS
# =============================================================================

@app.get("/", tags=["Health"])
@limiter.limit(RATE_LIMIT_HEALTH)
def root(request: Request):
    """
    API root - returns basic application info.
    """
    return {
        "message": f"Welcome to {settings.app_name}!",
        "docs": "/docs",
        "redoc": "/redoc",
    }


@app.get("/health", tags=["Health"])
@limiter.limit(RATE_LIMIT_HEALTH)
def health_check(
        request: Request,
        db: Annotated[Session, Depends(get_db)],
        provider: Annotated[MarketDataProvider, Depends(get_market_data_provider)],
):
    """
    Comprehensive health check endpoint.

    Returns HTTP 503 if the database (critical) is unhealthy.
    Returns HTTP 200 with "degraded" status if the market data provider
    (non-critical) has exhausted its request budget.
    """
    checks = {}
    critical_healthy = True
    overall_status = "healthy"

    # Check 1: Database (CRITICAL)
    try:
        check_connection(db)
        checks["database"] = {
            "status": "healthy",
            "critical": True,
        }
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        checks["database"] = {
            "status": "unhealthy",
            "critical": True,
            "error": str(e),
        }
        critical_healthy = False
        overall_status = "unhealthy"

    # Check 2: Market data request budget - NON-CRITICAL
    try:
        provider_health = provider.health_check()
        checks["market_data"] = {
            "status": provider_health["status"],
            "critical": False,
            "provider": provider_health["provider"],
            "budget": provider_health["budget"],
        }
        if provider_health["status"] != "healthy" and overall_status == "healthy":
            overall_status = "degraded"
    except Exception as e:
        logger.warning(f"Market data health check failed: {e}")
        checks["market_data"] = {
            "status": "unknown",
            "critical": False,
            "error": str(e),
        }

    response_data = {
        "status": overall_status,
        "checks": checks,
    }

    if not critical_healthy:
        return JSONResponse(status_code=503, content=response_data)

    return response_data


@app.get("/health/live", tags=["Health"])
@limiter.limit(RATE_LIMIT_HEALTH)
def liveness_check(request: Request):
    """
    Liveness probe endpoint.

    This check should ALWAYS succeed if the process is alive. It does
    NOT check dependencies; use /health/ready for that.
    """
    return {"status": "alive"}


@app.get("/health/ready", tags=["Health"])
@limiter.limit(RATE_LIMIT_HEALTH)
def readiness_check(request: Request, db: Annotated[Session, Depends(get_db)]):
    """
    Readiness probe endpoint.

    Returns HTTP 503 while the database is unreachable.
    """
    try:
        check_connection(db)
        return {"status": "ready"}
    except Exception as e:
        logger.error(f"Readiness check failed: {e}")
        return JSONResponse(
            status_code=503,
            content={
                "status": "not_ready",
                "error": "Database unavailable",
            },
        )
