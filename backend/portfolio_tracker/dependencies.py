# backend/portfolio_tracker/dependencies.py
"""
Dependency injection module for FastAPI services.

This module provides singleton service instances that are shared across
all requests. Sharing matters here: the per-portfolio lock registry must
be the same object for every request in the process, and the market data
provider owns the request budget that all callers draw from.

Services are lazily initialized on first use to avoid import-time side effects.

Usage in routers:
    from portfolio_tracker.dependencies import (
        get_portfolio_service,
        get_authenticated_user,
    )

    @router.post("/")
    def create_portfolio(
        service: Annotated[PortfolioService, Depends(get_portfolio_service)],
        current_user: Annotated[User, Depends(get_authenticated_user)],
    ):
        ...
"""

import logging
from functools import lru_cache
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from portfolio_tracker.config import settings
from portfolio_tracker.database import get_db, SessionLocal
from portfolio_tracker.models import User
from portfolio_tracker.services.auth.jwt_handler import JWTHandler
from portfolio_tracker.services.exceptions import (
    TokenExpiredError,
    InvalidCredentialsError,
)
from portfolio_tracker.services.market_data.base import MarketDataProvider
from portfolio_tracker.services.market_data.price_update_job import PriceUpdateJob
from portfolio_tracker.services.market_data.yahoo import YahooFinanceProvider
from portfolio_tracker.services.portfolio_service import PortfolioService
from portfolio_tracker.services.pricing_service import PricingService
from portfolio_tracker.services.valuation import (
    PerformanceBand,
    ValuationConfig,
    ValuationService,
)
from portfolio_tracker.utils.context import set_user_id

logger = logging.getLogger(__name__)

# HTTP Bearer scheme for JWT authentication
_bearer_scheme = HTTPBearer(auto_error=False)

__all__ = [
    "get_db",
    "get_valuation_config",
    "get_valuation_service",
    "get_portfolio_service",
    "get_pricing_service",
    "get_market_data_provider",
    "get_price_update_job",
    "get_current_user",
    "get_authenticated_user",
    "clear_service_caches",
]


# =============================================================================
# SINGLETON SERVICE INSTANCES
# =============================================================================
# Order matters: define dependencies before dependents
# 1. get_valuation_config (settings only)
# 2. get_valuation_service (depends on config)
# 3. get_portfolio_service / get_pricing_service (depend on valuation)
# 4. get_market_data_provider (settings only)
# 5. get_price_update_job (depends on provider, pricing)


@lru_cache(maxsize=1)
def get_valuation_config() -> ValuationConfig:
    """Build the engine configuration from application settings."""
    return ValuationConfig(
        history_retention_days=settings.history_retention_days,
        alert_debounce_hours=settings.alert_debounce_hours,
        performance_bands={
            period: PerformanceBand(low, high)
            for period, (low, high) in settings.performance_bands.items()
        },
        history_snapshot_interval_hours=settings.history_snapshot_interval_hours,
    )


@lru_cache(maxsize=1)
def get_valuation_service() -> ValuationService:
    """Get the singleton ValuationService instance."""
    logger.debug("Initializing singleton ValuationService")
    return ValuationService(config=get_valuation_config())


@lru_cache(maxsize=1)
def get_portfolio_service() -> PortfolioService:
    """
    Get the singleton PortfolioService instance.

    Uses the process-wide portfolio lock registry, shared with the
    pricing service.
    """
    logger.debug("Initializing singleton PortfolioService")
    return PortfolioService(valuation_service=get_valuation_service())


@lru_cache(maxsize=1)
def get_pricing_service() -> PricingService:
    """Get the singleton PricingService instance."""
    logger.debug("Initializing singleton PricingService")
    return PricingService(valuation_service=get_valuation_service())


@lru_cache(maxsize=1)
def get_market_data_provider() -> MarketDataProvider:
    """
    Get the singleton market data provider instance.

    The provider owns its request budget, so sharing one instance keeps
    the per-minute limit global for the process.
    """
    logger.debug("Initializing singleton YahooFinanceProvider")
    return YahooFinanceProvider(
        timeout=settings.market_data_timeout,
        max_requests_per_minute=settings.market_data_max_requests_per_minute,
    )


@lru_cache(maxsize=1)
def get_price_update_job() -> PriceUpdateJob:
    """
    Get the singleton PriceUpdateJob instance.

    The job opens its own sessions, so its counters and run lock outlive
    any single request.
    """
    logger.debug("Initializing singleton PriceUpdateJob")
    return PriceUpdateJob(
        session_factory=SessionLocal,
        provider=get_market_data_provider(),
        pricing_service=get_pricing_service(),
        batch_size=settings.price_update_batch_size,
        market_timezone=settings.market_timezone,
        market_open=settings.market_open,
        market_close=settings.market_close,
    )


# =============================================================================
# AUTHENTICATION DEPENDENCIES
# =============================================================================


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(_bearer_scheme)],
    db: Annotated[Session, Depends(get_db)],
) -> User:
    """
    Dependency that extracts and validates the current user from JWT.

    Raises:
        HTTPException 401: If no token provided or token is invalid/expired
        HTTPException 401: If user not found or inactive
    """
    if credentials is None:
        raise _unauthorized("Not authenticated")

    try:
        user_id = JWTHandler.get_user_id(credentials.credentials)
    except TokenExpiredError:
        raise _unauthorized("Token has expired")
    except InvalidCredentialsError as e:
        raise _unauthorized(str(e))

    user = db.get(User, user_id)
    if user is None:
        raise _unauthorized("User not found")

    if not user.is_active:
        raise _unauthorized("User account is inactive")

    return user


async def get_authenticated_user(
    user: Annotated[User, Depends(get_current_user)],
) -> User:
    """
    Resolve the current user and bind it to the request context.

    Runs on the event loop so the user ID set here is visible to the
    logging filter inside sync endpoints (which run in copies of this
    context).
    """
    set_user_id(user.id)
    return user


# =============================================================================
# CACHE MANAGEMENT
# =============================================================================

def clear_service_caches() -> None:
    """
    Clear all service caches.

    Useful for testing or when you need to reset state.
    """
    get_valuation_config.cache_clear()
    get_valuation_service.cache_clear()
    get_portfolio_service.cache_clear()
    get_pricing_service.cache_clear()
    get_market_data_provider.cache_clear()
    get_price_update_job.cache_clear()
    logger.info("Cleared all service singleton caches")
