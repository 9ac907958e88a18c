# backend/portfolio_tracker/routers/market.py
"""
Market session and price-update job endpoints.

Endpoints:
- GET  /market/status        Session state, provider budget, job counters
- POST /market/price-update  Run one price-update pass now

The job is never scheduled from here; an external scheduler (cron, a
worker) is expected to call the endpoint or PriceUpdateJob.run_once().
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request

from portfolio_tracker.dependencies import (
    get_authenticated_user,
    get_market_data_provider,
    get_price_update_job,
)
from portfolio_tracker.middleware.rate_limit import (
    limiter,
    RATE_LIMIT_DEFAULT,
    RATE_LIMIT_MARKET_DATA,
)
from portfolio_tracker.models import User
from portfolio_tracker.schemas.market import (
    MarketHours,
    MarketStatusResponse,
    PriceUpdateRunRequest,
    PriceUpdateRunResponse,
)
from portfolio_tracker.services.market_data.base import MarketDataProvider
from portfolio_tracker.services.market_data.price_update_job import PriceUpdateJob

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/market",
    tags=["Market"],
)

CurrentUser = Annotated[User, Depends(get_authenticated_user)]
Job = Annotated[PriceUpdateJob, Depends(get_price_update_job)]
Provider = Annotated[MarketDataProvider, Depends(get_market_data_provider)]


@router.get(
    "/status",
    response_model=MarketStatusResponse,
    summary="Trading session and provider budget",
)
@limiter.limit(RATE_LIMIT_DEFAULT)
def market_status(
        request: Request,  # Required for rate limiting
        current_user: CurrentUser,
        job: Job,
        provider: Provider,
) -> MarketStatusResponse:
    status = job.market_status()
    job_stats = job.stats()
    job_stats.pop("provider", None)
    return MarketStatusResponse(
        is_open=status.is_open,
        next_open=status.next_open,
        next_close=status.next_close,
        timezone=status.timezone,
        current_time=status.current_time,
        market_hours=MarketHours(open=status.market_open, close=status.market_close),
        provider=provider.health_check(),
        job=job_stats,
    )


@router.post(
    "/price-update",
    response_model=PriceUpdateRunResponse,
    summary="Run the price-update job once",
)
@limiter.limit(RATE_LIMIT_MARKET_DATA)
def run_price_update(
        request: Request,
        current_user: CurrentUser,
        job: Job,
        payload: PriceUpdateRunRequest | None = None,
) -> PriceUpdateRunResponse:
    """
    Refresh the stalest active symbols.

    Skipped (``status: skipped``) while a previous run is in progress, or
    when the market is closed unless **force** is set.
    """
    force = payload.force if payload is not None else False
    logger.info(f"Price update requested by user {current_user.id} (force={force})")
    result = job.run_once(force=force)
    return PriceUpdateRunResponse.model_validate(result)
