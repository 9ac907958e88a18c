# backend/portfolio_tracker/routers/assets.py
"""
Price and market data endpoints keyed by symbol.

A price is global for a symbol: a tick is applied to every active holding
of that symbol across all portfolios, each under its portfolio lock.

Endpoints:
- POST /assets/{symbol}/price           Manual price tick (update_price)
- POST /assets/batch-update-prices      Refresh 1-20 symbols from the provider
- GET  /assets/{symbol}/quote           Provider quote passthrough
- GET  /assets/{symbol}/history         Provider daily closes passthrough
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from portfolio_tracker.database import get_db
from portfolio_tracker.dependencies import (
    get_authenticated_user,
    get_market_data_provider,
    get_pricing_service,
)
from portfolio_tracker.middleware.rate_limit import (
    limiter,
    RATE_LIMIT_MARKET_DATA,
    RATE_LIMIT_WRITE,
)
from portfolio_tracker.models import User
from portfolio_tracker.schemas.alerts import AlertTriggerResponse
from portfolio_tracker.schemas.market import (
    BatchPriceUpdateRequest,
    BatchPriceUpdateResponse,
    HistoricalPricesResponse,
    PriceUpdateRequest,
    PriceUpdateResponse,
    QuoteResponse,
)
from portfolio_tracker.schemas.validators import ExchangeQuery, SymbolPath
from portfolio_tracker.services.market_data.base import MarketDataProvider
from portfolio_tracker.services.pricing_service import PricingService

logger = logging.getLogger(__name__)

# =============================================================================
# ROUTER SETUP
# =============================================================================

router = APIRouter(
    prefix="/assets",
    tags=["Assets"],
)

DbSession = Annotated[Session, Depends(get_db)]
CurrentUser = Annotated[User, Depends(get_authenticated_user)]
Pricing = Annotated[PricingService, Depends(get_pricing_service)]
Provider = Annotated[MarketDataProvider, Depends(get_market_data_provider)]


# =============================================================================
# PRICE UPDATES
# =============================================================================

@router.post(
    "/batch-update-prices",
    response_model=BatchPriceUpdateResponse,
    summary="Refresh prices from the market data provider",
)
@limiter.limit(RATE_LIMIT_MARKET_DATA)
def batch_update_prices(
        request: Request,  # Required for rate limiting
        payload: BatchPriceUpdateRequest,
        db: DbSession,
        current_user: CurrentUser,
        pricing: Pricing,
        provider: Provider,
) -> BatchPriceUpdateResponse:
    """
    Fetch a quote for each symbol and apply it to every holding.

    Partial success: symbols the provider could not price are listed in
    **errors** and the rest are still applied.
    """
    result = pricing.update_prices_from_provider(
        db, provider, payload.symbols, exchange=payload.exchange or ""
    )
    return BatchPriceUpdateResponse(
        prices=result.prices,
        errors=result.errors,
        timestamp=result.timestamp,
        portfolio_ids=result.portfolio_ids,
        triggered_alerts=[AlertTriggerResponse.model_validate(a) for a in result.triggered_alerts],
    )


@router.post(
    "/{symbol}/price",
    response_model=PriceUpdateResponse,
    summary="Apply a price to every holding of a symbol",
)
@limiter.limit(RATE_LIMIT_WRITE)
def update_price(
        request: Request,
        symbol: SymbolPath,
        payload: PriceUpdateRequest,
        db: DbSession,
        current_user: CurrentUser,
        pricing: Pricing,
) -> PriceUpdateResponse:
    """
    Apply a price tick.

    A missing or non-positive **price** is ignored (``applied: false``).
    Triggered alerts are returned with the observed value.
    """
    result = pricing.update_price(
        db, symbol, payload.price, payload.source, volume=payload.volume
    )
    return PriceUpdateResponse.model_validate(result)


# =============================================================================
# PROVIDER PASSTHROUGH
# =============================================================================

@router.get(
    "/{symbol}/quote",
    response_model=QuoteResponse,
    summary="Latest quote from the market data provider",
)
@limiter.limit(RATE_LIMIT_MARKET_DATA)
def get_quote(
        request: Request,
        symbol: SymbolPath,
        current_user: CurrentUser,
        provider: Provider,
        exchange: ExchangeQuery = Query(default=None, description="NSE or BSE"),
) -> QuoteResponse:
    quote = provider.get_quote(symbol, exchange or "")
    return QuoteResponse.model_validate(quote)


@router.get(
    "/{symbol}/history",
    response_model=HistoricalPricesResponse,
    summary="Daily closing prices from the market data provider",
)
@limiter.limit(RATE_LIMIT_MARKET_DATA)
def get_price_history(
        request: Request,
        symbol: SymbolPath,
        current_user: CurrentUser,
        provider: Provider,
        period: str = Query(default="1mo", description="1mo, 3mo, 6mo, 1y, 2y, 5y or max"),
        exchange: ExchangeQuery = Query(default=None, description="NSE or BSE"),
) -> HistoricalPricesResponse:
    result = provider.get_historical(symbol, period, exchange or "")
    return HistoricalPricesResponse.model_validate(result)
