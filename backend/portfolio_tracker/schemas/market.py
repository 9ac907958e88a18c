# backend/portfolio_tracker/schemas/market.py
"""
Pydantic schemas for prices, provider passthrough and the market session.

Price updates follow "last tick wins": a missing or non-positive price is
accepted by the schema and ignored by the service (``applied: false``).
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from portfolio_tracker.models import PriceSource
from portfolio_tracker.schemas.alerts import AlertTriggerResponse
from portfolio_tracker.schemas.validators import validate_exchange, validate_symbol
from portfolio_tracker.services.constants import MAX_BATCH_SYMBOLS


# =============================================================================
# PRICE UPDATES
# =============================================================================

class PriceUpdateRequest(BaseModel):
    """Manual price tick for one symbol."""

    price: Decimal | None = Field(
        default=None,
        max_digits=18,
        decimal_places=8,
        description="New price; missing or non-positive prices are ignored",
        examples=["1520.75"]
    )
    source: PriceSource = PriceSource.MANUAL
    volume: int | None = Field(default=None, ge=0)


class HoldingMetricsResponse(BaseModel):
    total_cost: Decimal
    current_value: Decimal
    gain_loss: Decimal
    gain_loss_percentage: Decimal

    model_config = ConfigDict(from_attributes=True)


class RepricedHoldingResponse(BaseModel):
    holding_id: int
    portfolio_id: int
    symbol: str
    current_price: Decimal
    metrics: HoldingMetricsResponse

    model_config = ConfigDict(from_attributes=True)


class PriceUpdateResponse(BaseModel):
    symbol: str
    price: Decimal | None = None
    applied: bool
    holdings: list[RepricedHoldingResponse]
    triggered_alerts: list[AlertTriggerResponse]

    model_config = ConfigDict(from_attributes=True)


class BatchPriceUpdateRequest(BaseModel):
    """Refresh several symbols from the market data provider."""

    symbols: list[str] = Field(
        ...,
        min_length=1,
        max_length=MAX_BATCH_SYMBOLS,
        examples=[["INFY", "TCS"]]
    )
    exchange: str | None = Field(default=None, examples=["NSE", "BSE"])

    @field_validator('symbols')
    @classmethod
    def normalize_symbols(cls, v: list[str]) -> list[str]:
        return [validate_symbol(s) for s in v]

    @field_validator('exchange')
    @classmethod
    def normalize_exchange(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return validate_exchange(v)


class BatchPriceUpdateResponse(BaseModel):
    """
    Partial-success result of a provider refresh.

    Attributes:
        prices: symbol -> applied price
        errors: symbol -> failure message
        portfolio_ids: Portfolios whose holdings were repriced
    """

    prices: dict[str, Decimal]
    errors: dict[str, str]
    timestamp: datetime | None = None
    portfolio_ids: list[int]
    triggered_alerts: list[AlertTriggerResponse]


# =============================================================================
# PROVIDER PASSTHROUGH
# =============================================================================

class QuoteResponse(BaseModel):
    symbol: str
    price: Decimal
    volume: int | None = None
    currency: str | None = None
    timestamp: datetime

    model_config = ConfigDict(from_attributes=True)


class HistoricalPriceResponse(BaseModel):
    date: date
    price: Decimal
    volume: int | None = None

    model_config = ConfigDict(from_attributes=True)


class HistoricalPricesResponse(BaseModel):
    symbol: str
    period: str
    days_fetched: int
    prices: list[HistoricalPriceResponse]

    model_config = ConfigDict(from_attributes=True)


# =============================================================================
# MARKET SESSION & JOB
# =============================================================================

class MarketHours(BaseModel):
    open: str = Field(..., examples=["09:15"])
    close: str = Field(..., examples=["15:30"])


class MarketStatusResponse(BaseModel):
    """Trading session state plus provider request budget."""

    is_open: bool
    next_open: datetime
    next_close: datetime
    timezone: str
    current_time: datetime
    market_hours: MarketHours
    provider: dict[str, Any]
    job: dict[str, Any]


class PriceUpdateRunRequest(BaseModel):
    force: bool = Field(default=False, description="Run even when the market is closed")


class PriceUpdateRunResponse(BaseModel):
    status: str = Field(..., examples=["completed", "skipped", "failed"])
    reason: str | None = None
    started_at: datetime
    finished_at: datetime | None = None
    symbols: list[str]
    updated: dict[str, Any]
    errors: dict[str, str]
    portfolios_refreshed: list[int]
    alerts_triggered: int

    model_config = ConfigDict(from_attributes=True)
