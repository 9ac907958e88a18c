# backend/portfolio_tracker/schemas/portfolios.py
"""
Pydantic schemas for portfolios, holdings, performance and history.

These schemas define:
- What data clients must send (Create, HoldingAdd)
- What data clients can update (Update)
- What data the API returns (Response)

Validation layers:
- Field constraints: type, length, pattern, numeric limits
- Field validators: normalization (uppercase, trim)
- Service: ownership, business rules (future dates, non-positive trade
  prices), raised as ValidationError -> 400

IMPORTANT: All financial values use Decimal for precision and are
serialized as strings. Never use float for money!
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from portfolio_tracker.models import AssetType, PriceSource, TransactionSource
from portfolio_tracker.schemas.validators import (
    validate_currency,
    validate_exchange,
    validate_symbol,
)


# =============================================================================
# PORTFOLIO
# =============================================================================

class PortfolioBase(BaseModel):
    """
    Base schema with fields common to Create and Response.
    """

    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        examples=["Long Term", "Dividend Stocks"],
        description="Name of the portfolio"
    )

    description: str | None = Field(
        default=None,
        max_length=500,
        description="Free-form description"
    )

    currency: str = Field(
        default="INR",
        min_length=3,
        max_length=3,
        examples=["INR", "USD"],
        description="Reporting currency (ISO 4217)"
    )

    is_default: bool = Field(
        default=False,
        description="Whether this is the user's default portfolio"
    )

    @field_validator('name')
    @classmethod
    def normalize_name(cls, v: str) -> str:
        """Normalize name: trim whitespace."""
        v = v.strip()
        if not v:
            raise ValueError("Name cannot be blank")
        return v

    @field_validator('currency')
    @classmethod
    def validate_and_normalize_currency(cls, v: str) -> str:
        return validate_currency(v)


class PortfolioCreate(PortfolioBase):
    """Schema for creating a new portfolio. The owner comes from the token."""


class PortfolioUpdate(BaseModel):
    """
    Schema for updating an existing portfolio.

    All fields are optional; the client only sends fields to update.
    Ownership cannot be changed.
    """

    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    is_default: bool | None = None

    @field_validator('name')
    @classmethod
    def normalize_name(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        if not v:
            raise ValueError("Name cannot be blank")
        return v

    @field_validator('currency')
    @classmethod
    def validate_and_normalize_currency(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return validate_currency(v)


class PortfolioResponse(PortfolioBase):
    """
    Portfolio with its stored aggregates.

    Totals cover active holdings; realized gain/loss covers every holding
    the portfolio ever sold from.
    """

    id: int = Field(..., description="Unique identifier")
    user_id: int = Field(..., description="ID of the portfolio owner")

    total_value: Decimal
    total_cost: Decimal
    total_gain_loss: Decimal
    total_gain_loss_percentage: Decimal
    total_realized_gain_loss: Decimal

    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PortfolioListResponse(BaseModel):
    items: list[PortfolioResponse] = Field(..., description="The user's portfolios")
    total: int = Field(..., ge=0)


class PortfolioSummaryItemResponse(BaseModel):
    portfolio_id: int
    name: str
    currency: str

    total_value: Decimal
    total_cost: Decimal
    total_gain_loss: Decimal
    total_gain_loss_percentage: Decimal
    holding_count: int


class PortfolioSummaryResponse(BaseModel):
    """
    Totals across all of the user's portfolios.

    Amounts are summed as stored; portfolios in different currencies are
    not converted.
    """

    total_portfolios: int = Field(..., ge=0)
    total_holdings: int = Field(..., ge=0)

    total_value: Decimal
    total_cost: Decimal
    total_gain_loss: Decimal
    total_gain_loss_percentage: Decimal
    total_realized_gain_loss: Decimal

    portfolios: list[PortfolioSummaryItemResponse]


# =============================================================================
# HOLDINGS
# =============================================================================

class DailyChangeResponse(BaseModel):
    """Change between the current price and the previous recorded price."""

    value: Decimal
    percentage: Decimal


class HoldingResponse(BaseModel):
    """
    One position with its derived metrics.

    Metrics always reconcile with (quantity, average_price, current_price).
    """

    id: int
    portfolio_id: int
    symbol: str
    name: str | None = None
    asset_type: AssetType
    exchange: str | None = None
    currency: str
    notes: str | None = None
    is_active: bool

    quantity: Decimal
    average_price: Decimal
    current_price: Decimal

    total_cost: Decimal
    current_value: Decimal
    gain_loss: Decimal
    gain_loss_percentage: Decimal
    realized_gain_loss: Decimal

    last_price_update: datetime | None = None
    price_source: PriceSource | None = None
    daily_change: DailyChangeResponse | None = None

    model_config = ConfigDict(from_attributes=True)


class PortfolioDetailResponse(PortfolioResponse):
    """Portfolio with its active holdings and diversity score."""

    holdings: list[HoldingResponse] = Field(default_factory=list)
    diversity_score: int = Field(..., ge=0, le=100)


class HoldingAdd(BaseModel):
    """
    Buy into a holding.

    Identify the holding either by ``holding_id`` (existing position) or
    by ``symbol`` (existing or new position).
    """

    holding_id: int | None = Field(default=None, gt=0)
    symbol: str | None = Field(default=None, examples=["INFY", "RELIANCE"])

    quantity: Decimal = Field(
        ...,
        ge=0,
        max_digits=18,
        decimal_places=8,
        description="Units bought",
        examples=["10", "2.5"]
    )
    price: Decimal = Field(
        ...,
        ge=0,
        max_digits=18,
        decimal_places=8,
        description="Price per unit",
        examples=["1450.50"]
    )
    fees: Decimal = Field(default=Decimal("0"), ge=0, max_digits=18, decimal_places=8)

    # New-holding details (ignored for existing holdings)
    name: str | None = Field(default=None, max_length=100)
    asset_type: AssetType | None = None
    exchange: str | None = None

    date: datetime | None = Field(default=None, description="Trade time (default: now)")
    notes: str | None = None
    source: TransactionSource = TransactionSource.MANUAL

    @field_validator('symbol')
    @classmethod
    def normalize_symbol(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return validate_symbol(v)

    @field_validator('exchange')
    @classmethod
    def normalize_exchange(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return validate_exchange(v)

    @model_validator(mode="after")
    def require_target(self) -> "HoldingAdd":
        if self.holding_id is None and self.symbol is None:
            raise ValueError("Either holding_id or symbol is required")
        return self


class HoldingChangeResponse(BaseModel):
    """
    Result of a buy or sell.

    ``unfilled_quantity`` is non-zero when a sell asked for more units
    than were held.
    """

    portfolio: PortfolioResponse
    holding: HoldingResponse
    transaction_id: int
    filled_quantity: Decimal
    unfilled_quantity: Decimal
    realized_gain_loss: Decimal | None = None


# =============================================================================
# PERFORMANCE & HISTORY
# =============================================================================

class PerformanceWindowResponse(BaseModel):
    value: Decimal
    percentage: Decimal


class PerformanceResponse(BaseModel):
    """Portfolio totals plus performance windows (all, or the requested one)."""

    portfolio_id: int
    period: str | None = None

    total_value: Decimal
    total_cost: Decimal
    total_gain_loss: Decimal
    total_gain_loss_percentage: Decimal
    total_realized_gain_loss: Decimal

    holding_count: int
    diversity_score: int
    performance: dict[str, PerformanceWindowResponse]


class HistoryEntryResponse(BaseModel):
    date: datetime
    total_value: Decimal
    total_cost: Decimal
    gain_loss: Decimal
    gain_loss_percentage: Decimal

    model_config = ConfigDict(from_attributes=True)


class PortfolioHistoryResponse(BaseModel):
    """History log, oldest first, within the retention window."""

    portfolio_id: int
    entries: list[HistoryEntryResponse]


class PortfolioRefreshResponse(BaseModel):
    """Totals, latest history and performance after a refresh."""

    portfolio_id: int
    total_value: Decimal
    total_cost: Decimal
    total_gain_loss: Decimal
    total_gain_loss_percentage: Decimal
    total_realized_gain_loss: Decimal
    history_entries: int
    latest_entry: HistoryEntryResponse | None = None
    performance: dict[str, PerformanceWindowResponse]
