# backend/portfolio_tracker/schemas/transactions.py
"""
Pydantic schemas for Transaction validation.

Transactions are immutable audit records. Buys and sells move holdings;
dividend, split and merger records are audit-only.

Validation layers:
- Field constraints: non-negative quantity, price and fees (422)
- Service: future dates, buy/sell with non-positive price, sell with
  non-positive quantity (ValidationError -> 400)

IMPORTANT: All financial values use Decimal for precision.
Never use float for money!
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from portfolio_tracker.models import TransactionSource, TransactionType
from portfolio_tracker.schemas.pagination import PaginationMeta
from portfolio_tracker.schemas.validators import validate_symbol


class TransactionCreate(BaseModel):
    """
    Schema for recording a transaction.

    Buys may name a new symbol; every other type must target an existing
    holding (by ``holding_id`` or ``symbol``).
    """

    transaction_type: TransactionType = Field(
        ...,
        description="buy, sell, dividend, split or merger",
        examples=["buy", "sell"]
    )
    holding_id: int | None = Field(default=None, gt=0)
    symbol: str | None = Field(default=None, examples=["TCS"])

    quantity: Decimal = Field(
        ...,
        ge=0,
        max_digits=18,
        decimal_places=8,
        description="Units traded"
    )
    price: Decimal = Field(
        ...,
        ge=0,
        max_digits=18,
        decimal_places=8,
        description="Price per unit"
    )
    fees: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        max_digits=18,
        decimal_places=8,
        description="Commission and charges"
    )

    date: datetime | None = Field(
        default=None,
        description="When the trade was executed (default: now)",
        examples=["2026-01-15T09:30:00Z"]
    )
    notes: str | None = None
    source: TransactionSource = TransactionSource.MANUAL

    @field_validator('symbol')
    @classmethod
    def normalize_symbol(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return validate_symbol(v)

    @model_validator(mode="after")
    def require_target(self) -> "TransactionCreate":
        if self.holding_id is None and self.symbol is None:
            raise ValueError("Either holding_id or symbol is required")
        return self


class TransactionResponse(BaseModel):
    """A recorded transaction."""

    id: int = Field(..., description="Unique identifier")
    portfolio_id: int
    holding_id: int
    user_id: int

    transaction_type: TransactionType
    symbol: str
    date: datetime

    quantity: Decimal = Field(..., description="Filled quantity")
    price: Decimal
    fees: Decimal
    total_amount: Decimal = Field(..., description="quantity x price")
    net_amount: Decimal = Field(..., description="Buy: total + fees; sell: total - fees")
    realized_gain_loss: Decimal | None = Field(default=None, description="Sells only")

    currency: str
    source: TransactionSource
    notes: str | None = None
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TransactionRecordResponse(BaseModel):
    """
    Result of recording a transaction.

    ``unfilled_quantity`` is non-zero when a sell was clamped.
    """

    transaction: TransactionResponse
    holding_id: int
    holding_quantity: Decimal
    portfolio_total_value: Decimal
    unfilled_quantity: Decimal


class TransactionListResponse(BaseModel):
    items: list[TransactionResponse] = Field(..., description="Transactions for current page, newest first")
    pagination: PaginationMeta


class TransactionSummaryItem(BaseModel):
    """Aggregates of active transactions of one type."""

    transaction_type: TransactionType
    count: int
    total_quantity: Decimal
    total_amount: Decimal
    total_fees: Decimal
    total_realized_gain_loss: Decimal

    model_config = ConfigDict(from_attributes=True)


class TransactionSummaryResponse(BaseModel):
    portfolio_id: int
    items: list[TransactionSummaryItem]
