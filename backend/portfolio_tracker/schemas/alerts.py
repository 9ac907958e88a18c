# backend/portfolio_tracker/schemas/alerts.py
"""
Pydantic schemas for price and gain/loss alerts.

Alert semantics:
- price_above: fires when current_price >= value
- price_below: fires when current_price <= value
- percentage_change: fires when |gain_loss_percentage| >= value

A fired alert stays active; it is debounced instead.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from portfolio_tracker.models import AlertType


class AlertCreate(BaseModel):
    alert_type: AlertType = Field(..., examples=["price_above"])
    value: Decimal = Field(
        ...,
        ge=0,
        max_digits=18,
        decimal_places=8,
        description="Price threshold, or percent for percentage_change"
    )


class AlertUpdate(BaseModel):
    value: Decimal | None = Field(default=None, ge=0, max_digits=18, decimal_places=8)
    is_active: bool | None = None


class AlertResponse(BaseModel):
    id: int
    holding_id: int
    alert_type: AlertType
    value: Decimal
    is_active: bool
    last_triggered: datetime | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AlertTriggerResponse(BaseModel):
    """An alert that fired during a price update."""

    alert_id: int
    holding_id: int
    portfolio_id: int
    symbol: str
    alert_type: AlertType
    value: Decimal
    observed_value: Decimal
    triggered_at: datetime

    model_config = ConfigDict(from_attributes=True)
