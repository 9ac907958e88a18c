# backend/portfolio_tracker/services/valuation/types.py
"""
Internal data types for the valuation engine.

These dataclasses are the engine's value objects. They are NOT Pydantic
schemas - those live in portfolio_tracker/schemas/ for API serialization -
and they are NOT ORM models. The service layer maps database rows into
these snapshots, runs the calculators, and writes the results back.

Design Principles:
- Immutable (frozen=True); calculators return new snapshots via replace()
- Use Decimal for ALL financial values (never float)
- Timestamps are timezone-aware UTC datetimes
- Tunable windows live in ValuationConfig, never as literals in calculators

Type Hierarchy:
    ValuationConfig       - Retention, debounce and performance band settings
    PerformanceBand       - Tolerance band (in days) for one period
    PricePoint            - One entry of a holding's price history
    HoldingMetrics        - Derived cost/value/gain figures
    HoldingSnapshot       - Complete state of one holding
    TradeResult           - Outcome of applying a transaction to a holding
    DailyChange           - Move since the previous recorded price
    PortfolioTotals       - Aggregated portfolio figures
    HistoryEntry          - One point in the portfolio history log
    PerformanceWindow     - Value/percentage change for one period
    PortfolioPerformance  - daily/weekly/monthly/yearly windows
    AlertRule             - Alert threshold configured on a holding
    AlertEvaluation       - Updated rules plus the alerts that fired
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal

from portfolio_tracker.models import AlertType, PriceSource, TransactionType

ZERO = Decimal("0")

# Order matters: it is the order periods are reported in
PERFORMANCE_PERIODS: tuple[str, ...] = ("daily", "weekly", "monthly", "yearly")


# =============================================================================
# CONFIGURATION
# =============================================================================

@dataclass(frozen=True)
class PerformanceBand:
    """
    Acceptable age range for a performance reference point.

    Attributes:
        min_days: Lower bound of the entry age in days (inclusive)
        max_days: Upper bound of the entry age in days (inclusive)
    """

    min_days: float
    max_days: float

    def __post_init__(self) -> None:
        if self.min_days < 0 or self.max_days < self.min_days:
            raise ValueError(
                f"Invalid performance band [{self.min_days}, {self.max_days}]"
            )

    def contains(self, age_days: float) -> bool:
        return self.min_days <= age_days <= self.max_days


def default_performance_bands() -> dict[str, PerformanceBand]:
    return {
        "daily": PerformanceBand(0.8, 1.2),
        "weekly": PerformanceBand(6, 8),
        "monthly": PerformanceBand(28, 32),
        "yearly": PerformanceBand(360, 370),
    }


@dataclass(frozen=True)
class ValuationConfig:
    """
    Single configuration structure passed into every calculator.

    Attributes:
        history_retention_days: Price and portfolio history older than this
            (relative to the write time) is pruned
        alert_debounce_hours: Minimum gap between two firings of one alert
        performance_bands: Tolerance band per performance period
        history_snapshot_interval_hours: An unchanged portfolio value still
            gets a new history entry once this much time has passed
    """

    history_retention_days: int = 90
    alert_debounce_hours: int = 24
    performance_bands: dict[str, PerformanceBand] = field(
        default_factory=default_performance_bands
    )
    history_snapshot_interval_hours: int = 24

    def __post_init__(self) -> None:
        if self.history_retention_days <= 0:
            raise ValueError("history_retention_days must be positive")
        if self.alert_debounce_hours < 0:
            raise ValueError("alert_debounce_hours cannot be negative")
        missing = [p for p in PERFORMANCE_PERIODS if p not in self.performance_bands]
        if missing:
            raise ValueError(f"performance_bands is missing periods: {missing}")


# =============================================================================
# HOLDINGS
# =============================================================================

@dataclass(frozen=True)
class PricePoint:
    """One recorded price observation."""

    date: datetime
    price: Decimal
    volume: int | None = None


@dataclass(frozen=True)
class HoldingMetrics:
    """
    Derived figures for a holding.

    Formulas:
        total_cost = quantity × average_price
        current_value = quantity × current_price
        gain_loss = current_value - total_cost
        gain_loss_percentage = gain_loss / total_cost × 100 (0 if no cost)
    """

    total_cost: Decimal = ZERO
    current_value: Decimal = ZERO
    gain_loss: Decimal = ZERO
    gain_loss_percentage: Decimal = ZERO


@dataclass(frozen=True)
class HoldingSnapshot:
    """
    Complete state of one holding (one symbol within one portfolio).

    Attributes:
        symbol: Uppercase trading symbol
        quantity: Units held (never negative)
        average_price: Weighted average purchase price of held units
        current_price: Latest known market price
        metrics: Derived figures, always consistent with the three inputs
            once a calculator has produced the snapshot
        price_history: Oldest-first price observations within retention
        last_price_update: When current_price was last set
        price_source: Where current_price came from
        realized_gain_loss: Cumulative realized gain/loss from sells
        is_active: Inactive holdings are excluded from aggregation
    """

    symbol: str
    quantity: Decimal = ZERO
    average_price: Decimal = ZERO
    current_price: Decimal = ZERO
    metrics: HoldingMetrics = field(default_factory=HoldingMetrics)
    price_history: tuple[PricePoint, ...] = ()
    last_price_update: datetime | None = None
    price_source: PriceSource | None = None
    realized_gain_loss: Decimal = ZERO
    is_active: bool = True

    @property
    def total_cost(self) -> Decimal:
        return self.metrics.total_cost

    @property
    def current_value(self) -> Decimal:
        return self.metrics.current_value

    @property
    def gain_loss(self) -> Decimal:
        return self.metrics.gain_loss

    @property
    def gain_loss_percentage(self) -> Decimal:
        return self.metrics.gain_loss_percentage

    def with_changes(self, **changes) -> HoldingSnapshot:
        return replace(self, **changes)


@dataclass(frozen=True)
class TradeResult:
    """
    Outcome of applying one transaction to a holding.

    Attributes:
        holding: The holding after the transaction
        filled_quantity: Units actually bought/sold
        unfilled_quantity: Sell units that could not be filled (oversell)
        realized_gain_loss: Realized gain/loss of the sold lot (sells only)
    """

    holding: HoldingSnapshot
    filled_quantity: Decimal
    unfilled_quantity: Decimal = ZERO
    realized_gain_loss: Decimal | None = None

    @property
    def was_clamped(self) -> bool:
        return self.unfilled_quantity > ZERO


@dataclass(frozen=True)
class DailyChange:
    """Change between the current price and the previous recorded price."""

    value: Decimal = ZERO
    percentage: Decimal = ZERO


# =============================================================================
# PORTFOLIO
# =============================================================================

@dataclass(frozen=True)
class PortfolioTotals:
    """Aggregated figures over a portfolio's active holdings."""

    total_value: Decimal = ZERO
    total_cost: Decimal = ZERO
    total_gain_loss: Decimal = ZERO
    total_gain_loss_percentage: Decimal = ZERO
    total_realized_gain_loss: Decimal = ZERO
    holding_count: int = 0


@dataclass(frozen=True)
class HistoryEntry:
    """A point-in-time record of portfolio totals."""

    date: datetime
    total_value: Decimal
    total_cost: Decimal
    gain_loss: Decimal
    gain_loss_percentage: Decimal


@dataclass(frozen=True)
class PerformanceWindow:
    """Change in total value against a reference point."""

    value: Decimal = ZERO
    percentage: Decimal = ZERO


@dataclass(frozen=True)
class PortfolioPerformance:
    """Performance windows, one per period."""

    daily: PerformanceWindow = field(default_factory=PerformanceWindow)
    weekly: PerformanceWindow = field(default_factory=PerformanceWindow)
    monthly: PerformanceWindow = field(default_factory=PerformanceWindow)
    yearly: PerformanceWindow = field(default_factory=PerformanceWindow)

    def get(self, period: str) -> PerformanceWindow:
        if period not in PERFORMANCE_PERIODS:
            raise KeyError(period)
        return getattr(self, period)

    def with_window(self, period: str, window: PerformanceWindow) -> PortfolioPerformance:
        if period not in PERFORMANCE_PERIODS:
            raise KeyError(period)
        return replace(self, **{period: window})

    def as_dict(self) -> dict[str, PerformanceWindow]:
        return {period: getattr(self, period) for period in PERFORMANCE_PERIODS}


@dataclass(frozen=True)
class PortfolioSnapshot:
    """Totals, history log and performance of one portfolio."""

    totals: PortfolioTotals = field(default_factory=PortfolioTotals)
    history: tuple[HistoryEntry, ...] = ()
    performance: PortfolioPerformance = field(default_factory=PortfolioPerformance)


# =============================================================================
# ALERTS
# =============================================================================

@dataclass(frozen=True)
class AlertRule:
    """
    Alert threshold configured on a holding.

    Attributes:
        alert_id: Database ID (None for rules not yet persisted)
        alert_type: Which metric is compared against value
        value: Threshold (price for price_* alerts, percent for percentage_change)
        is_active: Inactive alerts never fire
        last_triggered: When the alert last fired (None if never)
    """

    alert_type: AlertType
    value: Decimal
    is_active: bool = True
    last_triggered: datetime | None = None
    alert_id: int | None = None


@dataclass(frozen=True)
class TriggeredAlert:
    """An alert that fired, with the metric value that caused it."""

    rule: AlertRule
    observed_value: Decimal
    triggered_at: datetime


@dataclass(frozen=True)
class AlertEvaluation:
    """
    Result of evaluating a holding's alerts.

    Attributes:
        rules: All rules, with last_triggered updated on those that fired
        triggered: The alerts that fired during this evaluation
    """

    rules: tuple[AlertRule, ...]
    triggered: tuple[TriggeredAlert, ...] = ()
