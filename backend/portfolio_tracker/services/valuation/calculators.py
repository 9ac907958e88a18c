# backend/portfolio_tracker/services/valuation/calculators.py
"""
Point-in-time valuation calculators.

Each calculator follows the Single Responsibility Principle:
- HoldingMetricsCalculator: Derives cost/value/gain figures for a holding
- PriceUpdateCalculator: Applies a market price tick to a holding
- TransactionCalculator: Applies buy/sell transactions (average cost method)
- DailyChangeCalculator: Move since the previously recorded price
- PortfolioAggregator: Sums active holdings into portfolio totals

Design Principles:
- Each calculator does ONE thing well
- Stateless apart from configuration; inputs are never mutated
- Receives all dependencies explicitly (including "now")
- Returns new frozen snapshots
- Uses Decimal for ALL financial calculations

Usage:
    metrics = HoldingMetricsCalculator()
    holding = metrics.apply(HoldingSnapshot(symbol="INFY", quantity=Decimal("10"),
                                            average_price=Decimal("100")))

    prices = PriceUpdateCalculator(config)
    holding = prices.apply(holding, Decimal("120"), PriceSource.MANUAL, now)
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime, timedelta
from decimal import Decimal

from portfolio_tracker.services.constants import (
    CURRENCY_PRECISION,
    DISPLAY_PERCENTAGE_PRECISION,
    DIVERSITY_SCORE_THRESHOLDS,
    HUNDRED,
    MAX_DIVERSITY_SCORE,
    SHARE_PRECISION,
    ZERO,
)
from portfolio_tracker.services.exceptions import ValidationError
from portfolio_tracker.services.valuation.types import (
    DailyChange,
    HoldingMetrics,
    HoldingSnapshot,
    PortfolioTotals,
    PricePoint,
    PriceSource,
    TradeResult,
    TransactionType,
    ValuationConfig,
)

logger = logging.getLogger(__name__)


# =============================================================================
# HELPERS
# =============================================================================

def percentage_of(value: Decimal, base: Decimal) -> Decimal:
    """
    Express value as a percentage of base.

    Returns 0 when base is not positive, so a zero cost basis never
    produces a division error.
    """
    if base <= ZERO:
        return ZERO.quantize(DISPLAY_PERCENTAGE_PRECISION)
    return (value / base * HUNDRED).quantize(DISPLAY_PERCENTAGE_PRECISION)


def diversity_score(active_holding_count: int) -> int:
    """
    Coarse diversification score (0-100) from the number of active holdings.

    0 holdings → 0, 1 → 20, up to 3 → 40, up to 5 → 60, up to 10 → 80,
    more → 100.
    """
    for max_count, score in DIVERSITY_SCORE_THRESHOLDS:
        if active_holding_count <= max_count:
            return score
    return MAX_DIVERSITY_SCORE


# =============================================================================
# HOLDING METRICS CALCULATOR
# =============================================================================

class HoldingMetricsCalculator:
    """
    Calculates derived figures for a single holding.

    Formula:
        total_cost = quantity × average_price
        current_value = quantity × current_price
        gain_loss = current_value - total_cost
        gain_loss_percentage = (gain_loss / total_cost) × 100

    Note:
        gain_loss is computed from the rounded amounts so that
        portfolio sums reconcile exactly.
    """

    def calculate(
            self,
            quantity: Decimal,
            average_price: Decimal,
            current_price: Decimal,
    ) -> HoldingMetrics:
        """
        Calculate metrics from the three holding inputs.

        Args:
            quantity: Units held
            average_price: Weighted average purchase price
            current_price: Latest market price

        Returns:
            HoldingMetrics with money rounded to 0.01
        """
        total_cost = (quantity * average_price).quantize(CURRENCY_PRECISION)
        current_value = (quantity * current_price).quantize(CURRENCY_PRECISION)
        gain_loss = current_value - total_cost

        return HoldingMetrics(
            total_cost=total_cost,
            current_value=current_value,
            gain_loss=gain_loss,
            gain_loss_percentage=percentage_of(gain_loss, total_cost),
        )

    def apply(self, holding: HoldingSnapshot) -> HoldingSnapshot:
        """Return a copy of holding with metrics recomputed."""
        metrics = self.calculate(
            holding.quantity, holding.average_price, holding.current_price
        )
        return holding.with_changes(metrics=metrics)


# =============================================================================
# PRICE UPDATE CALCULATOR
# =============================================================================

class PriceUpdateCalculator:
    """
    Applies a market price observation to a holding.

    Steps:
        1. Missing or non-positive price → holding returned unchanged
        2. Set current_price, last_price_update and price_source
        3. Append to price_history only if the price changed
        4. Prune price_history older than the retention window
        5. Recompute metrics
    """

    def __init__(
            self,
            config: ValuationConfig,
            metrics_calculator: HoldingMetricsCalculator | None = None,
    ) -> None:
        self._config = config
        self._metrics = metrics_calculator or HoldingMetricsCalculator()

    def apply(
            self,
            holding: HoldingSnapshot,
            price: Decimal | None,
            source: PriceSource,
            now: datetime,
            volume: int | None = None,
    ) -> HoldingSnapshot:
        """
        Apply a price tick.

        Args:
            holding: Holding before the tick
            price: Observed price (ignored if None or <= 0)
            source: Where the price came from
            now: Observation time (timezone-aware)
            volume: Traded volume, if the source reports one

        Returns:
            Updated holding (or the same object for a rejected price)
        """
        if price is None or price <= ZERO:
            logger.debug(f"Ignoring non-positive price {price} for {holding.symbol}")
            return holding

        history = list(holding.price_history)
        if not history or history[-1].price != price:
            history.append(PricePoint(date=now, price=price, volume=volume))

        updated = holding.with_changes(
            current_price=price,
            last_price_update=now,
            price_source=source,
            price_history=prune_price_history(
                history, now, self._config.history_retention_days
            ),
        )
        return self._metrics.apply(updated)


def prune_price_history(
        history: Iterable[PricePoint],
        now: datetime,
        retention_days: int,
) -> tuple[PricePoint, ...]:
    """Drop price points older than retention_days before now."""
    cutoff = now - timedelta(days=retention_days)
    return tuple(point for point in history if point.date >= cutoff)


# =============================================================================
# TRANSACTION CALCULATOR
# =============================================================================

def validate_transaction(
        trade_type: TransactionType,
        quantity: Decimal,
        price: Decimal,
        fees: Decimal,
        date: datetime,
        now: datetime,
) -> None:
    """
    Reject malformed transactions before they touch a holding.

    Raises:
        ValidationError: On negative amounts, a future date, a buy/sell
            without a positive price, or a sell without a positive quantity
    """
    if quantity < ZERO:
        raise ValidationError("Quantity cannot be negative", field="quantity")
    if price < ZERO:
        raise ValidationError("Price cannot be negative", field="price")
    if fees < ZERO:
        raise ValidationError("Fees cannot be negative", field="fees")
    if date > now:
        raise ValidationError("Transaction date cannot be in the future", field="date")

    if trade_type in (TransactionType.BUY, TransactionType.SELL) and price <= ZERO:
        raise ValidationError(
            f"{trade_type.value.capitalize()} price must be positive", field="price"
        )
    if trade_type == TransactionType.SELL and quantity <= ZERO:
        raise ValidationError("Sell quantity must be positive", field="quantity")


class TransactionCalculator:
    """
    Applies transactions to a holding using the weighted average cost method.

    BUY:
        new_average = (old_qty × old_avg + qty × price) / (old_qty + qty)
        new_qty = old_qty + qty
        Fees are not part of the average. Buying zero units leaves the
        average untouched.

    SELL:
        filled = min(qty, old_qty); new_qty = old_qty - filled
        average_price is unchanged
        realized = filled × price - fees - filled × average_price

    DIVIDEND / SPLIT / MERGER:
        Recorded for audit only; the holding is unchanged.
    """

    def __init__(self, metrics_calculator: HoldingMetricsCalculator | None = None) -> None:
        self._metrics = metrics_calculator or HoldingMetricsCalculator()

    def apply(
            self,
            holding: HoldingSnapshot,
            trade_type: TransactionType,
            quantity: Decimal,
            price: Decimal,
            fees: Decimal = ZERO,
    ) -> TradeResult:
        """
        Apply one transaction.

        Args:
            holding: Holding before the transaction
            trade_type: Kind of transaction
            quantity: Units traded
            price: Price per unit
            fees: Commission paid

        Returns:
            TradeResult with the new holding and fill details
        """
        if trade_type == TransactionType.BUY:
            return self._buy(holding, quantity, price)
        if trade_type == TransactionType.SELL:
            return self._sell(holding, quantity, price, fees)

        return TradeResult(holding=holding, filled_quantity=quantity)

    def _buy(
            self,
            holding: HoldingSnapshot,
            quantity: Decimal,
            price: Decimal,
    ) -> TradeResult:
        new_quantity = holding.quantity + quantity

        if quantity == ZERO or new_quantity == ZERO:
            new_average = holding.average_price
        else:
            new_average = (
                (holding.quantity * holding.average_price + quantity * price)
                / new_quantity
            ).quantize(SHARE_PRECISION)

        updated = holding.with_changes(quantity=new_quantity, average_price=new_average)
        return TradeResult(holding=self._metrics.apply(updated), filled_quantity=quantity)

    def _sell(
            self,
            holding: HoldingSnapshot,
            quantity: Decimal,
            price: Decimal,
            fees: Decimal,
    ) -> TradeResult:
        filled = min(quantity, holding.quantity)
        unfilled = quantity - filled

        if unfilled > ZERO:
            logger.warning(
                f"Sell of {quantity} {holding.symbol} exceeds held {holding.quantity}; "
                f"clamping to {filled} (unfilled {unfilled})"
            )

        realized = (
            filled * price - fees - filled * holding.average_price
        ).quantize(CURRENCY_PRECISION)

        updated = holding.with_changes(
            quantity=holding.quantity - filled,
            realized_gain_loss=holding.realized_gain_loss + realized,
        )
        return TradeResult(
            holding=self._metrics.apply(updated),
            filled_quantity=filled,
            unfilled_quantity=unfilled,
            realized_gain_loss=realized,
        )


# =============================================================================
# DAILY CHANGE CALCULATOR
# =============================================================================

class DailyChangeCalculator:
    """
    Change between the current price and the previous recorded price.

    With fewer than two price history entries the change is zero.
    """

    def calculate(self, holding: HoldingSnapshot) -> DailyChange:
        if len(holding.price_history) < 2:
            return DailyChange()

        previous = holding.price_history[-2].price
        value = (holding.current_price - previous).quantize(CURRENCY_PRECISION)
        return DailyChange(value=value, percentage=percentage_of(value, previous))


# =============================================================================
# PORTFOLIO AGGREGATOR
# =============================================================================

class PortfolioAggregator:
    """
    Aggregates active holdings into portfolio totals.

    Formula:
        total_value = Σ current_value
        total_cost = Σ total_cost
        total_gain_loss = total_value - total_cost
        total_gain_loss_percentage = total_gain_loss / total_cost × 100
        total_realized_gain_loss = Σ realized_gain_loss (all holdings)

    Note:
        Expects holdings whose metrics are current (as produced by the
        calculators above). Inactive holdings are skipped for value and
        cost but still contribute the gains realized before they closed.
    """

    def calculate(self, holdings: Iterable[HoldingSnapshot]) -> PortfolioTotals:
        total_value = ZERO
        total_cost = ZERO
        total_realized = ZERO
        count = 0

        for holding in holdings:
            if not holding.is_active:
                total_realized += holding.realized_gain_loss
                continue
            total_value += holding.current_value
            total_cost += holding.total_cost
            total_realized += holding.realized_gain_loss
            count += 1

        total_gain_loss = total_value - total_cost

        return PortfolioTotals(
            total_value=total_value,
            total_cost=total_cost,
            total_gain_loss=total_gain_loss,
            total_gain_loss_percentage=percentage_of(total_gain_loss, total_cost),
            total_realized_gain_loss=total_realized,
            holding_count=count,
        )

    def combine(self, totals: Iterable[PortfolioTotals]) -> PortfolioTotals:
        """
        Sum totals of several portfolios.

        The gain/loss percentage is recomputed from the summed cost, not
        averaged, so an empty input gives all zeros.
        """
        total_value = ZERO
        total_cost = ZERO
        total_gain_loss = ZERO
        total_realized = ZERO
        count = 0

        for item in totals:
            total_value += item.total_value
            total_cost += item.total_cost
            total_gain_loss += item.total_gain_loss
            total_realized += item.total_realized_gain_loss
            count += item.holding_count

        return PortfolioTotals(
            total_value=total_value,
            total_cost=total_cost,
            total_gain_loss=total_gain_loss,
            total_gain_loss_percentage=percentage_of(total_gain_loss, total_cost),
            total_realized_gain_loss=total_realized,
            holding_count=count,
        )
