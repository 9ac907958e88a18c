# backend/portfolio_tracker/services/valuation/service.py
"""
Valuation Service - bridge between ORM rows and the valuation engine.

The calculators work on frozen snapshots and never see a database row.
This service is the only place that:
- Maps Holding / Portfolio rows into snapshots
- Runs the calculators
- Writes the results (metrics, price history, totals, history log,
  performance rows) back onto the rows

It never commits. Callers own the transaction and the portfolio lock.

Usage:
    from portfolio_tracker.services.valuation import ValuationService

    service = ValuationService(config)

    service.apply_price(holding, Decimal("120"), PriceSource.MANUAL, now)
    totals = service.revalue_portfolio(portfolio)
    snapshot = service.refresh_history(portfolio, now)
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime
from decimal import Decimal

from portfolio_tracker.models import (
    Holding,
    Portfolio,
    PortfolioHistory,
    PortfolioPerformance as PerformanceRow,
    PriceHistory,
)
from portfolio_tracker.services.constants import ZERO
from portfolio_tracker.services.valuation.alerts import AlertEvaluator
from portfolio_tracker.services.valuation.calculators import (
    DailyChangeCalculator,
    HoldingMetricsCalculator,
    PortfolioAggregator,
    PriceUpdateCalculator,
    TransactionCalculator,
    diversity_score,
)
from portfolio_tracker.services.valuation.history_calculator import (
    HistoryCalculator,
    PerformanceCalculator,
)
from portfolio_tracker.services.valuation.types import (
    AlertRule,
    DailyChange,
    HistoryEntry,
    HoldingMetrics,
    HoldingSnapshot,
    PERFORMANCE_PERIODS,
    PerformanceWindow,
    PortfolioPerformance,
    PortfolioSnapshot,
    PortfolioTotals,
    PricePoint,
    PriceSource,
    TradeResult,
    TransactionType,
    TriggeredAlert,
    ValuationConfig,
)
from portfolio_tracker.utils.date_utils import ensure_utc

logger = logging.getLogger(__name__)


class ValuationService:
    """
    Runs the valuation engine against persisted holdings and portfolios.

    Attributes:
        config: Engine configuration shared by every calculator
    """

    def __init__(self, config: ValuationConfig | None = None) -> None:
        self.config = config or ValuationConfig()

        self._metrics_calc = HoldingMetricsCalculator()
        self._price_calc = PriceUpdateCalculator(self.config, self._metrics_calc)
        self._trade_calc = TransactionCalculator(self._metrics_calc)
        self._daily_calc = DailyChangeCalculator()
        self._aggregator = PortfolioAggregator()
        self._history_calc = HistoryCalculator(self.config)
        self._performance_calc = PerformanceCalculator(self.config)
        self._alert_evaluator = AlertEvaluator(self.config)

        logger.info(
            f"ValuationService initialized (retention={self.config.history_retention_days}d, "
            f"debounce={self.config.alert_debounce_hours}h)"
        )

    # =========================================================================
    # HOLDINGS
    # =========================================================================

    def apply_price(
            self,
            holding: Holding,
            price: Decimal | None,
            source: PriceSource,
            now: datetime,
            volume: int | None = None,
    ) -> HoldingSnapshot:
        """
        Apply a price tick to a holding row.

        A missing or non-positive price leaves the row untouched.
        """
        before = self.to_snapshot(holding)
        after = self._price_calc.apply(before, price, source, now, volume)

        if after is not before:
            self.write_back(holding, after)

        return after

    def apply_trade(
            self,
            holding: Holding,
            trade_type: TransactionType,
            quantity: Decimal,
            price: Decimal,
            fees: Decimal = ZERO,
    ) -> TradeResult:
        """Apply a buy/sell (or audit-only) transaction to a holding row."""
        result = self._trade_calc.apply(
            self.to_snapshot(holding), trade_type, quantity, price, fees
        )
        self.write_back(holding, result.holding)
        return result

    def evaluate_alerts(self, holding: Holding, now: datetime) -> list[TriggeredAlert]:
        """
        Evaluate the holding's alerts and persist last_triggered on those that fire.

        Returns:
            Alerts that fired, in alert id order
        """
        if not holding.alerts:
            return []

        evaluation = self._alert_evaluator.evaluate(
            self.to_snapshot(holding), self.alert_rules(holding), now
        )

        rows_by_id = {alert.id: alert for alert in holding.alerts}
        for rule in evaluation.triggered:
            rows_by_id[rule.rule.alert_id].last_triggered = rule.triggered_at

        return list(evaluation.triggered)

    def daily_change(self, holding: Holding) -> DailyChange:
        return self._daily_calc.calculate(self.to_snapshot(holding))

    # =========================================================================
    # PORTFOLIOS
    # =========================================================================

    def revalue_portfolio(self, portfolio: Portfolio) -> PortfolioTotals:
        """
        Recompute the portfolio aggregates from its holdings.

        Holding metrics are recomputed first so totals always reconcile
        with the current inputs, even for rows edited outside the engine.
        """
        snapshots = []
        for holding in portfolio.holdings:
            snapshot = self._metrics_calc.apply(self.to_snapshot(holding))
            self._write_metrics(holding, snapshot.metrics)
            snapshots.append(snapshot)

        totals = self._aggregator.calculate(snapshots)

        portfolio.total_value = totals.total_value
        portfolio.total_cost = totals.total_cost
        portfolio.total_gain_loss = totals.total_gain_loss
        portfolio.total_gain_loss_percentage = totals.total_gain_loss_percentage
        portfolio.total_realized_gain_loss = totals.total_realized_gain_loss

        logger.debug(
            f"Portfolio {portfolio.id} revalued: value={totals.total_value}, "
            f"cost={totals.total_cost}, holdings={totals.holding_count}"
        )
        return totals

    def refresh_history(self, portfolio: Portfolio, now: datetime) -> PortfolioSnapshot:
        """
        Append the current totals to the history log and recompute performance.

        Call revalue_portfolio() first so the totals are current.
        """
        totals = self.totals_of(portfolio)

        history = self._history_calc.append(self.history_of(portfolio), totals, now)
        self._sync_history(portfolio, history)

        performance = self._performance_calc.calculate(
            history, self.performance_of(portfolio), now
        )
        self._write_performance(portfolio, performance)

        return PortfolioSnapshot(totals=totals, history=history, performance=performance)

    def snapshot_of(self, portfolio: Portfolio) -> PortfolioSnapshot:
        return PortfolioSnapshot(
            totals=self.totals_of(portfolio),
            history=self.history_of(portfolio),
            performance=self.performance_of(portfolio),
        )

    def combined_totals(self, portfolios: Iterable[Portfolio]) -> PortfolioTotals:
        """Stored totals of each portfolio summed into one figure."""
        return self._aggregator.combine(self.totals_of(p) for p in portfolios)

    @staticmethod
    def diversity_score(portfolio: Portfolio) -> int:
        return diversity_score(sum(1 for h in portfolio.holdings if h.is_active))

    # =========================================================================
    # ROW → SNAPSHOT MAPPING
    # =========================================================================

    @staticmethod
    def to_snapshot(holding: Holding) -> HoldingSnapshot:
        return HoldingSnapshot(
            symbol=holding.symbol,
            quantity=holding.quantity or ZERO,
            average_price=holding.average_price or ZERO,
            current_price=holding.current_price or ZERO,
            metrics=HoldingMetrics(
                total_cost=holding.total_cost or ZERO,
                current_value=holding.current_value or ZERO,
                gain_loss=holding.gain_loss or ZERO,
                gain_loss_percentage=holding.gain_loss_percentage or ZERO,
            ),
            price_history=tuple(
                PricePoint(date=ensure_utc(row.date), price=row.price, volume=row.volume)
                for row in holding.price_history
            ),
            last_price_update=ensure_utc(holding.last_price_update),
            price_source=holding.price_source,
            realized_gain_loss=holding.realized_gain_loss or ZERO,
            is_active=holding.is_active is not False,
        )

    @staticmethod
    def alert_rules(holding: Holding) -> list[AlertRule]:
        return [
            AlertRule(
                alert_id=alert.id,
                alert_type=alert.alert_type,
                value=alert.value,
                is_active=alert.is_active is not False,
                last_triggered=ensure_utc(alert.last_triggered),
            )
            for alert in holding.alerts
        ]

    @staticmethod
    def totals_of(portfolio: Portfolio) -> PortfolioTotals:
        return PortfolioTotals(
            total_value=portfolio.total_value or ZERO,
            total_cost=portfolio.total_cost or ZERO,
            total_gain_loss=portfolio.total_gain_loss or ZERO,
            total_gain_loss_percentage=portfolio.total_gain_loss_percentage or ZERO,
            total_realized_gain_loss=portfolio.total_realized_gain_loss or ZERO,
            holding_count=sum(1 for h in portfolio.holdings if h.is_active),
        )

    @staticmethod
    def history_of(portfolio: Portfolio) -> tuple[HistoryEntry, ...]:
        return tuple(
            HistoryEntry(
                date=ensure_utc(row.date),
                total_value=row.total_value,
                total_cost=row.total_cost,
                gain_loss=row.gain_loss,
                gain_loss_percentage=row.gain_loss_percentage,
            )
            for row in portfolio.history
        )

    @staticmethod
    def performance_of(portfolio: Portfolio) -> PortfolioPerformance:
        performance = PortfolioPerformance()
        for row in portfolio.performance:
            if row.period in PERFORMANCE_PERIODS:
                performance = performance.with_window(
                    row.period,
                    PerformanceWindow(value=row.value, percentage=row.percentage),
                )
        return performance

    # =========================================================================
    # SNAPSHOT → ROW WRITE-BACK
    # =========================================================================

    def write_back(self, holding: Holding, snapshot: HoldingSnapshot) -> None:
        holding.quantity = snapshot.quantity
        holding.average_price = snapshot.average_price
        holding.current_price = snapshot.current_price
        holding.last_price_update = snapshot.last_price_update
        holding.price_source = snapshot.price_source
        holding.realized_gain_loss = snapshot.realized_gain_loss
        self._write_metrics(holding, snapshot.metrics)
        self._sync_price_history(holding, snapshot.price_history)

    @staticmethod
    def _write_metrics(holding: Holding, metrics: HoldingMetrics) -> None:
        holding.total_cost = metrics.total_cost
        holding.current_value = metrics.current_value
        holding.gain_loss = metrics.gain_loss
        holding.gain_loss_percentage = metrics.gain_loss_percentage

    @staticmethod
    def _sync_price_history(holding: Holding, points: tuple[PricePoint, ...]) -> None:
        """Delete pruned rows and insert new points; surviving rows are kept."""
        wanted = {(point.date, point.price) for point in points}
        existing = set()

        for row in list(holding.price_history):
            key = (ensure_utc(row.date), row.price)
            if key in wanted:
                existing.add(key)
            else:
                holding.price_history.remove(row)

        for point in points:
            if (point.date, point.price) not in existing:
                holding.price_history.append(
                    PriceHistory(date=point.date, price=point.price, volume=point.volume)
                )

    @staticmethod
    def _sync_history(portfolio: Portfolio, entries: tuple[HistoryEntry, ...]) -> None:
        wanted = {entry.date for entry in entries}
        existing = set()

        for row in list(portfolio.history):
            row_date = ensure_utc(row.date)
            if row_date in wanted:
                existing.add(row_date)
            else:
                portfolio.history.remove(row)

        for entry in entries:
            if entry.date not in existing:
                portfolio.history.append(
                    PortfolioHistory(
                        date=entry.date,
                        total_value=entry.total_value,
                        total_cost=entry.total_cost,
                        gain_loss=entry.gain_loss,
                        gain_loss_percentage=entry.gain_loss_percentage,
                    )
                )

    @staticmethod
    def _write_performance(portfolio: Portfolio, performance: PortfolioPerformance) -> None:
        rows = {row.period: row for row in portfolio.performance}

        for period, window in performance.as_dict().items():
            row = rows.get(period)
            if row is None:
                portfolio.performance.append(
                    PerformanceRow(period=period, value=window.value, percentage=window.percentage)
                )
            else:
                row.value = window.value
                row.percentage = window.percentage
