# backend/portfolio_tracker/services/pricing_service.py
"""
Pricing Service - applies market prices to every holding of a symbol.

This service handles:
- update_price(): one price tick fanned out to all portfolios holding the symbol
- Alert evaluation for every repriced holding
- Batch refresh of several symbols from a market data provider
- History/performance refresh for the portfolios a batch touched

Design Principles:
- No HTTP Knowledge: Raises domain exceptions, not HTTPException
- Idempotent: applying the same tick twice changes nothing further
- One portfolio lock and one commit per affected portfolio
- Provider injected per call, so the job and the API can share one instance

Usage:
    from portfolio_tracker.services.pricing_service import PricingService

    service = PricingService(valuation_service)

    result = service.update_price(db, "INFY", Decimal("1520.50"), PriceSource.MANUAL)
    for alert in result.triggered_alerts:
        print(alert.symbol, alert.alert_type, alert.observed_value)

    batch = service.update_prices_from_provider(db, provider, ["INFY", "TCS"])
    print(batch.prices, batch.errors)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from sqlalchemy import select, func
from sqlalchemy.orm import Session

from portfolio_tracker.models import AlertType, Holding, PriceSource
from portfolio_tracker.services.constants import MAX_BATCH_SYMBOLS, ZERO
from portfolio_tracker.services.exceptions import PortfolioNotFoundError, ValidationError
from portfolio_tracker.services.locks import PortfolioLockRegistry, portfolio_locks
from portfolio_tracker.services.market_data.base import MarketDataProvider
from portfolio_tracker.services.valuation import (
    HoldingMetrics,
    PortfolioSnapshot,
    ValuationService,
)
from portfolio_tracker.utils.date_utils import utcnow

logger = logging.getLogger(__name__)


# =============================================================================
# RESULT TYPES
# =============================================================================

@dataclass
class RepricedHolding:
    """Metrics of one holding after a price tick."""

    holding_id: int
    portfolio_id: int
    symbol: str
    current_price: Decimal
    metrics: HoldingMetrics


@dataclass
class AlertTrigger:
    """An alert that fired during a price update."""

    alert_id: int
    holding_id: int
    portfolio_id: int
    symbol: str
    alert_type: AlertType
    value: Decimal
    observed_value: Decimal
    triggered_at: datetime


@dataclass
class PriceUpdateResult:
    """
    Result of applying one price to one symbol.

    Attributes:
        symbol: Symbol that was repriced
        price: Price that was applied (as received)
        applied: False when the price was missing or non-positive
        holdings: Every holding that was repriced
        triggered_alerts: Alerts that fired
    """

    symbol: str
    price: Decimal | None
    applied: bool
    holdings: list[RepricedHolding] = field(default_factory=list)
    triggered_alerts: list[AlertTrigger] = field(default_factory=list)

    @property
    def portfolio_ids(self) -> list[int]:
        return sorted({h.portfolio_id for h in self.holdings})


@dataclass
class ProviderRefreshResult:
    """
    Result of refreshing several symbols from a provider.

    Attributes:
        prices: symbol → price applied
        errors: symbol → error message
        timestamp: When the refresh ran
        updates: Per-symbol update results
    """

    prices: dict[str, Decimal] = field(default_factory=dict)
    errors: dict[str, str] = field(default_factory=dict)
    timestamp: datetime | None = None
    updates: list[PriceUpdateResult] = field(default_factory=list)

    @property
    def portfolio_ids(self) -> list[int]:
        return sorted({pid for update in self.updates for pid in update.portfolio_ids})

    @property
    def triggered_alerts(self) -> list[AlertTrigger]:
        return [alert for update in self.updates for alert in update.triggered_alerts]


# =============================================================================
# SERVICE
# =============================================================================

class PricingService:
    """
    Fans price ticks out to holdings and evaluates their alerts.

    Attributes:
        _valuation: Engine bridge
        _locks: Per-portfolio mutation locks (shared with PortfolioService)
    """

    def __init__(
            self,
            valuation_service: ValuationService,
            locks: PortfolioLockRegistry | None = None,
    ) -> None:
        self._valuation = valuation_service
        self._locks = locks or portfolio_locks
        logger.info("PricingService initialized")

    # =========================================================================
    # SINGLE SYMBOL
    # =========================================================================

    def update_price(
            self,
            db: Session,
            symbol: str,
            price: Decimal | None,
            source: PriceSource,
            volume: int | None = None,
            now: datetime | None = None,
    ) -> PriceUpdateResult:
        """
        Apply a price to every active holding of symbol.

        A missing or non-positive price is a no-op (applied=False).

        Args:
            db: Database session
            symbol: Trading symbol (case-insensitive)
            price: Observed price
            source: Where the price came from
            volume: Traded volume, if known
            now: Observation time (default: UTC now)

        Returns:
            PriceUpdateResult with repriced holdings and fired alerts
        """
        symbol = symbol.strip().upper()
        result = PriceUpdateResult(symbol=symbol, price=price, applied=False)

        if price is None or price <= ZERO:
            logger.debug(f"Ignoring non-positive price {price} for {symbol}")
            return result

        now = now or utcnow()
        result.applied = True

        for portfolio_id in self._portfolios_holding(db, symbol):
            self._reprice_portfolio(db, portfolio_id, symbol, price, source, volume, now, result)

        logger.info(
            f"Price {price} ({source.value}) applied to {symbol}: "
            f"{len(result.holdings)} holdings, {len(result.triggered_alerts)} alerts",
            extra={"symbol": symbol},
        )
        return result

    # =========================================================================
    # PROVIDER BATCH
    # =========================================================================

    def update_prices_from_provider(
            self,
            db: Session,
            provider: MarketDataProvider,
            symbols: list[str],
            exchange: str = "",
            now: datetime | None = None,
    ) -> ProviderRefreshResult:
        """
        Fetch quotes for symbols and apply each one.

        Failed lookups are reported per symbol and never abort the batch.

        Raises:
            ValidationError: Empty batch or more than MAX_BATCH_SYMBOLS symbols
        """
        unique = list(dict.fromkeys(s.strip().upper() for s in symbols if s and s.strip()))

        if not unique:
            raise ValidationError("At least one symbol is required", field="symbols")
        if len(unique) > MAX_BATCH_SYMBOLS:
            raise ValidationError(
                f"At most {MAX_BATCH_SYMBOLS} symbols per batch, got {len(unique)}",
                field="symbols",
            )

        now = now or utcnow()
        result = ProviderRefreshResult(timestamp=now)

        quotes = provider.get_quotes(unique, exchange)

        for symbol, error in quotes.failed.items():
            result.errors[symbol] = str(error)

        for symbol, quote in quotes.successful.items():
            update = self.update_price(
                db, symbol, quote.price, provider.price_source,
                volume=quote.volume, now=now,
            )
            result.prices[symbol] = quote.price
            result.updates.append(update)

        logger.info(
            f"Provider refresh via {provider.name}: {len(result.prices)} updated, "
            f"{len(result.errors)} failed"
        )
        return result

    def refresh_portfolios(
            self,
            db: Session,
            portfolio_ids: list[int],
            now: datetime | None = None,
    ) -> dict[int, PortfolioSnapshot]:
        """Revalue each portfolio and append to its history log."""
        now = now or utcnow()
        snapshots: dict[int, PortfolioSnapshot] = {}

        for portfolio_id in portfolio_ids:
            try:
                with self._locks.hold(db, portfolio_id) as portfolio:
                    self._valuation.revalue_portfolio(portfolio)
                    snapshots[portfolio_id] = self._valuation.refresh_history(portfolio, now)
                    db.commit()
            except PortfolioNotFoundError:
                db.rollback()
                logger.warning(f"Portfolio {portfolio_id} disappeared before refresh")

        return snapshots

    def active_symbols(self, db: Session, limit: int | None = None) -> list[str]:
        """
        Distinct symbols of active holdings, stalest price first.

        Holdings never priced come first, so new positions are picked
        up by the next job run.
        """
        query = (
            select(Holding.symbol)
            .where(Holding.is_active.is_(True))
            .group_by(Holding.symbol)
            .order_by(func.min(Holding.last_price_update).asc().nulls_first(), Holding.symbol)
        )
        if limit is not None:
            query = query.limit(limit)

        return list(db.scalars(query).all())

    # =========================================================================
    # PRIVATE HELPERS
    # =========================================================================

    @staticmethod
    def _portfolios_holding(db: Session, symbol: str) -> list[int]:
        return list(db.scalars(
            select(Holding.portfolio_id)
            .where(Holding.symbol == symbol, Holding.is_active.is_(True))
            .distinct()
            .order_by(Holding.portfolio_id)
        ).all())

    def _reprice_portfolio(
            self,
            db: Session,
            portfolio_id: int,
            symbol: str,
            price: Decimal,
            source: PriceSource,
            volume: int | None,
            now: datetime,
            result: PriceUpdateResult,
    ) -> None:
        try:
            with self._locks.hold(db, portfolio_id) as portfolio:
                for holding in portfolio.holdings:
                    if holding.symbol != symbol or not holding.is_active:
                        continue

                    snapshot = self._valuation.apply_price(holding, price, source, now, volume)
                    fired = self._valuation.evaluate_alerts(holding, now)

                    result.holdings.append(RepricedHolding(
                        holding_id=holding.id,
                        portfolio_id=portfolio_id,
                        symbol=symbol,
                        current_price=snapshot.current_price,
                        metrics=snapshot.metrics,
                    ))
                    result.triggered_alerts.extend(
                        AlertTrigger(
                            alert_id=alert.rule.alert_id,
                            holding_id=holding.id,
                            portfolio_id=portfolio_id,
                            symbol=symbol,
                            alert_type=alert.rule.alert_type,
                            value=alert.rule.value,
                            observed_value=alert.observed_value,
                            triggered_at=alert.triggered_at,
                        )
                        for alert in fired
                    )

                self._valuation.revalue_portfolio(portfolio)
                db.commit()
        except Exception:
            db.rollback()
            raise
