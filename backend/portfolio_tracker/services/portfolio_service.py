# backend/portfolio_tracker/services/portfolio_service.py
"""
Portfolio Service - holdings, transactions, performance and alerts.

This service handles every user-initiated portfolio mutation:
- Portfolio CRUD (owner scoped)
- add_holding / remove_holding (buy and sell with weighted average cost)
- Recording, listing, summarizing and deactivating transactions
- Performance reports and on-demand refresh of the history log
- Alert management on holdings

Design Principles:
- No HTTP Knowledge: Raises domain exceptions, not HTTPException
- Every mutation runs under the portfolio lock and commits once
- All arithmetic is delegated to the valuation engine
- Transactions are append-only; only is_active may change

Usage:
    from portfolio_tracker.services.portfolio_service import PortfolioService

    service = PortfolioService(valuation_service)

    result = service.add_holding(
        db, portfolio_id=1, user_id=7,
        symbol="INFY", quantity=Decimal("10"), price=Decimal("1500"),
    )
    print(result.holding.average_price, result.portfolio.total_value)

    report = service.get_performance(db, portfolio_id=1, user_id=7, period="weekly")
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from sqlalchemy import select, func
from sqlalchemy.orm import Session

from portfolio_tracker.models import (
    Alert,
    AlertType,
    AssetType,
    Holding,
    Portfolio,
    PriceSource,
    Transaction,
    TransactionSource,
    TransactionType,
)
from portfolio_tracker.services.constants import CURRENCY_PRECISION, SHARE_PRECISION, ZERO
from portfolio_tracker.services.exceptions import (
    AlertNotFoundError,
    HoldingNotFoundError,
    InvalidPeriodError,
    PermissionDeniedError,
    PortfolioNotFoundError,
    TransactionNotFoundError,
    ValidationError,
)
from portfolio_tracker.services.locks import PortfolioLockRegistry, portfolio_locks
from portfolio_tracker.services.valuation import (
    PERFORMANCE_PERIODS,
    PerformanceWindow,
    PortfolioSnapshot,
    PortfolioTotals,
    TradeResult,
    ValuationService,
    validate_transaction,
)
from portfolio_tracker.utils.date_utils import ensure_utc, utcnow

logger = logging.getLogger(__name__)


# =============================================================================
# RESULT TYPES
# =============================================================================

@dataclass
class HoldingChangeResult:
    """
    Result of a buy, sell or audit-only transaction.

    Attributes:
        portfolio: The portfolio with refreshed totals
        holding: The holding that changed
        transaction: The recorded transaction
        trade: Engine output (filled/unfilled quantity, realized gain/loss)
    """

    portfolio: Portfolio
    holding: Holding
    transaction: Transaction
    trade: TradeResult

    @property
    def unfilled_quantity(self) -> Decimal:
        return self.trade.unfilled_quantity


@dataclass
class PerformanceReport:
    """Portfolio totals plus the requested performance windows."""

    portfolio_id: int
    total_value: Decimal
    total_cost: Decimal
    total_gain_loss: Decimal
    total_gain_loss_percentage: Decimal
    total_realized_gain_loss: Decimal
    holding_count: int
    diversity_score: int
    performance: dict[str, PerformanceWindow] = field(default_factory=dict)
    period: str | None = None


@dataclass
class TransactionPage:
    """One page of a portfolio's transactions, newest first."""

    items: list[Transaction]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        if self.total <= 0:
            return 1
        return (self.total + self.limit - 1) // self.limit


@dataclass
class TransactionSummaryRow:
    """Aggregates of active transactions of one type."""

    transaction_type: TransactionType
    count: int
    total_quantity: Decimal
    total_amount: Decimal
    total_fees: Decimal
    total_realized_gain_loss: Decimal


@dataclass
class PortfolioSummaryItem:
    """One portfolio's stored totals inside a cross-portfolio summary."""

    portfolio_id: int
    name: str
    currency: str
    totals: PortfolioTotals


@dataclass
class PortfolioSummary:
    """
    Totals summed over every portfolio a user owns.

    Values are added as stored, without currency conversion.
    """

    totals: PortfolioTotals
    portfolios: list[PortfolioSummaryItem] = field(default_factory=list)

    @property
    def portfolio_count(self) -> int:
        return len(self.portfolios)


# =============================================================================
# SERVICE
# =============================================================================

class PortfolioService:
    """
    Orchestrates portfolio mutations on top of the valuation engine.

    Attributes:
        _valuation: Engine bridge used for every calculation
        _locks: Per-portfolio mutation locks
    """

    def __init__(
            self,
            valuation_service: ValuationService,
            locks: PortfolioLockRegistry | None = None,
    ) -> None:
        self._valuation = valuation_service
        self._locks = locks or portfolio_locks
        logger.info("PortfolioService initialized")

    # =========================================================================
    # PORTFOLIO CRUD
    # =========================================================================

    def create_portfolio(
            self,
            db: Session,
            user_id: int,
            name: str,
            description: str | None = None,
            currency: str = "INR",
            is_default: bool = False,
    ) -> Portfolio:
        portfolio = Portfolio(
            user_id=user_id,
            name=name,
            description=description,
            currency=currency,
            is_default=is_default,
        )
        db.add(portfolio)
        db.commit()
        db.refresh(portfolio)

        logger.info(f"Portfolio {portfolio.id} created for user {user_id}")
        return portfolio

    def list_portfolios(self, db: Session, user_id: int) -> list[Portfolio]:
        return list(db.scalars(
            select(Portfolio)
            .where(Portfolio.user_id == user_id)
            .order_by(Portfolio.created_at.desc(), Portfolio.id.desc())
        ).all())

    def summarize(self, db: Session, user_id: int) -> PortfolioSummary:
        """
        Sum value, cost and gain/loss over all of the user's portfolios.

        The percentage is taken over the summed cost; a user with no
        portfolios gets zeros and an empty breakdown.
        """
        portfolios = self.list_portfolios(db, user_id)

        items = [
            PortfolioSummaryItem(
                portfolio_id=portfolio.id,
                name=portfolio.name,
                currency=portfolio.currency,
                totals=self._valuation.totals_of(portfolio),
            )
            for portfolio in portfolios
        ]
        totals = self._valuation.combined_totals(portfolios)

        logger.debug(
            f"Summary for user {user_id}: {len(items)} portfolios, value={totals.total_value}"
        )
        return PortfolioSummary(totals=totals, portfolios=items)

    def get_portfolio(self, db: Session, portfolio_id: int, user_id: int) -> Portfolio:
        """
        Fetch a portfolio the user owns.

        Raises:
            PortfolioNotFoundError: If the portfolio does not exist
            PermissionDeniedError: If another user owns it
        """
        portfolio = db.get(Portfolio, portfolio_id)

        if portfolio is None:
            raise PortfolioNotFoundError(portfolio_id)

        if portfolio.user_id != user_id:
            raise PermissionDeniedError("portfolio", portfolio_id)

        return portfolio

    def update_portfolio(
            self,
            db: Session,
            portfolio_id: int,
            user_id: int,
            **changes,
    ) -> Portfolio:
        """Update name, description, currency or is_default (None values are skipped)."""
        allowed = {"name", "description", "currency", "is_default"}
        unknown = set(changes) - allowed
        if unknown:
            raise ValidationError(f"Cannot update fields: {', '.join(sorted(unknown))}")

        self.get_portfolio(db, portfolio_id, user_id)

        with self._mutation(db, portfolio_id) as portfolio:
            for name, value in changes.items():
                if value is not None:
                    setattr(portfolio, name, value)
            db.commit()

        db.refresh(portfolio)
        return portfolio

    def delete_portfolio(self, db: Session, portfolio_id: int, user_id: int) -> None:
        self.get_portfolio(db, portfolio_id, user_id)

        with self._mutation(db, portfolio_id) as portfolio:
            db.delete(portfolio)
            db.commit()

        self._locks.discard(portfolio_id)
        logger.info(f"Portfolio {portfolio_id} deleted by user {user_id}")

    # =========================================================================
    # HOLDINGS
    # =========================================================================

    def list_holdings(
            self,
            db: Session,
            portfolio_id: int,
            user_id: int,
            include_inactive: bool = False,
    ) -> list[Holding]:
        portfolio = self.get_portfolio(db, portfolio_id, user_id)
        return [h for h in portfolio.holdings if include_inactive or h.is_active]

    def get_holding(
            self,
            db: Session,
            portfolio_id: int,
            user_id: int,
            holding_id: int,
    ) -> Holding:
        portfolio = self.get_portfolio(db, portfolio_id, user_id)
        return self._find_holding(portfolio, holding_id)

    def add_holding(
            self,
            db: Session,
            portfolio_id: int,
            user_id: int,
            quantity: Decimal,
            price: Decimal,
            fees: Decimal = ZERO,
            symbol: str | None = None,
            holding_id: int | None = None,
            name: str | None = None,
            asset_type: AssetType | None = None,
            exchange: str | None = None,
            date: datetime | None = None,
            notes: str | None = None,
            source: TransactionSource = TransactionSource.MANUAL,
            now: datetime | None = None,
    ) -> HoldingChangeResult:
        """
        Buy into a holding, creating it if the symbol is new to the portfolio.

        The holding is identified by holding_id or, failing that, by symbol.
        A holding with no known price is seeded with the trade price.

        Raises:
            ValidationError: Malformed transaction, or neither holding_id nor symbol
            PortfolioNotFoundError / PermissionDeniedError: Ownership
            HoldingNotFoundError: Unknown holding_id
        """
        now = now or utcnow()
        trade_date = ensure_utc(date) or now
        validate_transaction(TransactionType.BUY, quantity, price, fees, trade_date, now)

        self.get_portfolio(db, portfolio_id, user_id)

        with self._mutation(db, portfolio_id) as portfolio:
            holding = self._resolve_buy_target(
                portfolio, holding_id, symbol, name, asset_type, exchange
            )
            result = self._buy(
                db, portfolio, holding, user_id, quantity, price, fees,
                trade_date, now, notes, source,
            )
            db.commit()

        logger.info(
            f"Bought {quantity} {holding.symbol} @ {price} in portfolio {portfolio_id}; "
            f"avg={holding.average_price}, qty={holding.quantity}",
            extra={"portfolio_id": portfolio_id, "symbol": holding.symbol},
        )
        return result

    def remove_holding(
            self,
            db: Session,
            portfolio_id: int,
            user_id: int,
            holding_id: int,
            quantity: Decimal,
            price: Decimal | None = None,
            fees: Decimal = ZERO,
            date: datetime | None = None,
            notes: str | None = None,
            source: TransactionSource = TransactionSource.MANUAL,
            now: datetime | None = None,
    ) -> HoldingChangeResult:
        """
        Sell units of a holding.

        Sells at price if given, else at the holding's current price, else
        at its average price. Selling more than is held is clamped; the
        transaction records the filled quantity.

        Raises:
            ValidationError: Malformed transaction
            PortfolioNotFoundError / PermissionDeniedError: Ownership
            HoldingNotFoundError: Unknown or inactive holding
        """
        now = now or utcnow()
        trade_date = ensure_utc(date) or now

        self.get_portfolio(db, portfolio_id, user_id)

        with self._mutation(db, portfolio_id) as portfolio:
            holding = self._find_holding(portfolio, holding_id, active_only=True)
            sell_price = self._sell_price(holding, price)
            validate_transaction(
                TransactionType.SELL, quantity, sell_price, fees, trade_date, now
            )
            result = self._sell(
                db, portfolio, holding, user_id, quantity, sell_price, fees,
                trade_date, notes, source,
            )
            db.commit()

        logger.info(
            f"Sold {result.trade.filled_quantity} {holding.symbol} @ {sell_price} "
            f"in portfolio {portfolio_id}; realized={result.trade.realized_gain_loss}",
            extra={"portfolio_id": portfolio_id, "symbol": holding.symbol},
        )
        return result

    # =========================================================================
    # TRANSACTIONS
    # =========================================================================

    def record_transaction(
            self,
            db: Session,
            portfolio_id: int,
            user_id: int,
            transaction_type: TransactionType,
            quantity: Decimal,
            price: Decimal,
            fees: Decimal = ZERO,
            symbol: str | None = None,
            holding_id: int | None = None,
            date: datetime | None = None,
            notes: str | None = None,
            source: TransactionSource = TransactionSource.MANUAL,
            now: datetime | None = None,
    ) -> HoldingChangeResult:
        """
        Record any transaction type.

        BUY and SELL behave exactly like add_holding / remove_holding.
        DIVIDEND, SPLIT and MERGER are stored for audit and leave the
        holding unchanged; they require an existing holding.
        """
        if transaction_type == TransactionType.BUY:
            return self.add_holding(
                db, portfolio_id, user_id, quantity, price, fees,
                symbol=symbol, holding_id=holding_id, date=date, notes=notes,
                source=source, now=now,
            )

        if transaction_type == TransactionType.SELL:
            if holding_id is None:
                holding_id = self._holding_id_for_symbol(db, portfolio_id, user_id, symbol)
            return self.remove_holding(
                db, portfolio_id, user_id, holding_id, quantity, price, fees,
                date=date, notes=notes, source=source, now=now,
            )

        now = now or utcnow()
        trade_date = ensure_utc(date) or now
        validate_transaction(transaction_type, quantity, price, fees, trade_date, now)

        self.get_portfolio(db, portfolio_id, user_id)

        with self._mutation(db, portfolio_id) as portfolio:
            holding = self._find_existing(portfolio, holding_id, symbol)
            trade = self._valuation.apply_trade(holding, transaction_type, quantity, price, fees)
            transaction = self._new_transaction(
                portfolio, holding, user_id, transaction_type, quantity, price, fees,
                trade_date, notes, source,
            )
            db.add(transaction)
            db.commit()

        logger.info(
            f"Recorded {transaction_type.value} for {holding.symbol} in portfolio {portfolio_id}"
        )
        return HoldingChangeResult(
            portfolio=portfolio, holding=holding, transaction=transaction, trade=trade
        )

    def list_transactions(
            self,
            db: Session,
            portfolio_id: int,
            user_id: int,
            page: int = 1,
            limit: int = 20,
            transaction_type: TransactionType | None = None,
            holding_id: int | None = None,
            include_inactive: bool = False,
    ) -> TransactionPage:
        """List transactions newest first, with optional type/holding filters."""
        if page < 1:
            raise ValidationError("page must be at least 1", field="page")
        if limit < 1:
            raise ValidationError("limit must be at least 1", field="limit")

        self.get_portfolio(db, portfolio_id, user_id)

        conditions = [Transaction.portfolio_id == portfolio_id]
        if transaction_type is not None:
            conditions.append(Transaction.transaction_type == transaction_type)
        if holding_id is not None:
            conditions.append(Transaction.holding_id == holding_id)
        if not include_inactive:
            conditions.append(Transaction.is_active.is_(True))

        total = db.scalar(
            select(func.count(Transaction.id)).where(*conditions)
        ) or 0

        items = db.scalars(
            select(Transaction)
            .where(*conditions)
            .order_by(Transaction.date.desc(), Transaction.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        ).all()

        return TransactionPage(items=list(items), total=total, page=page, limit=limit)

    def get_transaction(
            self,
            db: Session,
            portfolio_id: int,
            user_id: int,
            transaction_id: int,
    ) -> Transaction:
        self.get_portfolio(db, portfolio_id, user_id)

        transaction = db.get(Transaction, transaction_id)
        if transaction is None or transaction.portfolio_id != portfolio_id:
            raise TransactionNotFoundError(transaction_id)

        return transaction

    def deactivate_transaction(
            self,
            db: Session,
            portfolio_id: int,
            user_id: int,
            transaction_id: int,
    ) -> Transaction:
        """
        Soft-deactivate a transaction.

        The flag is audit-only: holdings are NOT replayed.
        """
        transaction = self.get_transaction(db, portfolio_id, user_id, transaction_id)

        if transaction.is_active:
            transaction.is_active = False
            db.commit()
            db.refresh(transaction)
            logger.info(f"Transaction {transaction_id} deactivated by user {user_id}")

        return transaction

    def transaction_summary(
            self,
            db: Session,
            portfolio_id: int,
            user_id: int,
    ) -> list[TransactionSummaryRow]:
        """Count and sum active transactions, grouped by type."""
        self.get_portfolio(db, portfolio_id, user_id)

        rows = db.execute(
            select(
                Transaction.transaction_type,
                func.count(Transaction.id),
                func.sum(Transaction.quantity),
                func.sum(Transaction.total_amount),
                func.sum(Transaction.fees),
                func.sum(Transaction.realized_gain_loss),
            )
            .where(
                Transaction.portfolio_id == portfolio_id,
                Transaction.is_active.is_(True),
            )
            .group_by(Transaction.transaction_type)
        ).all()

        summary = [
            TransactionSummaryRow(
                transaction_type=row[0],
                count=row[1],
                total_quantity=_to_decimal(row[2]).quantize(SHARE_PRECISION),
                total_amount=_to_decimal(row[3]).quantize(CURRENCY_PRECISION),
                total_fees=_to_decimal(row[4]).quantize(CURRENCY_PRECISION),
                total_realized_gain_loss=_to_decimal(row[5]).quantize(CURRENCY_PRECISION),
            )
            for row in rows
        ]
        return sorted(summary, key=lambda r: list(TransactionType).index(r.transaction_type))

    # =========================================================================
    # PERFORMANCE / HISTORY
    # =========================================================================

    def get_performance(
            self,
            db: Session,
            portfolio_id: int,
            user_id: int,
            period: str | None = None,
    ) -> PerformanceReport:
        """
        Totals plus performance windows for a portfolio.

        Args:
            period: One of daily/weekly/monthly/yearly, or None for all

        Raises:
            InvalidPeriodError: Unknown period
        """
        if period is not None and period not in PERFORMANCE_PERIODS:
            raise InvalidPeriodError(period, PERFORMANCE_PERIODS)

        portfolio = self.get_portfolio(db, portfolio_id, user_id)
        snapshot = self._valuation.snapshot_of(portfolio)

        windows = snapshot.performance.as_dict()
        if period is not None:
            windows = {period: windows[period]}

        totals = snapshot.totals
        return PerformanceReport(
            portfolio_id=portfolio.id,
            total_value=totals.total_value,
            total_cost=totals.total_cost,
            total_gain_loss=totals.total_gain_loss,
            total_gain_loss_percentage=totals.total_gain_loss_percentage,
            total_realized_gain_loss=totals.total_realized_gain_loss,
            holding_count=totals.holding_count,
            diversity_score=self._valuation.diversity_score(portfolio),
            performance=windows,
            period=period,
        )

    def refresh_portfolio(
            self,
            db: Session,
            portfolio_id: int,
            user_id: int,
            now: datetime | None = None,
    ) -> PortfolioSnapshot:
        """Recompute totals, append to the history log and update performance."""
        now = now or utcnow()
        self.get_portfolio(db, portfolio_id, user_id)

        with self._mutation(db, portfolio_id) as portfolio:
            self._valuation.revalue_portfolio(portfolio)
            snapshot = self._valuation.refresh_history(portfolio, now)
            db.commit()

        logger.info(
            f"Portfolio {portfolio_id} refreshed: value={snapshot.totals.total_value}, "
            f"history entries={len(snapshot.history)}"
        )
        return snapshot

    def get_history(self, db: Session, portfolio_id: int, user_id: int):
        portfolio = self.get_portfolio(db, portfolio_id, user_id)
        return self._valuation.history_of(portfolio)

    # =========================================================================
    # ALERTS
    # =========================================================================

    def create_alert(
            self,
            db: Session,
            portfolio_id: int,
            user_id: int,
            holding_id: int,
            alert_type: AlertType,
            value: Decimal,
    ) -> Alert:
        if value < ZERO:
            raise ValidationError("Alert value cannot be negative", field="value")

        holding = self.get_holding(db, portfolio_id, user_id, holding_id)

        alert = Alert(alert_type=alert_type, value=value, is_active=True)
        holding.alerts.append(alert)
        db.commit()
        db.refresh(alert)

        logger.info(f"Alert {alert.id} ({alert_type.value} {value}) created on {holding.symbol}")
        return alert

    def list_alerts(
            self,
            db: Session,
            portfolio_id: int,
            user_id: int,
            holding_id: int,
    ) -> list[Alert]:
        return list(self.get_holding(db, portfolio_id, user_id, holding_id).alerts)

    def update_alert(
            self,
            db: Session,
            portfolio_id: int,
            user_id: int,
            holding_id: int,
            alert_id: int,
            value: Decimal | None = None,
            is_active: bool | None = None,
    ) -> Alert:
        alert = self._find_alert(db, portfolio_id, user_id, holding_id, alert_id)

        if value is not None:
            if value < ZERO:
                raise ValidationError("Alert value cannot be negative", field="value")
            alert.value = value
        if is_active is not None:
            alert.is_active = is_active

        db.commit()
        db.refresh(alert)
        return alert

    def delete_alert(
            self,
            db: Session,
            portfolio_id: int,
            user_id: int,
            holding_id: int,
            alert_id: int,
    ) -> None:
        alert = self._find_alert(db, portfolio_id, user_id, holding_id, alert_id)
        db.delete(alert)
        db.commit()

    # =========================================================================
    # PRIVATE HELPERS
    # =========================================================================

    @contextmanager
    def _mutation(self, db: Session, portfolio_id: int) -> Iterator[Portfolio]:
        """Hold the portfolio lock; roll back if the block raises."""
        with self._locks.hold(db, portfolio_id) as portfolio:
            try:
                yield portfolio
            except Exception:
                db.rollback()
                raise

    def _buy(
            self,
            db: Session,
            portfolio: Portfolio,
            holding: Holding,
            user_id: int,
            quantity: Decimal,
            price: Decimal,
            fees: Decimal,
            trade_date: datetime,
            now: datetime,
            notes: str | None,
            source: TransactionSource,
    ) -> HoldingChangeResult:
        if (holding.current_price or ZERO) <= ZERO:
            self._valuation.apply_price(holding, price, PriceSource.MANUAL, now)

        trade = self._valuation.apply_trade(holding, TransactionType.BUY, quantity, price, fees)
        holding.is_active = True

        transaction = self._new_transaction(
            portfolio, holding, user_id, TransactionType.BUY, trade.filled_quantity,
            price, fees, trade_date, notes, source,
        )
        db.add(transaction)
        self._valuation.revalue_portfolio(portfolio)

        return HoldingChangeResult(
            portfolio=portfolio, holding=holding, transaction=transaction, trade=trade
        )

    def _sell(
            self,
            db: Session,
            portfolio: Portfolio,
            holding: Holding,
            user_id: int,
            quantity: Decimal,
            price: Decimal,
            fees: Decimal,
            trade_date: datetime,
            notes: str | None,
            source: TransactionSource,
    ) -> HoldingChangeResult:
        trade = self._valuation.apply_trade(holding, TransactionType.SELL, quantity, price, fees)

        # Fully sold positions leave the portfolio but keep their audit trail
        if holding.quantity == ZERO:
            holding.is_active = False

        transaction = self._new_transaction(
            portfolio, holding, user_id, TransactionType.SELL, trade.filled_quantity,
            price, fees, trade_date, notes, source,
        )
        transaction.realized_gain_loss = trade.realized_gain_loss
        db.add(transaction)
        self._valuation.revalue_portfolio(portfolio)

        return HoldingChangeResult(
            portfolio=portfolio, holding=holding, transaction=transaction, trade=trade
        )

    @staticmethod
    def _new_transaction(
            portfolio: Portfolio,
            holding: Holding,
            user_id: int,
            transaction_type: TransactionType,
            quantity: Decimal,
            price: Decimal,
            fees: Decimal,
            trade_date: datetime,
            notes: str | None,
            source: TransactionSource,
    ) -> Transaction:
        total_amount = (quantity * price).quantize(CURRENCY_PRECISION)

        if transaction_type == TransactionType.BUY:
            net_amount = total_amount + fees
        elif transaction_type == TransactionType.SELL:
            net_amount = total_amount - fees
        else:
            net_amount = total_amount

        return Transaction(
            portfolio=portfolio,
            holding=holding,
            user_id=user_id,
            transaction_type=transaction_type,
            symbol=holding.symbol,
            date=trade_date,
            quantity=quantity,
            price=price,
            fees=fees,
            total_amount=total_amount,
            net_amount=net_amount.quantize(CURRENCY_PRECISION),
            currency=portfolio.currency,
            source=source,
            notes=notes,
            is_active=True,
        )

    @staticmethod
    def _sell_price(holding: Holding, price: Decimal | None) -> Decimal:
        if price is not None and price > ZERO:
            return price
        if (holding.current_price or ZERO) > ZERO:
            return holding.current_price
        return holding.average_price or ZERO

    def _resolve_buy_target(
            self,
            portfolio: Portfolio,
            holding_id: int | None,
            symbol: str | None,
            name: str | None,
            asset_type: AssetType | None,
            exchange: str | None,
    ) -> Holding:
        if holding_id is not None:
            return self._find_holding(portfolio, holding_id)

        if not symbol:
            raise ValidationError("Either holding_id or symbol is required", field="symbol")

        symbol = symbol.strip().upper()
        for holding in portfolio.holdings:
            if holding.symbol == symbol:
                return holding

        holding = Holding(
            symbol=symbol,
            name=name,
            asset_type=asset_type or AssetType.STOCK,
            exchange=exchange.upper() if exchange else None,
            currency=portfolio.currency,
            is_active=True,
        )
        portfolio.holdings.append(holding)
        logger.info(f"New holding {symbol} in portfolio {portfolio.id}")
        return holding

    def _find_existing(
            self,
            portfolio: Portfolio,
            holding_id: int | None,
            symbol: str | None,
    ) -> Holding:
        if holding_id is not None:
            return self._find_holding(portfolio, holding_id)

        if not symbol:
            raise ValidationError("Either holding_id or symbol is required", field="symbol")

        symbol = symbol.strip().upper()
        for holding in portfolio.holdings:
            if holding.symbol == symbol:
                return holding

        raise HoldingNotFoundError(symbol, portfolio.id)

    def _holding_id_for_symbol(
            self,
            db: Session,
            portfolio_id: int,
            user_id: int,
            symbol: str | None,
    ) -> int:
        portfolio = self.get_portfolio(db, portfolio_id, user_id)
        return self._find_existing(portfolio, None, symbol).id

    @staticmethod
    def _find_holding(
            portfolio: Portfolio,
            holding_id: int,
            active_only: bool = False,
    ) -> Holding:
        for holding in portfolio.holdings:
            if holding.id == holding_id:
                if active_only and not holding.is_active:
                    break
                return holding

        raise HoldingNotFoundError(holding_id, portfolio.id)

    def _find_alert(
            self,
            db: Session,
            portfolio_id: int,
            user_id: int,
            holding_id: int,
            alert_id: int,
    ) -> Alert:
        holding = self.get_holding(db, portfolio_id, user_id, holding_id)

        for alert in holding.alerts:
            if alert.id == alert_id:
                return alert

        raise AlertNotFoundError(alert_id)


def _to_decimal(value) -> Decimal:
    if value is None:
        return ZERO
    return value if isinstance(value, Decimal) else Decimal(str(value))
