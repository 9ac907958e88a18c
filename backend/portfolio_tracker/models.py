# backend/portfolio_tracker/models.py
import enum
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import String, Text, DateTime, ForeignKey, Enum, Numeric, UniqueConstraint, Boolean, BigInteger, Index
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


# Enums help enforce data integrity at the database level.
# TransactionType, AlertType and PriceSource are shared with the valuation engine.
class TransactionType(str, enum.Enum):
    BUY = "buy"
    SELL = "sell"

    # Audit-only: recorded but never change a holding
    DIVIDEND = "dividend"
    SPLIT = "split"
    MERGER = "merger"


class AlertType(str, enum.Enum):
    PRICE_ABOVE = "price_above"
    PRICE_BELOW = "price_below"
    PERCENTAGE_CHANGE = "percentage_change"


class PriceSource(str, enum.Enum):
    ALPHA_VANTAGE = "alpha_vantage"
    INDIAN_STOCK_API = "indian_stock_api"
    FINANCIAL_MODELING_PREP = "financial_modeling_prep"
    YAHOO_FINANCE = "yahoo_finance"
    MANUAL = "manual"


class AssetType(str, enum.Enum):
    STOCK = "stock"
    CRYPTO = "crypto"
    ETF = "etf"
    MUTUAL_FUND = "mutual_fund"
    BOND = "bond"
    COMMODITY = "commodity"
    FOREX = "forex"


class TransactionSource(str, enum.Enum):
    MANUAL = "manual"
    IMPORT = "import"
    API = "api"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    """
    Authenticated identity.

    Accounts are provisioned outside this service; the API only needs
    the row to resolve bearer tokens and check portfolio ownership.
    """
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    email: Mapped[str] = mapped_column(String, unique=True, index=True)
    full_name: Mapped[str | None] = mapped_column(String, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    # Relationship: One User has Many Portfolios
    portfolios: Mapped[list["Portfolio"]] = relationship(back_populates="owner")


class Portfolio(Base):
    """
    A user's collection of holdings.

    The total_* columns are aggregates over ACTIVE holdings and are
    rewritten by the valuation service after every holding mutation.
    """
    __tablename__ = "portfolios"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    name: Mapped[str] = mapped_column(String(100))
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    currency: Mapped[str] = mapped_column(String(3), default="INR")
    is_default: Mapped[bool] = mapped_column(Boolean, default=False)

    # =========================================================================
    # AGGREGATES (maintained by ValuationService)
    # =========================================================================
    total_value: Mapped[Decimal] = mapped_column(Numeric(18, 2), default=Decimal(0))
    total_cost: Mapped[Decimal] = mapped_column(Numeric(18, 2), default=Decimal(0))
    total_gain_loss: Mapped[Decimal] = mapped_column(Numeric(18, 2), default=Decimal(0))
    total_gain_loss_percentage: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal(0))
    total_realized_gain_loss: Mapped[Decimal] = mapped_column(Numeric(18, 2), default=Decimal(0))

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    owner: Mapped["User"] = relationship(back_populates="portfolios")
    holdings: Mapped[list["Holding"]] = relationship(
        back_populates="portfolio",
        cascade="all, delete-orphan",
        order_by="Holding.id",
    )
    history: Mapped[list["PortfolioHistory"]] = relationship(
        back_populates="portfolio",
        cascade="all, delete-orphan",
        order_by="PortfolioHistory.date",
    )
    performance: Mapped[list["PortfolioPerformance"]] = relationship(
        back_populates="portfolio",
        cascade="all, delete-orphan",
    )
    transactions: Mapped[list["Transaction"]] = relationship(
        back_populates="portfolio",
        cascade="all, delete-orphan"
    )


class Holding(Base):
    """
    A position in one symbol within one portfolio.

    quantity, average_price and current_price are the inputs; total_cost,
    current_value, gain_loss and gain_loss_percentage are derived and
    rewritten whenever any input changes.
    """
    __tablename__ = "holdings"
    __table_args__ = (
        UniqueConstraint('portfolio_id', 'symbol', name='uq_holding_portfolio_symbol'),
        # "Find every active holding of symbol X" - used on each price tick
        Index('ix_holding_symbol_active', 'symbol', 'is_active'),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    portfolio_id: Mapped[int] = mapped_column(ForeignKey("portfolios.id"), index=True)

    symbol: Mapped[str] = mapped_column(String(10), index=True)  # e.g. "RELIANCE"
    name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    asset_type: Mapped[AssetType] = mapped_column(Enum(AssetType), default=AssetType.STOCK)
    exchange: Mapped[str | None] = mapped_column(String(20), nullable=True)  # e.g. "NSE"
    currency: Mapped[str] = mapped_column(String(3), default="INR")
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    # Numeric(18, 8) supports fractional units (crypto has 8 decimals)
    quantity: Mapped[Decimal] = mapped_column(Numeric(18, 8), default=Decimal(0))
    average_price: Mapped[Decimal] = mapped_column(Numeric(18, 8), default=Decimal(0))
    current_price: Mapped[Decimal] = mapped_column(Numeric(18, 8), default=Decimal(0))

    # =========================================================================
    # DERIVED METRICS
    # =========================================================================
    total_cost: Mapped[Decimal] = mapped_column(Numeric(18, 2), default=Decimal(0))
    current_value: Mapped[Decimal] = mapped_column(Numeric(18, 2), default=Decimal(0))
    gain_loss: Mapped[Decimal] = mapped_column(Numeric(18, 2), default=Decimal(0))
    gain_loss_percentage: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal(0))
    realized_gain_loss: Mapped[Decimal] = mapped_column(Numeric(18, 2), default=Decimal(0))

    last_price_update: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    price_source: Mapped[PriceSource | None] = mapped_column(Enum(PriceSource), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    portfolio: Mapped["Portfolio"] = relationship(back_populates="holdings")
    price_history: Mapped[list["PriceHistory"]] = relationship(
        back_populates="holding",
        cascade="all, delete-orphan",
        order_by="PriceHistory.date",
    )
    alerts: Mapped[list["Alert"]] = relationship(
        back_populates="holding",
        cascade="all, delete-orphan",
        order_by="Alert.id",
    )
    transactions: Mapped[list["Transaction"]] = relationship(back_populates="holding")


class PriceHistory(Base):
    """
    Recorded price observations for a holding.

    Only price changes are recorded, and rows older than the retention
    window are pruned whenever a new price is applied.
    """
    __tablename__ = "price_history"
    __table_args__ = (
        Index('ix_price_history_holding_date', 'holding_id', 'date'),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    holding_id: Mapped[int] = mapped_column(ForeignKey("holdings.id"), index=True)
    date: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    price: Mapped[Decimal] = mapped_column(Numeric(18, 8))
    volume: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    holding: Mapped["Holding"] = relationship(back_populates="price_history")


class Alert(Base):
    __tablename__ = "alerts"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    holding_id: Mapped[int] = mapped_column(ForeignKey("holdings.id"), index=True)
    alert_type: Mapped[AlertType] = mapped_column(Enum(AlertType))
    # Price threshold for price_* alerts, percent for percentage_change
    value: Mapped[Decimal] = mapped_column(Numeric(18, 8))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    last_triggered: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    holding: Mapped["Holding"] = relationship(back_populates="alerts")


class PortfolioHistory(Base):
    """
    Point-in-time snapshots of portfolio totals.

    Feeds the performance windows. Pruned to the retention window on append.
    """
    __tablename__ = "portfolio_history"
    __table_args__ = (
        Index('ix_portfolio_history_portfolio_date', 'portfolio_id', 'date'),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    portfolio_id: Mapped[int] = mapped_column(ForeignKey("portfolios.id"), index=True)
    date: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    total_value: Mapped[Decimal] = mapped_column(Numeric(18, 2))
    total_cost: Mapped[Decimal] = mapped_column(Numeric(18, 2))
    gain_loss: Mapped[Decimal] = mapped_column(Numeric(18, 2))
    gain_loss_percentage: Mapped[Decimal] = mapped_column(Numeric(10, 2))

    portfolio: Mapped["Portfolio"] = relationship(back_populates="history")


class PortfolioPerformance(Base):
    """One row per (portfolio, period): the latest computed window."""
    __tablename__ = "portfolio_performance"
    __table_args__ = (
        UniqueConstraint('portfolio_id', 'period', name='uq_performance_portfolio_period'),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    portfolio_id: Mapped[int] = mapped_column(ForeignKey("portfolios.id"), index=True)
    period: Mapped[str] = mapped_column(String(10))  # daily, weekly, monthly, yearly
    value: Mapped[Decimal] = mapped_column(Numeric(18, 2), default=Decimal(0))
    percentage: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal(0))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    portfolio: Mapped["Portfolio"] = relationship(back_populates="performance")


class Transaction(Base):
    """
    Immutable audit record of a trade or corporate action.

    Only is_active may change after creation (soft deactivation).
    """
    __tablename__ = "transactions"
    __table_args__ = (
        # "Get transactions for portfolio X, newest first"
        Index('ix_transaction_portfolio_date', 'portfolio_id', 'date'),
        # "Get transactions for holding H in portfolio X"
        Index('ix_transaction_portfolio_holding_date', 'portfolio_id', 'holding_id', 'date'),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    portfolio_id: Mapped[int] = mapped_column(ForeignKey("portfolios.id"), index=True)
    holding_id: Mapped[int] = mapped_column(ForeignKey("holdings.id"), index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)

    transaction_type: Mapped[TransactionType] = mapped_column(Enum(TransactionType))
    symbol: Mapped[str] = mapped_column(String(10))
    date: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)  # When it was recorded

    quantity: Mapped[Decimal] = mapped_column(Numeric(18, 8))
    price: Mapped[Decimal] = mapped_column(Numeric(18, 8))
    fees: Mapped[Decimal] = mapped_column(Numeric(18, 8), default=Decimal(0))
    total_amount: Mapped[Decimal] = mapped_column(Numeric(18, 2))  # quantity × price
    net_amount: Mapped[Decimal] = mapped_column(Numeric(18, 2))  # total ± fees
    realized_gain_loss: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)  # Sells only
    currency: Mapped[str] = mapped_column(String(3), default="INR")
    source: Mapped[TransactionSource] = mapped_column(Enum(TransactionSource), default=TransactionSource.MANUAL)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    portfolio: Mapped["Portfolio"] = relationship(back_populates="transactions")
    holding: Mapped["Holding"] = relationship(back_populates="transactions")
    user: Mapped["User"] = relationship()
