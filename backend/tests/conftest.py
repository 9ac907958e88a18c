# backend/tests/conftest.py
"""
Pytest configuration and fixtures.

This module provides shared fixtures for all tests:
- Database session fixtures (in-memory SQLite)
- Mock market data provider
- Service fixtures wired with fresh lock registries
- Sample data factories
- FastAPI test client with dependency overrides
"""

import os

# Must be set BEFORE importing portfolio_tracker modules: settings are read at
# import time and the rate limiter is disabled in the test environment.
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from portfolio_tracker.models import (
    Base,
    Holding,
    Portfolio,
    PriceSource,
    User,
)
from portfolio_tracker.services.auth.jwt_handler import JWTHandler
from portfolio_tracker.services.exceptions import TickerNotFoundError
from portfolio_tracker.services.locks import PortfolioLockRegistry
from portfolio_tracker.services.market_data.base import (
    HistoricalPrice,
    HistoricalPricesResult,
    MarketDataProvider,
    Quote,
)
from portfolio_tracker.services.market_data.price_update_job import PriceUpdateJob
from portfolio_tracker.services.portfolio_service import PortfolioService
from portfolio_tracker.services.pricing_service import PricingService
from portfolio_tracker.services.valuation import ValuationConfig, ValuationService

# Monday 2024-01-08 10:30 IST, inside the default NSE session
MARKET_OPEN_NOW = datetime(2024, 1, 8, 5, 0, tzinfo=timezone.utc)


# =============================================================================
# DATABASE FIXTURES
# =============================================================================

@pytest.fixture(scope="function")
def db_engine():
    """Create an in-memory SQLite database engine for testing."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)


@pytest.fixture(scope="function")
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture(scope="function")
def db(session_factory) -> Iterator[Session]:
    """Create a database session for testing."""
    session = session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


# =============================================================================
# MOCK MARKET DATA PROVIDER
# =============================================================================

class MockMarketDataProvider(MarketDataProvider):
    """
    Mock implementation of MarketDataProvider for testing.

    Quotes and history are configured per symbol; unknown symbols raise
    TickerNotFoundError. The request budget is charged like a real
    provider, but calls are never retried.
    """

    price_source = PriceSource.YAHOO_FINANCE

    def __init__(self, max_requests_per_minute: int = 1000):
        super().__init__(max_requests_per_minute=max_requests_per_minute)
        self._quotes: dict[str, Decimal] = {}
        self._errors: dict[str, Exception] = {}
        self._historical: dict[str, list[HistoricalPrice]] = {}
        self.quote_calls: list[str] = []

    @property
    def name(self) -> str:
        return "mock"

    def set_quote(self, symbol: str, price: Decimal | str) -> None:
        """Configure the price returned for a symbol."""
        self._quotes[symbol.upper()] = Decimal(str(price))

    def add_error(self, symbol: str, error: Exception) -> None:
        """Configure an error raised for a symbol."""
        self._errors[symbol.upper()] = error

    def set_historical(self, symbol: str, prices: list[HistoricalPrice]) -> None:
        self._historical[symbol.upper()] = prices

    def get_quote(self, symbol: str, exchange: str = "") -> Quote:
        symbol = symbol.upper()
        self.quote_calls.append(symbol)
        self.budget.acquire(self.name)

        if symbol in self._errors:
            raise self._errors[symbol]
        if symbol not in self._quotes:
            raise TickerNotFoundError(ticker=symbol, exchange=exchange, provider=self.name)

        return Quote(
            symbol=symbol,
            price=self._quotes[symbol],
            timestamp=datetime.now(timezone.utc),
            volume=1000,
        )

    def get_historical(
            self,
            symbol: str,
            period: str = "1mo",
            exchange: str = "",
    ) -> HistoricalPricesResult:
        self.validate_period(period)
        symbol = symbol.upper()
        self.budget.acquire(self.name)

        if symbol in self._errors:
            raise self._errors[symbol]
        if symbol not in self._historical:
            raise TickerNotFoundError(ticker=symbol, exchange=exchange, provider=self.name)

        return HistoricalPricesResult(
            symbol=symbol, period=period, prices=list(self._historical[symbol])
        )


@pytest.fixture
def mock_provider() -> MockMarketDataProvider:
    """Fresh mock provider for each test."""
    return MockMarketDataProvider()


# =============================================================================
# SERVICE FIXTURES
# =============================================================================

@pytest.fixture
def valuation_config() -> ValuationConfig:
    return ValuationConfig()


@pytest.fixture
def valuation_service(valuation_config) -> ValuationService:
    return ValuationService(valuation_config)


@pytest.fixture
def lock_registry() -> PortfolioLockRegistry:
    return PortfolioLockRegistry()


@pytest.fixture
def portfolio_service(valuation_service, lock_registry) -> PortfolioService:
    return PortfolioService(valuation_service, locks=lock_registry)


@pytest.fixture
def pricing_service(valuation_service, lock_registry) -> PricingService:
    return PricingService(valuation_service, locks=lock_registry)


@pytest.fixture
def price_update_job(session_factory, mock_provider, pricing_service) -> PriceUpdateJob:
    return PriceUpdateJob(
        session_factory=session_factory,
        provider=mock_provider,
        pricing_service=pricing_service,
        batch_size=10,
    )


# =============================================================================
# SAMPLE DATA FACTORIES
# =============================================================================

def create_user(db: Session, email: str = "investor@example.com", is_active: bool = True) -> User:
    """Create a test user."""
    user = User(email=email, full_name="Test Investor", is_active=is_active)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def create_portfolio(
        db: Session,
        user: User,
        name: str = "Test Portfolio",
        currency: str = "INR",
) -> Portfolio:
    """Create a test portfolio."""
    portfolio = Portfolio(user_id=user.id, name=name, currency=currency)
    db.add(portfolio)
    db.commit()
    db.refresh(portfolio)
    return portfolio


def create_holding(
        db: Session,
        portfolio: Portfolio,
        symbol: str = "INFY",
        quantity: str = "10",
        average_price: str = "100",
        current_price: str = "100",
) -> Holding:
    """
    Create a holding directly, bypassing transactions.

    Metrics and portfolio totals are computed so the row is consistent.
    """
    holding = Holding(
        symbol=symbol,
        quantity=Decimal(quantity),
        average_price=Decimal(average_price),
        current_price=Decimal(current_price),
        currency=portfolio.currency,
        is_active=True,
    )
    portfolio.holdings.append(holding)
    ValuationService().revalue_portfolio(portfolio)
    db.commit()
    db.refresh(holding)
    return holding


def auth_headers(user: User) -> dict[str, str]:
    """Bearer header for a user."""
    token = JWTHandler.create_access_token(user_id=user.id, email=user.email)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def sample_user(db: Session) -> User:
    return create_user(db)


@pytest.fixture
def other_user(db: Session) -> User:
    return create_user(db, email="someone-else@example.com")


@pytest.fixture
def sample_portfolio(db: Session, sample_user: User) -> Portfolio:
    return create_portfolio(db, sample_user)


# =============================================================================
# API CLIENT
# =============================================================================

@pytest.fixture
def client(session_factory, mock_provider, price_update_job) -> Iterator[TestClient]:
    """
    TestClient with the database, provider and job replaced by test doubles.

    Each request gets its own session bound to the in-memory engine.
    """
    from portfolio_tracker.database import get_db
    from portfolio_tracker.dependencies import (
        clear_service_caches,
        get_market_data_provider,
        get_price_update_job,
    )
    from portfolio_tracker.main import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    clear_service_caches()
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_market_data_provider] = lambda: mock_provider
    app.dependency_overrides[get_price_update_job] = lambda: price_update_job

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    clear_service_caches()
