# backend/portfolio_tracker/services/__init__.py
"""
Service layer for business logic.

This package contains the service layer which encapsulates business logic
separate from the API (router) layer. Services:
- Have NO knowledge of HTTP (no HTTPException, no status codes)
- Raise domain-specific exceptions
- Receive database sessions as parameters (not via Depends)
- Are easily testable via dependency injection

Usage:
    from portfolio_tracker.services import PortfolioService
    from portfolio_tracker.services import PricingService
    from portfolio_tracker.services import ValuationService
    from portfolio_tracker.services import (
        PortfolioNotFoundError,
        MarketDataError,
    )

Architecture:
    services/
    ├── __init__.py                  # This file - main exports
    ├── exceptions.py                # Domain exceptions
    ├── constants.py                 # Business constants and limits
    ├── locks.py                     # Per-portfolio mutation locks
    ├── portfolio_service.py         # Holdings, transactions, performance, alerts
    ├── pricing_service.py           # Price ticks and provider batches
    ├── auth/                        # Bearer token validation
    │   └── jwt_handler.py
    ├── market_data/                 # Market data package
    │   ├── base.py                  # Abstract provider interface + request budget
    │   ├── yahoo.py                 # Yahoo Finance implementation
    │   └── price_update_job.py      # Batch repricing job
    └── valuation/                   # Valuation engine
        ├── service.py               # ORM bridge
        ├── types.py                 # Frozen snapshots and config
        ├── calculators.py           # Point-in-time calculations
        ├── history_calculator.py    # History log and performance windows
        └── alerts.py                # Alert evaluation
"""

# Exceptions
from portfolio_tracker.services.exceptions import (
    # Base exceptions
    ServiceError,
    ValidationError,
    InvalidPeriodError,
    # Not found
    NotFoundError,
    PortfolioNotFoundError,
    HoldingNotFoundError,
    TransactionNotFoundError,
    AlertNotFoundError,
    # Market data exceptions
    MarketDataError,
    ProviderUnavailableError,
    TickerNotFoundError,
    RateLimitError,
    # Auth exceptions
    AuthenticationError,
    InvalidCredentialsError,
    TokenExpiredError,
    AuthorizationError,
    PermissionDeniedError,
)
# Market Data
from portfolio_tracker.services.market_data import (
    MarketDataProvider,
    Quote,
    QuoteBatchResult,
    HistoricalPricesResult,
    YahooFinanceProvider,
    PriceUpdateJob,
    PriceUpdateRunResult,
)
# Portfolio Service
from portfolio_tracker.services.portfolio_service import (
    PortfolioService,
    HoldingChangeResult,
    PerformanceReport,
    TransactionPage,
    TransactionSummaryRow,
)
# Pricing Service
from portfolio_tracker.services.pricing_service import (
    PricingService,
    PriceUpdateResult,
    ProviderRefreshResult,
)
# Valuation Service
from portfolio_tracker.services.valuation import ValuationService, ValuationConfig

__all__ = [
    # ==========================================================================
    # Services
    # ==========================================================================
    "PortfolioService",
    "HoldingChangeResult",
    "PerformanceReport",
    "TransactionPage",
    "TransactionSummaryRow",
    # Pricing Service
    "PricingService",
    "PriceUpdateResult",
    "ProviderRefreshResult",
    # Valuation Service
    "ValuationService",
    "ValuationConfig",
    # Market Data
    "MarketDataProvider",
    "YahooFinanceProvider",
    "Quote",
    "QuoteBatchResult",
    "HistoricalPricesResult",
    "PriceUpdateJob",
    "PriceUpdateRunResult",

    # ==========================================================================
    # Exceptions
    # ==========================================================================
    # Base
    "ServiceError",
    "ValidationError",
    "InvalidPeriodError",
    # Not found
    "NotFoundError",
    "PortfolioNotFoundError",
    "HoldingNotFoundError",
    "TransactionNotFoundError",
    "AlertNotFoundError",
    # Market data
    "MarketDataError",
    "ProviderUnavailableError",
    "TickerNotFoundError",
    "RateLimitError",
    # Auth
    "AuthenticationError",
    "InvalidCredentialsError",
    "TokenExpiredError",
    "AuthorizationError",
    "PermissionDeniedError",
]
