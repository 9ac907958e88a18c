# backend/portfolio_tracker/services/market_data/__init__.py
"""
Market data services package.

This package contains:
- Abstract interface for market data providers (base.py)
- Yahoo Finance implementation (yahoo.py)
- Price update job runner (price_update_job.py)

Usage:
    # Provider interface and data classes
    from portfolio_tracker.services.market_data import (
        MarketDataProvider,
        Quote,
        QuoteBatchResult,
        HistoricalPricesResult,
    )

    # Yahoo Finance provider
    from portfolio_tracker.services.market_data import YahooFinanceProvider

    # Job runner
    from portfolio_tracker.services.market_data import PriceUpdateJob

Architecture:
    MarketDataProvider (ABC)
    └── owns a RequestBudget (per instance)
    └── YahooFinanceProvider (concrete)

    PriceUpdateJob
    └── Picks stale symbols, fetches quotes
    └── Applies them through PricingService
"""

# Base provider interface and data classes
from portfolio_tracker.services.market_data.base import (
    VALID_PERIODS,
    MarketDataProvider,
    Quote,
    QuoteBatchResult,
    HistoricalPrice,
    HistoricalPricesResult,
    RequestBudget,
)
# Job runner
from portfolio_tracker.services.market_data.price_update_job import (
    PriceUpdateJob,
    PriceUpdateRunResult,
)
# Concrete implementations
from portfolio_tracker.services.market_data.yahoo import YahooFinanceProvider

__all__ = [
    # Abstract interface
    "MarketDataProvider",
    "RequestBudget",
    "VALID_PERIODS",
    # Data classes
    "Quote",
    "QuoteBatchResult",
    "HistoricalPrice",
    "HistoricalPricesResult",
    # Concrete implementations
    "YahooFinanceProvider",
    # Job runner
    "PriceUpdateJob",
    "PriceUpdateRunResult",
]
