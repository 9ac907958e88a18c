# backend/portfolio_tracker/routers/__init__.py
"""
API routers for the Portfolio Tracker.

Each router handles a specific domain:
- portfolios: Portfolio CRUD, holdings, performance and history
- transactions: Transaction records nested under a portfolio
- alerts: Price/gain alerts nested under a holding
- assets: Price ticks and provider passthrough keyed by symbol
- market: Trading session status and the price-update job
"""

from portfolio_tracker.routers.alerts import router as alerts_router
from portfolio_tracker.routers.assets import router as assets_router
from portfolio_tracker.routers.market import router as market_router
from portfolio_tracker.routers.portfolios import router as portfolios_router
from portfolio_tracker.routers.transactions import router as transactions_router

__all__ = [
    "portfolios_router",
    "transactions_router",
    "alerts_router",
    "assets_router",
    "market_router",
]
