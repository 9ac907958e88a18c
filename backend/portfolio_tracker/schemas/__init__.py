# backend/portfolio_tracker/schemas/__init__.py
"""
Pydantic schemas for API request/response validation.

This package contains all Pydantic schemas organized by domain:
- alerts: Alert CRUD and triggered alerts
- errors: Error response formats
- market: Price updates, provider passthrough, market session and job
- pagination: Page-based pagination metadata
- portfolios: Portfolios, holdings, performance and history
- transactions: Transaction recording, listing and summary
- validators: Reusable validation functions (symbol, exchange, currency)

Usage:
    from portfolio_tracker.schemas import PortfolioCreate, PortfolioResponse
    from portfolio_tracker.schemas import HoldingAdd, HoldingChangeResponse
    from portfolio_tracker.schemas import ErrorDetail
"""

from portfolio_tracker.schemas.alerts import (
    AlertCreate,
    AlertUpdate,
    AlertResponse,
    AlertTriggerResponse,
)
from portfolio_tracker.schemas.errors import ErrorDetail, FieldError, ValidationErrorDetail
from portfolio_tracker.schemas.market import (
    PriceUpdateRequest,
    PriceUpdateResponse,
    RepricedHoldingResponse,
    BatchPriceUpdateRequest,
    BatchPriceUpdateResponse,
    QuoteResponse,
    HistoricalPriceResponse,
    HistoricalPricesResponse,
    MarketStatusResponse,
    PriceUpdateRunRequest,
    PriceUpdateRunResponse,
)
from portfolio_tracker.schemas.pagination import PaginationMeta
from portfolio_tracker.schemas.portfolios import (
    PortfolioCreate,
    PortfolioUpdate,
    PortfolioResponse,
    PortfolioListResponse,
    PortfolioSummaryItemResponse,
    PortfolioSummaryResponse,
    PortfolioDetailResponse,
    HoldingAdd,
    HoldingResponse,
    HoldingChangeResponse,
    DailyChangeResponse,
    PerformanceResponse,
    PerformanceWindowResponse,
    HistoryEntryResponse,
    PortfolioHistoryResponse,
    PortfolioRefreshResponse,
)
from portfolio_tracker.schemas.transactions import (
    TransactionCreate,
    TransactionResponse,
    TransactionRecordResponse,
    TransactionListResponse,
    TransactionSummaryItem,
    TransactionSummaryResponse,
)

__all__ = [
    # Portfolios
    "PortfolioCreate",
    "PortfolioUpdate",
    "PortfolioResponse",
    "PortfolioListResponse",
    "PortfolioSummaryItemResponse",
    "PortfolioSummaryResponse",
    "PortfolioDetailResponse",
    # Holdings
    "HoldingAdd",
    "HoldingResponse",
    "HoldingChangeResponse",
    "DailyChangeResponse",
    # Performance
    "PerformanceResponse",
    "PerformanceWindowResponse",
    "HistoryEntryResponse",
    "PortfolioHistoryResponse",
    "PortfolioRefreshResponse",
    # Transactions
    "TransactionCreate",
    "TransactionResponse",
    "TransactionRecordResponse",
    "TransactionListResponse",
    "TransactionSummaryItem",
    "TransactionSummaryResponse",
    # Alerts
    "AlertCreate",
    "AlertUpdate",
    "AlertResponse",
    "AlertTriggerResponse",
    # Market
    "PriceUpdateRequest",
    "PriceUpdateResponse",
    "RepricedHoldingResponse",
    "BatchPriceUpdateRequest",
    "BatchPriceUpdateResponse",
    "QuoteResponse",
    "HistoricalPriceResponse",
    "HistoricalPricesResponse",
    "MarketStatusResponse",
    "PriceUpdateRunRequest",
    "PriceUpdateRunResponse",
    # Common
    "ErrorDetail",
    "FieldError",
    "ValidationErrorDetail",
    "PaginationMeta",
]
