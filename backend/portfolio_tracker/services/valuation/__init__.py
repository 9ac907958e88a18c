# backend/portfolio_tracker/services/valuation/__init__.py
"""
Valuation Engine Package.

This package provides portfolio valuation capabilities:
- Per-holding metrics (cost, value, gain/loss)
- Price ticks and weighted average cost trades
- Portfolio aggregation
- History log and windowed performance
- Alert threshold evaluation

Usage:
    from portfolio_tracker.services.valuation import ValuationService, ValuationConfig

    service = ValuationService(ValuationConfig(history_retention_days=90))

    service.apply_trade(holding, TransactionType.BUY, Decimal("10"), Decimal("100"))
    service.revalue_portfolio(portfolio)
    service.refresh_history(portfolio, now)

Architecture:
    valuation/
    ├── __init__.py              # This file - package exports
    ├── types.py                 # Frozen snapshots and ValuationConfig
    ├── calculators.py           # Point-in-time calculators
    ├── history_calculator.py    # History log and performance windows
    ├── alerts.py                # Alert evaluator
    └── service.py               # ValuationService (ORM bridge)

Data Flow:
    Holding row → HoldingSnapshot → calculators → HoldingSnapshot → Holding row
    Holding snapshots → PortfolioAggregator → PortfolioTotals
    PortfolioTotals → HistoryCalculator → history log
    History log → PerformanceCalculator → PortfolioPerformance
"""

from portfolio_tracker.services.valuation.alerts import AlertEvaluator
from portfolio_tracker.services.valuation.calculators import (
    DailyChangeCalculator,
    HoldingMetricsCalculator,
    PortfolioAggregator,
    PriceUpdateCalculator,
    TransactionCalculator,
    diversity_score,
    percentage_of,
    prune_price_history,
    validate_transaction,
)
from portfolio_tracker.services.valuation.history_calculator import (
    HistoryCalculator,
    PerformanceCalculator,
)
from portfolio_tracker.services.valuation.service import ValuationService
from portfolio_tracker.services.valuation.types import (
    AlertEvaluation,
    AlertRule,
    DailyChange,
    HistoryEntry,
    HoldingMetrics,
    HoldingSnapshot,
    PERFORMANCE_PERIODS,
    PerformanceBand,
    PerformanceWindow,
    PortfolioPerformance,
    PortfolioSnapshot,
    PortfolioTotals,
    PricePoint,
    TradeResult,
    TriggeredAlert,
    ValuationConfig,
)

__all__ = [
    # Main service
    "ValuationService",

    # Configuration
    "ValuationConfig",
    "PerformanceBand",
    "PERFORMANCE_PERIODS",

    # Data types
    "AlertEvaluation",
    "AlertRule",
    "DailyChange",
    "HistoryEntry",
    "HoldingMetrics",
    "HoldingSnapshot",
    "PerformanceWindow",
    "PortfolioPerformance",
    "PortfolioSnapshot",
    "PortfolioTotals",
    "PricePoint",
    "TradeResult",
    "TriggeredAlert",

    # Calculators (for testing)
    "AlertEvaluator",
    "DailyChangeCalculator",
    "HistoryCalculator",
    "HoldingMetricsCalculator",
    "PerformanceCalculator",
    "PortfolioAggregator",
    "PriceUpdateCalculator",
    "TransactionCalculator",
    "diversity_score",
    "percentage_of",
    "prune_price_history",
    "validate_transaction",
]
