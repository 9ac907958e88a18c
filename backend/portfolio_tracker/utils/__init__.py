# backend/portfolio_tracker/utils/__init__.py
"""
Utility modules for the Portfolio Tracker.

This package contains cross-cutting utilities used throughout the application:
- logging: Logging configuration with correlation ID and user support
- context: Request context (correlation ID, authenticated user)
- date_utils: UTC normalization, business days, market session status

Usage:
    from portfolio_tracker.utils import setup_logging
    from portfolio_tracker.utils import get_correlation_id, set_correlation_id
    from portfolio_tracker.utils.date_utils import market_status
"""

from portfolio_tracker.utils.context import (
    get_correlation_id,
    set_correlation_id,
    clear_correlation_id,
    get_user_id,
    set_user_id,
    clear_user_id,
    correlation_scope,
    new_correlation_id,
)
from portfolio_tracker.utils.logging import setup_logging

__all__ = [
    # Logging
    "setup_logging",
    # Context
    "get_correlation_id",
    "set_correlation_id",
    "clear_correlation_id",
    "get_user_id",
    "set_user_id",
    "clear_user_id",
    "correlation_scope",
    "new_correlation_id",
]
