# backend/portfolio_tracker/services/constants.py
"""
Centralized constants for the Portfolio Tracker services.

This module provides a single source of truth for business constants
used across the application. Tunable values such as the history retention
window live in config.Settings instead.

Usage:
    from portfolio_tracker.services.constants import (
        CURRENCY_PRECISION,
        DIVERSITY_SCORE_THRESHOLDS,
        RATE_LIMIT_WRITE,
    )
"""

from decimal import Decimal


# =============================================================================
# VALUATION DEFAULTS
# =============================================================================

# Diversity score by active holding count: (max holdings, score)
# Anything above the last threshold scores 100
DIVERSITY_SCORE_THRESHOLDS: tuple[tuple[int, int], ...] = (
    (0, 0),
    (1, 20),
    (3, 40),
    (5, 60),
    (10, 80),
)
MAX_DIVERSITY_SCORE: int = 100


# =============================================================================
# MARKET DATA SETTINGS
# =============================================================================

# Requests a single provider instance may issue per rolling minute
DEFAULT_MAX_REQUESTS_PER_MINUTE: int = 5

# Length of the request budget window in seconds
REQUEST_BUDGET_WINDOW_SECONDS: int = 60

# Default timeout for external API calls (market data providers)
EXTERNAL_API_TIMEOUT_SECONDS: int = 10

# Symbols refreshed per price-update job run
DEFAULT_PRICE_UPDATE_BATCH_SIZE: int = 5

# Maximum symbols accepted by the batch price endpoint
MAX_BATCH_SYMBOLS: int = 20

# Default trading session (NSE/BSE)
DEFAULT_MARKET_TIMEZONE: str = "Asia/Kolkata"
DEFAULT_MARKET_OPEN: str = "09:15"
DEFAULT_MARKET_CLOSE: str = "15:30"


# =============================================================================
# DECIMAL PRECISION CONSTANTS
# =============================================================================

# Currency amounts: 2 decimal places (e.g., 1234.56)
# Used for: holding value, cost, gain/loss, portfolio totals
CURRENCY_PRECISION: Decimal = Decimal("0.01")

# Share quantities and average prices: 8 decimal places
# Supports fractional units (crypto has 8 decimals)
SHARE_PRECISION: Decimal = Decimal("0.00000001")

# Display percentage: 2 decimal places (e.g., 12.34%)
DISPLAY_PERCENTAGE_PRECISION: Decimal = Decimal("0.01")


# =============================================================================
# UTILITY CONSTANTS
# =============================================================================

# Type-safe zero for Decimal comparisons
ZERO: Decimal = Decimal("0")

HUNDRED: Decimal = Decimal("100")


# =============================================================================
# RATE LIMITING CONSTANTS
# =============================================================================
# Format follows slowapi/limits syntax: "100/minute", "10/hour", etc.

# Default rate limit for read endpoints (GET requests)
RATE_LIMIT_DEFAULT: str = "100/minute"

# Rate limit for write endpoints (POST, PATCH, DELETE)
RATE_LIMIT_WRITE: str = "30/minute"

# Rate limit for endpoints that call the market data provider
# Very restrictive since these consume the provider request budget
RATE_LIMIT_MARKET_DATA: str = "10/minute"

# Rate limit for health check endpoints
# Higher limit for monitoring tools that poll frequently
RATE_LIMIT_HEALTH: str = "300/minute"


# =============================================================================
# RESOURCE LIMIT CONSTANTS
# =============================================================================

# Maximum number of items returned in a single list response
MAX_LIST_LIMIT: int = 100
