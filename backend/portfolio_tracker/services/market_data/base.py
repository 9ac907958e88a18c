# backend/portfolio_tracker/services/market_data/base.py
"""
Abstract interface for market data providers.

This module defines the contract that all market data providers must follow.
Using an abstract base class allows for:
- Easy addition of new providers (Alpha Vantage, FMP, etc.)
- Mock implementations for testing
- Consistent retry behavior across all providers
- A request budget owned by each provider instance

Design Principles:
- Interface Segregation: Only essential methods in the base class
- Dependency Inversion: Services depend on abstractions, not concrete implementations
- DRY: Common retry and budget logic implemented once in base class
- No module-level state: request counters live on the instance
"""

import logging
import math
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import TypeVar, Callable, Any

from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log,
)

from portfolio_tracker.models import PriceSource
from portfolio_tracker.services.constants import (
    DEFAULT_MAX_REQUESTS_PER_MINUTE,
    REQUEST_BUDGET_WINDOW_SECONDS,
)
from portfolio_tracker.services.exceptions import (
    InvalidPeriodError,
    MarketDataError,
    ProviderUnavailableError,
    RateLimitError,
)
from portfolio_tracker.utils.date_utils import utcnow

logger = logging.getLogger(__name__)

# Type variable for generic return type in retry method
T = TypeVar('T')

# Lookback periods accepted by get_historical()
VALID_PERIODS: tuple[str, ...] = ("1mo", "3mo", "6mo", "1y", "2y", "5y", "max")


# =============================================================================
# DATA CLASSES - QUOTES
# =============================================================================

@dataclass(frozen=True)
class Quote:
    """
    Latest market price for a symbol.

    Attributes:
        symbol: Trading symbol, normalized to uppercase (e.g., "INFY")
        price: Last traded price
        volume: Session volume (if the provider reports it)
        timestamp: When the quote was taken (UTC)
        currency: Trading currency (if the provider reports it)
    """

    symbol: str
    price: Decimal
    timestamp: datetime
    volume: int | None = None
    currency: str | None = None

    def __post_init__(self) -> None:
        if not self.symbol:
            raise ValueError("symbol is required")
        if self.price <= 0:
            raise ValueError(f"price must be positive, got {self.price}")


@dataclass
class QuoteBatchResult:
    """
    Result of fetching quotes for several symbols.

    Tracks which lookups succeeded and which failed, allowing partial success.

    Attributes:
        successful: Dict mapping symbol to Quote
        failed: Dict mapping symbol to the exception that occurred
    """

    successful: dict[str, Quote] = field(default_factory=dict)
    failed: dict[str, Exception] = field(default_factory=dict)

    @property
    def success_count(self) -> int:
        return len(self.successful)

    @property
    def failure_count(self) -> int:
        return len(self.failed)

    @property
    def all_successful(self) -> bool:
        return self.failure_count == 0


# =============================================================================
# DATA CLASSES - PRICE HISTORY
# =============================================================================

@dataclass(frozen=True)
class HistoricalPrice:
    """
    One day's closing price.

    Attributes:
        date: Trading date (no time component)
        price: Closing price
        volume: Trading volume
    """

    date: date
    price: Decimal
    volume: int | None = None

    def __post_init__(self) -> None:
        if self.price <= 0:
            raise ValueError(f"price must be positive, got {self.price}")


@dataclass
class HistoricalPricesResult:
    """
    Result of fetching historical prices for a symbol.

    Attributes:
        symbol: The symbol requested
        period: The lookback period requested (e.g., "1mo")
        prices: Daily prices, oldest first (empty if none)
    """

    symbol: str
    period: str
    prices: list[HistoricalPrice] = field(default_factory=list)

    @property
    def days_fetched(self) -> int:
        """Number of trading days fetched."""
        return len(self.prices)


# =============================================================================
# REQUEST BUDGET
# =============================================================================

@dataclass
class RequestBudget:
    """
    Per-provider request allowance over a fixed window.

    Each provider instance owns one budget. acquire() counts a request and
    raises RateLimitError once the window's allowance is used up; the
    counter resets when the window elapses.

    Attributes:
        max_requests_per_minute: Allowance per window
        window_seconds: Window length
        request_count: Requests counted in the current window
        window_started_at: When the current window began (None before first use)
    """

    max_requests_per_minute: int = DEFAULT_MAX_REQUESTS_PER_MINUTE
    window_seconds: int = REQUEST_BUDGET_WINDOW_SECONDS
    request_count: int = 0
    window_started_at: datetime | None = None
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def acquire(self, provider: str, now: datetime | None = None) -> None:
        """
        Count one request against the budget.

        Args:
            provider: Provider name (for the error message)
            now: Current time (defaults to UTC now)

        Raises:
            RateLimitError: If the allowance for the current window is spent
        """
        now = now or utcnow()
        with self._lock:
            self._roll_window(now)

            if self.request_count >= self.max_requests_per_minute:
                retry_after = self._seconds_until_reset(now)
                logger.warning(
                    f"Request budget exhausted for {provider}: "
                    f"{self.request_count}/{self.max_requests_per_minute}, "
                    f"resets in {retry_after}s"
                )
                raise RateLimitError(provider=provider, retry_after=retry_after)

            self.request_count += 1

    def remaining(self, now: datetime | None = None) -> int:
        now = now or utcnow()
        with self._lock:
            self._roll_window(now)
            return max(0, self.max_requests_per_minute - self.request_count)

    def stats(self, now: datetime | None = None) -> dict[str, Any]:
        """Snapshot of the budget for health and status endpoints."""
        now = now or utcnow()
        with self._lock:
            self._roll_window(now)
            return {
                "max_requests_per_minute": self.max_requests_per_minute,
                "request_count": self.request_count,
                "remaining": max(0, self.max_requests_per_minute - self.request_count),
                "window_started_at": self.window_started_at,
                "resets_in_seconds": self._seconds_until_reset(now),
            }

    def _roll_window(self, now: datetime) -> None:
        window = timedelta(seconds=self.window_seconds)
        if self.window_started_at is None or now - self.window_started_at >= window:
            self.window_started_at = now
            self.request_count = 0

    def _seconds_until_reset(self, now: datetime) -> int:
        if self.window_started_at is None:
            return 0
        elapsed = (now - self.window_started_at).total_seconds()
        return max(0, math.ceil(self.window_seconds - elapsed))


# =============================================================================
# ABSTRACT BASE CLASS
# =============================================================================

class MarketDataProvider(ABC):
    """
    Abstract base class for market data providers.

    Retry Behavior:
        The base class provides a `_execute_with_retry` method that implements
        exponential backoff retry logic. Subclasses can override the retry
        configuration by setting class attributes:

        - MAX_RETRY_ATTEMPTS: Total attempts (default: 3)
        - RETRY_MIN_WAIT: Minimum wait in seconds (default: 1)
        - RETRY_MAX_WAIT: Maximum wait in seconds (default: 10)
        - RETRY_MULTIPLIER: Exponential multiplier (default: 1)

    Request Budget:
        `_request` charges the instance's RequestBudget once per logical
        request, then runs the call with retries. Retries are not charged.

    Retryable Exceptions:
        - ProviderUnavailableError: Network issues, timeouts, server errors
        - RateLimitError: Remote API rate limit exceeded

    Non-Retryable Exceptions:
        - TickerNotFoundError: Permanent failure (ticker doesn't exist)
    """

    # =========================================================================
    # RETRY CONFIGURATION (can be overridden by subclasses)
    # =========================================================================

    MAX_RETRY_ATTEMPTS: int = 3
    RETRY_MIN_WAIT: int = 1
    RETRY_MAX_WAIT: int = 10
    RETRY_MULTIPLIER: int = 1

    # Recorded on holdings repriced from this provider's quotes
    price_source: PriceSource = PriceSource.MANUAL

    def __init__(self, max_requests_per_minute: int = DEFAULT_MAX_REQUESTS_PER_MINUTE) -> None:
        self.budget = RequestBudget(max_requests_per_minute=max_requests_per_minute)

    # =========================================================================
    # ABSTRACT PROPERTIES AND METHODS
    # =========================================================================

    @property
    @abstractmethod
    def name(self) -> str:
        """
        Unique identifier for this provider.

        Returns:
            Provider name (e.g., "yahoo")
        """
        pass

    @abstractmethod
    def get_quote(self, symbol: str, exchange: str = "") -> Quote:
        """
        Fetch the latest price for a symbol.

        Args:
            symbol: Trading symbol (e.g., "INFY")
            exchange: Exchange code (e.g., "NSE"); empty for the provider default

        Returns:
            Quote with price, volume and timestamp

        Raises:
            TickerNotFoundError: Symbol not found
            ProviderUnavailableError: Network or API error (retryable)
            RateLimitError: Budget or remote rate limit exceeded
        """
        pass

    @abstractmethod
    def get_historical(
            self,
            symbol: str,
            period: str = "1mo",
            exchange: str = "",
    ) -> HistoricalPricesResult:
        """
        Fetch daily closing prices over a lookback period.

        Args:
            symbol: Trading symbol
            period: One of VALID_PERIODS
            exchange: Exchange code

        Returns:
            HistoricalPricesResult with daily prices

        Raises:
            InvalidPeriodError: Unknown period
            TickerNotFoundError: Symbol not found
            ProviderUnavailableError: Network or API error (retryable)
            RateLimitError: Budget or remote rate limit exceeded
        """
        pass

    # =========================================================================
    # BATCH / HEALTH (default implementations)
    # =========================================================================

    def get_quotes(self, symbols: list[str], exchange: str = "") -> QuoteBatchResult:
        """
        Fetch quotes for several symbols.

        Default implementation calls get_quote() for each symbol and
        records failures instead of raising.

        Args:
            symbols: Trading symbols
            exchange: Exchange code applied to every symbol

        Returns:
            QuoteBatchResult with successful and failed lookups
        """
        result = QuoteBatchResult()

        for symbol in symbols:
            key = symbol.strip().upper()
            try:
                result.successful[key] = self.get_quote(key, exchange)
            except MarketDataError as e:
                logger.error(f"Failed to fetch quote for {key}: {e}")
                result.failed[key] = e

        return result

    def health_check(self) -> dict[str, Any]:
        """
        Report provider status and request budget usage.

        The provider is "degraded" while its budget is exhausted.
        """
        stats = self.budget.stats()
        return {
            "provider": self.name,
            "status": "healthy" if stats["remaining"] > 0 else "degraded",
            "budget": stats,
        }

    def is_available(self) -> bool:
        return self.budget.remaining() > 0

    # =========================================================================
    # REQUEST HELPERS
    # =========================================================================

    @staticmethod
    def validate_period(period: str) -> str:
        if period not in VALID_PERIODS:
            raise InvalidPeriodError(period, VALID_PERIODS)
        return period

    def _request(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Charge the request budget once, then execute with retries."""
        self.budget.acquire(self.name)
        return self._execute_with_retry(func, *args, **kwargs)

    def _execute_with_retry(
            self,
            func: Callable[..., T],
            *args: Any,
            **kwargs: Any,
    ) -> T:
        """
        Execute a function with retry logic for transient failures.

        Uses exponential backoff for retryable exceptions:
        - ProviderUnavailableError
        - RateLimitError

        Does NOT retry on:
        - TickerNotFoundError (permanent failure)
        - Other exceptions

        Args:
            func: Function to execute
            *args: Positional arguments for func
            **kwargs: Keyword arguments for func

        Returns:
            Return value of func

        Raises:
            The last exception if all retries fail
        """

        @retry(
            stop=stop_after_attempt(self.MAX_RETRY_ATTEMPTS),
            wait=wait_exponential(
                multiplier=self.RETRY_MULTIPLIER,
                min=self.RETRY_MIN_WAIT,
                max=self.RETRY_MAX_WAIT,
            ),
            retry=retry_if_exception_type((ProviderUnavailableError, RateLimitError)),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        def _inner() -> T:
            return func(*args, **kwargs)

        return _inner()
