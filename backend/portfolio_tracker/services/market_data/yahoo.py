# backend/portfolio_tracker/services/market_data/yahoo.py
"""
Yahoo Finance market data provider implementation.

This module implements the MarketDataProvider interface using the yfinance library.
Yahoo Finance is a free data source suitable for personal use.

Key features:
- Exchange code mapping (our codes → Yahoo's suffixes, NSE → ".NS")
- Latest quotes from the ticker info payload
- Daily closing prices over a lookback period
- Error classification (not found / rate limited / unavailable)
- Retry mechanism and request budget inherited from base class

Limitations:
- Rate limits (not officially documented, but exist)
- Data may be delayed (15-20 minutes for some markets)
"""

import logging
import math
from decimal import Decimal
from typing import Any

import yfinance as yf

from portfolio_tracker.models import PriceSource
from portfolio_tracker.services.constants import (
    DEFAULT_MAX_REQUESTS_PER_MINUTE,
    EXTERNAL_API_TIMEOUT_SECONDS,
    SHARE_PRECISION,
)
from portfolio_tracker.services.exceptions import (
    ProviderUnavailableError,
    TickerNotFoundError,
    RateLimitError,
)
from portfolio_tracker.services.market_data.base import (
    MarketDataProvider,
    Quote,
    HistoricalPrice,
    HistoricalPricesResult,
)
from portfolio_tracker.utils.date_utils import utcnow

logger = logging.getLogger(__name__)


class YahooFinanceProvider(MarketDataProvider):
    """
    Yahoo Finance implementation of MarketDataProvider.

    Configuration:
        timeout: History download timeout in seconds (default: 10)
        max_requests_per_minute: Request budget for this instance (default: 5)
        default_exchange: Exchange used when a call passes none (default: "NSE")

    Retry Behavior (inherited from MarketDataProvider):
        - Retries on ProviderUnavailableError and RateLimitError
        - Does NOT retry on TickerNotFoundError (permanent failure)
        - Uses exponential backoff: 1s → 2s → 4s
        - Maximum 3 attempts (configurable via class attributes)

    Example:
        provider = YahooFinanceProvider(timeout=15)

        quote = provider.get_quote("INFY")
        print(quote.price)

        history = provider.get_historical("INFY", "3mo")
        print(f"Fetched {history.days_fetched} days of data")
    """

    # =========================================================================
    # EXCHANGE MAPPING
    # =========================================================================
    # Yahoo uses suffixes for non-US exchanges (e.g., ".NS" for NSE India).

    EXCHANGE_SUFFIXES: dict[str, str] = {
        # India
        "NSE": ".NS",
        "BSE": ".BO",

        # US
        "NASDAQ": "",
        "NYSE": "",
        "AMEX": "",

        # Europe
        "LSE": ".L",
        "XETRA": ".DE",
        "EPA": ".PA",
        "AMS": ".AS",
        "SWX": ".SW",

        # Asia-Pacific
        "TSE": ".T",
        "HKEX": ".HK",
        "ASX": ".AX",
        "SGX": ".SI",

        # Canada
        "TSX": ".TO",
    }

    price_source = PriceSource.YAHOO_FINANCE

    # =========================================================================
    # INITIALIZATION
    # =========================================================================

    def __init__(
            self,
            timeout: int = EXTERNAL_API_TIMEOUT_SECONDS,
            max_requests_per_minute: int = DEFAULT_MAX_REQUESTS_PER_MINUTE,
            default_exchange: str = "NSE",
    ) -> None:
        """
        Initialize the Yahoo Finance provider.

        Args:
            timeout: Timeout in seconds for history downloads; yfinance's
                info lookup used for quotes accepts none
            max_requests_per_minute: Request budget for this instance
            default_exchange: Exchange assumed when none is given
        """
        super().__init__(max_requests_per_minute=max_requests_per_minute)
        self._timeout = timeout
        self._default_exchange = default_exchange.upper()
        logger.info(
            f"YahooFinanceProvider initialized (timeout={timeout}s, "
            f"budget={max_requests_per_minute}/min, exchange={self._default_exchange})"
        )

    @property
    def name(self) -> str:
        return "yahoo"

    # =========================================================================
    # QUOTES
    # =========================================================================

    def get_quote(self, symbol: str, exchange: str = "") -> Quote:
        """
        Fetch the latest quote from Yahoo Finance.

        Raises:
            TickerNotFoundError: If symbol not found
            ProviderUnavailableError: If Yahoo Finance unavailable
            RateLimitError: If the request budget is spent
        """
        return self._request(self._fetch_quote, symbol, exchange)

    def _fetch_quote(self, symbol: str, exchange: str) -> Quote:
        """Internal method to fetch a quote (called by retry wrapper)."""
        symbol = symbol.strip().upper()
        exchange = self._resolve_exchange(exchange)
        yahoo_symbol = self._build_yahoo_symbol(symbol, exchange)
        logger.debug(f"Fetching quote for {yahoo_symbol}")

        try:
            info = yf.Ticker(yahoo_symbol).info

            price = self._to_decimal(
                (info or {}).get("regularMarketPrice") or (info or {}).get("currentPrice")
            )
            if price is None or price <= 0:
                raise TickerNotFoundError(ticker=symbol, exchange=exchange, provider=self.name)

            return Quote(
                symbol=symbol,
                price=price,
                volume=self._to_int(info.get("regularMarketVolume")),
                currency=info.get("currency"),
                timestamp=utcnow(),
            )

        except TickerNotFoundError:
            raise
        except Exception as e:
            raise self._classify_error(e, symbol, exchange, yahoo_symbol) from e

    # =========================================================================
    # HISTORICAL PRICES
    # =========================================================================

    def get_historical(
            self,
            symbol: str,
            period: str = "1mo",
            exchange: str = "",
    ) -> HistoricalPricesResult:
        """
        Fetch daily closing prices from Yahoo Finance.

        Raises:
            InvalidPeriodError: If period is not supported
            TickerNotFoundError: If symbol not found
            ProviderUnavailableError: If Yahoo Finance unavailable
            RateLimitError: If the request budget is spent
        """
        self.validate_period(period)
        return self._request(self._fetch_historical, symbol, period, exchange)

    def _fetch_historical(
            self,
            symbol: str,
            period: str,
            exchange: str,
    ) -> HistoricalPricesResult:
        """Internal method to fetch historical prices."""
        symbol = symbol.strip().upper()
        exchange = self._resolve_exchange(exchange)
        yahoo_symbol = self._build_yahoo_symbol(symbol, exchange)

        logger.debug(f"Fetching {period} history for {yahoo_symbol}")

        result = HistoricalPricesResult(symbol=symbol, period=period)

        try:
            yf_ticker = yf.Ticker(yahoo_symbol)
            df = yf_ticker.history(
                period=period, interval="1d", auto_adjust=False, timeout=self._timeout
            )

            if df.empty:
                # Check if ticker exists at all
                if not self._is_valid_ticker_info(yf_ticker.info):
                    raise TickerNotFoundError(ticker=symbol, exchange=exchange, provider=self.name)

                logger.warning(f"No price data for {yahoo_symbol} over {period}")
                return result

            result.prices = self._dataframe_to_prices(df)
            logger.debug(f"Fetched {result.days_fetched} days for {yahoo_symbol}")
            return result

        except TickerNotFoundError:
            raise
        except Exception as e:
            raise self._classify_error(e, symbol, exchange, yahoo_symbol) from e

    def _dataframe_to_prices(self, df) -> list[HistoricalPrice]:
        """
        Convert a yfinance history DataFrame to HistoricalPrice objects.

        Rows without a usable close price are skipped.
        """
        prices = []

        for idx, row in df.iterrows():
            price_date = idx.date() if hasattr(idx, 'date') else idx
            close_price = self._to_decimal(row.get('Close'))

            if close_price is None or close_price <= 0:
                logger.warning(f"Skipping {price_date}: missing close price")
                continue

            prices.append(HistoricalPrice(
                date=price_date,
                price=close_price,
                volume=self._to_int(row.get('Volume')),
            ))

        return prices

    # =========================================================================
    # HELPER METHODS
    # =========================================================================

    def _classify_error(
            self,
            error: Exception,
            symbol: str,
            exchange: str,
            yahoo_symbol: str,
    ) -> Exception:
        """Map a yfinance failure onto the provider exception hierarchy."""
        error_str = str(error).lower()

        if "not found" in error_str or "no data" in error_str:
            return TickerNotFoundError(ticker=symbol, exchange=exchange, provider=self.name)

        if "rate limit" in error_str or "too many requests" in error_str:
            return RateLimitError(provider=self.name)

        logger.error(f"Yahoo Finance error for {yahoo_symbol}: {error}")
        return ProviderUnavailableError(provider=self.name, reason=str(error))

    def _resolve_exchange(self, exchange: str) -> str:
        return exchange.strip().upper() if exchange else self._default_exchange

    def _build_yahoo_symbol(self, symbol: str, exchange: str) -> str:
        """
        Build Yahoo Finance symbol from symbol and exchange.

        Returns:
            Yahoo Finance symbol (e.g., "INFY.NS" or "AAPL")
        """
        suffix = self.EXCHANGE_SUFFIXES.get(exchange, "")
        return f"{symbol}{suffix}"

    @staticmethod
    def _is_valid_ticker_info(info: dict | None) -> bool:
        """
        Check if Yahoo Finance info dict represents a valid ticker.

        Yahoo returns an info dict even for invalid tickers, but it lacks
        meaningful data. We check for price or name to validate.
        """
        if not info:
            return False
        return bool(
            info.get("regularMarketPrice")
            or info.get("shortName")
            or info.get("longName")
        )

    @staticmethod
    def _to_decimal(value: Any) -> Decimal | None:
        """Convert a value to Decimal, returning None for NaN/None."""
        if value is None:
            return None
        try:
            if math.isnan(float(value)):
                return None
            return Decimal(str(value)).quantize(SHARE_PRECISION)
        except (TypeError, ValueError):
            return None

    @staticmethod
    def _to_int(value: Any) -> int | None:
        """Convert a value to int, returning None for NaN/None."""
        if value is None:
            return None
        try:
            if math.isnan(float(value)):
                return None
            return int(value)
        except (TypeError, ValueError):
            return None
