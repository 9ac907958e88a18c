# backend/portfolio_tracker/utils/date_utils.py
"""
Date and time utility functions for the Portfolio Tracker.

This module provides shared date manipulation used across services:
- UTC normalization of database timestamps
- Business-day helpers
- Trading session status (market open/closed, next open/close)

Usage:
    from portfolio_tracker.utils.date_utils import ensure_utc, market_status

    status = market_status(utcnow(), "Asia/Kolkata", "09:15", "15:30")
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo


def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime | None) -> datetime | None:
    """
    Normalize a datetime to timezone-aware UTC.

    SQLite drops tzinfo on DateTime(timezone=True) columns, so values
    read back are naive. Naive values are assumed to already be UTC.

    Args:
        value: Datetime to normalize (None passes through)

    Returns:
        Aware UTC datetime, or None
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def is_business_day(d: date) -> bool:
    """
    Check if a date is a business day (weekday).

    This is a simplified check that doesn't account for market holidays.

    Args:
        d: Date to check

    Returns:
        True if Monday-Friday, False if Saturday-Sunday
    """
    return d.weekday() < 5


def next_business_day(d: date) -> date:
    """
    Get the next business day after a given date.

    If the given date is a Friday, returns the following Monday.
    """
    next_day = d + timedelta(days=1)
    while next_day.weekday() >= 5:  # Skip weekend
        next_day += timedelta(days=1)
    return next_day


# =============================================================================
# MARKET SESSION
# =============================================================================

@dataclass(frozen=True)
class MarketStatus:
    """
    Trading session status at a point in time.

    Attributes:
        is_open: True on a weekday between open and close (inclusive)
        next_open: Start of the next session (local time)
        next_close: End of the current session if open, else of the next one
        timezone: IANA timezone name of the exchange
        current_time: The evaluated instant in exchange local time
        market_open: Session open time ("HH:MM")
        market_close: Session close time ("HH:MM")
    """

    is_open: bool
    next_open: datetime
    next_close: datetime
    timezone: str
    current_time: datetime
    market_open: str
    market_close: str

    @property
    def market_hours(self) -> dict[str, str]:
        return {"open": self.market_open, "close": self.market_close}


def market_status(
        now: datetime,
        tz_name: str,
        open_time: str,
        close_time: str,
) -> MarketStatus:
    """
    Evaluate the trading session for the given instant.

    Args:
        now: Instant to evaluate (naive values are treated as UTC)
        tz_name: Exchange timezone, e.g. "Asia/Kolkata"
        open_time: Session open, "HH:MM" in exchange time
        close_time: Session close, "HH:MM" in exchange time

    Returns:
        MarketStatus for that instant

    Example:
        >>> s = market_status(datetime(2024, 1, 8, 5, 0, tzinfo=timezone.utc),
        ...                   "Asia/Kolkata", "09:15", "15:30")
        >>> s.is_open  # Monday 10:30 IST
        True
    """
    tz = ZoneInfo(tz_name)
    local_now = ensure_utc(now).astimezone(tz)
    session_open = time.fromisoformat(open_time)
    session_close = time.fromisoformat(close_time)

    today = local_now.date()
    todays_open = datetime.combine(today, session_open, tzinfo=tz)
    todays_close = datetime.combine(today, session_close, tzinfo=tz)

    trading_day = is_business_day(today)
    is_open = trading_day and todays_open <= local_now <= todays_close

    if trading_day and local_now < todays_open:
        next_open = todays_open
    else:
        next_day = next_business_day(today)
        next_open = datetime.combine(next_day, session_open, tzinfo=tz)

    if is_open:
        next_close = todays_close
    else:
        next_close = datetime.combine(next_open.date(), session_close, tzinfo=tz)

    return MarketStatus(
        is_open=is_open,
        next_open=next_open,
        next_close=next_close,
        timezone=tz_name,
        current_time=local_now,
        market_open=open_time,
        market_close=close_time,
    )
