# backend/portfolio_tracker/services/market_data/price_update_job.py
"""
Price Update Job - periodic repricing of active holdings from a provider.

This job handles:
- Skipping when a previous run is still in progress
- Skipping outside market hours (unless forced)
- Picking the stalest active symbols, up to the batch size
- Fetching quotes and applying them via PricingService
- Refreshing history and performance of every affected portfolio
- Keeping run counters on the instance

Scheduling is not part of this module: a scheduler (or the
POST /market/price-update endpoint) calls run_once().

Usage:
    from portfolio_tracker.services.market_data.price_update_job import PriceUpdateJob

    job = PriceUpdateJob(SessionLocal, provider, pricing_service)

    result = job.run_once()
    if result.status == "completed":
        print(f"Updated {len(result.updated)} symbols")
    else:
        print(f"Skipped: {result.reason}")
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy.orm import Session

from portfolio_tracker.services.constants import (
    DEFAULT_MARKET_CLOSE,
    DEFAULT_MARKET_OPEN,
    DEFAULT_MARKET_TIMEZONE,
    DEFAULT_PRICE_UPDATE_BATCH_SIZE,
)
from portfolio_tracker.services.exceptions import MarketDataError
from portfolio_tracker.services.market_data.base import MarketDataProvider
from portfolio_tracker.utils.context import (
    correlation_scope,
    get_correlation_id,
    new_correlation_id,
)
from portfolio_tracker.utils.date_utils import MarketStatus, market_status, utcnow

if TYPE_CHECKING:
    from portfolio_tracker.services.pricing_service import PricingService

logger = logging.getLogger(__name__)


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass
class PriceUpdateRunResult:
    """Complete result of one job run."""

    status: str  # "completed", "skipped", "failed"
    started_at: datetime
    finished_at: datetime | None = None
    reason: str | None = None

    # Details
    symbols: list[str] = field(default_factory=list)
    updated: dict[str, Any] = field(default_factory=dict)
    errors: dict[str, str] = field(default_factory=dict)
    portfolios_refreshed: list[int] = field(default_factory=list)
    alerts_triggered: int = 0


# =============================================================================
# JOB
# =============================================================================

class PriceUpdateJob:
    """
    Refreshes prices for active holdings in batches.

    Attributes:
        is_running: True while run_once() is executing
        last_run_time: Start time of the last completed or failed run
        success_count: Runs that completed
        error_count: Runs that failed
    """

    def __init__(
            self,
            session_factory: Callable[[], Session],
            provider: MarketDataProvider,
            pricing_service: PricingService,
            batch_size: int = DEFAULT_PRICE_UPDATE_BATCH_SIZE,
            market_timezone: str = DEFAULT_MARKET_TIMEZONE,
            market_open: str = DEFAULT_MARKET_OPEN,
            market_close: str = DEFAULT_MARKET_CLOSE,
    ) -> None:
        """
        Initialize the job.

        Args:
            session_factory: Creates a fresh database session per run
            provider: Market data provider for quotes
            pricing_service: Applies quotes to holdings
            batch_size: Max symbols refreshed per run
            market_timezone: Exchange timezone for the session check
            market_open: Session open ("HH:MM")
            market_close: Session close ("HH:MM")
        """
        self._session_factory = session_factory
        self._provider = provider
        self._pricing = pricing_service
        self._batch_size = batch_size
        self._market_timezone = market_timezone
        self._market_open = market_open
        self._market_close = market_close

        self._run_lock = threading.Lock()
        self.is_running = False
        self.last_run_time: datetime | None = None
        self.success_count = 0
        self.error_count = 0

        logger.info(
            f"PriceUpdateJob initialized (provider={provider.name}, batch={batch_size}, "
            f"session={market_open}-{market_close} {market_timezone})"
        )

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    def market_status(self, now: datetime | None = None) -> MarketStatus:
        return market_status(
            now or utcnow(), self._market_timezone, self._market_open, self._market_close
        )

    def run_once(self, force: bool = False, now: datetime | None = None) -> PriceUpdateRunResult:
        """
        Run one price update pass.

        Args:
            force: Run even when the market is closed
            now: Run time (default: UTC now)

        Returns:
            PriceUpdateRunResult; status "skipped" when a run is already in
            progress or the market is closed
        """
        now = now or utcnow()

        if not self._run_lock.acquire(blocking=False):
            logger.warning("Price update skipped: previous run still in progress")
            return PriceUpdateRunResult(
                status="skipped", started_at=now, finished_at=now,
                reason="already_running",
            )

        try:
            if not force and not self.market_status(now).is_open:
                logger.info("Price update skipped: market closed")
                return PriceUpdateRunResult(
                    status="skipped", started_at=now, finished_at=now,
                    reason="market_closed",
                )

            self.is_running = True
            # Scheduler-driven runs have no request id of their own
            with correlation_scope(get_correlation_id() or new_correlation_id("price-update")):
                return self._run(now)
        finally:
            self.is_running = False
            self._run_lock.release()

    def stats(self) -> dict[str, Any]:
        return {
            "is_running": self.is_running,
            "last_run_time": self.last_run_time,
            "success_count": self.success_count,
            "error_count": self.error_count,
            "batch_size": self._batch_size,
            "provider": self._provider.health_check(),
        }

    # =========================================================================
    # PRIVATE HELPERS
    # =========================================================================

    def _run(self, now: datetime) -> PriceUpdateRunResult:
        result = PriceUpdateRunResult(status="completed", started_at=now)
        self.last_run_time = now

        db = self._session_factory()
        try:
            result.symbols = self._pricing.active_symbols(db, limit=self._batch_size)

            if not result.symbols:
                logger.info("Price update: no active holdings")
            else:
                refresh = self._pricing.update_prices_from_provider(
                    db, self._provider, result.symbols, now=now
                )
                result.updated = dict(refresh.prices)
                result.errors = dict(refresh.errors)
                result.alerts_triggered = len(refresh.triggered_alerts)

                snapshots = self._pricing.refresh_portfolios(db, refresh.portfolio_ids, now)
                result.portfolios_refreshed = sorted(snapshots)

            self.success_count += 1
            logger.info(
                f"Price update completed: {len(result.updated)} updated, "
                f"{len(result.errors)} failed, {len(result.portfolios_refreshed)} portfolios"
            )

        except MarketDataError as e:
            self.error_count += 1
            result.status = "failed"
            result.reason = str(e)
            logger.error(f"Price update failed: {e}")

        except Exception as e:
            self.error_count += 1
            result.status = "failed"
            result.reason = str(e)
            logger.exception(f"Unexpected error in price update job: {e}")

        finally:
            db.close()

        result.finished_at = utcnow()
        return result
