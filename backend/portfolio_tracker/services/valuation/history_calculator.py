# backend/portfolio_tracker/services/valuation/history_calculator.py
"""
Portfolio history log and windowed performance.

HistoryCalculator maintains the trailing log of portfolio totals:
    - Appends a snapshot when the value moved, when the log is empty,
      or when the snapshot interval has elapsed since the last entry
    - Prunes entries older than the retention window (relative to "now")

PerformanceCalculator derives daily/weekly/monthly/yearly windows from
that log. For each period it scans the log oldest-first and picks the
FIRST entry whose age falls inside the period's tolerance band:

    daily    [0.8d, 1.2d]
    weekly   [6d, 8d]
    monthly  [28d, 32d]
    yearly   [360d, 370d]

    value = current.total_value - reference.total_value
    percentage = value / reference.total_value × 100   (0 if reference ≤ 0)

A period with no entry in its band keeps its previous value. Missing
data never resets a window to zero.

Both calculators are pure: they take "now" explicitly and return new
tuples/dataclasses.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime, timedelta

from portfolio_tracker.services.constants import CURRENCY_PRECISION
from portfolio_tracker.services.valuation.calculators import percentage_of
from portfolio_tracker.services.valuation.types import (
    HistoryEntry,
    PERFORMANCE_PERIODS,
    PerformanceWindow,
    PortfolioPerformance,
    PortfolioTotals,
    ValuationConfig,
)

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400


class HistoryCalculator:
    """
    Appends portfolio snapshots to the history log.

    Attributes:
        _config: Retention and snapshot interval settings
    """

    def __init__(self, config: ValuationConfig) -> None:
        self._config = config

    def should_append(
            self,
            history: Sequence[HistoryEntry],
            totals: PortfolioTotals,
            now: datetime,
    ) -> bool:
        """
        Decide whether totals warrant a new history entry.

        True when the log is empty, the total value differs from the last
        entry, or strictly more than the snapshot interval has passed.
        """
        if not history:
            return True

        last = history[-1]
        if last.total_value != totals.total_value:
            return True

        interval = timedelta(hours=self._config.history_snapshot_interval_hours)
        return now - last.date > interval

    def append(
            self,
            history: Sequence[HistoryEntry],
            totals: PortfolioTotals,
            now: datetime,
    ) -> tuple[HistoryEntry, ...]:
        """
        Append a snapshot of totals (if warranted) and prune the log.

        Args:
            history: Existing log, oldest first
            totals: Current portfolio totals
            now: Snapshot time (timezone-aware)

        Returns:
            New log, oldest first, with nothing older than the retention window
        """
        entries = list(history)

        if self.should_append(entries, totals, now):
            entries.append(
                HistoryEntry(
                    date=now,
                    total_value=totals.total_value,
                    total_cost=totals.total_cost,
                    gain_loss=totals.total_gain_loss,
                    gain_loss_percentage=totals.total_gain_loss_percentage,
                )
            )

        return self.prune(entries, now)

    def prune(
            self,
            history: Sequence[HistoryEntry],
            now: datetime,
    ) -> tuple[HistoryEntry, ...]:
        cutoff = now - timedelta(days=self._config.history_retention_days)
        kept = tuple(entry for entry in history if entry.date >= cutoff)

        dropped = len(history) - len(kept)
        if dropped:
            logger.debug(f"Pruned {dropped} history entries older than {cutoff.isoformat()}")

        return kept


class PerformanceCalculator:
    """
    Calculates windowed performance from the history log.

    Attributes:
        _config: Performance tolerance bands
    """

    def __init__(self, config: ValuationConfig) -> None:
        self._config = config

    def calculate(
            self,
            history: Sequence[HistoryEntry],
            previous: PortfolioPerformance,
            now: datetime,
    ) -> PortfolioPerformance:
        """
        Recompute every period that has a reference point.

        Args:
            history: Portfolio history log, oldest first
            previous: Performance before this calculation
            now: Reference time for entry ages

        Returns:
            Updated performance. Periods without a reference entry keep
            their value from previous. With fewer than two entries,
            previous is returned unchanged.
        """
        if len(history) < 2:
            return previous

        current = history[-1]
        performance = previous

        for period in PERFORMANCE_PERIODS:
            reference = self.find_reference(history, period, now)
            if reference is None:
                continue

            value = (current.total_value - reference.total_value).quantize(
                CURRENCY_PRECISION
            )
            performance = performance.with_window(
                period,
                PerformanceWindow(
                    value=value,
                    percentage=percentage_of(value, reference.total_value),
                ),
            )

        return performance

    def find_reference(
            self,
            history: Sequence[HistoryEntry],
            period: str,
            now: datetime,
    ) -> HistoryEntry | None:
        """First entry (oldest first) whose age lies inside the period's band."""
        band = self._config.performance_bands[period]

        for entry in history:
            age_days = (now - entry.date).total_seconds() / SECONDS_PER_DAY
            if band.contains(age_days):
                return entry

        return None
