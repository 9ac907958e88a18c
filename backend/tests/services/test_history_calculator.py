# backend/tests/services/test_history_calculator.py
"""
Tests for the history log and windowed performance.

This module tests:
- When a snapshot is appended (empty log, value change, interval elapsed)
- Retention pruning relative to the append time
- Reference point lookup inside the tolerance bands
- Keeping previous performance values when no reference exists
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from portfolio_tracker.services.valuation import (
    HistoryCalculator,
    HistoryEntry,
    PerformanceBand,
    PerformanceCalculator,
    PerformanceWindow,
    PortfolioPerformance,
    PortfolioTotals,
    ValuationConfig,
)

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def entry(days_ago: float, value: str) -> HistoryEntry:
    return HistoryEntry(
        date=NOW - timedelta(days=days_ago),
        total_value=Decimal(value),
        total_cost=Decimal("1000"),
        gain_loss=Decimal(value) - Decimal("1000"),
        gain_loss_percentage=Decimal("0"),
    )


def totals(value: str) -> PortfolioTotals:
    return PortfolioTotals(
        total_value=Decimal(value),
        total_cost=Decimal("1000"),
        total_gain_loss=Decimal(value) - Decimal("1000"),
    )


# =============================================================================
# HISTORY APPEND
# =============================================================================

class TestHistoryAppend:
    """Tests for HistoryCalculator.append."""

    @pytest.fixture
    def calculator(self):
        return HistoryCalculator(ValuationConfig())

    def test_first_entry_always_appended(self, calculator):
        history = calculator.append((), totals("1000"), NOW)

        assert len(history) == 1
        assert history[0].date == NOW
        assert history[0].total_value == Decimal("1000")

    def test_changed_value_appended(self, calculator):
        history = calculator.append((entry(0.1, "1000"),), totals("1100"), NOW)

        assert [e.total_value for e in history] == [Decimal("1000"), Decimal("1100")]

    def test_unchanged_value_within_interval_skipped(self, calculator):
        history = calculator.append((entry(0.5, "1000"),), totals("1000"), NOW)

        assert len(history) == 1

    def test_unchanged_value_after_interval_appended(self, calculator):
        history = calculator.append((entry(1.01, "1000"),), totals("1000"), NOW)

        assert len(history) == 2

    def test_exactly_interval_is_not_enough(self, calculator):
        history = calculator.append((entry(1, "1000"),), totals("1000"), NOW)

        assert len(history) == 1

    def test_custom_snapshot_interval(self):
        calculator = HistoryCalculator(ValuationConfig(history_snapshot_interval_hours=1))

        history = calculator.append((entry(0.05, "1000"),), totals("1000"), NOW)

        assert len(history) == 2

    def test_prunes_entries_beyond_retention(self, calculator):
        existing = (entry(120, "800"), entry(91, "850"), entry(30, "900"))

        history = calculator.append(existing, totals("1000"), NOW)

        cutoff = NOW - timedelta(days=90)
        assert all(e.date >= cutoff for e in history)
        assert [e.total_value for e in history] == [Decimal("900"), Decimal("1000")]

    def test_prunes_even_when_nothing_appended(self, calculator):
        existing = (entry(100, "1000"), entry(0.1, "1000"))

        history = calculator.append(existing, totals("1000"), NOW)

        assert len(history) == 1
        assert history[0].date == NOW - timedelta(days=0.1)

    def test_input_not_mutated(self, calculator):
        existing = [entry(1, "900")]

        calculator.append(existing, totals("1000"), NOW)

        assert len(existing) == 1


# =============================================================================
# PERFORMANCE WINDOWS
# =============================================================================

class TestPerformanceCalculator:
    """Tests for PerformanceCalculator.calculate."""

    @pytest.fixture
    def calculator(self):
        return PerformanceCalculator(ValuationConfig())

    def test_fewer_than_two_entries_returns_previous(self, calculator):
        previous = PortfolioPerformance(
            weekly=PerformanceWindow(value=Decimal("5"), percentage=Decimal("1"))
        )

        result = calculator.calculate((entry(0, "1000"),), previous, NOW)

        assert result is previous

    def test_single_young_entry_keeps_weekly_at_zero(self, calculator):
        """One entry younger than 6 days leaves weekly untouched."""
        result = calculator.calculate((entry(2, "900"),), PortfolioPerformance(), NOW)

        assert result.weekly == PerformanceWindow()

    def test_daily_window(self, calculator):
        history = (entry(1, "1000"), entry(0, "1100"))

        result = calculator.calculate(history, PortfolioPerformance(), NOW)

        assert result.daily.value == Decimal("100.00")
        assert result.daily.percentage == Decimal("10.00")

    def test_weekly_and_monthly_windows(self, calculator):
        history = (entry(30, "800"), entry(7, "1000"), entry(0, "1200"))

        result = calculator.calculate(history, PortfolioPerformance(), NOW)

        assert result.weekly.value == Decimal("200.00")
        assert result.weekly.percentage == Decimal("20.00")
        assert result.monthly.value == Decimal("400.00")
        assert result.monthly.percentage == Decimal("50.00")

    def test_first_entry_in_band_wins(self, calculator):
        """Entries are scanned oldest first; the oldest one in the band is used."""
        history = (entry(7.9, "500"), entry(6.1, "900"), entry(0, "1000"))

        result = calculator.calculate(history, PortfolioPerformance(), NOW)

        assert result.weekly.value == Decimal("500.00")

    def test_band_edges_inclusive(self, calculator):
        history = (entry(8, "800"), entry(0, "1000"))

        result = calculator.calculate(history, PortfolioPerformance(), NOW)

        assert result.weekly.value == Decimal("200.00")

    def test_missing_reference_keeps_previous_value(self, calculator):
        previous = PortfolioPerformance(
            yearly=PerformanceWindow(value=Decimal("42.00"), percentage=Decimal("4.20"))
        )
        history = (entry(1, "1000"), entry(0, "1100"))

        result = calculator.calculate(history, previous, NOW)

        assert result.yearly == previous.yearly
        assert result.daily.value == Decimal("100.00")

    def test_zero_reference_value_gives_zero_percentage(self, calculator):
        history = (entry(1, "0"), entry(0, "500"))

        result = calculator.calculate(history, PortfolioPerformance(), NOW)

        assert result.daily.value == Decimal("500.00")
        assert result.daily.percentage == Decimal("0")

    def test_custom_bands(self):
        bands = {
            "daily": PerformanceBand(0, 0.5),
            "weekly": PerformanceBand(6, 8),
            "monthly": PerformanceBand(28, 32),
            "yearly": PerformanceBand(360, 370),
        }
        calculator = PerformanceCalculator(ValuationConfig(performance_bands=bands))
        history = (entry(0.25, "1000"), entry(0, "1050"))

        result = calculator.calculate(history, PortfolioPerformance(), NOW)

        assert result.daily.value == Decimal("50.00")


# =============================================================================
# CONFIGURATION
# =============================================================================

class TestValuationConfig:
    def test_defaults(self):
        config = ValuationConfig()

        assert config.history_retention_days == 90
        assert config.alert_debounce_hours == 24
        assert config.history_snapshot_interval_hours == 24
        assert config.performance_bands["weekly"] == PerformanceBand(6, 8)

    def test_missing_band_rejected(self):
        with pytest.raises(ValueError, match="missing periods"):
            ValuationConfig(performance_bands={"daily": PerformanceBand(0.8, 1.2)})

    def test_inverted_band_rejected(self):
        with pytest.raises(ValueError):
            PerformanceBand(8, 6)

    def test_non_positive_retention_rejected(self):
        with pytest.raises(ValueError):
            ValuationConfig(history_retention_days=0)
