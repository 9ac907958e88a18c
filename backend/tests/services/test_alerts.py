# backend/tests/services/test_alerts.py
"""
Tests for alert evaluation.

Covers the three trigger conditions, the debounce window, and the rule
that firing never deactivates an alert.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from portfolio_tracker.models import AlertType
from portfolio_tracker.services.valuation import (
    AlertEvaluator,
    AlertRule,
    HoldingMetricsCalculator,
    HoldingSnapshot,
    ValuationConfig,
)

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def evaluator():
    return AlertEvaluator(ValuationConfig())


@pytest.fixture
def holding():
    """10 units bought at 100, now 120 (+20%)."""
    return HoldingMetricsCalculator().apply(HoldingSnapshot(
        symbol="INFY",
        quantity=Decimal("10"),
        average_price=Decimal("100"),
        current_price=Decimal("120"),
    ))


class TestTriggerConditions:
    @pytest.mark.parametrize("alert_type,value,fires", [
        (AlertType.PRICE_ABOVE, "110", True),
        (AlertType.PRICE_ABOVE, "120", True),
        (AlertType.PRICE_ABOVE, "121", False),
        (AlertType.PRICE_BELOW, "130", True),
        (AlertType.PRICE_BELOW, "120", True),
        (AlertType.PRICE_BELOW, "119", False),
        (AlertType.PERCENTAGE_CHANGE, "20", True),
        (AlertType.PERCENTAGE_CHANGE, "25", False),
    ])
    def test_condition(self, evaluator, holding, alert_type, value, fires):
        rule = AlertRule(alert_type=alert_type, value=Decimal(value), alert_id=1)

        result = evaluator.evaluate(holding, [rule], NOW)

        assert bool(result.triggered) is fires

    def test_percentage_change_uses_absolute_value(self, evaluator):
        losing = HoldingMetricsCalculator().apply(HoldingSnapshot(
            symbol="INFY",
            quantity=Decimal("10"),
            average_price=Decimal("100"),
            current_price=Decimal("85"),
        ))
        rule = AlertRule(alert_type=AlertType.PERCENTAGE_CHANGE, value=Decimal("10"), alert_id=1)

        result = evaluator.evaluate(losing, [rule], NOW)

        assert len(result.triggered) == 1
        assert result.triggered[0].observed_value == Decimal("15.00")


class TestFiring:
    def test_fired_rule_records_time_and_stays_active(self, evaluator, holding):
        rule = AlertRule(alert_type=AlertType.PRICE_ABOVE, value=Decimal("100"), alert_id=7)

        result = evaluator.evaluate(holding, [rule], NOW)

        fired = result.triggered[0]
        assert fired.rule.alert_id == 7
        assert fired.rule.last_triggered == NOW
        assert fired.rule.is_active is True
        assert fired.triggered_at == NOW
        assert result.rules[0].last_triggered == NOW

    def test_inactive_rule_never_fires(self, evaluator, holding):
        rule = AlertRule(
            alert_type=AlertType.PRICE_ABOVE, value=Decimal("100"), is_active=False, alert_id=1
        )

        result = evaluator.evaluate(holding, [rule], NOW)

        assert result.triggered == ()
        assert result.rules == (rule,)

    def test_unmet_rule_returned_unchanged(self, evaluator, holding):
        rule = AlertRule(alert_type=AlertType.PRICE_BELOW, value=Decimal("50"), alert_id=1)

        result = evaluator.evaluate(holding, [rule], NOW)

        assert result.rules == (rule,)


class TestDebounce:
    def test_two_evaluations_within_window_fire_once(self, evaluator, holding):
        rule = AlertRule(alert_type=AlertType.PRICE_ABOVE, value=Decimal("100"), alert_id=1)

        first = evaluator.evaluate(holding, [rule], NOW)
        second = evaluator.evaluate(holding, first.rules, NOW + timedelta(hours=23))

        assert len(first.triggered) == 1
        assert second.triggered == ()

    def test_exactly_window_is_still_debounced(self, evaluator, holding):
        rule = AlertRule(
            alert_type=AlertType.PRICE_ABOVE, value=Decimal("100"),
            last_triggered=NOW - timedelta(hours=24), alert_id=1,
        )

        result = evaluator.evaluate(holding, [rule], NOW)

        assert result.triggered == ()

    def test_fires_again_after_window(self, evaluator, holding):
        rule = AlertRule(
            alert_type=AlertType.PRICE_ABOVE, value=Decimal("100"),
            last_triggered=NOW - timedelta(hours=24, seconds=1), alert_id=1,
        )

        result = evaluator.evaluate(holding, [rule], NOW)

        assert len(result.triggered) == 1

    def test_custom_debounce(self, holding):
        evaluator = AlertEvaluator(ValuationConfig(alert_debounce_hours=1))
        rule = AlertRule(
            alert_type=AlertType.PRICE_ABOVE, value=Decimal("100"),
            last_triggered=NOW - timedelta(hours=2), alert_id=1,
        )

        result = evaluator.evaluate(holding, [rule], NOW)

        assert len(result.triggered) == 1
