# backend/portfolio_tracker/services/valuation/alerts.py
"""
Alert threshold evaluation.

Trigger conditions:
    price_above         current_price >= value
    price_below         current_price <= value
    percentage_change   |gain_loss_percentage| >= value

An alert fires only while active, and only if it never fired or strictly
more than the debounce window has passed since it last did. Firing sets
last_triggered; it never deactivates the alert.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import replace
from datetime import datetime, timedelta
from decimal import Decimal

from portfolio_tracker.services.valuation.types import (
    AlertEvaluation,
    AlertRule,
    AlertType,
    HoldingSnapshot,
    TriggeredAlert,
    ValuationConfig,
)

logger = logging.getLogger(__name__)


class AlertEvaluator:
    """Evaluates a holding's alert rules against its current metrics."""

    def __init__(self, config: ValuationConfig) -> None:
        self._debounce = timedelta(hours=config.alert_debounce_hours)

    def evaluate(
            self,
            holding: HoldingSnapshot,
            rules: Iterable[AlertRule],
            now: datetime,
    ) -> AlertEvaluation:
        """
        Evaluate all rules for one holding.

        Args:
            holding: Holding with current price and metrics
            rules: Alert rules configured on the holding
            now: Evaluation time

        Returns:
            AlertEvaluation with every rule (fired ones carry the new
            last_triggered) and the list of alerts that fired
        """
        updated: list[AlertRule] = []
        triggered: list[TriggeredAlert] = []

        for rule in rules:
            if not self._is_armed(rule, now):
                updated.append(rule)
                continue

            observed = self._observed_value(holding, rule.alert_type)
            if not self.condition_met(rule, observed):
                updated.append(rule)
                continue

            fired = replace(rule, last_triggered=now)
            updated.append(fired)
            triggered.append(TriggeredAlert(rule=fired, observed_value=observed, triggered_at=now))
            logger.info(
                f"Alert {rule.alert_id} ({rule.alert_type.value} {rule.value}) "
                f"triggered for {holding.symbol} at {observed}"
            )

        return AlertEvaluation(rules=tuple(updated), triggered=tuple(triggered))

    def _is_armed(self, rule: AlertRule, now: datetime) -> bool:
        if not rule.is_active:
            return False
        if rule.last_triggered is None:
            return True
        return now - rule.last_triggered > self._debounce

    @staticmethod
    def _observed_value(holding: HoldingSnapshot, alert_type: AlertType) -> Decimal:
        if alert_type == AlertType.PERCENTAGE_CHANGE:
            return abs(holding.gain_loss_percentage)
        return holding.current_price

    @staticmethod
    def condition_met(rule: AlertRule, observed: Decimal) -> bool:
        if rule.alert_type == AlertType.PRICE_ABOVE:
            return observed >= rule.value
        if rule.alert_type == AlertType.PRICE_BELOW:
            return observed <= rule.value
        return observed >= rule.value
