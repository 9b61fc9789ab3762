"""Threshold alerts evaluated against a BusinessSummary"""
import logging
from typing import Iterable, Mapping, Optional

from .models import AlertRule, AlertStatus, BusinessSummary

logger = logging.getLogger(__name__)

def _arpm_drop_pct(summary: BusinessSummary) -> float:
    prior_arpm = summary.prior_attach.all_in_arpm
    current_arpm = summary.attach.all_in_arpm
    if prior_arpm <= 0:
        return 0.0
    return float((prior_arpm - current_arpm) / prior_arpm)

METRIC_GETTERS = {
    "nrr": lambda s: s.rates.nrr,
    "grr": lambda s: s.rates.grr,
    "logoChurnRate": lambda s: s.rates.logo_churn_rate,
    "revenueChurnRate": lambda s: s.rates.revenue_churn_rate,
    "attachArpmDropPct": _arpm_drop_pct,
    "failedPayments30d": lambda s: float(s.failed_payments_30d),
}

def metric_value(summary: BusinessSummary, metric_key: str) -> Optional[float]:
    """Current value of a metric key, or None if the key is unknown"""
    getter = METRIC_GETTERS.get(metric_key)
    return getter(summary) if getter is not None else None

def rules_from_params(params: Iterable[Mapping]) -> list:
    """AlertRules from plain dicts (see config.default_params.DEFAULT_ALERT_RULES)"""
    return [AlertRule(**p) for p in params]

def evaluate_alerts(summary: BusinessSummary, rules: Iterable[AlertRule],
                    evaluated_at: Optional[str] = None) -> list:
    """
    Evaluate enabled rules against a summary.

    'below' rules trigger when the value is under the threshold, all others
    when it is over. evaluated_at is stamped on every result and on triggered
    rules' last_triggered_at; this module never reads the clock.
    """
    results = []
    for rule in rules:
        if not rule.is_enabled:
            continue
        value = metric_value(summary, rule.metric_key)
        if value is None:
            logger.warning("Alert %s references unknown metric %s", rule.alert_key, rule.metric_key)
            triggered = False
        elif rule.threshold_type == "below":
            triggered = value < rule.threshold_value
        else:
            triggered = value > rule.threshold_value

        if triggered:
            logger.info("Alert %s triggered: %s=%.4f (threshold %s %s)",
                        rule.alert_key, rule.metric_key, value, rule.threshold_type, rule.threshold_value)

        results.append(AlertStatus(
            alert_key=rule.alert_key,
            label=rule.label,
            description=rule.description,
            threshold_value=rule.threshold_value,
            threshold_type=rule.threshold_type,
            metric_key=rule.metric_key,
            is_enabled=rule.is_enabled,
            is_triggered=triggered,
            last_evaluated_at=evaluated_at,
            last_triggered_at=evaluated_at if triggered else rule.last_triggered_at,
            current_value=value,
        ))
    return results
