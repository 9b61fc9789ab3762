"""Default parameters for the business dashboard metrics."""

import logging
import os

# Alert thresholds evaluated against the monthly summary
DEFAULT_ALERT_RULES = [
    {
        'alert_key': 'nrr_below_95',
        'label': 'Net revenue retention below 95%',
        'metric_key': 'nrr',
        'threshold_value': 0.95,
        'threshold_type': 'below',
    },
    {
        'alert_key': 'logo_churn_above_5',
        'label': 'Logo churn above 5%',
        'metric_key': 'logoChurnRate',
        'threshold_value': 0.05,
        'threshold_type': 'above',
    },
    {
        'alert_key': 'attach_arpm_drop_10',
        'label': 'All-in ARPM dropped more than 10% MoM',
        'metric_key': 'attachArpmDropPct',
        'threshold_value': 0.10,
        'threshold_type': 'above',
    },
    {
        'alert_key': 'failed_payments_30d',
        'label': 'More than 3 failed payments in 30 days',
        'metric_key': 'failedPayments30d',
        'threshold_value': 3,
        'threshold_type': 'above',
    },
]

LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def configure_logging(level=None):
    """Configure root logging for scripts; the engine itself only emits."""
    logging.basicConfig(level=level or LOG_LEVEL, format=LOG_FORMAT)
