"""Subscription revenue bridge and retention analytics for the business dashboard"""
from .months import month_start, prior_month_start, month_end, months_back
from .models import (
    MemberSnapshot, MrrBridge, MemberCounts, RetentionRates, AttachMetrics,
    BusinessSummary, SeriesPoint, MetricsConfig, Transition, to_json_dict, MetricsEncoder
)
from .bridge import compute_mrr_bridge, classify_transition, classify_transitions, dedupe_snapshots
from .counts import compute_member_counts
from .retention import compute_retention_rates, compute_cohort_retention
from .attach import compute_attach_metrics, aggregate_attach_revenue
from .summary import build_business_summary, build_business_series, series_frame
