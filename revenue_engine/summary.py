"""Monthly business summary and time series over already-loaded snapshots"""
import logging
from typing import Mapping, Optional, Sequence

import pandas as pd

from .models import BusinessSummary, MetricsConfig, SeriesPoint, MemberSnapshot, ZERO, to_json_dict, to_signed_amount
from .months import prior_month_start, months_back
from .bridge import compute_mrr_bridge, dedupe_snapshots
from .counts import compute_member_counts
from .retention import compute_retention_rates
from .attach import compute_attach_metrics

logger = logging.getLogger(__name__)

def _month_rows(snapshots_by_month: Mapping, month: str) -> Sequence[MemberSnapshot]:
    return dedupe_snapshots(snapshots_by_month.get(month) or ())

def _attach_inputs(attach_by_month: Optional[Mapping], month: str):
    member_revenue = (attach_by_month or {}).get(month) or {}
    total = sum((to_signed_amount(v) for v in member_revenue.values()), ZERO)
    return member_revenue, total

def build_business_summary(month: str, snapshots_by_month: Mapping[str, Sequence[MemberSnapshot]],
                           attach_by_month: Optional[Mapping[str, Mapping]] = None,
                           failed_payments_30d: int = 0,
                           config: Optional[MetricsConfig] = None) -> BusinessSummary:
    """
    Full KPI summary for one month.

    snapshots_by_month must hold the month, the prior month and (for the prior
    month's counts) the month before that. Missing months are reported in
    `warnings` rather than raised.
    """
    cfg = config or MetricsConfig()
    prior = prior_month_start(month)
    prior_prior = prior_month_start(prior)

    current_rows = _month_rows(snapshots_by_month, month)
    prior_rows = _month_rows(snapshots_by_month, prior)
    prior_prior_rows = _month_rows(snapshots_by_month, prior_prior)

    warnings = []
    for label, key, rows in (("current", month, current_rows), ("prior", prior, prior_rows)):
        if not rows:
            msg = f"Incomplete month: no {label} snapshots for {key}"
            logger.warning(msg)
            warnings.append(msg)

    bridge = compute_mrr_bridge(prior_rows, current_rows)
    counts = compute_member_counts(current_rows, prior_rows)
    prior_counts = compute_member_counts(prior_rows, prior_prior_rows)

    starting_members = sum(1 for s in prior_rows if s.mrr > 0)
    rates = compute_retention_rates(bridge, counts, starting_members)

    # MRR is the membership revenue proxy (run-rate, not cash collected)
    member_revenue, attach_total = _attach_inputs(attach_by_month, month)
    attach = compute_attach_metrics(member_revenue, attach_total, counts.active_members, bridge.ending_mrr)
    prior_member_revenue, prior_attach_total = _attach_inputs(attach_by_month, prior)
    prior_attach = compute_attach_metrics(prior_member_revenue, prior_attach_total,
                                          prior_counts.active_members, bridge.starting_mrr)

    logger.info("Business summary for %s: mrr=%s net_new=%s active=%d",
                month, bridge.ending_mrr, bridge.net_new_mrr, counts.active_members)

    return BusinessSummary(
        month=month,
        prior_month=prior,
        mrr=bridge.ending_mrr,
        prior_mrr=bridge.starting_mrr,
        arr=bridge.ending_mrr * cfg.arr_multiplier,
        mrr_bridge=bridge,
        member_counts=counts,
        prior_member_counts=prior_counts,
        rates=rates,
        attach=attach,
        prior_attach=prior_attach,
        failed_payments_30d=failed_payments_30d,
        warnings=tuple(warnings),
    )

def build_business_series(month: str, snapshots_by_month: Mapping[str, Sequence[MemberSnapshot]],
                          attach_by_month: Optional[Mapping[str, Mapping]] = None,
                          num_months: Optional[int] = None,
                          config: Optional[MetricsConfig] = None) -> list:
    """One SeriesPoint per month for the last num_months months, oldest first"""
    cfg = config or MetricsConfig()
    months = months_back(month, num_months if num_months is not None else cfg.series_months)
    if not months:
        return []

    points = []
    opening = prior_month_start(months[0])
    prior_rows = _month_rows(snapshots_by_month, opening)
    if not prior_rows:
        logger.warning("Incomplete month: no prior snapshots for %s; %s opens from zero MRR",
                       opening, months[0])
    for m in months:
        current_rows = _month_rows(snapshots_by_month, m)
        if not current_rows:
            logger.warning("Incomplete month: no snapshots for %s", m)

        bridge = compute_mrr_bridge(prior_rows, current_rows)
        counts = compute_member_counts(current_rows, prior_rows)
        rates = compute_retention_rates(bridge, counts, sum(1 for s in prior_rows if s.mrr > 0))
        _, attach_total = _attach_inputs(attach_by_month, m)

        points.append(SeriesPoint(
            month=m,
            mrr=bridge.ending_mrr,
            active_members=counts.active_members,
            new_members=counts.new_members,
            churned_members=counts.churned_members,
            paused_members=counts.paused_members,
            attach_revenue=attach_total,
            new_mrr=bridge.new_mrr,
            expansion_mrr=bridge.expansion_mrr,
            contraction_mrr=bridge.contraction_mrr,
            churned_mrr=bridge.churned_mrr,
            paused_mrr=bridge.paused_mrr,
            net_new_mrr=bridge.net_new_mrr,
            nrr=rates.nrr,
            grr=rates.grr,
        ))
        prior_rows = current_rows

    logger.info("Built %d-month series ending %s", len(points), month)
    return points

def series_frame(points: Sequence[SeriesPoint]) -> pd.DataFrame:
    """Series points as a DataFrame keyed by the JSON field names"""
    df = pd.DataFrame([to_json_dict(p) for p in points])
    if df.empty:
        return df
    df["month"] = pd.to_datetime(df["month"])
    return df.sort_values("month").reset_index(drop=True)
