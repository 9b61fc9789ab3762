"""Retention ratios and cohort retention"""
from typing import Mapping, Sequence

from .models import (
    MrrBridge, MemberCounts, RetentionRates, CohortRow, CohortCell, MemberSnapshot, to_amount
)

# Zero-denominator policy: an empty starting base retains everything and loses nothing
RETENTION_RATIO_FALLBACK = 1.0
CHURN_RATE_FALLBACK = 0.0

def safe_divide(numerator, denominator, fallback):
    """numerator / denominator, or fallback when the denominator is zero"""
    if denominator == 0:
        return fallback
    return numerator / denominator

def compute_retention_rates(bridge: MrrBridge, counts: MemberCounts, starting_member_count: int) -> RetentionRates:
    """
    NRR, GRR, logo churn and revenue churn for one month transition.

    Paused MRR is left out of NRR and GRR; only churn and contraction reduce
    retention.
    """
    start = to_amount(bridge.starting_mrr)
    expansion = to_amount(bridge.expansion_mrr)
    contraction = to_amount(bridge.contraction_mrr)
    churned = to_amount(bridge.churned_mrr)

    nrr = safe_divide(start + expansion - contraction - churned, start, RETENTION_RATIO_FALLBACK)
    grr = safe_divide(start - contraction - churned, start, RETENTION_RATIO_FALLBACK)
    logo_churn = safe_divide(counts.churned_members, starting_member_count or 0, CHURN_RATE_FALLBACK)
    revenue_churn = safe_divide(churned, start, CHURN_RATE_FALLBACK)

    return RetentionRates(
        nrr=float(nrr),
        grr=float(grr),
        logo_churn_rate=float(logo_churn),
        revenue_churn_rate=float(revenue_churn),
    )

def compute_cohort_retention(months: Sequence[str], snapshots_by_month: Mapping[str, Sequence[MemberSnapshot]]) -> list:
    """
    Logo retention by first-paid-month cohort.

    A cohort is every member whose first paid date falls in one of `months`.
    Its size is the number of those members active at the end of the cohort
    month; each later month reports how many are still active.
    """
    member_cohort = {}
    for m in months:
        for s in snapshots_by_month.get(m) or ():
            if s.member_id not in member_cohort and s.first_paid_month is not None:
                member_cohort[s.member_id] = s.first_paid_month

    def active_ids(month):
        return {s.member_id for s in snapshots_by_month.get(month) or () if s.mrr > 0}

    rows = []
    for cohort_month in sorted({c for c in member_cohort.values() if c in months}):
        cohort_members = {m for m, c in member_cohort.items() if c == cohort_month}
        cohort_size = len(cohort_members & active_ids(cohort_month))
        if cohort_size == 0:
            continue

        cells = []
        for m in months:
            if m < cohort_month:
                continue
            retained = len(cohort_members & active_ids(m))
            cells.append(CohortCell(month=m, retained=retained, rate=retained / cohort_size))
        rows.append(CohortRow(cohort_month=cohort_month, cohort_size=cohort_size,
                              retention_by_month=tuple(cells)))
    return rows
