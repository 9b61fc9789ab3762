"""Member-level MRR bridge between two monthly snapshots"""
import logging
from typing import Iterable, Mapping, Optional, Sequence

from .models import (
    ZERO, MemberSnapshot, MrrBridge, Transition, MemberTransition,
    ChurnDrilldownRow, ExpansionDrilldownRow
)
from .months import months_between

logger = logging.getLogger(__name__)

def _index(snapshots: Iterable[MemberSnapshot], log) -> dict:
    index = {}
    for s in snapshots:
        if s.member_id in index:
            log("Duplicate snapshot row for member %s in %s; keeping the last one",
                s.member_id, s.snapshot_month)
        index[s.member_id] = s
    return index

def index_by_member(snapshots: Iterable[MemberSnapshot]) -> dict:
    """member_id -> snapshot; on duplicate ids the last row wins"""
    return _index(snapshots, logger.debug)

def dedupe_snapshots(snapshots: Iterable[MemberSnapshot]) -> list:
    """One row per member (last row wins), warning on each duplicate dropped"""
    return list(_index(snapshots, logger.warning).values())

def classify_transition(prior: Optional[MemberSnapshot], current: Optional[MemberSnapshot]):
    """
    Classify one member's move between the prior and current snapshot.

    Either side may be None (member absent that month). Returns
    (Transition, delta) where delta is the signed amount the member adds to
    net new MRR.
    """
    prior_mrr = prior.mrr if prior is not None else ZERO
    current_mrr = current.mrr if current is not None else ZERO

    if prior_mrr == 0 and current_mrr > 0:
        # first-ever paid month is new business; anyone else is coming back
        if current.is_first_paid_month:
            return Transition.NEW, current_mrr
        return Transition.REACTIVATION, current_mrr
    if prior_mrr > 0 and current_mrr > prior_mrr:
        return Transition.EXPANSION, current_mrr - prior_mrr
    if prior_mrr > 0 and 0 < current_mrr < prior_mrr:
        return Transition.CONTRACTION, current_mrr - prior_mrr
    if prior_mrr > 0 and current_mrr == 0:
        # no current row means no status to inspect: always churn
        if current is not None and current.is_paused:
            return Transition.PAUSE, -prior_mrr
        return Transition.CHURN, -prior_mrr
    return Transition.UNCHANGED, ZERO

def _transitions(prior_map: dict, current_map: dict) -> list:
    member_ids = list(prior_map) + [m for m in current_map if m not in prior_map]
    rows = []
    for member_id in member_ids:
        p = prior_map.get(member_id)
        c = current_map.get(member_id)
        kind, delta = classify_transition(p, c)
        rows.append(MemberTransition(
            member_id=member_id,
            transition=kind,
            prior_mrr=p.mrr if p is not None else ZERO,
            current_mrr=c.mrr if c is not None else ZERO,
            delta=delta,
        ))
    return rows

def classify_transitions(prior: Sequence[MemberSnapshot], current: Sequence[MemberSnapshot]) -> list:
    """Classify every member in the union of both snapshots"""
    return _transitions(index_by_member(prior), index_by_member(current))

def fold_transitions(transitions: Iterable[MemberTransition], starting_mrr, ending_mrr) -> MrrBridge:
    """Aggregate classified transitions into bridge components"""
    totals = {kind: ZERO for kind in Transition}
    for t in transitions:
        totals[t.transition] += t.delta

    new_mrr = totals[Transition.NEW]
    # reactivations are accounted as expansion, not new business
    expansion_mrr = totals[Transition.EXPANSION] + totals[Transition.REACTIVATION]
    contraction_mrr = -totals[Transition.CONTRACTION]
    churned_mrr = -totals[Transition.CHURN]
    paused_mrr = -totals[Transition.PAUSE]
    net_new_mrr = new_mrr + expansion_mrr - contraction_mrr - churned_mrr - paused_mrr

    return MrrBridge(
        starting_mrr=starting_mrr,
        ending_mrr=ending_mrr,
        new_mrr=new_mrr,
        expansion_mrr=expansion_mrr,
        contraction_mrr=contraction_mrr,
        churned_mrr=churned_mrr,
        paused_mrr=paused_mrr,
        net_new_mrr=net_new_mrr,
    )

def compute_mrr_bridge(prior: Sequence[MemberSnapshot], current: Sequence[MemberSnapshot]) -> MrrBridge:
    """
    Reconcile MRR from the prior month to the current month.

    Starting MRR counts only prior members with positive MRR; ending MRR is the
    current month's total. The components always satisfy
    ending == starting + net_new.
    """
    prior_map = index_by_member(prior)
    current_map = index_by_member(current)

    starting_mrr = sum((s.mrr for s in prior_map.values() if s.mrr > 0), ZERO)
    ending_mrr = sum((s.mrr for s in current_map.values()), ZERO)

    bridge = fold_transitions(_transitions(prior_map, current_map), starting_mrr, ending_mrr)
    logger.debug("MRR bridge %s -> %s: start=%s end=%s net_new=%s",
                 len(prior_map), len(current_map), starting_mrr, ending_mrr, bridge.net_new_mrr)
    return bridge

# ---------------------------------------------------------------------------
# Drilldowns
# ---------------------------------------------------------------------------

def _member_detail(members: Optional[Mapping], member_id: str) -> dict:
    if not members:
        return {}
    return members.get(member_id) or {}

def churn_drilldown(prior: Sequence[MemberSnapshot], current: Sequence[MemberSnapshot],
                    members: Optional[Mapping] = None) -> list:
    """
    Members counted as churned (not paused) in the bridge.

    members: optional {member_id: {first_name, last_name, email, join_date}}.
    Tenure is measured from join_date (falling back to first_paid_date) to the
    current month.
    """
    prior_map = index_by_member(prior)
    current_map = index_by_member(current)
    current_month = next(iter(current_map.values())).snapshot_month if current_map else None

    rows = []
    for t in _transitions(prior_map, current_map):
        if t.transition is not Transition.CHURN:
            continue
        p = prior_map[t.member_id]
        detail = _member_detail(members, t.member_id)
        joined = detail.get("join_date") or p.first_paid_date
        month = current_month or p.snapshot_month
        rows.append(ChurnDrilldownRow(
            member_id=t.member_id,
            first_name=detail.get("first_name") or "",
            last_name=detail.get("last_name") or "",
            email=detail.get("email"),
            tenure_months=months_between(joined, month),
            plan_name=p.plan_name,
            prior_mrr=t.prior_mrr,
            churn_type="full_churn" if t.member_id not in current_map else "canceled",
        ))
    return rows

def expansion_contraction_drilldown(prior: Sequence[MemberSnapshot], current: Sequence[MemberSnapshot],
                                    members: Optional[Mapping] = None) -> list:
    """Continuing members whose MRR moved up or down (reactivations excluded)"""
    rows = []
    for t in classify_transitions(prior, current):
        if t.transition not in (Transition.EXPANSION, Transition.CONTRACTION):
            continue
        detail = _member_detail(members, t.member_id)
        rows.append(ExpansionDrilldownRow(
            member_id=t.member_id,
            first_name=detail.get("first_name") or "",
            last_name=detail.get("last_name") or "",
            email=detail.get("email"),
            prior_mrr=t.prior_mrr,
            current_mrr=t.current_mrr,
            delta=t.delta,
            type=t.transition.value,
        ))
    return rows
