"""Member count deltas between two monthly snapshots"""
from typing import Sequence

from .models import MemberSnapshot, MemberCounts
from .bridge import index_by_member

def compute_member_counts(current: Sequence[MemberSnapshot], prior: Sequence[MemberSnapshot]) -> MemberCounts:
    """
    Count active, new, churned and paused members for the current month.

    New members are those whose first paid date falls in their own snapshot
    month, regardless of current MRR. Paused members are never churned.
    Duplicate member rows count once (last row wins), as in the bridge.
    """
    current_map = index_by_member(current)
    rows = current_map.values()
    active = sum(1 for s in rows if s.mrr > 0)
    new = sum(1 for s in rows if s.is_first_paid_month)
    paused = sum(1 for s in rows if s.mrr == 0 and s.is_paused)

    churned = 0
    for p in index_by_member(prior).values():
        if p.mrr <= 0:
            continue
        c = current_map.get(p.member_id)
        if c is None or (c.mrr == 0 and not c.is_paused):
            churned += 1

    return MemberCounts(
        active_members=active,
        new_members=new,
        churned_members=churned,
        paused_members=paused,
    )
