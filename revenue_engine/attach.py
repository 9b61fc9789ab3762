"""Attach (non-subscription) revenue metrics"""
from collections import namedtuple
from typing import Iterable, Mapping, Optional

from .models import ZERO, AttachMetrics, AttachDrilldownRow, to_signed_amount
from .months import month_end, month_start, parse_date

AttachRevenue = namedtuple("AttachRevenue", ["member_revenue", "total_revenue", "total_transactions"])

def compute_attach_metrics(member_revenue: Mapping, attach_revenue_total, active_member_count: int,
                           base_revenue_total) -> AttachMetrics:
    """
    Attach rate and all-in ARPM.

    member_revenue must already be limited to attributable members; the total
    is trusted as given.
    """
    attach_total = to_signed_amount(attach_revenue_total)
    base_total = to_signed_amount(base_revenue_total)
    members_with_attach = sum(1 for v in member_revenue.values() if to_signed_amount(v) > 0)

    if active_member_count and active_member_count > 0:
        attach_rate = members_with_attach / active_member_count
        all_in_arpm = (base_total + attach_total) / active_member_count
    else:
        attach_rate = 0.0
        all_in_arpm = ZERO

    return AttachMetrics(
        attach_revenue=attach_total,
        members_with_attach=members_with_attach,
        attach_rate=attach_rate,
        all_in_arpm=all_in_arpm,
    )

def _in_month(tx: Mapping, first_day, last_day, statuses) -> bool:
    if not tx.get("member_id"):
        return False
    if statuses is not None and tx.get("status") not in statuses:
        return False
    tx_date = parse_date(tx.get("transaction_date"))
    return tx_date is not None and first_day <= tx_date <= last_day

def _month_bounds(month: str):
    first_day = parse_date(month)
    return first_day, parse_date(month_end(month_start(first_day)))

def aggregate_attach_revenue(transactions: Iterable[Mapping], month: str,
                             statuses: Optional[Iterable[str]] = ("completed",)) -> AttachRevenue:
    """
    Sum attributable transaction revenue per member for one month.

    Transactions without a member_id, outside the month, or in a status not in
    `statuses` are dropped. Amounts are net as stored; refunds reduce totals.
    """
    first_day, last_day = _month_bounds(month)
    statuses = set(statuses) if statuses is not None else None

    member_revenue = {}
    total = ZERO
    count = 0
    for tx in transactions:
        if not _in_month(tx, first_day, last_day, statuses):
            continue
        amount = to_signed_amount(tx.get("amount"))
        member_id = str(tx["member_id"])
        member_revenue[member_id] = member_revenue.get(member_id, ZERO) + amount
        total += amount
        count += 1
    return AttachRevenue(member_revenue, total, count)

def top_attach_members(transactions: Iterable[Mapping], month: str, members: Optional[Mapping] = None,
                       limit: int = 50, statuses: Optional[Iterable[str]] = ("completed",)) -> list:
    """Members ranked by attach revenue for the month, highest first"""
    first_day, last_day = _month_bounds(month)
    statuses = set(statuses) if statuses is not None else None

    agg = {}
    for tx in transactions:
        if not _in_month(tx, first_day, last_day, statuses):
            continue
        member_id = str(tx["member_id"])
        total, count = agg.get(member_id, (ZERO, 0))
        agg[member_id] = (total + to_signed_amount(tx.get("amount")), count + 1)

    ranked = sorted(agg.items(), key=lambda kv: (-kv[1][0], kv[0]))[:limit]
    rows = []
    for member_id, (total, count) in ranked:
        detail = (members or {}).get(member_id) or {}
        rows.append(AttachDrilldownRow(
            member_id=member_id,
            first_name=detail.get("first_name") or "",
            last_name=detail.get("last_name") or "",
            email=detail.get("email"),
            attach_revenue=total,
            transaction_count=count,
        ))
    return rows
