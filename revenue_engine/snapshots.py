"""Building MemberSnapshot rows from store exports and member records"""
import logging
from dataclasses import fields
from typing import Iterable, Mapping

import pandas as pd

from .models import MemberSnapshot, to_amount
from .months import month_key, parse_date

logger = logging.getLogger(__name__)

SNAPSHOT_FIELDS = tuple(f.name for f in fields(MemberSnapshot))
REQUIRED_COLUMNS = ("member_id", "snapshot_month")

def validate_columns(df: pd.DataFrame, required=REQUIRED_COLUMNS, df_name: str = "snapshots"):
    """Ensure that required columns exist in the DataFrame."""
    missing = [col for col in required if col not in df.columns]
    if missing:
        raise ValueError(f"{df_name} is missing columns: {missing}")

def snapshot_from_record(row: Mapping) -> MemberSnapshot:
    """One store row -> MemberSnapshot; unknown keys are ignored"""
    return MemberSnapshot(**{k: row.get(k) for k in SNAPSHOT_FIELDS if k in row})

def snapshots_from_records(rows: Iterable[Mapping]) -> list:
    return [snapshot_from_record(r) for r in rows if r.get("member_id") is not None]

def snapshots_from_frame(df: pd.DataFrame) -> list:
    """Snapshot rows from a DataFrame export of the snapshot table (NaN -> None)"""
    validate_columns(df)
    clean = df.astype(object).where(pd.notna(df), None)
    snapshots = snapshots_from_records(clean.to_dict("records"))
    logger.info("Loaded %d snapshot rows", len(snapshots))
    return snapshots

def group_by_month(snapshots: Iterable[MemberSnapshot]) -> dict:
    """month key -> snapshots for that month, in input order"""
    by_month = {}
    for s in snapshots:
        by_month.setdefault(s.snapshot_month, []).append(s)
    return by_month

def snapshot_from_member(member: Mapping, month: str) -> MemberSnapshot:
    """
    Proxy snapshot from a member record when no billing snapshot exists.

    Uses monthly dues and member status: active with dues > 0 pays its dues,
    inactive is paused, anything else is canceled. The join date stands in
    for the first paid date.
    """
    dues = to_amount(member.get("monthly_dues"))
    status = member.get("status")
    is_active = status == "active" and dues > 0
    is_paused = status == "inactive" and not member.get("deactivated")

    if is_active:
        subscription_status = "active"
    elif is_paused:
        subscription_status = "paused"
    else:
        subscription_status = "canceled"

    return MemberSnapshot(
        member_id=member["member_id"],
        snapshot_month=month,
        mrr=dues if is_active else 0,
        plan_name="Membership" if dues > 0 else None,
        plan_interval="month",
        plan_amount=dues,
        subscription_status=subscription_status,
        stripe_customer_id=member.get("stripe_customer_id") or None,
        first_paid_date=parse_date(member.get("join_date")),
    )

def generate_snapshots(members: Iterable[Mapping], month: str) -> list:
    """Proxy snapshots for every non-deactivated member"""
    key = month_key(month)
    if key is None:
        raise ValueError(f"Invalid snapshot month: {month!r}")
    rows = [snapshot_from_member(m, key) for m in members if not m.get("deactivated")]
    logger.info("Generated %d proxy snapshots for %s", len(rows), key)
    return rows
