"""Test the monthly business summary, series and JSON output"""
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import json
import logging
import math
from revenue_engine.models import MemberSnapshot, MetricsConfig, MetricsEncoder, to_json_dict
from revenue_engine.summary import build_business_summary, build_business_series, series_frame

DEC, JAN, FEB = "2025-12-01", "2026-01-01", "2026-02-01"

def make_snapshot(member_id, month, mrr=0, status="active", first_paid_date=None):
    return MemberSnapshot(member_id=member_id, snapshot_month=month, mrr=mrr,
                          subscription_status=status, first_paid_date=first_paid_date)

def sample_months():
    """Three months of snapshots; Jan -> Feb is the worked bridge example"""
    return {
        DEC: [make_snapshot("m1", DEC, 100), make_snapshot("m2", DEC, 200), make_snapshot("m3", DEC, 150),
              make_snapshot("m4", DEC, 80)],
        JAN: [make_snapshot("m1", JAN, 100), make_snapshot("m2", JAN, 200), make_snapshot("m3", JAN, 150),
              make_snapshot("m4", JAN, 80), make_snapshot("m5", JAN, 100, first_paid_date="2026-01-09")],
        FEB: [make_snapshot("m1", FEB, 130), make_snapshot("m2", FEB, 150),
              make_snapshot("m3", FEB, 0, status="canceled"), make_snapshot("m4", FEB, 0, status="paused"),
              make_snapshot("m5", FEB, 100), make_snapshot("m6", FEB, 90, first_paid_date="2026-02-05")],
    }

def test_business_summary():
    """Summary rolls up bridge, counts, rates and attach for the month"""
    attach_by_month = {FEB: {"m1": 50, "m2": 0}, JAN: {"m1": 40}}
    summary = build_business_summary(FEB, sample_months(), attach_by_month, failed_payments_30d=2)

    assert summary.month == FEB
    assert summary.prior_month == JAN
    assert summary.mrr == 470
    assert summary.prior_mrr == 630
    assert summary.arr == 470 * 12
    assert summary.mrr_bridge.net_new_mrr == -160
    assert summary.warnings == ()

    assert summary.member_counts.active_members == 4
    assert summary.member_counts.new_members == 1
    assert summary.member_counts.churned_members == 1
    assert summary.member_counts.paused_members == 1
    assert summary.prior_member_counts.new_members == 1
    assert summary.prior_member_counts.active_members == 5

    # (630 + 30 - 50 - 150) / 630
    assert math.isclose(summary.rates.nrr, 460 / 630)
    assert math.isclose(summary.rates.grr, 430 / 630)
    assert math.isclose(summary.rates.logo_churn_rate, 1 / 5)

    assert summary.attach.attach_revenue == 50
    assert math.isclose(summary.attach.attach_rate, 0.25)
    assert summary.attach.all_in_arpm == 130
    assert summary.prior_attach.all_in_arpm == 134
    assert summary.failed_payments_30d == 2
    print(f"✅ Summary: MRR {summary.mrr}, NRR {summary.rates.nrr:.1%}")

def test_custom_arr_multiplier():
    summary = build_business_summary(FEB, sample_months(), config=MetricsConfig(arr_multiplier=1))
    assert summary.arr == summary.mrr

def test_missing_months_warn_instead_of_raising():
    """An empty store yields a zero summary with incomplete-month warnings"""
    summary = build_business_summary(FEB, {})
    assert summary.mrr == 0
    assert summary.rates.nrr == 1.0
    assert summary.attach.all_in_arpm == 0
    assert len(summary.warnings) == 2
    assert "no current snapshots for 2026-02-01" in summary.warnings[0]
    assert "no prior snapshots for 2026-01-01" in summary.warnings[1]

def test_business_series():
    """Series is oldest first, one point per month"""
    points = build_business_series(FEB, sample_months(), num_months=3)
    assert [p.month for p in points] == [DEC, JAN, FEB]
    assert [p.mrr for p in points] == [530, 630, 470]
    # December has no November data, so all of it reads as reactivated MRR
    assert points[0].expansion_mrr == 530
    assert points[1].new_mrr == 100
    assert points[2].net_new_mrr == -160
    previous_mrr = 0
    for p in points:
        assert p.mrr == previous_mrr + p.net_new_mrr
        previous_mrr = p.mrr

def test_series_window_from_config():
    assert len(build_business_series(FEB, {})) == 12
    assert len(build_business_series(FEB, {}, config=MetricsConfig(series_months=6))) == 6
    assert build_business_series(FEB, {}, num_months=0) == []

def test_series_frame():
    """Series converts to a month-indexed DataFrame with JSON column names"""
    df = series_frame(build_business_series(FEB, sample_months(), num_months=3))
    assert len(df) == 3
    assert "netNewMrr" in df.columns
    assert "activeMembers" in df.columns
    assert df["month"].iloc[0].month == 12
    assert df["mrr"].tolist() == [530.0, 630.0, 470.0]
    assert series_frame([]).empty

def test_duplicate_rows_count_once_in_summary():
    """Duplicate member rows do not inflate active members or dilute ARPM"""
    snapshots_by_month = {
        JAN: [make_snapshot("m1", JAN, 100), make_snapshot("m1", JAN, 100)],
        FEB: [make_snapshot("m1", FEB, 100), make_snapshot("m1", FEB, 100)],
    }
    summary = build_business_summary(FEB, snapshots_by_month)
    assert summary.mrr == 100
    assert summary.member_counts.active_members == 1
    assert summary.attach.all_in_arpm == 100
    assert summary.rates.logo_churn_rate == 0.0
    assert summary.prior_member_counts.active_members == 1

    points = build_business_series(FEB, snapshots_by_month, num_months=2)
    assert [p.active_members for p in points] == [1, 1]

def test_duplicate_rows_warn_once_per_month(caplog):
    """Each month is deduplicated once, so a duplicate is reported once"""
    snapshots_by_month = {
        JAN: [make_snapshot("m1", JAN, 100)],
        FEB: [make_snapshot("m1", FEB, 100), make_snapshot("m1", FEB, 120)],
    }
    with caplog.at_level(logging.WARNING, logger="revenue_engine"):
        build_business_summary(FEB, snapshots_by_month)
    duplicates = [r for r in caplog.records if "Duplicate snapshot row" in r.getMessage()]
    assert len(duplicates) == 1

def test_series_warns_when_opening_month_missing(caplog):
    """No rows before the window means the first point opens from zero"""
    with caplog.at_level(logging.WARNING, logger="revenue_engine"):
        points = build_business_series(FEB, sample_months(), num_months=3)
    messages = [r.getMessage() for r in caplog.records]
    assert any("no prior snapshots for 2025-11-01" in m for m in messages)
    assert points[0].expansion_mrr == 530

    caplog.clear()
    with caplog.at_level(logging.WARNING, logger="revenue_engine"):
        build_business_series(FEB, sample_months(), num_months=2)
    assert not any("no prior snapshots" in r.getMessage() for r in caplog.records)

def test_json_output_uses_camel_case():
    """Summaries serialize with camelCase keys and plain numbers"""
    summary = build_business_summary(FEB, sample_months(), failed_payments_30d=4)
    data = to_json_dict(summary)
    assert data["mrr"] == 470.0
    assert data["priorMonth"] == JAN
    assert data["failedPayments30d"] == 4
    assert data["mrrBridge"]["netNewMrr"] == -160.0
    assert data["memberCounts"]["activeMembers"] == 4
    assert data["attach"]["allInArpm"] == 117.5
    assert data["warnings"] == []

    decoded = json.loads(json.dumps(summary, cls=MetricsEncoder))
    assert decoded == data

if __name__ == "__main__":
    test_business_summary()
    test_custom_arr_multiplier()
    test_missing_months_warn_instead_of_raising()
    test_business_series()
    test_series_window_from_config()
    test_series_frame()
    test_duplicate_rows_count_once_in_summary()
    test_json_output_uses_camel_case()
    print("\n✅ All business summary tests passed!")
