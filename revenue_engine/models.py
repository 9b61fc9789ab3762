import json
from dataclasses import dataclass, fields, is_dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Optional

from .months import month_key, parse_date

ZERO = Decimal("0")

def to_amount(value) -> Decimal:
    """Coerce a monetary value to a non-negative Decimal; malformed -> 0"""
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = Decimal(str(value).strip() or "0")
        except (InvalidOperation, ValueError):
            return ZERO
    if not amount.is_finite() or amount < 0:
        return ZERO
    return amount

def to_signed_amount(value) -> Decimal:
    """Like to_amount but keeps negatives (net figures, refunds)"""
    if value is None or isinstance(value, bool):
        return ZERO
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip() or "0")
    except (InvalidOperation, ValueError):
        return ZERO
    return amount if amount.is_finite() else ZERO

PAUSED = "paused"

@dataclass
class MemberSnapshot:
    member_id: str
    snapshot_month: str                     # YYYY-MM-01
    mrr: Decimal = ZERO                     # normalized monthly recurring revenue
    plan_name: Optional[str] = None
    plan_interval: Optional[str] = None
    plan_amount: Decimal = ZERO
    subscription_status: str = "active"     # active / canceled / paused / passthrough
    stripe_subscription_id: Optional[str] = None
    stripe_customer_id: Optional[str] = None
    first_paid_date: Optional[date] = None  # start of the very first paid period

    def __post_init__(self):
        self.member_id = str(self.member_id)
        self.snapshot_month = month_key(self.snapshot_month) or ""
        self.mrr = to_amount(self.mrr)
        self.plan_amount = to_amount(self.plan_amount)
        self.subscription_status = self.subscription_status or ""
        self.first_paid_date = parse_date(self.first_paid_date)

    @property
    def is_active(self) -> bool:
        return self.mrr > 0

    @property
    def is_paused(self) -> bool:
        return self.subscription_status == PAUSED

    @property
    def first_paid_month(self) -> Optional[str]:
        return month_key(self.first_paid_date)

    @property
    def is_first_paid_month(self) -> bool:
        """First paid date falls inside this snapshot's own month"""
        return self.first_paid_month is not None and self.first_paid_month == self.snapshot_month

# ---------------------------------------------------------------------------
# Calculator outputs
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MrrBridge:
    starting_mrr: Decimal = ZERO
    ending_mrr: Decimal = ZERO
    new_mrr: Decimal = ZERO
    expansion_mrr: Decimal = ZERO       # upgrades + reactivations
    contraction_mrr: Decimal = ZERO
    churned_mrr: Decimal = ZERO
    paused_mrr: Decimal = ZERO
    net_new_mrr: Decimal = ZERO         # may be negative

@dataclass(frozen=True)
class MemberCounts:
    active_members: int = 0
    new_members: int = 0
    churned_members: int = 0
    paused_members: int = 0

@dataclass(frozen=True)
class RetentionRates:
    nrr: float = 1.0
    grr: float = 1.0
    logo_churn_rate: float = 0.0
    revenue_churn_rate: float = 0.0

@dataclass(frozen=True)
class AttachMetrics:
    attach_revenue: Decimal = ZERO
    members_with_attach: int = 0
    attach_rate: float = 0.0
    all_in_arpm: Decimal = ZERO

class Transition(Enum):
    NEW = "new"
    REACTIVATION = "reactivation"
    EXPANSION = "expansion"
    CONTRACTION = "contraction"
    CHURN = "churn"
    PAUSE = "pause"
    UNCHANGED = "unchanged"

@dataclass(frozen=True)
class MemberTransition:
    member_id: str
    transition: Transition
    prior_mrr: Decimal
    current_mrr: Decimal
    delta: Decimal              # signed contribution to net new MRR

# ---------------------------------------------------------------------------
# Dashboard rollups
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BusinessSummary:
    month: str
    prior_month: str
    mrr: Decimal
    prior_mrr: Decimal
    arr: Decimal
    mrr_bridge: MrrBridge
    member_counts: MemberCounts
    prior_member_counts: MemberCounts
    rates: RetentionRates
    attach: AttachMetrics
    prior_attach: AttachMetrics
    failed_payments_30d: int = 0
    warnings: tuple = ()

@dataclass(frozen=True)
class SeriesPoint:
    month: str
    mrr: Decimal
    active_members: int
    new_members: int
    churned_members: int
    paused_members: int
    attach_revenue: Decimal
    new_mrr: Decimal
    expansion_mrr: Decimal
    contraction_mrr: Decimal
    churned_mrr: Decimal
    paused_mrr: Decimal
    net_new_mrr: Decimal
    nrr: float
    grr: float

@dataclass(frozen=True)
class CohortCell:
    month: str
    retained: int
    rate: float

@dataclass(frozen=True)
class CohortRow:
    cohort_month: str
    cohort_size: int
    retention_by_month: tuple = ()

@dataclass(frozen=True)
class ChurnDrilldownRow:
    member_id: str
    first_name: str
    last_name: str
    email: Optional[str]
    tenure_months: int
    plan_name: Optional[str]
    prior_mrr: Decimal
    churn_type: str             # full_churn (no current row) / canceled

@dataclass(frozen=True)
class ExpansionDrilldownRow:
    member_id: str
    first_name: str
    last_name: str
    email: Optional[str]
    prior_mrr: Decimal
    current_mrr: Decimal
    delta: Decimal
    type: str                   # expansion / contraction

@dataclass(frozen=True)
class AttachDrilldownRow:
    member_id: str
    first_name: str
    last_name: str
    email: Optional[str]
    attach_revenue: Decimal
    transaction_count: int

THRESHOLD_TYPES = ("above", "below")

@dataclass(frozen=True)
class AlertRule:
    alert_key: str
    label: str
    metric_key: str
    threshold_value: float
    threshold_type: str = "above"
    description: Optional[str] = None
    is_enabled: bool = True
    last_triggered_at: Optional[str] = None

    def __post_init__(self):
        if self.threshold_type not in THRESHOLD_TYPES:
            raise ValueError(f"threshold_type must be one of {THRESHOLD_TYPES}, got {self.threshold_type!r}")

@dataclass(frozen=True)
class AlertStatus:
    alert_key: str
    label: str
    description: Optional[str]
    threshold_value: float
    threshold_type: str
    metric_key: str
    is_enabled: bool
    is_triggered: bool
    last_evaluated_at: Optional[str]
    last_triggered_at: Optional[str]
    current_value: Optional[float]

# ---------------------------------------------------------------------------
# Engine parameters
# ---------------------------------------------------------------------------

@dataclass
class MetricsConfig:
    series_months: int = 12     # default chart window
    arr_multiplier: int = 12    # ARR = MRR x multiplier

# ---------------------------------------------------------------------------
# JSON boundary
# ---------------------------------------------------------------------------

def _camel(name: str) -> str:
    head, *rest = name.split("_")
    # keep 30d-style suffixes as-is: failed_payments_30d -> failedPayments30d
    return head + "".join(part[:1].upper() + part[1:] for part in rest)

def _plain(value):
    if is_dataclass(value) and not isinstance(value, type):
        return to_json_dict(value)
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    return value

def to_json_dict(obj) -> dict:
    """Dataclass -> dict with camelCase keys and JSON-native values"""
    return {_camel(f.name): _plain(getattr(obj, f.name)) for f in fields(obj)}

class MetricsEncoder(json.JSONEncoder):
    """json.dumps(summary, cls=MetricsEncoder)"""
    def default(self, obj):
        if is_dataclass(obj) and not isinstance(obj, type):
            return to_json_dict(obj)
        if isinstance(obj, (Decimal, Enum, date)):
            return _plain(obj)
        return super().default(obj)
