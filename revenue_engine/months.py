"""Calendar month arithmetic on YYYY-MM-01 month keys"""
import calendar
from datetime import date, datetime

from dateutil.relativedelta import relativedelta

def _as_date(month_key: str) -> date:
    return datetime.strptime(month_key[:10], "%Y-%m-%d").date()

def month_start(instant) -> str:
    """First day of the month containing a date/datetime, as YYYY-MM-01"""
    return f"{instant.year:04d}-{instant.month:02d}-01"

def prior_month_start(month_key: str) -> str:
    """Month key of the month before month_key (Jan rolls back to Dec)"""
    return month_start(_as_date(month_key) - relativedelta(months=1))

def month_end(month_key: str) -> str:
    """Last calendar day of the month as YYYY-MM-DD"""
    d = _as_date(month_key)
    last_day = calendar.monthrange(d.year, d.month)[1]
    return f"{d.year:04d}-{d.month:02d}-{last_day:02d}"

def months_back(month_key: str, n: int) -> list[str]:
    """n month keys in ascending order, ending with month_key"""
    first = _as_date(month_key).replace(day=1)
    return [month_start(first - relativedelta(months=i)) for i in range(n - 1, -1, -1)]

def parse_date(value):
    """
    Lenient date coercion for store rows.

    Accepts date, datetime (pandas Timestamp included) and ISO strings with an
    optional time part. Blank, missing or unparseable values become None.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        # NaT is a datetime subclass whose year is not an int
        if not isinstance(value.year, int):
            return None
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if len(text) < 10:
            return None
        try:
            return datetime.strptime(text[:10], "%Y-%m-%d").date()
        except ValueError:
            return None
    return None

def month_key(value):
    """Normalize a date-ish value to its month key; None if it cannot be parsed"""
    d = parse_date(value)
    if d is None and isinstance(value, str) and len(value.strip()) == 7:
        # bare YYYY-MM
        d = parse_date(value.strip() + "-01")
    return month_start(d) if d is not None else None

def months_between(start, end) -> int:
    """Whole calendar months from start to end, floored at 0"""
    s = parse_date(start)
    e = parse_date(end)
    if s is None or e is None:
        return 0
    return max(0, (e.year - s.year) * 12 + (e.month - s.month))
