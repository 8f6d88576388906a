from __future__ import annotations

from datetime import date, datetime, time, timezone
from typing import Optional, Union


def iso_today() -> str:
    return date.today().isoformat()


def iso_now() -> str:
    # Use UTC ISO timestamps for consistency.
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def safe_div(n: float, d: float) -> float:
    return float(n) / float(d) if d else 0.0


def parse_ts(value: Union[str, date, datetime, None]) -> Optional[datetime]:
    """Parse a stored ISO date/datetime into a naive UTC datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime.combine(value, time.min)
    else:
        dt = datetime.fromisoformat(str(value))
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def to_iso(value: Union[str, date, datetime, None]) -> Optional[str]:
    dt = parse_ts(value)
    if dt is None:
        return None
    return dt.replace(tzinfo=timezone.utc).isoformat()


def in_range(
    value: Union[str, date, datetime, None],
    start: Optional[Union[date, datetime]] = None,
    end: Optional[Union[date, datetime]] = None,
) -> bool:
    """
    Inclusive date-range check. A bare `end` date covers that whole day.
    """
    dt = parse_ts(value)
    if dt is None:
        return start is None and end is None
    if start is not None and dt < parse_ts(start):
        return False
    if end is not None:
        end_dt = parse_ts(end)
        if not isinstance(end, datetime):
            end_dt = datetime.combine(end_dt.date(), time.max)
        if dt > end_dt:
            return False
    return True


def fmt_money(amount: float, currency: str = "RS") -> str:
    return f"{currency} {float(amount):,.2f}"
