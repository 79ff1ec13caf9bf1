from __future__ import annotations

from datetime import datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")


def local_day_bounds(tz_name: str, now: Optional[datetime] = None) -> tuple[datetime, datetime]:
    """
    Start and end of the calendar day containing `now` in `tz_name`,
    returned as UTC-naive datetimes.

    `now` is UTC-naive (defaults to utcnow()). The end bound is the last
    microsecond of the local day, so both bounds are inclusive.
    """
    tz = ZoneInfo(tz_name)
    if now is None:
        now = utcnow()
    local_now = now.replace(tzinfo=timezone.utc).astimezone(tz)
    local_start = datetime.combine(local_now.date(), time.min, tzinfo=tz)
    local_end = datetime.combine(local_now.date() + timedelta(days=1), time.min, tzinfo=tz)

    start = local_start.astimezone(timezone.utc).replace(tzinfo=None)
    end = local_end.astimezone(timezone.utc).replace(tzinfo=None) - timedelta(microseconds=1)
    return start, end
