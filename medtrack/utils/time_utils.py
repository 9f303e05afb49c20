# medtrack/utils/time_utils.py
from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Optional, Tuple, Union

DayLike = Union[date, datetime]

def to_local_naive(dt: datetime) -> datetime:
    """
    Aware datetimes are converted to the server's local wall clock and
    stripped of tzinfo. Naive datetimes are assumed to be local already.
    """
    if dt.tzinfo is None:
        return dt
    return dt.astimezone().replace(tzinfo=None)

def start_of_day(day: DayLike) -> datetime:
    if isinstance(day, datetime):
        day = to_local_naive(day).date()
    return datetime.combine(day, time.min)

def end_of_day(day: DayLike) -> datetime:
    return start_of_day(day) + timedelta(days=1) - timedelta(microseconds=1)

def day_bounds(day: DayLike) -> Tuple[datetime, datetime]:
    return start_of_day(day), end_of_day(day)

def at_hour(base: datetime, hour: int) -> datetime:
    return base.replace(hour=hour, minute=0, second=0, microsecond=0)

def parse_iso(value: Optional[str]) -> Optional[datetime]:
    """
    Parses "2024-03-04", "2024-03-04T08:00:00" or "...Z" into a local naive
    datetime. Raises ValueError on garbage.
    """
    if value is None or not value.strip():
        return None
    return to_local_naive(datetime.fromisoformat(value.strip().replace("Z", "+00:00")))
