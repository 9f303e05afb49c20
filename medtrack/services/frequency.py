import re
from typing import Optional

from medtrack.schemas.models import (
    EveryHours,
    FourTimesDaily,
    FrequencyRule,
    OnceDaily,
    ThriceDaily,
    TwiceDaily,
    Unrecognized,
    Weekly,
)

# multi-dose phrases must be checked before the generic "daily"
TWICE_PHRASES = ("twice daily", "bid")
THRICE_PHRASES = ("three times daily", "tid")
FOUR_TIMES_PHRASES = ("four times daily", "qid")
DAILY_PHRASES = ("once daily", "daily")

# first hit wins
DAILY_HOURS = (
    (("morning",), 8),
    (("afternoon",), 14),
    (("evening",), 18),
    (("bedtime", "night"), 21),
)
DEFAULT_HOUR = 8

_EVERY_N_HOURS_RE = re.compile(r"every\s+(\d+)\s+hours", re.I)
_WEEKDAY_RE = re.compile(r"on\s+(\w+)", re.I)

def _has_any(text: str, phrases) -> bool:
    return any(p in text for p in phrases)

def _daily_hour(f: str) -> int:
    for words, hour in DAILY_HOURS:
        if _has_any(f, words):
            return hour
    return DEFAULT_HOUR

def _interval_hours(f: str) -> Optional[int]:
    m = _EVERY_N_HOURS_RE.search(f)
    if not m:
        return None
    n = int(m.group(1))
    return n if n > 0 else None

def parse_frequency(frequency: str) -> FrequencyRule:
    """
    Maps free-text frequency ("twice daily", "every 6 hours", "weekly on monday")
    to a frequency rule. Anything unknown becomes Unrecognized, never an error.
    """
    f = (frequency or "").lower().strip()

    if _has_any(f, TWICE_PHRASES):
        return TwiceDaily()
    if _has_any(f, THRICE_PHRASES):
        return ThriceDaily()
    if _has_any(f, FOUR_TIMES_PHRASES):
        return FourTimesDaily()
    if "every" in f and "hours" in f:
        return EveryHours(interval=_interval_hours(f))
    if "weekly" in f:
        m = _WEEKDAY_RE.search(f)
        return Weekly(day=m.group(1) if m else None)
    if _has_any(f, DAILY_PHRASES):
        return OnceDaily(hour=_daily_hour(f))
    return Unrecognized()
