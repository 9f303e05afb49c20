from datetime import datetime
from typing import List, Sequence

from medtrack.schemas.models import (
    DoseTime,
    EveryHours,
    FourTimesDaily,
    FrequencyRule,
    Medication,
    OnceDaily,
    ThriceDaily,
    TwiceDaily,
    Weekly,
)
from medtrack.services.frequency import DEFAULT_HOUR, parse_frequency
from medtrack.utils.time_utils import DayLike, at_hour, start_of_day, to_local_naive

WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]

TWICE_HOURS = (8, 20)
THRICE_HOURS = (8, 14, 20)
FOUR_TIMES_HOURS = (8, 12, 16, 20)
INTERVAL_START_HOUR = 8

def format_hour_label(hour: int, midnight_as_12am: bool = False) -> str:
    """8 -> "8AM", 14 -> "2PM", 12 -> "12PM". Hour 0 is "0AM" unless midnight_as_12am."""
    if hour == 0 and midnight_as_12am:
        return "12AM"
    display = hour - 12 if hour > 12 else hour
    return f"{display}{'PM' if hour >= 12 else 'AM'}"

def _weekday(day: DayLike) -> int:
    if isinstance(day, datetime):
        return to_local_naive(day).weekday()
    return day.weekday()

def hours_for_rule(rule: FrequencyRule, medication: Medication, day: DayLike,
                   fallback_unparsed_interval: bool = False) -> Sequence[int]:
    if isinstance(rule, OnceDaily):
        return [rule.hour]
    if isinstance(rule, TwiceDaily):
        return TWICE_HOURS
    if isinstance(rule, ThriceDaily):
        return THRICE_HOURS
    if isinstance(rule, FourTimesDaily):
        return FOUR_TIMES_HOURS
    if isinstance(rule, EveryHours):
        if rule.interval is None:
            return [DEFAULT_HOUR] if fallback_unparsed_interval else []
        return list(range(INTERVAL_START_HOUR, 24, rule.interval))
    if isinstance(rule, Weekly):
        if rule.day is not None:
            name = rule.day.lower()
            # unknown words ("weekly on sundays") never match
            target = WEEKDAYS.index(name) if name in WEEKDAYS else -1
        else:
            target = _weekday(medication.start_date)
        return [DEFAULT_HOUR] if _weekday(day) == target else []
    return [DEFAULT_HOUR]

def generate_doses(
    medication: Medication,
    day: DayLike,
    *,
    midnight_as_12am: bool = False,
    fallback_unparsed_interval: bool = False,
) -> List[DoseTime]:
    """
    Expected dose times for one medication on one calendar day, in the order
    the frequency rule produces them. Pure: no start/end date filtering here.
    """
    base = start_of_day(day)
    rule = parse_frequency(medication.frequency)
    hours = hours_for_rule(rule, medication, base, fallback_unparsed_interval)

    return [
        DoseTime(time=at_hour(base, h), label=format_hour_label(h, midnight_as_12am))
        for h in hours
    ]
