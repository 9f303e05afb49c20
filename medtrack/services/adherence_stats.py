from typing import Dict, Iterable, List, Tuple

from medtrack.schemas.models import (
    AdherenceRecord,
    AdherenceStats,
    CalendarDay,
    MedicationAdherence,
    Streak,
    TimeOfDay,
    TimeOfDayAdherence,
)

# (name, first hour, end hour exclusive), declaration order is output order
TIME_OF_DAY_BUCKETS: Tuple[Tuple[TimeOfDay, int, int], ...] = (
    ("Morning", 0, 12),
    ("Afternoon", 12, 17),
    ("Evening", 17, 20),
    ("Bedtime", 20, 24),
)

def percent(part: int, whole: int) -> int:
    """Whole-number percentage, halves round up (1/8 -> 13)."""
    if whole <= 0:
        return 0
    return (200 * part + whole) // (2 * whole)

def time_of_day(hour: int) -> TimeOfDay:
    for name, lo, hi in TIME_OF_DAY_BUCKETS:
        if lo <= hour < hi:
            return name
    return "Morning"

def compute_streak(calendar: Dict[str, CalendarDay]) -> Streak:
    """
    A day is perfect when every record on it was resolved. Only days present
    in the calendar count, so gaps between them do not break a streak.
    """
    perfect = [calendar[d].taken == calendar[d].total for d in sorted(calendar)]

    current = 0
    for ok in reversed(perfect):
        if not ok:
            break
        current += 1

    best = run = 0
    for ok in perfect:
        run = run + 1 if ok else 0
        best = max(best, run)

    return Streak(current=current, best=best)

def compute_stats(records: Iterable[AdherenceRecord]) -> AdherenceStats:
    records = list(records)
    if not records:
        return AdherenceStats()

    resolved = sum(1 for r in records if r.resolved)

    # per medication, first-seen order
    meds: Dict[str, dict] = {}
    for r in records:
        m = meds.setdefault(r.medication_id, {"name": r.medication_name or r.medication_id, "total": 0, "taken": 0})
        m["total"] += 1
        if r.resolved:
            m["taken"] += 1

    by_medication = [
        MedicationAdherence(name=m["name"], total=m["total"], taken=m["taken"],
                            adherence=percent(m["taken"], m["total"]))
        for m in meds.values()
    ]

    slots: Dict[str, List[int]] = {name: [0, 0] for name, _, _ in TIME_OF_DAY_BUCKETS}
    calendar: Dict[str, CalendarDay] = {}
    for r in records:
        slot = slots[time_of_day(r.scheduled_time.hour)]
        slot[0] += 1
        day = calendar.setdefault(r.scheduled_time.date().isoformat(), CalendarDay())
        day.total += 1
        if r.resolved:
            slot[1] += 1
            day.taken += 1

    by_time = [
        TimeOfDayAdherence(time=name, total=total, taken=taken, adherence=percent(taken, total))
        for name, (total, taken) in slots.items()
        if total > 0
    ]

    return AdherenceStats(
        overall=percent(resolved, len(records)),
        by_medication=by_medication,
        by_time=by_time,
        calendar=calendar,
        streak=compute_streak(calendar),
    )
