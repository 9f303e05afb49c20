import logging
from collections import defaultdict
from datetime import timedelta
from typing import Dict, Iterable, List, Optional

from medtrack.schemas.models import AdherenceRecord, DoseSlot, DoseTime, Medication
from medtrack.services.planning import generate_doses
from medtrack.utils.time_utils import DayLike, day_bounds

logger = logging.getLogger(__name__)

DEFAULT_MATCH_WINDOW_MINUTES = 15

def is_active_on(medication: Medication, day: DayLike) -> bool:
    start, end = day_bounds(day)
    if medication.start_date > end:
        return False
    return medication.end_date is None or medication.end_date >= start

def match_record(
    dose: DoseTime,
    records: Iterable[AdherenceRecord],
    window: timedelta,
) -> Optional[AdherenceRecord]:
    """First record within the window wins, not the closest one."""
    for r in records:
        if abs(r.scheduled_time - dose.time) < window:
            return r
    return None

def build_schedule(
    medications: Iterable[Medication],
    records: Iterable[AdherenceRecord],
    day: DayLike,
    *,
    window_minutes: int = DEFAULT_MATCH_WINDOW_MINUTES,
    midnight_as_12am: bool = False,
    fallback_unparsed_interval: bool = False,
) -> List[DoseSlot]:
    """
    Generates every active medication's doses for the day and marks each one
    taken/skipped from the adherence record that falls inside the match window.
    Result is sorted by time; ties keep medication order.
    """
    window = timedelta(minutes=window_minutes)

    by_medication: Dict[str, List[AdherenceRecord]] = defaultdict(list)
    for r in records:
        by_medication[r.medication_id].append(r)

    slots: List[DoseSlot] = []
    for med in medications:
        if not is_active_on(med, day):
            continue

        doses = generate_doses(
            med,
            day,
            midnight_as_12am=midnight_as_12am,
            fallback_unparsed_interval=fallback_unparsed_interval,
        )
        for dose in doses:
            rec = match_record(dose, by_medication.get(med.id, []), window)
            slots.append(DoseSlot(
                medication_id=med.id,
                medication_name=med.name,
                dosage=med.dosage,
                instructions=med.instructions,
                time=dose.time,
                label=dose.label,
                adherence_record_id=rec.id if rec else None,
                taken=bool(rec and rec.taken_time is not None),
                skipped=bool(rec and rec.skipped),
            ))

    slots.sort(key=lambda s: s.time)
    logger.debug("Built schedule for %s: %d slots", day, len(slots))
    return slots
