# medtrack/api/routes_medications.py
import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Response

from medtrack.core.settings import FALLBACK_UNPARSED_INTERVAL, MATCH_WINDOW_MINUTES, MIDNIGHT_AS_12AM
from medtrack.schemas.models import DoseSlot, DoseTime, Medication, MedicationCreate, MedicationUpdate
from medtrack.services.adherence_store import AdherenceStore, NotFoundError, UnknownPrescriptionError, get_store
from medtrack.services.planning import generate_doses
from medtrack.services.schedule import build_schedule
from medtrack.services.security import current_user_id
from medtrack.utils.time_utils import parse_iso

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/medications", tags=["medications"])

def _target_day(date: Optional[str]) -> datetime:
    try:
        return parse_iso(date) or datetime.now()
    except (ValueError, OverflowError):
        raise HTTPException(status_code=400, detail=f"Invalid date: {date}")

@router.get("", response_model=List[Medication])
def list_medications(
    user_id: str = Depends(current_user_id),
    store: AdherenceStore = Depends(get_store),
):
    return store.list_medications(user_id)

@router.post("", response_model=Medication, status_code=201)
def create_medication(
    req: MedicationCreate,
    user_id: str = Depends(current_user_id),
    store: AdherenceStore = Depends(get_store),
):
    try:
        med = store.create_medication(user_id, req)
    except UnknownPrescriptionError:
        raise HTTPException(status_code=404, detail="Prescription not found")
    logger.info("Created medication %s (%s) for user %s", med.id, med.frequency, user_id)
    return med

# declared before /{medication_id} so "schedule" is not taken as an id
@router.get("/schedule", response_model=List[DoseSlot])
def schedule(
    date: Optional[str] = None,
    user_id: str = Depends(current_user_id),
    store: AdherenceStore = Depends(get_store),
):
    day = _target_day(date)
    meds = store.list_active_medications(user_id, day)
    records = store.list_records_for_day(user_id, day)

    return build_schedule(
        meds,
        records,
        day,
        window_minutes=MATCH_WINDOW_MINUTES,
        midnight_as_12am=MIDNIGHT_AS_12AM,
        fallback_unparsed_interval=FALLBACK_UNPARSED_INTERVAL,
    )

@router.get("/{medication_id}", response_model=Medication)
def get_medication(
    medication_id: str,
    user_id: str = Depends(current_user_id),
    store: AdherenceStore = Depends(get_store),
):
    try:
        return store.get_medication(user_id, medication_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Medication not found")

@router.get("/{medication_id}/doses", response_model=List[DoseTime])
def medication_doses(
    medication_id: str,
    date: Optional[str] = None,
    user_id: str = Depends(current_user_id),
    store: AdherenceStore = Depends(get_store),
):
    day = _target_day(date)
    try:
        med = store.get_medication(user_id, medication_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Medication not found")

    return generate_doses(
        med,
        day,
        midnight_as_12am=MIDNIGHT_AS_12AM,
        fallback_unparsed_interval=FALLBACK_UNPARSED_INTERVAL,
    )

@router.put("/{medication_id}", response_model=Medication)
def update_medication(
    medication_id: str,
    req: MedicationUpdate,
    user_id: str = Depends(current_user_id),
    store: AdherenceStore = Depends(get_store),
):
    try:
        med = store.update_medication(user_id, medication_id, req)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Medication not found")
    except UnknownPrescriptionError:
        raise HTTPException(status_code=404, detail="Prescription not found")
    logger.info("Updated medication %s for user %s", medication_id, user_id)
    return med

@router.delete("/{medication_id}", status_code=204)
def delete_medication(
    medication_id: str,
    user_id: str = Depends(current_user_id),
    store: AdherenceStore = Depends(get_store),
):
    try:
        store.delete_medication(user_id, medication_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Medication not found")
    logger.info("Deleted medication %s for user %s", medication_id, user_id)
    return Response(status_code=204)
