import logging
from datetime import datetime, timedelta
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException

from medtrack.core.settings import MAX_STATS_DAYS, STATS_DEFAULT_DAYS
from medtrack.schemas.models import AdherenceCreate, AdherenceRecord, AdherenceStats, AdherenceUpdate
from medtrack.services.adherence_stats import compute_stats
from medtrack.services.adherence_store import AdherenceStore, DuplicateRecordError, NotFoundError, get_store
from medtrack.services.security import current_user_id
from medtrack.utils.time_utils import parse_iso

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/adherence", tags=["adherence"])

def _parse_param(name: str, value: Optional[str]) -> Optional[datetime]:
    try:
        return parse_iso(value)
    except (ValueError, OverflowError):
        raise HTTPException(status_code=400, detail=f"Invalid {name}: {value}")

@router.get("", response_model=List[AdherenceRecord])
def list_records(
    startDate: Optional[str] = None,
    endDate: Optional[str] = None,
    medicationId: Optional[str] = None,
    user_id: str = Depends(current_user_id),
    store: AdherenceStore = Depends(get_store),
):
    start = _parse_param("startDate", startDate)
    end = _parse_param("endDate", endDate)
    return store.list_records(user_id, start, end, medicationId)

@router.post("", response_model=AdherenceRecord, status_code=201)
def create_record(
    req: AdherenceCreate,
    user_id: str = Depends(current_user_id),
    store: AdherenceStore = Depends(get_store),
):
    try:
        rec = store.create_record(user_id, req)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Medication not found or does not belong to user")
    except DuplicateRecordError as e:
        raise HTTPException(status_code=409, detail=str(e))

    logger.info(
        "Recorded dose %s for medication %s (taken=%s skipped=%s)",
        rec.id, rec.medication_id, rec.taken_time is not None, rec.skipped,
    )
    return rec

@router.get("/stats", response_model=AdherenceStats)
def stats(
    days: int = STATS_DEFAULT_DAYS,
    startDate: Optional[str] = None,
    endDate: Optional[str] = None,
    user_id: str = Depends(current_user_id),
    store: AdherenceStore = Depends(get_store),
):
    if not 1 <= days <= MAX_STATS_DAYS:
        raise HTTPException(status_code=400, detail=f"days must be between 1 and {MAX_STATS_DAYS}")

    end = _parse_param("endDate", endDate) or datetime.now()
    start = _parse_param("startDate", startDate)
    if start is None:
        try:
            start = end - timedelta(days=days)
        except OverflowError:
            raise HTTPException(status_code=400, detail=f"days={days} reaches before the earliest supported date")
    if start > end:
        raise HTTPException(status_code=400, detail="startDate must not be after endDate")

    return compute_stats(store.list_records(user_id, start, end))

@router.get("/{record_id}", response_model=AdherenceRecord)
def get_record(
    record_id: str,
    user_id: str = Depends(current_user_id),
    store: AdherenceStore = Depends(get_store),
):
    try:
        return store.get_record(user_id, record_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Adherence record not found")

@router.put("/{record_id}", response_model=AdherenceRecord)
def update_record(
    record_id: str,
    req: AdherenceUpdate,
    user_id: str = Depends(current_user_id),
    store: AdherenceStore = Depends(get_store),
):
    try:
        rec = store.update_record(user_id, record_id, req)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Adherence record not found")

    logger.info("Updated adherence record %s (taken=%s skipped=%s)", record_id, rec.taken_time is not None, rec.skipped)
    return rec
