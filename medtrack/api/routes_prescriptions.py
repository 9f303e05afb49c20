# medtrack/api/routes_prescriptions.py
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response

from medtrack.schemas.models import Prescription, PrescriptionCreate, PrescriptionUpdate, RefillResult
from medtrack.services.adherence_store import AdherenceStore, NoRefillsRemainingError, NotFoundError, get_store
from medtrack.services.security import current_user_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/prescriptions", tags=["prescriptions"])

@router.get("", response_model=List[Prescription])
def list_prescriptions(
    user_id: str = Depends(current_user_id),
    store: AdherenceStore = Depends(get_store),
):
    return store.list_prescriptions(user_id)

@router.post("", response_model=Prescription, status_code=201)
def create_prescription(
    req: PrescriptionCreate,
    user_id: str = Depends(current_user_id),
    store: AdherenceStore = Depends(get_store),
):
    rx = store.create_prescription(user_id, req)
    logger.info("Created prescription %s with %d medication(s) for user %s", rx.id, len(rx.medications), user_id)
    return rx

@router.get("/{prescription_id}", response_model=Prescription)
def get_prescription(
    prescription_id: str,
    user_id: str = Depends(current_user_id),
    store: AdherenceStore = Depends(get_store),
):
    try:
        return store.get_prescription(user_id, prescription_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Prescription not found")

@router.put("/{prescription_id}", response_model=Prescription)
def update_prescription(
    prescription_id: str,
    req: PrescriptionUpdate,
    user_id: str = Depends(current_user_id),
    store: AdherenceStore = Depends(get_store),
):
    try:
        rx = store.update_prescription(user_id, prescription_id, req)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Prescription not found")
    logger.info("Updated prescription %s for user %s", prescription_id, user_id)
    return rx

@router.delete("/{prescription_id}", status_code=204)
def delete_prescription(
    prescription_id: str,
    user_id: str = Depends(current_user_id),
    store: AdherenceStore = Depends(get_store),
):
    try:
        store.delete_prescription(user_id, prescription_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Prescription not found")
    logger.info("Deleted prescription %s and its medications for user %s", prescription_id, user_id)
    return Response(status_code=204)

@router.post("/{prescription_id}/refill", response_model=RefillResult)
def refill_prescription(
    prescription_id: str,
    user_id: str = Depends(current_user_id),
    store: AdherenceStore = Depends(get_store),
):
    try:
        rx = store.refill_prescription(user_id, prescription_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Prescription not found")
    except NoRefillsRemainingError as e:
        raise HTTPException(status_code=400, detail=str(e))

    logger.info("Refilled prescription %s (%d left, next %s)", rx.id, rx.refills_remaining, rx.next_refill_date)
    return RefillResult(message="Refill processed successfully", prescription=rx)
