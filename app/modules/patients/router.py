import logging
from typing import Any

import httpx
from fastapi import APIRouter, Body, Depends, HTTPException, Query, status

from app.modules.patients.normalizer import normalize_batch
from app.modules.patients.remote import RemotePatientSource
from app.modules.patients.schemas import FollowUpLookup, ImportReport, PatientRecord, PatientUpdate
from app.modules.patients.service import PatientService
from app.platform.provider_registry import registry

router = APIRouter()
logger = logging.getLogger(__name__)

def svc() -> PatientService:
    return registry.patients()

def remote() -> RemotePatientSource:
    return registry.remote_patients()

@router.post("", response_model=PatientRecord, status_code=status.HTTP_201_CREATED)
async def register_patient(
    payload: dict[str, Any] = Body(...),
    service: PatientService = Depends(svc),
):
    """Accepts PascalCase (legacy backend) or camelCase keys."""
    return await service.register(payload)

@router.post("/import", response_model=ImportReport)
async def import_patients(
    records: list[Any] | None = Body(None),
    service: PatientService = Depends(svc),
    source: RemotePatientSource = Depends(remote),
):
    """Reconcile a batch of raw patient records.

    With no body the batch is pulled from the legacy backend's ``/patients``.
    """
    if records is None:
        try:
            batch = await source.fetch_batch()
        except httpx.HTTPError as e:
            logger.error(f"Upstream patient fetch failed: {e}")
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Upstream patient source unavailable")
    else:
        batch = normalize_batch(records)
    return await service.import_batch(batch)

@router.get("", response_model=list[PatientRecord])
async def list_patients(service: PatientService = Depends(svc)):
    return await service.list()

@router.get("/lookup", response_model=FollowUpLookup)
async def lookup_by_phone(
    phone: str = Query(..., min_length=1),
    service: PatientService = Depends(svc),
):
    return await service.lookup_follow_up(phone)

@router.get("/{patient_id}", response_model=PatientRecord)
async def get_patient(patient_id: str, service: PatientService = Depends(svc)):
    return await service.get(patient_id)

@router.patch("/{patient_id}", response_model=PatientRecord)
async def update_patient(
    patient_id: str,
    payload: PatientUpdate,
    service: PatientService = Depends(svc),
):
    return await service.update(patient_id, payload)

@router.delete("/{patient_id}", response_model=PatientRecord)
async def deactivate_patient(patient_id: str, service: PatientService = Depends(svc)):
    return await service.deactivate(patient_id)
