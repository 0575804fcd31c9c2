from typing import Literal

from fastapi import APIRouter, Depends

from app.modules.directory.schemas import DoctorRef
from app.modules.directory.service import DoctorDirectory
from app.platform.provider_registry import registry

router = APIRouter()

def svc() -> DoctorDirectory:
    return registry.directory()

@router.get("", response_model=list[DoctorRef])
async def list_doctors(
    kind: Literal["inhouse", "consulting"] | None = None,
    directory: DoctorDirectory = Depends(svc),
):
    return await directory.list(kind)

@router.get("/{doctor_id}", response_model=DoctorRef)
async def get_doctor(doctor_id: int, directory: DoctorDirectory = Depends(svc)):
    return await directory.get(doctor_id)
