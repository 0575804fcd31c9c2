import logging
from datetime import date

from fastapi import APIRouter, Depends, Query, Response, status

from app.modules.appointments.schemas import Appointment, AppointmentCreate, AppointmentPatch, DoctorQueue
from app.modules.appointments.service import AppointmentService
from app.platform.provider_registry import registry

router = APIRouter()
logger = logging.getLogger(__name__)

def svc() -> AppointmentService:
    return registry.appointments()

# ---- Appointments ----

@router.post("", response_model=Appointment, status_code=status.HTTP_201_CREATED)
async def create_appointment(
    payload: AppointmentCreate,
    service: AppointmentService = Depends(svc),
):
    return await service.create(payload)

@router.get("", response_model=list[Appointment])
async def list_appointments(
    appointment_status: str | None = Query(None, alias="appointmentStatus"),
    patient_id: str | None = Query(None, alias="patientId"),
    doctor_id: int | None = Query(None, alias="doctorId"),
    appointment_date: date | None = Query(None, alias="appointmentDate"),
    service: AppointmentService = Depends(svc),
):
    return await service.list(
        status=appointment_status, patient_id=patient_id,
        doctor_id=doctor_id, appointment_date=appointment_date,
    )

@router.get("/queue", response_model=list[DoctorQueue])
async def doctor_queue(
    day: date | None = Query(None, alias="date"),
    service: AppointmentService = Depends(svc),
):
    """Per-doctor waiting/consulting/completed counts for the front-desk board."""
    return await service.doctor_queue(day)

@router.get("/{appointment_id}", response_model=Appointment)
async def get_appointment(appointment_id: int, service: AppointmentService = Depends(svc)):
    return await service.get(appointment_id)

@router.patch("/{appointment_id}", response_model=Appointment)
@router.put("/{appointment_id}", response_model=Appointment)
async def update_appointment(
    appointment_id: int,
    payload: AppointmentPatch,
    service: AppointmentService = Depends(svc),
):
    # PUT is kept for older front-desk clients; both apply only the fields sent
    return await service.apply_update(appointment_id, payload)

@router.delete("/{appointment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_appointment(appointment_id: int, service: AppointmentService = Depends(svc)):
    await service.delete(appointment_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
