from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.modules.appointments.schemas import AppointmentStatus


class Token(BaseModel):
    """Visit ticket issued at intake. Its status mirrors the appointment's."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    token_number: str
    patient_id: str
    patient_name: str
    patient_phone: str
    doctor_id: int
    doctor_name: str
    issue_time: datetime
    consult_time: datetime | None = None
    status: AppointmentStatus = AppointmentStatus.WAITING
    is_follow_up: bool = False
    appointment_id: int | None = None


class TokenRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    patient_name: str = Field(..., min_length=1)
    patient_phone: str = Field(..., min_length=1)
    doctor_id: int
    patient_id: str | None = None
    is_follow_up: bool | None = None
    consultation_charge: float = Field(default=0, ge=0)
    gender: str | None = None
    age: int | None = Field(default=None, ge=0)
