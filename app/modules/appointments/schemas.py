from datetime import date, time
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class AppointmentStatus(str, Enum):
    WAITING = "Waiting"
    CONSULTING = "Consulting"
    COMPLETED = "Completed"


STATUS_ORDER = {
    AppointmentStatus.WAITING: 0,
    AppointmentStatus.CONSULTING: 1,
    AppointmentStatus.COMPLETED: 2,
}

TransferTarget = Literal["IPD Room Admission", "ICU", "OT"]
TRANSFER_TARGETS: tuple[str, ...] = ("IPD Room Admission", "ICU", "OT")


def disposition_violation(
    refer: bool, referred_doctor_id, transfer: bool, transfer_to
) -> tuple[str, str] | None:
    """First broken referral/transfer pairing as (field, message), or None."""
    if refer and referred_doctor_id is None:
        return "referredDoctorId", "is required when referToAnotherDoctor is set"
    if not refer and referred_doctor_id is not None:
        return "referredDoctorId", "is only allowed when referToAnotherDoctor is set"
    if transfer and transfer_to is None:
        return "transferTo", f"must be one of {', '.join(TRANSFER_TARGETS)} when transferToIPDOTICU is set"
    if not transfer and transfer_to is not None:
        return "transferTo", "is only allowed when transferToIPDOTICU is set"
    if refer and transfer:
        return "transferToIPDOTICU", "an appointment is either referred or transferred, not both"
    return None


# ---- Disposition (what happens to the patient after this appointment) ----

class NoDisposition(BaseModel):
    kind: Literal["none"] = "none"

class Referral(BaseModel):
    kind: Literal["referral"] = "referral"
    referred_doctor_id: int

class Transfer(BaseModel):
    kind: Literal["transfer"] = "transfer"
    target: TransferTarget
    details: str | None = None

Disposition = Annotated[Union[NoDisposition, Referral, Transfer], Field(discriminator="kind")]


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Appointment(_CamelModel):
    id: int | None = None  # assigned by the store
    token_no: str = Field(..., min_length=1)
    patient_id: str = Field(..., min_length=1)
    doctor_id: int
    appointment_date: date
    appointment_time: time
    appointment_status: AppointmentStatus = AppointmentStatus.WAITING
    consultation_charge: float = Field(default=0, ge=0)
    diagnosis: str | None = None
    follow_up_details: str | None = None
    prescriptions_url: str | None = None
    to_be_admitted: bool = False
    refer_to_another_doctor: bool = False
    referred_doctor_id: int | None = None
    transfer_to_ipd_ot_icu: bool = Field(default=False, alias="transferToIPDOTICU")
    transfer_to: TransferTarget | None = None
    transfer_details: str | None = None
    bill_id: str | None = None
    referred_from_token_no: str | None = None

    @model_validator(mode="after")
    def _check_disposition(self):
        broken = disposition_violation(
            self.refer_to_another_doctor, self.referred_doctor_id,
            self.transfer_to_ipd_ot_icu, self.transfer_to,
        )
        if broken:
            raise ValueError(f"{broken[0]} {broken[1]}")
        return self

    @property
    def disposition(self) -> NoDisposition | Referral | Transfer:
        if self.refer_to_another_doctor:
            return Referral(referred_doctor_id=self.referred_doctor_id)
        if self.transfer_to_ipd_ot_icu:
            return Transfer(target=self.transfer_to, details=self.transfer_details)
        return NoDisposition()


class AppointmentCreate(_CamelModel):
    patient_id: str = Field(..., min_length=1)
    doctor_id: int
    appointment_date: date
    appointment_time: time
    appointment_status: AppointmentStatus = AppointmentStatus.WAITING
    consultation_charge: float = Field(default=0, ge=0)
    token_no: str | None = None
    diagnosis: str | None = None
    follow_up_details: str | None = None
    prescriptions_url: str | None = None
    to_be_admitted: bool = False
    refer_to_another_doctor: bool = False
    referred_doctor_id: int | None = None
    transfer_to_ipd_ot_icu: bool = Field(default=False, alias="transferToIPDOTICU")
    transfer_to: TransferTarget | None = None
    transfer_details: str | None = None
    bill_id: str | None = None


class AppointmentPatch(_CamelModel):
    # only the fields present in the request are applied
    appointment_date: date | None = None
    appointment_time: time | None = None
    appointment_status: AppointmentStatus | None = None
    consultation_charge: float | None = Field(default=None, ge=0)
    diagnosis: str | None = None
    follow_up_details: str | None = None
    prescriptions_url: str | None = None
    to_be_admitted: bool | None = None
    refer_to_another_doctor: bool | None = None
    referred_doctor_id: int | None = None
    transfer_to_ipd_ot_icu: bool | None = Field(default=None, alias="transferToIPDOTICU")
    transfer_to: TransferTarget | None = None
    transfer_details: str | None = None
    bill_id: str | None = None


class DoctorQueue(_CamelModel):
    doctor_id: int
    doctor: str
    specialty: str
    kind: str
    waiting: int = 0
    consulting: int = 0
    completed: int = 0
    follow_ups: int = 0
