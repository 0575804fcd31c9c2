"""Appointment state machine.

Waiting -> Consulting -> Completed. Status only moves forward. Referring an
appointment to another doctor completes it and opens a Waiting appointment
for the referred doctor; both records are returned in one
:class:`TransitionPlan` so the store can commit them as a unit.

Everything here is pure: no store access, no I/O. Token numbers for spawned
appointments come from the ``issue_token`` callable supplied by the caller.
"""
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from app.core.errors import ValidationError, from_pydantic
from app.modules.appointments.schemas import (
    Appointment, AppointmentCreate, AppointmentPatch, AppointmentStatus, STATUS_ORDER,
    disposition_violation,
)
from app.modules.directory.schemas import DoctorRef

TokenAllocator = Callable[[DoctorRef, date], str]


@dataclass
class TransitionPlan:
    """Every record mutation one transition needs."""
    primary: Appointment
    previous: Appointment | None = None  # None when primary is a new record
    spawned: Appointment | None = None
    events: list[str] = field(default_factory=list)

    @property
    def is_insert(self) -> bool:
        return self.previous is None

    @property
    def status_changed(self) -> bool:
        return self.previous is not None and self.previous.appointment_status != self.primary.appointment_status


def parse_patch(payload: AppointmentPatch | dict[str, Any]) -> AppointmentPatch:
    if isinstance(payload, AppointmentPatch):
        return payload
    try:
        return AppointmentPatch.model_validate(payload)
    except PydanticValidationError as e:
        raise from_pydantic(e) from e


def parse_create(payload: AppointmentCreate | dict[str, Any]) -> AppointmentCreate:
    if isinstance(payload, AppointmentCreate):
        return payload
    try:
        return AppointmentCreate.model_validate(payload)
    except PydanticValidationError as e:
        raise from_pydantic(e) from e


def _build(data: dict[str, Any]) -> Appointment:
    broken = disposition_violation(
        data.get("refer_to_another_doctor", False), data.get("referred_doctor_id"),
        data.get("transfer_to_ipd_ot_icu", False), data.get("transfer_to"),
    )
    if broken:
        raise ValidationError(*broken)
    try:
        return Appointment.model_validate(data)
    except PydanticValidationError as e:
        raise from_pydantic(e) from e


def _check_patch_pairs(changes: dict[str, Any]) -> None:
    # a flag switched on must bring its target in the same request
    if changes.get("refer_to_another_doctor") is True and changes.get("referred_doctor_id") is None:
        raise ValidationError("referredDoctorId", "is required when referToAnotherDoctor is set")
    if changes.get("transfer_to_ipd_ot_icu") is True and changes.get("transfer_to") is None:
        raise ValidationError("transferTo", "is required when transferToIPDOTICU is set")


def _spawn_referral(origin: Appointment, doctor: DoctorRef, issue_token: TokenAllocator) -> Appointment:
    return Appointment(
        token_no=issue_token(doctor, origin.appointment_date),
        patient_id=origin.patient_id,
        doctor_id=doctor.doctor_id,
        appointment_date=origin.appointment_date,
        appointment_time=origin.appointment_time,
        appointment_status=AppointmentStatus.WAITING,
        consultation_charge=0,
        referred_from_token_no=origin.token_no,
    )


def _referral_target(data: dict[str, Any], referred_doctor: DoctorRef | None) -> DoctorRef:
    if referred_doctor is None or referred_doctor.doctor_id != data["referred_doctor_id"]:
        raise ValidationError("referredDoctorId", "referred doctor was not resolved")
    if referred_doctor.doctor_id == data["doctor_id"]:
        raise ValidationError("referredDoctorId", "cannot refer an appointment to its own doctor")
    return referred_doctor


def _events(plan: TransitionPlan) -> list[str]:
    prev, cur = plan.previous, plan.primary
    events = ["APPT_CREATED" if prev is None else "APPT_UPDATED"]
    if plan.status_changed:
        events.append("APPT_STATUS_CHANGED")
    if plan.spawned is not None:
        events.append("APPT_REFERRED")
    if cur.transfer_to_ipd_ot_icu and (
        prev is None or not prev.transfer_to_ipd_ot_icu or prev.transfer_to != cur.transfer_to
    ):
        events.append("APPT_TRANSFER_REQUESTED")
    if cur.appointment_status == AppointmentStatus.COMPLETED and (
        prev is None or prev.appointment_status != AppointmentStatus.COMPLETED
    ):
        events.append("APPT_COMPLETED")
    return events


def plan_create(
    payload: AppointmentCreate | dict[str, Any],
    *,
    token_no: str,
    issue_token: TokenAllocator,
    referred_doctor: DoctorRef | None = None,
) -> TransitionPlan:
    create = parse_create(payload)
    data = create.model_dump()
    data["token_no"] = token_no

    spawn_for = None
    if data["refer_to_another_doctor"]:
        if data["referred_doctor_id"] is None:
            raise ValidationError("referredDoctorId", "is required when referToAnotherDoctor is set")
        spawn_for = _referral_target(data, referred_doctor)
        data["appointment_status"] = AppointmentStatus.COMPLETED

    primary = _build(data)
    plan = TransitionPlan(primary=primary)
    if spawn_for is not None:
        plan.spawned = _spawn_referral(primary, spawn_for, issue_token)
    plan.events = _events(plan)
    return plan


def plan_update(
    current: Appointment,
    payload: AppointmentPatch | dict[str, Any],
    *,
    issue_token: TokenAllocator,
    referred_doctor: DoctorRef | None = None,
) -> TransitionPlan:
    """Validate ``payload`` against ``current`` and describe the result.

    Raises ValidationError without side effects when the patch is rejected.
    """
    patch = parse_patch(payload)
    changes = patch.model_dump(exclude_unset=True)
    for name in ("appointment_date", "appointment_time", "appointment_status"):
        if name in changes and changes[name] is None:
            raise ValidationError(to_camel(name), "may not be cleared")
    _check_patch_pairs(changes)

    data = current.model_dump()
    data.update(changes)
    if changes.get("refer_to_another_doctor") is False:
        data["referred_doctor_id"] = None
    if changes.get("transfer_to_ipd_ot_icu") is False:
        data["transfer_to"] = None
        data["transfer_details"] = None

    before = current.appointment_status
    after = AppointmentStatus(data["appointment_status"])
    if STATUS_ORDER[after] < STATUS_ORDER[before]:
        raise ValidationError("appointmentStatus", f"cannot move from {before.value} back to {after.value}")

    spawn_for = None
    if current.refer_to_another_doctor:
        if not data["refer_to_another_doctor"] or data["referred_doctor_id"] != current.referred_doctor_id:
            raise ValidationError("referToAnotherDoctor", "a recorded referral cannot be withdrawn or redirected")
    elif data["refer_to_another_doctor"]:
        if before == AppointmentStatus.COMPLETED:
            raise ValidationError("referToAnotherDoctor", "a completed appointment cannot be referred")
        spawn_for = _referral_target(data, referred_doctor)
        data["appointment_status"] = AppointmentStatus.COMPLETED

    primary = _build(data)
    plan = TransitionPlan(primary=primary, previous=current)
    if spawn_for is not None:
        plan.spawned = _spawn_referral(primary, spawn_for, issue_token)
    plan.events = _events(plan)
    return plan
