from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import date, datetime
from typing import Any

from app.core.errors import ValidationError
from app.modules.appointments.repository import ChangeSet
from app.modules.appointments.schemas import (
    Appointment, AppointmentCreate, AppointmentPatch, AppointmentStatus, DoctorQueue,
)
from app.modules.appointments.store import AppointmentStore
from app.modules.appointments.workflow import (
    TokenAllocator, TransitionPlan, parse_create, parse_patch, plan_create, plan_update,
)
from app.modules.directory.schemas import DoctorRef
from app.modules.directory.service import DoctorDirectory
from app.modules.events.publisher import EventPublisher
from app.modules.patients.service import PatientService
from app.modules.tokens.numbering import TokenSequencer
from app.modules.tokens.schemas import Token

logger = logging.getLogger(__name__)


def mirror_token(token: Token, status: AppointmentStatus, now: datetime) -> Token:
    update: dict[str, Any] = {"status": status}
    if status == AppointmentStatus.CONSULTING and token.consult_time is None:
        update["consult_time"] = now
    return token.model_copy(update=update)


def _status(value: AppointmentStatus | str) -> AppointmentStatus:
    try:
        return AppointmentStatus(value)
    except ValueError:
        raise ValidationError("appointmentStatus", f"unknown status {value!r}")


class AppointmentService:
    def __init__(
        self,
        store: AppointmentStore,
        patients: PatientService,
        directory: DoctorDirectory,
        events: EventPublisher | None = None,
        sequencer: TokenSequencer | None = None,
        now: Callable[[], datetime] | None = None,
    ):
        self.store = store
        self.patients = patients
        self.directory = directory
        self.events = events or EventPublisher(None)
        self.sequencer = sequencer or TokenSequencer()
        self.now = now or datetime.now

    def _allocator(self, taken: set[str]) -> TokenAllocator:
        def issue(doctor: DoctorRef, day: date) -> str:
            return self.sequencer.allocate(doctor.name, day, taken)
        return issue

    # ---- Transitions ----
    async def create(self, payload: AppointmentCreate | dict[str, Any]) -> Appointment:
        create = parse_create(payload)
        await self.patients.get(create.patient_id)
        doctor = await self.directory.get(create.doctor_id)
        referred = None
        if create.refer_to_another_doctor and create.referred_doctor_id is not None:
            referred = await self.directory.get(create.referred_doctor_id)

        async with self.store.exclusive():
            taken = await self.store.token_numbers()
            if create.token_no:
                if create.token_no in taken:
                    raise ValidationError("tokenNo", f"{create.token_no} is already in use")
                token_no = create.token_no
                taken.add(token_no)
            else:
                token_no = self.sequencer.allocate(doctor.name, create.appointment_date, taken)
            plan = plan_create(create, token_no=token_no, issue_token=self._allocator(taken), referred_doctor=referred)
            inserts = [plan.primary] + ([plan.spawned] if plan.spawned else [])
            created = await self.store.commit(ChangeSet(inserts=inserts))

        primary = created[0]
        spawned = created[1] if plan.spawned else None
        logger.info(f"Created appointment {primary.id} ({primary.token_no}) for patient {primary.patient_id}")
        await self._announce(plan, primary, spawned)
        return primary

    async def apply_update(self, appointment_id: int, payload: AppointmentPatch | dict[str, Any]) -> Appointment:
        """Validate and apply a patch; a referral also opens the sibling appointment.

        On any error nothing is written.
        """
        patch = parse_patch(payload)
        # directory reads may go over the network; keep them outside the lock
        requested = None
        if patch.refer_to_another_doctor and patch.referred_doctor_id is not None:
            requested = await self.directory.get(patch.referred_doctor_id)

        async with self.store.exclusive():
            current = await self.store.get(appointment_id)
            referred = None if current.refer_to_another_doctor else requested
            taken = await self.store.token_numbers()
            plan = plan_update(current, patch, issue_token=self._allocator(taken), referred_doctor=referred)

            changes = ChangeSet(updates=[plan.primary])
            if plan.spawned is not None:
                changes.inserts.append(plan.spawned)
            if plan.status_changed:
                token = await self.store.get_token(current.token_no)
                if token is not None:
                    changes.token_updates.append(mirror_token(token, plan.primary.appointment_status, self.now()))
            created = await self.store.commit(changes)

        spawned = created[0] if created else None
        if plan.status_changed:
            logger.info(
                f"Appointment {appointment_id}: {current.appointment_status.value} -> {plan.primary.appointment_status.value}"
            )
        if spawned is not None:
            logger.info(f"Appointment {appointment_id} referred to doctor {spawned.doctor_id}; opened appointment {spawned.id}")
        await self._announce(plan, plan.primary, spawned)
        return plan.primary

    async def delete(self, appointment_id: int) -> None:
        """Administrative delete. Irreversible; not a status change."""
        async with self.store.exclusive():
            current = await self.store.get(appointment_id)
            changes = ChangeSet(deletes=[appointment_id])
            if await self.store.get_token(current.token_no) is not None:
                changes.token_deletes.append(current.token_no)
            await self.store.commit(changes)
        logger.info(f"Deleted appointment {appointment_id} ({current.token_no})")
        await self.events.publish("APPT_DELETED", "appointment", appointment_id, {"token_no": current.token_no})

    # ---- Reads ----
    async def get(self, appointment_id: int) -> Appointment:
        return await self.store.get(appointment_id)

    async def list(
        self,
        status: AppointmentStatus | str | None = None,
        patient_id: str | None = None,
        doctor_id: int | None = None,
        appointment_date: date | None = None,
    ) -> list[Appointment]:
        return await self.store.list(
            status=_status(status) if status is not None else None,
            patient_id=patient_id, doctor_id=doctor_id, appointment_date=appointment_date,
        )

    async def list_by_status(self, status: AppointmentStatus | str) -> list[Appointment]:
        return await self.store.list_by_status(_status(status))

    async def list_for_patient(self, patient_id: str) -> list[Appointment]:
        return await self.store.list(patient_id=patient_id)

    async def list_for_doctor(self, doctor_id: int) -> list[Appointment]:
        return await self.store.list(doctor_id=doctor_id)

    async def doctor_queue(self, day: date | None = None) -> list[DoctorQueue]:
        """Waiting / consulting / completed / follow-up counts per doctor."""
        appointments = await self.store.list(appointment_date=day)
        follow_ups = {t.token_number for t in await self.store.list_tokens() if t.is_follow_up}
        queues = []
        for doctor in await self.directory.list():
            mine = [a for a in appointments if a.doctor_id == doctor.doctor_id]
            queues.append(DoctorQueue(
                doctor_id=doctor.doctor_id,
                doctor=doctor.name,
                specialty=doctor.specialty,
                kind=doctor.kind,
                waiting=sum(1 for a in mine if a.appointment_status == AppointmentStatus.WAITING),
                consulting=sum(1 for a in mine if a.appointment_status == AppointmentStatus.CONSULTING),
                completed=sum(1 for a in mine if a.appointment_status == AppointmentStatus.COMPLETED),
                follow_ups=sum(1 for a in mine if a.token_no in follow_ups),
            ))
        return queues

    # ---- Events ----
    async def _announce(self, plan: TransitionPlan, primary: Appointment, spawned: Appointment | None) -> None:
        base = {
            "token_no": primary.token_no,
            "patient_id": primary.patient_id,
            "doctor_id": primary.doctor_id,
        }
        for event_type in plan.events:
            payload = dict(base)
            if event_type == "APPT_STATUS_CHANGED":
                payload.update({"from": plan.previous.appointment_status.value, "to": primary.appointment_status.value})
            elif event_type == "APPT_REFERRED" and spawned is not None:
                payload.update({"referred_doctor_id": spawned.doctor_id, "new_appointment_id": spawned.id, "new_token_no": spawned.token_no})
            elif event_type == "APPT_TRANSFER_REQUESTED":
                payload.update({"transfer_to": primary.transfer_to, "transfer_details": primary.transfer_details})
            elif event_type == "APPT_COMPLETED":
                payload.update({
                    "to_be_admitted": primary.to_be_admitted,
                    "transfer_to": primary.transfer_to,
                    "transfer_details": primary.transfer_details,
                    "bill_id": primary.bill_id,
                })
            await self.events.publish(event_type, "appointment", primary.id, payload)
        if spawned is not None:
            await self.events.publish("APPT_CREATED", "appointment", spawned.id, {
                "token_no": spawned.token_no,
                "patient_id": spawned.patient_id,
                "doctor_id": spawned.doctor_id,
                "referred_from_token_no": spawned.referred_from_token_no,
            })
