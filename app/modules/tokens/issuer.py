import logging
from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from app.core.errors import ValidationError, from_pydantic
from app.modules.appointments.repository import ChangeSet
from app.modules.appointments.schemas import Appointment, AppointmentStatus
from app.modules.appointments.store import AppointmentStore
from app.modules.directory.schemas import DoctorRef
from app.modules.directory.service import DoctorDirectory
from app.modules.events.publisher import EventPublisher
from app.modules.patients.schemas import FollowUpLookup
from app.modules.patients.service import PatientService
from app.modules.tokens.numbering import TokenSequencer
from app.modules.tokens.schemas import Token, TokenRequest

logger = logging.getLogger(__name__)


class TokenIssuer:
    """Front-desk intake: follow-up lookup, then a token and its Waiting appointment."""

    def __init__(
        self,
        store: AppointmentStore,
        patients: PatientService,
        directory: DoctorDirectory,
        sequencer: TokenSequencer | None = None,
        events: EventPublisher | None = None,
        now: Callable[[], datetime] | None = None,
    ):
        self.store = store
        self.patients = patients
        self.directory = directory
        self.sequencer = sequencer or TokenSequencer()
        self.events = events or EventPublisher(None)
        self.now = now or datetime.now

    async def lookup_follow_up(self, phone: str, timeout: float | None = None) -> FollowUpLookup:
        return await self.patients.lookup_follow_up(phone, timeout)

    async def issue_token(
        self,
        patient_name: str,
        patient_phone: str,
        doctor: DoctorRef | int,
        is_follow_up: bool,
        *,
        patient_id: str,
        consultation_charge: float = 0,
    ) -> Token:
        if not isinstance(doctor, DoctorRef):
            doctor = await self.directory.get(doctor)
        issued_at = self.now()

        async with self.store.exclusive():
            taken = await self.store.token_numbers()
            number = self.sequencer.allocate(doctor.name, issued_at.date(), taken, follow_up=is_follow_up)
            appointment = Appointment(
                token_no=number,
                patient_id=patient_id,
                doctor_id=doctor.doctor_id,
                appointment_date=issued_at.date(),
                appointment_time=issued_at.time().replace(microsecond=0),
                appointment_status=AppointmentStatus.WAITING,
                consultation_charge=consultation_charge,
            )
            token = Token(
                token_number=number,
                patient_id=patient_id,
                patient_name=patient_name,
                patient_phone=patient_phone,
                doctor_id=doctor.doctor_id,
                doctor_name=doctor.name,
                issue_time=issued_at,
                is_follow_up=is_follow_up,
            )
            created = await self.store.commit(ChangeSet(inserts=[appointment], token_inserts=[token]))
        appointment = created[0]
        token = token.model_copy(update={"appointment_id": appointment.id})

        logger.info(f"Issued token {number} for {patient_name} with {doctor.name} (follow-up={is_follow_up})")
        await self.events.publish("TOKEN_ISSUED", "token", number, {
            "patient_id": patient_id,
            "doctor_id": doctor.doctor_id,
            "is_follow_up": is_follow_up,
            "appointment_id": appointment.id,
        })
        await self.events.publish("APPT_CREATED", "appointment", appointment.id, {
            "token_no": number,
            "patient_id": patient_id,
            "doctor_id": doctor.doctor_id,
        })
        return token

    async def walk_in(self, payload: TokenRequest | Mapping[str, Any]) -> Token:
        """Look the caller up by phone, register them if new, then issue a token.

        An explicit ``isFollowUp`` in the request wins over the lookup.
        """
        if not isinstance(payload, TokenRequest):
            try:
                payload = TokenRequest.model_validate(payload)
            except PydanticValidationError as e:
                raise from_pydantic(e) from e
        doctor = await self.directory.get(payload.doctor_id)

        if payload.patient_id:
            patient = await self.patients.get(payload.patient_id)
            is_follow_up = True if payload.is_follow_up is None else payload.is_follow_up
        else:
            found = await self.lookup_follow_up(payload.patient_phone)
            patient = found.patient
            is_follow_up = found.is_follow_up if payload.is_follow_up is None else payload.is_follow_up
            if patient is None:
                patient = await self.patients.register({
                    "patientName": payload.patient_name,
                    "phoneNo": payload.patient_phone,
                    "gender": payload.gender,
                    "age": payload.age,
                })
        name = patient.full_name or payload.patient_name
        return await self.issue_token(
            name, payload.patient_phone, doctor, is_follow_up,
            patient_id=patient.patient_id, consultation_charge=payload.consultation_charge,
        )

    async def list_tokens(self, status: AppointmentStatus | str | None = None, doctor_id: int | None = None) -> list[Token]:
        try:
            return await self.store.list_tokens(status=status, doctor_id=doctor_id)
        except ValueError:
            raise ValidationError("status", f"unknown status {status!r}")
