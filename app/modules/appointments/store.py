from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from datetime import date

from app.core.errors import NotFoundError
from app.modules.appointments.repository import AppointmentRepository, ChangeSet
from app.modules.appointments.schemas import Appointment, AppointmentStatus
from app.modules.tokens.schemas import Token


class AppointmentStore:
    """The single appointment/token store of a process.

    Mutations run one at a time: callers wrap read-modify-write sequences in
    :meth:`exclusive` and finish them with :meth:`commit`. Reads don't take
    the lock; a change set becomes visible all at once.
    """

    def __init__(self, repo: AppointmentRepository):
        self.repo = repo
        self._lock = asyncio.Lock()

    @asynccontextmanager
    async def exclusive(self):
        async with self._lock:
            yield self

    async def commit(self, changes: ChangeSet) -> list[Appointment]:
        if not self._lock.locked():
            raise RuntimeError("commit() must run inside AppointmentStore.exclusive()")
        return await self.repo.commit(changes)

    # ---- Appointments ----
    async def get(self, appt_id: int) -> Appointment:
        obj = await self.repo.get(appt_id)
        if obj is None:
            raise NotFoundError("appointment", appt_id)
        return obj

    async def list(
        self,
        *,
        status: AppointmentStatus | str | None = None,
        patient_id: str | None = None,
        doctor_id: int | None = None,
        appointment_date: date | None = None,
    ) -> list[Appointment]:
        rows = await self.repo.list()
        if status is not None:
            status = AppointmentStatus(status)
            rows = [a for a in rows if a.appointment_status == status]
        if patient_id is not None:
            rows = [a for a in rows if a.patient_id == patient_id]
        if doctor_id is not None:
            rows = [a for a in rows if a.doctor_id == doctor_id]
        if appointment_date is not None:
            rows = [a for a in rows if a.appointment_date == appointment_date]
        return list(rows)

    async def list_by_status(self, status: AppointmentStatus | str) -> list[Appointment]:
        return await self.list(status=status)

    async def token_numbers(self) -> set[str]:
        return await self.repo.token_numbers()

    # ---- Tokens ----
    async def get_token(self, token_number: str) -> Token | None:
        return await self.repo.get_token(token_number)

    async def list_tokens(self, *, status: AppointmentStatus | str | None = None, doctor_id: int | None = None) -> list[Token]:
        rows = await self.repo.list_tokens()
        if status is not None:
            status = AppointmentStatus(status)
            rows = [t for t in rows if t.status == status]
        if doctor_id is not None:
            rows = [t for t in rows if t.doctor_id == doctor_id]
        return list(rows)
