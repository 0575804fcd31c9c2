from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, Sequence

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.errors import CollisionError, NotFoundError
from app.modules.appointments import models
from app.modules.appointments.schemas import Appointment
from app.modules.tokens.schemas import Token


@dataclass
class ChangeSet:
    """Writes that must land together or not at all."""
    inserts: list[Appointment] = field(default_factory=list)
    updates: list[Appointment] = field(default_factory=list)
    deletes: list[int] = field(default_factory=list)
    token_inserts: list[Token] = field(default_factory=list)
    token_updates: list[Token] = field(default_factory=list)
    token_deletes: list[str] = field(default_factory=list)


class AppointmentRepository(Protocol):
    async def get(self, appt_id: int) -> Appointment | None: ...
    async def list(self) -> Sequence[Appointment]: ...
    async def get_token(self, token_number: str) -> Token | None: ...
    async def list_tokens(self) -> Sequence[Token]: ...
    async def token_numbers(self) -> set[str]: ...
    async def commit(self, changes: ChangeSet) -> list[Appointment]: ...


def _link_tokens(tokens: list[Token], created: list[Appointment]) -> list[Token]:
    by_token = {a.token_no: a.id for a in created}
    return [
        t if t.appointment_id is not None or t.token_number not in by_token
        else t.model_copy(update={"appointment_id": by_token[t.token_number]})
        for t in tokens
    ]


class InMemoryAppointmentRepository:
    def __init__(self):
        self._rows: dict[int, Appointment] = {}
        self._tokens: dict[str, Token] = {}
        self._next_id = 1

    async def get(self, appt_id: int) -> Appointment | None:
        row = self._rows.get(appt_id)
        return row.model_copy() if row else None

    async def list(self) -> Sequence[Appointment]:
        return [self._rows[k].model_copy() for k in sorted(self._rows)]

    async def get_token(self, token_number: str) -> Token | None:
        row = self._tokens.get(token_number)
        return row.model_copy() if row else None

    async def list_tokens(self) -> Sequence[Token]:
        return [t.model_copy() for t in self._tokens.values()]

    async def token_numbers(self) -> set[str]:
        return {a.token_no for a in self._rows.values()} | set(self._tokens)

    def _check(self, changes: ChangeSet) -> None:
        taken = {a.token_no for a in self._rows.values() if a.id not in changes.deletes}
        for a in changes.inserts:
            if a.token_no in taken:
                raise CollisionError("tokenNo", a.token_no)
            taken.add(a.token_no)
        for a in changes.updates:
            if a.id not in self._rows:
                raise NotFoundError("appointment", a.id)
        for appt_id in changes.deletes:
            if appt_id not in self._rows:
                raise NotFoundError("appointment", appt_id)
        for t in changes.token_inserts:
            if t.token_number in self._tokens and t.token_number not in changes.token_deletes:
                raise CollisionError("tokenNumber", t.token_number)
        for t in changes.token_updates:
            if t.token_number not in self._tokens:
                raise NotFoundError("token", t.token_number)

    async def commit(self, changes: ChangeSet) -> list[Appointment]:
        # validate everything first so a failure leaves no partial write
        self._check(changes)
        created = []
        for a in changes.inserts:
            row = a.model_copy(update={"id": self._next_id})
            self._next_id += 1
            self._rows[row.id] = row
            created.append(row.model_copy())
        for a in changes.updates:
            self._rows[a.id] = a.model_copy()
        for appt_id in changes.deletes:
            del self._rows[appt_id]
        for number in changes.token_deletes:
            self._tokens.pop(number, None)
        for t in _link_tokens(changes.token_inserts, created) + list(changes.token_updates):
            self._tokens[t.token_number] = t.model_copy()
        return created


def _appointment(row: models.Appointment) -> Appointment:
    return Appointment.model_validate({k: getattr(row, k) for k in Appointment.model_fields})


def _token(row: models.Token) -> Token:
    return Token.model_validate({k: getattr(row, k) for k in Token.model_fields})


def _row_values(obj) -> dict:
    data = obj.model_dump()
    for k, v in data.items():
        if hasattr(v, "value"):
            data[k] = v.value
    return data


class SqlAppointmentRepository:
    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]):
        self.sessionmaker = sessionmaker

    async def get(self, appt_id: int) -> Appointment | None:
        async with self.sessionmaker() as s:
            row = await s.get(models.Appointment, appt_id)
            return _appointment(row) if row else None

    async def list(self) -> Sequence[Appointment]:
        async with self.sessionmaker() as s:
            res = await s.execute(select(models.Appointment).order_by(models.Appointment.id.asc()))
            return [_appointment(r) for r in res.scalars().all()]

    async def get_token(self, token_number: str) -> Token | None:
        async with self.sessionmaker() as s:
            row = await s.get(models.Token, token_number)
            return _token(row) if row else None

    async def list_tokens(self) -> Sequence[Token]:
        async with self.sessionmaker() as s:
            res = await s.execute(select(models.Token).order_by(models.Token.issue_time.asc()))
            return [_token(r) for r in res.scalars().all()]

    async def token_numbers(self) -> set[str]:
        async with self.sessionmaker() as s:
            appts = await s.execute(select(models.Appointment.token_no))
            tokens = await s.execute(select(models.Token.token_number))
            return set(appts.scalars().all()) | set(tokens.scalars().all())

    async def commit(self, changes: ChangeSet) -> list[Appointment]:
        async with self.sessionmaker() as s:
            async with s.begin():
                for number in changes.token_deletes:
                    await s.execute(delete(models.Token).where(models.Token.token_number == number))
                for appt_id in changes.deletes:
                    row = await s.get(models.Appointment, appt_id)
                    if not row:
                        raise NotFoundError("appointment", appt_id)
                    await s.delete(row)
                rows = []
                for a in changes.inserts:
                    values = _row_values(a)
                    values.pop("id")
                    row = models.Appointment(**values)
                    s.add(row)
                    rows.append(row)
                await s.flush()
                created = [_appointment(r) for r in rows]
                for a in changes.updates:
                    row = await s.get(models.Appointment, a.id)
                    if not row:
                        raise NotFoundError("appointment", a.id)
                    for k, v in _row_values(a).items():
                        setattr(row, k, v)
                for t in _link_tokens(changes.token_inserts, created):
                    s.add(models.Token(**_row_values(t)))
                for t in changes.token_updates:
                    row = await s.get(models.Token, t.token_number)
                    if not row:
                        raise NotFoundError("token", t.token_number)
                    for k, v in _row_values(t).items():
                        setattr(row, k, v)
        return created
