from typing import Protocol, Sequence
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from app.modules.patients.models import Patient
from app.modules.patients.schemas import PatientRecord


class PatientRepository(Protocol):
    async def get(self, patient_id: str) -> PatientRecord | None: ...
    async def list(self) -> Sequence[PatientRecord]: ...
    async def create(self, record: PatientRecord) -> PatientRecord: ...
    async def update(self, record: PatientRecord) -> PatientRecord | None: ...
    async def find_by_phone(self, phone: str) -> PatientRecord | None: ...


class InMemoryPatientRepository:
    def __init__(self, records: Sequence[PatientRecord] = ()):
        self._rows: dict[str, PatientRecord] = {}
        for r in records:
            self._rows[r.patient_id] = r.model_copy()

    async def get(self, patient_id: str) -> PatientRecord | None:
        row = self._rows.get(patient_id)
        return row.model_copy() if row else None

    async def list(self) -> Sequence[PatientRecord]:
        return [r.model_copy() for r in self._rows.values()]

    async def create(self, record: PatientRecord) -> PatientRecord:
        if record.patient_id in self._rows:
            raise KeyError(record.patient_id)
        self._rows[record.patient_id] = record.model_copy()
        return record.model_copy()

    async def update(self, record: PatientRecord) -> PatientRecord | None:
        if record.patient_id not in self._rows:
            return None
        self._rows[record.patient_id] = record.model_copy()
        return record.model_copy()

    async def find_by_phone(self, phone: str) -> PatientRecord | None:
        for r in self._rows.values():
            if r.phone and r.phone.strip() == phone:
                return r.model_copy()
        return None


def _to_record(row: Patient) -> PatientRecord:
    return PatientRecord.model_validate({c.key: getattr(row, c.key) for c in Patient.__table__.columns if c.key in PatientRecord.model_fields})


class SqlPatientRepository:
    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]):
        self.sessionmaker = sessionmaker

    async def get(self, patient_id: str) -> PatientRecord | None:
        async with self.sessionmaker() as s:
            row = await s.get(Patient, patient_id)
            return _to_record(row) if row else None

    async def list(self) -> Sequence[PatientRecord]:
        async with self.sessionmaker() as s:
            res = await s.execute(select(Patient).order_by(Patient.created_at.asc(), Patient.patient_id.asc()))
            return [_to_record(r) for r in res.scalars().all()]

    async def create(self, record: PatientRecord) -> PatientRecord:
        async with self.sessionmaker() as s:
            async with s.begin():
                s.add(Patient(**record.model_dump()))
        return record

    async def update(self, record: PatientRecord) -> PatientRecord | None:
        async with self.sessionmaker() as s:
            async with s.begin():
                row = await s.get(Patient, record.patient_id)
                if not row:
                    return None
                for k, v in record.model_dump().items():
                    setattr(row, k, v)
            return _to_record(row)

    async def find_by_phone(self, phone: str) -> PatientRecord | None:
        async with self.sessionmaker() as s:
            res = await s.execute(select(Patient).where(Patient.phone == phone).limit(1))
            row = res.scalars().first()
            return _to_record(row) if row else None
