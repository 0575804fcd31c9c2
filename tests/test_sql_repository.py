from datetime import date, datetime, time

import pytest

from app.core.db import init_models, make_engine, make_sessionmaker
from app.core.errors import NotFoundError
from app.modules.appointments.repository import ChangeSet, SqlAppointmentRepository
from app.modules.appointments.schemas import Appointment, AppointmentStatus
from app.modules.appointments.service import AppointmentService
from app.modules.appointments.store import AppointmentStore
from app.modules.directory.service import DoctorDirectory
from app.modules.patients.repository import SqlPatientRepository
from app.modules.patients.schemas import PatientRecord
from app.modules.patients.service import PatientService
from app.modules.tokens.schemas import Token


@pytest.fixture
async def sessionmaker(tmp_path):
    engine = make_engine(f"sqlite+aiosqlite:///{tmp_path / 'hms.db'}")
    await init_models(engine)
    yield make_sessionmaker(engine)
    await engine.dispose()


def _appointment(token_no, **extra):
    return Appointment(
        token_no=token_no, patient_id="P-100", doctor_id=1,
        appointment_date=date(2024, 5, 1), appointment_time=time(10, 0), **extra,
    )


async def test_patient_roundtrip(sessionmaker):
    repo = SqlPatientRepository(sessionmaker)
    await repo.create(PatientRecord(patient_id="P-100", given_name="Asha", phone="9876543210"))
    assert (await repo.get("P-100")).given_name == "Asha"
    assert (await repo.find_by_phone("9876543210")).patient_id == "P-100"
    assert await repo.find_by_phone("0000000000") is None
    updated = await repo.update(PatientRecord(patient_id="P-100", given_name="Asha", phone="9876543210", status="InActive"))
    assert updated.status == "InActive"
    assert await repo.update(PatientRecord(patient_id="P-404")) is None


async def test_change_set_commits_appointments_and_tokens(sessionmaker):
    repo = SqlAppointmentRepository(sessionmaker)
    token = Token(
        token_number="SJ-20240501-001", patient_id="P-100", patient_name="Asha", patient_phone="9876543210",
        doctor_id=1, doctor_name="Dr. Sarah Johnson", issue_time=datetime(2024, 5, 1, 9, 30),
    )
    created = await repo.commit(ChangeSet(inserts=[_appointment("SJ-20240501-001")], token_inserts=[token]))
    appt = created[0]
    assert appt.id is not None
    assert (await repo.get_token("SJ-20240501-001")).appointment_id == appt.id
    assert await repo.token_numbers() == {"SJ-20240501-001"}

    moved = appt.model_copy(update={"appointment_status": AppointmentStatus.CONSULTING})
    await repo.commit(ChangeSet(updates=[moved], token_updates=[token.model_copy(update={"status": AppointmentStatus.CONSULTING})]))
    assert (await repo.get(appt.id)).appointment_status == AppointmentStatus.CONSULTING
    assert (await repo.get_token("SJ-20240501-001")).status == AppointmentStatus.CONSULTING

    await repo.commit(ChangeSet(deletes=[appt.id], token_deletes=["SJ-20240501-001"]))
    assert await repo.get(appt.id) is None
    assert await repo.list_tokens() == []


async def test_failed_change_set_writes_nothing(sessionmaker):
    repo = SqlAppointmentRepository(sessionmaker)
    with pytest.raises(NotFoundError):
        await repo.commit(ChangeSet(inserts=[_appointment("SJ-20240501-001")], updates=[_appointment("X", id=99)]))
    assert await repo.list() == []


async def test_referral_through_sql_store(sessionmaker, catalogs):
    patients = PatientService(SqlPatientRepository(sessionmaker))
    await patients.register({"PatientId": "P-100", "PatientName": "Asha", "PhoneNo": "9876543210"})
    service = AppointmentService(AppointmentStore(SqlAppointmentRepository(sessionmaker)), patients, DoctorDirectory(catalogs))

    appt = await service.create({"patientId": "P-100", "doctorId": 1, "appointmentDate": "2024-05-01", "appointmentTime": "10:00"})
    await service.apply_update(appt.id, {"referToAnotherDoctor": True, "referredDoctorId": 2})

    rows = await service.list()
    assert [r.appointment_status for r in rows] == [AppointmentStatus.COMPLETED, AppointmentStatus.WAITING]
    assert rows[1].referred_from_token_no == appt.token_no
