import asyncio
from datetime import date

from app.modules.appointments.schemas import AppointmentStatus
from app.modules.patients.repository import InMemoryPatientRepository
from app.modules.patients.service import PatientService


async def test_issue_token_registers_waiting_appointment(services):
    token = await services.tokens.issue_token("Asha Rao", "9876543210", 1, False, patient_id="P-100", consultation_charge=300)

    assert token.token_number == "SJ-20240501-001"
    assert token.doctor_name == "Dr. Sarah Johnson"
    assert token.status == AppointmentStatus.WAITING
    appt = await services.store.get(token.appointment_id)
    assert appt.token_no == token.token_number
    assert appt.appointment_status == AppointmentStatus.WAITING
    assert appt.consultation_charge == 300
    assert services.bus.types() == ["TOKEN_ISSUED", "APPT_CREATED"]


async def test_concurrent_issuing_gives_distinct_numbers(services):
    tokens = await asyncio.gather(*[
        services.tokens.issue_token(f"Patient {i}", f"90000000{i:02d}", 1 if i % 2 else 2, i % 3 == 0, patient_id="P-100")
        for i in range(20)
    ])
    numbers = [t.token_number for t in tokens]
    assert len(set(numbers)) == 20
    assert len(await services.store.list()) == 20
    assert len(await services.tokens.list_tokens()) == 20


async def test_follow_up_detected_by_phone(services):
    found = await services.tokens.lookup_follow_up("9876543210")
    assert found.is_follow_up is True
    assert found.patient.patient_id == "P-100"
    assert found.patient_name == "Asha Rao"

    missing = await services.tokens.lookup_follow_up("0000000000")
    assert missing.is_follow_up is False
    assert missing.patient is None


async def test_walk_in_for_known_phone(services):
    token = await services.tokens.walk_in({"patientName": "asha", "patientPhone": "9876543210", "doctorId": 1})
    assert token.is_follow_up is True
    assert token.patient_id == "P-100"
    assert token.patient_name == "Asha Rao"
    assert token.token_number == "SJ-FU-20240501-001"


async def test_walk_in_registers_new_patient(services):
    token = await services.tokens.walk_in({"patientName": "Kiran Das", "patientPhone": "0000000000", "doctorId": 2, "age": 29})
    assert token.is_follow_up is False
    assert token.patient_id == f"PAT-{date.today().year}-0002"
    patient = await services.patients.get(token.patient_id)
    assert patient.given_name == "Kiran Das"
    assert patient.phone == "0000000000"
    assert patient.age == 29


async def test_explicit_follow_up_flag_wins(services):
    token = await services.tokens.walk_in({"patientName": "Asha", "patientPhone": "9876543210", "doctorId": 1, "isFollowUp": False})
    assert token.is_follow_up is False


async def test_slow_lookup_counts_as_not_found(existing_patient):
    class SlowRepo(InMemoryPatientRepository):
        async def find_by_phone(self, phone):
            await asyncio.sleep(1)
            return await super().find_by_phone(phone)

    patients = PatientService(SlowRepo([existing_patient]), lookup_timeout=0.05)
    found = await patients.lookup_follow_up("9876543210")
    assert found.is_follow_up is False
    assert found.patient is None


async def test_list_tokens_filters(services):
    await services.tokens.issue_token("A", "1", 1, False, patient_id="P-100")
    await services.tokens.issue_token("B", "2", 2, False, patient_id="P-100")
    assert [t.doctor_id for t in await services.tokens.list_tokens(doctor_id=2)] == [2]
    assert len(await services.tokens.list_tokens(status="Waiting")) == 2
    assert await services.tokens.list_tokens(status=AppointmentStatus.COMPLETED) == []


async def test_failing_lookup_counts_as_not_found(existing_patient):
    class BrokenRepo(InMemoryPatientRepository):
        async def find_by_phone(self, phone):
            raise ConnectionError("db down")

    patients = PatientService(BrokenRepo([existing_patient]))
    found = await patients.lookup_follow_up("9876543210")
    assert found.is_follow_up is False
    assert found.patient is None


async def test_walk_in_survives_failing_lookup(services):
    async def broken(phone):
        raise ConnectionError("db down")

    services.patients.repo.find_by_phone = broken
    token = await services.tokens.walk_in({"patientName": "Asha Rao", "patientPhone": "9876543210", "doctorId": 1})
    assert token.is_follow_up is False
    assert "-FU-" not in token.token_number
