import pytest

from app.core.errors import NotFoundError, ValidationError
from app.modules.appointments.schemas import AppointmentStatus


async def _snapshot(store):
    return [a.model_dump() for a in await store.list()], [t.model_dump() for t in await store.list_tokens()]


async def test_create_allocates_token(services, appointment_payload):
    appt = await services.appointments.create(appointment_payload)
    assert appt.id == 1
    assert appt.token_no == "SJ-20240501-001"
    assert appt.appointment_status == AppointmentStatus.WAITING
    assert services.bus.types() == ["APPT_CREATED"]


async def test_create_checks_patient_and_doctor(services, appointment_payload):
    with pytest.raises(NotFoundError):
        await services.appointments.create({**appointment_payload, "patientId": "P-404"})
    with pytest.raises(NotFoundError):
        await services.appointments.create({**appointment_payload, "doctorId": 3})
    assert await services.store.list() == []


async def test_explicit_token_must_be_unused(services, appointment_payload):
    await services.appointments.create({**appointment_payload, "tokenNo": "LEGACY-1"})
    with pytest.raises(ValidationError) as e:
        await services.appointments.create({**appointment_payload, "tokenNo": "LEGACY-1"})
    assert e.value.field == "tokenNo"


async def test_referral_completes_original_and_opens_new_appointment(services, appointment_payload):
    appt = await services.appointments.create(appointment_payload)
    updated = await services.appointments.apply_update(appt.id, {"referToAnotherDoctor": True, "referredDoctorId": 2})

    assert updated.appointment_status == AppointmentStatus.COMPLETED
    rows = await services.appointments.list()
    assert len(rows) == 2
    spawned = rows[1]
    assert spawned.doctor_id == 2
    assert spawned.appointment_status == AppointmentStatus.WAITING
    assert spawned.token_no == "RK-20240501-001"
    assert spawned.referred_from_token_no == appt.token_no
    assert "APPT_REFERRED" in services.bus.types()
    referred = [e for e in services.bus.events if e["value"]["event_type"] == "APPT_REFERRED"][0]
    assert referred["value"]["payload"]["new_appointment_id"] == spawned.id


@pytest.mark.parametrize("patch, error", [
    ({"referToAnotherDoctor": True}, ValidationError),
    ({"referToAnotherDoctor": True, "referredDoctorId": 99}, NotFoundError),
    ({"referToAnotherDoctor": True, "referredDoctorId": 1}, ValidationError),
    ({"transferToIPDOTICU": True}, ValidationError),
])
async def test_rejected_update_leaves_store_unchanged(services, appointment_payload, patch, error):
    appt = await services.appointments.create(appointment_payload)
    await services.appointments.apply_update(appt.id, {"appointmentStatus": "Consulting"})
    before = await _snapshot(services.store)
    published = len(services.bus.events)

    with pytest.raises(error):
        await services.appointments.apply_update(appt.id, patch)

    assert await _snapshot(services.store) == before
    assert len(services.bus.events) == published


async def test_status_cannot_go_back(services, appointment_payload):
    appt = await services.appointments.create(appointment_payload)
    await services.appointments.apply_update(appt.id, {"appointmentStatus": "Completed"})
    with pytest.raises(ValidationError):
        await services.appointments.apply_update(appt.id, {"appointmentStatus": "Waiting"})


async def test_update_unknown_appointment(services):
    with pytest.raises(NotFoundError):
        await services.appointments.apply_update(42, {"diagnosis": "x"})


async def test_list_by_status_is_idempotent(services, appointment_payload):
    first = await services.appointments.create(appointment_payload)
    await services.appointments.create(appointment_payload)
    await services.appointments.apply_update(first.id, {"appointmentStatus": "Consulting"})

    waiting = await services.appointments.list_by_status("Waiting")
    assert [a.id for a in waiting] == [2]
    assert await services.appointments.list_by_status("Waiting") == waiting
    assert [a.id for a in await services.appointments.list_by_status(AppointmentStatus.CONSULTING)] == [1]


async def test_unknown_status_filter(services):
    with pytest.raises(ValidationError):
        await services.appointments.list_by_status("Cancelled")


async def test_token_status_mirrors_appointment(services):
    token = await services.tokens.issue_token("Asha Rao", "9876543210", 1, True, patient_id="P-100")
    await services.appointments.apply_update(token.appointment_id, {"appointmentStatus": "Consulting"})

    mirrored = await services.store.get_token(token.token_number)
    assert mirrored.status == AppointmentStatus.CONSULTING
    assert mirrored.consult_time is not None

    await services.appointments.apply_update(token.appointment_id, {"appointmentStatus": "Completed"})
    done = await services.store.get_token(token.token_number)
    assert done.status == AppointmentStatus.COMPLETED
    assert done.consult_time == mirrored.consult_time


async def test_delete_removes_appointment_and_token(services):
    token = await services.tokens.issue_token("Asha Rao", "9876543210", 1, False, patient_id="P-100")
    await services.appointments.delete(token.appointment_id)

    with pytest.raises(NotFoundError):
        await services.appointments.get(token.appointment_id)
    assert await services.store.get_token(token.token_number) is None
    assert services.bus.types()[-1] == "APPT_DELETED"
    with pytest.raises(NotFoundError):
        await services.appointments.delete(token.appointment_id)


async def test_lists_for_patient_and_doctor(services, appointment_payload):
    await services.appointments.create(appointment_payload)
    await services.appointments.create({**appointment_payload, "doctorId": 2})
    assert len(await services.appointments.list_for_patient("P-100")) == 2
    assert [a.doctor_id for a in await services.appointments.list_for_doctor(2)] == [2]
    assert await services.appointments.list_for_patient("P-999") == []


async def test_doctor_queue(services, appointment_payload):
    await services.tokens.issue_token("Asha Rao", "9876543210", 1, True, patient_id="P-100")
    second = await services.appointments.create(appointment_payload)
    await services.appointments.apply_update(second.id, {"appointmentStatus": "Consulting"})

    queues = {q.doctor_id: q for q in await services.appointments.doctor_queue()}
    assert set(queues) == {1, 2, 4}
    assert queues[1].waiting == 1
    assert queues[1].consulting == 1
    assert queues[1].follow_ups == 1
    assert queues[2].waiting == 0


async def test_publish_failure_does_not_undo_commit(services, appointment_payload):
    async def broken(*args, **kwargs):
        raise ConnectionError("bus down")

    services.bus.publish = broken
    appt = await services.appointments.create(appointment_payload)
    assert (await services.appointments.get(appt.id)).token_no == appt.token_no


@pytest.mark.parametrize("extra", [
    {"referToAnotherDoctor": True},
    {"transferToIPDOTICU": True},
    {"transferTo": "ICU"},
    {"referredDoctorId": 2},
    {"referToAnotherDoctor": True, "referredDoctorId": 1},
])
async def test_rejected_create_leaves_store_unchanged(services, appointment_payload, extra):
    with pytest.raises(ValidationError):
        await services.appointments.create({**appointment_payload, **extra})

    assert await services.store.list() == []
    assert await services.store.list_tokens() == []
    assert services.bus.events == []


async def test_referred_doctor_resolved_outside_store_lock(services, appointment_payload):
    appt = await services.appointments.create(appointment_payload)
    lookup = services.directory.get
    held = []

    async def watching_get(doctor_id):
        held.append(services.store._lock.locked())
        return await lookup(doctor_id)

    services.directory.get = watching_get
    await services.appointments.apply_update(appt.id, {"referToAnotherDoctor": True, "referredDoctorId": 2})
    assert held == [False]
    assert len(await services.store.list()) == 2
