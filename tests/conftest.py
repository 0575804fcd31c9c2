from datetime import datetime
from types import SimpleNamespace

import pytest

from app.modules.appointments.repository import InMemoryAppointmentRepository
from app.modules.appointments.service import AppointmentService
from app.modules.appointments.store import AppointmentStore
from app.modules.directory.catalogs import StaticCatalogSource
from app.modules.directory.service import DoctorDirectory
from app.modules.events.publisher import EventPublisher
from app.modules.patients.repository import InMemoryPatientRepository
from app.modules.patients.schemas import PatientRecord
from app.modules.patients.service import PatientService
from app.modules.tokens.issuer import TokenIssuer
from app.modules.tokens.numbering import TokenSequencer
from app.platform.adapters.bus_noop import RecordingEventBus

NOW = datetime(2024, 5, 1, 9, 30)

STAFF = [
    {"UserId": 1, "UserName": "Dr. Sarah Johnson", "RoleId": 10, "DoctorDepartmentId": "100", "DoctorType": "INHOUSE"},
    {"UserId": "2", "UserName": "Dr. Rajesh Kumar", "RoleId": 11, "DoctorDepartmentId": 200, "DoctorType": "CONSULTING"},
    {"UserId": 3, "UserName": "Priya Nair", "RoleId": 12, "DoctorDepartmentId": 100},
    {"UserId": "abc", "UserName": "Dr. Broken Id", "RoleId": 10},
    {"userId": 4, "userName": "Dr. Anil Mehta", "roleId": "10"},
]
ROLES = [
    {"id": 10, "name": "Doctorinhouse"},
    {"id": "11", "name": "Surgeon"},
    {"id": 12, "name": "Nurse"},
]
DEPARTMENTS = [
    {"id": 100, "name": "Cardiology"},
    {"id": "200", "name": "Orthopedics"},
]


@pytest.fixture
def catalogs():
    return StaticCatalogSource(staff=STAFF, roles=ROLES, departments=DEPARTMENTS)


@pytest.fixture
def existing_patient():
    return PatientRecord(patient_id="P-100", given_name="Asha", family_name="Rao", phone="9876543210", age=34)


@pytest.fixture
def services(catalogs, existing_patient):
    bus = RecordingEventBus()
    events = EventPublisher(bus)
    store = AppointmentStore(InMemoryAppointmentRepository())
    patients = PatientService(InMemoryPatientRepository([existing_patient]), lookup_timeout=0.5)
    directory = DoctorDirectory(catalogs)
    sequencer = TokenSequencer()
    return SimpleNamespace(
        bus=bus,
        store=store,
        patients=patients,
        directory=directory,
        appointments=AppointmentService(store, patients, directory, events=events, sequencer=sequencer, now=lambda: NOW),
        tokens=TokenIssuer(store, patients, directory, sequencer=sequencer, events=events, now=lambda: NOW),
    )


@pytest.fixture
def appointment_payload():
    return {
        "patientId": "P-100",
        "doctorId": 1,
        "appointmentDate": "2024-05-01",
        "appointmentTime": "10:00",
        "consultationCharge": 500,
    }
