import pytest

from app.core.errors import NotFoundError
from app.modules.directory.catalogs import StaticCatalogSource
from app.modules.directory.service import DoctorDirectory, derive_doctors, is_doctor_role, same_key
from tests.conftest import DEPARTMENTS, ROLES, STAFF


def test_only_doctor_roles_with_numeric_ids():
    doctors = derive_doctors(STAFF, ROLES, DEPARTMENTS)
    assert [d.doctor_id for d in doctors] == [1, 2, 4]


def test_specialty_and_kind():
    by_id = {d.doctor_id: d for d in derive_doctors(STAFF, ROLES, DEPARTMENTS)}
    assert by_id[1].specialty == "Cardiology"
    assert by_id[1].kind == "inhouse"
    # string "200" vs int 200 department keys still join
    assert by_id[2].specialty == "Orthopedics"
    assert by_id[2].kind == "consulting"
    assert by_id[4].specialty == "General"
    assert by_id[4].name == "Dr. Anil Mehta"


def test_any_missing_catalog_yields_empty_list():
    assert derive_doctors(None, ROLES, DEPARTMENTS) == []
    assert derive_doctors(STAFF, None, DEPARTMENTS) == []
    assert derive_doctors(STAFF, ROLES, None) == []


def test_role_keywords_case_insensitive():
    assert is_doctor_role("Senior SURGEON")
    assert is_doctor_role("doctorInHouse")
    assert not is_doctor_role("Nurse")
    assert not is_doctor_role(None)


def test_same_key():
    assert same_key("200", 200)
    assert same_key(1.0, "1")
    assert not same_key(None, None)
    assert not same_key("a", "b")


async def test_directory_reads_catalogs_on_each_call():
    source = StaticCatalogSource()
    directory = DoctorDirectory(source)
    assert await directory.list() == []
    source.load(staff=STAFF, roles=ROLES, departments=DEPARTMENTS)
    assert len(await directory.list()) == 3
    assert [d.doctor_id for d in await directory.list("inhouse")] == [1]


async def test_get_unknown_doctor(catalogs):
    directory = DoctorDirectory(catalogs)
    assert (await directory.get("2")).name == "Dr. Rajesh Kumar"
    with pytest.raises(NotFoundError):
        await directory.get(3)


def test_loosely_typed_values_are_coerced():
    staff = [{"UserId": 9, "UserName": 12345, "RoleId": 10, "DoctorDepartmentId": 300}]
    departments = DEPARTMENTS + [{"id": 300, "name": 404}]
    doctors = derive_doctors(staff, ROLES, departments)
    assert len(doctors) == 1
    assert doctors[0].name == "12345"
    assert doctors[0].specialty == "404"


def test_non_text_role_name_is_not_a_doctor():
    staff = [{"UserId": 9, "UserName": "Dr. Numeric Role", "RoleId": 10}]
    assert derive_doctors(staff, [{"id": 10, "name": 7}], DEPARTMENTS) == []
    assert not is_doctor_role(7)


def test_malformed_catalog_entries_are_skipped():
    roles = ["garbage", None] + ROLES
    departments = [42] + DEPARTMENTS
    staff = ["not a member"] + STAFF
    assert [d.doctor_id for d in derive_doctors(staff, roles, departments)] == [1, 2, 4]
