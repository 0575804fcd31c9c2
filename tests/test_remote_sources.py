import httpx
import pytest

from app.core.errors import NotFoundError
from app.modules.directory.catalogs import RemoteCatalogSource
from app.modules.directory.service import DoctorDirectory
from app.modules.patients.remote import RemotePatientSource
from tests.conftest import DEPARTMENTS, ROLES, STAFF

PATIENTS = [
    {"PatientId": "P-100", "PatientName": "Asha", "PhoneNo": "9876543210"},
    {"PatientId": "P-101", "PhoneNo": "9123456780"},
]


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://upstream/api")


def upstream(request: httpx.Request) -> httpx.Response:
    path = request.url.path
    if path == "/api/patients":
        return httpx.Response(200, json={"data": PATIENTS})
    if path == "/api/patients/P-100":
        return httpx.Response(200, json={"data": PATIENTS[0]})
    if path == "/api/staff":
        return httpx.Response(200, json=STAFF)
    if path == "/api/roles":
        return httpx.Response(200, json={"data": ROLES})
    if path == "/api/departments":
        return httpx.Response(200, json=DEPARTMENTS)
    return httpx.Response(404, json={"message": "not found"})


async def test_fetch_batch_normalizes_upstream_records():
    source = RemotePatientSource(client=_client(upstream))
    batch = await source.fetch_batch()
    assert len(batch) == 2
    assert batch.error_count == 1
    assert batch[1].key == "PAT-ERROR-1"
    await source.close()


async def test_get_and_find_by_phone():
    source = RemotePatientSource(client=_client(upstream))
    assert (await source.get("P-100")).given_name == "Asha"
    with pytest.raises(NotFoundError):
        await source.get("P-404")
    assert (await source.find_by_phone("9876543210")).patient_id == "P-100"
    assert await source.find_by_phone("0000000000") is None


async def test_remote_catalogs_feed_directory():
    directory = DoctorDirectory(RemoteCatalogSource(client=_client(upstream)))
    assert [d.doctor_id for d in await directory.list()] == [1, 2, 4]


async def test_unreachable_catalog_means_no_doctors():
    def down(request):
        raise httpx.ConnectError("connection refused", request=request)

    source = RemoteCatalogSource(client=_client(down))
    assert await source.staff() is None
    assert await DoctorDirectory(source).list() == []
