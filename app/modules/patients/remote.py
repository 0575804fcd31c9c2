import logging
from urllib.parse import quote

import httpx

from app.core.config import settings
from app.core.errors import NotFoundError
from app.modules.patients.normalizer import NormalizedBatch, normalize_batch, normalize_patient
from app.modules.patients.schemas import PatientRecord

logger = logging.getLogger(__name__)


def _unwrap(payload):
    # legacy backend answers either {"data": ...} or the bare value
    if isinstance(payload, dict) and "data" in payload:
        return payload["data"]
    return payload


class RemotePatientSource:
    """Reads patients from the legacy backend and reconciles them."""

    def __init__(self, client: httpx.AsyncClient | None = None, base_url: str | None = None, timeout: float | None = None):
        self.client = client or httpx.AsyncClient(
            base_url=base_url or settings.UPSTREAM_API_URL,
            timeout=settings.UPSTREAM_TIMEOUT_SECONDS if timeout is None else timeout,
        )

    async def fetch_batch(self) -> NormalizedBatch:
        response = await self.client.get("/patients")
        response.raise_for_status()
        data = _unwrap(response.json())
        if not isinstance(data, list):
            logger.warning(f"Unexpected /patients payload of type {type(data).__name__}")
            return NormalizedBatch()
        batch = normalize_batch(data)
        logger.info(f"Fetched {len(batch)} patients from upstream ({batch.error_count} unreadable)")
        return batch

    async def get(self, patient_id: str) -> PatientRecord:
        response = await self.client.get(f"/patients/{quote(patient_id, safe='')}")
        if response.status_code == 404:
            raise NotFoundError("patient", patient_id)
        response.raise_for_status()
        data = _unwrap(response.json())
        if not data:
            raise NotFoundError("patient", patient_id)
        return normalize_patient(data, 0)

    async def find_by_phone(self, phone: str) -> PatientRecord | None:
        batch = await self.fetch_batch()
        for record in batch.records():
            if record.phone and record.phone.strip() == phone:
                return record
        return None

    async def close(self):
        await self.client.aclose()
