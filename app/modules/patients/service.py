import asyncio
import logging
from collections.abc import Mapping
from datetime import date
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from app.core.config import settings
from app.core.errors import NormalizationError, NotFoundError, ValidationError, from_pydantic
from app.modules.patients.normalizer import (
    FIELD_RESOLUTION, NormalizedBatch, is_synthetic_id, normalize_patient, resolve_field,
)
from app.modules.patients.repository import PatientRepository
from app.modules.patients.schemas import (
    FollowUpLookup, ImportReport, PatientRecord, PatientUpdate, SkippedRecord, PATIENT_INACTIVE,
)

logger = logging.getLogger(__name__)


class PatientService:
    def __init__(self, repo: PatientRepository, lookup_timeout: float | None = None):
        self.repo = repo
        self.lookup_timeout = settings.PHONE_LOOKUP_TIMEOUT_SECONDS if lookup_timeout is None else lookup_timeout
        self._lock = asyncio.Lock()

    async def _next_patient_id(self) -> str:
        year = date.today().year
        count = len(await self.repo.list())
        for attempt in range(settings.PATIENT_ID_MAX_ATTEMPTS):
            candidate = f"PAT-{year}-{count + 1 + attempt:04d}"
            if await self.repo.get(candidate) is None:
                return candidate
            logger.info(f"Patient id {candidate} already taken, trying next")
        raise ValidationError("patientId", f"could not allocate a patient id after {settings.PATIENT_ID_MAX_ATTEMPTS} attempts")

    async def register(self, raw: Mapping[str, Any]) -> PatientRecord:
        """Register a new patient from a payload in either field casing."""
        if resolve_field(raw, FIELD_RESOLUTION["given_name"]) is None:
            raise ValidationError("patientName", "is required")
        if resolve_field(raw, FIELD_RESOLUTION["phone"]) is None:
            raise ValidationError("phoneNo", "is required")

        async with self._lock:
            data = dict(raw)
            given_id = resolve_field(raw, FIELD_RESOLUTION["patient_id"])
            if given_id is None:
                data["PatientId"] = await self._next_patient_id()
            elif await self.repo.get(str(given_id)) is not None:
                raise ValidationError("patientId", f"{given_id} already exists")
            if resolve_field(raw, FIELD_RESOLUTION["registered_date"]) is None:
                data["RegisteredDate"] = date.today().isoformat()

            try:
                record = normalize_patient(data, 0)
            except NormalizationError as e:
                raise ValidationError("patient", e.message) from e
            created = await self.repo.create(record)
        logger.info(f"Registered patient {created.patient_id}")
        return created

    async def get(self, patient_id: str) -> PatientRecord:
        obj = await self.repo.get(patient_id)
        if obj is None:
            raise NotFoundError("patient", patient_id)
        return obj

    async def list(self) -> list[PatientRecord]:
        return list(await self.repo.list())

    async def update(self, patient_id: str, payload: PatientUpdate | Mapping[str, Any]) -> PatientRecord:
        if not isinstance(payload, PatientUpdate):
            try:
                payload = PatientUpdate.model_validate(payload)
            except PydanticValidationError as e:
                raise from_pydantic(e) from e
        async with self._lock:
            current = await self.get(patient_id)
            changes = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}
            updated = await self.repo.update(current.model_copy(update=changes))
        if updated is None:
            raise NotFoundError("patient", patient_id)
        return updated

    async def deactivate(self, patient_id: str) -> PatientRecord:
        # patients referenced by appointments are never hard-deleted
        return await self.update(patient_id, PatientUpdate(status=PATIENT_INACTIVE))

    async def import_batch(self, batch: NormalizedBatch) -> ImportReport:
        """Upsert a normalized upstream batch.

        Placeholders are reported, not stored. A record that arrived without an
        id is matched to an existing patient by phone and name, or else gets a
        registration id of its own.
        """
        report = ImportReport(diagnostics=list(batch.diagnostics))
        async with self._lock:
            for entry in batch:
                if entry.record is None:
                    report.skipped.append(SkippedRecord(index=entry.index, key=entry.key, error=entry.error))
                    continue
                record = entry.record
                if is_synthetic_id(record.patient_id):
                    match = await self.repo.find_by_phone(record.phone) if record.phone else None
                    if match is not None and match.full_name == record.full_name:
                        new_id = match.patient_id
                    else:
                        new_id = await self._next_patient_id()
                    record = record.model_copy(update={"patient_id": new_id})

                current = await self.repo.get(record.patient_id)
                if current is None:
                    await self.repo.create(record)
                    report.created.append(record.patient_id)
                else:
                    changes = {k: v for k, v in record.model_dump().items() if v is not None}
                    await self.repo.update(current.model_copy(update=changes))
                    report.updated.append(record.patient_id)
        logger.info(
            f"Imported patient batch: {len(report.created)} created, {len(report.updated)} updated, "
            f"{len(report.skipped)} skipped"
        )
        return report

    async def find_by_phone(self, phone: str, timeout: float | None = None) -> PatientRecord | None:
        """Existing patient with this phone number, or None.

        A lookup that fails, or does not finish within ``timeout`` seconds,
        counts as "not found".
        """
        phone = (phone or "").strip()
        if not phone:
            return None
        timeout = self.lookup_timeout if timeout is None else timeout
        try:
            return await asyncio.wait_for(self.repo.find_by_phone(phone), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Phone lookup for {phone} timed out after {timeout}s; treating as new patient")
            return None
        except Exception as e:
            logger.warning(f"Phone lookup for {phone} failed ({e!r}); treating as new patient")
            return None

    async def lookup_follow_up(self, phone: str, timeout: float | None = None) -> FollowUpLookup:
        # Phone match alone decides follow-up; two patients sharing a phone is a known false positive.
        patient = await self.find_by_phone(phone, timeout)
        if patient is None:
            return FollowUpLookup(phone=phone, is_follow_up=False)
        return FollowUpLookup(phone=phone, patient=patient, is_follow_up=True, patient_name=patient.full_name or None)
