"""Reconciles raw patient records into :class:`PatientRecord`.

The legacy backend sends PascalCase keys (``PatientId``, ``PhoneNo``) while
older front-desk code and imports use camelCase (``patientId``, ``phoneNo``).
Every attribute is resolved through :data:`FIELD_RESOLUTION`: the first
non-empty value across the listed spellings wins.
"""
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from app.core.config import settings
from app.core.errors import NormalizationError
from app.modules.patients.schemas import PatientRecord, PATIENT_ACTIVE

logger = logging.getLogger(__name__)

FIELD_RESOLUTION: dict[str, tuple[str, ...]] = {
    "patient_id": ("PatientId", "patientId"),
    "patient_number": ("PatientNo", "patientNo"),
    "given_name": ("PatientName", "patientName", "name"),
    "family_name": ("LastName", "lastName"),
    "phone": ("PhoneNo", "phoneNo", "phone"),
    "age": ("Age", "age"),
    "gender": ("Gender", "gender"),
    "address": ("Address", "address"),
    "chief_complaint": ("ChiefComplaint", "chiefComplaint"),
    "description": ("Description", "description"),
    "patient_type": ("PatientType", "patientType"),
    "adhaar_id": ("AdhaarId", "adhaarID", "AdhaarID", "adhaarId"),
    "pan_card": ("PANCard", "panCard"),
    "registered_by": ("RegisteredBy", "registeredBy"),
    "registered_date": ("RegisteredDate", "registeredDate"),
    "status": ("Status", "status"),
}

# Surrogate row id some sources attach next to PatientId
SURROGATE_KEYS: tuple[str, ...] = ("id", "Id")

_TEXT_FIELDS = {"patient_id", "patient_number", "phone", "adhaar_id", "pan_card"}


def _present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str) and not value.strip():
        return False
    return True


def resolve_field(raw: Mapping, spellings: Iterable[str]) -> Any:
    for key in spellings:
        value = raw.get(key)
        if _present(value):
            return value
    return None


def resolve_fields(raw: Mapping, table: Mapping[str, tuple[str, ...]] = FIELD_RESOLUTION) -> dict[str, Any]:
    return {name: resolve_field(raw, spellings) for name, spellings in table.items()}


def synthetic_patient_id(ordinal: int) -> str:
    return f"{settings.SYNTHETIC_PATIENT_PREFIX}{ordinal}"


def is_synthetic_id(patient_id: str | None) -> bool:
    return bool(patient_id) and patient_id.startswith(settings.SYNTHETIC_PATIENT_PREFIX)


def _coerce_age(value: Any, ordinal: int) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool):
        raise NormalizationError(f"age {value!r} is not a number", ordinal)
    try:
        return int(float(value))
    except (TypeError, ValueError):
        raise NormalizationError(f"age {value!r} is not a number", ordinal)


def normalize_patient(raw: Any, ordinal: int) -> PatientRecord:
    """Map one raw record to a PatientRecord. Pure; raises NormalizationError."""
    if not isinstance(raw, Mapping):
        raise NormalizationError(f"expected a mapping, got {type(raw).__name__}", ordinal)

    values = resolve_fields(raw)
    if values["given_name"] is None:
        raise NormalizationError("missing patient name", ordinal)
    if values["patient_id"] is None:
        values["patient_id"] = synthetic_patient_id(ordinal)
    values["age"] = _coerce_age(values["age"], ordinal)
    for name in _TEXT_FIELDS:
        if values[name] is not None:
            values[name] = str(values[name]).strip()
    if values["status"] is None:
        values["status"] = PATIENT_ACTIVE

    try:
        return PatientRecord.model_validate(values)
    except PydanticValidationError as e:
        first = e.errors()[0]
        raise NormalizationError(f"{'.'.join(map(str, first['loc']))}: {first['msg']}", ordinal) from e


@dataclass
class BatchEntry:
    index: int
    key: str
    record: PatientRecord | None
    error: str | None = None

    @property
    def is_placeholder(self) -> bool:
        return self.record is None


@dataclass
class NormalizedBatch:
    entries: list[BatchEntry] = field(default_factory=list)
    diagnostics: list[str] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)

    def __getitem__(self, index: int) -> BatchEntry:
        return self.entries[index]

    @property
    def error_count(self) -> int:
        return sum(1 for e in self.entries if e.is_placeholder)

    def records(self) -> list[PatientRecord]:
        return [e.record for e in self.entries if e.record is not None]

    def by_key(self) -> dict[str, BatchEntry]:
        return {e.key: e for e in self.entries}


def _working_key(raw: Any, record: PatientRecord | None, index: int) -> str:
    if record is None:
        return f"{settings.PLACEHOLDER_PATIENT_PREFIX}{index}"
    surrogate = resolve_field(raw, SURROGATE_KEYS) if isinstance(raw, Mapping) else None
    if surrogate is not None:
        return str(surrogate)
    return record.patient_id or str(index)


def normalize_batch(raws: Iterable[Any]) -> NormalizedBatch:
    """Normalize every element; a bad element becomes a placeholder entry.

    Working keys are made pairwise distinct: the later of two colliding
    entries gets its batch index appended.
    """
    batch = NormalizedBatch()
    seen: dict[str, int] = {}

    for index, raw in enumerate(raws):
        try:
            record = normalize_patient(raw, index)
            error = None
        except NormalizationError as e:
            logger.warning(f"Patient record {index} could not be normalized: {e.message}")
            record, error = None, e.message

        key = _working_key(raw, record, index)
        if key in seen:
            clashing = key
            while key in seen:
                key = f"{key}-{index}"
            msg = f"Duplicate key {clashing!r} at indices {seen[clashing]} and {index}; rewritten to {key!r}"
            logger.warning(msg)
            batch.diagnostics.append(msg)
        seen[key] = index
        batch.entries.append(BatchEntry(index=index, key=key, record=record, error=error))

    if batch.error_count:
        logger.warning(f"Normalized {len(batch)} patient records with {batch.error_count} placeholder(s)")
    return batch
