from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

PATIENT_ACTIVE = "Active"
PATIENT_INACTIVE = "InActive"


class PatientRecord(BaseModel):
    """Canonical patient, whatever casing the source record used."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    patient_id: str = Field(..., min_length=1)
    patient_number: str | None = None
    given_name: str | None = None
    family_name: str | None = None
    phone: str | None = None
    age: int | None = Field(default=None, ge=0)
    gender: str | None = None
    address: str | None = None
    chief_complaint: str | None = None
    description: str | None = None
    patient_type: str | None = None
    adhaar_id: str | None = None
    pan_card: str | None = None
    registered_by: str | None = None
    registered_date: str | None = None
    status: str = PATIENT_ACTIVE

    @property
    def full_name(self) -> str:
        return " ".join(p for p in (self.given_name, self.family_name) if p).strip()


class PatientUpdate(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    patient_number: str | None = None
    given_name: str | None = None
    family_name: str | None = None
    phone: str | None = None
    age: int | None = Field(default=None, ge=0)
    gender: str | None = None
    address: str | None = None
    chief_complaint: str | None = None
    description: str | None = None
    patient_type: str | None = None
    adhaar_id: str | None = None
    pan_card: str | None = None
    registered_by: str | None = None
    registered_date: str | None = None
    status: str | None = None


class FollowUpLookup(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    phone: str
    patient: PatientRecord | None = None
    is_follow_up: bool = False
    patient_name: str | None = None


class SkippedRecord(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    index: int
    key: str
    error: str | None = None


class ImportReport(BaseModel):
    """Outcome of reconciling one batch of upstream records into the store."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    created: list[str] = []
    updated: list[str] = []
    skipped: list[SkippedRecord] = []
    diagnostics: list[str] = []
