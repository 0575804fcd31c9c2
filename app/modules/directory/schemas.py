from typing import Literal
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

DoctorKind = Literal["inhouse", "consulting"]


class DoctorRef(BaseModel):
    """Derived from staff + role + department on every read; never stored."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    doctor_id: int
    name: str
    specialty: str
    kind: DoctorKind
    role: str | None = None
