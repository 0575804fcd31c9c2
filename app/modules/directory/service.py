"""Doctor directory view.

Doctors are not a catalog of their own: they are the staff members whose
role name mentions a doctor or surgeon keyword, joined to their department
for the specialty.
"""
import logging
from collections.abc import Mapping, Sequence
from typing import Any

from app.core.config import settings
from app.core.errors import NotFoundError
from app.modules.directory.schemas import DoctorRef
from app.modules.patients.normalizer import resolve_field
from app.platform.ports.catalog import CatalogSourcePort

logger = logging.getLogger(__name__)

STAFF_ROLE_KEYS = ("RoleId", "roleId")
STAFF_USER_ID_KEYS = ("UserId", "userId")
STAFF_USER_NAME_KEYS = ("UserName", "userName")
STAFF_DEPARTMENT_KEYS = ("DoctorDepartmentId", "doctorDepartmentId")
STAFF_DOCTOR_TYPE_KEYS = ("DoctorType", "doctorType")
ROLE_ID_KEYS = ("id", "RoleId", "roleId")
ROLE_NAME_KEYS = ("name", "RoleName", "roleName")
DEPARTMENT_ID_KEYS = ("id", "DepartmentId", "departmentId")
DEPARTMENT_NAME_KEYS = ("name", "DepartmentName", "departmentName")


def same_key(a: Any, b: Any) -> bool:
    """Catalog keys arrive as strings or numbers; compare both ways."""
    if a is None or b is None:
        return False
    if str(a).strip() == str(b).strip():
        return True
    try:
        return float(a) == float(b)
    except (TypeError, ValueError):
        return False


def _text(value: Any) -> str | None:
    # catalog text fields occasionally arrive as numbers
    if value is None:
        return None
    return str(value).strip() or None


def _find(items: Sequence[Mapping], keys: tuple[str, ...], value: Any) -> Mapping | None:
    for item in items:
        if not isinstance(item, Mapping):
            continue
        if same_key(resolve_field(item, keys), value):
            return item
    return None


def is_doctor_role(role_name: Any, keywords: Sequence[str] | None = None) -> bool:
    role_name = _text(role_name)
    if not role_name:
        return False
    lowered = role_name.lower()
    return any(k.lower() in lowered for k in (keywords or settings.DOCTOR_ROLE_KEYWORDS))


def derive_doctors(
    staff: Sequence[Mapping] | None,
    roles: Sequence[Mapping] | None,
    departments: Sequence[Mapping] | None,
) -> list[DoctorRef]:
    if staff is None or roles is None or departments is None:
        return []

    doctors: list[DoctorRef] = []
    for member in staff:
        if not isinstance(member, Mapping):
            continue
        role_id = resolve_field(member, STAFF_ROLE_KEYS)
        if role_id is None:
            continue
        role = _find(roles, ROLE_ID_KEYS, role_id)
        role_name = _text(resolve_field(role, ROLE_NAME_KEYS)) if role else None
        if not is_doctor_role(role_name):
            continue

        user_id = resolve_field(member, STAFF_USER_ID_KEYS)
        try:
            doctor_id = int(user_id)
        except (TypeError, ValueError):
            logger.warning(f"Skipping doctor with non-numeric UserId {user_id!r}")
            continue

        department_id = resolve_field(member, STAFF_DEPARTMENT_KEYS)
        department = _find(departments, DEPARTMENT_ID_KEYS, department_id) if department_id is not None else None
        specialty = _text(resolve_field(department, DEPARTMENT_NAME_KEYS)) if department else None
        doctor_type = _text(resolve_field(member, STAFF_DOCTOR_TYPE_KEYS))

        doctors.append(DoctorRef(
            doctor_id=doctor_id,
            name=_text(resolve_field(member, STAFF_USER_NAME_KEYS)) or "Unknown",
            specialty=specialty or settings.DEFAULT_SPECIALTY,
            kind="inhouse" if doctor_type == settings.INHOUSE_DOCTOR_MARKER else "consulting",
            role=role_name,
        ))
    return doctors


class DoctorDirectory:
    def __init__(self, catalogs: CatalogSourcePort):
        self.catalogs = catalogs

    async def list(self, kind: str | None = None) -> list[DoctorRef]:
        doctors = derive_doctors(
            await self.catalogs.staff(),
            await self.catalogs.roles(),
            await self.catalogs.departments(),
        )
        if kind:
            doctors = [d for d in doctors if d.kind == kind]
        return doctors

    async def get(self, doctor_id: int | str) -> DoctorRef:
        for d in await self.list():
            if same_key(d.doctor_id, doctor_id):
                return d
        raise NotFoundError("doctor", doctor_id)
