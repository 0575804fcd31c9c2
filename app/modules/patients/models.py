from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Integer
from app.core.base import Base, TimestampedMixin

class Patient(Base, TimestampedMixin):
    patient_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    patient_number: Mapped[str | None] = mapped_column(String(32), nullable=True)
    given_name: Mapped[str | None] = mapped_column(String(120), nullable=True)
    family_name: Mapped[str | None] = mapped_column(String(120), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(32), nullable=True, index=True)
    age: Mapped[int | None] = mapped_column(Integer, nullable=True)
    gender: Mapped[str | None] = mapped_column(String(16), nullable=True)
    address: Mapped[str | None] = mapped_column(String(255), nullable=True)
    chief_complaint: Mapped[str | None] = mapped_column(String(255), nullable=True)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    patient_type: Mapped[str | None] = mapped_column(String(32), nullable=True)
    adhaar_id: Mapped[str | None] = mapped_column(String(16), nullable=True)
    pan_card: Mapped[str | None] = mapped_column(String(16), nullable=True)
    registered_by: Mapped[str | None] = mapped_column(String(120), nullable=True)
    registered_date: Mapped[str | None] = mapped_column(String(10), nullable=True)
    status: Mapped[str] = mapped_column(String(16), default="Active")
