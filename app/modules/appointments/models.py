from datetime import date, time, datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Integer, Float, Boolean, Date, Time, TIMESTAMP, ForeignKey
from app.core.base import Base, TimestampedMixin

class Appointment(Base, TimestampedMixin):
    __tablename__ = "patient_appointment"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    token_no: Mapped[str] = mapped_column(String(40), unique=True)
    patient_id: Mapped[str] = mapped_column(ForeignKey("patient.patient_id"))
    doctor_id: Mapped[int] = mapped_column(Integer, index=True)  # staff UserId, catalog lives upstream

    appointment_date: Mapped[date] = mapped_column(Date)
    appointment_time: Mapped[time] = mapped_column(Time)
    appointment_status: Mapped[str] = mapped_column(String(16), default="Waiting", index=True)  # Waiting, Consulting, Completed
    consultation_charge: Mapped[float] = mapped_column(Float, default=0)

    diagnosis: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    follow_up_details: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    prescriptions_url: Mapped[str | None] = mapped_column(String(500), nullable=True)

    to_be_admitted: Mapped[bool] = mapped_column(Boolean, default=False)
    refer_to_another_doctor: Mapped[bool] = mapped_column(Boolean, default=False)
    referred_doctor_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    transfer_to_ipd_ot_icu: Mapped[bool] = mapped_column(Boolean, default=False)
    transfer_to: Mapped[str | None] = mapped_column(String(32), nullable=True)  # IPD Room Admission, ICU, OT
    transfer_details: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    bill_id: Mapped[str | None] = mapped_column(String(40), nullable=True)
    referred_from_token_no: Mapped[str | None] = mapped_column(String(40), nullable=True)


class Token(Base, TimestampedMixin):
    token_number: Mapped[str] = mapped_column(String(40), primary_key=True)
    appointment_id: Mapped[int | None] = mapped_column(ForeignKey("patient_appointment.id", ondelete="CASCADE"), nullable=True)
    patient_id: Mapped[str] = mapped_column(String(64))
    patient_name: Mapped[str] = mapped_column(String(200))
    patient_phone: Mapped[str] = mapped_column(String(32))
    doctor_id: Mapped[int] = mapped_column(Integer, index=True)
    doctor_name: Mapped[str] = mapped_column(String(160))
    issue_time: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True))
    consult_time: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    status: Mapped[str] = mapped_column(String(16), default="Waiting")
    is_follow_up: Mapped[bool] = mapped_column(Boolean, default=False)
