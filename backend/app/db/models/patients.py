from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import DateTime, Float, ForeignKey, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base, JSONVariant, TimestampMixin, UpdatedAtMixin, UUIDMixin

if TYPE_CHECKING:
    from app.db.models.clinics import Clinic
    from app.db.models.cycles import LabResult, TreatmentCycle
    from app.db.models.documents import Document
    from app.db.models.predictions import AIPrediction


class Patient(UUIDMixin, TimestampMixin, UpdatedAtMixin, Base):
    __tablename__ = "patients"

    clinic_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("clinics.id", ondelete="RESTRICT"),
        nullable=False,
    )
    mrn: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    first_name: Mapped[str] = mapped_column(Text, nullable=False)
    last_name: Mapped[str] = mapped_column(Text, nullable=False)
    date_of_birth: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    phone: Mapped[str | None] = mapped_column(Text, nullable=True)
    email: Mapped[str | None] = mapped_column(Text, nullable=True)
    address: Mapped[dict[str, Any] | None] = mapped_column(JSONVariant, nullable=True)
    insurance: Mapped[dict[str, Any] | None] = mapped_column(JSONVariant, nullable=True)

    clinic: Mapped["Clinic"] = relationship(back_populates="patients")
    # Удаление пациента каскадно удаляет всё зависимое (ON DELETE CASCADE в БД).
    profile: Mapped["PatientProfile | None"] = relationship(
        back_populates="patient",
        uselist=False,
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    cycles: Mapped[list["TreatmentCycle"]] = relationship(
        back_populates="patient",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="TreatmentCycle.cycle_number",
    )
    lab_results: Mapped[list["LabResult"]] = relationship(
        back_populates="patient", cascade="all, delete-orphan", passive_deletes=True
    )
    documents: Mapped[list["Document"]] = relationship(
        back_populates="patient", cascade="all, delete-orphan", passive_deletes=True
    )
    ai_predictions: Mapped[list["AIPrediction"]] = relationship(
        back_populates="patient", cascade="all, delete-orphan", passive_deletes=True
    )


class PatientProfile(UUIDMixin, TimestampMixin, UpdatedAtMixin, Base):
    __tablename__ = "patient_profiles"

    patient_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("patients.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    age: Mapped[int | None] = mapped_column(Integer, nullable=True)
    height: Mapped[float | None] = mapped_column(Float, nullable=True)
    weight: Mapped[float | None] = mapped_column(Float, nullable=True)
    bmi: Mapped[float | None] = mapped_column(Float, nullable=True)
    blood_type: Mapped[str | None] = mapped_column(Text, nullable=True)
    diagnosis: Mapped[dict[str, Any] | None] = mapped_column(JSONVariant, nullable=True)
    medical_history: Mapped[dict[str, Any] | None] = mapped_column(JSONVariant, nullable=True)
    surgical_history: Mapped[dict[str, Any] | None] = mapped_column(JSONVariant, nullable=True)
    family_history: Mapped[dict[str, Any] | None] = mapped_column(JSONVariant, nullable=True)
    lifestyle: Mapped[dict[str, Any] | None] = mapped_column(JSONVariant, nullable=True)
    allergies: Mapped[dict[str, Any] | None] = mapped_column(JSONVariant, nullable=True)
    current_medications: Mapped[dict[str, Any] | None] = mapped_column(JSONVariant, nullable=True)
    reproductive_history: Mapped[dict[str, Any] | None] = mapped_column(JSONVariant, nullable=True)
    partner_info: Mapped[dict[str, Any] | None] = mapped_column(JSONVariant, nullable=True)

    patient: Mapped["Patient"] = relationship(back_populates="profile")
