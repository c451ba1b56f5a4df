from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import DateTime, Enum, ForeignKey, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base, JSONVariant, TimestampMixin, UpdatedAtMixin, UUIDMixin
from app.db.enums import CycleStatus

if TYPE_CHECKING:
    from app.db.models.patients import Patient
    from app.db.models.predictions import AIPrediction


class TreatmentCycle(UUIDMixin, TimestampMixin, UpdatedAtMixin, Base):
    __tablename__ = "treatment_cycles"

    patient_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("patients.id", ondelete="CASCADE"),
        nullable=False,
    )
    cycle_number: Mapped[int] = mapped_column(Integer, nullable=False)
    protocol_type: Mapped[str | None] = mapped_column(Text, nullable=True)
    start_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    expected_retrieval: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    actual_retrieval: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    transfer_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    status: Mapped[CycleStatus] = mapped_column(
        Enum(CycleStatus, name="cycle_status", native_enum=True),
        nullable=False,
        default=CycleStatus.PLANNING,
    )
    medications: Mapped[dict[str, Any] | None] = mapped_column(JSONVariant, nullable=True)
    monitoring_data: Mapped[dict[str, Any] | None] = mapped_column(JSONVariant, nullable=True)
    outcome: Mapped[dict[str, Any] | None] = mapped_column(JSONVariant, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    patient: Mapped["Patient"] = relationship(back_populates="cycles")
    # Удаление цикла только отвязывает зависимые записи (ON DELETE SET NULL).
    lab_results: Mapped[list["LabResult"]] = relationship(
        back_populates="cycle", passive_deletes=True
    )
    ai_predictions: Mapped[list["AIPrediction"]] = relationship(
        back_populates="cycle", passive_deletes=True
    )


class LabResult(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "lab_results"

    patient_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("patients.id", ondelete="CASCADE"),
        nullable=False,
    )
    cycle_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("treatment_cycles.id", ondelete="SET NULL"),
        nullable=True,
    )
    test_type: Mapped[str] = mapped_column(Text, nullable=False)
    test_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    cycle_day: Mapped[int | None] = mapped_column(Integer, nullable=True)
    values: Mapped[dict[str, Any]] = mapped_column(JSONVariant, nullable=False)
    reference_ranges: Mapped[dict[str, Any] | None] = mapped_column(JSONVariant, nullable=True)
    flags: Mapped[dict[str, Any] | None] = mapped_column(JSONVariant, nullable=True)
    interpretation: Mapped[str | None] = mapped_column(Text, nullable=True)
    ordered_by: Mapped[str | None] = mapped_column(Text, nullable=True)

    patient: Mapped["Patient"] = relationship(back_populates="lab_results")
    cycle: Mapped["TreatmentCycle | None"] = relationship(back_populates="lab_results")
