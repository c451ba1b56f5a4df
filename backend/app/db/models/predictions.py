from __future__ import annotations

import uuid
from typing import TYPE_CHECKING, Any

from sqlalchemy import Float, ForeignKey, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base, JSONVariant, TimestampMixin, UUIDMixin

if TYPE_CHECKING:
    from app.db.models.cycles import TreatmentCycle
    from app.db.models.patients import Patient

DEFAULT_CONFIDENCE_SCORE = 0.85


class AIPrediction(UUIDMixin, TimestampMixin, Base):
    """
    Запись аудита одной AI-консультации.

    input_data = {"input": <текст запроса>, "context": {...}?}
    prediction_result = {"output": <ответ модели>, "model": <id модели>}

    Запись неизменяема: путь обновления не предусмотрен.
    """

    __tablename__ = "ai_predictions"

    patient_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("patients.id", ondelete="CASCADE"),
        nullable=False,
    )
    cycle_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("treatment_cycles.id", ondelete="SET NULL"),
        nullable=True,
    )
    prediction_type: Mapped[str] = mapped_column(Text, nullable=False)
    input_data: Mapped[dict[str, Any]] = mapped_column(JSONVariant, nullable=False)
    prediction_result: Mapped[dict[str, Any]] = mapped_column(JSONVariant, nullable=False)
    confidence_score: Mapped[float | None] = mapped_column(
        Float, nullable=True, default=DEFAULT_CONFIDENCE_SCORE
    )
    model_version: Mapped[str | None] = mapped_column(Text, nullable=True)

    patient: Mapped["Patient"] = relationship(back_populates="ai_predictions")
    cycle: Mapped["TreatmentCycle | None"] = relationship(back_populates="ai_predictions")
