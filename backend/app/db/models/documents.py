from __future__ import annotations

import uuid
from typing import TYPE_CHECKING, Any

from sqlalchemy import Boolean, Enum, ForeignKey, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base, JSONVariant, TimestampMixin, UUIDMixin
from app.db.enums import DocType

if TYPE_CHECKING:
    from app.db.models.patients import Patient


class Document(UUIDMixin, TimestampMixin, Base):
    """Метаданные загруженного файла пациента (сам файл хранится вне БД)."""

    __tablename__ = "documents"

    patient_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("patients.id", ondelete="CASCADE"),
        nullable=False,
    )
    cycle_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("treatment_cycles.id", ondelete="SET NULL"),
        nullable=True,
    )
    document_type: Mapped[DocType] = mapped_column(
        Enum(DocType, name="doc_type", native_enum=True),
        nullable=False,
    )
    file_name: Mapped[str] = mapped_column(Text, nullable=False)
    file_path: Mapped[str] = mapped_column(Text, nullable=False)
    file_size: Mapped[int | None] = mapped_column(Integer, nullable=True)
    mime_type: Mapped[str | None] = mapped_column(Text, nullable=True)
    processed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    ai_extracted_data: Mapped[dict[str, Any] | None] = mapped_column(JSONVariant, nullable=True)
    uploaded_by: Mapped[str | None] = mapped_column(Text, nullable=True)

    patient: Mapped["Patient"] = relationship(back_populates="documents")
