"""
Репозиторий записей аудита AI-взаимодействий (ai_predictions).

Только вставка и чтение: записи неизменяемы.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging import logger
from app.db.enums import PredictionType
from app.db.models.patients import Patient
from app.db.models.predictions import DEFAULT_CONFIDENCE_SCORE, AIPrediction


class PredictionRepository:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def log_interaction(
        self,
        input_text: str,
        output_text: str,
        model: str,
        patient_id: UUID,
        cycle_id: UUID | None = None,
        context: dict[str, Any] | None = None,
        confidence: float | None = None,
        prediction_type: PredictionType = PredictionType.CONSULTATION,
    ) -> AIPrediction:
        """
        Сохраняет одну пару вход/выход консультации и коммитит.

        confidence по умолчанию 0.85, если вызывающий код его не передал.
        """
        input_payload: dict[str, Any] = {"input": input_text}
        if context:
            input_payload["context"] = context

        prediction = AIPrediction(
            patient_id=patient_id,
            cycle_id=cycle_id,
            prediction_type=prediction_type.value,
            input_data=input_payload,
            prediction_result={"output": output_text, "model": model},
            confidence_score=confidence if confidence is not None else DEFAULT_CONFIDENCE_SCORE,
            model_version=model,
        )
        self.db.add(prediction)
        await self.db.commit()
        await self.db.refresh(prediction)
        logger.info(
            f"Logged AI interaction {prediction.id} "
            f"(patient={patient_id}, cycle={cycle_id}, type={prediction_type.value})"
        )
        return prediction

    async def list_for_patient(self, patient_id: UUID, limit: int) -> list[AIPrediction]:
        """История пациента: новые первыми, не более limit записей."""
        stmt = (
            select(AIPrediction)
            .where(AIPrediction.patient_id == patient_id)
            .order_by(AIPrediction.created_at.desc())
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def count(self, clinic_id: UUID | None = None) -> int:
        stmt = select(func.count()).select_from(AIPrediction)
        if clinic_id:
            stmt = stmt.join(Patient, Patient.id == AIPrediction.patient_id).where(
                Patient.clinic_id == clinic_id
            )
        result = await self.db.execute(stmt)
        return int(result.scalar_one())
