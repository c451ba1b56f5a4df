"""
Сервис консультаций: оркестрация запроса к inference-коллаборатору и
запись аудита в ai_predictions.

Поток одного запроса: validate -> проверка пациента -> вызов LLM -> запись аудита.

- Ошибка LLM поглощается: ответ 200 с fallback-текстом, в БД ничего не пишется.
- Ошибка записи аудита поглощается: пользователь получает ответ модели,
  prediction_id = None. Успешный клинический ответ важнее полноты журнала.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import NotFoundError, UpstreamError, ValidationError
from app.core.logging import logger
from app.db.enums import PredictionType
from app.db.models.cycles import LabResult
from app.schemas.consultations import (
    ConsultationFallbackResponse,
    ConsultationHistoryResponse,
    ConsultationRequest,
    ConsultationResponse,
    LabInterpretationRequest,
    OutcomePredictionRequest,
    OutcomePredictionResponse,
    PredictionOut,
    ServiceInfoResponse,
    TreatmentRecommendationRequest,
)
from app.services.fertility_ai import FertilityAssistant, parse_fertility_analysis
from app.services.patient_repository import LabResultRepository, PatientRepository
from app.services.prediction_repository import PredictionRepository
from app.utils.params import clamp_limit, parse_uuid

HISTORY_DEFAULT_LIMIT = 10
HISTORY_MAX_LIMIT = 50
LAB_RESULTS_DEFAULT_LIMIT = 10

SERVICE_VERSION = "2.0.0"

FALLBACK_ERROR = "AI service temporarily unavailable"

FALLBACK_RESPONSE = """I apologize, but I'm currently experiencing technical difficulties \
processing your fertility consultation.

Please try again in a moment, or consider the following general guidance:

**For fertility consultations, please ensure you include:**
- Patient age
- Relevant hormone levels (AMH, FSH, LH, E2 if available)
- Medical history relevant to fertility
- Current symptoms or concerns
- Any prior fertility treatments

**For immediate clinical concerns:**
- Contact your healthcare provider directly
- This AI assistant provides decision support only
- Always consult with qualified medical professionals

The system should be back online shortly. Thank you for your patience."""


def _require(value: str | None, field_name: str) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise ValidationError(f"{field_name} is required", details={"field": field_name})
    return cleaned


def _optional_uuid(value: str | None, field_name: str) -> UUID | None:
    """Пустое значение -> None; непустое обязано быть UUID, иначе 400."""
    cleaned = (value or "").strip()
    if not cleaned:
        return None
    parsed = parse_uuid(cleaned)
    if parsed is None:
        raise ValidationError(
            f"{field_name} must be a valid UUID", details={"field": field_name, "value": cleaned}
        )
    return parsed


def _require_positive_int(value: int | None, field_name: str) -> int:
    if value is None or value <= 0:
        raise ValidationError(
            f"{field_name} is required and must be a positive integer",
            details={"field": field_name},
        )
    return value


def format_lab_results(lab_results: list[LabResult]) -> str:
    """Текстовое представление анализов для промпта (по одной строке на анализ)."""
    lines: list[str] = []
    for lab in lab_results:
        header = f"- {lab.test_date:%Y-%m-%d} {lab.test_type}"
        if lab.cycle_day is not None:
            header += f" (cycle day {lab.cycle_day})"
        values = ", ".join(f"{key}: {value}" for key, value in (lab.values or {}).items())
        line = f"{header}: {values}" if values else header
        if lab.reference_ranges:
            ranges = ", ".join(f"{key}: {value}" for key, value in lab.reference_ranges.items())
            line += f" [reference: {ranges}]"
        lines.append(line)
    return "\n".join(lines)


class ConsultationService:
    """Оркестратор консультаций и чтение истории."""

    def __init__(self, db: AsyncSession, assistant: FertilityAssistant) -> None:
        self.db = db
        self.assistant = assistant
        self.patients = PatientRepository(db)
        self.predictions = PredictionRepository(db)
        self.lab_results = LabResultRepository(db)

    async def _require_patient(self, raw_patient_id: str) -> UUID:
        patient_id = parse_uuid(raw_patient_id)
        if patient_id is None or not await self.patients.exists(patient_id):
            raise NotFoundError("Patient", raw_patient_id)
        return patient_id

    async def consult(
        self, request: ConsultationRequest
    ) -> ConsultationResponse | ConsultationFallbackResponse:
        """Свободная консультация по пациенту."""
        message = _require(request.message, "message")
        raw_patient_id = _require(request.patient_id, "patientId")
        cycle_id = _optional_uuid(request.cycle_id, "cycleId")
        patient_id = await self._require_patient(raw_patient_id)

        return await self._run(
            message=message,
            patient_id=patient_id,
            cycle_id=cycle_id,
            context=request.context,
            prediction_type=PredictionType.CONSULTATION,
        )

    async def interpret_lab_results(
        self, request: LabInterpretationRequest
    ) -> ConsultationResponse | ConsultationFallbackResponse:
        """Консультация по сохранённым анализам пациента (последние N, опционально по циклу)."""
        raw_patient_id = _require(request.patient_id, "patientId")
        cycle_id = _optional_uuid(request.cycle_id, "cycleId")
        patient_id = await self._require_patient(raw_patient_id)
        limit = clamp_limit(request.limit, LAB_RESULTS_DEFAULT_LIMIT, HISTORY_MAX_LIMIT)

        lab_results = await self.lab_results.list_for_patient(
            patient_id, cycle_id=cycle_id, limit=limit
        )
        if not lab_results:
            raise ValidationError(
                "No lab results found for patient", details={"patientId": raw_patient_id}
            )

        message = self.assistant.build_lab_interpretation_prompt(format_lab_results(lab_results))
        return await self._run(
            message=message,
            patient_id=patient_id,
            cycle_id=cycle_id,
            context=request.context,
            prediction_type=PredictionType.LAB_INTERPRETATION,
        )

    async def recommend_treatment(
        self, request: TreatmentRecommendationRequest
    ) -> ConsultationResponse | ConsultationFallbackResponse:
        """Рекомендация протокола по возрасту, диагнозу и предыдущему лечению."""
        raw_patient_id = _require(request.patient_id, "patientId")
        age = _require_positive_int(request.age, "age")
        diagnosis = _require(request.diagnosis, "diagnosis")
        cycle_id = _optional_uuid(request.cycle_id, "cycleId")
        patient_id = await self._require_patient(raw_patient_id)

        message = self.assistant.build_treatment_recommendation_prompt(
            age, diagnosis, request.prior_treatments
        )
        return await self._run(
            message=message,
            patient_id=patient_id,
            cycle_id=cycle_id,
            context=request.context,
            prediction_type=PredictionType.TREATMENT_RECOMMENDATION,
        )

    async def predict_outcome(
        self, request: OutcomePredictionRequest
    ) -> OutcomePredictionResponse | ConsultationFallbackResponse:
        """Структурированная оценка прогноза: ответ модели разбирается по разделам."""
        raw_patient_id = _require(request.patient_id, "patientId")
        cycle_id = _optional_uuid(request.cycle_id, "cycleId")
        patient_id = await self._require_patient(raw_patient_id)

        message = self.assistant.build_outcome_prediction_prompt(
            patient_age=request.patient_age,
            medical_history=request.medical_history,
            lab_results=request.lab_results,
            question=request.question,
            symptoms=request.symptoms,
            treatment_history=request.treatment_history,
        )
        result = await self._run(
            message=message,
            patient_id=patient_id,
            cycle_id=cycle_id,
            context=request.context,
            prediction_type=PredictionType.OUTCOME_PREDICTION,
        )
        if isinstance(result, ConsultationFallbackResponse):
            return result
        return OutcomePredictionResponse(
            **result.model_dump(),
            analysis=parse_fertility_analysis(result.response),
        )

    async def _run(
        self,
        message: str,
        patient_id: UUID,
        cycle_id: UUID | None,
        context: dict[str, Any] | None,
        prediction_type: PredictionType,
    ) -> ConsultationResponse | ConsultationFallbackResponse:
        request_id = str(uuid.uuid4())
        # Проверки выше открыли транзакцию: закрываем её, чтобы соединение
        # не удерживалось из пула на время вызова LLM.
        await self.db.commit()
        try:
            ai_response = await self.assistant.process_patient_input(message)
        except Exception as e:
            # Любой сбой коллаборатора -> fallback, без записи в БД.
            reason = e.message if isinstance(e, UpstreamError) else str(e)
            logger.error(
                f"[Consultation] Inference failed (request_id={request_id}, "
                f"patient={patient_id}): {reason}"
            )
            return ConsultationFallbackResponse(
                response=FALLBACK_RESPONSE,
                timestamp=datetime.now(timezone.utc),
                error=FALLBACK_ERROR,
            )

        model = self.assistant.model
        prediction_id: str | None = None
        try:
            prediction = await self.predictions.log_interaction(
                input_text=message,
                output_text=ai_response,
                model=model,
                patient_id=patient_id,
                cycle_id=cycle_id,
                context=context,
                prediction_type=prediction_type,
            )
            prediction_id = str(prediction.id)
        except Exception as e:
            logger.error(
                f"[Consultation] Failed to persist AI interaction (request_id={request_id}, "
                f"patient={patient_id}): {e}",
                exc_info=True,
            )
            await self._rollback()

        return ConsultationResponse(
            response=ai_response,
            timestamp=datetime.now(timezone.utc),
            model=model,
            patient_id=str(patient_id),
            cycle_id=str(cycle_id) if cycle_id else None,
            prediction_id=prediction_id,
        )

    async def _rollback(self) -> None:
        try:
            await self.db.rollback()
        except SQLAlchemyError as e:
            logger.warning(f"[Consultation] Rollback after audit failure failed: {e}")

    async def history(
        self, raw_patient_id: str, raw_limit: Any = None
    ) -> ConsultationHistoryResponse:
        """Последние записи аудита пациента, новые первыми."""
        limit = clamp_limit(raw_limit, HISTORY_DEFAULT_LIMIT, HISTORY_MAX_LIMIT)
        patient_id = await self._require_patient(raw_patient_id.strip())

        predictions = await self.predictions.list_for_patient(patient_id, limit)
        return ConsultationHistoryResponse(
            patient_id=raw_patient_id.strip(),
            limit=limit,
            history=[PredictionOut.model_validate(p) for p in predictions],
        )

    def service_info(self) -> ServiceInfoResponse:
        return ServiceInfoResponse(
            message="FertiAssist consultation API is running",
            version=SERVICE_VERSION,
            features=[
                "Fertility specialist system prompt",
                "Real-time clinical decision support",
                "Lab results interpretation",
                "Treatment protocol recommendations",
                "Structured outcome prediction",
                "Consultation audit history",
            ],
            model=self.assistant.model,
            status="operational",
        )
