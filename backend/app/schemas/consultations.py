from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from app.schemas.common import CamelModel


class ConsultationRequest(CamelModel):
    """Запрос консультации.

    Поля опциональны на уровне схемы: обязательность message/patientId проверяет
    сервис, чтобы вернуть 400 с понятным сообщением, а не 422.
    """

    message: str | None = None
    patient_id: str | None = None
    cycle_id: str | None = None
    context: dict[str, Any] | None = None


class LabInterpretationRequest(CamelModel):
    patient_id: str | None = None
    cycle_id: str | None = None
    # Нечисловой limit не ошибка: clamp_limit подставит значение по умолчанию.
    limit: str | int | None = None
    context: dict[str, Any] | None = None


class TreatmentRecommendationRequest(CamelModel):
    patient_id: str | None = None
    cycle_id: str | None = None
    age: int | None = None
    diagnosis: str | None = None
    prior_treatments: str | None = None
    context: dict[str, Any] | None = None


class OutcomePredictionRequest(CamelModel):
    """Профиль пациента для оценки прогноза; все клинические поля опциональны."""

    patient_id: str | None = None
    cycle_id: str | None = None
    patient_age: int | None = None
    medical_history: str | None = None
    lab_results: str | None = None
    question: str | None = None
    symptoms: str | None = None
    treatment_history: str | None = None
    context: dict[str, Any] | None = None


class ConsultationResponse(CamelModel):
    response: str
    timestamp: datetime
    model: str
    patient_id: str
    cycle_id: str | None = None
    # None, если запись аудита не удалось сохранить.
    prediction_id: str | None = None


class FertilityAnalysis(CamelModel):
    """Ответ модели, разобранный по разделам системного промпта."""

    clinical_assessment: str
    recommendations: list[str] = []
    risk_factors: list[str] = []
    next_steps: list[str] = []
    success_probability: str | None = None
    additional_tests: list[str] = []


class OutcomePredictionResponse(ConsultationResponse):
    analysis: FertilityAnalysis


class ConsultationFallbackResponse(CamelModel):
    response: str
    timestamp: datetime
    fallback: bool = True
    error: str


class PredictionOut(CamelModel):
    id: UUID
    created_at: datetime
    prediction_type: str
    input_data: dict[str, Any]
    prediction_result: dict[str, Any]
    model_version: str | None = None
    confidence_score: float | None = None
    cycle_id: UUID | None = None


class ConsultationHistoryResponse(CamelModel):
    patient_id: str
    limit: int
    history: list[PredictionOut]


class ServiceInfoResponse(CamelModel):
    message: str
    version: str
    features: list[str]
    model: str
    status: str
