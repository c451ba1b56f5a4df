from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_assistant, get_db
from app.schemas.consultations import (
    ConsultationFallbackResponse,
    ConsultationHistoryResponse,
    ConsultationRequest,
    ConsultationResponse,
    LabInterpretationRequest,
    OutcomePredictionRequest,
    OutcomePredictionResponse,
    ServiceInfoResponse,
    TreatmentRecommendationRequest,
)
from app.services.consultations import ConsultationService
from app.services.fertility_ai import FertilityAssistant

router = APIRouter()


@router.post(
    "/consultations",
    response_model=ConsultationResponse | ConsultationFallbackResponse,
)
async def create_consultation(
    payload: ConsultationRequest,
    db: AsyncSession = Depends(get_db),
    assistant: FertilityAssistant = Depends(get_assistant),
) -> ConsultationResponse | ConsultationFallbackResponse:
    """
    Клиническая консультация по пациенту.

    400 без message/patientId, 404 для неизвестного пациента. Сбой LLM не
    превращается в ошибку: 200 с fallback=true.
    """
    service = ConsultationService(db, assistant)
    return await service.consult(payload)


@router.post(
    "/consultations/lab-interpretation",
    response_model=ConsultationResponse | ConsultationFallbackResponse,
)
async def create_lab_interpretation(
    payload: LabInterpretationRequest,
    db: AsyncSession = Depends(get_db),
    assistant: FertilityAssistant = Depends(get_assistant),
) -> ConsultationResponse | ConsultationFallbackResponse:
    """Интерпретация последних анализов пациента (та же логика fallback и аудита)."""
    service = ConsultationService(db, assistant)
    return await service.interpret_lab_results(payload)


@router.post(
    "/consultations/treatment-recommendation",
    response_model=ConsultationResponse | ConsultationFallbackResponse,
)
async def create_treatment_recommendation(
    payload: TreatmentRecommendationRequest,
    db: AsyncSession = Depends(get_db),
    assistant: FertilityAssistant = Depends(get_assistant),
) -> ConsultationResponse | ConsultationFallbackResponse:
    """Рекомендация протокола лечения: age и diagnosis обязательны."""
    service = ConsultationService(db, assistant)
    return await service.recommend_treatment(payload)


@router.post(
    "/consultations/outcome-prediction",
    response_model=OutcomePredictionResponse | ConsultationFallbackResponse,
)
async def create_outcome_prediction(
    payload: OutcomePredictionRequest,
    db: AsyncSession = Depends(get_db),
    assistant: FertilityAssistant = Depends(get_assistant),
) -> OutcomePredictionResponse | ConsultationFallbackResponse:
    """Оценка прогноза с разбором ответа по разделам (analysis)."""
    service = ConsultationService(db, assistant)
    return await service.predict_outcome(payload)


@router.get(
    "/consultations",
    response_model=ConsultationHistoryResponse | ServiceInfoResponse,
)
async def get_consultations(
    patient_id: str | None = Query(None, alias="patientId"),
    limit: str | None = Query(None, description="По умолчанию 10, максимум 50"),
    db: AsyncSession = Depends(get_db),
    assistant: FertilityAssistant = Depends(get_assistant),
) -> ConsultationHistoryResponse | ServiceInfoResponse:
    """
    История консультаций пациента (новые первыми).

    Без patientId возвращает метаданные сервиса и не обращается к БД.
    """
    service = ConsultationService(db, assistant)
    if not patient_id or not patient_id.strip():
        return service.service_info()
    return await service.history(patient_id, limit)
