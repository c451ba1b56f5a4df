from __future__ import annotations

from app.schemas.common import CamelModel
from app.schemas.consultations import (
    ConsultationFallbackResponse,
    ConsultationHistoryResponse,
    ConsultationRequest,
    ConsultationResponse,
    FertilityAnalysis,
    LabInterpretationRequest,
    OutcomePredictionRequest,
    OutcomePredictionResponse,
    PredictionOut,
    ServiceInfoResponse,
    TreatmentRecommendationRequest,
)
from app.schemas.diagnostics import ClinicStats, DatabaseDiagnostics
from app.schemas.patients import (
    CycleCreate,
    CycleDetail,
    CycleOut,
    LabResultCreate,
    LabResultOut,
    PatientCreate,
    PatientDetail,
    PatientListResponse,
    PatientOut,
    PatientSummary,
)

__all__ = [
    "CamelModel",
    "ConsultationRequest",
    "ConsultationResponse",
    "ConsultationFallbackResponse",
    "ConsultationHistoryResponse",
    "LabInterpretationRequest",
    "TreatmentRecommendationRequest",
    "OutcomePredictionRequest",
    "OutcomePredictionResponse",
    "FertilityAnalysis",
    "PredictionOut",
    "ServiceInfoResponse",
    "ClinicStats",
    "DatabaseDiagnostics",
    "PatientSummary",
    "PatientListResponse",
    "PatientCreate",
    "PatientOut",
    "PatientDetail",
    "CycleCreate",
    "CycleOut",
    "CycleDetail",
    "LabResultCreate",
    "LabResultOut",
]
