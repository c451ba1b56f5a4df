from __future__ import annotations

from app.services.consultations import ConsultationService
from app.services.diagnostics import DiagnosticsService
from app.services.fertility_ai import FertilityAssistant
from app.services.llm_client import LLMClient
from app.services.patients import PatientService

__all__ = [
    "ConsultationService",
    "DiagnosticsService",
    "FertilityAssistant",
    "LLMClient",
    "PatientService",
]
