from __future__ import annotations

"""
Пакет ORM-моделей FertiAssist.

Модели сгруппированы по доменам:
- clinics: clinics / users
- patients: patients / patient_profiles
- cycles: treatment_cycles / lab_results
- documents: documents
- predictions: ai_predictions
- audit: audit_logs
"""

from .audit import AuditLog  # noqa: F401
from .clinics import Clinic, User  # noqa: F401
from .cycles import LabResult, TreatmentCycle  # noqa: F401
from .documents import Document  # noqa: F401
from .patients import Patient, PatientProfile  # noqa: F401
from .predictions import AIPrediction  # noqa: F401
