from __future__ import annotations

"""
Единый модуль Python Enum-ов для доменной модели.

Используются в ORM-моделях, схемах API и Alembic-миграции.
"""

from enum import Enum


class UserRole(str, Enum):
    ADMIN = "ADMIN"
    DOCTOR = "DOCTOR"
    NURSE = "NURSE"
    STAFF = "STAFF"
    EMBRYOLOGIST = "EMBRYOLOGIST"


class CycleStatus(str, Enum):
    """Статус лечебного цикла (протокол ВРТ)."""

    PLANNING = "PLANNING"
    STIMULATION = "STIMULATION"
    MONITORING = "MONITORING"
    TRIGGER = "TRIGGER"
    RETRIEVAL = "RETRIEVAL"
    FERTILIZATION = "FERTILIZATION"
    TRANSFER = "TRANSFER"
    # two-week wait
    TWW = "TWW"
    POSITIVE = "POSITIVE"
    NEGATIVE = "NEGATIVE"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


class DocType(str, Enum):
    ULTRASOUND = "ULTRASOUND"
    LAB_REPORT = "LAB_REPORT"
    CONSENT_FORM = "CONSENT_FORM"
    PRESCRIPTION = "PRESCRIPTION"
    MEDICAL_HISTORY = "MEDICAL_HISTORY"
    INSURANCE_CARD = "INSURANCE_CARD"
    EMBRYO_IMAGE = "EMBRYO_IMAGE"
    SPERM_ANALYSIS = "SPERM_ANALYSIS"
    OTHER = "OTHER"


class PredictionType(str, Enum):
    """Тип записи в ai_predictions."""

    CONSULTATION = "CONSULTATION"
    LAB_INTERPRETATION = "LAB_INTERPRETATION"
    TREATMENT_RECOMMENDATION = "TREATMENT_RECOMMENDATION"
    OUTCOME_PREDICTION = "OUTCOME_PREDICTION"
