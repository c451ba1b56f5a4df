from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from app.db.enums import CycleStatus
from app.schemas.common import CamelModel
from app.schemas.consultations import PredictionOut


class PatientSummary(CamelModel):
    """Строка справочника пациентов."""

    id: UUID
    mrn: str
    first_name: str
    last_name: str
    date_of_birth: datetime


class PatientListResponse(CamelModel):
    data: list[PatientSummary]
    count: int
    # Эвристика: True, когда вернулось ровно limit записей.
    has_more: bool


class PatientCreate(CamelModel):
    clinic_id: UUID
    mrn: str
    first_name: str
    last_name: str
    date_of_birth: datetime
    phone: str | None = None
    email: str | None = None
    address: dict[str, Any] | None = None
    insurance: dict[str, Any] | None = None


class PatientOut(CamelModel):
    id: UUID
    clinic_id: UUID
    mrn: str
    first_name: str
    last_name: str
    date_of_birth: datetime
    phone: str | None = None
    email: str | None = None
    created_at: datetime
    updated_at: datetime


class PatientProfileOut(CamelModel):
    id: UUID
    age: int | None = None
    height: float | None = None
    weight: float | None = None
    bmi: float | None = None
    blood_type: str | None = None
    diagnosis: dict[str, Any] | None = None
    medical_history: dict[str, Any] | None = None
    reproductive_history: dict[str, Any] | None = None
    current_medications: dict[str, Any] | None = None
    allergies: dict[str, Any] | None = None


class CycleCreate(CamelModel):
    cycle_number: int
    protocol_type: str | None = None
    start_date: datetime | None = None
    status: CycleStatus = CycleStatus.PLANNING
    notes: str | None = None


class LabResultCreate(CamelModel):
    test_type: str
    test_date: datetime
    values: dict[str, Any]
    cycle_id: UUID | None = None
    cycle_day: int | None = None
    reference_ranges: dict[str, Any] | None = None
    flags: dict[str, Any] | None = None
    interpretation: str | None = None
    ordered_by: str | None = None


class LabResultOut(CamelModel):
    id: UUID
    patient_id: UUID
    cycle_id: UUID | None = None
    test_type: str
    test_date: datetime
    cycle_day: int | None = None
    values: dict[str, Any]
    reference_ranges: dict[str, Any] | None = None
    flags: dict[str, Any] | None = None
    interpretation: str | None = None
    created_at: datetime


class CycleOut(CamelModel):
    id: UUID
    patient_id: UUID
    cycle_number: int
    protocol_type: str | None = None
    start_date: datetime | None = None
    status: CycleStatus
    notes: str | None = None
    created_at: datetime


class CycleDetail(CycleOut):
    lab_results: list[LabResultOut] = []
    ai_predictions: list[PredictionOut] = []


class PatientDetail(PatientOut):
    profile: PatientProfileOut | None = None
    cycles: list[CycleDetail] = []
