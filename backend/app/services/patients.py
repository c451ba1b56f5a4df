"""
Сервис справочника пациентов и ведения карточек (пациент, цикл, анализ).
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.audit import log_audit
from app.core.errors import ConflictError, NotFoundError, StoreError, ValidationError
from app.core.logging import logger
from app.db.models.cycles import LabResult, TreatmentCycle
from app.db.models.patients import Patient
from app.schemas.diagnostics import ClinicStats
from app.schemas.patients import (
    CycleCreate,
    LabResultCreate,
    PatientCreate,
    PatientListResponse,
    PatientSummary,
)
from app.services.patient_repository import (
    ClinicRepository,
    CycleRepository,
    LabResultRepository,
    PatientRepository,
)
from app.services.prediction_repository import PredictionRepository
from app.utils.params import clamp_limit, parse_uuid

DIRECTORY_DEFAULT_LIMIT = 20
DIRECTORY_MAX_LIMIT = 50


class PatientService:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db
        self.clinics = ClinicRepository(db)
        self.patients = PatientRepository(db)
        self.cycles = CycleRepository(db)
        self.lab_results = LabResultRepository(db)

    async def search(self, search: str | None = None, raw_limit: Any = None) -> PatientListResponse:
        """
        Поиск пациентов для справочника.

        has_more = (count == limit): эвристика, а не курсор пагинации. При выдаче
        ровно limit записей без продолжения она даёт ложное True.
        """
        query = (search or "").strip()
        limit = clamp_limit(raw_limit, DIRECTORY_DEFAULT_LIMIT, DIRECTORY_MAX_LIMIT)
        try:
            patients = await self.patients.search(query or None, limit)
        except SQLAlchemyError as e:
            logger.error(f"Failed to load patients (search={query!r}): {e}", exc_info=True)
            raise StoreError("Unable to retrieve patients. Please try again later.") from e

        data = [PatientSummary.model_validate(p) for p in patients]
        return PatientListResponse(data=data, count=len(data), has_more=len(data) == limit)

    async def get_detail(self, raw_patient_id: str) -> Patient:
        patient_id = parse_uuid(raw_patient_id)
        patient = await self.patients.get_detail(patient_id) if patient_id else None
        if not patient:
            raise NotFoundError("Patient", raw_patient_id)
        return patient

    async def _require_patient(self, raw_patient_id: str) -> UUID:
        patient_id = parse_uuid(raw_patient_id)
        if patient_id is None or not await self.patients.exists(patient_id):
            raise NotFoundError("Patient", raw_patient_id)
        return patient_id

    async def create_patient(self, payload: PatientCreate) -> Patient:
        clinic = await self.clinics.get(payload.clinic_id)
        if not clinic:
            raise ValidationError(
                f"Clinic {payload.clinic_id} not found",
                details={"clinicId": str(payload.clinic_id)},
            )

        try:
            patient = await self.patients.create(**payload.model_dump())
            await log_audit(
                db=self.db,
                action="create",
                resource_type="patient",
                resource_id=str(patient.id),
                new_values={
                    "mrn": payload.mrn,
                    "clinic_id": str(payload.clinic_id),
                },
            )
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            if "unique" in str(e.orig).lower() or "duplicate" in str(e.orig).lower():
                raise ConflictError(
                    "Patient with this MRN already exists", details={"mrn": payload.mrn}
                ) from e
            raise ValidationError(
                "Unable to create patient. Check the submitted data.",
                details={"error": str(e.orig)},
            ) from e

        await self.db.refresh(patient)
        return patient

    async def create_cycle(self, raw_patient_id: str, payload: CycleCreate) -> TreatmentCycle:
        patient_id = await self._require_patient(raw_patient_id)
        cycle = await self.cycles.create(patient_id=patient_id, **payload.model_dump())
        await log_audit(
            db=self.db,
            action="create",
            resource_type="treatment_cycle",
            resource_id=str(cycle.id),
            new_values={
                "patient_id": str(patient_id),
                "cycle_number": payload.cycle_number,
                "status": payload.status.value,
            },
        )
        await self.db.commit()
        await self.db.refresh(cycle)
        return cycle

    async def create_lab_result(self, raw_patient_id: str, payload: LabResultCreate) -> LabResult:
        patient_id = await self._require_patient(raw_patient_id)
        if payload.cycle_id:
            cycle = await self.cycles.get(payload.cycle_id)
            if not cycle or cycle.patient_id != patient_id:
                raise ValidationError(
                    "Treatment cycle does not belong to patient",
                    details={"cycleId": str(payload.cycle_id)},
                )

        lab_result = await self.lab_results.create(patient_id=patient_id, **payload.model_dump())
        await log_audit(
            db=self.db,
            action="create",
            resource_type="lab_result",
            resource_id=str(lab_result.id),
            new_values={"patient_id": str(patient_id), "test_type": payload.test_type},
        )
        await self.db.commit()
        await self.db.refresh(lab_result)
        return lab_result

    async def clinic_stats(self, raw_clinic_id: str) -> ClinicStats:
        clinic_id = parse_uuid(raw_clinic_id)
        clinic = await self.clinics.get(clinic_id) if clinic_id else None
        if not clinic:
            raise NotFoundError("Clinic", raw_clinic_id)

        # Одна AsyncSession не допускает параллельных запросов: считаем последовательно.
        return ClinicStats(
            patients_count=await self.patients.count(clinic_id),
            cycles_count=await self.cycles.count(clinic_id),
            ai_interactions_count=await PredictionRepository(self.db).count(clinic_id),
        )
