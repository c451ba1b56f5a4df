from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_db
from app.schemas.patients import (
    CycleCreate,
    CycleOut,
    LabResultCreate,
    LabResultOut,
    PatientCreate,
    PatientDetail,
    PatientListResponse,
    PatientOut,
)
from app.services.patients import PatientService

router = APIRouter()


@router.get(
    "/patients",
    response_model=PatientListResponse,
)
async def list_patients(
    search: str | None = Query(None, description="Подстрока имени, фамилии, email или MRN"),
    limit: str | None = Query(None, description="По умолчанию 20, максимум 50"),
    db: AsyncSession = Depends(get_db),
) -> PatientListResponse:
    """Справочник пациентов: последние обновлённые первыми."""
    return await PatientService(db).search(search, limit)


@router.post(
    "/patients",
    response_model=PatientOut,
    status_code=status.HTTP_201_CREATED,
)
async def create_patient(
    payload: PatientCreate,
    db: AsyncSession = Depends(get_db),
) -> PatientOut:
    """Создание пациента в существующей клинике."""
    patient = await PatientService(db).create_patient(payload)
    return PatientOut.model_validate(patient)


@router.get(
    "/patients/{patient_id}",
    response_model=PatientDetail,
)
async def get_patient(
    patient_id: str,
    db: AsyncSession = Depends(get_db),
) -> PatientDetail:
    """Карточка пациента: профиль и циклы с анализами и AI-записями."""
    patient = await PatientService(db).get_detail(patient_id)
    return PatientDetail.model_validate(patient)


@router.post(
    "/patients/{patient_id}/cycles",
    response_model=CycleOut,
    status_code=status.HTTP_201_CREATED,
)
async def create_cycle(
    patient_id: str,
    payload: CycleCreate,
    db: AsyncSession = Depends(get_db),
) -> CycleOut:
    cycle = await PatientService(db).create_cycle(patient_id, payload)
    return CycleOut.model_validate(cycle)


@router.post(
    "/patients/{patient_id}/lab-results",
    response_model=LabResultOut,
    status_code=status.HTTP_201_CREATED,
)
async def create_lab_result(
    patient_id: str,
    payload: LabResultCreate,
    db: AsyncSession = Depends(get_db),
) -> LabResultOut:
    lab_result = await PatientService(db).create_lab_result(patient_id, payload)
    return LabResultOut.model_validate(lab_result)
