from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_db
from app.schemas.diagnostics import ClinicStats, DatabaseDiagnostics
from app.services.diagnostics import DiagnosticsService
from app.services.patients import PatientService

router = APIRouter()


@router.get(
    "/diagnostics/db",
    response_model=DatabaseDiagnostics,
)
async def database_diagnostics(
    db: AsyncSession = Depends(get_db),
) -> DatabaseDiagnostics | JSONResponse:
    """Проверка соединения с БД и базовые счётчики."""
    result = await DiagnosticsService(db).database_status()
    if result.status == "error":
        return JSONResponse(
            status_code=500,
            content=result.model_dump(mode="json", by_alias=True),
        )
    return result


@router.get(
    "/clinics/{clinic_id}/stats",
    response_model=ClinicStats,
)
async def clinic_stats(
    clinic_id: str,
    db: AsyncSession = Depends(get_db),
) -> ClinicStats:
    """Счётчики пациентов, циклов и AI-консультаций клиники."""
    return await PatientService(db).clinic_stats(clinic_id)
