"""
Репозитории для клиник, пациентов, лечебных циклов и анализов.

Тонкие обёртки над ORM (find / create / count / search); бизнес-правила живут
в сервисах.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.logging import logger
from app.db.enums import CycleStatus
from app.db.models.clinics import Clinic
from app.db.models.cycles import LabResult, TreatmentCycle
from app.db.models.patients import Patient


class ClinicRepository:
    """Репозиторий для работы с клиниками."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get(self, clinic_id: UUID) -> Clinic | None:
        return await self.db.get(Clinic, clinic_id)

    async def create(self, name: str, **fields: Any) -> Clinic:
        clinic = Clinic(name=name, **fields)
        self.db.add(clinic)
        await self.db.flush()
        return clinic

    async def count(self) -> int:
        result = await self.db.execute(select(func.count()).select_from(Clinic))
        return int(result.scalar_one())


class PatientRepository:
    """Репозиторий для работы с пациентами."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get(self, patient_id: UUID) -> Patient | None:
        return await self.db.get(Patient, patient_id)

    async def exists(self, patient_id: UUID) -> bool:
        stmt = select(Patient.id).where(Patient.id == patient_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def get_detail(self, patient_id: UUID) -> Patient | None:
        """Пациент с профилем и циклами (каждый цикл с анализами и AI-записями)."""
        stmt = (
            select(Patient)
            .where(Patient.id == patient_id)
            .options(
                selectinload(Patient.profile),
                selectinload(Patient.cycles).selectinload(TreatmentCycle.lab_results),
                selectinload(Patient.cycles).selectinload(TreatmentCycle.ai_predictions),
            )
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def search(self, search: str | None, limit: int) -> list[Patient]:
        """
        Поиск по подстроке (без учёта регистра) в имени, фамилии, email и MRN.

        Пустой search -> без WHERE, просто последние обновлённые пациенты.
        """
        stmt = select(Patient)
        if search:
            # autoescape: "%" и "_" в запросе ищутся буквально, а не как шаблон LIKE.
            stmt = stmt.where(
                or_(
                    Patient.first_name.icontains(search, autoescape=True),
                    Patient.last_name.icontains(search, autoescape=True),
                    Patient.email.icontains(search, autoescape=True),
                    Patient.mrn.icontains(search, autoescape=True),
                )
            )
        stmt = stmt.order_by(Patient.updated_at.desc(), Patient.created_at.desc()).limit(limit)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def create(
        self,
        clinic_id: UUID,
        mrn: str,
        first_name: str,
        last_name: str,
        date_of_birth: datetime,
        **fields: Any,
    ) -> Patient:
        patient = Patient(
            clinic_id=clinic_id,
            mrn=mrn,
            first_name=first_name,
            last_name=last_name,
            date_of_birth=date_of_birth,
            **fields,
        )
        self.db.add(patient)
        await self.db.flush()
        logger.info(f"Created patient {patient.id} (mrn={mrn}) in clinic {clinic_id}")
        return patient

    async def count(self, clinic_id: UUID | None = None) -> int:
        stmt = select(func.count()).select_from(Patient)
        if clinic_id:
            stmt = stmt.where(Patient.clinic_id == clinic_id)
        result = await self.db.execute(stmt)
        return int(result.scalar_one())


class CycleRepository:
    """Репозиторий для работы с лечебными циклами."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get(self, cycle_id: UUID) -> TreatmentCycle | None:
        return await self.db.get(TreatmentCycle, cycle_id)

    async def create(
        self,
        patient_id: UUID,
        cycle_number: int,
        status: CycleStatus = CycleStatus.PLANNING,
        **fields: Any,
    ) -> TreatmentCycle:
        cycle = TreatmentCycle(
            patient_id=patient_id,
            cycle_number=cycle_number,
            status=status,
            **fields,
        )
        self.db.add(cycle)
        await self.db.flush()
        return cycle

    async def count(self, clinic_id: UUID | None = None) -> int:
        stmt = select(func.count()).select_from(TreatmentCycle)
        if clinic_id:
            stmt = stmt.join(Patient, Patient.id == TreatmentCycle.patient_id).where(
                Patient.clinic_id == clinic_id
            )
        result = await self.db.execute(stmt)
        return int(result.scalar_one())


class LabResultRepository:
    """Репозиторий для работы с результатами анализов."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def create(
        self,
        patient_id: UUID,
        test_type: str,
        test_date: datetime,
        values: dict[str, Any],
        cycle_id: UUID | None = None,
        **fields: Any,
    ) -> LabResult:
        lab_result = LabResult(
            patient_id=patient_id,
            cycle_id=cycle_id,
            test_type=test_type,
            test_date=test_date,
            values=values,
            **fields,
        )
        self.db.add(lab_result)
        await self.db.flush()
        return lab_result

    async def list_for_patient(
        self,
        patient_id: UUID,
        cycle_id: UUID | None = None,
        limit: int = 20,
    ) -> list[LabResult]:
        """Последние анализы пациента (новые первыми), опционально в рамках цикла."""
        stmt = select(LabResult).where(LabResult.patient_id == patient_id)
        if cycle_id:
            stmt = stmt.where(LabResult.cycle_id == cycle_id)
        stmt = stmt.order_by(LabResult.test_date.desc(), LabResult.created_at.desc()).limit(limit)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())
