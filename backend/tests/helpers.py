"""Фабрики тестовых данных и подмена inference-коллаборатора."""
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from app.db.base import Base
from app.db.models.clinics import Clinic
from app.db.models.cycles import LabResult, TreatmentCycle
from app.db.models.patients import Patient
from app.db.models.predictions import AIPrediction
from app.services.fertility_ai import FertilityAssistant


class FakeAssistant(FertilityAssistant):
    """Ассистент без сети: возвращает заданный ответ или бросает заданное исключение."""

    def __init__(self, response: str = "Structured clinical guidance") -> None:
        super().__init__(client_factory=lambda: None)  # type: ignore[arg-type,return-value]
        self.response = response
        self.error: Exception | None = None
        self.calls: list[str] = []

    @property
    def model(self) -> str:
        return "test-model"

    async def process_patient_input(self, message: str) -> str:
        self.calls.append(message)
        if self.error is not None:
            raise self.error
        return self.response


async def clear_tables(engine: AsyncEngine) -> None:
    """Удаляет все строки всех таблиц в одной транзакции (дочерние таблицы первыми)."""
    async with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            await conn.execute(table.delete())


async def create_test_clinic(db: AsyncSession, name: str = "Integration Test Fertility Center") -> Clinic:
    clinic = Clinic(name=name, email="integration-clinic@example.com", phone="+1-555-0100")
    db.add(clinic)
    await db.commit()
    await db.refresh(clinic)
    return clinic


async def create_test_patient(db: AsyncSession, clinic_id: uuid.UUID, **overrides: Any) -> Patient:
    fields: dict[str, Any] = {
        "first_name": "Ada",
        "last_name": "Lovelace",
        "mrn": f"MRN-{uuid.uuid4()}",
        "date_of_birth": datetime(1990, 12, 10, tzinfo=timezone.utc),
        "email": "ada.lovelace@example.com",
    }
    fields.update(overrides)
    patient = Patient(clinic_id=clinic_id, **fields)
    db.add(patient)
    await db.commit()
    await db.refresh(patient)
    return patient


async def create_test_cycle(
    db: AsyncSession, patient_id: uuid.UUID, cycle_number: int = 1, **overrides: Any
) -> TreatmentCycle:
    cycle = TreatmentCycle(patient_id=patient_id, cycle_number=cycle_number, **overrides)
    db.add(cycle)
    await db.commit()
    await db.refresh(cycle)
    return cycle


async def create_test_lab_result(
    db: AsyncSession,
    patient_id: uuid.UUID,
    cycle_id: uuid.UUID | None = None,
    **overrides: Any,
) -> LabResult:
    fields: dict[str, Any] = {
        "test_type": "AMH",
        "test_date": datetime(2025, 1, 5, tzinfo=timezone.utc),
        "values": {"AMH": "1.2 ng/mL"},
    }
    fields.update(overrides)
    lab = LabResult(patient_id=patient_id, cycle_id=cycle_id, **fields)
    db.add(lab)
    await db.commit()
    await db.refresh(lab)
    return lab


async def create_prediction_for_patient(
    db: AsyncSession,
    patient_id: uuid.UUID,
    output: str = "Guidance from integration test AI",
    cycle_id: uuid.UUID | None = None,
    created_at: datetime | None = None,
) -> AIPrediction:
    prediction = AIPrediction(
        patient_id=patient_id,
        cycle_id=cycle_id,
        prediction_type="CONSULTATION",
        input_data={"input": "Cycle monitoring update"},
        prediction_result={"output": output},
        confidence_score=0.85,
        model_version="llama-3.3-70b-versatile",
    )
    if created_at is not None:
        prediction.created_at = created_at
    db.add(prediction)
    await db.commit()
    await db.refresh(prediction)
    return prediction
