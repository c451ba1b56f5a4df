"""
Скрипт для заполнения БД демонстрационными данными:
- клиника и врач
- пациенты с профилем
- лечебный цикл и анализы для первого пациента
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from app.core.config import settings
from app.core.logging import logger
from app.db.enums import CycleStatus, UserRole
from app.db.models.clinics import Clinic, User
from app.db.models.cycles import LabResult, TreatmentCycle
from app.db.models.patients import Patient, PatientProfile


async def seed_db() -> None:
    """Заполнение БД начальными данными."""
    engine = create_async_engine(settings.async_database_url, echo=settings.db_echo)
    async_session_factory = async_sessionmaker(engine, expire_on_commit=False)

    async with async_session_factory() as session:
        # 1. Клиника
        clinic = Clinic(
            name="Demo Fertility Center",
            license_number="LIC-0001",
            phone="+1-555-0100",
            email="info@demo-fertility.local",
        )
        session.add(clinic)
        await session.flush()

        # 2. Врач
        session.add(
            User(
                external_auth_id="demo-doctor",
                email="doctor@demo-fertility.local",
                first_name="Helen",
                last_name="Carter",
                role=UserRole.DOCTOR,
                clinic_id=clinic.id,
            )
        )

        # 3. Пациенты
        patients = [
            Patient(
                clinic_id=clinic.id,
                mrn="MRN-0001",
                first_name="Anna",
                last_name="Petrova",
                date_of_birth=datetime(1989, 4, 12, tzinfo=timezone.utc),
                email="anna.petrova@example.com",
            ),
            Patient(
                clinic_id=clinic.id,
                mrn="MRN-0002",
                first_name="Laura",
                last_name="Gomez",
                date_of_birth=datetime(1992, 9, 3, tzinfo=timezone.utc),
                email="laura.gomez@example.com",
            ),
        ]
        session.add_all(patients)
        await session.flush()

        first = patients[0]
        session.add(
            PatientProfile(
                patient_id=first.id,
                age=36,
                height=168.0,
                weight=62.0,
                bmi=22.0,
                diagnosis={"primary": "Diminished ovarian reserve"},
                reproductive_history={"gravida": 0, "para": 0},
            )
        )

        # 4. Цикл и анализы
        cycle = TreatmentCycle(
            patient_id=first.id,
            cycle_number=1,
            protocol_type="Antagonist",
            start_date=datetime(2025, 2, 1, tzinfo=timezone.utc),
            status=CycleStatus.STIMULATION,
        )
        session.add(cycle)
        await session.flush()

        session.add_all(
            [
                LabResult(
                    patient_id=first.id,
                    cycle_id=cycle.id,
                    test_type="Baseline hormones",
                    test_date=datetime(2025, 2, 1, tzinfo=timezone.utc),
                    cycle_day=2,
                    values={"FSH": "9.8 mIU/mL", "LH": "5.1 mIU/mL", "E2": "38 pg/mL"},
                    reference_ranges={"FSH": "3.5-12.5", "E2": "25-75"},
                ),
                LabResult(
                    patient_id=first.id,
                    test_type="AMH",
                    test_date=datetime(2025, 1, 15, tzinfo=timezone.utc),
                    values={"AMH": "0.9 ng/mL"},
                    reference_ranges={"AMH": "1.0-3.5"},
                    flags={"AMH": "low"},
                ),
            ]
        )

        await session.commit()
        logger.info(f"Seed завершён: clinic={clinic.id}, patients={len(patients)}")

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(seed_db())
