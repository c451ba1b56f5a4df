"""
Тесты API консультаций: валидация, 404, запись аудита, fallback при сбое LLM,
история пациента.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from uuid import UUID, uuid4

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import event, func, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from app.api.deps import get_assistant, get_db
from app.core.errors import UpstreamError
from app.db.models.predictions import AIPrediction
from app.main import create_app
from app.services.consultations import FALLBACK_ERROR
from app.services.prediction_repository import PredictionRepository
from tests.helpers import (
    FakeAssistant,
    create_prediction_for_patient,
    create_test_clinic,
    create_test_cycle,
    create_test_lab_result,
    create_test_patient,
)


async def _count_predictions(db: AsyncSession) -> int:
    result = await db.execute(select(func.count()).select_from(AIPrediction))
    return int(result.scalar_one())


class TestConsultationValidation:
    """Валидация не требует БД: проверки выполняются до первого запроса."""

    @pytest.fixture
    def sync_client(self) -> tuple[TestClient, FakeAssistant]:
        assistant = FakeAssistant()

        async def override_get_db():
            yield None

        app = create_app()
        app.dependency_overrides[get_db] = override_get_db
        app.dependency_overrides[get_assistant] = lambda: assistant
        return TestClient(app), assistant

    def test_missing_message_returns_400(self, sync_client) -> None:
        client, assistant = sync_client
        response = client.post("/api/consultations", json={"patientId": "patient_123"})

        assert response.status_code == 400
        assert "message is required" in response.json()["error"]
        assert assistant.calls == []

    def test_blank_message_returns_400(self, sync_client) -> None:
        client, _ = sync_client
        response = client.post(
            "/api/consultations", json={"message": "   ", "patientId": "patient_123"}
        )

        assert response.status_code == 400
        assert "message" in response.json()["error"]

    def test_missing_patient_id_returns_400(self, sync_client) -> None:
        client, assistant = sync_client
        response = client.post("/api/consultations", json={"message": "Case details"})

        assert response.status_code == 400
        assert "patientId is required" in response.json()["error"]
        assert assistant.calls == []

    def test_get_without_patient_returns_service_metadata(self, sync_client) -> None:
        client, _ = sync_client
        response = client.get("/api/consultations")
        body = response.json()

        assert response.status_code == 200
        assert body["status"] == "operational"
        assert isinstance(body["features"], list)
        assert body["model"] == "test-model"


@pytest.mark.asyncio
async def test_unknown_patient_returns_404(client: httpx.AsyncClient, assistant: FakeAssistant):
    response = await client.post(
        "/api/consultations",
        json={"message": "Case details", "patientId": str(uuid4())},
    )

    assert response.status_code == 404
    assert "patient not found" in response.json()["error"].lower()
    assert assistant.calls == []


@pytest.mark.asyncio
async def test_malformed_patient_id_is_not_found(client: httpx.AsyncClient):
    response = await client.post(
        "/api/consultations",
        json={"message": "Case details", "patientId": "missing_patient"},
    )

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_consultation_returns_guidance_and_records_interaction(
    client: httpx.AsyncClient, assistant: FakeAssistant, db: AsyncSession
):
    clinic = await create_test_clinic(db)
    patient = await create_test_patient(db, clinic.id)
    cycle = await create_test_cycle(db, patient.id)

    response = await client.post(
        "/api/consultations",
        json={
            "message": "  Clinical question  ",
            "patientId": str(patient.id),
            "cycleId": str(cycle.id),
            "context": {"vital": "data"},
        },
    )
    body = response.json()

    assert response.status_code == 200
    assert body["response"] == "Structured clinical guidance"
    assert body["model"] == "test-model"
    assert body["patientId"] == str(patient.id)
    assert body["cycleId"] == str(cycle.id)
    assert body["predictionId"] is not None
    assert body["timestamp"]
    assert assistant.calls == ["Clinical question"]

    prediction = await db.get(AIPrediction, UUID(body["predictionId"]))
    assert prediction is not None
    assert prediction.input_data == {"input": "Clinical question", "context": {"vital": "data"}}
    assert prediction.prediction_result == {"output": "Structured clinical guidance", "model": "test-model"}
    assert prediction.model_version == "test-model"
    assert prediction.confidence_score == pytest.approx(0.85)
    assert prediction.cycle_id == cycle.id
    assert prediction.prediction_type == "CONSULTATION"


@pytest.mark.asyncio
async def test_inference_failure_returns_fallback_without_audit_row(
    client: httpx.AsyncClient, assistant: FakeAssistant, db: AsyncSession
):
    clinic = await create_test_clinic(db)
    patient = await create_test_patient(db, clinic.id)
    assistant.error = UpstreamError("Groq outage")

    response = await client.post(
        "/api/consultations",
        json={"message": "Any question", "patientId": str(patient.id)},
    )
    body = response.json()

    assert response.status_code == 200
    assert body["fallback"] is True
    assert body["error"] == FALLBACK_ERROR
    assert "technical difficulties" in body["response"]
    assert "predictionId" not in body
    assert await _count_predictions(db) == 0


@pytest.mark.asyncio
async def test_unexpected_inference_exception_is_also_absorbed(
    client: httpx.AsyncClient, assistant: FakeAssistant, db: AsyncSession
):
    clinic = await create_test_clinic(db)
    patient = await create_test_patient(db, clinic.id)
    assistant.error = RuntimeError("socket closed")

    response = await client.post(
        "/api/consultations",
        json={"message": "Any question", "patientId": str(patient.id)},
    )

    assert response.status_code == 200
    assert response.json()["fallback"] is True
    assert await _count_predictions(db) == 0


@pytest.mark.asyncio
async def test_audit_failure_still_returns_ai_answer(
    client: httpx.AsyncClient, assistant: FakeAssistant, db: AsyncSession, monkeypatch
):
    clinic = await create_test_clinic(db)
    patient = await create_test_patient(db, clinic.id)
    assistant.response = "Answer"
    attempts: list[str] = []

    async def failing_log_interaction(self, **kwargs):
        attempts.append(kwargs["input_text"])
        raise RuntimeError("Database offline")

    monkeypatch.setattr(PredictionRepository, "log_interaction", failing_log_interaction)

    response = await client.post(
        "/api/consultations",
        json={"message": "Clinical question", "patientId": str(patient.id)},
    )
    body = response.json()

    assert response.status_code == 200
    assert body["response"] == "Answer"
    assert body["predictionId"] is None
    assert attempts == ["Clinical question"]
    assert await _count_predictions(db) == 0


@pytest.mark.asyncio
async def test_unknown_cycle_id_loses_only_the_audit_row(
    client: httpx.AsyncClient, db: AsyncSession
):
    clinic = await create_test_clinic(db)
    patient = await create_test_patient(db, clinic.id)

    response = await client.post(
        "/api/consultations",
        json={"message": "Question", "patientId": str(patient.id), "cycleId": str(uuid4())},
    )
    body = response.json()

    assert response.status_code == 200
    assert body["response"] == "Structured clinical guidance"
    assert body["predictionId"] is None


@pytest.mark.asyncio
async def test_history_is_newest_first_and_truncated(client: httpx.AsyncClient, db: AsyncSession):
    clinic = await create_test_clinic(db)
    patient = await create_test_patient(db, clinic.id)
    other = await create_test_patient(db, clinic.id, mrn="MRN-OTHER")
    base = datetime(2025, 1, 1, tzinfo=timezone.utc)

    # Вставляем не по порядку, чтобы сортировка шла по created_at, а не по вставке.
    for day in (3, 1, 5, 2, 4):
        await create_prediction_for_patient(
            db, patient.id, output=f"day {day}", created_at=base + timedelta(days=day)
        )
    await create_prediction_for_patient(db, other.id, output="other patient")

    response = await client.get(f"/api/consultations?patientId={patient.id}&limit=3")
    body = response.json()

    assert response.status_code == 200
    assert body["patientId"] == str(patient.id)
    assert body["limit"] == 3
    assert [item["predictionResult"]["output"] for item in body["history"]] == [
        "day 5",
        "day 4",
        "day 3",
    ]
    first = body["history"][0]
    assert first["inputData"] == {"input": "Cycle monitoring update"}
    assert first["modelVersion"] == "llama-3.3-70b-versatile"
    assert first["confidenceScore"] == pytest.approx(0.85)


@pytest.mark.asyncio
async def test_history_limit_defaults_and_clamps(client: httpx.AsyncClient, db: AsyncSession):
    clinic = await create_test_clinic(db)
    patient = await create_test_patient(db, clinic.id)
    base = datetime(2025, 1, 1, tzinfo=timezone.utc)
    for minute in range(12):
        await create_prediction_for_patient(db, patient.id, created_at=base + timedelta(minutes=minute))

    default_response = await client.get(f"/api/consultations?patientId={patient.id}")
    assert default_response.json()["limit"] == 10
    assert len(default_response.json()["history"]) == 10

    clamped_response = await client.get(f"/api/consultations?patientId={patient.id}&limit=999")
    assert clamped_response.json()["limit"] == 50
    assert len(clamped_response.json()["history"]) == 12


@pytest.mark.asyncio
async def test_history_for_unknown_patient_returns_404(client: httpx.AsyncClient):
    response = await client.get("/api/consultations?patientId=non-existent")

    assert response.status_code == 404
    assert "patient not found" in response.json()["error"].lower()


@pytest.mark.asyncio
async def test_consultation_appears_in_history(
    client: httpx.AsyncClient, assistant: FakeAssistant, db: AsyncSession
):
    clinic = await create_test_clinic(db)
    patient = await create_test_patient(db, clinic.id)

    created = await client.post(
        "/api/consultations",
        json={"message": "Day 8 follicle scan", "patientId": str(patient.id)},
    )
    history = await client.get(f"/api/consultations?patientId={patient.id}")

    items = history.json()["history"]
    assert len(items) == 1
    assert items[0]["id"] == created.json()["predictionId"]
    assert items[0]["inputData"]["input"] == "Day 8 follicle scan"


@pytest.mark.asyncio
async def test_lab_interpretation_uses_stored_results(
    client: httpx.AsyncClient, assistant: FakeAssistant, db: AsyncSession
):
    clinic = await create_test_clinic(db)
    patient = await create_test_patient(db, clinic.id)
    await create_test_lab_result(
        db,
        patient.id,
        test_type="Hormone panel",
        cycle_day=3,
        values={"FSH": "7.1 mIU/mL", "E2": "45 pg/mL"},
        reference_ranges={"FSH": "3-10"},
    )

    response = await client.post(
        "/api/consultations/lab-interpretation",
        json={"patientId": str(patient.id)},
    )
    body = response.json()

    assert response.status_code == 200
    assert body["predictionId"] is not None
    assert len(assistant.calls) == 1
    prompt = assistant.calls[0]
    assert "Hormone panel (cycle day 3): FSH: 7.1 mIU/mL, E2: 45 pg/mL" in prompt
    assert "[reference: FSH: 3-10]" in prompt

    prediction = await db.get(AIPrediction, UUID(body["predictionId"]))
    assert prediction.prediction_type == "LAB_INTERPRETATION"


@pytest.mark.asyncio
async def test_lab_interpretation_without_results_returns_400(
    client: httpx.AsyncClient, assistant: FakeAssistant, db: AsyncSession
):
    clinic = await create_test_clinic(db)
    patient = await create_test_patient(db, clinic.id)

    response = await client.post(
        "/api/consultations/lab-interpretation",
        json={"patientId": str(patient.id)},
    )

    assert response.status_code == 400
    assert assistant.calls == []


@pytest.mark.asyncio
async def test_malformed_cycle_id_is_rejected(
    client: httpx.AsyncClient, assistant: FakeAssistant, db: AsyncSession
):
    clinic = await create_test_clinic(db)
    patient = await create_test_patient(db, clinic.id)

    response = await client.post(
        "/api/consultations",
        json={"message": "Question", "patientId": str(patient.id), "cycleId": "not-a-uuid"},
    )

    assert response.status_code == 400
    assert "cycleId" in response.json()["error"]
    assert assistant.calls == []
    assert await _count_predictions(db) == 0


@pytest.mark.asyncio
async def test_lab_interpretation_rejects_malformed_cycle_id(
    client: httpx.AsyncClient, assistant: FakeAssistant, db: AsyncSession
):
    clinic = await create_test_clinic(db)
    patient = await create_test_patient(db, clinic.id)
    await create_test_lab_result(db, patient.id)

    response = await client.post(
        "/api/consultations/lab-interpretation",
        json={"patientId": str(patient.id), "cycleId": "cycle-1"},
    )

    assert response.status_code == 400
    assert assistant.calls == []


@pytest.mark.asyncio
async def test_lab_interpretation_filters_by_cycle(
    client: httpx.AsyncClient, assistant: FakeAssistant, db: AsyncSession
):
    clinic = await create_test_clinic(db)
    patient = await create_test_patient(db, clinic.id)
    cycle = await create_test_cycle(db, patient.id)
    await create_test_lab_result(db, patient.id, cycle_id=cycle.id, test_type="Estradiol")
    await create_test_lab_result(db, patient.id, test_type="Thyroid panel")

    response = await client.post(
        "/api/consultations/lab-interpretation",
        json={"patientId": str(patient.id), "cycleId": str(cycle.id)},
    )

    assert response.status_code == 200
    assert response.json()["cycleId"] == str(cycle.id)
    assert "Estradiol" in assistant.calls[0]
    assert "Thyroid panel" not in assistant.calls[0]


@pytest.mark.asyncio
async def test_lab_interpretation_non_numeric_limit_uses_default(
    client: httpx.AsyncClient, db: AsyncSession
):
    clinic = await create_test_clinic(db)
    patient = await create_test_patient(db, clinic.id)
    await create_test_lab_result(db, patient.id)

    response = await client.post(
        "/api/consultations/lab-interpretation",
        json={"patientId": str(patient.id), "limit": "abc"},
    )

    assert response.status_code == 200


@pytest.mark.asyncio
async def test_no_connection_is_held_during_inference(
    client: httpx.AsyncClient, assistant: FakeAssistant, db: AsyncSession, db_engine: AsyncEngine
):
    clinic = await create_test_clinic(db)
    patient = await create_test_patient(db, clinic.id)
    # Фабрики делают refresh после commit: освобождаем соединение тестовой сессии.
    await db.commit()

    outstanding = 0

    def on_checkout(*args):
        nonlocal outstanding
        outstanding += 1

    def on_checkin(*args):
        nonlocal outstanding
        outstanding -= 1

    event.listen(db_engine.sync_engine, "checkout", on_checkout)
    event.listen(db_engine.sync_engine, "checkin", on_checkin)

    seen_during_call: list[int] = []
    answer = assistant.process_patient_input

    async def recording_process(message: str) -> str:
        seen_during_call.append(outstanding)
        return await answer(message)

    assistant.process_patient_input = recording_process  # type: ignore[method-assign]

    response = await client.post(
        "/api/consultations",
        json={"message": "Question", "patientId": str(patient.id)},
    )

    assert response.status_code == 200
    assert response.json()["predictionId"] is not None
    assert seen_during_call == [0]


class TestTreatmentRecommendation:
    """POST /api/consultations/treatment-recommendation"""

    @pytest.mark.asyncio
    async def test_recommendation_is_recorded(
        self, client: httpx.AsyncClient, assistant: FakeAssistant, db: AsyncSession
    ):
        clinic = await create_test_clinic(db)
        patient = await create_test_patient(db, clinic.id)

        response = await client.post(
            "/api/consultations/treatment-recommendation",
            json={"patientId": str(patient.id), "age": 34, "diagnosis": "PCOS"},
        )
        body = response.json()

        assert response.status_code == 200
        assert body["response"] == "Structured clinical guidance"
        prompt = assistant.calls[0]
        assert "- Patient Age: 34" in prompt
        assert "- Primary Diagnosis: PCOS" in prompt
        assert "- Prior Treatments: None" in prompt

        prediction = await db.get(AIPrediction, UUID(body["predictionId"]))
        assert prediction.prediction_type == "TREATMENT_RECOMMENDATION"

    @pytest.mark.asyncio
    async def test_prior_treatments_are_included(
        self, client: httpx.AsyncClient, assistant: FakeAssistant, db: AsyncSession
    ):
        clinic = await create_test_clinic(db)
        patient = await create_test_patient(db, clinic.id)

        await client.post(
            "/api/consultations/treatment-recommendation",
            json={
                "patientId": str(patient.id),
                "age": 38,
                "diagnosis": "Tubal factor",
                "priorTreatments": "2x IUI",
            },
        )

        assert "- Prior Treatments: 2x IUI" in assistant.calls[0]

    @pytest.mark.asyncio
    async def test_missing_diagnosis_returns_400(
        self, client: httpx.AsyncClient, assistant: FakeAssistant, db: AsyncSession
    ):
        clinic = await create_test_clinic(db)
        patient = await create_test_patient(db, clinic.id)

        response = await client.post(
            "/api/consultations/treatment-recommendation",
            json={"patientId": str(patient.id), "age": 34},
        )

        assert response.status_code == 400
        assert "diagnosis is required" in response.json()["error"]
        assert assistant.calls == []

    @pytest.mark.asyncio
    async def test_missing_age_returns_400(self, client: httpx.AsyncClient, assistant: FakeAssistant):
        response = await client.post(
            "/api/consultations/treatment-recommendation",
            json={"patientId": str(uuid4()), "diagnosis": "PCOS"},
        )

        assert response.status_code == 400
        assert "age" in response.json()["error"]

    @pytest.mark.asyncio
    async def test_inference_failure_returns_fallback(
        self, client: httpx.AsyncClient, assistant: FakeAssistant, db: AsyncSession
    ):
        clinic = await create_test_clinic(db)
        patient = await create_test_patient(db, clinic.id)
        assistant.error = UpstreamError("quota exceeded")

        response = await client.post(
            "/api/consultations/treatment-recommendation",
            json={"patientId": str(patient.id), "age": 34, "diagnosis": "PCOS"},
        )

        assert response.status_code == 200
        assert response.json()["fallback"] is True
        assert await _count_predictions(db) == 0


STRUCTURED_ANSWER = """## CLINICAL ASSESSMENT:
Diminished ovarian reserve for age.

## ACTION ITEMS:
• Repeat AMH and AFC on cycle day 2-3
• Start antagonist protocol

## RISK FACTORS:
- Poor response to stimulation

## NEXT STEPS:
1. Baseline scan next cycle

## SUCCESS PROBABILITY:
20-25% live birth per retrieval

## ADDITIONAL TESTS:
* Karyotype
"""


class TestOutcomePrediction:
    """POST /api/consultations/outcome-prediction"""

    @pytest.mark.asyncio
    async def test_answer_is_split_into_sections(
        self, client: httpx.AsyncClient, assistant: FakeAssistant, db: AsyncSession
    ):
        clinic = await create_test_clinic(db)
        patient = await create_test_patient(db, clinic.id)
        assistant.response = STRUCTURED_ANSWER

        response = await client.post(
            "/api/consultations/outcome-prediction",
            json={
                "patientId": str(patient.id),
                "patientAge": 39,
                "labResults": "AMH 0.6 ng/mL",
                "question": "Chance with own eggs?",
            },
        )
        body = response.json()

        assert response.status_code == 200
        assert body["analysis"] == {
            "clinicalAssessment": "Diminished ovarian reserve for age.",
            "recommendations": [
                "Repeat AMH and AFC on cycle day 2-3",
                "Start antagonist protocol",
            ],
            "riskFactors": ["Poor response to stimulation"],
            "nextSteps": ["Baseline scan next cycle"],
            "successProbability": "20-25% live birth per retrieval",
            "additionalTests": ["Karyotype"],
        }
        prompt = assistant.calls[0]
        assert "Patient Age: 39" in prompt
        assert "Lab Results: AMH 0.6 ng/mL" in prompt
        assert "Symptoms: None reported" in prompt

        prediction = await db.get(AIPrediction, UUID(body["predictionId"]))
        assert prediction.prediction_type == "OUTCOME_PREDICTION"
        assert prediction.prediction_result["output"] == STRUCTURED_ANSWER

    @pytest.mark.asyncio
    async def test_unknown_patient_returns_404(
        self, client: httpx.AsyncClient, assistant: FakeAssistant
    ):
        response = await client.post(
            "/api/consultations/outcome-prediction", json={"patientId": str(uuid4())}
        )

        assert response.status_code == 404
        assert assistant.calls == []

    @pytest.mark.asyncio
    async def test_inference_failure_returns_fallback_without_analysis(
        self, client: httpx.AsyncClient, assistant: FakeAssistant, db: AsyncSession
    ):
        clinic = await create_test_clinic(db)
        patient = await create_test_patient(db, clinic.id)
        assistant.error = RuntimeError("timeout")

        response = await client.post(
            "/api/consultations/outcome-prediction", json={"patientId": str(patient.id)}
        )
        body = response.json()

        assert response.status_code == 200
        assert body["fallback"] is True
        assert "analysis" not in body
        assert await _count_predictions(db) == 0
