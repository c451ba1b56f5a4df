"""
Inference-коллаборатор для консультаций: фиксированный системный промпт
специалиста-репродуктолога поверх LLMClient.

Любой сбой (сеть, квота, авторизация, отсутствие конфигурации) поднимается
наружу как UpstreamError; решение о fallback принимает вызывающий сервис.
"""
from __future__ import annotations

import re
from collections.abc import Callable

from app.core.config import settings
from app.core.errors import UpstreamError
from app.core.logging import logger
from app.schemas.consultations import FertilityAnalysis
from app.services.llm_client import LLMClient

SYSTEM_PROMPT = """You are a fertility specialist assistant supporting clinical staff in an \
assisted-reproduction clinic (reproductive endocrinology, IVF/ICSI, IUI, ovarian stimulation, \
embryology, male factor).

Organize every answer into these markdown sections:

## CLINICAL ASSESSMENT:
## CLINICAL REASONING:
## ACTION ITEMS:
## NEXT STEPS:
## RISK FACTORS:
## SUCCESS PROBABILITY:
## PATIENT COUNSELING POINTS:

Use bullet points for action items, next steps, risk factors and counseling points. Make each \
action item concrete enough for staff to execute (tests, timing, monitoring parameters). \
Flag anything that needs urgent physician attention at the top. Base recommendations on \
current reproductive-medicine guidelines and state uncertainty when data is missing. \
This is decision support only and never replaces the treating physician's judgment."""

CONSULTATION_PREFIX = "Please analyze this fertility case and provide clinical guidance:\n\n"


class FertilityAssistant:
    """Клинический ассистент: один исходящий вызов LLM на запрос, без ретраев."""

    def __init__(
        self,
        client_factory: Callable[[], LLMClient] | None = None,
        system_prompt: str = SYSTEM_PROMPT,
    ) -> None:
        self._client_factory = client_factory or LLMClient
        self.system_prompt = system_prompt

    @property
    def model(self) -> str:
        return settings.llm_model

    async def process_patient_input(self, message: str) -> str:
        """Свободный текст консультации -> рекомендации модели."""
        try:
            # Клиент создаём на каждый вызов: ошибка конфигурации тоже считается сбоем upstream.
            client = self._client_factory()
            return await client.complete(self.system_prompt, CONSULTATION_PREFIX + message)
        except UpstreamError:
            raise
        except Exception as e:
            logger.error(f"[FertilityAI] Ошибка обработки консультации: {e}", exc_info=True)
            raise UpstreamError("Failed to process fertility consultation") from e

    def build_lab_interpretation_prompt(self, lab_data: str) -> str:
        return (
            "As a fertility specialist, please interpret these lab results and provide "
            f"clinical guidance:\n\n{lab_data}\n\n"
            "Please provide:\n"
            "1. Interpretation of each relevant hormone/test value\n"
            "2. Overall ovarian reserve assessment (if applicable)\n"
            "3. Recommendations for treatment protocols\n"
            "4. Any concerning values that need attention\n"
            "5. Suggested timeline for treatment initiation"
        )

    def build_treatment_recommendation_prompt(
        self, age: int, diagnosis: str, prior_treatments: str | None = None
    ) -> str:
        return (
            "Treatment recommendation request:\n"
            f"- Patient Age: {age}\n"
            f"- Primary Diagnosis: {diagnosis}\n"
            f"- Prior Treatments: {prior_treatments or 'None'}\n\n"
            "Please recommend:\n"
            "1. Most appropriate treatment protocol\n"
            "2. Expected timeline and monitoring schedule\n"
            "3. Success rates for this patient profile\n"
            "4. Alternative options to consider\n"
            "5. Patient counseling points"
        )

    def build_outcome_prediction_prompt(
        self,
        patient_age: int | None = None,
        medical_history: str | None = None,
        lab_results: str | None = None,
        question: str | None = None,
        symptoms: str | None = None,
        treatment_history: str | None = None,
    ) -> str:
        age = patient_age if patient_age is not None else "Not specified"
        return (
            "Analyze this fertility patient profile and provide a structured assessment:\n\n"
            f"Patient Age: {age}\n"
            f"Medical History: {medical_history or 'Not provided'}\n"
            f"Lab Results: {lab_results or 'Not provided'}\n"
            f"Current Question: {question or 'General consultation'}\n"
            f"Symptoms: {symptoms or 'None reported'}\n"
            f"Treatment History: {treatment_history or 'None'}\n\n"
            "Please provide a comprehensive fertility assessment with:\n"
            "1. Clinical assessment summary\n"
            "2. Specific recommendations for treatment\n"
            "3. Risk factors to consider\n"
            "4. Next steps in care\n"
            "5. Success probability estimate (if sufficient data)\n"
            "6. Additional tests needed\n\n"
            "Include an \"## ADDITIONAL TESTS:\" section with one test per bullet."
        )


_HEADING = re.compile(r"^\s*#{1,6}\s*(.+?)\s*:?\s*$")
_BULLET = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s+")

# Раздел ответа -> поле FertilityAnalysis
_LIST_SECTIONS = {
    "ACTION ITEMS": "recommendations",
    "RECOMMENDATIONS": "recommendations",
    "RISK FACTORS": "risk_factors",
    "NEXT STEPS": "next_steps",
    "ADDITIONAL TESTS": "additional_tests",
}


def _split_sections(text: str) -> dict[str, list[str]]:
    sections: dict[str, list[str]] = {}
    current: list[str] | None = None
    for line in text.splitlines():
        heading = _HEADING.match(line)
        if heading:
            current = sections.setdefault(heading.group(1).rstrip(":").strip().upper(), [])
            continue
        if current is not None and line.strip():
            current.append(line.strip())
    return sections


def _items(lines: list[str]) -> list[str]:
    bullets = [_BULLET.sub("", line).strip() for line in lines if _BULLET.match(line)]
    return [b for b in bullets if b] or lines


def parse_fertility_analysis(text: str) -> FertilityAnalysis:
    """
    Разбирает ответ модели по markdown-разделам системного промпта.

    Без раздела CLINICAL ASSESSMENT оценкой считается весь текст; отсутствующие
    списочные разделы остаются пустыми.
    """
    sections = _split_sections(text)
    fields: dict[str, list[str]] = {}
    for title, field_name in _LIST_SECTIONS.items():
        if title in sections and field_name not in fields:
            fields[field_name] = _items(sections[title])

    assessment = "\n".join(sections.get("CLINICAL ASSESSMENT", [])) or text.strip()
    probability = "\n".join(sections.get("SUCCESS PROBABILITY", [])) or None
    return FertilityAnalysis(
        clinical_assessment=assessment,
        success_probability=probability,
        **fields,
    )
