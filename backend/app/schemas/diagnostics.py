from __future__ import annotations

from datetime import datetime

from app.schemas.common import CamelModel


class ClinicStats(CamelModel):
    patients_count: int
    cycles_count: int
    ai_interactions_count: int


class DatabaseCounts(CamelModel):
    connected: bool
    clinics: int
    patients: int
    ai_interactions: int


class EnvironmentInfo(CamelModel):
    app_env: str
    has_db_url: bool
    has_llm_key: bool


class DatabaseDiagnostics(CamelModel):
    status: str
    message: str
    database: DatabaseCounts | None = None
    environment: EnvironmentInfo | None = None
    timestamp: datetime
