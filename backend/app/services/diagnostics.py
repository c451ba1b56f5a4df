"""Диагностика подключения к БД для администраторов."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.logging import logger
from app.schemas.diagnostics import DatabaseCounts, DatabaseDiagnostics, EnvironmentInfo
from app.services.patient_repository import ClinicRepository, PatientRepository
from app.services.prediction_repository import PredictionRepository


class DiagnosticsService:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    def _environment(self) -> EnvironmentInfo:
        return EnvironmentInfo(
            app_env=settings.app_env,
            has_db_url=bool(settings.database_url),
            has_llm_key=bool(settings.llm_api_key),
        )

    async def database_status(self) -> DatabaseDiagnostics:
        """
        Проверяет соединение и схему.

        status: success (соединение и счётчики), warning (соединение есть, но
        запросы к таблицам падают, вероятно не применены миграции), error (нет
        соединения).
        """
        now = datetime.now(timezone.utc)
        try:
            await self.db.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            logger.error(f"Database connection failed: {e}")
            return DatabaseDiagnostics(
                status="error",
                message="Database connection failed",
                environment=self._environment(),
                timestamp=now,
            )

        try:
            counts = DatabaseCounts(
                connected=True,
                clinics=await ClinicRepository(self.db).count(),
                patients=await PatientRepository(self.db).count(),
                ai_interactions=await PredictionRepository(self.db).count(),
            )
        except SQLAlchemyError as e:
            logger.warning(f"Database connected but schema query failed: {e}")
            return DatabaseDiagnostics(
                status="warning",
                message="Database connected but schema may need migration",
                environment=self._environment(),
                timestamp=now,
            )

        return DatabaseDiagnostics(
            status="success",
            message="Database connection and schema validated",
            database=counts,
            environment=self._environment(),
            timestamp=now,
        )
