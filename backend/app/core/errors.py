from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app.core.logging import logger


class AppError(Exception):
    """Базовое исключение приложения с кодом ошибки."""

    def __init__(
        self, message: str, code: str = "internal_error", details: dict[str, Any] | None = None
    ) -> None:
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)


class NotFoundError(AppError):
    """Ресурс не найден."""

    def __init__(self, resource: str, resource_id: str) -> None:
        super().__init__(
            message=f"{resource} not found",
            code="not_found",
            details={"resource": resource, "resource_id": resource_id},
        )


class ValidationError(AppError):
    """Ошибка валидации входных данных."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message=message, code="validation_error", details=details)


class ConflictError(AppError):
    """Конфликт (например, MRN уже занят)."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message=message, code="conflict", details=details)


class UpstreamError(AppError):
    """Сбой внешнего inference-сервиса (сеть, квота, авторизация, конфигурация)."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message=message, code="upstream_error", details=details)


class StoreError(AppError):
    """Ошибка чтения/записи хранилища; пользователю отдаётся общее сообщение."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message=message, code="store_error", details=details)


_STATUS_BY_CODE = {
    "not_found": 404,
    "conflict": 409,
    "validation_error": 400,
    "upstream_error": 502,
    "store_error": 500,
}


def error_body(message: str, code: str, details: dict[str, Any] | None = None) -> dict[str, Any]:
    # "error" читает фронтенд, "detail" оставлен для совместимости с FastAPI-клиентами.
    return {
        "error": message,
        "detail": message,
        "code": code,
        "details": details or {},
    }


def configure_error_handlers(app: FastAPI) -> None:
    """Настройка обработчиков ошибок для FastAPI."""

    @app.exception_handler(AppError)
    async def app_error_handler(_: Request, exc: AppError) -> JSONResponse:
        status_code = _STATUS_BY_CODE.get(exc.code, 400)
        return JSONResponse(
            status_code=status_code,
            content=error_body(exc.message, exc.code, exc.details),
        )

    @app.exception_handler(IntegrityError)
    async def integrity_error_handler(_: Request, exc: IntegrityError) -> JSONResponse:
        """Обработка ошибок целостности базы данных."""
        logger.error(f"IntegrityError: {exc}", exc_info=True)
        error_msg = str(exc.orig) if hasattr(exc, "orig") else str(exc)

        if "foreign key" in error_msg.lower():
            return JSONResponse(
                status_code=400,
                content=error_body(
                    "Foreign key violation. Check that related records exist.",
                    "validation_error",
                    {"error": error_msg},
                ),
            )
        elif "unique" in error_msg.lower() or "duplicate" in error_msg.lower():
            return JSONResponse(
                status_code=409,
                content=error_body(
                    "A record with the same unique data already exists.",
                    "conflict",
                    {"error": error_msg},
                ),
            )
        return JSONResponse(
            status_code=400,
            content=error_body("Data integrity error.", "validation_error", {"error": error_msg}),
        )

    @app.exception_handler(SQLAlchemyError)
    async def database_error_handler(_: Request, exc: SQLAlchemyError) -> JSONResponse:
        """Общие ошибки базы данных: детали только в логах."""
        logger.error(f"DatabaseError: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content=error_body("Database error. Please try again later.", "database_error"),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(_: Request, exc: Exception) -> JSONResponse:
        """Обработка необработанных исключений."""
        logger.error(f"Unhandled error: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content=error_body("Internal server error", "internal_error"),
        )
