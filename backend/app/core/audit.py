from __future__ import annotations

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.audit import AuditLog

"""
Вспомогательные функции для audit logging (таблица audit_logs).
"""


async def log_audit(
    db: AsyncSession,
    action: str,
    resource_type: str,
    resource_id: str,
    old_values: dict[str, Any] | None = None,
    new_values: dict[str, Any] | None = None,
    user_id: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> None:
    """
    Логирует действие в audit_logs.

    Args:
        db: Сессия базы данных
        action: Действие (create, update, delete)
        resource_type: Тип ресурса (patient, treatment_cycle, lab_result)
        resource_id: ID ресурса (строка)
        old_values: Состояние до изменения (опционально)
        new_values: Состояние после изменения (опционально)
        user_id: Кто выполнил действие (опционально)
        ip_address: IP клиента (опционально)
        user_agent: User-Agent клиента (опционально)
    """
    audit_entry = AuditLog(
        user_id=user_id,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        old_values=old_values,
        new_values=new_values,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    db.add(audit_entry)
    # Не коммитим здесь: коммит выполняет вызывающий код в той же транзакции.
