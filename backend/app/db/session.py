from __future__ import annotations

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from app.core.config import settings

"""
Инициализация async-движка и фабрики сессий SQLAlchemy 2.0.
Фабрику сессий использует FastAPI-зависимость app.api.deps.get_db.
"""


def enable_sqlite_foreign_keys(engine: AsyncEngine) -> None:
    """Включает FK-ограничения в SQLite (по умолчанию выключены, нужны для каскадов)."""
    if engine.dialect.name != "sqlite":
        return

    @event.listens_for(engine.sync_engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


engine: AsyncEngine = create_async_engine(
    settings.async_database_url,
    echo=settings.db_echo,
    future=True,
)
enable_sqlite_foreign_keys(engine)

async_session_factory = async_sessionmaker(
    engine,
    expire_on_commit=False,
    class_=AsyncSession,
)
