from enum import Enum
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class LLMProvider(str, Enum):
    """Провайдер LLM для клинических консультаций."""

    AZURE_OPENAI = "azure_openai"
    OPENAI_COMPATIBLE = "openai_compatible"
    LOCAL = "local"


# .env ищем в backend/ (config.py лежит в backend/app/core/)
_CONFIG_DIR = Path(__file__).parent.parent.parent
_ENV_FILE = _CONFIG_DIR / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(_ENV_FILE) if _ENV_FILE.exists() else ".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_env: str = "dev"
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    # В prod переопределяется через LOG_LEVEL=info|warning|error.
    log_level: str = "DEBUG"
    # Каталог для файловых логов; пустая строка отключает файловый handler.
    log_dir: str = ".data/logs"

    # Полный URL имеет приоритет над отдельными частями.
    database_url: str | None = None
    db_host: str = "db"
    db_port: int = 5432
    db_name: str = "fertiassist"
    db_user: str = "fertiassist"
    db_password: str = "fertiassist"
    db_echo: bool = False

    # Inference: по умолчанию OpenAI-compatible endpoint Groq.
    llm_provider: LLMProvider = LLMProvider.OPENAI_COMPATIBLE
    llm_base_url: str = "https://api.groq.com/openai"
    llm_api_key: str | None = None
    llm_model: str = "llama-3.3-70b-versatile"
    llm_temperature: float = 0.3
    llm_max_tokens: int = 2000
    llm_top_p: float = 0.9
    llm_timeout_sec: int = 60

    @property
    def async_database_url(self) -> str:
        """Async URL для SQLAlchemy (psycopg 3.x поддерживает async из коробки)."""
        if self.database_url:
            return self.database_url
        return (
            f"postgresql+psycopg://{self.db_user}:{self.db_password}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}"
        )

    @property
    def sync_database_url(self) -> str:
        # Alembic работает синхронно; psycopg 3 обслуживает оба режима одним драйвером.
        return self.async_database_url.replace("+aiosqlite", "")


settings = Settings()
