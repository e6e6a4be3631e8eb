"""
Application configuration using pydantic-settings.
Loads from environment variables with .env file support.
"""

from functools import lru_cache
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = "sqlite+aiosqlite:///./mastery_core.db"

    # Content generation collaborator
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    generation_timeout_seconds: float = 60.0

    # Progression rules
    xp_per_level: int = Field(1000, gt=0)
    exam_question_count: int = 15
    exam_time_limit_seconds: int = 1800  # 30 minutes

    # Application
    debug: bool = False
    environment: str = "development"
    log_level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR

    # API Settings
    api_v1_prefix: str = "/api/v1"
    project_name: str = "Mastery Progression & Credentialing Core"
    version: str = "1.0.0"

    @property
    def ai_configured(self) -> bool:
        """True when a real (non-placeholder) OpenAI key is set."""
        key = (self.openai_api_key or "").strip()
        return bool(key) and not key.startswith("sk-your-")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
