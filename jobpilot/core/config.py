"""
Configuration module - loads all env vars using pydantic-settings.
This is the SINGLE SOURCE OF TRUTH for all config values.
"""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # PostgreSQL
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_user: str = "jobpilot"
    postgres_password: str = "password"
    postgres_db: str = "jobpilot"

    # Full URL override (tests point this at SQLite)
    database_url: Optional[str] = None

    # MongoDB (resume file storage)
    mongodb_uri: str = "mongodb://localhost:27017"
    mongodb_db: str = "jobpilot_files"

    # LLM (OpenAI-compatible)
    llm_api_key: str = ""
    llm_base_url: str = "https://api.deepseek.com/v1"
    llm_model: str = "deepseek-chat"

    # Identity provider
    identity_jwt_secret: str = "change-this-secret"
    identity_jwt_algorithm: str = "HS256"
    identity_jwt_expire_minutes: int = 60
    identity_webhook_secret: str = "change-this-webhook-secret"

    # Email
    smtp_host: Optional[str] = None
    smtp_port: int = 587
    smtp_user: Optional[str] = None
    smtp_password: Optional[str] = None
    smtp_use_tls: bool = True
    email_from: str = "JobPilot <admin@jobpilot.dev>"

    # Background jobs
    cron_secret: str = "change-this-cron-secret"
    notification_hour: int = 9
    notification_timezone: str = "America/New_York"
    scheduler_enabled: bool = False

    # App
    server_url: str = "http://localhost:8000"
    max_resume_size_mb: int = 8
    cache_max_entries: int = 2048
    debug: bool = False

    @property
    def postgres_url(self) -> str:
        """Construct PostgreSQL connection URL"""
        return (
            f"postgresql://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    @property
    def sqlalchemy_url(self) -> str:
        return self.database_url or self.postgres_url

    # Pydantic v2 config
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8"
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()
