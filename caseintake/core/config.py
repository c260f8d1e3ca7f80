# caseintake/core/config.py
"""
Application configuration using Pydantic Settings
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List
import json
from pydantic import field_validator


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables
    """

    # Application
    APP_NAME: str = "Case Intake API"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str

    # API keys
    API_KEY_MIN_LENGTH: int = 32
    API_KEY_LENGTH: int = 64  # length of keys issued by db/seed.py
    DEFAULT_RATE_LIMIT_PER_HOUR: int = 100

    # Rate-limit window housekeeping
    RATE_LIMIT_CLEANUP_ENABLED: bool = True
    RATE_LIMIT_RETENTION_HOURS: int = 168  # 7 days

    # Audit log
    AUDIT_BODY_MAX_CHARS: int = 5000

    # Intake defaults
    STATUTE_OF_LIMITATIONS_YEARS: int = 2
    DEFAULT_WRECK_STATE: str = "Oklahoma"
    DEFAULT_COMPANY_STATE: str = "OK"
    WORK_LOG_AUTHOR: str = "API"
    INTAKE_ENFORCE_LIABILITY_TOTAL: bool = False

    # Outbound notification (fire-and-forget)
    CASE_CREATED_WEBHOOK_URL: str = ""
    WEBHOOK_TIMEOUT_SECONDS: float = 30.0

    # CORS
    CORS_ORIGINS: str = '["*"]'

    @field_validator("CASE_CREATED_WEBHOOK_URL", mode="before")
    @classmethod
    def strip_webhook_url(cls, v: str) -> str:
        if isinstance(v, str):
            return v.strip()
        return v

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from string to list"""
        try:
            if isinstance(self.CORS_ORIGINS, str):
                return json.loads(self.CORS_ORIGINS)
            return self.CORS_ORIGINS
        except json.JSONDecodeError:
            return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")


# Create settings instance
settings = Settings()
