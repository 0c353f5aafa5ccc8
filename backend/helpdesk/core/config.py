"""Application configuration loaded from environment variables."""

from __future__ import annotations

import datetime as dt
from pathlib import Path
from zoneinfo import ZoneInfo

from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parents[2]


class Settings(BaseSettings):
    APP_NAME: str = "Helpdesk SLA Engine"
    ENV: str = "development"

    DATABASE_URL: str = "postgresql+psycopg://postgres@localhost:5432/helpdesk"
    LOG_LEVEL: str = "INFO"

    CORS_ORIGINS: str = "http://localhost:3000"

    # Wall-clock zone used to interpret business-hours windows and holidays.
    BUSINESS_TIMEZONE: str = "UTC"
    SLA_METRICS_BATCH_SIZE: int = 500
    AUDIT_LOG_PAGE_LIMIT: int = 200

    model_config = SettingsConfigDict(env_file=str(BASE_DIR / ".env"), env_file_encoding="utf-8")

    @property
    def cors_origins(self) -> list[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def business_tz(self) -> dt.tzinfo:
        name = self.BUSINESS_TIMEZONE.strip()
        if not name or name.upper() == "UTC":
            return dt.timezone.utc
        return ZoneInfo(name)


settings = Settings()
