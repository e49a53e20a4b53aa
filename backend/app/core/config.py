"""
Service settings, read from the environment (or a ``.env`` file).

Defaults run the whole service locally with no external collaborators:
SQLite via aiosqlite, the in-process notify function, and the local log in
``data/emergency_logs.json``. List values are given as JSON in the
environment, e.g. ``ADMIN_USER_IDS='["ops-1", "ops-2"]'``.

    from backend.app.core.config import settings
    settings.CHANNEL_TIMEOUT_SECONDS
"""

from __future__ import annotations

from functools import lru_cache
from typing import List, Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # ── Service ──
    APP_NAME: str = "Emergency Alert Service"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: Literal["development", "staging", "production"] = "development"
    DEBUG: bool = True  # exposes exception text/tracebacks in 500 bodies
    LOG_LEVEL: str = "INFO"

    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:8080"]
    CORS_ALLOW_ALL: bool = True

    # ── Persistence ──
    DATABASE_URL: str = "sqlite+aiosqlite:///./emergency_alerts.db"
    DATABASE_POOL_SIZE: int = 10  # ignored for SQLite
    DATABASE_MAX_OVERFLOW: int = 5
    DATABASE_ECHO: bool = False

    # Empty path keeps the log in memory only
    LOG_STORE_PATH: Optional[str] = "data/emergency_logs.json"
    LOG_STORE_MAX_ENTRIES: int = Field(100, ge=1)

    # ── Dispatch ──
    CHANNEL_TIMEOUT_SECONDS: float = Field(10.0, gt=0)
    STATUS_POLICY: Literal["strict", "relaxed"] = "strict"

    # Unset: call notify-emergency in-process against our own database
    NOTIFIER_URL: Optional[str] = None
    NOTIFIER_TIMEOUT_SECONDS: float = 15.0

    # Empty: addresses fall back to "Lat: …, Lng: …"
    GEOCODER_URL: str = "https://nominatim.openstreetmap.org/reverse"
    GEOCODER_TIMEOUT_SECONDS: float = 10.0

    # Granted the admin role at startup
    ADMIN_USER_IDS: List[str] = []

    @field_validator("STATUS_POLICY", mode="before")
    @classmethod
    def _normalise_policy(cls, value: object) -> object:
        return value.strip().lower() if isinstance(value, str) else value

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
