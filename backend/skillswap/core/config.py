# backend/skillswap/core/config.py
"""
Application settings for the SkillSwap booking engine.

Values come from the environment (or a backend/.env file outside CI) and are
validated by pydantic-settings. Import ``settings`` for the process-wide
instance; tests may mutate it or build their own ``Settings(...)``.
"""

from functools import lru_cache
import logging
import os
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = Path(__file__).parent.parent.parent / ".env"  # Goes up to backend/.env
    logger.debug("[CONFIG] Looking for .env at: %s (exists=%s)", env_path, env_path.exists())
    load_dotenv(env_path)


class Settings(BaseSettings):
    """Runtime configuration for the booking engine."""

    model_config = SettingsConfigDict(case_sensitive=False, extra="ignore")

    environment: str = Field(default="development")
    log_level: str = Field(default="INFO")

    # Database
    database_url: str = Field(default="sqlite:///./skillswap.db")
    database_echo: bool = Field(default=False)

    # Capacity arbiter locking
    booking_lock_backend: Literal["local", "redis"] = Field(default="local")
    redis_url: str = Field(default="redis://localhost:6379/0")
    lock_namespace: str = Field(default="skillswap")
    booking_lock_ttl_s: int = Field(default=30, gt=0)
    booking_lock_wait_s: float = Field(default=10.0, gt=0)

    # Booking rules
    proposal_grace_minutes: int = Field(default=5, ge=0)
    max_offer_slots: int = Field(default=5, gt=0)
    max_group_capacity: int = Field(default=50, gt=1)
    default_session_duration_minutes: int = Field(default=60, gt=0)
    list_limit: int = Field(default=200, gt=0)
    # Group slots: auto-decline leftover pending requests once a slot fills
    decline_pending_on_full_slot: bool = Field(default=False)

    @field_validator("booking_lock_backend", mode="before")
    @classmethod
    def _normalize_lock_backend(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError(f"Unknown log level: {value}")
        return normalized


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
