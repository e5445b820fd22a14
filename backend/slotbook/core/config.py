# backend/slotbook/core/config.py
import logging
import os
from pathlib import Path
from typing import Annotated, List, Literal, Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from .constants import BRAND_NAME


def is_running_tests() -> bool:
    """
    Detect if code is running under pytest.

    PYTEST_CURRENT_TEST is set automatically by pytest during test runs, and is
    not expected to be present in production environments.
    """
    return os.getenv("PYTEST_CURRENT_TEST") is not None


_BACKEND_ROOT = Path(__file__).resolve().parents[2]

logger = logging.getLogger(__name__)

# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = _BACKEND_ROOT / ".env"
    logger.debug("[CONFIG] Looking for .env at: %s (exists=%s)", env_path, env_path.exists())
    load_dotenv(env_path)


class Settings(BaseSettings):
    """Runtime configuration for the booking core."""

    app_name: str = Field(default=f"{BRAND_NAME} API", description="Service display name")
    environment: Literal["local", "development", "test", "staging", "production"] = Field(
        default="local",
        description="Deployment environment name",
    )
    log_level: str = Field(default="INFO", description="Root log level")

    # Relational store
    database_url: str = Field(
        default="sqlite:///./slotbook.db",
        description="SQLAlchemy URL of the system of record",
    )
    database_echo: bool = Field(default=False, description="Echo SQL statements")
    database_pool_size: int = Field(default=5, ge=1)
    database_max_overflow: int = Field(default=10, ge=0)
    transaction_max_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts for a transaction hit by serialization failures",
    )
    transaction_retry_base_delay: float = Field(
        default=0.05,
        ge=0,
        description="Base backoff (seconds) between transaction attempts",
    )

    # Cache
    redis_url: Optional[str] = Field(
        default=None,
        description="Redis URL for the read-through cache; unset uses the in-process cache",
    )
    cache_ttl_seconds: int = Field(
        default=300,
        ge=1,
        le=3600,
        description="TTL applied to every cached availability/slot entry",
    )

    # Scheduling rules
    default_slot_duration_minutes: int = Field(default=60, ge=5, le=480)
    booking_window_days: int = Field(
        default=90,
        ge=1,
        description="How far ahead a slot may be created or booked",
    )
    max_generation_days: int = Field(
        default=92,
        ge=1,
        description="Largest date range accepted when generating slots from availability",
    )

    # Reminders
    default_reminder_offsets_hours: Annotated[List[int], NoDecode] = Field(
        default_factory=lambda: [24, 1],
        description="Default reminders created before each appointment",
    )
    reminder_max_retries: int = Field(default=3, ge=0)
    reminder_batch_size: int = Field(default=100, ge=1)
    reminder_scan_interval_seconds: int = Field(default=60, ge=5)

    # Pagination
    default_page_size: int = Field(default=10, ge=1)
    max_page_size: int = Field(default=100, ge=1)

    # Background workers
    celery_broker_url: Optional[str] = Field(default=None)

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("default_reminder_offsets_hours", mode="before")
    @classmethod
    def _parse_offsets(cls, value: object) -> object:
        if isinstance(value, str):
            cleaned = value.strip()
            if not cleaned:
                return []
            return [int(part) for part in cleaned.split(",") if part.strip()]
        return value

    @field_validator("default_reminder_offsets_hours")
    @classmethod
    def _validate_offsets(cls, value: List[int]) -> List[int]:
        if any(offset <= 0 for offset in value):
            raise ValueError("Reminder offsets must be positive hour counts")
        return sorted(set(value), reverse=True)

    @model_validator(mode="after")
    def _check_page_sizes(self) -> "Settings":
        if self.default_page_size > self.max_page_size:
            raise ValueError("default_page_size cannot exceed max_page_size")
        return self

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    @property
    def broker_url(self) -> str:
        return self.celery_broker_url or self.redis_url or "redis://localhost:6379/0"


settings = Settings()
