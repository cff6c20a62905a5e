"""Application configuration management."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from shared.constants import (
    DEFAULT_SYNC_BATCH_SIZE,
    LOG_RETENTION_DAYS,
    MAX_SYNC_BATCH_SIZE,
    MIN_SYNC_BATCH_SIZE,
    RUN_STATE_TTL_SECONDS,
    VENDOR_TOKEN_TTL_SECONDS,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # -------------------------------------------------------------------------
    # Application Settings
    # -------------------------------------------------------------------------
    app_name: str = "catalog-sync"
    app_env: Literal["development", "staging", "production", "test"] = "development"
    debug: bool = False
    log_level: str = "INFO"

    # -------------------------------------------------------------------------
    # API Settings
    # -------------------------------------------------------------------------
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_workers: int = 4
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: str | list[str]) -> list[str]:
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",")]
        return v

    # -------------------------------------------------------------------------
    # Vendor API Integration
    # -------------------------------------------------------------------------
    vendor_api_base_url: str = "https://easytuner.net:8090"
    vendor_api_email: str = ""
    vendor_api_password: str = ""
    vendor_api_timeout: int = 30
    # The vendor serves a self-signed certificate on its API port
    vendor_verify_ssl: bool = False
    vendor_token_ttl_seconds: int = VENDOR_TOKEN_TTL_SECONDS

    # -------------------------------------------------------------------------
    # PostgreSQL Database
    # -------------------------------------------------------------------------
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_user: str = "catalog_sync"
    postgres_password: str = ""
    postgres_db: str = "catalog_sync"
    db_pool_size: int = 5
    db_max_overflow: int = 10
    db_pool_recycle: int = 1800

    @property
    def database_url(self) -> str:
        """Construct PostgreSQL connection URL."""
        return (
            f"postgresql+asyncpg://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    @property
    def database_url_sync(self) -> str:
        """Construct synchronous PostgreSQL connection URL (for Alembic)."""
        return (
            f"postgresql://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    # -------------------------------------------------------------------------
    # Redis
    # -------------------------------------------------------------------------
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: str = ""
    redis_db: int = 0

    @property
    def redis_url(self) -> str:
        """Construct Redis connection URL."""
        if self.redis_password:
            return f"redis://:{self.redis_password}@{self.redis_host}:{self.redis_port}/{self.redis_db}"
        return f"redis://{self.redis_host}:{self.redis_port}/{self.redis_db}"

    # -------------------------------------------------------------------------
    # Celery
    # -------------------------------------------------------------------------
    celery_broker_url: str = ""
    celery_result_backend: str = ""

    @property
    def celery_broker(self) -> str:
        """Get Celery broker URL, defaulting to Redis URL."""
        return self.celery_broker_url or self.redis_url

    @property
    def celery_backend(self) -> str:
        """Get Celery result backend URL, defaulting to Redis URL."""
        return self.celery_result_backend or self.redis_url

    # -------------------------------------------------------------------------
    # Sync Settings
    # -------------------------------------------------------------------------
    sync_batch_size: int = DEFAULT_SYNC_BATCH_SIZE
    run_state_ttl_seconds: int = RUN_STATE_TTL_SECONDS
    auto_sync_enabled: bool = False
    auto_sync_time: str = "03:00"
    log_retention_days: int = LOG_RETENTION_DAYS
    media_root: str = "media/catalog"

    @field_validator("sync_batch_size", mode="before")
    @classmethod
    def clamp_batch_size(cls, v: int | str) -> int:
        return max(MIN_SYNC_BATCH_SIZE, min(MAX_SYNC_BATCH_SIZE, int(v)))

    @field_validator("auto_sync_time")
    @classmethod
    def validate_auto_sync_time(cls, v: str) -> str:
        hour, _, minute = v.partition(":")
        if not (hour.isdigit() and minute.isdigit()):
            raise ValueError("auto_sync_time must be formatted as HH:MM")
        if not (0 <= int(hour) < 24 and 0 <= int(minute) < 60):
            raise ValueError("auto_sync_time must be a valid time of day")
        return f"{int(hour):02d}:{int(minute):02d}"

    @property
    def auto_sync_hour(self) -> int:
        return int(self.auto_sync_time.split(":")[0])

    @property
    def auto_sync_minute(self) -> int:
        return int(self.auto_sync_time.split(":")[1])


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
