"""Application Configuration — environment-driven settings via pydantic-settings.

Invariants:
    - All secrets (database URL, encryption key) come from environment variables
    - get_settings() is cached (lru_cache) — single instance per process

Design Decisions:
    - pydantic-settings over raw os.environ: validation, type coercion, .env support
    - Defaults provided for all non-secret settings
"""

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from stockroom.core.backup_health import HealthThresholds
from stockroom.core.retention import RetentionPolicy


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Database
    database_url: str = "postgresql+asyncpg://stockroom:stockroom@db:5432/stockroom"

    @field_validator("database_url", mode="before")
    @classmethod
    def convert_postgres_url(cls, v: str) -> str:
        """Hosting platforms hand out postgresql:// but asyncpg needs postgresql+asyncpg://."""
        if isinstance(v, str) and v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v

    database_pool_size: int = 20
    database_max_overflow: int = 10

    # Backup storage
    backup_dir: str = "./backups"
    backup_encryption_key: str | None = None  # Fernet key (urlsafe base64, 32 bytes)

    # Health thresholds
    backup_storage_limit_bytes: int = 10 * 1024 * 1024 * 1024
    backup_storage_warning_ratio: float = 0.8
    backup_failed_warning_threshold: int = 1
    backup_failed_error_threshold: int = 3
    backup_max_age_hours: int = 24

    # Stale IN_PROGRESS sweep
    stale_backup_minutes: int = 60
    backup_sweep_interval_seconds: int = 300

    # Retention
    retention_daily_days: int = 7
    retention_weekly_weeks: int = 4
    retention_monthly_months: int = 6

    # API
    cors_origins: list[str] = ["http://localhost:3000"]

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"

    def health_thresholds(self) -> HealthThresholds:
        return HealthThresholds(
            storage_limit_bytes=self.backup_storage_limit_bytes,
            storage_warning_ratio=self.backup_storage_warning_ratio,
            failed_warning_threshold=self.backup_failed_warning_threshold,
            failed_error_threshold=self.backup_failed_error_threshold,
            max_age_hours=self.backup_max_age_hours,
        )

    def retention_policy(self) -> RetentionPolicy:
        return RetentionPolicy(
            daily_days=self.retention_daily_days,
            weekly_weeks=self.retention_weekly_weeks,
            monthly_months=self.retention_monthly_months,
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()
