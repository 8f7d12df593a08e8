from functools import lru_cache
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="allow")

    environment: Literal["development", "staging", "production"] = "development"
    database_url: str = "sqlite+aiosqlite:///./rewardhub.db"
    database_echo: bool = False
    sqlite_busy_timeout_seconds: float = 15.0

    # Tracing
    tracing_enabled: bool = True
    otel_exporter_otlp_endpoint: str | None = None
    otel_exporter_otlp_headers: str | None = None

    # Internal API security (profile sync push, observability snapshots)
    internal_api_key: str = ""

    # Claim transaction
    claim_max_attempts: int = 2

    @field_validator("claim_max_attempts", mode="before")
    @classmethod
    def _clamp_claim_attempts(cls, value: object) -> int:
        try:
            attempts = int(value)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return 2
        return min(max(attempts, 1), 3)

    # Display-side balance cache (members held before least-recently-updated eviction)
    profile_sync_max_entries: int = 10_000

    # Catalog queries
    catalog_default_page_size: int = 12
    catalog_max_page_size: int = 100

    # Claim notifications
    notifications_enabled: bool = True
    notification_queue_size: int = 1000
    notification_brand_name: str = "RewardHub"
    smtp_host: str | None = None
    smtp_port: int = 587
    smtp_username: str | None = None
    smtp_password: str | None = None
    smtp_use_tls: bool = True
    smtp_sender_email: str | None = None


@lru_cache
def get_settings() -> Settings:
    return Settings()  # type: ignore[arg-type]


settings = get_settings()
