"""Application settings using Pydantic Settings."""

from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Signal source credentials (a missing key disables that source only)
    open_pagerank_api_key: SecretStr | None = Field(default=None)
    moz_access_id: SecretStr | None = Field(default=None)
    moz_secret_key: SecretStr | None = Field(default=None)
    google_safe_browsing_api_key: SecretStr | None = Field(default=None)

    # HTTP Settings
    http_timeout_seconds: float = Field(default=15.0)
    user_agent: str = Field(
        default=(
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
            "AppleWebKit/537.36 (KHTML, like Gecko) "
            "Chrome/120.0.0.0 Safari/537.36"
        )
    )

    # Rate limits
    api_requests_per_minute: int = Field(default=10)
    website_requests_per_minute: int = Field(default=30)

    # Worker pools
    enrichment_concurrency: int = Field(default=3)
    enrollment_concurrency: int = Field(default=3)
    job_attempts: int = Field(default=3)
    enrollment_job_attempts: int = Field(default=5)
    retry_backoff_seconds: float = Field(default=5.0)

    # Scheduler
    enrichment_interval_seconds: int = Field(default=300)
    auto_enrollment_interval_seconds: int = Field(default=600)
    enrichment_batch_size: int = Field(default=50)
    auto_enrollment_batch_size: int = Field(default=100)

    # Languages
    supported_languages: list[str] = Field(
        default=["fr", "en", "de", "es", "pt", "ru", "ar", "zh", "hi"]
    )
    fallback_language: str = Field(default="en")

    # Auto-enrollment defaults (stored "auto_enrollment" setting overrides these)
    auto_enrollment_enabled: bool = Field(default=False)
    auto_enrollment_max_per_hour: int = Field(default=50)
    auto_enrollment_max_per_day: int = Field(default=500)
    auto_enrollment_min_score: int = Field(default=50)
    auto_enrollment_min_tier: int = Field(default=3)
    auto_enrollment_allowed_categories: list[str] = Field(
        default=["blogger", "influencer", "media"]
    )
    auto_enrollment_allowed_languages: list[str] = Field(
        default=["fr", "en", "de", "es", "pt"]
    )
    auto_enrollment_require_verified_email: bool = Field(default=True)

    # Supabase Settings
    supabase_url: str = Field(default="")
    supabase_service_role_key: SecretStr | None = Field(default=None)

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(default="INFO")
    log_format: Literal["console", "json"] = Field(default="console")


settings = Settings()
