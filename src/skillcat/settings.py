"""Runtime settings."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_KNOWN_ORGS = (
    "anthropics",
    "openai",
    "google",
    "microsoft",
    "facebook",
    "meta",
    "vercel",
    "cloudflare",
    "supabase",
    "prisma",
    "drizzle-team",
    "sveltejs",
    "vuejs",
    "reactjs",
)


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(
        env_prefix="SKILLCAT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    output_dir: Path = Path("./data")
    database_url: str | None = None
    blob_dir: Path | None = None
    log_level: str = "INFO"

    concurrency: int = Field(default=20, ge=1, le=200)
    rate_limit_per_second: float = Field(default=10.0, gt=0)
    request_timeout: float = Field(default=30.0, ge=1, le=120)

    github_token: SecretStr | None = None
    github_api_url: str = "https://api.github.com"
    github_graphql_url: str = "https://api.github.com/graphql"
    github_api_version: str = "2022-11-28"
    graphql_batch_size: int = Field(default=50, ge=1, le=50)
    rate_limit_window: int = Field(default=200, ge=10, le=5000)
    rate_limit_threshold_percent: float = Field(default=5.0, ge=0.0, le=100.0)

    r2_endpoint_url: str | None = None
    r2_access_key_id: SecretStr | None = None
    r2_secret_access_key: SecretStr | None = None
    r2_bucket_name: str = "skillcat"

    # Admission & ingestion
    dot_folder_star_allowance: int = Field(default=1000, ge=0)
    max_files: int = Field(default=50, ge=1, le=1000)
    max_file_bytes: int = Field(default=512 * 1024, ge=1)
    max_total_bytes: int = Field(default=5 * 1024 * 1024, ge=1)
    trusted_star_threshold: int = Field(default=100, ge=0)
    duplicate_original_min_stars: int = Field(default=1000, ge=0)

    # Classification
    ai_star_threshold: int = Field(default=100, ge=0)
    known_orgs: tuple[str, ...] = DEFAULT_KNOWN_ORGS
    openrouter_api_key: SecretStr | None = None
    openrouter_api_url: str = "https://openrouter.ai/api/v1"
    ai_model: str | None = None
    free_models: str = ""
    deepseek_api_key: SecretStr | None = None
    deepseek_api_url: str = "https://api.deepseek.com"
    deepseek_model: str = "deepseek-chat"
    ai_content_char_budget: int = Field(default=4000, ge=100)
    ai_timeout: float = Field(default=30.0, ge=1, le=300)
    fallback_category: str = "productivity"

    # Scheduling
    flagged_update_cap: int = Field(default=100, ge=1)
    tier_update_cap: int = Field(default=500, ge=1)
    cool_update_cap: int = Field(default=125, ge=1)
    write_batch_size: int = Field(default=100, ge=1, le=100)
    listing_size: int = Field(default=100, ge=1, le=100)
    flag_ttl_seconds: int = Field(default=3600, ge=60)
    download_retention_days: int = Field(default=35, ge=31)

    # Archive / resurrection
    archive_candidate_limit: int = Field(default=1000, ge=1)
    quarterly_star_threshold: int = Field(default=50, ge=0)
    on_demand_star_threshold: int = Field(default=20, ge=0)
    recent_activity_days: int = Field(default=90, ge=1)
    resurrection_batch_delay_seconds: float = Field(default=1.0, ge=0.0)

    # Queue
    queue_batch_size: int = Field(default=10, ge=1, le=100)
    queue_visibility_timeout: float = Field(default=300.0, ge=1)
    queue_backoff_base_seconds: float = Field(default=30.0, ge=0)
    queue_backoff_max_seconds: float = Field(default=3600.0, ge=1)
    queue_max_attempts: int = Field(default=5, ge=1, le=100)

    prefect_api_url: str | None = None

    @property
    def resolved_database_url(self) -> str:
        """Database URL, defaulting to a SQLite file under ``output_dir``."""
        if self.database_url:
            return self.database_url
        return f"sqlite:///{self.output_dir / 'skillcat.db'}"

    @property
    def resolved_blob_dir(self) -> Path:
        return self.blob_dir or self.output_dir / "blobs"

    @property
    def free_model_pool(self) -> list[str]:
        """Alternate AI models, configured as a comma-separated list."""
        return [model.strip() for model in self.free_models.split(",") if model.strip()]
