"""Runtime configuration for the Catalog API."""
from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .utils.paths import default_database_url


class CatalogSettings(BaseSettings):
    """Environment-aware settings for the catalog service."""

    database_url: str = Field(
        default_factory=default_database_url,
        description="SQLAlchemy connection URL for the catalog store.",
    )
    database_echo: bool = Field(
        default=False, description="Enable SQL echo for debugging queries."
    )
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Connection URL for the Redis-backed sync job queue.",
    )
    redis_queue_name: str = Field(
        default="catalog-sync",
        description="RQ queue name used for sync jobs.",
    )
    queue_worker_name: str = Field(
        default="catalog-worker",
        description="Identifier used when reporting job worker executions.",
    )
    tmdb_api_key: str | None = Field(
        default=None, description="TMDB API key used by the sync engine."
    )
    tmdb_base_url: str = Field(
        default="https://api.themoviedb.org/3",
        description="Base URL of the TMDB REST API.",
    )
    tmdb_language: str = Field(default="en-US", description="Language requested from TMDB.")
    tmdb_timeout: float = Field(default=10.0, description="Per-request TMDB timeout in seconds.")
    tmdb_retries: int = Field(
        default=2, ge=0, description="Retries for network errors, 429 and 5xx responses."
    )
    allowed_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:3000"],
        description="Origins allowed by the CORS middleware.",
    )
    jwt_secret: str | None = Field(
        default=None, description="Secret used to verify bearer tokens."
    )
    jwt_algorithm: str = Field(default="HS256", description="Bearer token signing algorithm.")
    admin_roles: list[str] = Field(
        default_factory=lambda: ["admin", "super_admin"],
        description="Token roles allowed to call admin endpoints.",
    )
    sync_schedule: str = Field(
        default="0 2 * * *", description="Cron expression for the recurring sync."
    )
    sync_schedule_enabled: bool = Field(
        default=False, description="Start the recurring sync when the API starts."
    )
    sync_movie_categories: list[str] = Field(
        default_factory=lambda: ["popular", "trending"],
        description="TMDB movie categories pulled by a sync run.",
    )
    sync_tv_categories: list[str] = Field(
        default_factory=lambda: ["popular"],
        description="TMDB TV categories pulled by a sync run.",
    )
    sync_page_cap: int = Field(default=5, ge=1, description="Maximum pages fetched per category.")
    sync_batch_size: int = Field(
        default=10, ge=1, le=50, description="Items processed concurrently within a page."
    )
    sync_batch_delay: float = Field(
        default=1.0, ge=0, description="Seconds slept between item batches."
    )
    sync_refresh_existing: bool = Field(
        default=False, description="Re-fetch and update items already in the catalog."
    )
    sync_job_lease_seconds: int = Field(
        default=900,
        ge=1,
        description="Seconds after which a running job without progress may be restarted.",
    )
    cache_ttl_seconds: float = Field(
        default=300.0, ge=0, description="Lifetime of cached list responses."
    )
    cache_max_entries: int = Field(
        default=1024, ge=1, description="Upper bound on cached list responses."
    )
    log_level: str = Field(default="INFO", description="Root log level for entry points.")

    model_config = SettingsConfigDict(
        env_prefix="CATALOG_",
        env_file=".env",
        env_file_encoding="utf-8",
    )
