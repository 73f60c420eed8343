"""Application configuration using Pydantic Settings."""

from __future__ import annotations

from functools import lru_cache

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Signing / delete endpoints (served by the storefront API)
    api_base_url: str = "http://localhost:3000"

    # Metadata store (Supabase REST)
    supabase_url: str
    supabase_key: str
    metadata_timeout_seconds: float = 10.0

    # Object store, used to build fallback URLs
    storage_bucket: str
    storage_region: str = "us-east-1"
    storage_domain: str = "wasabisys.com"

    # Signing
    signing_max_attempts: int = 3
    signing_backoff_seconds: float = 1.0
    signing_timeout_seconds: float = 5.0
    signing_max_concurrent: int = 5
    signed_url_expiry_seconds: int = 3600

    # Caches
    asset_url_ttl_seconds: float = 30 * 60
    catalog_ttl_seconds: float = 300

    # Application
    log_level: str = "INFO"

    # Monitoring (Sentry)
    sentry_dsn: str = ""
    environment: str = "production"

    @field_validator("api_base_url", "supabase_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.strip().rstrip("/")

    @field_validator("storage_bucket", "storage_region", "storage_domain")
    @classmethod
    def not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("signing_max_attempts", "signing_max_concurrent")
    @classmethod
    def at_least_one(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be at least 1")
        return v

    @field_validator("signing_timeout_seconds", "metadata_timeout_seconds", "catalog_ttl_seconds")
    @classmethod
    def positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("must be positive")
        return v

    @field_validator("signing_backoff_seconds")
    @classmethod
    def non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("must not be negative")
        return v

    @model_validator(mode="after")
    def validate_asset_ttl(self) -> Settings:
        """Cached URLs must expire before the signing service's own expiry.

        Catalog snapshots carry resolved thumbnail URLs, so a served URL can be
        as old as both TTLs together.
        """
        if self.asset_url_ttl_seconds <= 0:
            raise ValueError("ASSET_URL_TTL_SECONDS must be positive")
        if self.asset_url_ttl_seconds + self.catalog_ttl_seconds >= self.signed_url_expiry_seconds:
            raise ValueError(
                "ASSET_URL_TTL_SECONDS + CATALOG_TTL_SECONDS must be shorter than "
                f"SIGNED_URL_EXPIRY_SECONDS ({self.signed_url_expiry_seconds})"
            )
        return self

    @property
    def sentry_enabled(self) -> bool:
        return bool(self.sentry_dsn)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
