"""
Configuration and settings for the comments gateway.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_UPLOAD_ORIGIN_PATTERNS = (
    r"^https://.*\.netlify\.app$",
    r"^https://.*\.vercel\.app$",
    r"^https://.*iwish.*\.(com|cn)$",
    r"^http://localhost:\d+$",
    r"^http://127\.0\.0\.1:\d+$",
)


class Settings(BaseSettings):
    """Environment-backed settings for the gateway service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/functions/v1")
    log_level: str = Field(default="INFO")

    # Comments project (database + storage, service credential)
    supabase_url: Optional[str] = Field(default=None)
    supabase_service_role_key: Optional[str] = Field(default=None)
    database_url: Optional[str] = Field(default=None)

    # Main project, used only for access token introspection
    main_supabase_url: Optional[str] = Field(default=None)
    main_supabase_anon_key: Optional[str] = Field(default=None)
    main_auth_timeout_seconds: Optional[float] = Field(default=None)

    # Comma-separated; empty means every origin is accepted.
    allowed_origins: str = Field(default="")
    upload_origin_patterns: tuple[str, ...] = Field(
        default=DEFAULT_UPLOAD_ORIGIN_PATTERNS
    )

    # Attachments
    comments_bucket: str = Field(default="comments-attachments")
    comments_fileurl_expires: int = Field(default=600, ge=1)
    comments_upload_expires: int = Field(default=7200, ge=1)
    image_max_mb: int = Field(default=5, ge=1)
    file_max_mb: int = Field(default=10, ge=1)

    # S3-compatible endpoint of the comments project storage
    storage_s3_endpoint: Optional[str] = Field(default=None)
    storage_s3_region: Optional[str] = Field(default=None)
    aws_access_key_id: Optional[str] = Field(default=None)
    aws_secret_access_key: Optional[str] = Field(default=None)

    # Development toggles
    use_in_memory_backends: bool = Field(
        default=False,
        validation_alias=AliasChoices(
            "use_in_memory_backends", "GATEWAY_USE_IN_MEMORY_BACKENDS"
        ),
    )

    @property
    def allowed_origin_list(self) -> list[str]:
        return [o.strip() for o in self.allowed_origins.split(",") if o.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
