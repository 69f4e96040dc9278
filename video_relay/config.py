"""
Video Relay Configuration Management Module

Loads and validates every environment variable the relay needs using
Pydantic Settings:
- Application settings (name, environment, debug mode, logging)
- Google Drive destination folder, scopes, timeouts and retries
- The base64-encoded service account key used for Drive access
- Upload limits (maximum size, chunked-route threshold, staging directory)
- CORS origins and methods
- Redis-backed per-client rate limiting

All settings support environment variable overrides and .env file loading.
"""

from functools import lru_cache
from typing import Annotated

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


DEFAULT_DRIVE_FOLDER_ID = "1VuEY77a5T1AIN2594fTk7NEOlky_mOnp"


class Settings(BaseSettings):
    """
    Configuration settings for the video relay.

    Required secrets (the Drive service account key) are only checked when the
    application starts, so the settings object can be built in tests without one.

    Example usage:
        ```python
        from video_relay.config import get_settings

        settings = get_settings()
        print(f"Uploading into folder {settings.drive_folder_id}")
        ```
    """

    # =========================================================================
    # Application Settings
    # =========================================================================

    app_name: str = Field(
        default="VIDEO-RELAY",
        description="Application name displayed in API documentation and logs",
    )

    app_env: str = Field(
        default="development",
        description="Application environment (development, staging, production, testing)",
    )

    debug: bool = Field(default=False, description="Enable debug mode and hot-reload")

    log_level: str = Field(
        default="info", description="Logging level (debug, info, warning, error, critical)"
    )

    json_logs: bool = Field(
        default=True, description="Emit structured JSON log lines instead of plain text"
    )

    host: str = Field(default="0.0.0.0", description="Host address for the API server to bind to")

    port: int = Field(default=3000, description="Port number for the API server", ge=1, le=65535)

    cors_origins: Annotated[list[str], NoDecode] = Field(
        default=["*"],
        description="List of allowed CORS origins",
    )

    cors_methods: Annotated[list[str], NoDecode] = Field(
        default=["GET", "POST", "PATCH", "OPTIONS"],
        description="List of allowed CORS methods",
    )

    # =========================================================================
    # Google Drive Configuration
    # =========================================================================

    google_key_base64: str | None = Field(
        default=None,
        description="Base64-encoded Google service account JSON key (GOOGLE_KEY_BASE64)",
    )

    drive_folder_id: str = Field(
        default=DEFAULT_DRIVE_FOLDER_ID,
        description="Drive folder id that receives every uploaded video",
    )

    drive_scopes: Annotated[list[str], NoDecode] = Field(
        default=["https://www.googleapis.com/auth/drive.file"],
        description="OAuth scopes requested for the service account",
    )

    drive_timeout_seconds: int = Field(
        default=120,
        description="Socket timeout for a single Drive API call",
        ge=1,
        le=3600,
    )

    drive_num_retries: int = Field(
        default=3,
        description="Retries for transient Drive transport errors (5xx, 429, socket errors)",
        ge=0,
        le=10,
    )

    make_public: bool = Field(
        default=True,
        description="Grant anyone-with-the-link read access to uploaded videos",
    )

    # =========================================================================
    # Upload Settings
    # =========================================================================

    max_upload_size_mb: int = Field(
        default=100,
        description="Maximum video upload size in megabytes",
        ge=1,
        le=5120,
    )

    chunked_upload_threshold_mb: int = Field(
        default=50,
        description="Size at or above which the chunked route answers 501",
        ge=1,
    )

    upload_temp_dir: str | None = Field(
        default=None,
        description="Directory used to stage uploads on disk (system temp dir when unset)",
    )

    # =========================================================================
    # Rate Limiting
    # =========================================================================

    redis_url: str = Field(
        default="redis://localhost:6379",
        description="Redis connection URL used by the upload rate limiter",
    )

    rate_limit_enabled: bool = Field(default=True, description="Enable upload rate limiting")

    rate_limit_max_requests: int = Field(
        default=10,
        description="Upload requests allowed per client within one window",
        ge=1,
    )

    rate_limit_window_seconds: int = Field(
        default=900,
        description="Length of the fixed rate-limit window in seconds",
        ge=1,
    )

    # =========================================================================
    # Model Configuration
    # =========================================================================

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate that log_level is a valid logging level."""
        valid_levels = {"debug", "info", "warning", "error", "critical"}
        normalized = v.lower()
        if normalized not in valid_levels:
            raise ValueError(f"Invalid log_level '{v}'. Must be one of: {', '.join(valid_levels)}")
        return normalized

    @field_validator("app_env")
    @classmethod
    def validate_app_env(cls, v: str) -> str:
        """Validate that app_env is a valid environment name."""
        valid_envs = {"development", "staging", "production", "testing"}
        normalized = v.lower()
        if normalized not in valid_envs:
            raise ValueError(f"Invalid app_env '{v}'. Must be one of: {', '.join(valid_envs)}")
        return normalized

    @field_validator("cors_origins", "cors_methods", "drive_scopes", mode="before")
    @classmethod
    def split_comma_separated(cls, v: str | list[str]) -> list[str]:
        """Parse list settings from a comma-separated string if provided as string."""
        if isinstance(v, str):
            return [item.strip() for item in v.split(",") if item.strip()]
        return v

    @field_validator("cors_methods")
    @classmethod
    def normalize_methods(cls, v: list[str]) -> list[str]:
        return [method.upper() for method in v]

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def max_upload_size_bytes(self) -> int:
        """Maximum upload size converted to bytes."""
        return self.max_upload_size_mb * 1024 * 1024

    @property
    def chunked_upload_threshold_bytes(self) -> int:
        """Chunked-route rejection threshold converted to bytes."""
        return self.chunked_upload_threshold_mb * 1024 * 1024

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env == "production"

    @property
    def expose_error_details(self) -> bool:
        """
        Whether error responses carry the underlying exception message.

        Production responses only carry a generic sentence so that Drive
        error payloads never leak to clients.
        """
        return not self.is_production


@lru_cache
def get_settings() -> Settings:
    """
    Get the global Settings instance.

    The @lru_cache decorator ensures the Settings object is created once and
    reused, without re-reading environment variables or the .env file.
    """
    return Settings()
