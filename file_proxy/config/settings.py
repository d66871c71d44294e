"""
Application configuration using Pydantic settings.

Configuration is loaded from environment variables with sensible defaults.
Using Pydantic's BaseSettings means we get:
- Type validation at startup (fail fast if config is wrong)
- Documentation of what's required vs optional
- Easy testing with different configurations

Mock mode enables local development without a real bucket.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _split_csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    For lists (like binary_media_types), use comma-separated values in env.
    """

    # API Configuration
    api_title: str = "File Proxy API"
    api_version: str = "0.1.0"
    stage_name: str = Field(
        default="v1",
        description="Stage the API is published under; routes live at /{stage_name}/users/..."
    )

    # S3 Storage Configuration
    s3_bucket_name: str = Field(
        default="",
        description="Bucket holding user files. Required unless in mock mode."
    )
    s3_region: str = Field(
        default="us-east-1",
        description="AWS region of the bucket"
    )
    s3_endpoint_url: Optional[str] = Field(
        default=None,
        description="Custom endpoint for S3-compatible stores (MinIO, R2). Leave unset for AWS."
    )
    s3_access_key_id: Optional[str] = Field(
        default=None,
        description="Access key. When unset, boto3's default credential chain is used."
    )
    s3_secret_access_key: Optional[str] = Field(
        default=None,
        description="Secret key paired with s3_access_key_id"
    )
    s3_max_attempts: int = Field(
        default=3,
        description="boto3 retry attempts. Retries happen in the storage client only."
    )
    s3_strict_delete: bool = Field(
        default=True,
        description="Check the key exists before DELETE so a missing file reports 404."
    )
    storage_mock_mode: bool = Field(
        default=False,
        description="Use in-memory storage instead of S3. Enables local dev without a bucket."
    )

    # Integration Mapping
    cors_allow_origin: str = Field(
        default="*",
        description="Value of Access-Control-Allow-Origin on every response"
    )
    cors_allow_headers: str = Field(
        default="Content-Type,Authorization",
        description="Comma-separated request headers browsers may send"
    )
    cors_allow_methods: str = Field(
        default="OPTIONS,POST,PUT,GET,DELETE",
        description="Declared method superset, advertised for paths outside the two resources"
    )
    binary_media_types: str = Field(
        default="image/*,application/octet-stream,application/pdf,application/zip,audio/*,video/*",
        description="Comma-separated media patterns whose bodies are passed through as raw bytes"
    )
    max_upload_size_mb: int = Field(
        default=10,
        description="Maximum upload size in MB. Larger bodies are rejected before reaching storage."
    )
    backend_timeout_seconds: float = Field(
        default=29.0,
        description="Upper bound on one storage call. Expired calls answer 500."
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    data_trace_enabled: bool = Field(
        default=True,
        description="Log each translated storage call (operation, key, forwarded headers)"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @property
    def stage_prefix(self) -> str:
        """Path prefix for the stage, e.g. '/v1'. Empty when no stage is set."""
        stage = self.stage_name.strip("/")
        return f"/{stage}" if stage else ""

    @property
    def cors_allow_headers_list(self) -> list[str]:
        return _split_csv(self.cors_allow_headers)

    @property
    def cors_allow_methods_list(self) -> list[str]:
        return [method.upper() for method in _split_csv(self.cors_allow_methods)]

    @property
    def binary_media_types_list(self) -> list[str]:
        """Parse comma-separated binary media patterns into a list."""
        return _split_csv(self.binary_media_types)

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_size_mb * 1024 * 1024

    def validate_required_fields(self) -> list[str]:
        """
        Validate that required fields are set based on mock mode.

        Returns list of missing required fields.
        This is separate from Pydantic validation because requirements
        depend on whether we're in mock mode.
        """
        missing = []

        if not self.storage_mock_mode:
            if not self.s3_bucket_name:
                missing.append("S3_BUCKET_NAME")
            # Keys come as a pair or not at all
            if bool(self.s3_access_key_id) != bool(self.s3_secret_access_key):
                missing.append("S3_ACCESS_KEY_ID and S3_SECRET_ACCESS_KEY (both or neither)")

        return missing


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Settings are loaded once per process.
    For tests, call get_settings.cache_clear() to reset.
    """
    return Settings()
