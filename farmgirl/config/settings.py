"""
Application configuration using Pydantic settings.

Configuration is loaded from environment variables with sensible defaults.
Using Pydantic's BaseSettings means we get:
- Type validation at startup (fail fast if config is wrong)
- Documentation of what's required vs optional
- Easy testing with different configurations

Mock modes enable local development without S3 or FFmpeg.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..core.media.timeouts import TimeoutPolicy


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    For lists (like api_keys), use comma-separated values in env.
    """

    # API Configuration
    api_title: str = "Farm Girl Media API"
    api_version: str = "v1"
    api_keys: str = Field(
        default="dev-key-1",
        description="Comma-separated admin API keys. Required for uploads, deletes and poster generation."
    )

    # S3 / R2 Storage Configuration
    s3_bucket: str = Field(
        default="",
        description="Bucket holding uploads, derivatives and posters"
    )
    aws_region: str = Field(
        default="us-east-1",
        description="Bucket region. Use 'auto' for R2."
    )
    s3_endpoint_url: Optional[str] = Field(
        default=None,
        description="Custom S3-compatible endpoint (R2, MinIO). Leave unset for AWS."
    )
    aws_access_key_id: str = Field(
        default="",
        description="Access key. Empty means boto3's default credential chain."
    )
    aws_secret_access_key: str = Field(default="")
    s3_public_url_base: str = Field(
        default="",
        description="CDN or public base URL for objects, e.g. https://cdn.example.com"
    )
    storage_mock_mode: bool = Field(
        default=False,
        description="Use in-memory object store instead of S3. Enables local dev without a bucket."
    )

    # Upload coordination
    upload_url_ttl_seconds: int = Field(
        default=900,
        description="Lifetime of presigned upload URLs (15 minutes)."
    )
    verify_uploads: bool = Field(
        default=False,
        description="HEAD the object before recording an upload as complete."
    )

    # Derivatives and posters
    derivative_cache_control: str = Field(
        default="public, max-age=31536000, immutable",
        description="Cache-Control stored on derivatives and sent with redirects."
    )
    poster_offset_seconds: float = Field(
        default=2.0,
        description="Where in the video the poster frame is taken."
    )
    poster_width: int = Field(
        default=640,
        description="Maximum poster width in pixels."
    )
    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"
    ffmpeg_command_timeout_seconds: float = Field(
        default=180.0,
        description="Upper bound for one ffmpeg/ffprobe run. The size-class timeouts still apply on top."
    )
    video_mock_mode: bool = Field(
        default=False,
        description="Use mock poster extraction. Enables local dev without FFmpeg."
    )

    # Timeouts by payload size class
    fetch_timeout_seconds: float = 60.0
    small_payload_max_mb: int = 5
    medium_payload_max_mb: int = 50
    small_transform_timeout_seconds: float = 15.0
    medium_transform_timeout_seconds: float = 60.0
    large_transform_timeout_seconds: float = 180.0

    # Metadata index
    data_dir: str = Field(
        default="data",
        description="Directory holding photos.json, videos.json and sponsors.json"
    )
    index_mock_mode: bool = Field(
        default=False,
        description="Keep the metadata index in memory instead of JSON files."
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # CORS
    cors_origins: str = Field(
        default="*",
        description="Comma-separated list of allowed CORS origins."
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @property
    def api_keys_list(self) -> list[str]:
        """Parse comma-separated API keys into a list."""
        return [key.strip() for key in self.api_keys.split(",") if key.strip()]

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def timeout_policy(self) -> TimeoutPolicy:
        mib = 1024 * 1024
        return TimeoutPolicy(
            fetch_seconds=self.fetch_timeout_seconds,
            small_max_bytes=self.small_payload_max_mb * mib,
            medium_max_bytes=self.medium_payload_max_mb * mib,
            small_seconds=self.small_transform_timeout_seconds,
            medium_seconds=self.medium_transform_timeout_seconds,
            large_seconds=self.large_transform_timeout_seconds,
        )

    def validate_required_fields(self) -> list[str]:
        """
        Validate that required fields are set based on mock mode settings.

        Returns list of missing required fields.
        This is separate from Pydantic validation because requirements
        depend on whether we're in mock mode.
        """
        missing = []

        if not self.api_keys_list:
            missing.append("API_KEYS")

        # bucket only required if not in mock mode; credentials may come
        # from the default chain
        if not self.storage_mock_mode and not self.s3_bucket:
            missing.append("S3_BUCKET")

        return missing


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache means we only load settings once per process.
    For tests, you can call get_settings.cache_clear() to reset.
    """
    return Settings()
