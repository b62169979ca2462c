"""Metadata resolver configuration.

Settings can be overridden via ``METADATA_*`` environment variables. The
API key itself comes from the central ``YOUTUBE_API_KEY`` setting.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class MetadataConfig(BaseSettings):
    """Configuration for the content API client."""

    model_config = SettingsConfigDict(
        env_prefix="METADATA_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    base_url: str = Field(
        default="https://www.googleapis.com/youtube/v3",
        description="YouTube Data API base URL",
    )
    timeout: float = Field(default=10.0, gt=0, description="Request timeout in seconds")
    cache_ttl_seconds: int = Field(
        default=3600,
        ge=0,
        description="TTL of memoized metadata (0 disables caching)",
    )
