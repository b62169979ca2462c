"""Filter pipeline configuration.

Controls the title denylist, the authoritative metadata filters and the
processing guard. All settings can be overridden via ``FILTER_*``
environment variables; list values are comma-separated.
"""

from typing import Annotated

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

DEFAULT_KEYWORDS = ("#short", "shorts", "trailer", "clip", "reaction", "live")


class FilterConfig(BaseSettings):
    """Configuration for the worker's filter pipeline."""

    model_config = SettingsConfigDict(
        env_prefix="FILTER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    keywords: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: list(DEFAULT_KEYWORDS),
        description="Lower-cased title substrings that reject an item",
    )

    min_seconds: int = Field(
        default=210,
        ge=0,
        description="Duration must be strictly greater than this",
    )
    max_seconds: int | None = Field(
        default=None,
        ge=1,
        description="Duration must be strictly less than this (unset = no upper bound)",
    )

    require_public: bool = Field(
        default=True,
        description="Reject items whose privacy status is not 'public'",
    )
    require_hd: bool = Field(
        default=False,
        description="Require HD definition and a maxres thumbnail",
    )

    guard_ttl_seconds: int = Field(
        default=300,
        ge=1,
        description="TTL of the per-item processing guard",
    )

    @field_validator("keywords", mode="before")
    @classmethod
    def _split_keywords(cls, value: object) -> object:
        if isinstance(value, str):
            value = value.split(",")
        if isinstance(value, (list, tuple)):
            return [str(v).strip().lower() for v in value if str(v).strip()]
        return value

    @model_validator(mode="after")
    def _check_bounds(self) -> "FilterConfig":
        if self.max_seconds is not None and self.max_seconds <= self.min_seconds:
            raise ValueError("max_seconds must be greater than min_seconds")
        return self
