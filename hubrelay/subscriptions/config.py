"""Subscription lifecycle configuration.

All settings can be overridden via ``SUBSCRIPTIONS_*`` environment
variables. The hub and callback URLs come from the central settings.
"""

from typing import Annotated

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class SubscriptionConfig(BaseSettings):
    """Configuration for hub handshakes and the renewal sweep."""

    model_config = SettingsConfigDict(
        env_prefix="SUBSCRIPTIONS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    topic_template: str = Field(
        default="https://www.youtube.com/xml/feeds/videos.xml?channel_id={source_id}",
        description="Topic URL built from a source id",
    )
    lease_days: float = Field(
        default=18.0,
        gt=0,
        description="Lease the hub grants on a successful subscribe",
    )
    request_timeout: float = Field(default=10.0, gt=0)

    # Handshake retry: first attempt plus max_retries, waiting retry_delays between
    retry_delays: Annotated[list[float], NoDecode] = Field(
        default_factory=lambda: [1.0, 5.0, 15.0],
        description="Seconds to wait before each retry",
    )
    max_retries: int = Field(default=3, ge=0, le=10)

    # Renewal sweep
    lookahead_hours: float = Field(
        default=48.0,
        gt=0,
        description="Renew subscriptions expiring within this window",
    )
    sweep_interval_hours: float = Field(default=6.0, gt=0)
    startup_delay_seconds: float = Field(
        default=30.0,
        ge=0,
        description="Delay before the first sweep after startup",
    )
    inter_call_delay_seconds: float = Field(
        default=1.0,
        ge=0,
        description="Pause between hub calls during a sweep",
    )

    # Health reporting
    expiring_soon_hours: float = Field(default=48.0, gt=0)

    @field_validator("retry_delays", mode="before")
    @classmethod
    def _split_delays(cls, value: object) -> object:
        if isinstance(value, str):
            return [float(v) for v in value.split(",") if v.strip()]
        return value

    def topic_for(self, source_id: str) -> str:
        return self.topic_template.format(source_id=source_id)
