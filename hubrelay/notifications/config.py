"""Notification delivery configuration.

Settings can be overridden via ``NOTIFICATIONS_*`` environment variables.
The bot token comes from the central ``TELEGRAM_BOT_TOKEN`` setting.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class NotificationConfig(BaseSettings):
    """Configuration for Telegram delivery."""

    model_config = SettingsConfigDict(
        env_prefix="NOTIFICATIONS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    api_base: str = Field(
        default="https://api.telegram.org",
        description="Telegram Bot API base URL",
    )
    timeout: float = Field(default=10.0, gt=0, description="Per-send timeout in seconds")
    link_preview: bool = Field(
        default=True,
        description="Let Telegram render a preview of the video link",
    )
    parse_mode: str = Field(default="HTML", description="Telegram parse_mode")
