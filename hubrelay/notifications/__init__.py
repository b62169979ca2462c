"""Notification delivery to Telegram chats."""

from hubrelay.notifications.channels import TelegramChannel
from hubrelay.notifications.config import NotificationConfig
from hubrelay.notifications.dispatcher import (
    AllTargetsFailed,
    DispatchReport,
    DispatchTarget,
    NotificationDispatcher,
    escape_html,
    format_message,
)

__all__ = [
    "AllTargetsFailed",
    "DispatchReport",
    "DispatchTarget",
    "NotificationConfig",
    "NotificationDispatcher",
    "TelegramChannel",
    "escape_html",
    "format_message",
]
