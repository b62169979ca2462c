"""Inbound hub webhook: handshake and delivery handling."""

from hubrelay.webhook.parser import FeedEntry, FeedParseError, parse_feed
from hubrelay.webhook.receiver import WebhookReceiver, WebhookResponse

__all__ = ["FeedEntry", "FeedParseError", "WebhookReceiver", "WebhookResponse", "parse_feed"]
