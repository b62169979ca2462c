"""Telegram delivery channel.

Creates a new ``httpx.AsyncClient`` per call (short-lived, no pooling).
``send`` reports failure as False and never raises for remote errors.
"""

import logging

import httpx

from hubrelay.notifications.config import NotificationConfig

logger = logging.getLogger(__name__)


class TelegramChannel:
    """Sends messages through the Telegram Bot API ``sendMessage`` method."""

    def __init__(
        self,
        bot_token: str | None,
        config: NotificationConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._token = bot_token
        self._config = config or NotificationConfig()
        self._transport = transport

    def _build_payload(self, chat_id: str, text: str) -> dict:
        return {
            "chat_id": chat_id,
            "text": text,
            "parse_mode": self._config.parse_mode,
            "disable_web_page_preview": not self._config.link_preview,
        }

    async def send(self, chat_id: str, text: str) -> bool:
        """Deliver ``text`` to one chat.

        Returns:
            True if Telegram accepted the message, False otherwise.
        """
        if not self._token:
            logger.warning("Telegram bot token not configured, dropping message to %s", chat_id)
            return False

        url = f"{self._config.api_base.rstrip('/')}/bot{self._token}/sendMessage"
        try:
            async with httpx.AsyncClient(
                timeout=self._config.timeout, transport=self._transport
            ) as client:
                resp = await client.post(url, json=self._build_payload(chat_id, text))
                if resp.is_success:
                    return True
                logger.warning(
                    "Telegram returned %d for chat %s: %s",
                    resp.status_code, chat_id, resp.text[:200],
                )
                return False
        except httpx.TimeoutException:
            logger.warning("Telegram send timed out for chat %s", chat_id)
            return False
        except Exception as e:
            logger.warning("Telegram send failed for chat %s: %s", chat_id, e)
            return False
