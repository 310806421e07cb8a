"""
Telegram Bot API sender for reminder nudges.
"""
import logging

import requests

from app.domain.errors import NotificationDeliveryError
from app.infrastructure.integrations.base import ChatSender

logger = logging.getLogger(__name__)


class TelegramSender(ChatSender):
    def __init__(self, bot_token: str, timeout: float = 5):
        self.bot_token = bot_token
        self.timeout = timeout

    def send(self, chat_id: str, text: str) -> None:
        try:
            resp = requests.post(
                f"https://api.telegram.org/bot{self.bot_token}/sendMessage",
                json={"chat_id": chat_id, "text": text},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise NotificationDeliveryError(f"Telegram request failed: {exc}") from exc
        if resp.status_code != 200:
            logger.warning("Telegram send failed for chat_id=%s (HTTP %d)", chat_id, resp.status_code)
            raise NotificationDeliveryError(f"Telegram delivery failed (HTTP {resp.status_code})")
