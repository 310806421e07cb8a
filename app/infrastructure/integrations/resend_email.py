"""
Email delivery through the Resend HTTP API.
"""
import base64

import requests

from app.domain.errors import NotificationDeliveryError
from app.infrastructure.integrations.base import EmailMessage, EmailSender

RESEND_API_URL = "https://api.resend.com/emails"


def attachment(filename: str, content: bytes) -> dict:
    return {"filename": filename, "content": base64.b64encode(content).decode("ascii")}


class ResendEmailSender(EmailSender):
    def __init__(self, api_key: str, from_email: str, timeout: float = 20):
        self.api_key = api_key
        self.from_email = from_email
        self.timeout = timeout

    def send(self, message: EmailMessage) -> None:
        payload = {
            "from": self.from_email,
            "to": [message.to],
            "subject": message.subject,
            "html": message.html,
        }
        if message.attachments:
            payload["attachments"] = message.attachments
        try:
            resp = requests.post(
                RESEND_API_URL,
                json=payload,
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise NotificationDeliveryError(f"Resend request failed: {exc}") from exc
        if not resp.ok:
            raise NotificationDeliveryError(f"Resend API error ({resp.status_code}): {resp.text[:200]}")
