"""
Reminder delivery: pick the nudge text and push it to the user's chat.
"""
import hashlib
import logging
from datetime import date, datetime

from app.application.fulfillment import SENT, UNREACHABLE, FulfillmentResult
from app.infrastructure.db.models import ReminderModel, User
from app.infrastructure.integrations.base import ChatSender

logger = logging.getLogger(__name__)

DAILY_MESSAGES = [
    "Hey! What happened today? Just reply to this message.",
    "Quick check-in: How's your day going? Reply with anything.",
    "Time for your daily journal! What's on your mind?",
    "Your daily writing prompt: What was the highlight of your day?",
    "A moment to reflect. Reply with whatever comes to mind.",
]


def smart_nudge_text(days: int) -> str:
    unit = "day" if days == 1 else "days"
    return f"It's been {days} {unit} since your last entry. No pressure, but we're here when you're ready!"


def select_message(reminder_id: int, reminder_type: str, local_date: date, days_since_last_entry: int | None = None) -> str:
    """Smart reminders get the inactivity nudge; the others rotate daily, stable per reminder."""
    if reminder_type == "smart" and days_since_last_entry is not None:
        return smart_nudge_text(days_since_last_entry)
    digest = hashlib.sha256(f"{reminder_id}:{local_date.isoformat()}".encode("utf-8")).digest()
    idx = int.from_bytes(digest[:4], "big") % len(DAILY_MESSAGES)
    return DAILY_MESSAGES[idx]


class ReminderPipeline:
    def __init__(self, sender: ChatSender):
        self.sender = sender

    def deliver(
        self,
        reminder: ReminderModel,
        user: User,
        *,
        now: datetime,
        local_date: date,
        last_activity: datetime | None = None,
    ) -> FulfillmentResult:
        if not user.telegram_chat_id:
            return FulfillmentResult(UNREACHABLE, detail="No chat connected")

        days = None
        if reminder.reminder_type == "smart":
            # No entries at all reads as a very long gap
            days = (now - last_activity).days if last_activity else 999
        text = select_message(reminder.id, reminder.reminder_type, local_date, days)

        # NotificationDeliveryError propagates: the dispatcher retries next tick
        self.sender.send(user.telegram_chat_id, text)
        logger.info("Reminder %s sent to user_id=%s", reminder.id, user.id)
        return FulfillmentResult(SENT)
