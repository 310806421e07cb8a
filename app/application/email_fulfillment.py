"""
Email report pipeline: select entries for the period, render the attachment,
hand the message to the email sender. Nothing is persisted here; the caller
owns the subscription bookkeeping.
"""
import logging
from datetime import date

from sqlalchemy.orm import Session

from app.application.content_selector import entries_in_range
from app.application.email_body import build_html, build_subject
from app.application.fulfillment import EMPTY, SENT, UNREACHABLE, FulfillmentResult
from app.infrastructure.db.models import User
from app.infrastructure.integrations.base import ArtifactRenderer, EmailMessage, EmailSender
from app.infrastructure.integrations.resend_email import attachment

logger = logging.getLogger(__name__)


class EmailFulfillmentPipeline:
    def __init__(self, sender: EmailSender, renderer: ArtifactRenderer):
        self.sender = sender
        self.renderer = renderer

    def run(
        self,
        db: Session,
        user: User,
        *,
        frequency: str,
        period_start: date,
        period_end: date,
        entry_types: str = "both",
    ) -> FulfillmentResult:
        if not user.email:
            return FulfillmentResult(UNREACHABLE, detail="No email address on account")

        entries = entries_in_range(db, user.id, period_start, period_end, entry_types)
        if not entries:
            return FulfillmentResult(EMPTY, detail="No entries for this period", entry_count=0)

        title = f"{user.display_name or 'My Journal'}: {period_start} to {period_end}"
        artifact = self.renderer.render(
            entries, title=title, key=f"email/{user.id}/{period_start}-{period_end}",
        )
        message = EmailMessage(
            to=user.email,
            subject=build_subject(frequency, period_start, period_end),
            html=build_html(user.display_name or "there", frequency, period_start, period_end, len(entries)),
            attachments=[attachment(f"journal-{period_start}-to-{period_end}.txt", artifact.interior)],
        )
        self.sender.send(message)
        logger.info(
            "Journal email sent to user_id=%s (%s, %d entries)", user.id, frequency, len(entries),
        )
        return FulfillmentResult(SENT, entry_count=len(entries))
