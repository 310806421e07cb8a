"""
User-triggered "send now" for email reports and print orders.

Covers the trailing period [today - period, today) in the user's timezone and
runs the same pipelines as the dispatcher, but never reads or writes the
subscription's next/last dates.
"""
import logging
from datetime import datetime

from sqlalchemy.orm import Session

from app.application.email_fulfillment import EmailFulfillmentPipeline
from app.application.fulfillment import FulfillmentResult
from app.application.print_fulfillment import PrintFulfillmentPipeline, PrintJob
from app.application.processing_log import log_processing
from app.domain import recurrence
from app.domain.clock import local_today, resolve_timezone
from app.domain.errors import SubscriptionValidationError
from app.infrastructure.db.models import User
from app.infrastructure.integrations.base import ShippingAddress

logger = logging.getLogger(__name__)


def _check_frequency(frequency: str) -> None:
    if frequency not in recurrence.SUBSCRIPTION_FREQUENCIES:
        raise SubscriptionValidationError(
            f"frequency must be one of: {', '.join(recurrence.SUBSCRIPTION_FREQUENCIES)}"
        )


def _trailing_period(user: User, frequency: str, now: datetime, default_tz: str):
    tz = resolve_timezone(user.timezone, default_tz)
    return recurrence.trailing_period(frequency, local_today(now, tz))


def send_email_now(
    db: Session,
    pipeline: EmailFulfillmentPipeline,
    user: User,
    frequency: str,
    now: datetime,
    *,
    entry_types: str = "both",
    default_tz: str = "UTC",
) -> FulfillmentResult:
    _check_frequency(frequency)
    start, end = _trailing_period(user, frequency, now, default_tz)
    result = pipeline.run(
        db, user, frequency=frequency, period_start=start, period_end=end, entry_types=entry_types,
    )
    log_processing(
        db, "email_send_now", result.outcome,
        user_id=user.id, period_start=start, period_end=end, entry_count=result.entry_count,
    )
    db.commit()
    return result


def order_print_now(
    db: Session,
    pipeline: PrintFulfillmentPipeline,
    user: User,
    frequency: str,
    address: ShippingAddress,
    now: datetime,
    *,
    color_option: str = "bw",
    default_tz: str = "UTC",
) -> FulfillmentResult:
    """Manual print order; the order carries no subscription id."""
    _check_frequency(frequency)
    start, end = _trailing_period(user, frequency, now, default_tz)
    job = PrintJob(
        frequency=frequency,
        period_start=start,
        period_end=end,
        address=address,
        color_option=color_option,
    )
    result = pipeline.run(db, user, job)
    log_processing(
        db, "print_order_now", result.outcome,
        user_id=user.id, order_id=result.order_id, period_start=start, period_end=end,
    )
    db.commit()
    logger.info("Manual print order for user_id=%s: %s", user.id, result.outcome)
    return result
