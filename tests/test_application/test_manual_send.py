"""Tests for manual send-now: trailing period, no subscription bookkeeping"""
from datetime import date, datetime, timezone

import pytest

from app.application.email_fulfillment import EmailFulfillmentPipeline
from app.application.fulfillment import SENT
from app.application.manual_send import order_print_now, send_email_now
from app.application.print_fulfillment import PrintFulfillmentPipeline
from app.domain.errors import SubscriptionValidationError
from app.infrastructure.db.models import EmailSubscriptionModel, PrintOrderModel
from app.infrastructure.integrations.base import ShippingAddress

NOW = datetime(2024, 6, 12, 15, 0, tzinfo=timezone.utc)


def test_send_email_now_leaves_subscription_untouched(db_session, user, add_entry, fake_email, renderer):
    sub = EmailSubscriptionModel(
        user_id=1, frequency="weekly", is_active=True,
        next_email_date=date(2024, 6, 17), created_at=datetime(2024, 6, 3, tzinfo=timezone.utc),
    )
    db_session.add(sub)
    db_session.commit()
    add_entry(1, date(2024, 6, 11), content="yesterday")
    add_entry(1, date(2024, 6, 12), content="today, not included")

    result = send_email_now(db_session, EmailFulfillmentPipeline(fake_email, renderer), user, "weekly", NOW)

    assert result.outcome == SENT
    assert result.entry_count == 1
    assert fake_email.sent[0].subject == "Your Weekly Journal - Jun 5-Jun 11, 2024"
    db_session.expire_all()
    row = db_session.get(EmailSubscriptionModel, sub.id)
    assert row.next_email_date == date(2024, 6, 17)
    assert row.last_emailed_at is None


def test_send_email_now_rejects_frequency(db_session, user, fake_email, renderer):
    with pytest.raises(SubscriptionValidationError):
        send_email_now(db_session, EmailFulfillmentPipeline(fake_email, renderer), user, "hourly", NOW)


def test_order_print_now_has_no_subscription(db_session, user, add_entry, fake_vendor, fake_payments, renderer):
    add_entry(1, date(2024, 5, 20))
    address = ShippingAddress(name="Ada", street1="1 Main St", city="Denver", state_code="CO", postcode="80202")

    result = order_print_now(
        db_session, PrintFulfillmentPipeline(fake_vendor, fake_payments, renderer),
        user, "monthly", address, NOW,
    )

    assert result.outcome == SENT
    order = db_session.get(PrintOrderModel, result.order_id)
    assert order.subscription_id is None
    assert (order.period_start, order.period_end) == (date(2024, 5, 12), date(2024, 6, 12))
