"""Tests for email and print subscription use cases"""
from datetime import date, datetime, timezone

import pytest

from app.application.subscriptions import (
    CreateEmailSubscriptionUseCase,
    CreatePrintSubscriptionUseCase,
    DeactivateSubscriptionUseCase,
    UpdateEmailSubscriptionUseCase,
    UpdatePrintSubscriptionUseCase,
)
from app.domain.clock import FixedClock
from app.domain.errors import SubscriptionValidationError
from app.infrastructure.db.models import EmailSubscriptionModel, PrintSubscriptionModel

# 23:30 UTC on the 12th is already the 13th in Berlin (UTC+2)
CLOCK = FixedClock(datetime(2024, 6, 12, 23, 30, tzinfo=timezone.utc))

SHIPPING = dict(
    shipping_name="Ada Lovelace",
    shipping_line1="1 Main St",
    shipping_city="Denver",
    shipping_state="CO",
    shipping_zip="80202",
)


def test_new_email_subscription_due_today_in_user_zone(db_session, user):
    user.timezone = "Europe/Berlin"
    db_session.commit()

    sub_id = CreateEmailSubscriptionUseCase(db_session, CLOCK).execute(1, "weekly", "daily")

    sub = db_session.get(EmailSubscriptionModel, sub_id)
    assert sub.next_email_date == date(2024, 6, 13)
    assert sub.entry_types == "daily"


def test_email_subscription_validation(db_session, user):
    with pytest.raises(SubscriptionValidationError):
        CreateEmailSubscriptionUseCase(db_session, CLOCK).execute(1, "daily")
    with pytest.raises(SubscriptionValidationError):
        CreateEmailSubscriptionUseCase(db_session, CLOCK).execute(1, "weekly", "photos")


def test_update_email_subscription(db_session, user):
    sub_id = CreateEmailSubscriptionUseCase(db_session, CLOCK).execute(1, "weekly")
    UpdateEmailSubscriptionUseCase(db_session).execute(sub_id, 1, frequency="monthly", include_images=False)

    sub = db_session.get(EmailSubscriptionModel, sub_id)
    assert sub.frequency == "monthly"
    assert sub.include_images is False


def test_create_print_subscription(db_session, user):
    sub_id = CreatePrintSubscriptionUseCase(db_session, CLOCK).execute(
        1, "quarterly", "color", shipping_country="ca", **SHIPPING,
    )
    sub = db_session.get(PrintSubscriptionModel, sub_id)
    assert sub.next_print_date == date(2024, 6, 12)
    assert sub.shipping_country == "CA"
    assert sub.color_option == "color"


def test_print_subscription_requires_shipping(db_session, user):
    incomplete = dict(SHIPPING, shipping_city="  ")
    with pytest.raises(SubscriptionValidationError, match="shipping_city"):
        CreatePrintSubscriptionUseCase(db_session, CLOCK).execute(1, "monthly", **incomplete)


def test_print_subscription_rejects_color(db_session, user):
    with pytest.raises(SubscriptionValidationError):
        CreatePrintSubscriptionUseCase(db_session, CLOCK).execute(1, "monthly", "sepia", **SHIPPING)


def test_update_rearms_flagged_print_subscription(db_session, user):
    sub_id = CreatePrintSubscriptionUseCase(db_session, CLOCK).execute(1, "monthly", **SHIPPING)
    sub = db_session.get(PrintSubscriptionModel, sub_id)
    sub.needs_attention = True
    sub.last_error = "Your card was declined."
    db_session.commit()

    UpdatePrintSubscriptionUseCase(db_session).execute(sub_id, 1, shipping_line1="2 Main St")

    sub = db_session.get(PrintSubscriptionModel, sub_id)
    assert sub.shipping_line1 == "2 Main St"
    assert sub.shipping_city == "Denver"
    assert sub.needs_attention is False
    assert sub.last_error is None


def test_deactivate(db_session, user):
    sub_id = CreateEmailSubscriptionUseCase(db_session, CLOCK).execute(1, "weekly")
    DeactivateSubscriptionUseCase(db_session).execute("email", sub_id, 1)
    assert db_session.get(EmailSubscriptionModel, sub_id).is_active is False

    with pytest.raises(SubscriptionValidationError):
        DeactivateSubscriptionUseCase(db_session).execute("email", sub_id, 1)
