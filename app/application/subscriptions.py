"""
Email and print subscription use cases (plain CRUD, no event sourcing).

A new subscription is due today in the user's timezone; after that the
dispatcher materialises next_*_date. Changing delivery options clears the
needs_attention flag so a flagged subscription resumes on the next tick.
"""
from datetime import datetime

from sqlalchemy.orm import Session

from app.application.content_selector import ENTRY_TYPE_FILTERS
from app.domain.clock import SystemClock, local_today, resolve_timezone
from app.domain.errors import SubscriptionValidationError
from app.domain.recurrence import SUBSCRIPTION_FREQUENCIES
from app.infrastructure.db.models import EmailSubscriptionModel, PrintSubscriptionModel, User

COLOR_OPTIONS = ("bw", "color")
SHIPPING_REQUIRED = ("shipping_name", "shipping_line1", "shipping_city", "shipping_state", "shipping_zip")
SHIPPING_OPTIONAL = ("shipping_line2", "shipping_phone")


def _check_frequency(frequency: str) -> None:
    if frequency not in SUBSCRIPTION_FREQUENCIES:
        raise SubscriptionValidationError(
            f"frequency must be one of: {', '.join(SUBSCRIPTION_FREQUENCIES)}"
        )


def _check_entry_types(entry_types: str) -> None:
    if entry_types not in ENTRY_TYPE_FILTERS:
        raise SubscriptionValidationError(
            f"entry_types must be one of: {', '.join(ENTRY_TYPE_FILTERS)}"
        )


def _check_color(color_option: str) -> None:
    if color_option not in COLOR_OPTIONS:
        raise SubscriptionValidationError("color_option must be 'bw' or 'color'")


def _clean_shipping(fields: dict, partial: bool = False) -> dict:
    cleaned = {}
    for name in SHIPPING_REQUIRED:
        if name not in fields and partial:
            continue
        value = (fields.get(name) or "").strip()
        if not value:
            raise SubscriptionValidationError(f"{name} is required")
        cleaned[name] = value
    for name in SHIPPING_OPTIONAL:
        if name in fields:
            cleaned[name] = (fields.get(name) or "").strip() or None
    if "shipping_country" in fields or not partial:
        country = (fields.get("shipping_country") or "US").strip().upper()
        if len(country) != 2:
            raise SubscriptionValidationError("shipping_country must be a 2-letter code")
        cleaned["shipping_country"] = country
    return cleaned


def _user_today(db: Session, user_id: int, now: datetime, default_tz: str):
    user = db.get(User, user_id)
    if not user:
        raise SubscriptionValidationError("User not found")
    return local_today(now, resolve_timezone(user.timezone, default_tz))


def _get_owned(db: Session, model, sub_id: int, user_id: int):
    sub = db.query(model).filter(model.id == sub_id, model.user_id == user_id).first()
    if not sub:
        raise SubscriptionValidationError("Subscription not found")
    return sub


def _reset_failures(sub) -> None:
    sub.needs_attention = False
    sub.failure_count = 0
    sub.last_error = None


# ============================================================================
# Email subscriptions
# ============================================================================


class CreateEmailSubscriptionUseCase:
    def __init__(self, db: Session, clock=None, default_tz: str = "UTC"):
        self.db = db
        self.clock = clock or SystemClock()
        self.default_tz = default_tz

    def execute(self, user_id: int, frequency: str, entry_types: str = "both", include_images: bool = True) -> int:
        _check_frequency(frequency)
        _check_entry_types(entry_types)
        now = self.clock.now()
        sub = EmailSubscriptionModel(
            user_id=user_id,
            frequency=frequency,
            entry_types=entry_types,
            include_images=include_images,
            is_active=True,
            next_email_date=_user_today(self.db, user_id, now, self.default_tz),
            created_at=now,
        )
        self.db.add(sub)
        self.db.commit()
        return sub.id


class UpdateEmailSubscriptionUseCase:
    def __init__(self, db: Session):
        self.db = db

    def execute(self, sub_id: int, user_id: int, **changes) -> None:
        sub = _get_owned(self.db, EmailSubscriptionModel, sub_id, user_id)
        if "frequency" in changes:
            _check_frequency(changes["frequency"])
            sub.frequency = changes["frequency"]
        if "entry_types" in changes:
            _check_entry_types(changes["entry_types"])
            sub.entry_types = changes["entry_types"]
        if "include_images" in changes:
            sub.include_images = bool(changes["include_images"])
        _reset_failures(sub)
        self.db.commit()


# ============================================================================
# Print subscriptions
# ============================================================================


class CreatePrintSubscriptionUseCase:
    def __init__(self, db: Session, clock=None, default_tz: str = "UTC"):
        self.db = db
        self.clock = clock or SystemClock()
        self.default_tz = default_tz

    def execute(
        self,
        user_id: int,
        frequency: str,
        color_option: str = "bw",
        include_images: bool = True,
        **shipping,
    ) -> int:
        _check_frequency(frequency)
        _check_color(color_option)
        address = _clean_shipping(shipping)
        now = self.clock.now()
        sub = PrintSubscriptionModel(
            user_id=user_id,
            frequency=frequency,
            color_option=color_option,
            include_images=include_images,
            is_active=True,
            next_print_date=_user_today(self.db, user_id, now, self.default_tz),
            created_at=now,
            **address,
        )
        self.db.add(sub)
        self.db.commit()
        return sub.id


class UpdatePrintSubscriptionUseCase:
    """Also the way out of payment_failed: any update re-arms the subscription."""

    def __init__(self, db: Session):
        self.db = db

    def execute(self, sub_id: int, user_id: int, **changes) -> None:
        sub = _get_owned(self.db, PrintSubscriptionModel, sub_id, user_id)
        if "frequency" in changes:
            _check_frequency(changes["frequency"])
            sub.frequency = changes["frequency"]
        if "color_option" in changes:
            _check_color(changes["color_option"])
            sub.color_option = changes["color_option"]
        if "include_images" in changes:
            sub.include_images = bool(changes["include_images"])
        for name, value in _clean_shipping(changes, partial=True).items():
            setattr(sub, name, value)
        _reset_failures(sub)
        self.db.commit()


# ============================================================================
# Shared
# ============================================================================


class DeactivateSubscriptionUseCase:
    """Takes effect on the next tick; an in-flight run is left to finish."""

    MODELS = {"email": EmailSubscriptionModel, "print": PrintSubscriptionModel}

    def __init__(self, db: Session):
        self.db = db

    def execute(self, kind: str, sub_id: int, user_id: int) -> None:
        model = self.MODELS.get(kind)
        if model is None:
            raise SubscriptionValidationError(f"Unknown subscription kind: {kind}")
        sub = _get_owned(self.db, model, sub_id, user_id)
        if not sub.is_active:
            raise SubscriptionValidationError("Subscription is already inactive")
        sub.is_active = False
        self.db.commit()
