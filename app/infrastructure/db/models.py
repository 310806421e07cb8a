"""
SQLAlchemy ORM models
"""
from datetime import date as date_type, datetime as datetime_type, time as time_type
from sqlalchemy import String, Integer, SmallInteger, Text, TIMESTAMP, Date, Time, func, Boolean, Index
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import JSONB

from app.infrastructure.db.session import Base


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    email: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True)
    display_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # IANA zone name, e.g. "America/Denver"; NULL means DEFAULT_TIMEZONE
    timezone: Mapped[str | None] = mapped_column(String(64), nullable=True)

    telegram_chat_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    stripe_customer_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    created_at: Mapped[datetime_type] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )


class EntryModel(Base):
    """
    Journal entry. Read-only for the scheduling engine: it only selects
    entries by entry_date and looks up the latest created_at per user.
    """
    __tablename__ = "entries"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    # text | photo | audio | video | digest
    entry_type: Mapped[str] = mapped_column(String(16), nullable=False, default="text")
    # web | sms | telegram
    source: Mapped[str] = mapped_column(String(16), nullable=False, default="web")

    entry_date: Mapped[date_type] = mapped_column(Date, nullable=False)
    content: Mapped[str | None] = mapped_column(Text, nullable=True)
    polished_content: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime_type] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("ix_entries_user_date", "user_id", "entry_date"),
    )


class DispatchStateMixin:
    """
    Lease and retry bookkeeping shared by every recurring obligation.

    dispatch_status: idle | processing
    """
    dispatch_status: Mapped[str] = mapped_column(
        String(16), nullable=False, default="idle", server_default="idle"
    )
    lease_token: Mapped[str | None] = mapped_column(String(36), nullable=True)
    leased_at: Mapped[datetime_type | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    failure_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    needs_attention: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default="false"
    )


class ReminderModel(DispatchStateMixin, Base):
    """
    Journaling nudge.

    reminder_type: daily | weekly | monthly | smart
    day_of_week: 0=Sunday .. 6=Saturday (weekly only)
    day_of_month: 1..28 (monthly only)
    smart_threshold: days of inactivity (smart only)
    """
    __tablename__ = "reminders"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    reminder_type: Mapped[str] = mapped_column(String(16), nullable=False)
    time_of_day: Mapped[time_type | None] = mapped_column(Time, nullable=True)
    day_of_week: Mapped[int | None] = mapped_column(SmallInteger, nullable=True)
    day_of_month: Mapped[int | None] = mapped_column(SmallInteger, nullable=True)
    smart_threshold: Mapped[int | None] = mapped_column(Integer, nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
    last_sent_at: Mapped[datetime_type | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    created_at: Mapped[datetime_type] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )


class EmailSubscriptionModel(DispatchStateMixin, Base):
    """
    Periodic journal report by email.

    frequency: weekly | monthly | quarterly | yearly
    entry_types: daily (digests only) | individual (non-digest) | both
    """
    __tablename__ = "email_subscriptions"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    frequency: Mapped[str] = mapped_column(String(16), nullable=False)
    entry_types: Mapped[str] = mapped_column(String(16), nullable=False, default="both", server_default="both")
    include_images: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")

    next_email_date: Mapped[date_type | None] = mapped_column(Date, nullable=True, index=True)
    last_emailed_at: Mapped[datetime_type | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    created_at: Mapped[datetime_type] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime_type] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )


class PrintSubscriptionModel(DispatchStateMixin, Base):
    """
    Periodic printed journal, fulfilled through the print vendor.

    color_option: bw | color
    """
    __tablename__ = "print_subscriptions"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    frequency: Mapped[str] = mapped_column(String(16), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")

    shipping_name: Mapped[str] = mapped_column(String(255), nullable=False)
    shipping_line1: Mapped[str] = mapped_column(String(255), nullable=False)
    shipping_line2: Mapped[str | None] = mapped_column(String(255), nullable=True)
    shipping_city: Mapped[str] = mapped_column(String(128), nullable=False)
    shipping_state: Mapped[str] = mapped_column(String(64), nullable=False)
    shipping_zip: Mapped[str] = mapped_column(String(32), nullable=False)
    shipping_country: Mapped[str] = mapped_column(String(2), nullable=False, default="US", server_default="US")
    shipping_phone: Mapped[str | None] = mapped_column(String(32), nullable=True)

    color_option: Mapped[str] = mapped_column(String(8), nullable=False, default="bw", server_default="bw")
    include_images: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")

    next_print_date: Mapped[date_type | None] = mapped_column(Date, nullable=True, index=True)
    last_printed_at: Mapped[datetime_type | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    created_at: Mapped[datetime_type] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime_type] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )


class PrintOrderModel(Base):
    """
    One print fulfillment attempt.

    status: pending | generating | uploaded | in_production | shipped | delivered
            | failed | payment_failed
    period_start / period_end: half-open entry_date range [start, end)
    """
    __tablename__ = "print_orders"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    subscription_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)  # NULL = manual order

    status: Mapped[str] = mapped_column(String(32), nullable=False, default="pending", server_default="pending", index=True)
    frequency: Mapped[str] = mapped_column(String(16), nullable=False)
    period_start: Mapped[date_type] = mapped_column(Date, nullable=False)
    period_end: Mapped[date_type] = mapped_column(Date, nullable=False)

    entry_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    page_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    cost_cents: Mapped[int | None] = mapped_column(Integer, nullable=True)
    retail_cents: Mapped[int | None] = mapped_column(Integer, nullable=True)

    vendor_job_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    payment_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    tracking_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime_type] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime_type] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )


class ProcessingLog(Base):
    """Audit trail of every dispatch outcome (sent / skipped / error)."""
    __tablename__ = "processing_log"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    action: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    details_json: Mapped[dict | None] = mapped_column(JSONB, nullable=True)

    created_at: Mapped[datetime_type] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("ix_processing_log_status", "status", "created_at"),
    )
