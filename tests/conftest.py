"""
Pytest fixtures for testing
"""
from datetime import date, datetime, timezone

import pytest
from sqlalchemy import JSON, create_engine, event
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.config import Settings
from app.infrastructure.db.models import EntryModel, User
from app.infrastructure.db.session import Base
from app.domain.errors import PaymentGatewayError
from app.infrastructure.integrations.base import (
    ChatSender, EmailSender, PaymentGateway, VendorGateway, VendorJob, VendorQuote, VendorStatus,
)
from app.infrastructure.integrations.manuscript import ManuscriptRenderer


def _use_json_for_jsonb() -> None:
    # SQLite has no JSONB: remap to JSON for tests
    for table in Base.metadata.tables.values():
        for col in table.columns:
            if isinstance(col.type, JSONB):
                col.type = JSON()


@pytest.fixture
def db_engine():
    """
    In-memory SQLite engine for tests, with JSONB→JSON mapping.

    StaticPool keeps one connection, so sessions opened by the dispatch
    worker see the same database as the test session.
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    _use_json_for_jsonb()
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def threaded_session_factory(tmp_path):
    """
    File-backed SQLite with a connection per thread, for ticks that run a
    worker pool. Every transaction starts with BEGIN IMMEDIATE, so concurrent
    sessions queue on the write lock instead of deadlocking on an upgrade.
    """
    engine = create_engine(
        f"sqlite:///{tmp_path / 'dispatch.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    _use_json_for_jsonb()
    Base.metadata.create_all(engine)
    yield sessionmaker(bind=engine, autoflush=False, autocommit=False)
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(bind=db_engine, autoflush=False, autocommit=False)


@pytest.fixture
def db_session(session_factory) -> Session:
    """Test session. Fixtures commit so worker sessions see their rows."""
    session = session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        DATABASE_URL="sqlite://",
        DEFAULT_TIMEZONE="UTC",
        SCHEDULER_ENABLED=False,
        LEASE_STALE_MINUTES=60,
        MAX_CONSECUTIVE_FAILURES=3,
        CATCH_UP_HOURS=24,
        DISPATCH_WORKERS=1,
    )


@pytest.fixture
def user(db_session):
    u = User(
        id=1,
        email="writer@example.com",
        display_name="Ada",
        timezone="UTC",
        telegram_chat_id="5550001",
        stripe_customer_id="cus_test",
        created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )
    db_session.add(u)
    db_session.commit()
    return u


@pytest.fixture
def add_entry(db_session):
    """Factory: add_entry(user_id, entry_date, content="...", entry_type="text")."""
    def _add(user_id: int, entry_date: date, content: str = "Dear diary", entry_type: str = "text",
             created_at: datetime | None = None) -> EntryModel:
        entry = EntryModel(
            user_id=user_id,
            entry_type=entry_type,
            source="web",
            entry_date=entry_date,
            content=content,
            created_at=created_at or datetime.combine(entry_date, datetime.min.time(), tzinfo=timezone.utc),
        )
        db_session.add(entry)
        db_session.commit()
        return entry
    return _add


# ── Fake collaborators ──

class FakeChat(ChatSender):
    def __init__(self):
        self.sent: list[tuple[str, str]] = []
        self.error: Exception | None = None

    def send(self, chat_id: str, text: str) -> None:
        if self.error:
            raise self.error
        self.sent.append((chat_id, text))


class FakeEmail(EmailSender):
    def __init__(self):
        self.sent = []
        self.error: Exception | None = None

    def send(self, message) -> None:
        if self.error:
            raise self.error
        self.sent.append(message)


class FakeVendor(VendorGateway):
    def __init__(self):
        self.submitted = []
        self.quote_error: Exception | None = None
        self.submit_error: Exception | None = None
        self.statuses: dict[str, VendorStatus] = {}
        self.cost_cents = 850

    def pod_package_id(self, frequency: str, color_option: str) -> str:
        return f"pod-{frequency}-{color_option}"

    def quote(self, pod_package_id, page_count, address) -> VendorQuote:
        if self.quote_error:
            raise self.quote_error
        return VendorQuote(cost_cents=self.cost_cents)

    def submit(self, artifact, address, color_option, *, frequency, external_id) -> VendorJob:
        if self.submit_error:
            raise self.submit_error
        self.submitted.append((external_id, artifact, address))
        return VendorJob(vendor_job_id=f"job-{len(self.submitted)}")

    def poll_status(self, vendor_job_id: str) -> VendorStatus:
        return self.statuses[vendor_job_id]


class FakePayments(PaymentGateway):
    """Replays a repeated idempotency key like Stripe does."""

    def __init__(self):
        self.charges: list[tuple[str, int]] = []
        self.refunds: list[str] = []
        self.keys: list[str | None] = []
        self.charge_error: Exception | None = None
        self.refund_error: Exception | None = None
        # Capture the charge, then fail as if the response was lost
        self.lose_next_response = False
        self._by_key: dict[str, str] = {}

    def charge(self, customer_id: str, amount_cents: int, description: str, *, idempotency_key=None) -> str:
        self.keys.append(idempotency_key)
        if idempotency_key in self._by_key:
            return self._by_key[idempotency_key]
        if self.charge_error:
            raise self.charge_error
        self.charges.append((customer_id, amount_cents))
        payment_id = f"pi_{len(self.charges)}"
        if idempotency_key:
            self._by_key[idempotency_key] = payment_id
        if self.lose_next_response:
            self.lose_next_response = False
            raise PaymentGatewayError("Stripe request failed: read timed out")
        return payment_id

    def refund(self, payment_id: str) -> None:
        if self.refund_error:
            raise self.refund_error
        self.refunds.append(payment_id)


@pytest.fixture
def fake_chat():
    return FakeChat()


@pytest.fixture
def fake_email():
    return FakeEmail()


@pytest.fixture
def fake_vendor():
    return FakeVendor()


@pytest.fixture
def fake_payments():
    return FakePayments()


@pytest.fixture
def renderer(tmp_path):
    return ManuscriptRenderer(str(tmp_path / "print"), "https://media.test/print")
