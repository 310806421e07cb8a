"""
Dispatch worker: one tick scans due reminders and subscriptions and runs each
through its fulfillment pipeline.

Usage (cron / systemd timer / manual):
    python -m app.application.dispatch_worker

The APScheduler job in app.application.scheduler calls DispatchWorker.tick().

Each due obligation is an independent unit:
  1. claim the row lease (conditional UPDATE; losers skip it)
  2. re-check it is still active and due under the lease
  3. run the pipeline
  4. advancing outcome -> set the anchor to the occurrence, advance next date
     transient failure -> keep the anchor, count the failure
  5. release the lease
A unit never raises into the tick.
"""
import logging
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from functools import lru_cache

from sqlalchemy.orm import Session

from app.application import leases
from app.application.activity import last_entry_timestamp, last_entry_timestamps
from app.application.email_fulfillment import EmailFulfillmentPipeline
from app.application.fulfillment import DECLINED, UNREACHABLE, FulfillmentResult
from app.application.print_fulfillment import PrintFulfillmentPipeline, job_from_subscription
from app.application.processing_log import log_processing
from app.application.reminder_fulfillment import ReminderPipeline
from app.config import Settings, get_settings
from app.domain import print_order as po
from app.domain import recurrence
from app.domain.clock import SystemClock, as_utc, local_midnight, local_today, resolve_timezone
from app.domain.errors import TransientDependencyError
from app.infrastructure.db.models import (
    EmailSubscriptionModel, PrintOrderModel, PrintSubscriptionModel, ReminderModel, User,
)

logger = logging.getLogger(__name__)

REMINDER = "reminder"
EMAIL = "email"
PRINT = "print"

MODELS = {
    REMINDER: ReminderModel,
    EMAIL: EmailSubscriptionModel,
    PRINT: PrintSubscriptionModel,
}

# Unit outcomes besides the FulfillmentResult ones
NOT_DUE = "not_due"
BUSY = "busy"
INACTIVE = "inactive"
FAILED = "failed"
INVALID = "invalid"


@dataclass
class DispatchServices:
    """Pipelines available to the worker; None disables that obligation kind."""
    reminders: ReminderPipeline | None = None
    email: EmailFulfillmentPipeline | None = None
    printing: PrintFulfillmentPipeline | None = None


class DispatchWorker:
    def __init__(
        self,
        session_factory,
        services: DispatchServices,
        clock=None,
        settings: Settings | None = None,
        max_workers: int | None = None,
    ):
        self.session_factory = session_factory
        self.services = services
        self.clock = clock or SystemClock()
        self.settings = settings or get_settings()
        self.max_workers = max_workers if max_workers is not None else self.settings.DISPATCH_WORKERS
        self.stale_after = timedelta(minutes=self.settings.LEASE_STALE_MINUTES)
        self.catch_up = timedelta(hours=self.settings.CATCH_UP_HOURS)

    # ── Tick ──

    def tick(self) -> Counter:
        """Run one dispatch pass. Returns outcome counts."""
        now = self.clock.now()
        db = self.session_factory()
        try:
            units = self.collect_due(db, now)
        finally:
            db.close()

        if not units:
            return Counter()

        if self.max_workers <= 1:
            outcomes = [self._run_unit(kind, obligation_id, now) for kind, obligation_id in units]
        else:
            with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="dispatch") as pool:
                outcomes = list(pool.map(lambda unit: self._run_unit(unit[0], unit[1], now), units))

        summary = Counter(outcomes)
        logger.info("Dispatch tick: %d units, %s", len(units), dict(summary))
        return summary

    def collect_due(self, db: Session, now: datetime) -> list[tuple[str, int]]:
        """Cheap pre-scan; every unit is re-checked under its lease."""
        units: list[tuple[str, int]] = []
        if self.services.reminders:
            units.extend((REMINDER, rid) for rid in self._due_reminders(db, now))
        if self.services.email:
            units.extend(
                (EMAIL, sid) for sid in self._due_subscriptions(db, EmailSubscriptionModel, "next_email_date", now)
            )
        if self.services.printing:
            units.extend(
                (PRINT, sid) for sid in self._due_subscriptions(db, PrintSubscriptionModel, "next_print_date", now)
            )
        return units

    def _due_reminders(self, db: Session, now: datetime) -> list[int]:
        rows = (
            db.query(ReminderModel)
            .filter(ReminderModel.is_active == True, ReminderModel.needs_attention == False)
            .order_by(ReminderModel.id)
            .all()
        )
        if not rows:
            return []
        users = self._users(db, {r.user_id for r in rows})
        activity = last_entry_timestamps(db, [r.user_id for r in rows if r.reminder_type == "smart"])

        due = []
        for row in rows:
            user = users.get(row.user_id)
            if user is None:
                continue
            try:
                occurrence = self._reminder_occurrence(row, user, now, activity.get(row.user_id))
            except ValueError as exc:
                logger.error("Reminder %s has an invalid schedule: %s", row.id, exc)
                continue
            if occurrence is not None:
                due.append(row.id)
        return due

    def _due_subscriptions(self, db: Session, model, next_field: str, now: datetime) -> list[int]:
        column = getattr(model, next_field)
        # No zone is more than a day ahead of UTC
        horizon = as_utc(now).date() + timedelta(days=1)
        rows = (
            db.query(model)
            .filter(
                model.is_active == True,
                model.needs_attention == False,
                column.isnot(None),
                column <= horizon,
            )
            .order_by(model.id)
            .all()
        )
        if not rows:
            return []
        users = self._users(db, {r.user_id for r in rows})
        due = []
        for row in rows:
            user = users.get(row.user_id)
            if user is None:
                continue
            if recurrence.is_subscription_due(getattr(row, next_field), local_today(now, self._tz(user))):
                due.append(row.id)
        return due

    # ── Unit of work ──

    def _run_unit(self, kind: str, obligation_id: int, now: datetime) -> str:
        model = MODELS[kind]
        db = self.session_factory()
        try:
            token = leases.claim(db, model, obligation_id, now, self.stale_after)
            if token is None:
                logger.info("%s %s is leased by another worker, skipping", kind, obligation_id)
                return BUSY
            try:
                return self._execute(db, kind, obligation_id, now)
            finally:
                db.rollback()
                leases.release(db, model, obligation_id, token)
        except Exception:
            logger.exception("Dispatch of %s %s failed outside the pipeline", kind, obligation_id)
            return FAILED
        finally:
            db.close()

    def _execute(self, db: Session, kind: str, obligation_id: int, now: datetime) -> str:
        model = MODELS[kind]
        row = db.get(model, obligation_id)
        if row is None or not row.is_active or row.needs_attention:
            return INACTIVE
        user = db.get(User, row.user_id)
        if user is None:
            return INACTIVE

        handler = {
            REMINDER: self._dispatch_reminder,
            EMAIL: self._dispatch_email,
            PRINT: self._dispatch_print,
        }[kind]

        try:
            result = handler(db, row, user, now)
        except TransientDependencyError as exc:
            db.rollback()
            self._record_failure(db, kind, obligation_id, exc)
            return FAILED
        except ValueError as exc:
            db.rollback()
            self._record_invalid(db, kind, obligation_id, exc)
            return INVALID
        except Exception as exc:
            db.rollback()
            logger.exception("Unexpected error dispatching %s %s", kind, obligation_id)
            self._record_failure(db, kind, obligation_id, exc)
            return FAILED

        if result is None:
            return NOT_DUE
        if result.outcome == UNREACHABLE:
            logger.info("%s %s skipped: %s", kind, obligation_id, result.detail)
            return UNREACHABLE

        row.failure_count = 0
        row.last_error = None
        log_processing(
            db, f"{kind}_dispatch", result.outcome,
            obligation_id=obligation_id, user_id=user.id,
            order_id=result.order_id, entry_count=result.entry_count, detail=result.detail,
        )
        db.commit()
        return result.outcome

    # ── Handlers: return None when no longer due ──

    def _dispatch_reminder(self, db: Session, row: ReminderModel, user: User, now: datetime) -> FulfillmentResult | None:
        last_activity = last_entry_timestamp(db, user.id) if row.reminder_type == "smart" else None
        occurrence = self._reminder_occurrence(row, user, now, last_activity)
        if occurrence is None:
            return None
        tz = self._tz(user)
        result = self.services.reminders.deliver(
            row, user, now=now, local_date=local_today(now, tz), last_activity=last_activity,
        )
        if result.advances_anchor:
            row.last_sent_at = occurrence
        return result

    def _dispatch_email(self, db: Session, row: EmailSubscriptionModel, user: User, now: datetime) -> FulfillmentResult | None:
        tz = self._tz(user)
        due_date = row.next_email_date
        if not recurrence.is_subscription_due(due_date, local_today(now, tz)):
            return None
        anchor_day = self._anchor_day(row, tz)
        start, end = recurrence.period_for(row.frequency, due_date, anchor_day)

        result = self.services.email.run(
            db, user,
            frequency=row.frequency,
            period_start=start,
            period_end=end,
            entry_types=row.entry_types,
        )
        if result.advances_anchor:
            row.last_emailed_at = local_midnight(due_date, tz)
            row.next_email_date = recurrence.advance(row.frequency, due_date, anchor_day)
        return result

    def _dispatch_print(self, db: Session, row: PrintSubscriptionModel, user: User, now: datetime) -> FulfillmentResult | None:
        tz = self._tz(user)
        due_date = row.next_print_date
        if not recurrence.is_subscription_due(due_date, local_today(now, tz)):
            return None
        anchor_day = self._anchor_day(row, tz)
        start, end = recurrence.period_for(row.frequency, due_date, anchor_day)

        result = self.services.printing.run(db, user, job_from_subscription(row, user, start, end))
        if result.advances_anchor:
            row.last_printed_at = local_midnight(due_date, tz)
            row.next_print_date = recurrence.advance(row.frequency, due_date, anchor_day)
        if result.outcome == DECLINED and result.order_id is not None:
            order = db.get(PrintOrderModel, result.order_id)
            if order is not None and order.status == po.PAYMENT_FAILED:
                # The user has to fix their payment method before the next cycle
                row.needs_attention = True
                row.last_error = order.error_message
        return result

    # ── Failure bookkeeping ──

    def _record_failure(self, db: Session, kind: str, obligation_id: int, exc: Exception) -> None:
        row = db.get(MODELS[kind], obligation_id)
        row.failure_count = (row.failure_count or 0) + 1
        row.last_error = str(exc)[:500]
        limit = self.settings.MAX_CONSECUTIVE_FAILURES
        if row.failure_count >= limit:
            row.needs_attention = True
            logger.error(
                "%s %s failed %d times in a row, flagged for attention: %s",
                kind, obligation_id, row.failure_count, exc,
            )
        else:
            logger.warning(
                "%s %s failed (%d/%d), will retry next tick: %s",
                kind, obligation_id, row.failure_count, limit, exc,
            )
        log_processing(
            db, f"{kind}_dispatch", "error",
            obligation_id=obligation_id, error=str(exc), failure_count=row.failure_count,
        )
        db.commit()

    def _record_invalid(self, db: Session, kind: str, obligation_id: int, exc: Exception) -> None:
        logger.error("%s %s is invalid, skipping: %s", kind, obligation_id, exc)
        row = db.get(MODELS[kind], obligation_id)
        row.needs_attention = True
        row.last_error = str(exc)[:500]
        log_processing(db, f"{kind}_dispatch", "invalid", obligation_id=obligation_id, error=str(exc))
        db.commit()

    # ── Helpers ──

    def _tz(self, user: User):
        return resolve_timezone(user.timezone, self.settings.DEFAULT_TIMEZONE)

    def _reminder_occurrence(self, row: ReminderModel, user: User, now: datetime, last_activity) -> datetime | None:
        return recurrence.due_occurrence(
            recurrence.schedule_from_db(row),
            as_utc(row.last_sent_at),
            now,
            self._tz(user),
            created_at=as_utc(row.created_at),
            last_activity=last_activity,
            catch_up=self.catch_up,
        )

    @staticmethod
    def _anchor_day(row, tz) -> int:
        created: date = as_utc(row.created_at).astimezone(tz).date()
        return created.day

    @staticmethod
    def _users(db: Session, user_ids: set[int]) -> dict[int, User]:
        if not user_ids:
            return {}
        return {u.id: u for u in db.query(User).filter(User.id.in_(user_ids)).all()}


def build_default_services(settings: Settings) -> DispatchServices:
    """Wire the production adapters for whatever is configured."""
    from app.infrastructure.integrations.lulu import LuluGateway
    from app.infrastructure.integrations.manuscript import ManuscriptRenderer
    from app.infrastructure.integrations.resend_email import ResendEmailSender
    from app.infrastructure.integrations.stripe_payments import StripePayments
    from app.infrastructure.integrations.telegram_bot import TelegramSender

    renderer = ManuscriptRenderer(settings.PRINT_ARTIFACT_DIR, settings.PRINT_ARTIFACT_BASE_URL)
    services = DispatchServices()
    if settings.TELEGRAM_BOT_TOKEN:
        services.reminders = ReminderPipeline(TelegramSender(settings.TELEGRAM_BOT_TOKEN))
    if settings.email_configured:
        services.email = EmailFulfillmentPipeline(
            ResendEmailSender(settings.RESEND_API_KEY, settings.RESEND_FROM_EMAIL), renderer,
        )
    if settings.print_configured:
        services.printing = PrintFulfillmentPipeline(
            LuluGateway(settings.LULU_API_KEY, settings.LULU_API_SECRET, sandbox=settings.LULU_SANDBOX),
            StripePayments(settings.STRIPE_SECRET_KEY),
            renderer,
        )
    return services


@lru_cache
def get_default_services() -> DispatchServices:
    """
    Process-wide production adapters (singleton), shared by API requests and
    scheduler ticks so the vendor's OAuth token cache survives between calls.
    """
    return build_default_services(get_settings())


def run_tick() -> Counter:
    from app.infrastructure.db.session import get_session_factory

    settings = get_settings()
    worker = DispatchWorker(get_session_factory(), get_default_services(), settings=settings)
    return worker.tick()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    summary = run_tick()
    logger.info("Done: %s", dict(summary))
