"""
Deterministic occurrence calculator for reminders and subscriptions.

Reminder kinds (instant-based, evaluated in the user's timezone):
- daily:   every day at time_of_day
- weekly:  day_of_week (0=Sunday..6=Saturday) at time_of_day
- monthly: day_of_month (1..28) at time_of_day, so every month has the day
- smart:   threshold days after the user's last activity or last nudge

Subscription frequencies (date-based, materialised in next_*_date):
- weekly / monthly / quarterly / yearly
  A subscription due on D covers the trailing period [D - period, D) and is
  next due on D + period.

All instants returned are aware UTC datetimes.
"""
import calendar
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from app.domain.clock import as_utc
from app.domain.errors import ScheduleValidationError


REMINDER_KINDS = frozenset({"daily", "weekly", "monthly", "smart"})
CALENDAR_KINDS = frozenset({"daily", "weekly", "monthly"})
SUBSCRIPTION_FREQUENCIES = ("weekly", "monthly", "quarterly", "yearly")

MAX_DAY_OF_MONTH = 28
DEFAULT_SMART_THRESHOLD = 2
DEFAULT_CATCH_UP = timedelta(hours=24)

_PERIOD_MONTHS = {"monthly": 1, "quarterly": 3, "yearly": 12}
# Longest gap between two matching days of any calendar kind, plus slack
_SEARCH_DAYS = 64


@dataclass(frozen=True)
class ReminderSchedule:
    kind: str
    time_of_day: time | None = None
    day_of_week: int | None = None  # weekly only, 0=Sunday
    day_of_month: int | None = None  # monthly only, 1..28
    smart_threshold: int | None = None  # smart only, days


def schedule_from_db(row) -> ReminderSchedule:
    """Build ReminderSchedule from a ReminderModel row (any object with matching attributes)."""
    return ReminderSchedule(
        kind=row.reminder_type,
        time_of_day=row.time_of_day,
        day_of_week=row.day_of_week,
        day_of_month=row.day_of_month,
        smart_threshold=row.smart_threshold,
    )


def check_schedule(schedule: ReminderSchedule) -> None:
    """Raise ScheduleValidationError unless exactly the fields required by the kind are set."""
    kind = schedule.kind
    if kind not in REMINDER_KINDS:
        raise ScheduleValidationError(f"invalid reminder kind: {kind}")

    if kind == "smart":
        if schedule.smart_threshold is None or schedule.smart_threshold < 1:
            raise ScheduleValidationError("smart reminder requires smart_threshold >= 1")
        if any(v is not None for v in (schedule.time_of_day, schedule.day_of_week, schedule.day_of_month)):
            raise ScheduleValidationError("smart reminder takes no calendar fields")
        return

    if schedule.time_of_day is None:
        raise ScheduleValidationError(f"{kind} reminder requires time_of_day")
    if schedule.smart_threshold is not None:
        raise ScheduleValidationError(f"{kind} reminder takes no smart_threshold")

    if kind == "weekly":
        if schedule.day_of_week is None or not 0 <= schedule.day_of_week <= 6:
            raise ScheduleValidationError("weekly reminder requires day_of_week in 0..6")
    elif schedule.day_of_week is not None:
        raise ScheduleValidationError(f"{kind} reminder takes no day_of_week")

    if kind == "monthly":
        if schedule.day_of_month is None or not 1 <= schedule.day_of_month <= MAX_DAY_OF_MONTH:
            raise ScheduleValidationError(f"monthly reminder requires day_of_month in 1..{MAX_DAY_OF_MONTH}")
    elif schedule.day_of_month is not None:
        raise ScheduleValidationError(f"{kind} reminder takes no day_of_month")


def sunday_based_weekday(d: date) -> int:
    return (d.weekday() + 1) % 7


def _matches(schedule: ReminderSchedule, d: date) -> bool:
    if schedule.kind == "daily":
        return True
    if schedule.kind == "weekly":
        return sunday_based_weekday(d) == schedule.day_of_week
    if schedule.kind == "monthly":
        return d.day == schedule.day_of_month
    return False


def _local_instant(d: date, t: time, tz: ZoneInfo) -> datetime:
    return datetime.combine(d, t, tzinfo=tz).astimezone(timezone.utc)


def _first_occurrence(schedule: ReminderSchedule, tz: ZoneInfo, floor: datetime, inclusive: bool) -> datetime:
    # Start a day early: the floor's local date may already be past the target in UTC terms
    d = floor.astimezone(tz).date() - timedelta(days=1)
    for _ in range(_SEARCH_DAYS):
        if _matches(schedule, d):
            at = _local_instant(d, schedule.time_of_day, tz)
            if at > floor or (inclusive and at == floor):
                return at
        d += timedelta(days=1)
    raise ScheduleValidationError(f"no occurrence found for {schedule}")


def _smart_occurrence(
    schedule: ReminderSchedule,
    last_fired: datetime | None,
    last_activity: datetime | None,
    now: datetime,
    catch_up: timedelta,
) -> datetime:
    marks = [m for m in (as_utc(last_activity), as_utc(last_fired)) if m is not None]
    if not marks:
        return now
    gap_start = max(marks)
    return max(gap_start + timedelta(days=schedule.smart_threshold), now - catch_up)


def next_occurrence(
    schedule: ReminderSchedule,
    last_fired: datetime | None,
    now: datetime,
    tz: ZoneInfo,
    *,
    last_activity: datetime | None = None,
    catch_up: timedelta = DEFAULT_CATCH_UP,
) -> datetime:
    """
    Next due instant for a reminder.

    Calendar kinds: with no previous fire, the first occurrence at or after now
    (today's time if not yet passed, else the next matching day). Otherwise the
    first occurrence strictly after max(last_fired, now - catch_up).

    Smart: gap_start + threshold days, where gap_start is the later of the last
    activity and the last fire; never earlier than now - catch_up.
    """
    check_schedule(schedule)
    now = as_utc(now)

    if schedule.kind == "smart":
        return _smart_occurrence(schedule, last_fired, last_activity, now, catch_up)

    if last_fired is None:
        return _first_occurrence(schedule, tz, now, inclusive=True)
    floor = max(as_utc(last_fired), now - catch_up)
    return _first_occurrence(schedule, tz, floor, inclusive=False)


def due_occurrence(
    schedule: ReminderSchedule,
    last_fired: datetime | None,
    now: datetime,
    tz: ZoneInfo,
    *,
    created_at: datetime | None = None,
    last_activity: datetime | None = None,
    catch_up: timedelta = DEFAULT_CATCH_UP,
) -> datetime | None:
    """
    Return the occurrence to fire now, or None when nothing is due.

    A reminder that never fired is anchored on created_at: it fires for the
    first occurrence after it was created. Smart reminders with no activity
    count the inactivity gap from created_at.
    """
    if schedule.kind == "smart":
        occurrence = next_occurrence(
            schedule, last_fired, now, tz,
            last_activity=last_activity or created_at, catch_up=catch_up,
        )
    else:
        occurrence = next_occurrence(
            schedule, last_fired or created_at, now, tz, catch_up=catch_up,
        )
    return occurrence if occurrence <= as_utc(now) else None


def is_due(schedule: ReminderSchedule, last_fired: datetime | None, now: datetime, tz: ZoneInfo, **kwargs) -> bool:
    return due_occurrence(schedule, last_fired, now, tz, **kwargs) is not None


# --- Subscription periods ---

def last_day_of_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def add_months(d: date, n: int, anchor_day: int | None = None) -> date:
    """Shift by n months (n may be negative); the day is clipped to the month length."""
    month = d.month - 1 + n
    year = d.year + month // 12
    month = month % 12 + 1
    last = last_day_of_month(year, month)
    day = min(anchor_day or d.day, last)
    return date(year, month, day)


def _check_frequency(frequency: str) -> None:
    if frequency not in SUBSCRIPTION_FREQUENCIES:
        raise ValueError(f"invalid frequency: {frequency}")


def advance(frequency: str, current: date, anchor_day: int | None = None) -> date:
    """Next due date after current. anchor_day keeps month-based cadences from drifting after a clip."""
    _check_frequency(frequency)
    if frequency == "weekly":
        return current + timedelta(days=7)
    return add_months(current, _PERIOD_MONTHS[frequency], anchor_day)


def rewind(frequency: str, current: date, anchor_day: int | None = None) -> date:
    _check_frequency(frequency)
    if frequency == "weekly":
        return current - timedelta(days=7)
    return add_months(current, -_PERIOD_MONTHS[frequency], anchor_day)


def period_for(frequency: str, due_date: date, anchor_day: int | None = None) -> tuple[date, date]:
    """Half-open entry_date range [start, end) reported on due_date."""
    return rewind(frequency, due_date, anchor_day), due_date


def trailing_period(frequency: str, today: date) -> tuple[date, date]:
    """Manual send-now range: the period ending yesterday, inclusive."""
    return rewind(frequency, today), today


def is_subscription_due(next_date: date | None, today: date) -> bool:
    return next_date is not None and next_date <= today
