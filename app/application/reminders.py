"""
Reminder use cases (plain CRUD). Schedules are validated here so a malformed
record never reaches the dispatcher.
"""
from datetime import datetime, time

from sqlalchemy.orm import Session

from app.domain.errors import ScheduleValidationError
from app.domain.recurrence import (
    DEFAULT_SMART_THRESHOLD, MAX_DAY_OF_MONTH, ReminderSchedule, check_schedule,
)
from app.infrastructure.db.models import ReminderModel


def parse_time_of_day(value) -> time | None:
    """Accept a time or an "HH:MM" string."""
    if value is None or isinstance(value, time):
        return value
    try:
        hour, minute = str(value).strip().split(":")[:2]
        return time(int(hour), int(minute))
    except ValueError:
        raise ScheduleValidationError(f"time_of_day must be HH:MM, got {value!r}")


def normalize_day_of_month(value: int | None) -> int | None:
    if value is None:
        return None
    if not 1 <= value <= 31:
        raise ScheduleValidationError("day_of_month must be between 1 and 31")
    return min(value, MAX_DAY_OF_MONTH)


def build_schedule(
    reminder_type: str,
    time_of_day=None,
    day_of_week: int | None = None,
    day_of_month: int | None = None,
    smart_threshold: int | None = None,
) -> ReminderSchedule:
    """Normalise user input into a valid schedule or raise ScheduleValidationError."""
    if reminder_type == "smart" and smart_threshold is None:
        smart_threshold = DEFAULT_SMART_THRESHOLD
    schedule = ReminderSchedule(
        kind=reminder_type,
        time_of_day=parse_time_of_day(time_of_day),
        day_of_week=day_of_week,
        day_of_month=normalize_day_of_month(day_of_month),
        smart_threshold=smart_threshold,
    )
    check_schedule(schedule)
    return schedule


def _get_reminder(db: Session, reminder_id: int, user_id: int) -> ReminderModel:
    row = db.query(ReminderModel).filter(
        ReminderModel.id == reminder_id,
        ReminderModel.user_id == user_id,
    ).first()
    if not row:
        raise ScheduleValidationError("Reminder not found")
    return row


class CreateReminderUseCase:
    def __init__(self, db: Session):
        self.db = db

    def execute(self, user_id: int, reminder_type: str, now: datetime | None = None, **fields) -> int:
        schedule = build_schedule(reminder_type, **fields)
        row = ReminderModel(
            user_id=user_id,
            reminder_type=schedule.kind,
            time_of_day=schedule.time_of_day,
            day_of_week=schedule.day_of_week,
            day_of_month=schedule.day_of_month,
            smart_threshold=schedule.smart_threshold,
            is_active=True,
        )
        if now is not None:
            row.created_at = now
        self.db.add(row)
        self.db.commit()
        return row.id


class UpdateReminderUseCase:
    """Replace the schedule; a fresh schedule also clears any failure flag."""

    def __init__(self, db: Session):
        self.db = db

    def execute(self, reminder_id: int, user_id: int, reminder_type: str, **fields) -> None:
        row = _get_reminder(self.db, reminder_id, user_id)
        schedule = build_schedule(reminder_type, **fields)
        row.reminder_type = schedule.kind
        row.time_of_day = schedule.time_of_day
        row.day_of_week = schedule.day_of_week
        row.day_of_month = schedule.day_of_month
        row.smart_threshold = schedule.smart_threshold
        row.needs_attention = False
        row.failure_count = 0
        row.last_error = None
        self.db.commit()


class SetReminderActiveUseCase:
    def __init__(self, db: Session):
        self.db = db

    def execute(self, reminder_id: int, user_id: int, is_active: bool) -> None:
        row = _get_reminder(self.db, reminder_id, user_id)
        row.is_active = is_active
        self.db.commit()


class DeleteReminderUseCase:
    def __init__(self, db: Session):
        self.db = db

    def execute(self, reminder_id: int, user_id: int) -> None:
        row = _get_reminder(self.db, reminder_id, user_id)
        self.db.delete(row)
        self.db.commit()
