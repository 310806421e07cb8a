"""Tests for the occurrence calculator: reminders and subscription periods"""
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from app.domain.errors import ScheduleValidationError
from app.domain.recurrence import (
    ReminderSchedule,
    add_months,
    advance,
    check_schedule,
    due_occurrence,
    is_due,
    is_subscription_due,
    next_occurrence,
    period_for,
    sunday_based_weekday,
    trailing_period,
)

UTC = ZoneInfo("UTC")
NEW_YORK = ZoneInfo("America/New_York")


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


class TestDaily:
    schedule = ReminderSchedule(kind="daily", time_of_day=time(20, 0))

    def test_first_fire_today_when_time_not_passed(self):
        # 11:00 in New York
        now = utc(2024, 6, 12, 15, 0)
        assert next_occurrence(self.schedule, None, now, NEW_YORK) == utc(2024, 6, 13, 0, 0)

    def test_first_fire_tomorrow_when_time_passed(self):
        # 21:00 in New York
        now = utc(2024, 6, 13, 1, 0)
        assert next_occurrence(self.schedule, None, now, NEW_YORK) == utc(2024, 6, 14, 0, 0)

    def test_first_fire_exactly_at_time_is_now(self):
        now = utc(2024, 6, 13, 0, 0)
        assert next_occurrence(self.schedule, None, now, NEW_YORK) == now

    def test_after_fire_rolls_to_tomorrow(self):
        last = utc(2024, 6, 13, 0, 0)
        now = utc(2024, 6, 13, 5, 0)
        assert next_occurrence(self.schedule, last, now, NEW_YORK) == utc(2024, 6, 14, 0, 0)

    def test_long_outage_fires_once_for_latest_occurrence(self):
        schedule = ReminderSchedule(kind="daily", time_of_day=time(9, 0))
        last = utc(2024, 6, 1, 9, 0)
        now = utc(2024, 6, 10, 12, 0)
        assert due_occurrence(schedule, last, now, UTC) == utc(2024, 6, 10, 9, 0)

    def test_never_fired_is_anchored_on_creation(self):
        schedule = ReminderSchedule(kind="daily", time_of_day=time(9, 0))
        created = utc(2024, 6, 12, 10, 0)
        assert due_occurrence(schedule, None, utc(2024, 6, 12, 10, 15), UTC, created_at=created) is None
        assert due_occurrence(schedule, None, utc(2024, 6, 13, 9, 5), UTC, created_at=created) == utc(2024, 6, 13, 9, 0)

    def test_not_due_again_after_firing(self):
        schedule = ReminderSchedule(kind="daily", time_of_day=time(9, 0))
        fired = utc(2024, 6, 13, 9, 0)
        assert not is_due(schedule, fired, utc(2024, 6, 13, 9, 20), UTC)
        assert is_due(schedule, fired, utc(2024, 6, 14, 9, 0), UTC)


class TestWeekly:
    # Monday
    schedule = ReminderSchedule(kind="weekly", time_of_day=time(9, 0), day_of_week=1)

    def test_sunday_is_zero(self):
        assert sunday_based_weekday(date(2024, 6, 16)) == 0
        assert sunday_based_weekday(date(2024, 6, 17)) == 1
        assert sunday_based_weekday(date(2024, 6, 15)) == 6

    def test_next_matching_weekday(self):
        # Wednesday
        now = utc(2024, 6, 12, 10, 0)
        assert next_occurrence(self.schedule, None, now, UTC) == utc(2024, 6, 17, 9, 0)

    def test_today_included_if_time_not_passed(self):
        now = utc(2024, 6, 17, 8, 0)
        assert next_occurrence(self.schedule, None, now, UTC) == utc(2024, 6, 17, 9, 0)

    def test_after_fire_next_week(self):
        last = utc(2024, 6, 17, 9, 0)
        assert next_occurrence(self.schedule, last, utc(2024, 6, 17, 9, 30), UTC) == utc(2024, 6, 24, 9, 0)


class TestMonthly:
    schedule = ReminderSchedule(kind="monthly", time_of_day=time(9, 0), day_of_month=28)

    def test_february_has_the_day(self):
        last = utc(2024, 1, 28, 9, 0)
        now = utc(2024, 2, 28, 10, 0)
        assert due_occurrence(self.schedule, last, now, UTC) == utc(2024, 2, 28, 9, 0)

    def test_every_month_of_the_year(self):
        last = utc(2023, 12, 28, 9, 0)
        for month in range(1, 13):
            nxt = next_occurrence(self.schedule, last, last, UTC)
            assert (nxt.year, nxt.month, nxt.day) == (2024, month, 28)
            last = nxt

    def test_day_above_28_rejected(self):
        with pytest.raises(ScheduleValidationError):
            check_schedule(ReminderSchedule(kind="monthly", time_of_day=time(9, 0), day_of_month=29))


class TestSmart:
    schedule = ReminderSchedule(kind="smart", smart_threshold=3)

    def test_due_after_threshold_of_inactivity(self):
        now = utc(2024, 6, 12, 12, 0)
        activity = utc(2024, 6, 8, 12, 0)
        assert due_occurrence(self.schedule, None, now, UTC, last_activity=activity) == utc(2024, 6, 11, 12, 0)

    def test_not_due_before_threshold(self):
        now = utc(2024, 6, 12, 12, 0)
        activity = utc(2024, 6, 10, 12, 0)
        assert not is_due(self.schedule, None, now, UTC, last_activity=activity)

    def test_new_gap_counts_from_last_fire(self):
        activity = utc(2024, 6, 8, 12, 0)
        fired = utc(2024, 6, 11, 12, 0)
        assert not is_due(self.schedule, fired, utc(2024, 6, 12, 12, 0), UTC, last_activity=activity)
        assert not is_due(self.schedule, fired, utc(2024, 6, 14, 11, 59), UTC, last_activity=activity)
        assert is_due(self.schedule, fired, utc(2024, 6, 14, 12, 0), UTC, last_activity=activity)

    def test_activity_after_fire_resets_gap(self):
        fired = utc(2024, 6, 11, 12, 0)
        activity = utc(2024, 6, 13, 8, 0)
        assert not is_due(self.schedule, fired, utc(2024, 6, 15, 12, 0), UTC, last_activity=activity)
        assert is_due(self.schedule, fired, utc(2024, 6, 16, 8, 0), UTC, last_activity=activity)

    def test_no_activity_counts_from_creation(self):
        created = utc(2024, 6, 1, 0, 0)
        assert not is_due(self.schedule, None, utc(2024, 6, 3, 0, 0), UTC, created_at=created)
        assert is_due(self.schedule, None, utc(2024, 6, 4, 0, 0), UTC, created_at=created)

    def test_occurrence_never_older_than_catch_up_window(self):
        activity = utc(2024, 5, 1, 0, 0)
        now = utc(2024, 6, 12, 12, 0)
        occurrence = due_occurrence(self.schedule, None, now, UTC, last_activity=activity)
        assert occurrence == now - timedelta(hours=24)


class TestScheduleValidation:
    def test_weekly_requires_day_of_week(self):
        with pytest.raises(ScheduleValidationError):
            check_schedule(ReminderSchedule(kind="weekly", time_of_day=time(9, 0)))

    def test_daily_requires_time(self):
        with pytest.raises(ScheduleValidationError):
            check_schedule(ReminderSchedule(kind="daily"))

    def test_daily_rejects_day_of_week(self):
        with pytest.raises(ScheduleValidationError):
            check_schedule(ReminderSchedule(kind="daily", time_of_day=time(9, 0), day_of_week=2))

    def test_smart_rejects_time(self):
        with pytest.raises(ScheduleValidationError):
            check_schedule(ReminderSchedule(kind="smart", time_of_day=time(9, 0), smart_threshold=2))

    def test_unknown_kind(self):
        with pytest.raises(ScheduleValidationError):
            check_schedule(ReminderSchedule(kind="hourly", time_of_day=time(9, 0)))


class TestSubscriptionPeriods:
    def test_weekly_advance_crosses_month(self):
        assert advance("weekly", date(2024, 1, 29)) == date(2024, 2, 5)

    def test_monthly_anchor_day_restored(self):
        feb = advance("monthly", date(2024, 1, 31), anchor_day=31)
        assert feb == date(2024, 2, 29)
        assert advance("monthly", feb, anchor_day=31) == date(2024, 3, 31)

    def test_add_months_negative(self):
        assert add_months(date(2024, 3, 31), -1) == date(2024, 2, 29)
        assert add_months(date(2024, 1, 15), -2) == date(2023, 11, 15)

    def test_quarterly_period(self):
        assert period_for("quarterly", date(2024, 4, 1)) == (date(2024, 1, 1), date(2024, 4, 1))

    def test_monthly_period_with_anchor(self):
        assert period_for("monthly", date(2024, 3, 31), anchor_day=31) == (date(2024, 2, 29), date(2024, 3, 31))

    def test_yearly_leap_day(self):
        assert advance("yearly", date(2024, 2, 29), anchor_day=29) == date(2025, 2, 28)
        assert advance("yearly", date(2027, 2, 28), anchor_day=29) == date(2028, 2, 29)

    def test_trailing_period_ends_today_exclusive(self):
        assert trailing_period("weekly", date(2024, 6, 12)) == (date(2024, 6, 5), date(2024, 6, 12))

    def test_invalid_frequency(self):
        with pytest.raises(ValueError):
            advance("daily", date(2024, 1, 1))

    def test_is_subscription_due(self):
        assert is_subscription_due(date(2024, 6, 12), date(2024, 6, 12))
        assert is_subscription_due(date(2024, 6, 1), date(2024, 6, 12))
        assert not is_subscription_due(date(2024, 6, 13), date(2024, 6, 12))
        assert not is_subscription_due(None, date(2024, 6, 12))
