"""
Clock source: the only place the engine reads "now".

Everything downstream receives instants explicitly so tests can pin time.
"""
import logging
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)


class SystemClock:
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """Clock pinned to a given instant; advance() moves it forward."""

    def __init__(self, instant: datetime):
        self._now = as_utc(instant)

    def now(self) -> datetime:
        return self._now

    def advance(self, delta) -> None:
        self._now = self._now + delta


def resolve_timezone(name: str | None, default: str = "UTC") -> ZoneInfo:
    """Return ZoneInfo for an IANA name, falling back to default on bad input."""
    if name:
        try:
            return ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning("Invalid timezone %r, falling back to %s", name, default)
    return ZoneInfo(default)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes (SQLite drops tzinfo) and normalise aware ones."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def local_today(now: datetime, tz: ZoneInfo) -> date:
    return as_utc(now).astimezone(tz).date()


def local_midnight(day: date, tz: ZoneInfo) -> datetime:
    """Start of a local calendar day, as a UTC instant."""
    return datetime(day.year, day.month, day.day, tzinfo=tz).astimezone(timezone.utc)
