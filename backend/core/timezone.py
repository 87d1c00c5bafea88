"""Conversion between absolute instants and the recurring weekly schedule.

Availability is declared as a weekday plus a local time of day, while
reservations are stored as naive UTC instants. Every conversion between the two
goes through this module and uses the single zone named by
``config.SCHEDULE_TIMEZONE``.
"""

from datetime import date, datetime, time, timedelta, timezone
from functools import lru_cache
from zoneinfo import ZoneInfo

from backend.core import config


@lru_cache(maxsize=None)
def _zone(name: str) -> ZoneInfo:
    return ZoneInfo(name)


def schedule_zone() -> ZoneInfo:
    return _zone(config.SCHEDULE_TIMEZONE)


def as_utc(instant: datetime) -> datetime:
    """Return an aware UTC datetime; naive values are taken to be UTC already."""
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc)


def to_storage(instant: datetime) -> datetime:
    """Naive UTC, the form reserve_time is stored and compared in."""
    return as_utc(instant).replace(tzinfo=None)


def schedule_weekday(day: date) -> int:
    """0 = Sunday ... 6 = Saturday."""
    return (day.weekday() + 1) % 7


def localize(instant: datetime) -> datetime:
    return as_utc(instant).astimezone(schedule_zone())


def weekday_and_time(instant: datetime) -> tuple[int, time]:
    local = localize(instant)
    return schedule_weekday(local.date()), local.time().replace(second=0, microsecond=0)


def local_to_storage(day: date, time_of_day: time) -> datetime:
    """Interpret a local date/time in the schedule zone and return naive UTC."""
    local = datetime.combine(day, time_of_day, tzinfo=schedule_zone())
    return to_storage(local)


def storage_window(from_date: date, to_date: date) -> tuple[datetime, datetime]:
    """Half-open naive UTC window covering from_date 00:00 through the end of to_date."""
    start = local_to_storage(from_date, time.min)
    end = local_to_storage(to_date + timedelta(days=1), time.min)
    return start, end


def today() -> date:
    return datetime.now(schedule_zone()).date()


def format_time(value: time) -> str:
    return value.strftime('%H:%M')
