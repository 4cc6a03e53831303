from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable
from zoneinfo import ZoneInfo

from domain.models import HolidayRange, ensure_utc


@dataclass(frozen=True, slots=True)
class CalendarFields:
    hour: int
    day_of_month: int
    month: int
    weekday: int  # Monday == 0

    def as_tuple(self) -> tuple[int, int, int, int]:
        return self.month, self.day_of_month, self.hour, self.weekday


def local_time(timestamp: datetime, tz: str) -> datetime:
    return ensure_utc(timestamp).astimezone(ZoneInfo(tz))


def calendar_fields(timestamp: datetime, tz: str) -> CalendarFields:
    """Derive the calendar part of a feature vector in the fleet's local zone."""
    local = local_time(timestamp, tz)
    return CalendarFields(
        hour=local.hour,
        day_of_month=local.day,
        month=local.month,
        weekday=local.weekday(),
    )


class HolidayCalendar:
    """Inclusive holiday date ranges, queried by local calendar date."""

    def __init__(self, ranges: Iterable[HolidayRange] = (), tz: str = "UTC"):
        self.ranges: tuple[HolidayRange, ...] = tuple(ranges)
        self.tz = tz

    def __len__(self) -> int:
        return len(self.ranges)

    def contains_date(self, day: date) -> bool:
        return any(r.contains(day) for r in self.ranges)

    def is_holiday(self, timestamp: datetime) -> bool:
        return self.contains_date(local_time(timestamp, self.tz).date())
