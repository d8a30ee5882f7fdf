from __future__ import annotations

import math
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from functools import lru_cache
from zoneinfo import ZoneInfo

from django.conf import settings

from attendance.exceptions import InvalidEventTime

TWELVE_HOUR_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})\s*(AM|PM)$", re.IGNORECASE)
ALL_DAY = "All Day"
DEFAULT_CHECK_IN_WINDOW_MINUTES = 30


@lru_cache(maxsize=8)
def _zone(name: str) -> ZoneInfo:
    return ZoneInfo(name)


def reference_zone() -> ZoneInfo:
    return _zone(getattr(settings, "ATTENDANCE_TIME_ZONE", "UTC"))


def check_in_window_minutes() -> int:
    return int(getattr(settings, "ATTENDANCE_CHECK_IN_WINDOW_MINUTES", DEFAULT_CHECK_IN_WINDOW_MINUTES))


def local_date(instant: datetime, zone: ZoneInfo | None = None) -> date:
    return instant.astimezone(zone or reference_zone()).date()


def parse_time_string(value: str) -> tuple[int, int]:
    """Parse "6:00 PM" or "14:00" into (hour, minute).

    12:00 AM is midnight and 12:00 PM is noon. Anything that is neither a
    12-hour time nor a colon-separated pair of integers raises
    InvalidEventTime.
    """
    if not isinstance(value, str):
        raise InvalidEventTime(repr(value))

    text = value.strip()
    match = TWELVE_HOUR_PATTERN.match(text)
    if match:
        hours = int(match.group(1))
        minutes = int(match.group(2))
        period = match.group(3).upper()
        if period == "PM" and hours != 12:
            hours += 12
        if period == "AM" and hours == 12:
            hours = 0
        return hours, minutes

    parts = text.split(":")
    if len(parts) != 2 or not all(part.strip().isdigit() for part in parts):
        raise InvalidEventTime(value)
    return int(parts[0]), int(parts[1])


def resolve_instant(day: date, time_string: str, zone: ZoneInfo | None = None) -> datetime:
    hours, minutes = parse_time_string(time_string)
    try:
        return datetime(day.year, day.month, day.day, hours, minutes, tzinfo=zone or reference_zone())
    except ValueError as exc:
        raise InvalidEventTime(time_string) from exc


def round_hours(value: float) -> float:
    return math.floor(value * 100 + 0.5) / 100


def hours_between(start: datetime, end: datetime) -> float:
    return round_hours(max(0.0, (end - start).total_seconds() / 3600))


def event_duration_hours(start_time: str, end_time: str) -> float:
    if not start_time or not end_time or start_time == ALL_DAY or end_time == ALL_DAY:
        return 0.0
    start_h, start_m = parse_time_string(start_time)
    end_h, end_m = parse_time_string(end_time)
    minutes = (end_h * 60 + end_m) - (start_h * 60 + start_m)
    return max(0.0, minutes / 60)


@dataclass(frozen=True)
class EventWindow:
    event_id: int
    title: str
    date: date
    start_time: str
    end_time: str
    starts_at: datetime
    ends_at: datetime
    team_id: int | None = None

    def opens_at(self, window_minutes: int | None = None) -> datetime:
        if window_minutes is None:
            window_minutes = check_in_window_minutes()
        return self.starts_at - timedelta(minutes=window_minutes)

    def accepts(self, now: datetime, window_minutes: int | None = None) -> bool:
        return self.opens_at(window_minutes) <= now <= self.ends_at

    def has_ended(self, now: datetime) -> bool:
        return self.ends_at < now

    def effective_start(self, check_in_time: datetime) -> datetime:
        return max(check_in_time, self.starts_at)

    def hours_logged(self, check_in_time: datetime, check_out_time: datetime) -> float:
        return hours_between(self.effective_start(check_in_time), check_out_time)


def resolve_window(event, zone: ZoneInfo | None = None) -> EventWindow:
    zone = zone or reference_zone()
    return EventWindow(
        event_id=event.id,
        title=event.title,
        date=event.date,
        start_time=event.start_time,
        end_time=event.end_time,
        starts_at=resolve_instant(event.date, event.start_time, zone),
        ends_at=resolve_instant(event.date, event.end_time, zone),
        team_id=event.team_id,
    )
