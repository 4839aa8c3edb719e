"""Calendar helpers anchored to the scheduler timezone."""
from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Iterator
from zoneinfo import ZoneInfo

from tempo.core.config import settings


def local_now() -> datetime:
    return datetime.now(ZoneInfo(settings.scheduler_timezone))


def local_today() -> date:
    return local_now().date()


def to_local(value: datetime) -> datetime:
    return value.astimezone(ZoneInfo(settings.scheduler_timezone))


def to_minutes(value: time) -> int:
    return value.hour * 60 + value.minute


def from_minutes(minutes: int) -> time:
    if minutes >= 24 * 60:
        return time(23, 59)
    return time(minutes // 60, minutes % 60)


def minutes_between(start: time, end: time) -> int:
    return to_minutes(end) - to_minutes(start)


def ranges_overlap(start1: int, end1: int, start2: int, end2: int) -> bool:
    return start1 < end2 and end1 > start2


def daterange(start: date, end: date) -> Iterator[date]:
    """Inclusive day iterator."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)
