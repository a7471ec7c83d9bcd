"""Calendar-day windows and period arithmetic.

A report day is a calendar date in the report timezone. Its window runs from
00:00:00.000 to 23:59:59.999 local time and is handed to backends in UTC.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from math import floor

from dateutil import tz

SECONDS_PER_MINUTE = 60


def resolve_timezone(name: str) -> tzinfo:
    zone = tz.gettz(name)
    if zone is None:
        raise ValueError(f"Unknown timezone: {name}")
    return zone


def parse_report_date(value: str | date) -> date:
    """Parse ``YYYY-MM-DD``; rejects anything else."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        raise ValueError(f"Report date must be YYYY-MM-DD, got {value!r}") from None


def today_in(zone_name: str, now: datetime | None = None) -> date:
    now = now or datetime.now(timezone.utc)
    return now.astimezone(resolve_timezone(zone_name)).date()


def previous_day(day: date) -> date:
    """Calendar yesterday, not 24 raw hours."""
    return day - timedelta(days=1)


@dataclass(frozen=True)
class DayWindow:
    """Inclusive local day boundaries, carried as aware datetimes."""

    day: date
    start: datetime
    end: datetime

    @classmethod
    def for_day(cls, day: date, zone_name: str) -> "DayWindow":
        zone = resolve_timezone(zone_name)
        start = datetime.combine(day, time.min, tzinfo=zone)
        end = datetime.combine(day, time(23, 59, 59, 999000), tzinfo=zone)
        return cls(day=day, start=start, end=end)

    @property
    def date_key(self) -> str:
        return self.day.isoformat()

    @property
    def start_utc(self) -> datetime:
        return self.start.astimezone(timezone.utc)

    @property
    def end_exclusive_utc(self) -> datetime:
        """First instant after the window, for APIs with an open end."""
        return (self.end + timedelta(milliseconds=1)).astimezone(timezone.utc)

    @property
    def seconds(self) -> float:
        """Span including the final millisecond (86400 for a full day)."""
        return (self.end - self.start + timedelta(milliseconds=1)).total_seconds()


def bucket_start(timestamp_seconds: float, granularity_seconds: int) -> int:
    return int(floor(timestamp_seconds / granularity_seconds) * granularity_seconds)


def normalize_period(
    window_seconds: float,
    min_seconds: int = 3600,
    max_seconds: int = 86400,
) -> int:
    """Aggregation period accepted by Contributor Insights for a window.

    Clamped to [min_seconds, max_seconds], then rounded down to a whole
    number of minutes, never below one minute.
    """
    clamped = min(max(window_seconds, min_seconds), max_seconds)
    return max(bucket_start(clamped, SECONDS_PER_MINUTE), SECONDS_PER_MINUTE)
