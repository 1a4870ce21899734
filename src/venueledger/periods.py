"""
Time bucketing — calendar keys for grouped series and period comparison.

Maps a calendar day to a bucket at a chosen granularity (day, ISO week,
month, year) and derives the "previous period of equal length" that every
report compares against.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from enum import Enum


class Granularity(str, Enum):
    """Grouping granularity for time series."""

    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"


@dataclass(frozen=True)
class BucketKey:
    """Identity of one time-series slot."""

    key: str
    label: str
    sort_key: date


@dataclass(frozen=True)
class PeriodRange:
    """Inclusive calendar range. An unordered pair is swapped on creation."""

    start: date
    end: date

    def __post_init__(self) -> None:
        if self.start > self.end:
            start, end = self.end, self.start
            object.__setattr__(self, "start", start)
            object.__setattr__(self, "end", end)

    @property
    def day_count(self) -> int:
        return (self.end - self.start).days + 1

    def contains(self, d: date) -> bool:
        return self.start <= d <= self.end

    def days(self) -> list[date]:
        return [self.start + timedelta(days=i) for i in range(self.day_count)]

    def previous(self) -> PeriodRange:
        return previous_period(self.start, self.end)

    def __str__(self) -> str:
        return f"{self.start.isoformat()} — {self.end.isoformat()}"


def week_start(d: date) -> date:
    """Monday of the ISO week containing ``d``."""
    return d - timedelta(days=d.weekday())


def iso_week_key(d: date) -> str:
    iso_year, iso_week, _ = d.isocalendar()
    return f"{iso_year}-W{iso_week:02d}"


def days_in_month(d: date) -> int:
    return calendar.monthrange(d.year, d.month)[1]


def bucket_key(d: date, granularity: Granularity | str) -> BucketKey:
    """Bucket identity of a day at the given granularity.

    Week keys follow ISO-8601 numbering (the week belongs to the year of its
    Thursday), so 2024-12-30 falls in ``2025-W01`` and sorts by its Monday.
    """
    granularity = Granularity(granularity)
    if granularity is Granularity.DAY:
        text = d.isoformat()
        return BucketKey(key=text, label=text, sort_key=d)
    if granularity is Granularity.WEEK:
        key = iso_week_key(d)
        return BucketKey(key=key, label=key, sort_key=week_start(d))
    if granularity is Granularity.MONTH:
        key = f"{d.year:04d}-{d.month:02d}"
        return BucketKey(key=key, label=key, sort_key=d.replace(day=1))
    key = f"{d.year:04d}"
    return BucketKey(key=key, label=key, sort_key=date(d.year, 1, 1))


def bucket_span(d: date, granularity: Granularity | str) -> PeriodRange:
    """Full calendar range of the bucket containing ``d``."""
    granularity = Granularity(granularity)
    if granularity is Granularity.DAY:
        return PeriodRange(d, d)
    if granularity is Granularity.WEEK:
        monday = week_start(d)
        return PeriodRange(monday, monday + timedelta(days=6))
    if granularity is Granularity.MONTH:
        return PeriodRange(d.replace(day=1), d.replace(day=days_in_month(d)))
    return PeriodRange(date(d.year, 1, 1), date(d.year, 12, 31))


def remaining_buckets(d: date, granularity: Granularity | str) -> int:
    """Buckets still to come after the one containing ``d``.

    Daily and weekly series run to the end of the month of ``d`` (a week
    counts when its Monday falls inside the month), monthly series to the end
    of the year. A yearly series has nothing left.
    """
    granularity = Granularity(granularity)
    if granularity is Granularity.DAY:
        return days_in_month(d) - d.day
    if granularity is Granularity.WEEK:
        month_end = d.replace(day=days_in_month(d))
        return (month_end - week_start(d)).days // 7
    if granularity is Granularity.MONTH:
        return 12 - d.month
    return 0


def remaining_horizon(granularity: Granularity | str) -> str:
    """Name of the span ``remaining_buckets`` counts towards."""
    granularity = Granularity(granularity)
    if granularity in (Granularity.DAY, Granularity.WEEK):
        return "month"
    return "year"


def previous_period(date_from: date, date_to: date) -> PeriodRange:
    """The range of identical length that ends the day before ``date_from``."""
    if date_from > date_to:
        date_from, date_to = date_to, date_from
    length = (date_to - date_from).days + 1
    prev_to = date_from - timedelta(days=1)
    prev_from = prev_to - timedelta(days=length - 1)
    return PeriodRange(prev_from, prev_to)


def percentage_change(current: Decimal | float, previous: Decimal | float) -> float | None:
    """Relative change in percent, ``None`` when there is nothing to compare."""
    if previous == 0:
        return 100.0 if current > 0 else None
    if current == 0:
        return -100.0
    return float((Decimal(str(current)) - Decimal(str(previous))) / Decimal(str(previous)) * 100)
