"""Comment time-series bucketing.

Bucket granularity follows the calendar-day span of the window:

    lifetime        -> yearly   (one bucket per year, from 1970 at the earliest)
    <= 31 days      -> daily
    <= 90 days      -> weekly   (7-day spans anchored at the window start)
    <= 180 days     -> biweekly (14-day spans, when enabled)
    otherwise       -> monthly  (calendar months)

Labels and bucket indices are derived from the same arithmetic so a comment
always lands in the slot whose label covers it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Iterable

DAILY = "daily"
WEEKLY = "weekly"
BIWEEKLY = "biweekly"
MONTHLY = "monthly"
YEARLY = "yearly"

MIN_YEAR = 1970
DAILY_MAX_DAYS = 31
WEEKLY_MAX_DAYS = 90
BIWEEKLY_MAX_DAYS = 180

_SPAN_DAYS = {WEEKLY: 7, BIWEEKLY: 14}


@dataclass
class TimeBucket:
    label: str
    total: int = 0
    positive: int = 0
    negative: int = 0


@dataclass
class TimeSeries:
    granularity: str
    buckets: list[TimeBucket] = field(default_factory=list)

    @property
    def labels(self) -> list[str]:
        return [b.label for b in self.buckets]


def span_days(start: datetime, end: datetime) -> int:
    return (end.date() - start.date()).days


def choose_granularity(
    start: datetime,
    end: datetime,
    *,
    lifetime: bool = False,
    allow_biweekly: bool = True,
) -> str:
    if lifetime:
        return YEARLY
    days = span_days(start, end)
    if days <= DAILY_MAX_DAYS:
        return DAILY
    if days <= WEEKLY_MAX_DAYS:
        return WEEKLY
    if allow_biweekly and days <= BIWEEKLY_MAX_DAYS:
        return BIWEEKLY
    return MONTHLY


def _day_label(d: date) -> str:
    return f"{d:%b} {d.day}"


def _first_year(start: datetime) -> int:
    return max(MIN_YEAR, start.year)


def build_labels(granularity: str, start: datetime, end: datetime) -> list[str]:
    """Ordered, human-readable labels for every bucket in [start, end]."""
    if end < start:
        return []

    start_day, end_day = start.date(), end.date()

    if granularity == DAILY:
        days = span_days(start, end)
        return [_day_label(start_day + timedelta(days=i)) for i in range(days + 1)]

    if granularity in _SPAN_DAYS:
        step = _SPAN_DAYS[granularity]
        labels = []
        bucket_start = start_day
        while bucket_start <= end_day:
            bucket_end = min(bucket_start + timedelta(days=step - 1), end_day)
            labels.append(f"{_day_label(bucket_start)} - {_day_label(bucket_end)}")
            bucket_start += timedelta(days=step)
        return labels

    if granularity == MONTHLY:
        count = (end.year - start.year) * 12 + (end.month - start.month) + 1
        labels = []
        year, month = start.year, start.month
        for _ in range(count):
            labels.append(f"{date(year, month, 1):%b} {year}")
            month += 1
            if month > 12:
                year, month = year + 1, 1
        return labels

    if granularity == YEARLY:
        return [str(y) for y in range(_first_year(start), end.year + 1)]

    raise ValueError(f"unknown granularity: {granularity}")


def bucket_index(granularity: str, start: datetime, ts: datetime) -> int:
    """Index of the bucket holding ``ts``. May be out of range."""
    if granularity == DAILY:
        return (ts.date() - start.date()).days
    if granularity in _SPAN_DAYS:
        return (ts.date() - start.date()).days // _SPAN_DAYS[granularity]
    if granularity == MONTHLY:
        return (ts.year - start.year) * 12 + (ts.month - start.month)
    if granularity == YEARLY:
        return ts.year - _first_year(start)
    raise ValueError(f"unknown granularity: {granularity}")


def build_time_series(
    comments: Iterable,
    start: datetime,
    end: datetime,
    *,
    lifetime: bool = False,
    allow_biweekly: bool = True,
) -> TimeSeries:
    """Count total/positive/negative comments per bucket.

    Comments without a timestamp, or whose index falls outside the label
    range, are skipped.
    """
    granularity = choose_granularity(
        start, end, lifetime=lifetime, allow_biweekly=allow_biweekly
    )
    buckets = [TimeBucket(label=label) for label in build_labels(granularity, start, end)]

    for comment in comments:
        ts = comment.created_time
        if ts is None:
            continue
        idx = bucket_index(granularity, start, ts)
        if idx < 0 or idx >= len(buckets):
            continue
        bucket = buckets[idx]
        bucket.total += 1
        if comment.sentiment == "positive":
            bucket.positive += 1
        elif comment.sentiment == "negative":
            bucket.negative += 1

    return TimeSeries(granularity=granularity, buckets=buckets)
