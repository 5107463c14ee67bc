"""
Period keys and feed windows.

Keys (UTC calendar, except local_week_key):
    day    YYYY-MM-DD
    week   YYYY-Www   (ISO week, zero-padded)
    month  YYYY-MM

A period's feed window is a rolling window that ends at ``now`` (or at the
period's end for past periods): 24 hours for a day, 7 days minus a short
grace for a week, 30 days for a month.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta, tzinfo
from enum import Enum

from toolplug.config import (
    FEED_PAGING_DAY,
    FEED_PAGING_MONTH,
    FEED_PAGING_WEEK,
    WINDOW_GRACE_MINUTES,
)

_DAY_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
_WEEK_RE = re.compile(r"^(\d{4})-W(\d{2})$")
_MONTH_RE = re.compile(r"^(\d{4})-(\d{2})$")


class PeriodKind(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"

    @property
    def is_categorized(self) -> bool:
        """Weekly periods carry one pick per category; the others a single pick."""
        return self is PeriodKind.WEEK


@dataclass(frozen=True)
class Window:
    start: datetime
    end: datetime

    def as_dict(self) -> dict[str, str]:
        return {"start": self.start.isoformat(), "end": self.end.isoformat()}


def utc_now() -> datetime:
    return datetime.now(UTC)


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC)


def day_key(moment: datetime) -> str:
    return _as_utc(moment).strftime("%Y-%m-%d")


def week_key(moment: datetime) -> str:
    year, week, _ = _as_utc(moment).isocalendar()
    return f"{year}-W{week:02d}"


def month_key(moment: datetime) -> str:
    return _as_utc(moment).strftime("%Y-%m")


def local_week_key(moment: datetime, tz: tzinfo) -> str:
    """ISO week of the calendar date ``moment`` falls on in ``tz``."""
    year, week, _ = _as_utc(moment).astimezone(tz).isocalendar()
    return f"{year}-W{week:02d}"


def period_key_for(kind: PeriodKind, moment: datetime | None = None) -> str:
    """Key of the period that contains ``moment`` (default: now)."""
    moment = moment or utc_now()
    if kind is PeriodKind.DAY:
        return day_key(moment)
    if kind is PeriodKind.WEEK:
        return week_key(moment)
    return month_key(moment)


def kind_of(period_key: str) -> PeriodKind:
    """
    Infer the period kind from the key's shape.

    Raises:
        ValueError: If the key matches none of the formats
    """
    if _WEEK_RE.match(period_key):
        return PeriodKind.WEEK
    if _DAY_RE.match(period_key):
        return PeriodKind.DAY
    if _MONTH_RE.match(period_key):
        return PeriodKind.MONTH
    raise ValueError(f"Unrecognized period key: {period_key!r}")


def period_bounds(period_key: str) -> tuple[datetime, datetime]:
    """
    Calendar [start, end) of a period in UTC.

    Raises:
        ValueError: For malformed keys or impossible dates (e.g. 2025-W60)
    """
    kind = kind_of(period_key)
    if kind is PeriodKind.DAY:
        start_date = date.fromisoformat(period_key)
        start = datetime(start_date.year, start_date.month, start_date.day, tzinfo=UTC)
        return start, start + timedelta(days=1)

    if kind is PeriodKind.WEEK:
        year, week = (int(part) for part in _WEEK_RE.match(period_key).groups())  # type: ignore[union-attr]
        start_date = date.fromisocalendar(year, week, 1)
        start = datetime(start_date.year, start_date.month, start_date.day, tzinfo=UTC)
        return start, start + timedelta(days=7)

    year, month = (int(part) for part in _MONTH_RE.match(period_key).groups())  # type: ignore[union-attr]
    if not 1 <= month <= 12:
        raise ValueError(f"Invalid month in period key: {period_key!r}")
    start = datetime(year, month, 1, tzinfo=UTC)
    next_month = datetime(year + (month == 12), month % 12 + 1, 1, tzinfo=UTC)
    return start, next_month


def _window_length(kind: PeriodKind) -> timedelta:
    if kind is PeriodKind.DAY:
        return timedelta(days=1)
    if kind is PeriodKind.WEEK:
        return timedelta(days=7) - timedelta(minutes=WINDOW_GRACE_MINUTES)
    return timedelta(days=30)


def rolling_window(kind: PeriodKind, end: datetime) -> Window:
    end = _as_utc(end)
    return Window(start=end - _window_length(kind), end=end)


def generation_window(period_key: str, now: datetime | None = None) -> Window:
    """
    Feed window used to generate ``period_key``.

    Ends at ``now`` for the current period and at the period's end for past
    periods.

    Raises:
        ValueError: For malformed keys or periods that have not started yet
    """
    now = _as_utc(now or utc_now())
    kind = kind_of(period_key)
    period_start, period_end = period_bounds(period_key)
    if period_start > now:
        raise ValueError(f"Period {period_key} has not started yet")
    return rolling_window(kind, min(now, period_end))


def paging_for(kind: PeriodKind) -> tuple[int, int]:
    """(max_pages, page_size) to request for a period kind."""
    if kind is PeriodKind.DAY:
        return FEED_PAGING_DAY
    if kind is PeriodKind.WEEK:
        return FEED_PAGING_WEEK
    return FEED_PAGING_MONTH


def sunday_weekday(moment: datetime) -> int:
    """Day of week with 0 = Sunday ... 6 = Saturday."""
    return (moment.weekday() + 1) % 7
