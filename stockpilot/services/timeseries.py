"""Time bucketing for revenue series.

Picks an aggregation resolution for a day-count window, lays out the
gapless sequence of periods covering the window and sums sale totals into
those periods.
"""

from __future__ import annotations

import logging
from bisect import bisect_right
from dataclasses import dataclass
from datetime import date, timedelta, timezone, tzinfo
from enum import Enum
from typing import Sequence

from stockpilot.exceptions import InsufficientDataError, InvalidWindowError
from stockpilot.services.records import SaleRecord, coerce_amount, to_local_date

logger = logging.getLogger(__name__)


class Resolution(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


# Inclusive upper bounds, in days, for each resolution.
DAILY_MAX_DAYS = 31
WEEKLY_MAX_DAYS = 180
MONTHLY_MAX_DAYS = 730


def select_resolution(window_days: int) -> Resolution:
    """Aggregation granularity for a window of ``window_days`` days.

    ``<= 31`` daily, ``<= 180`` weekly, ``<= 730`` monthly, anything larger
    yearly.
    """
    if window_days <= DAILY_MAX_DAYS:
        return Resolution.DAILY
    elif window_days <= WEEKLY_MAX_DAYS:
        return Resolution.WEEKLY
    elif window_days <= MONTHLY_MAX_DAYS:
        return Resolution.MONTHLY
    return Resolution.YEARLY


@dataclass(frozen=True)
class TimePeriod:
    """Inclusive date range for one bucket."""
    start: date
    end: date
    label: str

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    def to_dict(self) -> dict:
        return {
            "label": self.label,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
        }


@dataclass
class RevenuePoint:
    period: TimePeriod
    value: float = 0.0
    count: int = 0

    def to_dict(self) -> dict:
        return {
            "date": self.period.label,
            "start": self.period.start.isoformat(),
            "end": self.period.end.isoformat(),
            "value": round(self.value, 2),
            "count": self.count,
        }


# ── Period arithmetic ───────────────────────────────────

def period_start(day: date, resolution: Resolution) -> date:
    if resolution == Resolution.DAILY:
        return day
    elif resolution == Resolution.WEEKLY:
        return day - timedelta(days=day.weekday())  # Monday
    elif resolution == Resolution.MONTHLY:
        return day.replace(day=1)
    return day.replace(month=1, day=1)


def period_end(start: date, resolution: Resolution) -> date:
    if resolution == Resolution.DAILY:
        return start
    elif resolution == Resolution.WEEKLY:
        return start + timedelta(days=6)
    elif resolution == Resolution.MONTHLY:
        if start.month == 12:
            return date(start.year, 12, 31)
        return start.replace(month=start.month + 1, day=1) - timedelta(days=1)
    return date(start.year, 12, 31)


def period_label(start: date, resolution: Resolution) -> str:
    if resolution in (Resolution.DAILY, Resolution.WEEKLY):
        return start.isoformat()
    elif resolution == Resolution.MONTHLY:
        return f"{start.year:04d}-{start.month:02d}"
    return f"{start.year:04d}"


def full_period(day: date, resolution: Resolution) -> TimePeriod:
    """The complete (unclipped) period containing ``day``."""
    start = period_start(day, resolution)
    return TimePeriod(start, period_end(start, resolution), period_label(start, resolution))


def next_period(period: TimePeriod, resolution: Resolution) -> TimePeriod:
    """The full period immediately following ``period``."""
    current = period_start(period.start, resolution)
    return full_period(period_end(current, resolution) + timedelta(days=1), resolution)


# ── Window / bucket generation ──────────────────────────

def window_bounds(window_days: int, today: date) -> tuple[date, date]:
    """Return ``(today - window_days, today)``."""
    if isinstance(window_days, bool) or not isinstance(window_days, int) or window_days <= 0:
        raise InvalidWindowError(f"Invalid analysis window: {window_days!r} days")
    return today - timedelta(days=window_days), today


def generate_periods(start: date, today: date, resolution: Resolution) -> list[TimePeriod]:
    """Ordered, gapless periods covering ``[start, today]``.

    The first period is clipped to begin at ``start`` and the last one to end
    at ``today``, so a period in progress appears as a partial bucket. Empty
    periods are never skipped.
    """
    if today <= start:
        raise InvalidWindowError(
            f"Window start {start.isoformat()} must be before {today.isoformat()}"
        )

    periods: list[TimePeriod] = []
    current = full_period(start, resolution)
    while current.start <= today:
        periods.append(TimePeriod(
            start=max(current.start, start),
            end=min(current.end, today),
            label=current.label,
        ))
        current = next_period(current, resolution)
    return periods


# ── Aggregation ─────────────────────────────────────────

def aggregate_revenue(
    sales: Sequence[SaleRecord],
    periods: Sequence[TimePeriod],
    tz: tzinfo = timezone.utc,
) -> list[RevenuePoint]:
    """Sum sale totals into ``periods``, one point per period.

    Non-numeric totals count as 0. Sales with unparseable timestamps or
    outside the covered range are skipped.
    """
    if not sales:
        raise InsufficientDataError("Insufficient sales data for revenue analysis")

    points = [RevenuePoint(period=p) for p in periods]
    if not points:
        return points

    starts = [p.start for p in periods]
    last_day = periods[-1].end
    skipped = 0

    for sale in sales:
        day = to_local_date(sale.timestamp, tz)
        if day is None or day < starts[0] or day > last_day:
            skipped += 1
            continue
        point = points[bisect_right(starts, day) - 1]
        point.value += coerce_amount(sale.total_amount)
        point.count += 1

    if skipped:
        logger.debug(f"Skipped {skipped} of {len(sales)} sales outside the window or undated")
    return points
