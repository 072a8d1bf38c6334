"""Descriptive statistics over a revenue series."""

from __future__ import annotations

import statistics
from dataclasses import dataclass, field
from typing import Sequence

from stockpilot.services.timeseries import RevenuePoint

PERCENTILES = (25, 50, 75, 90, 95, 99)


@dataclass
class GrowthResult:
    overall: float = 0.0
    per_period: list[float] = field(default_factory=list)
    average_periodic: float = 0.0

    def to_dict(self) -> dict:
        return {
            "overall": round(self.overall, 2),
            "per_period": [round(g, 2) for g in self.per_period],
            "average_periodic": round(self.average_periodic, 2),
        }


@dataclass
class Extreme:
    label: str
    value: float

    def to_dict(self) -> dict:
        return {"date": self.label, "value": round(self.value, 2)}


@dataclass
class RevenueStats:
    total: float = 0.0
    average: float = 0.0
    median: float = 0.0
    min: Extreme = field(default_factory=lambda: Extreme("", 0.0))
    max: Extreme = field(default_factory=lambda: Extreme("", 0.0))
    percentiles: dict[int, float] = field(default_factory=lambda: {p: 0.0 for p in PERCENTILES})
    growth: GrowthResult = field(default_factory=GrowthResult)

    def to_dict(self) -> dict:
        return {
            "total": round(self.total, 2),
            "average": round(self.average, 2),
            "median": round(self.median, 2),
            "min": self.min.to_dict(),
            "max": self.max.to_dict(),
            "percentiles": {f"p{p}": round(v, 2) for p, v in self.percentiles.items()},
            "growth": self.growth.to_dict(),
        }


def median(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    return float(statistics.median(values))


def percentile(values: Sequence[float], pct: float) -> float:
    """Linear interpolation between closest ranks (p50 equals the median)."""
    if not values:
        return 0.0
    ordered = sorted(values)
    if len(ordered) == 1:
        return float(ordered[0])
    rank = (len(ordered) - 1) * pct / 100
    lower = int(rank)
    upper = min(lower + 1, len(ordered) - 1)
    fraction = rank - lower
    return ordered[lower] + (ordered[upper] - ordered[lower]) * fraction


def growth_rate(first: float, last: float) -> float:
    """Percentage change from ``first`` to ``last``.

    Growth from zero is reported as 100% when revenue appears and 0%
    otherwise.
    """
    if first == 0:
        return 100.0 if last > 0 else 0.0
    return (last - first) / abs(first) * 100


def compute_growth(values: Sequence[float]) -> GrowthResult:
    if len(values) < 2:
        return GrowthResult()
    per_period = [growth_rate(prev, cur) for prev, cur in zip(values, values[1:])]
    return GrowthResult(
        overall=growth_rate(values[0], values[-1]),
        per_period=per_period,
        average_periodic=statistics.fmean(per_period),
    )


def compute_statistics(points: Sequence[RevenuePoint]) -> RevenueStats:
    """Summary statistics for a series; an empty series yields zeros."""
    if not points:
        return RevenueStats()

    values = [p.value for p in points]
    low = min(points, key=lambda p: p.value)
    high = max(points, key=lambda p: p.value)
    total = sum(values)

    return RevenueStats(
        total=total,
        average=total / len(values),
        median=median(values),
        min=Extreme(low.period.label, low.value),
        max=Extreme(high.period.label, high.value),
        percentiles={p: percentile(values, p) for p in PERCENTILES},
        growth=compute_growth(values),
    )
