"""Trend and seasonality classification for revenue series."""

from __future__ import annotations

import logging
import math
import statistics
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Sequence

from stockpilot.services.timeseries import Resolution, RevenuePoint

logger = logging.getLogger(__name__)


class Trend(str, Enum):
    INCREASING = "increasing"
    DECREASING = "decreasing"
    FLAT = "flat"


# Cycle length in periods for the resolutions where seasonality is evaluated.
CYCLE_LENGTHS = {
    Resolution.WEEKLY: 4,
    Resolution.MONTHLY: 12,
}


@dataclass
class TrendResult:
    direction: Trend
    change_pct: float = 0.0
    early_average: float = 0.0
    late_average: float = 0.0

    def to_dict(self) -> dict:
        return {
            "direction": self.direction.value,
            "change_pct": round(self.change_pct, 2),
            "early_average": round(self.early_average, 2),
            "late_average": round(self.late_average, 2),
        }


@dataclass
class Seasonality:
    detected: bool = False
    pattern: Optional[str] = None
    cycle_length: Optional[int] = None
    correlation: float = 0.0
    strongest_offset: Optional[int] = None
    weakest_offset: Optional[int] = None
    indexes: list[float] = field(default_factory=list)

    def index_for(self, position: int) -> float:
        """Seasonal multiplier (1.0 = average) for a series position."""
        if not self.detected or not self.indexes:
            return 1.0
        return self.indexes[position % len(self.indexes)] / 100

    def to_dict(self) -> dict:
        return {
            "detected": self.detected,
            "pattern": self.pattern,
            "cycle_length": self.cycle_length,
            "correlation": round(self.correlation, 4),
            "strongest_offset": self.strongest_offset,
            "weakest_offset": self.weakest_offset,
            "indexes": [round(i, 2) for i in self.indexes],
        }


def lag_correlation(values: Sequence[float], lag: int) -> float:
    """Pearson correlation between the series and itself shifted by ``lag``.

    Deviations are taken from the mean of the whole series.
    """
    if lag <= 0 or len(values) <= lag:
        return 0.0
    mean = statistics.fmean(values)
    head = [v - mean for v in values[:-lag]]
    tail = [v - mean for v in values[lag:]]
    denom = math.sqrt(sum(h * h for h in head) * sum(t * t for t in tail))
    if denom == 0:
        return 0.0
    return sum(h * t for h, t in zip(head, tail)) / denom


class TrendClassifier:
    """Labels a series increasing/decreasing/flat and looks for cycles."""

    def __init__(self, noise_pct: float = 5.0, seasonality_threshold: float = 0.5):
        self.noise_pct = noise_pct
        self.seasonality_threshold = seasonality_threshold

    def detect_trend(self, points: Sequence[RevenuePoint]) -> TrendResult:
        """Compare the smoothed early-window average with the late one.

        The smoothing window is a third of the series (at least one period).
        """
        values = [p.value for p in points]
        if len(values) < 2:
            return TrendResult(direction=Trend.FLAT)

        k = max(1, len(values) // 3)
        early = statistics.fmean(values[:k])
        late = statistics.fmean(values[-k:])

        if early == 0:
            change = 100.0 if late > 0 else 0.0
        else:
            change = (late - early) / abs(early) * 100

        if change > self.noise_pct:
            direction = Trend.INCREASING
        elif change < -self.noise_pct:
            direction = Trend.DECREASING
        else:
            direction = Trend.FLAT

        return TrendResult(direction, change, early, late)

    def detect_seasonality(
        self,
        points: Sequence[RevenuePoint],
        resolution: Resolution,
    ) -> Seasonality:
        """Flag a recurring cycle when lag-cycle correlation is strong enough.

        Only weekly (4-period cycle) and monthly (12-period cycle) series are
        evaluated, and only once two full cycles are available.
        """
        cycle = CYCLE_LENGTHS.get(resolution)
        if cycle is None or len(points) < 2 * cycle:
            return Seasonality()

        values = [p.value for p in points]
        correlation = lag_correlation(values, cycle)
        if correlation < self.seasonality_threshold:
            return Seasonality(cycle_length=cycle, correlation=correlation)

        overall = statistics.fmean(values)
        if overall <= 0:
            return Seasonality(cycle_length=cycle, correlation=correlation)

        indexes = []
        for offset in range(cycle):
            bucket = values[offset::cycle]
            indexes.append(statistics.fmean(bucket) / overall * 100)

        strongest = max(range(cycle), key=lambda i: indexes[i])
        weakest = min(range(cycle), key=lambda i: indexes[i])
        peak_label = self._latest_label(points, strongest, cycle)
        trough_label = self._latest_label(points, weakest, cycle)

        logger.debug(f"Seasonality detected: cycle={cycle}, r={correlation:.3f}")
        return Seasonality(
            detected=True,
            pattern=f"{cycle}-period {resolution.value} cycle peaking at {peak_label}, lowest at {trough_label}",
            cycle_length=cycle,
            correlation=correlation,
            strongest_offset=strongest,
            weakest_offset=weakest,
            indexes=indexes,
        )

    def classify(
        self,
        points: Sequence[RevenuePoint],
        resolution: Resolution,
    ) -> tuple[TrendResult, Seasonality]:
        return self.detect_trend(points), self.detect_seasonality(points, resolution)

    @staticmethod
    def _latest_label(points: Sequence[RevenuePoint], offset: int, cycle: int) -> str:
        positions = range(offset, len(points), cycle)
        return points[positions[-1]].period.label
