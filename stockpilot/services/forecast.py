"""Revenue forecasting by trend-seeded drift."""

from __future__ import annotations

import statistics
from dataclasses import dataclass
from typing import Optional, Sequence

from stockpilot.services.timeseries import Resolution, RevenuePoint, TimePeriod, next_period
from stockpilot.services.trend import Seasonality, Trend, TrendResult


@dataclass
class ForecastPoint:
    period: TimePeriod
    value: float

    def to_dict(self) -> dict:
        return {
            "date": self.period.label,
            "start": self.period.start.isoformat(),
            "end": self.period.end.isoformat(),
            "value": round(self.value, 2),
        }


def linear_slope(values: Sequence[float]) -> float:
    """Least-squares slope of the values against their position."""
    if len(values) < 2 or len(set(values)) == 1:
        return 0.0
    slope, _ = statistics.linear_regression(list(range(len(values))), list(values))
    return slope


class Forecaster:
    """Extrapolates future periods from a historical series.

    The baseline is the recent average (deseasonalised when a cycle was
    detected). Increasing series drift upward by the magnitude of the
    least-squares slope, decreasing series drift downward by it and flat
    series repeat the baseline. Forecast values never go below zero.
    """

    def __init__(self, horizon: int = 12, recent_window: int = 4):
        self.horizon = horizon
        self.recent_window = recent_window

    def forecast(
        self,
        points: Sequence[RevenuePoint],
        resolution: Resolution,
        trend: TrendResult,
        seasonality: Optional[Seasonality] = None,
        horizon: Optional[int] = None,
    ) -> list[ForecastPoint]:
        horizon = self.horizon if horizon is None else horizon
        if not points or horizon <= 0:
            return []

        season = seasonality or Seasonality()
        values = [p.value for p in points]
        n = len(values)

        start = n - min(self.recent_window, n)
        recent = []
        for pos in range(start, n):
            factor = season.index_for(pos)
            recent.append(values[pos] / factor if factor > 0 else values[pos])
        baseline = statistics.fmean(recent)

        drift = abs(linear_slope(values))
        if trend.direction == Trend.DECREASING:
            drift = -drift
        elif trend.direction == Trend.FLAT:
            drift = 0.0

        forecasts = []
        period = points[-1].period
        for i in range(1, horizon + 1):
            period = next_period(period, resolution)
            value = max(0.0, baseline + drift * i) * season.index_for(n - 1 + i)
            forecasts.append(ForecastPoint(period=period, value=value))
        return forecasts
