"""Sales analytics engine.

Revenue-over-time analysis, projected earnings, price recommendations and
sales recommendations (weekday trends, product bundles).
Each entry point fetches its data from the injected ``SalesDataSource`` once
and then runs pure, synchronous computations over that snapshot; nothing is
cached between calls.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional

from stockpilot.config import Settings, get_settings
from stockpilot.exceptions import InsufficientDataError
from stockpilot.services.forecast import Forecaster, ForecastPoint
from stockpilot.services.pricing import (
    PriceElasticityEngine, PricingResult, compose_projections, product_revenue,
)
from stockpilot.services.records import SaleItemRecord, SaleRecord, coerce_amount, get_timezone
from stockpilot.services.revenue_stats import RevenueStats, compute_statistics
from stockpilot.services.sales_recommendations import SalesRecommendationEngine, SalesRecommendations
from stockpilot.services.sales_source import SalesDataSource
from stockpilot.services.timeseries import (
    Resolution, RevenuePoint, aggregate_revenue, generate_periods, next_period,
    select_resolution, window_bounds,
)
from stockpilot.services.trend import Seasonality, TrendClassifier, TrendResult

logger = logging.getLogger(__name__)


@dataclass
class RevenueAnalysis:
    """Complete revenue-over-time analysis."""
    data: list[RevenuePoint]
    stats: RevenueStats
    resolution: Resolution
    start_date: date
    end_date: date
    trend: TrendResult
    seasonality: Seasonality
    forecast_data: Optional[list[ForecastPoint]] = None

    @property
    def total(self) -> float:
        return self.stats.total

    def to_dict(self) -> dict:
        stats = self.stats.to_dict()
        return {
            "data": [p.to_dict() for p in self.data],
            "total": stats["total"],
            "average": stats["average"],
            "median": stats["median"],
            "min": stats["min"],
            "max": stats["max"],
            "percentiles": stats["percentiles"],
            "growth": stats["growth"],
            "resolution": self.resolution.value,
            "date_range": {
                "start": self.start_date.isoformat(),
                "end": self.end_date.isoformat(),
            },
            "trend": self.trend.direction.value,
            "trend_detail": self.trend.to_dict(),
            "seasonality": self.seasonality.to_dict(),
            "forecast_data": (
                [f.to_dict() for f in self.forecast_data]
                if self.forecast_data is not None else None
            ),
        }


@dataclass
class ProjectedEarnings:
    actual: list[RevenuePoint] = field(default_factory=list)
    projected: list[ForecastPoint] = field(default_factory=list)
    resolution: Resolution = Resolution.DAILY

    @property
    def today_index(self) -> int:
        return max(0, len(self.actual) - 1)

    def to_dict(self) -> dict:
        return {
            "actual": [dict(p.to_dict(), is_projected=False) for p in self.actual],
            "projected": [dict(p.to_dict(), is_projected=True) for p in self.projected],
            "today_index": self.today_index,
            "resolution": self.resolution.value,
        }


def item_revenue_sales(items: list[SaleItemRecord]) -> list[SaleRecord]:
    """Turn sale lines into revenue records (price x quantity) for bucketing."""
    return [
        SaleRecord(
            id=item.id,
            timestamp=item.timestamp,
            total_amount=_line_total(item),
            tenant_id=item.tenant_id,
        )
        for item in items
    ]


def _line_total(item: SaleItemRecord) -> float:
    price = coerce_amount(item.unit_price)
    quantity = coerce_amount(item.quantity)
    return price * quantity if price > 0 and quantity > 0 else 0.0


class SalesAnalytics:
    """Analytics entry points over an injected data source.

    ``today`` can be pinned for reproducible reports; by default it is the
    current date in the configured reporting timezone.
    """

    def __init__(
        self,
        source: SalesDataSource,
        settings: Optional[Settings] = None,
        today: Optional[date] = None,
    ):
        self.source = source
        self.settings = settings or get_settings()
        self.tz = get_timezone(self.settings.reporting_timezone)
        self._today = today
        self.classifier = TrendClassifier(
            noise_pct=self.settings.trend_noise_pct,
            seasonality_threshold=self.settings.seasonality_threshold,
        )
        self.forecaster = Forecaster(horizon=self.settings.forecast_horizon)
        self.pricing = PriceElasticityEngine(
            search_pct=self.settings.price_search_pct,
            min_elasticity=self.settings.min_elasticity,
            max_elasticity=self.settings.max_elasticity,
        )
        self.recommender = SalesRecommendationEngine(tz=self.tz)

    # ── Helpers ─────────────────────────────────────────

    @property
    def today(self) -> date:
        return self._today or datetime.now(self.tz).date()

    def _since(self, start: date) -> datetime:
        return datetime.combine(start, time.min, tzinfo=self.tz).astimezone(timezone.utc)

    def _series(self, records: list[SaleRecord], window_days: int):
        """Bucketed revenue for the window.

        Raises ``InsufficientDataError`` when no record lands in any bucket,
        e.g. every fetched row is future-dated or undated.
        """
        start, end = window_bounds(window_days, self.today)
        resolution = select_resolution(window_days)
        periods = generate_periods(start, end, resolution)
        points = aggregate_revenue(records, periods, self.tz)
        if not any(p.count for p in points):
            raise InsufficientDataError("No sales fall inside the analysis window")
        return points, resolution, start, end

    # ── Revenue over time ───────────────────────────────

    async def analyze_revenue(
        self,
        window_days: int,
        tenant_id: Optional[str] = None,
        include_forecast: bool = False,
    ) -> RevenueAnalysis:
        """Aggregate, describe and classify revenue for the last ``window_days``."""
        start, _ = window_bounds(window_days, self.today)
        sales = await self.source.fetch_sales(tenant_id, self._since(start))
        logger.debug(f"Revenue analysis: window={window_days}d tenant={tenant_id} sales={len(sales)}")

        if not sales:
            raise InsufficientDataError("Insufficient sales data for revenue analysis")

        points, resolution, start, end = self._series(sales, window_days)
        stats = compute_statistics(points)
        trend, seasonality = self.classifier.classify(points, resolution)

        forecast_data = None
        if include_forecast:
            forecast_data = self.forecaster.forecast(points, resolution, trend, seasonality)

        return RevenueAnalysis(
            data=points,
            stats=stats,
            resolution=resolution,
            start_date=start,
            end_date=end,
            trend=trend,
            seasonality=seasonality,
            forecast_data=forecast_data,
        )

    # ── Projected earnings ──────────────────────────────

    async def project_earnings(
        self,
        window_days: int,
        tenant_id: Optional[str] = None,
    ) -> ProjectedEarnings:
        """Actual revenue for the window plus a projection as far ahead."""
        start, _ = window_bounds(window_days, self.today)
        sales = await self.source.fetch_sales(tenant_id, self._since(start))
        if not sales:
            raise InsufficientDataError("Insufficient sales data for projections")

        points, resolution, _, end = self._series(sales, window_days)
        trend, seasonality = self.classifier.classify(points, resolution)

        horizon_end = end + timedelta(days=window_days)
        horizon = 0
        period = points[-1].period
        while True:
            period = next_period(period, resolution)
            if period.start > horizon_end:
                break
            horizon += 1

        projected = self.forecaster.forecast(points, resolution, trend, seasonality, horizon=horizon)
        return ProjectedEarnings(actual=points, projected=projected, resolution=resolution)

    # ── Price recommendations ───────────────────────────

    async def calculate_price_recommendations(
        self,
        window_days: int,
        tenant_id: Optional[str] = None,
        confidence_threshold: str = "all",
    ) -> PricingResult:
        """Elasticity-based price recommendations and projected revenue uplift."""
        start, _ = window_bounds(window_days, self.today)
        items = await self.source.fetch_sale_items(tenant_id, self._since(start))
        logger.debug(f"Price analysis: window={window_days}d tenant={tenant_id} items={len(items)}")

        recommendations = self.pricing.recommend(items, confidence_threshold)
        if not recommendations:
            return PricingResult()

        try:
            points, resolution, _, _ = self._series(item_revenue_sales(items), window_days)
        except InsufficientDataError:
            logger.debug("No dated sale lines inside the window, skipping revenue projections")
            return PricingResult(recommendations=recommendations)
        trend, seasonality = self.classifier.classify(points, resolution)
        forecast = self.forecaster.forecast(
            points, resolution, trend, seasonality,
            horizon=self.settings.projection_horizon,
        )
        projections = compose_projections(recommendations, forecast, product_revenue(items))
        return PricingResult(recommendations=recommendations, revenue_projections=projections)

    # ── Sales recommendations ───────────────────────────

    async def calculate_sales_recommendations(
        self,
        window_days: int,
        tenant_id: Optional[str] = None,
        confidence_threshold: str = "medium",
    ) -> SalesRecommendations:
        """Day-of-week trends and product bundles from the window's sale lines."""
        start, _ = window_bounds(window_days, self.today)
        items = await self.source.fetch_sale_items(tenant_id, self._since(start))
        logger.debug(f"Sales recommendations: window={window_days}d tenant={tenant_id} items={len(items)}")
        return self.recommender.recommend(items, confidence_threshold)
