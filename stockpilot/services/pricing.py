"""Price-elasticity pricing recommendations and revenue projections.

For every product the engine groups historical sale lines by the unit price
actually charged, estimates price elasticity of demand from those price points
and searches a bounded band around the current price for the price that
maximises projected revenue under a linear demand model::

    q(p) = q0 * (1 + e * (p / p0 - 1))

Confidence is a function of the number of usable observations only.
"""

from __future__ import annotations

import logging
import math
import statistics
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Sequence

from stockpilot.exceptions import InsufficientDataError
from stockpilot.services.forecast import ForecastPoint
from stockpilot.services.records import SaleItemRecord, coerce_amount, to_datetime

logger = logging.getLogger(__name__)


class Confidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


HIGH_CONFIDENCE_MIN_POINTS = 10
MEDIUM_CONFIDENCE_MIN_POINTS = 5

_CONFIDENCE_RANK = {Confidence.LOW: 0, Confidence.MEDIUM: 1, Confidence.HIGH: 2}
CONFIDENCE_THRESHOLDS = ("all", "low", "medium", "high")


def confidence_for(data_points: int) -> Confidence:
    if data_points >= HIGH_CONFIDENCE_MIN_POINTS:
        return Confidence.HIGH
    elif data_points >= MEDIUM_CONFIDENCE_MIN_POINTS:
        return Confidence.MEDIUM
    return Confidence.LOW


def meets_threshold(confidence: Confidence, threshold: str) -> bool:
    """True if ``confidence`` is at least ``threshold`` ("all" accepts everything)."""
    threshold = (threshold or "all").lower()
    if threshold == "all":
        return True
    return _CONFIDENCE_RANK[confidence] >= _CONFIDENCE_RANK[Confidence(threshold)]


@dataclass
class PriceRecommendation:
    product_id: str
    product_name: str
    current_price: float
    suggested_price: float
    confidence: Confidence
    elasticity: Optional[float]
    expected_sales_change_pct: float
    expected_revenue_change_pct: float
    history_data_points: int
    price_points: int

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "current_price": round(self.current_price, 2),
            "suggested_price": round(self.suggested_price, 2),
            "confidence": self.confidence.value,
            "elasticity": round(self.elasticity, 4) if self.elasticity is not None else None,
            "expected_sales_change_pct": round(self.expected_sales_change_pct, 2),
            "expected_revenue_change_pct": round(self.expected_revenue_change_pct, 2),
            "history_data_points": self.history_data_points,
            "price_points": self.price_points,
        }


@dataclass
class RevenueProjection:
    period_label: str
    current_revenue: float
    optimized_revenue: float

    def to_dict(self) -> dict:
        return {
            "date": self.period_label,
            "current_revenue": round(self.current_revenue, 2),
            "optimized_revenue": round(self.optimized_revenue, 2),
        }


@dataclass
class PricingResult:
    recommendations: list[PriceRecommendation] = field(default_factory=list)
    revenue_projections: list[RevenueProjection] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "recommendations": [r.to_dict() for r in self.recommendations],
            "revenue_projections": [p.to_dict() for p in self.revenue_projections],
        }


@dataclass
class _Observation:
    price: float
    quantity: float
    when: Optional[datetime]
    order: int


_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class PriceElasticityEngine:
    """Per-product elasticity estimation and revenue-maximising price search."""

    SEARCH_STEP_PCT = 0.5

    def __init__(
        self,
        search_pct: float = 20.0,
        min_elasticity: float = -3.0,
        max_elasticity: float = -0.1,
    ):
        self.search_pct = search_pct
        self.min_elasticity = min_elasticity
        self.max_elasticity = max_elasticity

    # ── Batch ───────────────────────────────────────────

    def recommend(
        self,
        items: Sequence[SaleItemRecord],
        confidence_threshold: str = "all",
    ) -> list[PriceRecommendation]:
        """Recommendations for every product with usable history.

        Raises ``InsufficientDataError`` only when there is no sale-item
        history at all. A product whose rows are all malformed, or whose
        computation fails, is skipped.
        """
        if (confidence_threshold or "all").lower() not in CONFIDENCE_THRESHOLDS:
            raise ValueError(f"Unknown confidence threshold: {confidence_threshold!r}")
        if not items:
            raise InsufficientDataError("No sale-item history available for price analysis")

        by_product: dict[str, list[SaleItemRecord]] = defaultdict(list)
        for item in items:
            if item.product_id is None or item.product_id == "":
                continue
            by_product[str(item.product_id)].append(item)

        recommendations = []
        for product_id, rows in by_product.items():
            try:
                rec = self.recommend_product(product_id, rows)
            except (ValueError, TypeError, ArithmeticError, statistics.StatisticsError) as e:
                logger.warning(f"Skipping product {product_id}: {e}")
                continue
            if rec is None:
                logger.debug(f"Skipping product {product_id}: no usable observations")
                continue
            if meets_threshold(rec.confidence, confidence_threshold):
                recommendations.append(rec)

        recommendations.sort(key=lambda r: r.expected_revenue_change_pct, reverse=True)
        return recommendations

    # ── Single product ──────────────────────────────────

    def recommend_product(
        self,
        product_id: str,
        rows: Sequence[SaleItemRecord],
    ) -> Optional[PriceRecommendation]:
        observations = self._observations(rows)
        if not observations:
            return None

        latest = max(observations, key=lambda o: (o.when or _EPOCH, o.order))
        current_price = latest.price
        name = next((r.product_name for r in reversed(rows) if r.product_name), "") or product_id

        demand = self.price_point_demand(observations)
        elasticity = self.estimate_elasticity(demand)

        if elasticity is None:
            suggested = current_price
            sales_change = revenue_change = 0.0
        else:
            suggested = self.optimal_price(current_price, elasticity)
            ratio = self.predicted_quantity_ratio(current_price, suggested, elasticity)
            sales_change = (ratio - 1) * 100
            revenue_change = (suggested / current_price * ratio - 1) * 100

        return PriceRecommendation(
            product_id=product_id,
            product_name=name,
            current_price=current_price,
            suggested_price=suggested,
            confidence=confidence_for(len(observations)),
            elasticity=elasticity,
            expected_sales_change_pct=sales_change,
            expected_revenue_change_pct=revenue_change,
            history_data_points=len(observations),
            price_points=len(demand),
        )

    @staticmethod
    def _observations(rows: Sequence[SaleItemRecord]) -> list[_Observation]:
        observations = []
        for order, row in enumerate(rows):
            price = coerce_amount(row.unit_price)
            quantity = coerce_amount(row.quantity)
            if price <= 0 or quantity <= 0:
                continue
            observations.append(_Observation(price, quantity, to_datetime(row.timestamp), order))
        return observations

    @staticmethod
    def price_point_demand(observations: Sequence[_Observation]) -> dict[float, float]:
        """Mean quantity per sale line at each distinct (cent-rounded) price."""
        grouped: dict[float, list[float]] = defaultdict(list)
        for obs in observations:
            grouped[round(obs.price, 2)].append(obs.quantity)
        return {price: statistics.fmean(qtys) for price, qtys in sorted(grouped.items())}

    def estimate_elasticity(self, demand: dict[float, float]) -> Optional[float]:
        """Elasticity from price points, or ``None`` with a single price point.

        Two price points use the arc (midpoint) formula between them; three or
        more use the log-log least-squares slope. The estimate is clamped to
        ``[min_elasticity, max_elasticity]``.
        """
        if len(demand) < 2:
            return None

        prices = list(demand)
        if len(prices) == 2:
            p1, p2 = prices
            q1, q2 = demand[p1], demand[p2]
            pct_price = (p2 - p1) / ((p1 + p2) / 2)
            pct_qty = (q2 - q1) / ((q1 + q2) / 2)
            raw = pct_qty / pct_price
        else:
            xs = [math.log(p) for p in prices]
            ys = [math.log(demand[p]) for p in prices]
            raw, _ = statistics.linear_regression(xs, ys)

        return min(self.max_elasticity, max(self.min_elasticity, raw))

    @staticmethod
    def predicted_quantity_ratio(base_price: float, price: float, elasticity: float) -> float:
        """q(price) / q(base_price) under the linear demand model, floored at 0."""
        return max(0.0, 1 + elasticity * (price / base_price - 1))

    def optimal_price(self, current_price: float, elasticity: float) -> float:
        """Revenue-maximising price within +/- ``search_pct`` of the current price.

        Ties keep the candidate closest to the current price.
        """
        steps = int(round(self.search_pct / self.SEARCH_STEP_PCT))
        best_price = current_price
        best_revenue = current_price  # ratio 1 at the current price

        for k in sorted(range(-steps, steps + 1), key=abs):
            price = current_price * (1 + k * self.SEARCH_STEP_PCT / 100)
            revenue = price * self.predicted_quantity_ratio(current_price, price, elasticity)
            if revenue > best_revenue + 1e-9:
                best_price, best_revenue = price, revenue

        return round(best_price, 2)


# ── Projection composer ─────────────────────────────────

def product_revenue(items: Sequence[SaleItemRecord]) -> dict[str, float]:
    """Historical line revenue (price x quantity) per product."""
    totals: dict[str, float] = defaultdict(float)
    for item in items:
        if item.product_id is None or item.product_id == "":
            continue
        price = coerce_amount(item.unit_price)
        quantity = coerce_amount(item.quantity)
        if price > 0 and quantity > 0:
            totals[str(item.product_id)] += price * quantity
    return dict(totals)


def compose_projections(
    recommendations: Sequence[PriceRecommendation],
    forecast: Sequence[ForecastPoint],
    revenue_by_product: dict[str, float],
) -> list[RevenueProjection]:
    """Current vs. optimised revenue for each forecast period.

    Forecast volume is held constant and split across products by their
    historical revenue share. A recommended product's share is repriced at
    ``suggested_price / current_price``; other products keep a factor of 1.
    """
    total = sum(revenue_by_product.values())
    uplift = 1.0
    if total > 0:
        factors = {
            r.product_id: r.suggested_price / r.current_price
            for r in recommendations
            if r.current_price > 0
        }
        uplift = sum(
            revenue / total * factors.get(pid, 1.0)
            for pid, revenue in revenue_by_product.items()
        )

    return [
        RevenueProjection(
            period_label=point.period.label,
            current_revenue=point.value,
            optimized_revenue=point.value * uplift,
        )
        for point in forecast
    ]
