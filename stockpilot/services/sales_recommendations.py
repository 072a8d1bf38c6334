"""Sales recommendations from sale-line history.

Two views over the same snapshot of sale lines:

* day-of-week trends: how each product's sold quantity spreads over the
  weekdays, and which day sells best;
* product bundles: products bought together in the same sale, scored with
  simple association-rule metrics (support, confidence, lift) and priced
  with a confidence-dependent discount.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import timezone, tzinfo
from itertools import combinations
from typing import Sequence

from stockpilot.exceptions import InsufficientDataError
from stockpilot.services.pricing import CONFIDENCE_THRESHOLDS, Confidence
from stockpilot.services.records import SaleItemRecord, coerce_amount, to_datetime, to_local_date

logger = logging.getLogger(__name__)

WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")

MIN_TREND_QUANTITY = 3
MIN_BUNDLE_SUPPORT = 0.01
MAX_BUNDLE_SIZE = 3

# Minimum (confidence, support) a bundle needs for each requested level
BUNDLE_THRESHOLDS = {
    Confidence.HIGH: (0.2, 0.02),
    Confidence.MEDIUM: (0.1, 0.01),
    Confidence.LOW: (0.05, 0.005),
}

_LEVEL_RANK = {Confidence.LOW: 0, Confidence.MEDIUM: 1, Confidence.HIGH: 2}


def bundle_discount_pct(confidence: float) -> int:
    if confidence >= 0.5:
        return 15
    elif confidence >= 0.3:
        return 10
    return 5


def bundle_confidence(confidence: float) -> Confidence:
    if confidence >= BUNDLE_THRESHOLDS[Confidence.HIGH][0]:
        return Confidence.HIGH
    elif confidence >= BUNDLE_THRESHOLDS[Confidence.MEDIUM][0]:
        return Confidence.MEDIUM
    return Confidence.LOW


@dataclass
class DaySales:
    day: str
    quantity: float
    percent_of_average: int

    def to_dict(self) -> dict:
        return {
            "day": self.day,
            "sales": round(self.quantity, 2),
            "percent_of_average": self.percent_of_average,
        }


@dataclass
class DayOfWeekTrend:
    product_id: str
    product_name: str
    best_day: str
    day_index: int  # 0 = Monday
    average_sales: float
    sales_by_day: list[DaySales] = field(default_factory=list)

    @property
    def peak_pct(self) -> int:
        return max((d.percent_of_average for d in self.sales_by_day), default=0)

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "best_day": self.best_day,
            "day_index": self.day_index,
            "average_sales": round(self.average_sales, 2),
            "sales_by_day": [d.to_dict() for d in self.sales_by_day],
        }


@dataclass
class BundleProduct:
    id: str
    name: str
    price: float

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "price": round(self.price, 2)}


@dataclass
class ProductBundle:
    id: str
    name: str
    products: list[BundleProduct]
    support: float
    confidence_value: float
    lift: float

    @property
    def confidence(self) -> Confidence:
        return bundle_confidence(self.confidence_value)

    @property
    def individual_price(self) -> float:
        return sum(p.price for p in self.products)

    @property
    def discount_pct(self) -> int:
        return bundle_discount_pct(self.confidence_value)

    @property
    def discount(self) -> float:
        return self.individual_price * self.discount_pct / 100

    @property
    def bundle_price(self) -> float:
        return self.individual_price - self.discount

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "products": [p.to_dict() for p in self.products],
            "bundle_price": round(self.bundle_price, 2),
            "individual_price": round(self.individual_price, 2),
            "discount": round(self.discount, 2),
            "discount_percentage": self.discount_pct,
            "confidence": self.confidence.value,
            "support": round(self.support, 4),
            "lift": round(self.lift, 4),
        }


@dataclass
class SalesRecommendations:
    day_of_week_trends: list[DayOfWeekTrend] = field(default_factory=list)
    product_bundles: list[ProductBundle] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "day_of_week_trends": [t.to_dict() for t in self.day_of_week_trends],
            "product_bundles": [b.to_dict() for b in self.product_bundles],
        }


def bundle_name(products: Sequence[BundleProduct]) -> str:
    if len(products) == 2:
        return f"{products[0].name} + {products[1].name}"
    others = len(products) - 1
    return f"{products[0].name} + {others} {'item' if others == 1 else 'items'}"


class SalesRecommendationEngine:
    """Day-of-week trends and co-purchase bundles over sale lines."""

    def __init__(self, tz: tzinfo = timezone.utc):
        self.tz = tz

    def recommend(
        self,
        items: Sequence[SaleItemRecord],
        confidence_threshold: str = "medium",
    ) -> SalesRecommendations:
        """Trends and bundles for ``items``.

        Raises ``InsufficientDataError`` when there are no sale lines, or when
        neither a trend nor a bundle can be derived from them.
        """
        threshold = (confidence_threshold or "medium").lower()
        if threshold not in CONFIDENCE_THRESHOLDS:
            raise ValueError(f"Unknown confidence threshold: {confidence_threshold!r}")
        if not items:
            raise InsufficientDataError("No sale-item history available for sales recommendations")

        valid = [i for i in items if _product_key(i) and coerce_amount(i.quantity) > 0]
        trends = self.day_of_week_trends(valid)
        bundles = self.product_bundles(valid, threshold)
        logger.debug(f"Sales recommendations: lines={len(valid)} trends={len(trends)} bundles={len(bundles)}")

        if not trends and not bundles:
            raise InsufficientDataError(
                "Insufficient sales data for meaningful recommendations. "
                "Try a longer window or a lower confidence threshold."
            )
        return SalesRecommendations(day_of_week_trends=trends, product_bundles=bundles)

    # ── Day-of-week trends ──────────────────────────────

    def day_of_week_trends(self, items: Sequence[SaleItemRecord]) -> list[DayOfWeekTrend]:
        by_day: dict[str, list[float]] = {}
        names: dict[str, str] = {}
        for item in items:
            day = to_local_date(item.timestamp, self.tz)
            if day is None:
                continue
            pid = _product_key(item)
            if pid not in by_day:
                by_day[pid] = [0.0] * 7
            by_day[pid][day.weekday()] += coerce_amount(item.quantity)
            names[pid] = item.product_name or names.get(pid) or pid

        trends = []
        for pid, quantities in by_day.items():
            total = sum(quantities)
            if total < MIN_TREND_QUANTITY:
                continue
            average = total / 7
            days = [
                DaySales(WEEKDAYS[i], qty, round(qty / average * 100))
                for i, qty in enumerate(quantities)
            ]
            best = max(range(7), key=lambda i: quantities[i])  # first day wins ties
            trends.append(DayOfWeekTrend(
                product_id=pid,
                product_name=names[pid],
                best_day=WEEKDAYS[best],
                day_index=best,
                average_sales=average,
                sales_by_day=days,
            ))

        trends.sort(key=lambda t: t.peak_pct, reverse=True)
        return trends

    # ── Bundles ─────────────────────────────────────────

    def product_bundles(
        self,
        items: Sequence[SaleItemRecord],
        confidence_threshold: str = "medium",
    ) -> list[ProductBundle]:
        baskets: dict[str, set[str]] = defaultdict(set)
        for item in items:
            if item.sale_id is None or item.sale_id == "":
                continue
            baskets[str(item.sale_id)].add(_product_key(item))

        transactions = len(baskets)
        if transactions == 0:
            return []

        product_count: dict[str, int] = defaultdict(int)
        set_count: dict[tuple[str, ...], int] = defaultdict(int)
        for products in baskets.values():
            for pid in products:
                product_count[pid] += 1
            ordered = sorted(products)
            for size in range(2, MAX_BUNDLE_SIZE + 1):
                for combo in combinations(ordered, size):
                    set_count[combo] += 1

        level = Confidence.LOW if confidence_threshold == "all" else Confidence(confidence_threshold)
        min_confidence, min_support = BUNDLE_THRESHOLDS[level]
        catalog = _latest_products(items)

        bundles = []
        for combo, count in set_count.items():
            support = count / transactions
            if support <= MIN_BUNDLE_SUPPORT or support < min_support:
                continue
            supports = [product_count[pid] / transactions for pid in combo]
            confidence = support / min(supports)
            if confidence < min_confidence:
                continue
            expected = 1.0
            for s in supports:
                expected *= s
            products = [catalog[pid] for pid in combo]
            bundles.append(ProductBundle(
                id="",
                name=bundle_name(products),
                products=products,
                support=support,
                confidence_value=confidence,
                lift=support / expected,
            ))

        bundles.sort(key=lambda b: (_LEVEL_RANK[b.confidence], b.support), reverse=True)
        for n, bundle in enumerate(bundles, 1):
            bundle.id = f"bundle-{n}"
        return bundles


def _product_key(item: SaleItemRecord) -> str:
    return "" if item.product_id is None else str(item.product_id)


def _latest_products(items: Sequence[SaleItemRecord]) -> dict[str, BundleProduct]:
    """Name and most recent unit price of every product in ``items``."""
    latest: dict[str, tuple] = {}
    for order, item in enumerate(items):
        when = to_datetime(item.timestamp)
        key = (when.timestamp() if when else float("-inf"), order)
        pid = _product_key(item)
        if pid not in latest or key >= latest[pid][0]:
            latest[pid] = (key, item)
    return {
        pid: BundleProduct(pid, item.product_name or pid, coerce_amount(item.unit_price))
        for pid, (_, item) in latest.items()
    }
