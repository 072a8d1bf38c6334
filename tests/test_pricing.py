"""Tests for price-elasticity recommendations and revenue projections."""

import pytest
from datetime import date

from stockpilot.exceptions import InsufficientDataError
from stockpilot.services.forecast import ForecastPoint
from stockpilot.services.pricing import (
    Confidence, PriceElasticityEngine, PriceRecommendation, compose_projections,
    confidence_for, meets_threshold, product_revenue,
)
from stockpilot.services.timeseries import TimePeriod

from conftest import days_ago, line


@pytest.fixture
def engine():
    return PriceElasticityEngine()


def history(product_id, prices_and_qtys, name=""):
    """Sale lines, oldest first, one per day ending yesterday."""
    n = len(prices_and_qtys)
    return [
        line(product_id, price, qty, days_ago(n - i), name=name)
        for i, (price, qty) in enumerate(prices_and_qtys)
    ]


def recommendation(product_id, current, suggested, revenue_change=0.0):
    return PriceRecommendation(
        product_id=product_id,
        product_name=product_id,
        current_price=current,
        suggested_price=suggested,
        confidence=Confidence.LOW,
        elasticity=None,
        expected_sales_change_pct=0,
        expected_revenue_change_pct=revenue_change,
        history_data_points=1,
        price_points=1,
    )


# ── Confidence ──────────────────────────────────────────

class TestConfidence:
    @pytest.mark.parametrize("count,expected", [
        (0, Confidence.LOW),
        (3, Confidence.LOW),
        (4, Confidence.LOW),
        (5, Confidence.MEDIUM),
        (7, Confidence.MEDIUM),
        (9, Confidence.MEDIUM),
        (10, Confidence.HIGH),
        (15, Confidence.HIGH),
    ])
    def test_confidence_for(self, count, expected):
        assert confidence_for(count) == expected

    def test_threshold_is_a_minimum(self):
        assert meets_threshold(Confidence.LOW, "all")
        assert meets_threshold(Confidence.LOW, "low")
        assert not meets_threshold(Confidence.LOW, "medium")
        assert meets_threshold(Confidence.HIGH, "medium")
        assert not meets_threshold(Confidence.MEDIUM, "high")

    def test_count_drives_confidence_not_variance(self, engine):
        steady = history("steady", [(10 + (i % 3) * 0.5, 2) for i in range(15)])
        volatile = history("volatile", [(5, 9), (20, 1), (50, 1)])
        moderate = history("moderate", [(10, 3), (11, 3), (12, 2), (10, 3), (9, 4), (11, 2), (10, 3)])
        recs = {r.product_id: r for r in engine.recommend(steady + volatile + moderate)}
        assert recs["steady"].confidence == Confidence.HIGH
        assert recs["steady"].history_data_points == 15
        assert recs["moderate"].confidence == Confidence.MEDIUM
        assert recs["volatile"].confidence == Confidence.LOW


# ── Elasticity ──────────────────────────────────────────

class TestElasticity:
    def test_single_price_point_is_undefined(self, engine):
        [rec] = engine.recommend(history("p1", [(10, 2), (10, 3), (10, 1)]))
        assert rec.elasticity is None
        assert rec.suggested_price == rec.current_price == 10
        assert rec.expected_sales_change_pct == 0
        assert rec.expected_revenue_change_pct == 0
        assert rec.price_points == 1

    def test_arc_elasticity_for_two_points(self, engine):
        demand = {10.0: 10.0, 12.0: 8.0}
        # (-2 / 9) / (2 / 11)
        assert engine.estimate_elasticity(demand) == pytest.approx(-22 / 18)

    def test_log_log_for_three_points(self, engine):
        demand = {5.0: 16.0, 10.0: 4.0, 20.0: 1.0}
        assert engine.estimate_elasticity(demand) == pytest.approx(-2.0)

    def test_clamped_range(self, engine):
        assert engine.estimate_elasticity({10.0: 100.0, 11.0: 1.0}) == -3.0
        assert engine.estimate_elasticity({10.0: 5.0, 12.0: 5.0}) == -0.1

    def test_demand_is_mean_quantity_per_price(self, engine):
        observations = engine._observations(history("p", [(10, 2), (10, 4), (12.001, 1)]))
        assert engine.price_point_demand(observations) == {10.0: 3.0, 12.0: 1.0}


# ── Price search ────────────────────────────────────────

class TestOptimalPrice:
    def test_inelastic_demand_raises_price_to_bound(self, engine):
        assert engine.optimal_price(10.0, -0.1) == 12.0

    def test_elastic_demand_lowers_price(self, engine):
        suggested = engine.optimal_price(12.0, -22 / 18)
        assert 9.6 <= suggested < 12.0

    def test_unit_elastic_keeps_current_price(self, engine):
        assert engine.optimal_price(10.0, -1.0) == 10.0

    def test_custom_search_band(self):
        narrow = PriceElasticityEngine(search_pct=5)
        assert narrow.optimal_price(10.0, -0.1) == 10.5

    def test_quantity_ratio_floored(self, engine):
        assert engine.predicted_quantity_ratio(10, 100, -3) == 0


class TestRecommend:
    def test_empty_items_raise(self, engine):
        with pytest.raises(InsufficientDataError):
            engine.recommend([])

    def test_unknown_threshold(self, engine):
        with pytest.raises(ValueError):
            engine.recommend(history("p", [(10, 1)]), "extreme")

    def test_current_price_is_most_recent(self, engine):
        rows = history("p", [(10, 10), (12, 8), (10, 10), (12, 8)])
        [rec] = engine.recommend(rows)
        assert rec.current_price == 12
        assert rec.suggested_price < 12
        assert rec.expected_revenue_change_pct > 0
        assert rec.expected_sales_change_pct > 0

    def test_malformed_rows_skipped(self, engine):
        rows = history("p", [(10, 2), ("abc", 2), (10, 0), (None, 1), (-5, 1), (10, "x")])
        rows += [line(None, 10, 1, days_ago(1)), line("", 10, 1, days_ago(1))]
        [rec] = engine.recommend(rows)
        assert rec.product_id == "p"
        assert rec.history_data_points == 1

    def test_product_with_only_bad_rows_skipped(self, engine):
        rows = history("good", [(10, 1)]) + history("bad", [("n/a", 1), (5, -1)])
        recs = engine.recommend(rows)
        assert [r.product_id for r in recs] == ["good"]

    def test_failing_product_does_not_abort_batch(self, engine, monkeypatch):
        original = engine.estimate_elasticity

        def flaky(demand):
            if 99.0 in demand:
                raise ArithmeticError("boom")
            return original(demand)

        monkeypatch.setattr(engine, "estimate_elasticity", flaky)
        rows = history("ok", [(10, 1)]) + history("broken", [(99, 1), (98, 2)])
        recs = engine.recommend(rows)
        assert [r.product_id for r in recs] == ["ok"]

    def test_threshold_filters(self, engine):
        rows = history("many", [(10, 2)] * 12) + history("few", [(10, 2)] * 2)
        assert {r.product_id for r in engine.recommend(rows, "all")} == {"many", "few"}
        assert {r.product_id for r in engine.recommend(rows, "low")} == {"many", "few"}
        assert {r.product_id for r in engine.recommend(rows, "HIGH")} == {"many"}

    def test_sorted_by_revenue_change(self, engine):
        inelastic = history("inelastic", [(10, 5), (12, 5)])
        flat = history("flat", [(10, 5)])
        recs = engine.recommend(flat + inelastic)
        assert [r.product_id for r in recs] == ["inelastic", "flat"]

    def test_product_name_from_rows(self, engine):
        [rec] = engine.recommend(history("p9", [(3, 1)], name="Oat Latte"))
        assert rec.product_name == "Oat Latte"
        assert rec.to_dict()["confidence"] == "low"


# ── Projections ─────────────────────────────────────────

class TestProjections:
    def test_product_revenue(self):
        rows = history("a", [(10, 2), (5, 1)]) + history("b", [("bad", 1), (4, 1)])
        assert product_revenue(rows) == {"a": 25.0, "b": 4.0}

    def test_compose_weights_by_share(self):
        period = TimePeriod(date(2026, 3, 16), date(2026, 3, 16), "2026-03-16")
        forecast = [ForecastPoint(period, 200.0)]
        result = compose_projections([recommendation("a", 10, 11)], forecast, {"a": 300.0, "b": 100.0})
        assert result[0].current_revenue == 200
        assert result[0].optimized_revenue == pytest.approx(215)
        assert result[0].to_dict() == {
            "date": "2026-03-16", "current_revenue": 200.0, "optimized_revenue": 215.0,
        }

    def test_price_cut_lowers_optimized_revenue(self):
        # volume is held at the forecast, so a cheaper price means less revenue
        period = TimePeriod(date(2026, 3, 16), date(2026, 3, 16), "2026-03-16")
        rec = recommendation("a", 10.0, 8.0, revenue_change=28.0)
        result = compose_projections([rec], [ForecastPoint(period, 100.0)], {"a": 500.0})
        assert result[0].optimized_revenue == pytest.approx(80.0)

    def test_expected_revenue_change_does_not_drive_uplift(self):
        period = TimePeriod(date(2026, 3, 16), date(2026, 3, 16), "2026-03-16")
        rec = recommendation("a", 10, 10, revenue_change=50.0)
        result = compose_projections([rec], [ForecastPoint(period, 100.0)], {"a": 100.0})
        assert result[0].optimized_revenue == pytest.approx(100.0)

    def test_no_history_keeps_forecast(self):
        period = TimePeriod(date(2026, 3, 16), date(2026, 3, 16), "2026-03-16")
        result = compose_projections([recommendation("a", 10, 15)], [ForecastPoint(period, 80.0)], {})
        assert result[0].optimized_revenue == 80
