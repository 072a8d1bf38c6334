"""API tests."""

from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient

TENANT = {"X-Tenant-ID": "cafe-1"}


def _iso_days_ago(n: int) -> str:
    return (datetime.now(timezone.utc) - timedelta(days=n)).replace(hour=12).isoformat()


async def _product(client: AsyncClient, name="Flat White", price="4.00", headers=TENANT, **extra):
    payload = {"name": name, "selling_price": price, "stock_quantity": 50, **extra}
    resp = await client.post("/api/v1/products/", json=payload, headers=headers)
    assert resp.status_code == 201
    return resp.json()


async def _sell(client: AsyncClient, product_id, quantity=1, price=None, days_ago=0, headers=TENANT):
    item = {"product_id": product_id, "quantity": quantity}
    if price is not None:
        item["price"] = price
    payload = {"items": [item], "created_at": _iso_days_ago(days_ago)}
    resp = await client.post("/api/v1/sales/", json=payload, headers=headers)
    assert resp.status_code == 201
    return resp.json()


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    resp = await client.get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ok"
    assert data["service"] == "StockPilot"


# ── Products ────────────────────────────────────────────

class TestProducts:
    @pytest.mark.asyncio
    async def test_create_and_get(self, client: AsyncClient):
        product = await _product(client, sku="FW-1")
        assert product["tenant_id"] == "cafe-1"
        assert product["active"] is True
        resp = await client.get(f"/api/v1/products/{product['id']}", headers=TENANT)
        assert resp.status_code == 200
        assert resp.json()["name"] == "Flat White"

    @pytest.mark.asyncio
    async def test_duplicate_sku(self, client: AsyncClient):
        await _product(client, sku="DUP-1")
        resp = await client.post("/api/v1/products/", json={"name": "Other", "sku": "DUP-1"}, headers=TENANT)
        assert resp.status_code == 409

    @pytest.mark.asyncio
    async def test_search(self, client: AsyncClient):
        await _product(client, name="Blue Mug")
        await _product(client, name="Red Cup")
        resp = await client.get("/api/v1/products/?q=Mug", headers=TENANT)
        assert [p["name"] for p in resp.json()] == ["Blue Mug"]

    @pytest.mark.asyncio
    async def test_update(self, client: AsyncClient):
        product = await _product(client)
        resp = await client.patch(
            f"/api/v1/products/{product['id']}", json={"selling_price": "4.50"}, headers=TENANT,
        )
        assert resp.status_code == 200
        assert resp.json()["selling_price"] == "4.50"

    @pytest.mark.asyncio
    async def test_delete(self, client: AsyncClient):
        product = await _product(client)
        resp = await client.delete(f"/api/v1/products/{product['id']}", headers=TENANT)
        assert resp.status_code == 204
        resp = await client.get(f"/api/v1/products/{product['id']}", headers=TENANT)
        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_tenant_isolation(self, client: AsyncClient):
        product = await _product(client)
        resp = await client.get(f"/api/v1/products/{product['id']}", headers={"X-Tenant-ID": "other"})
        assert resp.status_code == 404
        resp = await client.get("/api/v1/products/", headers={"X-Tenant-ID": "other"})
        assert resp.json() == []


# ── Sales ───────────────────────────────────────────────

class TestSales:
    @pytest.mark.asyncio
    async def test_create_sale_snapshots_price(self, client: AsyncClient):
        product = await _product(client, price="4.00")
        sale = await _sell(client, product["id"], quantity=3)
        assert sale["total_amount"] == "12.00"
        assert sale["items"][0]["price"] == "4.00"
        assert sale["items"][0]["product_name"] == "Flat White"

        resp = await client.get(f"/api/v1/products/{product['id']}", headers=TENANT)
        assert resp.json()["stock_quantity"] == 47

    @pytest.mark.asyncio
    async def test_explicit_price(self, client: AsyncClient):
        product = await _product(client, price="4.00")
        sale = await _sell(client, product["id"], quantity=2, price="3.50")
        assert sale["total_amount"] == "7.00"

    @pytest.mark.asyncio
    async def test_unknown_product(self, client: AsyncClient):
        payload = {"items": [{"product_id": "00000000-0000-0000-0000-000000000000", "quantity": 1}]}
        resp = await client.post("/api/v1/sales/", json=payload, headers=TENANT)
        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_empty_sale_rejected(self, client: AsyncClient):
        resp = await client.post("/api/v1/sales/", json={"items": []}, headers=TENANT)
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_list_and_get(self, client: AsyncClient):
        product = await _product(client)
        sale = await _sell(client, product["id"])
        resp = await client.get("/api/v1/sales/", headers=TENANT)
        assert [s["id"] for s in resp.json()] == [sale["id"]]
        resp = await client.get(f"/api/v1/sales/{sale['id']}", headers={"X-Tenant-ID": "other"})
        assert resp.status_code == 404


# ── Analytics ───────────────────────────────────────────

class TestAnalyticsEndpoints:
    @pytest.mark.asyncio
    async def test_revenue(self, client: AsyncClient):
        product = await _product(client, price="10.00")
        for days, qty in [(5, 1), (3, 2), (1, 3)]:
            await _sell(client, product["id"], quantity=qty, days_ago=days)

        resp = await client.get("/api/v1/analytics/revenue?window_days=7&include_forecast=true", headers=TENANT)
        assert resp.status_code == 200
        data = resp.json()
        assert data["resolution"] == "daily"
        assert data["total"] == 60
        assert len(data["forecast_data"]) == 12
        assert data["trend"] in ("increasing", "decreasing", "flat")

    @pytest.mark.asyncio
    async def test_revenue_no_data(self, client: AsyncClient):
        resp = await client.get("/api/v1/analytics/revenue?window_days=30", headers=TENANT)
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_revenue_other_tenant_has_no_data(self, client: AsyncClient):
        product = await _product(client)
        await _sell(client, product["id"])
        resp = await client.get("/api/v1/analytics/revenue?window_days=30", headers={"X-Tenant-ID": "other"})
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_invalid_window(self, client: AsyncClient):
        resp = await client.get("/api/v1/analytics/revenue?window_days=0", headers=TENANT)
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_projected_earnings(self, client: AsyncClient):
        product = await _product(client)
        await _sell(client, product["id"], days_ago=2)
        resp = await client.get("/api/v1/analytics/projected-earnings?window_days=7", headers=TENANT)
        assert resp.status_code == 200
        data = resp.json()
        assert len(data["actual"]) == 8
        assert len(data["projected"]) == 7
        assert data["today_index"] == 7

    @pytest.mark.asyncio
    async def test_price_recommendations(self, client: AsyncClient):
        product = await _product(client, price="4.00")
        for i in range(6):
            price, qty = ("4.00", 5) if i % 2 else ("5.00", 4)
            await _sell(client, product["id"], quantity=qty, price=price, days_ago=i + 1)

        resp = await client.get("/api/v1/analytics/price-recommendations?window_days=30", headers=TENANT)
        assert resp.status_code == 200
        data = resp.json()
        [rec] = data["recommendations"]
        assert rec["product_id"] == product["id"]
        assert rec["confidence"] == "medium"
        assert rec["history_data_points"] == 6
        assert len(data["revenue_projections"]) == 6

    @pytest.mark.asyncio
    async def test_price_recommendations_bad_confidence(self, client: AsyncClient):
        resp = await client.get("/api/v1/analytics/price-recommendations?confidence=extreme", headers=TENANT)
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_price_recommendations_no_data(self, client: AsyncClient):
        resp = await client.get("/api/v1/analytics/price-recommendations", headers=TENANT)
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_sales_recommendations(self, client: AsyncClient):
        tea = await _product(client, name="Tea", price="3.00")
        cake = await _product(client, name="Cake", price="5.00")
        for days in (1, 2, 3):
            payload = {
                "items": [{"product_id": tea["id"], "quantity": 1}, {"product_id": cake["id"], "quantity": 1}],
                "created_at": _iso_days_ago(days),
            }
            resp = await client.post("/api/v1/sales/", json=payload, headers=TENANT)
            assert resp.status_code == 201

        resp = await client.get("/api/v1/analytics/sales-recommendations?window_days=30", headers=TENANT)
        assert resp.status_code == 200
        data = resp.json()
        assert {t["product_name"] for t in data["day_of_week_trends"]} == {"Tea", "Cake"}
        [bundle] = data["product_bundles"]
        assert bundle["confidence"] == "high"
        assert bundle["individual_price"] == 8.0
        assert bundle["discount_percentage"] == 15
        assert bundle["bundle_price"] == 6.8

    @pytest.mark.asyncio
    async def test_sales_recommendations_no_data(self, client: AsyncClient):
        resp = await client.get("/api/v1/analytics/sales-recommendations", headers=TENANT)
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_sales_recommendations_bad_confidence(self, client: AsyncClient):
        resp = await client.get("/api/v1/analytics/sales-recommendations?confidence=extreme", headers=TENANT)
        assert resp.status_code == 422


# ── Sales history import ────────────────────────────────

class TestSalesHistory:
    @pytest.mark.asyncio
    async def test_import_json(self, client: AsyncClient):
        rows = [
            {"date": _iso_days_ago(3), "product_name": "Chai", "quantity": 2, "unit_price": "3.00"},
            {"date": _iso_days_ago(2), "product_name": "chai", "quantity": 1, "unit_price": "3.50"},
            {"date": "bad", "product_name": "Chai", "quantity": 1, "unit_price": "3.00"},
        ]
        resp = await client.post("/api/v1/sales-history/import", json={"sales_history": rows}, headers=TENANT)
        assert resp.status_code == 200
        data = resp.json()
        assert data["summary"]["imported"] == 2
        assert data["summary"]["skipped"] == 1
        assert data["sales_created"] == 2
        assert data["products_created"] == 1

        resp = await client.get("/api/v1/analytics/revenue?window_days=7", headers=TENANT)
        assert resp.json()["total"] == 9.5

    @pytest.mark.asyncio
    async def test_import_reuses_existing_product(self, client: AsyncClient):
        await _product(client, name="Chai")
        rows = [{"date": _iso_days_ago(1), "product_name": "CHAI", "quantity": 1, "unit_price": "3"}]
        resp = await client.post("/api/v1/sales-history/import", json={"sales_history": rows}, headers=TENANT)
        assert resp.json()["products_created"] == 0

    @pytest.mark.asyncio
    async def test_import_empty(self, client: AsyncClient):
        resp = await client.post("/api/v1/sales-history/import", json={"sales_history": []}, headers=TENANT)
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_import_csv(self, client: AsyncClient):
        content = (
            "date,product_name,quantity,unit_price\n"
            f"{_iso_days_ago(1)},Scone,2,2.50\n"
        )
        resp = await client.post(
            "/api/v1/sales-history/import/csv",
            content=content.encode("utf-8"),
            headers={**TENANT, "Content-Type": "text/csv"},
        )
        assert resp.status_code == 200
        assert resp.json()["sales_created"] == 1

    @pytest.mark.asyncio
    async def test_template(self, client: AsyncClient):
        resp = await client.get("/api/v1/sales-history/template")
        assert resp.status_code == 200
        assert resp.text.startswith("date,product_name")

    @pytest.mark.asyncio
    async def test_import_csv_rejects_non_utf8(self, client: AsyncClient):
        content = "date,product_name,quantity,unit_price\n2026-01-15,Caf\xe9,1,2.00\n"
        resp = await client.post(
            "/api/v1/sales-history/import/csv",
            content=content.encode("latin-1"),
            headers={**TENANT, "Content-Type": "text/csv"},
        )
        assert resp.status_code == 400
        assert resp.json()["detail"] == "CSV must be UTF-8 encoded"
