"""
Dashboard and report endpoint tests.
"""

from decimal import Decimal

import pytest

from stocksimple.services import ledger_service


class TestAlertsEndpoint:
    def test_alerts(self, client, auth_headers, make_product):
        make_product(sku="OK", current_stock=50, reorder_point=10)
        make_product(sku="EDGE", current_stock=10, reorder_point=10)
        make_product(sku="ZERO", current_stock=0, reorder_point=10)

        resp = client.get("/api/dashboard/alerts", headers=auth_headers)
        assert resp.status_code == 200
        assert [(p["sku"], p["status"]) for p in resp.json] == [
            ("ZERO", "out_of_stock"),
            ("EDGE", "low_stock"),
        ]

    def test_alert_appears_after_movement(self, client, auth_headers, make_product):
        p = make_product(sku="A1", current_stock=10, reorder_point=5)
        client.post("/api/movements", json={"productId": p.id, "quantity": 3, "type": "out"}, headers=auth_headers)
        assert client.get("/api/dashboard/alerts", headers=auth_headers).json == []

        client.post("/api/movements", json={"productId": p.id, "quantity": 20, "type": "out"}, headers=auth_headers)
        alerts = client.get("/api/dashboard/alerts", headers=auth_headers).json
        assert [a["sku"] for a in alerts] == ["A1"]
        assert alerts[0]["currentStock"] == 0


class TestSummaryEndpoint:
    def test_summary(self, client, auth_headers, make_product):
        a = make_product(sku="A", cost=Decimal("2.50"), current_stock=4, reorder_point=5)
        make_product(sku="B", cost=Decimal("10.00"), current_stock=20, reorder_point=5)
        make_product(sku="C", cost=Decimal("1.00"), current_stock=0, reorder_point=5)
        gone = make_product(sku="D", cost=Decimal("99.00"), current_stock=100)
        ledger_service.record_movement(product_id=a.id, quantity=1, movement_type="in")
        client.delete(f"/api/products/{gone.id}", headers=auth_headers)

        resp = client.get("/api/dashboard/summary", headers=auth_headers)
        assert resp.status_code == 200
        assert resp.json == {
            "totalProducts": 3,
            "totalUnits": 25,
            "inventoryValue": "212.50",
            "lowStockCount": 2,
            "outOfStockCount": 1,
            "movementCount": 1,
        }

    def test_summary_empty(self, client, auth_headers):
        resp = client.get("/api/dashboard/summary", headers=auth_headers)
        assert resp.json["totalProducts"] == 0
        assert resp.json["inventoryValue"] == "0.00"


class TestTopLowEndpoint:
    def test_default_size(self, client, auth_headers, make_product):
        for i in range(8):
            make_product(sku=f"S{i}", current_stock=i * 3)

        resp = client.get("/api/reports/toplow", headers=auth_headers)
        assert resp.status_code == 200
        assert len(resp.json["topStock"]) == 5
        assert len(resp.json["lowStock"]) == 5
        assert resp.json["topStock"][0]["sku"] == "S7"
        assert resp.json["lowStock"][0]["sku"] == "S0"

    def test_custom_n(self, client, auth_headers, make_product):
        for i in range(4):
            make_product(sku=f"S{i}", current_stock=i)
        resp = client.get("/api/reports/toplow?n=2", headers=auth_headers)
        assert [p["sku"] for p in resp.json["topStock"]] == ["S3", "S2"]
        assert [p["sku"] for p in resp.json["lowStock"]] == ["S0", "S1"]

    @pytest.mark.parametrize("n", ["0", "-1", "abc", "2.5", "101"])
    def test_bad_n(self, client, auth_headers, n):
        resp = client.get(f"/api/reports/toplow?n={n}", headers=auth_headers)
        assert resp.status_code == 400
