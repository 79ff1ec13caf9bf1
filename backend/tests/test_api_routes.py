"""
End-to-end API tests: JSON in, JSON out, errors as {"error", "details"}.
"""

import pytest

from conftest import get_auth_token, auth_headers


@pytest.fixture
def owner_headers(client, owner_a):
    return auth_headers(get_auth_token(client, owner_a.email))


@pytest.fixture
def seller_headers(client, seller_a):
    return auth_headers(get_auth_token(client, seller_a.email))


class TestHealth:

    def test_health(self, client, db_session):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json["checks"]["database"]["status"] == "healthy"


class TestStoresApi:

    def test_list_stores(self, client, owner_headers, store_a, store_a2, store_b):
        resp = client.get("/api/stores", headers=owner_headers)

        assert resp.status_code == 200
        assert resp.json["count"] == 2
        assert resp.json["stores"][0]["is_headquarters"] is True


class TestSalesApi:

    def test_sale_flow(self, client, seller_headers, store_a, simple_product, set_stock, quantity_of):
        set_stock(store_a, simple_product, 5)

        resp = client.post("/api/sales", headers=seller_headers, json={
            "payment_method": "credit",
            "interest_rate_bps": 300,
            "items": [{"product_id": simple_product.id, "quantity": 2, "unit_price_cents": 5000}],
        })

        assert resp.status_code == 201
        assert resp.json["message"] == "Venda concluída!"
        assert resp.json["total_cents"] == 10300
        assert resp.json["invoice"]["status"] == "skipped"
        assert quantity_of(store_a, simple_product) == 3

        receipt = client.get(f"/api/sales/{resp.json['sale_id']}/receipt", headers=seller_headers)
        assert receipt.status_code == 200
        assert receipt.json["items"][0]["name"] == "Camiseta Básica"

    def test_insufficient_stock_is_409(self, client, seller_headers, store_a, simple_product, set_stock):
        set_stock(store_a, simple_product, 2)

        resp = client.post("/api/sales", headers=seller_headers, json={
            "payment_method": "pix",
            "items": [{"product_id": simple_product.id, "quantity": 3, "unit_price_cents": 5000}],
        })

        assert resp.status_code == 409
        assert "Disponível: 2" in resp.json["error"]
        assert resp.json["details"]["available"] == 2
        assert resp.json["details"]["requested"] == 3

    def test_items_must_be_list(self, client, seller_headers, store_a):
        resp = client.post("/api/sales", headers=seller_headers, json={"payment_method": "pix", "items": "x"})
        assert resp.status_code == 400
        assert resp.json["error"] == "items deve ser uma lista."

    def test_quantity_message_is_portuguese(self, client, seller_headers, store_a, simple_product):
        resp = client.post("/api/sales", headers=seller_headers, json={
            "payment_method": "pix",
            "items": [{"product_id": simple_product.id, "quantity": "abc", "unit_price_cents": 5000}],
        })
        assert resp.status_code == 400
        assert resp.json["error"] == "quantity deve ser um número."

    @pytest.mark.parametrize("flag", ["false", "true", 0, 1])
    def test_ecommerce_flag_must_be_boolean(
        self, client, seller_headers, store_a, simple_product, set_stock, quantity_of, flag
    ):
        set_stock(store_a, simple_product, 5)

        resp = client.post("/api/sales", headers=seller_headers, json={
            "payment_method": "pix",
            "is_ecommerce": flag,
            "items": [{"product_id": simple_product.id, "quantity": 1, "unit_price_cents": 5000}],
        })

        assert resp.status_code == 400
        assert resp.json["error"] == "is_ecommerce deve ser verdadeiro ou falso."
        assert quantity_of(store_a, simple_product) == 5

    def test_ecommerce_string_cannot_bypass_closed_cash(
        self, client, owner_headers, seller_headers, store_a, simple_product, set_stock
    ):
        set_stock(store_a, simple_product, 5)
        sale = {
            "payment_method": "pix",
            "items": [{"product_id": simple_product.id, "quantity": 1, "unit_price_cents": 5000}],
        }
        client.post("/api/sales", headers=seller_headers, json=sale)
        assert client.post("/api/cash-closures", headers=owner_headers, json={}).status_code == 201

        spoofed = client.post("/api/sales", headers=seller_headers, json={**sale, "is_ecommerce": "false"})
        assert spoofed.status_code == 400

        online = client.post("/api/sales", headers=seller_headers, json={**sale, "is_ecommerce": True})
        assert online.status_code == 201

    def test_foreign_receipt_is_404(self, client, owner_b, seller_headers, store_a, simple_product, set_stock):
        set_stock(store_a, simple_product, 5)
        sale = client.post("/api/sales", headers=seller_headers, json={
            "payment_method": "pix",
            "items": [{"product_id": simple_product.id, "quantity": 1, "unit_price_cents": 5000}],
        }).json

        other = auth_headers(get_auth_token(client, owner_b.email))
        resp = client.get(f"/api/sales/{sale['sale_id']}/receipt", headers=other)
        assert resp.status_code == 404


class TestInventoryApi:

    def test_transfer_and_stock(self, client, owner_headers, store_a, store_a2, simple_product, set_stock):
        set_stock(store_a, simple_product, 10)

        resp = client.post("/api/inventory/transfer", headers=owner_headers, json={
            "product_id": simple_product.id,
            "from_store_id": store_a.id,
            "to_store_id": store_a2.id,
            "quantity": 4,
        })
        assert resp.status_code == 200
        assert resp.json == {"from_quantity": 6, "to_quantity": 4}

        stock = client.get(f"/api/inventory/products/{simple_product.id}/stock", headers=owner_headers)
        assert stock.status_code == 200
        assert stock.json["kind"] == "simple"
        assert stock.json["total"] == 10

    def test_exchange_defaults_to_session_store(
        self, client, seller_headers, store_a, simple_product, set_stock, quantity_of
    ):
        set_stock(store_a, simple_product, 3)

        resp = client.post("/api/inventory/exchange", headers=seller_headers, json={
            "product_id": simple_product.id, "quantity": 1, "kind": "exchange",
        })

        assert resp.status_code == 200
        assert resp.json == {"quantity": 2}
        assert quantity_of(store_a, simple_product) == 2

    def test_return_adds_stock(self, client, seller_headers, store_a, simple_product, quantity_of):
        resp = client.post("/api/inventory/return", headers=seller_headers, json={
            "product_id": simple_product.id, "quantity": 2,
        })

        assert resp.status_code == 200
        assert quantity_of(store_a, simple_product) == 2

    def test_incoming(self, client, owner_headers, store_a, store_a2, simple_product):
        resp = client.post("/api/inventory/incoming", headers=owner_headers, json={
            "product_id": simple_product.id,
            "entries": [{"store_id": store_a.id, "quantity": 3}, {"store_id": store_a2.id, "quantity": 0}],
        })

        assert resp.status_code == 200
        assert resp.json["applied"] == [{"store_id": store_a.id, "quantity": 3}]

    def test_incoming_entries_must_be_list(self, client, owner_headers, store_a, simple_product):
        resp = client.post("/api/inventory/incoming", headers=owner_headers, json={
            "product_id": simple_product.id, "entries": "x",
        })

        assert resp.status_code == 400
        assert resp.json["error"] == "entries deve ser uma lista."

    def test_overview(self, client, owner_headers, store_a, simple_product, set_stock):
        set_stock(store_a, simple_product, 12)

        resp = client.get("/api/inventory/overview", headers=owner_headers)

        assert resp.status_code == 200
        assert resp.json["total_units"] == 12
        assert resp.json["low_stock_products"] == 0


class TestCashClosureApi:

    def test_close_report_reopen(self, client, owner_headers, seller_headers, store_a, simple_product, set_stock):
        set_stock(store_a, simple_product, 10)
        for _ in range(3):
            client.post("/api/sales", headers=seller_headers, json={
                "payment_method": "cash",
                "items": [{"product_id": simple_product.id, "quantity": 1, "unit_price_cents": 5000}],
            })

        closed = client.post("/api/cash-closures", headers=owner_headers, json={})
        assert closed.status_code == 201
        closure = closed.json["closure"]
        assert (closure["sales_count"], closure["total_cents"]) == (3, 15000)

        blocked = client.post("/api/sales", headers=seller_headers, json={
            "payment_method": "cash",
            "items": [{"product_id": simple_product.id, "quantity": 1, "unit_price_cents": 5000}],
        })
        assert blocked.status_code == 409

        report = client.get(f"/api/cash-closures/{closure['id']}/report", headers=owner_headers)
        assert report.status_code == 200
        assert len(report.json["sales"]) == 3

        daily = client.get("/api/sales/daily", headers=owner_headers)
        assert daily.json["is_closed"] is True
        assert daily.json["total_cents"] == 15000

        reopened = client.post(f"/api/cash-closures/{closure['id']}/reopen", headers=owner_headers)
        assert reopened.status_code == 200
        assert reopened.json["reopened_sales"] == 3

        status = client.get("/api/cash-closures/status", headers=seller_headers)
        assert status.json["is_closed"] is False
