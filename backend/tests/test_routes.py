"""
HTTP surface tests.

Verifies:
- Domain errors map to their status codes and error codes
- Strict integer input (no floats, booleans or scientific notation)
- Read endpoints return the service payloads
"""

import pytest

from stockledger.models import AlertType, InventoryAlert


def _create_product(client, sku="SKU-R1", name="Widget", **extra):
    response = client.post("/api/products", json={"sku": sku, "name": name, **extra})
    assert response.status_code == 201
    return response.get_json()["product"]


def _replenish(client, product_id, quantity=10, cost=100, price=150):
    return client.post("/api/inventory/replenish", json={
        "product_id": product_id,
        "quantity": quantity,
        "unit_cost_cents": cost,
        "unit_price_cents": price,
    })


# =============================================================================
# PRODUCTS
# =============================================================================


class TestProductRoutes:

    def test_create_and_get(self, client):
        product = _create_product(client)

        response = client.get(f"/api/products/{product['id']}")

        assert response.status_code == 200
        body = response.get_json()["product"]
        assert body["sku"] == "SKU-R1"
        assert body["quantity"] == 0

    def test_quantity_not_writable(self, client):
        response = client.post("/api/products", json={"sku": "X", "name": "X", "quantity": 5})

        assert response.status_code == 400
        assert response.get_json()["code"] == "INVALID_INPUT"

    def test_duplicate_sku(self, client):
        _create_product(client)

        response = client.post("/api/products", json={"sku": "SKU-R1", "name": "Other"})

        assert response.status_code == 400

    def test_unknown_product(self, client):
        response = client.get("/api/products/999999")

        assert response.status_code == 404
        assert response.get_json()["code"] == "NOT_FOUND"


# =============================================================================
# INVENTORY
# =============================================================================


class TestInventoryRoutes:

    def test_replenish_created(self, client):
        product = _create_product(client)

        response = _replenish(client, product["id"])

        assert response.status_code == 201
        body = response.get_json()
        assert body["status"] == "ACTIVE"
        assert body["current_stock"] == 10
        assert body["batch"]["quantity_remaining"] == 10

    def test_second_replenish_is_pending(self, client):
        product = _create_product(client)
        _replenish(client, product["id"])

        body = _replenish(client, product["id"], quantity=4).get_json()

        assert body["status"] == "PENDING"
        assert body["current_stock"] == 10

    @pytest.mark.parametrize("quantity", [2.5, True, "1e5", "10.0", 0, -3])
    def test_replenish_rejects_bad_quantity(self, client, quantity):
        product = _create_product(client)

        response = _replenish(client, product["id"], quantity=quantity)

        assert response.status_code == 400
        assert response.get_json()["code"] == "INVALID_INPUT"

    def test_replenish_missing_field(self, client):
        product = _create_product(client)

        response = client.post("/api/inventory/replenish", json={"product_id": product["id"], "quantity": 1})

        assert response.status_code == 400
        assert "unit_cost_cents" in response.get_json()["error"]

    def test_replenish_unknown_product(self, client):
        response = _replenish(client, 987654)

        assert response.status_code == 404

    def test_stock_movement(self, client):
        product = _create_product(client)
        _replenish(client, product["id"])

        response = client.post("/api/inventory/stock", json={
            "product_id": product["id"], "quantity": 3, "action": "remove", "reference": "SHRINK",
        })

        assert response.status_code == 201
        body = response.get_json()
        assert body["previous_quantity"] == 10
        assert body["new_quantity"] == 7
        assert body["movements"][0]["reference"] == "SHRINK"

    def test_stock_movement_below_zero(self, client):
        product = _create_product(client)
        _replenish(client, product["id"], quantity=2)

        response = client.post("/api/inventory/stock", json={
            "product_id": product["id"], "quantity": 3, "action": "REMOVE",
        })

        assert response.status_code == 409
        assert response.get_json()["code"] == "INSUFFICIENT_STOCK"

    def test_batch_stock_update_partial(self, client):
        product = _create_product(client)
        _replenish(client, product["id"], quantity=2)

        response = client.post("/api/inventory/stock", json={"updates": [
            {"product_id": product["id"], "quantity": 1, "action": "REMOVE"},
            {"product_id": product["id"], "quantity": 9, "action": "REMOVE"},
        ]})

        assert response.status_code == 207
        body = response.get_json()
        assert body["success_count"] == 1
        assert body["failed"][0]["index"] == 1

    def test_summary_batches_and_movements(self, client):
        product = _create_product(client)
        _replenish(client, product["id"], quantity=3)
        _replenish(client, product["id"], quantity=4, cost=120, price=170)

        summary = client.get(f"/api/inventory/{product['id']}/summary").get_json()
        assert summary["quantity"] == 3
        assert summary["pending_quantity"] == 4

        pending = client.get(f"/api/inventory/{product['id']}/batches?status=pending").get_json()
        assert [b["quantity_remaining"] for b in pending["batches"]] == [4]

        movements = client.get(f"/api/inventory/{product['id']}/movements").get_json()
        assert movements["summary"]["count"] == 1
        assert movements["summary"]["net_quantity_change"] == 3

    def test_movements_bad_datetime(self, client):
        product = _create_product(client)

        response = client.get(f"/api/inventory/{product['id']}/movements?start=yesterday")

        assert response.status_code == 400

    def test_reorder_suggestions(self, client):
        empty = _create_product(client, sku="SKU-E", name="Empty")
        _replenish(client, empty["id"], quantity=2)
        client.post("/api/sales", json={"product_id": empty["id"], "quantity": 2})

        slow = _create_product(client, sku="SKU-S", name="Slow")
        _replenish(client, slow["id"], quantity=10)
        client.post("/api/sales", json={"product_id": slow["id"], "quantity": 7})

        plenty = _create_product(client, sku="SKU-P", name="Plenty")
        _replenish(client, plenty["id"], quantity=50)

        body = client.get("/api/inventory/reorder-suggestions").get_json()

        assert body["threshold"] == 5
        assert [s["product"]["name"] for s in body["suggestions"]] == ["Empty", "Slow"]
        empty_reorder = body["suggestions"][0]["reorder"]
        assert empty_reorder["urgency"] == "critical"
        assert empty_reorder["suggested_quantity"] == 10
        slow_reorder = body["suggestions"][1]["reorder"]
        # 7 sold over 30 days, 3 left: about 13 days of stock
        assert slow_reorder["urgency"] == "medium"
        assert slow_reorder["suggested_quantity"] == 3
        assert body["by_urgency"]["critical"] == 1


# =============================================================================
# SALES
# =============================================================================


class TestSalesRoutes:

    def test_sell(self, client):
        product = _create_product(client)
        _replenish(client, product["id"])

        response = client.post("/api/sales", json={"product_id": product["id"], "quantity": 4})

        assert response.status_code == 201
        body = response.get_json()
        assert body["quantity_sold"] == 4
        assert body["total_price_cents"] == 600
        assert body["remaining_stock"] == 6

    def test_oversell_conflict(self, client):
        product = _create_product(client)
        _replenish(client, product["id"], quantity=3)

        response = client.post("/api/sales", json={"product_id": product["id"], "quantity": 4})

        assert response.status_code == 409
        body = response.get_json()
        assert body["code"] == "INSUFFICIENT_STOCK"
        assert body["details"]["available"] == 3

    def test_unknown_field(self, client):
        product = _create_product(client)

        response = client.post("/api/sales", json={"product_id": product["id"], "quantity": 1, "discount": 5})

        assert response.status_code == 400

    def test_summary(self, client):
        product = _create_product(client)
        _replenish(client, product["id"])
        client.post("/api/sales", json={"product_id": product["id"], "quantity": 4})

        body = client.get(f"/api/sales/summary?product_id={product['id']}").get_json()

        assert body["profit_cents"] == 200


# =============================================================================
# CUSTOMERS
# =============================================================================


class TestCustomerRoutes:

    def test_borrow_and_pay(self, client):
        product = _create_product(client)
        _replenish(client, product["id"])
        customer = client.post("/api/customers", json={"name": "Amina"}).get_json()["customer"]

        borrow = client.post(f"/api/customers/{customer['id']}/borrow",
                             json={"product_id": product["id"], "quantity": 2})
        assert borrow.status_code == 201
        assert borrow.get_json()["customer_debt"] == 300

        over = client.post(f"/api/customers/{customer['id']}/payments", json={"amount_cents": 500})
        assert over.status_code == 409
        assert over.get_json()["code"] == "OVERPAYMENT"

        paid = client.post(f"/api/customers/{customer['id']}/payments", json={"amount_cents": 100})
        assert paid.status_code == 201
        assert paid.get_json()["remaining_balance_cents"] == 200

        debtors = client.get("/api/customers/debtors").get_json()
        assert debtors["total_outstanding_cents"] == 200

        history = client.get(f"/api/customers/{customer['id']}/history").get_json()
        assert len(history["transactions"]) == 2

    def test_credit_sale_without_customer(self, client):
        product = _create_product(client)
        _replenish(client, product["id"])

        response = client.post("/api/sales", json={"product_id": product["id"], "quantity": 1, "is_credit": True})

        assert response.status_code == 400


# =============================================================================
# ALERTS
# =============================================================================


class TestAlertRoutes:

    def test_list_and_resolve(self, client, db_session):
        product = _create_product(client)
        _replenish(client, product["id"], quantity=2)
        client.post("/api/sales", json={"product_id": product["id"], "quantity": 2})

        listed = client.get("/api/alerts?alert_type=OUT_OF_STOCK&resolved=false").get_json()
        assert listed["count"] == 1
        alert_id = listed["alerts"][0]["id"]

        response = client.post(f"/api/alerts/{alert_id}/resolve", json={
            "notes": "restocked from back room", "restock_quantity": 5, "resolved_by": "manager",
        })

        assert response.status_code == 200
        assert response.get_json()["alert"]["resolved"] is True
        assert db_session.get(InventoryAlert, alert_id).resolved_by == "manager"
        product_body = client.get(f"/api/products/{product['id']}").get_json()["product"]
        assert product_body["quantity"] == 5

    def test_resolve_twice(self, client, db_session):
        product = _create_product(client)
        _replenish(client, product["id"], quantity=2)
        client.post("/api/sales", json={"product_id": product["id"], "quantity": 2})
        alert = db_session.query(InventoryAlert).filter_by(alert_type=AlertType.OUT_OF_STOCK).one()

        client.post(f"/api/alerts/{alert.id}/resolve", json={})
        response = client.post(f"/api/alerts/{alert.id}/resolve", json={})

        assert response.status_code == 400
