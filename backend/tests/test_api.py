"""
HTTP API tests.

Verifies:
- Stock-mutating requests need an X-User-Id header naming an active user
- Business errors come back as {"message": ...} with 400 / 404
- Document, stock and health endpoints round the workflows end to end
"""

import pytest

from helpers import item, line


# =============================================================================
# ACTOR HEADER: 401 / 403
# =============================================================================


class TestActorHeader:

    @pytest.mark.parametrize(
        "path",
        [
            "/api/adjustments",
            "/api/stock-requests",
            "/api/stock-returns",
            "/api/transfers",
            "/api/purchases",
            "/api/invoices",
            "/api/quotations",
            "/api/sale-returns",
        ],
    )
    def test_requires_actor(self, client, db_session, path):
        resp = client.post(path, json={})
        assert resp.status_code == 401, f"POST {path} returned {resp.status_code}"
        assert "X-User-Id" in resp.get_json()["message"]

    def test_malformed_header(self, client, db_session):
        resp = client.post("/api/adjustments", json={}, headers={"X-User-Id": "admin"})
        assert resp.status_code == 401

    def test_unknown_user(self, client, db_session, user):
        resp = client.post("/api/adjustments", json={}, headers={"X-User-Id": str(user.id + 999)})
        assert resp.status_code == 403

    def test_inactive_user(self, client, db_session, user):
        user.is_active = False
        db_session.commit()
        resp = client.post("/api/adjustments", json={}, headers={"X-User-Id": str(user.id)})
        assert resp.status_code == 403


# =============================================================================
# DOCUMENT ENDPOINTS
# =============================================================================


class TestAdjustmentEndpoints:

    def test_create_and_approve(self, client, actor_headers, branch, variant):
        resp = client.post(
            "/api/adjustments",
            json={"branch_id": branch.id, "details": [line(variant, 10)]},
            headers=actor_headers,
        )
        assert resp.status_code == 201
        body = resp.get_json()
        assert body["ref"] == "SAJM-00001"
        assert body["status"] == "PENDING"

        resp = client.post(f"/api/adjustments/{body['id']}/approve", headers=actor_headers)
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "APPROVED"

        resp = client.post(f"/api/adjustments/{body['id']}/approve", headers=actor_headers)
        assert resp.status_code == 400
        assert resp.get_json()["message"] == "Stock adjustment SAJM-00001 is already approved"

        resp = client.get(f"/api/stock?branch_id={branch.id}")
        assert resp.status_code == 200
        assert resp.get_json()["total_quantity"] == "10"

    def test_validation_error_format(self, client, actor_headers, branch):
        resp = client.post("/api/adjustments", json={"branch_id": branch.id, "details": []}, headers=actor_headers)
        assert resp.status_code == 400
        assert resp.get_json() == {"message": "Stock adjustment details cannot be empty"}

    def test_not_found(self, client, db_session):
        resp = client.get("/api/adjustments/424242")
        assert resp.status_code == 404
        assert "not found" in resp.get_json()["message"]

    def test_list_rejects_unknown_sort(self, client, db_session):
        resp = client.get("/api/adjustments?sort_field=password")
        assert resp.status_code == 400


class TestSalesEndpoints:

    def _stock(self, client, headers, branch, variant, quantity):
        resp = client.post(
            "/api/adjustments",
            json={"branch_id": branch.id, "details": [line(variant, quantity)], "approve": True},
            headers=headers,
        )
        assert resp.status_code == 201

    def test_insufficient_stock_message(self, client, actor_headers, branch, variant):
        self._stock(client, actor_headers, branch, variant, 1)

        resp = client.post(
            "/api/invoices",
            json={"branch_id": branch.id, "items": [item(variant, 2, "5")], "approve": True},
            headers=actor_headers,
        )
        assert resp.status_code == 400
        assert resp.get_json()["message"] == f"Insufficient stock for barcode: {variant.barcode}"

    def test_invoice_payment_and_return(self, client, actor_headers, branch, variant):
        self._stock(client, actor_headers, branch, variant, 10)

        resp = client.post(
            "/api/invoices",
            json={"branch_id": branch.id, "items": [item(variant, 4, "10")], "approve": True},
            headers=actor_headers,
        )
        assert resp.status_code == 201
        invoice = resp.get_json()
        assert invoice["status"] == "APPROVED"
        assert invoice["total_amount"] == "40"

        resp = client.post(f"/api/invoices/{invoice['id']}/payments", json={"total_paid": 40}, headers=actor_headers)
        assert resp.status_code == 201

        resp = client.post(
            "/api/sale-returns",
            json={"order_id": invoice["id"], "items": [{"order_item_id": invoice["items"][0]["id"], "quantity": 1}]},
            headers=actor_headers,
        )
        assert resp.status_code == 201
        assert resp.get_json()["ref"] == "SR-00001"

        resp = client.get(f"/api/invoices/{invoice['id']}/sale-returns")
        assert len(resp.get_json()["items"]) == 1

        resp = client.get(f"/api/invoices/{invoice['id']}")
        body = resp.get_json()
        assert body["total_amount"] == "30"
        assert body["paid_amount"] == "0"
        assert body["return_status"] == 1

    def test_quotation_convert(self, client, actor_headers, branch, variant):
        self._stock(client, actor_headers, branch, variant, 5)
        resp = client.post(
            "/api/quotations",
            json={"branch_id": branch.id, "details": [item(variant, 2, "3")]},
            headers=actor_headers,
        )
        assert resp.status_code == 201
        quotation_id = resp.get_json()["id"]

        resp = client.post(f"/api/quotations/{quotation_id}/convert", headers=actor_headers)
        assert resp.status_code == 201
        body = resp.get_json()
        assert body["invoice"]["status"] == "APPROVED"
        assert body["quotation"]["order_id"] == body["invoice"]["id"]

        resp = client.post(f"/api/quotations/{quotation_id}/convert", headers=actor_headers)
        assert resp.status_code == 400


# =============================================================================
# STOCK + HEALTH
# =============================================================================


class TestStockEndpoints:

    def test_movements_and_reconcile(self, client, actor_headers, branch, branch_two, variant):
        client.post(
            "/api/adjustments",
            json={"branch_id": branch.id, "details": [line(variant, 6)], "approve": True},
            headers=actor_headers,
        )
        resp = client.post(
            "/api/transfers",
            json={"branch_id": branch.id, "to_branch_id": branch_two.id,
                  "details": [line(variant, 2)], "approve": True},
            headers=actor_headers,
        )
        assert resp.status_code == 201

        resp = client.get(f"/api/stock/movements?product_variant_id={variant.id}&type=TRANSFER")
        page = resp.get_json()
        assert page["total"] == 2

        resp = client.get("/api/stock/reconcile")
        assert resp.get_json() == {"consistent": True, "discrepancies": []}

    def test_unknown_movement_type(self, client, db_session):
        resp = client.get("/api/stock/movements?type=TELEPORT")
        assert resp.status_code == 400

    def test_health(self, client, db_session):
        resp = client.get("/health")
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["status"] == "healthy"
        assert body["checks"]["ledger"]["status"] == "healthy"
