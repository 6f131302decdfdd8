"""Integration tests for the payment API: webhooks, capture, polling, ledger and anomalies."""

import hashlib
import hmac
import json
import time

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from orders.api import order_review_router, payment_router, register_error_handlers
from orders.gateway import get_gateway, reset_gateways
from orders.payment.payment_record import PaymentRecord
from orders.review.order_review import OrderReview
from protean import current_domain

CUSTOMER = {"X-User-Id": "cust-001", "X-User-Role": "customer"}
OTHER_CUSTOMER = {"X-User-Id": "cust-002", "X-User-Role": "customer"}
ADMIN = {"X-User-Id": "admin-1", "X-User-Role": "admin"}
SIGNED = {"X-Signature": "test-signature"}


@pytest.fixture()
def client():
    app = FastAPI()
    app.include_router(order_review_router)
    app.include_router(payment_router)
    register_error_handlers(app)
    return TestClient(app)


def _payable(client, total=120.0):
    response = client.post(
        "/order-reviews",
        json={
            "items": [{"title": "Logo cap", "quantity": 1, "base_price": total, "design_assets": ["cap.png"]}],
            "subtotal": total,
            "total": total,
        },
        headers=CUSTOMER,
    )
    order_review_id = response.json()["order_review_id"]
    client.post(f"/order-reviews/{order_review_id}/admin-actions", json={"action": "approve"}, headers=ADMIN)
    return order_review_id


def _webhook(client, order_review_id, txn_id="pp_1", status="COMPLETED", amount=120.0, headers=SIGNED):
    return client.post(
        "/payments/webhook/paypal",
        content=json.dumps(
            {
                "event_type": "PAYMENT.CAPTURE.COMPLETED",
                "provider_transaction_id": txn_id,
                "status": status,
                "order_review_id": order_review_id,
                "amount": amount,
                "currency": "USD",
            }
        ),
        headers={"Content-Type": "application/json", **headers},
    )


def _records(order_review_id):
    return current_domain.repository_for(PaymentRecord)._dao.query.filter(order_review_id=order_review_id).all().items


class TestWebhook:
    def test_captured_payment_is_reconciled(self, client):
        order_review_id = _payable(client)
        response = _webhook(client, order_review_id)

        assert response.status_code == 200
        body = response.json()
        assert body["outcome"] == "reconciled"
        assert body["accepted"] is True
        assert body["order_status"] == "approved-processing"
        assert body["order_number"].startswith("MC-")
        assert len(_records(order_review_id)) == 1

    def test_redelivered_webhook_is_absorbed(self, client):
        order_review_id = _payable(client)
        first = _webhook(client, order_review_id).json()
        second = _webhook(client, order_review_id)

        assert second.status_code == 200
        assert second.json()["outcome"] == "duplicate"
        assert second.json()["payment_record_id"] == first["payment_record_id"]
        assert len(_records(order_review_id)) == 1

    def test_uncaptured_status_writes_nothing(self, client):
        order_review_id = _payable(client)
        response = _webhook(client, order_review_id, status="APPROVED")

        body = response.json()
        assert body["outcome"] == "not-captured"
        assert body["accepted"] is False
        assert body["provider_status"] == "APPROVED"
        assert _records(order_review_id) == []

    def test_bad_signature_is_refused(self, client):
        order_review_id = _payable(client)
        response = _webhook(client, order_review_id, headers={"X-Signature": "forged"})

        assert response.status_code == 401
        assert _records(order_review_id) == []
        assert current_domain.repository_for(OrderReview).get(order_review_id).status == "pending-payment"

    def test_malformed_payload_is_422(self, client):
        response = client.post(
            "/payments/webhook/paypal",
            content="{not json",
            headers={"Content-Type": "application/json", **SIGNED},
        )
        assert response.status_code == 422

    def test_unsupported_provider_is_400(self, client):
        response = client.post("/payments/webhook/bitcoin", content="{}", headers=SIGNED)
        assert response.status_code == 400

    def test_unknown_order_is_accepted_as_anomaly(self, client):
        response = _webhook(client, "missing-order")

        assert response.status_code == 200
        body = response.json()
        assert body["outcome"] == "anomaly"
        assert body["anomaly_kind"] == "order-not-found"

        anomalies = client.get("/payments/anomalies", headers=ADMIN).json()["anomalies"]
        assert [a["kind"] for a in anomalies] == ["order-not-found"]


class TestCheckoutAndCapture:
    def test_checkout_capture_then_webhook(self, client):
        order_review_id = _payable(client)
        response = client.post(
            "/payments/stripe/checkout", json={"order_review_id": order_review_id}, headers=CUSTOMER
        )
        assert response.status_code == 201
        txn_id = response.json()["provider_transaction_id"]
        assert response.json()["status"] == "requires_capture"

        captured = client.post("/payments/stripe/capture", json={"provider_transaction_id": txn_id}, headers=CUSTOMER)
        assert captured.json()["outcome"] == "reconciled"

        late = client.post(
            "/payments/webhook/stripe",
            content=json.dumps(
                {"provider_transaction_id": txn_id, "status": "succeeded", "order_review_id": order_review_id}
            ),
            headers={"Content-Type": "application/json", "Stripe-Signature": "test-signature"},
        )
        assert late.json()["outcome"] == "duplicate"
        assert len(_records(order_review_id)) == 1
        assert _records(order_review_id)[0].source == "capture"

    def test_sync_polls_provider(self, client):
        order_review_id = _payable(client)
        txn_id = client.post(
            "/payments/paypal/checkout", json={"order_review_id": order_review_id}, headers=CUSTOMER
        ).json()["provider_transaction_id"]

        pending = client.post(f"/payments/paypal/transactions/{txn_id}/sync", headers=ADMIN)
        assert pending.json()["outcome"] == "not-captured"

        get_gateway("paypal").capture(txn_id)
        synced = client.post(f"/payments/paypal/transactions/{txn_id}/sync", headers=ADMIN)
        assert synced.json()["outcome"] == "reconciled"
        assert _records(order_review_id)[0].source == "poll"

    def test_sync_unknown_transaction_is_404(self, client):
        response = client.post("/payments/paypal/transactions/nope/sync", headers=ADMIN)
        assert response.status_code == 404

    def test_checkout_before_approval_is_409(self, client):
        response = client.post(
            "/order-reviews",
            json={
                "items": [{"title": "Cap", "quantity": 1, "base_price": 10.0, "design_assets": ["c.png"]}],
                "subtotal": 10.0,
                "total": 10.0,
            },
            headers=CUSTOMER,
        )
        order_review_id = response.json()["order_review_id"]
        response = client.post(
            "/payments/paypal/checkout", json={"order_review_id": order_review_id}, headers=CUSTOMER
        )
        assert response.status_code == 409

    def test_declining_gateway(self, client):
        order_review_id = _payable(client)
        client.post("/payments/gateway/stripe/configure", json={"should_succeed": False}, headers=ADMIN)
        txn_id = client.post(
            "/payments/stripe/checkout", json={"order_review_id": order_review_id}, headers=CUSTOMER
        ).json()["provider_transaction_id"]

        response = client.post("/payments/stripe/capture", json={"provider_transaction_id": txn_id}, headers=CUSTOMER)
        assert response.json()["outcome"] == "not-captured"
        assert response.json()["provider_status"] == "requires_payment_method"


    def test_capture_of_another_customers_charge_is_403(self, client):
        order_review_id = _payable(client)
        txn_id = client.post(
            "/payments/stripe/checkout", json={"order_review_id": order_review_id}, headers=CUSTOMER
        ).json()["provider_transaction_id"]

        response = client.post(
            "/payments/stripe/capture", json={"provider_transaction_id": txn_id}, headers=OTHER_CUSTOMER
        )
        assert response.status_code == 403
        assert not get_gateway("stripe").fetch(txn_id).captured
        assert _records(order_review_id) == []

    def test_sync_of_another_customers_charge_is_403(self, client):
        order_review_id = _payable(client)
        txn_id = client.post(
            "/payments/paypal/checkout", json={"order_review_id": order_review_id}, headers=CUSTOMER
        ).json()["provider_transaction_id"]
        get_gateway("paypal").capture(txn_id)

        refused = client.post(f"/payments/paypal/transactions/{txn_id}/sync", headers=OTHER_CUSTOMER)
        assert refused.status_code == 403
        assert _records(order_review_id) == []

        own = client.post(f"/payments/paypal/transactions/{txn_id}/sync", headers=CUSTOMER)
        assert own.json()["outcome"] == "reconciled"

    def test_customer_cannot_capture_uncorrelated_charge(self, client):
        get_gateway("paypal").seed_transaction("pp_orphan", None, 50.0)
        response = client.post(
            "/payments/paypal/capture", json={"provider_transaction_id": "pp_orphan"}, headers=CUSTOMER
        )
        assert response.status_code == 403

    def test_configuring_gateway_requires_admin(self, client):
        anonymous = client.post("/payments/gateway/stripe/configure", json={"should_succeed": False})
        customer = client.post(
            "/payments/gateway/stripe/configure", json={"should_succeed": False}, headers=CUSTOMER
        )

        assert anonymous.status_code == 401
        assert customer.status_code == 403
        assert get_gateway("stripe").should_succeed is True


def _stripe_headers(payload, secret):
    timestamp = int(time.time())
    digest = hmac.new(secret.encode(), f"{timestamp}.{payload}".encode(), hashlib.sha256).hexdigest()
    return {"Content-Type": "application/json", "Stripe-Signature": f"t={timestamp},v1={digest}"}


class TestLiveIntake:
    SECRET = "whsec_live_test"

    @pytest.fixture()
    def live(self, monkeypatch):
        monkeypatch.setenv("PAYMENT_GATEWAY_MODE", "live")
        monkeypatch.setenv("STRIPE_WEBHOOK_SECRET", self.SECRET)
        reset_gateways()
        yield
        reset_gateways()

    def _stripe_event(self, event_type, order_review_id, status="succeeded", amount=12000):
        return json.dumps(
            {
                "id": "evt_live_1",
                "object": "event",
                "type": event_type,
                "data": {
                    "object": {
                        "id": "pi_live_1",
                        "object": "payment_intent",
                        "status": status,
                        "amount": amount,
                        "amount_received": amount if status == "succeeded" else 0,
                        "currency": "usd",
                        "metadata": {"order_review_id": order_review_id},
                    }
                },
            }
        )

    def test_stripe_event_reconciles_order(self, client, live):
        order_review_id = _payable(client)
        payload = self._stripe_event("payment_intent.succeeded", order_review_id)

        response = client.post("/payments/webhook/stripe", content=payload, headers=_stripe_headers(payload, self.SECRET))

        assert response.status_code == 200
        body = response.json()
        assert body["outcome"] == "reconciled"
        assert body["provider_transaction_id"] == "pi_live_1"
        records = _records(order_review_id)
        assert len(records) == 1
        assert records[0].amount == 120.0

    def test_stripe_event_with_foreign_signature_is_401(self, client, live):
        order_review_id = _payable(client)
        payload = self._stripe_event("payment_intent.succeeded", order_review_id)

        response = client.post(
            "/payments/webhook/stripe", content=payload, headers=_stripe_headers(payload, "whsec_attacker")
        )

        assert response.status_code == 401
        assert current_domain.repository_for(OrderReview).get(order_review_id).status == "pending-payment"

    def test_unrelated_stripe_event_is_acknowledged(self, client, live):
        payload = json.dumps({"id": "evt_2", "object": "event", "type": "customer.created", "data": {"object": {}}})
        response = client.post("/payments/webhook/stripe", content=payload, headers=_stripe_headers(payload, self.SECRET))

        assert response.status_code == 200
        assert response.json()["outcome"] == "ignored"
        assert response.json()["accepted"] is True

    def test_manual_webhook_cannot_pay_an_order(self, client, live):
        order_review_id = _payable(client)
        response = client.post(
            "/payments/webhook/manual",
            content=json.dumps(
                {"provider_transaction_id": "forged", "status": "completed", "order_review_id": order_review_id}
            ),
            headers={"Content-Type": "application/json", "X-Signature": "test-signature"},
        )

        assert response.status_code == 400
        assert _records(order_review_id) == []
        assert current_domain.repository_for(OrderReview).get(order_review_id).status == "pending-payment"

    def test_manual_capture_and_sync_are_refused(self, client, live):
        capture = client.post("/payments/manual/capture", json={"provider_transaction_id": "forged"}, headers=ADMIN)
        sync = client.post("/payments/manual/transactions/forged/sync", headers=ADMIN)
        assert capture.status_code == 400
        assert sync.status_code == 400


class TestLedgerEndpoints:
    def test_customer_sees_own_records(self, client):
        order_review_id = _payable(client)
        _webhook(client, order_review_id)

        own = client.get("/payments/records", headers=CUSTOMER).json()["payment_records"]
        assert len(own) == 1
        assert own[0]["fees"] == 3.78
        assert own[0]["net_amount"] == 116.22

        others = client.get("/payments/records", headers={"X-User-Id": "cust-002", "X-User-Role": "customer"})
        assert others.json()["payment_records"] == []

    def test_refund_is_idempotent(self, client):
        order_review_id = _payable(client)
        payment_record_id = _webhook(client, order_review_id).json()["payment_record_id"]

        payload = {"provider_refund_id": "rf_1", "amount": 20.0, "reason": "Late delivery"}
        first = client.post(f"/payments/records/{payment_record_id}/refunds", json=payload, headers=ADMIN)
        second = client.post(f"/payments/records/{payment_record_id}/refunds", json=payload, headers=ADMIN)

        assert first.json()["applied"] is True
        assert second.json()["applied"] is False
        assert second.json()["refunded_amount"] == 20.0
        assert second.json()["status"] == "partially-refunded"

    def test_customer_cannot_refund(self, client):
        order_review_id = _payable(client)
        payment_record_id = _webhook(client, order_review_id).json()["payment_record_id"]
        response = client.post(
            f"/payments/records/{payment_record_id}/refunds",
            json={"provider_refund_id": "rf_1", "amount": 20.0},
            headers=CUSTOMER,
        )
        assert response.status_code == 403


class TestAnomalyEndpoints:
    def test_resolve_anomaly(self, client):
        anomaly_id = _webhook(client, "missing-order").json()["anomaly_id"]
        response = client.put(
            f"/payments/anomalies/{anomaly_id}/resolve",
            json={"resolution_notes": "Refunded at PayPal"},
            headers=ADMIN,
        )
        assert response.status_code == 200
        assert response.json()["status"] == "resolved"

        open_ones = client.get("/payments/anomalies?status=open", headers=ADMIN).json()["anomalies"]
        assert open_ones == []

    def test_customer_cannot_list_anomalies(self, client):
        response = client.get("/payments/anomalies", headers=CUSTOMER)
        assert response.status_code == 403
