"""Integration tests for order-review projections: summaries, review queue and timeline."""

import json

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from orders.api import order_review_router, register_error_handlers
from orders.gateway.port import ProviderTransaction
from orders.payment.reconciliation import reconcile
from orders.projections.order_review_summary import OrderReviewSummary
from orders.projections.order_review_timeline import OrderReviewTimeline
from orders.review.admin_review import AddAdminNote, ApproveOrderReview
from orders.review.fulfillment import MarkProductionReady, MarkShipped, StartProduction
from orders.review.order_review import OrderReview
from orders.review.picture_reply import UploadPictureReply
from orders.review.submission import SubmitOrderForReview
from protean import current_domain

ADMIN = {"actor_id": "admin-1", "actor_role": "admin"}


def _submit(customer_id="cust-proj-001"):
    return current_domain.process(
        SubmitOrderForReview(
            customer_id=customer_id,
            items=json.dumps(
                [
                    {"title": "Logo cap", "quantity": 2, "base_price": 25.0, "design_assets": ["cap.png"]},
                    {"title": "Towel", "quantity": 1, "base_price": 30.0, "design_assets": ["towel.png"]},
                ]
            ),
            subtotal=80.0,
            shipping=5.0,
            total=85.0,
        ),
        asynchronous=False,
    )


def _approve(order_review_id):
    current_domain.process(ApproveOrderReview(order_review_id=order_review_id, **ADMIN), asynchronous=False)


def _pay(order_review_id, txn_id="pp_proj"):
    return reconcile(
        ProviderTransaction(
            provider="paypal",
            provider_transaction_id=txn_id,
            status="COMPLETED",
            captured=True,
            amount=85.0,
            order_correlation_id=order_review_id,
        ),
        "webhook",
    )


def _summary(order_review_id):
    return current_domain.repository_for(OrderReviewSummary).get(order_review_id)


def _timeline(order_review_id):
    entries = (
        current_domain.repository_for(OrderReviewTimeline)._dao.query.filter(order_review_id=order_review_id).all().items
    )
    return sorted(entries, key=lambda e: e.occurred_at)


class TestOrderReviewSummary:
    def test_created_on_submission(self):
        order_review_id = _submit()
        summary = _summary(order_review_id)

        assert summary.customer_id == "cust-proj-001"
        assert summary.status == "pending-review"
        assert summary.item_count == 2
        assert summary.total == 85.0
        assert summary.reply_count == 0

    def test_follows_status_changes(self):
        order_review_id = _submit()
        _approve(order_review_id)
        assert _summary(order_review_id).status == "pending-payment"

    def test_counts_picture_replies(self):
        order_review_id = _submit()
        item_id = str(current_domain.repository_for(OrderReview).get(order_review_id).items[0].id)
        for image in ("a.jpg", "b.jpg"):
            current_domain.process(
                UploadPictureReply(order_review_id=order_review_id, item_id=item_id, image=image, **ADMIN),
                asynchronous=False,
            )
        summary = _summary(order_review_id)
        assert summary.reply_count == 2
        assert summary.status == "picture-reply-pending"

    def test_carries_order_number_and_tracking(self):
        order_review_id = _submit()
        _approve(order_review_id)
        result = _pay(order_review_id)
        for command in (MarkProductionReady, StartProduction):
            current_domain.process(command(order_review_id=order_review_id, **ADMIN), asynchronous=False)
        current_domain.process(
            MarkShipped(order_review_id=order_review_id, carrier="DHL", tracking_number="JD0001", **ADMIN),
            asynchronous=False,
        )

        summary = _summary(order_review_id)
        assert summary.order_number == result.order_number
        assert summary.tracking_number == "JD0001"
        assert summary.status == "shipped"


class TestOrderReviewTimeline:
    def test_records_every_step(self):
        order_review_id = _submit()
        current_domain.process(
            AddAdminNote(order_review_id=order_review_id, notes="Check the navy thread", **ADMIN),
            asynchronous=False,
        )
        _approve(order_review_id)
        _pay(order_review_id)

        entries = _timeline(order_review_id)
        assert [e.event_type for e in entries] == [
            "OrderReviewSubmitted",
            "AdminNoteAdded",
            "OrderReviewApproved",
            "OrderReviewPaid",
        ]
        assert entries[1].notes == "Check the navy thread"
        assert entries[1].to_status is None
        assert entries[2].from_status == "pending-review"
        assert entries[2].to_status == "pending-payment"
        assert entries[3].actor_id == "payment-reconciler"

    def test_duplicate_payment_adds_no_entry(self):
        order_review_id = _submit()
        _approve(order_review_id)
        _pay(order_review_id)
        _pay(order_review_id)

        paid = [e for e in _timeline(order_review_id) if e.event_type == "OrderReviewPaid"]
        assert len(paid) == 1


@pytest.fixture()
def client():
    app = FastAPI()
    app.include_router(order_review_router)
    register_error_handlers(app)
    return TestClient(app)


class TestProjectionEndpoints:
    def test_customer_list(self, client):
        first = _submit("cust-list")
        second = _submit("cust-list")
        _submit("someone-else")

        response = client.get("/order-reviews", headers={"X-User-Id": "cust-list", "X-User-Role": "customer"})
        ids = [r["order_review_id"] for r in response.json()["order_reviews"]]
        assert ids == [second, first]

    def test_customer_cannot_list_other_customers(self, client):
        _submit("cust-list")
        response = client.get(
            "/order-reviews?customer_id=cust-list", headers={"X-User-Id": "intruder", "X-User-Role": "customer"}
        )
        assert response.status_code == 403

    def test_admin_queue_filters_by_status(self, client):
        waiting = _submit()
        approved = _submit()
        _approve(approved)

        headers = {"X-User-Id": "admin-1", "X-User-Role": "admin"}
        queue = client.get("/order-reviews/admin/queue?status=pending-review", headers=headers).json()
        assert [r["order_review_id"] for r in queue["order_reviews"]] == [waiting]

        everything = client.get("/order-reviews/admin/queue", headers=headers).json()
        assert len(everything["order_reviews"]) == 2

    def test_customer_cannot_see_queue(self, client):
        response = client.get("/order-reviews/admin/queue", headers={"X-User-Id": "c", "X-User-Role": "customer"})
        assert response.status_code == 403

    def test_timeline_endpoint(self, client):
        order_review_id = _submit()
        _approve(order_review_id)

        response = client.get(
            f"/order-reviews/{order_review_id}/timeline",
            headers={"X-User-Id": "cust-proj-001", "X-User-Role": "customer"},
        )
        entries = response.json()["entries"]
        assert [e["event_type"] for e in entries] == ["OrderReviewSubmitted", "OrderReviewApproved"]
