import json

from orders.fanout import EMAIL, REALTIME, get_channel
from orders.fanout.dispatcher import ADMIN_ROOM, ANOMALY_EVENT, STATUS_CHANGED_EVENT, customer_room
from orders.gateway.port import ProviderTransaction
from orders.payment.reconciliation import reconcile
from orders.review.admin_review import AddAdminNote, ApproveOrderReview
from orders.review.confirmation import SubmitCustomerConfirmations
from orders.review.order_review import OrderReview
from orders.review.picture_reply import UploadPictureReply
from orders.review.submission import SubmitOrderForReview
from protean import current_domain

ADMIN = {"actor_id": "admin-1", "actor_role": "admin"}


def _submit(customer_id="cust-001"):
    return current_domain.process(
        SubmitOrderForReview(
            customer_id=customer_id,
            items=json.dumps(
                [
                    {"title": "Logo cap", "quantity": 1, "base_price": 60.0, "design_assets": ["cap.png"]},
                    {"title": "Towel", "quantity": 1, "base_price": 60.0, "design_assets": ["towel.png"]},
                ]
            ),
            subtotal=120.0,
            total=120.0,
        ),
        asynchronous=False,
    )


def _to_statuses(room):
    return [m["message"]["to_status"] for m in get_channel(REALTIME).messages_for(room)]


class TestTransitionFanout:
    def test_submission_reaches_customer_admins_and_inbox(self):
        order_review_id = _submit()

        realtime = get_channel(REALTIME)
        customer_messages = realtime.messages_for(customer_room("cust-001"))
        assert len(customer_messages) == 1
        assert customer_messages[0]["event"] == STATUS_CHANGED_EVENT
        message = customer_messages[0]["message"]
        assert message["order_id"] == order_review_id
        assert message["from_status"] is None
        assert message["to_status"] == "pending-review"

        assert _to_statuses(ADMIN_ROOM) == ["pending-review"]

        emails = get_channel(EMAIL).sent_emails
        assert len(emails) == 1
        assert emails[0]["to"] == "cust-001"
        assert emails[0]["template"] == "order-status/pending-review"

    def test_each_transition_is_announced_once(self):
        order_review_id = _submit()
        current_domain.process(ApproveOrderReview(order_review_id=order_review_id, **ADMIN), asynchronous=False)

        assert _to_statuses(customer_room("cust-001")) == ["pending-review", "pending-payment"]
        message = get_channel(REALTIME).messages_for(ADMIN_ROOM)[-1]["message"]
        assert message["from_status"] == "pending-review"

    def test_admin_note_is_not_announced(self):
        order_review_id = _submit()
        current_domain.process(
            AddAdminNote(order_review_id=order_review_id, notes="Thread colour check", **ADMIN),
            asynchronous=False,
        )
        assert _to_statuses(ADMIN_ROOM) == ["pending-review"]

    def test_repeated_upload_is_announced(self):
        order_review_id = _submit()
        item_id = str(current_domain.repository_for(OrderReview).get(order_review_id).items[0].id)
        for image in ("first.jpg", "second.jpg"):
            current_domain.process(
                UploadPictureReply(order_review_id=order_review_id, item_id=item_id, image=image, **ADMIN),
                asynchronous=False,
            )
        assert _to_statuses(ADMIN_ROOM) == ["pending-review", "picture-reply-pending", "picture-reply-pending"]

    def test_incomplete_confirmation_round_is_silent(self):
        order_review_id = _submit()
        item_ids = [str(item.id) for item in current_domain.repository_for(OrderReview).get(order_review_id).items]
        for item_id in item_ids:
            current_domain.process(
                UploadPictureReply(order_review_id=order_review_id, item_id=item_id, image="render.jpg", **ADMIN),
                asynchronous=False,
            )
        before = len(get_channel(REALTIME).published)

        current_domain.process(
            SubmitCustomerConfirmations(
                order_review_id=order_review_id,
                confirmations=json.dumps([{"item_id": item_ids[0], "confirmed": True}]),
                actor_id="cust-001",
            ),
            asynchronous=False,
        )
        assert len(get_channel(REALTIME).published) == before

    def test_failing_channel_does_not_fail_the_transition(self):
        get_channel(REALTIME).configure(should_succeed=False)
        get_channel(EMAIL).configure(should_succeed=False)

        order_review_id = _submit()

        review = current_domain.repository_for(OrderReview).get(order_review_id)
        assert review.status == "pending-review"
        assert get_channel(REALTIME).published == []
        assert get_channel(EMAIL).sent_emails == []


class TestAnomalyAlerts:
    def test_anomaly_is_escalated_to_operators(self):
        reconcile(
            ProviderTransaction(
                provider="paypal",
                provider_transaction_id="pp_lost",
                status="COMPLETED",
                captured=True,
                amount=45.0,
                order_correlation_id="missing-order",
            ),
            "webhook",
        )

        emails = get_channel(EMAIL).sent_emails
        assert len(emails) == 1
        assert emails[0]["to"] == "operators"
        assert emails[0]["template"] == "reconciliation-anomaly"
        assert emails[0]["context"]["kind"] == "order-not-found"
        assert emails[0]["context"]["provider_transaction_id"] == "pp_lost"

        alerts = get_channel(REALTIME).messages_for(ADMIN_ROOM)
        assert len(alerts) == 1
        assert alerts[0]["event"] == ANOMALY_EVENT
