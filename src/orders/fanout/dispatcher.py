"""Notification fan-out — turns order transitions into realtime and email notices.

Reacts to every OrderReview event that moves the status (self-loops
included) and to recorded reconciliation anomalies. Delivery runs after the
transition is committed; a failing channel is logged and skipped, never
raised back into the command that caused the transition.
"""

import structlog
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from orders.domain import orders
from orders.fanout import EMAIL, REALTIME, get_channel
from orders.fanout.notice import TransitionNotice
from orders.payment.anomaly import ReconciliationAnomaly
from orders.payment.events import ReconciliationAnomalyRecorded
from orders.review.events import (
    CustomerConfirmationsRecorded,
    DesignReuploaded,
    OrderReviewApproved,
    OrderReviewDelivered,
    OrderReviewPaid,
    OrderReviewRejected,
    OrderReviewShipped,
    OrderReviewSubmitted,
    PictureReplyUploaded,
    ProductionReadied,
    ProductionStarted,
)
from orders.review.order_review import ConfirmationVerdict, OrderReview

logger = structlog.get_logger(__name__)

STATUS_CHANGED_EVENT = "order_status_changed"
ANOMALY_EVENT = "payment_anomaly"
ADMIN_ROOM = "admins"
OPERATOR_RECIPIENT = "operators"
ANOMALY_TEMPLATE = "reconciliation-anomaly"

# Event class -> field holding the moment of the transition
_OCCURRED_AT = {
    OrderReviewSubmitted: "submitted_at",
    OrderReviewApproved: "reviewed_at",
    OrderReviewRejected: "reviewed_at",
    PictureReplyUploaded: "uploaded_at",
    CustomerConfirmationsRecorded: "confirmed_at",
    DesignReuploaded: "uploaded_at",
    OrderReviewPaid: "paid_at",
    ProductionReadied: "marked_at",
    ProductionStarted: "started_at",
    OrderReviewShipped: "shipped_at",
    OrderReviewDelivered: "delivered_at",
}

_ENVELOPE_FIELDS = {"order_review_id", "from_status", "to_status"}


def customer_room(customer_id: str) -> str:
    return f"customer:{customer_id}"


def build_notice(event, customer_id: str) -> TransitionNotice:
    """Project a transition event onto the notice every channel receives."""
    data = event.to_dict()
    payload = {k: v for k, v in data.items() if not k.startswith("_") and k not in _ENVELOPE_FIELDS}
    return TransitionNotice(
        order_id=str(event.order_review_id),
        customer_id=str(customer_id),
        from_status=getattr(event, "from_status", None),
        to_status=event.to_status,
        occurred_at=getattr(event, _OCCURRED_AT[type(event)]),
        payload=payload,
    )


def _deliver(channel_type: str, send, **log_context) -> None:
    try:
        result = send(get_channel(channel_type))
    except Exception as e:
        logger.error("fanout_delivery_failed", channel=channel_type, error=str(e), **log_context)
        return
    if result.get("status") != "sent":
        logger.warning(
            "fanout_delivery_rejected",
            channel=channel_type,
            error=result.get("error", "Unknown dispatch error"),
            **log_context,
        )


def fan_out(notice: TransitionNotice) -> None:
    """Hand one notice to the realtime and email channels."""
    message = notice.as_message()
    context = {"order_id": notice.order_id, "to_status": notice.to_status}

    for room in (customer_room(notice.customer_id), ADMIN_ROOM):
        _deliver(
            REALTIME,
            lambda channel, room=room: channel.publish(room, STATUS_CHANGED_EVENT, message),
            room=room,
            **context,
        )
    _deliver(
        EMAIL,
        lambda channel: channel.send(notice.customer_id, notice.template, message),
        **context,
    )
    logger.info("transition_fanned_out", from_status=notice.from_status, **context)


@orders.event_handler(part_of=OrderReview)
class TransitionFanout:
    """Fans committed order transitions out to customers and admins."""

    def _dispatch(self, event, customer_id: str | None = None) -> None:
        if customer_id is None:
            try:
                review = current_domain.repository_for(OrderReview).get(event.order_review_id)
            except Exception as e:
                logger.error(
                    "fanout_order_lookup_failed",
                    order_id=str(event.order_review_id),
                    error=str(e),
                )
                return
            customer_id = review.customer_id
        fan_out(build_notice(event, customer_id))

    @handle(OrderReviewSubmitted)
    def on_submitted(self, event: OrderReviewSubmitted) -> None:
        self._dispatch(event, event.customer_id)

    @handle(OrderReviewApproved)
    def on_approved(self, event: OrderReviewApproved) -> None:
        self._dispatch(event)

    @handle(OrderReviewRejected)
    def on_rejected(self, event: OrderReviewRejected) -> None:
        self._dispatch(event)

    @handle(PictureReplyUploaded)
    def on_picture_reply(self, event: PictureReplyUploaded) -> None:
        self._dispatch(event)

    @handle(CustomerConfirmationsRecorded)
    def on_confirmations(self, event: CustomerConfirmationsRecorded) -> None:
        # An incomplete round records decisions without firing a transition
        if event.verdict == ConfirmationVerdict.INCOMPLETE.value:
            return
        self._dispatch(event)

    @handle(DesignReuploaded)
    def on_design_reuploaded(self, event: DesignReuploaded) -> None:
        self._dispatch(event)

    @handle(OrderReviewPaid)
    def on_paid(self, event: OrderReviewPaid) -> None:
        self._dispatch(event, event.customer_id)

    @handle(ProductionReadied)
    def on_production_ready(self, event: ProductionReadied) -> None:
        self._dispatch(event)

    @handle(ProductionStarted)
    def on_production_started(self, event: ProductionStarted) -> None:
        self._dispatch(event)

    @handle(OrderReviewShipped)
    def on_shipped(self, event: OrderReviewShipped) -> None:
        self._dispatch(event)

    @handle(OrderReviewDelivered)
    def on_delivered(self, event: OrderReviewDelivered) -> None:
        self._dispatch(event)


@orders.event_handler(part_of=ReconciliationAnomaly)
class AnomalyAlerts:
    """Escalates reconciliation anomalies to operators."""

    @handle(ReconciliationAnomalyRecorded)
    def on_anomaly_recorded(self, event: ReconciliationAnomalyRecorded) -> None:
        message = {
            "anomaly_id": str(event.anomaly_id),
            "kind": event.kind,
            "provider": event.provider,
            "provider_transaction_id": event.provider_transaction_id,
            "order_correlation_id": event.order_correlation_id,
            "amount": event.amount,
            "currency": event.currency,
            "detail": event.detail,
        }
        context = {"anomaly_id": message["anomaly_id"], "kind": event.kind}
        _deliver(
            EMAIL,
            lambda channel: channel.send(OPERATOR_RECIPIENT, ANOMALY_TEMPLATE, message),
            **context,
        )
        _deliver(
            REALTIME,
            lambda channel: channel.publish(ADMIN_ROOM, ANOMALY_EVENT, message),
            **context,
        )
