"""Listing view for customers and the admin queue."""

import json

from protean.core.projector import on
from protean.fields import DateTime, Float, Identifier, Integer, String
from protean.utils.globals import current_domain

from orders.domain import orders
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
from orders.review.order_review import OrderReview


@orders.projection
class OrderReviewSummary:
    order_review_id = Identifier(identifier=True, required=True)
    customer_id = Identifier(required=True)
    status = String(required=True)
    order_number = String(max_length=50)
    item_count = Integer(default=0)
    total = Float()
    currency = String(default="USD")
    reply_count = Integer(default=0)
    tracking_number = String(max_length=255)
    submitted_at = DateTime()
    updated_at = DateTime()


@orders.projector(projector_for=OrderReviewSummary, aggregates=[OrderReview])
class OrderReviewSummaryProjector:
    @on(OrderReviewSubmitted)
    def on_submitted(self, event):
        items = json.loads(event.items) if isinstance(event.items, str) else []
        current_domain.repository_for(OrderReviewSummary).add(
            OrderReviewSummary(
                order_review_id=event.order_review_id,
                customer_id=event.customer_id,
                status=event.to_status,
                item_count=len(items),
                total=event.total,
                currency=event.currency or "USD",
                reply_count=0,
                submitted_at=event.submitted_at,
                updated_at=event.submitted_at,
            )
        )

    def _update_status(self, order_review_id, status, updated_at=None, **changes):
        repo = current_domain.repository_for(OrderReviewSummary)
        summary = repo.get(order_review_id)
        summary.status = status
        for field_name, value in changes.items():
            setattr(summary, field_name, value)
        if updated_at:
            summary.updated_at = updated_at
        repo.add(summary)

    @on(OrderReviewApproved)
    def on_approved(self, event):
        self._update_status(event.order_review_id, event.to_status, event.reviewed_at)

    @on(OrderReviewRejected)
    def on_rejected(self, event):
        self._update_status(event.order_review_id, event.to_status, event.reviewed_at)

    @on(PictureReplyUploaded)
    def on_picture_reply(self, event):
        summary = current_domain.repository_for(OrderReviewSummary).get(event.order_review_id)
        self._update_status(
            event.order_review_id,
            event.to_status,
            event.uploaded_at,
            reply_count=(summary.reply_count or 0) + 1,
        )

    @on(CustomerConfirmationsRecorded)
    def on_confirmations(self, event):
        self._update_status(event.order_review_id, event.to_status, event.confirmed_at)

    @on(DesignReuploaded)
    def on_design_reuploaded(self, event):
        self._update_status(event.order_review_id, event.to_status, event.uploaded_at)

    @on(OrderReviewPaid)
    def on_paid(self, event):
        self._update_status(event.order_review_id, event.to_status, event.paid_at, order_number=event.order_number)

    @on(ProductionReadied)
    def on_production_ready(self, event):
        self._update_status(event.order_review_id, event.to_status, event.marked_at)

    @on(ProductionStarted)
    def on_production_started(self, event):
        self._update_status(event.order_review_id, event.to_status, event.started_at)

    @on(OrderReviewShipped)
    def on_shipped(self, event):
        self._update_status(
            event.order_review_id,
            event.to_status,
            event.shipped_at,
            tracking_number=event.tracking_number,
        )

    @on(OrderReviewDelivered)
    def on_delivered(self, event):
        self._update_status(event.order_review_id, event.to_status, event.delivered_at)
