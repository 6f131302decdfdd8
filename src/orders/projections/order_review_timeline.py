"""Order review timeline — append-only audit trail of review and fulfilment events."""

import uuid

from protean.core.projector import on
from protean.fields import DateTime, Identifier, String, Text
from protean.utils.globals import current_domain

from orders.domain import orders
from orders.review.events import (
    AdminNoteAdded,
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
class OrderReviewTimeline:
    entry_id = Identifier(identifier=True, required=True)
    order_review_id = Identifier(required=True)
    event_type = String(required=True)
    description = String(required=True, max_length=500)
    from_status = String()
    to_status = String()
    actor_id = Identifier()
    occurred_at = DateTime(required=True)
    notes = Text()


def _add_entry(event, description, occurred_at, actor_id=None, notes=None):
    current_domain.repository_for(OrderReviewTimeline).add(
        OrderReviewTimeline(
            entry_id=str(uuid.uuid4()),
            order_review_id=event.order_review_id,
            event_type=event.__class__.__name__,
            description=description,
            from_status=getattr(event, "from_status", None),
            to_status=getattr(event, "to_status", None),
            actor_id=actor_id,
            occurred_at=occurred_at,
            notes=notes,
        )
    )


@orders.projector(projector_for=OrderReviewTimeline, aggregates=[OrderReview])
class OrderReviewTimelineProjector:
    @on(OrderReviewSubmitted)
    def on_submitted(self, event):
        _add_entry(event, "Order submitted for design review", event.submitted_at, event.customer_id, event.customer_notes)

    @on(OrderReviewApproved)
    def on_approved(self, event):
        _add_entry(event, "Designs approved as submitted", event.reviewed_at, event.actor_id, event.notes)

    @on(OrderReviewRejected)
    def on_rejected(self, event):
        _add_entry(event, "Designs rejected", event.reviewed_at, event.actor_id, event.notes)

    @on(AdminNoteAdded)
    def on_admin_note(self, event):
        _add_entry(event, "Admin note added", event.noted_at, event.actor_id, event.notes)

    @on(PictureReplyUploaded)
    def on_picture_reply(self, event):
        _add_entry(event, f"Picture reply uploaded for item {event.item_id}", event.uploaded_at, event.actor_id, event.notes)

    @on(CustomerConfirmationsRecorded)
    def on_confirmations(self, event):
        _add_entry(event, f"Customer confirmations recorded ({event.verdict})", event.confirmed_at, event.actor_id)

    @on(DesignReuploaded)
    def on_design_reuploaded(self, event):
        _add_entry(event, f"Design re-uploaded for item {event.item_id}", event.uploaded_at, event.actor_id, event.notes)

    @on(OrderReviewPaid)
    def on_paid(self, event):
        _add_entry(
            event,
            f"Payment {event.provider}:{event.provider_transaction_id} reconciled as {event.order_number}",
            event.paid_at,
            event.actor_id,
        )

    @on(ProductionReadied)
    def on_production_ready(self, event):
        _add_entry(event, "Marked ready for production", event.marked_at, event.actor_id)

    @on(ProductionStarted)
    def on_production_started(self, event):
        _add_entry(event, "Production started", event.started_at, event.actor_id)

    @on(OrderReviewShipped)
    def on_shipped(self, event):
        _add_entry(event, f"Shipped via {event.carrier} ({event.tracking_number})", event.shipped_at, event.actor_id)

    @on(OrderReviewDelivered)
    def on_delivered(self, event):
        _add_entry(event, "Delivered", event.delivered_at, event.actor_id)
