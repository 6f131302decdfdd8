"""Order fulfilment — commands and handler.

Moves a paid order through production and shipping to delivery. Every step
is admin-only and legal only from the status directly before it.
"""

from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from orders.domain import orders
from orders.review.auth import AuthContext, authorize
from orders.review.order_review import OrderReview
from orders.review.state_machine import Trigger


@orders.command(part_of="OrderReview")
class MarkProductionReady:
    order_review_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    actor_role = String(required=True, max_length=20)


@orders.command(part_of="OrderReview")
class StartProduction:
    order_review_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    actor_role = String(required=True, max_length=20)


@orders.command(part_of="OrderReview")
class MarkShipped:
    """Record that the goods left with a carrier; tracking is mandatory."""

    order_review_id = Identifier(required=True)
    carrier = String(required=True, max_length=100)
    tracking_number = String(required=True, max_length=255)
    tracking_url = String(max_length=1000)
    estimated_delivery = String(max_length=10)  # ISO date string
    actor_id = Identifier(required=True)
    actor_role = String(required=True, max_length=20)


@orders.command(part_of="OrderReview")
class MarkDelivered:
    order_review_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    actor_role = String(required=True, max_length=20)


@orders.command_handler(part_of=OrderReview)
class FulfillmentHandler:
    def _load(self, command, trigger):
        repo = current_domain.repository_for(OrderReview)
        review = repo.get(command.order_review_id)
        authorize(AuthContext.for_role(command.actor_id, command.actor_role), trigger)
        return repo, review

    @handle(MarkProductionReady)
    def mark_production_ready(self, command):
        repo, review = self._load(command, Trigger.MARK_PRODUCTION_READY)
        review.mark_production_ready(actor_id=command.actor_id)
        repo.add(review)

    @handle(StartProduction)
    def start_production(self, command):
        repo, review = self._load(command, Trigger.START_PRODUCTION)
        review.start_production(actor_id=command.actor_id)
        repo.add(review)

    @handle(MarkShipped)
    def mark_shipped(self, command):
        repo, review = self._load(command, Trigger.MARK_SHIPPED)
        review.mark_shipped(
            carrier=command.carrier,
            tracking_number=command.tracking_number,
            actor_id=command.actor_id,
            tracking_url=command.tracking_url,
            estimated_delivery=command.estimated_delivery,
        )
        repo.add(review)

    @handle(MarkDelivered)
    def mark_delivered(self, command):
        repo, review = self._load(command, Trigger.MARK_DELIVERED)
        review.mark_delivered(actor_id=command.actor_id)
        repo.add(review)
