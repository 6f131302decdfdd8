"""The customer signs off on, or rejects, picture replies.

A confirmation names an item by its canonical id and nothing else; the
aggregate resolves it by exact equality.
"""

import json

import structlog
from protean import handle
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from orders.domain import orders
from orders.review.auth import AuthContext, authorize
from orders.review.order_review import ConfirmationVerdict, OrderReview
from orders.review.state_machine import Trigger

logger = structlog.get_logger(__name__)


@orders.command(part_of="OrderReview")
class SubmitCustomerConfirmations:
    order_review_id = Identifier(required=True)
    confirmations = Text(required=True)  # JSON: list of {"item_id", "confirmed", "notes"}
    actor_id = Identifier(required=True)
    actor_role = String(default="customer", max_length=20)


@orders.command_handler(part_of=OrderReview)
class CustomerConfirmationHandler:
    @handle(SubmitCustomerConfirmations)
    def submit_confirmations(self, command):
        repo = current_domain.repository_for(OrderReview)
        review = repo.get(command.order_review_id)

        # Approve-all and reject-items share one permission rule
        authorize(
            AuthContext.for_role(command.actor_id, command.actor_role),
            Trigger.CUSTOMER_APPROVE_ALL,
            owner_id=review.customer_id,
        )

        confirmations = (
            json.loads(command.confirmations) if isinstance(command.confirmations, str) else command.confirmations
        )
        outcome = review.record_customer_confirmations(confirmations, actor_id=command.actor_id)
        repo.add(review)

        log = logger.info if outcome.verdict != ConfirmationVerdict.INCOMPLETE else logger.debug
        log(
            "customer_confirmations_recorded",
            order_review_id=str(review.id),
            verdict=outcome.verdict.value,
            status=outcome.status,
            awaiting=outcome.awaiting_item_ids,
        )
        return outcome
