"""Approve, reject and annotate submitted orders."""

from protean import handle
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from orders.domain import orders
from orders.review.auth import AuthContext, Permission, authorize
from orders.review.order_review import OrderReview
from orders.review.state_machine import Trigger


@orders.command(part_of="OrderReview")
class ApproveOrderReview:
    order_review_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    actor_role = String(required=True, max_length=20)
    notes = Text()


@orders.command(part_of="OrderReview")
class RejectOrderReview:
    order_review_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    actor_role = String(required=True, max_length=20)
    notes = Text(required=True)


@orders.command(part_of="OrderReview")
class AddAdminNote:
    """Attach an informational note without changing the order's status."""

    order_review_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    actor_role = String(required=True, max_length=20)
    notes = Text(required=True)


@orders.command_handler(part_of=OrderReview)
class AdminReviewHandler:
    @handle(ApproveOrderReview)
    def approve(self, command):
        repo = current_domain.repository_for(OrderReview)
        review = repo.get(command.order_review_id)
        authorize(AuthContext.for_role(command.actor_id, command.actor_role), Trigger.ADMIN_APPROVE)
        review.approve(actor_id=command.actor_id, notes=command.notes)
        repo.add(review)

    @handle(RejectOrderReview)
    def reject(self, command):
        repo = current_domain.repository_for(OrderReview)
        review = repo.get(command.order_review_id)
        authorize(AuthContext.for_role(command.actor_id, command.actor_role), Trigger.ADMIN_REJECT)
        review.reject(actor_id=command.actor_id, notes=command.notes)
        repo.add(review)

    @handle(AddAdminNote)
    def add_note(self, command):
        repo = current_domain.repository_for(OrderReview)
        review = repo.get(command.order_review_id)
        AuthContext.for_role(command.actor_id, command.actor_role).require(Permission.REVIEW, "annotate orders")
        review.add_admin_note(actor_id=command.actor_id, notes=command.notes)
        repo.add(review)
