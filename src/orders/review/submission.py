"""Order submission — command and handler."""

import json

import structlog
from protean import handle
from protean.fields import Float, Identifier, String, Text
from protean.utils.globals import current_domain

from orders.domain import orders
from orders.review.auth import AuthContext, Permission
from orders.review.order_review import OrderReview

logger = structlog.get_logger(__name__)


@orders.command(part_of="OrderReview")
class SubmitOrderForReview:
    """Open an order review from a customer's cart of customized items."""

    customer_id = Identifier(required=True)
    items = Text(required=True)  # JSON: list of item dicts
    subtotal = Float(required=True)
    shipping = Float(default=0.0)
    tax = Float(default=0.0)
    total = Float(required=True)
    currency = String(max_length=3, default="USD")
    customer_notes = Text()
    actor_role = String(default="customer")


@orders.command_handler(part_of=OrderReview)
class SubmitOrderHandler:
    @handle(SubmitOrderForReview)
    def submit(self, command):
        AuthContext.for_role(command.customer_id, command.actor_role).require(Permission.SUBMIT, "submit orders")

        items_data = json.loads(command.items) if isinstance(command.items, str) else command.items
        review = OrderReview.submit(
            customer_id=command.customer_id,
            items_data=items_data,
            pricing={
                "subtotal": command.subtotal,
                "shipping": command.shipping or 0.0,
                "tax": command.tax or 0.0,
                "total": command.total,
                "currency": command.currency or "USD",
            },
            customer_notes=command.customer_notes,
        )
        current_domain.repository_for(OrderReview).add(review)
        logger.info(
            "order_review_submitted",
            order_review_id=str(review.id),
            customer_id=str(command.customer_id),
            item_count=len(items_data),
            total=command.total,
        )
        return str(review.id)
