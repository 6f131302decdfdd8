"""Design re-upload: the customer answers an admin rejection with new artwork."""

import json

from protean import handle
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from orders.domain import orders
from orders.review.auth import AuthContext, authorize
from orders.review.order_review import OrderReview
from orders.review.state_machine import Trigger


@orders.command(part_of="OrderReview")
class ReuploadDesign:
    order_review_id = Identifier(required=True)
    item_id = Identifier(required=True)
    design_assets = Text(required=True)  # JSON: list of asset references
    notes = Text()
    actor_id = Identifier(required=True)
    actor_role = String(default="customer", max_length=20)


@orders.command_handler(part_of=OrderReview)
class RedesignHandler:
    @handle(ReuploadDesign)
    def reupload(self, command):
        repo = current_domain.repository_for(OrderReview)
        review = repo.get(command.order_review_id)
        authorize(
            AuthContext.for_role(command.actor_id, command.actor_role),
            Trigger.REUPLOAD_DESIGN,
            owner_id=review.customer_id,
        )
        assets = json.loads(command.design_assets) if isinstance(command.design_assets, str) else command.design_assets
        revision_id = review.reupload_design(
            item_id=command.item_id,
            design_assets=assets,
            actor_id=command.actor_id,
            notes=command.notes,
        )
        repo.add(review)
        return revision_id
