"""An admin uploads a rendered sample for one item."""

import structlog
from protean import handle
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from orders.domain import orders
from orders.review.auth import AuthContext, authorize
from orders.review.order_review import OrderReview
from orders.review.state_machine import Trigger

logger = structlog.get_logger(__name__)


@orders.command(part_of="OrderReview")
class UploadPictureReply:
    order_review_id = Identifier(required=True)
    item_id = Identifier(required=True)
    image = String(required=True, max_length=1000)
    notes = Text()
    actor_id = Identifier(required=True)
    actor_role = String(required=True, max_length=20)


@orders.command_handler(part_of=OrderReview)
class PictureReplyHandler:
    @handle(UploadPictureReply)
    def upload(self, command):
        repo = current_domain.repository_for(OrderReview)
        review = repo.get(command.order_review_id)
        authorize(AuthContext.for_role(command.actor_id, command.actor_role), Trigger.UPLOAD_PICTURE_REPLY)
        reply_id = review.upload_picture_reply(
            item_id=command.item_id,
            image=command.image,
            actor_id=command.actor_id,
            notes=command.notes,
        )
        repo.add(review)
        logger.info(
            "picture_reply_uploaded",
            order_review_id=str(review.id),
            item_id=str(command.item_id),
            reply_id=reply_id,
        )
        return reply_id
