"""Domain events for the OrderReview aggregate.

Every status change is a versioned event carrying ``from_status`` and
``to_status``; the aggregate rebuilds itself from them via @apply and the
notification fan-out turns them into transition notices.
"""

from protean.fields import DateTime, Float, Identifier, String, Text

from orders.domain import orders


@orders.event(part_of="OrderReview")
class OrderReviewSubmitted:
    """A customer submitted a cart of customized items for design review."""

    __version__ = 1

    order_review_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    items = Text(required=True)  # JSON: list of item snapshots, ids included
    subtotal = Float(required=True)
    shipping = Float()
    tax = Float()
    total = Float(required=True)
    currency = String(default="USD")
    customer_notes = Text()
    to_status = String(required=True)
    submitted_at = DateTime(required=True)


@orders.event(part_of="OrderReview")
class OrderReviewApproved:
    """An admin approved the designs as submitted; no picture step needed."""

    __version__ = 1

    order_review_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    notes = Text()
    from_status = String(required=True)
    to_status = String(required=True)
    reviewed_at = DateTime(required=True)


@orders.event(part_of="OrderReview")
class OrderReviewRejected:
    """An admin rejected the submission; the customer must upload new artwork."""

    __version__ = 1

    order_review_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    notes = Text(required=True)
    from_status = String(required=True)
    to_status = String(required=True)
    reviewed_at = DateTime(required=True)


@orders.event(part_of="OrderReview")
class AdminNoteAdded:
    """Informational admin note; the status does not change."""

    __version__ = 1

    order_review_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    notes = Text(required=True)
    noted_at = DateTime(required=True)


@orders.event(part_of="OrderReview")
class PictureReplyUploaded:
    """An admin uploaded a rendered sample of one item's design."""

    __version__ = 1

    order_review_id = Identifier(required=True)
    reply_id = Identifier(required=True)
    item_id = Identifier(required=True)
    image = String(required=True, max_length=1000)
    notes = Text()
    actor_id = Identifier(required=True)
    from_status = String(required=True)
    to_status = String(required=True)
    uploaded_at = DateTime(required=True)


@orders.event(part_of="OrderReview")
class CustomerConfirmationsRecorded:
    """The customer decided on one or more picture replies.

    ``verdict`` is ``approved``, ``rejected`` or ``incomplete``; an incomplete
    round records the decisions but leaves the status where it was.
    """

    __version__ = 1

    order_review_id = Identifier(required=True)
    confirmations = Text(required=True)  # JSON: list of confirmation dicts, ids included
    verdict = String(required=True)
    actor_id = Identifier(required=True)
    from_status = String(required=True)
    to_status = String(required=True)
    confirmed_at = DateTime(required=True)


@orders.event(part_of="OrderReview")
class DesignReuploaded:
    """The customer supplied replacement artwork after a rejection."""

    __version__ = 1

    order_review_id = Identifier(required=True)
    revision_id = Identifier(required=True)
    item_id = Identifier(required=True)
    design_assets = Text(required=True)  # JSON: list of asset references
    notes = Text()
    actor_id = Identifier(required=True)
    from_status = String(required=True)
    to_status = String(required=True)
    uploaded_at = DateTime(required=True)


@orders.event(part_of="OrderReview")
class OrderReviewPaid:
    """A captured provider payment was reconciled against the order."""

    __version__ = 1

    order_review_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    order_number = String(required=True, max_length=50)
    provider = String(required=True, max_length=20)
    provider_transaction_id = String(required=True, max_length=255)
    amount = Float(required=True)
    currency = String(default="USD")
    actor_id = Identifier(required=True)
    from_status = String(required=True)
    to_status = String(required=True)
    paid_at = DateTime(required=True)


@orders.event(part_of="OrderReview")
class ProductionReadied:
    __version__ = 1

    order_review_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    from_status = String(required=True)
    to_status = String(required=True)
    marked_at = DateTime(required=True)


@orders.event(part_of="OrderReview")
class ProductionStarted:
    __version__ = 1

    order_review_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    from_status = String(required=True)
    to_status = String(required=True)
    started_at = DateTime(required=True)


@orders.event(part_of="OrderReview")
class OrderReviewShipped:
    """The finished goods left the workshop with a carrier."""

    __version__ = 1

    order_review_id = Identifier(required=True)
    carrier = String(required=True, max_length=100)
    tracking_number = String(required=True, max_length=255)
    tracking_url = String(max_length=1000)
    estimated_delivery = String(max_length=10)  # ISO date string
    actor_id = Identifier(required=True)
    from_status = String(required=True)
    to_status = String(required=True)
    shipped_at = DateTime(required=True)


@orders.event(part_of="OrderReview")
class OrderReviewDelivered:
    __version__ = 1

    order_review_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    from_status = String(required=True)
    to_status = String(required=True)
    delivered_at = DateTime(required=True)
