"""OrderReview aggregate (Event Sourced) — the core of the orders domain.

An order-in-review holds the customer's submitted items and the pricing that
was quoted for them, and records every admin decision, picture reply and
customer confirmation as an append-only event. The current state is rebuilt by
replaying those events via @apply decorators, so the full design-approval
conversation is always available for audit.

Items and pricing are snapshots taken at submission; nothing after that point
re-derives them from the catalogue. Once payment is reconciled the order is
logically frozen: only production, shipment and delivery details change.
"""

import json
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

from protean import apply
from protean.exceptions import ValidationError
from protean.fields import (
    Boolean,
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
    ValueObject,
)

from orders.domain import orders
from orders.review.errors import InvalidItemReference, InvalidTransition
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
from orders.review.state_machine import ReviewStatus, Trigger, next_status

CUSTOM_PRODUCT = "custom"
PRICE_TOLERANCE = 0.01
ORDER_NUMBER_PREFIX = "MC"


class DecisionKind(Enum):
    APPROVED = "approved"
    REJECTED = "rejected"
    NOTE = "note"


class ConfirmationVerdict(Enum):
    APPROVED = "approved"
    REJECTED = "rejected"
    INCOMPLETE = "incomplete"


@dataclass(frozen=True)
class ConfirmationOutcome:
    """What a round of customer confirmations achieved.

    ``INCOMPLETE`` is not an error: the decisions were recorded and the order
    waits for the items listed in ``awaiting_item_ids``.
    """

    verdict: ConfirmationVerdict
    status: str
    awaiting_item_ids: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@orders.value_object(part_of="OrderReview")
class PricingSnapshot:
    """Subtotal, shipping, tax and total as quoted at submission.

    Authoritative for billing. Catalogue price changes after submission never
    reach it.
    """

    subtotal = Float(default=0.0)
    shipping = Float(default=0.0)
    tax = Float(default=0.0)
    total = Float(default=0.0)
    currency = String(max_length=3, default="USD")


@orders.value_object(part_of="OrderReview")
class PriceBreakdown:
    """Unit price of one item: the base price plus itemised customization costs."""

    base_price = Float(required=True, min_value=0.0)
    customization_lines = Text()  # JSON: list of {"label", "amount"}
    customization_total = Float(default=0.0)
    unit_total = Float(required=True, min_value=0.0)


@orders.value_object(part_of="OrderReview")
class CustomizationSpec:
    placement = String(max_length=100)
    size = String(max_length=50)
    color = String(max_length=50)
    style = String(max_length=100)
    options = Text()  # JSON: any further options


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@orders.entity(part_of="OrderReview")
class OrderItem:
    """One customized item, frozen at submission.

    The entity id is the canonical item id: minted once when the order is
    submitted and the only key replies and confirmations may join on.
    """

    product_ref = String(required=True, max_length=255, default=CUSTOM_PRODUCT)
    title = String(required=True, max_length=255)
    quantity = Integer(required=True, min_value=1)
    unit_price = ValueObject(PriceBreakdown)
    design_assets = Text(required=True)  # JSON: list of asset references
    customization = ValueObject(CustomizationSpec)

    @property
    def line_total(self) -> float:
        return self.unit_price.unit_total * self.quantity

    @property
    def asset_refs(self) -> list[str]:
        return json.loads(self.design_assets) if self.design_assets else []


@orders.entity(part_of="OrderReview")
class AdminDecision:
    decision = String(required=True, max_length=20, choices=DecisionKind)
    notes = Text()
    actor_id = Identifier(required=True)
    decided_at = DateTime(required=True)


@orders.entity(part_of="OrderReview")
class PictureReply:
    """A rendered sample of one item's design, awaiting the customer's sign-off."""

    item_id = Identifier(required=True)
    image = String(required=True, max_length=1000)
    notes = Text()
    uploaded_by = Identifier(required=True)
    uploaded_at = DateTime(required=True)


@orders.entity(part_of="OrderReview")
class CustomerConfirmation:
    """The customer's decision on one picture reply.

    A later confirmation for the same item supersedes earlier ones when the
    verdict is computed; earlier ones stay for audit.
    """

    item_id = Identifier(required=True)
    reply_id = Identifier(required=True)
    confirmed = Boolean(required=True)
    notes = Text()
    confirmed_at = DateTime(required=True)


@orders.entity(part_of="OrderReview")
class DesignRevision:
    item_id = Identifier(required=True)
    design_assets = Text(required=True)  # JSON: list of asset references
    notes = Text()
    uploaded_at = DateTime(required=True)


# ---------------------------------------------------------------------------
# Submission validation
# ---------------------------------------------------------------------------
def _money(value) -> float:
    return round(float(value or 0.0), 2)


def _price_breakdown(item_data: dict) -> dict:
    lines = item_data.get("customization_lines") or []
    customization_total = _money(sum(float(line.get("amount", 0.0)) for line in lines))
    base_price = _money(item_data.get("base_price"))
    return {
        "base_price": base_price,
        "customization_lines": json.dumps(lines),
        "customization_total": customization_total,
        "unit_total": _money(base_price + customization_total),
    }


def validate_submission(items_data: list[dict], pricing: dict) -> None:
    """Reject a submission whose items or pricing cannot be billed as quoted.

    Raises:
        ValidationError: with one message list per offending field.
    """
    errors: dict[str, list[str]] = {}

    if not items_data:
        raise ValidationError({"items": ["An order must contain at least one item"]})

    computed_subtotal = 0.0
    for index, item_data in enumerate(items_data):
        label = f"items[{index}]"
        quantity = item_data.get("quantity") or 0
        if not item_data.get("title"):
            errors.setdefault(label, []).append("Title is required")
        if int(quantity) < 1:
            errors.setdefault(label, []).append("Quantity must be at least 1")
        if not item_data.get("design_assets"):
            errors.setdefault(label, []).append("At least one design asset is required")
        if float(item_data.get("base_price") or 0.0) < 0:
            errors.setdefault(label, []).append("Base price cannot be negative")
        for line in item_data.get("customization_lines") or []:
            if float(line.get("amount", 0.0)) < 0:
                errors.setdefault(label, []).append("Customization costs cannot be negative")
        computed_subtotal += _price_breakdown(item_data)["unit_total"] * int(quantity)

    for key in ("subtotal", "shipping", "tax", "total"):
        if float(pricing.get(key) or 0.0) < 0:
            errors.setdefault(key, []).append(f"{key.capitalize()} cannot be negative")

    subtotal = _money(pricing.get("subtotal"))
    if abs(subtotal - _money(computed_subtotal)) > PRICE_TOLERANCE:
        errors.setdefault("subtotal", []).append(
            f"Subtotal {subtotal:.2f} does not match the item breakdown ({computed_subtotal:.2f})"
        )

    expected_total = subtotal + _money(pricing.get("shipping")) + _money(pricing.get("tax"))
    total = _money(pricing.get("total"))
    if abs(total - expected_total) > PRICE_TOLERANCE:
        errors.setdefault("total", []).append(
            f"Total {total:.2f} does not equal subtotal + shipping + tax ({expected_total:.2f})"
        )

    if errors:
        raise ValidationError(errors)


def _item_from_snapshot(data: dict) -> OrderItem:
    customization = data.get("customization") or {}
    return OrderItem(
        id=data["id"],
        product_ref=data.get("product_ref") or CUSTOM_PRODUCT,
        title=data["title"],
        quantity=int(data["quantity"]),
        unit_price=PriceBreakdown(**data["unit_price"]),
        design_assets=json.dumps(data["design_assets"]),
        customization=CustomizationSpec(
            placement=customization.get("placement"),
            size=customization.get("size"),
            color=customization.get("color"),
            style=customization.get("style"),
            options=json.dumps(customization.get("options") or {}),
        ),
    )


# ---------------------------------------------------------------------------
# Aggregate Root (Event Sourced)
# ---------------------------------------------------------------------------
@orders.aggregate(is_event_sourced=True)
class OrderReview:
    customer_id = Identifier(required=True)
    order_number = String(max_length=50)
    status = String(
        choices=ReviewStatus,
        default=ReviewStatus.PENDING_REVIEW.value,
    )
    items = HasMany(OrderItem)
    pricing = ValueObject(PricingSnapshot)
    customer_notes = Text()
    admin_notes = Text()
    admin_decisions = HasMany(AdminDecision)
    picture_replies = HasMany(PictureReply)
    customer_confirmations = HasMany(CustomerConfirmation)
    design_revisions = HasMany(DesignRevision)
    payment_provider = String(max_length=20)
    provider_transaction_id = String(max_length=255)
    amount_paid = Float()
    tracking_number = String(max_length=255)
    shipping_carrier = String(max_length=100)
    tracking_url = String(max_length=1000)
    estimated_delivery = String(max_length=10)  # ISO date string
    submitted_at = DateTime()
    reviewed_at = DateTime()
    picture_reply_uploaded_at = DateTime()
    customer_confirmed_at = DateTime()
    paid_at = DateTime()
    shipped_at = DateTime()
    delivered_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def submit(cls, customer_id, items_data, pricing, customer_notes=None):
        """Open a new order review from a customer's cart.

        Args:
            customer_id: The customer submitting the order.
            items_data: List of dicts with title, quantity, base_price,
                        design_assets and optionally product_ref,
                        customization_lines and customization.
            pricing: Dict with subtotal, shipping, tax, total, currency.
        """
        validate_submission(items_data, pricing)

        # Canonical item ids are minted here, once, and travel in the event
        snapshots = [
            {
                "id": str(uuid4()),
                "product_ref": item.get("product_ref") or CUSTOM_PRODUCT,
                "title": item["title"],
                "quantity": int(item["quantity"]),
                "unit_price": _price_breakdown(item),
                "design_assets": list(item["design_assets"]),
                "customization": dict(item.get("customization") or {}),
            }
            for item in items_data
        ]

        review = cls._create_new()
        review.raise_(
            OrderReviewSubmitted(
                order_review_id=str(review.id),
                customer_id=str(customer_id),
                items=json.dumps(snapshots),
                subtotal=_money(pricing.get("subtotal")),
                shipping=_money(pricing.get("shipping")),
                tax=_money(pricing.get("tax")),
                total=_money(pricing.get("total")),
                currency=pricing.get("currency") or "USD",
                customer_notes=customer_notes,
                to_status=ReviewStatus.PENDING_REVIEW.value,
                submitted_at=datetime.now(UTC),
            )
        )
        return review

    # -------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------
    def item(self, item_id) -> OrderItem:
        """Return the item whose canonical id equals ``item_id`` exactly."""
        wanted = str(item_id)
        for item in self.items:
            if str(item.id) == wanted:
                return item
        raise InvalidItemReference(wanted)

    def replies_for(self, item_id) -> list[PictureReply]:
        return [reply for reply in self.picture_replies if str(reply.item_id) == str(item_id)]

    def awaiting_replies(self) -> dict[str, PictureReply]:
        """Latest reply per item that the customer has not yet decided on."""
        decided = {str(c.reply_id) for c in self.customer_confirmations}
        latest: dict[str, PictureReply] = {}
        for reply in self.picture_replies:
            latest[str(reply.item_id)] = reply
        return {item_id: reply for item_id, reply in latest.items() if str(reply.id) not in decided}

    def latest_decisions(self) -> dict[str, bool]:
        decisions: dict[str, bool] = {}
        for confirmation in self.customer_confirmations:
            decisions[str(confirmation.item_id)] = bool(confirmation.confirmed)
        return decisions

    def _move(self, trigger: Trigger) -> tuple[str, str]:
        """Validate ``trigger`` against the current status; returns (from, to)."""
        target = next_status(self.status, trigger)
        return self.status, target.value

    # -------------------------------------------------------------------
    # Admin review
    # -------------------------------------------------------------------
    def approve(self, actor_id, notes=None):
        """Approve the submitted designs as-is; the customer may pay straight away."""
        from_status, to_status = self._move(Trigger.ADMIN_APPROVE)
        self.raise_(
            OrderReviewApproved(
                order_review_id=str(self.id),
                actor_id=str(actor_id),
                notes=notes,
                from_status=from_status,
                to_status=to_status,
                reviewed_at=datetime.now(UTC),
            )
        )

    def reject(self, actor_id, notes):
        """Reject the submission; the customer has to upload new artwork."""
        if not notes:
            raise ValidationError({"notes": ["A rejection must say what needs to change"]})
        from_status, to_status = self._move(Trigger.ADMIN_REJECT)
        self.raise_(
            OrderReviewRejected(
                order_review_id=str(self.id),
                actor_id=str(actor_id),
                notes=notes,
                from_status=from_status,
                to_status=to_status,
                reviewed_at=datetime.now(UTC),
            )
        )

    def add_admin_note(self, actor_id, notes):
        if not notes:
            raise ValidationError({"notes": ["Note text is required"]})
        self.raise_(
            AdminNoteAdded(
                order_review_id=str(self.id),
                actor_id=str(actor_id),
                notes=notes,
                noted_at=datetime.now(UTC),
            )
        )

    # -------------------------------------------------------------------
    # Picture replies and customer confirmations
    # -------------------------------------------------------------------
    def upload_picture_reply(self, item_id, image, actor_id, notes=None) -> str:
        """Attach a rendered sample to one item. Returns the new reply's id."""
        from_status, to_status = self._move(Trigger.UPLOAD_PICTURE_REPLY)
        item = self.item(item_id)
        if not image:
            raise ValidationError({"image": ["A picture reply needs an image"]})

        reply_id = str(uuid4())
        self.raise_(
            PictureReplyUploaded(
                order_review_id=str(self.id),
                reply_id=reply_id,
                item_id=str(item.id),
                image=image,
                notes=notes,
                actor_id=str(actor_id),
                from_status=from_status,
                to_status=to_status,
                uploaded_at=datetime.now(UTC),
            )
        )
        return reply_id

    def record_customer_confirmations(self, confirmations, actor_id) -> ConfirmationOutcome:
        """Record the customer's decisions and derive the order-level verdict.

        Every item that still has a reply awaiting a decision must be decided
        before the order moves. Once none are left, a single ``False`` among
        the latest decisions sends the order back to the admin; otherwise it
        is ready for payment. Items approved in an earlier round are not asked
        again.

        Args:
            confirmations: List of dicts with item_id, confirmed and optional notes.
        """
        if self.status != ReviewStatus.PICTURE_REPLY_PENDING.value:
            raise InvalidTransition(self.status, "submit-confirmations")
        if not confirmations:
            raise ValidationError({"confirmations": ["At least one confirmation is required"]})

        item_ids = [str(c["item_id"]) for c in confirmations]
        if len(set(item_ids)) != len(item_ids):
            raise ValidationError({"confirmations": ["Each item may be decided only once per submission"]})

        awaiting = self.awaiting_replies()
        now = datetime.now(UTC)
        recorded = []
        for confirmation in confirmations:
            item = self.item(confirmation["item_id"])
            reply = awaiting.get(str(item.id))
            if reply is None:
                raise InvalidItemReference(str(item.id), "has no picture reply awaiting a decision")
            recorded.append(
                {
                    "id": str(uuid4()),
                    "item_id": str(item.id),
                    "reply_id": str(reply.id),
                    "confirmed": bool(confirmation["confirmed"]),
                    "notes": confirmation.get("notes"),
                    "confirmed_at": now.isoformat(),
                }
            )

        still_awaiting = sorted(set(awaiting) - set(item_ids))
        if still_awaiting:
            verdict = ConfirmationVerdict.INCOMPLETE
            to_status = self.status
        else:
            decisions = self.latest_decisions()
            decisions.update({c["item_id"]: c["confirmed"] for c in recorded})
            if all(decisions.values()):
                verdict = ConfirmationVerdict.APPROVED
                to_status = next_status(self.status, Trigger.CUSTOMER_APPROVE_ALL).value
            else:
                verdict = ConfirmationVerdict.REJECTED
                to_status = next_status(self.status, Trigger.CUSTOMER_REJECT_ITEMS).value

        self.raise_(
            CustomerConfirmationsRecorded(
                order_review_id=str(self.id),
                confirmations=json.dumps(recorded),
                verdict=verdict.value,
                actor_id=str(actor_id),
                from_status=self.status,
                to_status=to_status,
                confirmed_at=now,
            )
        )
        return ConfirmationOutcome(verdict=verdict, status=to_status, awaiting_item_ids=still_awaiting)

    def reupload_design(self, item_id, design_assets, actor_id, notes=None) -> str:
        """Record replacement artwork for a rejected item and return the order to review."""
        from_status, to_status = self._move(Trigger.REUPLOAD_DESIGN)
        item = self.item(item_id)
        if not design_assets:
            raise ValidationError({"design_assets": ["At least one design asset is required"]})

        revision_id = str(uuid4())
        self.raise_(
            DesignReuploaded(
                order_review_id=str(self.id),
                revision_id=revision_id,
                item_id=str(item.id),
                design_assets=json.dumps(list(design_assets)),
                notes=notes,
                actor_id=str(actor_id),
                from_status=from_status,
                to_status=to_status,
                uploaded_at=datetime.now(UTC),
            )
        )
        return revision_id

    # -------------------------------------------------------------------
    # Payment
    # -------------------------------------------------------------------
    def record_payment(self, provider, provider_transaction_id, amount, actor_id, currency=None) -> str:
        """Promote the order to approved-processing. Returns the assigned order number."""
        from_status, to_status = self._move(Trigger.PAYMENT_RECONCILED)
        now = datetime.now(UTC)
        order_number = f"{ORDER_NUMBER_PREFIX}-{now.year}-{str(self.id).replace('-', '')[:8].upper()}"
        self.raise_(
            OrderReviewPaid(
                order_review_id=str(self.id),
                customer_id=str(self.customer_id),
                order_number=order_number,
                provider=provider,
                provider_transaction_id=provider_transaction_id,
                amount=amount,
                currency=currency or self.pricing.currency,
                actor_id=str(actor_id),
                from_status=from_status,
                to_status=to_status,
                paid_at=now,
            )
        )
        return order_number

    # -------------------------------------------------------------------
    # Production and shipping
    # -------------------------------------------------------------------
    def mark_production_ready(self, actor_id):
        from_status, to_status = self._move(Trigger.MARK_PRODUCTION_READY)
        self.raise_(
            ProductionReadied(
                order_review_id=str(self.id),
                actor_id=str(actor_id),
                from_status=from_status,
                to_status=to_status,
                marked_at=datetime.now(UTC),
            )
        )

    def start_production(self, actor_id):
        from_status, to_status = self._move(Trigger.START_PRODUCTION)
        self.raise_(
            ProductionStarted(
                order_review_id=str(self.id),
                actor_id=str(actor_id),
                from_status=from_status,
                to_status=to_status,
                started_at=datetime.now(UTC),
            )
        )

    def mark_shipped(self, carrier, tracking_number, actor_id, tracking_url=None, estimated_delivery=None):
        """Record that the order left with ``carrier``. A tracking number is mandatory."""
        from_status, to_status = self._move(Trigger.MARK_SHIPPED)
        errors = {}
        if not carrier:
            errors["carrier"] = ["Carrier is required"]
        if not tracking_number:
            errors["tracking_number"] = ["A tracking number is required to ship"]
        if errors:
            raise ValidationError(errors)

        self.raise_(
            OrderReviewShipped(
                order_review_id=str(self.id),
                carrier=carrier,
                tracking_number=tracking_number,
                tracking_url=tracking_url,
                estimated_delivery=estimated_delivery,
                actor_id=str(actor_id),
                from_status=from_status,
                to_status=to_status,
                shipped_at=datetime.now(UTC),
            )
        )

    def mark_delivered(self, actor_id):
        from_status, to_status = self._move(Trigger.MARK_DELIVERED)
        self.raise_(
            OrderReviewDelivered(
                order_review_id=str(self.id),
                actor_id=str(actor_id),
                from_status=from_status,
                to_status=to_status,
                delivered_at=datetime.now(UTC),
            )
        )

    # -------------------------------------------------------------------
    # @apply methods rebuild state during event replay
    # -------------------------------------------------------------------
    @apply
    def _on_submitted(self, event: OrderReviewSubmitted):
        self.id = event.order_review_id
        self.customer_id = event.customer_id
        self.status = event.to_status
        self.customer_notes = event.customer_notes
        self.submitted_at = event.submitted_at
        self.updated_at = event.submitted_at

        items_data = json.loads(event.items) if isinstance(event.items, str) else []
        self.items = [_item_from_snapshot(item_data) for item_data in items_data]

        self.pricing = PricingSnapshot(
            subtotal=event.subtotal,
            shipping=event.shipping or 0.0,
            tax=event.tax or 0.0,
            total=event.total,
            currency=event.currency or "USD",
        )

    def _record_decision(self, kind: DecisionKind, notes, actor_id, decided_at):
        self.add_admin_decisions(
            AdminDecision(
                decision=kind.value,
                notes=notes,
                actor_id=actor_id,
                decided_at=decided_at,
            )
        )
        if notes:
            self.admin_notes = notes

    @apply
    def _on_approved(self, event: OrderReviewApproved):
        self._record_decision(DecisionKind.APPROVED, event.notes, event.actor_id, event.reviewed_at)
        self.status = event.to_status
        self.reviewed_at = self.reviewed_at or event.reviewed_at
        self.updated_at = event.reviewed_at

    @apply
    def _on_rejected(self, event: OrderReviewRejected):
        self._record_decision(DecisionKind.REJECTED, event.notes, event.actor_id, event.reviewed_at)
        self.status = event.to_status
        self.reviewed_at = self.reviewed_at or event.reviewed_at
        self.updated_at = event.reviewed_at

    @apply
    def _on_admin_note_added(self, event: AdminNoteAdded):
        self._record_decision(DecisionKind.NOTE, event.notes, event.actor_id, event.noted_at)
        self.updated_at = event.noted_at

    @apply
    def _on_picture_reply_uploaded(self, event: PictureReplyUploaded):
        self.add_picture_replies(
            PictureReply(
                id=event.reply_id,
                item_id=event.item_id,
                image=event.image,
                notes=event.notes,
                uploaded_by=event.actor_id,
                uploaded_at=event.uploaded_at,
            )
        )
        self.status = event.to_status
        self.reviewed_at = self.reviewed_at or event.uploaded_at
        self.picture_reply_uploaded_at = self.picture_reply_uploaded_at or event.uploaded_at
        self.updated_at = event.uploaded_at

    @apply
    def _on_confirmations_recorded(self, event: CustomerConfirmationsRecorded):
        for data in json.loads(event.confirmations):
            self.add_customer_confirmations(
                CustomerConfirmation(
                    id=data["id"],
                    item_id=data["item_id"],
                    reply_id=data["reply_id"],
                    confirmed=data["confirmed"],
                    notes=data.get("notes"),
                    confirmed_at=event.confirmed_at,
                )
            )
        self.status = event.to_status
        if event.verdict == ConfirmationVerdict.APPROVED.value:
            self.customer_confirmed_at = self.customer_confirmed_at or event.confirmed_at
        self.updated_at = event.confirmed_at

    @apply
    def _on_design_reuploaded(self, event: DesignReuploaded):
        self.add_design_revisions(
            DesignRevision(
                id=event.revision_id,
                item_id=event.item_id,
                design_assets=event.design_assets,
                notes=event.notes,
                uploaded_at=event.uploaded_at,
            )
        )
        self.status = event.to_status
        self.updated_at = event.uploaded_at

    @apply
    def _on_paid(self, event: OrderReviewPaid):
        self.status = event.to_status
        self.order_number = event.order_number
        self.payment_provider = event.provider
        self.provider_transaction_id = event.provider_transaction_id
        self.amount_paid = event.amount
        self.paid_at = self.paid_at or event.paid_at
        self.updated_at = event.paid_at

    @apply
    def _on_production_readied(self, event: ProductionReadied):
        self.status = event.to_status
        self.updated_at = event.marked_at

    @apply
    def _on_production_started(self, event: ProductionStarted):
        self.status = event.to_status
        self.updated_at = event.started_at

    @apply
    def _on_shipped(self, event: OrderReviewShipped):
        self.status = event.to_status
        self.shipping_carrier = event.carrier
        self.tracking_number = event.tracking_number
        self.tracking_url = event.tracking_url
        self.estimated_delivery = event.estimated_delivery
        self.shipped_at = self.shipped_at or event.shipped_at
        self.updated_at = event.shipped_at

    @apply
    def _on_delivered(self, event: OrderReviewDelivered):
        self.status = event.to_status
        self.delivered_at = self.delivered_at or event.delivered_at
        self.updated_at = event.delivered_at
