"""Order-review state machine — the single source of truth for "what can happen next".

Pure functions over (current status, trigger). Nothing here touches storage,
so the table can be exercised exhaustively and reused by the aggregate, the
command handlers and the API alike.

State Machine (11 states):
    PENDING_REVIEW → PENDING_PAYMENT (admin approves, no picture step)
    PENDING_REVIEW → REJECTED_NEEDS_UPLOAD → PENDING_REVIEW (customer re-uploads)
    PENDING_REVIEW / PICTURE_REPLY_REJECTED → PICTURE_REPLY_PENDING (admin uploads a reply)
    PICTURE_REPLY_PENDING → PENDING_PAYMENT | PICTURE_REPLY_REJECTED (customer verdict)
    PENDING_PAYMENT → APPROVED_PROCESSING (payment reconciled)
    APPROVED_PROCESSING → READY_FOR_PRODUCTION → IN_PRODUCTION → SHIPPED → DELIVERED
"""

from enum import Enum

from orders.review.errors import InvalidTransition


class ReviewStatus(Enum):
    PENDING_REVIEW = "pending-review"
    REJECTED_NEEDS_UPLOAD = "rejected-needs-upload"
    PICTURE_REPLY_PENDING = "picture-reply-pending"
    PICTURE_REPLY_REJECTED = "picture-reply-rejected"
    # Legacy vocabulary; no trigger leads here.
    PICTURE_REPLY_APPROVED = "picture-reply-approved"
    PENDING_PAYMENT = "pending-payment"
    APPROVED_PROCESSING = "approved-processing"
    READY_FOR_PRODUCTION = "ready-for-production"
    IN_PRODUCTION = "in-production"
    SHIPPED = "shipped"
    DELIVERED = "delivered"


class Trigger(Enum):
    ADMIN_APPROVE = "admin-approve"
    ADMIN_REJECT = "admin-reject"
    UPLOAD_PICTURE_REPLY = "upload-picture-reply"
    CUSTOMER_APPROVE_ALL = "customer-approve-all"
    CUSTOMER_REJECT_ITEMS = "customer-reject-items"
    REUPLOAD_DESIGN = "reupload-design"
    PAYMENT_RECONCILED = "payment-reconciled"
    MARK_PRODUCTION_READY = "mark-production-ready"
    START_PRODUCTION = "start-production"
    MARK_SHIPPED = "mark-shipped"
    MARK_DELIVERED = "mark-delivered"


S = ReviewStatus
T = Trigger

_TRANSITIONS: dict[tuple[Trigger, ReviewStatus], ReviewStatus] = {
    (T.ADMIN_APPROVE, S.PENDING_REVIEW): S.PENDING_PAYMENT,
    (T.ADMIN_REJECT, S.PENDING_REVIEW): S.REJECTED_NEEDS_UPLOAD,
    (T.UPLOAD_PICTURE_REPLY, S.PENDING_REVIEW): S.PICTURE_REPLY_PENDING,
    (T.UPLOAD_PICTURE_REPLY, S.PICTURE_REPLY_REJECTED): S.PICTURE_REPLY_PENDING,
    # Replies for several items may arrive one call at a time
    (T.UPLOAD_PICTURE_REPLY, S.PICTURE_REPLY_PENDING): S.PICTURE_REPLY_PENDING,
    (T.CUSTOMER_APPROVE_ALL, S.PICTURE_REPLY_PENDING): S.PENDING_PAYMENT,
    (T.CUSTOMER_REJECT_ITEMS, S.PICTURE_REPLY_PENDING): S.PICTURE_REPLY_REJECTED,
    (T.REUPLOAD_DESIGN, S.REJECTED_NEEDS_UPLOAD): S.PENDING_REVIEW,
    (T.PAYMENT_RECONCILED, S.PENDING_PAYMENT): S.APPROVED_PROCESSING,
    (T.MARK_PRODUCTION_READY, S.APPROVED_PROCESSING): S.READY_FOR_PRODUCTION,
    (T.START_PRODUCTION, S.READY_FOR_PRODUCTION): S.IN_PRODUCTION,
    (T.MARK_SHIPPED, S.IN_PRODUCTION): S.SHIPPED,
    (T.MARK_DELIVERED, S.SHIPPED): S.DELIVERED,
}

TERMINAL_STATES = frozenset({S.DELIVERED})

# Everything from approved-processing onward; the order is paid and logically frozen.
PAID_STATES = frozenset(
    {
        S.APPROVED_PROCESSING,
        S.READY_FOR_PRODUCTION,
        S.IN_PRODUCTION,
        S.SHIPPED,
        S.DELIVERED,
    }
)


def _coerce(status) -> ReviewStatus:
    return status if isinstance(status, ReviewStatus) else ReviewStatus(status)


def can_fire(status, trigger: Trigger) -> bool:
    return (trigger, _coerce(status)) in _TRANSITIONS


def next_status(status, trigger: Trigger) -> ReviewStatus:
    """Return the status ``trigger`` leads to from ``status``.

    Raises:
        InvalidTransition: if the pair is not in the transition table.
    """
    current = _coerce(status)
    try:
        return _TRANSITIONS[(trigger, current)]
    except KeyError:
        raise InvalidTransition(current.value, trigger.value) from None


def allowed_triggers(status) -> set[Trigger]:
    current = _coerce(status)
    return {trigger for (trigger, source) in _TRANSITIONS if source == current}


def is_paid(status) -> bool:
    return _coerce(status) in PAID_STATES


def transition_table() -> dict[tuple[Trigger, ReviewStatus], ReviewStatus]:
    return dict(_TRANSITIONS)
