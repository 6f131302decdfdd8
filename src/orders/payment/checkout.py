"""Open a provider charge for an order that is ready to be paid.

The provider is told the order review id as correlation metadata; every later
confirmation (webhook, capture or poll) carries it back to ``reconcile()``,
and the same correlation decides who may trigger a capture or poll.
"""

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from orders.gateway import get_gateway
from orders.gateway.port import CheckoutSession, ProviderTransaction
from orders.review.auth import AuthContext, Permission
from orders.review.errors import ActionNotPermitted, InvalidTransition
from orders.review.order_review import OrderReview
from orders.review.state_machine import ReviewStatus

logger = structlog.get_logger(__name__)


def start_checkout(order_review_id: str, provider: str, auth: AuthContext) -> CheckoutSession:
    """Create a charge for the order's quoted total with ``provider``.

    Raises:
        ObjectNotFoundError: the order does not exist.
        ActionNotPermitted: the caller is not the customer who owns the order.
        InvalidTransition: the order is not awaiting payment.
    """
    review = current_domain.repository_for(OrderReview).get(order_review_id)

    auth.require(Permission.CONFIRM, "pay for orders")
    if str(review.customer_id) != auth.user_id:
        raise ActionNotPermitted(auth.user_id, "pay for orders", "order belongs to another customer")
    if review.status != ReviewStatus.PENDING_PAYMENT.value:
        raise InvalidTransition(review.status, "start-checkout")

    session = get_gateway(provider).create_checkout(
        order_review_id=str(review.id),
        amount=review.pricing.total,
        currency=review.pricing.currency,
    )
    logger.info(
        "checkout_started",
        order_review_id=str(review.id),
        provider=provider,
        provider_transaction_id=session.provider_transaction_id,
        amount=review.pricing.total,
    )
    return session


def ensure_can_settle(transaction: ProviderTransaction, auth: AuthContext) -> None:
    """Allow a capture or poll only for admins or the customer whose order the charge is for."""
    if auth.has(Permission.REVIEW):
        return
    auth.require(Permission.CONFIRM, "settle payments")

    owner_id = None
    if transaction.order_correlation_id:
        try:
            owner_id = current_domain.repository_for(OrderReview).get(transaction.order_correlation_id).customer_id
        except ObjectNotFoundError:
            owner_id = None
    if owner_id is None or str(owner_id) != auth.user_id:
        raise ActionNotPermitted(auth.user_id, "settle payments", "charge is not for one of your orders")
