"""The single entry point for captured provider payments.

Webhook deliveries, client-triggered captures and server-side polls all
produce a ``ProviderTransaction`` and call ``reconcile()``; there is no second
code path. For any one provider transaction the outcome is exactly one
``pending-payment → approved-processing`` transition and exactly one
``PaymentRecord``, however often and in whatever order the confirmation
arrives.

Algorithm (inside the order's critical section and one unit of work):
    1. Provider says "not captured"   → report the native status, write nothing.
    2. Ledger already has the txn     → duplicate, return the existing record.
    3. Correlated order is missing    → anomaly (order-not-found).
    4. Order is pending-payment       → promote, number the order, record payment.
                                        An amount that disagrees with the quoted
                                        total is also recorded as an anomaly.
    5. Order is already paid          → same txn: already reconciled;
                                        other txn: anomaly (duplicate-charge).
    6. Order is not yet payable       → anomaly (unexpected-state).

Anomalies are reported as accepted: the provider gets a success response
once the money is durably on record, and an operator takes it from there.
"""

from dataclasses import dataclass
from enum import Enum

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import Boolean, Float, Identifier, String
from protean.utils.globals import current_domain

from orders.domain import orders
from orders.gateway.port import ProviderTransaction
from orders.payment.anomaly import AnomalyKind, ReconciliationAnomaly, anomaly_key_for
from orders.payment.payment_record import PaymentRecord, PaymentSource, dedup_key_for
from orders.review.auth import AuthContext, authorize
from orders.review.guard import order_guard, process_for_order
from orders.review.order_review import PRICE_TOLERANCE, OrderReview
from orders.review.state_machine import ReviewStatus, Trigger, is_paid

logger = structlog.get_logger(__name__)

RECONCILER_ID = "payment-reconciler"


class ReconciliationOutcome(Enum):
    NOT_CAPTURED = "not-captured"
    DUPLICATE = "duplicate"
    RECONCILED = "reconciled"
    ALREADY_RECONCILED = "already-reconciled"
    ANOMALY = "anomaly"


@dataclass(frozen=True)
class ReconciliationResult:
    outcome: ReconciliationOutcome
    provider: str
    provider_transaction_id: str
    provider_status: str | None = None
    order_review_id: str | None = None
    order_status: str | None = None
    order_number: str | None = None
    payment_record_id: str | None = None
    anomaly_id: str | None = None
    anomaly_kind: str | None = None

    @property
    def accepted(self) -> bool:
        """Whether the confirmation is durably handled and the provider can stop retrying."""
        return self.outcome != ReconciliationOutcome.NOT_CAPTURED


@orders.command(part_of="PaymentRecord")
class ReconcilePayment:
    provider = String(required=True, max_length=20)
    provider_transaction_id = String(required=True, max_length=255)
    provider_status = String(max_length=50)
    captured = Boolean(default=False)
    order_correlation_id = String(max_length=255)
    amount = Float()
    currency = String(max_length=3, default="USD")
    source = String(max_length=20, default=PaymentSource.WEBHOOK.value)
    actor_id = Identifier(default=RECONCILER_ID)
    actor_role = String(default="system", max_length=20)


def _find_one(aggregate_cls, **filters):
    results = current_domain.repository_for(aggregate_cls)._dao.query.filter(**filters).all().items
    return results[0] if results else None


@orders.command_handler(part_of=PaymentRecord)
class ReconcilePaymentHandler:
    @handle(ReconcilePayment)
    def reconcile(self, command):
        authorize(AuthContext.for_role(command.actor_id, command.actor_role), Trigger.PAYMENT_RECONCILED)

        base = {
            "provider": command.provider,
            "provider_transaction_id": command.provider_transaction_id,
            "provider_status": command.provider_status,
        }

        if not command.captured:
            logger.info("payment_not_captured", **base, order_correlation_id=command.order_correlation_id)
            return ReconciliationResult(outcome=ReconciliationOutcome.NOT_CAPTURED, **base)

        existing = _find_one(PaymentRecord, dedup_key=dedup_key_for(command.provider, command.provider_transaction_id))
        if existing is not None:
            logger.info("payment_duplicate_absorbed", **base, payment_record_id=str(existing.id))
            return ReconciliationResult(
                outcome=ReconciliationOutcome.DUPLICATE,
                order_review_id=str(existing.order_review_id),
                order_number=existing.order_number,
                payment_record_id=str(existing.id),
                **base,
            )

        reviews = current_domain.repository_for(OrderReview)
        review = None
        if command.order_correlation_id:
            try:
                review = reviews.get(command.order_correlation_id)
            except ObjectNotFoundError:
                review = None

        if review is None:
            return self._anomaly(
                command,
                AnomalyKind.ORDER_NOT_FOUND,
                f"No order review matches correlation id '{command.order_correlation_id}'",
                base,
            )

        status = ReviewStatus(review.status)
        if status == ReviewStatus.PENDING_PAYMENT:
            return self._promote(command, review, reviews, base)

        if is_paid(status):
            same_txn = (
                review.payment_provider == command.provider
                and review.provider_transaction_id == command.provider_transaction_id
            )
            if same_txn:
                logger.info("payment_already_reconciled", **base, order_review_id=str(review.id))
                return ReconciliationResult(
                    outcome=ReconciliationOutcome.ALREADY_RECONCILED,
                    order_review_id=str(review.id),
                    order_status=review.status,
                    order_number=review.order_number,
                    **base,
                )
            return self._anomaly(
                command,
                AnomalyKind.DUPLICATE_CHARGE,
                f"Order already paid by {review.payment_provider}:{review.provider_transaction_id}",
                base,
                review=review,
            )

        return self._anomaly(
            command,
            AnomalyKind.UNEXPECTED_STATE,
            f"Payment captured while the order is '{review.status}'",
            base,
            review=review,
        )

    def _promote(self, command, review, reviews, base):
        amount = command.amount if command.amount is not None else review.pricing.total
        currency = command.currency or review.pricing.currency

        order_number = review.record_payment(
            provider=command.provider,
            provider_transaction_id=command.provider_transaction_id,
            amount=amount,
            actor_id=command.actor_id,
            currency=currency,
        )
        reviews.add(review)

        record = PaymentRecord.record(
            order_review_id=str(review.id),
            order_number=order_number,
            customer_id=str(review.customer_id),
            provider=command.provider,
            provider_transaction_id=command.provider_transaction_id,
            amount=amount,
            currency=currency,
            source=command.source,
            provider_status=command.provider_status,
        )
        current_domain.repository_for(PaymentRecord).add(record)

        anomaly = None
        if abs(amount - review.pricing.total) > PRICE_TOLERANCE:
            anomaly = self._store_anomaly(
                command,
                AnomalyKind.AMOUNT_MISMATCH,
                f"Captured {amount:.2f} but the order was quoted at {review.pricing.total:.2f}",
            )

        logger.info(
            "payment_reconciled",
            **base,
            order_review_id=str(review.id),
            order_number=order_number,
            payment_record_id=str(record.id),
            amount=amount,
        )
        return ReconciliationResult(
            outcome=ReconciliationOutcome.RECONCILED,
            order_review_id=str(review.id),
            order_status=review.status,
            order_number=order_number,
            payment_record_id=str(record.id),
            anomaly_id=str(anomaly.id) if anomaly else None,
            anomaly_kind=anomaly.kind if anomaly else None,
            **base,
        )

    def _store_anomaly(self, command, kind: AnomalyKind, detail: str):
        key = anomaly_key_for(kind, command.provider, command.provider_transaction_id)
        existing = _find_one(ReconciliationAnomaly, dedup_key=key)
        if existing is not None:
            return existing

        anomaly = ReconciliationAnomaly.record(
            kind=kind,
            provider=command.provider,
            provider_transaction_id=command.provider_transaction_id,
            order_correlation_id=command.order_correlation_id,
            amount=command.amount,
            currency=command.currency,
            detail=detail,
        )
        current_domain.repository_for(ReconciliationAnomaly).add(anomaly)
        logger.error(
            "reconciliation_anomaly",
            anomaly_id=str(anomaly.id),
            kind=kind.value,
            provider=command.provider,
            provider_transaction_id=command.provider_transaction_id,
            order_correlation_id=command.order_correlation_id,
            amount=command.amount,
            detail=detail,
        )
        return anomaly

    def _anomaly(self, command, kind: AnomalyKind, detail: str, base: dict, review=None):
        anomaly = self._store_anomaly(command, kind, detail)
        return ReconciliationResult(
            outcome=ReconciliationOutcome.ANOMALY,
            order_review_id=str(review.id) if review else None,
            order_status=review.status if review else None,
            anomaly_id=str(anomaly.id),
            anomaly_kind=anomaly.kind,
            **base,
        )


def reconcile(transaction: ProviderTransaction, source: PaymentSource | str) -> ReconciliationResult:
    """Funnel one provider transaction into the ledger, whatever delivered it."""
    source_value = source.value if isinstance(source, PaymentSource) else source
    command = ReconcilePayment(
        provider=transaction.provider,
        provider_transaction_id=transaction.provider_transaction_id,
        provider_status=transaction.status,
        captured=transaction.captured,
        order_correlation_id=transaction.order_correlation_id,
        amount=transaction.amount,
        currency=transaction.currency or "USD",
        source=source_value,
    )
    # Transaction lock first, then order lock: deliveries with and without
    # metadata for one transaction serialise, and no path takes them in reverse
    transaction_key = dedup_key_for(transaction.provider, transaction.provider_transaction_id)
    with order_guard(transaction_key):
        return process_for_order(transaction.order_correlation_id or transaction_key, command)
