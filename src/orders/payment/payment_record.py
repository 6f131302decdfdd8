"""PaymentRecord aggregate (CQRS) — the payment ledger.

Exactly one record exists per captured provider transaction. The
``dedup_key`` (``"<provider>:<provider transaction id>"``) and the
``order_review_id`` are both unique fields, so the storage layer refuses a
second record even if two deliveries race past the application check.

State Machine:
    COMPLETED → PARTIALLY_REFUNDED → REFUNDED
    COMPLETED → REFUNDED
"""

from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, String, Text

from orders.domain import orders
from orders.payment.events import PaymentRecorded, PaymentRefundRecorded
from orders.payment.fees import Provider, calculate_fees


class PaymentRecordStatus(Enum):
    COMPLETED = "completed"
    PARTIALLY_REFUNDED = "partially-refunded"
    REFUNDED = "refunded"


class PaymentSource(Enum):
    WEBHOOK = "webhook"
    CAPTURE = "capture"
    POLL = "poll"


def dedup_key_for(provider: str, provider_transaction_id: str) -> str:
    return f"{provider}:{provider_transaction_id}"


@orders.entity(part_of="PaymentRecord")
class RefundAmendment:
    provider_refund_id = String(required=True, max_length=255)
    amount = Float(required=True, min_value=0.0)
    reason = Text()
    refunded_at = DateTime(required=True)


@orders.aggregate
class PaymentRecord:
    order_review_id = Identifier(required=True, unique=True)
    order_number = String(max_length=50)
    customer_id = Identifier(required=True)
    provider = String(required=True, max_length=20, choices=Provider)
    provider_transaction_id = String(required=True, max_length=255)
    dedup_key = String(required=True, max_length=300, unique=True)
    amount = Float(required=True, min_value=0.0)
    currency = String(max_length=3, default="USD")
    fees = Float(default=0.0)
    net_amount = Float(default=0.0)
    status = String(
        choices=PaymentRecordStatus,
        default=PaymentRecordStatus.COMPLETED.value,
    )
    source = String(max_length=20, choices=PaymentSource)
    provider_status = String(max_length=50)
    refunds = HasMany(RefundAmendment)
    refunded_amount = Float(default=0.0)
    processed_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def record(
        cls,
        order_review_id: str,
        order_number: str | None,
        customer_id: str,
        provider: str,
        provider_transaction_id: str,
        amount: float,
        currency: str,
        source: str,
        provider_status: str | None = None,
    ):
        """Create the ledger entry for a captured transaction, fees included."""
        now = datetime.now(UTC)
        fees, net_amount = calculate_fees(provider, amount)

        record = cls(
            order_review_id=order_review_id,
            order_number=order_number,
            customer_id=customer_id,
            provider=provider,
            provider_transaction_id=provider_transaction_id,
            dedup_key=dedup_key_for(provider, provider_transaction_id),
            amount=amount,
            currency=currency,
            fees=fees,
            net_amount=net_amount,
            source=source,
            provider_status=provider_status,
            processed_at=now,
            updated_at=now,
        )
        record.raise_(
            PaymentRecorded(
                payment_record_id=str(record.id),
                order_review_id=order_review_id,
                order_number=order_number,
                customer_id=customer_id,
                provider=provider,
                provider_transaction_id=provider_transaction_id,
                amount=amount,
                currency=currency,
                fees=fees,
                net_amount=net_amount,
                source=source,
                processed_at=now,
            )
        )
        return record

    @property
    def refundable_amount(self) -> float:
        return round(self.amount - (self.refunded_amount or 0.0), 2)

    def has_refund(self, provider_refund_id: str) -> bool:
        return any(r.provider_refund_id == provider_refund_id for r in self.refunds)

    def record_refund(self, provider_refund_id: str, amount: float, reason: str | None = None) -> bool:
        """Amend the record with a provider refund.

        Returns False, without changes, when this refund id was already
        recorded; providers redeliver refund notifications just like captures.
        """
        if self.has_refund(provider_refund_id):
            return False
        if amount <= 0:
            raise ValidationError({"amount": ["Refund amount must be positive"]})
        if amount - self.refundable_amount > 0.001:
            raise ValidationError(
                {"amount": [f"Refund of {amount:.2f} exceeds the refundable balance of {self.refundable_amount:.2f}"]}
            )

        now = datetime.now(UTC)
        self.add_refunds(
            RefundAmendment(
                provider_refund_id=provider_refund_id,
                amount=amount,
                reason=reason,
                refunded_at=now,
            )
        )
        self.refunded_amount = round((self.refunded_amount or 0.0) + amount, 2)
        if self.refundable_amount <= 0:
            self.status = PaymentRecordStatus.REFUNDED.value
        else:
            self.status = PaymentRecordStatus.PARTIALLY_REFUNDED.value
        self.updated_at = now

        self.raise_(
            PaymentRefundRecorded(
                payment_record_id=str(self.id),
                order_review_id=str(self.order_review_id),
                provider_refund_id=provider_refund_id,
                amount=amount,
                total_refunded=self.refunded_amount,
                status=self.status,
                reason=reason,
                refunded_at=now,
            )
        )
        return True
