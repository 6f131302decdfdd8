"""ReconciliationAnomaly aggregate (CQRS) — money an operator has to place by hand.

Recorded whenever a captured payment cannot be turned into exactly one order
promotion: the correlated order does not exist, it was already paid through a
different transaction, it is not yet awaiting payment, or the captured amount
disagrees with the quoted total. Anomalies are never dropped; each stays
``open`` until an operator resolves it.
"""

from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, Identifier, String, Text

from orders.domain import orders
from orders.payment.events import ReconciliationAnomalyRecorded, ReconciliationAnomalyResolved


class AnomalyKind(Enum):
    ORDER_NOT_FOUND = "order-not-found"
    DUPLICATE_CHARGE = "duplicate-charge"
    UNEXPECTED_STATE = "unexpected-state"
    AMOUNT_MISMATCH = "amount-mismatch"


class AnomalyStatus(Enum):
    OPEN = "open"
    RESOLVED = "resolved"


def anomaly_key_for(kind, provider: str, provider_transaction_id: str) -> str:
    kind_value = kind.value if isinstance(kind, AnomalyKind) else kind
    return f"{kind_value}:{provider}:{provider_transaction_id}"


@orders.aggregate
class ReconciliationAnomaly:
    kind = String(required=True, max_length=30, choices=AnomalyKind)
    provider = String(required=True, max_length=20)
    provider_transaction_id = String(required=True, max_length=255)
    order_correlation_id = String(max_length=255)
    amount = Float()
    currency = String(max_length=3, default="USD")
    detail = Text()
    dedup_key = String(required=True, max_length=330, unique=True)
    status = String(
        choices=AnomalyStatus,
        default=AnomalyStatus.OPEN.value,
    )
    recorded_at = DateTime()
    resolved_at = DateTime()
    resolved_by = Identifier()
    resolution_notes = Text()

    @classmethod
    def record(
        cls,
        kind: AnomalyKind,
        provider: str,
        provider_transaction_id: str,
        order_correlation_id: str | None,
        amount: float | None,
        currency: str | None,
        detail: str,
    ):
        now = datetime.now(UTC)
        anomaly = cls(
            kind=kind.value,
            provider=provider,
            provider_transaction_id=provider_transaction_id,
            order_correlation_id=order_correlation_id,
            amount=amount,
            currency=currency or "USD",
            detail=detail,
            dedup_key=anomaly_key_for(kind, provider, provider_transaction_id),
            recorded_at=now,
        )
        anomaly.raise_(
            ReconciliationAnomalyRecorded(
                anomaly_id=str(anomaly.id),
                kind=kind.value,
                provider=provider,
                provider_transaction_id=provider_transaction_id,
                order_correlation_id=order_correlation_id,
                amount=amount,
                currency=currency or "USD",
                detail=detail,
                recorded_at=now,
            )
        )
        return anomaly

    def resolve(self, resolved_by: str, resolution_notes: str) -> None:
        if self.status == AnomalyStatus.RESOLVED.value:
            raise ValidationError({"status": ["Anomaly is already resolved"]})
        if not resolution_notes:
            raise ValidationError({"resolution_notes": ["Say how the payment was settled"]})

        now = datetime.now(UTC)
        self.status = AnomalyStatus.RESOLVED.value
        self.resolved_by = resolved_by
        self.resolution_notes = resolution_notes
        self.resolved_at = now
        self.raise_(
            ReconciliationAnomalyResolved(
                anomaly_id=str(self.id),
                kind=self.kind,
                resolved_by=resolved_by,
                resolution_notes=resolution_notes,
                resolved_at=now,
            )
        )
