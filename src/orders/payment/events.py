"""Domain events for the payment ledger and reconciliation anomalies."""

from protean.fields import DateTime, Float, Identifier, String, Text

from orders.domain import orders


@orders.event(part_of="PaymentRecord")
class PaymentRecorded:
    """A captured provider transaction was entered into the payment ledger."""

    __version__ = 1

    payment_record_id = Identifier(required=True)
    order_review_id = Identifier(required=True)
    order_number = String(max_length=50)
    customer_id = Identifier(required=True)
    provider = String(required=True, max_length=20)
    provider_transaction_id = String(required=True, max_length=255)
    amount = Float(required=True)
    currency = String(default="USD")
    fees = Float(required=True)
    net_amount = Float(required=True)
    source = String(max_length=20)
    processed_at = DateTime(required=True)


@orders.event(part_of="PaymentRecord")
class PaymentRefundRecorded:
    """A provider refund amended an existing ledger entry."""

    __version__ = 1

    payment_record_id = Identifier(required=True)
    order_review_id = Identifier(required=True)
    provider_refund_id = String(required=True, max_length=255)
    amount = Float(required=True)
    total_refunded = Float(required=True)
    status = String(required=True, max_length=30)
    reason = Text()
    refunded_at = DateTime(required=True)


@orders.event(part_of="ReconciliationAnomaly")
class ReconciliationAnomalyRecorded:
    """Money arrived that could not be matched to exactly one fulfillable order."""

    __version__ = 1

    anomaly_id = Identifier(required=True)
    kind = String(required=True, max_length=30)
    provider = String(required=True, max_length=20)
    provider_transaction_id = String(required=True, max_length=255)
    order_correlation_id = String(max_length=255)
    amount = Float()
    currency = String(default="USD")
    detail = Text()
    recorded_at = DateTime(required=True)


@orders.event(part_of="ReconciliationAnomaly")
class ReconciliationAnomalyResolved:
    __version__ = 1

    anomaly_id = Identifier(required=True)
    kind = String(required=True, max_length=30)
    resolved_by = Identifier(required=True)
    resolution_notes = Text(required=True)
    resolved_at = DateTime(required=True)
