"""Refund amendments — commands and handler.

Refunds never create a second ledger entry; they amend the existing
PaymentRecord and are de-duplicated by the provider's refund id.
"""

from protean import handle
from protean.fields import Float, Identifier, String, Text
from protean.utils.globals import current_domain

from orders.domain import orders
from orders.payment.payment_record import PaymentRecord
from orders.review.auth import AuthContext, Permission


@orders.command(part_of="PaymentRecord")
class RecordRefund:
    payment_record_id = Identifier(required=True)
    provider_refund_id = String(required=True, max_length=255)
    amount = Float(required=True, min_value=0.0)
    reason = Text()
    actor_id = Identifier(required=True)
    actor_role = String(required=True, max_length=20)


@orders.command_handler(part_of=PaymentRecord)
class RefundHandler:
    @handle(RecordRefund)
    def record_refund(self, command):
        AuthContext.for_role(command.actor_id, command.actor_role).require(Permission.REFUND, "record refunds")
        repo = current_domain.repository_for(PaymentRecord)
        record = repo.get(command.payment_record_id)
        applied = record.record_refund(
            provider_refund_id=command.provider_refund_id,
            amount=command.amount,
            reason=command.reason,
        )
        if applied:
            repo.add(record)
        return applied
