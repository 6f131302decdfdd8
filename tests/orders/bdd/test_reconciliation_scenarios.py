"""BDD tests for payment reconciliation."""

from orders.fanout import EMAIL, get_channel
from orders.payment.anomaly import ReconciliationAnomaly
from orders.payment.payment_record import PaymentRecord
from orders.review.order_review import OrderReview
from protean import current_domain
from pytest_bdd import parsers, scenarios, then

scenarios("features/payment_reconciliation.feature")


@then(parsers.cfparse('the last reconciliation outcome is "{outcome}"'))
def _(ctx, outcome):
    assert ctx["result"].outcome.value == outcome


@then("the order has an order number")
def _(ctx):
    review = current_domain.repository_for(OrderReview).get(ctx["order_review_id"])
    assert review.order_number.startswith("MC-")


@then(parsers.cfparse('the payment record for "{txn_id}" came from "{source}"'))
def _(ctx, txn_id, source):
    records = (
        current_domain.repository_for(PaymentRecord)._dao.query.filter(provider_transaction_id=txn_id).all().items
    )
    assert records[0].source == source


@then(parsers.cfparse('an open "{kind}" anomaly exists for "{txn_id}"'))
def _(ctx, kind, txn_id):
    anomalies = (
        current_domain.repository_for(ReconciliationAnomaly)
        ._dao.query.filter(kind=kind, provider_transaction_id=txn_id)
        .all()
        .items
    )
    assert len(anomalies) == 1
    assert anomalies[0].status == "open"


@then("the operators were alerted")
def _(ctx):
    assert any(email["to"] == "operators" for email in get_channel(EMAIL).sent_emails)
