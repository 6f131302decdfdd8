"""Shared BDD fixtures and step definitions for order reviews and payments."""

import json

import pytest
from orders.gateway.port import ProviderTransaction
from orders.payment.payment_record import PaymentRecord
from orders.payment.reconciliation import reconcile
from orders.review.admin_review import ApproveOrderReview, RejectOrderReview
from orders.review.confirmation import SubmitCustomerConfirmations
from orders.review.order_review import OrderReview
from orders.review.picture_reply import UploadPictureReply
from orders.review.redesign import ReuploadDesign
from orders.review.submission import SubmitOrderForReview
from protean import current_domain
from protean.exceptions import ValidationError
from pytest_bdd import given, parsers, then, when

ADMIN = {"actor_id": "admin-1", "actor_role": "admin"}

# Native "money captured" status per provider
CAPTURED_STATUS = {"paypal": "COMPLETED", "stripe": "succeeded"}


@pytest.fixture()
def ctx():
    """Scenario state: the order under test and what the last step produced."""
    return {"order_review_id": None, "customer_id": None, "outcome": None, "result": None, "error": None}


def attempt(ctx, action):
    """Run ``action``; a refused command is stored for a later Then step instead of failing the When."""
    ctx["error"] = None
    try:
        return action()
    except ValidationError as exc:
        ctx["error"] = exc
        return None


def load_review(ctx) -> OrderReview:
    return current_domain.repository_for(OrderReview).get(ctx["order_review_id"])


def item_id(ctx, index: int) -> str:
    return str(load_review(ctx).items[index - 1].id)


def upload_reply(ctx, index: int, image: str = "render.jpg") -> None:
    current_domain.process(
        UploadPictureReply(
            order_review_id=ctx["order_review_id"],
            item_id=item_id(ctx, index),
            image=image,
            **ADMIN,
        ),
        asynchronous=False,
    )


def confirm(ctx, decisions: dict[int, bool], actor_id: str | None = None) -> None:
    confirmations = [{"item_id": item_id(ctx, index), "confirmed": ok} for index, ok in decisions.items()]

    def _submit():
        return current_domain.process(
            SubmitCustomerConfirmations(
                order_review_id=ctx["order_review_id"],
                confirmations=json.dumps(confirmations),
                actor_id=actor_id or ctx["customer_id"],
            ),
            asynchronous=False,
        )

    ctx["outcome"] = attempt(ctx, _submit)


def deliver(ctx, provider, txn_id, amount, source="webhook", status=None, correlation_id=None, captured=True):
    transaction = ProviderTransaction(
        provider=provider,
        provider_transaction_id=txn_id,
        status=status or CAPTURED_STATUS[provider],
        captured=captured,
        amount=amount,
        order_correlation_id=correlation_id or ctx["order_review_id"],
    )
    ctx["result"] = reconcile(transaction, source)
    return ctx["result"]


def submit_order(ctx, customer_id, count, total):
    ctx["customer_id"] = customer_id
    price = round(total / count, 2)
    items = [
        {"title": f"Item {n}", "quantity": 1, "base_price": price, "design_assets": [f"design-{n}.png"]}
        for n in range(1, count + 1)
    ]
    ctx["order_review_id"] = current_domain.process(
        SubmitOrderForReview(
            customer_id=customer_id,
            items=json.dumps(items),
            subtotal=price * count,
            total=price * count,
        ),
        asynchronous=False,
    )


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('a customer "{customer_id}" submitted an order of {count:d} items totalling {total:f}'))
def _(ctx, customer_id, count, total):
    submit_order(ctx, customer_id, count, total)


@given(parsers.cfparse("an order awaiting payment of {total:f}"))
def _(ctx, total):
    submit_order(ctx, "cust-001", 1, total)
    current_domain.process(
        ApproveOrderReview(order_review_id=ctx["order_review_id"], **ADMIN),
        asynchronous=False,
    )


@given("the admin uploaded picture replies for all items")
def _(ctx):
    for index in range(1, len(load_review(ctx).items) + 1):
        upload_reply(ctx, index)


@given(parsers.cfparse("the admin uploaded a picture reply for item {index:d}"))
def _(ctx, index):
    upload_reply(ctx, index)


# ---------------------------------------------------------------------------
# When steps shared by both features
# ---------------------------------------------------------------------------
@when(parsers.cfparse("the customer confirms item {index:d}"))
def _(ctx, index):
    confirm(ctx, {index: True})


@when(parsers.cfparse("the customer confirms item {first:d} and rejects item {second:d}"))
def _(ctx, first, second):
    confirm(ctx, {first: True, second: False})


@when(parsers.cfparse("the admin uploads a new picture reply for item {index:d}"))
def _(ctx, index):
    upload_reply(ctx, index, image="render-v2.jpg")

@when(parsers.cfparse("the customer confirms item {first:d} and confirms item {second:d}"))
def _(ctx, first, second):
    confirm(ctx, {first: True, second: True})


@when(parsers.cfparse('customer "{customer_id}" confirms item {index:d}'))
def _(ctx, customer_id, index):
    confirm(ctx, {index: True}, actor_id=customer_id)


@when("the admin rejects the order without notes")
def _(ctx):
    attempt(
        ctx,
        lambda: current_domain.process(
            RejectOrderReview(order_review_id=ctx["order_review_id"], **ADMIN),
            asynchronous=False,
        ),
    )


@when(parsers.cfparse("the customer re-uploads the design for item {index:d}"))
def _(ctx, index):
    current_domain.process(
        ReuploadDesign(
            order_review_id=ctx["order_review_id"],
            item_id=item_id(ctx, index),
            design_assets=json.dumps(["design-v2.png"]),
            actor_id=ctx["customer_id"],
        ),
        asynchronous=False,
    )


@when(parsers.cfparse('the {provider} callback for "{txn_id}" capturing {amount:f} is delivered {times:d} times'))
def _(ctx, provider, txn_id, amount, times):
    for _delivery in range(times):
        deliver(ctx, provider, txn_id, amount)


@when(parsers.cfparse('the {provider} transaction "{txn_id}" capturing {amount:f} is reconciled from "{source}"'))
def _(ctx, provider, txn_id, amount, source):
    deliver(ctx, provider, txn_id, amount, source=source)


@when(parsers.cfparse('the {provider} transaction "{txn_id}" reports status "{status}"'))
def _(ctx, provider, txn_id, status):
    deliver(ctx, provider, txn_id, None, source="poll", status=status, captured=False)


@when(parsers.cfparse('the {provider} callback for "{txn_id}" capturing {amount:f} arrives for an unknown order'))
def _(ctx, provider, txn_id, amount):
    deliver(ctx, provider, txn_id, amount, correlation_id="no-such-order")


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the order status is "{status}"'))
def _(ctx, status):
    assert load_review(ctx).status == status


@then(parsers.cfparse('the command is refused with "{error_type}"'))
def _(ctx, error_type):
    assert ctx["error"] is not None
    assert type(ctx["error"]).__name__ == error_type


@then(parsers.cfparse('exactly {count:d} payment record exists for "{txn_id}"'))
def _(ctx, count, txn_id):
    records = (
        current_domain.repository_for(PaymentRecord)._dao.query.filter(provider_transaction_id=txn_id).all().items
    )
    assert len(records) == count


@then(parsers.cfparse("item {index:d} is still awaiting a decision"))
def _(ctx, index):
    assert item_id(ctx, index) in ctx["outcome"].awaiting_item_ids
