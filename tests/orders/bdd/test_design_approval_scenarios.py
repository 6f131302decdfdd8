"""BDD tests for the design approval loop."""

from orders.review.admin_review import ApproveOrderReview, RejectOrderReview
from protean import current_domain
from pytest_bdd import parsers, scenarios, then, when

scenarios("features/design_approval.feature")


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when("the admin approves the order")
def _(ctx):
    current_domain.process(
        ApproveOrderReview(order_review_id=ctx["order_review_id"], actor_id="admin-1", actor_role="admin"),
        asynchronous=False,
    )


@when(parsers.cfparse('the admin rejects the order with notes "{notes}"'))
def _(ctx, notes):
    current_domain.process(
        RejectOrderReview(order_review_id=ctx["order_review_id"], notes=notes, actor_id="admin-1", actor_role="admin"),
        asynchronous=False,
    )


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the confirmation verdict is "{verdict}"'))
def _(ctx, verdict):
    assert ctx["error"] is None
    assert ctx["outcome"].verdict.value == verdict
