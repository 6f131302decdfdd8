"""Configurable in-memory payment provider for development and testing.

Keeps its own transaction table and answers in the native status vocabulary
of the provider it stands in for ("succeeded" for Stripe, "COMPLETED" for
PayPal), so reconciliation is exercised against realistic inputs without any
network calls. Behaviour can be flipped at runtime through
``/payments/gateway/configure`` outside production.

Webhooks are a flat JSON notification signed with a fixed test signature.
"""

from collections.abc import Mapping
from uuid import uuid4

from protean.exceptions import ObjectNotFoundError
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from orders.gateway.port import (
    CheckoutSession,
    MalformedWebhook,
    PaymentProvider,
    ProviderTransaction,
    WebhookRejected,
)

TEST_SIGNATURE = "test-signature"

# provider -> (pending status, captured status, declined status)
NATIVE_STATUSES = {
    "stripe": ("requires_capture", "succeeded", "requires_payment_method"),
    "paypal": ("APPROVED", "COMPLETED", "DECLINED"),
    "manual": ("pending", "completed", "failed"),
}


class SimulatedNotification(BaseModel):
    """Body of a webhook posted against a fake provider."""

    event_type: str | None = None
    provider_transaction_id: str
    status: str
    order_review_id: str | None = None
    amount: float | None = None
    currency: str = "USD"


class FakeGateway(PaymentProvider):
    """Configurable fake payment provider."""

    def __init__(self, name: str = "paypal") -> None:
        self.name = name
        self.should_succeed: bool = True
        self.failure_reason: str = "Card declined"
        self.calls: list[dict] = []
        self.transactions: dict[str, dict] = {}

    @property
    def _statuses(self) -> tuple[str, str, str]:
        return NATIVE_STATUSES.get(self.name, NATIVE_STATUSES["manual"])

    @property
    def captured_statuses(self) -> frozenset[str]:
        return frozenset({self._statuses[1]})

    def configure(self, should_succeed: bool, failure_reason: str = "Card declined") -> None:
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def seed_transaction(
        self,
        provider_transaction_id: str,
        order_review_id: str | None,
        amount: float,
        currency: str = "USD",
        captured: bool = False,
    ) -> None:
        """Register a transaction the provider already knows about."""
        pending, completed, _ = self._statuses
        self.transactions[provider_transaction_id] = {
            "order_review_id": order_review_id,
            "amount": amount,
            "currency": currency,
            "status": completed if captured else pending,
        }

    def _snapshot(self, provider_transaction_id: str) -> ProviderTransaction:
        try:
            txn = self.transactions[provider_transaction_id]
        except KeyError:
            raise ObjectNotFoundError(
                f"{self.name} transaction `{provider_transaction_id}` does not exist"
            ) from None
        return ProviderTransaction(
            provider=self.name,
            provider_transaction_id=provider_transaction_id,
            status=txn["status"],
            captured=txn["status"] == self._statuses[1],
            amount=txn["amount"],
            currency=txn["currency"],
            order_correlation_id=txn["order_review_id"],
            raw_response=None if txn["status"] != self._statuses[2] else self.failure_reason,
        )

    def create_checkout(self, order_review_id: str, amount: float, currency: str) -> CheckoutSession:
        self.calls.append(
            {
                "method": "create_checkout",
                "order_review_id": order_review_id,
                "amount": amount,
                "currency": currency,
            }
        )
        provider_transaction_id = f"fake_{self.name}_{uuid4().hex[:12]}"
        self.seed_transaction(provider_transaction_id, order_review_id, amount, currency)
        return CheckoutSession(
            provider=self.name,
            provider_transaction_id=provider_transaction_id,
            status=self._statuses[0],
            approval_url=f"https://fake-{self.name}.test/approve/{provider_transaction_id}",
        )

    def capture(self, provider_transaction_id: str) -> ProviderTransaction:
        self.calls.append({"method": "capture", "provider_transaction_id": provider_transaction_id})
        txn = self.transactions.get(provider_transaction_id)
        if txn is not None and txn["status"] == self._statuses[0]:
            txn["status"] = self._statuses[1] if self.should_succeed else self._statuses[2]
        return self._snapshot(provider_transaction_id)

    def fetch(self, provider_transaction_id: str) -> ProviderTransaction:
        self.calls.append({"method": "fetch", "provider_transaction_id": provider_transaction_id})
        return self._snapshot(provider_transaction_id)

    @property
    def signature_header(self) -> str:
        return "Stripe-Signature" if self.name == "stripe" else "X-Signature"

    def parse_webhook(self, payload: str, headers: Mapping[str, str]) -> ProviderTransaction | None:
        if headers.get(self.signature_header) != TEST_SIGNATURE:
            raise WebhookRejected(f"{self.signature_header} does not match the test signature")
        try:
            body = SimulatedNotification.model_validate_json(payload)
        except PydanticValidationError as exc:
            raise MalformedWebhook(str(exc)) from None
        return ProviderTransaction(
            provider=self.name,
            provider_transaction_id=body.provider_transaction_id,
            status=body.status,
            captured=self.is_captured(body.status),
            amount=body.amount,
            currency=body.currency,
            order_correlation_id=body.order_review_id,
            raw_response=payload,
        )
