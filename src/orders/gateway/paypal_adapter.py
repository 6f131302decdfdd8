"""PayPal payment provider adapter (production stub).

In production this would call the Orders v2 API: create an order with the
order review id as ``custom_id``, capture it after buyer approval, and verify
webhooks through ``/v1/notifications/verify-webhook-signature``.
"""

from collections.abc import Mapping

from orders.gateway.port import CheckoutSession, PaymentProvider, ProviderTransaction


class PayPalGateway(PaymentProvider):
    """Production PayPal adapter. Not yet implemented."""

    name = "paypal"
    captured_statuses = frozenset({"COMPLETED"})

    def __init__(self, client_id: str, client_secret: str, webhook_id: str) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.webhook_id = webhook_id

    def create_checkout(self, order_review_id: str, amount: float, currency: str) -> CheckoutSession:
        raise NotImplementedError("PayPalGateway.create_checkout() is not yet implemented. POST /v2/checkout/orders.")

    def capture(self, provider_transaction_id: str) -> ProviderTransaction:
        raise NotImplementedError(
            "PayPalGateway.capture() is not yet implemented. POST /v2/checkout/orders/{id}/capture."
        )

    def fetch(self, provider_transaction_id: str) -> ProviderTransaction:
        raise NotImplementedError("PayPalGateway.fetch() is not yet implemented. GET /v2/checkout/orders/{id}.")

    def parse_webhook(self, payload: str, headers: Mapping[str, str]) -> ProviderTransaction | None:
        raise NotImplementedError(
            "PayPalGateway.parse_webhook() is not yet implemented. Verify the PAYPAL-TRANSMISSION-* headers "
            "with POST /v1/notifications/verify-webhook-signature, then read the capture resource."
        )
