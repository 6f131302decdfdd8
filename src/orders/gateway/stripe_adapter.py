"""Stripe payment provider adapter.

Charges are PaymentIntents created with manual capture and the order review
id in ``metadata``. Webhooks are authenticated and decoded with
``stripe.Webhook.construct_event``; only ``payment_intent.*`` events carry
payment state, everything else is acknowledged and ignored.
"""

from collections.abc import Mapping

import stripe
import structlog

from orders.gateway.port import (
    CheckoutSession,
    MalformedWebhook,
    PaymentProvider,
    ProviderTransaction,
    WebhookRejected,
)

logger = structlog.get_logger(__name__)

SIGNATURE_HEADER = "Stripe-Signature"


class StripeGateway(PaymentProvider):
    """Production Stripe adapter."""

    name = "stripe"
    captured_statuses = frozenset({"succeeded"})

    def __init__(self, api_key: str, webhook_secret: str) -> None:
        self.api_key = api_key
        self.webhook_secret = webhook_secret

    def _transaction(self, intent: dict, raw_response: str | None = None) -> ProviderTransaction:
        status = intent.get("status") or ""
        captured = self.is_captured(status)
        # Amounts are in the currency's minor unit
        minor = intent.get("amount_received") if captured else intent.get("amount")
        return ProviderTransaction(
            provider=self.name,
            provider_transaction_id=intent["id"],
            status=status,
            captured=captured,
            amount=minor / 100 if minor is not None else None,
            currency=(intent.get("currency") or "usd").upper(),
            order_correlation_id=(intent.get("metadata") or {}).get("order_review_id"),
            raw_response=raw_response,
        )

    def create_checkout(self, order_review_id: str, amount: float, currency: str) -> CheckoutSession:
        intent = stripe.PaymentIntent.create(
            amount=round(amount * 100),
            currency=currency.lower(),
            capture_method="manual",
            metadata={"order_review_id": order_review_id},
            api_key=self.api_key,
            idempotency_key=f"checkout-{order_review_id}",
        ).to_dict()
        return CheckoutSession(
            provider=self.name,
            provider_transaction_id=intent["id"],
            status=intent["status"],
        )

    def capture(self, provider_transaction_id: str) -> ProviderTransaction:
        try:
            intent = stripe.PaymentIntent.capture(provider_transaction_id, api_key=self.api_key)
        except stripe.CardError as exc:
            logger.warning(
                "stripe_capture_declined",
                provider_transaction_id=provider_transaction_id,
                decline_code=exc.code,
            )
            return self.fetch(provider_transaction_id)
        return self._transaction(intent.to_dict())

    def fetch(self, provider_transaction_id: str) -> ProviderTransaction:
        intent = stripe.PaymentIntent.retrieve(provider_transaction_id, api_key=self.api_key)
        return self._transaction(intent.to_dict())

    def parse_webhook(self, payload: str, headers: Mapping[str, str]) -> ProviderTransaction | None:
        try:
            event = stripe.Webhook.construct_event(payload, headers.get(SIGNATURE_HEADER, ""), self.webhook_secret)
        except stripe.SignatureVerificationError as exc:
            raise WebhookRejected(str(exc)) from None
        except ValueError as exc:
            raise MalformedWebhook(f"Stripe event body is not JSON: {exc}") from None

        event = event.to_dict()
        event_type = event.get("type") or ""
        if not event_type.startswith("payment_intent."):
            logger.info("stripe_event_ignored", event_id=event.get("id"), event_type=event_type)
            return None

        intent = (event.get("data") or {}).get("object") or {}
        if not intent.get("id"):
            raise MalformedWebhook(f"Stripe event {event.get('id')} carries no payment intent")
        return self._transaction(intent, raw_response=payload)
