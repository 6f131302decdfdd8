"""Payment provider registry.

Provides get_gateway() / set_gateway() per provider name:
- FakeGateway for development and testing (``PAYMENT_GATEWAY_MODE=fake``, the default)
- StripeGateway / PayPalGateway for production (``PAYMENT_GATEWAY_MODE=live``)

Manual payments have no provider that can confirm them, so in live mode
``manual`` is refused at every provider intake (checkout, capture, sync and
webhook) and only exists as a fee schedule.
"""

import os

from protean.exceptions import ValidationError

from orders.gateway.fake_adapter import FakeGateway
from orders.gateway.paypal_adapter import PayPalGateway
from orders.gateway.port import PaymentProvider
from orders.gateway.stripe_adapter import StripeGateway

SUPPORTED_PROVIDERS = ("stripe", "paypal", "manual")
LIVE_PROVIDERS = ("stripe", "paypal")

_gateways: dict[str, PaymentProvider] = {}


def live_mode() -> bool:
    return os.environ.get("PAYMENT_GATEWAY_MODE", "fake") == "live"


def _build(provider: str) -> PaymentProvider:
    if not live_mode():
        return FakeGateway(provider)
    if provider == "stripe":
        return StripeGateway(
            api_key=os.environ.get("STRIPE_API_KEY", ""),
            webhook_secret=os.environ.get("STRIPE_WEBHOOK_SECRET", ""),
        )
    return PayPalGateway(
        client_id=os.environ.get("PAYPAL_CLIENT_ID", ""),
        client_secret=os.environ.get("PAYPAL_CLIENT_SECRET", ""),
        webhook_id=os.environ.get("PAYPAL_WEBHOOK_ID", ""),
    )


def get_gateway(provider: str) -> PaymentProvider:
    """Return the adapter for ``provider``, building the default on first use."""
    if provider not in SUPPORTED_PROVIDERS:
        raise ValidationError({"provider": [f"Unsupported payment provider '{provider}'"]})
    if live_mode() and provider not in LIVE_PROVIDERS:
        raise ValidationError({"provider": [f"'{provider}' payments cannot be confirmed by a provider in live mode"]})
    if provider not in _gateways:
        _gateways[provider] = _build(provider)
    return _gateways[provider]


def set_gateway(provider: str, gateway: PaymentProvider) -> None:
    """Override the adapter for one provider (useful for tests)."""
    _gateways[provider] = gateway


def reset_gateways() -> None:
    _gateways.clear()
