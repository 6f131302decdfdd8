"""Payment provider port (abstract interface).

Each provider adapter turns its native API into ``ProviderTransaction``
values. Reconciliation only ever looks at those values, so a pushed webhook,
a client-triggered capture and a server-side poll all produce the same input.
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass


class WebhookRejected(Exception):
    """The notification could not be authenticated as coming from the provider."""


class MalformedWebhook(Exception):
    """The notification is authentic but does not describe a transaction."""


@dataclass(frozen=True)
class ProviderTransaction:
    """A provider's view of one transaction, in the provider's own status vocabulary."""

    provider: str
    provider_transaction_id: str
    status: str
    captured: bool
    amount: float | None = None
    currency: str = "USD"
    order_correlation_id: str | None = None
    raw_response: str | None = None


@dataclass(frozen=True)
class CheckoutSession:
    """A charge created at the provider, carrying the order id as correlation metadata."""

    provider: str
    provider_transaction_id: str
    status: str
    approval_url: str | None = None


class PaymentProvider(ABC):
    """Abstract payment provider interface."""

    name: str
    captured_statuses: frozenset[str] = frozenset()

    def is_captured(self, status: str | None) -> bool:
        """True when ``status`` is the provider's word for money actually captured."""
        return status in self.captured_statuses

    @abstractmethod
    def create_checkout(self, order_review_id: str, amount: float, currency: str) -> CheckoutSession:
        """Create a charge the customer can approve; the order id travels as metadata."""
        ...

    @abstractmethod
    def capture(self, provider_transaction_id: str) -> ProviderTransaction:
        """Capture an approved charge and report the provider's resulting status."""
        ...

    @abstractmethod
    def fetch(self, provider_transaction_id: str) -> ProviderTransaction:
        """Read the current state of a transaction without changing it."""
        ...

    @abstractmethod
    def parse_webhook(self, payload: str, headers: Mapping[str, str]) -> ProviderTransaction | None:
        """Authenticate a webhook and translate it into a transaction.

        Raises ``WebhookRejected`` when the signature does not verify and
        ``MalformedWebhook`` when a verified body cannot be read. Returns
        ``None`` for event types that carry no payment state.
        """
        ...
