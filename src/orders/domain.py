"""Orders bounded context — order review, design approval and payment reconciliation.

Handles the order-review lifecycle (event-sourced), the picture-reply and
customer-confirmation loop, payment reconciliation against provider callbacks
(CQRS payment ledger and anomaly records), and the notification fan-out that
follows every status transition.
"""

from protean.domain import Domain

from orders.utils.logging import configure_logging, get_logger

# Configure logging for the application
configure_logging()

logger = get_logger(__name__)

# Domain Composition Root
orders = Domain(name="orders")
