"""Order review and payment API package."""

from orders.api.errors import register_error_handlers
from orders.api.routes import order_review_router, payment_router

__all__ = ["order_review_router", "payment_router", "register_error_handlers"]
