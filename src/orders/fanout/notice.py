"""Transition notices: the message every fan-out channel receives."""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class TransitionNotice:
    order_id: str
    customer_id: str
    from_status: str | None
    to_status: str
    occurred_at: datetime
    payload: dict = field(default_factory=dict)

    @property
    def template(self) -> str:
        return f"order-status/{self.to_status}"

    def as_message(self) -> dict:
        """Plain-dict form handed to realtime subscribers and email templates."""
        return {
            "order_id": self.order_id,
            "customer_id": self.customer_id,
            "from_status": self.from_status,
            "to_status": self.to_status,
            "occurred_at": self.occurred_at.isoformat() if self.occurred_at else None,
            "payload": self.payload,
        }
