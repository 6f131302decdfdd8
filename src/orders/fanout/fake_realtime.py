"""Fake realtime adapter — records published messages for testing."""

from uuid import uuid4

from orders.fanout.realtime_port import RealtimePort


class FakeRealtimeAdapter(RealtimePort):
    """Realtime adapter that records messages in memory for test assertions."""

    def __init__(self):
        self.published: list[dict] = []
        self.should_succeed = True
        self.failure_reason = "Realtime push failed"

    def configure(self, should_succeed: bool = True, failure_reason: str = "Realtime push failed"):
        """Configure the fake adapter behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def publish(self, room: str, event: str, message: dict) -> dict:
        if not self.should_succeed:
            raise ConnectionError(self.failure_reason)

        message_id = f"rt-{uuid4().hex[:12]}"
        self.published.append(
            {
                "message_id": message_id,
                "room": room,
                "event": event,
                "message": message,
            }
        )
        return {"message_id": message_id, "status": "sent"}

    def messages_for(self, room: str) -> list[dict]:
        return [p for p in self.published if p["room"] == room]

    def reset(self):
        self.published.clear()
        self.should_succeed = True
