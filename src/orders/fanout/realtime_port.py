"""Realtime push port (abstract interface)."""

from abc import ABC, abstractmethod


class RealtimePort(ABC):
    """Abstract interface for realtime push adapters (websocket rooms, SSE, ...)."""

    @abstractmethod
    def publish(self, room: str, event: str, message: dict) -> dict:
        """Push ``message`` to every subscriber of ``room``.

        Returns:
            dict with keys: message_id, status ("sent" or "failed"), error (optional)
        """
        ...
