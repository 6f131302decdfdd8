"""Email dispatch port (abstract interface)."""

from abc import ABC, abstractmethod


class EmailPort(ABC):
    """Abstract interface for email dispatch adapters."""

    @abstractmethod
    def send(self, to: str, template: str, context: dict) -> dict:
        """Render ``template`` with ``context`` and deliver it to ``to``.

        ``to`` is a recipient reference (customer id or an operator group);
        resolving it to an address is the adapter's job.

        Returns:
            dict with keys: message_id, status ("sent" or "failed"), error (optional)
        """
        ...
