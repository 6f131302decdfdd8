"""Rejections raised by the order-review core.

All of them are ``ValidationError`` subclasses so the unit of work rolls back
exactly as it does for any other invalid command; the API layer maps each
class to its own HTTP status.
"""

from protean.exceptions import ValidationError


class InvalidTransition(ValidationError):
    """The trigger is not legal from the order's current status."""

    def __init__(self, current_status: str, trigger: str):
        self.current_status = current_status
        self.trigger = trigger
        super().__init__({"status": [f"Cannot apply '{trigger}' while the order is '{current_status}'"]})


class InvalidItemReference(ValidationError):
    """A reply or confirmation names an item the order does not contain."""

    def __init__(self, item_id: str, reason: str = "is not an item of this order"):
        self.item_id = item_id
        super().__init__({"item_id": [f"'{item_id}' {reason}"]})


class ActionNotPermitted(ValidationError):
    def __init__(self, actor_id: str, action: str, reason: str):
        self.actor_id = actor_id
        self.action = action
        super().__init__({"actor": [f"'{actor_id}' may not {action}: {reason}"]})
