"""Explicit caller identity for every order-review operation.

The auth collaborator resolves an ``AuthContext`` once per request; commands
carry ``actor_id``/``actor_role`` and handlers rebuild the context from them.
Nothing in the core reads the caller from ambient state.
"""

from dataclasses import dataclass, field
from enum import Enum

from orders.review.errors import ActionNotPermitted
from orders.review.state_machine import Trigger


class Role(Enum):
    CUSTOMER = "customer"
    ADMIN = "admin"
    SYSTEM = "system"


class Permission(Enum):
    SUBMIT = "orders:submit"
    CONFIRM = "orders:confirm"
    REVIEW = "orders:review"
    FULFIL = "orders:fulfil"
    RECONCILE = "payments:reconcile"
    REFUND = "payments:refund"
    RESOLVE_ANOMALY = "payments:resolve-anomaly"


ROLE_PERMISSIONS: dict[Role, frozenset[Permission]] = {
    Role.CUSTOMER: frozenset({Permission.SUBMIT, Permission.CONFIRM}),
    Role.ADMIN: frozenset(
        {
            Permission.REVIEW,
            Permission.FULFIL,
            Permission.REFUND,
            Permission.RESOLVE_ANOMALY,
        }
    ),
    Role.SYSTEM: frozenset({Permission.RECONCILE}),
}

# trigger -> (permission required, must the actor own the order?)
TRIGGER_RULES: dict[Trigger, tuple[Permission, bool]] = {
    Trigger.ADMIN_APPROVE: (Permission.REVIEW, False),
    Trigger.ADMIN_REJECT: (Permission.REVIEW, False),
    Trigger.UPLOAD_PICTURE_REPLY: (Permission.REVIEW, False),
    Trigger.CUSTOMER_APPROVE_ALL: (Permission.CONFIRM, True),
    Trigger.CUSTOMER_REJECT_ITEMS: (Permission.CONFIRM, True),
    Trigger.REUPLOAD_DESIGN: (Permission.CONFIRM, True),
    Trigger.PAYMENT_RECONCILED: (Permission.RECONCILE, False),
    Trigger.MARK_PRODUCTION_READY: (Permission.FULFIL, False),
    Trigger.START_PRODUCTION: (Permission.FULFIL, False),
    Trigger.MARK_SHIPPED: (Permission.FULFIL, False),
    Trigger.MARK_DELIVERED: (Permission.FULFIL, False),
}


@dataclass(frozen=True)
class AuthContext:
    user_id: str
    role: Role
    permissions: frozenset[Permission] = field(default_factory=frozenset)

    @classmethod
    def for_role(cls, user_id: str, role) -> "AuthContext":
        """Build a context carrying the standard permissions of ``role``."""
        try:
            resolved = role if isinstance(role, Role) else Role(role)
        except ValueError:
            raise ActionNotPermitted(str(user_id), "act", f"unknown role '{role}'") from None
        return cls(user_id=str(user_id), role=resolved, permissions=ROLE_PERMISSIONS[resolved])

    @classmethod
    def system(cls, user_id: str = "payment-reconciler") -> "AuthContext":
        return cls.for_role(user_id, Role.SYSTEM)

    def has(self, permission: Permission) -> bool:
        return permission in self.permissions

    def require(self, permission: Permission, action: str) -> None:
        if not self.has(permission):
            raise ActionNotPermitted(self.user_id, action, f"missing permission '{permission.value}'")


def authorize(auth: AuthContext, trigger: Trigger, owner_id: str | None = None) -> None:
    """Raise ``ActionNotPermitted`` unless ``auth`` may fire ``trigger`` on an order owned by ``owner_id``."""
    permission, owner_only = TRIGGER_RULES[trigger]
    auth.require(permission, trigger.value)
    if owner_only and str(owner_id) != auth.user_id:
        raise ActionNotPermitted(auth.user_id, trigger.value, "order belongs to another customer")
